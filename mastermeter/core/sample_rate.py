"""
Container header parsing for the original sample rate.

Decoders may resample on load, so the rate a file was mastered at is read
straight from the WAV, FLAC, MP3 or Ogg Vorbis header bytes. Decoding is
only used when no header matches. Files are never read whole: a fixed
prefix covers every header, WAV chunks are walked by seeking and a large
ID3 tag is skipped over.
"""

import io
import logging
import struct
from pathlib import Path
from typing import BinaryIO, Dict, Optional, Protocol, Tuple, Union

logger = logging.getLogger(__name__)

MP3_SCAN_BYTES = 4096
OGG_SCAN_BYTES = 8192
HEADER_BYTES = 16384

# MPEG version bits -> rates by sample-rate index (version 1 is reserved)
MPEG_SAMPLE_RATES: Dict[int, Tuple[int, int, int]] = {
    3: (44100, 48000, 32000),  # MPEG1
    2: (22050, 24000, 16000),  # MPEG2
    0: (11025, 12000, 8000),   # MPEG2.5
}

VORBIS_MARKER = b'\x01vorbis'


class NativeRateDecoder(Protocol):
    """Anything that can report the native sample rate of an audio file."""

    def native_sample_rate(self, file_path: Path) -> int:
        ...


def _is_wav(data: bytes, size: int) -> bool:
    return size > 44 and data[0:4] == b'RIFF' and data[8:12] == b'WAVE'


def _walk_wav_chunks(stream: BinaryIO, size: int) -> Optional[int]:
    """Seek from chunk to chunk until the fmt chunk of a ``size``-byte RIFF stream."""
    pos = 12
    while pos + 8 < size:
        stream.seek(pos)
        chunk_id = stream.read(4)
        (chunk_size,) = struct.unpack('<I', stream.read(4))
        if chunk_id == b'fmt ' and pos + 16 <= size:
            # fmt: audio format (2), channels (2), sample rate (4)
            (rate,) = struct.unpack('<I', stream.read(8)[4:])
            return rate
        pos += 8 + chunk_size
        if chunk_size % 2:
            pos += 1  # chunks are word-aligned
    return None


def _wav_sample_rate(data: bytes) -> Optional[int]:
    if not _is_wav(data, len(data)):
        return None
    return _walk_wav_chunks(io.BytesIO(data), len(data))


def _flac_sample_rate(data: bytes) -> Optional[int]:
    if len(data) <= 21 or data[0:4] != b'fLaC':
        return None
    # STREAMINFO: 20-bit rate at byte 18
    return (data[18] << 12) | (data[19] << 4) | (data[20] >> 4)


def _id3_tag_size(data: bytes) -> int:
    """Length of a leading ID3v2 tag including its 10-byte header, else 0."""
    if len(data) <= 10 or data[0:3] != b'ID3':
        return 0
    # synchsafe: 7 meaningful bits per byte
    size = (
        (data[6] & 0x7F) << 21
        | (data[7] & 0x7F) << 14
        | (data[8] & 0x7F) << 7
        | (data[9] & 0x7F)
    )
    return 10 + size


def _mp3_sample_rate(data: bytes) -> Optional[int]:
    return _scan_mpeg_frames(data, _id3_tag_size(data))


def _scan_mpeg_frames(data: bytes, start: int) -> Optional[int]:
    end = min(len(data) - 4, start + MP3_SCAN_BYTES)

    for i in range(start, end):
        if data[i] != 0xFF or (data[i + 1] & 0xE0) != 0xE0:
            continue
        version = (data[i + 1] >> 3) & 3
        layer = (data[i + 1] >> 1) & 3
        rate_index = (data[i + 2] >> 2) & 3
        if layer == 0 or rate_index == 3 or version not in MPEG_SAMPLE_RATES:
            continue
        return MPEG_SAMPLE_RATES[version][rate_index]
    return None


def _ogg_sample_rate(data: bytes) -> Optional[int]:
    end = min(len(data) - 16, OGG_SCAN_BYTES)
    if end <= 0:
        return None
    index = data.find(VORBIS_MARKER, 0, end + len(VORBIS_MARKER) - 1)
    if index < 0 or index >= end:
        return None
    # identification header: version (4), channels (1), rate (4)
    (rate,) = struct.unpack_from('<I', data, index + 12)
    return rate


_SNIFFERS = (
    ('WAV', _wav_sample_rate),
    ('FLAC', _flac_sample_rate),
    ('MP3', _mp3_sample_rate),
    ('OGG', _ogg_sample_rate),
)


def sniff_sample_rate(data: bytes) -> Optional[int]:
    """
    Read the sample rate from raw container bytes.

    Formats are tried in order (WAV, FLAC, MP3, Ogg Vorbis) and the first
    match wins. Truncated or malformed headers never raise; they simply
    do not match.

    Args:
        data: Raw file contents (or at least the first few kilobytes)

    Returns:
        Sample rate in Hz, or None if no supported header was found
    """
    for container, sniffer in _SNIFFERS:
        rate = sniffer(data)
        if rate is not None:
            logger.debug(f"Sample rate from {container} header: {rate} Hz")
            return rate
    return None


def sniff_stream(stream: BinaryIO, size: int) -> Optional[int]:
    """
    Read the sample rate from an open binary stream of ``size`` bytes.

    Same result as ``sniff_sample_rate`` on the full contents, but only
    the header region is read.
    """
    head = stream.read(HEADER_BYTES)

    if _is_wav(head, size):
        rate = _walk_wav_chunks(stream, size)
        if rate is not None:
            logger.debug(f"Sample rate from WAV header: {rate} Hz")
            return rate

    tag_size = _id3_tag_size(head)
    if tag_size and tag_size + MP3_SCAN_BYTES + 4 > len(head):
        stream.seek(tag_size)
        rate = _scan_mpeg_frames(stream.read(MP3_SCAN_BYTES + 4), 0)
        if rate is not None:
            logger.debug(f"Sample rate from MP3 header: {rate} Hz")
            return rate

    return sniff_sample_rate(head)


def get_original_sample_rate(
    source: Union[Path, str],
    decoder: NativeRateDecoder,
) -> int:
    """
    Return the sample rate a file was encoded at.

    Falls back to asking the decoder when no header matches; that path
    depends on the decoder and is the least reliable one.

    Args:
        source: Path to the audio file
        decoder: Decoder used as the last resort

    Returns:
        int: Sample rate in Hz

    Raises:
        DecodeError: If the header is unknown and decoding fails as well
    """
    file_path = Path(source)
    with open(file_path, 'rb') as f:
        rate = sniff_stream(f, file_path.stat().st_size)

    if rate is not None:
        return rate

    logger.warning(
        f"No recognizable header in {file_path.name}, "
        "falling back to decoder-reported sample rate"
    )
    return decoder.native_sample_rate(file_path)
