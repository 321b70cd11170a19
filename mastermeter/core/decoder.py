"""
Audio decoder for MasterMeter.

Turns audio files into linear-PCM AudioBuffers. soundfile handles the
formats libsndfile reads natively; librosa (audioread/ffmpeg) covers the
rest and does the resampling.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

import librosa
import numpy as np
import soundfile as sf

from mastermeter.core.models import AudioBuffer, FileInfo
from mastermeter.core.sample_rate import get_original_sample_rate
from mastermeter.utils.errors import DecodeError, FileTooLargeError, UnsupportedFormatError


# Extension -> container tag shown in FileInfo
FORMAT_TAGS: Dict[str, str] = {
    'wav': 'WAV',
    'mp3': 'MP3',
    'flac': 'FLAC',
    'ogg': 'OGG',
    'aac': 'AAC',
    'm4a': 'M4A',
    'webm': 'WebM',
    'opus': 'Opus',
}

SUPPORTED_SUFFIXES = frozenset(
    ['.wav', '.aif', '.aiff', '.flac', '.mp3', '.ogg', '.opus', '.aac', '.m4a', '.webm']
)

TARGET_SAMPLE_RATE: Optional[int] = 44100  # Hz
MAX_FILE_SIZE: int = 524288000  # 500 MB

logger = logging.getLogger(__name__)


def get_file_format(name: str) -> str:
    """
    Return the container tag for a file name.

    Known extensions map to their usual spelling ('WebM', 'Opus'); anything
    else is the upper-cased extension.
    """
    ext = name.rsplit('.', 1)[-1].lower() if '.' in name else ''
    return FORMAT_TAGS.get(ext, ext.upper())


class AudioDecoder:
    """
    Decodes audio files into AudioBuffers.

    Stateless and safe to share between threads.
    """

    def __init__(
        self,
        target_sr: Optional[int] = TARGET_SAMPLE_RATE,
        max_file_size: int = MAX_FILE_SIZE,
    ):
        """
        Initialize decoder.

        Args:
            target_sr: Rate to resample to, or None to keep the native rate
            max_file_size: Maximum file size in bytes
        """
        self.target_sr = target_sr
        self.max_file_size = max_file_size

    def decode(self, source: Union[Path, str]) -> AudioBuffer:
        """
        Decode an audio file.

        Args:
            source: Path to the audio file

        Returns:
            AudioBuffer: Decoded (and possibly resampled) audio

        Raises:
            UnsupportedFormatError: Extension is not an audio format we read
            FileTooLargeError: File exceeds the size limit
            DecodeError: File is missing, empty or could not be decoded
        """
        file_path = Path(source)
        self._validate_file(file_path)

        data, sample_rate = self._read(file_path)

        if data.shape[-1] == 0:
            raise DecodeError(f"Audio file is empty: {file_path.name}", file_path=str(file_path))

        if self.target_sr and sample_rate != self.target_sr:
            logger.debug(f"Resampling {file_path.name}: {sample_rate} -> {self.target_sr} Hz")
            data = librosa.resample(data, orig_sr=sample_rate, target_sr=self.target_sr)
            sample_rate = self.target_sr

        buffer = AudioBuffer(
            channel_data=tuple(np.ascontiguousarray(channel) for channel in data),
            sample_rate=int(sample_rate),
        )
        logger.info(
            f"Decoded {file_path.name}: {buffer.channels} ch, "
            f"{buffer.sample_rate} Hz, {buffer.duration:.2f}s"
        )
        return buffer

    def native_sample_rate(self, file_path: Path) -> int:
        """
        Return the sample rate the decoding libraries report for a file.

        Raises:
            DecodeError: If neither soundfile nor librosa can open the file
        """
        try:
            return int(sf.info(str(file_path)).samplerate)
        except Exception as e:
            logger.debug(f"soundfile could not read {file_path.name}: {e}")

        try:
            return int(librosa.get_samplerate(str(file_path)))
        except Exception as e:
            raise DecodeError(
                f"Failed to read sample rate from {file_path.name}: {e}",
                file_path=str(file_path),
            )

    def describe(self, file_path: Path, buffer: AudioBuffer) -> FileInfo:
        """Build FileInfo, preferring the sample rate stored in the container header."""
        file_path = Path(file_path)
        return FileInfo(
            name=file_path.name,
            duration=buffer.duration,
            sample_rate=get_original_sample_rate(file_path, self),
            channels=buffer.channels,
            format=get_file_format(file_path.name),
        )

    def _validate_file(self, file_path: Path) -> None:
        if not file_path.exists():
            raise DecodeError(f"Audio file not found: {file_path}", file_path=str(file_path))

        suffix = file_path.suffix.lower()
        if suffix not in SUPPORTED_SUFFIXES:
            raise UnsupportedFormatError(
                f"Format {suffix or '(none)'} not supported. "
                f"Supported formats: {', '.join(sorted(SUPPORTED_SUFFIXES))}",
                format=suffix,
            )

        file_size = file_path.stat().st_size
        if file_size > self.max_file_size:
            raise FileTooLargeError(
                f"File too large: {file_size / 1024 / 1024:.1f} MB. "
                f"Maximum: {self.max_file_size / 1024 / 1024:.1f} MB",
                file_size=file_size,
                max_size=self.max_file_size,
            )

    def _read(self, file_path: Path) -> Tuple[np.ndarray, int]:
        """Return (channels, frames) float32 samples and the native rate."""
        try:
            data, sample_rate = sf.read(str(file_path), dtype='float32', always_2d=True)
            return data.T, sample_rate
        except Exception as e:
            logger.debug(f"soundfile could not decode {file_path.name}, trying librosa: {e}")

        try:
            data, sample_rate = librosa.load(
                str(file_path),
                sr=None,
                mono=False,
                dtype=np.float32,
            )
        except Exception as e:
            raise DecodeError(
                f"Failed to decode {file_path.name}: {e}",
                file_path=str(file_path),
            )

        if data.ndim == 1:
            data = data[np.newaxis, :]
        return data, int(sample_rate)


def create_audio_decoder(config: Optional[Dict[str, Any]] = None) -> AudioDecoder:
    """
    Factory function to create AudioDecoder from the ``audio`` config section.

    Args:
        config: Optional configuration dict

    Returns:
        AudioDecoder: Configured decoder instance
    """
    if config is None:
        config = {}

    return AudioDecoder(
        target_sr=config.get('target_sample_rate', TARGET_SAMPLE_RATE),
        max_file_size=config.get('max_file_size', MAX_FILE_SIZE),
    )
