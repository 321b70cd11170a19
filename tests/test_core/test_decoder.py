"""Tests for AudioDecoder."""

import numpy as np
import pytest

from mastermeter.core.decoder import AudioDecoder, create_audio_decoder, get_file_format
from mastermeter.utils.errors import DecodeError, FileTooLargeError, UnsupportedFormatError
from conftest import write_wav


class TestGetFileFormat:
    @pytest.mark.parametrize(
        "name, expected",
        [
            ("mix.wav", "WAV"),
            ("MIX.FLAC", "FLAC"),
            ("clip.webm", "WebM"),
            ("voice.opus", "Opus"),
            ("song.aiff", "AIFF"),
            ("noext", ""),
        ],
    )
    def test_tags(self, name, expected):
        assert get_file_format(name) == expected


class TestDecode:
    def test_stereo_wav_at_native_rate(self, tmp_path):
        path = write_wav(tmp_path / "a.wav", sample_rate=48000, duration=0.5)
        buffer = AudioDecoder(target_sr=None).decode(path)
        assert buffer.channels == 2
        assert buffer.sample_rate == 48000
        assert buffer.length == 24000
        assert buffer.left.dtype == np.float32
        assert np.max(np.abs(buffer.left)) == pytest.approx(0.5, abs=1e-3)

    def test_resamples_to_target(self, tmp_path):
        path = write_wav(tmp_path / "a.wav", sample_rate=48000, duration=0.5)
        buffer = AudioDecoder(target_sr=44100).decode(path)
        assert buffer.sample_rate == 44100
        assert buffer.length == pytest.approx(22050, abs=2)

    def test_mono_file(self, tmp_path):
        path = write_wav(tmp_path / "mono.wav", channels=1)
        buffer = AudioDecoder(target_sr=None).decode(path)
        assert buffer.channels == 1
        assert buffer.right is buffer.left

    def test_missing_file(self, tmp_path):
        with pytest.raises(DecodeError) as exc_info:
            AudioDecoder().decode(tmp_path / "missing.wav")
        assert "not found" in str(exc_info.value)

    def test_unsupported_extension(self, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_text("hello")
        with pytest.raises(UnsupportedFormatError) as exc_info:
            AudioDecoder().decode(path)
        assert exc_info.value.format == ".txt"

    def test_file_too_large(self, tmp_path):
        path = write_wav(tmp_path / "a.wav")
        with pytest.raises(FileTooLargeError) as exc_info:
            AudioDecoder(max_file_size=100).decode(path)
        assert exc_info.value.max_size == 100

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "broken.wav"
        path.write_bytes(b"RIFF\x10\x00\x00\x00WAVEgarbage!")
        with pytest.raises(DecodeError):
            AudioDecoder().decode(path)


class TestNativeSampleRateAndDescribe:
    def test_native_sample_rate(self, tmp_path):
        path = write_wav(tmp_path / "a.wav", sample_rate=22050)
        assert AudioDecoder().native_sample_rate(path) == 22050

    def test_describe_reports_original_rate_after_resampling(self, tmp_path):
        path = write_wav(tmp_path / "hi.wav", sample_rate=96000, duration=0.1)
        decoder = AudioDecoder(target_sr=44100)
        buffer = decoder.decode(path)
        info = decoder.describe(path, buffer)
        assert info.name == "hi.wav"
        assert info.sample_rate == 96000
        assert info.channels == 2
        assert info.format == "WAV"
        assert info.duration == pytest.approx(0.1, abs=1e-3)


class TestCreateAudioDecoder:
    def test_defaults(self):
        decoder = create_audio_decoder()
        assert decoder.target_sr == 44100
        assert decoder.max_file_size == 524288000

    def test_from_config(self):
        decoder = create_audio_decoder({'target_sample_rate': None, 'max_file_size': 1024})
        assert decoder.target_sr is None
        assert decoder.max_file_size == 1024
