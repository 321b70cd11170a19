"""Shared fixtures: fake DSP backend, synthetic signals and WAV files."""

import threading
from pathlib import Path
from typing import Iterable, Optional, Tuple

import numpy as np
import pytest
import soundfile as sf

from mastermeter.backends.base import LoudnessMeasurement
from mastermeter.core.worker import AnalysisWorker


# ---------------------------------------------------------------------------
# Fake DSP backend
# ---------------------------------------------------------------------------


class FakeBackend:
    """In-memory DspBackend with canned answers and per-method failure injection."""

    def __init__(
        self,
        version: str = "2.1-fake",
        fail: Iterable[str] = (),
        tempo: Tuple[float, float] = (120.0, 3.5),
        percival: float = 118.0,
        key: Tuple[str, str, float] = ("A", "minor", 0.8),
        fallback_key: Tuple[str, str, float] = ("C", "major", 0.6),
        peaks: bool = True,
        loudness_gate: Optional[threading.Event] = None,
    ):
        self._version = version
        self.fail = set(fail)
        self.tempo = tempo
        self.percival = percival
        self.key_result = key
        self.fallback_key = fallback_key
        self.peaks = peaks
        self.loudness_gate = loudness_gate
        self.loudness_entered = threading.Event()
        self.calls = []
        self.last_pcp = None

    def _call(self, name: str) -> None:
        self.calls.append(name)
        if name in self.fail:
            raise RuntimeError(f"{name} failed")

    @property
    def version(self) -> str:
        return self._version

    def loudness_ebur128(self, left, right, sample_rate, hop_size, start_at_zero):
        self.loudness_entered.set()
        if self.loudness_gate is not None:
            self.loudness_gate.wait(5)
        self._call("loudness_ebur128")
        return LoudnessMeasurement(
            momentary=[-10.0, -9.0, -8.5],
            short_term=[-9.5],
            integrated=-8.0,
            loudness_range=4.0,
        )

    def rhythm_extractor(self, audio, sample_rate, max_tempo, min_tempo):
        self._call("rhythm_extractor")
        return self.tempo

    def percival_bpm(self, audio, sample_rate):
        self._call("percival_bpm")
        return self.percival

    def key_extractor(self, audio, sample_rate, params):
        self._call("key_extractor")
        return self.key_result

    def windowing(self, frame, window_type):
        self._call("windowing")
        return frame * np.hanning(len(frame)).astype(np.float32)

    def spectrum(self, frame):
        self._call("spectrum")
        return np.abs(np.fft.rfft(frame)).astype(np.float32)

    def spectral_peaks(self, spectrum, sample_rate, max_peaks, magnitude_threshold,
                       min_frequency, max_frequency):
        self._call("spectral_peaks")
        if not self.peaks:
            return np.array([], dtype=np.float32), np.array([], dtype=np.float32)
        return np.array([440.0], dtype=np.float32), np.array([1.0], dtype=np.float32)

    def hpcp(self, frequencies, magnitudes, sample_rate, size, reference_frequency,
             weight_type, min_frequency, max_frequency):
        self._call("hpcp")
        pcp = np.zeros(size, dtype=np.float32)
        pcp[9 % size] = 1.0
        return pcp

    def key(self, pcp, profile_type):
        self._call("key")
        self.last_pcp = pcp
        return self.fallback_key


# ---------------------------------------------------------------------------
# Signals
# ---------------------------------------------------------------------------


def make_sine(
    frequency: float = 997.0,
    sample_rate: int = 48000,
    duration: float = 1.0,
    amplitude: float = 1.0,
    phase: float = 0.0,
) -> np.ndarray:
    t = np.arange(int(sample_rate * duration)) / sample_rate
    return (amplitude * np.sin(2 * np.pi * frequency * t + phase)).astype(np.float32)


@pytest.fixture
def sine():
    """1 s, 997 Hz, full-scale sine at 48 kHz."""
    return make_sine()


@pytest.fixture
def silence():
    """1 s of digital silence at 48 kHz."""
    return np.zeros(48000, dtype=np.float32)


# ---------------------------------------------------------------------------
# Backends and workers
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_backend():
    return FakeBackend()


@pytest.fixture
def worker(fake_backend):
    """Worker wired to the shared fake backend; shut down after the test."""
    w = AnalysisWorker(backend_factory=lambda: fake_backend)
    yield w
    w.shutdown(timeout=5)


# ---------------------------------------------------------------------------
# Audio files
# ---------------------------------------------------------------------------


def write_wav(
    path: Path,
    sample_rate: int = 48000,
    duration: float = 0.5,
    channels: int = 2,
    frequency: float = 440.0,
) -> Path:
    mono = make_sine(frequency, sample_rate, duration, amplitude=0.5)
    data = np.stack([mono] * channels, axis=1) if channels > 1 else mono
    sf.write(str(path), data, sample_rate, subtype="PCM_16")
    return path


@pytest.fixture
def wav_file(tmp_path):
    """Stereo 48 kHz WAV, 0.5 s."""
    return write_wav(tmp_path / "master.wav")
