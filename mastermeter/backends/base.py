"""
DSP backend interface.

The analysis worker delegates EBU R128 loudness, the tempo estimators,
the key extractor and the spectral primitives to a backend object. Any
object with these methods works (structural subtyping); tests use
in-memory fakes.
"""

from typing import Any, Dict, NamedTuple, Protocol, Sequence, Tuple

import numpy as np


class LoudnessMeasurement(NamedTuple):
    """Raw EBU R128 output."""

    momentary: Sequence[float]
    short_term: Sequence[float]
    integrated: float
    loudness_range: float


class DspBackend(Protocol):
    """
    Protocol for DSP backends.

    Every method may raise; callers treat a raised exception as the
    failure of that single measurement.
    """

    @property
    def version(self) -> str:
        """Backend library version string."""
        ...

    def loudness_ebur128(
        self,
        left: np.ndarray,
        right: np.ndarray,
        sample_rate: int,
        hop_size: float,
        start_at_zero: bool,
    ) -> LoudnessMeasurement:
        """Gated EBU R128 loudness of a stereo signal."""
        ...

    def rhythm_extractor(
        self,
        audio: np.ndarray,
        sample_rate: int,
        max_tempo: float,
        min_tempo: float,
    ) -> Tuple[float, float]:
        """Multi-feature beat tracking. Returns (bpm, confidence)."""
        ...

    def percival_bpm(self, audio: np.ndarray, sample_rate: int) -> float:
        """Onset-strength tempo estimate. Returns bpm only."""
        ...

    def key_extractor(
        self,
        audio: np.ndarray,
        sample_rate: int,
        params: Dict[str, Any],
    ) -> Tuple[str, str, float]:
        """Full key extraction. Returns (key, scale, strength)."""
        ...

    def windowing(self, frame: np.ndarray, window_type: str) -> np.ndarray:
        ...

    def spectrum(self, frame: np.ndarray) -> np.ndarray:
        """Magnitude spectrum of a windowed frame."""
        ...

    def spectral_peaks(
        self,
        spectrum: np.ndarray,
        sample_rate: int,
        max_peaks: int,
        magnitude_threshold: float,
        min_frequency: float,
        max_frequency: float,
    ) -> Tuple[np.ndarray, np.ndarray]:
        """Returns (frequencies, magnitudes) of the spectral peaks."""
        ...

    def hpcp(
        self,
        frequencies: np.ndarray,
        magnitudes: np.ndarray,
        sample_rate: int,
        size: int,
        reference_frequency: float,
        weight_type: str,
        min_frequency: float,
        max_frequency: float,
    ) -> np.ndarray:
        """Harmonic pitch class profile of one frame."""
        ...

    def key(self, pcp: np.ndarray, profile_type: str) -> Tuple[str, str, float]:
        """Key estimate from a pitch class profile. Returns (key, scale, strength)."""
        ...
