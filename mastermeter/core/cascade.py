"""
Tempo and key detection with ordered fallback tiers.

Each measurement runs through a list of tiers. A tier that raises is
logged and skipped; a tier whose value is not accepted is remembered and
the next tier runs. When no tier is accepted the first remembered value
is used, else the measurement is reported as undetermined. Nothing here
raises to the caller.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, List, NamedTuple, Optional, Sequence, TypeVar

import numpy as np

from mastermeter.backends.base import DspBackend
from mastermeter.core.models import BpmKeyResult
from mastermeter.core.pipeline import ProgressReporter

T = TypeVar('T')


def _always(value: Any) -> bool:
    return True


@dataclass(frozen=True)
class Tier(Generic[T]):
    """
    One algorithm attempt.

    Attributes:
        name: Tier name used in logs and outcomes
        run: Produces the value; may raise
        accept: Whether the value ends the cascade
        usable: Whether a rejected value may still serve as a provisional result
    """

    name: str
    run: Callable[[], T]
    accept: Callable[[T], bool] = _always
    usable: Callable[[T], bool] = _always


@dataclass(frozen=True)
class CascadeOutcome(Generic[T]):
    value: T
    tier: Optional[str]  # None when undetermined
    used_fallback: bool


class FallbackCascade(Generic[T]):
    """Evaluates tiers in order until one produces an accepted value."""

    def __init__(self, name: str, tiers: Sequence[Tier[T]], undetermined: T):
        self._name = name
        self.tiers = list(tiers)
        self.undetermined = undetermined
        self.logger = logging.getLogger(f"cascade.{name}")

    @property
    def name(self) -> str:
        return self._name

    def run(self) -> CascadeOutcome[T]:
        provisional: Optional[CascadeOutcome[T]] = None

        for index, tier in enumerate(self.tiers):
            try:
                value = tier.run()
            except Exception as e:
                self.logger.warning(f"Tier '{tier.name}' failed: {e}")
                continue

            if tier.accept(value):
                self.logger.info(f"Tier '{tier.name}' accepted: {value}")
                return CascadeOutcome(value=value, tier=tier.name, used_fallback=index > 0)

            self.logger.info(f"Tier '{tier.name}' result not accepted: {value}")
            if provisional is None and tier.usable(value):
                provisional = CascadeOutcome(value=value, tier=tier.name, used_fallback=index > 0)

        if provisional is not None:
            self.logger.info(f"No tier accepted, keeping result of '{provisional.tier}'")
            return provisional

        self.logger.warning("All tiers exhausted, result undetermined")
        return CascadeOutcome(value=self.undetermined, tier=None, used_fallback=len(self.tiers) > 1)


class TempoEstimate(NamedTuple):
    bpm: float
    confidence: float


class KeyEstimate(NamedTuple):
    key: str
    scale: str
    strength: float


NO_TEMPO = TempoEstimate(0.0, 0.0)
NO_KEY = KeyEstimate('', '', 0.0)

# KeyExtractor parameters (Essentia defaults, set explicitly)
KEY_EXTRACTOR_PARAMS: Dict[str, Any] = {
    'averageDetuningCorrection': True,
    'frameSize': 4096,
    'hopSize': 4096,
    'hpcpSize': 12,
    'maxFrequency': 3500,
    'maximumSpectralPeaks': 60,
    'minFrequency': 25,
    'pcpThreshold': 0.2,
    'profileType': 'bgate',
    'spectralPeaksThreshold': 0.0001,
    'tuningFrequency': 440,
    'weightType': 'cosine',
    'windowType': 'hann',
}


class BpmKeyCascade:
    """
    Tempo and key detection.

    Tempo: multi-feature rhythm extractor, then the Percival estimator
    (bpm only, confidence 0). Key: KeyExtractor, then a frame-by-frame
    HPCP average fed to the standalone key estimator.
    """

    def __init__(
        self,
        backend: DspBackend,
        max_tempo: float = 208,
        min_tempo: float = 40,
        min_confidence: float = 1.0,
        key_params: Optional[Dict[str, Any]] = None,
        frame_size: int = 4096,
        hop_size: int = 2048,
        progress_stride: int = 50,
    ):
        """
        Initialize cascade.

        Args:
            backend: DSP backend providing the algorithms
            max_tempo: Upper tempo bound for the rhythm extractor
            min_tempo: Lower tempo bound for the rhythm extractor
            min_confidence: Rhythm extractor confidence (0-5.32) needed to
                            accept its tempo without trying the next tier
            key_params: KeyExtractor parameters (defaults to KEY_EXTRACTOR_PARAMS)
            frame_size: Frame length of the HPCP fallback
            hop_size: Hop length of the HPCP fallback
            progress_stride: Frames between progress reports in the fallback
        """
        self.backend = backend
        self.max_tempo = max_tempo
        self.min_tempo = min_tempo
        self.min_confidence = min_confidence
        self.key_params = dict(key_params if key_params is not None else KEY_EXTRACTOR_PARAMS)
        self.frame_size = frame_size
        self.hop_size = hop_size
        self.progress_stride = max(1, progress_stride)
        self.logger = logging.getLogger('cascade')

    def run(self, audio: np.ndarray, sample_rate: int, reporter: ProgressReporter) -> BpmKeyResult:
        """
        Detect tempo and key of a mono signal.

        Returns:
            BpmKeyResult: Zero/empty fields for whatever stayed undetermined
        """
        reporter.report('bpm', 10, 'Detecting tempo...')
        tempo = self.detect_tempo(audio, sample_rate).value

        reporter.report('key', 50, 'Detecting key...')
        key = self.detect_key(audio, sample_rate, reporter).value

        return BpmKeyResult(
            bpm=tempo.bpm,
            bpm_confidence=tempo.confidence,
            key=key.key,
            scale=key.scale,
            key_strength=key.strength,
        )

    def detect_tempo(self, audio: np.ndarray, sample_rate: int) -> CascadeOutcome[TempoEstimate]:
        def rhythm_extractor() -> TempoEstimate:
            bpm, confidence = self.backend.rhythm_extractor(
                audio, sample_rate, self.max_tempo, self.min_tempo
            )
            return TempoEstimate(float(bpm), float(confidence))

        def percival() -> TempoEstimate:
            return TempoEstimate(float(self.backend.percival_bpm(audio, sample_rate)), 0.0)

        has_bpm: Callable[[TempoEstimate], bool] = lambda estimate: estimate.bpm > 0

        cascade: FallbackCascade[TempoEstimate] = FallbackCascade(
            'tempo',
            [
                Tier(
                    'rhythm_extractor',
                    rhythm_extractor,
                    accept=lambda estimate: estimate.bpm > 0 and estimate.confidence >= self.min_confidence,
                    usable=has_bpm,
                ),
                Tier('percival', percival, accept=has_bpm, usable=has_bpm),
            ],
            undetermined=NO_TEMPO,
        )
        return cascade.run()

    def detect_key(
        self, audio: np.ndarray, sample_rate: int, reporter: ProgressReporter
    ) -> CascadeOutcome[KeyEstimate]:
        def key_extractor() -> KeyEstimate:
            key, scale, strength = self.backend.key_extractor(audio, sample_rate, self.key_params)
            return KeyEstimate(str(key), str(scale), float(strength))

        has_key: Callable[[KeyEstimate], bool] = lambda estimate: bool(estimate.key)

        cascade: FallbackCascade[KeyEstimate] = FallbackCascade(
            'key',
            [
                Tier('key_extractor', key_extractor, accept=has_key, usable=has_key),
                Tier(
                    'hpcp_average',
                    lambda: self._key_from_average_hpcp(audio, sample_rate, reporter),
                    accept=has_key,
                    usable=has_key,
                ),
            ],
            undetermined=NO_KEY,
        )
        return cascade.run()

    def _key_from_average_hpcp(
        self, audio: np.ndarray, sample_rate: int, reporter: ProgressReporter
    ) -> KeyEstimate:
        params = self.key_params
        samples = np.asarray(audio, dtype=np.float32)
        n_frames = frame_count(samples.shape[0], self.frame_size, self.hop_size)

        profiles: List[np.ndarray] = []
        for index in range(n_frames):
            if index % self.progress_stride == 0:
                percent = 55 + 40 * index / n_frames
                reporter.report('key', percent, f"Key fallback: frame {index}/{n_frames}")

            start = index * self.hop_size
            frame = samples[start:start + self.frame_size]

            windowed = self.backend.windowing(frame, params.get('windowType', 'hann'))
            spectrum = self.backend.spectrum(windowed)
            frequencies, magnitudes = self.backend.spectral_peaks(
                spectrum,
                sample_rate,
                params.get('maximumSpectralPeaks', 60),
                params.get('spectralPeaksThreshold', 0.0001),
                params.get('minFrequency', 25),
                params.get('maxFrequency', 3500),
            )
            if len(frequencies) == 0:
                continue

            pcp = np.asarray(
                self.backend.hpcp(
                    frequencies,
                    magnitudes,
                    sample_rate,
                    params.get('hpcpSize', 12),
                    params.get('tuningFrequency', 440),
                    params.get('weightType', 'cosine'),
                    params.get('minFrequency', 25),
                    params.get('maxFrequency', 3500),
                ),
                dtype=np.float64,
            )
            if not np.any(pcp):
                continue
            profiles.append(pcp)

        if not profiles:
            raise ValueError(f"No usable frames among {n_frames} for HPCP key estimation")

        self.logger.debug(f"Averaging HPCP over {len(profiles)}/{n_frames} frames")
        mean_pcp = np.mean(np.stack(profiles), axis=0).astype(np.float32)
        key, scale, strength = self.backend.key(mean_pcp, params.get('profileType', 'bgate'))
        return KeyEstimate(str(key), str(scale), float(strength))


def frame_count(length: int, frame_size: int, hop_size: int) -> int:
    """Number of full frames; a partial tail frame is dropped."""
    if length < frame_size:
        return 0
    return (length - frame_size) // hop_size + 1


def create_bpm_key_cascade(backend: DspBackend, config: Optional[Dict[str, Any]] = None) -> BpmKeyCascade:
    """
    Factory function to create BpmKeyCascade from the full configuration.

    Args:
        backend: DSP backend
        config: Optional configuration dict (``bpm``, ``key``, ``key_fallback`` sections)

    Returns:
        BpmKeyCascade: Configured cascade
    """
    if config is None:
        config = {}

    bpm_config = config.get('bpm', {})
    fallback_config = config.get('key_fallback', {})

    return BpmKeyCascade(
        backend,
        max_tempo=bpm_config.get('max_tempo', 208),
        min_tempo=bpm_config.get('min_tempo', 40),
        min_confidence=bpm_config.get('min_confidence', 1.0),
        key_params=config.get('key') or None,
        frame_size=fallback_config.get('frame_size', 4096),
        hop_size=fallback_config.get('hop_size', 2048),
        progress_stride=fallback_config.get('progress_stride', 50),
    )
