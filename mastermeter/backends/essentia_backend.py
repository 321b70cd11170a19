"""
Essentia implementation of the DSP backend.

Essentia is imported when the backend is created, inside the analysis
worker, so importing MasterMeter never pays for loading the library.
"""

import logging
from typing import Any, Dict, Tuple

import numpy as np

from mastermeter.backends.base import LoudnessMeasurement
from mastermeter.utils.errors import InitializationError

logger = logging.getLogger('backend.essentia')


class EssentiaBackend:
    """
    DSP backend built on ``essentia.standard``.

    Frame-level primitives are called thousands of times per file, so their
    algorithm instances are cached per parameter set.
    """

    def __init__(self, essentia_module: Any, standard: Any):
        self._essentia = essentia_module
        self._es = standard
        self._algorithms: Dict[Tuple[Any, ...], Any] = {}

    @property
    def version(self) -> str:
        return str(getattr(self._essentia, '__version__', 'unknown'))

    def _algorithm(self, name: str, **params: Any) -> Any:
        cache_key = (name,) + tuple(sorted(params.items()))
        algorithm = self._algorithms.get(cache_key)
        if algorithm is None:
            algorithm = getattr(self._es, name)(**params)
            self._algorithms[cache_key] = algorithm
        return algorithm

    def loudness_ebur128(
        self,
        left: np.ndarray,
        right: np.ndarray,
        sample_rate: int,
        hop_size: float,
        start_at_zero: bool,
    ) -> LoudnessMeasurement:
        stereo = self._es.StereoMuxer()(_as_float32(left), _as_float32(right))
        momentary, short_term, integrated, loudness_range = self._es.LoudnessEBUR128(
            hopSize=hop_size,
            sampleRate=float(sample_rate),
            startAtZero=start_at_zero,
        )(stereo)
        return LoudnessMeasurement(
            momentary=[float(v) for v in momentary],
            short_term=[float(v) for v in short_term],
            integrated=float(integrated),
            loudness_range=float(loudness_range),
        )

    def rhythm_extractor(
        self,
        audio: np.ndarray,
        sample_rate: int,
        max_tempo: float,
        min_tempo: float,
    ) -> Tuple[float, float]:
        if sample_rate != 44100:
            # RhythmExtractor2013 assumes 44.1 kHz input
            logger.warning(f"RhythmExtractor2013 expects 44100 Hz, got {sample_rate} Hz")
        bpm, _beats, confidence, _estimates, _intervals = self._es.RhythmExtractor2013(
            method='multifeature',
            maxTempo=int(max_tempo),
            minTempo=int(min_tempo),
        )(_as_float32(audio))
        return float(bpm), float(confidence)

    def percival_bpm(self, audio: np.ndarray, sample_rate: int) -> float:
        bpm = self._es.PercivalBpmEstimator(sampleRate=int(sample_rate))(_as_float32(audio))
        return float(bpm)

    def key_extractor(
        self,
        audio: np.ndarray,
        sample_rate: int,
        params: Dict[str, Any],
    ) -> Tuple[str, str, float]:
        key, scale, strength = self._es.KeyExtractor(
            sampleRate=float(sample_rate), **params
        )(_as_float32(audio))
        return str(key), str(scale), float(strength)

    def windowing(self, frame: np.ndarray, window_type: str) -> np.ndarray:
        return self._algorithm('Windowing', type=window_type)(_as_float32(frame))

    def spectrum(self, frame: np.ndarray) -> np.ndarray:
        return self._algorithm('Spectrum', size=int(len(frame)))(_as_float32(frame))

    def spectral_peaks(
        self,
        spectrum: np.ndarray,
        sample_rate: int,
        max_peaks: int,
        magnitude_threshold: float,
        min_frequency: float,
        max_frequency: float,
    ) -> Tuple[np.ndarray, np.ndarray]:
        frequencies, magnitudes = self._algorithm(
            'SpectralPeaks',
            sampleRate=float(sample_rate),
            maxPeaks=int(max_peaks),
            magnitudeThreshold=float(magnitude_threshold),
            minFrequency=float(min_frequency),
            maxFrequency=float(max_frequency),
            orderBy='magnitude',
        )(_as_float32(spectrum))
        return frequencies, magnitudes

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
        return self._algorithm(
            'HPCP',
            sampleRate=float(sample_rate),
            size=int(size),
            referenceFrequency=float(reference_frequency),
            weightType=weight_type,
            minFrequency=float(min_frequency),
            maxFrequency=float(max_frequency),
        )(_as_float32(frequencies), _as_float32(magnitudes))

    def key(self, pcp: np.ndarray, profile_type: str) -> Tuple[str, str, float]:
        key, scale, strength, _relative = self._algorithm(
            'Key', profileType=profile_type
        )(_as_float32(pcp))
        return str(key), str(scale), float(strength)


def _as_float32(samples: Any) -> np.ndarray:
    return np.ascontiguousarray(samples, dtype=np.float32)


def load_essentia_backend() -> EssentiaBackend:
    """
    Import Essentia and build the backend.

    Returns:
        EssentiaBackend: Ready-to-use backend

    Raises:
        InitializationError: If Essentia is not installed or fails to load
    """
    try:
        import essentia
        import essentia.standard as es
    except Exception as e:
        raise InitializationError(
            f"Failed to load Essentia (install the 'essentia' extra): {e}",
            backend='essentia',
        ) from e

    backend = EssentiaBackend(essentia, es)
    logger.info(f"Essentia {backend.version} loaded")
    return backend
