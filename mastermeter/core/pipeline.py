"""
Feature extraction pipeline.

One analysis pass over a stereo buffer: EBU R128 loudness (delegated to
the DSP backend), true peak, stereo width and edge silence. Results are
streamed as partial fragments while progress is reported.
"""

import logging
import threading
from typing import Any, Callable, Dict, Optional

import numpy as np

from mastermeter.backends.base import DspBackend
from mastermeter.core.models import LoudnessResult, ProgressState, StereoResult
from mastermeter.dsp.silence import SILENCE_THRESHOLD, detect_silence_boundaries
from mastermeter.dsp.stereo import compute_stereo_width
from mastermeter.dsp.true_peak import DEFAULT_GATE, estimate_true_peak

ProgressCallback = Callable[[ProgressState], None]
PartialCallback = Callable[[Dict[str, Any]], None]


class ProgressReporter:
    """
    Forwards progress for a single call.

    Percent is clamped to [0, 100] and never decreases: a report lower
    than the last one is raised to the last value.
    """

    def __init__(self, emit: Optional[ProgressCallback] = None):
        self._emit = emit
        self._percent = 0.0
        self._lock = threading.Lock()

    @property
    def percent(self) -> float:
        return self._percent

    def report(self, phase: str, percent: float, label: str = '') -> ProgressState:
        with self._lock:
            value = min(100.0, max(0.0, float(percent)))
            self._percent = max(self._percent, value)
            state = ProgressState(phase=phase, percent=self._percent, label=label)
        if self._emit is not None:
            self._emit(state)
        return state


class FeatureExtractionPipeline:
    """
    Sequences the loudness, peak, width and silence measurements.

    A loudness failure inside the backend is logged and replaced by
    ``-inf``/0/empty defaults; the remaining measurements still run.
    """

    def __init__(
        self,
        backend: DspBackend,
        silence_threshold: float = SILENCE_THRESHOLD,
        true_peak_gate: float = DEFAULT_GATE,
        loudness_hop_size: float = 0.1,
    ):
        self.backend = backend
        self.silence_threshold = silence_threshold
        self.true_peak_gate = true_peak_gate
        self.loudness_hop_size = loudness_hop_size
        self.logger = logging.getLogger('pipeline')

    def run(
        self,
        left: np.ndarray,
        right: np.ndarray,
        sample_rate: int,
        reporter: ProgressReporter,
        emit_partial: PartialCallback,
    ) -> None:
        """
        Run the full pass.

        Emits ``{'loudness', 'stereo'}`` once those are known, then
        ``{'quality'}`` measured on the left channel.
        """
        reporter.report('phase1', 5, 'Measuring loudness...')
        loudness = self._measure_loudness(left, right, sample_rate)

        reporter.report('phase1', 40, 'Measuring true peak...')
        true_peak = estimate_true_peak(left, right, gate=self.true_peak_gate)
        width = compute_stereo_width(left, right)

        reporter.report('phase1', 70, 'Collecting results...')
        emit_partial({
            'loudness': LoudnessResult(
                integrated_lufs=loudness['integrated'],
                loudness_range=loudness['range'],
                true_peak_dbtp=true_peak,
                momentary_loudness=loudness['momentary'],
                short_term_loudness=loudness['short_term'],
            ),
            'stereo': StereoResult(width=width),
        })

        quality = detect_silence_boundaries(left, sample_rate, threshold=self.silence_threshold)
        emit_partial({'quality': quality})

    def _measure_loudness(
        self, left: np.ndarray, right: np.ndarray, sample_rate: int
    ) -> Dict[str, Any]:
        defaults: Dict[str, Any] = {
            'integrated': float('-inf'),
            'range': 0.0,
            'momentary': (),
            'short_term': (),
        }
        try:
            measurement = self.backend.loudness_ebur128(
                left, right, sample_rate, self.loudness_hop_size, False
            )
        except Exception as e:
            self.logger.warning(f"EBU R128 loudness failed, using defaults: {e}")
            return defaults

        return {
            'integrated': float(measurement.integrated),
            'range': float(measurement.loudness_range),
            'momentary': tuple(float(v) for v in measurement.momentary),
            'short_term': tuple(float(v) for v in measurement.short_term),
        }
