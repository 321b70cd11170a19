"""
Master target checks and reference comparison.

Rates each measurement of an AnalysisResult against delivery targets
(safe / warning / danger) and labels tempo and key estimates.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from mastermeter.core.models import AnalysisResult, BpmKeyResult


class CheckLevel(str, Enum):
    SAFE = 'safe'
    WARNING = 'warning'
    DANGER = 'danger'


@dataclass(frozen=True)
class CheckComment:
    """Verdict for one metric."""

    metric: str
    level: CheckLevel
    message: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {'metric': self.metric, 'level': self.level.value, 'message': self.message}


DEFAULT_TARGETS: Dict[str, Any] = {
    'duration_min': 120.0,
    'duration_max': 210.0,
    'sample_rate': 48000,
    'min_channels': 2,
    'format': 'WAV',
    'lufs_min': -9.0,
    'lufs_max': -6.0,
    'true_peak_max': 1.5,
    'lra_min': 2.5,
    'lra_max': 6.0,
    'width_min_percent': 20.0,
    'width_max_percent': 60.0,
    'max_edge_silence': 1.0,
}

# Display cap for width percentages
MAX_WIDTH_PERCENT = 200.0

KEY_DISPLAY: Dict[str, str] = {
    'C': 'C', 'C#': 'C#/Db', 'D': 'D', 'D#': 'D#/Eb', 'E': 'E', 'F': 'F',
    'F#': 'F#/Gb', 'G': 'G', 'G#': 'G#/Ab', 'A': 'A', 'A#': 'A#/Bb', 'B': 'B',
    'Db': 'C#/Db', 'Eb': 'D#/Eb', 'Gb': 'F#/Gb', 'Ab': 'G#/Ab', 'Bb': 'A#/Bb',
}

SCALE_DISPLAY: Dict[str, str] = {'major': 'Major', 'minor': 'Minor'}


def _format_range(low: float, high: float, unit: str) -> str:
    return f"{low:g} to {high:g} {unit}".rstrip()


def _mmss(seconds: float) -> str:
    return f"{int(seconds // 60)}:{int(seconds % 60):02d}"


def evaluate_master(
    result: AnalysisResult,
    targets: Optional[Mapping[str, Any]] = None,
) -> List[CheckComment]:
    """
    Rate a result against master delivery targets.

    Metrics whose group is missing from the result are skipped.

    Args:
        result: Analysis result (file info plus measurement groups)
        targets: Overrides for DEFAULT_TARGETS (the ``targets`` config section)

    Returns:
        List[CheckComment]: One verdict per available metric
    """
    t = dict(DEFAULT_TARGETS)
    if targets:
        t.update(targets)

    comments: List[CheckComment] = []

    def add(metric: str, level: CheckLevel, message: str) -> None:
        comments.append(CheckComment(metric, level, message))

    info = result.file_info
    if info is not None and info.name:
        span = f"{_mmss(t['duration_min'])} to {_mmss(t['duration_max'])} is typical"
        if info.duration < t['duration_min']:
            add('duration', CheckLevel.WARNING, f"A bit short: {span}")
        elif info.duration > t['duration_max']:
            add('duration', CheckLevel.WARNING, f"A bit long: {span}")
        else:
            add('duration', CheckLevel.SAFE, "Good")

        if info.sample_rate != t['sample_rate']:
            add('sample_rate', CheckLevel.WARNING, f"{t['sample_rate']:,} Hz recommended")
        else:
            add('sample_rate', CheckLevel.SAFE, "OK")

        if info.channels < t['min_channels']:
            add('channels', CheckLevel.WARNING, "Mono: stereo recommended")
        else:
            add('channels', CheckLevel.SAFE, "OK")

        if info.format != t['format']:
            add('format', CheckLevel.WARNING, f"{t['format']} recommended")
        else:
            add('format', CheckLevel.SAFE, "OK")

    loudness = result.loudness
    if loudness is not None:
        lufs_span = _format_range(t['lufs_min'], t['lufs_max'], 'LUFS')
        if loudness.integrated_lufs > t['lufs_max']:
            add('integrated_lufs', CheckLevel.DANGER, f"Loud: {lufs_span} is typical")
        elif loudness.integrated_lufs < t['lufs_min']:
            add('integrated_lufs', CheckLevel.WARNING, f"Quiet: {lufs_span} is typical")
        else:
            add('integrated_lufs', CheckLevel.SAFE, "Good")

        if loudness.true_peak_dbtp > t['true_peak_max']:
            add('true_peak', CheckLevel.DANGER, f"Above {t['true_peak_max']:+g} dBTP")
        else:
            add('true_peak', CheckLevel.SAFE, "OK")

        lra_span = _format_range(t['lra_min'], t['lra_max'], 'LU')
        if loudness.loudness_range < t['lra_min']:
            add('loudness_range', CheckLevel.WARNING, f"Little dynamics: {lra_span} is typical")
        elif loudness.loudness_range > t['lra_max']:
            add('loudness_range', CheckLevel.WARNING, f"Wide dynamics: {lra_span} is typical")
        else:
            add('loudness_range', CheckLevel.SAFE, "Good")

    if result.stereo is not None:
        width_percent = result.stereo.width * 100
        width_span = _format_range(t['width_min_percent'], t['width_max_percent'], '%')
        if width_percent < t['width_min_percent']:
            add('stereo_width', CheckLevel.WARNING, f"A bit narrow: {width_span} is typical")
        elif width_percent > t['width_max_percent']:
            add('stereo_width', CheckLevel.WARNING, f"A bit wide: {width_span} is typical")
        else:
            add('stereo_width', CheckLevel.SAFE, "Good")

    quality = result.quality
    if quality is not None:
        for metric, is_zero in (('start_sample', quality.start_is_zero), ('end_sample', quality.end_is_zero)):
            if is_zero:
                add(metric, CheckLevel.SAFE, "OK")
            else:
                add(metric, CheckLevel.WARNING, "Not zero: may cause a click")

        limit = t['max_edge_silence']
        for metric, seconds in (('head_silence', quality.head_silence), ('tail_silence', quality.tail_silence)):
            if seconds > limit:
                add(metric, CheckLevel.WARNING, f"{seconds:.2f} s: within {limit:g} s is typical")
            else:
                add(metric, CheckLevel.SAFE, "OK")

    return comments


def worst_level(comments: List[CheckComment]) -> CheckLevel:
    """Most severe level among the comments (SAFE when empty)."""
    order = [CheckLevel.SAFE, CheckLevel.WARNING, CheckLevel.DANGER]
    return max((c.level for c in comments), key=order.index, default=CheckLevel.SAFE)


def rate_bpm_confidence(confidence: float) -> CheckLevel:
    """Rhythm extractor confidence is a beat-strength score from 0 to about 5.3."""
    if confidence >= 3:
        return CheckLevel.SAFE
    if confidence >= 1.5:
        return CheckLevel.WARNING
    return CheckLevel.DANGER


def rate_key_strength(strength: float) -> CheckLevel:
    if strength >= 0.7:
        return CheckLevel.SAFE
    if strength >= 0.4:
        return CheckLevel.WARNING
    return CheckLevel.DANGER


def round_bpm(bpm: float) -> int:
    """Round to a whole BPM; 0 stays undetermined."""
    if bpm <= 0:
        return 0
    return int(round(bpm))


def describe_tempo(bpm: float) -> str:
    """Tempo band label for a BPM value ('' when undetermined)."""
    bpm = round_bpm(bpm)
    if bpm <= 0:
        return ''
    if bpm < 70:
        return 'Very Slow: ballads, ambient'
    if bpm < 100:
        return 'Slow: ballads, R&B'
    if bpm < 120:
        return 'Moderate: pop, hip-hop'
    if bpm < 140:
        return 'Upbeat: pop, dance'
    if bpm < 160:
        return 'Fast: EDM, rock'
    return 'Very Fast: drum & bass, hardcore'


def display_key(result: BpmKeyResult) -> str:
    """Key with enharmonic spelling and scale, e.g. 'C#/Db Minor' ('---' when undetermined)."""
    if not result.key:
        return '---'
    name = KEY_DISPLAY.get(result.key, result.key)
    scale = SCALE_DISPLAY.get(result.scale, result.scale)
    return f"{name} {scale}".strip()


def _difference(a: Optional[float], b: Optional[float]) -> Optional[float]:
    if a is None or b is None or not math.isfinite(a) or not math.isfinite(b):
        return None
    return b - a


def compare_results(a: AnalysisResult, b: AnalysisResult) -> Dict[str, Optional[float]]:
    """
    Differences of ``b`` relative to reference ``a``.

    Returns:
        Dict with ``integrated_lufs``, ``true_peak_dbtp``, ``loudness_range``
        and ``width_percent``; a value is None when either side lacks it
    """
    def width_percent(result: AnalysisResult) -> Optional[float]:
        if result.stereo is None:
            return None
        return min(result.stereo.width * 100, MAX_WIDTH_PERCENT)

    la, lb = a.loudness, b.loudness
    return {
        'integrated_lufs': _difference(
            la.integrated_lufs if la else None, lb.integrated_lufs if lb else None
        ),
        'true_peak_dbtp': _difference(
            la.true_peak_dbtp if la else None, lb.true_peak_dbtp if lb else None
        ),
        'loudness_range': _difference(
            la.loudness_range if la else None, lb.loudness_range if lb else None
        ),
        'width_percent': _difference(width_percent(a), width_percent(b)),
    }
