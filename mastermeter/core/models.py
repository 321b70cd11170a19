"""
Core data models for MasterMeter.

Immutable domain models for decoded audio, measurement results and
batch queue items.
"""

from __future__ import annotations

import json
import math
import time
import uuid
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import numpy as np

from mastermeter.utils.errors import BatchError


@dataclass(frozen=True, eq=False)
class AudioBuffer:
    """
    Decoded linear-PCM audio.

    Channel arrays are float32 and marked read-only; callers that need a
    writable copy must copy explicitly.
    """

    channel_data: Tuple[np.ndarray, ...]
    sample_rate: int

    def __post_init__(self) -> None:
        if not self.channel_data:
            raise ValueError("AudioBuffer needs at least one channel")
        if self.sample_rate <= 0:
            raise ValueError(f"Sample rate must be positive, got {self.sample_rate}")
        frozen = []
        for channel in self.channel_data:
            array = np.asarray(channel, dtype=np.float32)
            if array.ndim != 1:
                raise ValueError("Each channel must be a 1-D sample array")
            array.setflags(write=False)
            frozen.append(array)
        object.__setattr__(self, 'channel_data', tuple(frozen))

    @property
    def channels(self) -> int:
        return len(self.channel_data)

    @property
    def length(self) -> int:
        return int(self.channel_data[0].shape[0])

    @property
    def duration(self) -> float:
        """Duration in seconds."""
        return self.length / self.sample_rate

    @property
    def left(self) -> np.ndarray:
        return self.channel_data[0]

    @property
    def right(self) -> np.ndarray:
        """Second channel, or the first one for mono audio."""
        if self.channels > 1:
            return self.channel_data[1]
        return self.channel_data[0]

    @property
    def mono(self) -> np.ndarray:
        """Average of the first two channels (the only channel for mono)."""
        if self.channels == 1:
            return self.channel_data[0]
        return ((self.left + self.right) / 2).astype(np.float32)


@dataclass(frozen=True)
class FileInfo:
    """Per-file metadata shown next to the measurements."""

    name: str
    duration: float  # seconds
    sample_rate: int  # Hz, sniffed from the container when possible
    channels: int
    format: str  # 'WAV', 'MP3', 'FLAC', ...

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'name': self.name,
            'duration': self.duration,
            'sample_rate': self.sample_rate,
            'channels': self.channels,
            'format': self.format,
        }

    @classmethod
    def empty(cls) -> "FileInfo":
        return cls(name='', duration=0.0, sample_rate=0, channels=0, format='')


@dataclass(frozen=True)
class LoudnessResult:
    """EBU R128 loudness and true peak."""

    integrated_lufs: float  # -inf when not computable
    loudness_range: float  # LU
    true_peak_dbtp: float
    momentary_loudness: Tuple[float, ...] = ()  # 400 ms windows, 100 ms hop
    short_term_loudness: Tuple[float, ...] = ()  # 3 s windows

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'integrated_lufs': self.integrated_lufs,
            'loudness_range': self.loudness_range,
            'true_peak_dbtp': self.true_peak_dbtp,
            'momentary_loudness': list(self.momentary_loudness),
            'short_term_loudness': list(self.short_term_loudness),
        }


@dataclass(frozen=True)
class StereoResult:
    """Mid/side energy ratio: 0 is mono, ~1 is very wide."""

    width: float

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {'width': self.width}


@dataclass(frozen=True)
class QualityResult:
    """Edge sample levels and head/tail silence."""

    start_amplitude: float
    end_amplitude: float
    start_is_zero: bool
    end_is_zero: bool
    head_silence: float  # seconds
    tail_silence: float  # seconds

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'start_amplitude': self.start_amplitude,
            'end_amplitude': self.end_amplitude,
            'start_is_zero': self.start_is_zero,
            'end_is_zero': self.end_is_zero,
            'head_silence': self.head_silence,
            'tail_silence': self.tail_silence,
        }


@dataclass(frozen=True)
class BpmKeyResult:
    """Tempo and key estimate. Zero/empty fields mean undetermined."""

    bpm: float = 0.0
    bpm_confidence: float = 0.0  # scale depends on the tier that produced it
    key: str = ''
    scale: str = ''  # 'major' or 'minor'
    key_strength: float = 0.0  # [0.0, 1.0]

    @classmethod
    def undetermined(cls) -> "BpmKeyResult":
        return cls()

    @property
    def has_tempo(self) -> bool:
        return self.bpm > 0

    @property
    def has_key(self) -> bool:
        return bool(self.key)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'bpm': self.bpm,
            'bpm_confidence': self.bpm_confidence,
            'key': self.key,
            'scale': self.scale,
            'key_strength': self.key_strength,
        }


_FRAGMENT_KEYS = ('file_info', 'loudness', 'stereo', 'quality')


@dataclass(frozen=True)
class AnalysisResult:
    """Aggregate of file metadata and the measurement groups."""

    file_info: FileInfo
    loudness: Optional[LoudnessResult] = None
    stereo: Optional[StereoResult] = None
    quality: Optional[QualityResult] = None

    def merge(self, fragment: Mapping[str, Any]) -> "AnalysisResult":
        """
        Return a new result with the fragment's groups replaced.

        Unknown keys are ignored so newer workers can stream extra groups
        to older callers.
        """
        changes = {key: fragment[key] for key in _FRAGMENT_KEYS if key in fragment}
        if not changes:
            return self
        return replace(self, **changes)

    def is_complete(self) -> bool:
        """Check if every measurement group arrived."""
        return (
            self.loudness is not None and
            self.stereo is not None and
            self.quality is not None
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'file_info': self.file_info.to_dict(),
            'loudness': self.loudness.to_dict() if self.loudness else None,
            'stereo': self.stereo.to_dict() if self.stereo else None,
            'quality': self.quality.to_dict() if self.quality else None,
        }

    def to_json(self, indent: int = 2) -> str:
        """Export as JSON string; non-finite numbers become null."""
        return json.dumps(finite_or_none(self.to_dict()), indent=indent, default=str)

    def get_summary(self) -> str:
        """Get human-readable one-line summary."""
        parts = []

        if self.loudness:
            parts.append(f"{format_db(self.loudness.integrated_lufs)} LUFS")
            parts.append(f"{format_db(self.loudness.true_peak_dbtp)} dBTP")
            parts.append(f"LRA {self.loudness.loudness_range:.1f} LU")

        if self.stereo:
            parts.append(f"Width {self.stereo.width * 100:.0f}%")

        if self.quality:
            parts.append(
                f"Silence {self.quality.head_silence:.2f}s/{self.quality.tail_silence:.2f}s"
            )

        return " | ".join(parts) if parts else "No analysis results"


class BatchStatus(str, Enum):
    """Batch item lifecycle: pending -> decoding -> analyzing -> done, or error."""

    PENDING = 'pending'
    DECODING = 'decoding'
    ANALYZING = 'analyzing'
    DONE = 'done'
    ERROR = 'error'

    @property
    def is_terminal(self) -> bool:
        return self in (BatchStatus.DONE, BatchStatus.ERROR)

    def can_transition_to(self, target: "BatchStatus") -> bool:
        if self.is_terminal:
            return False
        if target is BatchStatus.ERROR:
            return True
        return _STATUS_ORDER.index(target) == _STATUS_ORDER.index(self) + 1


_STATUS_ORDER = (
    BatchStatus.PENDING,
    BatchStatus.DECODING,
    BatchStatus.ANALYZING,
    BatchStatus.DONE,
)


@dataclass(frozen=True)
class BatchItem:
    """One queued file. Replaced, never mutated, on every status change."""

    id: str
    path: Path
    file_info: Optional[FileInfo] = None
    result: Optional[AnalysisResult] = None
    status: BatchStatus = BatchStatus.PENDING
    error: Optional[str] = None

    @classmethod
    def create(cls, path: Path) -> "BatchItem":
        """Create a pending item; the id combines file identity and arrival time."""
        path = Path(path)
        try:
            size = path.stat().st_size
        except OSError:
            size = 0
        item_id = f"{path.name}-{size}-{time.time_ns()}-{uuid.uuid4().hex[:8]}"
        return cls(id=item_id, path=path)

    def advance(self, status: BatchStatus, **changes: Any) -> "BatchItem":
        """
        Return a copy moved to ``status``.

        Raises:
            BatchError: If the transition would move the item backwards
        """
        if not self.status.can_transition_to(status):
            raise BatchError(
                f"Invalid status transition {self.status.value} -> {status.value}",
                item_id=self.id,
            )
        return replace(self, status=status, **changes)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'id': self.id,
            'path': str(self.path),
            'file_info': self.file_info.to_dict() if self.file_info else None,
            'result': self.result.to_dict() if self.result else None,
            'status': self.status.value,
            'error': self.error,
        }


@dataclass(frozen=True)
class ProgressState:
    """Progress of one call: phase tag, percent (0-100) and a label."""

    phase: str = 'init'
    percent: float = 0.0
    label: str = ''


# Formatting helpers

def format_db(value: float, digits: int = 1) -> str:
    """Format a dB/LUFS value, rendering non-finite values as '---'."""
    if value is None or not math.isfinite(value):
        return '---'
    return f"{value:.{digits}f}"


def finite_or_none(value: Any) -> Any:
    """Recursively replace non-finite floats with None (JSON has no -inf)."""
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, dict):
        return {key: finite_or_none(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [finite_or_none(item) for item in value]
    return value
