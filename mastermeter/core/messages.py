"""
Messages exchanged between the control path and the analysis worker.

Requests travel on the worker's request queue, responses on its response
queue. Every message carries the ``request_id`` of the call it belongs to.
Sample data crosses the boundary as SampleBuffer, whose ownership moves
with the message.
"""

import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

import numpy as np

from mastermeter.core.models import BpmKeyResult
from mastermeter.utils.errors import BufferTransferredError


class SampleBuffer:
    """
    Float32 samples with a single owner.

    ``transfer()`` hands the array to a new SampleBuffer and invalidates
    this one; any later access through the old handle raises
    BufferTransferredError. Callers that need the data again must pass a
    copy (``SampleBuffer.copy_of``).
    """

    def __init__(self, samples: np.ndarray):
        self._samples: Optional[np.ndarray] = samples
        self._lock = threading.Lock()

    @classmethod
    def copy_of(cls, samples: Any) -> "SampleBuffer":
        """Create an owned buffer holding a private float32 copy of ``samples``."""
        return cls(np.array(samples, dtype=np.float32, copy=True))

    @property
    def transferred(self) -> bool:
        return self._samples is None

    @property
    def samples(self) -> np.ndarray:
        if self._samples is None:
            raise BufferTransferredError("Sample buffer was transferred and can no longer be used")
        return self._samples

    def __len__(self) -> int:
        return int(self.samples.shape[0])

    def transfer(self) -> "SampleBuffer":
        """Move the samples into a new buffer and invalidate this handle."""
        with self._lock:
            if self._samples is None:
                raise BufferTransferredError("Sample buffer was already transferred")
            samples, self._samples = self._samples, None
        return SampleBuffer(samples)


# Requests

@dataclass
class InitRequest:
    request_id: int
    type: str = field(default='init', init=False)


@dataclass
class AnalyzeRequest:
    request_id: int
    left: SampleBuffer
    right: SampleBuffer
    sample_rate: int
    type: str = field(default='analyze', init=False)


@dataclass
class BpmKeyRequest:
    request_id: int
    audio: SampleBuffer
    sample_rate: int
    type: str = field(default='analyzeBpmKey', init=False)


Request = Union[InitRequest, AnalyzeRequest, BpmKeyRequest]


# Responses

@dataclass(frozen=True)
class Ready:
    request_id: int
    version: str
    type: str = field(default='ready', init=False)


@dataclass(frozen=True)
class Progress:
    request_id: int
    phase: str
    percent: float
    label: str = ''
    type: str = field(default='progress', init=False)


@dataclass(frozen=True)
class Partial:
    """A fragment of AnalysisResult keyed by group name ('loudness', 'stereo', ...)."""

    request_id: int
    data: Dict[str, Any]
    type: str = field(default='partial', init=False)


@dataclass(frozen=True)
class Complete:
    request_id: int
    type: str = field(default='complete', init=False)


@dataclass(frozen=True)
class BpmKeyComplete:
    request_id: int
    result: BpmKeyResult
    type: str = field(default='bpmKeyComplete', init=False)


@dataclass(frozen=True)
class ErrorResponse:
    request_id: int
    message: str
    type: str = field(default='error', init=False)


Response = Union[Ready, Progress, Partial, Complete, BpmKeyComplete, ErrorResponse]

# Messages that end a call
TERMINAL_RESPONSES = (Ready, Complete, BpmKeyComplete, ErrorResponse)
