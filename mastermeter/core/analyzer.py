"""
Control-path facade over the analysis worker.

AudioAnalyzer sends requests to an injected AnalysisWorker, forwards
progress and partial fragments to callbacks, and assembles the final
AnalysisResult from the fragments.
"""

import logging
import threading
from typing import Any, Callable, Dict, Mapping, Optional

import numpy as np

from mastermeter.core.messages import (
    AnalyzeRequest,
    BpmKeyComplete,
    BpmKeyRequest,
    Complete,
    ErrorResponse,
    Partial,
    Progress,
    Response,
    SampleBuffer,
)
from mastermeter.core.models import AnalysisResult, BpmKeyResult, FileInfo, ProgressState
from mastermeter.core.worker import AnalysisWorker, BackendFactory
from mastermeter.utils.errors import AnalysisError, AnalyzerNotInitializedError

ProgressCallback = Callable[[ProgressState], None]
PartialCallback = Callable[[Dict[str, Any]], None]


class AnalysisResultAccumulator:
    """
    Builds one AnalysisResult from streamed fragments.

    Each merge replaces the held result with a new immutable one, so a
    reader always sees a consistent snapshot.
    """

    def __init__(self, file_info: Optional[FileInfo] = None):
        self._result = AnalysisResult(file_info=file_info or FileInfo.empty())
        self._lock = threading.Lock()

    @property
    def result(self) -> AnalysisResult:
        return self._result

    def merge(self, fragment: Mapping[str, Any]) -> AnalysisResult:
        with self._lock:
            self._result = self._result.merge(fragment)
            return self._result


class AudioAnalyzer:
    """
    Runs analyses on the background worker.

    Several analyzers may share one worker; the worker still runs one call
    at a time.
    """

    def __init__(
        self,
        worker: AnalysisWorker,
        on_progress: Optional[ProgressCallback] = None,
        on_partial: Optional[PartialCallback] = None,
    ):
        """
        Initialize analyzer.

        Args:
            worker: Shared background worker handle
            on_progress: Called with every ProgressState of a call
            on_partial: Called with every partial fragment of ``analyze``
        """
        self.worker = worker
        self.on_progress = on_progress
        self.on_partial = on_partial
        self.logger = logging.getLogger('analyzer')

    def init(self) -> str:
        """
        Initialize the DSP backend (once per worker).

        Returns:
            str: Backend version

        Raises:
            InitializationError: If the backend failed to start
        """
        return self.worker.ensure_initialized()

    @property
    def is_ready(self) -> bool:
        return self.worker.is_ready

    def analyze(
        self,
        audio: np.ndarray,
        sample_rate: int,
        left: Optional[np.ndarray] = None,
        right: Optional[np.ndarray] = None,
        file_info: Optional[FileInfo] = None,
        timeout: Optional[float] = None,
    ) -> AnalysisResult:
        """
        Measure loudness, true peak, stereo width and edge silence.

        Args:
            audio: Mono (or left) samples; used for any channel not given
            sample_rate: Sample rate in Hz
            left: Left channel samples
            right: Right channel samples
            file_info: Metadata to attach to the result
            timeout: Optional limit in seconds

        Returns:
            AnalysisResult: All fragments merged

        Raises:
            AnalyzerNotInitializedError: ``init`` has not succeeded
            AnalyzerBusyError: Another call is in flight on the worker
            AnalysisError: The worker reported an error
        """
        if not self.worker.is_ready:
            raise AnalyzerNotInitializedError(request_type='analyze')

        # Caller arrays are copied; the copies move to the worker
        left_buffer = SampleBuffer.copy_of(left if left is not None else audio)
        right_buffer = SampleBuffer.copy_of(right if right is not None else audio)
        request = AnalyzeRequest(
            request_id=self.worker.next_request_id(),
            left=left_buffer.transfer(),
            right=right_buffer.transfer(),
            sample_rate=int(sample_rate),
        )

        accumulator = AnalysisResultAccumulator(file_info)

        def on_message(message: Response) -> None:
            if isinstance(message, Progress):
                self._forward_progress(message)
            elif isinstance(message, Partial):
                accumulator.merge(message.data)
                if self.on_partial is not None:
                    self.on_partial(message.data)

        response = self.worker.call(request, on_message, timeout=timeout)

        if isinstance(response, ErrorResponse):
            raise AnalysisError(response.message, request_type=request.type)
        if not isinstance(response, Complete):
            raise AnalysisError(f"Unexpected response: {response.type}", request_type=request.type)

        return accumulator.result

    def analyze_bpm_key(
        self,
        audio: np.ndarray,
        sample_rate: int,
        timeout: Optional[float] = None,
    ) -> BpmKeyResult:
        """
        Detect tempo and key of a mono signal.

        Undetermined tempo or key is not an error; those fields are zero/empty.

        Raises:
            AnalyzerNotInitializedError: ``init`` has not succeeded
            AnalyzerBusyError: Another call is in flight on the worker
            AnalysisError: The worker reported an error
        """
        if not self.worker.is_ready:
            raise AnalyzerNotInitializedError(request_type='analyzeBpmKey')

        buffer = SampleBuffer.copy_of(audio)
        request = BpmKeyRequest(
            request_id=self.worker.next_request_id(),
            audio=buffer.transfer(),
            sample_rate=int(sample_rate),
        )

        def on_message(message: Response) -> None:
            if isinstance(message, Progress):
                self._forward_progress(message)

        response = self.worker.call(request, on_message, timeout=timeout)

        if isinstance(response, ErrorResponse):
            raise AnalysisError(response.message, request_type=request.type)
        if not isinstance(response, BpmKeyComplete):
            raise AnalysisError(f"Unexpected response: {response.type}", request_type=request.type)

        return response.result

    def _forward_progress(self, message: Progress) -> None:
        if self.on_progress is not None:
            self.on_progress(ProgressState(message.phase, message.percent, message.label))


def create_audio_analyzer(
    config: Optional[Dict[str, Any]] = None,
    backend_factory: Optional[BackendFactory] = None,
    worker: Optional[AnalysisWorker] = None,
    on_progress: Optional[ProgressCallback] = None,
    on_partial: Optional[PartialCallback] = None,
) -> AudioAnalyzer:
    """
    Factory function to create AudioAnalyzer.

    Args:
        config: Optional configuration dict
        backend_factory: DSP backend factory (defaults to Essentia)
        worker: Existing worker to share; a new one is created if None
        on_progress: Progress callback
        on_partial: Partial fragment callback

    Returns:
        AudioAnalyzer: Analyzer bound to the worker
    """
    if worker is None:
        worker = AnalysisWorker(backend_factory=backend_factory, config=config)
    return AudioAnalyzer(worker, on_progress=on_progress, on_partial=on_partial)
