"""
Background analysis worker.

All DSP work runs on one long-lived daemon thread. The control path talks
to it through a request queue and a response queue carrying the message
dataclasses from ``mastermeter.core.messages``. The DSP backend is created
on the worker thread the first time an InitRequest arrives.
"""

import itertools
import logging
import queue
import threading
import time
from concurrent.futures import Future
from typing import Any, Callable, Dict, Optional

from mastermeter.backends.base import DspBackend
from mastermeter.core.cascade import BpmKeyCascade, create_bpm_key_cascade
from mastermeter.core.messages import (
    TERMINAL_RESPONSES,
    AnalyzeRequest,
    BpmKeyComplete,
    BpmKeyRequest,
    Complete,
    ErrorResponse,
    InitRequest,
    Partial,
    Progress,
    Ready,
    Request,
    Response,
)
from mastermeter.core.pipeline import FeatureExtractionPipeline, ProgressReporter
from mastermeter.utils.errors import AnalysisError, AnalyzerBusyError, InitializationError

BackendFactory = Callable[[], DspBackend]
MessageCallback = Callable[[Response], None]

_SHUTDOWN = object()


def _default_backend_factory() -> DspBackend:
    from mastermeter.backends.essentia_backend import load_essentia_backend
    return load_essentia_backend()


class AnalysisWorker:
    """
    Handle to the background analysis thread.

    The thread starts lazily on first use and lives until ``shutdown()``.
    Initialization is single-flight: concurrent ``ensure_initialized()``
    callers share one Future, success is kept for the lifetime of the
    handle, and failure clears it so the next call retries.

    Only one call may be in flight at a time; a second one raises
    AnalyzerBusyError instead of interleaving responses.
    """

    def __init__(
        self,
        backend_factory: Optional[BackendFactory] = None,
        config: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize worker handle. No thread is started yet.

        Args:
            backend_factory: Creates the DSP backend on the worker thread
                             (defaults to loading Essentia)
            config: Full configuration dict used for the pipeline and cascade
        """
        self.backend_factory = backend_factory or _default_backend_factory
        self.config = config or {}

        self._requests: "queue.Queue[Any]" = queue.Queue()
        self._responses: "queue.Queue[Response]" = queue.Queue()
        self._thread: Optional[threading.Thread] = None
        self._retiring: Optional[threading.Thread] = None
        self._thread_lock = threading.Lock()

        self._init_lock = threading.Lock()
        self._init_future: Optional["Future[str]"] = None
        self._call_lock = threading.Lock()
        self._ids = itertools.count(1)

        # Owned by the worker thread
        self._backend: Optional[DspBackend] = None
        self._pipeline: Optional[FeatureExtractionPipeline] = None
        self._cascade: Optional[BpmKeyCascade] = None

        self.logger = logging.getLogger('worker')

    # Control path

    @property
    def is_ready(self) -> bool:
        """True once initialization has succeeded."""
        future = self._init_future
        return (
            future is not None
            and future.done()
            and not future.cancelled()
            and future.exception() is None
        )

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def next_request_id(self) -> int:
        return next(self._ids)

    def start(self) -> None:
        """Start the worker thread if it is not running."""
        with self._thread_lock:
            if self.is_running:
                return
            if self._retiring is not None:
                # The old thread still owns the shutdown marker on the queue
                self.logger.debug("Waiting for the previous worker thread to exit")
                self._retiring.join()
                self._retiring = None
            self._thread = threading.Thread(
                target=self._run,
                name='mastermeter-worker',
                daemon=True,
            )
            self._thread.start()
            self.logger.debug("Worker thread started")

    def ensure_initialized(self) -> str:
        """
        Initialize the backend once and return its version.

        Returns:
            str: Backend version string

        Raises:
            InitializationError: If the backend failed to start
        """
        with self._init_lock:
            owner = self._init_future is None
            if owner:
                self._init_future = Future()
            future = self._init_future

        if owner:
            self._initialize(future)

        return future.result()

    def _initialize(self, future: "Future[str]") -> None:
        self.start()
        request = InitRequest(request_id=self.next_request_id())
        self.logger.info("Initializing DSP backend")

        try:
            response = self.call(request, blocking=True)
        except Exception as e:
            self._fail_init(future, InitializationError(f"Initialization failed: {e}"))
            return

        if isinstance(response, Ready):
            self.logger.info(f"DSP backend ready (version {response.version})")
            future.set_result(response.version)
        else:
            message = getattr(response, 'message', f"Unexpected response {response!r}")
            self._fail_init(future, InitializationError(message))

    def _fail_init(self, future: "Future[str]", error: InitializationError) -> None:
        self.logger.error(f"DSP backend initialization failed: {error}")
        with self._init_lock:
            if self._init_future is future:
                self._init_future = None
        future.set_exception(error)

    def call(
        self,
        request: Request,
        on_message: Optional[MessageCallback] = None,
        blocking: bool = False,
        timeout: Optional[float] = None,
    ) -> Response:
        """
        Send a request and wait for its terminal response.

        Non-terminal responses (progress, partial) are passed to
        ``on_message`` in emission order. Responses belonging to another
        request id are dropped.

        Args:
            request: Request message
            on_message: Callback for non-terminal responses
            blocking: Wait for a running call instead of raising
            timeout: Give up after this many seconds (the worker keeps going)

        Returns:
            Response: Ready, Complete, BpmKeyComplete or ErrorResponse

        Raises:
            AnalyzerBusyError: Another call is in flight and blocking is False
            AnalysisError: The call timed out
        """
        if not self._call_lock.acquire(blocking=blocking):
            raise AnalyzerBusyError(request_type=request.type)

        try:
            self.start()
            deadline = None if timeout is None else time.monotonic() + timeout
            self._requests.put(request)

            while True:
                response = self._next_response(request, deadline)

                if response.request_id != request.request_id:
                    self.logger.debug(
                        f"Dropping stale {response.type} for request {response.request_id}"
                    )
                    continue

                if isinstance(response, TERMINAL_RESPONSES):
                    return response

                if on_message is not None:
                    on_message(response)
        finally:
            self._call_lock.release()

    def _next_response(self, request: Request, deadline: Optional[float]) -> Response:
        if deadline is None:
            return self._responses.get()
        remaining = deadline - time.monotonic()
        try:
            return self._responses.get(timeout=max(0.0, remaining))
        except queue.Empty:
            raise AnalysisError(
                f"Request {request.request_id} ({request.type}) timed out",
                request_type=request.type,
            )

    def shutdown(self, timeout: Optional[float] = None) -> None:
        """Stop the worker thread. A later call starts and initializes a fresh one."""
        with self._thread_lock:
            thread = self._thread
            if thread is not None and thread.is_alive():
                self._requests.put(_SHUTDOWN)
                thread.join(timeout)
                if thread.is_alive():
                    self.logger.warning(
                        "Worker thread still busy after shutdown; it exits after its current request"
                    )
                    self._retiring = thread
            self._thread = None
        with self._init_lock:
            self._init_future = None
        self.logger.debug("Worker shut down")

    def __enter__(self) -> "AnalysisWorker":
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        self.shutdown()

    # Worker thread

    def _run(self) -> None:
        while True:
            request = self._requests.get()
            if request is _SHUTDOWN:
                break
            self._handle(request)
        self._backend = None
        self._pipeline = None
        self._cascade = None

    def _emit(self, response: Response) -> None:
        self._responses.put(response)

    def _reporter(self, request_id: int) -> ProgressReporter:
        return ProgressReporter(
            lambda state: self._emit(
                Progress(request_id, state.phase, state.percent, state.label)
            )
        )

    def _handle(self, request: Request) -> None:
        try:
            if isinstance(request, InitRequest):
                self._handle_init(request)
            elif isinstance(request, AnalyzeRequest):
                self._handle_analyze(request)
            elif isinstance(request, BpmKeyRequest):
                self._handle_bpm_key(request)
            else:
                self._emit(ErrorResponse(
                    getattr(request, 'request_id', 0),
                    f"Unknown request type: {type(request).__name__}",
                ))
        except Exception as e:
            self.logger.exception(f"Request {request.request_id} ({request.type}) failed")
            self._emit(ErrorResponse(request.request_id, f"Analysis error: {e}"))

    def _handle_init(self, request: InitRequest) -> None:
        if self._backend is None:
            try:
                backend = self.backend_factory()
            except Exception as e:
                self._emit(ErrorResponse(request.request_id, f"Backend initialization error: {e}"))
                return

            analysis = self.config.get('analysis', {})
            self._pipeline = FeatureExtractionPipeline(
                backend,
                silence_threshold=analysis.get('silence_threshold', 0.001),
                true_peak_gate=analysis.get('true_peak_gate', 0.707),
                loudness_hop_size=analysis.get('loudness_hop_size', 0.1),
            )
            self._cascade = create_bpm_key_cascade(backend, self.config)
            self._backend = backend

        self._emit(Ready(request.request_id, str(self._backend.version)))

    def _require_backend(self, request: Request) -> bool:
        if self._backend is None:
            self._emit(ErrorResponse(request.request_id, "Analyzer not initialized"))
            return False
        return True

    def _handle_analyze(self, request: AnalyzeRequest) -> None:
        if not self._require_backend(request):
            return

        left = request.left.samples
        right = request.right.samples
        reporter = self._reporter(request.request_id)

        self._pipeline.run(
            left,
            right,
            request.sample_rate,
            reporter,
            lambda data: self._emit(Partial(request.request_id, data)),
        )

        reporter.report('done', 100, 'Analysis complete')
        self._emit(Complete(request.request_id))

    def _handle_bpm_key(self, request: BpmKeyRequest) -> None:
        if not self._require_backend(request):
            return

        reporter = self._reporter(request.request_id)
        result = self._cascade.run(request.audio.samples, request.sample_rate, reporter)

        reporter.report('done', 100, 'Tempo/key detection complete')
        self._emit(BpmKeyComplete(request.request_id, result))
