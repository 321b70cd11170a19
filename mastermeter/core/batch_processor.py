"""
Batch processor for analyzing multiple audio files.

Items are processed one after another through decode -> analyze. A
failure is recorded on its item and the batch moves on. ``clear()`` stops
the batch before the next item starts; the item in flight always finishes.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Tuple, Union

from mastermeter.core.analyzer import AudioAnalyzer
from mastermeter.core.decoder import SUPPORTED_SUFFIXES, AudioDecoder
from mastermeter.core.models import AnalysisResult, BatchItem, BatchStatus
from mastermeter.utils.errors import BatchError
from mastermeter.utils.logging import create_logger_with_context

MAX_FILES = 20


@dataclass
class BatchResult:
    """
    Result of a batch run.

    Outcomes are keyed by item id, so a file queued twice counts twice;
    ``paths`` maps each id back to its file.
    """
    successful: Dict[str, AnalysisResult] = field(default_factory=dict)
    failed: Dict[str, str] = field(default_factory=dict)
    paths: Dict[str, Path] = field(default_factory=dict)
    total_files: int = 0
    total_time: float = 0.0
    cancelled: bool = False

    @property
    def success_count(self) -> int:
        """Number of successfully processed files."""
        return len(self.successful)

    @property
    def failure_count(self) -> int:
        """Number of failed files."""
        return len(self.failed)

    @property
    def success_rate(self) -> float:
        """Success rate as percentage."""
        if self.total_files == 0:
            return 0.0
        return (self.success_count / self.total_files) * 100

    def successful_files(self) -> List[Tuple[Path, AnalysisResult]]:
        """(path, result) pairs in processing order."""
        return [(self.paths[item_id], result) for item_id, result in self.successful.items()]

    def failed_files(self) -> List[Tuple[Path, str]]:
        """(path, error message) pairs in processing order."""
        return [(self.paths[item_id], error) for item_id, error in self.failed.items()]


class BatchProcessor:
    """
    Sequential batch queue over a shared analyzer.

    The queue holds at most ``max_files`` items; further additions are
    dropped. Items are replaced (never mutated) on each status change and
    ``on_item_update`` sees every new version.
    """

    def __init__(
        self,
        analyzer: AudioAnalyzer,
        decoder: Optional[AudioDecoder] = None,
        max_files: int = MAX_FILES,
        progress_callback: Optional[Callable[[int, int, Path], None]] = None,
        on_item_update: Optional[Callable[[BatchItem], None]] = None,
    ):
        """
        Initialize batch processor.

        Args:
            analyzer: Analyzer used for every item (dependency injection)
            decoder: Audio decoder (default settings if None)
            max_files: Queue capacity
            progress_callback: Optional callback(current, total, file_path) when an item starts
            on_item_update: Optional callback receiving each updated item
        """
        self.analyzer = analyzer
        self.decoder = decoder or AudioDecoder()
        self.max_files = max_files
        self.progress_callback = progress_callback
        self.on_item_update = on_item_update

        self._items: List[BatchItem] = []
        self._lock = threading.Lock()
        self._abort = threading.Event()
        self._running = False
        self.logger = logging.getLogger("batch_processor")

    @property
    def items(self) -> Tuple[BatchItem, ...]:
        """Current queue snapshot, in insertion order."""
        with self._lock:
            return tuple(self._items)

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def done_count(self) -> int:
        return sum(1 for item in self.items if item.status is BatchStatus.DONE)

    @property
    def error_count(self) -> int:
        return sum(1 for item in self.items if item.status is BatchStatus.ERROR)

    def add_files(self, paths: Iterable[Union[Path, str]]) -> List[BatchItem]:
        """
        Queue files up to the capacity; the rest are dropped.

        Returns:
            List[BatchItem]: The items actually added
        """
        with self._lock:
            remaining = max(0, self.max_files - len(self._items))
            paths = list(paths)
            added = [BatchItem.create(Path(path)) for path in paths[:remaining]]
            self._items.extend(added)

        dropped = len(paths) - len(added)
        if dropped:
            self.logger.warning(f"Queue full ({self.max_files} files), dropped {dropped} file(s)")
        self.logger.info(f"Queued {len(added)} file(s) (queue size: {len(self.items)})")
        return added

    def remove_item(self, item_id: str) -> bool:
        """
        Remove an item from the queue.

        Returns:
            True if the item was found and removed

        Raises:
            BatchError: If the batch is running
        """
        if self._running:
            raise BatchError("Cannot remove items while the batch is running", item_id=item_id)

        with self._lock:
            before = len(self._items)
            self._items = [item for item in self._items if item.id != item_id]
            removed = len(self._items) < before

        if removed:
            self.logger.info(f"Removed from queue: {item_id}")
        return removed

    def clear(self) -> None:
        """Empty the queue and stop a running batch before its next item."""
        self._abort.set()
        with self._lock:
            count = len(self._items)
            self._items = []
        self.logger.info(f"Cleared queue ({count} files removed)")

    def start(self) -> BatchResult:
        """
        Process every pending item in queue order.

        Returns:
            BatchResult: Outcome of the items processed in this run

        Raises:
            BatchError: If the batch is already running
            InitializationError: If the analyzer cannot be initialized
        """
        with self._lock:
            if self._running:
                raise BatchError("Batch is already running")
            self._running = True
        self._abort.clear()

        start_time = time.time()
        result = BatchResult()

        try:
            version = self.analyzer.init()
            self.logger.debug(f"Analyzer ready (backend {version})")

            snapshot = [item for item in self.items if item.status is BatchStatus.PENDING]
            result.total_files = len(snapshot)
            self.logger.info(f"Processing {len(snapshot)} audio files")

            for index, item in enumerate(snapshot, start=1):
                if self._abort.is_set():
                    result.cancelled = True
                    self.logger.info("Batch cancelled")
                    break

                self._notify(self.progress_callback, index, len(snapshot), item.path)
                self._process_item(item, result)
        finally:
            self._running = False

        result.total_time = time.time() - start_time
        self.logger.info(
            f"Batch complete: {result.success_count}/{result.total_files} succeeded "
            f"in {result.total_time:.2f}s"
        )
        return result

    def _process_item(self, item: BatchItem, result: BatchResult) -> None:
        logger = create_logger_with_context("batch_processor", {"item_id": item.id})
        result.paths[item.id] = item.path

        try:
            self._advance(item.id, BatchStatus.DECODING)
            logger.debug(f"Decoding {item.path}")
            buffer = self.decoder.decode(item.path)
            file_info = self.decoder.describe(item.path, buffer)

            self._advance(item.id, BatchStatus.ANALYZING, file_info=file_info)
            logger.debug("Analyzing")
            analysis = self.analyzer.analyze(
                buffer.mono,
                buffer.sample_rate,
                left=buffer.left,
                right=buffer.right,
                file_info=file_info,
            )

        except Exception as e:
            error_msg = str(e) or type(e).__name__
            self._advance(item.id, BatchStatus.ERROR, error=error_msg)
            result.failed[item.id] = error_msg
            logger.error(f"Failed to process {item.path}: {error_msg}")
            return

        self._advance(item.id, BatchStatus.DONE, result=analysis)
        result.successful[item.id] = analysis
        logger.info(f"Done: {analysis.get_summary()}")

    def _advance(self, item_id: str, status: BatchStatus, **changes) -> Optional[BatchItem]:
        """Replace the stored item with its next state; None if it was cleared or already finished."""
        with self._lock:
            for index, current in enumerate(self._items):
                if current.id == item_id:
                    if current.status.is_terminal:
                        return None
                    updated = current.advance(status, **changes)
                    self._items[index] = updated
                    break
            else:
                return None

        self._notify(self.on_item_update, updated)
        return updated

    def _notify(self, callback: Optional[Callable[..., None]], *args) -> None:
        """Run an observer callback; its failures are logged and never reach the batch."""
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            self.logger.exception(f"Batch callback {getattr(callback, '__name__', callback)!r} failed")


def collect_audio_files(
    inputs: Union[Path, Iterable[Path]],
    recursive: bool = False,
) -> List[Path]:
    """
    Collect audio files from files and directories.

    Args:
        inputs: Single path or several paths (files or directories)
        recursive: If True, search directories recursively

    Returns:
        List[Path]: Sorted, de-duplicated audio file paths
    """
    logger = logging.getLogger("batch_processor")
    if isinstance(inputs, (str, Path)):
        inputs = [Path(inputs)]

    files = []
    for path in inputs:
        path = Path(path)
        if path.is_file():
            if path.suffix.lower() in SUPPORTED_SUFFIXES:
                files.append(path)
            else:
                logger.warning(f"Skipping non-audio file: {path}")
        elif path.is_dir():
            pattern = "**/*" if recursive else "*"
            files.extend(
                p for p in path.glob(pattern)
                if p.is_file() and p.suffix.lower() in SUPPORTED_SUFFIXES
            )
        else:
            logger.warning(f"Path not found: {path}")

    return sorted(set(files))
