"""
Result writers for analysis reports.

Strategy pattern: each writer renders file path / AnalysisResult pairs
in one output format. Results may be given as a mapping or as a list of
pairs; the list form keeps a file analyzed twice as two entries.
"""

import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Optional, TextIO, Tuple, Union

from mastermeter.core.checks import evaluate_master, worst_level
from mastermeter.core.models import AnalysisResult, finite_or_none, format_db

Results = Union[Mapping[Path, AnalysisResult], Iterable[Tuple[Path, AnalysisResult]]]


def result_entries(results: Results) -> List[Tuple[Path, AnalysisResult]]:
    """Normalize results to (path, result) pairs in their given order."""
    pairs = results.items() if isinstance(results, Mapping) else results
    return [(Path(path), result) for path, result in pairs]


class ResultWriter(ABC):
    """Abstract base class for result writers."""

    @abstractmethod
    def write(self, results: Results, output_path: Path) -> None:
        """Write results to the specified path."""


class TextResultWriter(ResultWriter):
    """Writes a human-readable report with target checks."""

    def __init__(
        self,
        include_timestamp: bool = True,
        targets: Optional[Mapping[str, Any]] = None,
    ):
        """
        Initialize text writer.

        Args:
            include_timestamp: Whether to include timestamp in output
            targets: Master targets for the checks (defaults if None)
        """
        self.include_timestamp = include_timestamp
        self.targets = targets
        self.logger = logging.getLogger("result_writer.text")

    def write(self, results: Results, output_path: Path) -> None:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with open(output_path, 'w', encoding='utf-8') as f:
            self.render(results, f)

        self.logger.info(f"Results written to: {output_path}")

    def render(self, results: Results, f: TextIO) -> None:
        """Render the report to an open text stream."""
        entries = result_entries(results)
        f.write("=" * 70 + "\n")
        f.write("MASTERMETER ANALYSIS RESULTS\n")
        f.write("=" * 70 + "\n")

        if self.include_timestamp:
            f.write(f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}\n")

        f.write(f"Total Files Analyzed: {len(entries)}\n")
        f.write("=" * 70 + "\n\n")

        for file_path, result in entries:
            self._write_single_result(f, file_path, result)

        f.write("=" * 70 + "\n")
        f.write("END OF REPORT\n")
        f.write("=" * 70 + "\n")

    def _write_single_result(self, f: TextIO, file_path: Path, result: AnalysisResult) -> None:
        f.write("-" * 70 + "\n")
        f.write(f"FILE: {file_path.name}\n")
        f.write(f"PATH: {file_path}\n")
        f.write("-" * 70 + "\n")

        info = result.file_info
        if info.name:
            minutes, seconds = divmod(info.duration, 60)
            f.write(f"Duration: {int(minutes)}:{seconds:06.3f}\n")
            f.write(f"Sample Rate: {info.sample_rate} Hz\n")
            f.write(f"Channels: {info.channels}\n")
            f.write(f"Format: {info.format}\n")

        if result.loudness:
            lo = result.loudness
            f.write("\nLoudness:\n")
            f.write(f"  Integrated: {format_db(lo.integrated_lufs)} LUFS\n")
            f.write(f"  True Peak: {format_db(lo.true_peak_dbtp)} dBTP\n")
            f.write(f"  Loudness Range: {lo.loudness_range:.1f} LU\n")

        if result.stereo:
            f.write("\nStereo:\n")
            f.write(f"  Width: {result.stereo.width * 100:.1f}%\n")

        if result.quality:
            q = result.quality
            f.write("\nEdges:\n")
            f.write(f"  Start Sample: {q.start_amplitude:.6f} ({'zero' if q.start_is_zero else 'not zero'})\n")
            f.write(f"  End Sample: {q.end_amplitude:.6f} ({'zero' if q.end_is_zero else 'not zero'})\n")
            f.write(f"  Head Silence: {q.head_silence:.2f}s\n")
            f.write(f"  Tail Silence: {q.tail_silence:.2f}s\n")

        comments = evaluate_master(result, self.targets)
        if comments:
            f.write(f"\nChecks ({worst_level(comments).value}):\n")
            for comment in comments:
                f.write(f"  [{comment.level.value:>7}] {comment.metric}: {comment.message}\n")

        f.write("\n")


class JSONResultWriter(ResultWriter):
    """Writes analysis results to a JSON file; non-finite numbers become null."""

    def __init__(self, indent: int = 2, targets: Optional[Mapping[str, Any]] = None):
        self.indent = indent
        self.targets = targets
        self.logger = logging.getLogger("result_writer.json")

    def write(self, results: Results, output_path: Path) -> None:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with open(output_path, 'w', encoding='utf-8') as f:
            f.write(self.dumps(results))

        self.logger.info(f"Results written to: {output_path}")

    def dumps(self, results: Results) -> str:
        entries = result_entries(results)
        output_data = {
            "generated": datetime.now().isoformat(),
            "total_files": len(entries),
            "results": [
                {
                    "path": str(path),
                    **result.to_dict(),
                    "checks": [c.to_dict() for c in evaluate_master(result, self.targets)],
                }
                for path, result in entries
            ],
        }
        return json.dumps(finite_or_none(output_data), indent=self.indent, default=str)


def create_result_writer(format: str = "text", **kwargs) -> ResultWriter:
    """
    Factory function to create appropriate result writer.

    Args:
        format: Output format ("text" or "json")
        **kwargs: Additional arguments for the writer

    Returns:
        Appropriate ResultWriter instance
    """
    writers = {
        "text": TextResultWriter,
        "txt": TextResultWriter,
        "json": JSONResultWriter,
    }

    writer_class = writers.get(format.lower())
    if writer_class is None:
        raise ValueError(f"Unknown format: {format}. Supported: {list(writers.keys())}")

    return writer_class(**kwargs)
