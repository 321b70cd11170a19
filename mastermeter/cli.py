"""
MasterMeter - Mastering Analysis CLI

Command-line interface for master loudness, peak, width and silence checks.
It can be invoked as 'mastermeter' from anywhere after installation.

Example usage:
    # Single file analysis with target checks
    mastermeter path/to/master.wav
    mastermeter --output-json results.json path/to/master.wav

    # Tempo and key
    mastermeter --bpm-key path/to/master.wav

    # Compare against a reference master
    mastermeter --reference reference.wav path/to/master.wav

    # Batch processing (up to 20 files)
    mastermeter --batch path/to/directory/
    mastermeter --batch --recursive path/to/directory/
    mastermeter --batch --output-file results.txt a.wav b.wav c.wav
"""

import argparse
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from mastermeter import __version__
from mastermeter.core.analyzer import AudioAnalyzer
from mastermeter.core.checks import (
    compare_results,
    describe_tempo,
    display_key,
    evaluate_master,
    rate_bpm_confidence,
    rate_key_strength,
    round_bpm,
)
from mastermeter.core.decoder import create_audio_decoder
from mastermeter.core.models import AnalysisResult, BpmKeyResult, ProgressState, format_db
from mastermeter.core.worker import AnalysisWorker, BackendFactory
from mastermeter.utils.config import load_config
from mastermeter.utils.errors import MasterMeterError
from mastermeter.utils.logging import setup_logging


def print_progress(state: ProgressState) -> None:
    """Print one progress update."""
    label = f" {state.label}" if state.label else ""
    print(f"  [{state.percent:5.1f}%]{label}")


def print_single_result(
    file_path: Path,
    result: AnalysisResult,
    targets: Optional[Dict[str, Any]] = None,
) -> None:
    """Print analysis results and target checks for one file."""
    print("\n" + "=" * 60)
    print("MASTERMETER ANALYSIS RESULTS")
    print("=" * 60)
    print(f"File: {file_path.name}")
    info = result.file_info
    print(f"Format: {info.format}  {info.sample_rate} Hz  {info.channels} ch  {info.duration:.2f}s")
    print("-" * 60)
    print(result.get_summary())
    print("-" * 60)

    comments = evaluate_master(result, targets)
    if comments:
        print("\nChecks:")
        for comment in comments:
            print(f"  [{comment.level.value:>7}] {comment.metric}: {comment.message}")


def print_bpm_key_result(file_path: Path, result: BpmKeyResult) -> None:
    """Print tempo and key for one file."""
    print("\n" + "=" * 60)
    print("MASTERMETER TEMPO / KEY")
    print("=" * 60)
    print(f"File: {file_path.name}")
    print("-" * 60)

    if result.has_tempo:
        print(f"BPM: {round_bpm(result.bpm)}  ({describe_tempo(result.bpm)})")
        print(f"  Confidence: {result.bpm_confidence:.2f} ({rate_bpm_confidence(result.bpm_confidence).value})")
    else:
        print("BPM: ---")

    print(f"Key: {display_key(result)}")
    if result.has_key:
        print(f"  Strength: {result.key_strength:.2f} ({rate_key_strength(result.key_strength).value})")


def print_comparison(reference: AnalysisResult, result: AnalysisResult) -> None:
    """Print the differences of a result relative to a reference."""
    units = {
        'integrated_lufs': 'LU',
        'true_peak_dbtp': 'dB',
        'loudness_range': 'LU',
        'width_percent': '%',
    }
    print(f"\nCompared to reference {reference.file_info.name}:")
    for metric, diff in compare_results(reference, result).items():
        text = "---" if diff is None else f"{diff:+.1f} {units[metric]}"
        print(f"  {metric}: {text}")


def _analyze_file(analyzer: AudioAnalyzer, audio_file: Path, config: dict) -> AnalysisResult:
    decoder = create_audio_decoder(config.get('audio', {}))
    buffer = decoder.decode(audio_file)
    file_info = decoder.describe(audio_file, buffer)
    return analyzer.analyze(
        buffer.mono,
        buffer.sample_rate,
        left=buffer.left,
        right=buffer.right,
        file_info=file_info,
    )


def analyze_single_file(
    audio_file: Path,
    config: dict,
    output_json: Optional[Path] = None,
    output_txt: Optional[Path] = None,
    reference: Optional[Path] = None,
    bpm_key: bool = False,
    verbose: bool = False,
    backend_factory: Optional[BackendFactory] = None,
) -> int:
    """
    Analyze a single audio file.

    Args:
        audio_file: Path to audio file
        config: Configuration dictionary
        output_json: Optional path for JSON output
        output_txt: Optional path for text output
        reference: Optional reference master to compare against
        bpm_key: Detect tempo and key instead of measuring loudness
        verbose: Enable verbose error output
        backend_factory: DSP backend factory (Essentia if None)

    Returns:
        Exit code (0 for success, 1 for error)
    """
    if not audio_file.exists():
        print(f"Error: Audio file not found: {audio_file}")
        return 1

    print(f"Analyzing: {audio_file}")
    worker = AnalysisWorker(backend_factory=backend_factory, config=config)
    analyzer = AudioAnalyzer(worker, on_progress=print_progress)

    try:
        version = analyzer.init()
        if verbose:
            print(f"DSP backend version: {version}")

        if bpm_key:
            decoder = create_audio_decoder(config.get('audio', {}))
            buffer = decoder.decode(audio_file)
            bpm_key_result = analyzer.analyze_bpm_key(buffer.mono, buffer.sample_rate)
            print_bpm_key_result(audio_file, bpm_key_result)
            return 0

        result = _analyze_file(analyzer, audio_file, config)
        targets = config.get('targets')
        print_single_result(audio_file, result, targets)

        if reference:
            print(f"\nAnalyzing reference: {reference}")
            reference_result = _analyze_file(analyzer, reference, config)
            print_comparison(reference_result, result)

        if output_json:
            from mastermeter.core.result_writer import JSONResultWriter
            JSONResultWriter(targets=targets).write({audio_file: result}, output_json)
            print(f"\nJSON results saved to: {output_json}")

        if output_txt:
            from mastermeter.core.result_writer import TextResultWriter
            TextResultWriter(targets=targets).write({audio_file: result}, output_txt)
            print(f"Text results saved to: {output_txt}")

        return 0

    except MasterMeterError as e:
        print(f"Error during analysis: {e}")
        if verbose:
            import traceback
            traceback.print_exc()
        return 1

    finally:
        worker.shutdown()


def analyze_batch(
    inputs: List[Path],
    config: dict,
    recursive: bool = False,
    output_txt: Optional[Path] = None,
    output_json: Optional[Path] = None,
    verbose: bool = False,
    backend_factory: Optional[BackendFactory] = None,
) -> int:
    """
    Analyze multiple audio files in batch mode.

    Args:
        inputs: List of paths (files or directories)
        config: Configuration dictionary
        recursive: Search directories recursively
        output_txt: Optional path for text output
        output_json: Optional path for JSON output
        verbose: Enable verbose error output
        backend_factory: DSP backend factory (Essentia if None)

    Returns:
        Exit code (0 for success, 1 for errors)
    """
    from mastermeter.core.batch_processor import BatchProcessor, collect_audio_files
    from mastermeter.core.result_writer import JSONResultWriter, TextResultWriter

    files = collect_audio_files(inputs, recursive=recursive)
    if not files:
        print("No audio files found to process")
        return 1

    worker = AnalysisWorker(backend_factory=backend_factory, config=config)

    def progress_callback(current: int, total: int, file_path: Path) -> None:
        print(f"[{current}/{total}] Processing: {file_path.name}")

    try:
        processor = BatchProcessor(
            analyzer=AudioAnalyzer(worker),
            decoder=create_audio_decoder(config.get('audio', {})),
            max_files=config.get('batch', {}).get('max_files', 20),
            progress_callback=progress_callback,
        )
        added = processor.add_files(files)
        if len(added) < len(files):
            print(f"Queue holds {processor.max_files} files; skipped {len(files) - len(added)}")

        batch_result = processor.start()

        print("\n" + "=" * 60)
        print("BATCH PROCESSING COMPLETE")
        print("=" * 60)
        print(f"Total Files: {batch_result.total_files}")
        print(f"Successful: {batch_result.success_count}")
        print(f"Failed: {batch_result.failure_count}")
        print(f"Success Rate: {batch_result.success_rate:.1f}%")
        print(f"Total Time: {batch_result.total_time:.2f}s")

        targets = config.get('targets')
        for path, result in batch_result.successful_files():
            lo = result.loudness
            lufs = format_db(lo.integrated_lufs) if lo else '---'
            peak = format_db(lo.true_peak_dbtp) if lo else '---'
            print(f"  {path.name}: {lufs} LUFS, {peak} dBTP")

        if batch_result.failed:
            print("\nFailed Files:")
            for path, error in batch_result.failed_files():
                print(f"  {path.name}: {error}")

        if output_txt:
            TextResultWriter(targets=targets).write(batch_result.successful_files(), output_txt)
            print(f"\nText results saved to: {output_txt}")

        if output_json:
            JSONResultWriter(targets=targets).write(batch_result.successful_files(), output_json)
            print(f"JSON results saved to: {output_json}")

        return 0 if batch_result.failure_count == 0 else 1

    except MasterMeterError as e:
        print(f"Error during batch processing: {e}")
        if verbose:
            import traceback
            traceback.print_exc()
        return 1

    finally:
        worker.shutdown()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mastermeter",
        description="Measure loudness, true peak, stereo width, silence, tempo and key of masters",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Single file:
    mastermeter master.wav
    mastermeter --output-json results.json master.wav
    mastermeter --reference reference.wav master.wav

  Tempo and key:
    mastermeter --bpm-key master.wav

  Batch processing:
    mastermeter --batch masters/
    mastermeter --batch --recursive masters/
    mastermeter --batch --output-file results.txt a.wav b.wav c.wav
        """
    )
    parser.add_argument(
        "inputs",
        type=Path,
        nargs="+",
        help="Audio file(s) or directory to analyze"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file"
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose output"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"MasterMeter {__version__}"
    )
    parser.add_argument(
        "--batch",
        "-b",
        action="store_true",
        help="Enable batch processing mode for multiple files or directories"
    )
    parser.add_argument(
        "--recursive",
        "-r",
        action="store_true",
        help="Search directories recursively (only with --batch)"
    )
    parser.add_argument(
        "--bpm-key",
        action="store_true",
        help="Detect tempo and key instead of measuring loudness"
    )
    parser.add_argument(
        "--reference",
        type=Path,
        default=None,
        help="Reference master to compare against (single file mode)"
    )
    parser.add_argument(
        "--output-file",
        "-o",
        type=Path,
        default=None,
        help="Path to save text results file (.txt)"
    )
    parser.add_argument(
        "--output-json",
        type=Path,
        default=None,
        help="Path to save JSON results file"
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for MasterMeter analysis."""
    parser = build_parser()
    args = parser.parse_args(argv)

    batch_mode = args.batch or len(args.inputs) > 1 or args.inputs[0].is_dir()
    if batch_mode and (args.bpm_key or args.reference):
        parser.error("--bpm-key and --reference work on a single file, not in batch mode")

    config_path = str(args.config) if args.config else None
    try:
        config = load_config(config_path)
    except MasterMeterError as e:
        print(f"Error: {e}")
        return 1

    log_config = config.get("logging", {})
    log_level = "DEBUG" if args.verbose else log_config.get("level", "INFO")
    setup_logging(
        level=log_level,
        log_format=log_config.get("format", "text"),
        log_file=log_config.get("file"),
        colored=True,
        console_enabled=True,
    )

    if batch_mode:
        return analyze_batch(
            args.inputs,
            config,
            recursive=args.recursive,
            output_txt=args.output_file,
            output_json=args.output_json,
            verbose=args.verbose,
        )

    return analyze_single_file(
        args.inputs[0],
        config,
        output_json=args.output_json,
        output_txt=args.output_file,
        reference=args.reference,
        bpm_key=args.bpm_key,
        verbose=args.verbose,
    )


if __name__ == "__main__":
    sys.exit(main())
