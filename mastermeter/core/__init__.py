"""
Core module containing data models, decoding, the analysis worker and
batch processing.

Uses lazy imports for modules with heavy dependencies (librosa, soundfile).
"""

# Models are lightweight - import directly
from mastermeter.core.models import (
    AudioBuffer,
    FileInfo,
    LoudnessResult,
    StereoResult,
    QualityResult,
    BpmKeyResult,
    AnalysisResult,
    BatchStatus,
    BatchItem,
    ProgressState,
)

__all__ = [
    # Models (always available)
    "AudioBuffer",
    "FileInfo",
    "LoudnessResult",
    "StereoResult",
    "QualityResult",
    "BpmKeyResult",
    "AnalysisResult",
    "BatchStatus",
    "BatchItem",
    "ProgressState",
    # Lazy loaded
    "AudioDecoder",
    "create_audio_decoder",
    "sniff_sample_rate",
    "get_original_sample_rate",
    "AnalysisWorker",
    "AudioAnalyzer",
    "create_audio_analyzer",
    "BpmKeyCascade",
    "FallbackCascade",
    "FeatureExtractionPipeline",
    "BatchProcessor",
    "BatchResult",
    "ResultWriter",
    "TextResultWriter",
    "JSONResultWriter",
    "create_result_writer",
]


def __getattr__(name: str):
    """Lazy load modules with heavy dependencies."""
    if name in ("AudioDecoder", "create_audio_decoder"):
        from mastermeter.core.decoder import AudioDecoder, create_audio_decoder
        return AudioDecoder if name == "AudioDecoder" else create_audio_decoder
    elif name in ("sniff_sample_rate", "get_original_sample_rate"):
        from mastermeter.core.sample_rate import get_original_sample_rate, sniff_sample_rate
        return sniff_sample_rate if name == "sniff_sample_rate" else get_original_sample_rate
    elif name == "AnalysisWorker":
        from mastermeter.core.worker import AnalysisWorker
        return AnalysisWorker
    elif name in ("AudioAnalyzer", "create_audio_analyzer"):
        from mastermeter.core.analyzer import AudioAnalyzer, create_audio_analyzer
        return AudioAnalyzer if name == "AudioAnalyzer" else create_audio_analyzer
    elif name in ("BpmKeyCascade", "FallbackCascade"):
        from mastermeter.core.cascade import BpmKeyCascade, FallbackCascade
        return BpmKeyCascade if name == "BpmKeyCascade" else FallbackCascade
    elif name == "FeatureExtractionPipeline":
        from mastermeter.core.pipeline import FeatureExtractionPipeline
        return FeatureExtractionPipeline
    elif name in ("BatchProcessor", "BatchResult"):
        from mastermeter.core.batch_processor import BatchProcessor, BatchResult
        return BatchProcessor if name == "BatchProcessor" else BatchResult
    elif name in ("ResultWriter", "TextResultWriter", "JSONResultWriter", "create_result_writer"):
        from mastermeter.core import result_writer
        return getattr(result_writer, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
