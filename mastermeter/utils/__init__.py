"""
Utility modules for configuration, logging, and error handling.
"""

from mastermeter.utils.errors import (
    MasterMeterError,
    DecodeError,
    UnsupportedFormatError,
    FileTooLargeError,
    InitializationError,
    AnalysisError,
    AnalyzerNotInitializedError,
    AnalyzerBusyError,
    BufferTransferredError,
    BatchError,
    ConfigurationError,
)
from mastermeter.utils.logging import (
    JSONFormatter,
    create_logger_with_context,
    get_logger,
    setup_logging,
)
from mastermeter.utils.config import ConfigManager, get_default_config, load_config

__all__ = [
    "MasterMeterError",
    "DecodeError",
    "UnsupportedFormatError",
    "FileTooLargeError",
    "InitializationError",
    "AnalysisError",
    "AnalyzerNotInitializedError",
    "AnalyzerBusyError",
    "BufferTransferredError",
    "BatchError",
    "ConfigurationError",
    "JSONFormatter",
    "create_logger_with_context",
    "get_logger",
    "setup_logging",
    "ConfigManager",
    "get_default_config",
    "load_config",
]
