"""
Custom exceptions for MasterMeter.

This module defines a hierarchy of exceptions for handling the error
conditions of decoding, background analysis and batch processing.
"""

from typing import Optional, Any


class MasterMeterError(Exception):
    """Base exception for all MasterMeter errors."""

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message


class DecodeError(MasterMeterError):
    """Raised when input bytes cannot be turned into PCM samples."""

    def __init__(self, message: str, file_path: Optional[str] = None):
        super().__init__(message, details={"file_path": file_path} if file_path else None)
        self.file_path = file_path


class UnsupportedFormatError(DecodeError):
    """Raised when the container format is not supported."""

    def __init__(self, message: str, format: Optional[str] = None):
        super().__init__(message)
        self.format = format
        self.details = {"format": format}


class FileTooLargeError(DecodeError):
    """Raised when an audio file exceeds the size limit."""

    def __init__(
        self,
        message: str,
        file_size: Optional[int] = None,
        max_size: Optional[int] = None,
    ):
        super().__init__(message)
        self.file_size = file_size
        self.max_size = max_size
        self.details = {"file_size": file_size, "max_size": max_size}


class InitializationError(MasterMeterError):
    """Raised when the background DSP backend fails to start."""

    def __init__(self, message: str, backend: Optional[str] = None):
        super().__init__(message)
        self.backend = backend
        self.details = {"backend": backend} if backend else None


class AnalysisError(MasterMeterError):
    """Raised when an analysis call fails with an unrecoverable error."""

    def __init__(
        self,
        message: str,
        request_type: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.request_type = request_type
        self.original_error = original_error


class AnalyzerNotInitializedError(AnalysisError):
    """Raised when analyze is called before init has succeeded."""

    def __init__(self, request_type: Optional[str] = None):
        super().__init__("Analyzer not initialized", request_type=request_type)


class AnalyzerBusyError(AnalysisError):
    """Raised when a second call is issued before the first one finished."""

    def __init__(self, request_type: Optional[str] = None):
        super().__init__(
            "Analyzer is busy: wait for the previous call to finish",
            request_type=request_type,
        )


class BufferTransferredError(MasterMeterError):
    """Raised when a sample buffer is used after its ownership moved."""


class BatchError(MasterMeterError):
    """Raised when the batch queue is used incorrectly."""

    def __init__(self, message: str, item_id: Optional[str] = None):
        super().__init__(message)
        self.item_id = item_id
        self.details = {"item_id": item_id} if item_id else None


class ConfigurationError(MasterMeterError):
    """Raised when configuration is invalid or missing."""

    def __init__(self, message: str, config_key: Optional[str] = None):
        super().__init__(message)
        self.config_key = config_key
        self.details = {"config_key": config_key}
