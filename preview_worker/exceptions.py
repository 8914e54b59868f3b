"""
Exception classes for the document preview worker.

Every failure a conversion job can hit maps onto one of these, so the
status record always carries a readable message and the logs carry the
structured details.
"""

from typing import Any


# Common error types for consistency
class ErrorTypes:
    """Common error type constants."""

    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    DOWNLOAD_ERROR = "DOWNLOAD_ERROR"
    LEGACY_CONVERSION_ERROR = "LEGACY_CONVERSION_ERROR"
    RENDER_ERROR = "RENDER_ERROR"
    UPLOAD_ERROR = "UPLOAD_ERROR"
    STATUS_ERROR = "STATUS_ERROR"
    TIMEOUT_ERROR = "TIMEOUT_ERROR"
    FILE_NOT_FOUND = "FILE_NOT_FOUND"
    EXECUTABLE_NOT_FOUND = "EXECUTABLE_NOT_FOUND"


class PreviewWorkerError(Exception):
    """Base exception for all worker errors."""

    def __init__(self, message: str, error_type: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.error_type = error_type
        self.details = details or {}


class ConfigurationError(PreviewWorkerError):
    """Raised when required configuration is missing or invalid."""

    def __init__(self, message: str, missing: list[str] | None = None):
        super().__init__(message, ErrorTypes.CONFIGURATION_ERROR, {"missing": missing or []})


class DownloadFailure(PreviewWorkerError):
    """Raised when the source document cannot be fetched from storage."""

    def __init__(self, message: str, storage_key: str):
        super().__init__(message, ErrorTypes.DOWNLOAD_ERROR, {"storage_key": storage_key})


class LegacyConversionFailure(PreviewWorkerError):
    """Raised when the office suite fails to convert a legacy document."""

    def __init__(
        self,
        message: str,
        error_type: str = ErrorTypes.LEGACY_CONVERSION_ERROR,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, error_type, details)


class RenderStepFailure(PreviewWorkerError):
    """Raised when a call to the rendering service fails."""

    def __init__(self, message: str, step: str, status_code: int | None = None, body: str | None = None):
        super().__init__(
            message,
            ErrorTypes.RENDER_ERROR,
            {"step": step, "status_code": status_code, "body": body},
        )
        self.step = step
        self.status_code = status_code


class UploadFailure(PreviewWorkerError):
    """Raised when the generated PDF cannot be stored."""

    def __init__(self, message: str, key: str):
        super().__init__(message, ErrorTypes.UPLOAD_ERROR, {"key": key})


class StatusReportFailure(PreviewWorkerError):
    """Raised when the preview status cannot be written."""

    def __init__(self, message: str, document_id: str):
        super().__init__(message, ErrorTypes.STATUS_ERROR, {"document_id": document_id})

