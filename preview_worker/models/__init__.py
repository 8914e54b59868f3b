"""
Models package for the document preview worker.
"""

from .conversion import (
    PDF_MIME_TYPE,
    ConversionJob,
    JobStage,
    PreviewResult,
    PreviewStatus,
)
from .records import document_table

__all__ = [
    "PDF_MIME_TYPE",
    "ConversionJob",
    "JobStage",
    "PreviewResult",
    "PreviewStatus",
    "document_table",
]
