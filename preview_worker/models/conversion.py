"""
Conversion models for the document preview worker.

This module defines the Pydantic models that travel through the pipeline:
the queue message, the preview statuses and stages, and the upload result.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

PDF_MIME_TYPE = "application/pdf"


class PreviewStatus(str, Enum):
    """Preview status stored on the document record."""

    PENDING = "PENDING"
    READY = "READY"
    ERROR = "ERROR"


class JobStage(str, Enum):
    """Stages a conversion job moves through."""

    RECEIVED = "received"
    DOWNLOADING = "downloading"
    ROUTING = "routing"
    CONVERTING_LEGACY = "converting_legacy"
    RENDERING = "rendering"
    UPLOADING = "uploading"
    REPORTING = "reporting"
    DONE = "done"
    FAILED = "failed"


class ConversionJob(BaseModel):
    """Queue message asking for a document preview."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    document_id: str = Field(..., alias="documentId", description="Document record identifier")
    owner_id: str | None = Field(None, alias="ownerId", description="Owner of the document")
    storage_key: str = Field(..., alias="storageKey", description="Object key of the source file")
    mime_type: str | None = Field(None, alias="mimeType", description="MIME type reported at upload")
    file_name: str | None = Field(None, alias="fileName", description="Original file name")

    @field_validator("document_id", "storage_key")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        """Identifiers must be non-empty."""
        if not v or not v.strip():
            raise ValueError("must not be empty")
        return v

    def to_message(self) -> dict[str, str | None]:
        """Serialize back to the camelCase wire shape."""
        return self.model_dump(by_alias=True)


class PreviewResult(BaseModel):
    """Location of an uploaded preview."""

    key: str = Field(..., description="Object key of the PDF")
    url: str = Field(..., description="Shareable URL of the PDF")
