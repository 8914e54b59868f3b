"""
Format routing for incoming documents.

Legacy binary Word documents need an extra hop through the office suite
before the rendering service can take them; everything else goes straight
to the renderer.
"""

from enum import Enum
from pathlib import Path

LEGACY_MIME_TYPE = "application/msword"
LEGACY_EXTENSION = ".doc"
MODERN_MIME_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
MODERN_EXTENSION = ".docx"


class ConversionRoute(str, Enum):
    """Path a document takes through the pipeline."""

    LEGACY = "legacy"
    DIRECT = "direct"


def _is_legacy_mime(mime_type: str | None) -> bool:
    if not mime_type:
        return False
    return mime_type.split(";", 1)[0].strip().lower() == LEGACY_MIME_TYPE


def _is_legacy_name(name: str | Path | None) -> bool:
    if not name:
        return False
    return str(name).strip().lower().endswith(LEGACY_EXTENSION)


def requires_legacy_conversion(mime_type: str | None = None, *names: str | Path | None) -> bool:
    """
    Decide whether a document needs the legacy conversion hop.

    Either signal is enough: a legacy MIME type, or any of the given names
    ending in ``.doc`` (both compared case-insensitively).

    Args:
        mime_type: MIME type reported for the document
        *names: File names or paths known for the document

    Returns:
        True if the legacy converter must run first
    """
    return _is_legacy_mime(mime_type) or any(_is_legacy_name(name) for name in names)


def select_route(mime_type: str | None = None, *names: str | Path | None) -> ConversionRoute:
    """Return the route for a document, see :func:`requires_legacy_conversion`."""
    if requires_legacy_conversion(mime_type, *names):
        return ConversionRoute.LEGACY
    return ConversionRoute.DIRECT


def fallback_filename(document_id: str, mime_type: str | None) -> str:
    """Local file name used when the job carries no usable file name."""
    extension = LEGACY_EXTENSION if _is_legacy_mime(mime_type) else MODERN_EXTENSION
    return f"{document_id}{extension}"
