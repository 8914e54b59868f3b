"""
Filesystem utilities for job-scoped file handling.

This module provides the per-job workspace, filename sanitizing for names
that come from outside the worker, and output path naming.
"""

import shutil
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from loguru import logger

WORKSPACE_PREFIX = "doc-conversion-"


def sanitize_filename(name: str | None, fallback: str) -> str:
    """
    Reduce an externally supplied filename to its base name.

    Both forward and backward slashes are treated as separators, so the
    result can be joined onto any directory without escaping it.

    Args:
        name: Filename as received (may contain directories or traversal)
        fallback: Name to use when nothing usable is left

    Returns:
        Base name of the input, or the fallback
    """
    if not name:
        return fallback

    base = name.replace("\x00", "").replace("\\", "/").rsplit("/", 1)[-1].strip()
    if base in ("", ".", ".."):
        return fallback
    return base


def pdf_output_path(source: str | Path, output_dir: str | Path) -> Path:
    """
    Name the PDF produced for a source document.

    Args:
        source: Source document path (``x.doc`` or ``x.docx``)
        output_dir: Directory receiving the PDF

    Returns:
        ``output_dir / "x.pdf"``
    """
    return Path(output_dir) / f"{Path(source).stem}.pdf"


def ensure_directory(path: str | Path) -> Path:
    """
    Ensure directory exists, creating it if necessary.

    Args:
        path: Directory path to ensure

    Returns:
        Path object of the directory

    Raises:
        OSError: If directory cannot be created
    """
    path = Path(path)

    try:
        path.mkdir(parents=True, exist_ok=True)
        logger.debug(f"Directory ensured: {path}")
        return path
    except OSError as exc:
        logger.error(f"Failed to create directory {path}: {exc}")
        raise


def create_unique_directory(parent: str | Path, prefix: str) -> Path:
    """
    Create a new directory named ``<prefix><uuid4 hex>`` under ``parent``.

    Raises:
        FileExistsError: If the generated name already exists
    """
    path = Path(parent) / f"{prefix}{uuid.uuid4().hex}"
    path.mkdir(parents=False, exist_ok=False)
    logger.debug(f"Created directory: {path}")
    return path


def remove_directory(path: str | Path) -> bool:
    """
    Recursively remove a directory, logging instead of raising.

    Args:
        path: Directory to remove

    Returns:
        True if the directory is gone afterwards
    """
    path = Path(path)
    try:
        shutil.rmtree(path)
        logger.debug(f"Removed directory: {path}")
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.warning(f"Failed to remove directory {path}: {exc}")
    return not path.exists()


class WorkspaceManager:
    """
    Hands out private, self-destroying directories for conversion jobs.

    Every call to :meth:`acquire` creates a new directory; nothing is ever
    reused across jobs or across retries of the same job.
    """

    def __init__(self, base_dir: str | Path, prefix: str = WORKSPACE_PREFIX):
        """
        Initialize the workspace manager.

        Args:
            base_dir: Volatile directory under which workspaces are created
            prefix: Name prefix of each workspace directory
        """
        self.base_dir = Path(base_dir)
        self.prefix = prefix

    @contextmanager
    def acquire(self) -> Iterator[Path]:
        """
        Create a workspace and remove it when the block exits.

        Yields:
            Path of the fresh, empty workspace directory
        """
        ensure_directory(self.base_dir)
        workspace = create_unique_directory(self.base_dir, self.prefix)
        try:
            yield workspace
        finally:
            if not remove_directory(workspace):
                logger.error(f"Workspace left behind after cleanup: {workspace}")
