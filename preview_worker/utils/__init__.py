"""
Utilities package for the document preview worker.

This package contains utility modules for common operations.
"""

from .fs import (
    WorkspaceManager,
    create_unique_directory,
    ensure_directory,
    pdf_output_path,
    remove_directory,
    sanitize_filename,
)
from .shell import (
    CommandResult,
    resolve_executable,
    run_command_safely,
)

__all__ = [
    "run_command_safely", "resolve_executable", "CommandResult",
    "ensure_directory", "create_unique_directory", "remove_directory",
    "pdf_output_path", "sanitize_filename", "WorkspaceManager",
]
