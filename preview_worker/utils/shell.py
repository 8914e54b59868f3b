"""
Shell utilities for safe subprocess execution.

This module provides subprocess management with captured output, timeout
handling and argument validation. Commands are always executed as an
argument list, never through a shell.
"""

import os
import shutil
import subprocess
from pathlib import Path
from typing import NamedTuple

from loguru import logger


class CommandResult(NamedTuple):
    """Result of a command execution."""
    returncode: int
    stdout: str
    stderr: str


def run_command_safely(
    cmd: list[str],
    cwd: Path | None = None,
    timeout: int = 300,
    env: dict[str, str] | None = None
) -> CommandResult:
    """
    Run a command with captured output and a timeout.

    Args:
        cmd: Command to run as list of strings
        cwd: Working directory for the command
        timeout: Timeout in seconds (default: 5 minutes)
        env: Extra environment variables layered over the worker's own

    Returns:
        CommandResult with return code and output

    Raises:
        subprocess.TimeoutExpired: If command times out
        FileNotFoundError: If the executable does not exist
        ValueError: If the command is malformed
    """
    _validate_command(cmd)

    run_env = dict(os.environ)
    if env:
        run_env.update(env)

    logger.debug(f"Running command: {' '.join(cmd)}")
    if cwd:
        logger.debug(f"Working directory: {cwd}")

    try:
        result = subprocess.run(
            cmd,
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=timeout,
            env=run_env,
            check=False  # Don't raise exception on non-zero return code
        )
    except subprocess.TimeoutExpired:
        logger.error(f"Command timed out after {timeout}s: {' '.join(cmd)}")
        raise
    except OSError as exc:
        logger.error(f"Command failed to start: {exc}")
        raise

    logger.debug(f"Command completed with return code: {result.returncode}")
    if result.stdout:
        logger.debug(f"STDOUT: {result.stdout[:200]}...")
    if result.stderr:
        logger.debug(f"STDERR: {result.stderr[:200]}...")

    return CommandResult(
        returncode=result.returncode,
        stdout=result.stdout or "",
        stderr=result.stderr or ""
    )


def _validate_command(cmd: list[str]) -> None:
    """
    Validate a command before it is executed.

    Args:
        cmd: Command to validate

    Raises:
        ValueError: If the command is empty or contains invalid arguments
    """
    if not cmd or not cmd[0]:
        raise ValueError("Command must name an executable")

    for part in cmd:
        if not isinstance(part, str):
            raise ValueError(f"Command arguments must be strings, got {type(part).__name__}")
        if "\x00" in part:
            raise ValueError("Command arguments must not contain NUL bytes")


def resolve_executable(cmd: str) -> str | None:
    """
    Resolve an executable name or path.

    Args:
        cmd: Bare command name (looked up on PATH) or path to an executable

    Returns:
        Absolute path of the executable, or None if it cannot be found
    """
    return shutil.which(cmd)

