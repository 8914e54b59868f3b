"""
Legacy Word document conversion using a headless office suite.

This module turns ``.doc`` files into ``.docx`` with LibreOffice's
``soffice`` binary. Each invocation gets its own user profile directory:
LibreOffice keeps process-wide lock state in the profile, and two
conversions sharing one profile can block or corrupt each other.
"""

import subprocess
from pathlib import Path

from loguru import logger

from preview_worker.exceptions import ErrorTypes, LegacyConversionFailure
from preview_worker.utils.fs import create_unique_directory, ensure_directory
from preview_worker.utils.shell import resolve_executable, run_command_safely

PROFILE_PREFIX = "profile-"
TARGET_FORMAT = "docx"


class LegacyConverter:
    """
    Converts legacy binary documents to the zipped-XML format.

    Stateless between calls, so one instance is shared by all worker threads.
    """

    def __init__(self, soffice_path: str = "soffice", timeout: int = 120):
        """
        Initialize the legacy converter.

        Args:
            soffice_path: Executable name (resolved from PATH) or path
            timeout: Seconds to wait for one conversion
        """
        self.soffice_path = soffice_path
        self.timeout = timeout

    @property
    def executable(self) -> str:
        """Resolved path of the office-suite binary, or the configured value."""
        return resolve_executable(self.soffice_path) or self.soffice_path

    def is_available(self) -> bool:
        """Check that the office-suite binary can be found."""
        return resolve_executable(self.soffice_path) is not None

    def convert(self, input_file: Path, output_dir: Path, profile_dir: Path | None = None) -> Path:
        """
        Convert a legacy document into ``<output_dir>/<stem>.docx``.

        Args:
            input_file: Legacy document to convert
            output_dir: Directory receiving the converted file
            profile_dir: Private profile directory; a fresh one is created
                inside ``output_dir`` when omitted

        Returns:
            Path to the converted document

        Raises:
            LegacyConversionFailure: If the conversion fails for any reason
        """
        input_file = Path(input_file)
        output_dir = Path(output_dir)

        if not input_file.is_file():
            raise LegacyConversionFailure(
                f"Input file not found: {input_file}",
                ErrorTypes.FILE_NOT_FOUND,
                {"input_file": str(input_file)},
            )

        ensure_directory(output_dir)
        if profile_dir is None:
            profile_dir = create_unique_directory(output_dir, PROFILE_PREFIX)

        cmd = self._build_command(input_file, output_dir, Path(profile_dir))
        expected_output = output_dir / f"{input_file.stem}.{TARGET_FORMAT}"

        logger.info(f"Converting legacy document: {input_file.name} -> {expected_output.name}")

        try:
            result = run_command_safely(cmd, cwd=output_dir, timeout=self.timeout)
        except subprocess.TimeoutExpired as exc:
            stderr = _as_text(exc.stderr)
            stdout = _as_text(exc.stdout)
            raise LegacyConversionFailure(
                f"LibreOffice conversion timed out after {self.timeout} seconds: "
                f"{_diagnostic_output(stderr, stdout)}",
                ErrorTypes.TIMEOUT_ERROR,
                {"timeout_seconds": self.timeout, "stderr": stderr, "stdout": stdout},
            ) from exc
        except OSError as exc:
            raise LegacyConversionFailure(
                f"Failed to start LibreOffice ({self.soffice_path}): {exc}",
                ErrorTypes.EXECUTABLE_NOT_FOUND,
                {"soffice_path": self.soffice_path},
            ) from exc

        output = _diagnostic_output(result.stderr, result.stdout)

        if result.returncode != 0:
            raise LegacyConversionFailure(
                f"LibreOffice conversion failed with exit code {result.returncode}: {output}",
                details={"returncode": result.returncode, "stderr": result.stderr, "stdout": result.stdout},
            )

        if not expected_output.is_file():
            raise LegacyConversionFailure(
                f"LibreOffice did not produce {expected_output.name}: {output}",
                details={"expected_output": str(expected_output), "stderr": result.stderr, "stdout": result.stdout},
            )

        logger.debug(f"Legacy conversion produced {expected_output}")
        return expected_output

    def _build_command(self, input_file: Path, output_dir: Path, profile_dir: Path) -> list[str]:
        """
        Build the soffice command line.

        Args:
            input_file: Legacy document
            output_dir: Output directory
            profile_dir: Private user installation directory

        Returns:
            Command list for subprocess execution
        """
        return [
            self.executable,
            "--headless",
            f"-env:UserInstallation={profile_dir.resolve().as_uri()}",
            "--convert-to",
            TARGET_FORMAT,
            "--outdir",
            str(output_dir),
            str(input_file),
        ]


def _as_text(output: str | bytes | None) -> str:
    # partial output attached to TimeoutExpired is raw bytes on POSIX
    if isinstance(output, bytes):
        return output.decode("utf-8", errors="replace")
    return output or ""


def _diagnostic_output(stderr: str, stdout: str) -> str:
    """Pick whichever captured stream has content."""
    return (stderr or "").strip() or (stdout or "").strip() or "no output captured"
