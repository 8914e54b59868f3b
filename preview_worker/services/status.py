"""
Preview status persistence.

Each job attempt ends with exactly one write to the document record: the
READY shape on success or the ERROR shape on failure. Writes overwrite the
preview columns completely, so running a job twice for the same document
leaves the record consistent.
"""

from datetime import datetime, timezone

import sqlalchemy as sa
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from preview_worker.config import Settings
from preview_worker.exceptions import StatusReportFailure
from preview_worker.models.conversion import PDF_MIME_TYPE, PreviewResult, PreviewStatus
from preview_worker.models.records import document_table


class StatusReporter:
    """Writes preview outcomes to the document table."""

    def __init__(self, engine: sa.engine.Engine, table: sa.Table):
        """
        Initialize the status reporter.

        Args:
            engine: SQLAlchemy engine of the record store
            table: Document table holding the preview columns
        """
        self.engine = engine
        self.table = table

    @classmethod
    def from_settings(cls, settings: Settings) -> "StatusReporter":
        """Build a reporter with a pooled engine from settings."""
        engine = sa.create_engine(settings.DATABASE_URL, pool_pre_ping=True)
        return cls(engine, document_table(settings.DOCUMENT_TABLE))

    def mark_ready(self, document_id: str, preview: PreviewResult) -> None:
        """
        Record a successful conversion.

        Raises:
            StatusReportFailure: If the record cannot be written
        """
        self._write(
            document_id,
            preview_key=preview.key,
            preview_url=preview.url,
            preview_mime_type=PDF_MIME_TYPE,
            preview_status=PreviewStatus.READY.value,
            preview_error=None,
        )
        logger.debug(f"Preview status READY for document {document_id}")

    def mark_error(self, document_id: str, message: str) -> None:
        """
        Record a failed conversion.

        Raises:
            StatusReportFailure: If the record cannot be written
        """
        self._write(
            document_id,
            preview_key=None,
            preview_url=None,
            preview_mime_type=None,
            preview_status=PreviewStatus.ERROR.value,
            preview_error=message,
        )
        logger.debug(f"Preview status ERROR for document {document_id}")

    def mark_error_safely(self, document_id: str, message: str) -> bool:
        """
        Record a failed conversion without raising.

        Returns:
            True if the status was written
        """
        try:
            self.mark_error(document_id, message)
            return True
        except Exception as exc:
            logger.error(f"Could not record ERROR status for document {document_id}: {exc}")
            return False

    def ping(self) -> bool:
        """Check that the record store answers."""
        try:
            with self.engine.connect() as connection:
                connection.execute(sa.text("SELECT 1"))
            return True
        except SQLAlchemyError:
            return False

    def _write(self, document_id: str, **values) -> None:
        values["updated_at"] = datetime.now(timezone.utc)
        statement = (
            sa.update(self.table)
            .where(self.table.c.id == document_id)
            .values(**values)
        )
        try:
            with self.engine.begin() as connection:
                result = connection.execute(statement)
        except SQLAlchemyError as exc:
            raise StatusReportFailure(
                f"Failed to update preview status for document {document_id}: {exc}",
                document_id,
            ) from exc

        if result.rowcount == 0:
            logger.warning(f"No document record matched {document_id}; status not stored")
