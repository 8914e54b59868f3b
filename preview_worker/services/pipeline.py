"""
Preview pipeline for a single conversion job.

This service drives one job through its stages:
download → route → (legacy conversion) → render → upload → report,
inside a private workspace that is removed whatever the outcome.
"""

import time
from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger

from preview_worker.models.conversion import ConversionJob, JobStage, PreviewResult
from preview_worker.services.legacy import LegacyConverter
from preview_worker.services.renderer import CarboneRenderer
from preview_worker.services.routing import (
    LEGACY_EXTENSION,
    ConversionRoute,
    fallback_filename,
    select_route,
)
from preview_worker.services.status import StatusReporter
from preview_worker.services.storage import StorageGateway
from preview_worker.utils.fs import WorkspaceManager, pdf_output_path, sanitize_filename

DEFAULT_FALLBACK_NAME = "document.docx"


@dataclass
class JobRun:
    """State of one job attempt. Never shared between attempts."""

    job: ConversionJob
    stage: JobStage = JobStage.RECEIVED
    history: list[JobStage] = field(default_factory=lambda: [JobStage.RECEIVED])
    route: ConversionRoute | None = None
    workspace: Path | None = None
    result: PreviewResult | None = None
    error: str | None = None
    started: float = field(default_factory=time.monotonic)

    def advance(self, stage: JobStage) -> None:
        self.stage = stage
        self.history.append(stage)
        logger.debug(f"[{self.job.document_id}] -> {stage.value}")

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self.started


def error_message(exc: BaseException) -> str:
    """Human-readable message stored on the record for a failure."""
    return str(exc) or exc.__class__.__name__


class PreviewPipeline:
    """Converts one queued document into a stored PDF preview."""

    def __init__(
        self,
        storage: StorageGateway,
        legacy_converter: LegacyConverter,
        renderer: CarboneRenderer,
        reporter: StatusReporter,
        workspaces: WorkspaceManager,
    ):
        """
        Initialize the preview pipeline.

        Args:
            storage: Object storage gateway
            legacy_converter: Office-suite wrapper for ``.doc`` input
            renderer: Remote rendering service client
            reporter: Status reporter for the document record
            workspaces: Provider of per-job temporary directories
        """
        self.storage = storage
        self.legacy_converter = legacy_converter
        self.renderer = renderer
        self.reporter = reporter
        self.workspaces = workspaces

    def process(self, job: ConversionJob) -> PreviewResult:
        """
        Run a job and return the stored preview.

        Raises:
            Exception: Whatever stopped the job, after the ERROR status was
                recorded and the workspace removed
        """
        return self.execute(job).result

    def execute(self, job: ConversionJob) -> JobRun:
        """
        Run a job through every stage.

        Args:
            job: Conversion job taken from the queue

        Returns:
            JobRun: Finished run with its stage history and result

        Raises:
            Exception: The original failure, re-raised for the queue to retry
        """
        run = JobRun(job=job)
        logger.info(f"Converting document {job.document_id} ({job.file_name or job.storage_key})")

        with self.workspaces.acquire() as workspace:
            run.workspace = workspace
            try:
                run.result = self._run_stages(run, workspace)
            except Exception as exc:
                run.error = error_message(exc)
                logger.error(
                    f"Document {job.document_id} failed during {run.stage.value}: {run.error}"
                )
                self.reporter.mark_error_safely(job.document_id, run.error)
                run.advance(JobStage.FAILED)
                raise

        run.advance(JobStage.DONE)
        logger.info(f"Document {job.document_id} preview ready in {run.elapsed:.1f}s: {run.result.key}")
        return run

    def _run_stages(self, run: JobRun, workspace: Path) -> PreviewResult:
        job = run.job

        run.advance(JobStage.DOWNLOADING)
        fallback = sanitize_filename(fallback_filename(job.document_id, job.mime_type), DEFAULT_FALLBACK_NAME)
        source = workspace / sanitize_filename(job.file_name, fallback)
        self.storage.download(job.storage_key, source)

        run.advance(JobStage.ROUTING)
        run.route = select_route(job.mime_type, job.file_name, source.name)

        if run.route is ConversionRoute.LEGACY:
            run.advance(JobStage.CONVERTING_LEGACY)
            if source.suffix.lower() != LEGACY_EXTENSION:
                # the converted file must not land on the input's own path
                source = source.rename(source.with_suffix(LEGACY_EXTENSION))
            source = self.legacy_converter.convert(source, workspace)

        run.advance(JobStage.RENDERING)
        pdf = self.renderer.render_pdf(source, pdf_output_path(source, workspace))

        run.advance(JobStage.UPLOADING)
        preview = self.storage.upload_pdf(pdf)

        run.advance(JobStage.REPORTING)
        self.reporter.mark_ready(job.document_id, preview)
        return preview
