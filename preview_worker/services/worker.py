"""
Worker pool consuming the conversion queue.

A fixed number of threads each take one job at a time and run it to
completion before asking for the next. Stopping the pool only prevents new
jobs from being taken; jobs already running are allowed to finish.
"""

import threading

from loguru import logger

from preview_worker.services.pipeline import PreviewPipeline
from preview_worker.services.queue import Delivery, RedisJobQueue

POLL_TIMEOUT = 1.0


class WorkerPool:
    """Runs queued conversion jobs on a bounded set of threads."""

    def __init__(
        self,
        queue: RedisJobQueue,
        pipeline: PreviewPipeline,
        concurrency: int = 2,
        poll_timeout: float = POLL_TIMEOUT,
    ):
        """
        Initialize the worker pool.

        Args:
            queue: Queue to consume from
            pipeline: Pipeline that runs each job
            concurrency: Number of jobs allowed to run at the same time
            poll_timeout: Seconds each idle thread blocks waiting for a job
        """
        if concurrency <= 0:
            raise ValueError("concurrency must be a positive integer")

        self.queue = queue
        self.pipeline = pipeline
        self.concurrency = concurrency
        self.poll_timeout = poll_timeout

        self._shutdown_event = threading.Event()
        self._threads: list[threading.Thread] = []
        self._stats_lock = threading.Lock()
        self._stats = {"active": 0, "processed": 0, "failed": 0}

    @property
    def stopping(self) -> bool:
        return self._shutdown_event.is_set()

    def stats(self) -> dict[str, int]:
        """Snapshot of job counters."""
        with self._stats_lock:
            return dict(self._stats)

    def start(self) -> None:
        """Start the worker threads."""
        if self._threads:
            return
        for index in range(self.concurrency):
            thread = threading.Thread(
                target=self._consume,
                name=f"preview-worker-{index + 1}",
                daemon=False,
            )
            thread.start()
            self._threads.append(thread)
        logger.info(f"Worker pool started on {self.queue.name} with concurrency {self.concurrency}")

    def stop(self) -> None:
        """Stop taking new jobs."""
        if not self._shutdown_event.is_set():
            logger.info("Worker pool stopping; waiting for in-flight jobs")
        self._shutdown_event.set()

    def join(self, timeout: float | None = None) -> None:
        """Wait for the worker threads to exit."""
        for thread in self._threads:
            thread.join(timeout)

    def run(self) -> None:
        """Start the pool and block until it is stopped and drained."""
        self.start()
        while not self._shutdown_event.wait(timeout=self.poll_timeout):
            pass
        self.join()
        logger.info("Worker pool stopped")

    def _consume(self) -> None:
        while not self._shutdown_event.is_set():
            try:
                delivery = self.queue.reserve(timeout=self.poll_timeout)
            except Exception as exc:
                logger.error(f"Failed to reserve job: {exc}")
                self._shutdown_event.wait(timeout=self.poll_timeout)
                continue

            if delivery is None:
                continue
            self._handle(delivery)

    def _handle(self, delivery: Delivery) -> None:
        document_id = delivery.job.document_id
        with self._stats_lock:
            self._stats["active"] += 1
        try:
            self.pipeline.process(delivery.job)
        except Exception as exc:
            logger.error(f"Failed to convert document {document_id}: {exc}")
            with self._stats_lock:
                self._stats["failed"] += 1
            self._acknowledge(self.queue.fail, delivery, exc)
        else:
            logger.info(f"Document converted: {document_id}")
            self._acknowledge(self.queue.complete, delivery)
        finally:
            with self._stats_lock:
                self._stats["active"] -= 1
                self._stats["processed"] += 1

    @staticmethod
    def _acknowledge(action, delivery: Delivery, *args) -> None:
        try:
            action(delivery, *args)
        except Exception as exc:
            # the envelope stays in ``active`` and is requeued on next startup
            logger.error(f"Failed to acknowledge job {delivery.job_id}: {exc}")
