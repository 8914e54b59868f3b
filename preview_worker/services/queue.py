"""
Redis-backed job queue for conversion requests.

Jobs live in a small set of Redis keys under ``<prefix>:<name>``:

- ``wait``: list of envelopes ready to run (pushed left, consumed right)
- ``active``: list of envelopes currently held by a worker
- ``delayed``: sorted set of envelopes waiting out their retry backoff,
  scored by the time they become runnable
- ``failed``: list of envelopes that used up their attempts
- ``events``: pub/sub channel announcing ``completed`` and ``failed`` jobs

Moving an envelope from ``wait`` to ``active`` and from ``delayed`` back to
``wait`` is atomic, and envelopes left in ``active`` by a crashed worker
are put back on startup, which gives at-least-once delivery.
"""

import json
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import redis
from loguru import logger
from pydantic import ValidationError

from preview_worker.models.conversion import ConversionJob

DEFAULT_JOB_NAME = "convert"
MAX_FAILED_REASON = 1000

# KEYS[1] delayed zset, KEYS[2] wait list, ARGV[1] current time
PROMOTE_DELAYED_SCRIPT = """
local due = redis.call("ZRANGEBYSCORE", KEYS[1], "-inf", ARGV[1])
for _, raw in ipairs(due) do
    redis.call("ZREM", KEYS[1], raw)
    redis.call("LPUSH", KEYS[2], raw)
end
return #due
"""


@dataclass(frozen=True)
class Delivery:
    """A job handed to a worker, together with its raw envelope."""

    raw: str
    envelope: dict[str, Any]
    job: ConversionJob

    @property
    def job_id(self) -> str:
        return str(self.envelope.get("id"))

    @property
    def attempts_made(self) -> int:
        return int(self.envelope.get("attemptsMade", 0))

    @property
    def max_attempts(self) -> int:
        return int(self.envelope.get("maxAttempts", 1))


class RedisJobQueue:
    """Consumer side of the conversion queue, plus a producer helper."""

    def __init__(
        self,
        client: redis.Redis,
        name: str = "documentos-conversao",
        prefix: str = "preview",
        default_attempts: int = 3,
        default_backoff: float = 5.0,
    ):
        """
        Initialize the queue.

        Args:
            client: Redis client (``decode_responses=True``)
            name: Queue name
            prefix: Key prefix shared by all queues of the application
            default_attempts: Attempts for envelopes that do not set them
            default_backoff: Base backoff in seconds for envelopes that do not set it
        """
        self.client = client
        self.name = name
        self.prefix = prefix
        self.default_attempts = default_attempts
        self.default_backoff = default_backoff

        base = f"{prefix}:{name}"
        self.wait_key = f"{base}:wait"
        self.active_key = f"{base}:active"
        self.delayed_key = f"{base}:delayed"
        self.failed_key = f"{base}:failed"
        self.events_channel = f"{base}:events"

        self._promote_delayed = self.client.register_script(PROMOTE_DELAYED_SCRIPT)

    @classmethod
    def from_url(cls, url: str, name: str, prefix: str = "preview", **kwargs: Any) -> "RedisJobQueue":
        """Connect to Redis and build a queue."""
        client = redis.Redis.from_url(url, decode_responses=True)
        return cls(client, name=name, prefix=prefix, **kwargs)

    def enqueue(
        self,
        job: ConversionJob,
        attempts: int | None = None,
        backoff_seconds: float | None = None,
    ) -> str:
        """
        Add a job to the queue.

        Returns:
            str: Identifier of the queued job

        Raises:
            ValueError: If ``attempts`` is below 1 or ``backoff_seconds`` is negative
        """
        if attempts is None:
            attempts = self.default_attempts
        if attempts < 1:
            raise ValueError("attempts must be at least 1")
        if backoff_seconds is not None and backoff_seconds < 0:
            raise ValueError("backoff_seconds must be non-negative")

        job_id = str(uuid.uuid4())
        envelope = {
            "id": job_id,
            "name": DEFAULT_JOB_NAME,
            "data": job.to_message(),
            "attemptsMade": 0,
            "maxAttempts": attempts,
            "backoffSeconds": self.default_backoff if backoff_seconds is None else backoff_seconds,
            "enqueuedAt": datetime.now(timezone.utc).isoformat(),
            "failedReason": None,
        }
        self.client.lpush(self.wait_key, json.dumps(envelope))
        logger.debug(f"Enqueued job {job_id} for document {job.document_id}")
        return job_id

    def reserve(self, timeout: float = 1.0) -> Delivery | None:
        """
        Take the next runnable job, waiting up to ``timeout`` seconds.

        Returns:
            Delivery, or None if nothing became available
        """
        self.promote_delayed()

        raw = self.client.blmove(self.wait_key, self.active_key, timeout, "RIGHT", "LEFT")
        if raw is None:
            return None

        try:
            envelope = json.loads(raw)
            if not isinstance(envelope, dict):
                raise ValueError("envelope is not an object")
            job = ConversionJob.model_validate(envelope.get("data") or {})
            envelope.update(self._retry_options(envelope))
        except (TypeError, ValueError, ValidationError) as exc:
            logger.error(f"Discarding malformed job from {self.name}: {exc}")
            self._dead_letter(raw)
            return None

        return Delivery(raw=raw, envelope=envelope, job=job)

    def _retry_options(self, envelope: dict[str, Any]) -> dict[str, Any]:
        """
        Normalize the retry fields of an envelope; missing or null fields take the defaults.

        Raises:
            TypeError, ValueError: If a field is not a usable number
        """
        attempts_made = envelope.get("attemptsMade")
        max_attempts = envelope.get("maxAttempts")
        backoff = envelope.get("backoffSeconds")

        options = {
            "attemptsMade": 0 if attempts_made is None else int(attempts_made),
            "maxAttempts": self.default_attempts if max_attempts is None else int(max_attempts),
            "backoffSeconds": self.default_backoff if backoff is None else float(backoff),
        }
        if options["attemptsMade"] < 0 or options["maxAttempts"] < 1 or options["backoffSeconds"] < 0:
            raise ValueError(f"invalid retry options: {options}")
        return options

    def complete(self, delivery: Delivery) -> None:
        """Acknowledge a finished job."""
        self.client.lrem(self.active_key, 1, delivery.raw)
        self._publish("completed", delivery, documentId=delivery.job.document_id)

    def fail(self, delivery: Delivery, error: BaseException | str) -> bool:
        """
        Record a failed attempt and schedule a retry if attempts remain.

        Returns:
            bool: True if the job will be retried
        """
        reason = (str(error) or error.__class__.__name__)[:MAX_FAILED_REASON]
        attempts_made = delivery.attempts_made + 1
        envelope = dict(delivery.envelope)
        envelope["attemptsMade"] = attempts_made
        envelope["failedReason"] = reason
        updated = json.dumps(envelope)

        will_retry = attempts_made < delivery.max_attempts
        pipe = self.client.pipeline()
        pipe.lrem(self.active_key, 1, delivery.raw)
        if will_retry:
            delay = self.backoff_delay(float(envelope.get("backoffSeconds", self.default_backoff)), attempts_made)
            pipe.zadd(self.delayed_key, {updated: time.time() + delay})
            logger.warning(
                f"Job {delivery.job_id} attempt {attempts_made}/{delivery.max_attempts} failed, "
                f"retrying in {delay:.0f}s"
            )
        else:
            pipe.lpush(self.failed_key, updated)
            logger.error(f"Job {delivery.job_id} failed after {attempts_made} attempt(s)")
        pipe.execute()

        self._publish(
            "failed",
            delivery,
            documentId=delivery.job.document_id,
            attemptsMade=attempts_made,
            willRetry=will_retry,
            failedReason=reason,
        )
        return will_retry

    @staticmethod
    def backoff_delay(base: float, attempts_made: int) -> float:
        """Exponential backoff: ``base * 2 ** (attempts_made - 1)``."""
        return base * (2 ** max(attempts_made - 1, 0))

    def promote_delayed(self, now: float | None = None) -> int:
        """
        Move delayed jobs whose backoff has elapsed back to ``wait``.

        Returns:
            int: Number of jobs promoted
        """
        cutoff = now if now is not None else time.time()
        # removal from delayed and push to wait happen in one server-side step
        return int(self._promote_delayed(keys=[self.delayed_key, self.wait_key], args=[repr(float(cutoff))]))

    def recover_stalled(self) -> int:
        """
        Requeue jobs left in ``active`` by a worker that died mid-job.

        Only call this before any worker of this queue starts consuming.

        Returns:
            int: Number of jobs requeued
        """
        recovered = 0
        while self.client.lmove(self.active_key, self.wait_key, "RIGHT", "RIGHT") is not None:
            recovered += 1
        if recovered:
            logger.warning(f"Requeued {recovered} stalled job(s) on {self.name}")
        return recovered

    def ping(self) -> bool:
        """Check that Redis answers."""
        try:
            return bool(self.client.ping())
        except redis.RedisError:
            return False

    def close(self) -> None:
        self.client.close()

    def _dead_letter(self, raw: str) -> None:
        pipe = self.client.pipeline()
        pipe.lrem(self.active_key, 1, raw)
        pipe.lpush(self.failed_key, raw)
        pipe.execute()

    def _publish(self, event: str, delivery: Delivery, **fields: Any) -> None:
        message = {"event": event, "jobId": delivery.job_id, **fields}
        try:
            self.client.publish(self.events_channel, json.dumps(message))
        except redis.RedisError as exc:
            logger.warning(f"Could not publish {event} event for job {delivery.job_id}: {exc}")
