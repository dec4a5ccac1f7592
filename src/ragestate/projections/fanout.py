"""
Per-recipient fan-out with retry and dead-lettering.

The worker drains pending jobs from the fan-out outbox. Each job is
applied independently under the retry policy; a job that keeps failing
is sent to the DLQ and marked failed while the rest of the batch carries
on.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from uuid import UUID

from ragestate.observability import Tracer, create_tracer
from ragestate.observability.attributes import (
    ATTR_CHAT_ID,
    ATTR_EVENT_ID,
    ATTR_PROJECTION_NAME,
    ATTR_RECIPIENT_COUNT,
    ATTR_RETRY_COUNT,
    ATTR_USER_ID,
)
from ragestate.repositories.dlq import DLQRepository
from ragestate.repositories.outbox import FanoutJob, InMemoryFanoutOutbox
from ragestate.retry import ExponentialBackoffRetryPolicy, RetryPolicy

logger = logging.getLogger(__name__)

FanoutApply = Callable[[FanoutJob], Awaitable[bool]]
"""Applies one job. Returns False when the recipient has nothing to update."""


@dataclass(frozen=True)
class FanoutReport:
    completed: int = 0
    skipped: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        return self.completed + self.skipped + self.failed


class FanoutWorker:
    """
    Drains the fan-out outbox.

    Example:
        >>> worker = FanoutWorker(
        ...     outbox, apply_job, dlq_repo=dlq, projection_name="ChatSummaryProjector"
        ... )
        >>> report = await worker.drain(event_id=message.event_id)
        >>> report.failed
        0
    """

    def __init__(
        self,
        outbox: InMemoryFanoutOutbox,
        apply: FanoutApply,
        *,
        dlq_repo: DLQRepository,
        projection_name: str,
        retry_policy: RetryPolicy | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = False,
    ) -> None:
        self._outbox = outbox
        self._apply = apply
        self._dlq_repo = dlq_repo
        self._projection_name = projection_name
        self._retry_policy = retry_policy or ExponentialBackoffRetryPolicy()
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._retry_policy

    async def drain(self, *, event_id: UUID | None = None, limit: int = 100) -> FanoutReport:
        """
        Apply pending jobs concurrently, one task per recipient.

        Args:
            event_id: Only drain jobs for this message
            limit: Maximum number of jobs taken in this pass
        """
        jobs = await self._outbox.get_pending_jobs(limit, event_id=event_id)
        if not jobs:
            return FanoutReport()

        with self._tracer.span(
            "ragestate.fanout.drain",
            {
                ATTR_PROJECTION_NAME: self._projection_name,
                ATTR_RECIPIENT_COUNT: len(jobs),
            },
        ):
            outcomes = await asyncio.gather(*(self._run_job(job) for job in jobs))

        return FanoutReport(
            completed=outcomes.count("completed"),
            skipped=outcomes.count("skipped"),
            failed=outcomes.count("failed"),
        )

    async def _run_job(self, job: FanoutJob) -> str:
        with self._tracer.span(
            "ragestate.fanout.job",
            {
                ATTR_EVENT_ID: str(job.event_id),
                ATTR_CHAT_ID: job.chat_id,
                ATTR_USER_ID: job.recipient_id,
            },
        ) as span:
            max_attempts = self._retry_policy.max_retries + 1

            for attempt in range(max_attempts):
                try:
                    applied = await self._apply(job)
                except Exception as e:
                    await self._outbox.record_attempt(job.id, str(e))
                    logger.error(
                        "Fan-out to %s for chat %s failed (attempt %d/%d): %s",
                        job.recipient_id,
                        job.chat_id,
                        attempt + 1,
                        max_attempts,
                        e,
                        extra={
                            "projection": self._projection_name,
                            "job_id": str(job.id),
                            "event_id": str(job.event_id),
                            "recipient_id": job.recipient_id,
                            "attempt": attempt + 1,
                            "max_attempts": max_attempts,
                            "error": str(e),
                        },
                    )

                    if attempt + 1 >= max_attempts or not self._retry_policy.should_retry(
                        attempt, e
                    ):
                        if span is not None:
                            span.set_attribute(ATTR_RETRY_COUNT, attempt + 1)
                        await self._dead_letter(job, e, attempt + 1)
                        return "failed"

                    backoff = self._retry_policy.get_backoff(attempt)
                    logger.info(
                        "Retrying in %.1f seconds...",
                        backoff,
                        extra={"job_id": str(job.id), "backoff_seconds": backoff},
                    )
                    await asyncio.sleep(backoff)
                    continue

                await self._outbox.record_attempt(job.id)
                if applied:
                    await self._outbox.mark_completed(job.id)
                    return "completed"
                await self._outbox.mark_skipped(job.id, "summary not found")
                return "skipped"

            return "failed"

    async def _dead_letter(self, job: FanoutJob, error: Exception, attempts: int) -> None:
        await self._dlq_repo.add_failed_event(
            event_id=job.id,
            projection_name=self._projection_name,
            event_type="MessageCreated",
            event_data=job.to_dict(),
            error=error,
            retry_count=attempts,
        )
        await self._outbox.mark_failed(job.id, str(error))
        logger.critical(
            "Fan-out job %s sent to DLQ after %d attempts",
            job.id,
            attempts,
            extra={
                "projection": self._projection_name,
                "job_id": str(job.id),
                "event_id": str(job.event_id),
                "recipient_id": job.recipient_id,
                "retry_count": attempts,
            },
        )


__all__ = ["FanoutWorker", "FanoutReport", "FanoutApply"]
