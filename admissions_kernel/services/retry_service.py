"""
RetryService -- durable at-least-once retry of admission recomputes.

Responsibility:
    When a payment write succeeds but the admission recompute that follows
    it fails, the facade rolls back only the recompute's savepoint and
    queues the admission here (PendingRecompute, in the same transaction
    as the write).  ``drain`` re-runs the queued recomputes until they
    succeed or exhaust ``max_attempts``.

Architecture position:
    Kernel > Services -- imperative shell.  Called by the ledger facade and
    by operational tooling.

Invariants enforced:
    - An admission is queued at most once (unique admission_id); a second
      failure bumps ``attempts`` instead of adding a row.
    - A queue row is deleted only after its recompute succeeds.
    - Each retry runs in its own savepoint, so one failing admission never
      undoes another's successful recompute.

Failure modes:
    - RecomputeRetryExhaustedError: ``retry`` on an admission that has
      already failed ``max_attempts`` times.  ``drain`` reports these in
      its result instead of stopping.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from admissions_kernel.domain.clock import Clock, SystemClock
from admissions_kernel.exceptions import RecomputeRetryExhaustedError
from admissions_kernel.logging_config import get_logger
from admissions_kernel.models import PendingRecompute
from admissions_kernel.services.aggregator_service import AggregatorService

logger = get_logger("services.retry")

DEFAULT_MAX_ATTEMPTS = 5

# Actor recorded on queue rows written without a user in context.
SYSTEM_ACTOR_ID = UUID(int=0)

_ERROR_LIMIT = 2000


@dataclass
class DrainResult:
    recomputed: list[UUID] = field(default_factory=list)
    failed: list[UUID] = field(default_factory=list)
    exhausted: list[UUID] = field(default_factory=list)

    @property
    def remaining(self) -> int:
        return len(self.failed) + len(self.exhausted)


class RetryService:
    """
    Queue and re-run failed admission recomputes.

    Non-goals:
        - Does NOT call ``session.commit()``; the caller owns the boundary.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        aggregator: AggregatorService | None = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._aggregator = aggregator or AggregatorService(session, self._clock)
        self._max_attempts = max_attempts

    def get(self, admission_id: UUID) -> PendingRecompute | None:
        return self._session.execute(
            select(PendingRecompute).where(PendingRecompute.admission_id == admission_id)
        ).scalar_one_or_none()

    def pending(self) -> list[PendingRecompute]:
        return list(
            self._session.execute(
                select(PendingRecompute).order_by(PendingRecompute.first_failed_at)
            ).scalars()
        )

    def enqueue(
        self,
        admission_id: UUID,
        error: BaseException | str,
        actor_id: UUID | None = None,
    ) -> PendingRecompute:
        """Record a failed recompute.  Counts as one attempt."""
        now = self._clock.now()
        message = str(error)[:_ERROR_LIMIT]
        entry = self.get(admission_id)
        if entry is None:
            entry = PendingRecompute(
                admission_id=admission_id,
                attempts=1,
                last_error=message,
                first_failed_at=now,
                last_attempted_at=now,
                created_by_id=actor_id or SYSTEM_ACTOR_ID,
            )
            self._session.add(entry)
        else:
            entry.attempts += 1
            entry.last_error = message
            entry.last_attempted_at = now
        self._session.flush()

        logger.warning(
            "recompute_queued",
            extra={
                "admission_id": str(admission_id),
                "attempts": entry.attempts,
                "error": message,
            },
        )
        return entry

    def discard(self, admission_id: UUID) -> bool:
        """Drop the queue row after an out-of-band successful recompute."""
        entry = self.get(admission_id)
        if entry is None:
            return False
        self._session.delete(entry)
        self._session.flush()
        logger.info("recompute_dequeued", extra={"admission_id": str(admission_id)})
        return True

    def retry(self, entry: PendingRecompute) -> bool:
        """
        Re-run one queued recompute.

        Returns:
            True when the recompute succeeded and the entry was removed.

        Raises:
            RecomputeRetryExhaustedError: entry already at ``max_attempts``.
        """
        if entry.attempts >= self._max_attempts:
            raise RecomputeRetryExhaustedError(entry.admission_id, entry.attempts, entry.last_error)

        admission_id = entry.admission_id
        savepoint = self._session.begin_nested()
        try:
            self._aggregator.recompute(admission_id)
            savepoint.commit()
        except Exception as exc:
            savepoint.rollback()
            entry.attempts += 1
            entry.last_error = str(exc)[:_ERROR_LIMIT]
            entry.last_attempted_at = self._clock.now()
            self._session.flush()
            logger.warning(
                "recompute_retry_failed",
                extra={
                    "admission_id": str(admission_id),
                    "attempts": entry.attempts,
                    "error": entry.last_error,
                },
            )
            return False

        self._session.delete(entry)
        self._session.flush()
        logger.info("recompute_retry_succeeded", extra={"admission_id": str(admission_id)})
        return True

    def drain(self) -> DrainResult:
        """Retry every queued recompute once."""
        result = DrainResult()
        for entry in self.pending():
            admission_id = entry.admission_id
            try:
                if self.retry(entry):
                    result.recomputed.append(admission_id)
                else:
                    result.failed.append(admission_id)
            except RecomputeRetryExhaustedError as exc:
                logger.error(
                    "recompute_retry_exhausted",
                    extra={
                        "admission_id": str(admission_id),
                        "attempts": exc.attempts,
                        "error_code": exc.code,
                    },
                )
                result.exhausted.append(admission_id)

        logger.info(
            "recompute_queue_drained",
            extra={
                "recomputed": len(result.recomputed),
                "failed": len(result.failed),
                "exhausted": len(result.exhausted),
            },
        )
        return result
