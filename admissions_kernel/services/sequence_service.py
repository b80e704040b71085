"""
Named counters for everything the ledger numbers.

Scopes in use:
    voucher:{BRANCH_CODE}:{YEAR}   voucher numbers
    admission:{YEAR}               admission numbers
    cashbook:{BRANCH_ID}           cashbook seq (and the per-branch append lock)

Each scope is one ``sequence_counters`` row.  ``next_value`` locks it with
``SELECT ... FOR UPDATE`` and increments it, so the lock is held until the
caller's transaction ends and a rollback gives the value back.

A scope created after numbers were already issued (data migrated from
elsewhere) can be seeded with the count already used.  Two transactions may
race to create the same row; the loser's insert fails inside a savepoint and
it falls back to locking the winner's row.
"""

from collections.abc import Callable

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from admissions_kernel.logging_config import get_logger
from admissions_kernel.models import SequenceCounter

logger = get_logger("services.sequence")


class SequenceService:
    def __init__(self, session: Session):
        self._session = session

    def _lock(self, name: str) -> SequenceCounter | None:
        stmt = (
            select(SequenceCounter)
            .where(SequenceCounter.name == name)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self._session.execute(stmt).scalar_one_or_none()

    def _try_create(self, name: str, first: int) -> bool:
        savepoint = self._session.begin_nested()
        try:
            self._session.add(SequenceCounter(name=name, current_value=first))
            self._session.flush()
        except IntegrityError:
            savepoint.rollback()
            logger.debug("sequence_counter_race_retry", extra={"sequence_name": name})
            return False
        savepoint.commit()
        return True

    def next_value(self, name: str, seed: Callable[[], int] | None = None) -> int:
        """
        Allocate the next value (>= 1) of scope ``name``.

        ``seed`` is only consulted when the scope has no row yet and returns
        how many values existing data has already consumed.
        """
        counter = self._lock(name)
        if counter is None:
            first = (seed() if seed else 0) + 1
            if self._try_create(name, first):
                logger.debug(
                    "sequence_allocated",
                    extra={"sequence_name": name, "value": first, "seeded": seed is not None},
                )
                return first
            counter = self._lock(name)
            if counter is None:
                raise RuntimeError(f"sequence counter {name!r} vanished after a creation race")

        counter.current_value += 1
        self._session.flush()
        logger.debug("sequence_allocated", extra={"sequence_name": name, "value": counter.current_value})
        return counter.current_value

    def current_value(self, name: str) -> int | None:
        """Last value handed out, without locking; None for an unused scope."""
        return self._session.execute(
            select(SequenceCounter.current_value).where(SequenceCounter.name == name)
        ).scalar_one_or_none()

    def reset(self, name: str, value: int = 0) -> None:
        """Set a scope's last value.  Data repair and tests only."""
        counter = self._lock(name)
        if counter is None:
            self._session.add(SequenceCounter(name=name, current_value=value))
        else:
            counter.current_value = value
        self._session.flush()
