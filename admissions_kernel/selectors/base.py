"""
Module: admissions_kernel.selectors.base
Responsibility: Abstract base class for all read-only query selectors, plus
    the soft-delete filter and pagination every selector shares.
Architecture position: Kernel > Selectors.  May import from db/, models/ and
    domain/.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only access: selectors MUST NOT call session.add(), delete(),
      commit() or flush().
    - Soft-deleted rows are invisible unless ``include_deleted=True``.
    - ``limit`` is clamped to ``max_limit``; ``page`` is 1-based.
"""

from abc import ABC
from typing import Any, Generic, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

from admissions_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 100


class BaseSelector(ABC, Generic[ModelType]):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session from the caller, perform read-only queries,
        and return ORM rows (to services) or DTOs (to the facade).  They MUST
        NOT mutate any data.
    """

    model: type[ModelType]

    def __init__(
        self,
        session: Session,
        max_limit: int = MAX_LIMIT,
        default_limit: int = DEFAULT_LIMIT,
    ):
        self.session = session
        self.max_limit = max_limit
        self.default_limit = min(default_limit, max_limit)

    def _live(self, stmt: Select, include_deleted: bool = False) -> Select:
        if include_deleted:
            return stmt
        return stmt.where(self.model.is_deleted.is_(False))

    def get(self, entity_id: Any, include_deleted: bool = False) -> ModelType | None:
        stmt = self._live(select(self.model).where(self.model.id == entity_id), include_deleted)
        return self.session.execute(stmt).scalar_one_or_none()

    def normalize_paging(self, page: int | None, limit: int | None) -> tuple[int, int]:
        page = page if page and page > 0 else DEFAULT_PAGE
        limit = limit if limit and limit > 0 else self.default_limit
        return page, min(limit, self.max_limit)

    def _paginate(self, stmt: Select, page: int | None, limit: int | None) -> tuple[list, int, int, int]:
        """Run ``stmt`` for one page.  Returns (rows, total, page, limit)."""
        page, limit = self.normalize_paging(page, limit)
        total = self.session.execute(
            select(func.count()).select_from(stmt.order_by(None).subquery())
        ).scalar_one()
        rows = list(
            self.session.execute(stmt.offset((page - 1) * limit).limit(limit)).scalars()
        )
        return rows, total, page, limit


def date_range(stmt: Select, column: Any, start: Any = None, end: Any = None) -> Select:
    """Restrict ``stmt`` to ``start <= column <= end`` (either bound optional)."""
    if start is not None:
        stmt = stmt.where(column >= start)
    if end is not None:
        stmt = stmt.where(column <= end)
    return stmt
