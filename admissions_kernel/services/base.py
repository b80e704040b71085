"""
Common base for the kernel's write services.

Services write through the caller's Session and only ever ``flush()``.  The
AdmissionsLedger facade (or a test) owns commit and rollback, which is what
lets a payment, its voucher, daybook and cashbook rows and the admission
recompute land in one transaction.  Reads belong to selectors/.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from admissions_kernel.db.base import Base
from admissions_kernel.domain.clock import Clock, SystemClock

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()
