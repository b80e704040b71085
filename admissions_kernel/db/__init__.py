"""Database layer - engine, base classes and money types."""

from admissions_kernel.db.base import UUID, Base, SoftDeleteMixin, TrackedBase, UUIDString
from admissions_kernel.db.engine import create_tables, get_engine, get_session
from admissions_kernel.db.types import Money, clamp_non_negative, round_money, to_money

__all__ = [
    "get_engine",
    "get_session",
    "create_tables",
    "Base",
    "TrackedBase",
    "SoftDeleteMixin",
    "UUIDString",
    "UUID",
    "Money",
    "round_money",
    "to_money",
    "clamp_non_negative",
]
