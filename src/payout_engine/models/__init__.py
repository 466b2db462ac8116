"""SQLAlchemy models for payout engine."""

from payout_engine.models.base import Base, TimestampMixin
from payout_engine.models.payroll import (
    EmployeeNotification,
    PayrollRule,
    PayrollTransaction,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "EmployeeNotification",
    "PayrollRule",
    "PayrollTransaction",
]
