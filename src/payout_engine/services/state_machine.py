"""Payroll transaction state machine with transition validation."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from payout_engine.errors import InvalidStateError

if TYPE_CHECKING:
    from payout_engine.models import PayrollTransaction


class TransactionStatus(str, Enum):
    """Payroll transaction status values."""

    PENDING = "pending"
    PROCESSED = "processed"
    PAID = "paid"
    FAILED = "failed"


class SettlementStatus(str, Enum):
    """Settlement progress of a paid transaction."""

    PENDING = "pending"
    SETTLED = "settled"


class TransactionStateMachine:
    """State machine for payroll transaction status transitions.

    Allowed transitions:
    - pending → processed (approve)
    - pending → failed
    - processed → paid (payment dispatched)
    - processed → failed (payment dispatch failed)
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        TransactionStatus.PENDING: [TransactionStatus.PROCESSED, TransactionStatus.FAILED],
        TransactionStatus.PROCESSED: [TransactionStatus.PAID, TransactionStatus.FAILED],
        TransactionStatus.PAID: [],  # Terminal state
        TransactionStatus.FAILED: [],  # Terminal state
    }

    # Statuses where amounts, hours and period can still be edited
    AMOUNTS_MUTABLE = {
        TransactionStatus.PENDING,
        TransactionStatus.PROCESSED,
    }

    TERMINAL = {
        TransactionStatus.PAID,
        TransactionStatus.FAILED,
    }

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(
        cls,
        from_status: str,
        to_status: str,
        transaction: PayrollTransaction | None = None,
    ) -> None:
        """Validate a transition, raising InvalidStateError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidStateError(
                getattr(from_status, "value", from_status),
                getattr(to_status, "value", to_status),
                transaction_id=transaction.id if transaction is not None else None,
            )

    @classmethod
    def is_terminal(cls, status: str) -> bool:
        return status in cls.TERMINAL

    @classmethod
    def can_edit_amounts(cls, status: str) -> bool:
        """Check if amounts and inputs can still be modified."""
        return status in cls.AMOUNTS_MUTABLE

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        """Get list of valid next statuses from current status."""
        return cls.VALID_TRANSITIONS.get(current_status, [])
