"""Tests for payroll transaction state machine."""

import pytest

from payout_engine.errors import InvalidStateError
from payout_engine.services.state_machine import TransactionStateMachine, TransactionStatus


class TestTransactionStateMachine:
    """Test state machine transitions."""

    def test_valid_transitions(self):
        """Test that valid transitions are allowed."""
        # pending → processed (approve)
        assert TransactionStateMachine.can_transition("pending", "processed") is True

        # processed → paid
        assert TransactionStateMachine.can_transition("processed", "paid") is True

        # processed → failed
        assert TransactionStateMachine.can_transition("processed", "failed") is True

        # pending → failed
        assert TransactionStateMachine.can_transition("pending", "failed") is True

    def test_invalid_transitions(self):
        """Test that invalid transitions are blocked."""
        # Can't pay without approval
        assert TransactionStateMachine.can_transition("pending", "paid") is False

        # Can't go backwards
        assert TransactionStateMachine.can_transition("processed", "pending") is False

        # Paid and failed are terminal
        assert TransactionStateMachine.can_transition("paid", "failed") is False
        assert TransactionStateMachine.can_transition("paid", "pending") is False
        assert TransactionStateMachine.can_transition("failed", "pending") is False
        assert TransactionStateMachine.can_transition("failed", "processed") is False

    def test_unknown_status_has_no_transitions(self):
        assert TransactionStateMachine.can_transition("draft", "pending") is False
        assert TransactionStateMachine.get_next_statuses("draft") == []

    def test_validate_transition_raises(self):
        """Test that validate_transition raises for invalid transitions."""
        with pytest.raises(InvalidStateError) as exc_info:
            TransactionStateMachine.validate_transition("pending", "paid")

        assert exc_info.value.from_status == "pending"
        assert exc_info.value.to_status == "paid"

    def test_validate_transition_accepts_enum_members(self):
        TransactionStateMachine.validate_transition(
            TransactionStatus.PENDING, TransactionStatus.PROCESSED
        )

        with pytest.raises(InvalidStateError) as exc_info:
            TransactionStateMachine.validate_transition(
                TransactionStatus.PAID, TransactionStatus.PENDING
            )
        assert exc_info.value.from_status == "paid"

    def test_terminal_statuses(self):
        assert TransactionStateMachine.is_terminal("paid") is True
        assert TransactionStateMachine.is_terminal("failed") is True
        assert TransactionStateMachine.is_terminal("pending") is False
        assert TransactionStateMachine.is_terminal("processed") is False

    def test_can_edit_amounts(self):
        assert TransactionStateMachine.can_edit_amounts("pending") is True
        assert TransactionStateMachine.can_edit_amounts("processed") is True
        assert TransactionStateMachine.can_edit_amounts("paid") is False
        assert TransactionStateMachine.can_edit_amounts("failed") is False

    def test_get_next_statuses(self):
        assert set(TransactionStateMachine.get_next_statuses("pending")) == {
            "processed",
            "failed",
        }
        assert TransactionStateMachine.get_next_statuses("paid") == []
