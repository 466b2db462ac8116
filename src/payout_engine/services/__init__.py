"""Payout engine services."""

from payout_engine.services.state_machine import (
    SettlementStatus,
    TransactionStateMachine,
    TransactionStatus,
)
from payout_engine.services.notification_service import NotificationService, NotificationType
from payout_engine.services.rule_service import PayrollRuleService
from payout_engine.services.transaction_service import (
    BulkApprovalResult,
    PayrollSummary,
    PayrollTransactionService,
    TransactionFilter,
)

__all__ = [
    "SettlementStatus",
    "TransactionStateMachine",
    "TransactionStatus",
    "NotificationService",
    "NotificationType",
    "PayrollRuleService",
    "BulkApprovalResult",
    "PayrollSummary",
    "PayrollTransactionService",
    "TransactionFilter",
]
