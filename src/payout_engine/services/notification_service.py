"""Payout notifications for employees and agents."""

from __future__ import annotations

import logging
from enum import Enum
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from payout_engine.errors import RemoteStoreError
from payout_engine.models import EmployeeNotification, PayrollTransaction
from payout_engine.store import PayrollStore
from payout_engine.types import Payee, PayeeType

logger = logging.getLogger(__name__)


class NotificationType(str, Enum):
    """Notification kinds, one per transaction status change."""

    PAYOUT_CREATED = "payout_created"
    PAYOUT_APPROVED = "payout_approved"
    PAYOUT_PAID = "payout_paid"
    PAYOUT_FAILED = "payout_failed"


def render_notification(
    notification_type: NotificationType,
    transaction: PayrollTransaction,
) -> tuple[str, str]:
    """Build the title and message for a notification."""
    amount = f"${transaction.final_amount:,.2f}"
    period = f"{transaction.period_start.isoformat()} to {transaction.period_end.isoformat()}"

    if notification_type == NotificationType.PAYOUT_CREATED:
        return (
            "New payout created",
            f"A payout of {amount} for {period} has been created and is awaiting approval.",
        )
    if notification_type == NotificationType.PAYOUT_APPROVED:
        return (
            "Payout approved",
            f"Your payout of {amount} for {period} has been approved and is queued for payment.",
        )
    if notification_type == NotificationType.PAYOUT_PAID:
        method = (transaction.payment_method or "").upper()
        message = f"Your payout of {amount} was sent via {method}."
        if transaction.payment_reference:
            message += f" Reference: {transaction.payment_reference}."
        if transaction.settlement_status == "pending":
            message += " Funds may take a few business days to arrive."
        return ("Payout sent", message)

    reason = transaction.failure_reason or "unknown error"
    return (
        "Payout failed",
        f"Your payout of {amount} for {period} could not be paid: {reason}",
    )


class NotificationService:
    """Creates and reads payout notifications.

    Emitting is best-effort: a failure to store a notification is logged and
    never propagates to the caller.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.store = PayrollStore(session)

    async def emit(
        self,
        recipient: Payee,
        notification_type: NotificationType,
        transaction: PayrollTransaction,
    ) -> EmployeeNotification | None:
        """Record a notification for a transaction status change."""
        try:
            title, message = render_notification(notification_type, transaction)
            notification = EmployeeNotification(
                employee_id=recipient.employee_id,
                agent_id=recipient.agent_id,
                payroll_transaction_id=transaction.id,
                notification_type=notification_type.value,
                title=title,
                message=message,
            )
            async with self.store.savepoint():
                await self.store.insert(notification)
        except Exception:
            logger.warning(
                "Failed to store %s notification for transaction %s",
                notification_type.value,
                transaction.id,
                exc_info=True,
            )
            return None
        return notification

    async def list_notifications(
        self,
        recipient: Payee | None = None,
        unread_only: bool = False,
        limit: int | None = None,
    ) -> list[EmployeeNotification]:
        """List notifications, newest first."""
        criteria = self._recipient_criteria(recipient)
        if unread_only:
            criteria.append(EmployeeNotification.is_read.is_(False))
        return await self.store.list(
            EmployeeNotification,
            *criteria,
            order_by=(EmployeeNotification.created_at.desc(),),
            limit=limit,
        )

    async def list_for_transaction(self, transaction_id: UUID) -> list[EmployeeNotification]:
        return await self.store.list(
            EmployeeNotification,
            EmployeeNotification.payroll_transaction_id == transaction_id,
            order_by=(EmployeeNotification.created_at,),
        )

    async def unread_count(self, recipient: Payee | None = None) -> int:
        criteria = self._recipient_criteria(recipient)
        criteria.append(EmployeeNotification.is_read.is_(False))
        try:
            result = await self.session.scalar(
                select(func.count()).select_from(EmployeeNotification).where(*criteria)
            )
        except SQLAlchemyError as e:
            raise RemoteStoreError(str(e)) from e
        return result or 0

    async def mark_read(self, notification_id: UUID) -> EmployeeNotification:
        """Mark a notification as read. Already-read notifications are returned as is."""
        notification = await self.store.get(EmployeeNotification, notification_id)
        if not notification.is_read:
            await self.store.update(notification, is_read=True)
        return notification

    @staticmethod
    def _recipient_criteria(recipient: Payee | None) -> list:
        if recipient is None:
            return []
        if recipient.kind == PayeeType.EMPLOYEE:
            return [EmployeeNotification.employee_id == recipient.id]
        return [EmployeeNotification.agent_id == recipient.id]
