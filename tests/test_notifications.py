"""Tests for payout notifications."""

import logging
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from payout_engine.errors import NotFoundError
from payout_engine.models import PayrollTransaction
from payout_engine.services import NotificationType
from payout_engine.services.notification_service import render_notification
from payout_engine.types import Payee


def unsaved_transaction(**fields) -> PayrollTransaction:
    defaults = dict(
        id=uuid4(),
        employee_id=uuid4(),
        amount=Decimal("100.00"),
        final_amount=Decimal("1234.50"),
        period_start=date(2024, 6, 1),
        period_end=date(2024, 6, 30),
        status="pending",
    )
    defaults.update(fields)
    return PayrollTransaction(**defaults)


class TestRenderNotification:
    def test_created(self):
        title, message = render_notification(
            NotificationType.PAYOUT_CREATED, unsaved_transaction()
        )

        assert title == "New payout created"
        assert "$1,234.50" in message
        assert "2024-06-01 to 2024-06-30" in message

    def test_paid_with_pending_settlement(self):
        transaction = unsaved_transaction(
            payment_method="ach", payment_reference="ACH-1", settlement_status="pending"
        )

        title, message = render_notification(NotificationType.PAYOUT_PAID, transaction)

        assert title == "Payout sent"
        assert "via ACH" in message
        assert "Reference: ACH-1" in message
        assert "few business days" in message

    def test_failed_includes_reason(self):
        transaction = unsaved_transaction(failure_reason="invalid recipient")

        title, message = render_notification(NotificationType.PAYOUT_FAILED, transaction)

        assert title == "Payout failed"
        assert message.endswith("invalid recipient")


class TestNotificationService:
    """Test storing and reading notifications."""

    @pytest.mark.asyncio
    async def test_emit_failure_is_logged_not_raised(self, session, notifier, service, caplog):
        orphan = unsaved_transaction()

        with caplog.at_level(logging.WARNING, logger="payout_engine.services.notification_service"):
            result = await notifier.emit(orphan.payee, NotificationType.PAYOUT_CREATED, orphan)

        assert result is None
        assert "Failed to store payout_created notification" in caplog.text

        # The session is still usable afterwards
        transaction = await service.create(
            Payee.employee(uuid4()),
            amount=Decimal("10"),
            period_start=date(2024, 6, 1),
            period_end=date(2024, 6, 30),
        )
        assert transaction.status == "pending"

    @pytest.mark.asyncio
    async def test_list_and_unread_count(self, notifier, service, employee_id):
        payee = Payee.employee(employee_id)
        transaction = await service.create(
            payee,
            amount=Decimal("10"),
            period_start=date(2024, 6, 1),
            period_end=date(2024, 6, 30),
        )
        await service.approve(transaction.id, "admin1")
        await service.create(
            Payee.employee(uuid4()),
            amount=Decimal("10"),
            period_start=date(2024, 6, 1),
            period_end=date(2024, 6, 30),
        )

        mine = await notifier.list_notifications(recipient=payee)

        assert len(mine) == 2
        assert await notifier.unread_count(payee) == 2
        assert await notifier.unread_count() == 3

    @pytest.mark.asyncio
    async def test_mark_read_is_idempotent(self, notifier, service, employee_id):
        payee = Payee.employee(employee_id)
        await service.create(
            payee,
            amount=Decimal("10"),
            period_start=date(2024, 6, 1),
            period_end=date(2024, 6, 30),
        )
        (notification,) = await notifier.list_notifications(recipient=payee)

        await notifier.mark_read(notification.id)
        again = await notifier.mark_read(notification.id)

        assert again.is_read is True
        assert await notifier.unread_count(payee) == 0
        assert await notifier.list_notifications(recipient=payee, unread_only=True) == []

    @pytest.mark.asyncio
    async def test_list_for_transaction(self, notifier, service, employee_id):
        transaction = await service.create(
            Payee.employee(employee_id),
            amount=Decimal("10"),
            period_start=date(2024, 6, 1),
            period_end=date(2024, 6, 30),
        )
        await service.approve(transaction.id, "admin1")

        notifications = await notifier.list_for_transaction(transaction.id)

        assert {n.notification_type for n in notifications} == {
            "payout_created",
            "payout_approved",
        }
        assert await notifier.list_for_transaction(uuid4()) == []

    @pytest.mark.asyncio
    async def test_mark_read_missing_raises(self, notifier):
        with pytest.raises(NotFoundError):
            await notifier.mark_read(uuid4())
