"""Tests for the payroll transaction lifecycle."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from payout_engine.errors import (
    InvalidStateError,
    NotFoundError,
    UnsupportedMethodError,
    ValidationError,
)
from payout_engine.payments import PaymentMethod
from payout_engine.services import PayrollTransactionService, TransactionFilter
from payout_engine.services.transaction_service import created_window, summarize
from payout_engine.types import Payee

JUNE_START = date(2024, 6, 1)
JUNE_END = date(2024, 6, 30)


async def create_pending(service, payee=None, amount="100.00", **kwargs):
    return await service.create(
        payee or Payee.employee(uuid4()),
        amount=Decimal(amount),
        period_start=JUNE_START,
        period_end=JUNE_END,
        **kwargs,
    )


async def create_processed(service, **kwargs):
    transaction = await create_pending(service, **kwargs)
    return await service.approve(transaction.id, "admin1")


async def notification_types(notifier, transaction_id):
    return [n.notification_type for n in await notifier.list_for_transaction(transaction_id)]


class TestCreate:
    """Test transaction creation."""

    @pytest.mark.asyncio
    async def test_create_applies_service_rule(
        self, service, make_rule, employee_id, service_id
    ):
        rule = await make_rule(service_id=service_id, amount=Decimal("20"))

        transaction = await create_pending(
            service, payee=Payee.employee(employee_id), amount="500", service_id=service_id
        )

        assert transaction.status == "pending"
        assert transaction.final_amount == Decimal("100.00")
        assert transaction.calculated_amount == Decimal("100.00")
        assert transaction.payroll_rule_id == rule.id
        assert transaction.employee_id == employee_id
        assert transaction.agent_id is None

    @pytest.mark.asyncio
    async def test_create_without_rule_keeps_amount(self, service):
        transaction = await create_pending(service, amount="250.00")

        assert transaction.final_amount == Decimal("250.00")
        assert transaction.calculated_amount is None
        assert transaction.payroll_rule_id is None

    @pytest.mark.asyncio
    async def test_percentage_applies_to_service_value(self, service, make_rule, service_id):
        await make_rule(service_id=service_id, amount=Decimal("10"))

        transaction = await create_pending(
            service, amount="50", service_id=service_id, service_value=Decimal("200")
        )

        assert transaction.final_amount == Decimal("20.00")

    @pytest.mark.asyncio
    async def test_rule_evaluated_on_period_end(self, service, make_rule, service_id):
        await make_rule(
            service_id=service_id, amount=Decimal("50"), effective_date=date(2024, 6, 15)
        )

        transaction = await create_pending(service, amount="100", service_id=service_id)

        assert transaction.final_amount == Decimal("50.00")

    @pytest.mark.asyncio
    async def test_manual_final_amount_skips_resolver(self, service, make_rule, service_id):
        await make_rule(service_id=service_id, amount=Decimal("20"))

        transaction = await create_pending(
            service, amount="500", service_id=service_id, final_amount=Decimal("321.00")
        )

        assert transaction.final_amount == Decimal("321.00")
        assert transaction.payroll_rule_id is None

    @pytest.mark.asyncio
    async def test_agent_payee(self, service, agent_id, notifier):
        transaction = await create_pending(service, payee=Payee.agent(agent_id))

        assert transaction.agent_id == agent_id
        assert transaction.employee_id is None
        assert transaction.payee == Payee.agent(agent_id)
        notifications = await notifier.list_notifications(recipient=Payee.agent(agent_id))
        assert [n.notification_type for n in notifications] == ["payout_created"]

    @pytest.mark.asyncio
    async def test_create_rejects_non_positive_amount(self, service):
        with pytest.raises(ValidationError) as exc_info:
            await create_pending(service, amount="0")

        assert "Amount must be greater than zero" in exc_info.value.errors

    @pytest.mark.asyncio
    async def test_create_rejects_zero_final_amount(self, service):
        with pytest.raises(ValidationError) as exc_info:
            await create_pending(service, final_amount=Decimal("0"))

        assert "Final amount must be greater than zero" in exc_info.value.errors

    @pytest.mark.asyncio
    async def test_create_rejects_inverted_period(self, service):
        with pytest.raises(ValidationError):
            await service.create(
                Payee.employee(uuid4()),
                amount=Decimal("10"),
                period_start=JUNE_END,
                period_end=JUNE_START,
            )

    @pytest.mark.asyncio
    async def test_create_from_refs_requires_exactly_one_payee(self, service):
        with pytest.raises(ValidationError):
            await service.create_from_refs(
                uuid4(), uuid4(),
                amount=Decimal("10"), period_start=JUNE_START, period_end=JUNE_END,
            )
        with pytest.raises(ValidationError):
            await service.create_from_refs(
                None, None,
                amount=Decimal("10"), period_start=JUNE_START, period_end=JUNE_END,
            )

    @pytest.mark.asyncio
    async def test_create_emits_created_notification(self, service, notifier):
        transaction = await create_pending(service)

        assert await notification_types(notifier, transaction.id) == ["payout_created"]


class TestAutoGeneratePayout:
    """Test payouts generated from paid invoices and completed jobs."""

    @pytest.mark.asyncio
    async def test_invoice_payout_uses_service_value(
        self, service, make_rule, employee_id, service_id
    ):
        await make_rule(role="service_agent", amount=Decimal("20"))

        transaction = await service.auto_generate_payout(
            service_id=service_id,
            employee_id=employee_id,
            service_value=Decimal("1000"),
            role="service_agent",
            on_date=JUNE_START,
        )

        assert transaction.final_amount == Decimal("200.00")
        assert transaction.period_start == transaction.period_end == JUNE_START
        assert str(service_id) in transaction.notes

    @pytest.mark.asyncio
    async def test_job_payout_uses_hourly_rule(self, service, make_rule, employee_id):
        await make_rule(
            role="developer", rate_type="hourly", is_percentage=False, amount=Decimal("75")
        )

        transaction = await service.auto_generate_payout(
            employee_id=employee_id,
            hours_worked=Decimal("8"),
            role="developer",
            on_date=JUNE_START,
        )

        assert transaction.amount == Decimal("600.00")
        assert transaction.final_amount == Decimal("600.00")
        assert transaction.notes == "Auto-generated payout for completed job"

    @pytest.mark.asyncio
    async def test_job_payout_without_rule_is_rejected(self, service, agent_id):
        with pytest.raises(ValidationError):
            await service.auto_generate_payout(agent_id=agent_id, on_date=JUNE_START)


class TestApprove:
    """Test approval and bulk approval."""

    @pytest.mark.asyncio
    async def test_approve_records_approver(self, service, notifier):
        transaction = await create_pending(service)

        approved = await service.approve(transaction.id, "admin1")

        assert approved.status == "processed"
        assert approved.approved_by == "admin1"
        assert approved.approved_at is not None
        assert await notification_types(notifier, transaction.id) == [
            "payout_created",
            "payout_approved",
        ]

    @pytest.mark.asyncio
    async def test_approve_twice_is_idempotent(self, service, notifier):
        transaction = await create_pending(service)

        first = await service.approve(transaction.id, "admin1")
        first_state = (first.status, first.approved_by, first.version)
        second = await service.approve(transaction.id, "admin2")

        assert second.id == first.id
        assert (second.status, second.approved_by, second.version) == (
            first_state
        )
        types = await notification_types(notifier, transaction.id)
        assert types.count("payout_approved") == 1

    @pytest.mark.asyncio
    async def test_approve_paid_transaction_raises(self, service):
        transaction = await create_processed(service)
        await service.mark_paid(transaction.id, "zelle")

        with pytest.raises(InvalidStateError):
            await service.approve(transaction.id, "admin1")

    @pytest.mark.asyncio
    async def test_approve_missing_transaction_raises(self, service):
        with pytest.raises(NotFoundError):
            await service.approve(uuid4(), "admin1")

    @pytest.mark.asyncio
    async def test_bulk_approve_partial_failure(self, service):
        first = await create_pending(service)
        second = await create_pending(service)
        already = await create_processed(service)

        result = await service.bulk_approve([first.id, already.id, second.id], "admin1")

        assert {t.id for t in result.approved} == {first.id, second.id}
        assert [item.transaction_id for item in result.failed] == [already.id]
        assert "processed" in result.failed[0].error
        assert (await service.get(first.id)).status == "processed"
        assert (await service.get(second.id)).status == "processed"

    @pytest.mark.asyncio
    async def test_bulk_approve_reports_missing_ids(self, service):
        transaction = await create_pending(service)
        missing = uuid4()

        result = await service.bulk_approve([missing, transaction.id], "admin1")

        assert [t.id for t in result.approved] == [transaction.id]
        assert result.failed[0].transaction_id == missing


class TestMarkPaid:
    """Test payment dispatch and recording."""

    @pytest.mark.asyncio
    async def test_pay_pending_transaction_raises_and_leaves_record(
        self, service, dispatcher
    ):
        transaction = await create_pending(service)

        with pytest.raises(InvalidStateError):
            await service.mark_paid(transaction.id, "ach")

        reloaded = await service.get(transaction.id)
        assert reloaded.status == "pending"
        assert reloaded.payment_method is None
        assert reloaded.payment_date is None
        assert dispatcher.backend_for("ach").dispatched == []

    @pytest.mark.asyncio
    async def test_completed_dispatch_settles_immediately(self, service, notifier):
        transaction = await create_processed(service)

        paid = await service.mark_paid(transaction.id, PaymentMethod.WIRE)

        assert paid.status == "paid"
        assert paid.payment_method == "wire"
        assert paid.settlement_status == "settled"
        assert paid.payment_reference == f"WIRE-{transaction.id}"
        assert paid.payment_date is not None
        types = await notification_types(notifier, transaction.id)
        assert types[-1] == "payout_paid"

    @pytest.mark.asyncio
    async def test_caller_reference_is_kept(self, service):
        transaction = await create_processed(service)

        paid = await service.mark_paid(transaction.id, "check", reference="CHK-10042")

        assert paid.payment_reference == "CHK-10042"
        assert paid.settlement_status == "pending"

    @pytest.mark.asyncio
    async def test_pay_twice_dispatches_once(self, service, dispatcher):
        transaction = await create_processed(service)

        await service.mark_paid(transaction.id, "zelle")
        again = await service.mark_paid(transaction.id, "zelle")

        assert again.status == "paid"
        assert len(dispatcher.backend_for("zelle").dispatched) == 1

    @pytest.mark.asyncio
    async def test_unsupported_method_leaves_record(self, service):
        transaction = await create_processed(service)

        with pytest.raises(UnsupportedMethodError):
            await service.mark_paid(transaction.id, "paypal")

        assert (await service.get(transaction.id)).status == "processed"

    @pytest.mark.asyncio
    async def test_dispatch_failure_marks_failed(self, session, failing_dispatcher, notifier):
        service = PayrollTransactionService(
            session, dispatcher=failing_dispatcher, notifier=notifier
        )
        transaction = await create_processed(service)

        failed = await service.mark_paid(transaction.id, "ach")

        assert failed.status == "failed"
        assert failed.payment_method == "ach"
        assert "ACH transfer failed" in failed.failure_reason
        assert failed.payment_date is None
        types = await notification_types(notifier, transaction.id)
        assert types[-1] == "payout_failed"

    @pytest.mark.asyncio
    async def test_zero_rule_amount_fails_payment(
        self, service, make_rule, notifier, dispatcher, service_id
    ):
        await make_rule(service_id=service_id, amount=Decimal("0"))
        transaction = await create_processed(service, service_id=service_id)
        assert transaction.final_amount == Decimal("0.00")

        failed = await service.mark_paid(transaction.id, "zelle")

        assert failed.status == "failed"
        assert "greater than zero" in failed.failure_reason
        assert dispatcher.backend_for("zelle").dispatched == []
        types = await notification_types(notifier, transaction.id)
        assert types[-1] == "payout_failed"

    @pytest.mark.asyncio
    async def test_failed_transaction_cannot_be_paid(self, session, failing_dispatcher, notifier):
        service = PayrollTransactionService(
            session, dispatcher=failing_dispatcher, notifier=notifier
        )
        transaction = await create_processed(service)
        await service.mark_paid(transaction.id, "wire")

        with pytest.raises(InvalidStateError):
            await service.mark_paid(transaction.id, "wire")

    @pytest.mark.asyncio
    async def test_confirm_settlement(self, service):
        transaction = await create_processed(service)
        await service.mark_paid(transaction.id, "ach")

        settled = await service.confirm_settlement(transaction.id)
        again = await service.confirm_settlement(transaction.id)

        assert settled.settlement_status == "settled"
        assert again.settlement_status == "settled"

    @pytest.mark.asyncio
    async def test_confirm_settlement_requires_paid(self, service):
        transaction = await create_processed(service)

        with pytest.raises(InvalidStateError):
            await service.confirm_settlement(transaction.id)


class TestScenario:
    """End-to-end payout for a service invoice."""

    @pytest.mark.asyncio
    async def test_service_payout_through_ach(
        self, service, make_rule, notifier, employee_id, service_id
    ):
        await make_rule(
            service_id=service_id,
            rate_type="percentage",
            amount=Decimal("20"),
            is_percentage=True,
            effective_date=date(2024, 1, 1),
        )

        transaction = await service.create(
            Payee.employee(employee_id),
            amount=Decimal("500"),
            period_start=JUNE_START,
            period_end=JUNE_END,
            service_id=service_id,
        )
        assert transaction.final_amount == Decimal("100.00")
        assert transaction.status == "pending"

        transaction = await service.approve(transaction.id, "admin1")
        assert transaction.status == "processed"
        assert transaction.approved_by == "admin1"

        transaction = await service.mark_paid(transaction.id, "ach")
        assert transaction.status == "paid"
        assert transaction.payment_method == "ach"
        assert transaction.settlement_status == "pending"
        assert transaction.final_amount == Decimal("100.00")

        transaction = await service.confirm_settlement(transaction.id)
        assert transaction.settlement_status == "settled"

        notifications = await notifier.list_notifications(
            recipient=Payee.employee(employee_id)
        )
        assert sorted(n.notification_type for n in notifications) == [
            "payout_approved",
            "payout_created",
            "payout_paid",
        ]


class TestUpdate:
    """Test edits and amount immutability."""

    @pytest.mark.asyncio
    async def test_amount_edit_reapplies_rule(self, service, make_rule, service_id):
        await make_rule(service_id=service_id, amount=Decimal("10"))
        transaction = await create_pending(service, amount="100", service_id=service_id)

        updated = await service.update(transaction.id, amount=Decimal("300"))

        assert updated.amount == Decimal("300.00")
        assert updated.final_amount == Decimal("30.00")

    @pytest.mark.asyncio
    async def test_service_change_drops_unmatched_rule(
        self, service, make_rule, service_id
    ):
        await make_rule(service_id=service_id, amount=Decimal("20"))
        transaction = await create_pending(service, amount="500", service_id=service_id)
        assert transaction.final_amount == Decimal("100.00")

        updated = await service.update(
            transaction.id, service_id=uuid4(), amount=Decimal("400")
        )

        assert updated.final_amount == Decimal("400.00")
        assert updated.calculated_amount is None
        assert updated.payroll_rule_id is None

    @pytest.mark.asyncio
    async def test_service_change_applies_new_service_rule(
        self, service, make_rule, service_id
    ):
        await make_rule(service_id=service_id, amount=Decimal("20"))
        other_service = uuid4()
        other_rule = await make_rule(service_id=other_service, amount=Decimal("10"))
        transaction = await create_pending(service, amount="500", service_id=service_id)

        updated = await service.update(transaction.id, service_id=other_service)

        assert updated.final_amount == Decimal("50.00")
        assert updated.payroll_rule_id == other_rule.id

    @pytest.mark.asyncio
    async def test_period_past_rule_expiration_drops_rule(
        self, service, make_rule, service_id
    ):
        await make_rule(
            service_id=service_id, amount=Decimal("20"), expiration_date=JUNE_END
        )
        transaction = await create_pending(service, amount="500", service_id=service_id)
        assert transaction.final_amount == Decimal("100.00")

        updated = await service.update(transaction.id, period_end=date(2024, 7, 31))

        assert updated.final_amount == Decimal("500.00")
        assert updated.payroll_rule_id is None

    @pytest.mark.asyncio
    async def test_zero_final_amount_edit_rejected(self, service):
        transaction = await create_pending(service)

        with pytest.raises(ValidationError):
            await service.update(transaction.id, final_amount=Decimal("0"))

    @pytest.mark.asyncio
    async def test_manual_final_amount_edit(self, service):
        transaction = await create_processed(service)

        updated = await service.update(transaction.id, final_amount=Decimal("42.10"))

        assert updated.final_amount == Decimal("42.10")

    @pytest.mark.asyncio
    async def test_paid_amounts_are_frozen(self, service):
        transaction = await create_processed(service)
        await service.mark_paid(transaction.id, "zelle")

        with pytest.raises(InvalidStateError):
            await service.update(transaction.id, final_amount=Decimal("1.00"))
        with pytest.raises(InvalidStateError):
            await service.update(transaction.id, amount=Decimal("999"))

        reloaded = await service.get(transaction.id)
        assert reloaded.final_amount == Decimal("100.00")

    @pytest.mark.asyncio
    async def test_notes_editable_after_payment(self, service):
        transaction = await create_processed(service)
        await service.mark_paid(transaction.id, "zelle")

        updated = await service.update(transaction.id, notes="Paid early")

        assert updated.notes == "Paid early"

    @pytest.mark.asyncio
    async def test_unknown_field_rejected(self, service):
        transaction = await create_pending(service)

        with pytest.raises(ValidationError):
            await service.update(transaction.id, status="paid")


class TestListAndSummary:
    """Test filtering and totals."""

    @pytest.mark.asyncio
    async def test_filter_by_status_and_payee(self, service, employee_id):
        mine = await create_pending(service, payee=Payee.employee(employee_id), amount="10")
        await create_processed(service, amount="20")

        pending = await service.list_transactions(TransactionFilter(status="pending"))
        by_payee = await service.list_transactions(TransactionFilter(employee_id=employee_id))

        assert [t.id for t in pending] == [mine.id]
        assert [t.id for t in by_payee] == [mine.id]

    @pytest.mark.asyncio
    async def test_search_matches_notes(self, service):
        match = await create_pending(service, notes="Invoice INV-2024-17 payout")
        await create_pending(service, notes="Something else")

        found = await service.list_transactions(TransactionFilter(search="inv-2024"))

        assert [t.id for t in found] == [match.id]

    @pytest.mark.asyncio
    async def test_search_treats_wildcards_literally(self, service):
        match = await create_pending(service, notes="ACH_ batch 7")
        await create_pending(service, notes="ACHX batch 8")

        found = await service.list_transactions(TransactionFilter(search="ACH_"))

        assert [t.id for t in found] == [match.id]

    @pytest.mark.asyncio
    async def test_this_month_filter_uses_created_at(self, service):
        transaction = await create_pending(service)

        this_month = await service.list_transactions(TransactionFilter(date_filter="this_month"))
        last_month = await service.list_transactions(TransactionFilter(date_filter="last_month"))

        assert [t.id for t in this_month] == [transaction.id]
        assert last_month == []

    @pytest.mark.asyncio
    async def test_unknown_date_filter_rejected(self, service):
        with pytest.raises(ValidationError):
            await service.list_transactions(TransactionFilter(date_filter="fortnight"))

    @pytest.mark.asyncio
    async def test_summary_totals(self, session, failing_dispatcher, notifier, service):
        await create_pending(service, amount="10")
        await create_processed(service, amount="20")
        paid = await create_processed(service, amount="30")
        await service.mark_paid(paid.id, "zelle")
        failing = PayrollTransactionService(
            session, dispatcher=failing_dispatcher, notifier=notifier
        )
        failed = await create_processed(failing, amount="40")
        await failing.mark_paid(failed.id, "zelle")

        summary = await service.get_summary()

        assert summary.pending_count == 1
        assert summary.processed_count == 1
        assert summary.paid_count == 1
        assert summary.failed_count == 1
        assert summary.pending_total == Decimal("10.00")
        assert summary.processed_total == Decimal("20.00")
        assert summary.paid_total == Decimal("30.00")
        assert summary.grand_total == Decimal("60.00")

    def test_summarize_empty(self):
        summary = summarize([])

        assert summary.pending_count == 0
        assert summary.grand_total == Decimal("0.00")


class TestCreatedWindow:
    def test_this_month(self):
        start, end = created_window("this_month", date(2024, 12, 15))

        assert start.date() == date(2024, 12, 1)
        assert end.date() == date(2025, 1, 1)

    def test_last_month_across_year(self):
        start, end = created_window("last_month", date(2024, 1, 10))

        assert start.date() == date(2023, 12, 1)
        assert end.date() == date(2024, 1, 1)

    def test_all(self):
        assert created_window("all", date(2024, 1, 10)) == (None, None)
