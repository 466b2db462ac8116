"""Payroll transaction lifecycle: create, approve, pay.

Transactions move pending → processed → paid, or end in failed. Every status
change emits a payee notification. Payment failure is an expected business
outcome: it is recorded on the transaction instead of being raised.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.ext.asyncio import AsyncSession

from payout_engine.calculators.rule_resolver import (
    PayoutCalculation,
    RuleResolver,
    calculate_payout,
)
from payout_engine.config import get_settings
from payout_engine.errors import (
    InvalidStateError,
    NotFoundError,
    PaymentDispatchError,
    PayoutError,
    ValidationError,
)
from payout_engine.models import PayrollRule, PayrollTransaction
from payout_engine.models.base import utcnow
from payout_engine.payments import (
    DispatchRequest,
    DispatchResult,
    DispatchStatus,
    PaymentDispatcher,
    PaymentMethod,
    build_default_dispatcher,
    parse_method,
)
from payout_engine.services.notification_service import NotificationService, NotificationType
from payout_engine.services.state_machine import (
    SettlementStatus,
    TransactionStateMachine,
    TransactionStatus,
)
from payout_engine.store import PayrollStore
from payout_engine.types import Payee, PayoutContext, to_cents

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

# Fields that feed the payout calculation
AMOUNT_FIELDS = frozenset(
    {"amount", "hours_worked", "service_value", "period_start", "period_end", "service_id"}
)
EDITABLE_FIELDS = AMOUNT_FIELDS | {"final_amount", "notes"}
# Fields that decide which rule applies
RULE_CONTEXT_FIELDS = frozenset({"period_start", "period_end", "service_id"})


@dataclass(frozen=True)
class BulkApprovalItem:
    """Outcome of approving one transaction in a batch."""

    transaction_id: UUID
    succeeded: bool
    transaction: PayrollTransaction | None = None
    error: str | None = None


@dataclass
class BulkApprovalResult:
    """Per-id outcomes of a bulk approval. Successes are never rolled back."""

    items: list[BulkApprovalItem] = field(default_factory=list)

    @property
    def approved(self) -> list[PayrollTransaction]:
        return [i.transaction for i in self.items if i.succeeded and i.transaction is not None]

    @property
    def failed(self) -> list[BulkApprovalItem]:
        return [i for i in self.items if not i.succeeded]


@dataclass(frozen=True)
class TransactionFilter:
    """Filters for listing transactions."""

    status: str | None = None
    employee_id: UUID | None = None
    agent_id: UUID | None = None
    service_id: UUID | None = None
    date_filter: str = "all"  # all, this_month, last_month, this_year
    created_from: date | None = None
    created_to: date | None = None
    search: str | None = None
    limit: int | None = None
    offset: int = 0


@dataclass(frozen=True)
class PayrollSummary:
    """Counts and totals by status."""

    pending_count: int
    processed_count: int
    paid_count: int
    failed_count: int
    pending_total: Decimal
    processed_total: Decimal
    paid_total: Decimal

    @property
    def grand_total(self) -> Decimal:
        return self.pending_total + self.processed_total + self.paid_total


def summarize(transactions: Iterable[PayrollTransaction]) -> PayrollSummary:
    """Aggregate transactions by status using their final amounts."""
    counts = {status.value: 0 for status in TransactionStatus}
    totals = {status.value: ZERO for status in TransactionStatus}
    for txn in transactions:
        counts[txn.status] = counts.get(txn.status, 0) + 1
        totals[txn.status] = totals.get(txn.status, ZERO) + Decimal(txn.final_amount)
    return PayrollSummary(
        pending_count=counts["pending"],
        processed_count=counts["processed"],
        paid_count=counts["paid"],
        failed_count=counts["failed"],
        pending_total=to_cents(totals["pending"]),
        processed_total=to_cents(totals["processed"]),
        paid_total=to_cents(totals["paid"]),
    )


def created_window(
    date_filter: str,
    today: date,
) -> tuple[datetime | None, datetime | None]:
    """Translate a named date filter into a [start, end) created_at window."""
    if date_filter in ("", "all"):
        return None, None

    if date_filter == "this_month":
        start = today.replace(day=1)
        end = (start + timedelta(days=32)).replace(day=1)
    elif date_filter == "last_month":
        end = today.replace(day=1)
        start = (end - timedelta(days=1)).replace(day=1)
    elif date_filter == "this_year":
        start = today.replace(month=1, day=1)
        end = start.replace(year=start.year + 1)
    else:
        raise ValidationError(f"Unknown date filter: {date_filter!r}")

    return _day_start(start), _day_start(end)


def _day_start(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def _escape_like(text: str) -> str:
    """Make LIKE wildcards in user text match literally."""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class PayrollTransactionService:
    """Service for the payroll transaction lifecycle.

    Constraints:
    - A transaction pays exactly one employee or one agent
    - final_amount comes from the rule resolver or an explicit override
    - final_amount is frozen once the transaction is paid
    - Re-approving or re-paying is a no-op; state-incompatible calls raise
    """

    def __init__(
        self,
        session: AsyncSession,
        dispatcher: PaymentDispatcher | None = None,
        notifier: NotificationService | None = None,
    ):
        self.session = session
        self.store = PayrollStore(session)
        self.resolver = RuleResolver(self.store)
        self.dispatcher = dispatcher or build_default_dispatcher(get_settings())
        self.notifier = notifier or NotificationService(session)

    # =========================================================================
    # Creation
    # =========================================================================

    async def create(
        self,
        payee: Payee,
        amount: Decimal,
        period_start: date,
        period_end: date,
        service_id: UUID | None = None,
        role: str | None = None,
        department: str | None = None,
        hours_worked: Decimal | None = None,
        service_value: Decimal | None = None,
        final_amount: Decimal | None = None,
        notes: str | None = None,
    ) -> PayrollTransaction:
        """Create a pending transaction.

        The rule resolver runs with period_end as the evaluation date. Percentage
        rules apply to service_value when given, else to amount. An explicit
        final_amount is a manual override and skips the resolver.

        Raises:
            ValidationError: If the payee is missing, amount <= 0, or the period
                is inverted
        """
        errors = self._validate_inputs(
            payee=payee,
            amount=amount,
            period_start=period_start,
            period_end=period_end,
            hours_worked=hours_worked,
            service_value=service_value,
            final_amount=final_amount,
        )
        if errors:
            raise ValidationError(errors)

        if final_amount is not None:
            calculation = PayoutCalculation(
                final_amount=to_cents(final_amount), rule=None, calculated=False
            )
        else:
            context = PayoutContext.for_payee(
                payee,
                on_date=period_end,
                service_id=service_id,
                role=role,
                department=department,
            )
            base_amount = service_value if service_value is not None else amount
            calculation = await self.resolver.calculate(context, base_amount, hours_worked)

        transaction = PayrollTransaction(
            employee_id=payee.employee_id,
            agent_id=payee.agent_id,
            service_id=service_id,
            payroll_rule_id=calculation.rule_id,
            amount=to_cents(amount),
            calculated_amount=calculation.final_amount if calculation.calculated else None,
            final_amount=calculation.final_amount,
            hours_worked=hours_worked,
            service_value=to_cents(service_value) if service_value is not None else None,
            period_start=period_start,
            period_end=period_end,
            status=TransactionStatus.PENDING.value,
            notes=notes,
        )
        await self.store.insert(transaction)

        logger.info(
            "Created payroll transaction %s for %s: amount=%s final_amount=%s rule=%s",
            transaction.id,
            payee,
            transaction.amount,
            transaction.final_amount,
            calculation.rule_id,
        )
        await self.notifier.emit(payee, NotificationType.PAYOUT_CREATED, transaction)
        return transaction

    async def create_from_refs(
        self,
        employee_id: UUID | None,
        agent_id: UUID | None,
        **kwargs: Any,
    ) -> PayrollTransaction:
        """Create a transaction from two nullable payee references."""
        return await self.create(Payee.from_refs(employee_id, agent_id), **kwargs)

    async def auto_generate_payout(
        self,
        service_id: UUID | None = None,
        employee_id: UUID | None = None,
        agent_id: UUID | None = None,
        service_value: Decimal | None = None,
        hours_worked: Decimal | None = None,
        role: str | None = None,
        department: str | None = None,
        on_date: date | None = None,
        notes: str | None = None,
    ) -> PayrollTransaction:
        """Create a payout when an invoice is paid or a job is completed.

        Without a service value the payout amount must come from a per-job,
        salary or hourly rule.

        Raises:
            ValidationError: If no amount can be determined
        """
        payee = Payee.from_refs(employee_id, agent_id)
        on_date = on_date or date.today()

        if service_value is None:
            context = PayoutContext.for_payee(
                payee,
                on_date=on_date,
                service_id=service_id,
                role=role,
                department=department,
            )
            calculation = await self.resolver.calculate(context, ZERO, hours_worked)
            if not calculation.calculated or calculation.final_amount <= 0:
                raise ValidationError(
                    "No service value given and no payroll rule yields a payout amount"
                )
            amount = calculation.final_amount
        else:
            amount = service_value

        if notes is None:
            source = f"service {service_id}" if service_id is not None else "completed job"
            notes = f"Auto-generated payout for {source}"

        return await self.create(
            payee,
            amount=amount,
            period_start=on_date,
            period_end=on_date,
            service_id=service_id,
            role=role,
            department=department,
            hours_worked=hours_worked,
            service_value=service_value,
            notes=notes,
        )

    # =========================================================================
    # Edits
    # =========================================================================

    async def update(self, transaction_id: UUID, **changes: Any) -> PayrollTransaction:
        """Edit a transaction.

        Notes can always be edited. Amount inputs and final_amount can only be
        edited before payment. Without an explicit final_amount, a change of
        service or period resolves the rule again; other input changes
        re-apply the transaction's rule.
        """
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown transaction fields: {', '.join(sorted(unknown))}")

        transaction = await self.store.get_for_update(PayrollTransaction, transaction_id)
        amount_changes = {k: v for k, v in changes.items() if k != "notes"}

        if amount_changes and not TransactionStateMachine.can_edit_amounts(transaction.status):
            raise InvalidStateError(
                transaction.status,
                transaction.status,
                transaction_id=transaction.id,
                reason="amounts cannot be edited once a transaction is paid or failed",
            )

        merged = {name: getattr(transaction, name) for name in AMOUNT_FIELDS}
        merged.update({k: v for k, v in amount_changes.items() if k in AMOUNT_FIELDS})
        errors = self._validate_inputs(
            payee=transaction.payee,
            amount=merged["amount"],
            period_start=merged["period_start"],
            period_end=merged["period_end"],
            hours_worked=merged["hours_worked"],
            service_value=merged["service_value"],
            final_amount=amount_changes.get("final_amount"),
        )
        if errors:
            raise ValidationError(errors)

        updates: dict[str, Any] = dict(changes)
        override = updates.pop("final_amount", None)
        if "amount" in updates:
            updates["amount"] = to_cents(updates["amount"])
        if updates.get("service_value") is not None:
            updates["service_value"] = to_cents(updates["service_value"])

        if override is not None:
            updates["final_amount"] = to_cents(override)
            updates["payroll_rule_id"] = None
            updates["calculated_amount"] = None
        elif set(amount_changes) & AMOUNT_FIELDS:
            base = merged["service_value"] if merged["service_value"] is not None else merged["amount"]
            if set(amount_changes) & RULE_CONTEXT_FIELDS:
                context = PayoutContext.for_payee(
                    transaction.payee,
                    on_date=merged["period_end"],
                    service_id=merged["service_id"],
                )
                calculation = await self.resolver.calculate(context, base, merged["hours_worked"])
                updates["payroll_rule_id"] = calculation.rule_id
            else:
                rule = await self._load_rule(transaction.payroll_rule_id)
                calculation = calculate_payout(rule, base, merged["hours_worked"])
            updates["final_amount"] = calculation.final_amount
            updates["calculated_amount"] = (
                calculation.final_amount if calculation.calculated else None
            )

        await self.store.update(transaction, **updates)
        logger.info("Updated payroll transaction %s: %s", transaction.id, sorted(changes))
        return transaction

    # =========================================================================
    # Approval
    # =========================================================================

    async def approve(self, transaction_id: UUID, approver_id: str) -> PayrollTransaction:
        """Approve a pending transaction.

        Approving an already processed transaction returns it unchanged.

        Raises:
            InvalidStateError: If the transaction is paid or failed
        """
        return await self._approve(transaction_id, approver_id, strict=False)

    async def bulk_approve(
        self,
        transaction_ids: Sequence[UUID],
        approver_id: str,
    ) -> BulkApprovalResult:
        """Approve many transactions independently.

        Each id succeeds or fails on its own; only pending transactions are
        approved and earlier successes are kept when a later id fails.
        """
        result = BulkApprovalResult()
        for transaction_id in dict.fromkeys(transaction_ids):
            try:
                async with self.store.savepoint():
                    transaction = await self._approve(transaction_id, approver_id, strict=True)
            except PayoutError as e:
                logger.warning("Bulk approval skipped transaction %s: %s", transaction_id, e)
                result.items.append(
                    BulkApprovalItem(transaction_id=transaction_id, succeeded=False, error=str(e))
                )
            else:
                result.items.append(
                    BulkApprovalItem(
                        transaction_id=transaction_id, succeeded=True, transaction=transaction
                    )
                )

        logger.info(
            "Bulk approval by %s: %d approved, %d failed",
            approver_id,
            len(result.approved),
            len(result.failed),
        )
        return result

    async def _approve(
        self,
        transaction_id: UUID,
        approver_id: str,
        strict: bool,
    ) -> PayrollTransaction:
        transaction = await self.store.get_for_update(PayrollTransaction, transaction_id)

        if transaction.status == TransactionStatus.PROCESSED.value and not strict:
            return transaction

        if transaction.status != TransactionStatus.PENDING.value:
            raise InvalidStateError(
                transaction.status,
                TransactionStatus.PROCESSED.value,
                transaction_id=transaction.id,
                reason="only pending transactions can be approved",
            )

        TransactionStateMachine.validate_transition(
            transaction.status, TransactionStatus.PROCESSED, transaction
        )
        await self.store.update(
            transaction,
            status=TransactionStatus.PROCESSED.value,
            approved_by=str(approver_id),
            approved_at=utcnow(),
        )
        logger.info("Payroll transaction %s approved by %s", transaction.id, approver_id)
        await self.notifier.emit(transaction.payee, NotificationType.PAYOUT_APPROVED, transaction)
        return transaction

    # =========================================================================
    # Payment
    # =========================================================================

    async def mark_paid(
        self,
        transaction_id: UUID,
        method: str | PaymentMethod,
        reference: str | None = None,
    ) -> PayrollTransaction:
        """Dispatch payment for a processed transaction.

        On dispatch success the transaction becomes paid; a pending dispatch
        (ACH, check, card network) is recorded as paid with a pending
        settlement. On dispatch failure the transaction becomes failed with the
        reason attached. Paying an already paid transaction returns it unchanged.

        Raises:
            UnsupportedMethodError: If the method has no backend
            InvalidStateError: If the transaction is not processed
        """
        payment_method = parse_method(method)
        self.dispatcher.backend_for(payment_method)

        transaction = await self.store.get_for_update(PayrollTransaction, transaction_id)
        if transaction.status == TransactionStatus.PAID.value:
            return transaction

        TransactionStateMachine.validate_transition(
            transaction.status, TransactionStatus.PAID, transaction
        )

        request = DispatchRequest(
            amount=Decimal(transaction.final_amount),
            payee=transaction.payee,
            method=payment_method,
            transaction_id=transaction.id,
            description=transaction.notes,
        )
        try:
            result = await self.dispatcher.dispatch(request)
        except PaymentDispatchError as e:
            result = DispatchResult.failed(e.reason)
        except ValidationError as e:
            result = DispatchResult.failed(str(e))

        if result.succeeded:
            await self._record_paid(transaction, payment_method, result, reference)
        else:
            await self._record_failed(transaction, payment_method, result)
        return transaction

    async def confirm_settlement(self, transaction_id: UUID) -> PayrollTransaction:
        """Record that a paid transaction's funds have settled."""
        transaction = await self.store.get_for_update(PayrollTransaction, transaction_id)
        if transaction.status != TransactionStatus.PAID.value:
            raise InvalidStateError(
                transaction.status,
                SettlementStatus.SETTLED.value,
                transaction_id=transaction.id,
                reason="only paid transactions can settle",
            )
        if transaction.settlement_status == SettlementStatus.SETTLED.value:
            return transaction

        await self.store.update(transaction, settlement_status=SettlementStatus.SETTLED.value)
        logger.info("Payroll transaction %s settled", transaction.id)
        return transaction

    async def _record_paid(
        self,
        transaction: PayrollTransaction,
        method: PaymentMethod,
        result: DispatchResult,
        reference: str | None,
    ) -> None:
        settlement = (
            SettlementStatus.SETTLED
            if result.status == DispatchStatus.COMPLETED
            else SettlementStatus.PENDING
        )
        await self.store.update(
            transaction,
            status=TransactionStatus.PAID.value,
            payment_method=method.value,
            payment_date=utcnow(),
            payment_reference=reference or result.provider_reference,
            settlement_status=settlement.value,
            failure_reason=None,
        )
        logger.info(
            "Payroll transaction %s paid via %s (%s, settlement %s)",
            transaction.id,
            method.value,
            transaction.payment_reference,
            settlement.value,
        )
        await self.notifier.emit(transaction.payee, NotificationType.PAYOUT_PAID, transaction)

    async def _record_failed(
        self,
        transaction: PayrollTransaction,
        method: PaymentMethod,
        result: DispatchResult,
    ) -> None:
        TransactionStateMachine.validate_transition(
            transaction.status, TransactionStatus.FAILED, transaction
        )
        await self.store.update(
            transaction,
            status=TransactionStatus.FAILED.value,
            payment_method=method.value,
            failure_reason=result.error or "payment failed",
        )
        logger.warning(
            "Payroll transaction %s payment via %s failed: %s",
            transaction.id,
            method.value,
            transaction.failure_reason,
        )
        await self.notifier.emit(transaction.payee, NotificationType.PAYOUT_FAILED, transaction)

    # =========================================================================
    # Reads
    # =========================================================================

    async def get(self, transaction_id: UUID) -> PayrollTransaction:
        return await self.store.get(PayrollTransaction, transaction_id)

    async def list_transactions(
        self,
        filters: TransactionFilter | None = None,
        today: date | None = None,
    ) -> list[PayrollTransaction]:
        """List transactions matching filters, newest first."""
        filters = filters or TransactionFilter()
        criteria: list[Any] = []

        if filters.status and filters.status != "all":
            criteria.append(PayrollTransaction.status == filters.status)
        if filters.employee_id is not None:
            criteria.append(PayrollTransaction.employee_id == filters.employee_id)
        if filters.agent_id is not None:
            criteria.append(PayrollTransaction.agent_id == filters.agent_id)
        if filters.service_id is not None:
            criteria.append(PayrollTransaction.service_id == filters.service_id)

        start, end = created_window(filters.date_filter, today or utcnow().date())
        if filters.created_from is not None:
            start = max(filter(None, (start, _day_start(filters.created_from))))
        if filters.created_to is not None:
            upper = _day_start(filters.created_to + timedelta(days=1))
            end = min(filter(None, (end, upper)))
        if start is not None:
            criteria.append(PayrollTransaction.created_at >= start)
        if end is not None:
            criteria.append(PayrollTransaction.created_at < end)

        if filters.search:
            pattern = f"%{_escape_like(filters.search.strip())}%"
            criteria.append(
                or_(
                    PayrollTransaction.notes.ilike(pattern, escape="\\"),
                    PayrollTransaction.payment_reference.ilike(pattern, escape="\\"),
                    PayrollTransaction.failure_reason.ilike(pattern, escape="\\"),
                )
            )

        transactions = await self.store.list(
            PayrollTransaction,
            *criteria,
            order_by=(PayrollTransaction.created_at.desc(),),
        )
        if filters.offset:
            transactions = transactions[filters.offset :]
        if filters.limit is not None:
            transactions = transactions[: filters.limit]
        return transactions

    async def get_summary(
        self,
        filters: TransactionFilter | None = None,
        today: date | None = None,
    ) -> PayrollSummary:
        return summarize(await self.list_transactions(filters, today=today))

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _load_rule(self, rule_id: UUID | None) -> PayrollRule | None:
        if rule_id is None:
            return None
        try:
            return await self.store.get(PayrollRule, rule_id)
        except NotFoundError:
            return None

    @staticmethod
    def _validate_inputs(
        payee: Payee | None,
        amount: Decimal | None,
        period_start: date | None,
        period_end: date | None,
        hours_worked: Decimal | None = None,
        service_value: Decimal | None = None,
        final_amount: Decimal | None = None,
    ) -> list[str]:
        errors: list[str] = []
        if not isinstance(payee, Payee):
            errors.append("Payee must be exactly one employee or agent")
        if amount is None or Decimal(amount) <= 0:
            errors.append("Amount must be greater than zero")
        if period_start is None or period_end is None:
            errors.append("Period start and end are required")
        elif period_end < period_start:
            errors.append("Period end must be on or after period start")
        if hours_worked is not None and Decimal(hours_worked) < 0:
            errors.append("Hours worked cannot be negative")
        if service_value is not None and Decimal(service_value) < 0:
            errors.append("Service value cannot be negative")
        if final_amount is not None and Decimal(final_amount) <= 0:
            errors.append("Final amount must be greater than zero")
        return errors
