"""Payroll rule, transaction and notification models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from payout_engine.models.base import Base, TimestampMixin, utcnow
from payout_engine.types import Payee, PayoutContext

# Specificity ranks, most exact target first
RANK_PAYEE = 4
RANK_SERVICE = 3
RANK_ROLE = 2
RANK_DEPARTMENT = 1
NO_MATCH = -1


class PayrollRule(Base, TimestampMixin):
    """Compensation rule scoped to an employee, agent, service, role or department."""

    __tablename__ = "payroll_rule"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False)

    # Targets; a null target does not constrain that dimension
    role: Mapped[str | None] = mapped_column(String, nullable=True)
    department: Mapped[str | None] = mapped_column(String, nullable=True)
    employee_id: Mapped[UUID | None] = mapped_column(nullable=True)
    agent_id: Mapped[UUID | None] = mapped_column(nullable=True)
    service_id: Mapped[UUID | None] = mapped_column(nullable=True)

    rate_type: Mapped[str] = mapped_column(String, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    is_percentage: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    effective_date: Mapped[date] = mapped_column(Date, nullable=False, default=date.today)
    expiration_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "role IS NOT NULL OR department IS NOT NULL OR employee_id IS NOT NULL "
            "OR agent_id IS NOT NULL OR service_id IS NOT NULL",
            name="payroll_rule_target_check",
        ),
        CheckConstraint(
            "rate_type IN ('hourly', 'per-job', 'salary', 'percentage')",
            name="payroll_rule_rate_type_check",
        ),
        CheckConstraint(
            "NOT is_percentage OR (amount >= 0 AND amount <= 100)",
            name="payroll_rule_percentage_check",
        ),
        CheckConstraint(
            "expiration_date IS NULL OR expiration_date >= effective_date",
            name="payroll_rule_dates_check",
        ),
        Index("ix_payroll_rule_is_active", "is_active"),
        Index("ix_payroll_rule_employee_id", "employee_id"),
        Index("ix_payroll_rule_agent_id", "agent_id"),
        Index("ix_payroll_rule_service_id", "service_id"),
        Index("ix_payroll_rule_role", "role"),
        Index("ix_payroll_rule_department", "department"),
    )

    def is_effective_on(self, on_date: date) -> bool:
        """Check if rule is active and inside its effective window on a date."""
        if not self.is_active:
            return False
        if self.effective_date > on_date:
            return False
        if self.expiration_date is not None and self.expiration_date < on_date:
            return False
        return True

    def specificity(self, context: PayoutContext) -> int:
        """Rank how specifically this rule targets the context.

        Returns the rank of the most specific matching target, or -1 if any
        target that is set does not match the context.
        """
        rank = 0
        targets = (
            (self.employee_id, context.employee_id, RANK_PAYEE),
            (self.agent_id, context.agent_id, RANK_PAYEE),
            (self.service_id, context.service_id, RANK_SERVICE),
            (self.role, context.role, RANK_ROLE),
            (self.department, context.department, RANK_DEPARTMENT),
        )
        for target, value, weight in targets:
            if target is None:
                continue
            if target != value:
                return NO_MATCH
            rank = max(rank, weight)

        if rank == 0:
            return NO_MATCH
        return rank

    @property
    def target_label(self) -> str:
        """Short description of the most specific target."""
        if self.employee_id is not None:
            return f"employee: {self.employee_id}"
        if self.agent_id is not None:
            return f"agent: {self.agent_id}"
        if self.service_id is not None:
            return f"service: {self.service_id}"
        if self.role is not None:
            return f"role: {self.role}"
        if self.department is not None:
            return f"department: {self.department}"
        return "unscoped"


class PayrollTransaction(Base, TimestampMixin):
    """A payout owed to an employee or agent."""

    __tablename__ = "payroll_transaction"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID | None] = mapped_column(nullable=True)
    agent_id: Mapped[UUID | None] = mapped_column(nullable=True)
    service_id: Mapped[UUID | None] = mapped_column(nullable=True)
    payroll_rule_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("payroll_rule.id", ondelete="SET NULL"),
        nullable=True,
    )

    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    calculated_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    final_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    hours_worked: Mapped[Decimal | None] = mapped_column(Numeric(6, 2), nullable=True)
    service_value: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)

    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="pending")

    approved_by: Mapped[str | None] = mapped_column(String, nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    payment_method: Mapped[str | None] = mapped_column(String, nullable=True)
    payment_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    payment_reference: Mapped[str | None] = mapped_column(String, nullable=True)
    settlement_status: Mapped[str | None] = mapped_column(String, nullable=True)
    failure_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint(
            "(employee_id IS NOT NULL AND agent_id IS NULL) OR "
            "(employee_id IS NULL AND agent_id IS NOT NULL)",
            name="payroll_transaction_payee_check",
        ),
        CheckConstraint(
            "status IN ('pending', 'processed', 'paid', 'failed')",
            name="payroll_transaction_status_check",
        ),
        CheckConstraint(
            "payment_method IS NULL OR "
            "payment_method IN ('zelle', 'ach', 'stripe', 'check', 'wire')",
            name="payroll_transaction_payment_method_check",
        ),
        CheckConstraint(
            "settlement_status IS NULL OR settlement_status IN ('pending', 'settled')",
            name="payroll_transaction_settlement_check",
        ),
        CheckConstraint("amount > 0", name="payroll_transaction_amount_check"),
        CheckConstraint(
            "period_end >= period_start",
            name="payroll_transaction_period_check",
        ),
        Index("ix_payroll_transaction_employee_id", "employee_id"),
        Index("ix_payroll_transaction_agent_id", "agent_id"),
        Index("ix_payroll_transaction_status", "status"),
        Index("ix_payroll_transaction_period_start", "period_start"),
    )

    @property
    def payee(self) -> Payee:
        return Payee.from_refs(self.employee_id, self.agent_id)


class EmployeeNotification(Base):
    """In-app notification about a payout status change."""

    __tablename__ = "employee_notification"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID | None] = mapped_column(nullable=True)
    agent_id: Mapped[UUID | None] = mapped_column(nullable=True)
    payroll_transaction_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("payroll_transaction.id", ondelete="CASCADE"),
        nullable=True,
    )
    notification_type: Mapped[str] = mapped_column(String, nullable=False)
    title: Mapped[str] = mapped_column(String, nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint(
            "notification_type IN "
            "('payout_created', 'payout_approved', 'payout_paid', 'payout_failed')",
            name="employee_notification_type_check",
        ),
        CheckConstraint(
            "(employee_id IS NOT NULL AND agent_id IS NULL) OR "
            "(employee_id IS NULL AND agent_id IS NOT NULL)",
            name="employee_notification_recipient_check",
        ),
        Index("ix_employee_notification_employee_id", "employee_id"),
        Index("ix_employee_notification_agent_id", "agent_id"),
        Index("ix_employee_notification_is_read", "is_read"),
    )

    @property
    def recipient(self) -> Payee:
        return Payee.from_refs(self.employee_id, self.agent_id)
