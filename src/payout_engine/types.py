"""Value types shared by the resolver, lifecycle and dispatcher."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from uuid import UUID

from payout_engine.errors import ValidationError

CENTS = Decimal("0.01")


def to_cents(value: Decimal | int | str) -> Decimal:
    """Quantize a money value to cents."""
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


class PayeeType(str, Enum):
    """Kind of party receiving a payout."""

    EMPLOYEE = "employee"
    AGENT = "agent"


class RateType(str, Enum):
    """How a payroll rule's amount is applied."""

    HOURLY = "hourly"
    PER_JOB = "per-job"
    SALARY = "salary"
    PERCENTAGE = "percentage"


@dataclass(frozen=True)
class Payee:
    """Either an employee or an AI agent, never both."""

    kind: PayeeType
    id: UUID

    @classmethod
    def employee(cls, employee_id: UUID) -> Payee:
        return cls(PayeeType.EMPLOYEE, employee_id)

    @classmethod
    def agent(cls, agent_id: UUID) -> Payee:
        return cls(PayeeType.AGENT, agent_id)

    @classmethod
    def from_refs(cls, employee_id: UUID | None, agent_id: UUID | None) -> Payee:
        """Build a payee from two nullable references.

        Raises:
            ValidationError: If both or neither reference is set
        """
        if employee_id is not None and agent_id is not None:
            raise ValidationError("Payee must be an employee or an agent, not both")
        if employee_id is not None:
            return cls.employee(employee_id)
        if agent_id is not None:
            return cls.agent(agent_id)
        raise ValidationError("Either employee_id or agent_id is required")

    @property
    def employee_id(self) -> UUID | None:
        return self.id if self.kind == PayeeType.EMPLOYEE else None

    @property
    def agent_id(self) -> UUID | None:
        return self.id if self.kind == PayeeType.AGENT else None

    def __str__(self) -> str:
        return f"{self.kind.value} {self.id}"


@dataclass(frozen=True)
class PayoutContext:
    """Who is being paid, for what, and on which date."""

    on_date: date
    employee_id: UUID | None = None
    agent_id: UUID | None = None
    service_id: UUID | None = None
    role: str | None = None
    department: str | None = None

    @classmethod
    def for_payee(
        cls,
        payee: Payee,
        on_date: date,
        service_id: UUID | None = None,
        role: str | None = None,
        department: str | None = None,
    ) -> PayoutContext:
        return cls(
            on_date=on_date,
            employee_id=payee.employee_id,
            agent_id=payee.agent_id,
            service_id=service_id,
            role=role,
            department=department,
        )
