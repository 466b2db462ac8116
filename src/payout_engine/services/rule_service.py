"""Administrator CRUD over payroll rules."""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from payout_engine.errors import ValidationError
from payout_engine.models import PayrollRule
from payout_engine.store import PayrollStore
from payout_engine.types import RateType

logger = logging.getLogger(__name__)

TARGET_FIELDS = ("role", "department", "employee_id", "agent_id", "service_id")

EDITABLE_FIELDS = frozenset(
    {
        "name",
        *TARGET_FIELDS,
        "rate_type",
        "amount",
        "is_percentage",
        "is_active",
        "priority",
        "effective_date",
        "expiration_date",
    }
)

# Role defaults shipped with a new workspace
DEFAULT_RULES: list[dict[str, Any]] = [
    {
        "name": "Default Service Agent Compensation",
        "role": "service_agent",
        "rate_type": RateType.PERCENTAGE.value,
        "amount": Decimal("20.00"),
        "is_percentage": True,
        "priority": 10,
    },
    {
        "name": "Default Content Creator Compensation",
        "role": "content_creator",
        "rate_type": RateType.PER_JOB.value,
        "amount": Decimal("150.00"),
        "priority": 10,
    },
    {
        "name": "Default Developer Compensation",
        "role": "developer",
        "rate_type": RateType.HOURLY.value,
        "amount": Decimal("75.00"),
        "priority": 10,
    },
    {
        "name": "Default Designer Compensation",
        "role": "designer",
        "rate_type": RateType.PER_JOB.value,
        "amount": Decimal("200.00"),
        "priority": 10,
    },
    {
        "name": "Default Marketing Specialist Compensation",
        "role": "marketing_specialist",
        "rate_type": RateType.SALARY.value,
        "amount": Decimal("3500.00"),
        "priority": 10,
    },
]


def validate_rule_fields(fields: dict[str, Any]) -> list[str]:
    """Validate a complete set of rule fields, returning error messages."""
    errors: list[str] = []

    if not (fields.get("name") or "").strip():
        errors.append("Rule name is required")

    if all(fields.get(name) in (None, "") for name in TARGET_FIELDS):
        errors.append(
            "At least one target (role, department, employee, agent or service) is required"
        )

    rate_type = fields.get("rate_type")
    if rate_type not in {r.value for r in RateType}:
        errors.append(f"Invalid rate type: {rate_type!r}")

    amount = fields.get("amount")
    try:
        amount = Decimal(str(amount))
    except (InvalidOperation, TypeError, ValueError):
        errors.append("Amount must be a number")
        amount = None

    if amount is not None:
        if amount < 0:
            errors.append("Amount cannot be negative")
        is_percentage = fields.get("is_percentage") or rate_type == RateType.PERCENTAGE.value
        if is_percentage and amount > 100:
            errors.append("Percentage rules must be between 0 and 100")

    effective = fields.get("effective_date")
    expiration = fields.get("expiration_date")
    if effective is not None and expiration is not None and expiration < effective:
        errors.append("Expiration date must be on or after the effective date")

    return errors


class PayrollRuleService:
    """Create, edit and delete payroll rules.

    The resolver only reads rules; all writes go through this service.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.store = PayrollStore(session)

    async def create_rule(self, **fields: Any) -> PayrollRule:
        """Create a rule.

        Raises:
            ValidationError: If the rule has no target or an invalid amount
        """
        unknown = set(fields) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown rule fields: {', '.join(sorted(unknown))}")

        fields = self._normalize(fields)
        fields.setdefault("effective_date", date.today())
        if fields.get("rate_type") == RateType.PERCENTAGE.value:
            fields["is_percentage"] = True

        errors = validate_rule_fields(fields)
        if errors:
            raise ValidationError(errors)

        rule = await self.store.insert(PayrollRule(**fields))
        logger.info("Created payroll rule %s (%s)", rule.id, rule.target_label)
        return rule

    async def update_rule(self, rule_id: UUID, **changes: Any) -> PayrollRule:
        """Update a rule, validating the merged result."""
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown rule fields: {', '.join(sorted(unknown))}")

        rule = await self.store.get(PayrollRule, rule_id)
        changes = self._normalize(changes)
        merged = {name: getattr(rule, name) for name in EDITABLE_FIELDS}
        merged.update(changes)
        if merged.get("rate_type") == RateType.PERCENTAGE.value:
            merged["is_percentage"] = True
            changes["is_percentage"] = True

        errors = validate_rule_fields(merged)
        if errors:
            raise ValidationError(errors)

        await self.store.update(rule, **changes)
        logger.info("Updated payroll rule %s", rule.id)
        return rule

    async def delete_rule(self, rule_id: UUID) -> None:
        rule = await self.store.get(PayrollRule, rule_id)
        await self.store.delete(rule)
        logger.info("Deleted payroll rule %s", rule_id)

    async def get_rule(self, rule_id: UUID) -> PayrollRule:
        return await self.store.get(PayrollRule, rule_id)

    async def list_rules(self, active_only: bool = False) -> list[PayrollRule]:
        """List rules, highest priority first."""
        criteria = [PayrollRule.is_active.is_(True)] if active_only else []
        return await self.store.list(
            PayrollRule,
            *criteria,
            order_by=(PayrollRule.priority.desc(), PayrollRule.name),
        )

    async def seed_default_rules(self) -> list[PayrollRule]:
        """Insert the default role rules that do not exist yet."""
        existing = {rule.name for rule in await self.list_rules()}
        created: list[PayrollRule] = []
        for fields in DEFAULT_RULES:
            if fields["name"] in existing:
                continue
            created.append(await self.create_rule(**fields))
        return created

    @staticmethod
    def _normalize(fields: dict[str, Any]) -> dict[str, Any]:
        """Treat blank strings from forms as unset and coerce amounts."""
        normalized: dict[str, Any] = {}
        for name, value in fields.items():
            if isinstance(value, Enum):
                value = value.value
            if isinstance(value, str) and name != "name" and not value.strip():
                value = None
            if name == "amount" and value is not None and not isinstance(value, Decimal):
                try:
                    value = Decimal(str(value))
                except InvalidOperation:
                    pass
            normalized[name] = value
        return normalized
