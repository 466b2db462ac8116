"""Payroll rule resolution with target specificity matching."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import or_

from payout_engine.models import PayrollRule
from payout_engine.store import PayrollStore
from payout_engine.types import PayoutContext, RateType, to_cents

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PayoutCalculation:
    """Outcome of applying a rule (or no rule) to a base amount."""

    final_amount: Decimal
    rule: PayrollRule | None
    calculated: bool

    @property
    def rule_id(self):
        return self.rule.id if self.rule is not None else None


def select_rule(rules: Iterable[PayrollRule], context: PayoutContext) -> PayrollRule | None:
    """Pick the best rule for a context.

    Rule selection order:
    1. Inactive rules and rules outside their effective window are skipped
    2. Rules with a target that contradicts the context are skipped
    3. Most specific target wins (employee/agent > service > role > department)
    4. Higher priority breaks ties
    5. Most recent effective_date breaks remaining ties
    """
    best_rule: PayrollRule | None = None
    best_key: tuple[int, int, date] | None = None

    for rule in rules:
        if not rule.is_effective_on(context.on_date):
            continue

        score = rule.specificity(context)
        if score < 0:
            # Explicit mismatch, skip
            continue

        key = (score, rule.priority, rule.effective_date)
        if best_key is None or key > best_key:
            best_rule = rule
            best_key = key

    return best_rule


def calculate_payout(
    rule: PayrollRule | None,
    base_amount: Decimal,
    hours_worked: Decimal | None = None,
) -> PayoutCalculation:
    """Compute the payout amount a rule yields for a base amount.

    Hourly rules need hours_worked; without it the rule does not apply and the
    base amount is kept.
    """
    base_amount = to_cents(base_amount)
    if rule is None:
        return PayoutCalculation(final_amount=base_amount, rule=None, calculated=False)

    rate = Decimal(rule.amount)
    if rule.is_percentage or rule.rate_type == RateType.PERCENTAGE:
        amount = base_amount * rate / Decimal("100")
    elif rule.rate_type in (RateType.PER_JOB, RateType.SALARY):
        amount = rate
    elif rule.rate_type == RateType.HOURLY:
        if hours_worked is None:
            logger.debug(
                "Hourly rule %s skipped: no hours worked supplied", rule.id
            )
            return PayoutCalculation(final_amount=base_amount, rule=None, calculated=False)
        amount = rate * Decimal(hours_worked)
    else:
        logger.warning("Rule %s has unknown rate type %r", rule.id, rule.rate_type)
        return PayoutCalculation(final_amount=base_amount, rule=None, calculated=False)

    return PayoutCalculation(final_amount=to_cents(amount), rule=rule, calculated=True)


class RuleResolver:
    """Resolves the payroll rule that applies to a payout.

    Store errors propagate unchanged; there is no safe default for which rule
    applies.
    """

    def __init__(self, store: PayrollStore):
        self.store = store

    async def resolve(self, context: PayoutContext) -> PayrollRule | None:
        """Return the best matching rule, or None if no rule applies."""
        rules = await self._get_candidate_rules(context.on_date)
        rule = select_rule(rules, context)
        if rule is None:
            logger.debug("No payroll rule matches %s", context)
        else:
            logger.debug("Resolved payroll rule %s (%s) for %s", rule.id, rule.target_label, context)
        return rule

    async def calculate(
        self,
        context: PayoutContext,
        base_amount: Decimal,
        hours_worked: Decimal | None = None,
    ) -> PayoutCalculation:
        """Resolve a rule and apply it to base_amount."""
        rule = await self.resolve(context)
        return calculate_payout(rule, base_amount, hours_worked)

    async def _get_candidate_rules(self, on_date: date) -> list[PayrollRule]:
        """Get all active rules effective on a date."""
        return await self.store.list(
            PayrollRule,
            PayrollRule.is_active.is_(True),
            PayrollRule.effective_date <= on_date,
            or_(
                PayrollRule.expiration_date.is_(None),
                PayrollRule.expiration_date >= on_date,
            ),
        )
