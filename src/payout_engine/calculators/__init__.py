"""Payout calculation."""

from payout_engine.calculators.rule_resolver import (
    PayoutCalculation,
    RuleResolver,
    calculate_payout,
    select_rule,
)

__all__ = [
    "PayoutCalculation",
    "RuleResolver",
    "calculate_payout",
    "select_rule",
]
