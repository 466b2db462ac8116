"""Payout engine: payroll rules, payout transactions and payment dispatch."""

__version__ = "0.1.0"
