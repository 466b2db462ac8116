"""Card-network placeholder backend.

Stripe Connect payouts are not wired up yet; dispatches are accepted as
pending so the rest of the lifecycle can be exercised.
"""

from __future__ import annotations

from payout_engine.payments.base import DispatchStatus, MethodInfo, PaymentMethod, StubBackend


class StripeStubBackend(StubBackend):
    """Placeholder for Stripe Connect transfers."""

    method = PaymentMethod.STRIPE
    success_status = DispatchStatus.PENDING
    reference_prefix = "STR"
    transaction_prefix = "STRIPE"
    failure_message = "Stripe Connect integration not yet configured"
    default_latency = 0.0
    default_failure_rate = 0.0

    def info(self) -> MethodInfo:
        return MethodInfo(
            name="Stripe Connect",
            description="Integrated payment processing",
            processing_time="Instant to 2 days",
            fees="Platform fees apply",
            supported=False,
        )
