"""Check issuance stub backend."""

from __future__ import annotations

from payout_engine.payments.base import DispatchStatus, MethodInfo, PaymentMethod, StubBackend


class CheckStubBackend(StubBackend):
    """Stub check backend.

    Issuing a check always succeeds; delivery problems surface later, so the
    result stays pending until the check is printed and mailed.
    """

    method = PaymentMethod.CHECK
    success_status = DispatchStatus.PENDING
    reference_prefix = "CHK"
    transaction_prefix = "CHECK"
    failure_message = "Check issuance failed"
    default_latency = 0.5
    default_failure_rate = 0.0

    def info(self) -> MethodInfo:
        return MethodInfo(
            name="Physical Check",
            description="Traditional paper check",
            processing_time="3-5 business days",
            fees="$1.00 per check",
        )
