"""ACH stub backend for local development and testing.

Replace with a real NACHA file builder or bank API adapter for production.
"""

from __future__ import annotations

from payout_engine.payments.base import DispatchStatus, MethodInfo, PaymentMethod, StubBackend


class AchStubBackend(StubBackend):
    """Stub ACH backend.

    ACH credits settle in one to two business days, so even an accepted
    transfer reports pending.
    """

    method = PaymentMethod.ACH
    success_status = DispatchStatus.PENDING
    reference_prefix = "ACH"
    transaction_prefix = "ACH"
    failure_message = "ACH transfer failed - invalid bank account or insufficient funds"
    default_latency = 1.5
    default_failure_rate = 0.05

    def info(self) -> MethodInfo:
        return MethodInfo(
            name="ACH Transfer",
            description="Bank account transfer",
            processing_time="1-2 business days",
            fees="$0.25 per transaction",
        )
