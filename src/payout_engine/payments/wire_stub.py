"""Wire transfer stub backend for local development and testing."""

from __future__ import annotations

from payout_engine.payments.base import DispatchStatus, MethodInfo, PaymentMethod, StubBackend


class WireStubBackend(StubBackend):
    """Stub wire backend.

    In production, this would:
    - Validate beneficiary bank details
    - Initiate the wire through a banking API
    - Handle international transfers
    """

    method = PaymentMethod.WIRE
    success_status = DispatchStatus.COMPLETED
    reference_prefix = "WIRE"
    transaction_prefix = "WIRE"
    failure_message = "Wire transfer failed - bank error or invalid account details"
    default_latency = 2.0
    default_failure_rate = 0.02

    def info(self) -> MethodInfo:
        return MethodInfo(
            name="Wire Transfer",
            description="Bank wire transfer",
            processing_time="Same day",
            fees="$25.00 per transfer",
        )
