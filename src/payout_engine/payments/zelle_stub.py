"""Zelle stub backend for local development and testing.

Replace with a real Zelle network or bank API adapter for production.
"""

from __future__ import annotations

from payout_engine.payments.base import DispatchStatus, MethodInfo, PaymentMethod, StubBackend


class ZelleStubBackend(StubBackend):
    """Stub Zelle backend.

    Zelle transfers are instant, so a successful dispatch is final.
    """

    method = PaymentMethod.ZELLE
    success_status = DispatchStatus.COMPLETED
    reference_prefix = "ZELLE"
    transaction_prefix = "ZELLE"
    failure_message = "Zelle transfer failed - insufficient funds or invalid recipient"
    default_latency = 1.0
    default_failure_rate = 0.10

    def info(self) -> MethodInfo:
        return MethodInfo(
            name="Zelle",
            description="Instant mobile payment transfer",
            processing_time="Instant",
            fees="Free",
        )
