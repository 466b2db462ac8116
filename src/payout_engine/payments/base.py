"""Base protocol and types for payout payment backends.

All backends must implement the PaymentBackend protocol. The dispatcher picks
one backend per payment method and never needs to know rail-specific details.
"""

from __future__ import annotations

import asyncio
import logging
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Protocol
from uuid import UUID

from payout_engine.errors import PaymentDispatchError, UnsupportedMethodError
from payout_engine.types import Payee

logger = logging.getLogger(__name__)


class PaymentMethod(str, Enum):
    """Supported payout methods."""

    ZELLE = "zelle"
    ACH = "ach"
    STRIPE = "stripe"
    CHECK = "check"
    WIRE = "wire"


def parse_method(value: str | PaymentMethod) -> PaymentMethod:
    """Convert a raw method name to PaymentMethod.

    Raises:
        UnsupportedMethodError: If the name is not a known method
    """
    if isinstance(value, PaymentMethod):
        return value
    try:
        return PaymentMethod(str(value).lower())
    except ValueError:
        raise UnsupportedMethodError(str(value)) from None


class DispatchStatus(str, Enum):
    """Normalized outcome of a dispatch."""

    COMPLETED = "completed"
    PENDING = "pending"
    FAILED = "failed"


@dataclass(frozen=True)
class MethodInfo:
    """Display details for a payment method."""

    name: str
    description: str
    processing_time: str
    fees: str
    supported: bool = True


@dataclass(frozen=True)
class DispatchRequest:
    """A payout to send through a payment backend."""

    amount: Decimal
    payee: Payee
    method: PaymentMethod
    transaction_id: UUID
    description: str | None = None


@dataclass(frozen=True)
class DispatchResult:
    """Normalized result of a dispatch attempt."""

    status: DispatchStatus
    provider_reference: str | None = None
    provider_transaction_id: str | None = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status != DispatchStatus.FAILED

    @classmethod
    def failed(cls, error: str) -> DispatchResult:
        return cls(status=DispatchStatus.FAILED, error=error)


class PaymentBackend(Protocol):
    """Protocol for payment method backends."""

    method: PaymentMethod

    def info(self) -> MethodInfo:
        """Return display details for this method."""
        ...

    async def dispatch(self, request: DispatchRequest) -> DispatchResult:
        """Send a payout.

        Raises:
            PaymentDispatchError: If the rail rejects the payment
        """
        ...


class StubBackend(ABC):
    """Shared behavior for simulated payment rails.

    Subclasses set the method, the status a successful dispatch reports, the
    reference prefix and the failure message.
    """

    method: PaymentMethod
    success_status: DispatchStatus = DispatchStatus.COMPLETED
    reference_prefix: str = ""
    transaction_prefix: str = ""
    failure_message: str = "payment rejected"
    default_latency: float = 0.0
    default_failure_rate: float = 0.0

    def __init__(
        self,
        latency: float | None = None,
        failure_rate: float | None = None,
        rng: random.Random | None = None,
    ):
        """Initialize stub backend.

        Args:
            latency: Simulated seconds per call. Defaults to the rail's latency.
            failure_rate: Probability in [0, 1] that a call fails.
            rng: Random source, injectable for deterministic tests.
        """
        self.latency = self.default_latency if latency is None else latency
        self.failure_rate = (
            self.default_failure_rate if failure_rate is None else failure_rate
        )
        self.rng = rng or random.Random()
        self.dispatched: list[DispatchRequest] = []

    @abstractmethod
    def info(self) -> MethodInfo:
        """Describe this rail for listings."""

    async def dispatch(self, request: DispatchRequest) -> DispatchResult:
        logger.info(
            "Processing %s payment of %s to %s for transaction %s",
            self.method.value,
            request.amount,
            request.payee,
            request.transaction_id,
        )
        if self.latency > 0:
            await asyncio.sleep(self.latency)

        if self.failure_rate > 0 and self.rng.random() < self.failure_rate:
            raise PaymentDispatchError(self.method.value, self.failure_message)

        self.dispatched.append(request)
        return DispatchResult(
            status=self.success_status,
            provider_reference=f"{self.reference_prefix}-{request.transaction_id}",
            provider_transaction_id=f"{self.transaction_prefix}-{self.rng.getrandbits(48):012x}",
        )
