"""Payment dispatcher routing payouts to per-method backends."""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Iterable
from decimal import Decimal

from payout_engine.config import Settings
from payout_engine.errors import PaymentDispatchError, UnsupportedMethodError, ValidationError
from payout_engine.payments.ach_stub import AchStubBackend
from payout_engine.payments.base import (
    DispatchRequest,
    DispatchResult,
    MethodInfo,
    PaymentBackend,
    PaymentMethod,
    parse_method,
)
from payout_engine.payments.check_stub import CheckStubBackend
from payout_engine.payments.stripe_stub import StripeStubBackend
from payout_engine.payments.wire_stub import WireStubBackend
from payout_engine.payments.zelle_stub import ZelleStubBackend

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0


def validate_request(request: DispatchRequest) -> None:
    """Validate a dispatch request before it reaches a backend.

    Raises:
        ValidationError: With every problem found
    """
    errors: list[str] = []
    if request.amount is None or Decimal(request.amount) <= 0:
        errors.append("Payment amount must be greater than zero")
    if request.payee is None:
        errors.append("Recipient is required")
    if request.transaction_id is None:
        errors.append("Payroll transaction ID is required")
    if errors:
        raise ValidationError(errors)


class PaymentDispatcher:
    """Routes a payout to the backend registered for its method.

    Rejections and timeouts come back as failed results; only an unknown
    method raises.

    Usage:
        dispatcher = PaymentDispatcher([AchStubBackend(), WireStubBackend()])
        result = await dispatcher.dispatch(request)
        if not result.succeeded:
            print(result.error)
    """

    def __init__(
        self,
        backends: Iterable[PaymentBackend],
        timeout: float | None = DEFAULT_TIMEOUT_SECONDS,
    ):
        self._backends: dict[PaymentMethod, PaymentBackend] = {}
        for backend in backends:
            self.register(backend)
        self.timeout = timeout

    def register(self, backend: PaymentBackend) -> None:
        """Register or replace the backend for its method."""
        self._backends[backend.method] = backend

    def backend_for(self, method: str | PaymentMethod) -> PaymentBackend:
        """Look up the backend for a method.

        Raises:
            UnsupportedMethodError: If the method is unknown or has no backend
        """
        parsed = parse_method(method)
        backend = self._backends.get(parsed)
        if backend is None:
            raise UnsupportedMethodError(parsed.value)
        return backend

    @property
    def methods(self) -> list[PaymentMethod]:
        return list(self._backends)

    def method_info(self) -> dict[str, MethodInfo]:
        """Display details for every registered method."""
        return {method.value: backend.info() for method, backend in self._backends.items()}

    async def dispatch(self, request: DispatchRequest) -> DispatchResult:
        """Send a payout through its method's backend."""
        backend = self.backend_for(request.method)
        validate_request(request)

        logger.info(
            "Dispatching %s payment for payroll transaction %s",
            request.method.value.upper(),
            request.transaction_id,
        )
        try:
            if self.timeout is not None:
                result = await asyncio.wait_for(backend.dispatch(request), self.timeout)
            else:
                result = await backend.dispatch(request)
        except PaymentDispatchError as e:
            logger.warning(
                "Payment for transaction %s failed: %s", request.transaction_id, e.reason
            )
            return DispatchResult.failed(e.reason)
        except asyncio.TimeoutError:
            logger.warning(
                "Payment for transaction %s timed out after %ss",
                request.transaction_id,
                self.timeout,
            )
            return DispatchResult.failed(
                f"{request.method.value} payment timed out after {self.timeout}s"
            )

        logger.info(
            "Payment for transaction %s returned %s (%s)",
            request.transaction_id,
            result.status.value,
            result.provider_reference,
        )
        return result


def build_default_dispatcher(
    settings: Settings,
    rng: random.Random | None = None,
) -> PaymentDispatcher:
    """Wire every stub backend according to settings."""
    backends: list[PaymentBackend] = []
    for backend_cls in (
        ZelleStubBackend,
        AchStubBackend,
        StripeStubBackend,
        CheckStubBackend,
        WireStubBackend,
    ):
        backends.append(
            backend_cls(
                latency=None if settings.payment_simulate_latency else 0.0,
                failure_rate=None if settings.payment_simulate_failures else 0.0,
                rng=rng,
            )
        )
    return PaymentDispatcher(backends, timeout=settings.payment_timeout_seconds)
