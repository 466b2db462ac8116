"""Payment method backends and dispatch."""

from payout_engine.payments.base import (
    DispatchRequest,
    DispatchResult,
    DispatchStatus,
    MethodInfo,
    PaymentBackend,
    PaymentMethod,
    StubBackend,
    parse_method,
)
from payout_engine.payments.ach_stub import AchStubBackend
from payout_engine.payments.check_stub import CheckStubBackend
from payout_engine.payments.stripe_stub import StripeStubBackend
from payout_engine.payments.wire_stub import WireStubBackend
from payout_engine.payments.zelle_stub import ZelleStubBackend
from payout_engine.payments.dispatcher import PaymentDispatcher, build_default_dispatcher

__all__ = [
    "DispatchRequest",
    "DispatchResult",
    "DispatchStatus",
    "MethodInfo",
    "PaymentBackend",
    "PaymentMethod",
    "StubBackend",
    "parse_method",
    "AchStubBackend",
    "CheckStubBackend",
    "StripeStubBackend",
    "WireStubBackend",
    "ZelleStubBackend",
    "PaymentDispatcher",
    "build_default_dispatcher",
]
