"""API routes."""

from payout_engine.api.routes.health import router as health_router
from payout_engine.api.routes.notifications import router as notifications_router
from payout_engine.api.routes.payment_methods import router as payment_methods_router
from payout_engine.api.routes.rules import router as rules_router
from payout_engine.api.routes.transactions import router as transactions_router

__all__ = [
    "health_router",
    "notifications_router",
    "payment_methods_router",
    "rules_router",
    "transactions_router",
]
