"""Pytest fixtures for payout engine tests."""

from __future__ import annotations

import random
from collections.abc import AsyncGenerator
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from payout_engine.database import create_session_factory, create_tables, get_engine
from payout_engine.models import PayrollRule
from payout_engine.payments import (
    AchStubBackend,
    CheckStubBackend,
    PaymentDispatcher,
    StripeStubBackend,
    WireStubBackend,
    ZelleStubBackend,
)
from payout_engine.services import NotificationService, PayrollTransactionService

# Use in-memory SQLite for tests (with async support)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

STUB_BACKENDS = (
    ZelleStubBackend,
    AchStubBackend,
    StripeStubBackend,
    CheckStubBackend,
    WireStubBackend,
)


def make_dispatcher(failure_rate: float = 0.0, timeout: float | None = 5.0) -> PaymentDispatcher:
    """Dispatcher over every stub with no latency and a fixed failure rate."""
    rng = random.Random(1234)
    return PaymentDispatcher(
        [cls(latency=0.0, failure_rate=failure_rate, rng=rng) for cls in STUB_BACKENDS],
        timeout=timeout,
    )


@pytest.fixture
async def engine():
    """Create a fresh in-memory database per test."""
    engine = get_engine(TEST_DATABASE_URL)
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
async def session(engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    session_factory = create_session_factory(engine)
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def dispatcher() -> PaymentDispatcher:
    return make_dispatcher()


@pytest.fixture
def failing_dispatcher() -> PaymentDispatcher:
    """Dispatcher whose backends reject every payment."""
    return make_dispatcher(failure_rate=1.0)


@pytest.fixture
def notifier(session) -> NotificationService:
    return NotificationService(session)


@pytest.fixture
def service(session, dispatcher, notifier) -> PayrollTransactionService:
    return PayrollTransactionService(session, dispatcher=dispatcher, notifier=notifier)


@pytest.fixture
def employee_id():
    return uuid4()


@pytest.fixture
def agent_id():
    return uuid4()


@pytest.fixture
def service_id():
    return uuid4()


@pytest.fixture
def make_rule(session):
    """Factory inserting a payroll rule with sensible defaults."""

    async def _make_rule(**fields) -> PayrollRule:
        fields.setdefault("name", f"Rule {uuid4().hex[:8]}")
        fields.setdefault("rate_type", "percentage")
        fields.setdefault("amount", Decimal("10.00"))
        fields.setdefault("is_percentage", fields["rate_type"] == "percentage")
        fields.setdefault("effective_date", date(2024, 1, 1))
        fields.setdefault("priority", 0)
        rule = PayrollRule(**fields)
        session.add(rule)
        await session.flush()
        return rule

    return _make_rule
