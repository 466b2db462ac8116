"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from payout_engine.config import get_settings
from payout_engine.database import init_db
from payout_engine.payments import PaymentDispatcher, build_default_dispatcher
from payout_engine.services import (
    NotificationService,
    PayrollRuleService,
    PayrollTransactionService,
)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    _, session_factory = init_db()
    async with session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


def get_dispatcher(request: Request) -> PaymentDispatcher:
    """Get the application's payment dispatcher."""
    dispatcher = getattr(request.app.state, "dispatcher", None)
    if dispatcher is None:
        dispatcher = build_default_dispatcher(get_settings())
        request.app.state.dispatcher = dispatcher
    return dispatcher


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
Dispatcher = Annotated[PaymentDispatcher, Depends(get_dispatcher)]


def get_rule_service(db: DbSession) -> PayrollRuleService:
    return PayrollRuleService(db)


def get_notification_service(db: DbSession) -> NotificationService:
    return NotificationService(db)


def get_transaction_service(
    db: DbSession,
    dispatcher: Dispatcher,
) -> PayrollTransactionService:
    return PayrollTransactionService(db, dispatcher=dispatcher)


RuleServiceDep = Annotated[PayrollRuleService, Depends(get_rule_service)]
NotificationServiceDep = Annotated[NotificationService, Depends(get_notification_service)]
TransactionServiceDep = Annotated[PayrollTransactionService, Depends(get_transaction_service)]
