"""Payout notification endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query

from payout_engine.api.dependencies import DbSession, NotificationServiceDep
from payout_engine.api.schemas import (
    ErrorResponse,
    NotificationListResponse,
    NotificationResponse,
)
from payout_engine.errors import ValidationError
from payout_engine.types import Payee

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    notifications: NotificationServiceDep,
    employee_id: UUID | None = None,
    agent_id: UUID | None = None,
    unread_only: bool = False,
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
) -> NotificationListResponse:
    """List notifications for an employee or agent, newest first."""
    recipient = None
    if employee_id is not None or agent_id is not None:
        recipient = Payee.from_refs(employee_id, agent_id)
    elif unread_only:
        raise ValidationError("unread_only requires employee_id or agent_id")

    items = await notifications.list_notifications(
        recipient=recipient, unread_only=unread_only, limit=limit
    )
    return NotificationListResponse(
        items=[NotificationResponse.model_validate(n) for n in items],
        unread_count=await notifications.unread_count(recipient),
    )


@router.post(
    "/{notification_id}/read",
    response_model=NotificationResponse,
    responses={404: {"model": ErrorResponse}},
)
async def mark_read(
    db: DbSession,
    notifications: NotificationServiceDep,
    notification_id: Annotated[UUID, Path()],
) -> NotificationResponse:
    """Mark a notification as read."""
    notification = await notifications.mark_read(notification_id)
    await db.commit()
    return NotificationResponse.model_validate(notification)
