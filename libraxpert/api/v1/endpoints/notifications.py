from fastapi import APIRouter

from libraxpert.api.v1.dependencies import CurrentUser, DbSession
from libraxpert.schemas.notification import (
    MessageResponse,
    NotificationListResponse,
)
from libraxpert.services.notification import list_for_user, mark_read

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get(
    "",
    response_model=NotificationListResponse,
    summary="My notifications",
    description="Notifications addressed to the caller, newest first.",
)
async def my_notifications(current_user: CurrentUser, db: DbSession):
    items = await list_for_user(db, current_user.id)
    return NotificationListResponse(items=items, total=len(items))


@router.post(
    "/{notification_id}/read",
    response_model=MessageResponse,
    summary="Mark a notification as read",
    description="Reading a notification removes it.",
    responses={
        200: {"description": "Notification consumed"},
        403: {"description": "Notification belongs to someone else"},
        404: {"description": "Notification not found"},
    },
)
async def read_notification(
    notification_id: str,
    current_user: CurrentUser,
    db: DbSession,
):
    await mark_read(db, notification_id, current_user)
    return MessageResponse(message="Notification marked as read")
