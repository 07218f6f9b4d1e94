from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from sqlalchemy import select, delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from libraxpert.core.exceptions import ForbiddenError, NotFoundError
from libraxpert.core.logging import get_logger, log_extra
from libraxpert.db.models import (
    Notification,
    NotificationType,
    User,
    UserRole,
    STAFF_ROLES,
)

logger = get_logger("services.notification")


@dataclass(frozen=True)
class NotificationDraft:
    """A notification waiting to be written by ``emit_notifications``."""

    user_id: str
    title: str
    message: str
    type: NotificationType
    related_id: Optional[str] = None
    action_link: Optional[str] = None


async def get_users_by_roles(db: AsyncSession, roles: Sequence[UserRole]) -> List[User]:
    result = await db.execute(select(User).where(User.role.in_(roles)))
    return list(result.scalars().all())


async def emit_notifications(
    db: AsyncSession, drafts: Iterable[NotificationDraft]
) -> List[Notification]:
    """Insert notifications as a best-effort side effect.

    The insert runs inside a SAVEPOINT: on a database error the savepoint
    is rolled back and the error logged, leaving whatever entity mutation
    the caller already flushed intact. Returns the rows written (empty
    on failure).
    """
    drafts = list(drafts)
    if not drafts:
        return []

    notifications = [
        Notification(
            user_id=d.user_id,
            title=d.title,
            message=d.message,
            type=d.type,
            related_id=d.related_id,
            action_link=d.action_link,
        )
        for d in drafts
    ]
    try:
        async with db.begin_nested():
            db.add_all(notifications)
    except SQLAlchemyError:
        logger.exception(
            "Failed to emit notifications",
            **log_extra(
                notification_type=drafts[0].type.value,
                related_id=drafts[0].related_id,
                count=len(drafts),
            ),
        )
        return []

    logger.info(
        f"Notifications emitted: type={drafts[0].type.value} count={len(notifications)}",
        **log_extra(related_id=drafts[0].related_id),
    )
    return notifications


async def notify_staff(
    db: AsyncSession,
    title: str,
    message: str,
    type: NotificationType,
    related_id: Optional[str] = None,
    action_link: Optional[str] = None,
    roles: Sequence[UserRole] = STAFF_ROLES,
) -> List[Notification]:
    """Fan a notification out to every user holding one of ``roles``."""
    recipients = await get_users_by_roles(db, roles)
    return await emit_notifications(
        db,
        (
            NotificationDraft(
                user_id=user.id,
                title=title,
                message=message,
                type=type,
                related_id=related_id,
                action_link=action_link,
            )
            for user in recipients
        ),
    )


async def notify_user(
    db: AsyncSession,
    user_id: str,
    title: str,
    message: str,
    type: NotificationType,
    related_id: Optional[str] = None,
    action_link: Optional[str] = None,
) -> Optional[Notification]:
    written = await emit_notifications(
        db,
        [
            NotificationDraft(
                user_id=user_id,
                title=title,
                message=message,
                type=type,
                related_id=related_id,
                action_link=action_link,
            )
        ],
    )
    return written[0] if written else None


async def delete_related(
    db: AsyncSession, related_id: str, type: NotificationType
) -> int:
    """Remove stale notifications of one type tied to an entity."""
    result = await db.execute(
        delete(Notification).where(
            Notification.related_id == related_id,
            Notification.type == type,
        )
    )
    return result.rowcount or 0


async def list_for_user(db: AsyncSession, user_id: str) -> List[Notification]:
    """All notifications addressed to a user, newest first."""
    result = await db.execute(
        select(Notification)
        .where(Notification.user_id == user_id)
        .order_by(Notification.created_at.desc())
    )
    return list(result.scalars().all())


async def mark_read(db: AsyncSession, notification_id: str, actor: User) -> None:
    """Consume a notification. Reading deletes it; there is no archive."""
    result = await db.execute(
        select(Notification).where(Notification.id == notification_id)
    )
    notification = result.scalar_one_or_none()
    if not notification:
        raise NotFoundError("Notification not found")
    if notification.user_id != actor.id:
        raise ForbiddenError("Not authorized")

    await db.delete(notification)
    await db.flush()

    logger.info(f"Notification consumed: id={notification_id} by user={actor.id}")
