import math
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from libraxpert.core.exceptions import NotFoundError
from libraxpert.core.logging import get_logger, log_extra
from libraxpert.db.models import (
    Feedback,
    FeedbackStatus,
    FeedbackSubject,
    NotificationType,
    User,
    UserRole,
)
from libraxpert.services import notification as notifications

logger = get_logger("services.feedback")


async def submit_feedback(
    db: AsyncSession,
    data: dict,
    user: Optional[User] = None,
) -> Feedback:
    """Store feedback and tell every admin about it.

    Anonymous submissions are accepted; the admin alert is best-effort and
    never fails the submission.
    """
    feedback = Feedback(
        name=data["name"].strip(),
        email=data["email"].lower().strip(),
        subject=data["subject"],
        message=data["message"].strip(),
        rating=int(data["rating"]),
        user_id=user.id if user else None,
        status=FeedbackStatus.PENDING,
    )
    db.add(feedback)
    await db.flush()

    subject_label = feedback.subject.value.replace("-", " ")
    await notifications.notify_staff(
        db,
        title="New Feedback Received",
        message=(
            f"New feedback from {feedback.name} about {subject_label} "
            f"(Rating: {feedback.rating}/5)"
        ),
        type=NotificationType.FEEDBACK,
        related_id=feedback.id,
        action_link="/feedback-management",
        roles=(UserRole.ADMIN,),
    )

    logger.info(
        f"Feedback submitted: id={feedback.id} subject={feedback.subject.value} rating={feedback.rating}",
        **log_extra(feedback_id=feedback.id),
    )
    return feedback


async def list_feedback(
    db: AsyncSession,
    page: int = 1,
    size: int = 20,
    subject: Optional[FeedbackSubject] = None,
    status: Optional[FeedbackStatus] = None,
) -> Tuple[List[Feedback], int]:
    """List feedback newest first with optional subject/status filters."""
    query = select(Feedback)
    count_query = select(func.count()).select_from(Feedback)

    if subject is not None:
        query = query.where(Feedback.subject == subject)
        count_query = count_query.where(Feedback.subject == subject)
    if status is not None:
        query = query.where(Feedback.status == status)
        count_query = count_query.where(Feedback.status == status)

    query = query.order_by(Feedback.created_at.desc()).offset((page - 1) * size).limit(size)

    result = await db.execute(query)
    items = list(result.scalars().all())

    total_result = await db.execute(count_query)
    total = total_result.scalar()

    return items, total


async def get_feedback(db: AsyncSession, feedback_id: str) -> Feedback:
    result = await db.execute(select(Feedback).where(Feedback.id == feedback_id))
    feedback = result.scalar_one_or_none()
    if not feedback:
        raise NotFoundError("Feedback not found")
    return feedback


async def update_feedback(
    db: AsyncSession,
    feedback_id: str,
    actor_id: str,
    status: Optional[FeedbackStatus] = None,
    admin_notes: Optional[str] = None,
) -> Feedback:
    """Move feedback through review and/or attach admin notes."""
    feedback = await get_feedback(db, feedback_id)

    if status is not None:
        feedback.status = status
    if admin_notes is not None:
        feedback.admin_notes = admin_notes.strip()

    await db.flush()
    await db.refresh(feedback)

    logger.info(
        f"Feedback updated: id={feedback_id} status={feedback.status.value} by actor={actor_id}"
    )
    return feedback


async def delete_feedback(db: AsyncSession, feedback_id: str, actor_id: str) -> None:
    feedback = await get_feedback(db, feedback_id)
    await db.delete(feedback)
    await db.flush()
    logger.info(f"Feedback deleted: id={feedback_id} by actor={actor_id}")


def _status_count(status: FeedbackStatus):
    return func.coalesce(func.sum(case((Feedback.status == status, 1), else_=0)), 0)


async def feedback_stats(db: AsyncSession) -> Dict[str, Any]:
    """Totals, per-subject breakdown and rating distribution."""
    overall_row = (
        await db.execute(
            select(
                func.count(Feedback.id),
                func.avg(Feedback.rating),
                _status_count(FeedbackStatus.PENDING),
                _status_count(FeedbackStatus.REVIEWED),
                _status_count(FeedbackStatus.RESOLVED),
            )
        )
    ).one()
    total, average, pending, reviewed, resolved = overall_row

    subject_count = func.count(Feedback.id).label("count")
    subject_rows = (
        await db.execute(
            select(Feedback.subject, subject_count, func.avg(Feedback.rating))
            .group_by(Feedback.subject)
            .order_by(subject_count.desc())
        )
    ).all()

    rating_rows = (
        await db.execute(
            select(Feedback.rating, func.count(Feedback.id))
            .group_by(Feedback.rating)
            .order_by(Feedback.rating.asc())
        )
    ).all()

    return {
        "overall": {
            "total_feedback": total or 0,
            "average_rating": round(float(average), 2) if average is not None else 0,
            "pending_count": int(pending),
            "reviewed_count": int(reviewed),
            "resolved_count": int(resolved),
        },
        "by_subject": [
            {
                "subject": subject,
                "count": count,
                "average_rating": round(float(avg), 2),
            }
            for subject, count, avg in subject_rows
        ],
        "by_rating": [{"rating": rating, "count": count} for rating, count in rating_rows],
    }


def calculate_pages(total: int, size: int) -> int:
    return math.ceil(total / size) if size > 0 else 0
