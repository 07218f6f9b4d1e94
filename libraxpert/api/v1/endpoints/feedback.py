from typing import Annotated

from fastapi import APIRouter, Depends, Query, status

from libraxpert.api.v1.dependencies import DbSession, OptionalUser, require_role
from libraxpert.db.models import FeedbackStatus, FeedbackSubject, User, UserRole
from libraxpert.schemas.feedback import (
    FeedbackCreate,
    FeedbackListResponse,
    FeedbackReceipt,
    FeedbackResponse,
    FeedbackStatsResponse,
    FeedbackUpdate,
)
from libraxpert.services.feedback import (
    calculate_pages,
    delete_feedback,
    feedback_stats,
    get_feedback,
    list_feedback,
    submit_feedback,
    update_feedback,
)

router = APIRouter(prefix="/feedback", tags=["Feedback"])

StaffUser = Annotated[User, Depends(require_role(UserRole.LIBRARIAN, UserRole.ADMIN))]
AdminUser = Annotated[User, Depends(require_role(UserRole.ADMIN))]


@router.post(
    "",
    response_model=FeedbackReceipt,
    status_code=status.HTTP_201_CREATED,
    summary="Submit feedback",
    description="Open to anonymous visitors. When a valid Bearer token is sent the feedback "
                "is linked to that account. Admins are notified.",
    responses={
        201: {"description": "Feedback stored"},
        422: {"description": "Validation error"},
    },
)
async def submit_feedback_endpoint(
    data: FeedbackCreate,
    current_user: OptionalUser,
    db: DbSession,
):
    return await submit_feedback(db, data.model_dump(), current_user)


@router.get(
    "",
    response_model=FeedbackListResponse,
    summary="List feedback",
    description="Paginated feedback, newest first, with subject and status filters. Librarian or Admin.",
)
async def list_feedback_endpoint(
    current_user: StaffUser,
    db: DbSession,
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    subject: FeedbackSubject | None = None,
    feedback_status: FeedbackStatus | None = Query(None, alias="status"),
):
    items, total = await list_feedback(
        db, page=page, size=size, subject=subject, status=feedback_status
    )
    return FeedbackListResponse(
        items=items, total=total, page=page, size=size, pages=calculate_pages(total, size)
    )


@router.get(
    "/stats",
    response_model=FeedbackStatsResponse,
    summary="Feedback statistics",
    description="Totals by status, per-subject averages and rating distribution. Librarian or Admin.",
)
async def feedback_stats_endpoint(current_user: StaffUser, db: DbSession):
    return await feedback_stats(db)


@router.get(
    "/{feedback_id}",
    response_model=FeedbackResponse,
    summary="Get feedback",
    responses={404: {"description": "Feedback not found"}},
)
async def get_feedback_endpoint(
    feedback_id: str,
    current_user: StaffUser,
    db: DbSession,
):
    return await get_feedback(db, feedback_id)


@router.patch(
    "/{feedback_id}",
    response_model=FeedbackResponse,
    summary="Review feedback",
    description="Change the review status and/or attach admin notes. Librarian or Admin.",
    responses={404: {"description": "Feedback not found"}},
)
async def update_feedback_endpoint(
    feedback_id: str,
    data: FeedbackUpdate,
    current_user: StaffUser,
    db: DbSession,
):
    return await update_feedback(
        db, feedback_id, current_user.id, status=data.status, admin_notes=data.admin_notes
    )


@router.delete(
    "/{feedback_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete feedback",
    responses={404: {"description": "Feedback not found"}},
)
async def delete_feedback_endpoint(
    feedback_id: str,
    current_user: AdminUser,
    db: DbSession,
):
    await delete_feedback(db, feedback_id, current_user.id)
