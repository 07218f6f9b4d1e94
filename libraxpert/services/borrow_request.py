from datetime import timedelta
from typing import Optional, List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from libraxpert.core.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
)
from libraxpert.core.logging import get_logger, log_extra
from libraxpert.db.models import (
    Book,
    BorrowRequest,
    BorrowStatus,
    NotificationType,
    RenewalStatus,
    User,
)
from libraxpert.services import notification as notifications
from libraxpert.utils.timezone import utcnow

logger = get_logger("services.borrow_request")

LOAN_PERIOD_DAYS = 14
DEFAULT_DECLINE_NOTE = "Request declined by librarian"


def ensure_staff(actor: User, message: str = "Not authorized") -> None:
    if not actor.is_staff:
        logger.warning(
            f"Staff-only operation refused: user={actor.id} role={actor.role.value}"
        )
        raise ForbiddenError(message)


async def get_borrow_request_by_id(
    db: AsyncSession, request_id: str
) -> Optional[BorrowRequest]:
    result = await db.execute(select(BorrowRequest).where(BorrowRequest.id == request_id))
    return result.scalar_one_or_none()


async def _get_pending_for_processing(
    db: AsyncSession, request_id: str
) -> BorrowRequest:
    borrow_request = await get_borrow_request_by_id(db, request_id)
    if not borrow_request:
        raise NotFoundError("Borrow request not found")
    if borrow_request.status != BorrowStatus.PENDING:
        raise InvalidStateError("Request is not pending")
    if borrow_request.book is None:
        raise NotFoundError("Book not found")
    return borrow_request


async def create_borrow_request(
    db: AsyncSession,
    book_id: str,
    actor: User,
    message: Optional[str] = None,
) -> BorrowRequest:
    """Create a pending borrow request and alert every staff member.

    The duplicate check is a plain read before the insert; two concurrent
    calls for the same (book, user) can both pass it.
    """
    result = await db.execute(select(Book).where(Book.id == book_id))
    book = result.scalar_one_or_none()
    if not book:
        raise NotFoundError("Book not found")

    existing = await db.execute(
        select(BorrowRequest.id).where(
            BorrowRequest.book_id == book_id,
            BorrowRequest.user_id == actor.id,
            BorrowRequest.status == BorrowStatus.PENDING,
        )
    )
    if existing.first() is not None:
        raise ConflictError("You already have a pending request for this book")

    borrow_request = BorrowRequest(
        book=book,
        user=actor,
        status=BorrowStatus.PENDING,
        requested_at=utcnow(),
        message=message,
    )
    db.add(borrow_request)
    await db.flush()

    await notifications.notify_staff(
        db,
        title="New borrow request",
        message=f'{actor.display_name} requested to borrow "{book.title}"',
        type=NotificationType.BORROW_REQUEST,
        related_id=borrow_request.id,
        action_link="/management/borrow-requests",
    )

    logger.info(
        f"Borrow request created: id={borrow_request.id} book={book_id} user={actor.id}",
        **log_extra(borrow_request_id=borrow_request.id, book_id=book_id),
    )
    return borrow_request


async def list_pending_requests(db: AsyncSession, actor: User) -> List[BorrowRequest]:
    """Pending requests with book and user loaded, newest first (staff only)."""
    return await list_borrow_requests(db, actor, status=BorrowStatus.PENDING)


async def list_borrow_requests(
    db: AsyncSession,
    actor: User,
    status: Optional[BorrowStatus] = None,
) -> List[BorrowRequest]:
    """Every borrow request, optionally filtered by status, newest first (staff only)."""
    ensure_staff(actor, "Not authorized to view requests")

    query = select(BorrowRequest)
    if status is not None:
        query = query.where(BorrowRequest.status == status)
    query = query.order_by(BorrowRequest.requested_at.desc())

    result = await db.execute(query)
    return list(result.scalars().all())


async def approve_request(
    db: AsyncSession, request_id: str, actor: User
) -> BorrowRequest:
    """Approve a pending request, turning it into an active loan.

    The request write and the copy decrement are two separate row updates
    with no version check: concurrent approvals of the last copy can both
    succeed.
    """
    ensure_staff(actor, "Not authorized to approve requests")
    borrow_request = await _get_pending_for_processing(db, request_id)
    book = borrow_request.book

    if (book.available_copies or 0) <= 0:
        raise ConflictError("No copies available for loan")

    now = utcnow()
    due_date = now + timedelta(days=LOAN_PERIOD_DAYS)

    borrow_request.status = BorrowStatus.APPROVED
    borrow_request.approved_at = now
    borrow_request.due_date = due_date
    borrow_request.processed_by = actor.id
    borrow_request.processed_at = now
    borrow_request.returned = False
    borrow_request.renewal_status = RenewalStatus.NONE
    await db.flush()

    book.available_copies = max(0, (book.available_copies or 0) - 1)
    await db.flush()

    await notifications.delete_related(
        db, borrow_request.id, NotificationType.BORROW_REQUEST
    )
    await notifications.notify_user(
        db,
        user_id=borrow_request.user_id,
        title="Loan Request Approved",
        message=(
            f'Your request to borrow "{book.title}" has been approved. '
            f"Due date: {due_date:%Y-%m-%d}"
        ),
        type=NotificationType.BORROW_APPROVED,
        related_id=borrow_request.id,
        action_link="/loans",
    )

    logger.info(
        f"Borrow request approved: id={request_id} book={book.id} by user={actor.id} "
        f"available_copies={book.available_copies}",
        **log_extra(borrow_request_id=request_id, book_id=book.id),
    )
    return borrow_request


async def decline_request(
    db: AsyncSession,
    request_id: str,
    actor: User,
    reason: Optional[str] = None,
) -> BorrowRequest:
    """Decline a pending request. Copy counts are untouched."""
    ensure_staff(actor, "Not authorized to decline requests")
    borrow_request = await _get_pending_for_processing(db, request_id)
    book = borrow_request.book

    now = utcnow()
    borrow_request.status = BorrowStatus.DECLINED
    borrow_request.notes = reason or DEFAULT_DECLINE_NOTE
    borrow_request.processed_by = actor.id
    borrow_request.processed_at = now
    await db.flush()

    await notifications.delete_related(
        db, borrow_request.id, NotificationType.BORROW_REQUEST
    )
    await notifications.notify_user(
        db,
        user_id=borrow_request.user_id,
        title="Loan Request Declined",
        message=(
            f'Your request to borrow "{book.title}" has been declined. '
            f"{borrow_request.notes}"
        ),
        type=NotificationType.BORROW_DECLINED,
        related_id=borrow_request.id,
    )

    logger.info(
        f"Borrow request declined: id={request_id} book={book.id} by user={actor.id}",
        **log_extra(borrow_request_id=request_id, book_id=book.id),
    )
    return borrow_request
