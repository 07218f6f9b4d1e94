import enum
from datetime import datetime, timedelta
from typing import Optional, List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from libraxpert.core.exceptions import (
    ForbiddenError,
    InvalidStateError,
    LimitExceededError,
    NotFoundError,
)
from libraxpert.core.logging import get_logger, log_extra
from libraxpert.db.models import (
    BorrowRequest,
    BorrowStatus,
    NotificationType,
    RenewalStatus,
    User,
)
from libraxpert.services import notification as notifications
from libraxpert.services.borrow_request import ensure_staff, get_borrow_request_by_id
from libraxpert.utils.timezone import ensure_aware, utcnow

logger = get_logger("services.loan")

MAX_RENEWALS = 2
RENEWAL_EXTENSION_DAYS = 30


class LoanState(str, enum.Enum):
    """Read-time status of a loan. Never persisted."""

    ACTIVE = "active"
    OVERDUE = "overdue"
    RETURNED = "returned"


def derive_loan_state(loan: BorrowRequest, now: Optional[datetime] = None) -> LoanState:
    """Compute loan status from ``returned`` and ``due_date``."""
    if loan.returned:
        return LoanState.RETURNED
    now = now or utcnow()
    due_date = ensure_aware(loan.due_date)
    if due_date is not None and due_date < now:
        return LoanState.OVERDUE
    return LoanState.ACTIVE


def _book_title(loan: BorrowRequest, fallback: str) -> str:
    return loan.book.title if loan.book is not None else fallback


def _check_renewal_limit(loan: BorrowRequest) -> None:
    if (loan.renewal_count or 0) >= MAX_RENEWALS:
        raise LimitExceededError(f"Maximum renewals ({MAX_RENEWALS}) reached")


async def _get_loan(db: AsyncSession, loan_id: str) -> BorrowRequest:
    loan = await get_borrow_request_by_id(db, loan_id)
    if not loan:
        raise NotFoundError("Loan not found")
    return loan


async def _clear_renewal_request_notifications(db: AsyncSession, loan: BorrowRequest) -> None:
    await notifications.delete_related(
        db, loan.id, NotificationType.LOAN_RENEWAL_REQUEST
    )


async def list_my_loans(db: AsyncSession, user_id: str) -> List[BorrowRequest]:
    """Approved borrow requests of a user, most recently approved first."""
    result = await db.execute(
        select(BorrowRequest)
        .where(
            BorrowRequest.user_id == user_id,
            BorrowRequest.status == BorrowStatus.APPROVED,
        )
        .order_by(BorrowRequest.approved_at.desc())
    )
    return list(result.scalars().all())


async def request_renewal(
    db: AsyncSession,
    loan_id: str,
    actor: User,
    note: Optional[str] = None,
) -> BorrowRequest:
    """Borrower asks staff to extend a loan.

    A previous ``approved``/``declined`` decision moves back to ``pending``;
    any older renewal-request notification for this loan is replaced.
    """
    loan = await _get_loan(db, loan_id)

    if loan.user_id != actor.id:
        raise ForbiddenError("Not authorized to renew this loan")
    if loan.returned:
        raise InvalidStateError("Cannot renew a returned loan")
    if loan.status != BorrowStatus.APPROVED:
        raise InvalidStateError("Only active loans can be renewed")
    if loan.renewal_status == RenewalStatus.PENDING:
        raise InvalidStateError("Renewal request is already pending")
    _check_renewal_limit(loan)

    loan.renewal_status = RenewalStatus.PENDING
    loan.renewal_requested_at = utcnow()
    loan.renewal_decision_at = None
    loan.renewal_decision_by = None
    loan.renewal_notes = note or None
    await db.flush()

    await _clear_renewal_request_notifications(db, loan)
    await notifications.notify_staff(
        db,
        title="Loan renewal requested",
        message=f'{actor.display_name} requested to renew "{_book_title(loan, "a book")}"',
        type=NotificationType.LOAN_RENEWAL_REQUEST,
        related_id=loan.id,
        action_link="/management/loans",
    )

    logger.info(
        f"Renewal requested: loan={loan_id} user={actor.id} renewal_count={loan.renewal_count}",
        **log_extra(loan_id=loan_id),
    )
    return loan


async def list_pending_renewals(db: AsyncSession, actor: User) -> List[BorrowRequest]:
    """Open renewal requests on unreturned loans, oldest request first (staff only)."""
    ensure_staff(actor, "Access denied")
    result = await db.execute(
        select(BorrowRequest)
        .where(
            BorrowRequest.renewal_status == RenewalStatus.PENDING,
            BorrowRequest.status == BorrowStatus.APPROVED,
            BorrowRequest.returned.is_(False),
        )
        .order_by(BorrowRequest.renewal_requested_at.asc())
    )
    return list(result.scalars().all())


async def approve_renewal(db: AsyncSession, loan_id: str, actor: User) -> BorrowRequest:
    """Extend the due date by RENEWAL_EXTENSION_DAYS and count the renewal."""
    ensure_staff(actor, "Access denied")
    loan = await _get_loan(db, loan_id)

    if loan.returned:
        raise InvalidStateError("Cannot renew a returned loan")
    if loan.renewal_status != RenewalStatus.PENDING:
        raise InvalidStateError("No pending renewal request to approve")
    _check_renewal_limit(loan)

    now = utcnow()
    base_due_date = ensure_aware(loan.due_date) or now
    new_due_date = base_due_date + timedelta(days=RENEWAL_EXTENSION_DAYS)

    loan.due_date = new_due_date
    loan.renewal_count = (loan.renewal_count or 0) + 1
    loan.last_renewed_at = now
    loan.renewal_status = RenewalStatus.APPROVED
    loan.renewal_decision_by = actor.id
    loan.renewal_decision_at = now
    await db.flush()

    await _clear_renewal_request_notifications(db, loan)
    await notifications.notify_user(
        db,
        user_id=loan.user_id,
        title="Loan renewal approved",
        message=(
            f'Your renewal request for "{_book_title(loan, "your book")}" was approved. '
            f"New due date: {new_due_date:%Y-%m-%d}."
        ),
        type=NotificationType.LOAN_RENEWAL_DECISION,
        related_id=loan.id,
        action_link="/loans",
    )

    logger.info(
        f"Renewal approved: loan={loan_id} by user={actor.id} "
        f"renewal_count={loan.renewal_count} due_date={new_due_date.isoformat()}",
        **log_extra(loan_id=loan_id),
    )
    return loan


async def decline_renewal(
    db: AsyncSession,
    loan_id: str,
    actor: User,
    reason: Optional[str] = None,
) -> BorrowRequest:
    ensure_staff(actor, "Access denied")
    loan = await _get_loan(db, loan_id)

    if loan.renewal_status != RenewalStatus.PENDING:
        raise InvalidStateError("No pending renewal request to decline")

    loan.renewal_status = RenewalStatus.DECLINED
    loan.renewal_decision_by = actor.id
    loan.renewal_decision_at = utcnow()
    loan.renewal_notes = reason or None
    await db.flush()

    await _clear_renewal_request_notifications(db, loan)

    title = _book_title(loan, "your book")
    if reason:
        message = f'Your renewal request for "{title}" was declined. Reason: {reason}'
    else:
        message = f'Your renewal request for "{title}" was declined.'
    await notifications.notify_user(
        db,
        user_id=loan.user_id,
        title="Loan renewal declined",
        message=message,
        type=NotificationType.LOAN_RENEWAL_DECISION,
        related_id=loan.id,
        action_link="/loans",
    )

    logger.info(
        f"Renewal declined: loan={loan_id} by user={actor.id}",
        **log_extra(loan_id=loan_id),
    )
    return loan
