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
    NotificationType,
    Reservation,
    ReservationStatus,
    User,
)
from libraxpert.services import notification as notifications
from libraxpert.services.borrow_request import ensure_staff
from libraxpert.utils.timezone import utcnow

logger = get_logger("services.reservation")

RESERVATION_EXPIRY_DAYS = 30
PICKUP_WINDOW_HOURS = 48
DEFAULT_CANCEL_REASON = "Cancelled by user"


async def _get_book(db: AsyncSession, book_id: str) -> Book:
    result = await db.execute(select(Book).where(Book.id == book_id))
    book = result.scalar_one_or_none()
    if not book:
        raise NotFoundError("Book not found")
    return book


async def get_reservation_by_id(
    db: AsyncSession, reservation_id: str
) -> Optional[Reservation]:
    result = await db.execute(select(Reservation).where(Reservation.id == reservation_id))
    return result.scalar_one_or_none()


async def create_reservation(db: AsyncSession, book_id: str, actor: User) -> Reservation:
    """Join the waitlist for a book with no available copies."""
    book = await _get_book(db, book_id)

    if (book.available_copies or 0) > 0:
        raise InvalidStateError(
            "This book is currently available. Please borrow it directly instead of reserving."
        )

    existing = await db.execute(
        select(Reservation.id).where(
            Reservation.book_id == book_id,
            Reservation.user_id == actor.id,
            Reservation.status == ReservationStatus.PENDING,
        )
    )
    if existing.first() is not None:
        raise ConflictError("You already have a pending reservation for this book")

    now = utcnow()
    reservation = Reservation(
        book=book,
        user=actor,
        status=ReservationStatus.PENDING,
        requested_at=now,
        expiry_date=now + timedelta(days=RESERVATION_EXPIRY_DAYS),
    )
    db.add(reservation)
    await db.flush()

    await notifications.notify_user(
        db,
        user_id=actor.id,
        title="Book Reservation Confirmed",
        message=(
            f'Your reservation for "{book.title}" has been confirmed. '
            "We'll notify you when the book becomes available."
        ),
        type=NotificationType.RESERVATION_CREATED,
        related_id=reservation.id,
    )

    logger.info(
        f"Reservation created: id={reservation.id} book={book_id} user={actor.id}",
        **log_extra(reservation_id=reservation.id, book_id=book_id),
    )
    return reservation


async def list_my_reservations(db: AsyncSession, user_id: str) -> List[Reservation]:
    """All reservations of a user in any status, newest first."""
    result = await db.execute(
        select(Reservation)
        .where(Reservation.user_id == user_id)
        .order_by(Reservation.requested_at.desc())
    )
    return list(result.scalars().all())


async def list_pending_reservations(db: AsyncSession, actor: User) -> List[Reservation]:
    """The waitlist across all books, oldest first (staff only)."""
    ensure_staff(actor)
    result = await db.execute(
        select(Reservation)
        .where(Reservation.status == ReservationStatus.PENDING)
        .order_by(Reservation.requested_at.asc())
    )
    return list(result.scalars().all())


async def cancel_reservation(
    db: AsyncSession,
    reservation_id: str,
    actor: User,
    reason: Optional[str] = None,
) -> Reservation:
    reservation = await get_reservation_by_id(db, reservation_id)
    if not reservation:
        raise NotFoundError("Reservation not found")
    if reservation.user_id != actor.id:
        raise ForbiddenError("Not authorized to cancel this reservation")
    if reservation.status != ReservationStatus.PENDING:
        raise InvalidStateError("Only pending reservations can be cancelled")

    reservation.status = ReservationStatus.CANCELLED
    reservation.cancelled_at = utcnow()
    reservation.cancel_reason = reason or DEFAULT_CANCEL_REASON
    await db.flush()

    title = reservation.book.title if reservation.book is not None else "your book"
    await notifications.notify_user(
        db,
        user_id=actor.id,
        title="Reservation Cancelled",
        message=f'Your reservation for "{title}" has been cancelled.',
        type=NotificationType.RESERVATION_CANCELLED,
        related_id=reservation.id,
    )

    logger.info(
        f"Reservation cancelled: id={reservation_id} user={actor.id}",
        **log_extra(reservation_id=reservation_id),
    )
    return reservation


async def notify_availability(db: AsyncSession, book_id: str, actor: User) -> Reservation:
    """Fulfil the head of a book's waitlist.

    Picks the oldest pending, not-yet-notified reservation, marks it
    fulfilled and records a pickup deadline. ``available_copies`` is not
    consulted, so repeated calls walk down the waitlist regardless of
    stock.
    """
    ensure_staff(actor)
    book = await _get_book(db, book_id)

    result = await db.execute(
        select(Reservation)
        .where(
            Reservation.book_id == book_id,
            Reservation.status == ReservationStatus.PENDING,
            Reservation.notified_user.is_(False),
        )
        .order_by(Reservation.requested_at.asc())
        .limit(1)
    )
    reservation = result.scalar_one_or_none()
    if not reservation:
        raise NotFoundError("No pending reservations for this book")

    now = utcnow()
    reservation.status = ReservationStatus.FULFILLED
    reservation.fulfilled_at = now
    reservation.notified_user = True
    reservation.pickup_deadline = now + timedelta(hours=PICKUP_WINDOW_HOURS)
    await db.flush()

    await notifications.notify_user(
        db,
        user_id=reservation.user_id,
        title="Book Available for Pickup",
        message=(
            f'Good news! "{book.title}" is now available for pickup. Please collect it '
            f"within {PICKUP_WINDOW_HOURS} hours or your reservation will expire."
        ),
        type=NotificationType.BOOK_AVAILABLE,
        related_id=reservation.id,
        action_link=f"/book/{book_id}",
    )

    logger.info(
        f"Waitlist head notified: reservation={reservation.id} book={book_id} "
        f"user={reservation.user_id} by staff={actor.id}",
        **log_extra(reservation_id=reservation.id, book_id=book_id),
    )
    return reservation
