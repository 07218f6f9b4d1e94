from typing import List, Optional

from fastapi import APIRouter, status

from libraxpert.api.v1.dependencies import CurrentUser, DbSession
from libraxpert.schemas.reservation import (
    ReservationCancel,
    ReservationCreate,
    ReservationResponse,
)
from libraxpert.services.reservation import (
    cancel_reservation,
    create_reservation,
    list_my_reservations,
    list_pending_reservations,
    notify_availability,
)

router = APIRouter(prefix="/reservations", tags=["Reservations"])


@router.post(
    "",
    response_model=ReservationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Reserve a book",
    description="Join the waitlist for a book that has no copies available.",
    responses={
        201: {"description": "Reservation created"},
        400: {"description": "Book is available, borrow it instead"},
        401: {"description": "Not authenticated"},
        404: {"description": "Book not found"},
        409: {"description": "A pending reservation for this book already exists"},
    },
)
async def create_reservation_endpoint(
    data: ReservationCreate,
    current_user: CurrentUser,
    db: DbSession,
):
    return await create_reservation(db, data.book_id, current_user)


@router.get(
    "/my-reservations",
    response_model=List[ReservationResponse],
    summary="My reservations",
    description="The caller's reservations in every status, newest first.",
)
async def my_reservations(current_user: CurrentUser, db: DbSession):
    return await list_my_reservations(db, current_user.id)


@router.get(
    "/pending",
    response_model=List[ReservationResponse],
    summary="Pending reservations",
    description="The waitlist across all books, oldest first. Librarian or Admin.",
    responses={
        200: {"description": "Pending reservations"},
        403: {"description": "Not authorized"},
    },
)
async def pending_reservations(current_user: CurrentUser, db: DbSession):
    return await list_pending_reservations(db, current_user)


@router.post(
    "/{reservation_id}/cancel",
    response_model=ReservationResponse,
    summary="Cancel a reservation",
    description="Cancel one of your pending reservations.",
    responses={
        200: {"description": "Reservation cancelled"},
        400: {"description": "Reservation is not pending"},
        403: {"description": "Reservation belongs to someone else"},
        404: {"description": "Reservation not found"},
    },
)
async def cancel_reservation_endpoint(
    reservation_id: str,
    current_user: CurrentUser,
    db: DbSession,
    data: Optional[ReservationCancel] = None,
):
    return await cancel_reservation(
        db, reservation_id, current_user, data.reason if data else None
    )


@router.post(
    "/notify-availability/{book_id}",
    response_model=ReservationResponse,
    summary="Notify the next borrower on the waitlist",
    description="Fulfil the oldest pending reservation for the book and give the borrower "
                "48 hours to pick it up. Librarian or Admin.",
    responses={
        200: {"description": "Waitlist head notified"},
        403: {"description": "Not authorized"},
        404: {"description": "Book not found, or no pending reservations"},
    },
)
async def notify_availability_endpoint(
    book_id: str,
    current_user: CurrentUser,
    db: DbSession,
):
    return await notify_availability(db, book_id, current_user)
