from typing import List, Optional

from fastapi import APIRouter, Query, status

from libraxpert.api.v1.dependencies import CurrentUser, DbSession
from libraxpert.db.models import BorrowStatus
from libraxpert.schemas.borrow_request import (
    BorrowRequestCreate,
    BorrowRequestDecline,
    BorrowRequestResponse,
)
from libraxpert.services.borrow_request import (
    approve_request,
    create_borrow_request,
    decline_request,
    list_borrow_requests,
    list_pending_requests,
)

router = APIRouter(prefix="/borrow-requests", tags=["Borrow Requests"])


@router.post(
    "",
    response_model=BorrowRequestResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Request to borrow a book",
    description="Create a pending borrow request. Every librarian and admin is notified.",
    responses={
        201: {"description": "Borrow request created"},
        401: {"description": "Not authenticated"},
        404: {"description": "Book not found"},
        409: {"description": "A pending request for this book already exists"},
    },
)
async def create_borrow_request_endpoint(
    data: BorrowRequestCreate,
    current_user: CurrentUser,
    db: DbSession,
):
    return await create_borrow_request(db, data.book_id, current_user, data.message)


@router.get(
    "",
    response_model=List[BorrowRequestResponse],
    summary="List borrow requests",
    description="All borrow requests, newest first, optionally filtered by status. Librarian or Admin.",
    responses={
        200: {"description": "Borrow requests"},
        401: {"description": "Not authenticated"},
        403: {"description": "Not authorized to view requests"},
    },
)
async def list_borrow_requests_endpoint(
    current_user: CurrentUser,
    db: DbSession,
    request_status: Optional[BorrowStatus] = Query(None, alias="status"),
):
    return await list_borrow_requests(db, current_user, status=request_status)


@router.get(
    "/pending",
    response_model=List[BorrowRequestResponse],
    summary="Pending borrow requests",
    description="Pending requests with book and borrower details, newest first. Librarian or Admin.",
    responses={
        200: {"description": "Pending borrow requests"},
        401: {"description": "Not authenticated"},
        403: {"description": "Not authorized to view requests"},
    },
)
async def list_pending_requests_endpoint(current_user: CurrentUser, db: DbSession):
    return await list_pending_requests(db, current_user)


@router.post(
    "/{request_id}/approve",
    response_model=BorrowRequestResponse,
    summary="Approve a borrow request",
    description="Turn a pending request into a 14-day loan and take one copy off the shelf. "
                "Librarian or Admin.",
    responses={
        200: {"description": "Request approved, loan started"},
        400: {"description": "Request is not pending"},
        403: {"description": "Not authorized to approve requests"},
        404: {"description": "Borrow request or book not found"},
        409: {"description": "No copies available for loan"},
    },
)
async def approve_request_endpoint(
    request_id: str,
    current_user: CurrentUser,
    db: DbSession,
):
    return await approve_request(db, request_id, current_user)


@router.post(
    "/{request_id}/decline",
    response_model=BorrowRequestResponse,
    summary="Decline a borrow request",
    description="Decline a pending request with an optional reason. Librarian or Admin.",
    responses={
        200: {"description": "Request declined"},
        400: {"description": "Request is not pending"},
        403: {"description": "Not authorized to decline requests"},
        404: {"description": "Borrow request not found"},
    },
)
async def decline_request_endpoint(
    request_id: str,
    current_user: CurrentUser,
    db: DbSession,
    data: Optional[BorrowRequestDecline] = None,
):
    reason = data.reason if data else None
    return await decline_request(db, request_id, current_user, reason)
