from typing import List, Optional

from fastapi import APIRouter

from libraxpert.api.v1.dependencies import CurrentUser, DbSession
from libraxpert.schemas.loan import (
    LoanResponse,
    PendingRenewalResponse,
    RenewalDecline,
    RenewalRequest,
)
from libraxpert.services.loan import (
    approve_renewal,
    decline_renewal,
    list_my_loans,
    list_pending_renewals,
    request_renewal,
)
from libraxpert.utils.timezone import utcnow

router = APIRouter(prefix="/loans", tags=["Loans"])


@router.get(
    "/my-loans",
    response_model=List[LoanResponse],
    summary="My loans",
    description="The caller's approved borrow requests with a derived status "
                "(`active`, `overdue` or `returned`), most recent first.",
    responses={
        200: {"description": "Caller's loans"},
        401: {"description": "Not authenticated"},
    },
)
async def my_loans(current_user: CurrentUser, db: DbSession):
    loans = await list_my_loans(db, current_user.id)
    now = utcnow()
    return [LoanResponse.from_loan(loan, now) for loan in loans]


@router.get(
    "/pending-renewals",
    response_model=List[PendingRenewalResponse],
    summary="Pending renewal requests",
    description="Unreturned loans with an open renewal request, oldest request first. Librarian or Admin.",
    responses={
        200: {"description": "Renewal queue"},
        401: {"description": "Not authenticated"},
        403: {"description": "Access denied"},
    },
)
async def pending_renewals(current_user: CurrentUser, db: DbSession):
    loans = await list_pending_renewals(db, current_user)
    return [PendingRenewalResponse.from_loan(loan) for loan in loans]


@router.post(
    "/{loan_id}/request-renewal",
    response_model=LoanResponse,
    summary="Request a renewal",
    description="Ask staff to extend one of your loans. At most two renewals per loan.",
    responses={
        200: {"description": "Renewal requested"},
        400: {"description": "Loan returned, renewal already pending, or renewal limit reached"},
        403: {"description": "Loan belongs to someone else"},
        404: {"description": "Loan not found"},
    },
)
async def request_renewal_endpoint(
    loan_id: str,
    current_user: CurrentUser,
    db: DbSession,
    data: Optional[RenewalRequest] = None,
):
    loan = await request_renewal(db, loan_id, current_user, data.note if data else None)
    return LoanResponse.from_loan(loan)


@router.post(
    "/{loan_id}/renew",
    response_model=LoanResponse,
    summary="Approve a renewal",
    description="Extend the due date by 30 days. Librarian or Admin.",
    responses={
        200: {"description": "Renewal approved"},
        400: {"description": "No pending renewal, loan returned, or limit reached"},
        403: {"description": "Access denied"},
        404: {"description": "Loan not found"},
    },
)
async def approve_renewal_endpoint(
    loan_id: str,
    current_user: CurrentUser,
    db: DbSession,
):
    loan = await approve_renewal(db, loan_id, current_user)
    return LoanResponse.from_loan(loan)


@router.post(
    "/{loan_id}/renew/decline",
    response_model=LoanResponse,
    summary="Decline a renewal",
    description="Decline an open renewal request with an optional reason. Librarian or Admin.",
    responses={
        200: {"description": "Renewal declined"},
        400: {"description": "No pending renewal request"},
        403: {"description": "Access denied"},
        404: {"description": "Loan not found"},
    },
)
async def decline_renewal_endpoint(
    loan_id: str,
    current_user: CurrentUser,
    db: DbSession,
    data: Optional[RenewalDecline] = None,
):
    loan = await decline_renewal(db, loan_id, current_user, data.reason if data else None)
    return LoanResponse.from_loan(loan)
