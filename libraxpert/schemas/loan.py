from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from libraxpert.db.models import BorrowRequest, RenewalStatus
from libraxpert.services.loan import LoanState, derive_loan_state

UNKNOWN_BOOK = "Unknown Book"
UNKNOWN_AUTHOR = "Unknown Author"


class RenewalRequest(BaseModel):
    note: Optional[str] = Field(None, max_length=1000)


class RenewalDecline(BaseModel):
    reason: Optional[str] = Field(None, max_length=1000)


class LoanResponse(BaseModel):
    """Borrower-facing view of an approved borrow request."""

    id: str
    book_id: str
    user_id: str
    book_title: str
    book_author: str
    cover_image: Optional[str]
    borrow_date: datetime
    due_date: Optional[datetime]
    return_date: Optional[datetime]
    status: LoanState
    renewal_status: RenewalStatus
    renewal_requested_at: Optional[datetime]
    renewal_decision_at: Optional[datetime]
    renewal_notes: Optional[str]
    renewal_count: int

    @classmethod
    def from_loan(cls, loan: BorrowRequest, now: Optional[datetime] = None) -> "LoanResponse":
        book = loan.book
        return cls(
            id=loan.id,
            book_id=loan.book_id,
            user_id=loan.user_id,
            book_title=book.title if book else UNKNOWN_BOOK,
            book_author=(book.author or UNKNOWN_AUTHOR) if book else UNKNOWN_AUTHOR,
            cover_image=book.cover_image if book else None,
            borrow_date=loan.approved_at or loan.requested_at,
            due_date=loan.due_date,
            return_date=loan.returned_at,
            status=derive_loan_state(loan, now),
            renewal_status=loan.renewal_status or RenewalStatus.NONE,
            renewal_requested_at=loan.renewal_requested_at,
            renewal_decision_at=loan.renewal_decision_at,
            renewal_notes=loan.renewal_notes,
            renewal_count=loan.renewal_count or 0,
        )


class PendingRenewalResponse(BaseModel):
    """Staff-facing row of the renewal queue."""

    id: str
    book_id: str
    book_title: str
    book_author: str
    cover_image: Optional[str]
    borrower_id: str
    borrower_name: str
    borrower_email: Optional[str]
    borrow_date: datetime
    due_date: Optional[datetime]
    renewal_requested_at: Optional[datetime]
    renewal_notes: Optional[str]
    renewal_count: int

    @classmethod
    def from_loan(cls, loan: BorrowRequest) -> "PendingRenewalResponse":
        book, user = loan.book, loan.user
        return cls(
            id=loan.id,
            book_id=loan.book_id,
            book_title=book.title if book else UNKNOWN_BOOK,
            book_author=(book.author or UNKNOWN_AUTHOR) if book else UNKNOWN_AUTHOR,
            cover_image=book.cover_image if book else None,
            borrower_id=loan.user_id,
            borrower_name=user.display_name if user else "A borrower",
            borrower_email=user.email if user else None,
            borrow_date=loan.approved_at or loan.requested_at,
            due_date=loan.due_date,
            renewal_requested_at=loan.renewal_requested_at,
            renewal_notes=loan.renewal_notes,
            renewal_count=loan.renewal_count or 0,
        )
