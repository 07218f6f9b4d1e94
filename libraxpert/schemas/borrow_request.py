from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field

from libraxpert.db.models import BorrowStatus, RenewalStatus
from libraxpert.schemas.book import BookSummary
from libraxpert.schemas.user import UserSummary


class BorrowRequestCreate(BaseModel):
    book_id: str
    message: Optional[str] = Field(None, max_length=1000)


class BorrowRequestDecline(BaseModel):
    reason: Optional[str] = Field(None, max_length=1000)


class BorrowRequestResponse(BaseModel):
    id: str
    book_id: str
    user_id: str
    status: BorrowStatus
    requested_at: datetime
    processed_by: Optional[str]
    processed_at: Optional[datetime]
    message: Optional[str]
    notes: Optional[str]
    approved_at: Optional[datetime]
    due_date: Optional[datetime]
    returned: bool
    renewal_status: RenewalStatus
    renewal_count: int
    book: Optional[BookSummary] = None
    user: Optional[UserSummary] = None

    model_config = {"from_attributes": True}


class BorrowRequestListResponse(BaseModel):
    items: List[BorrowRequestResponse]
    total: int
