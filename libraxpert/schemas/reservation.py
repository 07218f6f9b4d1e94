from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field

from libraxpert.db.models import ReservationStatus
from libraxpert.schemas.book import BookSummary
from libraxpert.schemas.user import UserSummary


class ReservationCreate(BaseModel):
    book_id: str


class ReservationCancel(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class ReservationResponse(BaseModel):
    id: str
    book_id: str
    user_id: str
    status: ReservationStatus
    requested_at: datetime
    expiry_date: datetime
    notified_user: bool
    fulfilled_at: Optional[datetime]
    pickup_deadline: Optional[datetime]
    cancelled_at: Optional[datetime]
    cancel_reason: Optional[str]
    notes: Optional[str]
    book: Optional[BookSummary] = None
    user: Optional[UserSummary] = None

    model_config = {"from_attributes": True}


class ReservationListResponse(BaseModel):
    items: List[ReservationResponse]
    total: int
