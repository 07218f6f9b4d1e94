from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, EmailStr, Field

from libraxpert.db.models import FeedbackStatus, FeedbackSubject


class FeedbackCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    subject: FeedbackSubject
    message: str = Field(..., min_length=1, max_length=2000)
    rating: int = Field(..., ge=1, le=5)


class FeedbackUpdate(BaseModel):
    status: Optional[FeedbackStatus] = None
    admin_notes: Optional[str] = Field(None, max_length=1000)


class FeedbackResponse(BaseModel):
    id: str
    name: str
    email: str
    subject: FeedbackSubject
    message: str
    rating: int
    user_id: Optional[str]
    status: FeedbackStatus
    admin_notes: Optional[str]
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class FeedbackReceipt(BaseModel):
    id: str
    name: str
    subject: FeedbackSubject
    rating: int
    created_at: datetime

    model_config = {"from_attributes": True}


class FeedbackListResponse(BaseModel):
    items: List[FeedbackResponse]
    total: int
    page: int
    size: int
    pages: int


class FeedbackOverallStats(BaseModel):
    total_feedback: int
    average_rating: float
    pending_count: int
    reviewed_count: int
    resolved_count: int


class FeedbackSubjectStats(BaseModel):
    subject: FeedbackSubject
    count: int
    average_rating: float


class FeedbackRatingStats(BaseModel):
    rating: int
    count: int


class FeedbackStatsResponse(BaseModel):
    overall: FeedbackOverallStats
    by_subject: List[FeedbackSubjectStats]
    by_rating: List[FeedbackRatingStats]
