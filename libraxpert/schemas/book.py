from datetime import datetime
from typing import Literal, Optional, List
from pydantic import BaseModel, Field

from libraxpert.db.models import BookStatus

ISBN_PATTERN = r"^(?:97[89][- ]?)?[0-9][0-9- ]{7,14}[0-9X]$"

BookSortField = Literal[
    "title", "author", "isbn", "total_copies", "available_copies", "rating", "created_at", "updated_at"
]


class BookCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    author: str = Field(..., min_length=1, max_length=100)
    isbn: Optional[str] = Field(None, pattern=ISBN_PATTERN, max_length=17)
    categories: List[str] = Field(default_factory=list)
    description: Optional[str] = Field(None, max_length=1000)
    total_copies: int = Field(1, ge=1)
    status: BookStatus = BookStatus.AVAILABLE
    rating: Optional[float] = Field(None, ge=0, le=5)
    cover_image: Optional[str] = Field(None, max_length=500)
    pdf_file: Optional[str] = Field(None, max_length=500)
    tags: List[str] = Field(default_factory=list)


class BookUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    author: Optional[str] = Field(None, min_length=1, max_length=100)
    isbn: Optional[str] = Field(None, pattern=ISBN_PATTERN, max_length=17)
    categories: Optional[List[str]] = None
    description: Optional[str] = Field(None, max_length=1000)
    total_copies: Optional[int] = Field(None, ge=0)
    status: Optional[BookStatus] = None
    rating: Optional[float] = Field(None, ge=0, le=5)
    cover_image: Optional[str] = Field(None, max_length=500)
    pdf_file: Optional[str] = Field(None, max_length=500)
    tags: Optional[List[str]] = None


class BookSummary(BaseModel):
    id: str
    title: str
    author: str
    cover_image: Optional[str] = None
    available_copies: int

    model_config = {"from_attributes": True}


class BookResponse(BaseModel):
    id: str
    title: str
    author: str
    isbn: Optional[str]
    categories: List[str]
    description: Optional[str]
    total_copies: int
    available_copies: int
    status: BookStatus
    rating: Optional[float]
    cover_image: Optional[str]
    pdf_file: Optional[str]
    tags: List[str]
    added_by: Optional[str]
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class BookListResponse(BaseModel):
    items: List[BookResponse]
    total: int
    page: int
    size: int
    pages: int
