from datetime import datetime
from typing import Literal, Optional, List
from pydantic import BaseModel, EmailStr, Field

from libraxpert.db.models import UserRole

ENROLLMENT_PATTERN = r"^\d{12}$"

UserSortField = Literal["email", "full_name", "role", "enrollment_no", "created_at", "updated_at"]


class UserSummary(BaseModel):
    id: str
    email: str
    full_name: str
    enrollment_no: Optional[str] = None

    model_config = {"from_attributes": True}


class UserResponse(BaseModel):
    id: str
    email: str
    full_name: str
    role: UserRole
    enrollment_no: Optional[str]
    department: Optional[str]
    is_active: bool
    is_built_in: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)
    full_name: str = Field(..., min_length=1, max_length=255)
    role: UserRole = UserRole.STUDENT
    enrollment_no: Optional[str] = Field(None, pattern=ENROLLMENT_PATTERN)
    department: Optional[str] = Field(None, max_length=255)


class UserUpdate(BaseModel):
    email: Optional[EmailStr] = None
    full_name: Optional[str] = Field(None, min_length=1, max_length=255)
    role: Optional[UserRole] = None
    enrollment_no: Optional[str] = Field(None, pattern=ENROLLMENT_PATTERN)
    department: Optional[str] = Field(None, max_length=255)
    is_active: Optional[bool] = None
    password: Optional[str] = Field(None, min_length=6, max_length=128)


class UserListResponse(BaseModel):
    items: List[UserResponse]
    total: int
    page: int
    size: int
    pages: int
