from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field, model_validator

from libraxpert.schemas.user import ENROLLMENT_PATTERN


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)
    full_name: str = Field(..., min_length=1, max_length=255)
    role: Literal["student", "external"] = "student"
    enrollment_no: Optional[str] = Field(None, pattern=ENROLLMENT_PATTERN)
    department: Optional[str] = Field(None, max_length=255)

    @model_validator(mode="after")
    def require_enrollment_for_students(self) -> "RegisterRequest":
        if self.role == "student" and not self.enrollment_no:
            raise ValueError("Students must provide a valid 12-digit enrollment number")
        return self


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class LogoutResponse(BaseModel):
    message: str = "Successfully logged out"
