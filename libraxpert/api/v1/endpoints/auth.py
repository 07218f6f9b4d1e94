from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm

from libraxpert.api.v1.dependencies import CurrentUser, DbSession, oauth2_scheme
from libraxpert.db.models import UserRole
from libraxpert.schemas.auth import RegisterRequest, TokenResponse, LogoutResponse
from libraxpert.schemas.user import UserResponse
from libraxpert.services.auth import register_user, authenticate_user, create_user_token, blacklist_token

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post(
    "/register",
    response_model=TokenResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new user",
    description="Create a student or external borrower account and receive a JWT access token. "
                "Students must supply a 12-digit enrollment number.",
    responses={
        201: {"description": "User registered successfully, JWT token returned"},
        400: {"description": "Role not allowed for self-registration"},
        409: {"description": "Email or enrollment number already registered"},
        422: {"description": "Validation error"},
    },
)
async def register(data: RegisterRequest, db: DbSession):
    """Register a new borrower account and return a JWT token."""
    try:
        user = await register_user(
            db,
            data.email,
            data.password,
            data.full_name,
            role=UserRole(data.role),
            enrollment_no=data.enrollment_no,
            department=data.department,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    token = create_user_token(user)
    return TokenResponse(access_token=token)


@router.post(
    "/login",
    response_model=TokenResponse,
    summary="Login",
    description="Authenticate using the OAuth2 password form. "
                "The `username` field accepts either the email address or the enrollment number.",
    responses={
        200: {"description": "Login successful, JWT token returned"},
        401: {"description": "Invalid credentials"},
        422: {"description": "Validation error"},
    },
)
async def login(
    form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
    db: DbSession,
):
    """Login with email or enrollment number and password, returns a JWT token."""
    user = await authenticate_user(db, form_data.username, form_data.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    token = create_user_token(user)
    return TokenResponse(access_token=token)


@router.post(
    "/logout",
    response_model=LogoutResponse,
    summary="Logout",
    description="Invalidate the current JWT token. Requires a valid Bearer token.",
    responses={
        200: {"description": "Successfully logged out"},
        401: {"description": "Not authenticated or token already invalid"},
    },
)
async def logout(
    token: Annotated[str, Depends(oauth2_scheme)],
    current_user: CurrentUser,
    db: DbSession,
):
    """Logout and invalidate the current JWT token."""
    await blacklist_token(db, token)
    return LogoutResponse()


@router.get(
    "/me",
    response_model=UserResponse,
    summary="Current user",
    description="Return the profile of the authenticated caller.",
)
async def me(current_user: CurrentUser):
    return current_user
