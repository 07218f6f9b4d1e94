from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status

from libraxpert.api.v1.dependencies import DbSession, require_role
from libraxpert.db.models import User, UserRole
from libraxpert.schemas.user import UserCreate, UserResponse, UserUpdate, UserListResponse, UserSortField
from libraxpert.services.user import (
    create_user,
    get_users,
    get_user_by_id,
    update_user,
    delete_user,
    calculate_pages,
)

router = APIRouter(prefix="/users", tags=["Users"])

AdminUser = Annotated[User, Depends(require_role(UserRole.ADMIN))]


@router.get(
    "",
    response_model=UserListResponse,
    summary="List users",
    description="Retrieve a paginated list of users with optional role, status and search filters. "
                "Search matches name, email and enrollment number. Requires Admin role.",
    responses={
        200: {"description": "Paginated list of users"},
        401: {"description": "Not authenticated"},
        403: {"description": "Insufficient permissions"},
    },
)
async def list_users(
    current_user: AdminUser,
    db: DbSession,
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    role: UserRole | None = None,
    is_active: bool | None = None,
    search: str | None = None,
    sort_by: UserSortField = Query("created_at"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
):
    """List all users (Admin only)."""
    users, total = await get_users(
        db, page=page, size=size, role=role, is_active=is_active,
        search=search, sort_by=sort_by, sort_order=sort_order,
    )
    return UserListResponse(
        items=users, total=total, page=page, size=size, pages=calculate_pages(total, size)
    )


@router.post(
    "",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a user",
    description="Create an account with any role, including librarian and admin. Requires Admin role.",
    responses={
        201: {"description": "User created"},
        401: {"description": "Not authenticated"},
        403: {"description": "Insufficient permissions"},
        409: {"description": "Email or enrollment number already registered"},
        422: {"description": "Validation error"},
    },
)
async def create_user_endpoint(
    data: UserCreate,
    current_user: AdminUser,
    db: DbSession,
):
    """Create a user (Admin only)."""
    return await create_user(db, data.model_dump(), current_user.id)


@router.get(
    "/{user_id}",
    response_model=UserResponse,
    summary="Get user details",
    description="Retrieve a single user by their ID. Requires Admin role.",
    responses={
        200: {"description": "User details"},
        401: {"description": "Not authenticated"},
        403: {"description": "Insufficient permissions"},
        404: {"description": "User not found"},
    },
)
async def get_user(
    user_id: str,
    current_user: AdminUser,
    db: DbSession,
):
    """Get user details (Admin only)."""
    user = await get_user_by_id(db, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


@router.put(
    "/{user_id}",
    response_model=UserResponse,
    summary="Update a user",
    description="Update user details (email, name, role, enrollment, status, password). Requires Admin role.",
    responses={
        200: {"description": "User updated successfully"},
        401: {"description": "Not authenticated"},
        403: {"description": "Insufficient permissions"},
        404: {"description": "User not found"},
        409: {"description": "Email or enrollment number already registered"},
        422: {"description": "Validation error"},
    },
)
async def update_user_endpoint(
    user_id: str,
    data: UserUpdate,
    current_user: AdminUser,
    db: DbSession,
):
    """Update a user (Admin only)."""
    user = await update_user(db, user_id, data.model_dump(exclude_unset=True), current_user.id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


@router.delete(
    "/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a user",
    description="Permanently delete a user. Cannot delete the built-in admin. Requires Admin role.",
    responses={
        204: {"description": "User deleted successfully"},
        401: {"description": "Not authenticated"},
        403: {"description": "Cannot delete built-in admin"},
        404: {"description": "User not found"},
    },
)
async def delete_user_endpoint(
    user_id: str,
    current_user: AdminUser,
    db: DbSession,
):
    """Delete a user (Admin only). Cannot delete the built-in admin."""
    deleted = await delete_user(db, user_id, current_user.id)
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
