from typing import Annotated, Optional
from collections.abc import Callable

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from libraxpert.core.security import decode_access_token
from libraxpert.core.logging import get_logger, current_user_id_ctx
from libraxpert.db.session import get_db
from libraxpert.db.models import User, UserRole
from libraxpert.services.auth import is_token_blacklisted
from libraxpert.services.user import get_user_by_id

logger = get_logger("api.dependencies")

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")
optional_oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login", auto_error=False)


async def _resolve_token(db: AsyncSession, token: str) -> Optional[User]:
    payload = decode_access_token(token)
    if payload is None:
        return None

    jti = payload.get("jti")
    user_id = payload.get("sub")
    if not user_id or not jti:
        return None

    if await is_token_blacklisted(db, jti):
        logger.warning(f"Blacklisted token used: jti={jti}")
        return None

    return await get_user_by_id(db, user_id)


async def get_current_user(
    token: Annotated[str, Depends(oauth2_scheme)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """Decode JWT, check blacklist, and return the current user."""
    user = await _resolve_token(db, token)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is inactive",
        )

    current_user_id_ctx.set(user.id)
    return user


async def get_optional_user(
    token: Annotated[Optional[str], Depends(optional_oauth2_scheme)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Optional[User]:
    """Like ``get_current_user`` but yields None for anonymous or invalid callers."""
    if not token:
        return None
    user = await _resolve_token(db, token)
    if user is None or not user.is_active:
        return None
    current_user_id_ctx.set(user.id)
    return user


def require_role(*roles: UserRole) -> Callable:
    """Dependency factory that checks if the current user has one of the required roles."""

    async def role_checker(
        current_user: Annotated[User, Depends(get_current_user)],
    ) -> User:
        if current_user.role not in roles:
            logger.warning(
                f"Access denied: user={current_user.id} role={current_user.role.value} "
                f"required={[r.value for r in roles]}"
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return current_user

    return role_checker


CurrentUser = Annotated[User, Depends(get_current_user)]
OptionalUser = Annotated[Optional[User], Depends(get_optional_user)]
DbSession = Annotated[AsyncSession, Depends(get_db)]
