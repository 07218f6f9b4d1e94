from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from libraxpert.core.logging import get_logger
from libraxpert.core.security import hash_password, verify_password, create_access_token, decode_access_token
from libraxpert.db.models import User, BlacklistedToken, UserRole
from libraxpert.services.user import ensure_identity_free

logger = get_logger("services.auth")

SELF_REGISTER_ROLES = (UserRole.STUDENT, UserRole.EXTERNAL)


async def register_user(
    db: AsyncSession,
    email: str,
    password: str,
    full_name: str,
    role: UserRole = UserRole.STUDENT,
    enrollment_no: Optional[str] = None,
    department: Optional[str] = None,
) -> User:
    """Register a borrower account. Staff roles are only granted by an admin."""
    if role not in SELF_REGISTER_ROLES:
        raise ValueError("Only student or external accounts can self-register")
    if role == UserRole.STUDENT and not enrollment_no:
        raise ValueError("Students must provide a valid 12-digit enrollment number")

    await ensure_identity_free(db, email, enrollment_no)

    user = User(
        email=email.lower(),
        hashed_password=hash_password(password),
        full_name=full_name,
        role=role,
        enrollment_no=enrollment_no if role == UserRole.STUDENT else None,
        department=department,
    )
    db.add(user)
    await db.flush()
    await db.refresh(user)

    logger.info(f"User registered: {user.email} (id={user.id}, role={user.role.value})")
    return user


async def authenticate_user(
    db: AsyncSession, identifier: str, password: str
) -> Optional[User]:
    """Authenticate by email or enrollment number and return the user if valid."""
    result = await db.execute(
        select(User).where(
            or_(User.email == identifier.lower(), User.enrollment_no == identifier)
        )
    )
    user = result.scalars().first()

    if not user:
        logger.warning(f"Login failed: unknown identifier {identifier}")
        return None

    if not user.is_active:
        logger.warning(f"Login failed: user {identifier} is blocked/inactive")
        return None

    if not verify_password(password, user.hashed_password):
        logger.warning(f"Login failed: wrong password for {identifier}")
        return None

    logger.info(f"Login successful: {user.email} (id={user.id})")
    return user


def create_user_token(user: User) -> str:
    """Create a JWT token for a user."""
    return create_access_token(data={"sub": user.id, "role": user.role.value})


async def blacklist_token(db: AsyncSession, token: str) -> None:
    """Add a token's JTI to the blacklist."""
    payload = decode_access_token(token)
    if not payload:
        return

    jti = payload.get("jti")
    exp = payload.get("exp")
    if not jti or not exp:
        return

    entry = BlacklistedToken(jti=jti, expires_at=datetime.fromtimestamp(exp, tz=timezone.utc))
    db.add(entry)
    await db.flush()

    logger.info(f"Token blacklisted: jti={jti}")


async def is_token_blacklisted(db: AsyncSession, jti: str) -> bool:
    """Check if a token JTI is in the blacklist."""
    result = await db.execute(
        select(BlacklistedToken.id).where(BlacklistedToken.jti == jti)
    )
    return result.first() is not None
