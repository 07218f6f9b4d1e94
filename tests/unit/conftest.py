"""
Shared fixtures for unit tests.
Uses an in-memory SQLite database for fast isolated testing.
"""
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession

from libraxpert.db.models import (
    Base, User, UserRole, Book, BorrowRequest, BorrowStatus, RenewalStatus,
    Reservation, ReservationStatus, Notification, NotificationType,
)
from libraxpert.core.security import hash_password


@pytest_asyncio.fixture
async def async_engine():
    """Create an in-memory SQLite engine for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
    )

    # Enable foreign key support for SQLite
    @event.listens_for(engine.sync_engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(async_engine) -> AsyncSession:
    """Provide a transactional database session for each test."""
    session_factory = async_sessionmaker(
        bind=async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with session_factory() as session:
        yield session
        await session.rollback()


# ─── Helper factories ───────────────────────────────────────────


@pytest.fixture
def make_user():
    """Factory fixture to create User instances."""
    def _make(
        email: str = None,
        password: str = "testpassword123",
        full_name: str = "Test User",
        role: UserRole = UserRole.STUDENT,
        enrollment_no: str = None,
        is_active: bool = True,
        is_built_in: bool = False,
    ) -> User:
        if enrollment_no is None and role == UserRole.STUDENT:
            enrollment_no = f"{uuid4().int % 10**12:012d}"
        return User(
            id=str(uuid4()),
            email=email or f"user-{uuid4().hex[:8]}@test.com",
            hashed_password=hash_password(password),
            full_name=full_name,
            role=role,
            enrollment_no=enrollment_no,
            is_active=is_active,
            is_built_in=is_built_in,
        )
    return _make


@pytest.fixture
def make_book():
    """Factory fixture to create Book instances."""
    def _make(
        title: str = "Test Book",
        author: str = "Test Author",
        isbn: str = None,
        description: str = "A test book",
        categories: list = None,
        total_copies: int = 5,
        available_copies: int = 5,
    ) -> Book:
        return Book(
            id=str(uuid4()),
            title=title,
            author=author,
            isbn=isbn or f"978{uuid4().int % 10**10:010d}",
            description=description,
            categories=categories if categories is not None else ["Fiction"],
            tags=[],
            total_copies=total_copies,
            available_copies=available_copies,
        )
    return _make


@pytest.fixture
def make_borrow_request():
    """Factory fixture to create BorrowRequest instances.

    ``book`` and ``user`` are assigned as relationships so the request can be
    added to a session alongside them.
    """
    def _make(
        book: Book,
        user: User,
        status: BorrowStatus = BorrowStatus.PENDING,
        requested_at: datetime = None,
        due_date: datetime = None,
        returned: bool = False,
        renewal_status: RenewalStatus = RenewalStatus.NONE,
        renewal_count: int = 0,
    ) -> BorrowRequest:
        now = datetime.now(timezone.utc)
        approved = status == BorrowStatus.APPROVED
        return BorrowRequest(
            id=str(uuid4()),
            book=book,
            user=user,
            status=status,
            requested_at=requested_at or now,
            approved_at=now if approved else None,
            due_date=due_date or (now + timedelta(days=14) if approved else None),
            returned=returned,
            returned_at=now if returned else None,
            renewal_status=renewal_status,
            renewal_count=renewal_count,
        )
    return _make


@pytest.fixture
def make_reservation():
    """Factory fixture to create Reservation instances."""
    def _make(
        book: Book,
        user: User,
        status: ReservationStatus = ReservationStatus.PENDING,
        requested_at: datetime = None,
        notified_user: bool = False,
    ) -> Reservation:
        requested_at = requested_at or datetime.now(timezone.utc)
        return Reservation(
            id=str(uuid4()),
            book=book,
            user=user,
            status=status,
            requested_at=requested_at,
            expiry_date=requested_at + timedelta(days=30),
            notified_user=notified_user,
        )
    return _make


@pytest.fixture
def make_notification():
    """Factory fixture to create Notification instances."""
    def _make(
        user_id: str,
        type: NotificationType = NotificationType.BORROW_REQUEST,
        related_id: str = None,
        title: str = "Test notification",
        message: str = "Something happened",
        created_at: datetime = None,
    ) -> Notification:
        return Notification(
            id=str(uuid4()),
            user_id=user_id,
            title=title,
            message=message,
            type=type,
            related_id=related_id,
            created_at=created_at or datetime.now(timezone.utc),
        )
    return _make
