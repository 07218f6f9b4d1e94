"""
Shared fixtures for functional tests.
Uses httpx.AsyncClient against the real FastAPI app with an in-memory SQLite DB.
"""
from uuid import uuid4

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession

from libraxpert.db.models import Base, User, UserRole
from libraxpert.core.security import hash_password
from libraxpert.db import session as db_session_module
from libraxpert.main import app


# ─── DB override ────────────────────────────────────────────────

@pytest_asyncio.fixture
async def test_engine():
    """Create an in-memory SQLite engine for functional testing."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)

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
async def test_session_factory(test_engine):
    """Session factory bound to the test engine."""
    return async_sessionmaker(bind=test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def client(test_session_factory):
    """Provide an httpx.AsyncClient with DB overridden to use the test DB."""

    async def override_get_db():
        async with test_session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[db_session_module.get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ─── Auth helpers ───────────────────────────────────────────────

def new_enrollment_no() -> str:
    return f"{uuid4().int % 10**12:012d}"


async def register(client: AsyncClient, role: str = "student", **overrides) -> dict:
    """Self-register a borrower and return its profile plus token."""
    data = {
        "email": f"{role}-{uuid4().hex[:6]}@test.com",
        "password": "password123",
        "full_name": f"Test {role.title()}",
        "role": role,
    }
    if role == "student":
        data["enrollment_no"] = new_enrollment_no()
    data.update(overrides)

    resp = await client.post("/api/v1/auth/register", json=data)
    assert resp.status_code == 201, resp.text
    token = resp.json()["access_token"]

    me = await client.get("/api/v1/auth/me", headers=auth_header(token))
    assert me.status_code == 200
    return {**data, "id": me.json()["id"], "token": token}


async def _create_staff(
    client: AsyncClient,
    session_factory,
    role: UserRole,
    password: str,
    email: str = None,
    is_built_in: bool = False,
) -> dict:
    async with session_factory() as session:
        user = User(
            id=str(uuid4()),
            email=email or f"{role.value}-{uuid4().hex[:6]}@test.com",
            hashed_password=hash_password(password),
            full_name=f"Test {role.value.title()}",
            role=role,
            is_built_in=is_built_in,
            is_active=True,
        )
        session.add(user)
        await session.commit()

    resp = await client.post(
        "/api/v1/auth/login",
        data={"username": user.email, "password": password},
    )
    assert resp.status_code == 200
    token = resp.json()["access_token"]
    return {"id": user.id, "email": user.email, "token": token, "role": role.value}


@pytest_asyncio.fixture
async def registered_student(client: AsyncClient):
    """Register a student borrower and return (user_data, token)."""
    return await register(client, "student")


@pytest_asyncio.fixture
async def second_student(client: AsyncClient):
    return await register(client, "student", full_name="Second Student")


@pytest_asyncio.fixture
async def registered_external(client: AsyncClient):
    """Register an external borrower (no enrollment number)."""
    return await register(client, "external")


@pytest_asyncio.fixture
async def admin_user(client: AsyncClient, test_session_factory):
    """Create an admin user directly in DB and return (user_data, token)."""
    return await _create_staff(client, test_session_factory, UserRole.ADMIN, "adminpass123")


@pytest_asyncio.fixture
async def librarian_user(client: AsyncClient, test_session_factory):
    """Create a librarian user directly in DB and return (user_data, token)."""
    return await _create_staff(client, test_session_factory, UserRole.LIBRARIAN, "libpass123")


@pytest_asyncio.fixture
async def built_in_admin(client: AsyncClient, test_session_factory):
    """Create the built-in admin user (cannot be deleted)."""
    data = await _create_staff(
        client,
        test_session_factory,
        UserRole.ADMIN,
        "builtinpass123",
        email="builtin-admin@libraxpert.com",
        is_built_in=True,
    )
    return {**data, "is_built_in": True}


# ─── Catalog and workflow helpers ───────────────────────────────

async def create_book(client: AsyncClient, token: str, **overrides) -> dict:
    data = {
        "title": f"Book {uuid4().hex[:6]}",
        "author": "Test Author",
        "categories": ["Fiction"],
        "total_copies": 1,
    }
    data.update(overrides)
    resp = await client.post("/api/v1/books", json=data, headers=auth_header(token))
    assert resp.status_code == 201, resp.text
    return resp.json()


async def borrow(client: AsyncClient, book_id: str, token: str) -> dict:
    resp = await client.post(
        "/api/v1/borrow-requests", json={"book_id": book_id}, headers=auth_header(token)
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


async def approve(client: AsyncClient, request_id: str, token: str) -> dict:
    resp = await client.post(
        f"/api/v1/borrow-requests/{request_id}/approve", headers=auth_header(token)
    )
    assert resp.status_code == 200, resp.text
    return resp.json()


async def start_loan(client: AsyncClient, book_id: str, borrower_token: str, staff_token: str) -> dict:
    """Borrow and approve in one go; returns the approved request (the loan)."""
    request = await borrow(client, book_id, borrower_token)
    return await approve(client, request["id"], staff_token)


async def inbox(client: AsyncClient, token: str) -> list:
    resp = await client.get("/api/v1/notifications", headers=auth_header(token))
    assert resp.status_code == 200
    return resp.json()["items"]


def auth_header(token: str) -> dict:
    """Return an Authorization header dict."""
    return {"Authorization": f"Bearer {token}"}
