"""
Unit tests for libraxpert.services.auth – registration, authentication, token management.
"""
import pytest

from libraxpert.core.exceptions import ConflictError
from libraxpert.core.security import decode_access_token
from libraxpert.db.models import UserRole
from libraxpert.services.auth import (
    register_user,
    authenticate_user,
    create_user_token,
    blacklist_token,
    is_token_blacklisted,
)


class TestRegisterUser:
    @pytest.mark.asyncio
    async def test_register_student(self, db_session):
        user = await register_user(
            db_session,
            "New@Test.com",
            "password123",
            "New Student",
            role=UserRole.STUDENT,
            enrollment_no="202400000001",
            department="Physics",
        )
        assert user.email == "new@test.com"
        assert user.full_name == "New Student"
        assert user.role == UserRole.STUDENT
        assert user.enrollment_no == "202400000001"
        assert user.department == "Physics"
        assert user.is_active is True
        assert user.id is not None

    @pytest.mark.asyncio
    async def test_register_external_drops_enrollment(self, db_session):
        user = await register_user(
            db_session,
            "ext@test.com",
            "password123",
            "Visitor",
            role=UserRole.EXTERNAL,
            enrollment_no="202400000002",
        )
        assert user.role == UserRole.EXTERNAL
        assert user.enrollment_no is None

    @pytest.mark.asyncio
    async def test_student_without_enrollment_rejected(self, db_session):
        with pytest.raises(ValueError, match="enrollment number"):
            await register_user(db_session, "s@test.com", "password123", "No Enrollment")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("role", [UserRole.LIBRARIAN, UserRole.ADMIN])
    async def test_staff_roles_cannot_self_register(self, db_session, role):
        with pytest.raises(ValueError, match="self-register"):
            await register_user(db_session, "staff@test.com", "password123", "Staff", role=role)

    @pytest.mark.asyncio
    async def test_register_duplicate_email_raises(self, db_session):
        await register_user(
            db_session, "dup@test.com", "pass1234", "First", enrollment_no="202400000003"
        )
        await db_session.commit()

        with pytest.raises(ConflictError, match="Email already registered"):
            await register_user(
                db_session, "DUP@test.com", "pass1234", "Second", enrollment_no="202400000004"
            )

    @pytest.mark.asyncio
    async def test_register_duplicate_enrollment_raises(self, db_session):
        await register_user(
            db_session, "one@test.com", "pass1234", "First", enrollment_no="202400000005"
        )

        with pytest.raises(ConflictError, match="Enrollment number already registered"):
            await register_user(
                db_session, "two@test.com", "pass1234", "Second", enrollment_no="202400000005"
            )

    @pytest.mark.asyncio
    async def test_registered_password_is_hashed(self, db_session):
        user = await register_user(
            db_session, "hash@test.com", "plaintext", "Hash User", enrollment_no="202400000006"
        )
        assert user.hashed_password != "plaintext"
        assert user.hashed_password.startswith("$2")


class TestAuthenticateUser:
    @pytest.mark.asyncio
    async def test_authenticate_by_email(self, db_session, make_user):
        user = make_user(email="auth@test.com", password="secret123")
        db_session.add(user)
        await db_session.flush()

        result = await authenticate_user(db_session, "Auth@Test.com", "secret123")
        assert result is not None
        assert result.email == "auth@test.com"

    @pytest.mark.asyncio
    async def test_authenticate_by_enrollment_number(self, db_session, make_user):
        user = make_user(email="enrolled@test.com", password="secret123", enrollment_no="202311112222")
        db_session.add(user)
        await db_session.flush()

        result = await authenticate_user(db_session, "202311112222", "secret123")
        assert result is not None
        assert result.id == user.id

    @pytest.mark.asyncio
    async def test_authenticate_wrong_password(self, db_session, make_user):
        user = make_user(email="auth2@test.com", password="secret123")
        db_session.add(user)
        await db_session.flush()

        result = await authenticate_user(db_session, "auth2@test.com", "wrongpass")
        assert result is None

    @pytest.mark.asyncio
    async def test_authenticate_unknown_email(self, db_session):
        result = await authenticate_user(db_session, "nobody@test.com", "whatever")
        assert result is None

    @pytest.mark.asyncio
    async def test_authenticate_inactive_user(self, db_session, make_user):
        user = make_user(email="inactive@test.com", password="pass123", is_active=False)
        db_session.add(user)
        await db_session.flush()

        result = await authenticate_user(db_session, "inactive@test.com", "pass123")
        assert result is None


class TestCreateUserToken:
    def test_token_contains_user_data(self, make_user):
        user = make_user(role=UserRole.LIBRARIAN)
        token = create_user_token(user)
        payload = decode_access_token(token)
        assert payload is not None
        assert payload["sub"] == user.id
        assert payload["role"] == "librarian"

    def test_token_contains_jti(self, make_user):
        user = make_user()
        token = create_user_token(user)
        payload = decode_access_token(token)
        assert "jti" in payload


class TestBlacklistToken:
    @pytest.mark.asyncio
    async def test_blacklist_valid_token(self, db_session, make_user):
        user = make_user()
        token = create_user_token(user)
        payload = decode_access_token(token)

        await blacklist_token(db_session, token)
        await db_session.flush()

        result = await is_token_blacklisted(db_session, payload["jti"])
        assert result is True

    @pytest.mark.asyncio
    async def test_non_blacklisted_token(self, db_session):
        result = await is_token_blacklisted(db_session, "random-jti-value")
        assert result is False

    @pytest.mark.asyncio
    async def test_blacklist_invalid_token_does_nothing(self, db_session):
        # Should not raise
        await blacklist_token(db_session, "invalid.token.string")
