"""
Unit tests for libraxpert.services.notification – fan-out, best-effort writes, inbox.
"""
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from libraxpert.core.exceptions import ForbiddenError, NotFoundError
from libraxpert.db.models import (
    BorrowStatus,
    Notification,
    NotificationType,
    UserRole,
)
from libraxpert.services import notification as notifications
from libraxpert.services.borrow_request import approve_request, create_borrow_request


class TestNotifyStaff:
    @pytest.mark.asyncio
    async def test_fans_out_to_librarians_and_admins_only(self, db_session, make_user):
        student = make_user()
        librarian = make_user(role=UserRole.LIBRARIAN)
        admin = make_user(role=UserRole.ADMIN)
        external = make_user(role=UserRole.EXTERNAL)
        db_session.add_all([student, librarian, admin, external])
        await db_session.flush()

        written = await notifications.notify_staff(
            db_session,
            title="Heads up",
            message="Something for staff",
            type=NotificationType.BORROW_REQUEST,
            related_id="abc",
        )

        assert {n.user_id for n in written} == {librarian.id, admin.id}

    @pytest.mark.asyncio
    async def test_role_subset(self, db_session, make_user):
        librarian = make_user(role=UserRole.LIBRARIAN)
        admin = make_user(role=UserRole.ADMIN)
        db_session.add_all([librarian, admin])
        await db_session.flush()

        written = await notifications.notify_staff(
            db_session,
            title="Feedback",
            message="New feedback",
            type=NotificationType.FEEDBACK,
            roles=(UserRole.ADMIN,),
        )
        assert [n.user_id for n in written] == [admin.id]

    @pytest.mark.asyncio
    async def test_no_staff_writes_nothing(self, db_session, make_user):
        db_session.add(make_user())
        await db_session.flush()

        written = await notifications.notify_staff(
            db_session, title="t", message="m", type=NotificationType.BORROW_REQUEST
        )
        assert written == []


class TestBestEffortEmission:
    @pytest.mark.asyncio
    async def test_write_failure_returns_none(self, db_session, make_user):
        user = make_user()
        db_session.add(user)
        await db_session.flush()

        with patch.object(
            db_session, "begin_nested", side_effect=OperationalError("INSERT", {}, Exception("boom"))
        ):
            result = await notifications.notify_user(
                db_session,
                user_id=user.id,
                title="t",
                message="m",
                type=NotificationType.BORROW_APPROVED,
            )
        assert result is None

    @pytest.mark.asyncio
    async def test_failed_notification_does_not_undo_approval(
        self, db_session, make_user, make_book, make_borrow_request
    ):
        student = make_user()
        librarian = make_user(role=UserRole.LIBRARIAN)
        book = make_book(total_copies=1, available_copies=1)
        request = make_borrow_request(book, student)
        db_session.add_all([student, librarian, book, request])
        await db_session.flush()

        with patch.object(
            notifications, "emit_notifications", return_value=[]
        ):
            approved = await approve_request(db_session, request.id, librarian)

        assert approved.status == BorrowStatus.APPROVED
        assert book.available_copies == 0

    @pytest.mark.asyncio
    async def test_savepoint_rollback_keeps_entity_write(
        self, db_session, make_user, make_book
    ):
        student = make_user()
        librarian = make_user(role=UserRole.LIBRARIAN)
        book = make_book()
        db_session.add_all([student, librarian, book])
        await db_session.flush()

        # A notification pointing at a user that does not exist violates the FK
        # and rolls back only the savepoint.
        request = await create_borrow_request(db_session, book.id, student)
        written = await notifications.emit_notifications(
            db_session,
            [
                notifications.NotificationDraft(
                    user_id="no-such-user",
                    title="t",
                    message="m",
                    type=NotificationType.BORROW_REQUEST,
                    related_id=request.id,
                )
            ],
        )

        assert written == []
        assert request.status == BorrowStatus.PENDING
        result = await db_session.execute(
            select(Notification).where(Notification.related_id == request.id)
        )
        assert [n.user_id for n in result.scalars().all()] == [librarian.id]


class TestDeleteRelated:
    @pytest.mark.asyncio
    async def test_only_matching_type_and_entity(self, db_session, make_user, make_notification):
        user = make_user()
        db_session.add(user)
        await db_session.flush()
        target = make_notification(user.id, NotificationType.BORROW_REQUEST, related_id="r1")
        other_type = make_notification(user.id, NotificationType.BORROW_APPROVED, related_id="r1")
        other_entity = make_notification(user.id, NotificationType.BORROW_REQUEST, related_id="r2")
        db_session.add_all([target, other_type, other_entity])
        await db_session.flush()

        count = await notifications.delete_related(
            db_session, "r1", NotificationType.BORROW_REQUEST
        )

        assert count == 1
        remaining = await notifications.list_for_user(db_session, user.id)
        assert {n.id for n in remaining} == {other_type.id, other_entity.id}


class TestInbox:
    @pytest.mark.asyncio
    async def test_list_newest_first(self, db_session, make_user, make_notification):
        user = make_user()
        someone_else = make_user()
        db_session.add_all([user, someone_else])
        await db_session.flush()
        now = datetime.now(timezone.utc)
        old = make_notification(user.id, created_at=now - timedelta(hours=1))
        new = make_notification(user.id, created_at=now)
        foreign = make_notification(someone_else.id)
        db_session.add_all([old, new, foreign])
        await db_session.flush()

        items = await notifications.list_for_user(db_session, user.id)
        assert [n.id for n in items] == [new.id, old.id]

    @pytest.mark.asyncio
    async def test_mark_read_deletes(self, db_session, make_user, make_notification):
        user = make_user()
        db_session.add(user)
        await db_session.flush()
        notification = make_notification(user.id)
        db_session.add(notification)
        await db_session.flush()

        await notifications.mark_read(db_session, notification.id, user)

        assert await notifications.list_for_user(db_session, user.id) == []

        with pytest.raises(NotFoundError, match="Notification not found"):
            await notifications.mark_read(db_session, notification.id, user)

    @pytest.mark.asyncio
    async def test_mark_read_of_someone_elses(self, db_session, make_user, make_notification):
        owner = make_user()
        intruder = make_user()
        db_session.add_all([owner, intruder])
        await db_session.flush()
        notification = make_notification(owner.id)
        db_session.add(notification)
        await db_session.flush()

        with pytest.raises(ForbiddenError):
            await notifications.mark_read(db_session, notification.id, intruder)
        assert len(await notifications.list_for_user(db_session, owner.id)) == 1

    @pytest.mark.asyncio
    async def test_mark_read_unknown(self, db_session, make_user):
        user = make_user()
        db_session.add(user)
        await db_session.flush()
        with pytest.raises(NotFoundError):
            await notifications.mark_read(db_session, "missing", user)
