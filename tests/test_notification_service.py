from uuid import uuid4

import pytest

from grape.core.pagination import PageRequest
from grape.models.models import NotificationType
from grape.services.errors import ForbiddenError, NotFoundError
from tests.factories import now


async def test_emit_suppresses_self_notifications(notifications, conn):
    user_id = uuid4()
    for notification_type in NotificationType:
        assert await notifications.emit(conn, recipient_id=user_id, actor_id=user_id, type=notification_type) is None
    conn.fetchval.assert_not_awaited()


async def test_emit_inserts_unread_row(notifications, conn):
    notification_id = uuid4()
    conn.fetchval.return_value = notification_id

    created = await notifications.emit(conn, uuid4(), uuid4(), NotificationType.FOLLOW)

    assert created == notification_id
    assert "INSERT INTO notifications" in conn.fetchval.await_args.args[0]


def _row(**overrides):
    row = {
        "id": uuid4(),
        "type": "comment",
        "read": False,
        "created_at": now(),
        "post_id": uuid4(),
        "comment_id": uuid4(),
        "actor_id": uuid4(),
        "actor_username": "vic",
        "actor_profile_pic_url": None,
        "post_video_url": "https://cdn.test/v.mp4",
        "comment_text": "nice!",
    }
    row.update(overrides)
    return row


async def test_list_tolerates_deleted_comment(notifications, conn):
    conn.fetch.return_value = [
        _row(),
        _row(comment_text=None),
        _row(type="follow", post_id=None, comment_id=None, post_video_url=None, comment_text=None),
    ]
    conn.fetchrow.return_value = {"total": 3, "unread": 2}

    result = await notifications.list_notifications(uuid4(), PageRequest(1, 20))

    first, orphaned, follow = result.notifications
    assert first.comment.text == "nice!"
    assert orphaned.comment is None
    assert orphaned.post is not None
    assert follow.type is NotificationType.FOLLOW
    assert follow.post is None
    assert result.unread_count == 2
    assert result.pagination.total == 3
    assert result.pagination.has_more is False


async def test_list_orders_newest_first_with_sequence_tiebreak(notifications, conn):
    conn.fetchrow.return_value = {"total": 0, "unread": 0}
    await notifications.list_notifications(uuid4(), PageRequest(1, 20))
    assert "ORDER BY n.created_at DESC, n.seq DESC" in conn.fetch.await_args.args[0]


async def test_mark_read_missing(notifications, conn):
    conn.fetchval.return_value = None
    with pytest.raises(NotFoundError):
        await notifications.mark_read(uuid4(), uuid4())


async def test_mark_read_of_someone_elses(notifications, conn):
    conn.fetchval.return_value = uuid4()
    with pytest.raises(ForbiddenError):
        await notifications.mark_read(uuid4(), uuid4())
    conn.execute.assert_not_awaited()


async def test_mark_read_is_repeatable(notifications, conn):
    user_id = uuid4()
    conn.fetchval.return_value = user_id

    await notifications.mark_read(user_id, uuid4())
    await notifications.mark_read(user_id, uuid4())

    assert conn.execute.await_count == 2


async def test_mark_all_read_reports_changed_rows(notifications, conn):
    conn.execute.return_value = "UPDATE 4"
    assert await notifications.mark_all_read(uuid4()) == 4

    conn.execute.return_value = "UPDATE 0"
    assert await notifications.mark_all_read(uuid4()) == 0


async def test_unread_count(notifications, conn):
    conn.fetchval.return_value = 7
    assert await notifications.unread_count(uuid4()) == 7
