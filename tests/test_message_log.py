"""Tests for message storage and per-participant visibility."""

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import func, select

from parley.db.models import Message
from parley.db.stores import MessageLog, SqlConversationDirectory, SqlMessageLog


@pytest.fixture
def log(db_session):
    return SqlMessageLog(db_session)


@pytest.fixture
async def conversation(db_session, users):
    return await SqlConversationDirectory(db_session).get_or_create_conversation(users["alice"], users["bob"])


async def _bodies(messages) -> list[str]:
    return [m.body for m in messages]


class TestAppend:
    def test_implements_port(self, log):
        assert isinstance(log, MessageLog)

    async def test_append_defaults(self, log, conversation, users):
        message = await log.append(conversation.id, users["alice"], "Hello")

        assert message.id is not None
        assert message.conversation_id == conversation.id
        assert message.sender_id == users["alice"]
        assert message.body == "Hello"
        assert message.is_read is False
        assert message.deleted_by_sender is False
        assert message.deleted_by_recipient is False
        assert message.created_at.tzinfo is not None

    async def test_load(self, log, conversation, users):
        message = await log.append(conversation.id, users["alice"], "Hello")

        assert (await log.load(message.id)).body == "Hello"
        assert await log.load(message.id + 1) is None


class TestVisibility:
    async def test_chronological_order_and_paging(self, log, conversation, users):
        for body in ("one", "two", "three"):
            await log.append(conversation.id, users["alice"], body)

        assert await _bodies(await log.find_visible_to(conversation.id, users["bob"])) == ["one", "two", "three"]
        assert await _bodies(await log.find_visible_to(conversation.id, users["bob"], order="desc")) == [
            "three",
            "two",
            "one",
        ]
        assert await _bodies(await log.find_visible_to(conversation.id, users["bob"], limit=1, offset=1)) == ["two"]

    async def test_id_breaks_created_at_ties(self, db_session, log, conversation, users):
        tied_at = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)
        first, second, earlier = (
            Message(conversation_id=conversation.id, sender_id=users["alice"], body=body, created_at=created_at)
            for body, created_at in (
                ("first", tied_at),
                ("second", tied_at),
                ("earlier", tied_at - timedelta(seconds=1)),
            )
        )
        # Inserted one by one so ids follow the listing order above
        for message in (first, second, earlier):
            db_session.add(message)
            await db_session.commit()

        assert await _bodies(await log.find_visible_to(conversation.id, users["bob"])) == [
            "earlier",
            "first",
            "second",
        ]
        assert await _bodies(await log.find_visible_to(conversation.id, users["bob"], order="desc")) == [
            "second",
            "first",
            "earlier",
        ]
        assert (await log.get_last_visible(conversation.id, users["bob"])).body == "second"

    async def test_sender_delete_hides_only_from_sender(self, log, conversation, users):
        message = await log.append(conversation.id, users["alice"], "Hello")

        await log.soft_delete_for_sender(message.id)

        assert await log.find_visible_to(conversation.id, users["alice"]) == []
        assert await _bodies(await log.find_visible_to(conversation.id, users["bob"])) == ["Hello"]

    async def test_recipient_delete_hides_only_from_recipient(self, log, conversation, users):
        message = await log.append(conversation.id, users["alice"], "Hello")

        await log.soft_delete_for_recipient(message.id)
        await log.soft_delete_for_recipient(message.id)

        assert await _bodies(await log.find_visible_to(conversation.id, users["alice"])) == ["Hello"]
        assert await log.find_visible_to(conversation.id, users["bob"]) == []

    async def test_soft_delete_conversation_for_one_side(self, log, conversation, users):
        await log.append(conversation.id, users["alice"], "from alice")
        await log.append(conversation.id, users["bob"], "from bob")

        await log.soft_delete_conversation_for(conversation.id, users["alice"])

        assert await log.find_visible_to(conversation.id, users["alice"]) == []
        assert await _bodies(await log.find_visible_to(conversation.id, users["bob"])) == [
            "from alice",
            "from bob",
        ]

    async def test_get_last_visible(self, log, conversation, users):
        await log.append(conversation.id, users["alice"], "first")
        last = await log.append(conversation.id, users["bob"], "second")

        assert (await log.get_last_visible(conversation.id, users["alice"])).id == last.id

        await log.soft_delete_for_recipient(last.id)

        assert (await log.get_last_visible(conversation.id, users["alice"])).body == "first"
        assert (await log.get_last_visible(conversation.id, users["bob"])).body == "second"

    async def test_find_since(self, log, conversation, users):
        first = await log.append(conversation.id, users["alice"], "first")
        await log.append(conversation.id, users["bob"], "second")

        since_first = await log.find_since(conversation.id, users["bob"], first.created_at)
        everything = await log.find_since(
            conversation.id, users["bob"], first.created_at.replace(tzinfo=None) - timedelta(seconds=1)
        )

        assert await _bodies(since_first) == ["second"]
        assert await _bodies(everything) == ["first", "second"]


class TestUnread:
    async def test_mark_read_only_touches_incoming(self, log, conversation, users):
        await log.append(conversation.id, users["alice"], "hi bob")
        await log.append(conversation.id, users["alice"], "are you there?")
        await log.append(conversation.id, users["bob"], "hi alice")

        assert await log.count_unread_for(conversation.id, users["bob"]) == 2
        assert await log.count_unread_for(conversation.id, users["alice"]) == 1

        assert await log.mark_read_for(conversation.id, users["bob"]) == 2
        assert await log.mark_read_for(conversation.id, users["bob"]) == 0

        assert await log.count_unread_for(conversation.id, users["bob"]) == 0
        assert await log.count_unread_for(conversation.id, users["alice"]) == 1

    async def test_recipient_deleted_messages_are_not_unread(self, log, conversation, users):
        message = await log.append(conversation.id, users["alice"], "oops")

        await log.soft_delete_for_recipient(message.id)

        assert await log.count_unread_for(conversation.id, users["bob"]) == 0
        assert await log.count_unread_for_user(users["bob"]) == 0

    async def test_count_unread_for_user_spans_conversations(self, log, conversation, users, db_session):
        other = await SqlConversationDirectory(db_session).get_or_create_conversation(
            users["carol"], users["bob"]
        )
        unrelated = await SqlConversationDirectory(db_session).get_or_create_conversation(
            users["carol"], users["alice"]
        )
        await log.append(conversation.id, users["alice"], "one")
        await log.append(other.id, users["carol"], "two")
        await log.append(other.id, users["bob"], "mine")
        await log.append(unrelated.id, users["carol"], "not for bob")

        assert await log.count_unread_for_user(users["bob"]) == 2


class TestPurge:
    async def test_purges_only_fully_deleted(self, log, conversation, users, db_session):
        both = await log.append(conversation.id, users["alice"], "gone")
        sender_only = await log.append(conversation.id, users["alice"], "half")
        await log.append(conversation.id, users["alice"], "kept")
        await log.soft_delete_for_sender(both.id)
        await log.soft_delete_for_recipient(both.id)
        await log.soft_delete_for_sender(sender_only.id)

        assert await log.purge_fully_deleted() == 1

        result = await db_session.execute(select(func.count()).select_from(Message))
        assert result.scalar() == 2

    async def test_older_than_keeps_recent_deletions(self, log, conversation, users):
        message = await log.append(conversation.id, users["alice"], "recent")
        await log.soft_delete_conversation_for(conversation.id, users["alice"])
        await log.soft_delete_conversation_for(conversation.id, users["bob"])

        assert await log.purge_fully_deleted(datetime.now(UTC) - timedelta(days=1)) == 0
        assert await log.purge_fully_deleted(datetime.now(UTC) + timedelta(seconds=5)) == 1
        assert await log.load(message.id) is None
