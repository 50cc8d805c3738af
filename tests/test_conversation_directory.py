"""Tests for conversation lookup and get-or-create."""

import asyncio
from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import func, inspect, select
from sqlalchemy.exc import IntegrityError

from parley.db.models import Conversation, Message
from parley.db.stores import ConversationDirectory, SqlConversationDirectory, canonical_pair


@pytest.fixture
def directory(db_session):
    return SqlConversationDirectory(db_session)


async def _conversation_count(db_session) -> int:
    result = await db_session.execute(select(func.count()).select_from(Conversation))
    return result.scalar()


def test_canonical_pair():
    assert canonical_pair(7, 3) == (3, 7)
    assert canonical_pair(3, 7) == (3, 7)


def test_relationships_never_load_implicitly():
    assert inspect(Conversation).relationships["messages"].lazy == "raise"
    assert inspect(Message).relationships["conversation"].lazy == "raise"


class TestGetOrCreate:
    def test_implements_port(self, directory):
        assert isinstance(directory, ConversationDirectory)

    async def test_pair_is_stored_canonically(self, directory, users):
        low, high = sorted([users["alice"], users["carol"]])

        conversation = await directory.get_or_create_conversation(high, low)

        assert conversation.user_low_id == low
        assert conversation.user_high_id == high
        assert conversation.last_message_at.tzinfo is not None

    async def test_same_conversation_regardless_of_argument_order(self, directory, users, db_session):
        first = await directory.get_or_create_conversation(users["alice"], users["bob"])
        second = await directory.get_or_create_conversation(users["bob"], users["alice"])

        assert first.id == second.id
        assert await _conversation_count(db_session) == 1

    async def test_same_user_twice_is_rejected(self, directory, users):
        with pytest.raises(ValueError):
            await directory.get_or_create_conversation(users["alice"], users["alice"])

    async def test_concurrent_first_contact_creates_one_row(self, session_maker, users, db_session):
        async def get_or_create(a, b):
            async with session_maker() as session:
                conversation = await SqlConversationDirectory(session).get_or_create_conversation(a, b)
                return conversation.id

        pairs = [(users["alice"], users["bob"]), (users["bob"], users["alice"])] * 4
        ids = await asyncio.gather(*(get_or_create(a, b) for a, b in pairs))

        assert len(set(ids)) == 1
        assert await _conversation_count(db_session) == 1

    async def test_lost_insert_race_rereads_existing_row(self, session_maker, users):
        async with session_maker() as other_session:
            winner = await SqlConversationDirectory(other_session).get_or_create_conversation(
                users["alice"], users["bob"]
            )

        async with session_maker() as session:
            directory = SqlConversationDirectory(session)
            real_find = directory.find_by_users
            lookups = []

            async def stale_first_lookup(a, b):
                lookups.append((a, b))
                if len(lookups) == 1:
                    return None
                return await real_find(a, b)

            directory.find_by_users = stale_first_lookup

            conversation = await directory.get_or_create_conversation(users["bob"], users["alice"])

        assert conversation.id == winner.id
        assert len(lookups) == 2

    async def test_integrity_error_without_existing_row_propagates(self, session_maker, users):
        async with session_maker() as session:
            directory = SqlConversationDirectory(session)

            async def never_found(a, b):
                return None

            directory.find_by_users = never_found
            # The row exists but the patched lookup never sees it
            await directory.get_or_create_conversation(users["alice"], users["bob"])

            with pytest.raises(IntegrityError):
                await directory.get_or_create_conversation(users["alice"], users["bob"])


class TestLookups:
    async def test_find_by_users(self, directory, users):
        created = await directory.get_or_create_conversation(users["alice"], users["bob"])

        assert (await directory.find_by_users(users["bob"], users["alice"])).id == created.id
        assert await directory.find_by_users(users["alice"], users["carol"]) is None

    async def test_load(self, directory, users):
        created = await directory.get_or_create_conversation(users["alice"], users["bob"])

        assert (await directory.load(created.id)).id == created.id
        assert await directory.load(created.id + 100) is None

    async def test_find_by_user_id_orders_by_recent_activity(self, directory, users):
        with_bob = await directory.get_or_create_conversation(users["alice"], users["bob"])
        with_carol = await directory.get_or_create_conversation(users["alice"], users["carol"])
        now = datetime.now(UTC)
        await directory.update_last_message_at(with_bob.id, now + timedelta(minutes=5))
        await directory.update_last_message_at(with_carol.id, now)

        inbox = await directory.find_by_user_id(users["alice"])

        assert [c.id for c in inbox] == [with_bob.id, with_carol.id]
        assert [c.id for c in await directory.find_by_user_id(users["alice"], limit=1, offset=1)] == [
            with_carol.id
        ]
        assert await directory.count_by_user_id(users["alice"]) == 2
        assert await directory.count_by_user_id(users["bob"]) == 1
        assert await directory.find_by_user_id(users["dave"]) == []
