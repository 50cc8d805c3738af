"""Conversation lookup and lazy creation for user pairs."""

import logging
from datetime import UTC, datetime

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from parley.db.models import Conversation
from parley.db.stores.base import canonical_pair

logger = logging.getLogger(__name__)


class SqlConversationDirectory:
    """ConversationDirectory backed by the ``conversations`` table.

    Pairs are stored canonically (``user_low_id < user_high_id``) and the
    ``uq_conversations_user_low_user_high`` constraint guarantees a single
    row per pair, so concurrent first contact needs no application lock.
    """

    def __init__(self, db_session: AsyncSession) -> None:
        self.db_session = db_session

    async def find_by_users(self, user_a: int, user_b: int) -> Conversation | None:
        low, high = canonical_pair(user_a, user_b)
        result = await self.db_session.execute(
            select(Conversation).where(
                and_(Conversation.user_low_id == low, Conversation.user_high_id == high)
            )
        )
        return result.scalar_one_or_none()

    async def get_or_create_conversation(self, user_a: int, user_b: int) -> Conversation:
        """Return the pair's conversation, creating it on first contact.

        Losing an insert race to another request surfaces as a uniqueness
        violation; the row that request created is then re-read and returned.
        """
        if user_a == user_b:
            raise ValueError("A conversation needs two distinct users")

        conversation = await self.find_by_users(user_a, user_b)
        if conversation is not None:
            return conversation

        low, high = canonical_pair(user_a, user_b)
        conversation = Conversation(
            user_low_id=low,
            user_high_id=high,
            last_message_at=datetime.now(UTC),
        )
        self.db_session.add(conversation)
        try:
            await self.db_session.commit()
        except IntegrityError:
            await self.db_session.rollback()
            existing = await self.find_by_users(low, high)
            if existing is None:
                raise
            logger.debug("Conversation %s/%s was created concurrently, reusing %s", low, high, existing.id)
            return existing

        await self.db_session.refresh(conversation)
        logger.info("Created conversation %s between %s and %s", conversation.id, low, high)
        return conversation

    async def find_by_user_id(self, user_id: int, limit: int = 20, offset: int = 0) -> list[Conversation]:
        """Inbox ordering: most recent activity first."""
        result = await self.db_session.execute(
            select(Conversation)
            .where(or_(Conversation.user_low_id == user_id, Conversation.user_high_id == user_id))
            .order_by(Conversation.last_message_at.desc(), Conversation.id.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def count_by_user_id(self, user_id: int) -> int:
        result = await self.db_session.execute(
            select(func.count())
            .select_from(Conversation)
            .where(or_(Conversation.user_low_id == user_id, Conversation.user_high_id == user_id))
        )
        return result.scalar() or 0

    async def update_last_message_at(self, conversation_id: int, timestamp: datetime) -> None:
        await self.db_session.execute(
            update(Conversation)
            .where(Conversation.id == conversation_id)
            .values(last_message_at=timestamp)
        )
        await self.db_session.commit()

    async def load(self, conversation_id: int) -> Conversation | None:
        return await self.db_session.get(Conversation, conversation_id)
