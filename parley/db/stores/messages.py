"""Message persistence with per-participant visibility."""

import logging
from collections.abc import Sequence
from datetime import UTC, datetime

from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from parley.db.models import Conversation, Message
from parley.db.stores.base import SortOrder

logger = logging.getLogger(__name__)


def visible_to(viewer_id: int):
    """SQL clause matching the messages ``viewer_id`` has not deleted."""
    return or_(
        and_(Message.sender_id == viewer_id, Message.deleted_by_sender.is_(False)),
        and_(Message.sender_id != viewer_id, Message.deleted_by_recipient.is_(False)),
    )


class SqlMessageLog:
    """MessageLog backed by the ``messages`` table."""

    def __init__(self, db_session: AsyncSession) -> None:
        self.db_session = db_session

    async def append(self, conversation_id: int, sender_id: int, body: str) -> Message:
        message = Message(
            conversation_id=conversation_id,
            sender_id=sender_id,
            body=body,
            is_read=False,
            deleted_by_sender=False,
            deleted_by_recipient=False,
        )
        self.db_session.add(message)
        await self.db_session.commit()
        await self.db_session.refresh(message)
        return message

    async def load(self, message_id: int) -> Message | None:
        return await self.db_session.get(Message, message_id)

    async def find_visible_to(
        self,
        conversation_id: int,
        viewer_id: int,
        limit: int = 50,
        offset: int = 0,
        order: SortOrder = "asc",
    ) -> Sequence[Message]:
        """Page through the messages ``viewer_id`` can still see."""
        if order == "desc":
            ordering = (Message.created_at.desc(), Message.id.desc())
        else:
            ordering = (Message.created_at.asc(), Message.id.asc())

        result = await self.db_session.execute(
            select(Message)
            .where(and_(Message.conversation_id == conversation_id, visible_to(viewer_id)))
            .order_by(*ordering)
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def find_since(self, conversation_id: int, viewer_id: int, since: datetime) -> Sequence[Message]:
        if since.tzinfo is None:
            since = since.replace(tzinfo=UTC)
        result = await self.db_session.execute(
            select(Message)
            .where(
                and_(
                    Message.conversation_id == conversation_id,
                    Message.created_at > since,
                    visible_to(viewer_id),
                )
            )
            .order_by(Message.created_at.asc(), Message.id.asc())
        )
        return list(result.scalars().all())

    async def mark_read_for(self, conversation_id: int, recipient_id: int) -> int:
        """Mark every unread message sent to ``recipient_id`` as read.

        Returns the number of messages that changed.
        """
        result = await self.db_session.execute(
            update(Message)
            .where(
                and_(
                    Message.conversation_id == conversation_id,
                    Message.sender_id != recipient_id,
                    Message.is_read.is_(False),
                )
            )
            .values(is_read=True)
        )
        await self.db_session.commit()
        return result.rowcount or 0

    async def count_unread_for(self, conversation_id: int, recipient_id: int) -> int:
        result = await self.db_session.execute(
            select(func.count())
            .select_from(Message)
            .where(
                and_(
                    Message.conversation_id == conversation_id,
                    Message.sender_id != recipient_id,
                    Message.is_read.is_(False),
                    Message.deleted_by_recipient.is_(False),
                )
            )
        )
        return result.scalar() or 0

    async def count_unread_for_user(self, user_id: int) -> int:
        """Unread messages addressed to ``user_id`` across all conversations."""
        result = await self.db_session.execute(
            select(func.count())
            .select_from(Message)
            .join(Conversation, Conversation.id == Message.conversation_id)
            .where(
                and_(
                    or_(Conversation.user_low_id == user_id, Conversation.user_high_id == user_id),
                    Message.sender_id != user_id,
                    Message.is_read.is_(False),
                    Message.deleted_by_recipient.is_(False),
                )
            )
        )
        return result.scalar() or 0

    async def soft_delete_for_sender(self, message_id: int) -> None:
        await self.db_session.execute(
            update(Message).where(Message.id == message_id).values(deleted_by_sender=True)
        )
        await self.db_session.commit()

    async def soft_delete_for_recipient(self, message_id: int) -> None:
        await self.db_session.execute(
            update(Message).where(Message.id == message_id).values(deleted_by_recipient=True)
        )
        await self.db_session.commit()

    async def soft_delete_conversation_for(self, conversation_id: int, user_id: int) -> None:
        """Hide every message of the conversation from ``user_id`` only."""
        await self.db_session.execute(
            update(Message)
            .where(and_(Message.conversation_id == conversation_id, Message.sender_id == user_id))
            .values(deleted_by_sender=True)
        )
        await self.db_session.execute(
            update(Message)
            .where(and_(Message.conversation_id == conversation_id, Message.sender_id != user_id))
            .values(deleted_by_recipient=True)
        )
        await self.db_session.commit()

    async def get_last_visible(self, conversation_id: int, viewer_id: int) -> Message | None:
        result = await self.db_session.execute(
            select(Message)
            .where(and_(Message.conversation_id == conversation_id, visible_to(viewer_id)))
            .order_by(Message.created_at.desc(), Message.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def purge_fully_deleted(self, older_than: datetime | None = None) -> int:
        """Physically remove messages both participants have deleted."""
        conditions = [Message.deleted_by_sender.is_(True), Message.deleted_by_recipient.is_(True)]
        if older_than is not None:
            if older_than.tzinfo is None:
                older_than = older_than.replace(tzinfo=UTC)
            conditions.append(Message.updated_at < older_than)

        result = await self.db_session.execute(
            delete(Message).where(and_(*conditions))
        )
        await self.db_session.commit()
        purged = result.rowcount or 0
        if purged:
            logger.info("Purged %d fully deleted messages", purged)
        return purged
