"""Messaging gateway.

The single entry point outer layers use for direct messages and the social
graph. It applies the messaging permission policy in a fixed order before any
conversation or message is touched, and reports every rule failure as a
:class:`~parley.lib.results.Result` instead of raising.

Usage:
    settings = await load_messaging_settings(db_session)
    gateway = MessagingGateway.for_session(db_session, settings)

    result = await gateway.send_message(sender_id, recipient_id, "Hello")
    if result.ok:
        message, conversation = result.value
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from parley.db.models import Conversation, Message
from parley.db.services.setting_service import MessagingSettings
from parley.db.stores import (
    BlockStore,
    ConversationDirectory,
    MessageLog,
    SocialGraphStore,
    SqlBlockStore,
    SqlConversationDirectory,
    SqlMessageLog,
    SqlSocialGraphStore,
    SqlUserDirectory,
    UserDirectory,
    UserRecord,
)
from parley.lib.hooks import (
    AFTER_CONVERSATION_DELETE,
    AFTER_MESSAGE_DELETE,
    AFTER_MESSAGE_SEND,
    AFTER_MESSAGES_READ,
    AFTER_USER_BLOCK,
    AFTER_USER_FOLLOW,
    AFTER_USER_UNBLOCK,
    AFTER_USER_UNFOLLOW,
    MESSAGE_BODY,
    HookRegistry,
    hooks,
)
from parley.lib.observability import span
from parley.lib.results import ErrorKind, Result

logger = logging.getLogger(__name__)

MESSAGING_DISABLED = "Messaging is currently disabled."
CANNOT_MESSAGE_SELF = "You cannot message yourself."
USER_NOT_FOUND = "User not found."
USER_DISABLED = "This user account is disabled."
USER_PENDING = "This user account is pending approval."
UNABLE_TO_SEND = "Unable to send message."
NOT_MUTUAL = "You can only message users who follow you back."
EMPTY_MESSAGE = "Message cannot be empty."
MESSAGE_TOO_LONG = "Message cannot exceed {limit} characters."
CANNOT_FOLLOW_SELF = "You cannot follow yourself."
CANNOT_BLOCK_SELF = "You cannot block yourself."
CONVERSATION_NOT_FOUND = "Conversation not found."
MESSAGE_NOT_FOUND = "Message not found."
CANNOT_VIEW_CONVERSATION = "You do not have permission to view this conversation."
CANNOT_DELETE_MESSAGE = "You do not have permission to delete this message."
CANNOT_DELETE_CONVERSATION = "You do not have permission to delete this conversation."


@dataclass(frozen=True)
class InboxEntry:
    """One row of a user's inbox."""

    conversation: Conversation
    other_user: UserRecord
    last_message: Message | None
    unread_count: int


class MessagingGateway:
    """Permission-checked messaging and relationship operations."""

    def __init__(
        self,
        users: UserDirectory,
        social_graph: SocialGraphStore,
        blocks: BlockStore,
        conversations: ConversationDirectory,
        messages: MessageLog,
        settings: MessagingSettings,
        hook_registry: HookRegistry | None = None,
    ) -> None:
        self.users = users
        self.social_graph = social_graph
        self.blocks = blocks
        self.conversations = conversations
        self.messages = messages
        self.settings = settings
        self.hooks = hook_registry or hooks

    @classmethod
    def for_session(
        cls,
        db_session: AsyncSession,
        settings: MessagingSettings,
        hook_registry: HookRegistry | None = None,
    ) -> MessagingGateway:
        """Build a gateway whose stores all share ``db_session``."""
        return cls(
            users=SqlUserDirectory(db_session),
            social_graph=SqlSocialGraphStore(db_session),
            blocks=SqlBlockStore(db_session),
            conversations=SqlConversationDirectory(db_session),
            messages=SqlMessageLog(db_session),
            settings=settings,
            hook_registry=hook_registry,
        )

    # -- Permission policy ---------------------------------------------------

    async def can_message(self, sender_id: int, recipient_id: int) -> Result[None]:
        """Check whether ``sender_id`` may message ``recipient_id``.

        Checks run in a fixed order and the first failure decides the reason:
        global switch, self-target, recipient account, blocks, mutual follow.
        """
        with span("messaging.can_message", sender_id=sender_id, recipient_id=recipient_id):
            if not self.settings.is_messaging_enabled():
                return Result.failure(ErrorKind.PERMISSION, MESSAGING_DISABLED)

            if sender_id == recipient_id:
                return Result.failure(ErrorKind.PERMISSION, CANNOT_MESSAGE_SELF)

            recipient = await self.users.load(recipient_id)
            if recipient is None:
                return Result.failure(ErrorKind.NOT_FOUND, USER_NOT_FOUND)
            if recipient.is_disabled:
                return Result.failure(ErrorKind.PERMISSION, USER_DISABLED)
            if recipient.is_pending:
                return Result.failure(ErrorKind.PERMISSION, USER_PENDING)

            # Same reason whichever side placed the block
            if await self.blocks.has_block_between(sender_id, recipient_id):
                return Result.failure(ErrorKind.PERMISSION, UNABLE_TO_SEND)

            if not await self.social_graph.are_mutual_follows(sender_id, recipient_id):
                return Result.failure(ErrorKind.PERMISSION, NOT_MUTUAL)

            return Result.success()

    def get_max_message_length(self) -> int:
        return self.settings.get_max_message_length()

    async def _validate_body(self, sender_id: int, recipient_id: int, body: str) -> Result[str]:
        body = (body or "").strip()
        body = await self.hooks.apply_filters(MESSAGE_BODY, body, sender_id, recipient_id)
        body = (body or "").strip()

        if not body:
            return Result.failure(ErrorKind.VALIDATION, EMPTY_MESSAGE)

        limit = self.get_max_message_length()
        if len(body) > limit:
            return Result.failure(ErrorKind.VALIDATION, MESSAGE_TOO_LONG.format(limit=limit))

        return Result.success(body)

    # -- Conversations and messages ------------------------------------------

    async def send_message(
        self, sender_id: int, recipient_id: int, body: str
    ) -> Result[tuple[Message, Conversation]]:
        """Send a message, creating the conversation on first contact."""
        with span("messaging.send_message", sender_id=sender_id, recipient_id=recipient_id):
            allowed = await self.can_message(sender_id, recipient_id)
            if not allowed.ok:
                return Result.failure(allowed.kind, allowed.reason)

            validated = await self._validate_body(sender_id, recipient_id, body)
            if not validated.ok:
                return Result.failure(validated.kind, validated.reason)

            conversation = await self.conversations.get_or_create_conversation(sender_id, recipient_id)
            message = await self.messages.append(conversation.id, sender_id, validated.value)
            await self.conversations.update_last_message_at(conversation.id, message.created_at)

            logger.info(
                "Message %s sent in conversation %s by user %s", message.id, conversation.id, sender_id
            )
            await self.hooks.do_action(AFTER_MESSAGE_SEND, message, conversation, recipient_id)
            return Result.success((message, conversation))

    async def open_conversation(self, user_id: int, other_user_id: int) -> Result[Conversation]:
        """Open (or reuse) the conversation with ``other_user_id`` without sending."""
        with span("messaging.open_conversation", user_id=user_id, other_user_id=other_user_id):
            allowed = await self.can_message(user_id, other_user_id)
            if not allowed.ok:
                return Result.failure(allowed.kind, allowed.reason)
            conversation = await self.conversations.get_or_create_conversation(user_id, other_user_id)
            return Result.success(conversation)

    async def open_conversation_with(self, user_id: int, username: str) -> Result[Conversation]:
        """Like :meth:`open_conversation`, addressing the other user by username."""
        other_user = await self.users.load_by_username(username)
        if other_user is None:
            return Result.failure(ErrorKind.NOT_FOUND, USER_NOT_FOUND)
        return await self.open_conversation(user_id, other_user.id)

    async def find_messageable_users(
        self, user_id: int, query: str, limit: int = 20
    ) -> Result[list[UserRecord]]:
        """Search accounts by name, keeping only those ``user_id`` may message.

        The search runs first and the permission filter after, so fewer than
        ``limit`` users can come back.
        """
        with span("messaging.find_messageable_users", user_id=user_id, limit=limit):
            if not self.settings.is_messaging_enabled():
                return Result.failure(ErrorKind.PERMISSION, MESSAGING_DISABLED)

            found = []
            for candidate in await self.users.search(query, limit):
                if candidate.id == user_id:
                    continue
                if (await self.can_message(user_id, candidate.id)).ok:
                    found.append(candidate)
            return Result.success(found)

    async def get_conversation(self, conversation_id: int, user_id: int) -> Result[Conversation]:
        return await self._load_for_participant(conversation_id, user_id, CANNOT_VIEW_CONVERSATION)

    async def _load_for_participant(
        self, conversation_id: int, user_id: int, denied_reason: str
    ) -> Result[Conversation]:
        conversation = await self.conversations.load(conversation_id)
        if conversation is None:
            return Result.failure(ErrorKind.NOT_FOUND, CONVERSATION_NOT_FOUND)
        if not conversation.has_participant(user_id):
            return Result.failure(ErrorKind.AUTHORIZATION, denied_reason)
        return Result.success(conversation)

    async def get_other_participant(self, conversation: Conversation, user_id: int) -> UserRecord | None:
        """Return the participant of ``conversation`` that is not ``user_id``."""
        if not conversation.has_participant(user_id):
            return None
        return await self.users.load(conversation.other_participant_id(user_id))

    async def get_inbox(self, user_id: int, limit: int = 20, offset: int = 0) -> list[InboxEntry]:
        """Conversations of ``user_id``, most recently active first."""
        with span("messaging.get_inbox", user_id=user_id, limit=limit, offset=offset):
            entries = []
            for conversation in await self.conversations.find_by_user_id(user_id, limit, offset):
                other_user = await self.get_other_participant(conversation, user_id)
                if other_user is None:
                    continue
                entries.append(
                    InboxEntry(
                        conversation=conversation,
                        other_user=other_user,
                        last_message=await self.messages.get_last_visible(conversation.id, user_id),
                        unread_count=await self.messages.count_unread_for(conversation.id, user_id),
                    )
                )
            return entries

    async def count_conversations(self, user_id: int) -> int:
        return await self.conversations.count_by_user_id(user_id)

    async def _mark_read(self, conversation: Conversation, viewer_id: int) -> None:
        marked = await self.messages.mark_read_for(conversation.id, viewer_id)
        if marked:
            await self.hooks.do_action(AFTER_MESSAGES_READ, conversation, viewer_id, marked)

    async def get_messages(
        self, conversation_id: int, viewer_id: int, limit: int = 50, offset: int = 0
    ) -> Result[Sequence[Message]]:
        """Chronological page of the messages ``viewer_id`` can see.

        Viewing marks everything addressed to ``viewer_id`` as read first.
        """
        with span("messaging.get_messages", conversation_id=conversation_id, viewer_id=viewer_id):
            loaded = await self._load_for_participant(conversation_id, viewer_id, CANNOT_VIEW_CONVERSATION)
            if not loaded.ok:
                return Result.failure(loaded.kind, loaded.reason)

            await self._mark_read(loaded.value, viewer_id)
            return Result.success(
                await self.messages.find_visible_to(conversation_id, viewer_id, limit, offset, "asc")
            )

    async def get_messages_since(
        self, conversation_id: int, viewer_id: int, since: datetime
    ) -> Result[Sequence[Message]]:
        """Visible messages created after ``since``, for polling clients."""
        with span("messaging.get_messages_since", conversation_id=conversation_id, viewer_id=viewer_id):
            loaded = await self._load_for_participant(conversation_id, viewer_id, CANNOT_VIEW_CONVERSATION)
            if not loaded.ok:
                return Result.failure(loaded.kind, loaded.reason)

            await self._mark_read(loaded.value, viewer_id)
            return Result.success(await self.messages.find_since(conversation_id, viewer_id, since))

    async def delete_message(self, message_id: int, user_id: int) -> Result[None]:
        """Hide a message from ``user_id`` only. The other participant keeps it."""
        with span("messaging.delete_message", message_id=message_id, user_id=user_id):
            message = await self.messages.load(message_id)
            if message is None:
                return Result.failure(ErrorKind.NOT_FOUND, MESSAGE_NOT_FOUND)

            conversation = await self.conversations.load(message.conversation_id)
            if conversation is None or not conversation.has_participant(user_id):
                return Result.failure(ErrorKind.AUTHORIZATION, CANNOT_DELETE_MESSAGE)

            if message.sender_id == user_id:
                await self.messages.soft_delete_for_sender(message_id)
            else:
                await self.messages.soft_delete_for_recipient(message_id)

            await self.hooks.do_action(AFTER_MESSAGE_DELETE, message, user_id)
            return Result.success()

    async def delete_conversation(self, conversation_id: int, user_id: int) -> Result[None]:
        with span("messaging.delete_conversation", conversation_id=conversation_id, user_id=user_id):
            loaded = await self._load_for_participant(conversation_id, user_id, CANNOT_DELETE_CONVERSATION)
            if not loaded.ok:
                return Result.failure(loaded.kind, loaded.reason)

            await self.messages.soft_delete_conversation_for(conversation_id, user_id)
            logger.info("Conversation %s deleted for user %s", conversation_id, user_id)
            await self.hooks.do_action(AFTER_CONVERSATION_DELETE, loaded.value, user_id)
            return Result.success()

    async def get_unread_count(self, user_id: int) -> int:
        with span("messaging.get_unread_count", user_id=user_id):
            return await self.messages.count_unread_for_user(user_id)

    # -- Social graph ---------------------------------------------------------

    async def follow(self, follower_id: int, followed_id: int) -> Result[bool]:
        """Follow a user. Following an already-followed user is a no-op success."""
        with span("social.follow", follower_id=follower_id, followed_id=followed_id):
            if follower_id == followed_id:
                return Result.failure(ErrorKind.SELF_REFERENCE, CANNOT_FOLLOW_SELF)

            target = await self.users.load(followed_id)
            if target is None:
                return Result.failure(ErrorKind.NOT_FOUND, USER_NOT_FOUND)
            if target.is_disabled:
                return Result.failure(ErrorKind.NOT_FOUND, USER_DISABLED)
            if target.is_pending:
                return Result.failure(ErrorKind.NOT_FOUND, USER_PENDING)

            result = await self.social_graph.follow(follower_id, followed_id)
            if result.ok and result.value:
                await self.hooks.do_action(AFTER_USER_FOLLOW, follower_id, followed_id)
            return result

    async def unfollow(self, follower_id: int, followed_id: int) -> Result[bool]:
        with span("social.unfollow", follower_id=follower_id, followed_id=followed_id):
            result = await self.social_graph.unfollow(follower_id, followed_id)
            if result.ok and result.value:
                await self.hooks.do_action(AFTER_USER_UNFOLLOW, follower_id, followed_id)
            return result

    async def block(self, blocker_id: int, blocked_id: int) -> Result[bool]:
        """Block a user. Disabled or pending accounts can still be blocked."""
        with span("social.block", blocker_id=blocker_id, blocked_id=blocked_id):
            if blocker_id == blocked_id:
                return Result.failure(ErrorKind.SELF_REFERENCE, CANNOT_BLOCK_SELF)

            if await self.users.load(blocked_id) is None:
                return Result.failure(ErrorKind.NOT_FOUND, USER_NOT_FOUND)

            result = await self.blocks.block(blocker_id, blocked_id)
            if result.ok and result.value:
                await self.hooks.do_action(AFTER_USER_BLOCK, blocker_id, blocked_id)
            return result

    async def unblock(self, blocker_id: int, blocked_id: int) -> Result[bool]:
        with span("social.unblock", blocker_id=blocker_id, blocked_id=blocked_id):
            result = await self.blocks.unblock(blocker_id, blocked_id)
            if result.ok and result.value:
                await self.hooks.do_action(AFTER_USER_UNBLOCK, blocker_id, blocked_id)
            return result

    async def is_following(self, follower_id: int, followed_id: int) -> bool:
        return await self.social_graph.is_following(follower_id, followed_id)

    async def are_mutual_follows(self, user_a: int, user_b: int) -> bool:
        return await self.social_graph.are_mutual_follows(user_a, user_b)

    async def has_block_between(self, user_a: int, user_b: int) -> bool:
        return await self.blocks.has_block_between(user_a, user_b)

    async def is_blocked(self, blocker_id: int, blocked_id: int) -> bool:
        return await self.blocks.is_blocked(blocker_id, blocked_id)

    async def get_follower_ids(self, user_id: int) -> list[int]:
        return await self.social_graph.get_follower_ids(user_id)

    async def get_following_ids(self, user_id: int) -> list[int]:
        return await self.social_graph.get_following_ids(user_id)

    async def count_followers(self, user_id: int) -> int:
        return await self.social_graph.count_followers(user_id)

    async def count_following(self, user_id: int) -> int:
        return await self.social_graph.count_following(user_id)

    async def get_blocked_ids(self, user_id: int) -> list[int]:
        return await self.blocks.get_blocked_ids(user_id)
