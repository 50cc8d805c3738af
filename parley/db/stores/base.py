"""Storage ports for the social graph and messaging components.

Each port is a Protocol so the gateway can run against any engine; the SQL
implementations live next to this module. Stores that insert unique rows
must turn a uniqueness violation into "already exists" instead of an error,
which the SQL stores do by catching ``IntegrityError`` and re-reading.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Literal, Protocol, runtime_checkable

from parley.lib.results import Result

if TYPE_CHECKING:
    from parley.db.models import Conversation, Message

SortOrder = Literal["asc", "desc"]


@dataclass(frozen=True)
class UserRecord:
    """The slice of a user account the messaging rules look at."""

    id: int
    username: str
    display_name: str | None = None
    is_disabled: bool = False
    is_pending: bool = False


def canonical_pair(user_a: int, user_b: int) -> tuple[int, int]:
    """Order two user ids so the smaller one comes first."""
    return (user_a, user_b) if user_a < user_b else (user_b, user_a)


@runtime_checkable
class UserDirectory(Protocol):
    async def load(self, user_id: int) -> UserRecord | None:
        ...

    async def load_by_username(self, username: str) -> UserRecord | None:
        ...

    async def search(self, query: str, limit: int = 20) -> list[UserRecord]:
        """Exact username first, then prefix matches, then the rest."""
        ...


@runtime_checkable
class SocialGraphStore(Protocol):
    async def follow(self, follower_id: int, followed_id: int) -> Result[bool]:
        """Insert the edge if absent. The value is True when a row was created."""
        ...

    async def unfollow(self, follower_id: int, followed_id: int) -> Result[bool]:
        """Remove the edge if present. The value is True when a row was removed."""
        ...

    async def is_following(self, follower_id: int, followed_id: int) -> bool:
        ...

    async def are_mutual_follows(self, user_a: int, user_b: int) -> bool:
        ...

    async def get_follower_ids(self, user_id: int) -> list[int]:
        ...

    async def get_following_ids(self, user_id: int) -> list[int]:
        ...

    async def count_followers(self, user_id: int) -> int:
        ...

    async def count_following(self, user_id: int) -> int:
        ...


@runtime_checkable
class BlockStore(Protocol):
    async def block(self, blocker_id: int, blocked_id: int) -> Result[bool]:
        ...

    async def unblock(self, blocker_id: int, blocked_id: int) -> Result[bool]:
        ...

    async def is_blocked(self, blocker_id: int, blocked_id: int) -> bool:
        ...

    async def has_block_between(self, user_a: int, user_b: int) -> bool:
        ...

    async def get_blocked_ids(self, blocker_id: int) -> list[int]:
        ...

    async def get_blocker_ids(self, blocked_id: int) -> list[int]:
        ...


@runtime_checkable
class ConversationDirectory(Protocol):
    async def get_or_create_conversation(self, user_a: int, user_b: int) -> Conversation:
        ...

    async def find_by_users(self, user_a: int, user_b: int) -> Conversation | None:
        ...

    async def find_by_user_id(self, user_id: int, limit: int = 20, offset: int = 0) -> Sequence[Conversation]:
        ...

    async def count_by_user_id(self, user_id: int) -> int:
        ...

    async def update_last_message_at(self, conversation_id: int, timestamp: datetime) -> None:
        ...

    async def load(self, conversation_id: int) -> Conversation | None:
        ...


@runtime_checkable
class MessageLog(Protocol):
    async def append(self, conversation_id: int, sender_id: int, body: str) -> Message:
        ...

    async def load(self, message_id: int) -> Message | None:
        ...

    async def find_visible_to(
        self,
        conversation_id: int,
        viewer_id: int,
        limit: int = 50,
        offset: int = 0,
        order: SortOrder = "asc",
    ) -> Sequence[Message]:
        ...

    async def find_since(self, conversation_id: int, viewer_id: int, since: datetime) -> Sequence[Message]:
        ...

    async def mark_read_for(self, conversation_id: int, recipient_id: int) -> int:
        ...

    async def count_unread_for(self, conversation_id: int, recipient_id: int) -> int:
        ...

    async def count_unread_for_user(self, user_id: int) -> int:
        ...

    async def soft_delete_for_sender(self, message_id: int) -> None:
        ...

    async def soft_delete_for_recipient(self, message_id: int) -> None:
        ...

    async def soft_delete_conversation_for(self, conversation_id: int, user_id: int) -> None:
        ...

    async def get_last_visible(self, conversation_id: int, viewer_id: int) -> Message | None:
        ...

    async def purge_fully_deleted(self, older_than: datetime | None = None) -> int:
        ...
