"""Shared helpers for the JSON controllers."""

from typing import Any

from litestar import Request
from litestar.exceptions import NotAuthorizedException

from parley.db.models import Conversation, Message
from parley.db.stores import UserRecord
from parley.messaging import InboxEntry

SESSION_USER_ID = "user_id"


def current_user_id(request: Request) -> int:
    """Id of the signed-in user, or 401 when the session has none."""
    user_id = request.session.get(SESSION_USER_ID) if request.session else None
    if user_id is None:
        raise NotAuthorizedException(detail="Authentication required")
    try:
        return int(user_id)
    except (TypeError, ValueError):
        raise NotAuthorizedException(detail="Authentication required") from None


def serialize_user(user: UserRecord) -> dict[str, Any]:
    return {"id": user.id, "username": user.username, "display_name": user.display_name}


def serialize_conversation(conversation: Conversation) -> dict[str, Any]:
    return {
        "id": conversation.id,
        "user_low_id": conversation.user_low_id,
        "user_high_id": conversation.user_high_id,
        "last_message_at": conversation.last_message_at.isoformat(),
        "created_at": conversation.created_at.isoformat(),
    }


def serialize_message(message: Message, viewer_id: int) -> dict[str, Any]:
    # A viewer's own messages always count as read
    return {
        "id": message.id,
        "conversation_id": message.conversation_id,
        "sender_id": message.sender_id,
        "body": message.body,
        "is_read": message.is_read or message.sender_id == viewer_id,
        "is_mine": message.sender_id == viewer_id,
        "created_at": message.created_at.isoformat(),
    }


def serialize_inbox_entry(entry: InboxEntry, viewer_id: int) -> dict[str, Any]:
    return {
        "conversation": serialize_conversation(entry.conversation),
        "other_user": serialize_user(entry.other_user),
        "last_message": serialize_message(entry.last_message, viewer_id) if entry.last_message else None,
        "unread_count": entry.unread_count,
    }
