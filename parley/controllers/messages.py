"""Direct message endpoints."""

from datetime import datetime
from typing import Any

from litestar import Controller, Request, delete, get, post
from litestar.params import Parameter

from parley.controllers.helpers import (
    current_user_id,
    serialize_conversation,
    serialize_inbox_entry,
    serialize_message,
    serialize_user,
)
from parley.lib.exceptions import raise_for_result
from parley.messaging import MessagingGateway


class MessagesController(Controller):
    path = "/messages"

    @get("/inbox")
    async def inbox(
        self,
        request: Request,
        gateway: MessagingGateway,
        limit: int | None = Parameter(default=None, ge=1, le=100),
        offset: int = Parameter(default=0, ge=0),
    ) -> dict[str, Any]:
        user_id = current_user_id(request)
        limit = limit or request.app.state.settings.messaging.default_inbox_limit
        entries = await gateway.get_inbox(user_id, limit, offset)
        return {
            "conversations": [serialize_inbox_entry(entry, user_id) for entry in entries],
            "total": await gateway.count_conversations(user_id),
            "limit": limit,
            "offset": offset,
        }

    @get("/unread-count")
    async def unread_count(self, request: Request, gateway: MessagingGateway) -> dict[str, int]:
        return {"count": await gateway.get_unread_count(current_user_id(request))}

    @get("/can-message/{user_id:int}")
    async def can_message(self, request: Request, gateway: MessagingGateway, user_id: int) -> dict[str, Any]:
        result = await gateway.can_message(current_user_id(request), user_id)
        return {"can_message": result.ok, "reason": result.reason}

    @post("/to/{user_id:int}")
    async def send(
        self, request: Request, gateway: MessagingGateway, user_id: int, data: dict[str, Any]
    ) -> dict[str, Any]:
        sender_id = current_user_id(request)
        body = data.get("body")
        result = await gateway.send_message(sender_id, user_id, body if isinstance(body, str) else "")
        raise_for_result(result)
        message, conversation = result.value
        return {
            "message": serialize_message(message, sender_id),
            "conversation": serialize_conversation(conversation),
        }

    @post("/open/{user_id:int}", status_code=200)
    async def open_conversation(self, request: Request, gateway: MessagingGateway, user_id: int) -> dict[str, Any]:
        result = await gateway.open_conversation(current_user_id(request), user_id)
        raise_for_result(result)
        return {"conversation": serialize_conversation(result.value)}

    @post("/new/{username:str}", status_code=200)
    async def open_conversation_with(
        self, request: Request, gateway: MessagingGateway, username: str
    ) -> dict[str, Any]:
        result = await gateway.open_conversation_with(current_user_id(request), username)
        raise_for_result(result)
        return {"conversation": serialize_conversation(result.value)}

    @get("/search")
    async def search(
        self,
        request: Request,
        gateway: MessagingGateway,
        q: str = "",
        limit: int = Parameter(default=20, ge=1, le=50),
    ) -> dict[str, Any]:
        """Users the caller could start a conversation with."""
        result = await gateway.find_messageable_users(current_user_id(request), q, limit)
        raise_for_result(result)
        return {"query": q.strip(), "users": [serialize_user(user) for user in result.value]}

    @get("/conversations/{conversation_id:int}")
    async def conversation(
        self,
        request: Request,
        gateway: MessagingGateway,
        conversation_id: int,
        limit: int | None = Parameter(default=None, ge=1, le=200),
        offset: int = Parameter(default=0, ge=0),
    ) -> dict[str, Any]:
        """Show a conversation. Viewing marks incoming messages as read."""
        user_id = current_user_id(request)
        limit = limit or request.app.state.settings.messaging.default_page_limit

        loaded = await gateway.get_conversation(conversation_id, user_id)
        raise_for_result(loaded)
        result = await gateway.get_messages(conversation_id, user_id, limit, offset)
        raise_for_result(result)

        other_user = await gateway.get_other_participant(loaded.value, user_id)
        return {
            "conversation": serialize_conversation(loaded.value),
            "other_user_id": loaded.value.other_participant_id(user_id),
            "other_username": other_user.username if other_user else None,
            "messages": [serialize_message(m, user_id) for m in result.value],
            "max_message_length": gateway.get_max_message_length(),
        }

    @get("/conversations/{conversation_id:int}/poll")
    async def poll(
        self, request: Request, gateway: MessagingGateway, conversation_id: int, since: datetime
    ) -> dict[str, Any]:
        user_id = current_user_id(request)
        result = await gateway.get_messages_since(conversation_id, user_id, since)
        raise_for_result(result)
        return {"messages": [serialize_message(m, user_id) for m in result.value]}

    @delete("/conversations/{conversation_id:int}")
    async def delete_conversation(self, request: Request, gateway: MessagingGateway, conversation_id: int) -> None:
        raise_for_result(await gateway.delete_conversation(conversation_id, current_user_id(request)))

    @delete("/{message_id:int}")
    async def delete_message(self, request: Request, gateway: MessagingGateway, message_id: int) -> None:
        raise_for_result(await gateway.delete_message(message_id, current_user_id(request)))
