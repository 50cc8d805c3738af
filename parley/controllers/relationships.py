"""Follow and block endpoints."""

from typing import Any

from litestar import Controller, Request, delete, get, post

from parley.controllers.helpers import current_user_id
from parley.lib.exceptions import raise_for_result
from parley.messaging import MessagingGateway


class RelationshipsController(Controller):
    path = "/users/{user_id:int}"

    @post("/follow", status_code=200)
    async def follow(self, request: Request, gateway: MessagingGateway, user_id: int) -> dict[str, Any]:
        result = await gateway.follow(current_user_id(request), user_id)
        raise_for_result(result)
        return {"following": True, "created": result.value}

    @delete("/follow", status_code=200)
    async def unfollow(self, request: Request, gateway: MessagingGateway, user_id: int) -> dict[str, Any]:
        result = await gateway.unfollow(current_user_id(request), user_id)
        raise_for_result(result)
        return {"following": False, "removed": result.value}

    @post("/block", status_code=200)
    async def block(self, request: Request, gateway: MessagingGateway, user_id: int) -> dict[str, Any]:
        result = await gateway.block(current_user_id(request), user_id)
        raise_for_result(result)
        return {"blocked": True, "created": result.value}

    @delete("/block", status_code=200)
    async def unblock(self, request: Request, gateway: MessagingGateway, user_id: int) -> dict[str, Any]:
        result = await gateway.unblock(current_user_id(request), user_id)
        raise_for_result(result)
        return {"blocked": False, "removed": result.value}

    @get("/relationship")
    async def relationship(self, request: Request, gateway: MessagingGateway, user_id: int) -> dict[str, Any]:
        me = current_user_id(request)
        return {
            "user_id": user_id,
            "is_following": await gateway.is_following(me, user_id),
            "is_followed_by": await gateway.is_following(user_id, me),
            "is_mutual": await gateway.are_mutual_follows(me, user_id),
            "is_blocked": await gateway.is_blocked(me, user_id),
            "has_block_between": await gateway.has_block_between(me, user_id),
            "followers": await gateway.count_followers(user_id),
            "following": await gateway.count_following(user_id),
        }
