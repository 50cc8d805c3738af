"""Action/filter hooks fired by the messaging gateway.

Plugins register callbacks to react to social graph and messaging events
without the gateway knowing about them (notifications, audit trails,
content moderation).

Actions: Execute callbacks for side effects after a state change
Filters: Execute callbacks that can transform a value before it is used

Usage:
    from parley.lib.hooks import action, filter, AFTER_MESSAGE_SEND, MESSAGE_BODY

    @action(AFTER_MESSAGE_SEND)
    async def notify_recipient(message, conversation, recipient_id):
        ...

    @filter(MESSAGE_BODY, priority=5)
    def collapse_whitespace(body, sender_id, recipient_id):
        return " ".join(body.split())
"""

import asyncio
from collections import defaultdict
from dataclasses import dataclass, field
from functools import wraps
from typing import Any, Callable, TypeVar

T = TypeVar("T")


@dataclass(order=True)
class HookHandler:
    """A registered hook handler with priority."""

    priority: int
    callback: Callable = field(compare=False)

    async def call(self, *args: Any, **kwargs: Any) -> Any:
        """Call the handler, awaiting the result when it is a coroutine."""
        result = self.callback(*args, **kwargs)
        if asyncio.iscoroutine(result):
            return await result
        return result


class HookRegistry:
    """Registry of action and filter handlers, ordered by priority."""

    def __init__(self) -> None:
        self._actions: dict[str, list[HookHandler]] = defaultdict(list)
        self._filters: dict[str, list[HookHandler]] = defaultdict(list)

    def add_action(self, hook_name: str, callback: Callable[..., Any], priority: int = 10) -> None:
        """Register an action callback. Lower priorities run first."""
        self._actions[hook_name].append(HookHandler(priority=priority, callback=callback))
        self._actions[hook_name].sort()

    def add_filter(self, hook_name: str, callback: Callable[..., T], priority: int = 10) -> None:
        """Register a filter callback. Lower priorities run first."""
        self._filters[hook_name].append(HookHandler(priority=priority, callback=callback))
        self._filters[hook_name].sort()

    def remove_action(self, hook_name: str, callback: Callable[..., Any]) -> bool:
        return self._remove(self._actions, hook_name, callback)

    def remove_filter(self, hook_name: str, callback: Callable[..., Any]) -> bool:
        return self._remove(self._filters, hook_name, callback)

    @staticmethod
    def _remove(
        registry: dict[str, list[HookHandler]],
        hook_name: str,
        callback: Callable[..., Any],
    ) -> bool:
        handlers = registry.get(hook_name, [])
        for i, handler in enumerate(handlers):
            if handler.callback is callback:
                handlers.pop(i)
                return True
        return False

    def has_action(self, hook_name: str) -> bool:
        return bool(self._actions.get(hook_name))

    def has_filter(self, hook_name: str) -> bool:
        return bool(self._filters.get(hook_name))

    async def do_action(self, hook_name: str, *args: Any, **kwargs: Any) -> None:
        """Run every action registered for ``hook_name``."""
        from parley.lib.observability import span

        with span(f"hook.action:{hook_name}", hook_name=hook_name):
            for handler in self._actions.get(hook_name, []):
                await handler.call(*args, **kwargs)

    async def apply_filters(self, hook_name: str, value: T, *args: Any, **kwargs: Any) -> T:
        """Pass ``value`` through every filter registered for ``hook_name``."""
        from parley.lib.observability import span

        with span(f"hook.filter:{hook_name}", hook_name=hook_name):
            for handler in self._filters.get(hook_name, []):
                value = await handler.call(value, *args, **kwargs)
            return value

    def clear(self) -> None:
        """Clear all registered hooks. Useful for testing."""
        self._actions.clear()
        self._filters.clear()


# Global singleton registry
hooks = HookRegistry()


def action(hook_name: str, priority: int = 10) -> Callable[[Callable], Callable]:
    """Decorator registering a function as an action handler."""

    def decorator(func: Callable) -> Callable:
        hooks.add_action(hook_name, func, priority)

        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            return func(*args, **kwargs)

        return wrapper

    return decorator


def filter(hook_name: str, priority: int = 10) -> Callable[[Callable], Callable]:
    """Decorator registering a function as a filter handler."""

    def decorator(func: Callable) -> Callable:
        hooks.add_filter(hook_name, func, priority)

        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            return func(*args, **kwargs)

        return wrapper

    return decorator


# Actions
AFTER_MESSAGE_SEND = "after_message_send"
AFTER_MESSAGE_DELETE = "after_message_delete"
AFTER_CONVERSATION_DELETE = "after_conversation_delete"
AFTER_MESSAGES_READ = "after_messages_read"
AFTER_USER_FOLLOW = "after_user_follow"
AFTER_USER_UNFOLLOW = "after_user_unfollow"
AFTER_USER_BLOCK = "after_user_block"
AFTER_USER_UNBLOCK = "after_user_unblock"

# Filters
MESSAGE_BODY = "message_body"

# Observability hooks
LOGFIRE_CONFIGURED = "logfire_configured"
