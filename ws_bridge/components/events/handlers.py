"""
Application handler set.

Each slot is an optional callable. Callables may be plain functions or
coroutine functions; coroutines are awaited. An unset slot is skipped.
"""

from __future__ import annotations

import dataclasses
import inspect
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Union

from shared.config.logging import get_logger
from ws_bridge.components.events.types import ClientMessage

logger = get_logger(__name__)

HandlerResult = Union[None, Awaitable[None]]

OnMessage = Callable[[ClientMessage], HandlerResult]
OnClientConnect = Callable[[str], HandlerResult]
OnClientDisconnect = Callable[[str], HandlerResult]
OnCustomMessage = Callable[[str, Any, str], HandlerResult]


@dataclass(frozen=True)
class MessageHandlers:
    """
    Immutable handler set.

    The bridge swaps the whole object on update, so a dispatch in progress
    always sees one consistent set.

    Attributes:
        on_message: Called with a ClientMessage for every non-heartbeat frame.
        on_client_connect: Called with the client id after registration.
        on_client_disconnect: Called with the client id at most once per connection.
        on_custom_message: Called with (type, data, client_id) after on_message.
    """

    on_message: OnMessage | None = None
    on_client_connect: OnClientConnect | None = None
    on_client_disconnect: OnClientDisconnect | None = None
    on_custom_message: OnCustomMessage | None = None

    @classmethod
    def slot_names(cls) -> tuple[str, ...]:
        return tuple(f.name for f in dataclasses.fields(cls))

    def merge(
        self,
        update: "MessageHandlers | Mapping[str, Any] | None" = None,
        **kwargs: Any,
    ) -> "MessageHandlers":
        """
        Return a new handler set with the given slots overwritten.

        - A MessageHandlers update overwrites only its slots that are set.
        - A mapping or keyword arguments overwrite every key present,
          including an explicit None (which clears that slot).
        - Slots not mentioned are preserved.

        Raises:
            TypeError: On an unknown slot name or a non-callable value.
        """
        changes: dict[str, Any] = {}
        if isinstance(update, MessageHandlers):
            changes.update({
                name: getattr(update, name)
                for name in self.slot_names()
                if getattr(update, name) is not None
            })
        elif update is not None:
            changes.update(update)
        changes.update(kwargs)

        valid = self.slot_names()
        for name, value in changes.items():
            if name not in valid:
                raise TypeError(f"Unknown handler '{name}'; expected one of {', '.join(valid)}")
            if value is not None and not callable(value):
                raise TypeError(f"Handler '{name}' must be callable, got {type(value).__name__}")

        return dataclasses.replace(self, **changes)

    def active(self) -> list[str]:
        """Names of the slots that are set."""
        return [name for name in self.slot_names() if getattr(self, name) is not None]


async def invoke_handler(name: str, handler: Callable[..., HandlerResult] | None, *args: Any) -> bool:
    """
    Call an optional handler, awaiting it if it returns an awaitable.

    A handler that raises is logged with its traceback and reported as failed;
    the exception does not propagate into the transport loop.

    Returns:
        True if the handler was set and completed, False otherwise.
    """
    if handler is None:
        return False
    try:
        result = handler(*args)
        if inspect.isawaitable(result):
            await result
        return True
    except Exception:
        logger.error("Handler raised an exception", handler=name, exc_info=True)
        return False
