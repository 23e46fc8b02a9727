"""
Local notification bus.

Producers publish named notifications; consumers subscribe coroutine
handlers by name. Neither side knows about the other. Contract events arrive
here through the event bridge under ``contract:<EventName>``; the session
layer publishes ``session:StatusChanged``.
"""

import inspect
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional

from pydantic import ConfigDict, Field

from ..schemas.bases import CanonicalModel

logger = logging.getLogger(__name__)

CONTRACT_PREFIX = "contract:"
SESSION_STATUS_CHANGED = "session:StatusChanged"


def contract_notification_name(event: str) -> str:
    return f"{CONTRACT_PREFIX}{event}"


# ==================== Notification ====================

class LocalNotification(CanonicalModel):
    """
    A named local notification.

    Attributes:
        name: Bus name, e.g. ``contract:UserVerified``
        registry: Source registry for contract notifications
        event: Source event name for contract notifications
        args: Event arguments (decoded log args, or a local payload)
        block_number: Block of the originating log, when there is one
        published_at: Local creation time
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str = Field(..., min_length=1)
    registry: Optional[str] = None
    event: Optional[str] = None
    args: Dict[str, Any] = Field(default_factory=dict)
    block_number: Optional[int] = None
    published_at: datetime = Field(default_factory=datetime.now)

    def __repr__(self) -> str:
        return f"LocalNotification(name={self.name}, args_keys={list(self.args.keys())})"


# ==================== Bus ====================

NotificationHandler = Callable[[LocalNotification], Awaitable[None]]


class NotificationBus:
    """Name-keyed publish/subscribe dispatcher for local notifications."""

    def __init__(self) -> None:
        self._subscribers: Dict[str, List[NotificationHandler]] = {}

    def subscribe(self, name: str, handler: NotificationHandler) -> Callable[[], None]:
        """
        Register an async handler for a notification name.

        Handlers for one name run in registration order.

        Args:
            name: Notification name to subscribe to.
            handler: Coroutine function receiving the notification.

        Returns:
            Callable[[], None]: Unsubscribe callable for this registration.

        Raises:
            TypeError: If handler is not a coroutine function.
        """
        if not inspect.iscoroutinefunction(handler):
            raise TypeError(f"Handler must be a coroutine function, got {type(handler).__name__}")

        if name not in self._subscribers:
            self._subscribers[name] = []
        self._subscribers[name].append(handler)

        def _unsubscribe() -> None:
            self.unsubscribe(name, handler)

        return _unsubscribe

    def unsubscribe(self, name: str, handler: NotificationHandler) -> bool:
        """Remove one registration of ``handler``; returns False if absent."""
        handlers = self._subscribers.get(name)
        if not handlers or handler not in handlers:
            return False
        handlers.remove(handler)
        if not handlers:
            del self._subscribers[name]
        return True

    def subscriber_count(self, name: str) -> int:
        return len(self._subscribers.get(name, []))

    async def publish(self, notification: LocalNotification) -> int:
        """
        Deliver a notification to every handler subscribed to its name.

        A failing handler is logged and does not stop the remaining ones.

        Returns:
            int: Number of handlers that ran.
        """
        handlers = list(self._subscribers.get(notification.name, []))
        if not handlers:
            logger.debug("No subscribers for %s", notification.name)
            return 0

        for handler in handlers:
            try:
                await handler(notification)
            except Exception:
                logger.exception("Handler %r failed for %s", handler, notification.name)
        return len(handlers)

    def clear(self) -> None:
        self._subscribers.clear()
