"""
Shared plumbing of the domain services.

Services never talk to bindings directly: views and mutations go through the
session's ``CallDispatcher``, confirmations through ``ConsistencyRetrier``,
and cross-service signals through the session's notification bus.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Sequence

from ..auth.session import AuthSession
from ..contracts.constants import DISPUTE_REGISTRY, LAND_REGISTRY
from ..engine.events import LocalNotification, NotificationHandler, contract_notification_name
from ..engine.retries import ConsistencyRetrier
from ..schemas.registry import Dispute, LandRecord

logger = logging.getLogger(__name__)


class RegistryService:
    """
    Base class of the user and inspector services.

    Args:
        session: Connected session supplying dispatcher, bus and cache
        retrier: Confirmation poller; built from the session settings by default
    """

    def __init__(self, session: AuthSession, retrier: Optional[ConsistencyRetrier] = None):
        self.session = session
        self.dispatcher = session.dispatcher
        self.bus = session.bus
        self.cache = session.cache
        self.retrier = retrier or ConsistencyRetrier(
            max_attempts=session.settings.retry_max_attempts,
            delay=session.settings.retry_delay_seconds,
        )

    @property
    def address(self) -> str:
        return self.session.address

    async def _view(self, registry: str, method: str, *args: Any) -> Any:
        return await self.dispatcher.view(registry, method, *args)

    async def _transact(self, registry: str, method: str, args: Sequence[Any] = (), **options: Any) -> Any:
        options.setdefault("wait_for_confirmation", True)
        return await self.dispatcher.transact(registry, method, args, **options)

    async def _confirm(
        self,
        mutate: Callable[[], Awaitable[Any]],
        verify: Callable[[], Awaitable[bool]],
        description: str,
    ) -> Any:
        return await self.retrier.run(mutate, verify, description)

    def _watch(self, events: Iterable[str], handler: NotificationHandler) -> Callable[[], None]:
        """Subscribe ``handler`` to ``contract:<event>`` for each event."""
        unsubscribers: List[Callable[[], None]] = [
            self.bus.subscribe(contract_notification_name(event), handler) for event in events
        ]

        def unwatch() -> None:
            for unsubscribe in unsubscribers:
                unsubscribe()
            unsubscribers.clear()

        return unwatch

    async def _publish_local(self, event: str, args: Dict[str, Any]) -> int:
        return await self.bus.publish(
            LocalNotification(name=contract_notification_name(event), event=event, args=args)
        )

    # ==================== Shared reads ====================

    async def get_land_details(self, land_id: int) -> LandRecord:
        raw = await self._view(LAND_REGISTRY, "getLandDetails", land_id)
        return LandRecord.model_validate(raw)

    async def get_land_disputes(self, land_id: int, offset: int = 0, limit: int = 10) -> List[Dispute]:
        raw = await self._view(DISPUTE_REGISTRY, "getLandDisputes", land_id, offset, limit)
        return [Dispute.model_validate(item) for item in raw]
