"""
Event bridge: contract event listeners -> local notification bus.

Purely a relay. For every (registry, event) pair of the allow list that the
registry's ABI actually declares, one listener is registered on the binding;
each emission is republished as ``contract:<EventName>``.
"""

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from .events import LocalNotification, NotificationBus, contract_notification_name

logger = logging.getLogger(__name__)

# Events the client reacts to, per registry.
DEFAULT_EVENT_ALLOW_LIST: Dict[str, Tuple[str, ...]] = {
    "user_registry": ("UserRegistered", "UserVerified", "UserRejected"),
    "land_registry": ("LandAdded", "LandVerified", "LandUpdated", "LandRemoved"),
    "transaction_registry": (
        "PurchaseRequestCreated",
        "PurchaseRequestStatusChanged",
        "PurchaseRequestCancelled",
        "LandOwnershipTransferred",
    ),
    "dispute_registry": ("DisputeOpened", "DisputeClosed"),
}


class EventBridge:
    """
    Relays contract events from a binding set to a notification bus.

    Example:
        bridge = EventBridge(bus)
        detach = bridge.attach(bindings)
        ...
        detach()  # removes exactly the listeners registered above
    """

    def __init__(
        self,
        bus: NotificationBus,
        allow_list: Optional[Mapping[str, Sequence[str]]] = None,
    ) -> None:
        self.bus = bus
        self.allow_list = dict(allow_list if allow_list is not None else DEFAULT_EVENT_ALLOW_LIST)

    def _make_listener(self, registry: str, event: str):
        name = contract_notification_name(event)

        async def _relay(args: Dict[str, Any], log: Optional[Any] = None) -> None:
            block_number = None
            if log is not None:
                block_number = log.get("blockNumber")
            await self.bus.publish(
                LocalNotification(
                    name=name,
                    registry=registry,
                    event=event,
                    args=dict(args),
                    block_number=block_number,
                )
            )

        return _relay

    def attach(self, bindings: Mapping[str, Any]) -> Callable[[], None]:
        """
        Register one relay listener per allowed event present in ``bindings``.

        Unknown registries and events the ABI does not declare are skipped.

        Returns:
            Callable[[], None]: Idempotent detach function.
        """
        registered: List[Tuple[Any, str, Any]] = []

        for registry, events in self.allow_list.items():
            binding = bindings.get(registry)
            if binding is None:
                logger.debug("Skipping events of unknown registry %s", registry)
                continue
            for event in events:
                if not binding.has_event(event):
                    logger.debug("Registry %s does not declare event %s", registry, event)
                    continue
                listener = self._make_listener(registry, event)
                binding.on(event, listener)
                registered.append((binding, event, listener))

        logger.info("Event bridge attached %d listeners", len(registered))
        detached = False

        def detach() -> None:
            nonlocal detached
            if detached:
                return
            detached = True
            for binding, event, listener in registered:
                binding.off(event, listener)
            logger.info("Event bridge detached %d listeners", len(registered))
            registered.clear()

        return detach
