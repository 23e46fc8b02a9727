"""
Authenticated session lifecycle.

``AuthSession`` glues the identity provider, the connection manager, the
event bridge, the role resolver and the session cache together:

    connect -> bindings -> bridge attached -> status resolved and cached
    contract:User* notification -> status refreshed -> session:StatusChanged
    logout -> listeners detached -> cache cleared -> bindings reset -> provider disconnected
"""

import logging
from typing import Callable, List, Optional, Union

from .cache import CacheKeys, SessionCache
from .roles import effective_role, has_access, redirect_route, resolve_status
from ..contracts.connections import ContractConnectionManager
from ..contracts.constants import RegistrySettings
from ..contracts.dispatcher import CallDispatcher
from ..contracts.providers import IdentityConnection, IdentityProvider, check_signer
from ..engine.bridge import EventBridge
from ..engine.events import LocalNotification, NotificationBus, SESSION_STATUS_CHANGED, contract_notification_name
from ..engine.exceptions import ConfigurationError
from ..schemas.identity import IdentityStatus, Role, RouteId

logger = logging.getLogger(__name__)

STATUS_REFRESH_EVENTS = tuple(
    contract_notification_name(event)
    for event in ("UserRegistered", "UserVerified", "UserRejected")
)


class AuthSession:
    """
    One connected identity and everything bound to it.

    Args:
        provider: Identity provider supplying address, network handle and signer
        manager: Connection manager (a fresh one by default)
        bus: Local notification bus (a fresh one by default)
        cache: Session cache (TTL from the manager settings by default)
        bridge: Event bridge publishing onto ``bus``

    Example:
        session = AuthSession(PrivateKeyIdentityProvider(private_key))
        status = await session.connect()
        session.landing_route  # RouteId.DASHBOARD for a verified user
        await session.logout()
    """

    def __init__(
        self,
        provider: IdentityProvider,
        manager: Optional[ContractConnectionManager] = None,
        bus: Optional[NotificationBus] = None,
        cache: Optional[SessionCache] = None,
        bridge: Optional[EventBridge] = None,
        settings: Optional[RegistrySettings] = None,
    ):
        self.provider = provider
        self.manager = manager or ContractConnectionManager(settings)
        self.bus = bus or NotificationBus()
        self.cache = cache or SessionCache(ttl_seconds=self.manager.settings.cache_ttl_seconds)
        self.bridge = bridge or EventBridge(self.bus)
        self.dispatcher = CallDispatcher(self.manager)

        self._connection: Optional[IdentityConnection] = None
        self._status: Optional[IdentityStatus] = None
        self._detach: Optional[Callable[[], None]] = None
        self._unsubscribers: List[Callable[[], None]] = []
        self._connecting = False
        # Bumped whenever the connected identity changes; results of work
        # started under an older generation are discarded.
        self._generation = 0
        self._refreshing: Optional[int] = None

    # ==================== Properties ====================

    @property
    def settings(self) -> RegistrySettings:
        return self.manager.settings

    @property
    def is_connected(self) -> bool:
        return self._connection is not None

    @property
    def address(self) -> str:
        if self._connection is None:
            raise ConfigurationError("No identity connected")
        return self._connection.address

    @property
    def status(self) -> Optional[IdentityStatus]:
        """Last resolved status, without touching cache or network."""
        return self._status

    @property
    def role(self) -> Role:
        return effective_role(self._status)

    @property
    def landing_route(self) -> RouteId:
        return redirect_route(self._status)

    def can_access(self, required: Union[Role, str]) -> bool:
        return has_access(self._status, required)

    # ==================== Lifecycle ====================

    async def connect(self) -> Optional[IdentityStatus]:
        """
        Connect the identity, bind the registries and resolve the status.

        Returns:
            IdentityStatus, or None when a connect was already in progress.

        Raises:
            SignerMismatchError: If the signer does not match the reported address.
            NetworkMismatchError, DeploymentError: From binding initialization.
        """
        if self._connecting:
            logger.debug("Connect already in progress; ignoring")
            return None

        self._connecting = True
        try:
            connection = check_signer(await self.provider.connect())
            bindings = await self.manager.get_or_init(connection.web3, connection.signer)

            self._teardown_listeners()
            self._connection = connection
            self._generation += 1
            self._detach = self.bridge.attach(bindings)
            for name in STATUS_REFRESH_EVENTS:
                self._unsubscribers.append(self.bus.subscribe(name, self._on_identity_event))

            logger.info("Session connected for %s", connection.address)
            return await self.refresh_status()
        finally:
            self._connecting = False

    async def refresh_status(self) -> Optional[IdentityStatus]:
        """
        Re-resolve the identity status and cache it.

        Callers arriving while a refresh runs are dropped and get None. A
        refresh overtaken by ``logout()`` or a reconnect also returns None and
        leaves status, cache and bus untouched.

        Raises:
            ConfigurationError: If no identity is connected.
            CallError: If resolution fails; the cached status is left as-is.
        """
        if self._connection is None:
            raise ConfigurationError("No identity connected")
        generation = self._generation
        if self._refreshing == generation:
            logger.debug("Status refresh already in progress; dropping request")
            return None

        address = self._connection.address
        self._refreshing = generation
        try:
            try:
                bindings = await self.manager.ensure_initialized()
                status = await resolve_status(bindings, address)
            except ConfigurationError:
                if generation != self._generation:
                    logger.debug("Session for %s ended during status refresh", address)
                    return None
                raise
            if generation != self._generation:
                logger.debug("Discarding status of %s resolved after the session ended", address)
                return None

            self._status = status
            self.cache.set(CacheKeys.AUTH_USER_STATE, status)
            await self.bus.publish(
                LocalNotification(name=SESSION_STATUS_CHANGED, args=status.model_dump(mode="json"))
            )
            return status
        finally:
            if self._refreshing == generation:
                self._refreshing = None

    async def current_status(self, use_cache: bool = True) -> Optional[IdentityStatus]:
        """Cached status of the connected identity, resolving it on a miss."""
        if self._connection is None:
            return None
        if use_cache:
            cached = self.cache.get(CacheKeys.AUTH_USER_STATE)
            if cached and cached.get("address", "").lower() == self._connection.address.lower():
                self._status = IdentityStatus.model_validate(cached)
                return self._status
        status = await self.refresh_status()
        return status if status is not None else self._status

    async def logout(self) -> None:
        """Tear the session down; the cache is cleared before the provider disconnects."""
        address = self._connection.address if self._connection is not None else None
        self._teardown_listeners()
        self.cache.invalidate_all()
        self.manager.reset()
        self._connection = None
        self._generation += 1
        self._status = None
        await self.provider.disconnect()
        logger.info("Session logged out for %s", address)

    # ==================== Internals ====================

    def _teardown_listeners(self) -> None:
        if self._detach is not None:
            self._detach()
            self._detach = None
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()

    async def _on_identity_event(self, notification: LocalNotification) -> None:
        if self._connection is None:
            return
        subject = notification.args.get("user")
        if subject and str(subject).lower() != self._connection.address.lower():
            return
        logger.debug("Refreshing status after %s", notification.name)
        await self.refresh_status()
