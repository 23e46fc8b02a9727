"""
Test suite for the authenticated session.
Tests: 1) Connect flow 2) Signer validation 3) Status refresh and caching
4) Event-driven refresh 5) Logout ordering
"""
import asyncio

import pytest

from landreg.auth.cache import CacheKeys
from landreg.auth.roles import resolve_status
from landreg.auth.session import AuthSession
from landreg.contracts.providers import IdentityConnection, PrivateKeyIdentityProvider, check_signer
from landreg.engine.events import SESSION_STATUS_CHANGED, LocalNotification
from landreg.engine.exceptions import ConfigurationError, SignerMismatchError
from landreg.schemas.identity import Role, RouteId

from mocks import OTHER_ACCOUNT, OTHER_ADDRESS, USER_ACCOUNT, USER_ADDRESS, USER_KEY, FakeIdentityProvider


@pytest.mark.asyncio
async def test_connect_resolves_and_caches_status(session, ledger):
    status = await session.connect()

    assert status.address == USER_ADDRESS
    assert session.is_connected
    assert session.role is Role.VERIFIED_USER
    assert session.landing_route is RouteId.DASHBOARD
    assert session.can_access(Role.VERIFIED_USER)
    assert session.cache.get(CacheKeys.AUTH_USER_STATE)["address"] == USER_ADDRESS
    await session.logout()


@pytest.mark.asyncio
async def test_connect_attaches_event_bridge(session):
    await session.connect()
    bindings = session.manager.bindings

    try:
        assert bindings["user_registry"].listener_count("UserVerified") == 1
    finally:
        await session.logout()


@pytest.mark.asyncio
async def test_connect_publishes_status_changed(session, bus):
    received = []

    async def handler(notification):
        received.append(notification)

    bus.subscribe(SESSION_STATUS_CHANGED, handler)
    try:
        await session.connect()
    finally:
        await session.logout()

    assert len(received) == 1
    assert received[0].args["address"] == USER_ADDRESS


@pytest.mark.asyncio
async def test_signer_mismatch_aborts_connect(ledger, manager, bus):
    connection = IdentityConnection(address=USER_ADDRESS, web3=ledger.web3, signer=OTHER_ACCOUNT)
    session = AuthSession(FakeIdentityProvider(connection), manager=manager, bus=bus)

    with pytest.raises(SignerMismatchError) as exc_info:
        await session.connect()

    assert exc_info.value.expected == USER_ADDRESS
    assert exc_info.value.actual == OTHER_ADDRESS
    assert not session.is_connected
    assert manager.bindings is None


def test_check_signer_requires_handles():
    with pytest.raises(ConfigurationError):
        check_signer(IdentityConnection(address=USER_ADDRESS, web3=None, signer=USER_ACCOUNT))


@pytest.mark.asyncio
async def test_refresh_requires_connection(session):
    with pytest.raises(ConfigurationError):
        await session.refresh_status()
    assert await session.current_status() is None


@pytest.mark.asyncio
async def test_concurrent_refresh_is_dropped(session, ledger):
    await session.connect()
    ledger["user_registry"].view_calls.clear()

    first, second = await asyncio.gather(session.refresh_status(), session.refresh_status())

    assert first is not None
    assert second is None
    assert len(ledger["user_registry"].calls_of("users")) == 1
    await session.logout()


@pytest.mark.asyncio
async def test_current_status_uses_cache_until_expiry(session, ledger, clock):
    await session.connect()
    ledger["user_registry"].view_calls.clear()

    cached = await session.current_status()
    assert cached.address == USER_ADDRESS
    assert ledger["user_registry"].view_calls == []

    clock.advance(session.settings.cache_ttl_seconds)
    await session.current_status()
    assert len(ledger["user_registry"].calls_of("users")) == 1
    await session.logout()


@pytest.mark.asyncio
async def test_identity_event_for_connected_user_triggers_refresh(session, ledger, bus):
    await session.connect()
    ledger.set_identity(USER_ADDRESS, name="Asha", registered=True, rejected=True, remarks="Mismatch")

    await bus.publish(LocalNotification(name="contract:UserRejected", args={"user": USER_ADDRESS, "reason": "Mismatch"}))

    assert session.role is Role.REJECTED
    assert session.landing_route is RouteId.PENDING
    await session.logout()


@pytest.mark.asyncio
async def test_identity_event_for_other_user_is_ignored(session, ledger, bus):
    await session.connect()
    ledger["user_registry"].view_calls.clear()

    await bus.publish(LocalNotification(name="contract:UserVerified", args={"user": OTHER_ADDRESS}))

    assert ledger["user_registry"].view_calls == []
    await session.logout()


@pytest.mark.asyncio
async def test_logout_clears_cache_before_disconnect(session, provider):
    events = provider.events
    await session.connect()
    original_invalidate = session.cache.invalidate_all

    def recording_invalidate():
        events.append("cache.invalidate_all")
        original_invalidate()

    session.cache.invalidate_all = recording_invalidate
    bindings = session.manager.bindings

    await session.logout()

    assert events == ["provider.connect", "cache.invalidate_all", "provider.disconnect"]
    assert session.cache.get(CacheKeys.AUTH_USER_STATE) is None
    assert not session.is_connected
    assert session.status is None
    assert session.manager.bindings is None
    assert all(binding.listener_count() == 0 for binding in bindings.values())


@pytest.mark.asyncio
async def test_reconnect_after_logout(session, provider):
    await session.connect()
    await session.logout()

    status = await session.connect()

    assert status.address == USER_ADDRESS
    assert provider.connects == 2
    await session.logout()


def test_address_requires_connection(session):
    with pytest.raises(ConfigurationError):
        session.address


@pytest.mark.asyncio
async def test_private_key_provider_requires_key(monkeypatch):
    monkeypatch.delenv("LANDREG_PRIVATE_KEY", raising=False)

    with pytest.raises(ConfigurationError):
        await PrivateKeyIdentityProvider().connect()


@pytest.mark.asyncio
async def test_private_key_provider_connects_signer():
    provider = PrivateKeyIdentityProvider(private_key=USER_KEY)

    connection = await provider.connect()

    assert connection.address == USER_ADDRESS
    assert connection.signer.address == USER_ADDRESS
    assert connection.web3.eth.default_account == USER_ADDRESS
    assert check_signer(connection) is connection
    await provider.disconnect()
    assert provider.connection is None


@pytest.mark.asyncio
async def test_logout_during_refresh_discards_resolved_status(session, bus, monkeypatch):
    await session.connect()
    received = []

    async def handler(notification):
        received.append(notification)

    bus.subscribe(SESSION_STATUS_CHANGED, handler)
    resolved = asyncio.Event()
    gate = asyncio.Event()

    async def held_resolve(bindings, address):
        status = await resolve_status(bindings, address)
        resolved.set()
        await gate.wait()
        return status

    monkeypatch.setattr("landreg.auth.session.resolve_status", held_resolve)
    refresh = asyncio.ensure_future(session.refresh_status())
    await resolved.wait()

    await session.logout()
    gate.set()

    assert await refresh is None
    assert session.status is None
    assert session.role is Role.GUEST
    assert not session.can_access(Role.VERIFIED_USER)
    assert session.cache.get(CacheKeys.AUTH_USER_STATE) is None
    assert received == []


@pytest.mark.asyncio
async def test_logout_while_bindings_initialize_ends_refresh_quietly(session, monkeypatch):
    await session.connect()
    started = asyncio.Event()
    gate = asyncio.Event()
    ensure_initialized = session.manager.ensure_initialized

    async def held_ensure():
        started.set()
        await gate.wait()
        return await ensure_initialized()

    monkeypatch.setattr(session.manager, "ensure_initialized", held_ensure)
    refresh = asyncio.ensure_future(session.refresh_status())
    await started.wait()

    await session.logout()
    gate.set()

    assert await refresh is None
    assert session.status is None
    assert session.cache.get(CacheKeys.AUTH_USER_STATE) is None


@pytest.mark.asyncio
async def test_reconnect_is_not_blocked_by_an_abandoned_refresh(session, monkeypatch):
    await session.connect()
    gate = asyncio.Event()
    resolved = asyncio.Event()

    async def held_resolve(bindings, address):
        status = await resolve_status(bindings, address)
        resolved.set()
        await gate.wait()
        return status

    monkeypatch.setattr("landreg.auth.session.resolve_status", held_resolve)
    stale = asyncio.ensure_future(session.refresh_status())
    await resolved.wait()
    await session.logout()
    monkeypatch.setattr("landreg.auth.session.resolve_status", resolve_status)

    status = await session.connect()

    assert status is not None
    assert session.role is Role.VERIFIED_USER
    gate.set()
    assert await stale is None
    assert session.role is Role.VERIFIED_USER
    await session.logout()
