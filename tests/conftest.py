import pytest

from landreg.auth.cache import SessionCache
from landreg.auth.session import AuthSession
from landreg.contracts.connections import ContractConnectionManager
from landreg.contracts.constants import RegistrySettings
from landreg.contracts.providers import IdentityConnection
from landreg.engine.events import NotificationBus

from mocks import USER_ACCOUNT, USER_ADDRESS, FakeIdentityProvider, FakeLedger


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def settings() -> RegistrySettings:
    return RegistrySettings(retry_delay_seconds=0, retry_max_attempts=3, event_poll_interval=0.01)


@pytest.fixture
def manager(settings: RegistrySettings) -> ContractConnectionManager:
    return ContractConnectionManager(settings)


@pytest.fixture
def user_connection(ledger: FakeLedger) -> IdentityConnection:
    return IdentityConnection(address=USER_ADDRESS, web3=ledger.web3, signer=USER_ACCOUNT)


@pytest.fixture
def provider(user_connection: IdentityConnection) -> FakeIdentityProvider:
    return FakeIdentityProvider(user_connection)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def bus() -> NotificationBus:
    return NotificationBus()


@pytest.fixture
def session(provider, manager, bus, clock) -> AuthSession:
    return AuthSession(provider, manager=manager, bus=bus, cache=SessionCache(clock=clock))
