"""
Test suite for the user and inspector services.
Tests: 1) Dashboard and land paging 2) Confirmed mutations (incl. lagging reads)
3) Local preconditions 4) Market and payments 5) Inspector verification flows
6) Event-driven cache invalidation and dashboard refresh
"""
from typing import Dict, List

import pytest
import pytest_asyncio

from landreg.auth.cache import CacheKeys
from landreg.engine.events import LocalNotification
from landreg.engine.exceptions import AuthorizationError, ConvergenceError
from landreg.schemas import LandInput, MarketFilters, RequestStatus, Role, UserProfile
from landreg.services.inspector import InspectorService
from landreg.services.users import UINT256_MAX, UserService

from mocks import DOC_HASH, OTHER_ADDRESS, USER_ADDRESS, FakeLedger, land_tuple, request_tuple

# Positions inside a land tuple
PRICE, FOR_SALE, OWNER, VERIFIED, REMARK = 3, 8, 9, 10, 11


class LandBook:
    """Mutable land store behind the land registry views of a FakeLedger."""

    def __init__(self, ledger: FakeLedger):
        self.ledger = ledger
        self.lands: Dict[int, List] = {}
        self.lag = 0
        self._pending: List = []
        registry = ledger["land_registry"]
        registry.views.update({
            "getLandDetails": self._details,
            "getUserLands": lambda owner: [i for i, land in self.lands.items() if land[OWNER] == owner],
            "getPendingVerifications": lambda: [i for i, land in self.lands.items() if not land[VERIFIED] and not land[REMARK]],
            "getTotalLands": lambda: len(self.lands),
        })
        registry.effects.update({
            "putLandForSale": lambda land_id, tx: self._change(land_id, FOR_SALE, True),
            "takeLandOffSale": lambda land_id, tx: self._change(land_id, FOR_SALE, False),
            "updateLandPrice": lambda land_id, price, tx: self._change(land_id, PRICE, price),
            "removeLand": lambda land_id, tx: self.lands.pop(land_id),
            "verifyLand": self._verify,
        })

    def add(self, land_id: int, **kwargs) -> None:
        self.lands[land_id] = list(land_tuple(land_id, **kwargs))

    def _details(self, land_id: int):
        if self._pending:
            remaining, land_id_, index, value = self._pending[0]
            if remaining <= 0:
                self.lands[land_id_][index] = value
                self._pending.pop(0)
            else:
                self._pending[0] = (remaining - 1, land_id_, index, value)
        return tuple(self.lands[land_id])

    def _change(self, land_id: int, index: int, value) -> None:
        if self.lag:
            self._pending.append((self.lag, land_id, index, value))
        else:
            self.lands[land_id][index] = value

    def _verify(self, land_id: int, approved: bool, remark: str, tx) -> None:
        self.lands[land_id][VERIFIED] = approved
        self.lands[land_id][REMARK] = remark


@pytest.fixture
def book(ledger) -> LandBook:
    book = LandBook(ledger)
    book.add(1)
    book.add(2, is_for_sale=True, price=2 * 10**18)
    book.add(3)
    book.add(4, owner=OTHER_ADDRESS, is_for_sale=True, price=3 * 10**18)
    return book


@pytest_asyncio.fixture
async def users(session, book) -> UserService:
    await session.connect()
    yield UserService(session)
    await session.logout()


@pytest_asyncio.fixture
async def inspector(session, ledger, book) -> InspectorService:
    ledger.set_identity(USER_ADDRESS, inspector=True)
    await session.connect()
    yield InspectorService(session)
    await session.logout()


# ==================== Dashboard and lands ====================

@pytest.mark.asyncio
async def test_fetch_user_stats_combines_summary_and_owned_lands(ledger, users):
    ledger["transaction_registry"].views["getUserTransactionSummary"] = (5, 1, 2, 3)

    stats = await users.fetch_user_stats()

    assert stats.owned_lands == 3
    assert (stats.total, stats.pending, stats.incoming, stats.outgoing) == (5, 1, 2, 3)
    assert users.cache.get(CacheKeys.USER_DATA)["owned_lands"] == 3


@pytest.mark.asyncio
async def test_market_metrics(ledger, users):
    ledger["transaction_registry"].views.update({
        "getTransactionCount": 4, "getTotalVolume": 8 * 10**18, "calculateAveragePrice": 2 * 10**18,
    })

    metrics = await users.get_market_metrics()

    assert metrics.transaction_count == 4
    assert metrics.average_price == 2 * 10**18


@pytest.mark.asyncio
async def test_fetch_lands_pages_and_caches(ledger, users):
    first = await users.fetch_lands(page=1, page_size=2)
    second = await users.fetch_lands(page=2, page_size=2)

    assert [land.id for land in first.items] == [1, 2]
    assert first.has_next
    assert [land.id for land in second.items] == [3]
    assert second.total == 3 and not second.has_next
    assert len(ledger["land_registry"].calls_of("getUserLands")) == 1


@pytest.mark.asyncio
async def test_fetch_lands_rejects_invalid_page(users):
    with pytest.raises(ValueError):
        await users.fetch_lands(page=0)


@pytest.mark.asyncio
async def test_add_land_sends_call_args(ledger, users):
    land = LandInput(area=1200, location="Nashik", price=10**18, coordinates="20.0,73.7", propertyPID=77, surveyNumber="SN-77", documentHash=DOC_HASH)

    receipt = await users.add_land(land)

    assert receipt.is_success()
    [(args, _)] = ledger["land_registry"].transactions_of("addLand")
    assert args == (1200, "Nashik", 10**18, "20.0,73.7", 77, "SN-77", "0x" + DOC_HASH.hex())


# ==================== Confirmed mutations ====================

@pytest.mark.asyncio
async def test_put_land_for_sale_is_confirmed(ledger, book, users):
    users.cache.set(CacheKeys.USER_LANDS, [])

    receipt = await users.put_land_for_sale(1)

    assert receipt.is_success()
    assert book.lands[1][FOR_SALE] is True
    assert users.cache.get(CacheKeys.USER_LANDS) is None


@pytest.mark.asyncio
async def test_lagging_reads_are_polled_until_visible(ledger, book, users):
    book.lag = 2

    await users.put_land_for_sale(3)

    assert book.lands[3][FOR_SALE] is True
    assert len(ledger["land_registry"].transactions_of("putLandForSale")) == 1
    assert len(ledger["land_registry"].calls_of("getLandDetails")) == 3


@pytest.mark.asyncio
async def test_unobservable_state_raises_convergence_error(ledger, book, users):
    ledger["land_registry"].effects.pop("takeLandOffSale")

    with pytest.raises(ConvergenceError) as exc_info:
        await users.take_land_off_sale(2)

    assert exc_info.value.attempts == 3
    assert len(ledger["land_registry"].transactions_of("takeLandOffSale")) == 1


@pytest.mark.asyncio
async def test_toggle_sale_flips_current_flag(book, users):
    await users.toggle_sale(2)

    assert book.lands[2][FOR_SALE] is False


@pytest.mark.asyncio
async def test_remove_land_refused_while_listed(ledger, users):
    with pytest.raises(AuthorizationError):
        await users.remove_land(2)

    assert ledger["land_registry"].transactions_of("removeLand") == []


@pytest.mark.asyncio
async def test_remove_land_uses_its_gas_ceiling(ledger, book, users):
    await users.remove_land(1)

    [(args, params)] = ledger["land_registry"].transactions_of("removeLand")
    assert args == (1,)
    assert params["gas"] == 500_000
    assert 1 not in book.lands


@pytest.mark.asyncio
async def test_update_land_price(book, users):
    await users.update_land_price(3, 7 * 10**18)

    assert book.lands[3][PRICE] == 7 * 10**18
    with pytest.raises(ValueError):
        await users.update_land_price(3, 0)


# ==================== Registration ====================

@pytest.mark.asyncio
async def test_guest_registration_refreshes_role(ledger, session, book):
    ledger.set_identity(USER_ADDRESS)

    def register(name, age, city, aadhar, pan, document_hash, email, tx):
        ledger.set_identity(USER_ADDRESS, name=name, registered=True)

    ledger["user_registry"].effects["registerUser"] = register
    await session.connect()
    assert session.role is Role.GUEST

    users = UserService(session)
    await users.register_user(UserProfile(name="Asha", age=30, city="Pune", documentHash=DOC_HASH))

    assert session.role is Role.USER
    await session.logout()


@pytest.mark.asyncio
async def test_rejected_user_inside_cooldown_cannot_register(ledger, session, book):
    ledger.set_identity(USER_ADDRESS, name="Asha", registered=True, rejected=True, remarks="Blurry", cooldown=600)
    await session.connect()
    users = UserService(session)

    with pytest.raises(AuthorizationError) as exc_info:
        await users.register_user(UserProfile(name="Asha"))

    assert exc_info.value.details["cooldown_seconds"] == 600
    assert ledger["user_registry"].transactions_of("registerUser") == []
    await session.logout()


# ==================== Purchase requests and market ====================

@pytest.fixture
def requests_view(ledger):
    registry = ledger["transaction_registry"]
    registry.views.update({
        "getPurchaseRequest": lambda request_id: request_tuple(request_id, 4, USER_ADDRESS, OTHER_ADDRESS, price=3 * 10**18, status=1),
        "getUserPurchaseRequests": lambda account: [
            request_tuple(1, 4, USER_ADDRESS, OTHER_ADDRESS, price=3 * 10**18),
            request_tuple(2, 1, OTHER_ADDRESS, USER_ADDRESS, status=2),
        ],
    })
    return registry


@pytest.mark.asyncio
async def test_fetch_transactions_attaches_lands(requests_view, users):
    requests = await users.fetch_transactions()

    assert [request.request_id for request in requests] == [1, 2]
    assert requests[0].land.owner == OTHER_ADDRESS
    assert requests[1].status is RequestStatus.REJECTED
    assert len(users.cache.get(CacheKeys.USER_TRANSACTIONS)) == 2


@pytest.mark.asyncio
async def test_make_payment_checks_price_and_uses_payable_gas(requests_view, users):
    with pytest.raises(ValueError):
        await users.make_payment(1, 10**18)
    assert requests_view.transactions_of("makePayment") == []

    await users.make_payment(1, 3 * 10**18)

    [(args, params)] = requests_view.transactions_of("makePayment")
    assert args == (1,)
    assert params["value"] == 3 * 10**18
    assert params["gas"] == 800_000


@pytest.mark.asyncio
async def test_process_and_cancel_purchase_request(requests_view, users):
    await users.process_purchase_request(1, accept=True)
    await users.cancel_purchase_request(1)

    assert requests_view.transactions_of("processPurchaseRequest")[0][0] == (1, True)
    assert requests_view.transactions_of("cancelPurchaseRequest")[0][0] == (1,)


@pytest.mark.asyncio
async def test_market_excludes_own_lands_and_unbounds_max_price(ledger, book, users):
    ledger["land_registry"].views["getLandsForSale"] = lambda low, high, location: [
        tuple(land) for land in book.lands.values() if land[FOR_SALE]
    ]

    market = await users.get_lands_for_sale(MarketFilters(min_price=1, location="Pune"))

    assert [land.id for land in market] == [4]
    assert ledger["land_registry"].calls_of("getLandsForSale") == [(1, UINT256_MAX, "Pune")]


@pytest.mark.asyncio
async def test_create_purchase_request_publishes_local_notification(users, bus):
    received = []

    async def handler(notification):
        received.append(notification)

    bus.subscribe("contract:PurchaseRequestCreated", handler)
    await users.create_purchase_request(4)

    assert received[0].args == {"landId": 4, "buyer": USER_ADDRESS}


@pytest.mark.asyncio
async def test_withdraw_requires_funds(ledger, users):
    registry = ledger["transaction_registry"]
    registry.views["pendingWithdrawals"] = 0
    with pytest.raises(ValueError):
        await users.withdraw()

    registry.views["pendingWithdrawals"] = 10**18
    await users.withdraw()
    assert len(registry.transactions_of("withdraw")) == 1


@pytest.mark.asyncio
async def test_raise_dispute_requires_description(ledger, users):
    with pytest.raises(ValueError):
        await users.raise_dispute(1, "   ")

    await users.raise_dispute(1, " Boundary overlap ")
    assert ledger["dispute_registry"].transactions_of("raiseDispute")[0][0] == (1, "Boundary overlap")


@pytest.mark.asyncio
async def test_watch_invalidates_caches(users, bus):
    users.cache.set(CacheKeys.USER_LANDS, [1])
    users.cache.set(CacheKeys.USER_TRANSACTIONS, [1])
    unwatch = users.watch()

    await bus.publish(LocalNotification(name="contract:LandUpdated", args={"landId": 1}))
    assert users.cache.get(CacheKeys.USER_LANDS) is None
    assert users.cache.get(CacheKeys.USER_TRANSACTIONS) == [1]

    unwatch()
    users.cache.set(CacheKeys.USER_LANDS, [1])
    await bus.publish(LocalNotification(name="contract:LandUpdated", args={"landId": 1}))
    assert users.cache.get(CacheKeys.USER_LANDS) == [1]


# ==================== Inspector ====================

@pytest.mark.asyncio
async def test_non_inspector_is_refused(ledger, users, session):
    inspector = InspectorService(session)
    ledger.set_identity(OTHER_ADDRESS, name="Ravi", registered=True)

    with pytest.raises(AuthorizationError):
        await inspector.verify_user(OTHER_ADDRESS)

    assert ledger["user_registry"].transactions_of("verifyUser") == []
    assert await inspector.is_inspector_ready() is False


@pytest.mark.asyncio
async def test_verify_user_is_confirmed(ledger, inspector):
    ledger.set_identity(OTHER_ADDRESS, name="Ravi", registered=True)
    ledger["user_registry"].effects["verifyUser"] = lambda account, tx: ledger.identities[account].update(verified=True)

    receipt = await inspector.verify_user(OTHER_ADDRESS.lower())

    assert receipt.is_success()
    assert ledger.identities[OTHER_ADDRESS]["verified"] is True
    assert await inspector.is_inspector_ready() is True


@pytest.mark.asyncio
async def test_reject_user_validations_and_gas(ledger, inspector):
    registry = ledger["user_registry"]
    ledger.set_identity(OTHER_ADDRESS, name="Ravi", registered=True)
    registry.effects["rejectUser"] = lambda account, reason, tx: ledger.identities[account].update(
        rejected=True, remarks=reason,
    )

    with pytest.raises(ValueError):
        await inspector.reject_user(OTHER_ADDRESS, "  ")

    await inspector.reject_user(OTHER_ADDRESS, "Documents unreadable")

    [(args, params)] = registry.transactions_of("rejectUser")
    assert args == (OTHER_ADDRESS, "Documents unreadable")
    assert params["gas"] == 750_000
    with pytest.raises(ValueError):
        await inspector.reject_user(OTHER_ADDRESS, "Again")


@pytest.mark.asyncio
async def test_user_documents(ledger, inspector):
    ledger["user_registry"].views["getUserDocuments"] = lambda account: ("1234", "ABCDE", DOC_HASH)

    documents = await inspector.get_user_documents(OTHER_ADDRESS)

    assert documents.pan_number == "ABCDE"
    assert documents.document_hash == "0x" + DOC_HASH.hex()


@pytest.mark.asyncio
async def test_land_verification(book, inspector):
    book.add(5, is_verified=False)
    book.add(6, is_verified=False)

    pending = await inspector.get_pending_lands()
    assert [land.id for land in pending] == [5, 6]

    with pytest.raises(ValueError):
        await inspector.verify_land(6, approved=False)

    await inspector.verify_land(5, approved=True)
    await inspector.verify_land(6, approved=False, reason="Survey mismatch")

    assert book.lands[5][VERIFIED] is True
    assert book.lands[6][REMARK] == "Survey mismatch"


@pytest.mark.asyncio
async def test_resolve_dispute_is_confirmed(ledger, inspector):
    registry = ledger["dispute_registry"]
    disputes = {9: [9, 1, OTHER_ADDRESS, "Boundary", False, "", 1_700_000_000]}
    registry.views["getLandDisputes"] = lambda land_id, offset, limit: [tuple(d) for d in disputes.values()]

    def resolve(land_id, dispute_id, resolution, tx):
        disputes[dispute_id][4] = True
        disputes[dispute_id][5] = resolution

    registry.effects["resolveDispute"] = resolve

    await inspector.resolve_dispute(1, 9, "Fence moved")

    [dispute] = await inspector.get_land_disputes(1)
    assert dispute.resolved and dispute.resolution == "Fence moved"


@pytest.mark.asyncio
async def test_dashboard_counters_and_watch(ledger, book, inspector, bus):
    ledger["user_registry"].views["getPendingUsers"] = [OTHER_ADDRESS]
    ledger["dispute_registry"].views["getOpenDisputes"] = 2
    book.add(5, is_verified=False)
    updates = []
    unwatch = inspector.watch(updates.append)

    dashboard = await inspector.update_dashboard()
    await bus.publish(LocalNotification(name="contract:DisputeOpened", args={"disputeId": 3}))
    unwatch()

    assert (dashboard.pending_users, dashboard.pending_lands, dashboard.open_disputes, dashboard.total_lands) == (1, 1, 2, 5)
    assert updates == [dashboard]
