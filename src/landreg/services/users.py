"""
User-facing registry operations: own lands, the land market, purchase
requests, payments, withdrawals, registration and disputes.

Mutations whose visible outcome depends on a flag flipping (sale listing,
removal, price update, registration) are confirmed by polling the registry
until the new state is readable.
"""

import asyncio
import logging
from typing import Callable, List, Optional

from .bases import RegistryService
from ..auth.cache import CacheKeys
from ..contracts.constants import (
    DISPUTE_REGISTRY,
    LAND_REGISTRY,
    REMOVE_LAND_GAS_LIMIT,
    TRANSACTION_REGISTRY,
    USER_REGISTRY,
)
from ..engine.events import LocalNotification
from ..engine.exceptions import AuthorizationError
from ..schemas.bases import TransactionReceipt
from ..schemas.registry import (
    LandInput,
    LandMetadata,
    LandPage,
    LandRecord,
    MarketFilters,
    MarketMetrics,
    PurchaseRequest,
    UserProfile,
    UserStats,
)

logger = logging.getLogger(__name__)

UINT256_MAX = 2**256 - 1

LAND_EVENTS = ("LandAdded", "LandUpdated", "LandRemoved", "LandVerified", "LandOwnershipTransferred")
TRANSACTION_EVENTS = (
    "PurchaseRequestCreated",
    "PurchaseRequestStatusChanged",
    "PurchaseRequestCancelled",
    "LandOwnershipTransferred",
)


class UserService(RegistryService):
    """
    Operations of a registered user.

    Example:
        users = UserService(session)
        page = await users.fetch_lands(page=1, page_size=10)
        await users.put_land_for_sale(page.items[0].id)
    """

    # ==================== Dashboard ====================

    async def fetch_user_stats(self) -> UserStats:
        land_ids, summary = await asyncio.gather(
            self._view(LAND_REGISTRY, "getUserLands", self.address),
            self._view(TRANSACTION_REGISTRY, "getUserTransactionSummary", self.address),
        )
        stats = UserStats(
            owned_lands=len(land_ids),
            total=summary["total"],
            pending=summary["pending"],
            incoming=summary["incoming"],
            outgoing=summary["outgoing"],
        )
        self.cache.set(CacheKeys.USER_DATA, stats)
        return stats

    async def get_market_metrics(self) -> MarketMetrics:
        count, volume, average = await asyncio.gather(
            self._view(TRANSACTION_REGISTRY, "getTransactionCount"),
            self._view(TRANSACTION_REGISTRY, "getTotalVolume"),
            self._view(TRANSACTION_REGISTRY, "calculateAveragePrice"),
        )
        return MarketMetrics(transaction_count=count, total_volume=volume, average_price=average)

    # ==================== Own lands ====================

    async def _load_own_lands(self, use_cache: bool) -> List[LandRecord]:
        if use_cache:
            cached = self.cache.get(CacheKeys.USER_LANDS)
            if cached is not None:
                return [LandRecord.model_validate(item) for item in cached]

        land_ids = await self._view(LAND_REGISTRY, "getUserLands", self.address)
        lands = list(await asyncio.gather(*(self.get_land_details(land_id) for land_id in land_ids)))
        self.cache.set(CacheKeys.USER_LANDS, [land.model_dump(mode="json") for land in lands])
        return lands

    async def fetch_lands(self, page: int = 1, page_size: int = 10, use_cache: bool = True) -> LandPage:
        """
        Return one page of the caller's lands.

        Args:
            page: 1-based page number
            page_size: Lands per page
            use_cache: Serve from the session cache when fresh
        """
        if page < 1 or page_size < 1:
            raise ValueError("page and page_size must be >= 1")
        lands = await self._load_own_lands(use_cache)
        start = (page - 1) * page_size
        return LandPage(
            items=lands[start:start + page_size],
            page=page,
            page_size=page_size,
            total=len(lands),
        )

    async def get_land_metadata(self, land_id: int) -> LandMetadata:
        raw = await self._view(LAND_REGISTRY, "getLandMetadata", land_id)
        return LandMetadata.model_validate(raw)

    async def add_land(self, land: LandInput) -> TransactionReceipt:
        receipt = await self._transact(LAND_REGISTRY, "addLand", land.to_call_args())
        self.cache.invalidate(CacheKeys.USER_LANDS)
        logger.info("Added land at %s", land.location)
        return receipt

    async def _set_sale_status(self, land_id: int, for_sale: bool) -> TransactionReceipt:
        method = "putLandForSale" if for_sale else "takeLandOffSale"

        async def verify() -> bool:
            land = await self.get_land_details(land_id)
            return land.is_for_sale is for_sale

        receipt = await self._confirm(
            lambda: self._transact(LAND_REGISTRY, method, [land_id]),
            verify,
            f"land {land_id} is_for_sale={for_sale}",
        )
        self.cache.invalidate(CacheKeys.USER_LANDS)
        return receipt

    async def put_land_for_sale(self, land_id: int) -> TransactionReceipt:
        return await self._set_sale_status(land_id, True)

    async def take_land_off_sale(self, land_id: int) -> TransactionReceipt:
        return await self._set_sale_status(land_id, False)

    async def toggle_sale(self, land_id: int) -> TransactionReceipt:
        land = await self.get_land_details(land_id)
        return await self._set_sale_status(land_id, not land.is_for_sale)

    async def remove_land(self, land_id: int) -> TransactionReceipt:
        """
        Remove a land the caller owns.

        Raises:
            AuthorizationError: If the land is currently listed for sale.
            ConvergenceError: If the land is still listed under the caller.
        """
        land = await self.get_land_details(land_id)
        if land.is_for_sale:
            raise AuthorizationError(
                "Cannot remove land while it is for sale",
                details={"land_id": land_id},
            )

        async def verify() -> bool:
            land_ids = await self._view(LAND_REGISTRY, "getUserLands", self.address)
            return land_id not in land_ids

        receipt = await self._confirm(
            lambda: self._transact(LAND_REGISTRY, "removeLand", [land_id], gas_limit=REMOVE_LAND_GAS_LIMIT),
            verify,
            f"land {land_id} removed",
        )
        self.cache.invalidate(CacheKeys.USER_LANDS)
        return receipt

    async def update_land_price(self, land_id: int, new_price: int) -> TransactionReceipt:
        if new_price <= 0:
            raise ValueError("new_price must be positive")

        async def verify() -> bool:
            land = await self.get_land_details(land_id)
            return land.price == new_price

        receipt = await self._confirm(
            lambda: self._transact(LAND_REGISTRY, "updateLandPrice", [land_id, new_price]),
            verify,
            f"land {land_id} price={new_price}",
        )
        self.cache.invalidate(CacheKeys.USER_LANDS)
        return receipt

    # ==================== Registration ====================

    async def register_user(self, profile: UserProfile) -> TransactionReceipt:
        """
        Register the connected identity.

        Rejected identities may re-register only once their cooldown has
        elapsed. The session status is refreshed after confirmation.

        Raises:
            AuthorizationError: If the rejection cooldown is still running.
        """
        status = await self.session.current_status(use_cache=False)
        if status is not None and status.rejected and status.cooldown_seconds > 0:
            raise AuthorizationError(
                f"Please wait {status.cooldown_seconds}s before registering again",
                details={"cooldown_seconds": status.cooldown_seconds},
            )

        async def verify() -> bool:
            verification, rejected = await asyncio.gather(
                self._view(USER_REGISTRY, "getVerificationStatus", self.address),
                self._view(USER_REGISTRY, "isUserRejected", self.address),
            )
            return bool(verification["isRegistered"]) and not rejected

        receipt = await self._confirm(
            lambda: self._transact(USER_REGISTRY, "registerUser", profile.to_call_args()),
            verify,
            f"{self.address} registered",
        )
        self.cache.invalidate(CacheKeys.USER_DATA)
        await self.session.refresh_status()
        return receipt

    # ==================== Purchase requests ====================

    async def fetch_transactions(self, with_lands: bool = True) -> List[PurchaseRequest]:
        raw = await self._view(TRANSACTION_REGISTRY, "getUserPurchaseRequests", self.address)
        requests = [PurchaseRequest.model_validate(item) for item in raw]
        if with_lands and requests:
            lands = await asyncio.gather(*(self.get_land_details(request.land_id) for request in requests))
            requests = [request.model_copy(update={"land": land}) for request, land in zip(requests, lands)]
        self.cache.set(CacheKeys.USER_TRANSACTIONS, [request.model_dump(mode="json") for request in requests])
        return requests

    async def get_purchase_request(self, request_id: int) -> PurchaseRequest:
        raw = await self._view(TRANSACTION_REGISTRY, "getPurchaseRequest", request_id)
        return PurchaseRequest.model_validate(raw)

    async def process_purchase_request(self, request_id: int, accept: bool) -> TransactionReceipt:
        await self.get_purchase_request(request_id)
        receipt = await self._transact(TRANSACTION_REGISTRY, "processPurchaseRequest", [request_id, accept])
        self.cache.invalidate(CacheKeys.USER_TRANSACTIONS)
        logger.info("Purchase request %s %s", request_id, "accepted" if accept else "rejected")
        return receipt

    async def cancel_purchase_request(self, request_id: int) -> TransactionReceipt:
        receipt = await self._transact(TRANSACTION_REGISTRY, "cancelPurchaseRequest", [request_id])
        self.cache.invalidate(CacheKeys.USER_TRANSACTIONS)
        return receipt

    async def make_payment(self, request_id: int, value: int) -> TransactionReceipt:
        """
        Pay for an accepted purchase request.

        Raises:
            ValueError: If ``value`` differs from the current land price.
        """
        request = await self.get_purchase_request(request_id)
        land = await self.get_land_details(request.land_id)
        if land.price != value:
            raise ValueError(f"Payment amount {value} does not match land price {land.price}")

        receipt = await self._transact(TRANSACTION_REGISTRY, "makePayment", [request_id], value=value)
        self.cache.invalidate(CacheKeys.USER_TRANSACTIONS)
        self.cache.invalidate(CacheKeys.USER_LANDS)
        return receipt

    # ==================== Market ====================

    async def get_lands_for_sale(self, filters: Optional[MarketFilters] = None) -> List[LandRecord]:
        """Listed lands matching ``filters``, excluding the caller's own."""
        filters = filters or MarketFilters()
        max_price = filters.max_price or UINT256_MAX
        raw = await self._view(
            LAND_REGISTRY, "getLandsForSale", filters.min_price, max_price, filters.location
        )
        own = self.address.lower()
        return [
            land for land in (LandRecord.model_validate(item) for item in raw)
            if land.owner.lower() != own
        ]

    async def create_purchase_request(self, land_id: int) -> TransactionReceipt:
        receipt = await self._transact(TRANSACTION_REGISTRY, "createPurchaseRequest", [land_id])
        self.cache.invalidate(CacheKeys.USER_TRANSACTIONS)
        await self._publish_local("PurchaseRequestCreated", {"landId": land_id, "buyer": self.address})
        return receipt

    # ==================== Withdrawals ====================

    async def pending_withdrawal(self) -> int:
        return await self._view(TRANSACTION_REGISTRY, "pendingWithdrawals", self.address)

    async def withdraw(self) -> TransactionReceipt:
        amount = await self.pending_withdrawal()
        if not amount:
            raise ValueError("No funds available for withdrawal")
        receipt = await self._transact(TRANSACTION_REGISTRY, "withdraw")
        logger.info("Withdrew %s wei for %s", amount, self.address)
        return receipt

    # ==================== Disputes ====================

    async def raise_dispute(self, land_id: int, description: str) -> TransactionReceipt:
        description = description.strip()
        if not description:
            raise ValueError("Dispute description is required")
        receipt = await self._transact(DISPUTE_REGISTRY, "raiseDispute", [land_id, description])
        self.cache.invalidate(CacheKeys.USER_DISPUTES)
        return receipt

    # ==================== Notifications ====================

    def watch(self) -> Callable[[], None]:
        """Drop cached lands and transactions whenever related events arrive."""

        async def on_land_event(notification: LocalNotification) -> None:
            self.cache.invalidate(CacheKeys.USER_LANDS)

        async def on_transaction_event(notification: LocalNotification) -> None:
            self.cache.invalidate(CacheKeys.USER_TRANSACTIONS)
            self.cache.invalidate(CacheKeys.USER_DATA)

        unwatch_lands = self._watch(LAND_EVENTS, on_land_event)
        unwatch_transactions = self._watch(TRANSACTION_EVENTS, on_transaction_event)

        def unwatch() -> None:
            unwatch_lands()
            unwatch_transactions()

        return unwatch
