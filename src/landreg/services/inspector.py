"""
Inspector operations: user and land verification, dispute resolution and the
inspector dashboard counters.

Every operation except the readiness check verifies ``INSPECTOR_ROLE`` on the
user registry first and raises ``AuthorizationError`` without it.
"""

import asyncio
import logging
from typing import Callable, List, Optional

from web3 import Web3

from .bases import RegistryService
from ..contracts.constants import (
    DISPUTE_REGISTRY,
    INSPECTOR_ROLE,
    LAND_REGISTRY,
    REJECT_USER_GAS_LIMIT,
    USER_REGISTRY,
)
from ..engine.events import LocalNotification
from ..engine.exceptions import AuthorizationError, LandRegistryError
from ..schemas.bases import TransactionReceipt
from ..schemas.registry import InspectorDashboard, LandRecord, UserDocuments

logger = logging.getLogger(__name__)

DASHBOARD_EVENTS = (
    "UserRegistered",
    "UserVerified",
    "UserRejected",
    "LandVerified",
    "DisputeOpened",
    "DisputeClosed",
)


class InspectorService(RegistryService):
    """
    Operations of an inspector identity.

    Example:
        inspector = InspectorService(session)
        for address in await inspector.get_pending_users():
            await inspector.verify_user(address)
    """

    async def _require_inspector(self) -> None:
        is_inspector = await self._view(USER_REGISTRY, "hasRole", INSPECTOR_ROLE, self.address)
        if not is_inspector:
            raise AuthorizationError(
                "Not authorized as inspector",
                details={"address": self.address},
            )

    async def is_inspector_ready(self) -> bool:
        """True when the connected identity currently holds INSPECTOR_ROLE."""
        status = self.session.status
        if status is not None and not status.is_inspector:
            return False
        try:
            await self._require_inspector()
        except LandRegistryError as exc:
            logger.warning("Inspector readiness check failed: %s", exc)
            return False
        return True

    # ==================== Users ====================

    async def get_pending_users(self) -> List[str]:
        await self._require_inspector()
        return list(await self._view(USER_REGISTRY, "getPendingUsers"))

    async def get_user_documents(self, user_address: str) -> UserDocuments:
        await self._require_inspector()
        raw = await self._view(USER_REGISTRY, "getUserDocuments", Web3.to_checksum_address(user_address))
        return UserDocuments.model_validate(raw)

    async def verify_user(self, user_address: str) -> TransactionReceipt:
        """
        Verify a registered user.

        Raises:
            AuthorizationError: If the caller is not an inspector.
            ConvergenceError: If the user never reads back as verified.
        """
        await self._require_inspector()
        user_address = Web3.to_checksum_address(user_address)

        async def verify() -> bool:
            status = await self._view(USER_REGISTRY, "getVerificationStatus", user_address)
            return bool(status["isVerified"])

        receipt = await self._confirm(
            lambda: self._transact(USER_REGISTRY, "verifyUser", [user_address]),
            verify,
            f"user {user_address} verified",
        )
        logger.info("Verified user %s", user_address)
        return receipt

    async def reject_user(self, user_address: str, reason: str) -> TransactionReceipt:
        """
        Reject a registered user with a reason.

        Raises:
            ValueError: If the reason is empty or the user is already rejected.
            AuthorizationError: If the caller is not an inspector.
            ConvergenceError: If the rejection remark never reads back.
        """
        reason = (reason or "").strip()
        if not reason:
            raise ValueError("Rejection reason is required")

        await self._require_inspector()
        user_address = Web3.to_checksum_address(user_address)
        if await self._view(USER_REGISTRY, "isUserRejected", user_address):
            raise ValueError(f"User {user_address} already rejected")

        async def verify() -> bool:
            status = await self._view(USER_REGISTRY, "getVerificationStatus", user_address)
            return bool(status["remarks"])

        receipt = await self._confirm(
            lambda: self._transact(
                USER_REGISTRY, "rejectUser", [user_address, reason], gas_limit=REJECT_USER_GAS_LIMIT
            ),
            verify,
            f"user {user_address} rejection remark stored",
        )
        logger.info("Rejected user %s", user_address)
        return receipt

    # ==================== Lands ====================

    async def get_pending_lands(self) -> List[LandRecord]:
        await self._require_inspector()
        land_ids = await self._view(LAND_REGISTRY, "getPendingVerifications")
        if not land_ids:
            return []
        return list(await asyncio.gather(*(self.get_land_details(land_id) for land_id in land_ids)))

    async def get_land_verification_remark(self, land_id: int) -> str:
        return await self._view(LAND_REGISTRY, "getLandVerificationRemark", land_id)

    async def verify_land(self, land_id: int, approved: bool, reason: str = "") -> TransactionReceipt:
        """
        Approve or reject a land.

        Approval is confirmed by ``isVerified``; rejection by a non-empty
        verification remark.

        Raises:
            ValueError: If a rejection carries no reason.
            AuthorizationError: If the caller is not an inspector.
        """
        reason = (reason or "").strip()
        if not approved and not reason:
            raise ValueError("Rejection reason is required")

        await self._require_inspector()

        async def verify() -> bool:
            land = await self.get_land_details(land_id)
            if approved:
                return land.is_verified
            return bool(land.verification_remark)

        receipt = await self._confirm(
            lambda: self._transact(LAND_REGISTRY, "verifyLand", [land_id, approved, reason]),
            verify,
            f"land {land_id} {'approved' if approved else 'rejected'}",
        )
        logger.info("Land %s %s", land_id, "approved" if approved else "rejected")
        return receipt

    # ==================== Disputes ====================

    async def get_open_disputes(self) -> int:
        return await self._view(DISPUTE_REGISTRY, "getOpenDisputes")

    async def resolve_dispute(self, land_id: int, dispute_id: int, resolution: str) -> TransactionReceipt:
        resolution = (resolution or "").strip()
        if not resolution:
            raise ValueError("Resolution text is required")

        await self._require_inspector()

        async def verify() -> bool:
            disputes = await self.get_land_disputes(land_id)
            return any(d.dispute_id == dispute_id and d.resolved for d in disputes)

        return await self._confirm(
            lambda: self._transact(DISPUTE_REGISTRY, "resolveDispute", [land_id, dispute_id, resolution]),
            verify,
            f"dispute {dispute_id} resolved",
        )

    # ==================== Dashboard ====================

    async def update_dashboard(self) -> InspectorDashboard:
        await self._require_inspector()
        pending_users, pending_lands, open_disputes, total_lands = await asyncio.gather(
            self._view(USER_REGISTRY, "getPendingUsers"),
            self._view(LAND_REGISTRY, "getPendingVerifications"),
            self._view(DISPUTE_REGISTRY, "getOpenDisputes"),
            self._view(LAND_REGISTRY, "getTotalLands"),
        )
        return InspectorDashboard(
            pending_users=len(pending_users or []),
            pending_lands=len(pending_lands or []),
            open_disputes=int(open_disputes or 0),
            total_lands=int(total_lands or 0),
        )

    def watch(self, on_update: Optional[Callable[[InspectorDashboard], object]] = None) -> Callable[[], None]:
        """
        Recompute the dashboard whenever an inspector-relevant event arrives.

        Args:
            on_update: Optional callback receiving the fresh dashboard
        """

        async def refresh(notification: LocalNotification) -> None:
            dashboard = await self.update_dashboard()
            if on_update is not None:
                on_update(dashboard)

        return self._watch(DASHBOARD_EVENTS, refresh)
