"""
Identity and authorization models.

IdentityStatus is assembled per address by the role resolver from several
registry flags; it is never stored on-chain as a single record.
"""

from enum import Enum
from typing import Optional

from pydantic import Field, field_validator
from web3 import Web3

from .bases import CanonicalModel


class Role(str, Enum):
    """
    Authorization roles, one of which is effective for any identity.

    Precedence (highest first): REJECTED > ADMIN > INSPECTOR >
    VERIFIED_USER > USER > GUEST.
    """
    ADMIN = "ADMIN"
    INSPECTOR = "INSPECTOR"
    VERIFIED_USER = "VERIFIED_USER"
    USER = "USER"
    REJECTED = "REJECTED"
    GUEST = "GUEST"


class RouteId(str, Enum):
    """Canonical client locations. The value is the route path."""
    HOME = "/"
    REGISTER = "/register"
    DASHBOARD = "/dashboard"
    PROFILE = "/profile"
    PENDING = "/pending-verification"

    MY_LANDS = "/lands/my-lands"
    LAND_MARKET = "/lands/market"
    LAND_DETAILS = "/lands/:id"
    ADD_LAND = "/lands/add"

    LAND_REQUESTS = "/transactions/requests"
    TRANSACTION_HISTORY = "/transactions/history"
    WITHDRAWALS = "/transactions/withdrawals"

    INSPECTOR = "/inspector"
    INSPECTOR_VERIFY_USERS = "/inspector/verify-users"
    INSPECTOR_VERIFY_LANDS = "/inspector/verify-lands"
    INSPECTOR_RESOLVE_DISPUTES = "/inspector/resolve-disputes"

    ADMIN = "/admin"
    ADMIN_USERS = "/admin/users"
    ADMIN_REPORTS = "/admin/reports"

    DISPUTES = "/disputes"
    RAISE_DISPUTE = "/disputes/raise"


class IdentityStatus(CanonicalModel):
    """
    Authorization-relevant status of one address.

    The model accepts any flag combination; the resolver guarantees that
    ``rejected`` and ``verified`` are never both set, and role functions
    stay total even when they are.

    Attributes:
        address: Checksummed address (primary key)
        name: Registered display name ("" when unregistered)
        registered: Registration accepted and not rejected
        verified: Verified by an inspector and not rejected
        rejected: Registration rejected by an inspector
        is_admin: Holds ADMIN_ROLE
        is_inspector: Holds INSPECTOR_ROLE
        rejection_reason: Inspector remarks; empty unless rejected
        cooldown_seconds: Seconds until a rejected user may re-register
    """

    address: str = Field(..., description="Checksummed identity address")
    name: str = Field(default="", description="Registered display name")
    registered: bool = False
    verified: bool = False
    rejected: bool = False
    is_admin: bool = False
    is_inspector: bool = False
    rejection_reason: str = ""
    cooldown_seconds: int = Field(default=0, ge=0)

    @field_validator("address")
    @classmethod
    def _checksum_address(cls, value: str) -> str:
        return Web3.to_checksum_address(value)

    @property
    def is_system(self) -> bool:
        """Admin and inspector identities bypass ordinary registration gating."""
        return self.is_admin or self.is_inspector

    @classmethod
    def unregistered(cls, address: str) -> "IdentityStatus":
        return cls(address=address)

    @classmethod
    def system(
        cls,
        address: str,
        *,
        is_admin: bool,
        is_inspector: bool,
        name: Optional[str] = None,
    ) -> "IdentityStatus":
        """Synthetic status for a privileged identity: registered and verified."""
        return cls(
            address=address,
            name=name or "System User",
            registered=True,
            verified=True,
            rejected=False,
            is_admin=is_admin,
            is_inspector=is_inspector,
        )
