"""
Role resolution and access decisions.

``resolve_status`` is the only function here that touches the network: it
fetches every authorization flag of an address concurrently and collapses
them into an ``IdentityStatus``. Everything else is a pure function of that
status, so route guards and services share one precedence order:

    REJECTED > ADMIN > INSPECTOR > VERIFIED_USER > USER > GUEST
"""

import asyncio
import logging
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from web3 import Web3

from ..contracts.constants import ADMIN_ROLE, INSPECTOR_ROLE, USER_REGISTRY
from ..engine.exceptions import CallError, LandRegistryError
from ..schemas.identity import IdentityStatus, Role, RouteId

logger = logging.getLogger(__name__)

# Rank used by has_access; REJECTED is handled separately and has no rank.
ROLE_RANK: Dict[Role, int] = {
    Role.ADMIN: 4,
    Role.INSPECTOR: 3,
    Role.VERIFIED_USER: 2,
    Role.USER: 1,
    Role.GUEST: 0,
}

_LANDING_ROUTES: Dict[Role, RouteId] = {
    Role.REJECTED: RouteId.PENDING,
    Role.ADMIN: RouteId.ADMIN,
    Role.INSPECTOR: RouteId.INSPECTOR,
    Role.VERIFIED_USER: RouteId.DASHBOARD,
    Role.USER: RouteId.PENDING,
    Role.GUEST: RouteId.REGISTER,
}

_ROLE_NAMES: Dict[Role, str] = {
    Role.REJECTED: "Rejected User",
    Role.ADMIN: "Admin",
    Role.INSPECTOR: "Inspector",
    Role.VERIFIED_USER: "Verified User",
    Role.USER: "Pending User",
    Role.GUEST: "Guest",
}

_ROLE_EVENTS: Dict[Role, Tuple[str, ...]] = {
    Role.INSPECTOR: ("UserVerified", "UserRejected", "LandVerified", "DisputeClosed"),
    Role.ADMIN: ("RoleGranted", "RoleRevoked"),
    Role.VERIFIED_USER: ("LandAdded", "LandUpdated"),
    Role.USER: ("UserRegistered", "UserRejected"),
}


# ==================== Resolution ====================

async def resolve_status(bindings: Mapping[str, Any], address: str) -> IdentityStatus:
    """
    Fetch and combine the authorization flags of ``address``.

    The six reads (``users``, both ``hasRole`` checks,
    ``getVerificationStatus``, ``isUserRejected``, ``getRejectionCooldown``)
    run concurrently. Admin and inspector identities short-circuit to a
    synthetic registered and verified status.

    Args:
        bindings: Binding set containing the user registry
        address: Identity address (any case)

    Returns:
        IdentityStatus: Resolved status; never partial.

    Raises:
        CallError: If any read fails; the error names the failing method.
    """
    address = Web3.to_checksum_address(address)
    registry = bindings.get(USER_REGISTRY)
    if registry is None:
        raise CallError(f"Binding set has no {USER_REGISTRY}")

    async def fetch(method: str, *args: Any) -> Any:
        try:
            return await registry.call(method, args)
        except LandRegistryError as exc:
            raise exc.annotate(USER_REGISTRY, method, args)
        except Exception as exc:
            raise CallError(str(exc) or type(exc).__name__).annotate(USER_REGISTRY, method, args) from exc

    user, is_inspector, is_admin, verification, is_rejected, cooldown = await asyncio.gather(
        fetch("users", address),
        fetch("hasRole", INSPECTOR_ROLE, address),
        fetch("hasRole", ADMIN_ROLE, address),
        fetch("getVerificationStatus", address),
        fetch("isUserRejected", address),
        fetch("getRejectionCooldown", address),
    )

    name = (user or {}).get("name", "") or ""

    if is_admin or is_inspector:
        logger.debug("Resolved %s as privileged (admin=%s, inspector=%s)", address, is_admin, is_inspector)
        return IdentityStatus.system(
            address,
            is_admin=bool(is_admin),
            is_inspector=bool(is_inspector),
            name=name or None,
        )

    rejected = bool(is_rejected)
    if not name and not rejected:
        logger.debug("Resolved %s as unregistered", address)
        return IdentityStatus.unregistered(address)

    status = IdentityStatus(
        address=address,
        name=name,
        registered=bool(verification["isRegistered"]) and not rejected,
        verified=bool(verification["isVerified"]) and not rejected,
        rejected=rejected,
        rejection_reason=verification["remarks"] if rejected else "",
        cooldown_seconds=int(cooldown or 0),
    )
    logger.debug("Resolved %s as %s", address, effective_role(status).value)
    return status


# ==================== Pure role functions ====================

def effective_role(status: Optional[IdentityStatus]) -> Role:
    """Collapse a status into one role by precedence."""
    if status is None:
        return Role.GUEST
    if status.rejected:
        return Role.REJECTED
    if status.is_admin:
        return Role.ADMIN
    if status.is_inspector:
        return Role.INSPECTOR
    if status.verified:
        return Role.VERIFIED_USER
    if status.registered:
        return Role.USER
    return Role.GUEST


def redirect_route(status: Optional[IdentityStatus]) -> RouteId:
    """Landing location of an identity; an unknown identity lands on HOME."""
    if status is None:
        return RouteId.HOME
    return _LANDING_ROUTES[effective_role(status)]


def _coerce_role(required: Union[Role, str]) -> Optional[Role]:
    try:
        return Role(required)
    except ValueError:
        return None


def has_access(status: Optional[IdentityStatus], required: Union[Role, str]) -> bool:
    """
    Decide whether ``status`` satisfies ``required``.

    - rejected identities only pass the plain ``USER`` requirement
    - admins pass every requirement
    - everyone else needs a rank equal to or above the requirement
    - unknown and ``REJECTED`` requirements are never satisfied
    - a missing status only passes ``GUEST``
    """
    role = _coerce_role(required)
    if role is None or role is Role.REJECTED:
        return False
    if status is None:
        return role is Role.GUEST
    if status.rejected:
        return role is Role.USER
    if status.is_admin:
        return True
    return ROLE_RANK[effective_role(status)] >= ROLE_RANK[role]


def guard_route(status: Optional[IdentityStatus], required: Union[Role, str]) -> Optional[RouteId]:
    """Return None when access is granted, else where to send the identity."""
    if has_access(status, required):
        return None
    return redirect_route(status)


def role_name(status: Optional[IdentityStatus]) -> str:
    return _ROLE_NAMES[effective_role(status)]


def role_events(role: Union[Role, str]) -> Tuple[str, ...]:
    """Contract event names whose notifications matter to ``role``."""
    coerced = _coerce_role(role)
    if coerced is None:
        return ()
    return _ROLE_EVENTS.get(coerced, ())
