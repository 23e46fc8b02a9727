from .roles import (
    resolve_status,
    effective_role,
    redirect_route,
    has_access,
    guard_route,
    role_name,
    role_events,
    ROLE_RANK,
)
from .cache import SessionCache, SessionStorage, InMemorySessionStorage, CacheKeys
from .session import AuthSession, STATUS_REFRESH_EVENTS

__all__ = [
    "resolve_status",
    "effective_role",
    "redirect_route",
    "has_access",
    "guard_route",
    "role_name",
    "role_events",
    "ROLE_RANK",
    "SessionCache",
    "SessionStorage",
    "InMemorySessionStorage",
    "CacheKeys",
    "AuthSession",
    "STATUS_REFRESH_EVENTS",
]
