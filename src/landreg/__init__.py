"""
landreg - asyncio client for a four-registry land registration ledger.

Binds the user, land, transaction and dispute registries to a signing
identity, resolves authorization roles, relays contract events to local
subscribers and confirms mutations with bounded read-after-write polling.
"""

from .auth import (
    AuthSession,
    SessionCache,
    InMemorySessionStorage,
    CacheKeys,
    resolve_status,
    effective_role,
    redirect_route,
    has_access,
    guard_route,
    role_name,
    role_events,
)
from .contracts import (
    CallDispatcher,
    ContractConnectionManager,
    IdentityConnection,
    IdentityProvider,
    PrivateKeyIdentityProvider,
    RegistrySettings,
    TransactionHandle,
)
from .engine import (
    EventBridge,
    NotificationBus,
    LocalNotification,
    ConsistencyRetrier,
    mutate_and_confirm,
    LandRegistryError,
    ConfigurationError,
    SignerMismatchError,
    NetworkMismatchError,
    DeploymentError,
    CallError,
    TransactionFailedError,
    ConvergenceError,
    AuthorizationError,
    StorageQuotaError,
)
from .schemas import IdentityStatus, Role, RouteId, CallOptions, TransactionReceipt
from .services import UserService, InspectorService

__version__ = "0.1.0"

__all__ = [
    "AuthSession",
    "SessionCache",
    "InMemorySessionStorage",
    "CacheKeys",
    "resolve_status",
    "effective_role",
    "redirect_route",
    "has_access",
    "guard_route",
    "role_name",
    "role_events",
    "CallDispatcher",
    "ContractConnectionManager",
    "IdentityConnection",
    "IdentityProvider",
    "PrivateKeyIdentityProvider",
    "RegistrySettings",
    "TransactionHandle",
    "EventBridge",
    "NotificationBus",
    "LocalNotification",
    "ConsistencyRetrier",
    "mutate_and_confirm",
    "LandRegistryError",
    "ConfigurationError",
    "SignerMismatchError",
    "NetworkMismatchError",
    "DeploymentError",
    "CallError",
    "TransactionFailedError",
    "ConvergenceError",
    "AuthorizationError",
    "StorageQuotaError",
    "IdentityStatus",
    "Role",
    "RouteId",
    "CallOptions",
    "TransactionReceipt",
    "UserService",
    "InspectorService",
]
