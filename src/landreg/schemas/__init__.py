from .bases import (
    CanonicalModel,
    TransactionStatus,
    TransactionReceipt,
    CallOptions,
    ConnectionStatus,
)
from .identity import Role, RouteId, IdentityStatus
from .registry import (
    RequestStatus,
    LandRecord,
    LandMetadata,
    LandPage,
    LandInput,
    MarketFilters,
    PurchaseRequest,
    UserStats,
    MarketMetrics,
    UserProfile,
    UserDocuments,
    Dispute,
    InspectorDashboard,
)

__all__ = [
    "CanonicalModel",
    "TransactionStatus",
    "TransactionReceipt",
    "CallOptions",
    "ConnectionStatus",
    "Role",
    "RouteId",
    "IdentityStatus",
    "RequestStatus",
    "LandRecord",
    "LandMetadata",
    "LandPage",
    "LandInput",
    "MarketFilters",
    "PurchaseRequest",
    "UserStats",
    "MarketMetrics",
    "UserProfile",
    "UserDocuments",
    "Dispute",
    "InspectorDashboard",
]
