from .exceptions import (
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
from .events import LocalNotification, NotificationBus, SESSION_STATUS_CHANGED, contract_notification_name
from .bridge import EventBridge, DEFAULT_EVENT_ALLOW_LIST
from .retries import ConsistencyRetrier, mutate_and_confirm

__all__ = [
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
    "LocalNotification",
    "NotificationBus",
    "SESSION_STATUS_CHANGED",
    "contract_notification_name",
    "EventBridge",
    "DEFAULT_EVENT_ALLOW_LIST",
    "ConsistencyRetrier",
    "mutate_and_confirm",
]
