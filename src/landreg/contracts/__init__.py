from .abis import get_registry_abi, decode_output
from .bindings import ContractBinding, BindingSet
from .connections import ContractConnectionManager, PendingCall
from .constants import (
    RegistrySettings,
    REGISTRY_NAMES,
    USER_REGISTRY,
    LAND_REGISTRY,
    TRANSACTION_REGISTRY,
    DISPUTE_REGISTRY,
    DEFAULT_GAS_LIMIT,
    PAYABLE_GAS_LIMIT,
    ADMIN_ROLE,
    INSPECTOR_ROLE,
)
from .dispatcher import CallDispatcher, TransactionHandle
from .providers import IdentityProvider, IdentityConnection, PrivateKeyIdentityProvider, check_signer

__all__ = [
    "get_registry_abi",
    "decode_output",
    "ContractBinding",
    "BindingSet",
    "ContractConnectionManager",
    "PendingCall",
    "RegistrySettings",
    "REGISTRY_NAMES",
    "USER_REGISTRY",
    "LAND_REGISTRY",
    "TRANSACTION_REGISTRY",
    "DISPUTE_REGISTRY",
    "DEFAULT_GAS_LIMIT",
    "PAYABLE_GAS_LIMIT",
    "ADMIN_ROLE",
    "INSPECTOR_ROLE",
    "CallDispatcher",
    "TransactionHandle",
    "IdentityProvider",
    "IdentityConnection",
    "PrivateKeyIdentityProvider",
    "check_signer",
]
