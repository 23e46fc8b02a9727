"""
Exception and Error Definitions Module

Defines the exception hierarchy for registry connection, call dispatch,
authorization and read-after-write confirmation. All exceptions inherit from
LandRegistryError for unified exception handling.

Exception Hierarchy:
    LandRegistryError (root)
    ├── ConfigurationError
    │   └── SignerMismatchError
    ├── NetworkMismatchError
    ├── DeploymentError
    ├── CallError
    │   └── TransactionFailedError
    ├── ConvergenceError
    ├── AuthorizationError
    └── StorageQuotaError
"""

from typing import Any, Dict, Optional, Sequence


class LandRegistryError(Exception):
    """
    Root exception class for all project-specific exceptions.

    Carries a human-readable message plus a ``details`` mapping. The call
    dispatcher stamps ``registry``, ``method`` and ``args`` into the details
    through :meth:`annotate` before re-raising, so every failure that crossed
    the dispatcher says which call produced it.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = dict(details or {})

    def annotate(self, registry: str, method: str, args: Sequence[Any]) -> "LandRegistryError":
        """Attach call context; existing annotations are kept."""
        self.details.setdefault("registry", registry)
        self.details.setdefault("method", method)
        self.details.setdefault("args", list(args))
        return self

    @property
    def registry(self) -> Optional[str]:
        return self.details.get("registry")

    @property
    def method(self) -> Optional[str]:
        return self.details.get("method")

    @property
    def args_context(self) -> Optional[list]:
        return self.details.get("args")

    def __str__(self) -> str:
        if self.registry and self.method:
            return f"{self.registry}.{self.method} failed: {self.message}"
        return self.message


class ConfigurationError(LandRegistryError):
    """
    Raised when a required dependency or setting is missing or invalid.

    This includes scenarios such as:
    - No network handle or signer supplied to the connection manager
    - Dispatching a call before any identity was connected
    - Malformed contract address in configuration

    Fatal: aborts initialization.
    """
    pass


class SignerMismatchError(ConfigurationError):
    """
    Raised when the identity provider returns a signer whose address does not
    match the address it reported as active.
    """

    def __init__(self, expected: str, actual: str):
        super().__init__(
            f"Signer address mismatch: expected {expected}, got {actual}",
            details={"expected": expected, "actual": actual},
        )
        self.expected = expected
        self.actual = actual


class NetworkMismatchError(LandRegistryError):
    """
    Raised when the connected network is not the supported chain.

    Surfaced to the user as an instruction to switch networks.

    Attributes:
        expected: The single supported chain id
        actual: Chain id reported by the network handle
    """

    def __init__(self, expected: int, actual: int):
        super().__init__(
            f"Connected to chain {actual}; switch your wallet to chain {expected}",
            details={"expected_chain_id": expected, "actual_chain_id": actual},
        )
        self.expected = expected
        self.actual = actual


class DeploymentError(LandRegistryError):
    """
    Raised when a required registry contract has no code at its address.

    Attributes:
        registry_name: Name of the missing registry
        address: Address that was checked
    """

    def __init__(self, registry_name: str, address: str):
        super().__init__(
            f"Contract {registry_name} not deployed at {address}",
            details={"contract": registry_name, "address": address},
        )
        self.registry_name = registry_name
        self.address = address


class CallError(LandRegistryError):
    """
    Raised when dispatching a view or transaction call fails for any reason
    not covered by a more specific error.

    This includes scenarios such as:
    - Unknown registry or method name
    - RPC timeout or connectivity failure
    - Output decoding failure
    """
    pass


class TransactionFailedError(CallError):
    """
    Raised when a mutation reverts or its receipt reports failure.

    Surfaced per call; never retried automatically.

    Attributes:
        tx_hash: Transaction hash if the transaction was broadcast
        receipt: Finalized receipt when one was obtained
    """

    def __init__(
        self,
        message: str,
        tx_hash: Optional[str] = None,
        receipt: Optional[Any] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.tx_hash = tx_hash
        self.receipt = receipt
        if tx_hash:
            self.details.setdefault("tx_hash", tx_hash)


class ConvergenceError(LandRegistryError):
    """
    Raised when a post-mutation condition was never observed within the
    verification budget.

    A definite failure: the mutation may have landed, but the expected state
    was not readable, so callers must not report success.

    Attributes:
        expectation: Description of the post-condition that was awaited
        attempts: Number of verification polls performed
    """

    def __init__(self, expectation: str, attempts: int):
        super().__init__(
            f"State not updated: expected {expectation} after {attempts} checks",
            details={"expectation": expectation, "attempts": attempts},
        )
        self.expectation = expectation
        self.attempts = attempts


class AuthorizationError(LandRegistryError):
    """
    Raised when the active identity lacks the role an operation requires,
    or when an operation is refused by a local precondition (e.g. a rejected
    user still inside the re-registration cooldown).
    """
    pass


class StorageQuotaError(LandRegistryError):
    """
    Raised by session storage when a write exceeds its quota.

    The session cache catches it and degrades to a no-op.
    """
    pass
