"""
Shared schema bases for the land registry client.

Every model of ``landreg.schemas`` derives from ``CanonicalModel``. The
transaction-level models here are shared by the call dispatcher and the
domain services.

Models:
    - CanonicalModel: deterministic JSON form, used as the cache payload
    - TransactionStatus: outcome of a submitted mutation
    - TransactionReceipt: normalized web3 receipt
    - CallOptions: per-call dispatch options (view flag, gas, value, waiting)
    - ConnectionStatus: diagnostic snapshot of the connection manager
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class CanonicalModel(BaseModel):
    """
    Base model with a stable JSON encoding.

    Keys are sorted and separators compact, so equal models always encode to
    the same string. Fields may be populated by name or by alias.

    Example:
        class Parcel(CanonicalModel):
            land_id: int
            location: str

        Parcel(land_id=7, location="Pune").to_canonical_json()
        # '{"land_id":7,"location":"Pune"}'
    """

    model_config = ConfigDict(populate_by_name=True)

    def to_canonical_json(self) -> str:
        """Sorted-key, whitespace-free JSON of the model."""
        return json.dumps(self.model_dump(mode="json"), separators=(",", ":"), sort_keys=True, ensure_ascii=False)

    def to_dict(self) -> Dict[str, Any]:
        """Python-mode dump (datetimes and enums kept as objects)."""
        return self.model_dump()


class TransactionStatus(str, Enum):
    """
    Outcome of a submitted mutation.

    Attributes:
        SUCCESS: Receipt status flag is 1
        FAILED: Reverted, or receipt status flag is 0
        PENDING: Submitted, receipt not yet available
    """
    SUCCESS = "success"
    FAILED = "failed"
    PENDING = "pending"


class TransactionReceipt(CanonicalModel):
    """
    Finalized receipt of a mutation.

    Built from the raw web3 receipt by :meth:`from_web3`. Returned by the
    dispatcher when ``wait_for_confirmation`` is set and by
    ``TransactionHandle.wait()``.

    Attributes:
        tx_hash: 0x-prefixed transaction hash
        status: SUCCESS when the receipt status flag is 1, else FAILED
        block_number: Block the mutation was mined in
        gas_used: Gas consumed
        effective_gas_price: Wei paid per unit of gas
        from_address: Signer that sent the mutation
        to_address: Registry contract the mutation targeted
        logs_count: Number of emitted logs
    """

    tx_hash: str = Field(..., description="0x-prefixed transaction hash")
    status: TransactionStatus = Field(..., description="Outcome of the mutation")
    block_number: Optional[int] = Field(None, ge=0, description="Block the mutation was mined in")
    gas_used: Optional[int] = Field(None, ge=0, description="Gas consumed")
    effective_gas_price: Optional[int] = Field(None, ge=0, description="Wei paid per unit of gas")
    from_address: Optional[str] = Field(None, description="Sending signer")
    to_address: Optional[str] = Field(None, description="Target registry contract")
    logs_count: int = Field(default=0, ge=0, description="Number of emitted logs")
    confirmed_at: datetime = Field(default_factory=datetime.now, description="Local time the receipt was read")

    @classmethod
    def from_web3(cls, receipt: Any) -> "TransactionReceipt":
        """
        Build a receipt model from a web3 ``TxReceipt`` mapping.

        Args:
            receipt: AttributeDict (or plain dict) returned by
                ``eth.wait_for_transaction_receipt``.

        Returns:
            TransactionReceipt: Normalized receipt.
        """
        tx_hash = receipt.get("transactionHash")
        if isinstance(tx_hash, (bytes, bytearray)):
            tx_hash = "0x" + bytes(tx_hash).hex()
        return cls(
            tx_hash=str(tx_hash),
            status=TransactionStatus.SUCCESS if receipt.get("status") == 1 else TransactionStatus.FAILED,
            block_number=receipt.get("blockNumber"),
            gas_used=receipt.get("gasUsed"),
            effective_gas_price=receipt.get("effectiveGasPrice"),
            from_address=receipt.get("from"),
            to_address=receipt.get("to"),
            logs_count=len(receipt.get("logs") or []),
        )

    def is_success(self) -> bool:
        return self.status == TransactionStatus.SUCCESS


class CallOptions(CanonicalModel):
    """
    Options accepted by ``CallDispatcher.call``.

    Unknown keys are kept and forwarded as transaction parameters, so callers
    can pass e.g. ``nonce`` or ``maxFeePerGas`` through unchanged.

    Attributes:
        is_view: Read-only call; no gas, no signing, no waiting
        wait_for_confirmation: Block until the receipt is available
        gas_limit: Override of the default gas ceiling
        value: Wei attached to a payable call
        confirmation_timeout: Seconds to wait for the receipt (None = default)
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    is_view: bool = Field(default=False, description="Read-only call")
    wait_for_confirmation: bool = Field(default=False, description="Wait for the finalized receipt")
    gas_limit: Optional[int] = Field(None, gt=0, description="Gas ceiling override")
    value: Optional[int] = Field(None, ge=0, description="Wei attached to a payable call")
    confirmation_timeout: Optional[float] = Field(None, gt=0, description="Receipt wait timeout (seconds)")

    def extra_tx_params(self) -> Dict[str, Any]:
        """Return caller-supplied transaction parameters not modelled above."""
        return dict(self.model_extra or {})


class ConnectionStatus(CanonicalModel):
    """Diagnostic snapshot of the contract connection manager."""

    is_initialized: bool = False
    is_initializing: bool = False
    last_error: Optional[str] = None
    contracts: List[str] = Field(default_factory=list)
    signer_address: Optional[str] = None
    last_initialized_at: Optional[datetime] = None
