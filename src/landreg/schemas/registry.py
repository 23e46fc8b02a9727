"""
Domain record models for the land, transaction and dispute registries.

Registry calls return plain dicts keyed by the ABI field names (see
``landreg.contracts.abis.decode_output``). The models below accept those
camelCase keys through field aliases, so ``LandRecord.model_validate(raw)``
works directly on a decoded call result.
"""

from enum import IntEnum
from typing import Any, List, Optional

from pydantic import Field, field_validator

from .bases import CanonicalModel


def _hex_bytes(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    return value


class RequestStatus(IntEnum):
    """Purchase request lifecycle as stored by the transaction registry."""
    PENDING = 0
    ACCEPTED = 1
    REJECTED = 2
    PAYMENT_DONE = 3
    COMPLETED = 4


# ==================== Land ====================

class LandRecord(CanonicalModel):
    """
    One land parcel.

    Attributes:
        id: Land id assigned by the registry
        area: Area in square units
        location: Free-text location
        price: Asking price in wei
        coordinates: Free-text coordinates
        property_pid: Property id
        survey_number: Survey number
        document_hash: Opaque bytes32 document hash (0x hex)
        is_for_sale: Listed on the market
        owner: Owner address
        is_verified: Approved by an inspector
        verification_remark: Inspector remark (set on approval or rejection)
    """

    id: int = Field(..., ge=0)
    area: int = Field(default=0, ge=0)
    location: str = ""
    price: int = Field(default=0, ge=0)
    coordinates: str = ""
    property_pid: int = Field(default=0, ge=0, alias="propertyPID")
    survey_number: str = Field(default="", alias="surveyNumber")
    document_hash: str = Field(default="0x", alias="documentHash")
    is_for_sale: bool = Field(default=False, alias="isForSale")
    owner: str = ""
    is_verified: bool = Field(default=False, alias="isVerified")
    verification_remark: str = Field(default="", alias="verificationRemark")

    normalize_hash = field_validator("document_hash", mode="before")(_hex_bytes)

    @property
    def is_rejected(self) -> bool:
        """A remark without approval means the inspector rejected the parcel."""
        return not self.is_verified and bool(self.verification_remark)


class LandMetadata(CanonicalModel):
    documents: List[str] = Field(default_factory=list)
    descriptions: List[str] = Field(default_factory=list)
    last_updated: int = Field(default=0, ge=0, alias="lastUpdated")


class LandPage(CanonicalModel):
    """A page of the caller's lands, newest id order preserved from the registry."""
    items: List[LandRecord] = Field(default_factory=list)
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=10, ge=1)
    total: int = Field(default=0, ge=0)

    @property
    def total_pages(self) -> int:
        return max(1, -(-self.total // self.page_size))

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages


class LandInput(CanonicalModel):
    """Arguments of ``addLand``; the document hash is accepted as-is."""
    area: int = Field(..., gt=0)
    location: str = Field(..., min_length=1)
    price: int = Field(..., gt=0)
    coordinates: str = ""
    property_pid: int = Field(default=0, ge=0, alias="propertyPID")
    survey_number: str = Field(default="", alias="surveyNumber")
    document_hash: str = Field(default="0x" + "00" * 32, alias="documentHash")

    normalize_hash = field_validator("document_hash", mode="before")(_hex_bytes)

    def to_call_args(self) -> tuple:
        return (
            self.area,
            self.location,
            self.price,
            self.coordinates,
            self.property_pid,
            self.survey_number,
            self.document_hash,
        )


class MarketFilters(CanonicalModel):
    """Market listing filters; a ``max_price`` of 0 means unbounded."""
    min_price: int = Field(default=0, ge=0)
    max_price: int = Field(default=0, ge=0)
    location: str = ""

    def to_call_args(self) -> tuple:
        return (self.min_price, self.max_price, self.location)


# ==================== Transactions ====================

class PurchaseRequest(CanonicalModel):
    request_id: int = Field(..., ge=0, alias="requestId")
    land_id: int = Field(..., ge=0, alias="landId")
    buyer: str
    seller: str
    price: int = Field(default=0, ge=0)
    status: RequestStatus = RequestStatus.PENDING
    timestamp: int = Field(default=0, ge=0)
    land: Optional[LandRecord] = None

    def involves(self, address: str) -> bool:
        address = address.lower()
        return self.buyer.lower() == address or self.seller.lower() == address


class UserStats(CanonicalModel):
    """
    Dashboard counters for one user.

    ``total``, ``pending``, ``incoming`` and ``outgoing`` come from the
    transaction registry summary; ``owned_lands`` is counted client-side.
    """
    owned_lands: int = Field(default=0, ge=0)
    total: int = Field(default=0, ge=0)
    pending: int = Field(default=0, ge=0)
    incoming: int = Field(default=0, ge=0)
    outgoing: int = Field(default=0, ge=0)


class MarketMetrics(CanonicalModel):
    transaction_count: int = Field(default=0, ge=0)
    total_volume: int = Field(default=0, ge=0)
    average_price: int = Field(default=0, ge=0)


# ==================== Users / Inspection ====================

class UserProfile(CanonicalModel):
    """Registered user record as stored by the user registry."""
    name: str = ""
    age: int = Field(default=0, ge=0)
    city: str = ""
    aadhar_number: str = Field(default="", alias="aadharNumber")
    pan_number: str = Field(default="", alias="panNumber")
    document_hash: str = Field(default="0x", alias="documentHash")
    email: str = ""
    is_verified: bool = Field(default=False, alias="isVerified")

    normalize_hash = field_validator("document_hash", mode="before")(_hex_bytes)

    def to_call_args(self) -> tuple:
        """Argument tuple of ``registerUser``."""
        return (
            self.name,
            self.age,
            self.city,
            self.aadhar_number,
            self.pan_number,
            self.document_hash,
            self.email,
        )


class UserDocuments(CanonicalModel):
    aadhar_number: str = Field(default="", alias="aadharNumber")
    pan_number: str = Field(default="", alias="panNumber")
    document_hash: str = Field(default="0x", alias="documentHash")

    normalize_hash = field_validator("document_hash", mode="before")(_hex_bytes)


class Dispute(CanonicalModel):
    dispute_id: int = Field(..., ge=0, alias="disputeId")
    land_id: int = Field(..., ge=0, alias="landId")
    complainant: str = ""
    description: str = ""
    resolved: bool = False
    resolution: str = ""
    timestamp: int = Field(default=0, ge=0)


class InspectorDashboard(CanonicalModel):
    """Counters shown to an inspector."""
    pending_users: int = Field(default=0, ge=0)
    pending_lands: int = Field(default=0, ge=0)
    open_disputes: int = Field(default=0, ge=0)
    total_lands: int = Field(default=0, ge=0)
    last_error: Optional[str] = None
