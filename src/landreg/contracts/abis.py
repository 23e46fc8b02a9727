"""
Registry Smart Contract ABI Module

Simplified ABI definitions covering the subset of each registry that the
client calls or listens to. The client never assumes a registry's full
interface, only these methods and events.

Usage:
    from landreg.contracts.abis import get_registry_abi, decode_output

    abi = get_registry_abi("land_registry")
    contract = web3.eth.contract(address=land_registry_address, abi=abi)
    raw = await contract.functions.getLandDetails(1).call()
    record = decode_output(abi, "getLandDetails", raw)  # dict keyed by field name
"""

from typing import Any, Dict, List, Optional


def _fn(name: str, inputs: List[Dict[str, Any]], outputs: List[Dict[str, Any]], mutability: str = "view") -> Dict[str, Any]:
    return {
        "name": name,
        "type": "function",
        "stateMutability": mutability,
        "inputs": inputs,
        "outputs": outputs,
    }


def _event(name: str, inputs: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {"name": name, "type": "event", "anonymous": False, "inputs": inputs}


def _arg(name: str, type_: str, indexed: Optional[bool] = None) -> Dict[str, Any]:
    arg = {"name": name, "type": type_}
    if indexed is not None:
        arg["indexed"] = indexed
    return arg


_LAND_COMPONENTS = [
    _arg("id", "uint256"),
    _arg("area", "uint256"),
    _arg("location", "string"),
    _arg("price", "uint256"),
    _arg("coordinates", "string"),
    _arg("propertyPID", "uint256"),
    _arg("surveyNumber", "string"),
    _arg("documentHash", "bytes32"),
    _arg("isForSale", "bool"),
    _arg("owner", "address"),
    _arg("isVerified", "bool"),
    _arg("verificationRemark", "string"),
]

_REQUEST_COMPONENTS = [
    _arg("requestId", "uint256"),
    _arg("landId", "uint256"),
    _arg("buyer", "address"),
    _arg("seller", "address"),
    _arg("price", "uint256"),
    _arg("status", "uint8"),
    _arg("timestamp", "uint256"),
]

_DISPUTE_COMPONENTS = [
    _arg("disputeId", "uint256"),
    _arg("landId", "uint256"),
    _arg("complainant", "address"),
    _arg("description", "string"),
    _arg("resolved", "bool"),
    _arg("resolution", "string"),
    _arg("timestamp", "uint256"),
]


def _struct(name: str, components: List[Dict[str, Any]], array: bool = False) -> Dict[str, Any]:
    return {"name": name, "type": "tuple[]" if array else "tuple", "components": components}


def get_user_registry_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for the user (identity) registry.

    Returns:
        List[Dict[str, Any]]: Registration, verification, role and rejection
        methods plus the user lifecycle events.
    """
    return [
        _fn("users", [_arg("account", "address")], [
            _arg("name", "string"),
            _arg("age", "uint256"),
            _arg("city", "string"),
            _arg("aadharNumber", "string"),
            _arg("panNumber", "string"),
            _arg("documentHash", "bytes32"),
            _arg("email", "string"),
            _arg("isVerified", "bool"),
        ]),
        _fn("hasRole", [_arg("role", "bytes32"), _arg("account", "address")], [_arg("", "bool")]),
        _fn("getVerificationStatus", [_arg("account", "address")], [
            _arg("isRegistered", "bool"),
            _arg("isVerified", "bool"),
            _arg("remarks", "string"),
        ]),
        _fn("isUserRejected", [_arg("account", "address")], [_arg("", "bool")]),
        _fn("getRejectionCooldown", [_arg("account", "address")], [_arg("", "uint256")]),
        _fn("getPendingUsers", [], [_arg("", "address[]")]),
        _fn("getUserDocuments", [_arg("account", "address")], [
            _arg("aadharNumber", "string"),
            _arg("panNumber", "string"),
            _arg("documentHash", "bytes32"),
        ]),
        _fn("registerUser", [
            _arg("name", "string"),
            _arg("age", "uint256"),
            _arg("city", "string"),
            _arg("aadharNumber", "string"),
            _arg("panNumber", "string"),
            _arg("documentHash", "bytes32"),
            _arg("email", "string"),
        ], [], "nonpayable"),
        _fn("verifyUser", [_arg("account", "address")], [], "nonpayable"),
        _fn("rejectUser", [_arg("account", "address"), _arg("reason", "string")], [], "nonpayable"),
        _event("UserRegistered", [_arg("user", "address", True), _arg("name", "string", False)]),
        _event("UserVerified", [_arg("user", "address", True), _arg("inspector", "address", True)]),
        _event("UserRejected", [_arg("user", "address", True), _arg("reason", "string", False)]),
        _event("RoleGranted", [
            _arg("role", "bytes32", True),
            _arg("account", "address", True),
            _arg("sender", "address", True),
        ]),
        _event("RoleRevoked", [
            _arg("role", "bytes32", True),
            _arg("account", "address", True),
            _arg("sender", "address", True),
        ]),
    ]


def get_land_registry_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for the land (asset) registry.

    Returns:
        List[Dict[str, Any]]: Land CRUD, sale listing and verification
        methods plus the land lifecycle events.
    """
    return [
        _fn("getLandDetails", [_arg("landId", "uint256")], [_struct("", _LAND_COMPONENTS)]),
        _fn("getUserLands", [_arg("owner", "address")], [_arg("", "uint256[]")]),
        _fn("getLandMetadata", [_arg("landId", "uint256")], [
            _arg("documents", "string[]"),
            _arg("descriptions", "string[]"),
            _arg("lastUpdated", "uint256"),
        ]),
        _fn("getLandsForSale", [
            _arg("minPrice", "uint256"),
            _arg("maxPrice", "uint256"),
            _arg("location", "string"),
        ], [_struct("", _LAND_COMPONENTS, array=True)]),
        _fn("getPendingVerifications", [], [_arg("", "uint256[]")]),
        _fn("getLandVerificationRemark", [_arg("landId", "uint256")], [_arg("", "string")]),
        _fn("getTotalLands", [], [_arg("", "uint256")]),
        _fn("addLand", [
            _arg("area", "uint256"),
            _arg("location", "string"),
            _arg("price", "uint256"),
            _arg("coordinates", "string"),
            _arg("propertyPID", "uint256"),
            _arg("surveyNumber", "string"),
            _arg("documentHash", "bytes32"),
        ], [], "nonpayable"),
        _fn("putLandForSale", [_arg("landId", "uint256")], [], "nonpayable"),
        _fn("takeLandOffSale", [_arg("landId", "uint256")], [], "nonpayable"),
        _fn("removeLand", [_arg("landId", "uint256")], [], "nonpayable"),
        _fn("updateLandPrice", [_arg("landId", "uint256"), _arg("newPrice", "uint256")], [], "nonpayable"),
        _fn("verifyLand", [
            _arg("landId", "uint256"),
            _arg("isApproved", "bool"),
            _arg("remark", "string"),
        ], [], "nonpayable"),
        _event("LandAdded", [_arg("landId", "uint256", True), _arg("owner", "address", True)]),
        _event("LandVerified", [
            _arg("landId", "uint256", True),
            _arg("isApproved", "bool", False),
            _arg("remark", "string", False),
        ]),
        _event("LandUpdated", [_arg("landId", "uint256", True)]),
        _event("LandRemoved", [_arg("landId", "uint256", True)]),
    ]


def get_transaction_registry_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for the transaction (purchase request) registry.

    Returns:
        List[Dict[str, Any]]: Purchase request lifecycle, payment,
        withdrawal and market metric methods plus request events.
    """
    return [
        _fn("getUserPurchaseRequests", [_arg("account", "address")], [_struct("", _REQUEST_COMPONENTS, array=True)]),
        _fn("getPurchaseRequest", [_arg("requestId", "uint256")], [_struct("", _REQUEST_COMPONENTS)]),
        _fn("getUserTransactionSummary", [_arg("account", "address")], [
            _arg("total", "uint256"),
            _arg("pending", "uint256"),
            _arg("incoming", "uint256"),
            _arg("outgoing", "uint256"),
        ]),
        _fn("pendingWithdrawals", [_arg("account", "address")], [_arg("", "uint256")]),
        _fn("getTransactionCount", [], [_arg("", "uint256")]),
        _fn("getTotalVolume", [], [_arg("", "uint256")]),
        _fn("calculateAveragePrice", [], [_arg("", "uint256")]),
        _fn("createPurchaseRequest", [_arg("landId", "uint256")], [], "nonpayable"),
        _fn("processPurchaseRequest", [_arg("requestId", "uint256"), _arg("accept", "bool")], [], "nonpayable"),
        _fn("cancelPurchaseRequest", [_arg("requestId", "uint256")], [], "nonpayable"),
        _fn("makePayment", [_arg("requestId", "uint256")], [], "payable"),
        _fn("withdraw", [], [], "nonpayable"),
        _event("PurchaseRequestCreated", [
            _arg("requestId", "uint256", True),
            _arg("landId", "uint256", True),
            _arg("buyer", "address", False),
        ]),
        _event("PurchaseRequestStatusChanged", [
            _arg("requestId", "uint256", True),
            _arg("status", "uint8", False),
        ]),
        _event("PurchaseRequestCancelled", [_arg("requestId", "uint256", True)]),
        _event("LandOwnershipTransferred", [
            _arg("landId", "uint256", True),
            _arg("from", "address", False),
            _arg("to", "address", False),
        ]),
    ]


def get_dispute_registry_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for the dispute registry.

    Returns:
        List[Dict[str, Any]]: Dispute raise/resolve methods, listing
        views and dispute events.
    """
    return [
        _fn("getOpenDisputes", [], [_arg("", "uint256")]),
        _fn("getLandDisputes", [
            _arg("landId", "uint256"),
            _arg("offset", "uint256"),
            _arg("limit", "uint256"),
        ], [_struct("", _DISPUTE_COMPONENTS, array=True)]),
        _fn("raiseDispute", [_arg("landId", "uint256"), _arg("description", "string")], [], "nonpayable"),
        _fn("resolveDispute", [
            _arg("landId", "uint256"),
            _arg("disputeId", "uint256"),
            _arg("resolution", "string"),
        ], [], "nonpayable"),
        _event("DisputeOpened", [
            _arg("disputeId", "uint256", True),
            _arg("landId", "uint256", True),
            _arg("complainant", "address", False),
        ]),
        _event("DisputeClosed", [_arg("disputeId", "uint256", True), _arg("resolution", "string", False)]),
    ]


_REGISTRY_ABIS = {
    "user_registry": get_user_registry_abi,
    "land_registry": get_land_registry_abi,
    "transaction_registry": get_transaction_registry_abi,
    "dispute_registry": get_dispute_registry_abi,
}


def get_registry_abi(registry_name: str) -> List[Dict[str, Any]]:
    """
    Look up the ABI of a named registry.

    Raises:
        KeyError: If the registry name is unknown.
    """
    try:
        return _REGISTRY_ABIS[registry_name]()
    except KeyError:
        raise KeyError(f"Unknown registry: {registry_name}") from None


def find_entry(abi: List[Dict[str, Any]], name: str, entry_type: str = "function") -> Optional[Dict[str, Any]]:
    """Return the ABI entry with the given name and type, or None."""
    for entry in abi:
        if entry.get("type") == entry_type and entry.get("name") == name:
            return entry
    return None


def _zip_components(components: List[Dict[str, Any]], value: Any) -> Dict[str, Any]:
    return {component["name"]: item for component, item in zip(components, value)}


def decode_output(abi: List[Dict[str, Any]], method: str, value: Any) -> Any:
    """
    Turn a raw web3 call result into named records where the ABI allows.

    - a single ``tuple`` output becomes a dict keyed by component name
    - a single ``tuple[]`` output becomes a list of such dicts
    - several named outputs become a dict keyed by output name
    - anything else is returned unchanged

    Args:
        abi: ABI list the method belongs to
        method: Function name
        value: Raw value returned by ``ContractFunction.call()``

    Returns:
        Any: Decoded value.
    """
    entry = find_entry(abi, method)
    if entry is None:
        return value

    outputs = entry.get("outputs") or []
    if len(outputs) == 1:
        output = outputs[0]
        if output["type"] == "tuple":
            return _zip_components(output["components"], value)
        if output["type"] == "tuple[]":
            return [_zip_components(output["components"], item) for item in value]
        return value

    if len(outputs) > 1 and all(output.get("name") for output in outputs):
        return _zip_components(outputs, value)

    return value
