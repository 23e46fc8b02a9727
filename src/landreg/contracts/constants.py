"""
Chain and Registry Configuration

Single supported chain, the four registry deployments, gas ceilings and the
timing budgets used by the connection manager, retrier, cache and event
pollers. ``RegistrySettings.from_env()`` lets every value be overridden from
``LANDREG_*`` environment variables (a ``.env`` file is loaded on import).
"""

import os
from typing import Dict, Optional, Tuple

import dotenv
from pydantic import BaseModel, Field, field_validator
from eth_utils import keccak
from web3 import Web3

dotenv.load_dotenv()

# Local Hardhat network
DEFAULT_CHAIN_ID: int = 31337
DEFAULT_RPC_URL: str = "http://127.0.0.1:8545"

# Registry names, in the order they are bound
USER_REGISTRY = "user_registry"
LAND_REGISTRY = "land_registry"
TRANSACTION_REGISTRY = "transaction_registry"
DISPUTE_REGISTRY = "dispute_registry"
REGISTRY_NAMES: Tuple[str, ...] = (USER_REGISTRY, LAND_REGISTRY, TRANSACTION_REGISTRY, DISPUTE_REGISTRY)

# Default deployment addresses of the local Hardhat deployment script
DEFAULT_CONTRACT_ADDRESSES: Dict[str, str] = {
    USER_REGISTRY: "0x5FbDB2315678afecb367f032d93F642f64180aa3",
    LAND_REGISTRY: "0xe7f1725E7734CE288F8367e1Bb143E90bb3F0512",
    TRANSACTION_REGISTRY: "0x9fE46736679d2D9a65F0992F2272dE9f3c7fa6e0",
    DISPUTE_REGISTRY: "0xDc64a140Aa3E981100a9becA4E685f962f0cF6C9",
}

# Gas ceilings
DEFAULT_GAS_LIMIT: int = 1_000_000
PAYABLE_GAS_LIMIT: int = 800_000
REJECT_USER_GAS_LIMIT: int = 750_000
REMOVE_LAND_GAS_LIMIT: int = 500_000

# Timing budgets
CACHE_TTL_SECONDS: int = 300
RETRY_MAX_ATTEMPTS: int = 5
RETRY_DELAY_SECONDS: float = 1.0
EVENT_POLL_INTERVAL_SECONDS: float = 2.0
RECEIPT_TIMEOUT_SECONDS: float = 120.0

# Access-control role ids (keccak256 of the role name)
ADMIN_ROLE: bytes = keccak(text="ADMIN_ROLE")
INSPECTOR_ROLE: bytes = keccak(text="INSPECTOR_ROLE")

_ENV_PREFIX = "LANDREG_"


class RegistrySettings(BaseModel):
    """
    Runtime configuration of the registry client.

    Attributes:
        chain_id: The single supported chain id
        rpc_url: JSON-RPC endpoint used by the private-key identity provider
        contract_addresses: Registry name -> deployment address
        default_gas_limit: Gas ceiling merged into every mutation
        payable_gas_limit: Gas ceiling for value-carrying mutations
        cache_ttl_seconds: Session cache entry lifetime
        retry_max_attempts: Verification polls after a mutation
        retry_delay_seconds: Pause between verification polls
        event_poll_interval: Seconds between event log polls
        receipt_timeout: Seconds to wait for a transaction receipt
    """

    chain_id: int = Field(default=DEFAULT_CHAIN_ID, gt=0)
    rpc_url: str = Field(default=DEFAULT_RPC_URL)
    contract_addresses: Dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_CONTRACT_ADDRESSES))
    default_gas_limit: int = Field(default=DEFAULT_GAS_LIMIT, gt=0)
    payable_gas_limit: int = Field(default=PAYABLE_GAS_LIMIT, gt=0)
    cache_ttl_seconds: int = Field(default=CACHE_TTL_SECONDS, gt=0)
    retry_max_attempts: int = Field(default=RETRY_MAX_ATTEMPTS, ge=1)
    retry_delay_seconds: float = Field(default=RETRY_DELAY_SECONDS, ge=0)
    event_poll_interval: float = Field(default=EVENT_POLL_INTERVAL_SECONDS, gt=0)
    receipt_timeout: float = Field(default=RECEIPT_TIMEOUT_SECONDS, gt=0)

    @field_validator("contract_addresses")
    @classmethod
    def _checksum_addresses(cls, value: Dict[str, str]) -> Dict[str, str]:
        missing = [name for name in REGISTRY_NAMES if name not in value]
        if missing:
            raise ValueError(f"Missing contract addresses for: {', '.join(missing)}")
        checksummed = {}
        for name, address in value.items():
            if not Web3.is_address(address):
                raise ValueError(f"Invalid address for {name}: {address}")
            checksummed[name] = Web3.to_checksum_address(address)
        return checksummed

    def address_of(self, registry_name: str) -> str:
        return self.contract_addresses[registry_name]

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "RegistrySettings":
        """
        Build settings from ``LANDREG_*`` environment variables.

        Recognized variables:
            - LANDREG_CHAIN_ID, LANDREG_RPC_URL
            - LANDREG_USER_REGISTRY, LANDREG_LAND_REGISTRY,
              LANDREG_TRANSACTION_REGISTRY, LANDREG_DISPUTE_REGISTRY
            - LANDREG_DEFAULT_GAS_LIMIT, LANDREG_PAYABLE_GAS_LIMIT
            - LANDREG_CACHE_TTL_SECONDS, LANDREG_RETRY_MAX_ATTEMPTS,
              LANDREG_RETRY_DELAY_SECONDS, LANDREG_EVENT_POLL_INTERVAL,
              LANDREG_RECEIPT_TIMEOUT

        Unset variables fall back to the local Hardhat defaults.

        Example:
            # .env
            # LANDREG_RPC_URL="http://127.0.0.1:8545"
            # LANDREG_LAND_REGISTRY="0x..."

            settings = RegistrySettings.from_env()
        """
        env = os.environ if environ is None else environ

        def _get(name: str) -> Optional[str]:
            value = env.get(_ENV_PREFIX + name)
            return value if value not in (None, "") else None

        data: Dict[str, object] = {}
        for field_name in (
            "chain_id",
            "rpc_url",
            "default_gas_limit",
            "payable_gas_limit",
            "cache_ttl_seconds",
            "retry_max_attempts",
            "retry_delay_seconds",
            "event_poll_interval",
            "receipt_timeout",
        ):
            value = _get(field_name.upper())
            if value is not None:
                data[field_name] = value

        addresses = dict(DEFAULT_CONTRACT_ADDRESSES)
        for registry_name in REGISTRY_NAMES:
            value = _get(registry_name.upper())
            if value is not None:
                addresses[registry_name] = value
        data["contract_addresses"] = addresses

        return cls(**data)


def get_private_key_from_env() -> Optional[str]:
    """
    Load the signing key of the private-key identity provider.

    Environment Variable:
        - LANDREG_PRIVATE_KEY: 0x-prefixed hex private key

    Returns:
        str: Private key from environment, or None if not configured
    """
    return os.getenv(_ENV_PREFIX + "PRIVATE_KEY")
