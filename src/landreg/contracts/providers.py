"""
Identity providers.

An identity provider supplies the network handle and the signer the
connection manager binds the registries to. Wallet internals stay behind the
``IdentityProvider`` protocol; ``PrivateKeyIdentityProvider`` is the concrete
implementation for scripts, servers and local Hardhat development.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional, Protocol, runtime_checkable

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import AsyncWeb3
from web3.middleware import SignAndSendRawMiddlewareBuilder

from .constants import DEFAULT_RPC_URL, get_private_key_from_env
from ..engine.exceptions import ConfigurationError, SignerMismatchError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IdentityConnection:
    """Result of a successful identity connect."""
    address: str
    web3: Any
    signer: Any


@runtime_checkable
class IdentityProvider(Protocol):
    """Supplies the active identity, its network handle and its signer."""

    async def connect(self) -> IdentityConnection:
        ...

    async def disconnect(self) -> None:
        ...


def check_signer(connection: IdentityConnection) -> IdentityConnection:
    """
    Ensure the signer signs for the address the provider reported.

    Raises:
        ConfigurationError: If the connection carries no web3 handle or signer.
        SignerMismatchError: If the addresses differ.
    """
    if connection.web3 is None or connection.signer is None:
        raise ConfigurationError("Identity provider returned no network handle or signer")
    signer_address = getattr(connection.signer, "address", None)
    if not signer_address or signer_address.lower() != connection.address.lower():
        raise SignerMismatchError(connection.address, str(signer_address))
    return connection


class PrivateKeyIdentityProvider:
    """
    Identity provider backed by a local private key.

    Builds an ``AsyncWeb3`` over ``AsyncHTTPProvider`` and installs the
    sign-and-send middleware so ``transact()`` signs locally.

    Args:
        private_key: 0x-prefixed hex key; defaults to ``LANDREG_PRIVATE_KEY``
        rpc_url: JSON-RPC endpoint
        request_timeout: HTTP request timeout in seconds

    Example:
        provider = PrivateKeyIdentityProvider(rpc_url="http://127.0.0.1:8545")
        connection = await provider.connect()
        connection.address  # checksummed signer address
    """

    def __init__(
        self,
        private_key: Optional[str] = None,
        rpc_url: str = DEFAULT_RPC_URL,
        request_timeout: float = 30.0,
    ):
        self._private_key = private_key or get_private_key_from_env()
        self.rpc_url = rpc_url
        self.request_timeout = request_timeout
        self._connection: Optional[IdentityConnection] = None

    @property
    def connection(self) -> Optional[IdentityConnection]:
        return self._connection

    def _build_web3(self, account: LocalAccount) -> AsyncWeb3:
        web3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(
            self.rpc_url,
            request_kwargs={"timeout": self.request_timeout}
        ))
        web3.middleware_onion.add(SignAndSendRawMiddlewareBuilder.build(account))
        web3.eth.default_account = account.address
        return web3

    async def connect(self) -> IdentityConnection:
        if self._connection is not None:
            return self._connection
        if not self._private_key:
            raise ConfigurationError("No private key configured (set LANDREG_PRIVATE_KEY)")

        account: LocalAccount = Account.from_key(self._private_key)
        web3 = self._build_web3(account)
        self._connection = IdentityConnection(address=account.address, web3=web3, signer=account)
        logger.info("Connected identity %s via %s", account.address, self.rpc_url)
        return self._connection

    async def disconnect(self) -> None:
        connection, self._connection = self._connection, None
        if connection is None:
            return
        provider = getattr(connection.web3, "provider", None)
        disconnect = getattr(provider, "disconnect", None)
        if disconnect is not None:
            await disconnect()
        logger.info("Disconnected identity %s", connection.address)
