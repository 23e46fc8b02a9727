"""
Contract connection manager.

Owns the single ``BindingSet`` of the process. Initialization verifies the
network and that every required registry is deployed, then binds all of them
to the signer. Concurrent initializations share one in-flight task; a set
bound to the same signer address is reused as-is.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

from .abis import get_registry_abi
from .bindings import BindingSet, ContractBinding
from .constants import REGISTRY_NAMES, RegistrySettings
from ..engine.exceptions import ConfigurationError, DeploymentError, NetworkMismatchError
from ..schemas.bases import ConnectionStatus

logger = logging.getLogger(__name__)


@dataclass
class PendingCall:
    """An in-flight operation shared by every concurrent caller."""
    kind: str
    key: str
    task: asyncio.Task
    epoch: int = 0


def _is_empty_code(code: Any) -> bool:
    if code is None:
        return True
    if isinstance(code, str):
        return code in ("", "0x", "0x0")
    return len(code) == 0


class ContractConnectionManager:
    """
    Creates, caches and replaces registry bindings.

    Args:
        settings: Chain id, contract addresses and poll interval
        registries: Registry names that must be deployed
        abi_loader: Registry name -> ABI list

    Example:
        manager = ContractConnectionManager(RegistrySettings.from_env())
        bindings = await manager.get_or_init(connection.web3, connection.signer)
        await bindings["land_registry"].call("getTotalLands")
    """

    def __init__(
        self,
        settings: Optional[RegistrySettings] = None,
        registries: Sequence[str] = REGISTRY_NAMES,
        abi_loader: Callable[[str], List[Dict[str, Any]]] = get_registry_abi,
    ):
        self.settings = settings or RegistrySettings()
        self.registries = tuple(registries)
        self.abi_loader = abi_loader

        self._bindings: Optional[BindingSet] = None
        self._pending: Optional[PendingCall] = None
        self._epoch = 0
        self._last_error: Optional[str] = None
        self._last_initialized_at: Optional[datetime] = None
        self._web3: Any = None
        self._signer: Any = None

    @property
    def bindings(self) -> Optional[BindingSet]:
        return self._bindings

    @property
    def web3(self) -> Any:
        return self._web3

    @property
    def is_initializing(self) -> bool:
        return self._pending is not None

    @property
    def status(self) -> ConnectionStatus:
        bindings = self._bindings
        return ConnectionStatus(
            is_initialized=bindings is not None,
            is_initializing=self.is_initializing,
            last_error=self._last_error,
            contracts=list(bindings) if bindings is not None else [],
            signer_address=bindings.signer_address if bindings is not None else None,
            last_initialized_at=self._last_initialized_at,
        )

    async def get_or_init(self, web3: Any, signer: Any) -> BindingSet:
        """
        Return bindings for ``signer``, initializing them when needed.

        Raises:
            ConfigurationError: If web3 or signer is missing.
            NetworkMismatchError: If the network is not the configured chain.
            DeploymentError: If a required registry has no code.
        """
        if web3 is None or signer is None:
            raise ConfigurationError("A network handle and a signer are required")

        if self._pending is not None:
            logger.debug("Joining in-flight initialization for %s", self._pending.key)
            return await asyncio.shield(self._pending.task)

        signer_address = signer.address
        if self._bindings is not None and self._bindings.signer_address.lower() == signer_address.lower():
            return self._bindings

        self._web3, self._signer = web3, signer
        task = asyncio.get_running_loop().create_task(self._initialize(web3, signer_address, self._epoch))
        self._pending = PendingCall(kind="initialize", key=signer_address, task=task, epoch=self._epoch)
        return await asyncio.shield(task)

    async def ensure_initialized(self) -> BindingSet:
        """Initialize (or reuse) with the last supplied network handle and signer."""
        if self._bindings is not None and self._pending is None:
            return self._bindings
        if self._web3 is None or self._signer is None:
            raise ConfigurationError("No identity connected; call get_or_init first")
        return await self.get_or_init(self._web3, self._signer)

    def reset(self) -> None:
        """
        Drop the binding set, its listeners and the remembered identity.

        An initialization still in flight is disowned: it finishes without
        installing its bindings and its callers get ``ConfigurationError``.
        """
        self._epoch += 1
        self._pending = None
        if self._bindings is not None:
            self._bindings.remove_all_listeners()
            logger.info("Released bindings for %s", self._bindings.signer_address)
        self._bindings = None
        self._web3 = None
        self._signer = None
        self._last_error = None

    async def _initialize(self, web3: Any, signer_address: str, epoch: int) -> BindingSet:
        try:
            if self._bindings is not None:
                logger.info(
                    "Signer changed from %s to %s; rebuilding bindings",
                    self._bindings.signer_address, signer_address,
                )
                self._bindings.remove_all_listeners()
                self._bindings = None

            chain_id = await web3.eth.chain_id
            if chain_id != self.settings.chain_id:
                raise NetworkMismatchError(self.settings.chain_id, chain_id)

            await asyncio.gather(*(self._check_deployed(web3, name) for name in self.registries))
            if epoch != self._epoch:
                raise ConfigurationError(f"Connection was reset while initializing bindings for {signer_address}")

            bindings = {name: self._bind(web3, name) for name in self.registries}
            self._bindings = BindingSet(bindings, signer_address=signer_address, chain_id=chain_id)
            self._last_initialized_at = datetime.now()
            self._last_error = None
            logger.info("Initialized %d registry bindings for %s", len(bindings), signer_address)
            return self._bindings
        except Exception as exc:
            if epoch == self._epoch:
                self._last_error = str(exc)
            logger.warning("Contract initialization failed: %s", exc)
            raise
        finally:
            if epoch == self._epoch:
                self._pending = None

    async def _check_deployed(self, web3: Any, name: str) -> None:
        address = self.settings.address_of(name)
        code = await web3.eth.get_code(address)
        if _is_empty_code(code):
            raise DeploymentError(name, address)
        logger.debug("Registry %s deployed at %s", name, address)

    def _bind(self, web3: Any, name: str) -> ContractBinding:
        address = self.settings.address_of(name)
        abi = self.abi_loader(name)
        contract = web3.eth.contract(address=address, abi=abi)
        return ContractBinding(
            name=name,
            address=address,
            abi=abi,
            contract=contract,
            web3=web3,
            poll_interval=self.settings.event_poll_interval,
        )
