"""
Contract bindings.

A ``ContractBinding`` couples one registry's ABI, its deployment address and
the signer-bound ``AsyncWeb3`` contract object. It exposes view calls,
transaction submission and an event listener registry. Events are delivered
by a background poller that reads ``get_logs`` between the last seen block
and the current one; it runs only while at least one listener is registered.

A ``BindingSet`` is the read-only mapping of registry name to binding that the
connection manager hands out.
"""

import asyncio
import inspect
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Iterator, List, Mapping, Optional, Sequence

from .abis import decode_output, find_entry
from ..engine.exceptions import CallError

logger = logging.getLogger(__name__)

EventListener = Callable[[Dict[str, Any], Optional[Any]], Awaitable[None]]


class ContractBinding:
    """
    Bound registry contract.

    Args:
        name: Registry name (e.g. ``land_registry``)
        address: Checksummed deployment address
        abi: ABI subset of the registry
        contract: ``AsyncContract`` created by ``web3.eth.contract``
        web3: Network handle, used for block numbers while polling events
        poll_interval: Seconds between event log polls
    """

    def __init__(
        self,
        name: str,
        address: str,
        abi: List[Dict[str, Any]],
        contract: Any,
        web3: Any,
        poll_interval: float = 2.0,
    ):
        self.name = name
        self.address = address
        self.abi = abi
        self.contract = contract
        self.web3 = web3
        self.poll_interval = poll_interval

        self._listeners: Dict[str, List[EventListener]] = {}
        self._poll_task: Optional[asyncio.Task] = None
        self._last_block: Optional[int] = None

    def __repr__(self) -> str:
        return f"ContractBinding(name={self.name}, address={self.address})"

    # ==================== Calls ====================

    def has_function(self, method: str) -> bool:
        return find_entry(self.abi, method) is not None

    def has_event(self, event: str) -> bool:
        return find_entry(self.abi, event, entry_type="event") is not None

    def function(self, method: str, args: Sequence[Any] = ()):
        """
        Build the contract function call object.

        Raises:
            CallError: If the registry ABI does not declare ``method``.
        """
        if not self.has_function(method):
            raise CallError(f"Registry {self.name} has no method {method}")
        return getattr(self.contract.functions, method)(*args)

    def decode(self, method: str, raw: Any) -> Any:
        return decode_output(self.abi, method, raw)

    async def call(self, method: str, args: Sequence[Any] = ()) -> Any:
        """Execute a view call and return the decoded result."""
        raw = await self.function(method, args).call()
        return self.decode(method, raw)

    async def transact(self, method: str, args: Sequence[Any], tx_params: Dict[str, Any]) -> Any:
        """Sign and send a transaction; returns the transaction hash."""
        return await self.function(method, args).transact(tx_params)

    # ==================== Events ====================

    def listener_count(self, event: Optional[str] = None) -> int:
        if event is not None:
            return len(self._listeners.get(event, []))
        return sum(len(listeners) for listeners in self._listeners.values())

    @property
    def is_polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    def on(self, event: str, listener: EventListener) -> None:
        """
        Register an async listener for a contract event.

        Must be called from a running event loop; the first listener starts
        the log poller.

        Raises:
            TypeError: If listener is not a coroutine function.
            CallError: If the ABI does not declare ``event``.
        """
        if not inspect.iscoroutinefunction(listener):
            raise TypeError(f"Listener must be a coroutine function, got {type(listener).__name__}")
        if not self.has_event(event):
            raise CallError(f"Registry {self.name} has no event {event}")

        self._listeners.setdefault(event, []).append(listener)
        self._ensure_poller()

    def off(self, event: str, listener: EventListener) -> bool:
        """Remove one registration; stops the poller with the last listener."""
        listeners = self._listeners.get(event)
        if not listeners or listener not in listeners:
            return False
        listeners.remove(listener)
        if not listeners:
            del self._listeners[event]
        if not self._listeners:
            self._stop_poller()
        return True

    def remove_all_listeners(self) -> None:
        self._listeners.clear()
        self._stop_poller()

    async def emit(self, event: str, args: Dict[str, Any], log: Optional[Any] = None) -> int:
        """Deliver one event to its listeners; returns how many ran."""
        listeners = list(self._listeners.get(event, []))
        for listener in listeners:
            try:
                await listener(args, log)
            except Exception:
                logger.exception("Listener for %s.%s failed", self.name, event)
        return len(listeners)

    def _ensure_poller(self) -> None:
        if self.is_polling:
            return
        loop = asyncio.get_running_loop()
        self._last_block = None
        self._poll_task = loop.create_task(self._poll_loop(), name=f"events:{self.name}")
        logger.debug("Started event poller for %s", self.name)

    def _stop_poller(self) -> None:
        if self._poll_task is not None:
            if not self._poll_task.done():
                self._poll_task.cancel()
            logger.debug("Stopped event poller for %s", self.name)
        self._poll_task = None

    async def poll_once(self) -> int:
        """
        Fetch and deliver logs emitted since the previous poll.

        The first poll only records the current block, so listeners see
        events emitted after they registered.

        Returns:
            int: Number of logs delivered.
        """
        latest = await self.web3.eth.block_number
        if self._last_block is None:
            self._last_block = latest
            return 0
        if latest <= self._last_block:
            return 0

        delivered = 0
        from_block = self._last_block + 1
        for event in list(self._listeners):
            logs = await getattr(self.contract.events, event)().get_logs(
                from_block=from_block,
                to_block=latest,
            )
            for log in logs:
                await self.emit(event, dict(log["args"]), log)
                delivered += 1

        self._last_block = latest
        return delivered

    async def _poll_loop(self) -> None:
        while self._listeners:
            try:
                await self.poll_once()
            except Exception:
                logger.exception("Event poll failed for %s", self.name)
            await asyncio.sleep(self.poll_interval)


class BindingSet(Mapping[str, ContractBinding]):
    """
    Read-only registry name -> binding mapping for one (network, signer).

    Attributes:
        signer_address: Address of the signer the bindings send from
        chain_id: Chain the bindings were verified against
        created_at: Construction time
    """

    def __init__(self, bindings: Mapping[str, ContractBinding], signer_address: str, chain_id: int):
        self._bindings = dict(bindings)
        self.signer_address = signer_address
        self.chain_id = chain_id
        self.created_at = datetime.now()

    def __getitem__(self, name: str) -> ContractBinding:
        return self._bindings[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._bindings)

    def __len__(self) -> int:
        return len(self._bindings)

    def __repr__(self) -> str:
        return f"BindingSet(signer={self.signer_address}, registries={list(self._bindings)})"

    def remove_all_listeners(self) -> None:
        for binding in self._bindings.values():
            binding.remove_all_listeners()
