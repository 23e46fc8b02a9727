"""
Call dispatcher.

Every registry read and write of the client goes through ``CallDispatcher``:
bindings are initialized transparently, mutations get the default gas
ceiling, and every failure leaves annotated with the registry, method and
arguments that produced it.
"""

import logging
from typing import Any, Dict, Optional, Sequence, Union

from web3.exceptions import ContractLogicError

from .connections import ContractConnectionManager
from ..engine.exceptions import CallError, LandRegistryError, TransactionFailedError
from ..schemas.bases import CallOptions, TransactionReceipt

logger = logging.getLogger(__name__)

OptionsLike = Union[CallOptions, Dict[str, Any], None]


def to_hex_hash(tx_hash: Any) -> str:
    if isinstance(tx_hash, str):
        return tx_hash if tx_hash.startswith("0x") else "0x" + tx_hash
    return "0x" + bytes(tx_hash).hex()


class TransactionHandle:
    """
    A submitted, not yet confirmed, mutation.

    Attributes:
        tx_hash: 0x-prefixed transaction hash
        registry: Registry the mutation targeted
        method: Method name
        args: Call arguments
    """

    def __init__(
        self,
        tx_hash: str,
        registry: str,
        method: str,
        args: Sequence[Any],
        web3: Any,
        timeout: float,
    ):
        self.tx_hash = tx_hash
        self.registry = registry
        self.method = method
        self.args = tuple(args)
        self._web3 = web3
        self._timeout = timeout

    def __repr__(self) -> str:
        return f"TransactionHandle(registry={self.registry}, method={self.method}, tx_hash={self.tx_hash})"

    async def wait(self, timeout: Optional[float] = None) -> TransactionReceipt:
        """
        Wait for the finalized receipt.

        Raises:
            TransactionFailedError: If the receipt reports failure.
            CallError: If the receipt could not be obtained.
        """
        try:
            raw = await self._web3.eth.wait_for_transaction_receipt(
                self.tx_hash,
                timeout=timeout or self._timeout,
            )
        except Exception as exc:
            raise CallError(f"Receipt unavailable for {self.tx_hash}: {exc}").annotate(
                self.registry, self.method, self.args
            ) from exc

        receipt = TransactionReceipt.from_web3(raw)
        if not receipt.is_success():
            raise TransactionFailedError(
                "Transaction reverted",
                tx_hash=self.tx_hash,
                receipt=receipt,
            ).annotate(self.registry, self.method, self.args)

        logger.debug("Confirmed %s.%s in block %s", self.registry, self.method, receipt.block_number)
        return receipt


class CallDispatcher:
    """
    Uniform view/transaction call entry point.

    Args:
        manager: Connection manager providing the bindings

    Example:
        dispatcher = CallDispatcher(manager)
        land = await dispatcher.view("land_registry", "getLandDetails", 1)
        receipt = await dispatcher.transact(
            "land_registry", "putLandForSale", [1], wait_for_confirmation=True
        )
    """

    def __init__(self, manager: ContractConnectionManager):
        self.manager = manager

    @property
    def settings(self):
        return self.manager.settings

    def _build_tx_params(self, signer_address: str, options: CallOptions) -> Dict[str, Any]:
        if options.gas_limit is not None:
            gas = options.gas_limit
        elif options.value is not None:
            gas = self.settings.payable_gas_limit
        else:
            gas = self.settings.default_gas_limit

        tx_params: Dict[str, Any] = {"from": signer_address, "gas": gas}
        if options.value is not None:
            tx_params["value"] = options.value
        tx_params.update(options.extra_tx_params())
        return tx_params

    async def call(
        self,
        registry: str,
        method: str,
        args: Sequence[Any] = (),
        options: OptionsLike = None,
    ) -> Any:
        """
        Dispatch one registry call.

        Args:
            registry: Registry name
            method: Contract method name
            args: Positional method arguments
            options: ``CallOptions`` or an equivalent dict

        Returns:
            The decoded result for views; a ``TransactionHandle`` for
            mutations, or a ``TransactionReceipt`` when
            ``wait_for_confirmation`` is set.

        Raises:
            CallError: Unknown registry/method or any foreign failure.
            TransactionFailedError: Reverted mutation or failed receipt.
            LandRegistryError: Initialization errors, annotated.
        """
        args = tuple(args)
        if options is None:
            options = CallOptions()
        elif isinstance(options, dict):
            options = CallOptions(**options)

        try:
            bindings = await self.manager.ensure_initialized()
            binding = bindings.get(registry)
            if binding is None:
                raise CallError(f"Unknown registry: {registry}")

            if options.is_view:
                logger.debug("View %s.%s%r", registry, method, args)
                return await binding.call(method, args)

            tx_params = self._build_tx_params(bindings.signer_address, options)
            logger.debug("Transact %s.%s%r gas=%s", registry, method, args, tx_params["gas"])
            try:
                raw_hash = await binding.transact(method, args, tx_params)
            except ContractLogicError as exc:
                raise TransactionFailedError(f"Transaction reverted: {exc}") from exc

            handle = TransactionHandle(
                tx_hash=to_hex_hash(raw_hash),
                registry=registry,
                method=method,
                args=args,
                web3=self.manager.web3,
                timeout=options.confirmation_timeout or self.settings.receipt_timeout,
            )
            logger.info("Submitted %s.%s tx=%s", registry, method, handle.tx_hash)
            if options.wait_for_confirmation:
                return await handle.wait()
            return handle

        except LandRegistryError as exc:
            raise exc.annotate(registry, method, args)
        except Exception as exc:
            raise CallError(str(exc) or type(exc).__name__).annotate(registry, method, args) from exc

    async def view(self, registry: str, method: str, *args: Any) -> Any:
        return await self.call(registry, method, args, CallOptions(is_view=True))

    async def transact(self, registry: str, method: str, args: Sequence[Any] = (), **options: Any) -> Any:
        return await self.call(registry, method, args, CallOptions(**options))
