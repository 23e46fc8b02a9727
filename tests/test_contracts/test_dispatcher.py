"""
Test suite for the call dispatcher.
Tests: 1) View decoding 2) Gas defaults and overrides 3) Confirmation handling
4) Error annotation and wrapping
"""
import pytest
import pytest_asyncio

from landreg.contracts.dispatcher import CallDispatcher, TransactionHandle, to_hex_hash
from landreg.engine.exceptions import CallError, ConfigurationError, LandRegistryError, TransactionFailedError
from landreg.schemas.bases import TransactionReceipt, TransactionStatus

from mocks import USER_ACCOUNT, USER_ADDRESS, land_tuple


@pytest_asyncio.fixture
async def dispatcher(ledger, manager) -> CallDispatcher:
    await manager.get_or_init(ledger.web3, USER_ACCOUNT)
    return CallDispatcher(manager)


def test_to_hex_hash():
    assert to_hex_hash(b"\x01\x02") == "0x0102"
    assert to_hex_hash("abcd") == "0xabcd"
    assert to_hex_hash("0xabcd") == "0xabcd"


@pytest.mark.asyncio
async def test_view_returns_decoded_struct(ledger, dispatcher):
    ledger["land_registry"].views["getLandDetails"] = lambda land_id: land_tuple(land_id, price=5)

    land = await dispatcher.view("land_registry", "getLandDetails", 3)

    assert land["id"] == 3
    assert land["price"] == 5
    assert land["owner"] == USER_ADDRESS
    assert ledger["land_registry"].calls_of("getLandDetails") == [(3,)]
    assert ledger["land_registry"].transactions == []


@pytest.mark.asyncio
async def test_view_with_named_outputs_returns_dict(ledger, dispatcher):
    result = await dispatcher.view("user_registry", "getVerificationStatus", USER_ADDRESS)

    assert result == {"isRegistered": True, "isVerified": True, "remarks": ""}


@pytest.mark.asyncio
async def test_mutation_gets_default_gas_and_signer(ledger, dispatcher):
    handle = await dispatcher.transact("land_registry", "putLandForSale", [1])

    assert isinstance(handle, TransactionHandle)
    assert handle.tx_hash.startswith("0x")
    [(args, params)] = ledger["land_registry"].transactions_of("putLandForSale")
    assert args == (1,)
    assert params == {"from": USER_ADDRESS, "gas": 1_000_000}


@pytest.mark.asyncio
async def test_payable_mutation_gets_payable_gas(ledger, dispatcher):
    await dispatcher.transact("transaction_registry", "makePayment", [4], value=10**18)

    [(_, params)] = ledger["transaction_registry"].transactions_of("makePayment")
    assert params["gas"] == 800_000
    assert params["value"] == 10**18


@pytest.mark.asyncio
async def test_gas_override_and_extra_params(ledger, dispatcher):
    await dispatcher.call(
        "land_registry", "removeLand", [2],
        {"gas_limit": 500_000, "nonce": 7},
    )

    [(_, params)] = ledger["land_registry"].transactions_of("removeLand")
    assert params == {"from": USER_ADDRESS, "gas": 500_000, "nonce": 7}


@pytest.mark.asyncio
async def test_wait_for_confirmation_returns_receipt(ledger, dispatcher):
    receipt = await dispatcher.transact("land_registry", "takeLandOffSale", [1], wait_for_confirmation=True)

    assert isinstance(receipt, TransactionReceipt)
    assert receipt.status == TransactionStatus.SUCCESS
    assert receipt.block_number == ledger.block_number


@pytest.mark.asyncio
async def test_handle_wait_raises_on_failed_receipt(ledger, dispatcher):
    ledger.failing_receipts.add("withdraw")
    handle = await dispatcher.transact("transaction_registry", "withdraw")

    with pytest.raises(TransactionFailedError) as exc_info:
        await handle.wait()

    error = exc_info.value
    assert error.tx_hash == handle.tx_hash
    assert error.receipt.status == TransactionStatus.FAILED
    assert error.registry == "transaction_registry"
    assert error.method == "withdraw"


@pytest.mark.asyncio
async def test_revert_becomes_annotated_transaction_failed(ledger, dispatcher):
    ledger["land_registry"].reverts["putLandForSale"] = "Not the owner"

    with pytest.raises(TransactionFailedError) as exc_info:
        await dispatcher.transact("land_registry", "putLandForSale", [9])

    error = exc_info.value
    assert "Not the owner" in error.message
    assert error.details["registry"] == "land_registry"
    assert error.details["method"] == "putLandForSale"
    assert error.details["args"] == [9]
    assert str(error).startswith("land_registry.putLandForSale failed:")


@pytest.mark.asyncio
async def test_unknown_registry_raises_call_error(dispatcher):
    with pytest.raises(CallError) as exc_info:
        await dispatcher.view("escrow_registry", "balanceOf", USER_ADDRESS)

    assert exc_info.value.registry == "escrow_registry"


@pytest.mark.asyncio
async def test_unknown_method_raises_call_error(dispatcher):
    with pytest.raises(CallError) as exc_info:
        await dispatcher.view("land_registry", "getEverything")

    assert exc_info.value.method == "getEverything"


@pytest.mark.asyncio
async def test_foreign_failure_is_wrapped(ledger, dispatcher):
    ledger["land_registry"].views["getTotalLands"] = ConnectionError("node unreachable")

    with pytest.raises(CallError) as exc_info:
        await dispatcher.view("land_registry", "getTotalLands")

    assert isinstance(exc_info.value.__cause__, ConnectionError)
    assert exc_info.value.args_context == []


@pytest.mark.asyncio
async def test_dispatch_before_connect_is_a_configuration_error(manager):
    dispatcher = CallDispatcher(manager)

    with pytest.raises(ConfigurationError) as exc_info:
        await dispatcher.view("land_registry", "getTotalLands")

    assert isinstance(exc_info.value, LandRegistryError)
    assert exc_info.value.method == "getTotalLands"
