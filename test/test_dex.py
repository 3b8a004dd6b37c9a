# /test/test_dex.py
# Approve/swap executors as driven through the sequencer against the mock chain.
import asyncio
import time

import pytest
from conftest import ETH_ADDR, ROUTER_ADDR, USDT_ADDR, units

from autoswap.adapters.dex import SwapDirection
from autoswap.core.errors import ErrorKind, UnknownDirectionError


def test_direction_parsing():
    assert SwapDirection.parse("usdt->eth") == SwapDirection("USDT", "ETH")
    assert SwapDirection.parse(("BTC", "ETH")) == SwapDirection("BTC", "ETH")
    assert str(SwapDirection("USDT", "BTC")) == "USDT->BTC"
    with pytest.raises(UnknownDirectionError):
        SwapDirection.parse("USDT/ETH")


@pytest.mark.parametrize("value", [("USDT", "ETH", "BTC"), ("USDT",), (), 42, None])
def test_malformed_direction_values_raise_unknown_direction(value):
    with pytest.raises(UnknownDirectionError):
        SwapDirection.parse(value)


@pytest.mark.asyncio
async def test_swap_call_uses_exact_input_single_parameters(dex, assets, chain):
    call = dex.build_swap_call(assets["USDT"], assets["ETH"], units("50"))
    args = call.args

    assert call.to == ROUTER_ADDR
    assert call.gas == 150_000
    assert call.function == "exactInputSingle"
    assert args["tokenIn"] == USDT_ADDR and args["tokenOut"] == ETH_ADDR
    assert args["fee"] == 3000
    assert args["recipient"] == chain.address
    assert args["amountIn"] == units("50")
    assert args["amountOutMinimum"] == 0
    assert args["sqrtPriceLimitX96"] == 0
    assert 0 < args["deadline"] - time.time() <= 120
    assert call.data.startswith("0x414bf389")


@pytest.mark.asyncio
async def test_approve_call_targets_the_token(dex, assets):
    call = dex.build_approve_call(assets["ETH"], 123)
    assert call.to == ETH_ADDR
    assert call.gas == 100_000
    assert call.args == {"spender": ROUTER_ADDR, "amount": 123}
    assert call.data.startswith("0x095ea7b3")


@pytest.mark.asyncio
async def test_approve_sets_allowance_and_advances_nonce(dex, chain, assets, sequencer):
    assert await dex.approve(assets["USDT"], units("50")) is True
    assert await dex.get_allowance(assets["USDT"]) == units("50")
    assert chain.submitted_nonces == [0]
    assert sequencer.next_nonce == 1


@pytest.mark.asyncio
async def test_swap_moves_balances(dex, chain, assets):
    chain.set_balance(USDT_ADDR, units("200"))
    chain.set_allowance(USDT_ADDR, ROUTER_ADDR, units("50"))
    chain.set_swap_output(USDT_ADDR, ETH_ADDR, units("0.049"))

    assert await dex.swap("USDT->ETH", units("50")) is True
    assert await chain.get_balance(chain.address, USDT_ADDR) == units("150")
    assert await chain.get_balance(chain.address, ETH_ADDR) == units("0.049")


@pytest.mark.asyncio
async def test_reverted_swap_returns_false_and_drops_nonce(dex, chain, assets, sequencer):
    chain.set_balance(USDT_ADDR, units("200"))
    # No allowance: the router reverts, the nonce is still consumed.
    assert await dex.swap(SwapDirection("USDT", "ETH"), units("50")) is False
    assert sequencer.next_nonce is None
    assert sequencer.failed == 1
    assert chain.chain_nonce == 1


@pytest.mark.asyncio
async def test_nonce_error_invalidates_and_next_swap_recovers(dex, chain, assets, sequencer):
    chain.set_balance(USDT_ADDR, units("200"))
    chain.set_allowance(USDT_ADDR, ROUTER_ADDR, units("100"))
    chain.set_swap_output(USDT_ADDR, ETH_ADDR, units("0.049"))
    chain.fail_next(ErrorKind.NONCE_TOO_LOW, stage="submit", message="nonce too low")

    assert await dex.swap("USDT->ETH", units("50")) is False
    assert sequencer.next_nonce is None
    assert chain.sent_transactions == []

    assert await dex.swap("USDT->ETH", units("50")) is True
    assert chain.submitted_nonces == [0]


@pytest.mark.asyncio
async def test_stale_local_nonce_is_rejected_then_refetched(dex, chain, assets, sequencer):
    chain.set_balance(USDT_ADDR, units("200"))
    chain.set_allowance(USDT_ADDR, ROUTER_ADDR, units("100"))
    chain.set_swap_output(USDT_ADDR, ETH_ADDR, units("0.049"))
    assert await dex.approve(assets["BTC"], 1) is True

    # Another wallet client spends nonces behind our back.
    chain.chain_nonce = 3
    assert await dex.swap("USDT->ETH", units("50")) is False
    assert await dex.swap("USDT->ETH", units("50")) is True
    assert chain.submitted_nonces == [0, 3]


@pytest.mark.asyncio
@pytest.mark.parametrize("direction", ["USDT->DOGE", "ETH->ETH", "USDT"])
async def test_unknown_direction_raises_before_anything_is_queued(dex, chain, sequencer, direction):
    with pytest.raises(UnknownDirectionError):
        await dex.swap(direction, 1)
    assert sequencer.submitted == 0
    assert chain.events == []


@pytest.mark.asyncio
async def test_allowance_check_is_idempotent(dex, chain, assets, sequencer):
    chain.set_allowance(USDT_ADDR, ROUTER_ADDR, units("500"))
    assert await dex.ensure_allowance(assets["USDT"], units("50")) is True
    assert sequencer.submitted == 0
    assert chain.sent_transactions == []


@pytest.mark.asyncio
async def test_short_allowance_is_topped_up_to_exact_amount(dex, chain, assets, sequencer):
    chain.set_allowance(USDT_ADDR, ROUTER_ADDR, units("10"))
    assert await dex.ensure_allowance(assets["USDT"], units("50")) is True
    assert sequencer.submitted == 1
    assert chain.calls("approve")[0].args["amount"] == units("50")


@pytest.mark.asyncio
async def test_concurrent_callers_never_overlap_on_chain(dex, chain, assets):
    results = await asyncio.gather(*(dex.approve(assets[s], 1) for s in ("USDT", "ETH", "BTC")))
    assert results == [True, True, True]
    assert chain.max_in_flight == 1
    assert chain.submitted_nonces == [0, 1, 2]
    kinds = [e[0] for e in chain.events]
    assert kinds == ["submit", "confirm"] * 3
