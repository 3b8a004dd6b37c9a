# /test/test_replenish.py
import pytest
from conftest import BTC_ADDR, ETH_ADDR, USDT_ADDR, units

from autoswap.strategies.replenish import ReplenishStrategy


@pytest.fixture
def replenisher(dex, assets, fast_timing):
    return ReplenishStrategy(dex, assets, ["USDT", "ETH", "BTC"], fast_timing)


@pytest.mark.asyncio
async def test_asset_at_or_above_floor_needs_nothing(replenisher, chain, assets):
    chain.set_balance(ETH_ADDR, units("0.02"))
    assert await replenisher.run(assets["ETH"]) is True
    assert chain.sent_transactions == []


@pytest.mark.asyncio
async def test_first_priority_source_with_surplus_is_used(replenisher, chain, assets):
    chain.set_balance(ETH_ADDR, units("0.005"))
    chain.set_balance(USDT_ADDR, units("300"))
    chain.set_swap_output(USDT_ADDR, ETH_ADDR, units("0.03"))

    assert await replenisher.run(assets["ETH"]) is True
    (swap,) = chain.calls("exactInputSingle")
    assert swap.args["tokenIn"] == USDT_ADDR
    assert swap.args["amountIn"] == units("100")
    assert await chain.get_balance(chain.address, ETH_ADDR) == units("0.035")


@pytest.mark.asyncio
async def test_falls_back_to_next_source_when_first_would_breach_its_floor(replenisher, chain, assets):
    chain.set_balance(ETH_ADDR, units("0.005"))
    chain.set_balance(USDT_ADDR, units("150"))
    chain.set_balance(BTC_ADDR, units("0.01"))
    chain.set_swap_output(BTC_ADDR, ETH_ADDR, units("0.05"))

    assert await replenisher.run(assets["ETH"]) is True
    (swap,) = chain.calls("exactInputSingle")
    assert swap.args["tokenIn"] == BTC_ADDR
    assert swap.args["amountIn"] == units("0.003")


@pytest.mark.asyncio
async def test_no_eligible_source_reports_failure(replenisher, chain, assets):
    chain.set_balance(USDT_ADDR, units("50"))
    assert await replenisher.run(assets["ETH"]) is False
    assert chain.sent_transactions == []


@pytest.mark.asyncio
async def test_failed_swap_moves_on_to_next_source(replenisher, chain, assets):
    chain.set_balance(ETH_ADDR, units("0.005"))
    chain.set_balance(USDT_ADDR, units("300"))
    chain.set_balance(BTC_ADDR, units("0.01"))
    # USDT->ETH has no liquidity and reverts.
    chain.set_swap_output(BTC_ADDR, ETH_ADDR, units("0.05"))

    assert await replenisher.run(assets["ETH"]) is True
    swaps = chain.calls("exactInputSingle")
    assert [s.args["tokenIn"] for s in swaps] == [USDT_ADDR, BTC_ADDR]


@pytest.mark.asyncio
async def test_sources_skip_target_and_are_capped(replenisher, assets):
    assert [a.symbol for a in replenisher.sources_for(assets["USDT"])] == ["ETH", "BTC"]
    assert [a.symbol for a in replenisher.sources_for(assets["ETH"])] == ["USDT", "BTC"]
