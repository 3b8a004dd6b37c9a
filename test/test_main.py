# /test/test_main.py
# Process contract: exit code and notifications of a whole run.
import pytest
from conftest import ETH_ADDR, USDT_ADDR, units

import main as entrypoint
from autoswap.adapters.mock import MockChainClient, MockNotifier


@pytest.fixture
def run_config(test_settings):
    return test_settings.model_copy(update={
        "REPLENISH_ENABLED": False,
        "APPROVAL_SETTLE_SECONDS": 0,
        "BALANCE_SETTLE_TIMEOUT_SECONDS": 0,
        "CYCLE_DELAY_MIN_SECONDS": 0,
        "CYCLE_DELAY_MAX_SECONDS": 0,
        "SKIP_DELAY_MIN_SECONDS": 0,
        "SKIP_DELAY_MAX_SECONDS": 0,
    })


@pytest.fixture
def wired(monkeypatch):
    chain = MockChainClient()
    notifier = MockNotifier()
    built = []

    def build_chain():
        built.append(chain)
        return chain

    monkeypatch.setattr(entrypoint, "TransactionManager", build_chain)
    monkeypatch.setattr(entrypoint, "TelegramNotifier", lambda: notifier)
    return chain, notifier, built


@pytest.mark.asyncio
async def test_completed_session_exits_zero_with_one_summary(wired, run_config):
    chain, notifier, _ = wired
    chain.set_balance(None, units("1"))
    chain.set_balance(USDT_ADDR, units("200"))
    chain.set_balance(ETH_ADDR, units("0.01"))
    chain.set_swap_output(USDT_ADDR, ETH_ADDR, units("0.049"))
    chain.set_swap_output(ETH_ADDR, USDT_ADDR, units("49"))

    assert await entrypoint.main(run_config) == 0
    (message,) = notifier.messages
    assert "ALL TRANSACTIONS COMPLETED" in message
    assert "USDT/ETH: success 1, failure 0" in message


@pytest.mark.asyncio
async def test_fatal_session_error_exits_one_with_one_failure_notice(wired, run_config):
    chain, notifier, _ = wired
    # No native balance: the gas reserve check fails before any transaction.
    assert await entrypoint.main(run_config) == 1
    assert chain.sent_transactions == []
    (message,) = notifier.messages
    assert message.startswith("AutoSwap session failed on 0G Newton Testnet")
    assert "gas reserve" in message


@pytest.mark.asyncio
async def test_invalid_configuration_exits_one_before_touching_the_chain(wired, run_config):
    _, notifier, built = wired
    config = run_config.model_copy(update={"ROUTER_ADDRESS": None})

    assert await entrypoint.main(config) == 1
    assert built == []
    (message,) = notifier.messages
    assert "configuration is incomplete" in message
