# /test/conftest.py
# Shared fixtures: a mock chain, the three test assets and zero-delay pacing.
from decimal import Decimal

import pytest
import pytest_asyncio

from autoswap.adapters.dex import DexAdapter
from autoswap.adapters.mock import MockChainClient
from autoswap.core.assets import to_base_units
from autoswap.core.config import Settings
from autoswap.core.fee_policy import FeeParameters
from autoswap.core.sequencer import TransactionSequencer
from autoswap.strategies.base import CycleTiming

# Digit-only addresses are already in checksum form.
USDT_ADDR = "0x" + "1" * 40
ETH_ADDR = "0x" + "2" * 40
BTC_ADDR = "0x" + "3" * 40
ROUTER_ADDR = "0x" + "5" * 40


def units(amount: str) -> int:
    return to_base_units(Decimal(amount))


@pytest.fixture
def test_settings():
    return Settings(
        EXECUTOR_PRIVATE_KEY="0x" + "a" * 64,
        RPC_URL="http://localhost:8545",
        ROUTER_ADDRESS=ROUTER_ADDR,
        USDT_ADDRESS=USDT_ADDR,
        ETH_ADDRESS=ETH_ADDR,
        BTC_ADDRESS=BTC_ADDR,
        SWAP_PAIRS=["USDT/ETH"],
        CYCLES_PER_PAIR=1,
        PAIR_DELAY_SECONDS=0,
        PENDING_POLL_SECONDS=0,
        TELEGRAM_BOT_TOKEN=None,
        TELEGRAM_CHAT_ID=None,
    )


@pytest.fixture
def fast_timing():
    return CycleTiming(
        cycle_delay_min=0, cycle_delay_max=0,
        skip_delay_min=0, skip_delay_max=0,
        approval_settle=0, settle_poll_interval=0, settle_timeout=0,
    )


@pytest.fixture
def assets(test_settings):
    return test_settings.asset_book()


@pytest.fixture
def chain():
    client = MockChainClient()
    client.set_balance(None, units("1"))
    return client


@pytest_asyncio.fixture
async def sequencer(chain):
    seq = TransactionSequencer(chain)
    yield seq
    await seq.close()


@pytest.fixture
def dex(chain, sequencer, assets, test_settings):
    return DexAdapter(chain, sequencer, FeeParameters(gas_price=10**9), assets, ROUTER_ADDR, test_settings)
