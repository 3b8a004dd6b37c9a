# /autoswap/strategies/pair_cycle.py
"""
Bidirectional rebalancing cycle for one asset pair (A, B).

Each cycle swaps a fixed amount of A into B, waits for B's balance to move,
then swaps back only the part of B above its reserve floor. The return amount
is therefore derived from the observed balance, not from a quote, and the
floor of B is never swapped away.
"""
import asyncio
from enum import Enum

from autoswap.adapters.dex import DexAdapter, SwapDirection
from autoswap.core.assets import AssetConfig, PairConfig
from autoswap.core.logger import CYCLES, get_logger
from autoswap.core.state import CycleResult
from autoswap.strategies.base import AbstractStrategy, CycleTiming

log = get_logger(__name__)


class CycleOutcome(str, Enum):
    COMPLETED = "completed"
    SKIPPED = "skipped"
    APPROVAL_FAILED = "approval_failed"
    FORWARD_FAILED = "forward_failed"
    FORWARD_ONLY = "forward_only"
    RETURN_FAILED = "return_failed"


def compute_return_amount(balance: int, floor: int) -> int:
    """Surplus of *balance* above *floor*, never negative."""
    return max(0, balance - floor)


class PairCycleStrategy(AbstractStrategy):
    def __init__(self, dex: DexAdapter, pair: PairConfig, timing: CycleTiming | None = None):
        self.dex = dex
        self.chain = dex.chain
        self.pair = pair
        self.timing = timing or CycleTiming.from_settings()
        self.strategy_name = f"PairCycle_{pair.name}"

    @property
    def forward(self) -> SwapDirection:
        return SwapDirection(self.pair.asset_a.symbol, self.pair.asset_b.symbol)

    @property
    def backward(self) -> SwapDirection:
        return SwapDirection(self.pair.asset_b.symbol, self.pair.asset_a.symbol)

    async def run(self) -> CycleResult:
        log.info("PAIR_SEQUENCE_STARTING", pair=self.pair.name, cycles=self.pair.cycles,
                 amount=self.pair.asset_a.format(self.pair.amount))
        result = CycleResult()
        for index in range(1, self.pair.cycles + 1):
            outcome = await self.run_cycle(index)
            if outcome is CycleOutcome.COMPLETED:
                result.record_success()
            else:
                result.record_failure()
            CYCLES.labels(self.pair.name, outcome.value).inc()

            if index < self.pair.cycles:
                delay = self.timing.skip_delay() if outcome is CycleOutcome.SKIPPED else self.timing.cycle_delay()
                log.info("CYCLE_PAUSE", pair=self.pair.name, seconds=round(delay, 1))
                await asyncio.sleep(delay)

        log.info("PAIR_SEQUENCE_FINISHED", pair=self.pair.name, success=result.success, failure=result.failure)
        return result

    async def run_cycle(self, index: int) -> CycleOutcome:
        a, b = self.pair.asset_a, self.pair.asset_b
        address = self.chain.address
        log.info("CYCLE_STARTING", pair=self.pair.name, cycle=index, total=self.pair.cycles)

        balance_a = await self.chain.get_balance(address, a.address)
        if balance_a < self.pair.amount:
            log.warning("CYCLE_SKIPPED_INSUFFICIENT_BALANCE", pair=self.pair.name, cycle=index,
                        balance=a.format(balance_a), required=a.format(self.pair.amount))
            return CycleOutcome.SKIPPED

        if not await self.dex.ensure_allowance(a, self.pair.amount, self.timing.approval_settle):
            log.warning("CYCLE_APPROVAL_FAILED", pair=self.pair.name, cycle=index, asset=a.symbol)
            return CycleOutcome.APPROVAL_FAILED

        balance_b_before = await self.chain.get_balance(address, b.address)
        if not await self.dex.swap(self.forward, self.pair.amount):
            log.warning("CYCLE_FORWARD_SWAP_FAILED", pair=self.pair.name, cycle=index)
            return CycleOutcome.FORWARD_FAILED

        balance_b = await self.await_settled_balance(b, balance_b_before)
        return_amount = compute_return_amount(balance_b, self.pair.floor)
        log.info("CYCLE_RETURN_AMOUNT", pair=self.pair.name, cycle=index, balance=b.format(balance_b),
                 floor=b.format(self.pair.floor), return_amount=b.format(return_amount))
        if return_amount == 0:
            log.warning("CYCLE_FORWARD_ONLY", pair=self.pair.name, cycle=index)
            return CycleOutcome.FORWARD_ONLY

        if not await self.dex.ensure_allowance(b, return_amount, self.timing.approval_settle):
            log.warning("CYCLE_APPROVAL_FAILED", pair=self.pair.name, cycle=index, asset=b.symbol)
            return CycleOutcome.RETURN_FAILED
        if not await self.dex.swap(self.backward, return_amount):
            log.warning("CYCLE_RETURN_SWAP_FAILED", pair=self.pair.name, cycle=index)
            return CycleOutcome.RETURN_FAILED

        log.info("CYCLE_COMPLETED", pair=self.pair.name, cycle=index)
        return CycleOutcome.COMPLETED

    async def await_settled_balance(self, asset: AssetConfig, previous: int) -> int:
        """Polls *asset* until it differs from *previous* or the settle timeout passes."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timing.settle_timeout
        while True:
            balance = await self.chain.get_balance(self.chain.address, asset.address)
            if balance != previous:
                return balance
            if loop.time() >= deadline:
                log.warning("BALANCE_SETTLE_TIMEOUT", asset=asset.symbol, balance=asset.format(balance))
                return balance
            await asyncio.sleep(self.timing.settle_poll_interval)

    async def abort(self, reason: str):
        log.critical("STRATEGY_ABORTED", strategy_name=self.strategy_name, reason=reason)
