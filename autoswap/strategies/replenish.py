# /autoswap/strategies/replenish.py
# Pre-flight top-up of an asset that sits below its reserve floor.
from typing import Dict, List

from autoswap.adapters.dex import DexAdapter, SwapDirection
from autoswap.core.assets import AssetConfig
from autoswap.core.logger import get_logger
from autoswap.strategies.base import AbstractStrategy, CycleTiming

log = get_logger(__name__)

MAX_SOURCES = 2


class ReplenishStrategy(AbstractStrategy):
    """
    Swaps a source asset's fixed amount into a target that is below its floor.

    Sources are tried in priority order, at most two of them, and only when
    the swap leaves the source at or above its own floor.
    """
    strategy_name = "Replenish"

    def __init__(self, dex: DexAdapter, assets: Dict[str, AssetConfig], priority: List[str],
                 timing: CycleTiming | None = None):
        self.dex = dex
        self.chain = dex.chain
        self.assets = assets
        self.priority = [s.upper() for s in priority if s.upper() in assets]
        self.timing = timing or CycleTiming.from_settings()

    def sources_for(self, target: AssetConfig) -> List[AssetConfig]:
        return [self.assets[s] for s in self.priority if s != target.symbol][:MAX_SOURCES]

    async def run(self, target: AssetConfig) -> bool:
        """Returns True when the target already meets its floor or a top-up swap succeeded."""
        address = self.chain.address
        balance = await self.chain.get_balance(address, target.address)
        if balance >= target.min_reserve:
            log.info("REPLENISH_NOT_NEEDED", asset=target.symbol, balance=target.format(balance))
            return True

        log.warning("REPLENISH_REQUIRED", asset=target.symbol, balance=target.format(balance),
                    floor=target.format(target.min_reserve))
        for source in self.sources_for(target):
            source_balance = await self.chain.get_balance(address, source.address)
            surplus = source_balance - source.min_reserve
            if surplus < source.swap_amount:
                log.info("REPLENISH_SOURCE_INSUFFICIENT", asset=target.symbol, source=source.symbol,
                         balance=source.format(source_balance), required=source.format(source.swap_amount))
                continue

            if not await self.dex.ensure_allowance(source, source.swap_amount, self.timing.approval_settle):
                continue
            if await self.dex.swap(SwapDirection(source.symbol, target.symbol), source.swap_amount):
                log.info("REPLENISH_SWAP_CONFIRMED", asset=target.symbol, source=source.symbol)
                return True

        log.error("REPLENISH_FAILED", asset=target.symbol)
        return False
