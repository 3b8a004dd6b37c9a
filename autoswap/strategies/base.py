# /autoswap/strategies/base.py
# Interface shared by the rebalancing strategies, plus their pacing settings.
import random

from pydantic import BaseModel

from autoswap.core.config import settings


class CycleTiming(BaseModel):
    """Delays (seconds) a strategy applies between chain actions."""
    cycle_delay_min: float = 5
    cycle_delay_max: float = 10
    skip_delay_min: float = 1
    skip_delay_max: float = 3
    approval_settle: float = 3
    settle_poll_interval: float = 2
    settle_timeout: float = 20

    @classmethod
    def from_settings(cls, config=settings) -> "CycleTiming":
        return cls(
            cycle_delay_min=config.CYCLE_DELAY_MIN_SECONDS,
            cycle_delay_max=config.CYCLE_DELAY_MAX_SECONDS,
            skip_delay_min=config.SKIP_DELAY_MIN_SECONDS,
            skip_delay_max=config.SKIP_DELAY_MAX_SECONDS,
            approval_settle=config.APPROVAL_SETTLE_SECONDS,
            settle_poll_interval=config.BALANCE_SETTLE_POLL_SECONDS,
            settle_timeout=config.BALANCE_SETTLE_TIMEOUT_SECONDS,
        )

    def cycle_delay(self) -> float:
        return random.uniform(self.cycle_delay_min, self.cycle_delay_max)

    def skip_delay(self) -> float:
        return random.uniform(self.skip_delay_min, self.skip_delay_max)


class AbstractStrategy:
    """
    This is the interface every rebalancing strategy implements.
    Strategies never submit transactions themselves: they go through the
    DexAdapter, which routes them through the sequencer.
    """
    strategy_name = "abstract"

    async def run(self, *args, **kwargs):
        """Main entrypoint for live execution."""
        raise NotImplementedError

    async def abort(self, reason: str):
        """Called when the session ends abnormally."""
        raise NotImplementedError
