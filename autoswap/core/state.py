# /autoswap/core/state.py
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field

from autoswap.core.assets import AssetConfig, format_units
from autoswap.core.logger import get_logger

log = get_logger(__name__)


class BalanceSnapshot(BaseModel):
    """Point-in-time wallet balances in base units. Never reused for later decisions."""
    model_config = ConfigDict(frozen=True)

    native: int
    tokens: Dict[str, int] = Field(default_factory=dict)
    taken_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def get(self, symbol: str) -> int:
        return self.tokens.get(symbol, 0)

    def lines(self, assets: Dict[str, AssetConfig], native_symbol: str = "NATIVE") -> List[str]:
        rows = [f"{native_symbol}: {format_units(self.native)}"]
        for symbol, asset in assets.items():
            rows.append(f"{symbol}: {format_units(self.get(symbol), asset.decimals)}")
        return rows


class CycleResult(BaseModel):
    success: int = 0
    failure: int = 0

    def record_success(self):
        self.success += 1

    def record_failure(self):
        self.failure += 1

    def __add__(self, other: "CycleResult") -> "CycleResult":
        return CycleResult(success=self.success + other.success, failure=self.failure + other.failure)


class SessionState(BaseModel):
    """
    Everything one session run produced: per-pair tallies, replenishment
    outcomes and balance snapshots. Immutable; every recorder logs the
    event and returns an updated copy.
    """
    model_config = ConfigDict(frozen=True)

    session_id: uuid.UUID = Field(default_factory=uuid.uuid4)
    start_time: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    pair_results: Dict[str, CycleResult] = Field(default_factory=dict)
    replenishments: List[Dict[str, Any]] = Field(default_factory=list)
    balances_before: BalanceSnapshot | None = None
    balances_after: BalanceSnapshot | None = None

    @property
    def totals(self) -> CycleResult:
        return sum(self.pair_results.values(), CycleResult())

    def _log_and_record(self, event_type: str, data: Dict[str, Any], **update) -> "SessionState":
        log.info(event_type, session_id=str(self.session_id), **data)
        return self.model_copy(update=update)

    def record_pair_result(self, pair: str, result: CycleResult) -> "SessionState":
        results = {**self.pair_results, pair: result}
        return self._log_and_record(
            "PAIR_SEQUENCE_RECORDED",
            {"pair": pair, "success": result.success, "failure": result.failure},
            pair_results=results,
        )

    def record_replenishment(self, pair: str, symbol: str, ok: bool) -> "SessionState":
        data = {"pair": pair, "asset": symbol, "ok": ok}
        return self._log_and_record("REPLENISHMENT_RECORDED", data, replenishments=self.replenishments + [data])

    def with_balances(self, *, before: BalanceSnapshot | None = None, after: BalanceSnapshot | None = None) -> "SessionState":
        update = {}
        if before is not None:
            update["balances_before"] = before
        if after is not None:
            update["balances_after"] = after
        return self.model_copy(update=update)
