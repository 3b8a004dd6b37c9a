# /autoswap/core/assets.py
from decimal import Decimal

from pydantic import BaseModel, ConfigDict


def to_base_units(amount: Decimal, decimals: int = 18) -> int:
    """Converts a human amount (e.g. ``Decimal("0.03")``) to integer base units."""
    return int(Decimal(str(amount)) * (Decimal(10) ** decimals))


def format_units(amount: int, decimals: int = 18, places: int = 4) -> str:
    value = Decimal(amount) / (Decimal(10) ** decimals)
    return f"{value:.{places}f}"


class AssetConfig(BaseModel):
    """A swappable ERC-20 asset with its fixed swap amount and reserve floor (base units)."""
    model_config = ConfigDict(frozen=True)

    symbol: str
    address: str
    decimals: int = 18
    swap_amount: int
    min_reserve: int

    def format(self, amount: int) -> str:
        return f"{format_units(amount, self.decimals)} {self.symbol}"


class PairConfig(BaseModel):
    """One rebalancing pair: forward leg A->B for a fixed amount, return leg B->A above B's floor."""
    model_config = ConfigDict(frozen=True)

    name: str
    asset_a: AssetConfig
    asset_b: AssetConfig
    amount: int
    floor: int
    cycles: int
