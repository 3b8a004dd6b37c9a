# /autoswap/core/fee_policy.py
# Session-wide fee pricing, computed once before the first transaction.
from decimal import Decimal

from pydantic import BaseModel, ConfigDict

from autoswap.core.assets import to_base_units
from autoswap.core.config import settings
from autoswap.core.errors import FeeUnavailableError
from autoswap.core.logger import get_logger

log = get_logger(__name__)

GWEI_DECIMALS = 9


class FeeEstimate(BaseModel):
    """Raw fee data as reported by the node; any field may be missing."""
    gas_price: int | None = None
    max_fee_per_gas: int | None = None
    max_priority_fee_per_gas: int | None = None


class FeeParameters(BaseModel):
    """Either EIP-1559 (max fee + priority fee) or legacy (gas price) pricing."""
    model_config = ConfigDict(frozen=True)

    max_fee_per_gas: int | None = None
    max_priority_fee_per_gas: int | None = None
    gas_price: int | None = None

    @property
    def is_eip1559(self) -> bool:
        return self.max_fee_per_gas is not None and self.max_priority_fee_per_gas is not None

    @property
    def price_ceiling(self) -> int:
        """Highest per-gas price this session may pay."""
        return self.max_fee_per_gas if self.is_eip1559 else self.gas_price

    def to_tx_params(self) -> dict:
        if self.is_eip1559:
            return {
                "maxFeePerGas": self.max_fee_per_gas,
                "maxPriorityFeePerGas": self.max_priority_fee_per_gas,
            }
        return {"gasPrice": self.gas_price}

    def describe(self) -> str:
        gwei = Decimal(10) ** GWEI_DECIMALS
        if self.is_eip1559:
            return (f"EIP-1559 MaxFee={Decimal(self.max_fee_per_gas) / gwei:.4f} "
                    f"PrioFee={Decimal(self.max_priority_fee_per_gas) / gwei:.4f} Gwei")
        return f"Legacy GasPrice={Decimal(self.gas_price) / gwei:.4f} Gwei"


class FeePolicy:
    """
    Picks the fee parameters for the whole session.

    Preference order:

    1. EIP-1559 fees from the node, with the priority fee scaled up for headroom
    2. Legacy gas price from the node, scaled by a safety multiplier
    3. The configured default gas price
    """
    def __init__(self, chain, config=settings):
        self.chain = chain
        self.priority_multiplier = Decimal(config.PRIORITY_FEE_MULTIPLIER)
        self.legacy_multiplier = Decimal(config.LEGACY_GAS_PRICE_MULTIPLIER)
        self.default_gas_price = (
            to_base_units(config.DEFAULT_GAS_PRICE_GWEI, GWEI_DECIMALS)
            if config.DEFAULT_GAS_PRICE_GWEI
            else None
        )

    async def compute_fee_parameters(self) -> FeeParameters:
        try:
            estimate = await self.chain.get_fee_estimate()
        except Exception as e:
            log.warning("FEE_ESTIMATE_UNAVAILABLE", error=str(e))
            estimate = FeeEstimate()

        if estimate.max_fee_per_gas is not None and estimate.max_priority_fee_per_gas is not None:
            priority = int(Decimal(estimate.max_priority_fee_per_gas) * self.priority_multiplier)
            # Raise the ceiling by the same tip increase so max_fee >= priority holds.
            max_fee = estimate.max_fee_per_gas + (priority - estimate.max_priority_fee_per_gas)
            fees = FeeParameters(max_fee_per_gas=max_fee, max_priority_fee_per_gas=priority)
            log.info("FEE_PARAMETERS_EIP1559", fees=fees.describe())
        elif estimate.gas_price:
            fees = FeeParameters(gas_price=int(Decimal(estimate.gas_price) * self.legacy_multiplier))
            log.warning("FEE_PARAMETERS_LEGACY", fees=fees.describe())
        elif self.default_gas_price:
            fees = FeeParameters(gas_price=self.default_gas_price)
            log.error("FEE_PARAMETERS_DEFAULT", fees=fees.describe())
        else:
            log.critical("FEE_PARAMETERS_UNAVAILABLE")
            raise FeeUnavailableError("No fee data from the node and no default gas price configured.")
        return fees
