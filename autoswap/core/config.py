# /autoswap/core/config.py
import sys
from decimal import Decimal
from typing import Dict, List

from pydantic import SecretStr
from pydantic_settings import BaseSettings

from autoswap.core.assets import AssetConfig, PairConfig, to_base_units
from autoswap.core.errors import ConfigurationError

ASSET_SYMBOLS = ("USDT", "ETH", "BTC")


class Settings(BaseSettings):
    # Wallet & RPC
    EXECUTOR_PRIVATE_KEY: SecretStr | None = None
    RPC_URL: SecretStr | None = None
    rpc_urls: List[str] = []
    CHAIN_ID: int | None = None
    NETWORK_NAME: str = "0G Newton Testnet"

    # Contracts
    ROUTER_ADDRESS: str | None = None
    USDT_ADDRESS: str | None = None
    ETH_ADDRESS: str | None = None
    BTC_ADDRESS: str | None = None
    ASSET_DECIMALS: int = 18

    # Fixed forward amounts and reserve floors, in human units
    USDT_SWAP_AMOUNT: Decimal = Decimal("100")
    ETH_SWAP_AMOUNT: Decimal = Decimal("0.03")
    BTC_SWAP_AMOUNT: Decimal = Decimal("0.003")
    USDT_MIN_RESERVE: Decimal = Decimal("100")
    ETH_MIN_RESERVE: Decimal = Decimal("0.02")
    BTC_MIN_RESERVE: Decimal = Decimal("0.001")
    MIN_NATIVE_RESERVE: Decimal = Decimal("0")

    # Session plan
    SWAP_PAIRS: List[str] = ["USDT/ETH", "USDT/BTC", "BTC/ETH"]
    CYCLES_PER_PAIR: int = 5
    REPLENISH_ENABLED: bool = True
    REPLENISH_PRIORITY: List[str] = ["USDT", "ETH", "BTC"]

    # Swap call
    SWAP_FEE_TIER: int = 3000
    SWAP_DEADLINE_SECONDS: int = 120
    SWAP_AMOUNT_OUT_MINIMUM: int = 0
    APPROVAL_GAS_LIMIT: int = 100_000
    SWAP_GAS_LIMIT: int = 150_000
    CONFIRMATION_TIMEOUT_SECONDS: int = 180

    # Fee policy
    PRIORITY_FEE_MULTIPLIER: Decimal = Decimal("1.1")
    LEGACY_GAS_PRICE_MULTIPLIER: Decimal = Decimal("1.2")
    DEFAULT_GAS_PRICE_GWEI: Decimal | None = Decimal("2")

    # Pacing (seconds)
    CYCLE_DELAY_MIN_SECONDS: float = 5
    CYCLE_DELAY_MAX_SECONDS: float = 10
    SKIP_DELAY_MIN_SECONDS: float = 1
    SKIP_DELAY_MAX_SECONDS: float = 3
    APPROVAL_SETTLE_SECONDS: float = 3
    BALANCE_SETTLE_POLL_SECONDS: float = 2
    BALANCE_SETTLE_TIMEOUT_SECONDS: float = 20
    PAIR_DELAY_SECONDS: float = 10
    PENDING_POLL_SECONDS: float = 15

    # Notifications
    TELEGRAM_BOT_TOKEN: SecretStr | None = None
    TELEGRAM_CHAT_ID: str | None = None

    # Operational Settings
    LOG_LEVEL: str = "INFO"
    LOG_SIGNING_KEY: SecretStr | None = None
    SENTRY_DSN: SecretStr | None = None
    SESSION_DIR: str = "/tmp/autoswap_session"
    HEALTH_PORT: int | None = None

    @property
    def rpc_endpoints(self) -> List[str]:
        """All RPC endpoints, the explicit *RPC_URL* first."""
        urls = []
        if self.RPC_URL is not None:
            urls.append(self.RPC_URL.get_secret_value())
        urls.extend(u for u in self.rpc_urls if u not in urls)
        return urls

    def asset_book(self) -> Dict[str, AssetConfig]:
        book = {}
        for symbol in ASSET_SYMBOLS:
            address = getattr(self, f"{symbol}_ADDRESS")
            if not address:
                raise ConfigurationError(f"Missing required configuration: {symbol}_ADDRESS")
            book[symbol] = AssetConfig(
                symbol=symbol,
                address=address,
                decimals=self.ASSET_DECIMALS,
                swap_amount=to_base_units(getattr(self, f"{symbol}_SWAP_AMOUNT"), self.ASSET_DECIMALS),
                min_reserve=to_base_units(getattr(self, f"{symbol}_MIN_RESERVE"), self.ASSET_DECIMALS),
            )
        return book

    def pair_configs(self, assets: Dict[str, AssetConfig]) -> List[PairConfig]:
        pairs = []
        for name in self.SWAP_PAIRS:
            symbols = [s.strip().upper() for s in name.split("/")]
            if len(symbols) != 2 or symbols[0] == symbols[1] or not all(s in assets for s in symbols):
                raise ConfigurationError(f"Invalid swap pair: {name!r}")
            asset_a, asset_b = assets[symbols[0]], assets[symbols[1]]
            pairs.append(PairConfig(
                name="/".join(symbols),
                asset_a=asset_a,
                asset_b=asset_b,
                amount=asset_a.swap_amount,
                floor=asset_b.min_reserve,
                cycles=self.CYCLES_PER_PAIR,
            ))
        return pairs

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


try:
    settings = Settings()
except Exception as e:
    # structlog is not configured yet; it reads these settings.
    print("FAILED_TO_LOAD_SETTINGS", e, file=sys.stderr)
    sys.exit(1)
