# /autoswap/core/config_validator.py
# Run at startup: presence checks only, wrong values surface as on-chain failures.
from autoswap.core.config import ASSET_SYMBOLS, Settings, settings
from autoswap.core.errors import ConfigurationError
from autoswap.core.logger import log

REQUIRED_VARS = ["EXECUTOR_PRIVATE_KEY", "ROUTER_ADDRESS"] + [f"{s}_ADDRESS" for s in ASSET_SYMBOLS]


def validate(config: Settings = settings):
    log.info("--- CONFIG VALIDATION START ---")
    errors = []

    for var in REQUIRED_VARS:
        if not getattr(config, var, None):
            errors.append(f"Missing required configuration: {var}")
    if not config.rpc_endpoints:
        errors.append("Missing required configuration: RPC_URL")
    if config.CYCLES_PER_PAIR < 1:
        errors.append("CYCLES_PER_PAIR must be at least 1")

    if errors:
        for error in errors:
            log.critical(error)
        raise ConfigurationError("System configuration is incomplete. Halting.")

    # Pair and asset definitions must resolve against each other.
    config.pair_configs(config.asset_book())
    log.info("--- CONFIG VALIDATION PASSED ---")


if __name__ == "__main__":
    validate()
