# /main.py
# Runs one rebalancing session end to end and exits: 0 on success, 1 on a fatal error.
import asyncio
import sys

import sentry_sdk
from aiohttp import web

from autoswap.adapters.notifier import TelegramNotifier
from autoswap.core.config import settings
from autoswap.core.config_validator import validate as validate_config
from autoswap.core.logger import configure_logging, get_logger
from autoswap.core.session import SessionDriver
from autoswap.core.tx import TransactionManager

log = get_logger("AutoSwap.System")

_driver: SessionDriver | None = None


async def healthz(request):
    """Provides a JSON health status for the running session."""
    if _driver is None:
        return web.json_response({"status": "starting"})
    totals = _driver.state.totals
    return web.json_response({
        "status": "ok",
        "session_id": str(_driver.state.session_id),
        "pending_transactions": _driver.sequencer.pending,
        "next_nonce": _driver.sequencer.next_nonce,
        "success": totals.success,
        "failure": totals.failure,
    })


async def start_health_server(port: int) -> web.AppRunner:
    app = web.Application()
    app.add_routes([web.get("/healthz", healthz)])
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "0.0.0.0", port)
    await site.start()
    log.info("HEALTHCHECK_SERVER_STARTED", port=port)
    return runner


async def main(config=settings) -> int:
    global _driver
    configure_logging()
    notifier = TelegramNotifier()
    runner = None
    tx_manager = None
    try:
        validate_config(config)
        log.info("AUTOSWAP_SESSION_STARTING", network=config.NETWORK_NAME)

        tx_manager = TransactionManager()
        await tx_manager.initialize()

        if config.HEALTH_PORT:
            runner = await start_health_server(config.HEALTH_PORT)

        _driver = SessionDriver(tx_manager, notifier, config)
        try:
            await _driver.run()
        finally:
            await _driver.close()
        return 0
    except Exception as e:
        log.critical("SESSION_FATAL_ERROR", error=str(e), exc_info=True)
        sentry_sdk.capture_exception(e)
        await notifier.notify(f"AutoSwap session failed on {config.NETWORK_NAME}: {e}")
        return 1
    finally:
        if tx_manager is not None:
            tx_manager.close()
        if runner is not None:
            await runner.cleanup()
        log.warning("SYSTEM_SHUTDOWN_COMPLETE")


if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        sys.exit(1)
