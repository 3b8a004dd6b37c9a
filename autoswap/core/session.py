# /autoswap/core/session.py
# Drives one full session: fees, pre-flight checks, every pair, drain, summary.
import asyncio

from autoswap.adapters.dex import DexAdapter
from autoswap.core.assets import to_base_units
from autoswap.core.config import settings
from autoswap.core.errors import InsufficientGasReserveError
from autoswap.core.fee_policy import FeeParameters, FeePolicy
from autoswap.core.logger import bind_session, get_logger
from autoswap.core.sequencer import TransactionSequencer
from autoswap.core.state import BalanceSnapshot, SessionState
from autoswap.strategies.base import CycleTiming
from autoswap.strategies.pair_cycle import PairCycleStrategy
from autoswap.strategies.replenish import ReplenishStrategy

log = get_logger(__name__)


def build_summary(state: SessionState, assets, network: str) -> str:
    """Plain-text report: per-pair tallies, balances before and after, completion banner."""
    totals = state.totals
    lines = [f"AutoSwap session finished on {network}", f"Session: {state.session_id}", ""]
    for pair, result in state.pair_results.items():
        lines.append(f"{pair}: success {result.success}, failure {result.failure}")
    lines.append(f"Total: success {totals.success}, failure {totals.failure}")
    if state.replenishments:
        lines.append("")
        for entry in state.replenishments:
            lines.append(f"Replenish {entry['asset']} ({entry['pair']}): {'ok' if entry['ok'] else 'failed'}")
    for title, snapshot in (("Balances before", state.balances_before), ("Balances after", state.balances_after)):
        if snapshot is not None:
            lines.append("")
            lines.append(f"{title}:")
            lines.extend(f"  {row}" for row in snapshot.lines(assets))
    lines.append("")
    lines.append("ALL TRANSACTIONS COMPLETED")
    return "\n".join(lines)


class SessionDriver:
    """
    Wires fee policy, sequencer and strategies together for one run.
    All transactions of the run share a single sequencer and therefore a
    single nonce counter.
    """
    def __init__(self, chain, notifier, config=settings, timing: CycleTiming | None = None):
        self.chain = chain
        self.notifier = notifier
        self.config = config
        self.assets = config.asset_book()
        self.pairs = config.pair_configs(self.assets)
        self.timing = timing or CycleTiming.from_settings(config)
        self.sequencer = TransactionSequencer(chain)
        self.state = SessionState()
        self.fees: FeeParameters | None = None
        self.dex: DexAdapter | None = None

    async def run(self) -> SessionState:
        bind_session(str(self.state.session_id))
        log.info("SESSION_STARTING", network=self.config.NETWORK_NAME, address=self.chain.address,
                 pairs=[p.name for p in self.pairs])

        self.fees = await FeePolicy(self.chain, self.config).compute_fee_parameters()
        self.dex = DexAdapter(self.chain, self.sequencer, self.fees, self.assets,
                              self.config.ROUTER_ADDRESS, self.config)

        before = await self.snapshot_balances("SESSION_START")
        self.state = self.state.with_balances(before=before)
        self.check_gas_reserve(before)

        replenisher = ReplenishStrategy(self.dex, self.assets, self.config.REPLENISH_PRIORITY, self.timing)
        for index, pair in enumerate(self.pairs, 1):
            if self.config.REPLENISH_ENABLED:
                for asset in (pair.asset_a, pair.asset_b):
                    ok = await replenisher.run(asset)
                    self.state = self.state.record_replenishment(pair.name, asset.symbol, ok)

            strategy = PairCycleStrategy(self.dex, pair, self.timing)
            try:
                result = await strategy.run()
            except Exception as e:
                await strategy.abort(str(e))
                raise
            self.state = self.state.record_pair_result(pair.name, result)
            await self.report_balances(f"AFTER_{pair.name}")

            if index < len(self.pairs) and self.config.PAIR_DELAY_SECONDS:
                await asyncio.sleep(self.config.PAIR_DELAY_SECONDS)

        log.info("SESSION_DRAINING_QUEUE", pending=self.sequencer.pending)
        await self.sequencer.drain()
        await self.wait_for_pending_nonce()

        after = await self.report_balances("SESSION_END")
        self.state = self.state.with_balances(after=after)
        totals = self.state.totals
        log.info("SESSION_COMPLETE", success=totals.success, failure=totals.failure)
        await self.notifier.notify(build_summary(self.state, self.assets, self.config.NETWORK_NAME))
        return self.state

    async def snapshot_balances(self, label: str) -> BalanceSnapshot:
        address = self.chain.address
        native = await self.chain.get_balance(address, None)
        tokens = {}
        for symbol, asset in self.assets.items():
            tokens[symbol] = await self.chain.get_balance(address, asset.address)
        snapshot = BalanceSnapshot(native=native, tokens=tokens)
        log.info("WALLET_BALANCES", label=label, address=address, balances=snapshot.lines(self.assets))
        return snapshot

    async def report_balances(self, label: str) -> BalanceSnapshot | None:
        """Like snapshot_balances, but a failed read is logged and yields None."""
        try:
            return await self.snapshot_balances(label)
        except Exception as e:
            log.error("WALLET_BALANCES_FAILED", label=label, error=str(e))
            return None

    def check_gas_reserve(self, snapshot: BalanceSnapshot):
        minimum = to_base_units(self.config.MIN_NATIVE_RESERVE)
        if snapshot.native <= 0 or snapshot.native < minimum:
            log.critical("INSUFFICIENT_GAS_RESERVE", native=snapshot.native, minimum=minimum)
            raise InsufficientGasReserveError(
                f"Native balance {snapshot.native} is below the gas reserve minimum {minimum}."
            )

    async def wait_for_pending_nonce(self):
        """Polls the chain until its pending nonce reaches the locally tracked next nonce."""
        target = self.sequencer.next_nonce
        if target is None:
            log.info("PENDING_NONCE_WAIT_SKIPPED")
            return
        pending = await self.chain.get_pending_transaction_count(self.chain.address)
        while pending < target:
            log.info("WAITING_FOR_LAST_TRANSACTIONS", network_nonce=pending, target_nonce=target)
            await asyncio.sleep(self.config.PENDING_POLL_SECONDS)
            pending = await self.chain.get_pending_transaction_count(self.chain.address)

    async def close(self):
        await self.sequencer.close()
