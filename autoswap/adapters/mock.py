# /autoswap/adapters/mock.py
# In-memory chain and notifier used by tests and dry runs.
# Mirrors node behaviour the sequencer depends on: strict nonce checks on
# submission, and reverts that still consume the nonce.
import asyncio
from collections import deque
from typing import Dict, List, Tuple

from autoswap.core.errors import ErrorKind, TransactionError
from autoswap.core.fee_policy import FeeEstimate, FeeParameters
from autoswap.core.logger import get_logger
from autoswap.core.tx import CallSpec, Receipt, TransactionManager

log = get_logger(__name__)

MOCK_WALLET = "0x" + "9" * 40
MOCK_GAS_PRICE = 10**9


def _key(address: str | None) -> str | None:
    return address.lower() if address else None


class MockChainClient(TransactionManager):
    """
    A mock chain client. Balances, allowances and swap outputs are set by the
    test; approve/exactInputSingle calls take effect when confirmed.
    """
    def __init__(self, address: str = MOCK_WALLET, start_nonce: int = 0, fee_estimate: FeeEstimate | None = None):
        self.address = address
        self.chain_nonce = start_nonce
        self.fee_estimate = fee_estimate or FeeEstimate(gas_price=MOCK_GAS_PRICE)
        self.balances: Dict[Tuple[str | None, str | None], int] = {}
        self.allowances: Dict[Tuple[str, str, str], int] = {}
        self.swap_outputs: Dict[Tuple[str, str], int] = {}
        self.sent_transactions: List[dict] = []
        self.events: List[tuple] = []
        self.nonce_reads = 0
        self.in_flight = 0
        self.max_in_flight = 0
        self._failures: deque = deque()
        self._pending: Dict[str, dict] = {}
        self.is_initialized = True
        log.info("MOCK_CHAIN_CLIENT_INITIALIZED", address=self.address)

    async def initialize(self):
        return None

    # --- test setup -------------------------------------------------

    def set_balance(self, token: str | None, amount: int, owner: str | None = None):
        self.balances[(_key(owner or self.address), _key(token))] = amount

    def set_allowance(self, token: str, spender: str, amount: int):
        self.allowances[(_key(token), _key(self.address), _key(spender))] = amount

    def set_swap_output(self, token_in: str, token_out: str, amount_out: int):
        self.swap_outputs[(_key(token_in), _key(token_out))] = amount_out

    def fail_next(self, kind: ErrorKind = ErrorKind.REVERTED, stage: str = "confirm", message: str = "forced failure"):
        """Queues a failure for the next submission ("submit") or confirmation ("confirm")."""
        self._failures.append((stage, kind, message))

    @property
    def submitted_nonces(self) -> List[int]:
        return [tx["nonce"] for tx in self.sent_transactions]

    def calls(self, function: str) -> List[CallSpec]:
        return [tx["call"] for tx in self.sent_transactions if tx["call"].function == function]

    # --- chain client boundary -------------------------------------

    async def get_balance(self, address: str, token: str | None = None) -> int:
        return self.balances.get((_key(address), _key(token)), 0)

    async def get_allowance(self, token: str, owner: str, spender: str) -> int:
        return self.allowances.get((_key(token), _key(owner), _key(spender)), 0)

    async def get_pending_transaction_count(self, address: str) -> int:
        self.nonce_reads += 1
        return self.chain_nonce

    async def get_fee_estimate(self) -> FeeEstimate:
        return self.fee_estimate

    def _take_failure(self, stage: str):
        if self._failures and self._failures[0][0] == stage:
            return self._failures.popleft()
        return None

    async def submit_transaction(self, call: CallSpec, nonce: int, fees: FeeParameters) -> str:
        await asyncio.sleep(0)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        self.events.append(("submit", nonce, call.function))

        failure = self._take_failure("submit")
        if failure is None and nonce < self.chain_nonce:
            failure = ("submit", ErrorKind.NONCE_TOO_LOW, f"nonce too low: next nonce {self.chain_nonce}, tx nonce {nonce}")
        if failure is None and nonce > self.chain_nonce:
            failure = ("submit", ErrorKind.NONCE_TOO_HIGH, f"nonce too high: next nonce {self.chain_nonce}, tx nonce {nonce}")
        if failure is not None:
            self.in_flight -= 1
            _, kind, message = failure
            raise TransactionError(message, kind=kind)

        self.chain_nonce += 1
        tx_hash = "0x" + format(len(self.sent_transactions) + 1, "064x")
        record = {"hash": tx_hash, "nonce": nonce, "call": call, "fees": fees}
        self.sent_transactions.append(record)
        self._pending[tx_hash] = record
        log.info("MOCK_TRANSACTION_SENT", tx_hash=tx_hash, nonce=nonce, function=call.function)
        return tx_hash

    async def await_confirmation(self, tx_hash: str) -> Receipt:
        await asyncio.sleep(0)
        record = self._pending.pop(tx_hash)
        try:
            failure = self._take_failure("confirm")
            if failure is not None:
                _, kind, message = failure
                raise TransactionError(message, kind=kind, tx_hash=tx_hash)
            self._apply(record["call"], tx_hash)
        finally:
            self.in_flight -= 1
            self.events.append(("confirm", record["nonce"], record["call"].function))
        gas_used = 50_000 if record["call"].function == "approve" else 120_000
        return Receipt(tx_hash=tx_hash, gas_used=gas_used, effective_gas_price=MOCK_GAS_PRICE)

    def _apply(self, call: CallSpec, tx_hash: str):
        owner = _key(self.address)
        if call.function == "approve":
            self.allowances[(_key(call.to), owner, _key(call.args["spender"]))] = call.args["amount"]
            return
        if call.function == "exactInputSingle":
            token_in, token_out = _key(call.args["tokenIn"]), _key(call.args["tokenOut"])
            amount_in = call.args["amountIn"]
            allowance_key = (token_in, owner, _key(call.to))
            amount_out = self.swap_outputs.get((token_in, token_out))
            if self.allowances.get(allowance_key, 0) < amount_in:
                raise TransactionError("execution reverted: STF", kind=ErrorKind.REVERTED, tx_hash=tx_hash)
            if self.balances.get((owner, token_in), 0) < amount_in:
                raise TransactionError("execution reverted: insufficient balance", kind=ErrorKind.REVERTED, tx_hash=tx_hash)
            if amount_out is None or amount_out < call.args["amountOutMinimum"]:
                raise TransactionError("execution reverted: Too little received", kind=ErrorKind.REVERTED, tx_hash=tx_hash)
            self.allowances[allowance_key] -= amount_in
            self.balances[(owner, token_in)] -= amount_in
            self.balances[(owner, token_out)] = self.balances.get((owner, token_out), 0) + amount_out
            return
        raise TransactionError(f"unsupported call {call.function}", kind=ErrorKind.OTHER, tx_hash=tx_hash)


class MockNotifier:
    def __init__(self):
        self.messages: List[str] = []

    async def notify(self, text: str) -> bool:
        self.messages.append(text)
        return True
