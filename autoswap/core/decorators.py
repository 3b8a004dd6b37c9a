# /autoswap/core/decorators.py
# Retry policy for idempotent chain reads (balances, allowances, pending nonce).
# Submissions and receipt waits must stay unwrapped: a resend could double-spend a nonce.
from tenacity import RetryCallState, retry, stop_after_attempt, wait_exponential

from autoswap.core.logger import get_logger

log = get_logger(__name__)

READ_ATTEMPTS = 3


def _log_read_retry(retry_state: RetryCallState):
    log.warning(
        "RPC_READ_RETRY",
        call=getattr(retry_state.fn, "__qualname__", str(retry_state.fn)),
        attempt=retry_state.attempt_number,
        wait_seconds=round(retry_state.next_action.sleep, 2) if retry_state.next_action else None,
        error=str(retry_state.outcome.exception()),
    )


retriable_network_call = retry(
    stop=stop_after_attempt(READ_ATTEMPTS),
    wait=wait_exponential(multiplier=1, min=1, max=5),
    before_sleep=_log_read_retry,
    reraise=True,
)
