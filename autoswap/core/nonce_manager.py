# /autoswap/core/nonce_manager.py
# In-memory account nonce. None means unknown: fetch from the chain before next use.
from autoswap.core.logger import NONCE_FETCHES, NONCE_RESETS, get_logger

log = get_logger(__name__)


class NonceManager:
    def __init__(self, chain, address: str):
        self.chain = chain
        self.address = address
        self.nonce: int | None = None

    async def get(self) -> int:
        """Returns the next nonce, reading the pending-inclusive count only when unknown."""
        if self.nonce is None:
            self.nonce = await self.chain.get_pending_transaction_count(self.address)
            NONCE_FETCHES.inc()
            log.info("NONCE_FROM_RPC", nonce=self.nonce)
        return self.nonce

    def bump(self):
        if self.nonce is None:
            # Invalidated while the task was in flight; the next task refetches.
            return
        self.nonce += 1
        log.debug("NONCE_BUMPED", nonce=self.nonce)

    def reset(self, reason: str):
        if self.nonce is not None:
            NONCE_RESETS.inc()
            log.warning("NONCE_RESET", previous=self.nonce, reason=reason)
        self.nonce = None
