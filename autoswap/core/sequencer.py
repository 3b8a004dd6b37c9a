# /autoswap/core/sequencer.py
"""
Serializes every state-changing transaction of one account.

Each queued task walks ``NeedNonce -> Submitting -> AwaitingConfirmation ->
{Confirmed, Failed}``. A single worker coroutine drains the FIFO, so the next
task starts only after the previous one reached a terminal state. Confirmed
tasks advance the nonce by one; any failure drops it so the next task
refetches it from the chain. Outcomes are returned as booleans, never raised.
"""
import asyncio
import contextlib
from typing import Awaitable, Callable, NamedTuple

from autoswap.core.logger import TX_TASKS, get_logger
from autoswap.core.nonce_manager import NonceManager

log = get_logger(__name__)

TransactionTask = Callable[[int], Awaitable[bool]]


class _QueuedTask(NamedTuple):
    task: TransactionTask
    description: str
    future: asyncio.Future


class TransactionSequencer:
    def __init__(self, chain, nonce_manager: NonceManager | None = None):
        self.chain = chain
        self.nonce_manager = nonce_manager or NonceManager(chain, chain.address)
        self._queue: asyncio.Queue = asyncio.Queue()
        self._worker: asyncio.Task | None = None
        self.submitted = 0
        self.confirmed = 0
        self.failed = 0

    @property
    def next_nonce(self) -> int | None:
        return self.nonce_manager.nonce

    @property
    def pending(self) -> int:
        """Tasks queued but not yet finished, including the one in flight."""
        return self.submitted - self.confirmed - self.failed

    def enqueue(self, task: TransactionTask, description: str) -> asyncio.Future:
        """Appends *task* to the FIFO; the returned future resolves to its outcome."""
        future = asyncio.get_running_loop().create_future()
        self._queue.put_nowait(_QueuedTask(task, description, future))
        self.submitted += 1
        log.info("TX_TASK_QUEUED", task=description, position=self._queue.qsize())
        self._ensure_worker()
        return future

    async def submit(self, task: TransactionTask, description: str) -> bool:
        return await self.enqueue(task, description)

    def invalidate_nonce(self, reason: str = "external signal"):
        self.nonce_manager.reset(reason)

    async def drain(self):
        """Waits until every queued task reached a terminal state."""
        await self._queue.join()

    async def close(self):
        if self._worker is not None and not self._worker.done():
            self._worker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._worker
        self._worker = None

    def _ensure_worker(self):
        if self._worker is None or self._worker.done():
            self._worker = asyncio.get_running_loop().create_task(self._drain_loop())

    async def _drain_loop(self):
        while True:
            item = await self._queue.get()
            try:
                outcome = await self._process(item)
                if not item.future.done():
                    item.future.set_result(outcome)
            finally:
                self._queue.task_done()

    async def _process(self, item: _QueuedTask) -> bool:
        log.info("TX_TASK_PROCESSING", task=item.description)
        try:
            nonce = await self.nonce_manager.get()
        except Exception as e:
            log.error("TX_TASK_NONCE_UNAVAILABLE", task=item.description, error=str(e))
            success = False
        else:
            try:
                success = bool(await item.task(nonce))
            except Exception as e:
                log.error("TX_TASK_RAISED", task=item.description, nonce=nonce, error=str(e), exc_info=True)
                success = False

        if success:
            self.nonce_manager.bump()
            self.confirmed += 1
            TX_TASKS.labels("confirmed").inc()
            log.info("TX_TASK_CONFIRMED", task=item.description, next_nonce=self.next_nonce)
        else:
            # Reverted (nonce consumed) and rejected (nonce free) look the same from here.
            self.nonce_manager.reset(f"task failed: {item.description}")
            self.failed += 1
            TX_TASKS.labels("failed").inc()
            log.warning("TX_TASK_FAILED", task=item.description)
        return success
