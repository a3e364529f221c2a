import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Optional

from app.logging_config import get_logger

logger = get_logger("scheduler")

SleepFunc = Callable[[float], Awaitable[None]]


class ReplyScheduler:
    """Orders turns per conversation and delivers replies after the configured delay.

    Turns for the same conversation run one at a time under a per-conversation lock.
    Different conversations never wait on each other.
    """

    def __init__(self, sleep: SleepFunc = asyncio.sleep):
        self._sleep = sleep
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}
        self._pending: dict[str, asyncio.Task] = {}
        self._cancelled: set[str] = set()

    @asynccontextmanager
    async def turn(self, conversation_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(conversation_id, asyncio.Lock())
        self._lock_users[conversation_id] = self._lock_users.get(conversation_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[conversation_id] -= 1
            if self._lock_users[conversation_id] == 0:
                del self._lock_users[conversation_id]
                del self._locks[conversation_id]

    async def _run_after(self, conversation_id: str, delay: float, deliver: Callable[[], None]) -> bool:
        try:
            if delay > 0:
                await self._sleep(delay)
        except asyncio.CancelledError:
            if conversation_id in self._cancelled:
                return False
            raise
        deliver()
        return True

    async def deliver(self, conversation_id: str, delay: float, deliver: Callable[[], None]) -> bool:
        """Run ``deliver`` after ``delay`` seconds. Returns False if the delivery was cancelled."""
        task = asyncio.create_task(self._run_after(conversation_id, delay, deliver))
        self._pending[conversation_id] = task
        try:
            delivered = await task
        except asyncio.CancelledError:
            # Cancelled before the task got to its first await.
            if not task.cancelled() or conversation_id not in self._cancelled:
                raise
            delivered = False
        finally:
            if self._pending.get(conversation_id) is task:
                del self._pending[conversation_id]
            self._cancelled.discard(conversation_id)
        if not delivered:
            logger.info("Reply delivery cancelled", extra={"context": {"conversation_id": conversation_id}})
        return delivered

    def pending(self, conversation_id: str) -> Optional[asyncio.Task]:
        return self._pending.get(conversation_id)

    def cancel(self, conversation_id: str) -> bool:
        """Cancel the reply waiting to be delivered for this conversation, if any."""
        task = self._pending.get(conversation_id)
        if task is None or task.done():
            return False
        self._cancelled.add(conversation_id)
        task.cancel()
        return True

    async def drain(self) -> None:
        """Wait for every pending delivery, used on shutdown."""
        tasks = list(self._pending.values())
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
