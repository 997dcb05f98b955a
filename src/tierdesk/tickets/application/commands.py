"""
Command Dispatcher
==================

Worker pool executing ticket lifecycle commands.

Commands are sharded by ticket id onto N worker tasks, each draining its
own queue one command at a time. Commands for one ticket therefore run in
submission order and never concurrently; commands for different tickets
may run in parallel.

A handler must never await another command on its own shard, that worker
is the one that would run it.
"""

import asyncio
import zlib
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional

from tierdesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

CommandHandler = Callable[[], Awaitable[Any]]


@dataclass
class Command:
    key: str
    name: str
    handler: CommandHandler
    future: asyncio.Future


class CommandDispatcher:
    """Per-key ordered execution on a fixed pool of asyncio workers."""

    def __init__(self, worker_count: int = 4):
        if worker_count < 1:
            raise ValueError("worker_count must be at least 1")
        self.worker_count = worker_count
        self._queues: List[asyncio.Queue] = []
        self._workers: List[asyncio.Task] = []
        self._pending = 0
        self._idle: Optional[asyncio.Event] = None

    @property
    def running(self) -> bool:
        return bool(self._workers)

    @property
    def pending(self) -> int:
        return self._pending

    def start(self) -> None:
        if self.running:
            return
        self._idle = asyncio.Event()
        self._idle.set()
        self._queues = [asyncio.Queue() for _ in range(self.worker_count)]
        self._workers = [
            asyncio.create_task(self._worker(i, q), name=f"ticket-worker-{i}")
            for i, q in enumerate(self._queues)
        ]
        logger.info("Command dispatcher started", extra={"worker_count": self.worker_count})

    async def stop(self) -> None:
        """Finish queued commands, then stop the workers."""
        if not self.running:
            return
        for queue in self._queues:
            queue.put_nowait(None)
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        self._queues = []
        logger.info("Command dispatcher stopped")

    def shard_for(self, key: str) -> int:
        return zlib.crc32(key.encode("utf-8")) % self.worker_count

    def submit_nowait(self, key: str, handler: CommandHandler, name: str = "command") -> asyncio.Future:
        """Enqueue a command; the returned future carries its result or exception."""
        if not self.running:
            raise RuntimeError("Command dispatcher is not running")

        future = asyncio.get_running_loop().create_future()
        self._pending += 1
        self._idle.clear()
        self._queues[self.shard_for(key)].put_nowait(Command(key, name, handler, future))
        return future

    async def submit(self, key: str, handler: CommandHandler, name: str = "command") -> Any:
        """Enqueue a command and wait for its result."""
        return await self.submit_nowait(key, handler, name)

    def submit_background(self, key: str, handler: CommandHandler, name: str = "command") -> asyncio.Future:
        """Enqueue a command nobody awaits; failures are logged."""
        future = self.submit_nowait(key, handler, name)
        future.add_done_callback(self._log_background_failure)
        return future

    async def join(self) -> None:
        """Wait until every submitted command has finished."""
        if self._idle is not None:
            await self._idle.wait()

    @staticmethod
    def _log_background_failure(future: asyncio.Future) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.error(
                "Background command failed",
                extra={"error_type": type(exc).__name__, "error": str(exc)}
            )

    async def _worker(self, index: int, queue: asyncio.Queue) -> None:
        while True:
            command = await queue.get()
            if command is None:
                queue.task_done()
                return

            try:
                if not command.future.cancelled():
                    try:
                        result = await command.handler()
                    except Exception as e:
                        logger.debug(
                            "Command raised",
                            extra={"command": command.name, "key": command.key, "worker": index, "error": str(e)}
                        )
                        if not command.future.done():
                            command.future.set_exception(e)
                    else:
                        if not command.future.done():
                            command.future.set_result(result)
            finally:
                queue.task_done()
                self._pending -= 1
                if self._pending == 0:
                    self._idle.set()
