"""
Serialized table runner.

Every input a table sees (player actions, timer firings, sweeps and
orchestrator calls) goes through one asyncio queue and is handled to
completion before the next one is taken.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Tuple

from .scheduler import ActionMessage


@dataclass(frozen=True)
class SweepTick:
    """Ask the table to reap idle lobby seats."""


@dataclass
class TableCall:
    """Run `fn(*args)` on the table's turn and resolve `future` with the result."""
    fn: Callable[..., Any]
    args: Tuple[Any, ...] = ()
    future: Optional[asyncio.Future] = field(default=None, compare=False)


_STOP = object()


class TableRunner:
    """Owns the inbox of one table. The machine's timers deliver into it too."""

    def __init__(self, machine):
        self.machine = machine
        self.queue: asyncio.Queue = asyncio.Queue()
        self.running = False
        self.processed = 0
        machine.set_inbox(self.deliver)

    @property
    def table_id(self) -> str:
        return self.machine.table_id

    def deliver(self, message: Any):
        self.queue.put_nowait(message)

    def submit(self, participant_id: str, action: str, payload: Optional[Dict[str, Any]] = None):
        self.deliver(ActionMessage(participant_id, action, payload or {}))

    def call(self, fn: Callable[..., Any], *args) -> asyncio.Future:
        """Queue a direct call (join, leave, disconnect...) behind pending messages."""
        future = asyncio.get_running_loop().create_future()
        self.deliver(TableCall(fn, args, future))
        return future

    def _handle(self, message: Any):
        if isinstance(message, SweepTick):
            removed = self.machine.sweep_inactive()
            if removed:
                logging.info(f"[{self.table_id}] Swept {len(removed)} inactive seat(s)")
            return
        if isinstance(message, TableCall):
            try:
                result = message.fn(*message.args)
            except Exception as e:
                if message.future is not None and not message.future.done():
                    message.future.set_exception(e)
                    return
                raise
            if message.future is not None and not message.future.done():
                message.future.set_result(result)
            return
        self.machine.dispatch(message)

    async def run(self):
        """Process messages until stop() is called."""
        self.running = True
        logging.info(f"[{self.table_id}] Table runner started ({self.machine.game_type})")
        try:
            while True:
                message = await self.queue.get()
                try:
                    if message is _STOP:
                        break
                    self._handle(message)
                    self.processed += 1
                except Exception:
                    logging.exception(f"[{self.table_id}] Unhandled error while processing {message!r}")
                    self.machine.force_end('internal error')
                finally:
                    self.queue.task_done()
        finally:
            self.running = False
            logging.info(f"[{self.table_id}] Table runner stopped")

    def stop(self):
        self.deliver(_STOP)

    async def sweep_loop(self, interval: float):
        """Periodically queue an inactivity sweep."""
        while True:
            await asyncio.sleep(interval)
            self.deliver(SweepTick())
