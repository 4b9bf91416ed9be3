"""Head-update distribution.

One upstream source per adapter feeds any number of registered handlers.
The source starts on the first registration and runs until the adapter is
closed. A source that ends on its own is started again by the next
registration. Each handler is notified in its own task, so a slow or failing
handler never holds up the others or the next head update.
"""

import asyncio
import inspect
import logging
from enum import Enum
from typing import AsyncIterator, Awaitable, Callable, Optional, Union

from . import metrics
from .api.types import ChainHead, HeadEvent
from .exceptions import Eth2ClientError

logger = logging.getLogger(__name__)

HeadHandler = Callable[[HeadEvent], Union[Awaitable[None], None]]
Emit = Callable[[HeadEvent], Awaitable[list]]
HeadSource = Callable[[Emit], Awaitable[None]]


class DistributorState(str, Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    CLOSED = "closed"


class HeadUpdateDistributor:
    """Fans head updates from one source out to registered handlers.

    Args:
        source: coroutine function that runs for the life of the stream and
            awaits ``emit(event)`` for every new head
        backend: backend name used for metrics and logs
        log: logger (or logger adapter) for this distributor
    """

    def __init__(
        self,
        source: HeadSource,
        backend: str,
        log: Optional[logging.LoggerAdapter] = None,
    ):
        self._source = source
        self._backend = backend
        self._log = log or logger
        self._handlers: list[HeadHandler] = []
        self._lock = asyncio.Lock()
        self._state = DistributorState.IDLE
        self._task: Optional[asyncio.Task] = None
        self._pending: set[asyncio.Task] = set()

    @property
    def state(self) -> DistributorState:
        return self._state

    @property
    def handlers(self) -> tuple:
        return tuple(self._handlers)

    async def register(self, handler: HeadHandler) -> None:
        """Add a handler, starting the upstream source on first use."""
        if not callable(handler):
            raise TypeError("head handler must be callable")
        async with self._lock:
            if self._state is DistributorState.CLOSED:
                raise Eth2ClientError("head update stream is closed")
            self._handlers.append(handler)
            if self._state is DistributorState.IDLE:
                self._state = DistributorState.STREAMING
                self._task = asyncio.create_task(self._run())
                self._log.debug("Head update stream started")

    async def emit(self, event: HeadEvent) -> list[asyncio.Task]:
        """Notify every registered handler of ``event``.

        Returns the notification tasks; callers do not need to await them.
        """
        handlers = list(self._handlers)
        metrics.record_head_update(self._backend)
        self._log.debug(
            f"Head updated to slot {event.slot} (epoch transition: {event.epoch_transition}), "
            f"notifying {len(handlers)} handlers"
        )
        tasks = []
        for handler in handlers:
            task = asyncio.create_task(self._notify(handler, event))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
            tasks.append(task)
        return tasks

    async def _notify(self, handler: HeadHandler, event: HeadEvent) -> None:
        try:
            result = handler(event)
            if inspect.isawaitable(result):
                await result
        except asyncio.CancelledError:
            raise
        except Exception as e:
            metrics.record_handler_failure(self._backend)
            self._log.error(f"Head update handler {handler!r} failed: {e}")

    async def _run(self) -> None:
        try:
            await self._source(self.emit)
            self._log.info("Head update stream ended")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._log.error(f"Head update stream failed: {e}")
        finally:
            # close() has already moved to CLOSED; a source that stops on its
            # own is restarted by the next registration.
            if self._state is DistributorState.STREAMING and self._task is asyncio.current_task():
                self._state = DistributorState.IDLE
                self._task = None

    async def close(self) -> None:
        """Stop the source and any in-flight notifications. Terminal."""
        async with self._lock:
            self._state = DistributorState.CLOSED
            task, self._task = self._task, None
        if task:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        pending = list(self._pending)
        for notification in pending:
            notification.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)


async def iter_sse(lines: AsyncIterator[bytes]) -> AsyncIterator[tuple[str, str]]:
    """Group server-sent event lines into ``(event, data)`` pairs.

    Events without a name are keepalives and are skipped.
    """
    event_type = ""
    event_data = []
    async for raw in lines:
        line = raw.decode("utf-8").rstrip("\r\n")
        if not line:
            if event_type and event_data:
                yield event_type, "\n".join(event_data)
            event_type = ""
            event_data = []
            continue
        if line.startswith(":"):
            continue
        if line.startswith("event:"):
            event_type = line[6:].strip()
        elif line.startswith("data:"):
            event_data.append(line[5:].strip())
    if event_type and event_data:
        yield event_type, "\n".join(event_data)


def poll_head_source(
    fetch_head: Callable[[], Awaitable[ChainHead]],
    slots_per_epoch: Callable[[], Awaitable[int]],
    interval: float,
    log: Optional[logging.LoggerAdapter] = None,
) -> HeadSource:
    """Build a source that polls the chain head and emits on block root change."""
    log = log or logger

    async def source(emit: Emit) -> None:
        last_block_root = None
        last_slot = 0
        while True:
            try:
                head = await fetch_head()
            except Eth2ClientError as e:
                log.warning(f"Failed to obtain chain head: {e}")
            else:
                if head.block_root != last_block_root:
                    try:
                        spe = await slots_per_epoch()
                    except Eth2ClientError as e:
                        log.warning(f"Failed to obtain slots per epoch: {e}")
                    else:
                        last_block_root = head.block_root
                        await emit(
                            HeadEvent(
                                slot=head.slot,
                                block=head.block_root,
                                state=head.state_root,
                                epoch_transition=last_slot // spe != head.slot // spe,
                            )
                        )
                        last_slot = head.slot
            await asyncio.sleep(interval)

    return source
