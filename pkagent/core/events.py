"""Prompt event channel and typed event definitions.

The I/O engine (asyncio loop) and the presentation thread share nothing but
what travels through here: events flow from the engine to the prompt surface
over a ``PromptEventChannel``; answers flow back through the one-shot
``ReplyChannel`` and ``CancellationHandle`` carried inside the events.
"""
from __future__ import annotations

import asyncio
import logging
import queue
import threading
from dataclasses import dataclass
from typing import Union

logger = logging.getLogger(__name__)


class ChannelClosed(Exception):
    """The prompt event channel was closed and has no more events."""


# ---------------------------------------------------------------------------
# One-shot primitives (cross-thread)
# ---------------------------------------------------------------------------

class CancellationHandle:
    """Cooperative cancellation signal for one authentication attempt.

    ``cancel()`` may be called from any thread, any number of times. The
    conversation loop awaits ``wait()`` alongside its other event sources.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop or asyncio.get_running_loop()
        self._event = asyncio.Event()
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        self._loop.call_soon_threadsafe(self._event.set)

    async def wait(self) -> None:
        await self._event.wait()


class ReplyChannel:
    """One-shot carrier for a single value from the prompt surface.

    The sending side may live on any thread; the receiving side awaits
    ``future`` on the loop the channel was created on.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop or asyncio.get_running_loop()
        self._future: asyncio.Future[str] = self._loop.create_future()
        self._sent = False
        self._lock = threading.Lock()

    @property
    def future(self) -> asyncio.Future[str]:
        return self._future

    @property
    def sent(self) -> bool:
        return self._sent

    def send(self, value: str) -> None:
        """Deliver *value*. Raises RuntimeError if a value was already sent."""
        with self._lock:
            if self._sent:
                raise RuntimeError("reply already sent")
            self._sent = True
        self._loop.call_soon_threadsafe(self._resolve, value)

    def _resolve(self, value: str) -> None:
        # The receiver may have given up (attempt ended) before we got here.
        if not self._future.done():
            self._future.set_result(value)


# ---------------------------------------------------------------------------
# Event types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PromptPassword:
    """Ask for a masked credential. Answer with exactly one of reply/cancel."""
    reply: ReplyChannel
    cancellation: CancellationHandle
    prompt: str = ""


@dataclass(frozen=True)
class PromptFingerprint:
    """Reserved for a biometric factor; nothing emits it yet."""


@dataclass(frozen=True)
class End:
    """The attempt finished; no prompt surface may stay visible."""


Event = Union[PromptPassword, PromptFingerprint, End]


# ---------------------------------------------------------------------------
# Channel
# ---------------------------------------------------------------------------

_CLOSED = object()


class PromptEventChannel:
    """Unbounded FIFO of events from the I/O engine to the presentation thread.

    Any number of producers may ``send``; a single consumer drains with
    ``receive`` (blocking) or ``try_receive`` (polling). After ``close`` the
    consumer still gets every queued event, then ``ChannelClosed``.
    """

    def __init__(self) -> None:
        self._queue: queue.Queue = queue.Queue()
        self._closed = False
        self._drained = False
        self._lock = threading.Lock()

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, event: Event) -> None:
        with self._lock:
            if self._closed:
                raise ChannelClosed("prompt event channel is closed")
            self._queue.put_nowait(event)
        logger.debug("Queued %s", type(event).__name__)

    def close(self) -> None:
        """Close the channel. Idempotent."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._queue.put_nowait(_CLOSED)

    def receive(self, timeout: float | None = None) -> Event:
        """Block for the next event.

        Raises ``queue.Empty`` on timeout and ``ChannelClosed`` once the
        channel is closed and drained.
        """
        if self._drained:
            raise ChannelClosed("prompt event channel is closed")
        return self._unwrap(self._queue.get(timeout=timeout))

    def try_receive(self) -> Event | None:
        """Return the next event, or None if nothing is queued."""
        if self._drained:
            raise ChannelClosed("prompt event channel is closed")
        try:
            item = self._queue.get_nowait()
        except queue.Empty:
            return None
        return self._unwrap(item)

    def _unwrap(self, item: object) -> Event:
        if item is _CLOSED:
            self._drained = True
            raise ChannelClosed("prompt event channel is closed")
        return item  # type: ignore[return-value]
