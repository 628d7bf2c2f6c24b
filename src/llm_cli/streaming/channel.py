"""Cancellation token and single-slot handoff channel for token streaming."""

from __future__ import annotations

import asyncio
from typing import Optional

from ..errors import CancellationError


async def _wait_any(*events: asyncio.Event) -> None:
    """Block until at least one of ``events`` is set."""
    waiters = [asyncio.ensure_future(event.wait()) for event in events]
    try:
        await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for waiter in waiters:
            waiter.cancel()


class CancellationToken:
    """Explicit, cooperatively observed cancellation signal.

    Cancelling a token cancels every child derived from it; a child created
    from an already-cancelled parent starts out cancelled.
    """

    def __init__(self, parent: Optional[CancellationToken] = None):
        self._event = asyncio.Event()
        self._children: list[CancellationToken] = []
        self.reason: Optional[str] = None
        if parent is not None:
            parent._children.append(self)
            if parent.cancelled:
                self.cancel(parent.reason)

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def child(self) -> CancellationToken:
        return CancellationToken(parent=self)

    def cancel(self, reason: Optional[str] = None) -> None:
        """Raise the signal. Repeated calls keep the first reason."""
        if self._event.is_set():
            return
        self.reason = reason or "operation cancelled"
        self._event.set()
        for child in self._children:
            child.cancel(self.reason)

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise CancellationError(self.reason or "operation cancelled")


class HandoffChannel:
    """Unbuffered rendezvous between one producer and one consumer.

    ``send`` returns only once the consumer has taken the token, so at most
    one token is ever in flight and a slow consumer throttles the producer.
    A send blocked when the bound token is cancelled retracts its token and
    raises ``CancellationError``.
    """

    def __init__(self, cancel: CancellationToken):
        self._cancel = cancel
        self._item: Optional[str] = None
        self._has_item = False
        self._ready = asyncio.Event()
        self._taken = asyncio.Event()
        self._closed = asyncio.Event()
        self._send_lock = asyncio.Lock()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    async def send(self, token: str) -> None:
        async with self._send_lock:
            if self.closed:
                raise RuntimeError("send on closed channel")
            self._cancel.raise_if_cancelled()

            self._item = token
            self._has_item = True
            self._taken.clear()
            self._ready.set()
            try:
                await _wait_any(self._taken, self._cancel._event)
            finally:
                if not self._taken.is_set():
                    self._retract()

            if not self._taken.is_set():
                raise CancellationError(self._cancel.reason or "operation cancelled")

    async def receive(self) -> Optional[str]:
        """Take the next token, or return None once the channel is closed."""
        while not self._has_item:
            if self.closed:
                return None
            await _wait_any(self._ready, self._closed)

        item = self._item
        self._retract()
        self._taken.set()
        return item

    def close(self) -> None:
        """Mark the channel finished. Safe to call more than once."""
        self._closed.set()

    def _retract(self) -> None:
        self._item = None
        self._has_item = False
        self._ready.clear()

    def __aiter__(self) -> HandoffChannel:
        return self

    async def __anext__(self) -> str:
        item = await self.receive()
        if item is None:
            raise StopAsyncIteration
        return item
