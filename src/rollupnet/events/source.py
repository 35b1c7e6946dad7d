from __future__ import annotations

"""
Deposit event sources.

An event source is the inbound side of the message-passing contract between
the ledger's deposit events and the accumulator:

    ledger event → DepositEventSource → DepositProcessor → BatchAccumulator

Sources only deliver DepositRequest values in order. They never touch
accumulator state.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Optional, Union

from rollupnet.protocol.errors import EventSourceFailure
from rollupnet.protocol.models import DepositRequest


class DepositEventSource(ABC):
    """
    Abstract inbound deposit stream.

    next_event() returns the next deposit, None once the stream is closed,
    and raises EventSourceFailure if the subscription broke.
    """

    @abstractmethod
    async def next_event(self) -> Optional[DepositRequest]:
        raise NotImplementedError


class _Closed:
    pass


class _Failed:
    def __init__(self, reason: str):
        self.reason = reason


_Item = Union[DepositRequest, _Closed, _Failed]


class QueueEventSource(DepositEventSource):
    """
    asyncio.Queue-backed channel.

    ``publish`` is a plain callable so it can be handed to
    ``InMemoryLedger.subscribe``. Close and failure markers are queued
    behind any deposits already published, so those are still delivered.
    """

    def __init__(self, maxsize: int = 0):
        self._queue: "asyncio.Queue[_Item]" = asyncio.Queue(maxsize)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def publish(self, request: DepositRequest) -> None:
        if self._closed:
            raise EventSourceFailure("Cannot publish to a closed deposit channel")
        self._queue.put_nowait(request)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(_Closed())

    def fail(self, reason: str) -> None:
        """Mark the subscription as broken."""
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(_Failed(reason))

    def qsize(self) -> int:
        return self._queue.qsize()

    async def next_event(self) -> Optional[DepositRequest]:
        item = await self._queue.get()
        if isinstance(item, _Closed):
            return None
        if isinstance(item, _Failed):
            raise EventSourceFailure(f"Deposit subscription failed: {item.reason}")
        return item
