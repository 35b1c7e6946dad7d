from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from rollupnet.events.source import DepositEventSource
from rollupnet.merkle.batch import BatchAccumulator
from rollupnet.protocol.errors import (
    CapacityExceededError,
    EventSourceFailure,
    LedgerSubmissionFailure,
    RollupError,
    RootMismatchError,
    ValidationError,
)
from rollupnet.protocol.models import BatchCommitRequest

logger = logging.getLogger(__name__)


@dataclass
class ProcessorStats:
    admitted: int = 0
    committed: List[BatchCommitRequest] = field(default_factory=list)
    errors: List[RollupError] = field(default_factory=list)
    source_failed: bool = False
    tree_full: bool = False


class DepositProcessor:
    """
    Dedicated consumer task between an event source and the accumulator.

    It is the only caller of ``accumulator.enqueue``, which keeps the
    accumulator single-writer. Ledger failures and root mismatches are
    logged and processing continues; a failed source stops admission
    without touching deposits already queued.
    """

    def __init__(self, source: DepositEventSource, accumulator: BatchAccumulator):
        self._source = source
        self._accumulator = accumulator
        self._stats = ProcessorStats()
        self._task: Optional[asyncio.Task] = None

    @property
    def stats(self) -> ProcessorStats:
        return self._stats

    @property
    def accumulator(self) -> BatchAccumulator:
        return self._accumulator

    def start(self) -> asyncio.Task:
        if self._task is not None and not self._task.done():
            raise RuntimeError("Deposit processor is already running")
        self._task = asyncio.create_task(self.run())
        return self._task

    def restore_source(self, source: DepositEventSource) -> None:
        """Attach a fresh source after the previous one failed."""
        if self._task is not None and not self._task.done():
            raise RuntimeError("Cannot swap the source of a running processor")
        self._source = source
        self._stats.source_failed = False

    async def run(self) -> ProcessorStats:
        while True:
            try:
                event = await self._source.next_event()
            except EventSourceFailure as exc:
                logger.error(
                    "%s; admission paused with %d deposits pending",
                    exc, self._accumulator.pending_count,
                )
                self._stats.source_failed = True
                self._stats.errors.append(exc)
                break

            if event is None:
                logger.info("Deposit source closed")
                break

            try:
                committed = await self._accumulator.enqueue(event)
            except CapacityExceededError as exc:
                logger.error("Stopping deposit processing: %s", exc)
                self._stats.tree_full = True
                self._stats.errors.append(exc)
                break
            except RootMismatchError as exc:
                logger.error("Ledger inconsistency: %s", exc)
                self._stats.admitted += 1
                self._stats.committed.extend(exc.committed)
                self._stats.errors.append(exc)
                continue
            except LedgerSubmissionFailure as exc:
                logger.warning("Deposit processing error: %s", exc)
                self._stats.admitted += 1
                self._stats.committed.extend(exc.committed)
                self._stats.errors.append(exc)
                continue
            except ValidationError as exc:
                logger.warning("Rejected deposit: %s", exc)
                self._stats.errors.append(exc)
                continue

            self._stats.admitted += 1
            self._stats.committed.extend(committed)

        return self._stats
