from __future__ import annotations

"""
Base interface for ledger collaborators.

This defines the ledger boundary:

    BatchAccumulator → [BatchCommitRequest] → ledger
    ledger           → [LedgerReceipt]      → BatchAccumulator

Ledgers DO NOT:
  - assign account indices
  - hash accounts or build subtrees for the operator
  - retry on the operator's behalf

Ledgers ONLY:
  - check the commit request against their current root
  - recompute and store the new root
  - report acceptance and their own root
"""

from abc import ABC, abstractmethod

from rollupnet.protocol.models import BatchCommitRequest, LedgerReceipt


class ExternalLedger(ABC):
    """
    Abstract base class for all ledgers.

    Implicit contract:
        - submit(request) resolves once the ledger has confirmed or rejected
          the batch; transport failures raise LedgerSubmissionFailure
        - a confirmed receipt carries the ledger's own recomputed root
        - current_root() reports the root the ledger holds right now
    """

    @abstractmethod
    async def submit(self, request: BatchCommitRequest) -> LedgerReceipt:
        raise NotImplementedError

    @abstractmethod
    async def current_root(self) -> int:
        raise NotImplementedError
