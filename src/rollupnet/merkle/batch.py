"""
Batch Accumulator

Admits deposits into the account tree in fixed-size batches and produces
the commit request a ledger needs to update its root incrementally.

Key concepts:
- Arrival-order index assignment (no gaps, no reordering)
- One subtree root per committed batch, recorded in batch order
- Insertion proofs built from the zero cache and committed subtree roots
- Pre-attempt snapshot restored whenever the ledger does not confirm

CRITICAL INVARIANTS:
1. batch_index == len(subtree_roots)
2. account_index == batch_index * batch_capacity (+ in-flight batch)
3. Batches are submitted one at a time in increasing batch_index order
4. A rolled-back batch is re-formed from the same deposits, so a retry
   yields the same accounts, subtree root, position and proof
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import TYPE_CHECKING, Deque, List, Optional, Tuple

from rollupnet.merkle.account import Account
from rollupnet.merkle.config import AccumulatorConfig
from rollupnet.merkle.proof import assemble_insertion_proof, encode_position
from rollupnet.merkle.tree import AccountProof, AccountTree, build_zero_cache, subtree_root
from rollupnet.protocol.enums import AccumulatorState
from rollupnet.protocol.errors import (
    CapacityExceededError,
    LedgerSubmissionFailure,
    RootMismatchError,
)
from rollupnet.protocol.models import BatchCommitRequest, DepositRequest
from rollupnet.protocol.validators import validate_deposit_request

if TYPE_CHECKING:
    from rollupnet.ledger.base import ExternalLedger
    from rollupnet.ledger.signing import OperatorSigner

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Snapshot:
    account_index: int
    batch_index: int
    subtree_count: int
    account_count: int
    tree: AccountTree


class BatchAccumulator:
    """
    Pending-deposit queue, batch counter and committed subtree history.

    All mutation happens on one event loop. ``enqueue`` always queues the
    deposit, even while a batch is being submitted; batch formation runs in
    a single drain loop so at most one submission is ever in flight.
    """

    def __init__(
        self,
        config: AccumulatorConfig,
        ledger: "ExternalLedger",
        signer: Optional["OperatorSigner"] = None,
    ):
        self._config = config
        self._ledger = ledger
        self._signer = signer

        self._pending: Deque[DepositRequest] = deque()
        self._accounts: List[Account] = []
        self._subtree_roots: List[int] = []
        self._account_index = 0
        self._batch_index = 0
        self._submitting = False
        self._last_outcome: Optional[AccumulatorState] = None

        self._zero_cache = build_zero_cache(
            config.depth, config.hasher, config.zero_account
        )
        self._tree = AccountTree([], config.depth, config.hasher, config.zero_account)
        logger.debug("Zero root for depth %d: %d", config.depth, self._zero_cache[0])

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def config(self) -> AccumulatorConfig:
        return self._config

    @property
    def state(self) -> AccumulatorState:
        if self._submitting:
            return AccumulatorState.SUBMITTING
        if len(self._pending) >= self._config.batch_capacity:
            return AccumulatorState.BATCH_READY
        return AccumulatorState.ACCUMULATING

    @property
    def last_outcome(self) -> Optional[AccumulatorState]:
        """COMMITTED or SUBMIT_FAILED for the most recent attempt."""
        return self._last_outcome

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def account_index(self) -> int:
        return self._account_index

    @property
    def batch_index(self) -> int:
        return self._batch_index

    @property
    def subtree_roots(self) -> Tuple[int, ...]:
        return tuple(self._subtree_roots)

    @property
    def accounts(self) -> Tuple[Account, ...]:
        return tuple(self._accounts)

    @property
    def zero_cache(self) -> Tuple[int, ...]:
        return self._zero_cache

    @property
    def tree(self) -> AccountTree:
        return self._tree

    @property
    def root(self) -> int:
        return self._tree.root

    @property
    def max_batches(self) -> int:
        return self._config.max_batches

    @property
    def is_full(self) -> bool:
        return self._batch_index >= self._config.max_batches

    def account_proof(self, index: int) -> AccountProof:
        return self._tree.get_proof(index)

    # ------------------------------------------------------------------
    # Admission
    # ------------------------------------------------------------------

    async def enqueue(self, request: DepositRequest) -> List[BatchCommitRequest]:
        """
        Queue a deposit and form any batches that became ready.

        Returns the commit requests the ledger confirmed during this call.

        Raises:
            ValidationError: If the deposit is malformed
            CapacityExceededError: If every leaf is already spoken for
            LedgerSubmissionFailure: If a formed batch was not confirmed
            RootMismatchError: If the ledger confirmed a different root
        """
        validate_deposit_request(request)

        admitted = self._account_index + len(self._pending)
        if admitted >= self._config.capacity:
            raise CapacityExceededError(
                f"Account tree is full ({self._config.capacity} leaves)",
                capacity=self._config.capacity,
            )

        self._pending.append(request)
        logger.debug(
            "Deposit queued: pubkey=%s amount=%d token=%d pending=%d",
            request.pubkey, request.amount, request.token_type, len(self._pending),
        )
        return await self.try_form_batch()

    async def try_form_batch(self) -> List[BatchCommitRequest]:
        """
        Form and submit batches while a full batch is pending.

        A no-op when the queue is short or another call is already draining.
        """
        if self._submitting:
            return []

        committed: List[BatchCommitRequest] = []
        self._submitting = True
        try:
            while len(self._pending) >= self._config.batch_capacity:
                committed.append(await self._form_and_submit())
        except RootMismatchError as exc:
            exc.committed = committed + exc.committed
            raise
        except LedgerSubmissionFailure as exc:
            exc.committed = committed
            raise
        finally:
            self._submitting = False
        return committed

    # ------------------------------------------------------------------
    # Batch formation
    # ------------------------------------------------------------------

    async def _form_and_submit(self) -> BatchCommitRequest:
        snapshot = self._take_snapshot()
        deposits = [self._pending.popleft() for _ in range(self._config.batch_capacity)]

        try:
            request = self._stage_batch(deposits)
        except Exception:
            self._restore(snapshot, deposits)
            raise

        logger.info(
            "Submitting batch %d at position %s subtree_root=%d proof=%s",
            request.batch_index, request.position, request.subtree_root, list(request.proof),
        )

        try:
            receipt = await self._ledger.submit(request)
        except LedgerSubmissionFailure as exc:
            self._rollback(snapshot, deposits, str(exc))
            raise
        except Exception as exc:
            self._rollback(snapshot, deposits, repr(exc))
            raise LedgerSubmissionFailure(
                f"Ledger call for batch {request.batch_index} failed: {exc!r}",
                batch_index=request.batch_index,
            ) from exc
        except BaseException:
            # cancellation or timeout: the ledger never confirmed this slot
            self._rollback(snapshot, deposits, "submission cancelled")
            raise

        if not receipt.accepted:
            reason = receipt.reason or "rejected without reason"
            self._rollback(snapshot, deposits, reason)
            raise LedgerSubmissionFailure(
                f"Ledger rejected batch {request.batch_index}: {reason}",
                batch_index=request.batch_index,
            )

        self._last_outcome = AccumulatorState.COMMITTED
        if receipt.root is None:
            logger.warning("Ledger confirmed batch %d without a root", request.batch_index)
        elif receipt.root != request.new_root:
            logger.error(
                "Ledger root %d differs from local root %d after batch %d",
                receipt.root, request.new_root, request.batch_index,
            )
            mismatch = RootMismatchError(request.batch_index, request.new_root, receipt.root)
            mismatch.committed = [request]
            raise mismatch
        else:
            logger.info("Batch %d committed, root=%d", request.batch_index, receipt.root)

        return request

    def _stage_batch(self, deposits: List[DepositRequest]) -> BatchCommitRequest:
        config = self._config
        if self._account_index + len(deposits) > config.capacity:
            raise CapacityExceededError(
                f"Batch of {len(deposits)} does not fit after leaf {self._account_index}",
                capacity=config.capacity,
            )

        new_accounts: List[Account] = []
        for deposit in deposits:
            account = Account(
                index=self._account_index,
                pubkey_x=deposit.pubkey[0],
                pubkey_y=deposit.pubkey[1],
                balance=deposit.amount,
                nonce=0,
                token_type=deposit.token_type,
            )
            self._account_index += 1
            new_accounts.append(account)
        self._accounts.extend(new_accounts)

        root = subtree_root(
            new_accounts, config.batch_capacity, config.hasher, config.zero_account
        )
        self._subtree_roots.append(root)

        proof = assemble_insertion_proof(
            self._batch_index,
            self._subtree_roots,
            self._zero_cache,
            config.depth,
            config.batch_exponent,
            config.hasher,
        )
        position = encode_position(self._batch_index, config.position_width)

        self._tree = AccountTree(
            self._accounts, config.depth, config.hasher, config.zero_account
        )

        request = BatchCommitRequest(
            batch_index=self._batch_index,
            batch_size_exponent=config.batch_exponent,
            position=position,
            proof=proof,
            subtree_root=root,
            new_root=self._tree.root,
        )
        self._batch_index += 1

        if self._signer is not None:
            self._signer.sign_request(request)
        return request

    # ------------------------------------------------------------------
    # Snapshot / rollback
    # ------------------------------------------------------------------

    def _take_snapshot(self) -> _Snapshot:
        return _Snapshot(
            account_index=self._account_index,
            batch_index=self._batch_index,
            subtree_count=len(self._subtree_roots),
            account_count=len(self._accounts),
            tree=self._tree,
        )

    def _restore(self, snapshot: _Snapshot, deposits: List[DepositRequest]) -> None:
        self._account_index = snapshot.account_index
        self._batch_index = snapshot.batch_index
        del self._subtree_roots[snapshot.subtree_count:]
        del self._accounts[snapshot.account_count:]
        self._tree = snapshot.tree
        self._pending.extendleft(reversed(deposits))

    def _rollback(self, snapshot: _Snapshot, deposits: List[DepositRequest], reason: str) -> None:
        logger.warning(
            "Batch %d not confirmed (%s); restoring state and re-queueing %d deposits",
            snapshot.batch_index, reason, len(deposits),
        )
        self._restore(snapshot, deposits)
        self._last_outcome = AccumulatorState.SUBMIT_FAILED

    # ------------------------------------------------------------------
    # Cross-check
    # ------------------------------------------------------------------

    async def verify_against_ledger(self) -> int:
        """
        Compare the local root with the ledger's current root.

        Returns the shared root.

        Raises:
            RootMismatchError: If the roots differ
        """
        ledger_root = await self._ledger.current_root()
        if ledger_root != self._tree.root:
            last = self._batch_index - 1 if self._batch_index else None
            raise RootMismatchError(last, self._tree.root, ledger_root)
        return ledger_root
