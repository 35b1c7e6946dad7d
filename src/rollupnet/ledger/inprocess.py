from __future__ import annotations

import logging
from typing import Callable, List, Optional, Tuple

from rollupnet.core.hashing import is_field_element
from rollupnet.merkle.config import AccumulatorConfig
from rollupnet.merkle.proof import encode_position, insertion_roots
from rollupnet.merkle.tree import build_zero_cache
from rollupnet.ledger.base import ExternalLedger
from rollupnet.ledger.signing import OperatorVerifier
from rollupnet.protocol.models import BatchCommitRequest, DepositRequest, LedgerReceipt
from rollupnet.protocol.validators import validate_deposit_request

logger = logging.getLogger(__name__)

DepositListener = Callable[[DepositRequest], None]


class InMemoryLedger(ExternalLedger):
    """
    In-process simulation of the rollup ledger contract.

    It holds only the current root and the next free batch slot. A commit
    is accepted when the proof shows the slot is empty under the current
    root; the new root is then recomputed from the proof alone.
    """

    def __init__(
        self,
        config: AccumulatorConfig,
        verifier: Optional[OperatorVerifier] = None,
    ):
        self._config = config
        self._verifier = verifier
        self._zero_cache = build_zero_cache(
            config.depth, config.hasher, config.zero_account
        )
        self._root = self._zero_cache[0]
        self._next_batch = 0
        self._commits: List[BatchCommitRequest] = []
        self._deposits: List[DepositRequest] = []
        self._listeners: List[DepositListener] = []

    @property
    def root(self) -> int:
        return self._root

    @property
    def next_batch(self) -> int:
        return self._next_batch

    @property
    def commits(self) -> Tuple[BatchCommitRequest, ...]:
        return tuple(self._commits)

    @property
    def deposits(self) -> Tuple[DepositRequest, ...]:
        return tuple(self._deposits)

    # ------------------------------------------------------------------
    # Deposit events
    # ------------------------------------------------------------------

    def subscribe(self, listener: DepositListener) -> None:
        self._listeners.append(listener)

    def request_deposit(
        self,
        pubkey: Tuple[int, int],
        amount: int,
        token_type: int = 0,
    ) -> DepositRequest:
        """Record a deposit and emit it to every subscriber."""
        request = DepositRequest(pubkey=tuple(pubkey), amount=amount, token_type=token_type)
        validate_deposit_request(request)
        self._deposits.append(request)
        logger.debug("Deposit event: pubkey=%s amount=%d", request.pubkey, amount)
        for listener in self._listeners:
            listener(request)
        return request

    # ------------------------------------------------------------------
    # Commits
    # ------------------------------------------------------------------

    async def submit(self, request: BatchCommitRequest) -> LedgerReceipt:
        return self.process_deposits(request)

    async def current_root(self) -> int:
        return self._root

    def process_deposits(self, request: BatchCommitRequest) -> LedgerReceipt:
        reason = self._check(request)
        if reason is not None:
            logger.warning("Rejected batch %d: %s", request.batch_index, reason)
            return LedgerReceipt(accepted=False, batch_index=request.batch_index, reason=reason)

        empty = self._zero_cache[self._config.position_width]
        before, after = insertion_roots(request.insertion_proof, empty, self._config.hasher)
        if before != self._root:
            reason = f"slot {request.position} is not empty under the current root"
            logger.warning("Rejected batch %d: %s", request.batch_index, reason)
            return LedgerReceipt(accepted=False, batch_index=request.batch_index, reason=reason)

        self._root = after
        self._next_batch += 1
        self._commits.append(request)
        logger.info("Ledger committed batch %d, root=%d", request.batch_index, after)
        return LedgerReceipt(accepted=True, batch_index=request.batch_index, root=after)

    def _check(self, request: BatchCommitRequest) -> Optional[str]:
        config = self._config
        if request.batch_size_exponent != config.batch_exponent:
            return (
                f"batch size exponent {request.batch_size_exponent} "
                f"!= {config.batch_exponent}"
            )
        if self._next_batch >= config.max_batches:
            return "account tree is full"
        expected = encode_position(self._next_batch, config.position_width)
        if request.position != expected:
            return f"out-of-order position {request.position}, expected {expected}"
        if len(request.proof) != config.position_width:
            return f"proof has {len(request.proof)} siblings, expected {config.position_width}"
        if not is_field_element(request.subtree_root):
            return "subtree root is not a field element"
        if not all(is_field_element(s) for s in request.proof):
            return "proof contains a value that is not a field element"
        if self._verifier is not None and not self._verifier.verify_request(request):
            return "invalid operator signature"
        return None
