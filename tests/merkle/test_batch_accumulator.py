"""
Tests for BatchAccumulator admission, batching, rollback and ordering.
"""

import asyncio

import pytest

from rollupnet.core.hashing import FIELD_MODULUS
from rollupnet.ledger.inprocess import InMemoryLedger
from rollupnet.ledger.signing import OperatorSigner, OperatorVerifier
from rollupnet.merkle.batch import BatchAccumulator
from rollupnet.merkle.config import AccumulatorConfig
from rollupnet.merkle.proof import compute_root
from rollupnet.merkle.tree import AccountTree, verify_account_proof
from rollupnet.protocol.enums import AccumulatorState
from rollupnet.protocol.errors import (
    CapacityExceededError,
    LedgerSubmissionFailure,
    RootMismatchError,
    ValidationError,
)
from rollupnet.protocol.models import DepositRequest


# ===========================================================================
# Ledger doubles
# ===========================================================================


class FlakyLedger(InMemoryLedger):
    """Raises a submission failure once for each listed batch index."""

    def __init__(self, config, fail_batches=()):
        super().__init__(config)
        self.fail_batches = set(fail_batches)
        self.attempts = []

    async def submit(self, request):
        self.attempts.append(request)
        if request.batch_index in self.fail_batches:
            self.fail_batches.discard(request.batch_index)
            raise LedgerSubmissionFailure("simulated outage", batch_index=request.batch_index)
        return await super().submit(request)


class GatedLedger(InMemoryLedger):
    """Holds every submission until the gate opens."""

    def __init__(self, config):
        super().__init__(config)
        self.gate = asyncio.Event()
        self.in_flight = 0
        self.max_in_flight = 0

    async def submit(self, request):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await self.gate.wait()
            return await super().submit(request)
        finally:
            self.in_flight -= 1


class LyingLedger(InMemoryLedger):
    """Commits correctly but reports a different root."""

    async def submit(self, request):
        receipt = await super().submit(request)
        receipt.root = receipt.root + 1
        return receipt


async def _enqueue_all(accumulator, deposits):
    committed = []
    for deposit in deposits:
        committed.extend(await accumulator.enqueue(deposit))
    return committed


# ===========================================================================
# Admission and batching
# ===========================================================================


class TestAdmission:
    """Tests for enqueue below batch capacity."""

    def test_initial_state(self, accumulator):
        assert accumulator.state == AccumulatorState.ACCUMULATING
        assert accumulator.batch_index == 0
        assert accumulator.account_index == 0
        assert accumulator.pending_count == 0
        assert accumulator.root == accumulator.zero_cache[0]
        assert accumulator.last_outcome is None

    def test_below_capacity_is_noop(self, accumulator, make_deposit):
        committed = asyncio.run(_enqueue_all(accumulator, [make_deposit(i) for i in range(3)]))

        assert committed == []
        assert accumulator.pending_count == 3
        assert accumulator.account_index == 0
        assert accumulator.accounts == ()

    def test_invalid_deposit_rejected(self, accumulator):
        bad = DepositRequest(pubkey=(1, 2), amount=-5)
        with pytest.raises(ValidationError):
            asyncio.run(accumulator.enqueue(bad))
        assert accumulator.pending_count == 0

    @pytest.mark.parametrize("bad", [
        DepositRequest(pubkey=(1, 2), amount=1, token_type=FIELD_MODULUS),
        DepositRequest(pubkey=(1, 2), amount=FIELD_MODULUS),
        DepositRequest(pubkey=(FIELD_MODULUS, 2), amount=1),
        DepositRequest(pubkey=(1, 2, 3), amount=1),
    ])
    def test_out_of_field_deposit_rejected(self, accumulator, bad):
        with pytest.raises(ValidationError):
            asyncio.run(accumulator.enqueue(bad))
        assert accumulator.pending_count == 0

    def test_try_form_batch_noop_when_short(self, accumulator, make_deposit):
        async def scenario():
            await accumulator.enqueue(make_deposit(0))
            return await accumulator.try_form_batch()

        assert asyncio.run(scenario()) == []


class TestBatchFormation:
    """Scenario A and index assignment."""

    def test_single_batch(self, accumulator, ledger, make_deposit):
        deposits = [make_deposit(i, amount) for i, amount in enumerate([10, 20, 30, 40])]
        committed = asyncio.run(_enqueue_all(accumulator, deposits))

        assert len(committed) == 1
        request = committed[0]
        assert accumulator.account_index == 4
        assert accumulator.batch_index == 1
        assert len(accumulator.subtree_roots) == 1
        assert len(request.proof) == 2
        assert request.position == "00"
        assert request.batch_size_exponent == 2
        assert request.subtree_root == accumulator.subtree_roots[0]
        assert accumulator.pending_count == 0
        assert accumulator.last_outcome == AccumulatorState.COMMITTED
        assert ledger.root == accumulator.root

    def test_accounts_follow_arrival_order(self, accumulator, make_deposit):
        deposits = [make_deposit(i) for i in range(8)]
        asyncio.run(_enqueue_all(accumulator, deposits))

        accounts = accumulator.accounts
        assert [a.index for a in accounts] == list(range(8))
        for account, deposit in zip(accounts, deposits):
            assert (account.pubkey_x, account.pubkey_y) == deposit.pubkey
            assert account.balance == deposit.amount
            assert account.nonce == 0

    def test_tree_is_full_rebuild_of_assigned_accounts(self, config, accumulator, make_deposit):
        asyncio.run(_enqueue_all(accumulator, [make_deposit(i) for i in range(4)]))

        expected = AccountTree(list(accumulator.accounts), config.depth, config.hasher)
        assert accumulator.root == expected.root
        assert accumulator.tree.filled == 4

    def test_account_proof_against_root(self, accumulator, make_deposit):
        asyncio.run(_enqueue_all(accumulator, [make_deposit(i) for i in range(4)]))
        proof = accumulator.account_proof(2)

        assert proof.root == accumulator.root
        assert verify_account_proof(proof)


class TestTreeFill:
    """Scenario B and the incremental/full root equivalence."""

    def test_fill_tree(self, accumulator, ledger, make_deposit):
        committed = asyncio.run(_enqueue_all(accumulator, [make_deposit(i) for i in range(16)]))

        assert [c.position for c in committed] == ["00", "01", "10", "11"]
        assert accumulator.batch_index == 4
        assert accumulator.is_full
        assert ledger.root == accumulator.root

        with pytest.raises(CapacityExceededError):
            asyncio.run(accumulator.enqueue(make_deposit(16)))
        assert accumulator.pending_count == 0

    def test_capacity_counts_pending_deposits(self, make_deposit):
        config = AccumulatorConfig(depth=2, batch_exponent=1)
        accumulator = BatchAccumulator(config, FlakyLedger(config, fail_batches=[1]))

        async def scenario():
            await _enqueue_all(accumulator, [make_deposit(i) for i in range(2)])
            with pytest.raises(LedgerSubmissionFailure):
                await _enqueue_all(accumulator, [make_deposit(i) for i in range(2, 4)])
            await accumulator.enqueue(make_deposit(4))

        with pytest.raises(CapacityExceededError):
            asyncio.run(scenario())
        assert accumulator.pending_count == 2

    def test_each_proof_recomputes_rebuilt_root(self, config, make_deposit):
        ledger = InMemoryLedger(config)
        accumulator = BatchAccumulator(config, ledger)

        async def scenario():
            roots = []
            for batch in range(4):
                deposits = [make_deposit(batch * 4 + i) for i in range(4)]
                (request,) = await _enqueue_all(accumulator, deposits)
                roots.append((request, accumulator.root))
            return roots

        for request, local_root in asyncio.run(scenario()):
            recomputed = compute_root(request.subtree_root, request.position, request.proof, config.hasher)
            assert recomputed == local_root == request.new_root

    def test_verify_against_ledger(self, accumulator, make_deposit):
        async def scenario():
            await _enqueue_all(accumulator, [make_deposit(i) for i in range(8)])
            return await accumulator.verify_against_ledger()

        assert asyncio.run(scenario()) == accumulator.root


# ===========================================================================
# Failure handling
# ===========================================================================


class TestSubmissionFailure:
    """Scenario C: rollback restores state and retry is deterministic."""

    def test_rollback_then_identical_retry(self, config, make_deposit):
        ledger = FlakyLedger(config, fail_batches=[1])
        accumulator = BatchAccumulator(config, ledger)

        async def scenario():
            await _enqueue_all(accumulator, [make_deposit(i) for i in range(4)])
            root_after_first = accumulator.root
            tree_after_first = accumulator.tree

            with pytest.raises(LedgerSubmissionFailure) as exc:
                await _enqueue_all(accumulator, [make_deposit(i) for i in range(4, 8)])
            assert exc.value.batch_index == 1

            assert accumulator.batch_index == 1
            assert accumulator.account_index == 4
            assert len(accumulator.subtree_roots) == 1
            assert len(accumulator.accounts) == 4
            assert accumulator.pending_count == 4
            assert accumulator.root == root_after_first
            assert accumulator.tree is tree_after_first
            assert accumulator.last_outcome == AccumulatorState.SUBMIT_FAILED
            assert accumulator.state == AccumulatorState.BATCH_READY

            return await accumulator.try_form_batch()

        (retried,) = asyncio.run(scenario())
        failed = ledger.attempts[1]

        assert retried.batch_index == failed.batch_index == 1
        assert retried.subtree_root == failed.subtree_root
        assert retried.position == failed.position == "01"
        assert retried.proof == failed.proof
        assert retried.new_root == failed.new_root
        assert accumulator.batch_index == 2
        assert accumulator.last_outcome == AccumulatorState.COMMITTED
        assert ledger.root == accumulator.root

    def test_next_enqueue_retries_failed_batch(self, config, make_deposit):
        ledger = FlakyLedger(config, fail_batches=[0])
        accumulator = BatchAccumulator(config, ledger)

        async def scenario():
            with pytest.raises(LedgerSubmissionFailure):
                await _enqueue_all(accumulator, [make_deposit(i) for i in range(4)])
            return await accumulator.enqueue(make_deposit(4))

        (request,) = asyncio.run(scenario())
        assert request.position == "00"
        assert [a.index for a in accumulator.accounts] == [0, 1, 2, 3]
        assert accumulator.accounts[0].pubkey_x == make_deposit(0).pubkey[0]
        assert accumulator.pending_count == 1

    def test_rejected_receipt_rolls_back(self, config, make_deposit):
        signer = OperatorSigner.generate()
        ledger = InMemoryLedger(config, verifier=OperatorVerifier())
        accumulator = BatchAccumulator(config, ledger, signer)

        with pytest.raises(LedgerSubmissionFailure, match="invalid operator signature"):
            asyncio.run(_enqueue_all(accumulator, [make_deposit(i) for i in range(4)]))
        assert accumulator.batch_index == 0
        assert accumulator.account_index == 0
        assert accumulator.pending_count == 4
        assert ledger.next_batch == 0

    def test_signed_requests_accepted(self, config, make_deposit):
        signer = OperatorSigner.generate()
        verifier = OperatorVerifier()
        verifier.add_from_signer(signer)
        ledger = InMemoryLedger(config, verifier=verifier)
        accumulator = BatchAccumulator(config, ledger, signer)

        (request,) = asyncio.run(_enqueue_all(accumulator, [make_deposit(i) for i in range(4)]))
        assert request.key_id == signer.key_id
        assert request.signature is not None
        assert ledger.next_batch == 1

    def test_root_mismatch_is_raised(self, config, make_deposit):
        accumulator = BatchAccumulator(config, LyingLedger(config))

        with pytest.raises(RootMismatchError) as exc:
            asyncio.run(_enqueue_all(accumulator, [make_deposit(i) for i in range(4)]))
        assert exc.value.local_root == accumulator.root
        assert exc.value.ledger_root == accumulator.root + 1
        assert accumulator.batch_index == 1

    def test_unexpected_ledger_error_rolls_back(self, config, make_deposit):
        class BrokenLedger(InMemoryLedger):
            async def submit(self, request):
                raise RuntimeError("connection reset")

        ledger = BrokenLedger(config)
        accumulator = BatchAccumulator(config, ledger)

        with pytest.raises(LedgerSubmissionFailure, match="connection reset") as exc:
            asyncio.run(_enqueue_all(accumulator, [make_deposit(i) for i in range(4)]))
        assert isinstance(exc.value.__cause__, RuntimeError)
        assert exc.value.batch_index == 0
        assert accumulator.batch_index == ledger.next_batch == 0
        assert accumulator.pending_count == 4
        assert accumulator.last_outcome == AccumulatorState.SUBMIT_FAILED


# ===========================================================================
# Concurrency policy
# ===========================================================================


class TestInFlightSubmission:
    """Admission continues during a submission; batches never overlap."""

    def test_deposits_queue_while_batch_in_flight(self, config, make_deposit):
        async def scenario():
            ledger = GatedLedger(config)
            accumulator = BatchAccumulator(config, ledger)
            await _enqueue_all(accumulator, [make_deposit(i) for i in range(3)])

            first = asyncio.create_task(accumulator.enqueue(make_deposit(3)))
            await asyncio.sleep(0)
            assert accumulator.state == AccumulatorState.SUBMITTING

            for i in range(4, 8):
                assert await accumulator.enqueue(make_deposit(i)) == []
            assert accumulator.pending_count == 4
            assert accumulator.batch_index == 1
            assert accumulator.account_index == 4

            ledger.gate.set()
            committed = await first
            return accumulator, ledger, committed

        accumulator, ledger, committed = asyncio.run(scenario())

        assert [c.batch_index for c in committed] == [0, 1]
        assert [c.position for c in committed] == ["00", "01"]
        assert ledger.max_in_flight == 1
        assert accumulator.pending_count == 0
        assert accumulator.state == AccumulatorState.ACCUMULATING
        assert ledger.root == accumulator.root

    def test_cancelled_submission_rolls_back(self, config, make_deposit):
        async def scenario():
            ledger = GatedLedger(config)
            accumulator = BatchAccumulator(config, ledger)
            await _enqueue_all(accumulator, [make_deposit(i) for i in range(3)])

            with pytest.raises(asyncio.TimeoutError):
                await asyncio.wait_for(accumulator.enqueue(make_deposit(3)), 0.05)

            assert accumulator.batch_index == ledger.next_batch == 0
            assert accumulator.account_index == 0
            assert accumulator.subtree_roots == ()
            assert accumulator.pending_count == 4
            assert accumulator.root == accumulator.zero_cache[0]
            assert accumulator.last_outcome == AccumulatorState.SUBMIT_FAILED
            assert accumulator.state == AccumulatorState.BATCH_READY

            ledger.gate.set()
            return accumulator, ledger, await accumulator.try_form_batch()

        accumulator, ledger, committed = asyncio.run(scenario())

        assert [c.position for c in committed] == ["00"]
        assert [a.index for a in accumulator.accounts] == [0, 1, 2, 3]
        assert ledger.root == accumulator.root


class TestDrainReporting:
    """Errors raised mid-drain carry the batches already confirmed."""

    def test_failure_keeps_earlier_commits(self, config, make_deposit):
        class GatedFlakyLedger(GatedLedger):
            async def submit(self, request):
                if request.batch_index == 1:
                    raise LedgerSubmissionFailure("simulated outage", batch_index=1)
                return await super().submit(request)

        async def scenario():
            ledger = GatedFlakyLedger(config)
            accumulator = BatchAccumulator(config, ledger)
            await _enqueue_all(accumulator, [make_deposit(i) for i in range(3)])

            first = asyncio.create_task(accumulator.enqueue(make_deposit(3)))
            await asyncio.sleep(0)
            await _enqueue_all(accumulator, [make_deposit(i) for i in range(4, 8)])
            ledger.gate.set()

            with pytest.raises(LedgerSubmissionFailure) as exc:
                await first
            return accumulator, exc.value

        accumulator, error = asyncio.run(scenario())

        assert [c.position for c in error.committed] == ["00"]
        assert accumulator.batch_index == 1
        assert accumulator.pending_count == 4

    def test_root_mismatch_includes_its_batch(self, config, make_deposit):
        accumulator = BatchAccumulator(config, LyingLedger(config))

        with pytest.raises(RootMismatchError) as exc:
            asyncio.run(_enqueue_all(accumulator, [make_deposit(i) for i in range(4)]))
        assert [c.batch_index for c in exc.value.committed] == [0]

    def test_mismatch_before_first_batch(self, config):
        class OffsetRootLedger(InMemoryLedger):
            async def current_root(self):
                return self.root + 1

        accumulator = BatchAccumulator(config, OffsetRootLedger(config))

        with pytest.raises(RootMismatchError, match="before any batch") as exc:
            asyncio.run(accumulator.verify_against_ledger())
        assert exc.value.batch_index is None
