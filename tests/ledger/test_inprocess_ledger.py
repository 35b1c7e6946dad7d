"""
Tests for the in-memory ledger's commit checks and deposit events.
"""

import asyncio
from dataclasses import replace

import pytest

from rollupnet.core.hashing import FIELD_MODULUS
from rollupnet.ledger.inprocess import InMemoryLedger
from rollupnet.merkle.batch import BatchAccumulator
from rollupnet.merkle.config import AccumulatorConfig
from rollupnet.protocol.errors import LedgerSubmissionFailure, ValidationError


def _first_request(config, make_deposit):
    """Form batch 0 against a scratch ledger and return its commit request."""
    accumulator = BatchAccumulator(config, InMemoryLedger(config))

    async def scenario():
        committed = []
        for i in range(config.batch_capacity):
            committed.extend(await accumulator.enqueue(make_deposit(i)))
        return committed

    (request,) = asyncio.run(scenario())
    return request


class TestCommitChecks:
    """The ledger only accepts the next empty slot with a consistent proof."""

    def test_accepts_next_slot(self, config, ledger, make_deposit):
        request = _first_request(config, make_deposit)
        receipt = ledger.process_deposits(request)

        assert receipt.accepted
        assert receipt.root == request.new_root
        assert ledger.root == request.new_root
        assert ledger.next_batch == 1
        assert ledger.commits == (request,)

    def test_rejects_replayed_slot(self, config, ledger, make_deposit):
        request = _first_request(config, make_deposit)
        ledger.process_deposits(request)
        receipt = ledger.process_deposits(request)

        assert not receipt.accepted
        assert "out-of-order position" in receipt.reason
        assert ledger.next_batch == 1

    def test_rejects_out_of_order_position(self, config, ledger, make_deposit):
        request = replace(_first_request(config, make_deposit), position="01")
        receipt = ledger.process_deposits(request)

        assert not receipt.accepted
        assert "out-of-order position 01" in receipt.reason

    def test_rejects_wrong_exponent(self, config, ledger, make_deposit):
        request = replace(_first_request(config, make_deposit), batch_size_exponent=1)
        receipt = ledger.process_deposits(request)

        assert not receipt.accepted
        assert "batch size exponent" in receipt.reason

    def test_rejects_short_proof(self, config, ledger, make_deposit):
        request = _first_request(config, make_deposit)
        request = replace(request, proof=request.proof[:1])
        receipt = ledger.process_deposits(request)

        assert not receipt.accepted
        assert "siblings" in receipt.reason

    def test_rejects_proof_for_non_empty_slot(self, config, ledger, make_deposit):
        request = _first_request(config, make_deposit)
        forged = replace(request, proof=(request.proof[0] + 1,) + tuple(request.proof[1:]))
        receipt = ledger.process_deposits(forged)

        assert not receipt.accepted
        assert "is not empty" in receipt.reason
        assert ledger.root != request.new_root

    def test_rejects_values_outside_field(self, config, ledger, make_deposit):
        request = _first_request(config, make_deposit)

        negative = ledger.process_deposits(replace(request, proof=(-1,) + tuple(request.proof[1:])))
        oversized = ledger.process_deposits(replace(request, subtree_root=FIELD_MODULUS))

        assert not negative.accepted
        assert "not a field element" in negative.reason
        assert not oversized.accepted
        assert "not a field element" in oversized.reason
        assert ledger.next_batch == 0

    def test_rejects_when_full(self, make_deposit):
        config = AccumulatorConfig(depth=1, batch_exponent=0)
        ledger = InMemoryLedger(config)
        accumulator = BatchAccumulator(config, ledger)

        async def scenario():
            await accumulator.enqueue(make_deposit(0))
            await accumulator.enqueue(make_deposit(1))

        asyncio.run(scenario())
        extra = replace(ledger.commits[-1], batch_index=2)
        receipt = ledger.process_deposits(extra)

        assert not receipt.accepted
        assert receipt.reason == "account tree is full"

    def test_submit_and_current_root(self, config, ledger, make_deposit):
        request = _first_request(config, make_deposit)

        async def scenario():
            receipt = await ledger.submit(request)
            return receipt, await ledger.current_root()

        receipt, root = asyncio.run(scenario())
        assert receipt.accepted
        assert root == request.new_root


class TestDepositEvents:
    """request_deposit records the deposit and notifies subscribers."""

    def test_listeners_receive_deposits(self, ledger):
        seen_a, seen_b = [], []
        ledger.subscribe(seen_a.append)
        ledger.subscribe(seen_b.append)

        deposit = ledger.request_deposit((5, 6), 70, token_type=1)

        assert seen_a == seen_b == [deposit]
        assert ledger.deposits == (deposit,)
        assert deposit.pubkey == (5, 6)
        assert deposit.token_type == 1

    def test_invalid_deposit_not_emitted(self, ledger):
        seen = []
        ledger.subscribe(seen.append)

        with pytest.raises(ValidationError):
            ledger.request_deposit((5, 6), -1)
        assert seen == []
        assert ledger.deposits == ()

    def test_rejected_commit_surfaces_as_failure(self, config, make_deposit):
        ledger = InMemoryLedger(AccumulatorConfig(depth=4, batch_exponent=1))
        accumulator = BatchAccumulator(config, ledger)

        async def scenario():
            for i in range(4):
                await accumulator.enqueue(make_deposit(i))

        with pytest.raises(LedgerSubmissionFailure, match="batch size exponent"):
            asyncio.run(scenario())
        assert accumulator.batch_index == 0
