import pytest

from rollupnet.core.settings import get_settings
from rollupnet.ledger.inprocess import InMemoryLedger
from rollupnet.merkle.batch import BatchAccumulator
from rollupnet.merkle.config import AccumulatorConfig
from rollupnet.protocol.models import DepositRequest


@pytest.fixture(autouse=True)
def _fresh_settings():
    """Settings are cached per process; tests that touch env need a clean cache."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def make_deposit():
    """Factory for deposits with distinct public keys."""
    def _make(i: int, amount: int = None, token_type: int = 0) -> DepositRequest:
        return DepositRequest(
            pubkey=(1000 + i, 2000 + i),
            amount=10 * (i + 1) if amount is None else amount,
            token_type=token_type,
        )
    return _make


@pytest.fixture
def config():
    """Reference sizing: depth 4, batches of 4."""
    return AccumulatorConfig(depth=4, batch_exponent=2)


@pytest.fixture
def ledger(config):
    return InMemoryLedger(config)


@pytest.fixture
def accumulator(config, ledger):
    return BatchAccumulator(config, ledger)
