"""
rollupnet: authenticated account tree and batch deposit pipeline for a
rollup-style ledger.
"""

from rollupnet.merkle import (
    Account,
    AccountTree,
    AccumulatorConfig,
    BatchAccumulator,
    ZERO_ACCOUNT,
    build_zero_cache,
)
from rollupnet.protocol import (
    BatchCommitRequest,
    DepositRequest,
    InsertionProof,
    LedgerReceipt,
)

__version__ = "0.1.0"

__all__ = [
    "Account",
    "AccountTree",
    "AccumulatorConfig",
    "BatchAccumulator",
    "ZERO_ACCOUNT",
    "build_zero_cache",
    "BatchCommitRequest",
    "DepositRequest",
    "InsertionProof",
    "LedgerReceipt",
]
