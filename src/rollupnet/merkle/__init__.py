"""
Account Tree and Batch Accumulator

Key concepts:
- Fixed-depth account tree with internal zero padding
- Per-level zero-subtree cache
- Batch subtree hashing and slot addressing
- Insertion proofs for incremental root updates
"""

from rollupnet.merkle.account import Account, ZERO_ACCOUNT
from rollupnet.merkle.config import AccumulatorConfig
from rollupnet.merkle.tree import (
    AccountTree,
    AccountProof,
    build_zero_cache,
    subtree_root,
    merkle_root,
    verify_account_proof,
)
from rollupnet.merkle.proof import (
    encode_position,
    decode_position,
    assemble_insertion_proof,
    compute_root,
    insertion_roots,
)
from rollupnet.merkle.batch import BatchAccumulator

__all__ = [
    "Account",
    "ZERO_ACCOUNT",
    "AccumulatorConfig",
    "AccountTree",
    "AccountProof",
    "build_zero_cache",
    "subtree_root",
    "merkle_root",
    "verify_account_proof",
    "encode_position",
    "decode_position",
    "assemble_insertion_proof",
    "compute_root",
    "insertion_roots",
    "BatchAccumulator",
]
