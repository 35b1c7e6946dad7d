"""
Batch slot addressing and insertion proofs.

A batch of 2^k accounts occupies one of the 2^(D-k) subtree slots of the
account tree. Its insertion proof lists the sibling hashes above that slot,
innermost first, so a verifier holding only the previous root can check the
slot was empty and derive the new root from the batch subtree root.
"""

from __future__ import annotations

from typing import List, Sequence, Tuple

from rollupnet.core.hashing import DEFAULT_HASHER, FieldHasher, combine
from rollupnet.merkle.tree import merkle_root
from rollupnet.protocol.errors import ProofAssemblyInconsistency
from rollupnet.protocol.models import InsertionProof


def encode_position(index: int, width: int) -> str:
    """
    Binary slot address of ``index``, most significant bit first.

    Raises:
        ValueError: If index does not fit in ``width`` bits
    """
    if width < 0:
        raise ValueError(f"Position width must be >= 0, got {width}")
    if index < 0 or index >= 1 << width:
        raise ValueError(f"Index {index} does not fit in {width} bits")
    if width == 0:
        return ""
    return format(index, f"0{width}b")


def decode_position(bits: str) -> int:
    """Inverse of encode_position."""
    if any(c not in "01" for c in bits):
        raise ValueError(f"Invalid position bit-string: {bits!r}")
    return int(bits, 2) if bits else 0


def assemble_insertion_proof(
    batch_index: int,
    subtree_roots: Sequence[int],
    zero_cache: Sequence[int],
    depth: int,
    batch_exponent: int,
    hasher: FieldHasher = DEFAULT_HASHER,
) -> Tuple[int, ...]:
    """
    Sibling hashes for inserting batch ``batch_index``, innermost first.

    ``subtree_roots`` must hold every committed batch plus the batch being
    proven, in batch order. Siblings to the right of the slot are still
    empty, so they come from the zero cache; siblings to the left cover
    only committed batches and are hashed from their subtree roots.

    Raises:
        ProofAssemblyInconsistency: On any history/index disagreement
    """
    width = depth - batch_exponent
    if width < 0:
        raise ProofAssemblyInconsistency(
            f"Batch exponent {batch_exponent} exceeds tree depth {depth}"
        )
    if batch_index < 0 or batch_index >= 1 << width:
        raise ProofAssemblyInconsistency(
            f"Batch index {batch_index} outside {1 << width} subtree slots"
        )
    if len(subtree_roots) != batch_index + 1:
        raise ProofAssemblyInconsistency(
            f"Batch {batch_index} proven with {len(subtree_roots)} recorded "
            f"subtree roots; batches must be committed in order"
        )
    if len(zero_cache) != depth + 1:
        raise ProofAssemblyInconsistency(
            f"Zero cache has {len(zero_cache)} levels, expected {depth + 1}"
        )

    siblings: List[int] = list(reversed(zero_cache[1:width + 1]))
    for level in range(width):
        node = batch_index >> level
        if node & 1:
            left = node - 1
            siblings[level] = merkle_root(
                subtree_roots[left << level:(left + 1) << level],
                hasher,
            )

    if len(siblings) != width:
        raise ProofAssemblyInconsistency(
            f"Proof has {len(siblings)} siblings, expected {width}"
        )
    return tuple(siblings)


def compute_root(
    node_hash: int,
    position: str,
    siblings: Sequence[int],
    hasher: FieldHasher = DEFAULT_HASHER,
) -> int:
    """
    Recombine a node with its sibling path up to the root.

    Bit ``len(position) - 1 - i`` says whether the running node is a right
    child (1) or a left child (0) at proof level ``i``.
    """
    if len(position) != len(siblings):
        raise ValueError(
            f"Position has {len(position)} bits but proof has {len(siblings)} siblings"
        )
    decode_position(position)

    current = node_hash
    for level, sibling in enumerate(siblings):
        if position[len(position) - 1 - level] == "1":
            current = combine(hasher, sibling, current)
        else:
            current = combine(hasher, current, sibling)
    return current


def insertion_roots(
    proof: InsertionProof,
    empty_subtree_hash: int,
    hasher: FieldHasher = DEFAULT_HASHER,
) -> Tuple[int, int]:
    """
    Roots before and after applying an insertion proof.

    The first value is the root with the slot still empty; a verifier
    compares it to its current root before accepting the second.
    """
    before = compute_root(empty_subtree_hash, proof.position, proof.siblings, hasher)
    after = compute_root(proof.subtree_root, proof.position, proof.siblings, hasher)
    return before, after
