"""
Field hashing primitive for the account tree.

The tree only needs a collision-resistant function from a fixed-arity tuple
of field elements to one field element. Circuit deployments plug in a
Poseidon implementation through ``FieldHasher``; the default
``Sha256FieldHasher`` keeps the same shape (BN254 scalar field, per-arity
domain separation) using SHA-256.
"""

from __future__ import annotations

import hashlib
from typing import Protocol, Sequence, runtime_checkable

# BN254 scalar field order
FIELD_MODULUS = 21888242871839275222246405745257275088548364400416034343698204186575808495617

_DOMAIN_TAG = b"rollupnet.field.v1"


@runtime_checkable
class FieldHasher(Protocol):
    max_arity: int

    def hash(self, inputs: Sequence[int]) -> int:
        ...


def is_field_element(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value < FIELD_MODULUS


class Sha256FieldHasher:
    """
    SHA-256 reduced into the BN254 scalar field.

    Each input is encoded as 32 big-endian bytes after a domain tag and the
    arity byte, so ``hash((a, b))`` and ``hash((a, b, 0))`` never collide.
    """

    max_arity = 16

    def hash(self, inputs: Sequence[int]) -> int:
        arity = len(inputs)
        if arity < 1 or arity > self.max_arity:
            raise ValueError(f"Unsupported arity {arity} (1..{self.max_arity})")

        hasher = hashlib.sha256()
        hasher.update(_DOMAIN_TAG)
        hasher.update(bytes([arity]))
        for value in inputs:
            if not is_field_element(value):
                raise ValueError(f"Input is not a field element: {value!r}")
            hasher.update(value.to_bytes(32, "big"))
        return int.from_bytes(hasher.digest(), "big") % FIELD_MODULUS

    def __repr__(self) -> str:
        return "Sha256FieldHasher()"


def combine(hasher: FieldHasher, left: int, right: int) -> int:
    """Hash two child nodes into their parent."""
    return hasher.hash((left, right))


DEFAULT_HASHER = Sha256FieldHasher()
