"""
Account Tree

Fixed-depth binary Merkle tree over account leaves.

Key features:
- Field-hash based nodes (pluggable FieldHasher)
- Internal right-padding with the zero account to exactly 2^D leaves
- Level-indexed inner nodes (level 0 = root, level D = leaf hashes)
- Per-level zero-subtree cache
- Account inclusion proofs
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Sequence, Tuple

from rollupnet.core.hashing import DEFAULT_HASHER, FieldHasher, combine
from rollupnet.merkle.account import ZERO_ACCOUNT, Account
from rollupnet.protocol.errors import CapacityExceededError


# ===========================================================================
# Level Construction
# ===========================================================================


def is_power_of_two(n: int) -> bool:
    return n > 0 and n & (n - 1) == 0


def build_levels(leaf_hashes: Sequence[int], hasher: FieldHasher) -> List[List[int]]:
    """
    Hash a power-of-two row of nodes up to a single root.

    Returns the levels root-first: ``levels[0] == [root]`` and
    ``levels[-1]`` is the input row.
    """
    if not is_power_of_two(len(leaf_hashes)):
        raise ValueError(f"Leaf count must be a power of two, got {len(leaf_hashes)}")

    levels: List[List[int]] = [list(leaf_hashes)]
    while len(levels[0]) > 1:
        below = levels[0]
        levels.insert(0, [
            combine(hasher, below[i], below[i + 1])
            for i in range(0, len(below), 2)
        ])
    return levels


def merkle_root(node_hashes: Sequence[int], hasher: FieldHasher = DEFAULT_HASHER) -> int:
    """Root over a power-of-two row of already-hashed nodes."""
    return build_levels(node_hashes, hasher)[0][0]


# ===========================================================================
# Account Proof
# ===========================================================================


@dataclass
class AccountProof:
    """
    Inclusion proof for one account leaf.

    Attributes:
        leaf_hash: Hash of the account being proved
        leaf_index: Leaf slot of the account
        proof_hashes: Sibling hashes from leaf to root
        directions: True where the sibling is on the left
        root: Expected tree root
    """
    leaf_hash: int
    leaf_index: int
    proof_hashes: List[int]
    directions: List[bool]
    root: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "leafHash": str(self.leaf_hash),
            "leafIndex": self.leaf_index,
            "proofHashes": [str(h) for h in self.proof_hashes],
            "directions": self.directions,
            "root": str(self.root),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AccountProof":
        return cls(
            leaf_hash=int(data["leafHash"]),
            leaf_index=data["leafIndex"],
            proof_hashes=[int(h) for h in data["proofHashes"]],
            directions=list(data["directions"]),
            root=int(data["root"]),
        )


def verify_account_proof(proof: AccountProof, hasher: FieldHasher = DEFAULT_HASHER) -> bool:
    """
    Recompute the root from an account proof.

    Returns False for any mismatch or malformed proof.
    """
    if len(proof.proof_hashes) != len(proof.directions):
        return False

    try:
        current = proof.leaf_hash
        for sibling, is_left in zip(proof.proof_hashes, proof.directions):
            if is_left:
                current = combine(hasher, sibling, current)
            else:
                current = combine(hasher, current, sibling)
        return current == proof.root
    except (ValueError, TypeError):
        return False


# ===========================================================================
# Account Tree
# ===========================================================================


class AccountTree:
    """
    Full binary Merkle tree over 2^depth account slots.

    Construction is the only mutation path: pass the accounts assigned so far
    and the tree pads the remaining slots with the zero account itself.
    """

    def __init__(
        self,
        accounts: Sequence[Account],
        depth: int,
        hasher: FieldHasher = DEFAULT_HASHER,
        zero_account: Account = ZERO_ACCOUNT,
    ):
        if depth < 0:
            raise ValueError(f"Tree depth must be >= 0, got {depth}")

        capacity = 1 << depth
        if len(accounts) > capacity:
            raise CapacityExceededError(
                f"{len(accounts)} accounts do not fit a depth-{depth} tree",
                capacity=capacity,
            )

        self._depth = depth
        self._hasher = hasher
        self._accounts: Tuple[Account, ...] = tuple(accounts) + (
            (zero_account,) * (capacity - len(accounts))
        )
        self._filled = len(accounts)
        self._inner_nodes = build_levels(
            [account.hash(hasher) for account in self._accounts],
            hasher,
        )

    @property
    def depth(self) -> int:
        return self._depth

    @property
    def capacity(self) -> int:
        return 1 << self._depth

    @property
    def filled(self) -> int:
        """Number of accounts supplied before padding."""
        return self._filled

    @property
    def root(self) -> int:
        return self._inner_nodes[0][0]

    @property
    def accounts(self) -> Tuple[Account, ...]:
        return self._accounts

    @property
    def inner_nodes(self) -> List[List[int]]:
        return [list(level) for level in self._inner_nodes]

    @property
    def leaf_hashes(self) -> List[int]:
        return list(self._inner_nodes[self._depth])

    def node(self, level: int, index: int) -> int:
        return self._inner_nodes[level][index]

    def account(self, index: int) -> Account:
        if index < 0 or index >= self.capacity:
            raise ValueError(f"Invalid leaf index: {index}")
        return self._accounts[index]

    def get_proof(self, index: int) -> AccountProof:
        """
        Get the inclusion proof for the account at ``index``.

        Raises:
            ValueError: If index is outside the tree
        """
        if index < 0 or index >= self.capacity:
            raise ValueError(f"Invalid leaf index: {index}")

        proof_hashes: List[int] = []
        directions: List[bool] = []
        position = index
        for level in range(self._depth, 0, -1):
            proof_hashes.append(self._inner_nodes[level][position ^ 1])
            directions.append(position % 2 == 1)
            position //= 2

        return AccountProof(
            leaf_hash=self._inner_nodes[self._depth][index],
            leaf_index=index,
            proof_hashes=proof_hashes,
            directions=directions,
            root=self.root,
        )


# ===========================================================================
# Subtree and Zero Cache
# ===========================================================================


def subtree_root(
    accounts: Sequence[Account],
    size: int,
    hasher: FieldHasher = DEFAULT_HASHER,
    zero_account: Account = ZERO_ACCOUNT,
) -> int:
    """
    Root of a standalone subtree of ``size`` leaves.

    ``size`` must be a power of two; missing leaves are zero accounts.
    """
    if not is_power_of_two(size):
        raise ValueError(f"Subtree size must be a power of two, got {size}")
    if len(accounts) > size:
        raise CapacityExceededError(
            f"{len(accounts)} accounts do not fit a subtree of {size}",
            capacity=size,
        )
    padded = list(accounts) + [zero_account] * (size - len(accounts))
    return merkle_root([account.hash(hasher) for account in padded], hasher)


def build_zero_cache(
    depth: int,
    hasher: FieldHasher = DEFAULT_HASHER,
    zero_account: Account = ZERO_ACCOUNT,
) -> Tuple[int, ...]:
    """
    Hash of an all-zero subtree at every level, root level first.

    ``cache[depth]`` is the zero account hash and
    ``cache[l] == combine(cache[l + 1], cache[l + 1])``.
    """
    zero_tree = AccountTree([], depth, hasher, zero_account)
    return tuple(zero_tree.node(level, 0) for level in range(depth + 1))
