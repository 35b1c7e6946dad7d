from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from rollupnet.core.hashing import DEFAULT_HASHER, FieldHasher
from rollupnet.merkle.account import ZERO_ACCOUNT, Account
from rollupnet.protocol.errors import ValidationError

if TYPE_CHECKING:
    from rollupnet.core.settings import RollupSettings


@dataclass(frozen=True)
class AccumulatorConfig:
    """
    Immutable tree shape shared by the accumulator and the ledger.

    Attributes:
        depth: Account tree depth D
        batch_exponent: k, so each batch holds 2^k accounts
        zero_account: Value used for empty leaves
        hasher: Field hash primitive
    """
    depth: int = 4
    batch_exponent: int = 2
    zero_account: Account = ZERO_ACCOUNT
    hasher: FieldHasher = field(default=DEFAULT_HASHER, compare=False)

    def __post_init__(self) -> None:
        if self.depth < 1:
            raise ValidationError(f"Tree depth must be >= 1, got {self.depth}")
        if self.batch_exponent < 0 or self.batch_exponent >= self.depth:
            raise ValidationError(
                f"Batch exponent must satisfy 0 <= k < {self.depth}, "
                f"got {self.batch_exponent}"
            )

    @property
    def capacity(self) -> int:
        return 1 << self.depth

    @property
    def batch_capacity(self) -> int:
        return 1 << self.batch_exponent

    @property
    def position_width(self) -> int:
        return self.depth - self.batch_exponent

    @property
    def max_batches(self) -> int:
        return 1 << self.position_width

    @classmethod
    def from_settings(
        cls,
        settings: "RollupSettings",
        hasher: FieldHasher = DEFAULT_HASHER,
    ) -> "AccumulatorConfig":
        return cls(
            depth=settings.tree.depth,
            batch_exponent=settings.tree.batch_exponent,
            hasher=hasher,
        )
