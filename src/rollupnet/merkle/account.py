"""
Account leaf records.

An account is the unit committed by each leaf of the account tree. Its hash
is the field hash of ``(index, pubkey_x, pubkey_y, balance, nonce,
token_type)``; an unassigned index hashes as 0.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from rollupnet.core.hashing import DEFAULT_HASHER, FieldHasher, is_field_element


@dataclass(frozen=True)
class Account:
    """
    A leaf of the account tree.

    Attributes:
        index: Leaf index, or None while unassigned (zero account)
        pubkey_x: Public key x coordinate
        pubkey_y: Public key y coordinate
        balance: Account balance
        nonce: Transaction counter
        token_type: Token identifier
    """
    index: Optional[int] = None
    pubkey_x: int = 0
    pubkey_y: int = 0
    balance: int = 0
    nonce: int = 0
    token_type: int = 0

    def __post_init__(self) -> None:
        if self.index is not None and self.index < 0:
            raise ValueError(f"Account index must be >= 0, got {self.index}")
        for name in ("balance", "nonce", "token_type"):
            if getattr(self, name) < 0:
                raise ValueError(f"Account {name} must be >= 0")
        for name in ("pubkey_x", "pubkey_y", "balance", "nonce", "token_type"):
            if not is_field_element(getattr(self, name)):
                raise ValueError(f"Account {name} is not a field element")

    @property
    def is_zero(self) -> bool:
        return self == ZERO_ACCOUNT

    def hash(self, hasher: FieldHasher = DEFAULT_HASHER) -> int:
        return hasher.hash((
            self.index or 0,
            self.pubkey_x,
            self.pubkey_y,
            self.balance,
            self.nonce,
            self.token_type,
        ))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "pubKey": [str(self.pubkey_x), str(self.pubkey_y)],
            "balance": str(self.balance),
            "nonce": self.nonce,
            "tokenType": self.token_type,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Account":
        x, y = data.get("pubKey", ["0", "0"])
        return cls(
            index=data.get("index"),
            pubkey_x=int(x),
            pubkey_y=int(y),
            balance=int(data.get("balance", 0)),
            nonce=int(data.get("nonce", 0)),
            token_type=int(data.get("tokenType", 0)),
        )


# Canonical empty-slot value used to pad unfilled leaves.
ZERO_ACCOUNT = Account()
