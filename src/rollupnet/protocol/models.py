"""
Wire and value types exchanged between the accumulator, the event source
and the ledger.

Hashes and field elements are plain ``int`` in memory and decimal strings
on the wire so that 254-bit values survive any JSON consumer.
"""

from __future__ import annotations

import datetime as _dt
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple


def _now_iso() -> str:
    return _dt.datetime.now(tz=_dt.timezone.utc).isoformat().replace("+00:00", "Z")


def _to_str(value: Optional[int]) -> Optional[str]:
    return None if value is None else str(value)


def _to_int(value: Any) -> Optional[int]:
    return None if value is None else int(value)


# ===========================================================================
# Deposit Request
# ===========================================================================


@dataclass(frozen=True)
class DepositRequest:
    """
    A deposit admission event as emitted by the ledger contract.

    Attributes:
        pubkey: (x, y) public key coordinates, field elements
        amount: Deposited amount
        token_type: Token identifier
    """
    pubkey: Tuple[int, int]
    amount: int
    token_type: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pubKey": [str(self.pubkey[0]), str(self.pubkey[1])],
            "amount": str(self.amount),
            "tokenType": self.token_type,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DepositRequest":
        x, y = data["pubKey"]
        return cls(
            pubkey=(int(x), int(y)),
            amount=int(data["amount"]),
            token_type=int(data.get("tokenType", 0)),
        )


# ===========================================================================
# Insertion Proof
# ===========================================================================


@dataclass(frozen=True)
class InsertionProof:
    """
    Data a verifier needs to place one batch subtree into the account tree.

    Attributes:
        position: Slot address, most significant bit first
        siblings: Sibling hashes, innermost (nearest the subtree) first
        subtree_root: Root of the batch subtree
    """
    position: str
    siblings: Tuple[int, ...]
    subtree_root: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "position": self.position,
            "siblings": [str(s) for s in self.siblings],
            "subtreeRoot": str(self.subtree_root),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InsertionProof":
        return cls(
            position=data["position"],
            siblings=tuple(int(s) for s in data["siblings"]),
            subtree_root=int(data["subtreeRoot"]),
        )


# ===========================================================================
# Batch Commit Request
# ===========================================================================


@dataclass
class BatchCommitRequest:
    """
    Outbound request asking the ledger to commit one batch subtree.

    ``new_root`` is the locally computed root; the ledger recomputes its own
    and the two are compared after confirmation.
    """
    batch_index: int
    batch_size_exponent: int
    position: str
    proof: Tuple[int, ...]
    subtree_root: int
    new_root: int
    key_id: Optional[str] = None
    signature: Optional[str] = None

    @property
    def insertion_proof(self) -> InsertionProof:
        return InsertionProof(
            position=self.position,
            siblings=tuple(self.proof),
            subtree_root=self.subtree_root,
        )

    def signing_payload(self) -> Dict[str, Any]:
        """Fields covered by the operator signature."""
        return {
            "batchIndex": self.batch_index,
            "batchSizeExponent": self.batch_size_exponent,
            "position": self.position,
            "proof": [str(p) for p in self.proof],
            "subtreeRoot": str(self.subtree_root),
            "newRoot": str(self.new_root),
        }

    def to_dict(self) -> Dict[str, Any]:
        data = self.signing_payload()
        data["keyId"] = self.key_id
        data["signature"] = self.signature
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BatchCommitRequest":
        return cls(
            batch_index=int(data["batchIndex"]),
            batch_size_exponent=int(data["batchSizeExponent"]),
            position=data["position"],
            proof=tuple(int(p) for p in data["proof"]),
            subtree_root=int(data["subtreeRoot"]),
            new_root=int(data["newRoot"]),
            key_id=data.get("keyId"),
            signature=data.get("signature"),
        )


# ===========================================================================
# Ledger Receipt
# ===========================================================================


@dataclass
class LedgerReceipt:
    """
    Ledger answer to a BatchCommitRequest.

    Attributes:
        accepted: Whether the ledger committed the batch
        batch_index: Batch the receipt refers to
        root: Ledger root after the commit (None when rejected)
        reason: Rejection reason, if any
        confirmed_at: ISO-8601 timestamp
    """
    accepted: bool
    batch_index: int
    root: Optional[int] = None
    reason: Optional[str] = None
    confirmed_at: str = field(default_factory=_now_iso)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "accepted": self.accepted,
            "batchIndex": self.batch_index,
            "root": _to_str(self.root),
            "reason": self.reason,
            "confirmedAt": self.confirmed_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LedgerReceipt":
        return cls(
            accepted=bool(data["accepted"]),
            batch_index=int(data["batchIndex"]),
            root=_to_int(data.get("root")),
            reason=data.get("reason"),
            confirmed_at=data.get("confirmedAt") or _now_iso(),
        )
