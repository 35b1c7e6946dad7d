from typing import Any, List, Optional
from .enums import ErrorCode


class RollupError(Exception):
    def __init__(self, message: str, code: Optional[ErrorCode] = None):
        super().__init__(message)
        self.code = code or ErrorCode.INTERNAL_ERROR


class ValidationError(RollupError):
    """Raised when a deposit request or configuration is malformed."""

    def __init__(self, message: str):
        super().__init__(message, ErrorCode.VALIDATION_ERROR)


class CapacityExceededError(RollupError):
    """Raised when the account tree has no free leaf left for a deposit."""

    def __init__(self, message: str, capacity: int):
        super().__init__(message, ErrorCode.CAPACITY_EXCEEDED)
        self.capacity = capacity


class ProofAssemblyInconsistency(RollupError):
    """
    Raised when batch history and batch index disagree while building an
    insertion proof. This is a programming error, not a runtime condition.
    """

    def __init__(self, message: str):
        super().__init__(message, ErrorCode.PROOF_INCONSISTENCY)


class LedgerSubmissionFailure(RollupError):
    """
    Raised when the ledger rejects or fails to confirm a batch commit.

    ``committed`` lists the batches the same drain confirmed before this one.
    """

    def __init__(self, message: str, batch_index: Optional[int] = None):
        super().__init__(message, ErrorCode.LEDGER_SUBMISSION_FAILED)
        self.batch_index = batch_index
        self.committed: List[Any] = []


class RootMismatchError(RollupError):
    """
    Raised when the ledger confirms a batch but reports a different root.

    The batch stays committed. ``committed`` lists every batch the same
    drain confirmed, this one included. ``batch_index`` is None when no
    batch has been committed yet.
    """

    def __init__(
        self,
        batch_index: Optional[int],
        local_root: int,
        ledger_root: Optional[int],
    ):
        where = "before any batch" if batch_index is None else f"after batch {batch_index}"
        super().__init__(
            f"Root mismatch {where}: local={local_root} ledger={ledger_root}",
            ErrorCode.ROOT_MISMATCH,
        )
        self.batch_index = batch_index
        self.local_root = local_root
        self.ledger_root = ledger_root
        self.committed: List[Any] = []


class EventSourceFailure(RollupError):
    """Raised by an event source whose subscription has broken."""

    def __init__(self, message: str):
        super().__init__(message, ErrorCode.EVENT_SOURCE_FAILED)
