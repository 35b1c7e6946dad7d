from .enums import AccumulatorState, ErrorCode
from .errors import (
    CapacityExceededError,
    EventSourceFailure,
    LedgerSubmissionFailure,
    ProofAssemblyInconsistency,
    RollupError,
    RootMismatchError,
    ValidationError,
)
from .models import (
    BatchCommitRequest,
    DepositRequest,
    InsertionProof,
    LedgerReceipt,
)

__all__ = [
    "AccumulatorState",
    "ErrorCode",
    "RollupError",
    "ValidationError",
    "CapacityExceededError",
    "ProofAssemblyInconsistency",
    "LedgerSubmissionFailure",
    "RootMismatchError",
    "EventSourceFailure",
    "DepositRequest",
    "InsertionProof",
    "BatchCommitRequest",
    "LedgerReceipt",
]
