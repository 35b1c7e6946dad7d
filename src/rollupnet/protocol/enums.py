from enum import Enum


class ErrorCode(str, Enum):
    CAPACITY_EXCEEDED = "capacity_exceeded"
    PROOF_INCONSISTENCY = "proof_inconsistency"
    LEDGER_SUBMISSION_FAILED = "ledger_submission_failed"
    ROOT_MISMATCH = "root_mismatch"
    EVENT_SOURCE_FAILED = "event_source_failed"
    VALIDATION_ERROR = "validation_error"
    INTERNAL_ERROR = "internal_error"


class AccumulatorState(str, Enum):
    ACCUMULATING = "accumulating"
    BATCH_READY = "batch_ready"
    SUBMITTING = "submitting"
    COMMITTED = "committed"
    SUBMIT_FAILED = "submit_failed"
