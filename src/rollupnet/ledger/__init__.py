from .base import ExternalLedger
from .http import HTTPLedgerClient
from .inprocess import InMemoryLedger
from .signing import OperatorSigner, OperatorVerifier

__all__ = [
    "ExternalLedger",
    "HTTPLedgerClient",
    "InMemoryLedger",
    "OperatorSigner",
    "OperatorVerifier",
]
