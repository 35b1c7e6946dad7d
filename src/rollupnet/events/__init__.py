from .processor import DepositProcessor, ProcessorStats
from .source import DepositEventSource, QueueEventSource

__all__ = [
    "DepositEventSource",
    "QueueEventSource",
    "DepositProcessor",
    "ProcessorStats",
]
