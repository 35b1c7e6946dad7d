from .json import canonical_json
from .logging import configure_logging

__all__ = [
    "canonical_json",
    "configure_logging",
]
