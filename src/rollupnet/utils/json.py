import json
from typing import Any


def canonical_json(obj: Any) -> str:
    """Sorted-key, whitespace-free JSON used for signing payloads."""
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
