"""Deep merge of a partial wizard payload into the accumulated document.

Rules, applied per key of `patch`:
  - None clears the key (stored as an explicit null; omitting a key
    leaves the base value untouched)
  - dict over dict recurses
  - anything else (lists, scalars, type mismatch) replaces outright

Keys only present in `base` are kept, so saving step4 never disturbs
step1..step3. Neither argument is mutated.
"""

from typing import Any


def deep_merge(base: dict[str, Any] | None, patch: dict[str, Any] | None) -> dict[str, Any]:
    result = dict(base or {})
    for key, value in (patch or {}).items():
        if value is None:
            result[key] = None
            continue
        existing = result.get(key)
        if isinstance(value, dict) and isinstance(existing, dict):
            result[key] = deep_merge(existing, value)
        elif isinstance(value, dict):
            result[key] = deep_merge({}, value)
        elif isinstance(value, list):
            result[key] = list(value)
        else:
            result[key] = value
    return result
