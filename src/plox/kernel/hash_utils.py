"""Hash utilities with explicit canonicalization rules for stable cache keys.

A line's extraction signature (kind + guard + regex + event value) is
canonicalized and hashed, so that two lines which would extract the same
samples from the same file share one cache entry, across processes and
Python versions.

Key rules:
- Object keys sorted recursively
- Arrays preserve order
- Floats BANNED (hard validation error); decimals are encoded as strings
- Strings normalized to NFC
- Non-JSON types forbidden
"""

import hashlib
import json
import unicodedata
from typing import Any, Dict

from .spec import EventValue, Line


class CanonicalizationError(ValueError):
    """Raised when an object cannot be canonicalized."""
    pass


def _normalize_string(s: str) -> str:
    """Normalize string to NFC (Unicode Normalization Form Canonical Composition)."""
    return unicodedata.normalize('NFC', s)


def _canonicalize_value(obj: Any, path: str = "") -> Any:
    if obj is None or isinstance(obj, bool):
        return obj
    elif isinstance(obj, int):
        return obj
    elif isinstance(obj, float):
        raise CanonicalizationError(
            f"Floats are not allowed in signatures (at {path}). Use strings for decimals instead."
        )
    elif isinstance(obj, str):
        return _normalize_string(obj)
    elif isinstance(obj, dict):
        out = {}
        for key, value in sorted(obj.items()):
            if not isinstance(key, str):
                raise CanonicalizationError(
                    f"Dictionary keys must be strings at {path}, got {type(key).__name__}"
                )
            out[_normalize_string(key)] = _canonicalize_value(value, f"{path}.{key}" if path else key)
        return out
    elif isinstance(obj, list):
        return [_canonicalize_value(item, f"{path}[{i}]") for i, item in enumerate(obj)]
    raise CanonicalizationError(
        f"Non-JSON type at {path}: {type(obj).__name__}. "
        f"Only None, bool, int, str, dict, and list are allowed."
    )


def canonicalize_json(obj: Any) -> str:
    """Canonicalize a JSON-serializable object to a stable string representation.

    Raises:
        CanonicalizationError: If object contains floats or non-JSON types
    """
    canonicalized = _canonicalize_value(obj)
    return json.dumps(canonicalized, sort_keys=True, ensure_ascii=False, separators=(',', ':'))


def line_signature(line: Line, regex: str, timestamp_format: str) -> Dict[str, Any]:
    """Normalized matching semantics of a line.

    Styling and binding are excluded: they never change extracted samples.
    """
    ds = line.data_source
    signature: Dict[str, Any] = {
        "kind": ds.kind,
        "guard": ds.guard,
        "regex": regex,
        "timestamp_format": timestamp_format,
    }
    if isinstance(ds, EventValue):
        signature["yvalue"] = repr(float(ds.yvalue))
    return signature


def hash_signature(signature: Dict[str, Any]) -> str:
    """Compute SHA256 hash of a canonicalized signature.

    Returns:
        SHA256 hash as hex string (prefixed with "sha256:")
    """
    canonical_str = canonicalize_json(signature)
    digest = hashlib.sha256(canonical_str.encode('utf-8')).hexdigest()
    return f"sha256:{digest}"
