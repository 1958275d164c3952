"""Centralized JSON serialization.

One function for every JSON document plox writes: config documents and
graph exports. Output is byte-stable for equal inputs, so saved configs can
be diffed and checked in.
"""

import json
from typing import Any, Optional


def canonical_dumps(obj: Any, indent: Optional[int] = None) -> str:
    """
    Canonical JSON serialization.

    Rules:
    - UTF-8 (no ASCII escaping)
    - Sorted keys
    - Stable separators; compact unless `indent` is given
    - List order preserved (panels and lines are ordered)

    Args:
        obj: Python object to serialize (JSON types only)
        indent: Pretty-print indentation for human-edited documents

    Returns:
        Canonical JSON string
    """
    return json.dumps(
        obj,
        sort_keys=True,
        indent=indent,
        separators=(",", ": ") if indent is not None else (",", ":"),
        ensure_ascii=False,
    )
