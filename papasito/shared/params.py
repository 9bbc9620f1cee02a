"""Query-string parsing helpers"""

import re
from typing import Optional

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def parse_int(value: Optional[str], default: str) -> int:
    """
    Parse an integer the way browsers' parseInt does: leading digits win
    ("20abc" -> 20). Empty or missing values use `default`.

    No range checks are applied. Raises ValueError when no digits lead the value.
    """
    raw = value or default
    match = _LEADING_INT.match(raw)
    if not match:
        raise ValueError(f"invalid integer: {raw!r}")
    return int(match.group(1))
