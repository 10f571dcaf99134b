"""
Input sanitization utilities for user-editable receipt fields.
"""

import re
from typing import Optional

# Control characters except tab and newline, which notes may legitimately contain
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B-\x1F\x7F]")


def sanitize_string(value: Optional[str], max_length: int | None = None) -> Optional[str]:
    if value is None:
        return None
    value = _CONTROL_CHARS.sub("", value.strip())
    value = value.replace("<", "&lt;").replace(">", "&gt;")
    if max_length is not None:
        value = value[:max_length]
    return value
