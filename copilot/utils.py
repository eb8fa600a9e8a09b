"""Shared utilities used across the configurator copilot."""

import re
from typing import Any, Optional

NULL_SENTINELS = frozenset({"", "null", "none", "undefined"})


def normalize_phone(value: str) -> str:
    """Normalize a phone number by stripping everything except digits and a leading +.

    Examples:
        >>> normalize_phone("11 99999-8888")
        '11999998888'
        >>> normalize_phone("+55 (11) 99999-8888")
        '+5511999998888'
    """
    value = value.strip()
    if value.startswith("+"):
        return "+" + re.sub(r"[^\d]", "", value[1:])
    return re.sub(r"[^\d]", "", value)


def clean_optional_text(value: Any) -> Optional[str]:
    """Return stripped text, or None for missing values and the literal "null".

    The extraction service fills absent keys with the string "null"; those
    must never be mistaken for real values.

    Examples:
        >>> clean_optional_text("  Ana ")
        'Ana'
        >>> clean_optional_text("null") is None
        True
    """
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip()
    if text.lower() in NULL_SENTINELS:
        return None
    return text
