"""Phone number normalization for outbound SMS."""

from __future__ import annotations

import re

_NON_DIGITS = re.compile(r"\D")


def normalize_phone(raw: str | None) -> str | None:
    """Best-effort conversion to international format (North American default).

    11 digits with a leading 1 get a "+", 10 digits get "+1". Anything else is
    returned untouched; a bad number surfaces later as a channel failure.
    """
    if not raw:
        return raw
    digits = _NON_DIGITS.sub("", raw)
    if len(digits) == 11 and digits.startswith("1"):
        return f"+{digits}"
    if len(digits) == 10:
        return f"+1{digits}"
    return raw


def has_phone(value: str | None) -> bool:
    """True if the stored phone field holds anything dialable."""
    return bool(value and value.strip())
