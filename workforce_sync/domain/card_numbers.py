from __future__ import annotations
import re

_NON_DIGITS = re.compile(r'\D+')


def normalize_card_number(value: object | None) -> str:
    """Join key between local employees and warehouse rows.

    Non-digits are stripped and leading zeros dropped, so "007", "07" and
    "7" all normalize to "7". Returns '' when no digits remain.
    """
    if value is None:
        return ''
    digits = _NON_DIGITS.sub('', str(value))
    if not digits:
        return ''
    return digits.lstrip('0') or '0'
