"""Shared utilities used across the checkout core."""

import re
from datetime import date, datetime
from zoneinfo import ZoneInfo

_EMAIL_RE = re.compile(r"\S+@\S+\.\S+")


def normalize_phone(value: str) -> str:
    """Normalize a phone number by stripping everything except digits and a leading +.

    Examples:
        >>> normalize_phone("0412 345 678")
        '0412345678'
        >>> normalize_phone("+61 (412) 345-678")
        '+61412345678'
    """
    value = value.strip()
    if value.startswith("+"):
        return "+" + re.sub(r"[^\d]", "", value[1:])
    return re.sub(r"[^\d]", "", value)


def is_valid_email(value: str) -> bool:
    """Loose shape check: something@something.something, no whitespace.

    Examples:
        >>> is_valid_email("sam@example.com")
        True
        >>> is_valid_email("sam@example")
        False
    """
    return bool(_EMAIL_RE.fullmatch(value.strip()))


def is_blank(value: object) -> bool:
    """True for None and whitespace-only strings."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def today_in(timezone_name: str) -> date:
    """Current calendar date in the given IANA timezone."""
    return datetime.now(ZoneInfo(timezone_name)).date()
