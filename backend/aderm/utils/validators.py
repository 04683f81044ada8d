"""
Input validators
"""
import re
from typing import Iterable

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_PATTERN.match((email or "").strip()))


def email_in_domains(email: str, domains: Iterable[str]) -> bool:
    """
    True when ``email`` is well formed and its domain is one of ``domains``
    (compared case-insensitively). An empty allow-list accepts any domain.
    """
    value = (email or "").strip().lower()
    if not is_valid_email(value):
        return False
    allowed = [d.lower() for d in domains]
    if not allowed:
        return True
    return value.rsplit("@", 1)[1] in allowed
