"""
Utility helper functions
"""
from datetime import datetime, timezone
import re
import secrets
import string
import time

_ID_ALPHABET = string.ascii_lowercase + string.digits


def utcnow() -> datetime:
    """Timezone-aware current UTC time"""
    return datetime.now(timezone.utc)


def epoch_millis() -> int:
    return int(time.time() * 1000)


def generate_id(prefix: str) -> str:
    """Record id in the ``{prefix}_{millis}_{9 random chars}`` shape"""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"{prefix}_{epoch_millis()}_{suffix}"


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def safe_filename(filename: str) -> str:
    """Strip path separators and odd characters from an uploaded file name"""
    base = re.sub(r"[^A-Za-z0-9._-]+", "_", (filename or "").strip())
    return base[:160] or f"document_{secrets.token_hex(4)}"


def mask_email(email: str) -> str:
    value = (email or "").strip()
    if "@" not in value:
        return "****"
    local, domain = value.split("@", 1)
    if len(local) <= 2:
        local_masked = "*" * len(local)
    else:
        local_masked = local[:2] + ("*" * (len(local) - 2))
    return f"{local_masked}@{domain}"
