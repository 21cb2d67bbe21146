from __future__ import annotations

import hashlib
import secrets
import time
from typing import Optional

SESSION_COOKIE_NAME = "webstack_session_id"
SESSION_COOKIE_MAX_AGE = 60 * 60 * 24 * 365

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def generate_session_id(now_ms: Optional[int] = None) -> str:
    """Return `<epoch-ms>-<9 base36 chars>`."""
    millis = now_ms if now_ms is not None else int(time.time() * 1000)
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"{millis}-{suffix}"


def hash_ip(ip: Optional[str]) -> Optional[str]:
    if not ip:
        return None
    return hashlib.sha256(ip.encode("utf-8")).hexdigest()
