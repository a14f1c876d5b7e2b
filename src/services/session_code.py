"""Citizen Security Code: a per-session identifier shown to the user.

Format: ``CSC-<milliseconds since epoch in base 36>-<6 random characters>``,
all upper case, e.g. ``CSC-MGX3K2P1-4F9A0C``.
"""

from __future__ import annotations

import re
import time
from typing import Final
from uuid import uuid4

SESSION_CODE_PREFIX: Final[str] = "CSC"
SESSION_CODE_PATTERN: Final[re.Pattern[str]] = re.compile(r"^CSC-[0-9A-Z]+-[0-9A-Z]{6}$")

_DIGITS = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    out: list[str] = []
    while value:
        value, rem = divmod(value, 36)
        out.append(_DIGITS[rem])
    return "".join(reversed(out))


def generate_session_code(now_ms: int | None = None) -> str:
    """Issue a new session code.

    Parameters
    ----------
    now_ms:
        Timestamp in milliseconds; defaults to the current wall clock.
    """
    if now_ms is None:
        now_ms = time.time_ns() // 1_000_000
    return f"{SESSION_CODE_PREFIX}-{_to_base36(now_ms)}-{uuid4().hex[:6].upper()}"
