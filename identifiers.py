"""
Human-readable identifier generation.

Every generator here only produces a *candidate*. Uniqueness is enforced by
the unique indexes in database.py; callers handle the resulting conflicts.
"""

import random
from datetime import date
from typing import Callable, Iterable, Optional

from config import ID_MAX_ATTEMPTS
from errors import IdGenerationExhausted


def date_key(day: Optional[date] = None) -> str:
    day = day or date.today()
    return day.strftime("%d%m%y")


def next_order_number(prefix: str, existing_orders: Iterable[str], today: Optional[date] = None) -> str:
    """Next ``<PREFIX>-<DDMMYY>-<NNN>`` code for the given day.

    The sequence is per prefix and per day and starts at 001.
    """
    key = date_key(today)
    stem = f"{prefix}-{key}-"
    highest = 0
    for code in existing_orders:
        if not code or not code.startswith(stem):
            continue
        tail = code.rsplit("-", 1)[-1]
        if tail.isdigit():
            highest = max(highest, int(tail))
    return f"{stem}{highest + 1:03d}"


def _draw_unique(draw: Callable[[], str], exists: Callable[[str], bool], what: str,
                 max_attempts: int) -> str:
    for _ in range(max_attempts):
        candidate = draw()
        if not exists(candidate):
            return candidate
    raise IdGenerationExhausted(
        f"Unable to generate unique {what} after {max_attempts} attempts"
    )


def _prefixed_code(letter: str) -> str:
    return f"{letter}{random.randint(0, 99999):05d}"


def next_client_code(exists: Callable[[str], bool], max_attempts: int = ID_MAX_ATTEMPTS) -> str:
    return _draw_unique(lambda: _prefixed_code("C"), exists, "client code", max_attempts)


def next_service_code(exists: Callable[[str], bool], max_attempts: int = ID_MAX_ATTEMPTS) -> str:
    return _draw_unique(lambda: _prefixed_code("S"), exists, "service code", max_attempts)


def next_account_id(exists: Callable[[str], bool], max_attempts: int = ID_MAX_ATTEMPTS) -> str:
    # 10000-99999, never zero padded
    return _draw_unique(lambda: str(random.randint(10000, 99999)), exists, "user ID", max_attempts)
