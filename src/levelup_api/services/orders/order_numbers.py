"""Order number generation: ``ORD-<YYYYMMDD>-<5 digits>``."""

from __future__ import annotations

import random
import re
import secrets
from datetime import datetime, timezone

ORDER_NUMBER_PATTERN = re.compile(r"^ORD-\d{8}-\d{5}$")

_system_random = secrets.SystemRandom()


def generate_order_number(now: datetime | None = None, rng: random.Random | None = None) -> str:
    moment = now or datetime.now(timezone.utc)
    chooser = rng or _system_random
    return f"ORD-{moment:%Y%m%d}-{chooser.randrange(100_000):05d}"


def is_order_number(value: str) -> bool:
    return bool(ORDER_NUMBER_PATTERN.match(value))


__all__ = ["ORDER_NUMBER_PATTERN", "generate_order_number", "is_order_number"]
