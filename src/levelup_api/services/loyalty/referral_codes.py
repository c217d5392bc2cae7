"""Human-readable referral code generation."""

from __future__ import annotations

import random
import secrets
import string
from typing import Awaitable, Callable

from loguru import logger

from levelup_api.domain.errors import DuplicateResourceError
from levelup_api.observability.storefront import get_storefront_store

PREFIX_LENGTH = 3
SUFFIX_LENGTH = 4
SUFFIX_ALPHABET = string.ascii_uppercase + string.digits

_system_random = secrets.SystemRandom()


def referral_prefix(name: str) -> str:
    """First three letters of the name, uppercased and padded with ``X``."""

    compact = "".join(name.split()).upper()
    return compact[:PREFIX_LENGTH].ljust(PREFIX_LENGTH, "X")


def random_suffix(rng: random.Random | None = None) -> str:
    chooser = rng or _system_random
    return "".join(chooser.choice(SUFFIX_ALPHABET) for _ in range(SUFFIX_LENGTH))


def generate_referral_code(name: str, rng: random.Random | None = None) -> str:
    return referral_prefix(name) + random_suffix(rng)


async def allocate_referral_code(
    name: str,
    is_taken: Callable[[str], Awaitable[bool]],
    *,
    max_attempts: int,
    rng: random.Random | None = None,
) -> str:
    """Draw codes for ``name`` until ``is_taken`` reports a free one.

    Only the suffix is redrawn; the prefix always follows the name.
    """

    prefix = referral_prefix(name)
    for attempt in range(1, max_attempts + 1):
        candidate = prefix + random_suffix(rng)
        if not await is_taken(candidate):
            return candidate
        get_storefront_store().record_uniqueness_retry("referral_code")
        logger.debug("Referral code collision", prefix=prefix, attempt=attempt)

    raise DuplicateResourceError(
        f"Could not allocate a unique referral code for prefix {prefix} after {max_attempts} attempts"
    )


__all__ = [
    "allocate_referral_code",
    "generate_referral_code",
    "random_suffix",
    "referral_prefix",
]
