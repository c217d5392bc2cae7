"""Pure points arithmetic shared by orders, redemptions and referrals."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping
from uuid import UUID

from levelup_api.domain.errors import InsufficientPointsError, InvalidInputError
from levelup_api.models.user import UserRoleEnum


@dataclass(frozen=True)
class ReferralGrant:
    """Points granted when a referral code resolves at signup."""

    welcome_points: int
    referrer_points: int


def _require_non_negative(value: int, label: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInputError(f"{label} must be an integer")
    if value < 0:
        raise InvalidInputError(f"{label} must not be negative")
    return value


def net_points_delta(points_spent: int, points_earned: int) -> int:
    """Return the single balance adjustment for a spend/earn pair."""

    spent = _require_non_negative(points_spent, "points_spent")
    earned = _require_non_negative(points_earned, "points_earned")
    return earned - spent


def apply_points_delta(
    balance: int,
    *,
    points_spent: int,
    points_earned: int,
    account_id: UUID | None = None,
) -> int:
    """Return the balance after debiting ``points_spent`` and crediting ``points_earned``.

    The spend is checked against the balance before the credit is applied, so
    points earned by an order can never fund that same order's discount.
    """

    delta = net_points_delta(points_spent, points_earned)
    if points_spent > balance:
        raise InsufficientPointsError(account_id, points_spent, balance)
    return balance + delta


def referral_grants(
    referrer_role: str,
    *,
    welcome_points: int,
    referrer_points: int,
) -> ReferralGrant:
    """Only end-user referrers earn the referral bonus; the newcomer always gets the welcome bonus."""

    referrer_award = referrer_points if referrer_role == UserRoleEnum.CLIENT.value else 0
    return ReferralGrant(welcome_points=welcome_points, referrer_points=referrer_award)


def derive_tier(lifetime_points: int, thresholds: Mapping[str, int], default: str) -> str:
    """Return the highest tier whose threshold ``lifetime_points`` reaches."""

    tier = default
    best = None
    for label, threshold in thresholds.items():
        if lifetime_points >= threshold and (best is None or threshold > best):
            tier, best = label, threshold
    return tier


__all__ = [
    "ReferralGrant",
    "apply_points_delta",
    "derive_tier",
    "net_points_delta",
    "referral_grants",
]
