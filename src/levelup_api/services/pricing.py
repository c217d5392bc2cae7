"""Default storefront pricing policy.

Fulfillment consumes the figures produced here as-is; discount rates and the
points conversion live in configuration, not in the order engine.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal
from typing import Protocol, Sequence

from levelup_api.core.settings import Settings, settings as default_settings
from levelup_api.domain.errors import InvalidInputError
from levelup_api.models.product import Product
from levelup_api.models.user import AccountTypeEnum, User
from levelup_api.schemas.orders import OrderAmounts

ZERO = Decimal("0")


@dataclass(frozen=True)
class PricedLine:
    product: Product
    quantity: int

    @property
    def unit_price(self) -> Decimal:
        return Decimal(self.product.price)

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


class PricingPolicy(Protocol):
    def quote(self, lines: Sequence[PricedLine], account: User, *, points_to_use: int = 0) -> OrderAmounts:
        ...


def lines_subtotal(lines: Sequence[PricedLine]) -> Decimal:
    return sum((line.line_total for line in lines), ZERO)


def check_amounts(amounts: OrderAmounts, lines: Sequence[PricedLine]) -> OrderAmounts:
    """Reject precomputed figures that contradict the order lines or each other."""

    for label in ("subtotal", "tier_discount", "points_discount", "total"):
        if getattr(amounts, label) < ZERO:
            raise InvalidInputError(f"{label} must not be negative")
    for label in ("points_spent", "points_earned"):
        if getattr(amounts, label) < 0:
            raise InvalidInputError(f"{label} must not be negative")

    expected_subtotal = lines_subtotal(lines)
    if amounts.subtotal != expected_subtotal:
        raise InvalidInputError(
            f"Subtotal {amounts.subtotal} does not match order lines ({expected_subtotal})"
        )
    expected_total = amounts.subtotal - amounts.tier_discount - amounts.points_discount
    if amounts.total != expected_total:
        raise InvalidInputError(f"Total {amounts.total} does not equal subtotal minus discounts ({expected_total})")
    return amounts


def is_institutional_email(email: str, domains: Sequence[str]) -> bool:
    lowered = email.lower()
    return any(lowered.endswith("@" + domain) for domain in domains)


class StorefrontPricingPolicy:
    """Tier discount for institutional accounts, 1:1 points discount, per-line earn rules."""

    def __init__(self, config: Settings | None = None) -> None:
        self._settings = config or default_settings

    def quote(self, lines: Sequence[PricedLine], account: User, *, points_to_use: int = 0) -> OrderAmounts:
        if points_to_use < 0:
            raise InvalidInputError("points_to_use must not be negative")

        quantum = self._settings.currency_quantum
        subtotal = lines_subtotal(lines)

        tier_discount = ZERO
        if account.account_type == AccountTypeEnum.INSTITUTIONAL.value:
            tier_discount = (subtotal * self._settings.institutional_discount_rate).quantize(
                quantum, rounding=ROUND_HALF_UP
            )

        point_value = self._settings.points_currency_value
        requested_discount = Decimal(points_to_use) * point_value
        points_discount = min(requested_discount, subtotal - tier_discount)
        points_spent = int((points_discount / point_value).to_integral_value(rounding=ROUND_DOWN))
        points_discount = Decimal(points_spent) * point_value

        total = subtotal - tier_discount - points_discount
        points_earned = sum(self._earned_for(line) for line in lines)

        return OrderAmounts(
            subtotal=subtotal,
            tier_discount=tier_discount,
            points_discount=points_discount,
            total=total,
            points_spent=points_spent,
            points_earned=points_earned,
        )

    def _earned_for(self, line: PricedLine) -> int:
        reward = int(line.product.points_reward or 0)
        if reward > 0:
            return reward * line.quantity
        return int((line.line_total / self._settings.points_earn_divisor).to_integral_value(rounding=ROUND_DOWN))


__all__ = [
    "PricedLine",
    "PricingPolicy",
    "StorefrontPricingPolicy",
    "check_amounts",
    "is_institutional_email",
    "lines_subtotal",
]
