from decimal import Decimal

import pytest

from levelup_api.core.settings import Settings
from levelup_api.domain.errors import InvalidInputError
from levelup_api.models.product import Product
from levelup_api.models.user import User
from levelup_api.schemas.orders import OrderAmounts
from levelup_api.services.pricing import PricedLine, StorefrontPricingPolicy, check_amounts, is_institutional_email


def _line(price: str, quantity: int, *, reward: int = 0) -> PricedLine:
    return PricedLine(product=Product(name="Item", code="X", price=Decimal(price), points_reward=reward), quantity=quantity)


def test_standard_quote() -> None:
    policy = StorefrontPricingPolicy(Settings())
    amounts = policy.quote([_line("10000", 2)], User(account_type="standard"))

    assert amounts.subtotal == Decimal("20000")
    assert amounts.tier_discount == 0
    assert amounts.total == Decimal("20000")
    assert amounts.points_earned == 200


def test_institutional_discount_rounds_half_up() -> None:
    policy = StorefrontPricingPolicy(Settings())
    amounts = policy.quote([_line("10002.50", 1)], User(account_type="institutional"))

    assert amounts.tier_discount == Decimal("2001")
    assert amounts.total == Decimal("8001.50")


def test_points_discount_and_explicit_rewards() -> None:
    policy = StorefrontPricingPolicy(Settings(points_currency_value=Decimal("10")))
    amounts = policy.quote(
        [_line("5000", 1, reward=75), _line("990", 2)],
        User(account_type="standard"),
        points_to_use=40,
    )

    assert amounts.subtotal == Decimal("6980")
    assert amounts.points_discount == Decimal("400")
    assert amounts.points_spent == 40
    assert amounts.total == Decimal("6580")
    assert amounts.points_earned == 75 + 19


def test_negative_points_request_is_invalid() -> None:
    with pytest.raises(InvalidInputError):
        StorefrontPricingPolicy(Settings()).quote([_line("100", 1)], User(account_type="standard"), points_to_use=-1)


def test_check_amounts() -> None:
    lines = [_line("1500", 2)]
    valid = OrderAmounts(subtotal=Decimal("3000"), points_discount=Decimal("500"), total=Decimal("2500"), points_spent=500)
    assert check_amounts(valid, lines) is valid

    with pytest.raises(InvalidInputError):
        check_amounts(OrderAmounts(subtotal=Decimal("2999"), total=Decimal("2999")), lines)
    with pytest.raises(InvalidInputError):
        check_amounts(OrderAmounts(subtotal=Decimal("3000"), total=Decimal("2000")), lines)
    with pytest.raises(InvalidInputError):
        check_amounts(
            OrderAmounts(subtotal=Decimal("3000"), tier_discount=Decimal("-10"), total=Decimal("3010")), lines
        )
    with pytest.raises(InvalidInputError):
        check_amounts(OrderAmounts(subtotal=Decimal("3000"), total=Decimal("3000"), points_earned=-1), lines)


def test_institutional_email_matching() -> None:
    domains = ["duocuc.cl", "profesor.duoc.cl"]
    assert is_institutional_email("Alumno@DuocUC.cl", domains)
    assert is_institutional_email("docente@profesor.duoc.cl", domains)
    assert not is_institutional_email("someone@notduocuc.cl", domains)
