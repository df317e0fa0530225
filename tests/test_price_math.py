import math
from decimal import Decimal
from fractions import Fraction
import pytest
from copytrader.core.price_math import price_from_sqrt_x96, price_token1_per_token0, scale_integer

SQRT_FIXTURE = 1461446703485210103287273052203988822378723970342


def test_price_from_sqrt_matches_exact_fraction():
    price = price_from_sqrt_x96(SQRT_FIXTURE, 6, 18)
    expected = Fraction(2 ** 192 * 10 ** 18, SQRT_FIXTURE ** 2 * 10 ** 6)
    assert abs(Fraction(price) - expected) / expected < Fraction(1, 10 ** 6)


def test_price_from_sqrt_usdc_weth_around_3000():
    sqrt_price = math.isqrt(2 ** 192 * 10 ** 12 // 3000)
    price = price_from_sqrt_x96(sqrt_price, 6, 18)
    assert abs(price - Decimal(3000)) < Decimal("0.000001")


def test_both_directions_are_reciprocal():
    a = price_from_sqrt_x96(SQRT_FIXTURE, 6, 18)
    b = price_token1_per_token0(SQRT_FIXTURE, 6, 18)
    assert abs(a * b - 1) < Decimal("1e-20")


@pytest.mark.parametrize("sqrt_price", [0, -1])
def test_non_positive_sqrt_price_rejected(sqrt_price):
    with pytest.raises(ValueError):
        price_from_sqrt_x96(sqrt_price, 6, 18)
    with pytest.raises(ValueError):
        price_token1_per_token0(sqrt_price, 6, 18)


@pytest.mark.parametrize("raw, decimals, expected", [
    (1234567, 6, Decimal("1.234567")),
    (-500000, 6, Decimal("0.5")),
    (0, 18, Decimal(0)),
    (5 * 10 ** 17, 18, Decimal("0.5")),
    (1, 18, Decimal("0.000000000000000001")),
    (42, 0, Decimal(42)),
])
def test_scale_integer(raw, decimals, expected):
    assert scale_integer(raw, decimals) == expected


def test_scale_integer_keeps_full_precision():
    # uint256 上限附近的數值不能經過 float
    raw = 2 ** 255 - 1
    digits = str(raw)
    scaled = scale_integer(raw, 18)
    # 直接比字串，避免預設 28 位 context 把乘積四捨五入
    assert str(scaled) == f"{digits[:-18]}.{digits[-18:]}"


def test_scale_integer_negative_decimals():
    with pytest.raises(ValueError):
        scale_integer(1, -1)
