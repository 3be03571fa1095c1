"""Tests for the platform fee split and currency helpers."""

from __future__ import annotations

import pytest

from connectpay.errors import ValidationError
from connectpay.services.fees import compute_fee_split, percentage, to_minor_units


# ---------------------------------------------------------------------------
# Fee split
# ---------------------------------------------------------------------------

def test_ten_percent_of_demo_product():
    """R$ 99,00 -> R$ 9,90 platform fee, R$ 89,10 to the seller."""
    split = compute_fee_split(9900, 1, 10)

    assert split.total_amount == 9900
    assert split.platform_fee_amount == 990
    assert split.seller_amount == 8910
    assert split.fee_percent == 10


def test_fee_rounds_half_up():
    # 1005 * 10% = 100.5 -> 101
    split = compute_fee_split(1005, 1, 10)
    assert split.platform_fee_amount == 101
    assert split.seller_amount == 904

    # 1004 * 10% = 100.4 -> 100
    assert compute_fee_split(1004, 1, 10).platform_fee_amount == 100


def test_fee_is_applied_to_the_whole_order_not_per_item():
    # 3 x 5 = 15 at 10% is 1.5 -> 2; per-item rounding would give 3 x 1 = 3
    split = compute_fee_split(5, 3, 10)
    assert split.total_amount == 15
    assert split.platform_fee_amount == 2


@pytest.mark.parametrize("fee_percent", [0, 1, 2.5, 7, 10, 15, 33, 50, 99, 100])
def test_fee_and_seller_amount_always_sum_to_total(fee_percent):
    for amount in (1, 2, 3, 49, 99, 100, 101, 999, 4990, 9900, 123457):
        split = compute_fee_split(amount, 1, fee_percent)
        assert split.platform_fee_amount + split.seller_amount == amount
        assert 0 <= split.platform_fee_amount <= amount


@pytest.mark.parametrize("fee_percent", [0, 1, 7, 10, 33, 100])
def test_fee_matches_integer_half_up_formula(fee_percent):
    for amount in range(1, 400):
        # floor(amount * p / 100 + 1/2) in integer arithmetic
        expected = (2 * amount * fee_percent + 100) // 200
        assert compute_fee_split(amount, 1, fee_percent).platform_fee_amount == expected


def test_zero_and_full_fee():
    assert compute_fee_split(4990, 1, 0).platform_fee_amount == 0
    assert compute_fee_split(4990, 1, 0).seller_amount == 4990
    assert compute_fee_split(4990, 1, 100).platform_fee_amount == 4990
    assert compute_fee_split(4990, 1, 100).seller_amount == 0


def test_quantity_multiplies_total():
    split = compute_fee_split(4990, 2, 10)
    assert split.total_amount == 9980
    assert split.platform_fee_amount == 998


@pytest.mark.parametrize(
    "unit_amount, quantity, fee_percent",
    [
        (0, 1, 10),
        (-100, 1, 10),
        (100, 0, 10),
        (100, -1, 10),
        (100, 1, -1),
        (100, 1, 100.5),
    ],
)
def test_invalid_inputs_are_rejected(unit_amount, quantity, fee_percent):
    with pytest.raises(ValidationError):
        compute_fee_split(unit_amount, quantity, fee_percent)


# ---------------------------------------------------------------------------
# Minor units
# ---------------------------------------------------------------------------

@pytest.mark.parametrize(
    "price, expected",
    [
        (99, 9900),
        (49.9, 4990),
        ("25.50", 2550),
        ("0.01", 1),
        ("10.005", 1001),
        ("0.005", 1),
    ],
)
def test_to_minor_units(price, expected):
    assert to_minor_units(price) == expected


@pytest.mark.parametrize("price", [0, -5, "0.004", "abc", "", "NaN", "Infinity", None])
def test_to_minor_units_rejects_non_positive_or_garbage(price):
    with pytest.raises(ValidationError):
        to_minor_units(price)


def test_percentage_rounds_half_up():
    assert percentage(0, 4) == 0
    assert percentage(1, 4) == 25
    assert percentage(1, 3) == 33
    assert percentage(2, 3) == 67
    assert percentage(4, 4) == 100
