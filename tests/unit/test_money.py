from decimal import Decimal

import pytest

from control_tower.exceptions import ValidationError
from control_tower.services.money import (
    require_non_negative,
    require_positive,
    round_whole,
    to_amount,
)


def test_to_amount_quantizes_to_cents():
    assert to_amount("12.345", "amount") == Decimal("12.35")
    assert to_amount(7, "amount") == Decimal("7.00")


@pytest.mark.parametrize("bad", ["abc", "NaN", "Infinity", None, True])
def test_to_amount_rejects_non_numbers(bad):
    with pytest.raises(ValidationError):
        to_amount(bad, "amount")


def test_require_positive_rejects_zero_and_sub_cent():
    with pytest.raises(ValidationError):
        require_positive(0, "amount")
    with pytest.raises(ValidationError):
        require_positive("0.001", "amount")


def test_require_non_negative_allows_zero():
    assert require_non_negative(0, "total_budget") == Decimal("0.00")
    with pytest.raises(ValidationError) as exc:
        require_non_negative(-5, "total_budget")
    assert "total_budget" in exc.value.message


def test_round_whole_is_half_up():
    assert round_whole(Decimal("2.5")) == 3
    assert round_whole(Decimal("24.49")) == 24
