import pytest

from equiploan.core.availability import (
    adjusted_available,
    can_request,
    can_reserve,
    clamp_available,
    release,
    reserve,
)
from equiploan.core.errors import InsufficientStockError


def test_clamp_keeps_value_within_total():
    assert clamp_available(-2, 5) == 0
    assert clamp_available(7, 5) == 5
    assert clamp_available(3, 5) == 3


def test_can_request_needs_enabled_item_with_enough_units(make_item):
    item = make_item(quantity=5, available=2)
    assert can_request(item, 2)
    assert not can_request(item, 3)

    item.is_available = False
    assert not can_request(item, 1)
    # a disabled item can still be reserved for requests already on file
    assert can_reserve(item, 2)


def test_reserve_never_goes_negative():
    assert reserve(5, 3) == 2
    assert reserve(3, 3) == 0
    with pytest.raises(InsufficientStockError):
        reserve(2, 3)


def test_release_caps_at_total():
    assert release(2, 5, 3) == 5
    assert release(4, 5, 3) == 5
    assert release(0, 5, 2) == 2


@pytest.mark.parametrize(
    "available, old_total, new_total, expected",
    [
        (3, 5, 8, 6),   # grow: the new units become available
        (3, 5, 4, 2),   # shrink below what is lent out
        (1, 5, 2, 0),   # clamp at zero
        (5, 5, 5, 5),
    ],
)
def test_adjusted_available(available, old_total, new_total, expected):
    assert adjusted_available(available, old_total, new_total) == expected
