import itertools
from functools import reduce

import pytest

from intervals import FULL_RANGE, Interval, merge, quantization_cell, rescale_to_width


def merge_all(values, bit_width=8):
    return reduce(lambda acc, v: merge(acc, v, bit_width), values, None)


def test_merge_seeds_with_cell():
    assert merge(None, 100, 8) == Interval(100 / 256, 101 / 256)
    assert merge(None, 0, 8) == Interval(0.0, 1 / 256)
    assert merge(None, 255, 8) == Interval(255 / 256, 1.0)


def test_merge_16bit_cell():
    assert quantization_cell(1000, 16) == Interval(1000 / 65536, 1001 / 65536)
    assert merge(None, 65535, 16).high == 1.0


def test_merge_unions_cells():
    assert merge_all([100, 200]) == Interval(100 / 256, 201 / 256)
    assert merge_all([150, 50]) == Interval(50 / 256, 151 / 256)


def test_merge_order_and_repetition_do_not_matter():
    values = [17, 230, 99, 17, 230]
    expected = merge_all(sorted(set(values)))
    for perm in itertools.permutations(values):
        assert merge_all(perm) == expected


def test_rescale_keeps_widest_interval():
    interval = Interval(0.2, 0.7)
    assert rescale_to_width(interval, interval.width) == interval


def test_rescale_stretches_narrower_interval():
    assert rescale_to_width(Interval(0.25, 0.5), 0.5) == Interval(0.125, 0.75)


def test_rescale_point_interval_against_wider_target():
    assert rescale_to_width(Interval(0.3, 0.3), 0.5) == FULL_RANGE


def test_rescale_zero_target_gives_full_range():
    assert rescale_to_width(Interval(0.4, 0.4), 0.0) == FULL_RANGE


@pytest.mark.parametrize("low,high,target", [
    (0.0, 0.1, 0.9),
    (0.5, 0.6, 0.2),
    (0.9, 1.0, 0.5),
    (0.1, 0.9, 0.8),
])
def test_rescale_stays_in_unit_range(low, high, target):
    result = rescale_to_width(Interval(low, high), target)
    assert 0.0 <= result.low <= result.high <= 1.0
    assert result.width >= high - low - 1e-12
