"""
Normalized intensity intervals for watermark inference.

An interval [low, high] bounds the normalized value a (pixel, channel)
location can take once the watermark is blended in. With the watermark
model

    observed = alpha * watermark + (1 - alpha) * background

a background sweeping [0, 1] produces exactly the interval
[alpha * watermark, alpha * watermark + (1 - alpha)], so the width of the
interval is 1 - alpha.
"""

from typing import NamedTuple, Optional


class Interval(NamedTuple):
    low: float
    high: float

    @property
    def width(self):
        return self.high - self.low


FULL_RANGE = Interval(0.0, 1.0)


def quantization_cell(value, bit_width):
    """Return the interval of normalized values that quantize to `value`."""
    steps = float(1 << bit_width)
    return Interval(value / steps, (value + 1) / steps)


def merge(interval: Optional[Interval], value: int, bit_width: int) -> Interval:
    """
    Union the quantization cell of `value` into `interval`.

    A missing interval is seeded with the cell itself.
    """
    cell = quantization_cell(value, bit_width)
    if interval is None:
        return cell
    return Interval(min(interval.low, cell.low), max(interval.high, cell.high))


def rescale_to_width(interval: Interval, target_width: float) -> Interval:
    """
    Stretch `interval` against the widest channel of its pixel.

    strength = width / target_width, low' = strength * low,
    high' = strength * high + (1 - strength). A zero target width
    (every sample agreed exactly) gives the full range.
    """
    if target_width == 0:
        return FULL_RANGE
    strength = interval.width / target_width
    return Interval(strength * interval.low,
                    strength * interval.high + (1.0 - strength))
