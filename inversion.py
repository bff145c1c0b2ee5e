"""
Invert the blend described by a normalized interval field.

For an interval [low, high] the watermark's opacity is 1 - (high - low)
and its own intensity is low / opacity. Removing it maps the observed
value back through the affine blend: (value - low) / (high - low).
"""

import numpy as np

from range_field import IntervalField, run_in_bands
from samples import PixelBuffer, color_channels, depth_maximum

ROUNDING_OFFSET = 0.5  # Center of the quantization cell.


def _to_int(value, maximum):
    # Clamp, then truncate toward zero. NaN clamps to 0.
    if not value > 0:
        return 0
    return int(min(value, maximum))


def _quantize(values, maximum, dtype):
    values = np.nan_to_num(values * maximum, nan=0.0, posinf=maximum, neginf=0.0)
    return np.clip(values, 0, maximum).astype(dtype)


def overlay_color(interval, bit_width):
    """Watermark intensity at one channel. Zero opacity gives 0."""
    maximum = depth_maximum(bit_width)
    opacity = 1.0 - interval.high + interval.low
    if opacity == 0:
        return 0
    return _to_int(interval.low / opacity * maximum, maximum)


def overlay_opacity(interval, bit_width):
    maximum = depth_maximum(bit_width)
    return _to_int((1.0 - interval.high + interval.low) * maximum, maximum)


def remove_overlay(interval, value, bit_width, rounding_offset=ROUNDING_OFFSET):
    """
    Project one observed component back onto the full [0, maximum] range.

    A zero-width interval carries no information about the background and
    gives 0.
    """
    maximum = depth_maximum(bit_width)
    width = interval.high - interval.low
    if width == 0:
        return 0
    normalized = (value + rounding_offset) / (maximum + 1)
    return _to_int((normalized - interval.low) / width * maximum, maximum)


def render_overlay_appearance(field: IntervalField, workers=1) -> PixelBuffer:
    """
    Render the inferred watermark as an 8-bit RGBA buffer.

    Color comes from the first three channels of the field (the last channel
    is repeated for grayscale fields); alpha comes from channel 0.
    """
    out = PixelBuffer.blank(field.width, field.height, 4, 8)
    maximum = out.maximum
    sources = [min(c, field.channels - 1) for c in range(3)]

    def render_band(start, stop):
        low = field.low[start:stop]
        high = field.high[start:stop]
        opacity = 1.0 - high + low
        with np.errstate(divide='ignore', invalid='ignore'):
            color = np.where(opacity != 0, low / opacity, 0.0)
        out.data[start:stop, :, :3] = _quantize(color[:, :, sources], maximum, np.uint8)
        out.data[start:stop, :, 3] = _quantize(opacity[:, :, 0], maximum, np.uint8)

    run_in_bands(field.height, workers, render_band)
    return out


def remove_overlay_from_image(field: IntervalField, target, rounding_offset=ROUNDING_OFFSET,
                              workers=1) -> PixelBuffer:
    """
    Remove the watermark described by `field` from `target`.

    The result keeps the target's size and depth, with up to three color
    channels; an alpha channel on the target is dropped. Pixels outside the
    field are copied through unchanged.
    """
    maximum = target.maximum
    channels = min(3, color_channels(target.channels), field.channels)
    out = PixelBuffer(target.data[:, :, :channels].copy(), target.depth)
    rows = min(field.height, target.height)
    cols = min(field.width, target.width)

    def restore_band(start, stop):
        low = field.low[start:stop, :cols, :channels]
        high = field.high[start:stop, :cols, :channels]
        values = target.data[start:stop, :cols, :channels].astype(np.float64)
        normalized = (values + rounding_offset) / (maximum + 1)
        width = high - low
        with np.errstate(divide='ignore', invalid='ignore'):
            restored = np.where(width != 0, (normalized - low) / width, 0.0)
        out.data[start:stop, :cols, :] = _quantize(restored, maximum, out.data.dtype)

    run_in_bands(rows, workers, restore_band)
    return out
