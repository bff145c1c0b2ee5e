"""
Per-pixel interval fields inferred from a stack of watermarked samples.

Every sample only proves that the blended value at a location rounded to
the stored integer. Union the quantization cells over all samples and the
result is the tightest interval that the watermark's blend squeezed the
background into at that (pixel, channel). Pixels are independent, so the
work is split into row bands that can run on a thread pool.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path

import numpy as np

from intervals import Interval
from samples import WatermarkError, color_channels, depth_maximum


class FieldFormatError(WatermarkError):
    pass


@dataclass
class IntervalField:
    """
    Lower and upper interval bounds, both float64 arrays of shape (H, W, C).
    Every element is populated: 0 <= low <= high <= 1.
    """
    low: np.ndarray
    high: np.ndarray

    @property
    def height(self) -> int:
        return self.low.shape[0]

    @property
    def width(self) -> int:
        return self.low.shape[1]

    @property
    def channels(self) -> int:
        return self.low.shape[2]

    @property
    def widths(self) -> np.ndarray:
        return self.high - self.low

    def __len__(self):
        return self.low.size

    def __getitem__(self, key) -> Interval:
        x, y, c = key
        return Interval(float(self.low[y, x, c]), float(self.high[y, x, c]))

    @classmethod
    def full(cls, width, height, channels):
        shape = (height, width, channels)
        return cls(np.zeros(shape), np.ones(shape))


def row_bands(height, workers):
    """Split [0, height) into at most `workers` contiguous (start, stop) bands."""
    workers = max(1, min(int(workers), height))
    edges = np.linspace(0, height, workers + 1).astype(int)
    return [(int(a), int(b)) for a, b in zip(edges[:-1], edges[1:]) if b > a]


def run_in_bands(height, workers, fn):
    """Call fn(start, stop) for every row band, on a thread pool when workers > 1."""
    bands = row_bands(height, workers)
    if len(bands) <= 1:
        for start, stop in bands:
            fn(start, stop)
        return
    with ThreadPoolExecutor(max_workers=len(bands)) as executor:
        futures = [executor.submit(fn, start, stop) for start, stop in bands]
        for future in futures:
            future.result()


def build_interval_field(samples, width, height, channels, workers=1) -> IntervalField:
    """
    Merge the quantization cells of all samples into one interval per
    (pixel, channel).

    Samples smaller than (width, height), or with fewer color channels, only
    contribute where they have data. Alpha channels of LA and RGBA samples
    are ignored. Locations no sample reaches get [0, 1].
    Raises UnsupportedDepthError if any sample is not 8 or 16 bit.
    """
    maxima = [depth_maximum(sample.depth) for sample in samples]

    shape = (height, width, channels)
    # low > high marks a location nothing has been merged into yet.
    low = np.full(shape, np.inf)
    high = np.full(shape, -np.inf)

    def merge_band(start, stop):
        for sample, maximum in zip(samples, maxima):
            rows = slice(start, min(stop, sample.height))
            cols = min(width, sample.width)
            chans = min(channels, color_channels(sample.channels))
            if rows.start >= rows.stop or cols == 0 or chans == 0:
                continue

            values = sample.data[rows, :cols, :chans].astype(np.float64)
            steps = maximum + 1.0
            band_low = low[rows, :cols, :chans]
            band_high = high[rows, :cols, :chans]
            np.minimum(band_low, values / steps, out=band_low)
            np.maximum(band_high, (values + 1.0) / steps, out=band_high)

        unobserved = low[start:stop] > high[start:stop]
        low[start:stop][unobserved] = 0.0
        high[start:stop][unobserved] = 1.0

    run_in_bands(height, workers, merge_band)
    return IntervalField(low, high)


def normalize_interval_field(field: IntervalField, workers=1):
    """
    Equalize each pixel's channels against its widest channel, in place.

    A single opacity is assumed per pixel, so channels that revealed less
    range are stretched with strength = width / widest. Pixels whose widest
    channel has zero width become [0, 1].
    """
    def normalize_band(start, stop):
        low = field.low[start:stop]
        high = field.high[start:stop]
        width = high - low
        target = width.max(axis=2, keepdims=True)

        with np.errstate(divide='ignore', invalid='ignore'):
            strength = np.where(target > 0, width / target, 0.0)

        # strength == 0 maps any interval to [0, 1].
        high[...] = strength * high + (1.0 - strength)
        low[...] = strength * low

    run_in_bands(field.height, workers, normalize_band)
    return field


def infer_interval_field(samples, normalize=True, workers=1) -> IntervalField:
    """
    Build (and by default normalize) the field for a list of samples.

    The field covers the largest sample and up to three color channels;
    a trailing alpha channel (LA, RGBA) is never treated as a color.
    """
    if not samples:
        raise ValueError("At least one sample is required")
    width = max(sample.width for sample in samples)
    height = max(sample.height for sample in samples)
    channels = min(3, max(color_channels(sample.channels) for sample in samples))

    field = build_interval_field(samples, width, height, channels, workers=workers)
    if normalize:
        normalize_interval_field(field, workers=workers)
    return field


def save_field(field: IntervalField, path):
    path = Path(path)
    np.savez_compressed(path, low=field.low, high=field.high)
    return path


def load_field(path) -> IntervalField:
    try:
        with np.load(path) as data:
            low = np.array(data['low'], dtype=np.float64)
            high = np.array(data['high'], dtype=np.float64)
    except (OSError, KeyError, ValueError, TypeError, AttributeError) as e:
        # TypeError/AttributeError: a bare .npy array, not an archive.
        raise FieldFormatError(f"Cannot read interval field from {path}: {e}") from e

    if low.ndim != 3 or low.shape != high.shape:
        raise FieldFormatError(
            f"Malformed interval field in {path}: low {low.shape}, high {high.shape}")
    return IntervalField(low, high)
