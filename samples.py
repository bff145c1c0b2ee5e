"""
Decoded pixel buffers and the image file adapters around them.

Samples are (height, width, channels) numpy arrays tagged with their bit
depth. Only depth 8 (uint8) and depth 16 (uint16) are understood; the tag
is the single source of a sample's maximum component value.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import numpy as np
from PIL import Image, UnidentifiedImageError

SUPPORTED_DEPTHS = {8: np.uint8, 16: np.uint16}

# Pillow modes that decode straight to arrays without conversion.
_MODES_8BIT = ('L', 'LA', 'RGB', 'RGBA')
_MODES_16BIT = ('I;16', 'I;16L', 'I;16B', 'I;16N')
_CHANNEL_COUNTS = (1, 2, 3, 4)  # L, LA, RGB, RGBA


class WatermarkError(Exception):
    """Base class for errors raised by the watermark tools."""


class UnsupportedDepthError(WatermarkError):
    def __init__(self, depth):
        super().__init__(f"Unsupported bit depth: {depth} (expected 8 or 16)")
        self.depth = depth


class DecodeError(WatermarkError):
    pass


class EncodeError(WatermarkError):
    pass


def depth_maximum(depth):
    """Largest component value at `depth` bits."""
    if depth not in SUPPORTED_DEPTHS:
        raise UnsupportedDepthError(depth)
    return (1 << depth) - 1


def color_channels(channels):
    """Number of leading color channels; a trailing alpha (LA, RGBA) is dropped."""
    if channels in (2, 4):
        return channels - 1
    return channels


def _as_3d(data):
    data = np.asarray(data)
    if data.ndim == 2:
        return data[:, :, np.newaxis]
    if data.ndim != 3:
        raise ValueError(f"Expected a 2-D or 3-D pixel array, got shape {data.shape}")
    return data


@dataclass
class PixelBuffer:
    """
    Pixel grid of shape (H, W, C).
    `depth` is 8 for uint8 data or 16 for uint16 data.
    """
    data: np.ndarray
    depth: int = 8
    path: Path | None = None  # Where the buffer was read from, if anywhere.

    def __post_init__(self):
        self.data = _as_3d(self.data)
        dtype = SUPPORTED_DEPTHS.get(self.depth)
        if dtype is None:
            raise UnsupportedDepthError(self.depth)
        if self.data.dtype != dtype:
            raise ValueError(f"{self.depth}-bit buffers hold {np.dtype(dtype).name} data, "
                             f"got {self.data.dtype}")

    @property
    def height(self) -> int:
        return self.data.shape[0]

    @property
    def width(self) -> int:
        return self.data.shape[1]

    @property
    def channels(self) -> int:
        return self.data.shape[2]

    @property
    def maximum(self) -> int:
        return depth_maximum(self.depth)

    @classmethod
    def blank(cls, width, height, channels, depth=8):
        dtype = SUPPORTED_DEPTHS.get(depth)
        if dtype is None:
            raise UnsupportedDepthError(depth)
        return cls(np.zeros((height, width, channels), dtype=dtype), depth)

    @classmethod
    def from_bytes(cls, width, height, channels, depth, data):
        """
        Wrap an interleaved row-major buffer: one byte per component at
        depth 8, two native-order bytes per component at depth 16.
        """
        dtype = SUPPORTED_DEPTHS.get(depth)
        if dtype is None:
            raise UnsupportedDepthError(depth)
        array = np.frombuffer(data, dtype=np.dtype(dtype).newbyteorder('='))
        return cls(array.reshape(height, width, channels).copy(), depth)


class Sample(PixelBuffer):
    """A decoded input image. The core only ever reads it."""


def load_sample(path) -> Sample:
    """Decode an image file into a Sample, keeping 16-bit grayscale intact."""
    path = Path(path)
    try:
        with Image.open(path) as img:
            img.load()
            mode = img.mode
            if mode in _MODES_16BIT:
                return Sample(np.array(img).astype(np.uint16), 16, path)
            if mode == 'I' and img.format == 'PNG':
                # Older Pillow releases decode 16-bit grayscale PNGs as 32-bit 'I'.
                return Sample(np.clip(np.array(img), 0, 65535).astype(np.uint16), 16, path)
            if mode in ('I', 'F'):
                raise UnsupportedDepthError(32)
            if mode not in _MODES_8BIT:
                has_alpha = 'transparency' in img.info or mode.endswith('A')
                img = img.convert('RGBA' if has_alpha else 'RGB')
            return Sample(np.array(img, dtype=np.uint8), 8, path)
    except (OSError, UnidentifiedImageError) as e:
        raise DecodeError(f"Cannot decode {path}: {e}") from e


def save_buffer(buffer: PixelBuffer, path):
    """Encode a PixelBuffer to `path`; the format follows the file extension."""
    path = Path(path)
    if buffer.depth == 16:
        if buffer.channels != 1:
            raise EncodeError(
                f"Cannot write {path}: 16-bit output is only supported for one channel")
        img = Image.fromarray(buffer.data[:, :, 0].astype(np.uint16))
    else:
        if buffer.channels not in _CHANNEL_COUNTS:
            raise EncodeError(f"Cannot write {path}: {buffer.channels} channels")
        data = buffer.data.astype(np.uint8)
        if buffer.channels == 1:
            data = data[:, :, 0]
        img = Image.fromarray(data)
    try:
        img.save(path)
    except (OSError, ValueError, KeyError) as e:
        raise EncodeError(f"Cannot write {path}: {e}") from e
    return path
