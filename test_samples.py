import numpy as np
import pytest
from PIL import Image

from samples import (DecodeError, EncodeError, PixelBuffer, Sample, UnsupportedDepthError,
                     color_channels, depth_maximum, load_sample, save_buffer)


def test_depth_maximum():
    assert depth_maximum(8) == 255
    assert depth_maximum(16) == 65535
    for depth in (1, 4, 12, 32):
        with pytest.raises(UnsupportedDepthError):
            depth_maximum(depth)


def test_two_dimensional_data_is_one_channel():
    sample = Sample(np.zeros((3, 5), dtype=np.uint8))
    assert (sample.width, sample.height, sample.channels) == (5, 3, 1)


def test_from_bytes_8bit():
    buffer = PixelBuffer.from_bytes(2, 1, 3, 8, bytes([1, 2, 3, 4, 5, 6]))
    assert buffer.data.shape == (1, 2, 3)
    assert buffer.data[0, 1].tolist() == [4, 5, 6]


def test_from_bytes_16bit_reads_whole_words():
    raw = np.array([1, 256, 65535], dtype=np.uint16).tobytes()
    buffer = PixelBuffer.from_bytes(3, 1, 1, 16, raw)
    assert buffer.data[0, :, 0].tolist() == [1, 256, 65535]
    assert buffer.maximum == 65535


def test_from_bytes_rejects_other_depths():
    with pytest.raises(UnsupportedDepthError):
        PixelBuffer.from_bytes(1, 1, 1, 32, bytes(4))


def test_rgb_round_trip(tmp_path, rng):
    data = rng.integers(0, 256, size=(4, 6, 3), dtype=np.uint8)
    path = save_buffer(PixelBuffer(data), tmp_path / "rgb.png")

    sample = load_sample(path)
    assert sample.depth == 8
    assert sample.path == path
    np.testing.assert_array_equal(sample.data, data)


def test_gray_and_rgba_round_trip(tmp_path, rng):
    gray = rng.integers(0, 256, size=(3, 2, 1), dtype=np.uint8)
    rgba = rng.integers(0, 256, size=(3, 2, 4), dtype=np.uint8)
    save_buffer(PixelBuffer(gray), tmp_path / "gray.png")
    save_buffer(PixelBuffer(rgba), tmp_path / "rgba.png")

    np.testing.assert_array_equal(load_sample(tmp_path / "gray.png").data, gray)
    np.testing.assert_array_equal(load_sample(tmp_path / "rgba.png").data, rgba)


def test_16bit_gray_round_trip(tmp_path):
    data = np.array([[0, 1000], [40000, 65535]], dtype=np.uint16)
    save_buffer(PixelBuffer(data, 16), tmp_path / "deep.png")

    sample = load_sample(tmp_path / "deep.png")
    assert sample.depth == 16
    np.testing.assert_array_equal(sample.data[:, :, 0], data)


def test_palette_image_is_converted(tmp_path):
    Image.new('P', (2, 2), color=3).save(tmp_path / "palette.png")
    sample = load_sample(tmp_path / "palette.png")
    assert sample.depth == 8
    assert sample.channels == 3


def test_decode_error(tmp_path):
    path = tmp_path / "broken.png"
    path.write_bytes(b"definitely not an image")
    with pytest.raises(DecodeError):
        load_sample(path)
    with pytest.raises(DecodeError):
        load_sample(tmp_path / "missing.png")


def test_encode_errors(tmp_path):
    with pytest.raises(EncodeError):
        save_buffer(PixelBuffer(np.zeros((2, 2, 3), dtype=np.uint16), 16), tmp_path / "x.png")
    with pytest.raises(EncodeError):
        save_buffer(PixelBuffer(np.zeros((2, 2, 5), dtype=np.uint8)), tmp_path / "x.png")
    with pytest.raises(EncodeError):
        save_buffer(PixelBuffer(np.zeros((2, 2, 3), dtype=np.uint8)), tmp_path / "x.unknown")


def test_data_must_match_depth_tag():
    with pytest.raises(ValueError):
        Sample(np.array([[[300]]]))
    with pytest.raises(ValueError):
        Sample(np.array([[[300]]], dtype=np.uint16))
    with pytest.raises(ValueError):
        Sample(np.zeros((1, 1, 1), dtype=np.uint8), 16)
    with pytest.raises(UnsupportedDepthError) as exc:
        Sample(np.zeros((1, 1, 1), dtype=np.uint8), 12)
    assert exc.value.depth == 12


def test_32bit_integer_tiff_is_unsupported(tmp_path):
    Image.fromarray(np.array([[0, 100000]], dtype=np.int32)).save(tmp_path / "deep.tif")
    with pytest.raises(UnsupportedDepthError):
        load_sample(tmp_path / "deep.tif")


def test_color_channels_drop_alpha():
    assert [color_channels(n) for n in (1, 2, 3, 4)] == [1, 1, 3, 3]
