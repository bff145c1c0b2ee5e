import numpy as np
import pytest


def _blend(alpha, color, background):
    """
    Composite a watermark onto normalized backgrounds and quantize to 8 bits.
    observed = alpha * color + (1 - alpha) * background
    """
    observed = alpha * color + (1.0 - alpha) * background
    return np.clip(np.floor(observed * 256), 0, 255).astype(np.uint8)


@pytest.fixture
def blend():
    return _blend


@pytest.fixture
def rng():
    return np.random.default_rng(1234)
