from typing import Tuple

import numpy as np

from .errors import RasterAllocationError
from .utils import require_positive_int

CHANNELS = 4
TRANSPARENT = (0, 0, 0, 0)


def allocate_pixels(width: int, height: int, fill: Tuple[int, int, int, int] = TRANSPARENT) -> np.ndarray:
    """Return a fresh ``(height, width, 4)`` RGBA buffer filled with ``fill``."""
    width = require_positive_int("width", width)
    height = require_positive_int("height", height)
    try:
        pixels = np.empty((height, width, CHANNELS), dtype=np.uint8)
    except (MemoryError, ValueError) as exc:
        raise RasterAllocationError(f"cannot allocate a {width}x{height} raster: {exc}") from exc
    pixels[...] = fill
    return pixels
