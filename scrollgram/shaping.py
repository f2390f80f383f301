from typing import Union

import numpy as np

from .config import ShapeConfig

ArrayLike = Union[float, np.ndarray]

RAW_LEVELS = 256


def shape_array(raw: ArrayLike, sensitivity: float, contrast: float) -> np.ndarray:
    """
    Apply gain then the contrast exponent to raw 0..255 magnitudes.

    intensity = clamp(((raw / 255) * sensitivity) ** contrast * 255, 0, 255)

    A zero base maps to 0 for every contrast, including 0 ** 0.
    """
    base = np.asarray(raw, dtype=np.float64) / 255.0 * sensitivity
    base = np.maximum(base, 0.0)
    with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
        curved = np.where(base > 0.0, np.power(base, contrast), 0.0)
    return np.clip(curved * 255.0, 0.0, 255.0)


def shape(raw: float, sensitivity: float, contrast: float) -> float:
    return float(shape_array(raw, sensitivity, contrast))


def intensity_table(config: ShapeConfig) -> np.ndarray:
    """Shaped intensity for every possible raw byte value."""
    return shape_array(np.arange(RAW_LEVELS), config.sensitivity, config.contrast)
