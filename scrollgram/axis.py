"""
Frequency axis mapping between raster rows and FFT bins.

Row 0 is the bottom (lowest frequency) row of the drawable area. Every
mapping goes through a single fractional-bin formula per scale, so the
forward direction (row -> bin, used while rendering) and the inverse
(frequency -> row, used for gridlines) always agree.
"""
import math
from functools import lru_cache
from typing import List, Tuple, Union

import numpy as np

from .config import LOG_FLOOR_HZ, AxisConfig, AxisScale
from .errors import ConfigurationError
from .utils import require_positive_int

ArrayLike = Union[float, np.ndarray]


def hz_to_mel(freq: ArrayLike) -> ArrayLike:
    return 2595.0 * np.log10(1.0 + np.asarray(freq, dtype=np.float64) / 700.0)


def mel_to_hz(mel: ArrayLike) -> ArrayLike:
    return 700.0 * (np.power(10.0, np.asarray(mel, dtype=np.float64) / 2595.0) - 1.0)


def _bin_span(axis: AxisConfig, n_bins: int) -> Tuple[int, int]:
    min_bin = int(math.floor(axis.min_freq / axis.nyquist * n_bins))
    max_bin = int(math.floor(axis.max_freq / axis.nyquist * n_bins))
    if max_bin <= min_bin:
        raise ConfigurationError(
            f"{axis.min_freq:g}-{axis.max_freq:g} Hz falls inside a single bin of a {n_bins}-bin frame"
        )
    return min_bin, max_bin


def _warped_bounds(axis: AxisConfig) -> Tuple[float, float]:
    if axis.scale is AxisScale.LOGARITHMIC:
        return math.log10(max(axis.min_freq, LOG_FLOOR_HZ)), math.log10(axis.max_freq)
    return float(hz_to_mel(axis.min_freq)), float(hz_to_mel(axis.max_freq))


def _fractional_bin(fraction: ArrayLike, axis: AxisConfig, n_bins: int) -> np.ndarray:
    fraction = np.asarray(fraction, dtype=np.float64)
    if axis.scale is AxisScale.LINEAR:
        min_bin, max_bin = _bin_span(axis, n_bins)
        return min_bin + fraction * (max_bin - min_bin)

    low, high = _warped_bounds(axis)
    warped = low + fraction * (high - low)
    if axis.scale is AxisScale.LOGARITHMIC:
        freq = np.power(10.0, warped)
    else:
        freq = mel_to_hz(warped)
    return freq / axis.nyquist * n_bins


def _fraction_for_bin(fractional_bin: ArrayLike, axis: AxisConfig, n_bins: int) -> np.ndarray:
    fractional_bin = np.asarray(fractional_bin, dtype=np.float64)
    if axis.scale is AxisScale.LINEAR:
        min_bin, max_bin = _bin_span(axis, n_bins)
        return (fractional_bin - min_bin) / (max_bin - min_bin)

    low, high = _warped_bounds(axis)
    freq = fractional_bin / n_bins * axis.nyquist
    if axis.scale is AxisScale.LOGARITHMIC:
        warped = np.log10(np.maximum(freq, np.finfo(np.float64).tiny))
    else:
        warped = hz_to_mel(freq)
    return (warped - low) / (high - low)


def frequency_at_row(y: ArrayLike, height: int, axis: AxisConfig, n_bins: int) -> ArrayLike:
    """Frequency in Hz represented by row ``y`` (before bin quantization)."""
    height = require_positive_int("height", height)
    n_bins = require_positive_int("n_bins", n_bins)
    freq = _fractional_bin(np.asarray(y, dtype=np.float64) / height, axis, n_bins) / n_bins * axis.nyquist
    return float(freq) if np.ndim(freq) == 0 else freq


def row_for_frequency(freq: ArrayLike, height: int, axis: AxisConfig, n_bins: int) -> ArrayLike:
    """Inverse of :func:`frequency_at_row`; the result may fall outside ``[0, height)``."""
    height = require_positive_int("height", height)
    n_bins = require_positive_int("n_bins", n_bins)
    fractional_bin = np.asarray(freq, dtype=np.float64) / axis.nyquist * n_bins
    row = _fraction_for_bin(fractional_bin, axis, n_bins) * height
    return float(row) if np.ndim(row) == 0 else row


@lru_cache(maxsize=64)
def row_bins(height: int, axis: AxisConfig, n_bins: int) -> np.ndarray:
    """Bin index for every row of a column, clamped to ``[0, n_bins - 1]``."""
    height = require_positive_int("height", height)
    n_bins = require_positive_int("n_bins", n_bins)
    rows = np.arange(height, dtype=np.float64)
    indices = np.floor(_fractional_bin(rows / height, axis, n_bins))
    bins = np.clip(indices, 0, n_bins - 1).astype(np.intp)
    # shared through the cache
    bins.flags.writeable = False
    return bins


def bin_for_row(y: int, height: int, axis: AxisConfig, n_bins: int) -> int:
    height = require_positive_int("height", height)
    n_bins = require_positive_int("n_bins", n_bins)
    index = math.floor(float(_fractional_bin(y / height, axis, n_bins)))
    return min(max(index, 0), n_bins - 1)


def tick_frequencies(axis: AxisConfig, count: int = 6) -> List[float]:
    """Label frequencies evenly spaced along the axis' own scale, bottom to top."""
    count = require_positive_int("count", count)
    if count == 1:
        return [float(axis.min_freq)]
    if axis.scale is AxisScale.LINEAR:
        return [float(f) for f in np.linspace(axis.min_freq, axis.max_freq, count)]
    low, high = _warped_bounds(axis)
    warped = np.linspace(low, high, count)
    freqs = np.power(10.0, warped) if axis.scale is AxisScale.LOGARITHMIC else mel_to_hz(warped)
    return [float(f) for f in freqs]
