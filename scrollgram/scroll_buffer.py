"""
Live scrolling raster.

Columns are written into a fixed-size ring so an append only touches the
``column_width`` columns it writes; :meth:`ScrollBuffer.snapshot` unrolls the
ring into left-to-right (oldest-to-newest) order.
"""
import logging
from enum import Enum
from threading import Lock
from typing import Union

import numpy as np

from .axis import row_bins
from .config import AxisConfig, ShapeConfig
from .palette import PaletteId, color_table
from .raster import TRANSPARENT, allocate_pixels
from .utils import require_positive_int

logger = logging.getLogger(__name__)


class BufferState(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"


def _as_frame(frame) -> np.ndarray:
    data = np.asarray(frame)
    if data.ndim != 1 or data.size == 0:
        raise ValueError("frame must be a non-empty 1-D sequence of magnitudes")
    if data.dtype != np.uint8:
        data = np.clip(data, 0, 255).astype(np.uint8)
    return data


def render_column(
    frame,
    height: int,
    axis: AxisConfig,
    shape: ShapeConfig,
    palette: Union[str, PaletteId],
) -> np.ndarray:
    """RGBA pixels for one column, top row first."""
    data = _as_frame(frame)
    bins = row_bins(height, axis, data.size)
    colors = color_table(shape, palette)[data[bins]]
    # row 0 of the axis is the bottom of the raster
    return colors[::-1]


class ScrollBuffer:
    def __init__(self, width: int, height: int):
        self._pixels = allocate_pixels(width, height)
        self._head = 0
        self._lock = Lock()
        self.state = BufferState.IDLE

    @property
    def width(self) -> int:
        return self._pixels.shape[1]

    @property
    def height(self) -> int:
        return self._pixels.shape[0]

    def append_column(
        self,
        frame,
        axis: AxisConfig,
        shape: ShapeConfig,
        palette: Union[str, PaletteId],
        column_width: int = 1,
    ) -> None:
        column_width = require_positive_int("column_width", column_width)
        column = render_column(frame, self.height, axis, shape, palette)
        self.write_column(column, column_width)

    def write_column(self, column: np.ndarray, column_width: int = 1) -> None:
        """Scroll left by ``column_width`` and fill the freed right edge with ``column``."""
        column_width = require_positive_int("column_width", column_width)
        if column.shape != (self.height, 4):
            raise ValueError(f"column must have shape ({self.height}, 4), got {column.shape}")
        with self._lock:
            width = self.width
            count = min(column_width, width)
            targets = (self._head + np.arange(count)) % width
            self._pixels[:, targets] = column[:, np.newaxis, :]
            self._head = (self._head + count) % width
            if self.state is BufferState.IDLE:
                self.state = BufferState.ACTIVE
                logger.debug("Scroll buffer %dx%d became active", width, self.height)

    def snapshot(self) -> np.ndarray:
        """Copy of the visible window, oldest column first."""
        with self._lock:
            return np.roll(self._pixels, -self._head, axis=1)

    def clear(self) -> None:
        with self._lock:
            self._pixels[...] = TRANSPARENT
            self._head = 0
            self.state = BufferState.IDLE

    def stop(self) -> None:
        self.state = BufferState.IDLE

    def resize(self, width: int, height: int) -> None:
        """Reallocate and clear; history is dropped, never rescaled."""
        # allocate before swapping so a failure keeps the current raster
        pixels = allocate_pixels(width, height)
        with self._lock:
            self._pixels = pixels
            self._head = 0
            self.state = BufferState.IDLE
        logger.debug("Scroll buffer resized to %dx%d", width, height)
