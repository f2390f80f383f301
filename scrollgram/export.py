"""
Export compositor.

Lays one or more channel rasters out on a larger canvas with a title row,
per-channel label rows, frequency gridlines and labels on the left, time
gridlines and labels along the bottom, and an optional color legend on the
right. Gridline rows come from :func:`scrollgram.axis.row_for_frequency`, the
exact inverse of the mapping used to render the data.
"""
import io
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import numpy as np
from PIL import Image, ImageDraw, ImageFont

from .axis import row_for_frequency, tick_frequencies
from .config import DEFAULT_FRAMES_PER_SECOND, DEFAULT_PALETTE, AxisConfig
from .errors import ConfigurationError, RasterAllocationError
from .palette import legend_swatches
from .raster import allocate_pixels
from .utils import format_frequency, format_seconds

logger = logging.getLogger(__name__)

RGBA = Tuple[int, int, int, int]

TITLE_HEIGHT = 24
LABEL_HEIGHT = 18
LEFT_MARGIN = 64
BOTTOM_MARGIN = 28
LEGEND_WIDTH = 72
PADDING = 8
TICK_LENGTH = 4
SWATCH_WIDTH = 14


class ExportFormat(str, Enum):
    PNG = "png"
    BMP = "bmp"
    TIFF = "tiff"

    @classmethod
    def parse(cls, value) -> "ExportFormat":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower().lstrip("."))
        except ValueError:
            raise ConfigurationError(f"Unsupported export format '{value}'") from None

    @property
    def extension(self) -> str:
        return f".{self.value}"


@dataclass(frozen=True)
class ExportOptions:
    title: str = "Spectrogram"
    palette: str = DEFAULT_PALETTE
    legend: bool = True
    legend_steps: int = 8
    frequency_ticks: int = 6
    time_ticks: int = 6
    seconds_per_pixel: float = 1.0 / DEFAULT_FRAMES_PER_SECOND
    background: RGBA = (26, 26, 26, 255)
    text_color: RGBA = (170, 170, 170, 255)
    grid_color: RGBA = (255, 255, 255, 60)

    def __post_init__(self):
        if self.frequency_ticks < 2 or self.time_ticks < 2:
            raise ConfigurationError("an axis needs at least two ticks")
        if self.legend_steps < 2:
            raise ConfigurationError("legend_steps must be at least 2")
        if not self.seconds_per_pixel > 0:
            raise ConfigurationError(f"seconds_per_pixel must be positive, got {self.seconds_per_pixel}")


def _text_size(draw: ImageDraw.ImageDraw, text: str, font) -> Tuple[int, int]:
    left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
    return right - left, bottom - top


def _draw_text(draw, xy, text: str, font, fill: RGBA, bounds: Tuple[int, int]) -> None:
    if not text:
        return
    width, height = _text_size(draw, text, font)
    x = int(min(max(xy[0], 0), bounds[0] - width))
    y = int(min(max(xy[1], 0), bounds[1] - height))
    draw.text((x, y), text, font=font, fill=fill)


def _validate_channels(channels: Sequence[Tuple[str, np.ndarray]]) -> Tuple[int, int]:
    if not channels:
        raise ConfigurationError("at least one channel is required for export")
    shapes = {np.shape(pixels) for _, pixels in channels}
    if len(shapes) != 1:
        raise ConfigurationError(f"channel rasters must share one shape, got {sorted(shapes)}")
    shape = shapes.pop()
    if len(shape) != 3 or shape[2] != 4:
        raise ConfigurationError(f"channel rasters must be (height, width, 4), got {shape}")
    return shape[1], shape[0]


def frequency_gridlines(
    axis: AxisConfig, n_bins: int, height: int, count: int = 6
) -> List[Tuple[int, float]]:
    """``(pixel_row_from_top, frequency)`` for each tick of a ``height``-row raster."""
    lines = []
    for freq in tick_frequencies(axis, count):
        row = row_for_frequency(freq, height, axis, n_bins)
        pixel = int(round(height - 1 - row))
        lines.append((min(max(pixel, 0), height - 1), freq))
    return lines


def time_gridlines(width: int, count: int, seconds_per_pixel: float) -> List[Tuple[int, float]]:
    """``(pixel_column, seconds)`` ticks; the newest column is time zero."""
    columns = [int(round(float(x))) for x in np.linspace(0, width - 1, count)]
    return [(x, -(width - 1 - x) * seconds_per_pixel) for x in columns]


def compose_export(
    channels: Sequence[Tuple[str, np.ndarray]],
    axis: AxisConfig,
    n_bins: int,
    options: Optional[ExportOptions] = None,
) -> np.ndarray:
    """
    Build the export raster for ``channels`` (label, RGBA pixels) stacked
    top to bottom. Inputs are read, never modified.
    """
    options = options or ExportOptions()
    raster_width, raster_height = _validate_channels(channels)
    swatches = legend_swatches(options.palette, options.legend_steps) if options.legend else []

    width = LEFT_MARGIN + raster_width + PADDING + (LEGEND_WIDTH if options.legend else 0)
    height = TITLE_HEIGHT + len(channels) * (LABEL_HEIGHT + raster_height) + BOTTOM_MARGIN
    canvas = Image.fromarray(allocate_pixels(width, height, options.background))
    grid = Image.fromarray(allocate_pixels(width, height))
    draw = ImageDraw.Draw(canvas)
    grid_draw = ImageDraw.Draw(grid)
    font = ImageFont.load_default()
    bounds = (width, height)

    if options.title:
        title_h = _text_size(draw, options.title, font)[1]
        _draw_text(draw, (PADDING, (TITLE_HEIGHT - title_h) // 2), options.title, font, options.text_color, bounds)

    freq_lines = frequency_gridlines(axis, n_bins, raster_height, options.frequency_ticks)
    time_lines = time_gridlines(raster_width, options.time_ticks, options.seconds_per_pixel)
    right = LEFT_MARGIN + raster_width - 1

    top = TITLE_HEIGHT
    for label, pixels in channels:
        _draw_text(draw, (LEFT_MARGIN, top + 3), label, font, options.text_color, bounds)
        raster_top = top + LABEL_HEIGHT
        canvas.alpha_composite(Image.fromarray(np.ascontiguousarray(pixels, dtype=np.uint8)),
                               dest=(LEFT_MARGIN, raster_top))

        for row, freq in freq_lines:
            y = raster_top + row
            grid_draw.line([(LEFT_MARGIN, y), (right, y)], fill=options.grid_color)
            draw.line([(LEFT_MARGIN - TICK_LENGTH, y), (LEFT_MARGIN - 1, y)], fill=options.text_color)
            text = format_frequency(freq)
            text_w, text_h = _text_size(draw, text, font)
            _draw_text(draw, (LEFT_MARGIN - TICK_LENGTH - 2 - text_w, y - text_h // 2),
                       text, font, options.text_color, bounds)
        for column, _ in time_lines:
            x = LEFT_MARGIN + column
            grid_draw.line([(x, raster_top), (x, raster_top + raster_height - 1)], fill=options.grid_color)
        top = raster_top + raster_height

    for column, seconds in time_lines:
        x = LEFT_MARGIN + column
        draw.line([(x, top), (x, top + TICK_LENGTH - 1)], fill=options.text_color)
        text = format_seconds(seconds)
        text_w, _ = _text_size(draw, text, font)
        _draw_text(draw, (x - text_w // 2, top + TICK_LENGTH + 2), text, font, options.text_color, bounds)

    if swatches:
        _draw_legend(draw, swatches, font, options, bounds,
                     left=right + 1 + PADDING, top=TITLE_HEIGHT + LABEL_HEIGHT, bottom=top)

    composite = Image.alpha_composite(canvas, grid)
    logger.info("Composed %dx%d export with %d channel(s)", width, height, len(channels))
    return np.array(composite)


def _draw_legend(draw, swatches, font, options: ExportOptions, bounds, left: int, top: int, bottom: int) -> None:
    swatch_height = max(1, (bottom - top) // len(swatches))
    # brightest at the top
    for i, (value, rgb) in enumerate(reversed(swatches)):
        y0 = top + i * swatch_height
        draw.rectangle([left, y0, left + SWATCH_WIDTH - 1, y0 + swatch_height - 1], fill=rgb + (255,))
        text = f"{int(round(value))}"
        _, text_h = _text_size(draw, text, font)
        _draw_text(draw, (left + SWATCH_WIDTH + 4, y0 + (swatch_height - text_h) // 2),
                   text, font, options.text_color, bounds)


def encode_image(pixels: np.ndarray, image_format: ExportFormat = ExportFormat.PNG) -> bytes:
    image_format = ExportFormat.parse(image_format)
    try:
        image = Image.fromarray(np.ascontiguousarray(pixels, dtype=np.uint8))
    except MemoryError as exc:
        raise RasterAllocationError(f"cannot encode export raster: {exc}") from exc
    buffer = io.BytesIO()
    image.save(buffer, format=image_format.name)
    return buffer.getvalue()


def save_image(data: bytes, output_path: Path) -> Path:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(data)
    return output_path
