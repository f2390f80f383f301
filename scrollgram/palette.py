"""
Color schemes mapping a shaped intensity (0..255) to RGB.

Every scheme is a pure function over numpy arrays so it can be evaluated once
per configuration into a 256-entry lookup table. The viridis and magma
entries are cheap approximations of the reference maps and are kept that way
on purpose; register a matplotlib colormap for the real thing.
"""
import logging
from enum import Enum
from functools import lru_cache
from typing import Callable, Dict, List, Sequence, Tuple, Union

import numpy as np
from matplotlib import colormaps

from .config import ShapeConfig
from .errors import ConfigurationError
from .shaping import RAW_LEVELS, intensity_table

logger = logging.getLogger(__name__)

PaletteFunc = Callable[[np.ndarray], np.ndarray]
RGB = Tuple[int, int, int]


class PaletteId(str, Enum):
    GRAYSCALE = "grayscale"
    HEATED = "heated"
    VIRIDIS = "viridis"
    MAGMA = "magma"
    DISCRETE = "discrete"


def _stack(r, g, b) -> np.ndarray:
    return np.clip(np.stack(np.broadcast_arrays(r, g, b), axis=-1), 0.0, 255.0)


def grayscale(v: np.ndarray) -> np.ndarray:
    return _stack(v, v, v)


def heated(v: np.ndarray) -> np.ndarray:
    return _stack(
        np.minimum(255.0, v * 2.0),
        np.maximum(0.0, v - 128.0) * 2.0,
        np.maximum(0.0, v - 192.0) * 4.0,
    )


def viridis(v: np.ndarray) -> np.ndarray:
    return _stack(v, np.minimum(255.0, v * 1.5), np.maximum(0.0, 255.0 - v))


def magma(v: np.ndarray) -> np.ndarray:
    return _stack(np.minimum(255.0, v * 2.0), np.maximum(0.0, v - 64.0), np.minimum(255.0, v * 1.5))


def stops_palette(stops: Sequence[Tuple[float, RGB]]) -> PaletteFunc:
    """
    Build a step palette: each intensity takes the color of the highest stop
    whose threshold does not exceed it. Thresholds must start at 0 and rise.
    """
    if not stops:
        raise ConfigurationError("a stops palette needs at least one stop")
    thresholds = np.array([float(t) for t, _ in stops])
    colors = np.array([c for _, c in stops], dtype=np.float64)
    if thresholds[0] != 0.0 or np.any(np.diff(thresholds) <= 0):
        raise ConfigurationError("stop thresholds must start at 0 and strictly increase")
    if colors.shape[1:] != (3,) or np.any((colors < 0) | (colors > 255)):
        raise ConfigurationError("stop colors must be RGB triples in 0..255")

    def _palette(v: np.ndarray) -> np.ndarray:
        index = np.searchsorted(thresholds, np.asarray(v, dtype=np.float64), side="right") - 1
        return colors[np.clip(index, 0, len(colors) - 1)]

    return _palette


DISCRETE_STOPS = (
    (0, (0, 0, 0)),
    (43, (0, 0, 140)),
    (86, (0, 120, 200)),
    (128, (0, 190, 90)),
    (171, (240, 220, 0)),
    (214, (255, 90, 0)),
    (245, (255, 255, 255)),
)


def matplotlib_palette(cmap_name: str) -> PaletteFunc:
    """Sample a matplotlib colormap into a 256-entry table."""
    try:
        cmap = colormaps[cmap_name]
    except KeyError:
        raise ConfigurationError(f"Unknown matplotlib colormap '{cmap_name}'") from None
    table = np.round(cmap(np.linspace(0.0, 1.0, RAW_LEVELS))[:, :3] * 255.0)

    def _palette(v: np.ndarray) -> np.ndarray:
        index = np.clip(np.rint(np.asarray(v, dtype=np.float64)), 0, RAW_LEVELS - 1).astype(np.intp)
        return table[index]

    return _palette


_REGISTRY: Dict[str, PaletteFunc] = {
    PaletteId.GRAYSCALE.value: grayscale,
    PaletteId.HEATED.value: heated,
    PaletteId.VIRIDIS.value: viridis,
    PaletteId.MAGMA.value: magma,
    PaletteId.DISCRETE.value: stops_palette(DISCRETE_STOPS),
}


def register_palette(name: str, func: PaletteFunc, *, replace: bool = False) -> None:
    key = name.strip().lower()
    if not key:
        raise ConfigurationError("palette name must not be empty")
    if key in _REGISTRY and not replace:
        raise ConfigurationError(f"Palette '{name}' is already registered")
    _REGISTRY[key] = func
    _cached_color_table.cache_clear()
    logger.debug("Registered palette %s", key)


def available_palettes() -> List[str]:
    return sorted(_REGISTRY)


def _palette_key(name: Union[str, PaletteId]) -> str:
    return name.value if isinstance(name, PaletteId) else str(name).strip().lower()


def resolve_palette(name: Union[str, PaletteId]) -> PaletteFunc:
    key = _palette_key(name)
    try:
        return _REGISTRY[key]
    except KeyError:
        raise ConfigurationError(
            f"Unknown palette '{name}'; expected one of {', '.join(available_palettes())}"
        ) from None


def _to_rgb8(colors: np.ndarray) -> np.ndarray:
    return np.clip(np.rint(colors), 0, 255).astype(np.uint8)


def color_of(intensity: float, scheme: Union[str, PaletteId]) -> RGB:
    rgb = _to_rgb8(resolve_palette(scheme)(np.asarray(float(intensity))))
    return int(rgb[0]), int(rgb[1]), int(rgb[2])


@lru_cache(maxsize=32)
def _cached_color_table(shape: ShapeConfig, key: str) -> np.ndarray:
    table = np.full((RAW_LEVELS, 4), 255, dtype=np.uint8)
    table[:, :3] = _to_rgb8(resolve_palette(key)(intensity_table(shape)))
    table.flags.writeable = False
    return table


def color_table(shape: ShapeConfig, scheme: Union[str, PaletteId]) -> np.ndarray:
    """RGBA color for every raw byte value, shaping and palette fused."""
    return _cached_color_table(shape, _palette_key(scheme))


def legend_swatches(scheme: Union[str, PaletteId], steps: int) -> List[Tuple[float, RGB]]:
    """``steps`` evenly spaced intensities with their colors, low to high."""
    func = resolve_palette(scheme)
    values = np.linspace(0.0, 255.0, max(2, int(steps)))
    rgb = _to_rgb8(func(values))
    return [(float(v), (int(c[0]), int(c[1]), int(c[2]))) for v, c in zip(values, rgb)]
