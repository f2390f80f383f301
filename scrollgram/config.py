import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Optional, Protocol

from .errors import ConfigurationError
from .utils import column_width_from_zoom

logger = logging.getLogger(__name__)

PACKAGE_ROOT = Path(__file__).resolve().parent
PROJECT_ROOT = PACKAGE_ROOT.parent
CONFIG_PATH = PACKAGE_ROOT / "spectrogram_config.json"

SAMPLE_RATES = (44100, 48000)
FFT_SIZES = (256, 512, 1024, 2048, 4096, 8192)
MIN_FFT_SIZE = 32
MAX_FFT_SIZE = 32768
# log10(0) guard for the logarithmic axis
LOG_FLOOR_HZ = 20.0

DEFAULT_SAMPLE_RATE = SAMPLE_RATES[-1]
DEFAULT_FFT_SIZE = 2048
DEFAULT_MIN_FREQ = 0.0
DEFAULT_MAX_FREQ = 20000.0
DEFAULT_SENSITIVITY = 1.0
DEFAULT_CONTRAST = 1.0
DEFAULT_ZOOM = 100.0
DEFAULT_PALETTE = "grayscale"
DEFAULT_WIDTH = 800
DEFAULT_HEIGHT = 300
DEFAULT_FRAMES_PER_SECOND = 60.0


class AxisScale(str, Enum):
    LINEAR = "linear"
    LOGARITHMIC = "log"
    MEL = "mel"

    @classmethod
    def parse(cls, value) -> "AxisScale":
        if isinstance(value, cls):
            return value
        name = str(value).strip().lower()
        aliases = {"logarithmic": "log"}
        try:
            return cls(aliases.get(name, name))
        except ValueError:
            raise ConfigurationError(f"Unsupported frequency scale '{value}'") from None


@dataclass(frozen=True)
class AxisConfig:
    scale: AxisScale = AxisScale.LINEAR
    min_freq: float = DEFAULT_MIN_FREQ
    max_freq: float = DEFAULT_MAX_FREQ
    sample_rate: int = DEFAULT_SAMPLE_RATE

    def __post_init__(self):
        object.__setattr__(self, "scale", AxisScale.parse(self.scale))
        if self.sample_rate <= 0:
            raise ConfigurationError(f"sample_rate must be positive, got {self.sample_rate}")
        if self.min_freq < 0:
            raise ConfigurationError(f"min_freq must not be negative, got {self.min_freq}")
        if self.min_freq >= self.max_freq:
            raise ConfigurationError(
                f"min_freq ({self.min_freq} Hz) must be lower than max_freq ({self.max_freq} Hz)"
            )
        if self.max_freq > self.nyquist:
            raise ConfigurationError(
                f"max_freq ({self.max_freq} Hz) exceeds the Nyquist frequency ({self.nyquist} Hz)"
            )
        if self.scale is AxisScale.LOGARITHMIC and self.max_freq <= LOG_FLOOR_HZ:
            raise ConfigurationError(f"max_freq must exceed {LOG_FLOOR_HZ:g} Hz on a logarithmic axis")

    @property
    def nyquist(self) -> float:
        return self.sample_rate / 2.0


@dataclass(frozen=True)
class ShapeConfig:
    sensitivity: float = DEFAULT_SENSITIVITY
    contrast: float = DEFAULT_CONTRAST

    def __post_init__(self):
        if not self.sensitivity > 0:
            raise ConfigurationError(f"sensitivity must be positive, got {self.sensitivity}")
        if not self.contrast > 0:
            raise ConfigurationError(f"contrast must be positive, got {self.contrast}")


@dataclass(frozen=True)
class RenderSettings:
    """Resolved control-surface values read once per tick."""

    axis: AxisConfig = field(default_factory=AxisConfig)
    shape: ShapeConfig = field(default_factory=ShapeConfig)
    palette: str = DEFAULT_PALETTE
    zoom: float = DEFAULT_ZOOM
    fft_size: int = DEFAULT_FFT_SIZE

    def __post_init__(self):
        if not MIN_FFT_SIZE <= self.fft_size <= MAX_FFT_SIZE or self.fft_size & (self.fft_size - 1):
            raise ConfigurationError(
                f"fft_size must be a power of two between {MIN_FFT_SIZE} and {MAX_FFT_SIZE}, got {self.fft_size}"
            )
        # raises on zoom <= 0
        column_width_from_zoom(self.zoom)

    @property
    def column_width(self) -> int:
        return column_width_from_zoom(self.zoom)

    @property
    def n_bins(self) -> int:
        return self.fft_size // 2

    def resolve(self) -> "RenderSettings":
        return self


class ControlSurface(Protocol):
    def resolve(self) -> RenderSettings:
        ...


@dataclass
class HarnessConfig:
    """
    JSON-driven parameters for offline rendering of a directory of recordings.

    Relative directories resolve against the project root.
    """

    input_directory: Path
    output_directory: Path

    sample_rate: Optional[int] = None  # None keeps the file's own rate
    fft_size: int = DEFAULT_FFT_SIZE

    scale: str = AxisScale.LINEAR.value
    min_freq: float = DEFAULT_MIN_FREQ
    max_freq: Optional[float] = None  # None means Nyquist

    sensitivity: float = DEFAULT_SENSITIVITY
    contrast: float = DEFAULT_CONTRAST
    palette: str = DEFAULT_PALETTE
    zoom: float = DEFAULT_ZOOM

    width: int = DEFAULT_WIDTH
    height: int = DEFAULT_HEIGHT
    frames_per_second: float = DEFAULT_FRAMES_PER_SECOND

    title: str = "Spectrogram"
    legend: bool = True
    export_format: str = "png"
    max_duration_sec: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Dict) -> "HarnessConfig":
        base = PROJECT_ROOT

        def _resolve(path_value: str) -> Path:
            path_obj = Path(path_value)
            return path_obj if path_obj.is_absolute() else (base / path_obj)

        return cls(
            input_directory=_resolve(data["input_directory"]),
            output_directory=_resolve(data["output_directory"]),
            sample_rate=None if data.get("sample_rate") in (None, "") else int(data["sample_rate"]),
            fft_size=int(data.get("fft_size", DEFAULT_FFT_SIZE)),
            scale=str(data.get("scale", AxisScale.LINEAR.value)),
            min_freq=float(data.get("min_freq", DEFAULT_MIN_FREQ)),
            max_freq=None if data.get("max_freq") in (None, "") else float(data["max_freq"]),
            sensitivity=float(data.get("sensitivity", DEFAULT_SENSITIVITY)),
            contrast=float(data.get("contrast", DEFAULT_CONTRAST)),
            palette=str(data.get("palette", DEFAULT_PALETTE)),
            zoom=float(data.get("zoom", DEFAULT_ZOOM)),
            width=int(data.get("width", DEFAULT_WIDTH)),
            height=int(data.get("height", DEFAULT_HEIGHT)),
            frames_per_second=float(data.get("frames_per_second", DEFAULT_FRAMES_PER_SECOND)),
            title=str(data.get("title", "Spectrogram")),
            legend=bool(data.get("legend", True)),
            export_format=str(data.get("export_format", "png")),
            max_duration_sec=None
            if data.get("max_duration_sec") in (None, "")
            else float(data["max_duration_sec"]),
        )

    def to_dict(self) -> Dict:
        def _relativize(path: Path) -> str:
            try:
                return str(path.relative_to(PROJECT_ROOT))
            except ValueError:
                return str(path)

        return {
            "input_directory": _relativize(self.input_directory),
            "output_directory": _relativize(self.output_directory),
            "sample_rate": self.sample_rate,
            "fft_size": self.fft_size,
            "scale": self.scale,
            "min_freq": self.min_freq,
            "max_freq": self.max_freq,
            "sensitivity": self.sensitivity,
            "contrast": self.contrast,
            "palette": self.palette,
            "zoom": self.zoom,
            "width": self.width,
            "height": self.height,
            "frames_per_second": self.frames_per_second,
            "title": self.title,
            "legend": self.legend,
            "export_format": self.export_format,
            "max_duration_sec": self.max_duration_sec,
        }

    def render_settings(self, sample_rate: int) -> RenderSettings:
        nyquist = sample_rate / 2.0
        max_freq = nyquist if self.max_freq is None else min(self.max_freq, nyquist)
        if self.max_freq is not None and self.max_freq > nyquist:
            logger.warning(
                "max_freq %.1f Hz is above the %.1f Hz Nyquist limit at %d Hz; using %.1f Hz",
                self.max_freq,
                nyquist,
                sample_rate,
                nyquist,
            )
        axis = AxisConfig(
            scale=AxisScale.parse(self.scale),
            min_freq=self.min_freq,
            max_freq=max_freq,
            sample_rate=sample_rate,
        )
        return RenderSettings(
            axis=axis,
            shape=ShapeConfig(sensitivity=self.sensitivity, contrast=self.contrast),
            palette=self.palette,
            zoom=self.zoom,
            fft_size=self.fft_size,
        )


def load_config(config_path: Path = CONFIG_PATH) -> HarnessConfig:
    with config_path.open("r", encoding="utf-8") as f:
        raw = json.load(f)
    cfg = HarnessConfig.from_dict(raw)
    cfg.input_directory.mkdir(parents=True, exist_ok=True)
    cfg.output_directory.mkdir(parents=True, exist_ok=True)
    logger.debug("Loaded harness config from %s", config_path)
    return cfg


def save_config(config: HarnessConfig, config_path: Path = CONFIG_PATH) -> None:
    with config_path.open("w", encoding="utf-8") as f:
        json.dump(config.to_dict(), f, indent=2)
