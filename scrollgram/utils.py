import math

from .errors import ConfigurationError


def hz_per_bin(sample_rate: int, n_bins: int) -> float:
    return (float(sample_rate) / 2.0) / float(n_bins)


def column_width_from_zoom(zoom: float) -> int:
    """Pixels per frame for a zoom percentage; 100% is one pixel."""
    if not zoom > 0:
        raise ConfigurationError(f"zoom must be positive, got {zoom}")
    return max(1, int(math.floor(zoom / 100.0)))


def format_frequency(freq: float) -> str:
    hz = int(round(freq))
    if hz >= 1000:
        return f"{freq / 1000.0:.1f}kHz"
    return f"{hz} Hz"


def format_seconds(seconds: float) -> str:
    sign = "-" if seconds < 0 else ""
    seconds = abs(seconds)
    if seconds >= 60:
        minutes = int(seconds // 60)
        remainder = seconds % 60
        return f"{sign}{minutes:d}m {remainder:.1f}s"
    return f"{sign}{seconds:.2f}s"


def require_positive_int(name: str, value) -> int:
    if isinstance(value, bool) or int(value) != value or value <= 0:
        raise ConfigurationError(f"{name} must be a positive integer, got {value!r}")
    return int(value)
