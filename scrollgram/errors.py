class SpectrogramError(Exception):
    """Base class for rendering pipeline failures."""


class ConfigurationError(SpectrogramError, ValueError):
    """Raised when an explicit setting is malformed (bad range, unknown name)."""


class RasterAllocationError(SpectrogramError):
    """Raised when a raster cannot be allocated; the caller may retry."""


class AudioLoadingError(SpectrogramError):
    """Raised when an audio file cannot be loaded."""
