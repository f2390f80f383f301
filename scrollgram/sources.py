"""
Frame sources feeding the rendering pipeline.

The renderer only calls ``next_frame()``. ``byte_frequency_frames`` is the
file-playback adapter: it turns decoded audio into byte magnitude frames the
way a browser analyser node reports them (Blackman window, temporal
smoothing, decibels mapped linearly onto 0..255).
"""
from typing import Iterable, Iterator, List, Protocol, Union

import numpy as np
from scipy import fft, signal

from .errors import ConfigurationError
from .utils import require_positive_int

DEFAULT_MIN_DECIBELS = -100.0
DEFAULT_MAX_DECIBELS = -30.0
DEFAULT_SMOOTHING = 0.8
EPS = np.finfo(np.float32).eps


class _EndOfStream:
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "END_OF_STREAM"

    def __bool__(self) -> bool:
        return False


END_OF_STREAM = _EndOfStream()

FrameResult = Union[np.ndarray, None, _EndOfStream]


class FrameSource(Protocol):
    def next_frame(self) -> FrameResult:
        """A frame, ``None`` when nothing new is ready, or ``END_OF_STREAM``."""
        ...


class IterableFrameSource:
    """Serve frames from any iterable; ``None`` items become skipped ticks."""

    def __init__(self, frames: Iterable):
        self._frames: Iterator = iter(frames)
        self.exhausted = False

    def next_frame(self) -> FrameResult:
        if self.exhausted:
            return END_OF_STREAM
        try:
            frame = next(self._frames)
        except StopIteration:
            self.exhausted = True
            return END_OF_STREAM
        return None if frame is None else np.asarray(frame)


def byte_frequency_frames(
    audio: np.ndarray,
    sample_rate: int,
    fft_size: int,
    frames_per_second: float,
    *,
    smoothing: float = DEFAULT_SMOOTHING,
    min_decibels: float = DEFAULT_MIN_DECIBELS,
    max_decibels: float = DEFAULT_MAX_DECIBELS,
) -> np.ndarray:
    """
    Slice mono audio into one analyser frame per display tick.
    Returns an ``(n_frames, fft_size // 2)`` uint8 array.
    """
    if audio.ndim != 1:
        raise ValueError("audio must be mono")
    fft_size = require_positive_int("fft_size", fft_size)
    if not frames_per_second > 0:
        raise ConfigurationError(f"frames_per_second must be positive, got {frames_per_second}")
    if not 0.0 <= smoothing < 1.0:
        raise ConfigurationError(f"smoothing must lie in [0, 1), got {smoothing}")
    if min_decibels >= max_decibels:
        raise ConfigurationError("min_decibels must be lower than max_decibels")

    n_bins = fft_size // 2
    hop = max(1, int(round(sample_rate / float(frames_per_second))))
    if len(audio) < fft_size:
        return np.zeros((0, n_bins), dtype=np.uint8)

    starts = np.arange(0, len(audio) - fft_size + 1, hop)
    window = signal.get_window("blackman", fft_size)
    segments = np.stack([audio[s : s + fft_size] for s in starts]).astype(np.float64) * window
    magnitude = np.abs(fft.rfft(segments, axis=1))[:, :n_bins] / fft_size

    # one-pole smoothing across frames, per bin
    smoothed = signal.lfilter([1.0 - smoothing], [1.0, -smoothing], magnitude, axis=0)

    db = 20.0 * np.log10(np.maximum(smoothed, EPS))
    scaled = np.floor(255.0 / (max_decibels - min_decibels) * (db - min_decibels))
    return np.clip(scaled, 0, 255).astype(np.uint8)


def audio_frame_sources(
    audio: np.ndarray,
    sample_rate: int,
    fft_size: int,
    frames_per_second: float,
    **kwargs,
) -> List[IterableFrameSource]:
    """One source per channel of ``(samples,)`` or ``(samples, channels)`` audio."""
    channels = audio[:, np.newaxis] if audio.ndim == 1 else audio
    if channels.ndim != 2:
        raise ValueError("audio must be 1-D or (samples, channels)")
    return [
        IterableFrameSource(
            byte_frequency_frames(
                np.ascontiguousarray(channels[:, c]), sample_rate, fft_size, frames_per_second, **kwargs
            )
        )
        for c in range(channels.shape[1])
    ]
