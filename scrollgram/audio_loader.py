"""
Recording decoder for the offline harness.

Channels are kept apart by default so a stereo file renders as two strips.
"""
import io
from fractions import Fraction
from pathlib import Path
from typing import Optional, Tuple, Union

import numpy as np
import soundfile as sf
from scipy import signal

from .errors import AudioLoadingError

SUPPORTED_EXTENSIONS = frozenset({".wav", ".flac", ".ogg", ".mp3"})


def is_supported_file(path: Union[str, Path]) -> bool:
    return Path(path).suffix.lower() in SUPPORTED_EXTENSIONS


def _resample(audio: np.ndarray, original_sr: int, target_sr: int) -> np.ndarray:
    """Polyphase resampling along the sample axis, channels untouched."""
    ratio = Fraction(int(target_sr), int(original_sr))
    if ratio == 1:
        return audio
    return signal.resample_poly(audio, ratio.numerator, ratio.denominator, axis=0)


def load_audio(
    source: Union[str, Path, io.BytesIO],
    target_sample_rate: Optional[int] = None,
    mono: bool = False,
) -> Tuple[np.ndarray, int]:
    """
    Load an audio file using soundfile and optionally resample it.
    Returns float32 samples shaped ``(samples,)`` for mono files or when
    ``mono`` is set, ``(samples, channels)`` otherwise, and the effective
    sample rate.
    """
    try:
        data, sample_rate = sf.read(source, dtype="float32", always_2d=False)
    except Exception as exc:
        raise AudioLoadingError(str(exc)) from exc

    if mono and data.ndim > 1:
        data = data.mean(axis=1)

    if target_sample_rate:
        data = _resample(data, sample_rate, target_sample_rate)
        sample_rate = target_sample_rate

    return data.astype(np.float32), int(sample_rate)


def trim_audio(audio: np.ndarray, sample_rate: int, max_duration_sec: Optional[float]) -> np.ndarray:
    if max_duration_sec is None:
        return audio
    return audio[: int(max_duration_sec * sample_rate)]


def audio_info(path: Union[str, Path]) -> dict:
    """Header facts for ``path``; the samples are not decoded."""
    try:
        header = sf.info(str(path))
    except Exception as exc:
        raise AudioLoadingError(f"cannot read header of {path}: {exc}") from exc
    return {
        "path": Path(path),
        "sample_rate": int(header.samplerate),
        "channels": int(header.channels),
        "frames": int(header.frames),
        "duration": float(header.duration),
    }
