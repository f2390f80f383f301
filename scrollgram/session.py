"""
Per-channel spectrogram state and the tick-driven session that feeds it.

The host owns scheduling: it calls :meth:`SpectrogramSession.tick` once per
display frame (or in a tight loop for offline rendering) until ``tick``
returns False. :meth:`SpectrogramSession.cancel` is honoured at the start of
the next tick, so at most the tick already running completes afterwards.
"""
import logging
from typing import List, Optional, Sequence

import numpy as np

from .config import (
    DEFAULT_FRAMES_PER_SECOND,
    DEFAULT_HEIGHT,
    DEFAULT_WIDTH,
    ControlSurface,
    RenderSettings,
)
from .errors import ConfigurationError
from .export import ExportFormat, ExportOptions, compose_export, encode_image
from .palette import resolve_palette
from .scroll_buffer import BufferState, ScrollBuffer, render_column
from .sources import END_OF_STREAM, FrameSource

logger = logging.getLogger(__name__)

STEREO_LABELS = ("LEFT CHANNEL", "RIGHT CHANNEL")


def default_labels(count: int) -> List[str]:
    if count == 1:
        return ["MONO"]
    if count == 2:
        return list(STEREO_LABELS)
    return [f"CHANNEL {i + 1}" for i in range(count)]


class SpectrogramState:
    """One channel: its scroll buffer and the settings used for its next column."""

    def __init__(
        self,
        width: int = DEFAULT_WIDTH,
        height: int = DEFAULT_HEIGHT,
        settings: Optional[RenderSettings] = None,
        label: str = "",
    ):
        self.label = label
        self.buffer = ScrollBuffer(width, height)
        self.settings = RenderSettings()
        self.frame_bins: Optional[int] = None
        self.apply_settings(settings or RenderSettings())

    @property
    def state(self) -> BufferState:
        return self.buffer.state

    def apply_settings(self, settings: RenderSettings) -> None:
        """Takes effect from the next appended column; history is not repainted."""
        resolve_palette(settings.palette)
        self.settings = settings

    def render_frame(self, frame) -> np.ndarray:
        """Column pixels for ``frame`` under the current settings; the buffer is untouched."""
        settings = self.settings
        return render_column(frame, self.buffer.height, settings.axis, settings.shape, settings.palette)

    def commit_column(self, column: np.ndarray, frame_bins: int) -> None:
        self.buffer.write_column(column, self.settings.column_width)
        self.frame_bins = frame_bins

    def snapshot(self) -> np.ndarray:
        return self.buffer.snapshot()

    def clear(self) -> None:
        self.buffer.clear()

    def stop(self) -> None:
        self.buffer.stop()

    def resize(self, width: int, height: int) -> None:
        self.buffer.resize(width, height)


class SpectrogramSession:
    def __init__(
        self,
        sources: Sequence[FrameSource],
        controls: ControlSurface,
        width: int = DEFAULT_WIDTH,
        height: int = DEFAULT_HEIGHT,
        *,
        labels: Optional[Sequence[str]] = None,
        frames_per_second: float = DEFAULT_FRAMES_PER_SECOND,
        export_format: ExportFormat = ExportFormat.PNG,
        title: str = "Spectrogram",
    ):
        if not sources:
            raise ConfigurationError("a session needs at least one frame source")
        labels = list(labels) if labels is not None else default_labels(len(sources))
        if len(labels) != len(sources):
            raise ConfigurationError(f"expected {len(sources)} channel labels, got {len(labels)}")
        if not frames_per_second > 0:
            raise ConfigurationError(f"frames_per_second must be positive, got {frames_per_second}")

        self._controls = controls
        settings = controls.resolve()
        self.channels = [SpectrogramState(width, height, settings, label) for label in labels]
        self._sources = list(sources)
        self._finished = [False] * len(self._sources)
        self._cancelled = False
        self.frames_per_second = float(frames_per_second)
        self.export_format = ExportFormat.parse(export_format)
        self.title = title
        self.ticks = 0

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def finished(self) -> bool:
        return all(self._finished)

    def set_controls(self, controls: ControlSurface) -> None:
        self._controls = controls

    def tick(self) -> bool:
        """Render one column per channel; False means stop scheduling ticks."""
        if self._cancelled:
            return False

        settings = self._controls.resolve()
        for channel in self.channels:
            channel.apply_settings(settings)

        # nothing is written unless every channel rendered its column
        pending = []
        for index, (channel, source) in enumerate(zip(self.channels, self._sources)):
            if self._finished[index]:
                continue
            frame = source.next_frame()
            if frame is END_OF_STREAM:
                self._finished[index] = True
                logger.debug("Frame source for %s ended", channel.label or f"channel {index}")
                continue
            if frame is None:
                continue
            pending.append((channel, channel.render_frame(frame), int(np.size(frame))))

        for channel, column, frame_bins in pending:
            channel.commit_column(column, frame_bins)
        self.ticks += 1

        if self.finished:
            logger.info("All frame sources ended after %d ticks", self.ticks)
            self.cancel()
            return False
        if self._cancelled:
            # cancelled while this tick was running
            for channel in self.channels:
                channel.stop()
            return False
        return True

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        for channel in self.channels:
            channel.stop()
        logger.info("Session cancelled after %d ticks", self.ticks)

    def start(self) -> None:
        """Allow ticks again after a cancel; rendered history is kept."""
        self._cancelled = False

    def run(self, max_ticks: Optional[int] = None) -> int:
        """Tick until cancelled, the sources end or ``max_ticks`` is reached."""
        start = self.ticks
        while max_ticks is None or self.ticks - start < max_ticks:
            if not self.tick():
                break
        return self.ticks - start

    def clear(self) -> None:
        for channel in self.channels:
            channel.clear()

    def resize(self, width: int, height: int) -> None:
        for channel in self.channels:
            channel.resize(width, height)

    def export_options(self) -> ExportOptions:
        settings = self.channels[0].settings
        return ExportOptions(
            title=self.title,
            palette=settings.palette,
            seconds_per_pixel=1.0 / (self.frames_per_second * settings.column_width),
        )

    def export_raster(self, options: Optional[ExportOptions] = None) -> np.ndarray:
        """Composite every channel from snapshots; the live buffers are never touched."""
        snapshots = [(channel.label, channel.snapshot()) for channel in self.channels]
        reference = self.channels[0]
        n_bins = reference.frame_bins or reference.settings.n_bins
        return compose_export(snapshots, reference.settings.axis, n_bins, options or self.export_options())

    def export_image(self, options: Optional[ExportOptions] = None) -> bytes:
        return encode_image(self.export_raster(options), self.export_format)
