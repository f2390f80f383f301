from dataclasses import replace

import numpy as np
import pytest

import scrollgram.export as export
from scrollgram.config import AxisConfig, RenderSettings
from scrollgram.errors import ConfigurationError, RasterAllocationError
from scrollgram.export import BOTTOM_MARGIN, LABEL_HEIGHT, LEFT_MARGIN, LEGEND_WIDTH, PADDING, TITLE_HEIGHT
from scrollgram.scroll_buffer import BufferState
from scrollgram.session import SpectrogramSession, SpectrogramState
from scrollgram.sources import END_OF_STREAM, IterableFrameSource

SETTINGS = RenderSettings(axis=AxisConfig(min_freq=0.0, max_freq=24000.0, sample_rate=48000), fft_size=32)


def _frames(*values):
    return [None if v is None else np.full(16, v, dtype=np.uint8) for v in values]


class CountingSource:
    def __init__(self, frames):
        self.inner = IterableFrameSource(frames)
        self.calls = 0

    def next_frame(self):
        self.calls += 1
        return self.inner.next_frame()


class MutableControls:
    def __init__(self, settings):
        self.settings = settings

    def resolve(self):
        return self.settings


def test_tick_renders_one_column_per_channel():
    session = SpectrogramSession(
        [IterableFrameSource(_frames(10, 20, 30)), IterableFrameSource(_frames(40, 50, 60))],
        SETTINGS,
        width=4,
        height=3,
    )
    assert [c.label for c in session.channels] == ["LEFT CHANNEL", "RIGHT CHANNEL"]
    for _ in range(3):
        assert session.tick()

    left, right = (c.snapshot() for c in session.channels)
    assert left[0, :, 0].tolist() == [0, 10, 20, 30]
    assert right[0, :, 0].tolist() == [0, 40, 50, 60]


def test_missing_frame_is_a_skipped_tick():
    session = SpectrogramSession([IterableFrameSource(_frames(None, 90))], SETTINGS, width=3, height=2)
    assert session.tick()
    assert session.channels[0].state is BufferState.IDLE
    assert not session.channels[0].snapshot().any()
    session.tick()
    assert session.channels[0].state is BufferState.ACTIVE
    assert session.channels[0].snapshot()[0, -1, 0] == 90


def test_end_of_stream_stops_the_session():
    source = IterableFrameSource(_frames(1, 2))
    session = SpectrogramSession([source], SETTINGS, width=3, height=2)
    assert session.run() == 3
    assert session.finished
    assert session.cancelled
    assert session.channels[0].state is BufferState.IDLE
    assert source.next_frame() is END_OF_STREAM


def test_shorter_channel_stops_while_the_other_continues():
    session = SpectrogramSession(
        [IterableFrameSource(_frames(5)), IterableFrameSource(_frames(6, 7, 8))], SETTINGS, width=4, height=2
    )
    session.run()
    left, right = (c.snapshot() for c in session.channels)
    assert left[0, :, 0].tolist() == [0, 0, 0, 5]
    assert right[0, :, 0].tolist() == [0, 6, 7, 8]


def test_cancel_is_observed_at_the_start_of_the_next_tick():
    source = CountingSource(_frames(*range(1, 50)))
    session = SpectrogramSession([source], SETTINGS, width=8, height=2)

    class CancelOnThirdFrame:
        def resolve(self):
            if session.ticks == 2:
                session.cancel()
            return SETTINGS

    session.set_controls(CancelOnThirdFrame())
    assert session.run() == 3
    # the in-flight tick finished its column, nothing was pulled afterwards
    assert source.calls == 3
    assert session.channels[0].snapshot()[0, -1, 0] == 3
    assert not session.tick()
    assert source.calls == 3


def test_start_after_cancel_resumes_without_losing_history():
    session = SpectrogramSession([IterableFrameSource(_frames(11, 22, 33))], SETTINGS, width=3, height=2)
    session.tick()
    session.cancel()
    assert not session.tick()
    session.start()
    assert session.tick()
    assert session.channels[0].snapshot()[0, :, 0].tolist() == [0, 11, 22]


def test_settings_changes_apply_to_the_next_column_only():
    controls = MutableControls(SETTINGS)
    session = SpectrogramSession([IterableFrameSource(_frames(200, 200))], controls, width=2, height=2)
    session.tick()
    controls.settings = replace(SETTINGS, palette="heated")
    session.tick()
    pixels = session.channels[0].snapshot()
    assert pixels[0, 0, :3].tolist() == [200, 200, 200]
    assert pixels[0, 1, :3].tolist() == [255, 144, 32]


def test_zoom_sets_column_width():
    zoomed = replace(SETTINGS, zoom=300.0)
    session = SpectrogramSession([IterableFrameSource(_frames(70))], zoomed, width=5, height=2)
    session.tick()
    assert session.channels[0].snapshot()[0, :, 0].tolist() == [0, 0, 70, 70, 70]


def test_session_argument_validation():
    with pytest.raises(ConfigurationError):
        SpectrogramSession([], SETTINGS)
    with pytest.raises(ConfigurationError):
        SpectrogramSession([IterableFrameSource([])], SETTINGS, labels=["A", "B"])
    with pytest.raises(ConfigurationError):
        SpectrogramState(settings=replace(SETTINGS, palette="no-such-palette"))


def test_unknown_palette_mid_session_fails_that_tick_only():
    controls = MutableControls(SETTINGS)
    session = SpectrogramSession([IterableFrameSource(_frames(1, 2, 3))], controls, width=3, height=2)
    session.tick()
    controls.settings = replace(SETTINGS, palette="no-such-palette")
    with pytest.raises(ConfigurationError):
        session.tick()
    controls.settings = SETTINGS
    assert session.tick()
    assert session.channels[0].snapshot()[0, :, 0].tolist() == [0, 1, 2]


def test_rejected_frame_drops_the_whole_tick():
    good_right = np.full(16, 40, dtype=np.uint8)
    session = SpectrogramSession(
        [
            IterableFrameSource(_frames(10, 20, 30)),
            IterableFrameSource([good_right, np.zeros((2, 2)), np.full(16, 60, dtype=np.uint8)]),
        ],
        SETTINGS,
        width=4,
        height=3,
    )
    assert session.tick()
    with pytest.raises(ValueError):
        session.tick()
    assert session.tick()

    left, right = (c.snapshot() for c in session.channels)
    assert left[0, :, 0].tolist() == [0, 0, 10, 30]
    assert right[0, :, 0].tolist() == [0, 0, 40, 60]
    assert session.ticks == 2


def test_clear_and_resize_apply_to_every_channel():
    session = SpectrogramSession(
        [IterableFrameSource(_frames(1, 2)), IterableFrameSource(_frames(3, 4))], SETTINGS, width=3, height=2
    )
    session.tick()
    session.clear()
    assert all(not c.snapshot().any() for c in session.channels)
    session.resize(6, 5)
    assert all(c.snapshot().shape == (5, 6, 4) for c in session.channels)


def test_export_stacks_channels_into_one_raster():
    session = SpectrogramSession(
        [IterableFrameSource(_frames(100, 150)), IterableFrameSource(_frames(50, 25))],
        SETTINGS,
        width=40,
        height=30,
    )
    session.run()
    live = [c.snapshot() for c in session.channels]

    pixels = session.export_raster()
    assert pixels.shape == (
        TITLE_HEIGHT + 2 * (LABEL_HEIGHT + 30) + BOTTOM_MARGIN,
        LEFT_MARGIN + 40 + PADDING + LEGEND_WIDTH,
        4,
    )
    assert pixels.dtype == np.uint8
    for channel, before in zip(session.channels, live):
        assert np.array_equal(channel.snapshot(), before)

    png = session.export_image()
    assert png.startswith(b"\x89PNG\r\n\x1a\n")


def test_export_time_scale_tracks_frame_rate_and_zoom():
    zoomed = replace(SETTINGS, zoom=200.0)
    session = SpectrogramSession([IterableFrameSource([])], zoomed, frames_per_second=50.0)
    assert session.export_options().seconds_per_pixel == pytest.approx(0.01)
    assert session.export_options().palette == "grayscale"


def test_failed_export_leaves_live_buffers_intact(monkeypatch):
    session = SpectrogramSession([IterableFrameSource(_frames(12, 34, 56))], SETTINGS, width=4, height=2)
    session.tick()
    before = session.channels[0].snapshot()

    def failing_allocate(width, height, fill=(0, 0, 0, 0)):
        raise RasterAllocationError("out of memory")

    monkeypatch.setattr(export, "allocate_pixels", failing_allocate)
    with pytest.raises(RasterAllocationError):
        session.export_raster()

    assert np.array_equal(session.channels[0].snapshot(), before)
    assert session.tick()
    assert session.channels[0].snapshot()[0, -1, 0] == 34
