import numpy as np
import pytest

import scrollgram.scroll_buffer as scroll_buffer
from scrollgram.config import AxisConfig, ShapeConfig
from scrollgram.errors import ConfigurationError, RasterAllocationError
from scrollgram.scroll_buffer import BufferState, ScrollBuffer, render_column

AXIS = AxisConfig(min_freq=0.0, max_freq=24000.0, sample_rate=48000)
SHAPE = ShapeConfig()


def _flat_frame(value: int, n_bins: int = 8) -> np.ndarray:
    return np.full(n_bins, value, dtype=np.uint8)


def _append(buffer: ScrollBuffer, value: int, column_width: int = 1) -> None:
    buffer.append_column(_flat_frame(value), AXIS, SHAPE, "grayscale", column_width)


def test_ten_columns_into_width_five_keeps_the_last_five():
    buffer = ScrollBuffer(5, 4)
    for i in range(1, 11):
        _append(buffer, i * 20)

    pixels = buffer.snapshot()
    assert pixels.shape == (4, 5, 4)
    assert pixels[:, -1].tolist() == [[200, 200, 200, 255]] * 4
    assert pixels[0, :, 0].tolist() == [120, 140, 160, 180, 200]
    for i in range(1, 6):
        assert not np.any(pixels[..., 0] == i * 20)


@pytest.mark.parametrize("column_width", [1, 2, 3, 7, 12])
def test_width_never_changes_and_right_edge_holds_latest(column_width):
    buffer = ScrollBuffer(7, 6)
    for value in (10, 50, 90, 130):
        _append(buffer, value, column_width)
        assert buffer.width == 7
        assert buffer.height == 6

    pixels = buffer.snapshot()
    visible = min(column_width, 7)
    assert np.all(pixels[:, -visible:, 0] == 130)
    if column_width < 7:
        assert np.all(pixels[:, -visible - 1, 0] == 90)


def test_column_is_shifted_out_once_enough_width_arrives():
    buffer = ScrollBuffer(6, 2)
    _append(buffer, 77, column_width=2)
    _append(buffer, 5, column_width=2)
    _append(buffer, 5, column_width=2)
    assert np.any(buffer.snapshot()[..., 0] == 77)
    _append(buffer, 5, column_width=2)
    assert not np.any(buffer.snapshot()[..., 0] == 77)


def test_unfilled_columns_stay_transparent():
    buffer = ScrollBuffer(4, 3)
    _append(buffer, 100)
    pixels = buffer.snapshot()
    assert np.all(pixels[:, :3] == 0)
    assert np.all(pixels[:, 3, 3] == 255)


def test_low_bins_render_at_the_bottom():
    frame = np.array([255, 0, 0, 0], dtype=np.uint8)
    column = render_column(frame, 4, AXIS, SHAPE, "grayscale")
    assert column[:, 0].tolist() == [0, 0, 0, 255]


def test_float_frames_are_clipped_to_bytes():
    column = render_column([300.0, -4.0], 2, AXIS, SHAPE, "grayscale")
    assert column[:, 0].tolist() == [0, 255]


def test_malformed_frames_raise():
    buffer = ScrollBuffer(4, 4)
    with pytest.raises(ValueError):
        buffer.append_column(np.zeros((2, 2)), AXIS, SHAPE, "grayscale")
    with pytest.raises(ValueError):
        buffer.append_column([], AXIS, SHAPE, "grayscale")
    with pytest.raises(ConfigurationError):
        buffer.append_column(_flat_frame(1), AXIS, SHAPE, "grayscale", column_width=0)
    assert buffer.state is BufferState.IDLE


def test_clear_is_idempotent():
    buffer = ScrollBuffer(5, 5)
    for value in (30, 60, 90):
        _append(buffer, value)

    buffer.clear()
    first = buffer.snapshot()
    buffer.clear()
    second = buffer.snapshot()
    assert not first.any()
    assert np.array_equal(first, second)
    assert buffer.state is BufferState.IDLE


def test_state_machine_transitions():
    buffer = ScrollBuffer(3, 3)
    assert buffer.state is BufferState.IDLE
    _append(buffer, 10)
    assert buffer.state is BufferState.ACTIVE
    buffer.stop()
    assert buffer.state is BufferState.IDLE
    # stopping keeps the picture
    assert buffer.snapshot()[:, -1, 0].tolist() == [10, 10, 10]
    _append(buffer, 20)
    assert buffer.state is BufferState.ACTIVE
    buffer.clear()
    assert buffer.state is BufferState.IDLE


def test_resize_reallocates_and_drops_history():
    buffer = ScrollBuffer(4, 4)
    _append(buffer, 200)
    buffer.resize(9, 3)
    assert buffer.snapshot().shape == (3, 9, 4)
    assert not buffer.snapshot().any()
    assert buffer.state is BufferState.IDLE


def test_failed_resize_keeps_last_good_raster(monkeypatch):
    buffer = ScrollBuffer(4, 4)
    _append(buffer, 200)
    before = buffer.snapshot()

    with pytest.raises(ConfigurationError):
        buffer.resize(0, 4)

    def failing_allocate(width, height, fill=(0, 0, 0, 0)):
        raise RasterAllocationError("out of memory")

    monkeypatch.setattr(scroll_buffer, "allocate_pixels", failing_allocate)
    with pytest.raises(RasterAllocationError):
        buffer.resize(100000, 100000)

    assert np.array_equal(buffer.snapshot(), before)
    assert buffer.state is BufferState.ACTIVE


def test_snapshot_is_a_copy():
    buffer = ScrollBuffer(3, 2)
    _append(buffer, 40)
    snap = buffer.snapshot()
    snap[...] = 9
    assert buffer.snapshot()[0, -1, 0] == 40
