import numpy as np
import pytest

from specscope.models import CancelSignal, PauseState, RenderRaster, RenderStatus, SampleBuffer, ViewportState


def test_sample_buffer_is_a_read_only_copy() -> None:
    source = np.linspace(-1.0, 1.0, 8000, dtype=np.float32)
    buffer = SampleBuffer(samples=source, sample_rate=8000)

    source[0] = 0.25
    assert buffer.samples[0] == -1.0
    assert not buffer.samples.flags.writeable
    assert buffer.sample_count == 8000
    assert buffer.duration_sec == 1.0


def test_sample_buffer_validation() -> None:
    with pytest.raises(ValueError):
        SampleBuffer(samples=np.zeros(10, dtype=np.float32), sample_rate=0)
    with pytest.raises(ValueError):
        SampleBuffer(samples=np.zeros((10, 2), dtype=np.float32), sample_rate=8000)
    assert SampleBuffer(samples=np.zeros(0, dtype=np.float32), sample_rate=8000).duration_sec == 0.0


def test_raster_columns_are_gray_and_opaque() -> None:
    raster = RenderRaster(3, 2)
    assert raster.pixels.shape == (2, 3, 4)
    raster.write_column(1, np.array([10, 200], dtype=np.uint8))

    assert raster.pixels[:, 1].tolist() == [[10, 10, 10, 255], [200, 200, 200, 255]]
    assert np.all(raster.pixels[:, [0, 2]] == 0)
    assert raster.gray()[:, 1].tolist() == [10, 200]

    raster.clear()
    assert np.all(raster.pixels == 0)


def test_pause_and_cancel_flags() -> None:
    pause_state = PauseState()
    pause_state.pause()
    assert pause_state.paused
    pause_state.resume()
    assert not pause_state.paused

    cancel_signal = CancelSignal()
    assert not cancel_signal.wait(0.0)
    cancel_signal.cancel()
    assert cancel_signal.cancelled
    assert cancel_signal.wait(0.0)


def test_status_values() -> None:
    assert RenderStatus.COMPLETED == "completed"
    assert RenderStatus.CANCELLED == "cancelled"


def test_viewport_state_rejects_invalid_values() -> None:
    for kwargs in (
        {"zoom_seconds": 0.0},
        {"zoom_seconds": -1.0},
        {"zoom_seconds": float("nan")},
        {"zoom_seconds": 5.0, "pixel_offset": -0.5},
        {"zoom_seconds": 5.0, "viewport_pixel_width": -1},
    ):
        with pytest.raises(ValueError):
            ViewportState(**kwargs)  # type: ignore[arg-type]
    state = ViewportState(zoom_seconds=5.0, pixel_offset=12.0, viewport_pixel_width=800)
    assert state.to_dict() == {"zoom_seconds": 5.0, "pixel_offset": 12.0, "viewport_pixel_width": 800}
