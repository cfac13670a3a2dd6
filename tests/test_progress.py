import threading

from specscope.models import CancelSignal, PauseState, ProgressSample
from specscope.progress import ProgressEstimator, describe_progress, format_eta, wait_while_paused


class _FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


def test_first_update_has_no_eta() -> None:
    estimator = ProgressEstimator(10, clock=_FakeClock())
    assert estimator.update(0) == ProgressSample(percent=0, eta_ms=None)


def test_eta_extrapolates_observed_rate() -> None:
    clock = _FakeClock()
    estimator = ProgressEstimator(4, clock=clock)
    estimator.update(0)

    clock.now += 0.5
    sample = estimator.update(1)

    assert sample is not None
    assert sample.percent == 25
    # 0.5s で 25% → 残り 75% に 1.5s
    assert sample.eta_ms is not None
    assert abs(sample.eta_ms - 1500.0) < 1e-6


def test_repeated_percent_is_suppressed() -> None:
    clock = _FakeClock()
    estimator = ProgressEstimator(1000, clock=clock)
    assert estimator.update(0) is not None
    clock.now += 0.1
    assert estimator.update(5) is None
    assert estimator.update(10) is not None
    assert estimator.update(11) is None


def test_last_column_is_left_to_finish() -> None:
    clock = _FakeClock()
    estimator = ProgressEstimator(3, clock=clock)
    clock.now += 1.0
    assert estimator.update(3) is None
    assert estimator.finish() == ProgressSample(percent=100, eta_ms=0.0)


def test_zero_elapsed_time_gives_unknown_eta() -> None:
    estimator = ProgressEstimator(4, clock=_FakeClock())
    sample = estimator.update(2)
    assert sample == ProgressSample(percent=50, eta_ms=None)


def test_format_eta() -> None:
    assert format_eta(None) == "ETA --"
    assert format_eta(float("inf")) == "ETA --"
    assert format_eta(-5.0) == "ETA --"
    assert format_eta(1234.0) == "ETA 1.2s"
    assert format_eta(0.0) == "ETA 0.0s"
    assert format_eta(125_000.0) == "ETA 2m 5s"


def test_format_eta_rounds_halves_up() -> None:
    assert format_eta(250.0) == "ETA 0.3s"
    assert format_eta(1750.0) == "ETA 1.8s"
    assert format_eta(62_500.0) == "ETA 1m 3s"


def test_describe_progress() -> None:
    text = describe_progress(ProgressSample(percent=42, eta_ms=3000.0))
    assert text == "Drawing spectrogram 42% (ETA 3.0s)"


def test_wait_returns_immediately_when_not_paused() -> None:
    cancel_signal = CancelSignal()
    assert wait_while_paused(None, cancel_signal)
    assert wait_while_paused(PauseState(), cancel_signal)
    cancel_signal.cancel()
    assert not wait_while_paused(None, cancel_signal)
    assert not wait_while_paused(PauseState(), cancel_signal)


def test_wait_blocks_until_resumed() -> None:
    pause_state = PauseState(paused=True)
    cancel_signal = CancelSignal()
    timer = threading.Timer(0.05, pause_state.resume)
    timer.start()
    try:
        assert wait_while_paused(pause_state, cancel_signal, poll_interval_sec=0.005)
    finally:
        timer.cancel()
    assert not pause_state.paused


def test_cancel_interrupts_pause() -> None:
    pause_state = PauseState(paused=True)
    cancel_signal = CancelSignal()
    timer = threading.Timer(0.05, cancel_signal.cancel)
    timer.start()
    try:
        assert not wait_while_paused(pause_state, cancel_signal, poll_interval_sec=1.0)
    finally:
        timer.cancel()
    assert pause_state.paused
