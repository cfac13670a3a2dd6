from __future__ import annotations

import math
import time
from collections.abc import Callable

from specscope.models import CancelSignal, PauseState, ProgressSample


class ProgressEstimator:
    """Percent/ETA tracking for a column-by-column render.

    ``update`` only returns a sample when the integer percent changes. The
    last column is not reported here; ``finish`` emits the single 100%/0ms
    sample for a completed render.
    """

    def __init__(self, total_columns: int, clock: Callable[[], float] = time.perf_counter) -> None:
        self._total = max(1, int(total_columns))
        self._clock = clock
        self._start = clock()
        self._last_percent = -1

    @property
    def elapsed_ms(self) -> float:
        return (self._clock() - self._start) * 1000.0

    def update(self, columns_done: int) -> ProgressSample | None:
        if columns_done >= self._total:
            return None
        percent = int(math.floor(columns_done / self._total * 100))
        if percent == self._last_percent:
            return None
        self._last_percent = percent
        return ProgressSample(percent=percent, eta_ms=self._estimate_eta_ms(columns_done))

    def finish(self) -> ProgressSample:
        self._last_percent = 100
        return ProgressSample(percent=100, eta_ms=0.0)

    def _estimate_eta_ms(self, columns_done: int) -> float | None:
        if columns_done <= 0:
            return None
        elapsed = self.elapsed_ms
        if elapsed <= 0.0:
            return None
        progress = columns_done / self._total
        rate = progress / elapsed
        return max(0.0, (1.0 - progress) / rate)


def wait_while_paused(
    pause_state: PauseState | None,
    cancel_signal: CancelSignal,
    poll_interval_sec: float = 0.05,
) -> bool:
    """Block while paused. Returns False when cancellation was observed."""
    if pause_state is None:
        return not cancel_signal.cancelled
    while pause_state.paused:
        # Event.wait で寝るので、一時停止中でもキャンセルは即座に拾える。
        if cancel_signal.wait(poll_interval_sec):
            return False
    return not cancel_signal.cancelled


def format_eta(eta_ms: float | None) -> str:
    if eta_ms is None or not math.isfinite(eta_ms) or eta_ms < 0:
        return "ETA --"
    seconds = eta_ms / 1000.0
    if seconds >= 60:
        minutes = int(seconds // 60)
        remaining = _round_half_up(seconds - minutes * 60)
        return f"ETA {minutes}m {int(remaining)}s"
    return f"ETA {max(0.0, _round_half_up(seconds * 10) / 10)}s"


def _round_half_up(value: float) -> float:
    # round() は偶数丸めなので 0.25s が 0.2s になる
    return float(math.floor(value + 0.5))


def describe_progress(sample: ProgressSample) -> str:
    return f"Drawing spectrogram {sample.percent}% ({format_eta(sample.eta_ms)})"
