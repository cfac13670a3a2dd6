from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable
from typing import Protocol

import numpy as np

from specscope.analysis import StftFrameProducer, total_frame_count
from specscope.errors import FrequencyOutOfRangeError, InvalidRangeError
from specscope.models import (
    CancelSignal,
    PauseState,
    ProgressSample,
    RenderOptions,
    RenderRaster,
    RenderRequest,
    RenderStatus,
)
from specscope.progress import ProgressEstimator, wait_while_paused

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressSample], None]
DisplaySink = Callable[[RenderRaster], None]


class FrameProducer(Protocol):
    def magnitudes(self, frame_indices: np.ndarray) -> np.ndarray: ...


def validate_request(request: RenderRequest, raster: RenderRaster | None = None) -> None:
    if request.frame_end <= request.frame_start:
        raise InvalidRangeError(
            f"Invalid frame range: frame_start ({request.frame_start}) must be less than frame_end ({request.frame_end})"
        )
    if request.output_width <= 0 or request.output_height <= 0:
        raise InvalidRangeError(
            f"Output width and height must be greater than 0: {request.output_width}x{request.output_height}"
        )
    if raster is not None and (raster.width != request.output_width or raster.height != request.output_height):
        raise InvalidRangeError(
            f"Raster size {raster.width}x{raster.height} does not match "
            f"request {request.output_width}x{request.output_height}"
        )
    frequency_bin_count = request.profile.window_size // 2
    if request.profile.frequency_bin_cutoff > frequency_bin_count:
        raise FrequencyOutOfRangeError(
            f"frequency_bin_cutoff ({request.profile.frequency_bin_cutoff}) must be <= "
            f"frequency bin count ({frequency_bin_count}) for window_size {request.profile.window_size}"
        )


def column_frame_range(x: int, width: int, frame_start: int, frame_end: int) -> tuple[int, int]:
    """Frames ``[lo, hi)`` pooled into output column ``x``."""
    span = frame_end - frame_start
    lo = frame_start + math.floor(x / width * span)
    hi = frame_start + math.ceil((x + 1) / width * span)
    lo = max(frame_start, min(lo, frame_end - 1))
    hi = max(frame_start, min(hi, frame_end))
    return lo, hi


def row_bin_range(y: int, height: int, frequency_bin_cutoff: int) -> tuple[int, int]:
    """Bins ``[lo, hi)`` pooled into output row ``y`` (row 0 is the highest frequency)."""
    lo = math.floor((height - 1 - y) / height * frequency_bin_cutoff)
    hi = math.ceil((height - y) / height * frequency_bin_cutoff)
    lo = max(0, min(lo, frequency_bin_cutoff - 1))
    hi = max(0, min(hi, frequency_bin_cutoff))
    return lo, hi


def render(
    request: RenderRequest,
    raster: RenderRaster,
    on_progress: ProgressCallback | None = None,
    pause_state: PauseState | None = None,
    cancel_signal: CancelSignal | None = None,
    display_sink: DisplaySink | None = None,
    options: RenderOptions | None = None,
    frame_producer: FrameProducer | None = None,
) -> RenderStatus:
    """Render ``request`` into ``raster`` column by column.

    Cancellation is checked before every column. A cancelled render returns
    ``RenderStatus.CANCELLED`` and leaves the raster partially written;
    errors while computing a column propagate with the raster left as-is.
    """
    validate_request(request, raster)
    options = options or RenderOptions()
    cancel_signal = cancel_signal or CancelSignal()
    profile = request.profile
    cutoff = profile.frequency_bin_cutoff
    width = request.output_width
    height = request.output_height

    total_frames = total_frame_count(request.samples.sample_count, profile.window_size, profile.hop_size)
    frame_start = max(0, min(request.frame_start, total_frames))
    frame_end = max(0, min(request.frame_end, total_frames))
    producer = frame_producer or StftFrameProducer(request.samples, profile)
    row_ranges = [row_bin_range(y, height, cutoff) for y in range(height)]
    black = np.zeros(height, dtype=np.uint8)

    estimator = ProgressEstimator(width)
    flusher = _Flusher(raster, display_sink, options)
    logger.debug(
        "render start: frames=[%d, %d) total=%d size=%dx%d cutoff=%d",
        frame_start,
        frame_end,
        total_frames,
        width,
        height,
        cutoff,
    )
    _emit(on_progress, estimator.update(0))

    for x in range(width):
        if not wait_while_paused(pause_state, cancel_signal, options.pause_poll_interval_sec):
            logger.info("render cancelled after %d/%d columns (%.1f ms)", x, width, estimator.elapsed_ms)
            return RenderStatus.CANCELLED

        if frame_end > frame_start:
            lo, hi = column_frame_range(x, width, frame_start, frame_end)
        else:
            lo = hi = frame_start
        column = _pool_frames(producer, lo, hi, cutoff, options.frame_batch_size)
        if column is None:
            raster.write_column(x, black)
        else:
            raster.write_column(x, _pool_rows(column, row_ranges, options.clamp_intensity))

        flusher.column_done()
        _emit(on_progress, estimator.update(x + 1))

    if cancel_signal.cancelled:
        # 最終列の処理中に要求されたキャンセル。列は書き終えているが完了通知は出さない。
        logger.info("render cancelled after %d/%d columns (%.1f ms)", width, width, estimator.elapsed_ms)
        return RenderStatus.CANCELLED

    flusher.flush()
    _emit(on_progress, estimator.finish())
    logger.info("render completed: %dx%d in %.1f ms", width, height, estimator.elapsed_ms)
    return RenderStatus.COMPLETED


def _pool_frames(
    producer: FrameProducer,
    lo: int,
    hi: int,
    cutoff: int,
    batch_size: int,
) -> np.ndarray | None:
    if hi <= lo:
        return None
    batch = max(1, int(batch_size))
    pooled: np.ndarray | None = None
    for chunk_start in range(lo, hi, batch):
        indices = np.arange(chunk_start, min(hi, chunk_start + batch), dtype=np.int64)
        mags = np.asarray(producer.magnitudes(indices), dtype=np.float32)
        if mags.shape != (indices.size, cutoff):
            raise ValueError(f"frame producer returned shape {mags.shape}, expected {(indices.size, cutoff)}")
        chunk_max = np.max(mags, axis=0)
        pooled = chunk_max if pooled is None else np.maximum(pooled, chunk_max)
    return pooled


def _pool_rows(column: np.ndarray, row_ranges: list[tuple[int, int]], clamp: bool) -> np.ndarray:
    values = np.zeros(len(row_ranges), dtype=np.float64)
    for y, (lo, hi) in enumerate(row_ranges):
        if hi > lo:
            values[y] = max(0.0, float(np.max(column[lo:hi])))
    levels = np.floor(values * 255.0)
    if clamp:
        return np.clip(levels, 0, 255).astype(np.uint8)
    # 上限なしの書き込みは 1 byte に切り詰められる
    return (levels.astype(np.int64) % 256).astype(np.uint8)


def _emit(on_progress: ProgressCallback | None, sample: ProgressSample | None) -> None:
    if on_progress is not None and sample is not None:
        on_progress(sample)


class _Flusher:
    def __init__(self, raster: RenderRaster, sink: DisplaySink | None, options: RenderOptions) -> None:
        self._raster = raster
        self._sink = sink
        self._every = max(0, int(options.flush_every_columns))
        self._interval = options.flush_interval_sec
        self._pending = 0
        self._last_flush = time.monotonic()

    def column_done(self) -> None:
        if self._sink is None:
            return
        self._pending += 1
        due = self._every > 0 and self._pending >= self._every
        if not due and self._interval is not None:
            due = time.monotonic() - self._last_flush >= self._interval
        if due:
            self.flush()

    def flush(self) -> None:
        if self._sink is None:
            return
        self._sink(self._raster)
        self._pending = 0
        self._last_flush = time.monotonic()
