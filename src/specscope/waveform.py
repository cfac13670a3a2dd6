from __future__ import annotations

import math

import numpy as np

from specscope.models import WaveformBucket


def calculate_waveform_data(samples: np.ndarray, width: int) -> list[WaveformBucket]:
    """Per-pixel min/max/RMS over contiguous runs of ``floor(n / width)`` samples."""
    audio = np.asarray(samples, dtype=np.float64)
    if width <= 0:
        return []
    samples_per_pixel = max(1, audio.size // width)
    buckets: list[WaveformBucket] = []
    for x in range(width):
        start = x * samples_per_pixel
        if start >= audio.size:
            buckets.append(WaveformBucket(min=0.0, max=0.0, rms=0.0))
            continue
        chunk = audio[start : min(start + samples_per_pixel, audio.size)]
        buckets.append(
            WaveformBucket(
                min=float(np.min(chunk)),
                max=float(np.max(chunk)),
                rms=float(np.sqrt(np.mean(chunk * chunk))),
            )
        )
    return buckets


def rendered_window_overlay(
    frame_start: int,
    frame_end: int,
    total_frame_count: int,
    preview_width: int,
) -> tuple[int, int]:
    """Waveform-preview pixel span ``[x0, x1)`` covered by the rendered frames."""
    if total_frame_count <= 0 or preview_width <= 0:
        return 0, 0
    start = max(0, min(frame_start, total_frame_count))
    end = max(start, min(frame_end, total_frame_count))
    x0 = int(math.floor(start / total_frame_count * preview_width))
    if end == start:
        return x0, x0
    x1 = int(math.ceil(end / total_frame_count * preview_width))
    x1 = max(x1, x0 + 1)
    return min(x0, preview_width), min(x1, preview_width)
