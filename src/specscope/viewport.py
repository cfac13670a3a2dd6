"""Zoom/pan coordinate algebra.

Three coordinate spaces are involved: timeline pixels (the full, unclamped
canvas at the current zoom), STFT frame indices, and seconds. Zoom is either
expressed as pixels per frame or as the number of visible seconds in the
viewport; both forms convert into each other exactly.

All functions are pure. Divisions by a zero-length timeline return a defined
default (offset 0, ratio 0) instead of raising.
"""

from __future__ import annotations

import math
from dataclasses import replace

from specscope.analysis import total_frame_count
from specscope.models import AnalysisProfile, FrequencyBand, RenderRequest, SampleBuffer, TimeSpan, ViewportState


def pixels_per_frame(visible_seconds: float, viewport_pixel_width: float, hop_size: int, sample_rate: int) -> float:
    denom = visible_seconds * sample_rate
    if denom <= 0.0:
        return 0.0
    return (viewport_pixel_width * hop_size) / denom


def visible_seconds(pixels_per_frame: float, viewport_pixel_width: float, hop_size: int, sample_rate: int) -> float:
    denom = pixels_per_frame * sample_rate
    if denom <= 0.0:
        return math.inf
    return (viewport_pixel_width * hop_size) / denom


def default_pixels_per_frame(frame_count: int, viewport_pixel_width: float) -> float:
    """Zoom that fits every frame into the viewport."""
    if frame_count <= 0:
        return 1.0
    return viewport_pixel_width / frame_count


def total_timeline_pixels(total_frame_count: int, pixels_per_frame: float) -> int:
    if total_frame_count <= 0 or pixels_per_frame <= 0.0:
        return 0
    return int(math.ceil(total_frame_count * pixels_per_frame))


def max_pixel_offset(total_frame_count: int, pixels_per_frame: float, viewport_pixel_width: float) -> float:
    return max(0.0, total_timeline_pixels(total_frame_count, pixels_per_frame) - viewport_pixel_width)


def clamp_pixel_offset(
    pixel_offset: float,
    total_frame_count: int,
    pixels_per_frame: float,
    viewport_pixel_width: float,
) -> float:
    upper = max_pixel_offset(total_frame_count, pixels_per_frame, viewport_pixel_width)
    if not math.isfinite(pixel_offset):
        return 0.0
    return min(max(0.0, pixel_offset), upper)


def time_at_pixel(
    timeline_pixel: float,
    total_frame_count: int,
    pixels_per_frame: float,
    audio_duration_seconds: float,
) -> float:
    timeline = total_frame_count * pixels_per_frame
    if timeline <= 0.0:
        return 0.0
    return timeline_pixel / timeline * audio_duration_seconds


def pixel_offset_for_time(
    time_sec: float,
    total_frame_count: int,
    pixels_per_frame: float,
    audio_duration_seconds: float,
) -> float:
    if audio_duration_seconds <= 0.0:
        return 0.0
    return time_sec / audio_duration_seconds * (total_frame_count * pixels_per_frame)


def frame_range_for_window(
    visible_seconds: float,
    pixel_offset: float,
    total_frame_count: int,
    audio_duration_seconds: float,
    sample_rate: int,
    hop_size: int,
    viewport_pixel_width: float,
) -> tuple[int, int]:
    """Frames ``[start, end)`` covered by the viewport.

    A window at least as wide as the clip selects every frame. Otherwise the
    range is never empty while frames exist.
    """
    if total_frame_count <= 0:
        return 0, 0
    if visible_seconds >= audio_duration_seconds:
        return 0, total_frame_count

    ppf = pixels_per_frame(visible_seconds, viewport_pixel_width, hop_size, sample_rate)
    timeline = total_frame_count * ppf
    start_ratio = pixel_offset / timeline if timeline > 0.0 else 0.0
    start_sec = start_ratio * audio_duration_seconds
    end_sec = start_sec + visible_seconds

    start = int(math.floor(start_sec * sample_rate / hop_size))
    end = int(math.ceil(end_sec * sample_rate / hop_size))
    start = max(0, min(start, total_frame_count - 1))
    end = max(0, min(end, total_frame_count))
    if end <= start:
        end = min(total_frame_count, start + 1)
    return start, end


def recenter_offset_on_zoom_change(
    old_offset: float,
    old_pixels_per_frame: float,
    new_pixels_per_frame: float,
    viewport_pixel_width: float,
    total_frame_count: int,
) -> float:
    """Offset that keeps the time under the viewport center fixed across a zoom change."""
    old_timeline = total_frame_count * old_pixels_per_frame
    if old_timeline <= 0.0:
        return 0.0
    center_fraction = (old_offset + viewport_pixel_width / 2.0) / old_timeline
    new_timeline = total_frame_count * new_pixels_per_frame
    new_offset = center_fraction * new_timeline - viewport_pixel_width / 2.0
    return clamp_pixel_offset(new_offset, total_frame_count, new_pixels_per_frame, viewport_pixel_width)


def zoom_viewport(
    state: ViewportState,
    new_visible_seconds: float,
    total_frame_count: int,
    hop_size: int,
    sample_rate: int,
) -> ViewportState:
    if new_visible_seconds <= 0.0:
        raise ValueError(f"visible seconds must be positive: {new_visible_seconds}")
    width = state.viewport_pixel_width
    old_ppf = pixels_per_frame(state.zoom_seconds, width, hop_size, sample_rate)
    new_ppf = pixels_per_frame(new_visible_seconds, width, hop_size, sample_rate)
    offset = recenter_offset_on_zoom_change(state.pixel_offset, old_ppf, new_ppf, width, total_frame_count)
    return replace(state, zoom_seconds=float(new_visible_seconds), pixel_offset=offset)


def pan_viewport(
    state: ViewportState,
    delta_pixels: float,
    total_frame_count: int,
    hop_size: int,
    sample_rate: int,
) -> ViewportState:
    ppf = pixels_per_frame(state.zoom_seconds, state.viewport_pixel_width, hop_size, sample_rate)
    offset = clamp_pixel_offset(
        state.pixel_offset + delta_pixels,
        total_frame_count,
        ppf,
        state.viewport_pixel_width,
    )
    return replace(state, pixel_offset=offset)


def pixel_to_timestamp(
    x: float,
    raster_width: int,
    frame_start: int,
    frame_end: int,
    hop_size: int,
    sample_rate: int,
) -> TimeSpan:
    """Time span under raster column ``x`` for the frames actually rendered."""
    span = frame_end - frame_start
    if raster_width <= 0 or span <= 0 or sample_rate <= 0:
        at = frame_start * hop_size / float(sample_rate) if sample_rate > 0 else 0.0
        return TimeSpan(start_sec=at, end_sec=at)
    column = min(max(0.0, float(x)), float(raster_width))
    frame_lo = frame_start + column / raster_width * span
    frame_hi = frame_start + min(column + 1.0, float(raster_width)) / raster_width * span
    seconds_per_frame = hop_size / float(sample_rate)
    return TimeSpan(start_sec=frame_lo * seconds_per_frame, end_sec=frame_hi * seconds_per_frame)


def pixel_to_frequency_band(
    y: float,
    raster_height: int,
    frequency_bin_cutoff: int,
    sample_rate: int,
    window_size: int,
) -> FrequencyBand:
    """Frequency band under raster row ``y`` (row 0 is the top, highest band)."""
    if raster_height <= 0 or window_size <= 0:
        return FrequencyBand(start_hz=0.0, end_hz=0.0)
    row = min(max(0.0, float(y)), float(raster_height - 1))
    bin_width = sample_rate / float(window_size)
    bin_lo = (raster_height - 1 - row) / raster_height * frequency_bin_cutoff
    bin_hi = (raster_height - row) / raster_height * frequency_bin_cutoff
    return FrequencyBand(start_hz=bin_lo * bin_width, end_hz=bin_hi * bin_width)


def request_for_viewport(
    samples: SampleBuffer,
    profile: AnalysisProfile,
    state: ViewportState,
    output_height: int,
    output_width: int | None = None,
) -> RenderRequest:
    """Render request for the frames currently visible in ``state``."""
    total = total_frame_count(samples.sample_count, profile.window_size, profile.hop_size)
    start, end = frame_range_for_window(
        state.zoom_seconds,
        state.pixel_offset,
        total,
        samples.duration_sec,
        samples.sample_rate,
        profile.hop_size,
        state.viewport_pixel_width,
    )
    if end <= start:
        # フレームが無い音声でも 1 フレーム分を要求し、レンダラ側で黒画像にする
        end = start + 1
    return RenderRequest(
        samples=samples,
        profile=profile,
        frame_start=start,
        frame_end=end,
        output_width=output_width if output_width is not None else state.viewport_pixel_width,
        output_height=output_height,
    )


def cursor_readout(request: RenderRequest, x: float, y: float) -> tuple[TimeSpan, FrequencyBand]:
    """Time span and frequency band under raster pixel ``(x, y)`` of a rendered request."""
    profile = request.profile
    span = pixel_to_timestamp(
        x,
        request.output_width,
        request.frame_start,
        request.frame_end,
        profile.hop_size,
        profile.sample_rate,
    )
    band = pixel_to_frequency_band(
        y,
        request.output_height,
        profile.frequency_bin_cutoff,
        profile.sample_rate,
        profile.window_size,
    )
    return span, band
