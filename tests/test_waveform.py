import math

import numpy as np

from specscope.models import WaveformBucket
from specscope.waveform import calculate_waveform_data, rendered_window_overlay


def test_buckets_summarize_contiguous_runs() -> None:
    buckets = calculate_waveform_data(np.array([0.0, 1.0, -1.0, 0.5]), 2)
    assert len(buckets) == 2
    assert (buckets[0].min, buckets[0].max) == (0.0, 1.0)
    assert math.isclose(buckets[0].rms, math.sqrt(0.5))
    assert (buckets[1].min, buckets[1].max) == (-1.0, 0.5)
    assert math.isclose(buckets[1].rms, math.sqrt((1.0 + 0.25) / 2))


def test_remainder_samples_are_ignored() -> None:
    buckets = calculate_waveform_data(np.array([0.1, 0.2, 0.3, 0.4, 0.9]), 2)
    assert [bucket.max for bucket in buckets] == [0.2, 0.4]


def test_pixels_past_the_audio_are_empty() -> None:
    buckets = calculate_waveform_data(np.array([0.5, -0.5]), 4)
    assert len(buckets) == 4
    assert buckets[2] == WaveformBucket(min=0.0, max=0.0, rms=0.0)
    assert buckets[3].to_dict() == {"min": 0.0, "max": 0.0, "rms": 0.0}


def test_non_positive_width() -> None:
    assert calculate_waveform_data(np.ones(10), 0) == []


def test_overlay_tracks_rendered_frames() -> None:
    assert rendered_window_overlay(25, 50, 100, 200) == (50, 100)
    assert rendered_window_overlay(0, 100, 100, 200) == (0, 200)
    assert rendered_window_overlay(99, 100, 100, 10) == (9, 10)
    assert rendered_window_overlay(40, 400, 100, 10) == (4, 10)
    assert rendered_window_overlay(55, 55, 100, 10) == (5, 5)
    assert rendered_window_overlay(0, 10, 0, 10) == (0, 0)
