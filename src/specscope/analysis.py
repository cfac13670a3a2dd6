from __future__ import annotations

from collections.abc import Sequence
from functools import lru_cache

import numpy as np
from scipy.signal import get_window

from specscope.models import AnalysisProfile, SampleBuffer

LOG_255 = float(np.log1p(255.0))


def total_frame_count(sample_count: int, window_size: int, hop_size: int) -> int:
    if window_size <= 0 or hop_size <= 0 or sample_count < window_size:
        return 0
    return (sample_count - window_size) // hop_size + 1


def frame_sample_start(frame_index: int, hop_size: int) -> int:
    return int(frame_index) * int(hop_size)


def compute_frame_magnitudes(
    samples: np.ndarray,
    frame_sample_start: int,
    window_size: int,
    frequency_bin_cutoff: int,
) -> np.ndarray:
    """Log-compressed magnitude spectrum of one STFT frame.

    The window is shifted (not zero-padded) to stay inside the buffer, so a
    frame at either edge still sees ``window_size`` real samples. Only a
    buffer shorter than one window is padded with trailing zeros.
    """
    source = _as_mono(samples)
    start = _clamp_frame_starts(np.array([frame_sample_start], dtype=np.int64), window_size, source.size)
    return _log_magnitudes(source, start, window_size, frequency_bin_cutoff)[0]


def compute_frames_magnitudes(
    samples: np.ndarray,
    frame_indices: Sequence[int] | np.ndarray,
    hop_size: int,
    window_size: int,
    frequency_bin_cutoff: int,
) -> np.ndarray:
    """Batched :func:`compute_frame_magnitudes`; returns ``(len(frame_indices), cutoff)``."""
    source = _as_mono(samples)
    indices = np.asarray(frame_indices, dtype=np.int64)
    if indices.size == 0:
        return np.zeros((0, frequency_bin_cutoff), dtype=np.float32)
    starts = _clamp_frame_starts(indices * np.int64(hop_size), window_size, source.size)
    return _log_magnitudes(source, starts, window_size, frequency_bin_cutoff)


def compute_spectrogram(samples: np.ndarray, window_size: int, hop_size: int | None = None) -> np.ndarray:
    """Full ``(frames, window_size // 2)`` log1p spectrogram.

    Materializes every frame, so this is meant for short clips and tests.
    """
    stride = window_size // 2 if hop_size is None else hop_size
    source = _as_mono(samples)
    count = total_frame_count(source.size, window_size, stride)
    if count == 0:
        return np.zeros((0, window_size // 2), dtype=np.float32)
    frames = _frame_matrix(source, np.arange(count, dtype=np.int64) * stride, window_size)
    spectra = np.fft.rfft(frames * hamming_window(window_size)[None, :], axis=1)
    magnitude = np.abs(spectra[:, : window_size // 2])
    return np.log1p(magnitude).astype(np.float32)


@lru_cache(maxsize=8)
def hamming_window(window_size: int) -> np.ndarray:
    # 周期版 Hamming 窓（FFT 用）
    window = np.asarray(get_window("hamming", window_size, fftbins=True), dtype=np.float64)
    window.setflags(write=False)
    return window


class StftFrameProducer:
    """Computes per-frame magnitudes for one sample buffer and profile."""

    def __init__(self, samples: SampleBuffer | np.ndarray, profile: AnalysisProfile) -> None:
        data = samples.samples if isinstance(samples, SampleBuffer) else samples
        self._samples = _as_mono(data)
        self._window_size = profile.window_size
        self._hop_size = profile.hop_size
        self._cutoff = profile.frequency_bin_cutoff

    @property
    def frame_count(self) -> int:
        return total_frame_count(self._samples.size, self._window_size, self._hop_size)

    def magnitudes(self, frame_indices: np.ndarray) -> np.ndarray:
        return compute_frames_magnitudes(
            self._samples,
            frame_indices,
            hop_size=self._hop_size,
            window_size=self._window_size,
            frequency_bin_cutoff=self._cutoff,
        )


def _as_mono(samples: np.ndarray) -> np.ndarray:
    source = np.asarray(samples)
    if source.ndim != 1:
        raise ValueError(f"samples must be mono (1-D), got shape {source.shape}")
    return source


def _clamp_frame_starts(starts: np.ndarray, window_size: int, sample_count: int) -> np.ndarray:
    starts = np.minimum(starts, np.int64(sample_count - window_size))
    return np.maximum(starts, 0)


def _frame_matrix(source: np.ndarray, starts: np.ndarray, window_size: int) -> np.ndarray:
    padded = source.astype(np.float64, copy=False)
    if padded.size < window_size:
        padded = np.pad(padded, (0, window_size - padded.size), mode="constant")
    frame_indices = starts[:, None] + np.arange(window_size, dtype=np.int64)[None, :]
    return padded[frame_indices]


def _log_magnitudes(
    source: np.ndarray,
    starts: np.ndarray,
    window_size: int,
    frequency_bin_cutoff: int,
) -> np.ndarray:
    frames = _frame_matrix(source, starts, window_size)
    spectra = np.fft.rfft(frames * hamming_window(window_size)[None, :], axis=1)
    magnitude = np.abs(spectra[:, : min(frequency_bin_cutoff, window_size // 2)])
    return (np.log1p(magnitude) / LOG_255).astype(np.float32)
