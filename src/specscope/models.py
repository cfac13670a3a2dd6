from __future__ import annotations

import threading
from dataclasses import asdict, dataclass, field
from enum import StrEnum
from typing import Any

import numpy as np


@dataclass(frozen=True)
class SampleBuffer:
    samples: np.ndarray
    sample_rate: int

    def __post_init__(self) -> None:
        if int(self.sample_rate) <= 0:
            raise ValueError(f"sample_rate must be positive: {self.sample_rate}")
        data = np.asarray(self.samples, dtype=np.float32)
        if data.ndim != 1:
            raise ValueError(f"samples must be mono (1-D), got shape {data.shape}")
        if data is self.samples:
            data = data.copy()
        data.setflags(write=False)
        object.__setattr__(self, "samples", data)
        object.__setattr__(self, "sample_rate", int(self.sample_rate))

    @property
    def sample_count(self) -> int:
        return int(self.samples.shape[0])

    @property
    def duration_sec(self) -> float:
        return self.sample_count / float(self.sample_rate)


@dataclass(frozen=True)
class AnalysisProfile:
    sample_rate: int
    window_size: int
    hop_size: int
    frequency_bin_cutoff: int

    def __post_init__(self) -> None:
        if self.sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive: {self.sample_rate}")
        if self.window_size <= 0:
            raise ValueError(f"window_size must be positive: {self.window_size}")
        if not 0 < self.hop_size <= self.window_size:
            raise ValueError(f"hop_size must be in (0, window_size]: {self.hop_size}")
        if self.frequency_bin_cutoff <= 0:
            raise ValueError(f"frequency_bin_cutoff must be positive: {self.frequency_bin_cutoff}")

    @property
    def frequency_bin_count(self) -> int:
        return self.window_size // 2

    @property
    def bin_width_hz(self) -> float:
        return self.sample_rate / float(self.window_size)

    def with_cutoff(self, frequency_bin_cutoff: int) -> AnalysisProfile:
        return AnalysisProfile(
            sample_rate=self.sample_rate,
            window_size=self.window_size,
            hop_size=self.hop_size,
            frequency_bin_cutoff=int(frequency_bin_cutoff),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class RenderRequest:
    samples: SampleBuffer
    profile: AnalysisProfile
    frame_start: int
    frame_end: int
    output_width: int
    output_height: int


@dataclass(frozen=True)
class RenderOptions:
    flush_every_columns: int = 0  # 0 は列数ベースの flush を無効化
    flush_interval_sec: float | None = 0.1
    pause_poll_interval_sec: float = 0.05
    frame_batch_size: int = 256
    clamp_intensity: bool = True


class RenderStatus(StrEnum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class ProgressSample:
    percent: int
    eta_ms: float | None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class PauseState:
    paused: bool = False

    def pause(self) -> None:
        self.paused = True

    def resume(self) -> None:
        self.paused = False


class CancelSignal:
    """Advisory cancellation flag polled by the render loop."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        return self._event.wait(timeout)


class RenderRaster:
    """Caller-owned RGBA pixel buffer of shape (height, width, 4)."""

    def __init__(self, width: int, height: int) -> None:
        self.pixels = np.zeros((max(0, int(height)), max(0, int(width)), 4), dtype=np.uint8)

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    def write_column(self, x: int, intensities: np.ndarray) -> None:
        self.pixels[:, x, 0] = intensities
        self.pixels[:, x, 1] = intensities
        self.pixels[:, x, 2] = intensities
        self.pixels[:, x, 3] = 255

    def gray(self) -> np.ndarray:
        return self.pixels[:, :, 0].copy()

    def clear(self) -> None:
        self.pixels.fill(0)


@dataclass(frozen=True)
class ViewportState:
    zoom_seconds: float
    pixel_offset: float = 0.0
    viewport_pixel_width: int = 0

    def __post_init__(self) -> None:
        if not self.zoom_seconds > 0.0:
            raise ValueError(f"zoom_seconds must be positive: {self.zoom_seconds}")
        if not self.pixel_offset >= 0.0:
            raise ValueError(f"pixel_offset must be non-negative: {self.pixel_offset}")
        if self.viewport_pixel_width < 0:
            raise ValueError(f"viewport_pixel_width must be non-negative: {self.viewport_pixel_width}")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class TimeSpan:
    start_sec: float
    end_sec: float

    @property
    def center_sec(self) -> float:
        return 0.5 * (self.start_sec + self.end_sec)


@dataclass(frozen=True)
class FrequencyBand:
    start_hz: float
    end_hz: float

    @property
    def center_hz(self) -> float:
        return 0.5 * (self.start_hz + self.end_hz)


@dataclass(frozen=True)
class WaveformBucket:
    min: float
    max: float
    rms: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class AudioInfo:
    path: str
    name: str
    sample_rate: int
    source_sample_rate: int
    duration_sec: float
    channels: int
    frame_count: int = field(default=0)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
