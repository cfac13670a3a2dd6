from __future__ import annotations

from pathlib import Path

import numpy as np
from scipy.io import wavfile
from scipy.signal import resample_poly

from specscope.analysis import total_frame_count
from specscope.models import AnalysisProfile, AudioInfo, SampleBuffer


def load_audio(path: Path, profile: AnalysisProfile | None = None) -> tuple[AudioInfo, SampleBuffer]:
    """Read a WAV file as mono float32, resampled to ``profile.sample_rate`` when given."""
    source_rate, raw = wavfile.read(path)
    channels = 1 if raw.ndim == 1 else int(raw.shape[1])
    audio = to_mono(_to_float32(raw))
    sample_rate = int(source_rate)
    if profile is not None and profile.sample_rate != sample_rate:
        audio = resample_audio(audio, sample_rate, profile.sample_rate)
        sample_rate = profile.sample_rate

    buffer = SampleBuffer(samples=audio, sample_rate=sample_rate)
    frames = total_frame_count(buffer.sample_count, profile.window_size, profile.hop_size) if profile else 0
    info = AudioInfo(
        path=str(path),
        name=path.name,
        sample_rate=sample_rate,
        source_sample_rate=int(source_rate),
        duration_sec=buffer.duration_sec,
        channels=channels,
        frame_count=frames,
    )
    return info, buffer


def to_mono(audio: np.ndarray) -> np.ndarray:
    """Average all channels of a ``(samples, channels)`` buffer."""
    data = np.asarray(audio, dtype=np.float32)
    if data.ndim == 1:
        return data
    return data.mean(axis=1).astype(np.float32)


def resample_audio(audio: np.ndarray, sample_rate: int, target_rate: int) -> np.ndarray:
    if target_rate == sample_rate:
        return np.asarray(audio, dtype=np.float32)
    gcd = int(np.gcd(sample_rate, target_rate))
    up = target_rate // gcd
    down = sample_rate // gcd
    return resample_poly(audio, up, down).astype(np.float32)


def _to_float32(audio: np.ndarray) -> np.ndarray:
    if np.issubdtype(audio.dtype, np.floating):
        return audio.astype(np.float32)

    if audio.dtype == np.uint8:
        # 8-bit WAV は符号なし（中心 128）
        return ((audio.astype(np.float32) - 128.0) / 128.0).clip(-1.0, 1.0)

    if np.issubdtype(audio.dtype, np.integer):
        info = np.iinfo(audio.dtype)
        return (audio.astype(np.float32) / float(info.max)).clip(-1.0, 1.0)

    return audio.astype(np.float32)
