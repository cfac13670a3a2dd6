from __future__ import annotations

import math
from typing import Literal

from specscope.models import AnalysisProfile

AudioProfileMode = Literal["high-precision", "medium-precision", "low-precision"]

# 音声解析向けの既定値（電話品質 0-3400 Hz を少し上回る程度）
DEFAULT_MAX_FREQUENCY_HZ = 3500
DEFAULT_MAX_HEIGHT_PX = 250

_PROFILES: dict[str, AnalysisProfile] = {
    "high-precision": AnalysisProfile(sample_rate=44100, window_size=8192, hop_size=512, frequency_bin_cutoff=1000),
    "medium-precision": AnalysisProfile(sample_rate=32000, window_size=4096, hop_size=512, frequency_bin_cutoff=1000),
    "low-precision": AnalysisProfile(sample_rate=16000, window_size=2048, hop_size=256, frequency_bin_cutoff=1024),
}


def get_audio_profile(mode: str) -> AnalysisProfile:
    profile = _PROFILES.get(mode)
    if profile is None:
        raise ValueError(f"Unsupported mode: {mode}")
    return profile


def list_profile_modes() -> list[str]:
    return list(_PROFILES)


def hz_to_bins(freq_hz: float, profile: AnalysisProfile) -> int:
    """Convert a cutoff in Hz to a bin count for ``profile`` (at least one bin)."""
    if not math.isfinite(freq_hz) or freq_hz <= 0.0:
        raise ValueError(f"frequency must be a positive number: {freq_hz}")
    return max(1, int(math.floor(freq_hz / profile.bin_width_hz)))


def bins_to_hz(bins: int, profile: AnalysisProfile) -> float:
    return float(bins) * profile.bin_width_hz
