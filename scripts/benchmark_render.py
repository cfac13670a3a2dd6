from __future__ import annotations

import json
import time
from datetime import UTC, datetime
from pathlib import Path

import numpy as np

from specscope.analysis import total_frame_count
from specscope.models import RenderRaster, RenderRequest, SampleBuffer
from specscope.profiles import get_audio_profile
from specscope.renderer import render
from specscope.viewport import frame_range_for_window, pixel_offset_for_time, pixels_per_frame


def main() -> None:
    profile = get_audio_profile("low-precision")
    sample_rate = profile.sample_rate
    duration_sec = 600.0
    samples = int(sample_rate * duration_sec)
    t = np.arange(samples, dtype=np.float64) / float(sample_rate)
    audio = (0.2 * np.sin(2.0 * np.pi * 220.0 * t) + 0.1 * np.sin(2.0 * np.pi * 880.0 * t)).astype(np.float32)
    buffer = SampleBuffer(samples=audio, sample_rate=sample_rate)
    total_frames = total_frame_count(buffer.sample_count, profile.window_size, profile.hop_size)

    width = 1024
    height = 250
    iterations = 10
    warmup = 2
    visible_sec = 30.0
    ppf = pixels_per_frame(visible_sec, width, profile.hop_size, sample_rate)
    times_ms: list[float] = []
    for index in range(warmup + iterations):
        offset = pixel_offset_for_time((index % 10) * 45.0, total_frames, ppf, buffer.duration_sec)
        frame_start, frame_end = frame_range_for_window(
            visible_sec,
            offset,
            total_frames,
            buffer.duration_sec,
            sample_rate,
            profile.hop_size,
            width,
        )
        request = RenderRequest(
            samples=buffer,
            profile=profile,
            frame_start=frame_start,
            frame_end=frame_end,
            output_width=width,
            output_height=height,
        )
        t0 = time.perf_counter()
        render(request, RenderRaster(width, height))
        elapsed_ms = (time.perf_counter() - t0) * 1000.0
        if index >= warmup:
            times_ms.append(elapsed_ms)

    arr = np.asarray(times_ms, dtype=np.float64)
    payload = {
        "captured_at": datetime.now(UTC).isoformat(),
        "profile": profile.to_dict(),
        "duration_sec": duration_sec,
        "visible_sec": visible_sec,
        "iterations": iterations,
        "timings_ms": [round(float(v), 4) for v in times_ms],
        "stats_ms": {
            "min": float(np.min(arr)),
            "max": float(np.max(arr)),
            "mean": float(np.mean(arr)),
            "p95": float(np.percentile(arr, 95.0)),
        },
    }
    out_dir = Path("logs/benchmarks")
    out_dir.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    out_file = out_dir / f"render-{stamp}.json"
    latest_file = out_dir / "render-latest.json"
    out_file.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
    latest_file.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
    print(out_file)


if __name__ == "__main__":
    main()
