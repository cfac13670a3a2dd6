from __future__ import annotations

import argparse
import logging
from pathlib import Path

from specscope.api_schema import CursorPayload, RenderSettingsPayload, ViewportPayload, parse_payload
from specscope.audio_utils import load_audio
from specscope.image_export import FileDisplaySink
from specscope.logging_utils import configure_logging
from specscope.models import ProgressSample, RenderRaster, RenderStatus
from specscope.profiles import DEFAULT_MAX_FREQUENCY_HZ, DEFAULT_MAX_HEIGHT_PX, list_profile_modes
from specscope.progress import describe_progress
from specscope.session import RenderController
from specscope.viewport import cursor_readout, request_for_viewport

logger = logging.getLogger("specscope.render_file")


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Render a WAV file's spectrogram to an image.")
    parser.add_argument("audio", type=Path, help="input WAV file")
    parser.add_argument("--output", type=Path, default=Path("spectrogram.png"), help="output image")
    parser.add_argument("--mode", choices=list_profile_modes(), default="low-precision")
    parser.add_argument("--max-frequency-hz", type=float, default=float(DEFAULT_MAX_FREQUENCY_HZ))
    parser.add_argument("--width", type=int, default=2000)
    parser.add_argument("--height", type=int, default=DEFAULT_MAX_HEIGHT_PX)
    parser.add_argument("--visible-seconds", type=float, default=None, help="zoom window (default: whole file)")
    parser.add_argument("--pixel-offset", type=float, default=0.0)
    parser.add_argument("--colormap", action="store_true")
    parser.add_argument("--cursor", type=str, default=None, help="log time/frequency under pixel \"x,y\"")
    return parser.parse_args()


def main() -> int:
    args = _parse_args()
    configure_logging()
    parsed, error = parse_payload(
        RenderSettingsPayload,
        {
            "mode": args.mode,
            "max_frequency_hz": args.max_frequency_hz,
            "width": args.width,
            "height": args.height,
            "visible_seconds": args.visible_seconds,
            "pixel_offset": args.pixel_offset,
        },
    )
    if error or not isinstance(parsed, RenderSettingsPayload):
        logger.error("%s", error)
        return 2

    profile = parsed.resolve_profile()
    info, buffer = load_audio(args.audio, profile)
    logger.info(
        "audio: %s duration=%.2fs sample_rate=%d frames=%d cutoff=%d bins",
        info.name,
        info.duration_sec,
        info.sample_rate,
        info.frame_count,
        profile.frequency_bin_cutoff,
    )
    visible = parsed.visible_seconds if parsed.visible_seconds is not None else info.duration_sec
    viewport, error = parse_payload(
        ViewportPayload,
        {"visible_seconds": visible, "pixel_offset": parsed.pixel_offset, "viewport_pixel_width": parsed.width},
    )
    if error or not isinstance(viewport, ViewportPayload):
        logger.error("%s", error)
        return 2
    cursor: CursorPayload | None = None
    if args.cursor is not None:
        cursor, error = _parse_cursor(args.cursor)
        if cursor is None:
            logger.error("%s", error)
            return 2
    request = request_for_viewport(buffer, profile, viewport.to_state(), output_height=parsed.height)

    def on_progress(sample: ProgressSample) -> None:
        logger.info("%s", describe_progress(sample))

    controller = RenderController(on_progress=on_progress, display_sink=FileDisplaySink(args.output, args.colormap))
    session = controller.start(request, RenderRaster(request.output_width, request.output_height))
    try:
        status = session.result()
    except KeyboardInterrupt:
        controller.shutdown()
        return 130
    logger.info("render %s: %s", status, args.output)
    if cursor is not None:
        span, band = cursor_readout(request, cursor.x, cursor.y)
        logger.info(
            "cursor (%g, %g): %.3f-%.3f s, %.1f-%.1f Hz",
            cursor.x,
            cursor.y,
            span.start_sec,
            span.end_sec,
            band.start_hz,
            band.end_hz,
        )
    return 0 if status is RenderStatus.COMPLETED else 1


def _parse_cursor(text: str) -> tuple[CursorPayload | None, str | None]:
    parts = text.split(",")
    if len(parts) != 2:
        return None, f"Invalid cursor: expected \"x,y\", got {text!r}"
    try:
        x, y = (float(part) for part in parts)
    except ValueError:
        return None, f"Invalid cursor: expected numbers, got {text!r}"
    parsed, error = parse_payload(CursorPayload, {"x": x, "y": y})
    if not isinstance(parsed, CursorPayload):
        return None, error
    return parsed, None


if __name__ == "__main__":
    raise SystemExit(main())
