from __future__ import annotations

import io
import logging
import os
from pathlib import Path
from typing import cast

import numpy as np
from PIL import Image

from specscope.models import RenderRaster

logger = logging.getLogger(__name__)

_MAGMA_LIKE_STOPS = np.asarray(
    [
        [0, 0, 4],
        [50, 18, 91],
        [121, 40, 130],
        [189, 55, 84],
        [249, 142, 8],
        [252, 253, 191],
    ],
    dtype=np.float32,
)


def raster_to_image(raster: RenderRaster, colormap: bool = False) -> Image.Image:
    if raster.width <= 0 or raster.height <= 0:
        raise ValueError("invalid raster dimensions")
    if colormap:
        rgb = apply_magma_like_colormap(raster.pixels[:, :, 0])
        alpha = raster.pixels[:, :, 3:4]
        return Image.fromarray(np.concatenate([rgb, alpha], axis=2))
    return Image.fromarray(raster.pixels)


def encode_raster(raster: RenderRaster, image_format: str = "PNG", colormap: bool = False) -> bytes:
    image = raster_to_image(raster, colormap=colormap)
    buffer = io.BytesIO()
    if image_format.upper() in {"JPEG", "JPG"}:
        image.convert("RGB").save(buffer, format="JPEG", quality=82, optimize=True)
    else:
        image.save(buffer, format=image_format.upper())
    return buffer.getvalue()


def apply_magma_like_colormap(levels: np.ndarray) -> np.ndarray:
    stops = _MAGMA_LIKE_STOPS
    t = (levels.astype(np.float32) / 255.0) * float(stops.shape[0] - 1)
    idx = np.floor(t).astype(np.int32)
    idx = np.clip(idx, 0, stops.shape[0] - 1)
    frac = (t - idx.astype(np.float32))[..., None]
    next_idx = np.minimum(idx + 1, stops.shape[0] - 1)
    start = stops[idx]
    end = stops[next_idx]
    rgb = np.rint(start + (end - start) * frac).astype(np.uint8)
    return cast(np.ndarray, rgb)


class FileDisplaySink:
    """Display sink that snapshots the raster to an image file on every flush."""

    def __init__(self, path: Path, colormap: bool = False) -> None:
        self.path = path
        self.colormap = colormap
        self.flush_count = 0

    def __call__(self, raster: RenderRaster) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        image_format = "JPEG" if self.path.suffix.lower() in {".jpg", ".jpeg"} else "PNG"
        data = encode_raster(raster, image_format=image_format, colormap=self.colormap)
        # 読み手が書きかけのファイルを見ないよう、一時ファイル経由で置き換える
        tmp_path = self.path.with_name(f".{self.path.name}.tmp")
        tmp_path.write_bytes(data)
        os.replace(tmp_path, self.path)
        self.flush_count += 1
        logger.debug("raster flushed to %s (%d)", self.path, self.flush_count)
