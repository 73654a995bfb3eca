"""Shared plumbing for the standalone step runners."""
from __future__ import annotations

from pathlib import Path
from typing import Callable, Dict
import logging
import time

from docnorm import vision
from docnorm.normalization.raster import RasterImage, encode_image, load_image
from docnorm.normalization.steps import StepResult

LOGGER = logging.getLogger(__name__)


def run_step(
    name: str,
    payload: Dict[str, object],
    apply: Callable[[RasterImage, Dict[str, object]], StepResult],
) -> Dict[str, object]:
    image_path_raw = payload.get("image_path")
    if not image_path_raw:
        raise ValueError("payload must include 'image_path'")
    params = payload.get("params") or {}
    image_path = Path(str(image_path_raw))
    output_dir = Path(payload.get("output_dir") or image_path.parent)
    output_dir.mkdir(parents=True, exist_ok=True)

    vision.ensure_ready_blocking(float(payload.get("init_timeout", vision.DEFAULT_INIT_TIMEOUT)))
    image = load_image(image_path)
    start = time.perf_counter()
    result = apply(image, params)
    elapsed = time.perf_counter() - start

    output_path = output_dir / f"{image_path.stem}__{name}.png"
    output_path.write_bytes(encode_image(result.image, "image/png"))

    LOGGER.info(
        "%s applied=%s elapsed=%.2fs output=%s warning=%s",
        name,
        result.applied,
        elapsed,
        output_path,
        result.warning,
    )
    return {
        "step": name,
        "applied": bool(result.applied),
        "warning": result.warning,
        "details": dict(result.details),
        "elapsed_seconds": elapsed,
        "output_path": str(output_path),
        "width": result.image.width,
        "height": result.image.height,
    }
