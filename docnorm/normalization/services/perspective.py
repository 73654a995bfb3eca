"""Standalone perspective-correction step (edge detection, corner ordering, warp)."""
from __future__ import annotations

from typing import Dict

from docnorm.normalization import steps
from docnorm.normalization.geometry import order_corners
from docnorm.normalization.raster import RasterImage
from .common import run_step


def _correct(image: RasterImage, params: Dict[str, object]) -> steps.StepResult:
    corners = order_corners(steps.detect_document_edges(image))
    result = steps.rectify_perspective(
        image,
        corners,
        target_width=int(params.get("target_width", steps.DEFAULT_TARGET_WIDTH)),
        target_height=int(params.get("target_height", steps.DEFAULT_TARGET_HEIGHT)),
    )
    if corners is None:
        result.warning = "Perspective correction skipped (no document shape detected)."
    return result


def run(payload: Dict[str, object]) -> Dict[str, object]:
    return run_step("perspective", payload, _correct)
