"""Standalone auto-rotate step."""
from __future__ import annotations

from typing import Dict

from docnorm.normalization import steps
from .common import run_step


def run(payload: Dict[str, object]) -> Dict[str, object]:
    return run_step("auto_rotate", payload, lambda image, params: steps.auto_rotate(image))
