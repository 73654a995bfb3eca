"""Standalone bilateral denoise step."""
from __future__ import annotations

from typing import Dict

from docnorm.normalization import steps
from .common import run_step


def run(payload: Dict[str, object]) -> Dict[str, object]:
    return run_step("denoise", payload, lambda image, params: steps.remove_noise(image))
