"""Ready-to-use wrappers for individual normalization steps.

Each module exposes `run(payload: dict)` which accepts:
{
    "image_path": "<path>",
    "params": {...},
    "output_dir": "<optional>"
}
and returns a JSON-friendly dict with step result metadata.
"""

from .rotate import run as run_rotate
from .perspective import run as run_perspective
from .denoise import run as run_denoise
from .enhance import run as run_enhance

__all__ = [
    "run_rotate",
    "run_perspective",
    "run_denoise",
    "run_enhance",
]
