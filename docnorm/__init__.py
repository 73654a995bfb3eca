"""Photographed-document normalization: rectify, rotate, denoise, enhance."""

from .config import EnhancementOptions
from .normalization import DocumentNormalizer, ProcessingResult, normalize_document

__version__ = "0.1.0"

__all__ = ["DocumentNormalizer", "EnhancementOptions", "ProcessingResult", "normalize_document"]
