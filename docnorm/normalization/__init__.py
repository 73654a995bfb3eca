"""Document image normalization pipeline."""

from .geometry import Contour, Point2D, QuadCorners, order_corners
from .pipeline import DEFAULT_STAGES, DocumentNormalizer, ProcessingResult, Stage, normalize_document
from .raster import RasterImage, decode_image, encode_image

__all__ = [
    "Contour",
    "DEFAULT_STAGES",
    "DocumentNormalizer",
    "Point2D",
    "ProcessingResult",
    "QuadCorners",
    "RasterImage",
    "Stage",
    "decode_image",
    "encode_image",
    "normalize_document",
    "order_corners",
]
