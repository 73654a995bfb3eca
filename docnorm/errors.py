"""Error types raised by the document normalization pipeline."""
from __future__ import annotations


class NormalizationError(Exception):
    """Base class for every error surfaced to callers of the pipeline."""


class InitializationTimeout(NormalizationError):
    """The vision library did not become ready within the allowed time."""


class VisionUnavailable(NormalizationError):
    """The vision library could not be loaded, or was used before it was ready."""


class DecodeFailure(NormalizationError):
    """The input blob could not be decoded as its declared type."""


class UnsupportedImageType(DecodeFailure):
    """The declared type is not one of the accepted raster encodings."""


class StageFailure(NormalizationError):
    """A vision primitive failed inside a stage with no safe fallback."""


class ProcessingFailed(NormalizationError):
    """A pipeline stage failed; no output is produced for the document."""

    def __init__(self, stage: str, cause: BaseException) -> None:
        super().__init__(f"Failed to process document during '{stage}': {cause}")
        self.stage = stage
        self.cause = cause
