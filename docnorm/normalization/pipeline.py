"""Document normalization orchestrator."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

import asyncio
import logging
import time

from docnorm import vision
from docnorm.config import EnhancementOptions
from docnorm.errors import NormalizationError, ProcessingFailed, StageFailure
from . import steps
from .geometry import Contour, QuadCorners, order_corners
from .raster import ImageChain, decode_image, encode_image

LOGGER = logging.getLogger(__name__)

OUTPUT_PREFIX = "enhanced_"
LOADING_LABEL = "Loading image..."
ENCODING_LABEL = "Encoding result..."

ProgressCallback = Callable[[str], None]


@dataclass(slots=True)
class ProcessingResult:
    name: str
    content_type: str
    data: bytes
    width: int
    height: int
    corners: Optional[QuadCorners] = None
    steps_applied: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    elapsed_seconds: float = 0.0
    details: Dict[str, object] = field(default_factory=dict)


@dataclass(slots=True)
class PipelineState:
    """Per-call state shared by the stages of one orchestration."""

    options: EnhancementOptions
    chain: ImageChain
    contour: Optional[Contour] = None
    corners: Optional[QuadCorners] = None
    details: Dict[str, object] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class Stage:
    name: str
    label: str
    condition: Callable[[PipelineState], bool]
    action: Callable[[PipelineState], steps.StepResult]


def _auto_rotate(state: PipelineState) -> steps.StepResult:
    return steps.auto_rotate(state.chain.current)


def _detect_edges(state: PipelineState) -> steps.StepResult:
    image = state.chain.current
    state.contour = steps.detect_document_edges(image)
    if state.contour is None:
        LOGGER.info("No document shape detected; perspective correction skipped")
    return steps.StepResult(image=image, applied=state.contour is not None)


def _order_corners(state: PipelineState) -> steps.StepResult:
    image = state.chain.current
    state.corners = order_corners(state.contour)
    if state.corners is None:
        return steps.StepResult(
            image=image,
            applied=False,
            warning="Perspective correction skipped (detected outline is degenerate).",
        )
    return steps.StepResult(image=image, applied=True)


def _rectify(state: PipelineState) -> steps.StepResult:
    return steps.rectify_perspective(state.chain.current, state.corners)


def _denoise(state: PipelineState) -> steps.StepResult:
    return steps.remove_noise(state.chain.current)


def _enhance(state: PipelineState) -> steps.StepResult:
    return steps.enhance_quality(state.chain.current, state.options.intensity)


# Evaluated left to right; each condition sees the state left by earlier stages.
DEFAULT_STAGES: Sequence[Stage] = (
    Stage("auto_rotate", "Auto-rotating document...", lambda s: s.options.auto_rotate, _auto_rotate),
    Stage(
        "detect_edges",
        "Detecting document edges...",
        lambda s: s.options.auto_correct_perspective,
        _detect_edges,
    ),
    Stage("order_corners", "Locating document corners...", lambda s: s.contour is not None, _order_corners),
    Stage("rectify", "Correcting perspective...", lambda s: s.corners is not None, _rectify),
    Stage("denoise", "Removing noise...", lambda s: s.options.remove_noise, _denoise),
    Stage("enhance", "Enhancing quality...", lambda s: s.options.enhance_quality, _enhance),
)


def _ignore_progress(label: str) -> None:
    return None


class DocumentNormalizer:
    """Runs one document at a time through the configured stages.

    Calls share no mutable state, so independent documents may be processed
    concurrently from the same instance.
    """

    def __init__(
        self,
        stages: Sequence[Stage] = DEFAULT_STAGES,
        init_timeout: float = vision.DEFAULT_INIT_TIMEOUT,
        gate: Optional[vision.VisionGate] = None,
    ) -> None:
        self.stages = tuple(stages)
        self.init_timeout = init_timeout
        self.gate = gate or vision.default_gate()

    async def process(
        self,
        data: bytes,
        content_type: str,
        name: str,
        options: Optional[EnhancementOptions] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> ProcessingResult:
        options = options or EnhancementOptions()
        notify = progress or _ignore_progress
        LOGGER.info("Normalizing %s (%s)", name, content_type)
        start = time.perf_counter()
        steps_applied: List[str] = []
        warnings: List[str] = []

        await self.gate.ensure_ready(self.init_timeout)

        notify(LOADING_LABEL)
        raster = await asyncio.to_thread(decode_image, data, content_type)

        with ImageChain(raster) as chain:
            state = PipelineState(options=options, chain=chain)
            for stage in self.stages:
                if not stage.condition(state):
                    continue
                notify(stage.label)
                # stages run one after another on a worker thread
                result = await asyncio.to_thread(self._run_stage, stage, state)
                state.details.update(result.details)
                chain.advance(steps.record_step(steps_applied, warnings, stage.name, result))

            notify(ENCODING_LABEL)
            final = chain.current
            try:
                payload = await asyncio.to_thread(encode_image, final, content_type)
            except (OSError, ValueError) as exc:
                raise ProcessingFailed("encode", exc) from exc
            width, height = final.width, final.height

        elapsed = time.perf_counter() - start
        LOGGER.info(
            "Normalization finished for %s in %.2fs (steps=%s)",
            name,
            elapsed,
            ", ".join(steps_applied) if steps_applied else "none",
        )
        return ProcessingResult(
            name=f"{OUTPUT_PREFIX}{name}",
            content_type=content_type,
            data=payload,
            width=width,
            height=height,
            corners=state.corners,
            steps_applied=steps_applied,
            warnings=warnings,
            elapsed_seconds=elapsed,
            details=state.details,
        )

    @staticmethod
    def _run_stage(stage: Stage, state: PipelineState) -> steps.StepResult:
        try:
            return stage.action(state)
        except StageFailure as exc:
            raise ProcessingFailed(stage.name, exc) from exc
        except NormalizationError:
            raise
        except Exception as exc:
            LOGGER.exception("Stage %s failed", stage.name)
            raise ProcessingFailed(stage.name, exc) from exc


async def normalize_document(
    data: bytes,
    content_type: str,
    name: str,
    options: Optional[EnhancementOptions] = None,
    progress: Optional[ProgressCallback] = None,
) -> ProcessingResult:
    return await DocumentNormalizer().process(data, content_type, name, options, progress)
