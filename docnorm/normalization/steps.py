"""Document normalization steps: edges, perspective, orientation, denoise, enhance."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import logging

import numpy as np

from docnorm import vision
from docnorm.errors import StageFailure
from .geometry import MIN_QUAD_AREA, Contour, QuadCorners, polygon_area
from .raster import RasterImage

LOGGER = logging.getLogger(__name__)

BLUR_KERNEL_SIZE = (5, 5)
CANNY_LOW_THRESHOLD = 50
CANNY_HIGH_THRESHOLD = 150
MIN_DOCUMENT_AREA_RATIO = 0.1
APPROX_EPSILON_RATIO = 0.02

DEFAULT_TARGET_WIDTH = 800
DEFAULT_TARGET_HEIGHT = 1000

ROTATION_ANGLES = (0, 90, 180, 270)
ORIENTATION_KERNEL_LENGTH = 25

BILATERAL_DIAMETER = 9
BILATERAL_SIGMA_COLOR = 75
BILATERAL_SIGMA_SPACE = 75

# intensity -> (alpha, beta) for pixel * alpha + beta
INTENSITY_LEVELS: Dict[str, Tuple[float, float]] = {
    "low": (1.1, 5.0),
    "medium": (1.25, 10.0),
    "high": (1.4, 15.0),
}
SHARPEN_KERNEL = np.array(
    [
        [0, -1, 0],
        [-1, 5, -1],
        [0, -1, 0],
    ],
    dtype=np.float32,
)


@dataclass(slots=True)
class StepResult:
    image: RasterImage
    applied: bool
    warning: str | None = None
    details: Dict[str, object] = field(default_factory=dict)


def _to_grayscale(pixels: np.ndarray) -> np.ndarray:
    cv2 = vision.cv()
    if pixels.ndim == 2:
        return pixels
    if pixels.shape[2] == 4:
        return cv2.cvtColor(pixels, cv2.COLOR_RGBA2GRAY)
    return cv2.cvtColor(pixels, cv2.COLOR_RGB2GRAY)


def _split_alpha(pixels: np.ndarray) -> Tuple[np.ndarray, Optional[np.ndarray]]:
    if pixels.ndim == 3 and pixels.shape[2] == 4:
        return np.ascontiguousarray(pixels[:, :, :3]), pixels[:, :, 3]
    return pixels, None


def _merge_alpha(color: np.ndarray, alpha: Optional[np.ndarray]) -> np.ndarray:
    if alpha is None:
        return color
    return np.dstack([color, alpha])


def detect_document_edges(image: RasterImage) -> Optional[Contour]:
    """Return the largest 4-vertex contour covering more than 10% of the image.

    None means no document shape was found, which is a normal outcome.
    """
    cv2 = vision.cv()
    gray = _to_grayscale(image.array())
    blurred = cv2.GaussianBlur(gray, BLUR_KERNEL_SIZE, 0)
    edges = cv2.Canny(blurred, CANNY_LOW_THRESHOLD, CANNY_HIGH_THRESHOLD)
    contours, _ = cv2.findContours(edges, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)

    min_area = image.width * image.height * MIN_DOCUMENT_AREA_RATIO
    best: Optional[np.ndarray] = None
    best_area = 0.0
    candidates = 0
    for contour in contours:
        area = cv2.contourArea(contour)
        if area <= min_area:
            continue
        perimeter = cv2.arcLength(contour, True)
        approx = cv2.approxPolyDP(contour, APPROX_EPSILON_RATIO * perimeter, True)
        if len(approx) != 4:
            continue
        candidates += 1
        if area > best_area:
            best_area = area
            best = approx

    LOGGER.debug(
        "Edge detection: contours=%d quad_candidates=%d best_area=%.0f (min=%.0f)",
        len(contours),
        candidates,
        best_area,
        min_area,
    )
    if best is None:
        return None
    return Contour.from_array(best)


def rectify_perspective(
    image: RasterImage,
    corners: Optional[QuadCorners],
    target_width: int = DEFAULT_TARGET_WIDTH,
    target_height: int = DEFAULT_TARGET_HEIGHT,
) -> StepResult:
    if corners is None:
        return StepResult(image=image.copy(), applied=False)

    if polygon_area(corners.clockwise()) < MIN_QUAD_AREA:
        raise StageFailure(f"Cannot rectify degenerate quadrilateral {corners.as_dict()}")

    cv2 = vision.cv()
    source = corners.as_array()
    destination = np.array(
        [
            [0, 0],
            [target_width, 0],
            [target_width, target_height],
            [0, target_height],
        ],
        dtype=np.float32,
    )
    try:
        matrix = cv2.getPerspectiveTransform(source, destination)
        if not np.all(np.isfinite(matrix)) or abs(np.linalg.det(matrix)) < 1e-12:
            raise StageFailure(f"Singular perspective transform for corners {corners.as_dict()}")
        warped = cv2.warpPerspective(
            image.array(),
            matrix,
            (target_width, target_height),
            flags=cv2.INTER_LINEAR,
        )
    except cv2.error as exc:
        raise StageFailure(f"Perspective transform failed for corners {corners.as_dict()}: {exc}") from exc
    LOGGER.debug("Rectified %sx%s -> %sx%s", image.width, image.height, target_width, target_height)
    return StepResult(image=RasterImage(warped), applied=True, details={"corners": corners.as_dict()})


def rotate_image(image: RasterImage, angle: int) -> RasterImage:
    """Rotate counter-clockwise by a multiple of 90 degrees; 90/270 swap width and height."""
    cv2 = vision.cv()
    codes = {
        90: cv2.ROTATE_90_COUNTERCLOCKWISE,
        180: cv2.ROTATE_180,
        270: cv2.ROTATE_90_CLOCKWISE,
    }
    angle = angle % 360
    if angle == 0:
        return image.copy()
    if angle not in codes:
        raise ValueError(f"Rotation angle must be a multiple of 90, got {angle}")
    return RasterImage(cv2.rotate(image.array(), codes[angle]))


def orientation_score(image: RasterImage) -> float:
    """Ratio of horizontal to vertical edge energy; upright text scores highest."""
    cv2 = vision.cv()
    edges = cv2.Canny(_to_grayscale(image.array()), CANNY_LOW_THRESHOLD, CANNY_HIGH_THRESHOLD)
    horizontal_kernel = cv2.getStructuringElement(cv2.MORPH_RECT, (ORIENTATION_KERNEL_LENGTH, 1))
    vertical_kernel = cv2.getStructuringElement(cv2.MORPH_RECT, (1, ORIENTATION_KERNEL_LENGTH))
    horizontal = cv2.morphologyEx(edges, cv2.MORPH_OPEN, horizontal_kernel)
    vertical = cv2.morphologyEx(edges, cv2.MORPH_OPEN, vertical_kernel)
    horizontal_sum = float(horizontal.sum(dtype=np.float64))
    vertical_sum = float(vertical.sum(dtype=np.float64))
    return horizontal_sum / (vertical_sum + 1.0)


def auto_rotate(image: RasterImage) -> StepResult:
    best_angle = ROTATION_ANGLES[0]
    best_score: Optional[float] = None
    best_image: Optional[RasterImage] = None
    scores: Dict[int, float] = {}

    for angle in ROTATION_ANGLES:
        candidate = rotate_image(image, angle)
        score = orientation_score(candidate)
        scores[angle] = score
        # strictly greater: the earliest angle wins ties
        if best_score is None or score > best_score:
            if best_image is not None:
                best_image.release()
            best_angle, best_score, best_image = angle, score, candidate
        else:
            candidate.release()

    LOGGER.debug(
        "Orientation scores %s -> %s",
        {angle: round(score, 3) for angle, score in scores.items()},
        best_angle,
    )
    return StepResult(image=best_image, applied=best_angle != 0, details={"angle": best_angle})


def remove_noise(image: RasterImage) -> StepResult:
    cv2 = vision.cv()
    color, alpha = _split_alpha(image.array())
    try:
        denoised = cv2.bilateralFilter(
            color,
            BILATERAL_DIAMETER,
            BILATERAL_SIGMA_COLOR,
            BILATERAL_SIGMA_SPACE,
        )
    except cv2.error as exc:
        warning = f"Denoise skipped (bilateral filter failed: {exc})"
        LOGGER.warning("%s", warning)
        return StepResult(image=image.copy(), applied=False, warning=warning)
    return StepResult(image=RasterImage(_merge_alpha(denoised, alpha)), applied=True)


def enhance_quality(image: RasterImage, intensity: str = "medium") -> StepResult:
    """Contrast/brightness stretch first, then a unity-gain 3x3 sharpen."""
    try:
        alpha, beta = INTENSITY_LEVELS[intensity]
    except KeyError:
        raise ValueError(
            f"Unknown intensity '{intensity}' (expected one of {', '.join(INTENSITY_LEVELS)})"
        ) from None

    cv2 = vision.cv()
    color, alpha_channel = _split_alpha(image.array())
    try:
        contrasted = cv2.convertScaleAbs(color, alpha=alpha, beta=beta)
        sharpened = cv2.filter2D(contrasted, -1, SHARPEN_KERNEL)
    except cv2.error as exc:
        warning = f"Quality enhancement skipped ({exc})"
        LOGGER.warning("%s", warning)
        return StepResult(image=image.copy(), applied=False, warning=warning)
    return StepResult(
        image=RasterImage(_merge_alpha(sharpened, alpha_channel)),
        applied=True,
        details={"alpha": alpha, "beta": beta},
    )


def record_step(
    steps: List[str],
    warnings: List[str],
    name: str,
    step_result: StepResult,
) -> RasterImage:
    if step_result.applied:
        steps.append(name)
    if step_result.warning:
        warnings.append(step_result.warning)
    return step_result.image
