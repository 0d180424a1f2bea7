from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Tuple

import numpy as np

from passportcam.core.config import PassportPhotoConfig
from passportcam.core.geometry import eye_line_y, tilt_ratio
from passportcam.core.models import BoundingBox, Landmarks

RuleCheck = Callable[[np.ndarray, BoundingBox, Landmarks, int, int], bool]


@dataclass(frozen=True)
class ComplianceRule:
    """
    One independent pass/fail check over a captured photo.

    `check(pixels, face_box, landmarks, width, height)` receives the decoded
    image as an (H, W[, C]) uint8 array.
    """
    name: str
    description: str
    check: RuleCheck
    measure: Callable[[np.ndarray, BoundingBox, Landmarks, int, int], dict[str, Any]] | None = None


def _fmt(value: float) -> str:
    return f"{value:g}"


def to_gray(pixels: np.ndarray) -> np.ndarray:
    """Channel mean (R+G+B)/3 as float32; alpha is ignored."""
    arr = np.asarray(pixels)
    if arr.ndim == 2:
        return arr.astype(np.float32)
    return arr[:, :, :3].astype(np.float32).mean(axis=2)


def corner_samples(pixels: np.ndarray, sample_size: int) -> list[np.ndarray]:
    """
    Square patches from the four image corners (TL, TR, BL, BR).

    The patch side is fixed in pixels and clamped to the image, so on small
    images the patches overlap.
    """
    h, w = pixels.shape[:2]
    s_h = max(1, min(sample_size, h))
    s_w = max(1, min(sample_size, w))
    return [
        pixels[:s_h, :s_w],
        pixels[:s_h, w - s_w :],
        pixels[h - s_h :, :s_w],
        pixels[h - s_h :, w - s_w :],
    ]


def background_deviation(pixels: np.ndarray, sample_size: int) -> float:
    """Population std-dev of the grayscale corner samples."""
    gray = np.concatenate([to_gray(p).reshape(-1) for p in corner_samples(pixels, sample_size)])
    if gray.size == 0:
        return 0.0
    return float(gray.std())


def head_height_percent(face_box: BoundingBox, height: int) -> float:
    return face_box.height / float(height) * 100.0 if height else 0.0


def eye_height_percent(landmarks: Landmarks, height: int) -> float:
    """Eye line position as a percentage measured up from the image bottom."""
    return (height - eye_line_y(landmarks)) / float(height) * 100.0 if height else 0.0


def build_rules(config: PassportPhotoConfig) -> Tuple[ComplianceRule, ...]:
    """Rules in evaluation (and reporting) order."""

    def head_height(_px, box, _lm, _w, h) -> bool:
        pct = head_height_percent(box, h)
        return config.head_height_min_percent <= pct <= config.head_height_max_percent

    def eye_position(_px, _box, lm, _w, h) -> bool:
        pct = eye_height_percent(lm, h)
        return config.eye_height_min_percent <= pct <= config.eye_height_max_percent

    def face_centered(_px, box, _lm, w, _h) -> bool:
        return abs(box.center_x - w / 2.0) < w * config.center_tolerance

    def eyes_level(_px, _box, lm, _w, _h) -> bool:
        return tilt_ratio(lm) < config.max_tilt_ratio

    def uniform_background(px, _box, _lm, _w, _h) -> bool:
        return background_deviation(px, config.background_sample_size) < config.background_variance_threshold

    return (
        ComplianceRule(
            name="Head Height",
            description=(
                f"Head must be between {_fmt(config.head_height_min_percent)}% and "
                f"{_fmt(config.head_height_max_percent)}% of image height"
            ),
            check=head_height,
            measure=lambda _px, box, _lm, _w, h: {"head_height_percent": head_height_percent(box, h)},
        ),
        ComplianceRule(
            name="Eye Position",
            description=(
                f"Eyes must be positioned between {_fmt(config.eye_height_min_percent)}% and "
                f"{_fmt(config.eye_height_max_percent)}% from bottom"
            ),
            check=eye_position,
            measure=lambda _px, _box, lm, _w, h: {"eye_height_percent": eye_height_percent(lm, h)},
        ),
        ComplianceRule(
            name="Face Centered",
            description="Face must be horizontally centered",
            check=face_centered,
            measure=lambda _px, box, _lm, w, _h: {
                "offset_px": box.center_x - w / 2.0,
                "tolerance_px": w * config.center_tolerance,
            },
        ),
        ComplianceRule(
            name="Eyes Level",
            description="Eyes must be level (no significant head tilt)",
            check=eyes_level,
            measure=lambda _px, _box, lm, _w, _h: {"tilt_ratio": tilt_ratio(lm)},
        ),
        ComplianceRule(
            name="Uniform Background",
            description="Background must be uniform (low color variance)",
            check=uniform_background,
            measure=lambda px, _box, _lm, _w, _h: {
                "background_std": background_deviation(px, config.background_sample_size),
                "threshold": config.background_variance_threshold,
            },
        ),
    )
