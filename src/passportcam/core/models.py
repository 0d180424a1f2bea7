from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Optional


class ReadyState(IntEnum):
    """
    How much decoded data a frame source has available.

    Mirrors the media element readiness levels: detection and rendering need
    at least HAVE_CURRENT_DATA (one decoded frame).
    """
    HAVE_NOTHING = 0
    HAVE_METADATA = 1
    HAVE_CURRENT_DATA = 2
    HAVE_FUTURE_DATA = 3
    HAVE_ENOUGH_DATA = 4


@dataclass(frozen=True)
class Point:
    x: float
    y: float

    def scaled(self, factor: float) -> "Point":
        return Point(x=self.x * factor, y=self.y * factor)


@dataclass(frozen=True)
class BoundingBox:
    """
    Axis-aligned face box in frame pixels (top-left origin).
    """
    x: float
    y: float
    width: float
    height: float

    def __post_init__(self) -> None:
        if min(self.x, self.y, self.width, self.height) < 0:
            raise ValueError(f"BoundingBox values must be non-negative: {self}")

    @property
    def center_x(self) -> float:
        return self.x + self.width / 2.0

    @property
    def center_y(self) -> float:
        return self.y + self.height / 2.0

    def scaled(self, factor: float) -> "BoundingBox":
        return BoundingBox(
            x=self.x * factor,
            y=self.y * factor,
            width=self.width * factor,
            height=self.height * factor,
        )


@dataclass(frozen=True)
class Landmarks:
    """
    Named facial reference points. A landmark set is always complete.
    """
    left_eye: Point
    right_eye: Point
    nose: Point
    mouth: Point
    chin: Point

    def __post_init__(self) -> None:
        for name in ("left_eye", "right_eye", "nose", "mouth", "chin"):
            if getattr(self, name) is None:
                raise ValueError(f"Landmarks.{name} is required")

    def scaled(self, factor: float) -> "Landmarks":
        return Landmarks(
            left_eye=self.left_eye.scaled(factor),
            right_eye=self.right_eye.scaled(factor),
            nose=self.nose.scaled(factor),
            mouth=self.mouth.scaled(factor),
            chin=self.chin.scaled(factor),
        )


@dataclass(frozen=True)
class DetectionResult:
    bounding_box: BoundingBox
    landmarks: Landmarks
    confidence: float = 0.9

    def __post_init__(self) -> None:
        if not (0.0 <= self.confidence <= 1.0):
            raise ValueError(f"confidence must be in [0, 1], got {self.confidence}")

    def scaled(self, factor: float) -> "DetectionResult":
        """Return a copy with box and landmarks multiplied by `factor`."""
        return DetectionResult(
            bounding_box=self.bounding_box.scaled(factor),
            landmarks=self.landmarks.scaled(factor),
            confidence=self.confidence,
        )


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class GuidanceState:
    """
    A single coaching instruction for the live preview.
    """
    message: str
    severity: Severity
    is_optimal: bool = False


class WorkflowState(str, Enum):
    CAPTURE = "capture"
    REVIEW = "review"
    EXPORT = "export"


@dataclass(frozen=True)
class CapturedPhoto:
    """
    The frozen frame taken at capture time.

    image_data:
        JPEG-encoded snapshot of the full camera frame.
    detection:
        Last published detection when the user pressed capture, or None.
    """
    image_data: bytes
    detection: Optional[DetectionResult]
    timestamp: float
    width: int
    height: int
