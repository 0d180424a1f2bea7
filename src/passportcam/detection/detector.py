from __future__ import annotations

import logging
from typing import Any, Callable, Optional, Sequence

import cv2
import numpy as np

from passportcam.core.errors import ModelLoadError
from passportcam.core.models import BoundingBox, DetectionResult, Landmarks, Point, ReadyState

_log = logging.getLogger(__name__)

# MediaPipe Face Mesh keypoint indices. The eye centers are the mean of
# the corner and lid points.
LEFT_EYE_INDICES = (33, 133, 159, 145)
RIGHT_EYE_INDICES = (362, 263, 386, 374)
NOSE_TIP_INDEX = 1
MOUTH_INDEX = 13
CHIN_INDEX = 152

# The mesh model does not report a face score.
DEFAULT_CONFIDENCE = 0.9


def _mediapipe_face_mesh() -> Any:
    import mediapipe as mp

    return mp.solutions.face_mesh.FaceMesh(
        static_image_mode=False,
        refine_landmarks=False,
        max_num_faces=1,
        min_detection_confidence=0.5,
        min_tracking_confidence=0.5,
    )


def _mean_point(points: Sequence[Point]) -> Point:
    return Point(
        x=sum(p.x for p in points) / len(points),
        y=sum(p.y for p in points) / len(points),
    )


def landmarks_from_keypoints(keypoints: Sequence[Point]) -> Landmarks:
    """Map pixel keypoints of one face mesh to the named landmark set."""
    return Landmarks(
        left_eye=_mean_point([keypoints[i] for i in LEFT_EYE_INDICES]),
        right_eye=_mean_point([keypoints[i] for i in RIGHT_EYE_INDICES]),
        nose=keypoints[NOSE_TIP_INDEX],
        mouth=keypoints[MOUTH_INDEX],
        chin=keypoints[CHIN_INDEX],
    )


def box_from_keypoints(keypoints: Sequence[Point], width: int, height: int) -> BoundingBox:
    """Tight box around all keypoints, clamped to the image."""
    xs = [min(max(p.x, 0.0), float(width)) for p in keypoints]
    ys = [min(max(p.y, 0.0), float(height)) for p in keypoints]
    x_min, y_min = min(xs), min(ys)
    return BoundingBox(x=x_min, y=y_min, width=max(xs) - x_min, height=max(ys) - y_min)


class FaceDetector:
    """
    Adapter around a face-landmark model.

    The model is any object with `process(rgb_image)` returning a result with
    `multi_face_landmarks` (MediaPipe's contract); `close()` is optional.
    Coordinates in the returned DetectionResult are pixels of the image passed
    to `detect()`.
    """

    def __init__(self, model_factory: Optional[Callable[[], Any]] = None):
        self._model_factory = model_factory or _mediapipe_face_mesh
        self._model: Any = None

    @property
    def is_initialized(self) -> bool:
        return self._model is not None

    def initialize(self) -> None:
        if self._model is not None:
            _log.debug("Face detector already initialized")
            return
        try:
            self._model = self._model_factory()
        except Exception as e:
            self._model = None
            _log.error("Failed to load face landmark model: %s", e)
            raise ModelLoadError(f"Failed to load face landmark model: {e}") from e
        _log.info("Face landmark model loaded")

    def detect(
        self,
        image: Optional[np.ndarray],
        ready_state: ReadyState = ReadyState.HAVE_ENOUGH_DATA,
    ) -> Optional[DetectionResult]:
        """
        Detect the first face in a BGR image.

        Returns None without running the model when the image is empty or the
        source has no decoded frame yet.
        """
        if image is None or image.ndim < 2:
            return None
        h, w = image.shape[:2]
        if w == 0 or h == 0 or ready_state < ReadyState.HAVE_CURRENT_DATA:
            _log.debug("Skipping detection: %dx%d ready_state=%s", w, h, ready_state)
            return None
        if self._model is None:
            _log.warning("Face detector not initialized")
            return None

        if image.ndim == 3 and image.shape[2] == 3:
            rgb = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
        else:
            rgb = image
        results = self._model.process(rgb)

        faces = getattr(results, "multi_face_landmarks", None)
        if not faces:
            return None

        # Only the first face is used.
        keypoints = [Point(x=lm.x * w, y=lm.y * h) for lm in faces[0].landmark]
        return DetectionResult(
            bounding_box=box_from_keypoints(keypoints, w, h),
            landmarks=landmarks_from_keypoints(keypoints),
            confidence=DEFAULT_CONFIDENCE,
        )

    def dispose(self) -> None:
        model, self._model = self._model, None
        if model is None:
            return
        close = getattr(model, "close", None)
        if close is not None:
            close()
        _log.info("Face landmark model released")
