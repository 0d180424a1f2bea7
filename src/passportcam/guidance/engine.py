"""
Live pose coaching.

`compute_guidance` is a decision list: checks run in a fixed order and the
first one that fires is the only instruction shown, so the user always gets
one thing to fix at a time.
"""
from __future__ import annotations

from typing import Optional

from passportcam.core.config import GuidanceThresholds
from passportcam.core.geometry import tilt_ratio
from passportcam.core.models import DetectionResult, GuidanceState, Severity

MSG_INITIALIZING = "Initializing..."
MSG_NO_FACE = "No face detected"
MSG_MOVE_CLOSER = "Move closer to the camera"
MSG_STEP_BACK = "Step back a little"
# The preview is mirrored, so a face left of center in the frame moves right.
MSG_MOVE_RIGHT = "Move slightly to your right"
MSG_MOVE_LEFT = "Move slightly to your left"
MSG_MOVE_DOWN = "Move down slightly"
MSG_MOVE_UP = "Move up slightly"
MSG_TILT_RIGHT = "Tilt your head slightly to the right"
MSG_TILT_LEFT = "Tilt your head slightly to the left"
MSG_OPTIMAL = "Perfect! Hold still and capture"
MSG_ALMOST = "Almost there! Make small adjustments"

INITIALIZING_GUIDANCE = GuidanceState(MSG_INITIALIZING, Severity.INFO, False)
NO_FACE_GUIDANCE = GuidanceState(MSG_NO_FACE, Severity.INFO, False)

DEFAULT_THRESHOLDS = GuidanceThresholds()


def _warn(message: str) -> GuidanceState:
    return GuidanceState(message=message, severity=Severity.WARNING, is_optimal=False)


def compute_guidance(
    width: int,
    height: int,
    detection: Optional[DetectionResult],
    no_face: GuidanceState = NO_FACE_GUIDANCE,
    thresholds: GuidanceThresholds = DEFAULT_THRESHOLDS,
) -> GuidanceState:
    """
    Return the single highest-priority instruction for a frame of
    `width` x `height` pixels and its latest detection.
    """
    if width <= 0 or height <= 0:
        return INITIALIZING_GUIDANCE
    if detection is None:
        return no_face

    t = thresholds
    box = detection.bounding_box

    # Size
    ideal_min = height * t.ideal_height_min
    ideal_max = height * t.ideal_height_max
    if box.height < ideal_min * t.closer_factor:
        return _warn(MSG_MOVE_CLOSER)
    if box.height > ideal_max * t.back_factor:
        return _warn(MSG_STEP_BACK)

    # Horizontal position
    target_x = width / 2.0
    offset_x = box.center_x - target_x
    max_offset_x = width * t.max_horizontal_offset
    if abs(offset_x) > max_offset_x:
        return _warn(MSG_MOVE_RIGHT if offset_x < 0 else MSG_MOVE_LEFT)

    # Vertical position (face sits a little above the middle)
    target_y = height * t.vertical_target
    offset_y = box.center_y - target_y
    max_offset_y = height * t.max_vertical_offset
    if abs(offset_y) > max_offset_y:
        return _warn(MSG_MOVE_DOWN if offset_y < 0 else MSG_MOVE_UP)

    # Tilt
    lm = detection.landmarks
    ratio = tilt_ratio(lm)
    if ratio > t.max_tilt_ratio:
        return _warn(MSG_TILT_RIGHT if lm.left_eye.y < lm.right_eye.y else MSG_TILT_LEFT)

    optimal_size = ideal_min <= box.height <= ideal_max
    optimal_position = abs(offset_x) < max_offset_x * 0.5 and abs(offset_y) < max_offset_y * 0.5
    optimal_tilt = ratio < t.optimal_tilt_ratio
    if optimal_size and optimal_position and optimal_tilt:
        return GuidanceState(message=MSG_OPTIMAL, severity=Severity.SUCCESS, is_optimal=True)

    return GuidanceState(message=MSG_ALMOST, severity=Severity.INFO, is_optimal=False)
