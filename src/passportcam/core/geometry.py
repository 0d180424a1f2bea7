from __future__ import annotations

import math

from passportcam.core.models import Landmarks


def tilt_ratio(landmarks: Landmarks) -> float:
    """
    Vertical eye difference over horizontal eye distance.

    0.0 means level eyes. Coincident eyes give 0.0; vertically stacked eyes
    give infinity.
    """
    dy = abs(landmarks.left_eye.y - landmarks.right_eye.y)
    dx = abs(landmarks.left_eye.x - landmarks.right_eye.x)
    if dx == 0:
        return 0.0 if dy == 0 else math.inf
    return dy / dx


def eye_line_y(landmarks: Landmarks) -> float:
    return (landmarks.left_eye.y + landmarks.right_eye.y) / 2.0


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))
