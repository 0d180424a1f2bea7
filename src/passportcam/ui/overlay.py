from __future__ import annotations

from typing import Tuple

import cv2
import numpy as np

from passportcam.core.models import DetectionResult, Severity

Color = Tuple[int, int, int]  # BGR

OPTIMAL_COLOR: Color = (0, 255, 0)
ADJUST_COLOR: Color = (0, 170, 255)
GUIDE_COLOR: Color = (235, 235, 235)

_SEVERITY_COLORS = {
    Severity.SUCCESS: "#16a34a",
    Severity.WARNING: "#ca8a04",
    Severity.ERROR: "#dc2626",
    Severity.INFO: "#2563eb",
}


def guidance_color(severity: Severity) -> str:
    """Tk color for a guidance message."""
    return _SEVERITY_COLORS.get(severity, _SEVERITY_COLORS[Severity.INFO])


def guide_box(width: int, height: int) -> Tuple[int, int, int, int]:
    """(x, y, w, h) of the target face outline: 55% of frame height, 3:4."""
    guide_h = height * 0.55
    guide_w = guide_h * 0.75
    return (
        int(round((width - guide_w) / 2.0)),
        int(round(height * 0.25)),
        int(round(guide_w)),
        int(round(guide_h)),
    )


def _dashed_line(img: np.ndarray, p0: Tuple[int, int], p1: Tuple[int, int], color: Color, dash: int = 10, gap: int = 5) -> None:
    x0, y0 = p0
    x1, y1 = p1
    length = float(np.hypot(x1 - x0, y1 - y0))
    if length == 0:
        return
    step = dash + gap
    pos = 0.0
    while pos < length:
        end = min(pos + dash, length)
        a = (int(x0 + (x1 - x0) * pos / length), int(y0 + (y1 - y0) * pos / length))
        b = (int(x0 + (x1 - x0) * end / length), int(y0 + (y1 - y0) * end / length))
        cv2.line(img, a, b, color, 2, cv2.LINE_AA)
        pos += step


def draw_guide_box(img: np.ndarray) -> np.ndarray:
    """Dashed face outline with a center line and an eye-level line, in place."""
    h, w = img.shape[:2]
    x, y, gw, gh = guide_box(w, h)
    corners = [(x, y), (x + gw, y), (x + gw, y + gh), (x, y + gh)]
    for i in range(4):
        _dashed_line(img, corners[i], corners[(i + 1) % 4], GUIDE_COLOR)

    cx = w // 2
    cv2.line(img, (cx, y), (cx, y + gh), GUIDE_COLOR, 1, cv2.LINE_AA)
    eye_y = int(round(y + gh * 0.4))
    cv2.line(img, (x, eye_y), (x + gw, eye_y), GUIDE_COLOR, 1, cv2.LINE_AA)
    return img


def draw_face_overlay(img: np.ndarray, detection: DetectionResult, color: Color = OPTIMAL_COLOR) -> np.ndarray:
    """Face box, landmark dots and the eye line, in place."""
    box = detection.bounding_box
    p0 = (int(round(box.x)), int(round(box.y)))
    p1 = (int(round(box.x + box.width)), int(round(box.y + box.height)))
    cv2.rectangle(img, p0, p1, color, 2)

    lm = detection.landmarks
    for pt in (lm.left_eye, lm.right_eye, lm.nose, lm.mouth, lm.chin):
        cv2.circle(img, (int(round(pt.x)), int(round(pt.y))), 4, color, -1, cv2.LINE_AA)

    cv2.line(
        img,
        (int(round(lm.left_eye.x)), int(round(lm.left_eye.y))),
        (int(round(lm.right_eye.x)), int(round(lm.right_eye.y))),
        color,
        2,
        cv2.LINE_AA,
    )
    return img
