from __future__ import annotations

import logging
from typing import Optional, Protocol

import cv2
import numpy as np

from passportcam.core.models import ReadyState

_log = logging.getLogger(__name__)


class FrameSource(Protocol):
    """Anything the frame scheduler can pull frames from."""

    @property
    def width(self) -> int: ...

    @property
    def height(self) -> int: ...

    @property
    def ready_state(self) -> ReadyState: ...

    def read(self) -> Optional[np.ndarray]: ...


class CameraSource:
    """
    Webcam frame source backed by cv2.VideoCapture.

    `read()` returns the newest BGR frame or None; a failed read is not an
    error, the scheduler simply skips that tick.
    """

    def __init__(self, camera_id: int = 0, width: int = 1280, height: int = 720):
        self._camera_id = camera_id
        self._cap: Optional[cv2.VideoCapture] = cv2.VideoCapture(camera_id)
        self._width = 0
        self._height = 0
        self._has_frame = False

        if not self._cap.isOpened():
            _log.warning("Camera %d could not be opened", camera_id)
            return

        self._cap.set(cv2.CAP_PROP_FRAME_WIDTH, width)
        self._cap.set(cv2.CAP_PROP_FRAME_HEIGHT, height)
        # One-frame buffer keeps the preview close to real time.
        self._cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)

        # Warm-up read; fall back to the reported size if it fails.
        if self.read() is None:
            self._width = int(self._cap.get(cv2.CAP_PROP_FRAME_WIDTH))
            self._height = int(self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        _log.info("Camera %d opened at %dx%d", camera_id, self._width, self._height)

    @property
    def is_open(self) -> bool:
        return self._cap is not None and self._cap.isOpened()

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    @property
    def ready_state(self) -> ReadyState:
        if not self.is_open:
            return ReadyState.HAVE_NOTHING
        if self._width == 0 or self._height == 0:
            return ReadyState.HAVE_METADATA
        if self._has_frame:
            return ReadyState.HAVE_ENOUGH_DATA
        return ReadyState.HAVE_CURRENT_DATA

    def read(self) -> Optional[np.ndarray]:
        if not self.is_open:
            return None
        ok, frame = self._cap.read()
        if not ok or frame is None or frame.size == 0:
            _log.debug("Camera %d returned no frame", self._camera_id)
            self._has_frame = False
            return None
        self._height, self._width = frame.shape[:2]
        self._has_frame = True
        return frame

    def release(self) -> None:
        cap, self._cap = self._cap, None
        self._has_frame = False
        if cap is not None:
            cap.release()
            _log.info("Camera %d released", self._camera_id)
