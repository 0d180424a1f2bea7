from __future__ import annotations

import logging
import time
from typing import Callable, List, Optional, Protocol

import numpy as np

from passportcam.core.config import US_PASSPORT_CONFIG, PassportPhotoConfig
from passportcam.core.errors import CaptureUnavailableError, InvalidTransitionError
from passportcam.core.models import CapturedPhoto, DetectionResult, WorkflowState
from passportcam.imaging.processing import encode_jpeg, finalize_photo
from passportcam.validation.compliance import evaluate_capture
from passportcam.validation.report import ComplianceResult

_log = logging.getLogger(__name__)

Listener = Callable[[WorkflowState, WorkflowState], None]
Finalizer = Callable[[CapturedPhoto, PassportPhotoConfig], bytes]


class Restartable(Protocol):
    def start(self) -> None: ...

    def stop(self) -> None: ...


class WorkflowController:
    """
    Capture -> Review -> Export state machine for a single session.

    Holds the one captured photo and everything derived from it. Transitions
    other than the four below raise InvalidTransitionError.
    """

    def __init__(
        self,
        config: PassportPhotoConfig = US_PASSPORT_CONFIG,
        scheduler: Optional[Restartable] = None,
        finalizer: Finalizer = finalize_photo,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config
        self._scheduler = scheduler
        self._finalizer = finalizer
        self._clock = clock
        self._listeners: List[Listener] = []

        self.state = WorkflowState.CAPTURE
        self.captured: Optional[CapturedPhoto] = None
        self.compliance: Optional[ComplianceResult] = None
        self.export_data: Optional[bytes] = None

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    @property
    def accepted_with_warnings(self) -> bool:
        return self.state is WorkflowState.EXPORT and self.compliance is not None and not self.compliance.passed

    # ---------- Transitions ----------

    def capture(self, frame: Optional[np.ndarray], detection: Optional[DetectionResult]) -> ComplianceResult:
        """
        Freeze `frame` with the last published detection and score it.

        A missing face is reported in the ComplianceResult; only a missing
        frame stops the transition.
        """
        self._require(WorkflowState.CAPTURE, "capture")
        if frame is None or frame.ndim < 2 or frame.shape[0] == 0 or frame.shape[1] == 0:
            raise CaptureUnavailableError("No camera frame available to capture")

        frozen = np.ascontiguousarray(frame).copy()
        h, w = frozen.shape[:2]
        photo = CapturedPhoto(
            image_data=encode_jpeg(frozen, quality=self.config.jpeg_quality),
            detection=detection,
            timestamp=self._clock(),
            width=w,
            height=h,
        )
        result = evaluate_capture(frozen, detection, self.config)

        if self._scheduler is not None:
            self._scheduler.stop()

        self.captured = photo
        self.compliance = result
        self.export_data = None
        self._transition(WorkflowState.REVIEW)
        return result

    def retake(self) -> None:
        self._require(WorkflowState.REVIEW, "retake")
        self._clear()
        self._transition(WorkflowState.CAPTURE)
        self._restart_scheduler()

    def accept(self) -> bytes:
        """Finalize the captured photo for export, compliant or not."""
        self._require(WorkflowState.REVIEW, "accept")
        assert self.captured is not None
        if self.compliance is not None and not self.compliance.passed:
            _log.warning("Accepting a non-compliant photo (score %d)", self.compliance.score)
        data = self._finalizer(self.captured, self.config)
        self.export_data = data
        self._transition(WorkflowState.EXPORT)
        return data

    def start_over(self) -> None:
        self._require(WorkflowState.EXPORT, "start over")
        self._clear()
        self._transition(WorkflowState.CAPTURE)
        self._restart_scheduler()

    # ---------- Internals ----------

    def _require(self, expected: WorkflowState, action: str) -> None:
        if self.state is not expected:
            raise InvalidTransitionError(action, self.state)

    def _clear(self) -> None:
        self.captured = None
        self.compliance = None
        self.export_data = None

    def _restart_scheduler(self) -> None:
        if self._scheduler is not None:
            self._scheduler.start()

    def _transition(self, new_state: WorkflowState) -> None:
        old, self.state = self.state, new_state
        _log.info("Workflow %s -> %s", old.value, new_state.value)
        for listener in list(self._listeners):
            listener(old, new_state)
