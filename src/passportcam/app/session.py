from __future__ import annotations

import logging
import time
from concurrent.futures import Executor
from typing import Callable, Optional, Tuple

import numpy as np

from passportcam.camera.source import FrameSource
from passportcam.core.config import AppConfig
from passportcam.core.errors import ModelLoadError
from passportcam.core.models import DetectionResult, GuidanceState, WorkflowState
from passportcam.detection.detector import FaceDetector
from passportcam.detection.scheduler import FrameScheduler, TickDriver
from passportcam.guidance.engine import INITIALIZING_GUIDANCE, compute_guidance
from passportcam.validation.report import ComplianceResult
from passportcam.app.workflow import WorkflowController

_log = logging.getLogger(__name__)


class CaptureSession:
    """
    One capture session: owns the detector, the frame scheduler and the
    workflow controller, and keeps the live coaching state.

    The GUI reads/writes through this object; it never touches the detector
    or scheduler directly.
    """

    def __init__(
        self,
        source: Optional[FrameSource],
        tick_driver: TickDriver,
        config: AppConfig = AppConfig(),
        *,
        detector: Optional[FaceDetector] = None,
        executor: Optional[Executor] = None,
        post: Optional[Callable[[Callable[[], None]], None]] = None,
        on_frame: Optional[Callable[[np.ndarray], None]] = None,
        on_guidance: Optional[Callable[[GuidanceState], None]] = None,
        on_error: Optional[Callable[[BaseException], None]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config
        self.detector = detector or FaceDetector()
        self._on_frame = on_frame
        self._on_guidance = on_guidance
        self._on_error = on_error

        self.scheduler = FrameScheduler(
            source,
            self.detector,
            tick_driver,
            render=self._handle_frame,
            on_detection=self._handle_detection,
            on_error=self._handle_error,
            config=config.scheduler,
            executor=executor,
            post=post,
            clock=clock,
        )
        self.workflow = WorkflowController(config.rules, scheduler=self.scheduler)
        self.workflow.add_listener(self._handle_transition)

        self.detection: Optional[DetectionResult] = None
        self.guidance: GuidanceState = INITIALIZING_GUIDANCE
        self._frame: Optional[np.ndarray] = None
        self._frame_size: Tuple[int, int] = (0, 0)

    # ---------- Lifecycle ----------

    def open(self) -> bool:
        """
        Load the model and start the preview loop. The preview starts even when
        the model fails to load; False means no detection will run.
        """
        loaded = True
        try:
            self.detector.initialize()
        except ModelLoadError as e:
            self._handle_error(e)
            loaded = False
        self.start_preview()
        return loaded

    def start_preview(self) -> None:
        self.scheduler.start()

    def close(self) -> None:
        self.scheduler.close()
        self.detector.dispose()
        self._frame = None

    # ---------- Queries ----------

    @property
    def state(self) -> WorkflowState:
        return self.workflow.state

    @property
    def frame(self) -> Optional[np.ndarray]:
        """Last frame copied to the preview."""
        return self._frame

    @property
    def frame_size(self) -> Tuple[int, int]:
        return self._frame_size

    @property
    def can_capture(self) -> bool:
        return self.workflow.state is WorkflowState.CAPTURE and self._frame is not None

    # ---------- Actions ----------

    def capture(self) -> ComplianceResult:
        return self.workflow.capture(self._frame, self.detection)

    def retake(self) -> None:
        self.workflow.retake()

    def accept(self) -> bytes:
        return self.workflow.accept()

    def start_over(self) -> None:
        self.workflow.start_over()

    # ---------- Scheduler callbacks ----------

    def _handle_frame(self, frame: np.ndarray) -> None:
        self._frame = frame
        h, w = frame.shape[:2]
        if (w, h) != self._frame_size:
            self._frame_size = (w, h)
            self._update_guidance()
        if self._on_frame is not None:
            self._on_frame(frame)

    def _handle_detection(self, result: Optional[DetectionResult]) -> None:
        self.detection = result
        self._update_guidance()

    def _handle_error(self, error: BaseException) -> None:
        _log.error("Capture session error: %s", error)
        if self._on_error is not None:
            self._on_error(error)

    def _handle_transition(self, _old: WorkflowState, new: WorkflowState) -> None:
        if new is WorkflowState.CAPTURE:
            self.detection = None
            self._frame = None
            self._frame_size = (0, 0)
            self._set_guidance(INITIALIZING_GUIDANCE)

    def _update_guidance(self) -> None:
        w, h = self._frame_size
        self._set_guidance(compute_guidance(w, h, self.detection, thresholds=self.config.guidance))

    def _set_guidance(self, guidance: GuidanceState) -> None:
        if guidance == self.guidance:
            return
        self.guidance = guidance
        if self._on_guidance is not None:
            self._on_guidance(guidance)
