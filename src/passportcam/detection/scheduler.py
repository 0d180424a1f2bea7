"""
Frame scheduler for the live preview.

Every tick copies the newest camera frame to the preview surface. Face
detection runs at a lower cadence on a downscaled copy of the frame, on a
worker thread, so a slow model never stalls the preview. Completions are
handed back to the tick thread before they touch any scheduler state.
"""
from __future__ import annotations

import logging
import math
import queue
import time
from concurrent.futures import Executor, Future, ThreadPoolExecutor, wait
from typing import Any, Callable, Optional, Protocol

import cv2
import numpy as np

from passportcam.camera.source import FrameSource
from passportcam.core.config import SchedulerConfig
from passportcam.core.models import DetectionResult, ReadyState
from passportcam.detection.detector import FaceDetector

_log = logging.getLogger(__name__)


class TickDriver(Protocol):
    """Display-refresh signal: runs a callback once at the next opportunity."""

    def request_tick(self, callback: Callable[[], None]) -> Any: ...

    def cancel_tick(self, handle: Any) -> None: ...


class FrameScheduler:
    def __init__(
        self,
        source: Optional[FrameSource],
        detector: FaceDetector,
        tick_driver: TickDriver,
        *,
        render: Optional[Callable[[np.ndarray], None]] = None,
        on_detection: Optional[Callable[[Optional[DetectionResult]], None]] = None,
        on_error: Optional[Callable[[BaseException], None]] = None,
        config: SchedulerConfig = SchedulerConfig(),
        executor: Optional[Executor] = None,
        post: Optional[Callable[[Callable[[], None]], None]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._source = source
        self._detector = detector
        self._tick_driver = tick_driver
        self._render = render
        self._on_detection = on_detection
        self._on_error = on_error
        self._config = config
        self._clock = clock

        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="passportcam-detect")

        # Completions go through `post`; by default they wait in a queue that
        # the next tick drains.
        self._completions: "queue.SimpleQueue[Callable[[], None]]" = queue.SimpleQueue()
        self._post = post or self._completions.put

        self._enabled = False
        self._tick_handle: Any = None
        self._generation = 0
        self._in_flight = False
        self._last_detection_ms = -math.inf
        self._last_result: Optional[DetectionResult] = None
        self._buffer: Optional[np.ndarray] = None
        self._future: Optional[Future] = None

    # ---------- Properties ----------

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def detecting(self) -> bool:
        return self._in_flight

    @property
    def last_result(self) -> Optional[DetectionResult]:
        """Most recently published detection (full-resolution coordinates)."""
        return self._last_result

    @property
    def source(self) -> Optional[FrameSource]:
        return self._source

    @property
    def buffer_shape(self) -> Optional[tuple]:
        return None if self._buffer is None else self._buffer.shape

    # ---------- Lifecycle ----------

    def start(self, source: Optional[FrameSource] = None) -> None:
        if source is not None:
            self._source = source
        if self._enabled:
            return
        self._drain_completions(run=False)
        self._enabled = True
        self._in_flight = False
        self._last_detection_ms = -math.inf
        self._last_result = None
        self._tick_handle = self._tick_driver.request_tick(self.tick)
        _log.debug("Frame scheduler started")

    def stop(self) -> None:
        """
        Stop ticking. A detection still running is left to finish but its
        result is dropped.
        """
        self._enabled = False
        if self._tick_handle is not None:
            self._tick_driver.cancel_tick(self._tick_handle)
            self._tick_handle = None
        self._generation += 1
        self._in_flight = False
        self._buffer = None
        _log.debug("Frame scheduler stopped")

    def detach_source(self) -> None:
        """Forget the frame source (the camera was stopped)."""
        self._source = None

    def close(self) -> None:
        """
        Stop and forget the source. Returns once no detection is running, so
        the detector can be disposed right after.
        """
        future, self._future = self._future, None
        self.stop()
        self.detach_source()
        if future is not None and not future.cancel():
            wait([future])
        if self._owns_executor:
            self._executor.shutdown(wait=True)

    # ---------- Tick ----------

    def tick(self) -> None:
        self._tick_handle = None
        if not self._enabled:
            return
        try:
            self._drain_completions(run=True)
            if self._enabled:
                self._run_tick()
        except Exception as e:
            _log.exception("Frame tick failed")
            self._report_error(e)
        finally:
            if self._enabled and self._tick_handle is None:
                self._tick_handle = self._tick_driver.request_tick(self.tick)

    def _run_tick(self) -> None:
        source = self._source
        if source is None or source.ready_state < ReadyState.HAVE_CURRENT_DATA:
            return
        if source.width <= 0 or source.height <= 0:
            return
        frame = source.read()
        if frame is None or frame.size == 0:
            return

        if self._render is not None:
            self._render(frame)

        if not self._detector.is_initialized:
            return
        now_ms = self._clock() * 1000.0
        if self._in_flight:
            return
        if now_ms - self._last_detection_ms < self._config.throttle_ms:
            return
        self._start_detection(frame, now_ms)

    # ---------- Detection cycle ----------

    def _downscale(self, frame: np.ndarray) -> Optional[np.ndarray]:
        h, w = frame.shape[:2]
        scale = self._config.detection_scale
        target_w, target_h = int(w * scale), int(h * scale)
        if target_w == 0 or target_h == 0:
            return None

        buf = self._buffer
        shape = (target_h, target_w) + frame.shape[2:]
        if buf is None or buf.shape != shape or buf.dtype != frame.dtype:
            buf = np.empty(shape, dtype=frame.dtype)
        self._buffer = cv2.resize(frame, (target_w, target_h), dst=buf, interpolation=cv2.INTER_AREA)
        return self._buffer

    def _start_detection(self, frame: np.ndarray, now_ms: float) -> None:
        small = self._downscale(frame)
        if small is None:
            return

        self._last_detection_ms = now_ms
        self._in_flight = True
        self._generation += 1
        generation = self._generation

        try:
            future = self._executor.submit(self._detector.detect, small)
        except RuntimeError as e:
            self._in_flight = False
            self._report_error(e)
            return

        self._future = future

        def done(f: Future) -> None:
            self._post(lambda: self._finish_detection(generation, f))

        future.add_done_callback(done)

    def _finish_detection(self, generation: int, future: Future) -> None:
        if generation != self._generation or not self._enabled:
            _log.debug("Discarding stale detection result (generation %d)", generation)
            return
        self._in_flight = False

        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            _log.error("Face detection failed: %s", exc)
            self._report_error(exc)
            return

        result: Optional[DetectionResult] = future.result()
        if result is not None:
            result = result.scaled(1.0 / self._config.detection_scale)
        self._publish(result)

    def _publish(self, result: Optional[DetectionResult]) -> None:
        prev_box = self._last_result.bounding_box if self._last_result is not None else None
        new_box = result.bounding_box if result is not None else None
        if new_box == prev_box:
            return
        self._last_result = result
        if self._on_detection is not None:
            self._on_detection(result)

    def _drain_completions(self, run: bool) -> None:
        while True:
            try:
                fn = self._completions.get_nowait()
            except queue.Empty:
                return
            if run:
                fn()

    def _report_error(self, error: BaseException) -> None:
        if self._on_error is not None:
            self._on_error(error)
