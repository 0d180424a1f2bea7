import unittest

import numpy as np

from tests._test_path import SRC  # noqa: F401
from tests._fakes import (
    FakeClock,
    FakeSource,
    ImmediateExecutor,
    ManualTickDriver,
    SlowFaceMesh,
    StubDetector,
    make_detection,
)

from passportcam.app.session import CaptureSession
from passportcam.core.errors import ModelLoadError
from passportcam.core.models import Point, WorkflowState
from passportcam.detection.detector import FaceDetector
from passportcam.guidance.engine import INITIALIZING_GUIDANCE, MSG_NO_FACE, MSG_OPTIMAL
from passportcam.validation.compliance import NO_FACE_REASON


def optimal_detection():
    """Well-posed face in a 1280x720 frame."""
    return make_detection(490, 124, 300, 400, left_eye=Point(400, 300), right_eye=Point(600, 302))


class BrokenDetector(StubDetector):
    def initialize(self):
        raise ModelLoadError("no model")


class TestCaptureSession(unittest.TestCase):
    def _session(self, detector=None, results=None):
        self.driver = ManualTickDriver()
        self.detector = detector or StubDetector(results=results)
        self.frames = []
        self.guidance = []
        self.errors = []
        return CaptureSession(
            FakeSource(),
            self.driver,
            detector=self.detector,
            executor=ImmediateExecutor(),
            post=lambda fn: fn(),
            on_frame=lambda f: self.frames.append(f.shape),
            on_guidance=self.guidance.append,
            on_error=self.errors.append,
            clock=FakeClock(),
        )

    def test_open_initializes_and_starts_preview(self):
        session = self._session()
        self.assertTrue(session.open())
        self.assertTrue(self.detector.initialized)
        self.assertTrue(session.scheduler.enabled)
        self.assertIsNotNone(self.driver.pending)
        self.assertEqual(session.guidance, INITIALIZING_GUIDANCE)
        self.assertFalse(session.can_capture)

    def test_model_failure_keeps_preview_and_capture(self):
        session = self._session(detector=BrokenDetector())
        self.assertFalse(session.open())
        self.assertEqual(len(self.errors), 1)
        self.assertIsInstance(self.errors[0], ModelLoadError)
        self.assertTrue(session.scheduler.enabled)

        self.driver.fire(3)
        self.assertEqual(len(self.frames), 3)
        self.assertEqual(self.detector.calls, [])
        self.assertEqual(len(self.errors), 1)
        self.assertEqual([g.message for g in self.guidance], [MSG_NO_FACE])
        self.assertTrue(session.can_capture)

        result = session.capture()
        self.assertEqual(result.score, 0)
        self.assertEqual(result.reasons, [NO_FACE_REASON])
        self.assertEqual(session.state, WorkflowState.REVIEW)

    def test_first_frame_without_face_shows_no_face(self):
        session = self._session()
        session.open()
        self.driver.fire()

        self.assertEqual(self.frames, [(720, 1280, 3)])
        self.assertEqual(session.frame_size, (1280, 720))
        self.assertEqual([g.message for g in self.guidance], [MSG_NO_FACE])
        self.assertTrue(session.can_capture)

    def test_detection_updates_guidance_once(self):
        small = optimal_detection().scaled(0.25)
        session = self._session(results=[small, small])
        session.open()
        self.driver.fire(3)

        self.assertEqual([g.message for g in self.guidance], [MSG_NO_FACE, MSG_OPTIMAL])
        self.assertTrue(session.guidance.is_optimal)
        self.assertEqual(session.detection.bounding_box, optimal_detection().bounding_box)

    def test_capture_and_retake(self):
        session = self._session(results=[optimal_detection().scaled(0.25)])
        session.open()
        self.driver.fire()

        result = session.capture()
        self.assertEqual(session.state, WorkflowState.REVIEW)
        self.assertEqual(result.score, 100)
        self.assertFalse(session.scheduler.enabled)
        self.assertIsNone(self.driver.pending)
        self.assertFalse(session.can_capture)

        session.retake()
        self.assertEqual(session.state, WorkflowState.CAPTURE)
        self.assertIsNone(session.detection)
        self.assertIsNone(session.frame)
        self.assertEqual(session.guidance, INITIALIZING_GUIDANCE)
        self.assertTrue(session.scheduler.enabled)

    def test_accept_and_start_over(self):
        session = self._session()
        session.open()
        self.driver.fire()
        session.capture()

        data = session.accept()
        self.assertTrue(data.startswith(b"\xff\xd8"))
        self.assertEqual(session.state, WorkflowState.EXPORT)

        session.start_over()
        self.assertEqual(session.state, WorkflowState.CAPTURE)
        self.assertTrue(session.scheduler.enabled)

    def test_captured_frame_is_independent_of_preview(self):
        session = self._session()
        session.open()
        self.driver.fire()
        session.capture()

        self.assertIsInstance(session.frame, np.ndarray)
        self.assertEqual(session.workflow.captured.width, 1280)

    def test_close_releases_detector(self):
        session = self._session()
        session.open()
        session.close()

        self.assertTrue(self.detector.disposed)
        self.assertFalse(session.scheduler.enabled)
        self.assertIsNone(session.scheduler.source)
        self.assertIsNone(session.frame)

    def test_close_waits_for_running_detection(self):
        mesh = SlowFaceMesh(delay=0.2)
        driver = ManualTickDriver()
        session = CaptureSession(
            FakeSource(),
            driver,
            detector=FaceDetector(model_factory=lambda: mesh),
            clock=FakeClock(),
        )
        self.assertTrue(session.open())
        driver.fire()
        self.assertTrue(mesh.started.wait(2))

        session.close()

        self.assertEqual(mesh.calls, 1)
        self.assertTrue(mesh.closed)
        self.assertFalse(mesh.used_after_close)
        self.assertFalse(session.detector.is_initialized)

    def test_failed_export_can_be_retried(self):
        session = self._session()
        session.open()
        self.driver.fire()
        session.capture()
        finalize = session.workflow._finalizer

        def broken(_photo, _config):
            raise OSError("disk full")

        session.workflow._finalizer = broken
        with self.assertRaises(OSError):
            session.accept()
        self.assertEqual(session.state, WorkflowState.REVIEW)

        session.workflow._finalizer = finalize
        self.assertTrue(session.accept().startswith(b"\xff\xd8"))
        self.assertEqual(session.state, WorkflowState.EXPORT)


if __name__ == "__main__":
    unittest.main()
