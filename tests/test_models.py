import unittest
from dataclasses import FrozenInstanceError, replace

from tests._test_path import SRC  # noqa: F401  (ensures src on path)
from tests._fakes import make_detection

from passportcam.core.geometry import round_half_up, tilt_ratio
from passportcam.core.models import BoundingBox, DetectionResult, Landmarks, Point, ReadyState


class TestBoundingBox(unittest.TestCase):
    def test_center(self):
        box = BoundingBox(100, 50, 200, 250)
        self.assertEqual(box.center_x, 200)
        self.assertEqual(box.center_y, 175)

    def test_negative_values_rejected(self):
        with self.assertRaises(ValueError):
            BoundingBox(-1, 0, 10, 10)
        with self.assertRaises(ValueError):
            BoundingBox(0, 0, 10, -10)

    def test_frozen(self):
        box = BoundingBox(0, 0, 10, 10)
        with self.assertRaises(FrozenInstanceError):
            box.x = 5  # type: ignore[misc]

    def test_value_equality(self):
        self.assertEqual(BoundingBox(1, 2, 3, 4), BoundingBox(1.0, 2.0, 3.0, 4.0))
        self.assertNotEqual(BoundingBox(1, 2, 3, 4), BoundingBox(1, 2, 3, 5))


class TestDetectionResult(unittest.TestCase):
    def test_scale_down_and_back(self):
        det = make_detection(100, 50, 200, 250)
        back = det.scaled(0.25).scaled(4.0)

        box = back.bounding_box
        self.assertLessEqual(abs(box.x - 100), 1)
        self.assertLessEqual(abs(box.y - 50), 1)
        self.assertLessEqual(abs(box.width - 200), 1)
        self.assertLessEqual(abs(box.height - 250), 1)
        self.assertEqual(back.confidence, det.confidence)

    def test_confidence_range(self):
        det = make_detection()
        with self.assertRaises(ValueError):
            replace(det, confidence=1.5)
        with self.assertRaises(ValueError):
            replace(det, confidence=-0.1)

    def test_landmark_set_is_complete(self):
        p = Point(1, 1)
        with self.assertRaises(ValueError):
            Landmarks(left_eye=p, right_eye=p, nose=p, mouth=p, chin=None)  # type: ignore[arg-type]

    def test_frozen(self):
        det = make_detection()
        with self.assertRaises(FrozenInstanceError):
            det.confidence = 0.5  # type: ignore[misc]
        self.assertIsInstance(det, DetectionResult)


class TestGeometry(unittest.TestCase):
    def _landmarks(self, left, right):
        p = Point(0, 0)
        return Landmarks(left_eye=left, right_eye=right, nose=p, mouth=p, chin=p)

    def test_tilt_ratio(self):
        self.assertAlmostEqual(tilt_ratio(self._landmarks(Point(400, 300), Point(600, 302))), 0.01)
        self.assertEqual(tilt_ratio(self._landmarks(Point(5, 5), Point(5, 5))), 0.0)
        self.assertEqual(tilt_ratio(self._landmarks(Point(5, 5), Point(5, 9))), float("inf"))

    def test_round_half_up(self):
        self.assertEqual(round_half_up(62.5), 63)
        self.assertEqual(round_half_up(37.5), 38)
        self.assertEqual(round_half_up(80.0), 80)

    def test_ready_state_order(self):
        self.assertLess(ReadyState.HAVE_METADATA, ReadyState.HAVE_CURRENT_DATA)
        self.assertGreaterEqual(ReadyState.HAVE_ENOUGH_DATA, ReadyState.HAVE_CURRENT_DATA)
