import unittest

from tests._test_path import SRC  # noqa: F401
from tests._fakes import make_detection

from passportcam.core.config import GuidanceThresholds
from passportcam.core.models import GuidanceState, Point, Severity
from passportcam.guidance.engine import (
    INITIALIZING_GUIDANCE,
    MSG_ALMOST,
    MSG_MOVE_CLOSER,
    MSG_MOVE_DOWN,
    MSG_MOVE_LEFT,
    MSG_MOVE_RIGHT,
    MSG_MOVE_UP,
    MSG_NO_FACE,
    MSG_OPTIMAL,
    MSG_STEP_BACK,
    MSG_TILT_LEFT,
    MSG_TILT_RIGHT,
    compute_guidance,
)

W, H = 1280, 720


def centered(height, width=None, center_x=640.0, center_y=324.0, left_eye=None, right_eye=None):
    """Detection whose box is centered on (center_x, center_y) of a 1280x720 frame."""
    width = width if width is not None else height * 0.75
    return make_detection(
        x=center_x - width / 2.0,
        y=center_y - height / 2.0,
        width=width,
        height=height,
        left_eye=left_eye,
        right_eye=right_eye,
    )


class TestGuidanceSize(unittest.TestCase):
    def test_height_inside_hysteresis_zone_does_not_ask_to_move_closer(self):
        state = compute_guidance(W, H, centered(300))
        self.assertNotEqual(state.message, MSG_MOVE_CLOSER)
        self.assertEqual(state.message, MSG_ALMOST)
        self.assertFalse(state.is_optimal)

    def test_small_face_asks_to_move_closer(self):
        state = compute_guidance(W, H, centered(250))
        self.assertEqual(state.message, MSG_MOVE_CLOSER)
        self.assertEqual(state.severity, Severity.WARNING)

    def test_large_face_asks_to_step_back(self):
        state = compute_guidance(W, H, centered(600, center_y=340))
        self.assertEqual(state.message, MSG_STEP_BACK)
        self.assertEqual(state.severity, Severity.WARNING)

    def test_size_outranks_position(self):
        det = make_detection(x=0, y=0, width=200, height=250)
        self.assertEqual(compute_guidance(W, H, det).message, MSG_MOVE_CLOSER)


class TestGuidancePosition(unittest.TestCase):
    def test_face_left_of_center_moves_right(self):
        state = compute_guidance(W, H, centered(400, center_x=390))
        self.assertEqual(state.message, MSG_MOVE_RIGHT)

    def test_face_right_of_center_moves_left(self):
        state = compute_guidance(W, H, centered(400, center_x=900))
        self.assertEqual(state.message, MSG_MOVE_LEFT)

    def test_face_high_moves_down(self):
        state = compute_guidance(W, H, centered(300, center_y=200))
        self.assertEqual(state.message, MSG_MOVE_DOWN)

    def test_face_low_moves_up(self):
        state = compute_guidance(W, H, centered(300, center_y=450))
        self.assertEqual(state.message, MSG_MOVE_UP)

    def test_horizontal_outranks_vertical(self):
        state = compute_guidance(W, H, centered(300, center_x=390, center_y=450))
        self.assertEqual(state.message, MSG_MOVE_RIGHT)


class TestGuidanceTilt(unittest.TestCase):
    def test_nearly_level_eyes_are_optimal(self):
        det = centered(400, left_eye=Point(400, 300), right_eye=Point(600, 302))
        state = compute_guidance(W, H, det)
        self.assertEqual(state.message, MSG_OPTIMAL)
        self.assertEqual(state.severity, Severity.SUCCESS)
        self.assertTrue(state.is_optimal)

    def test_left_eye_higher_tilts_right(self):
        det = centered(400, left_eye=Point(400, 280), right_eye=Point(600, 320))
        self.assertEqual(compute_guidance(W, H, det).message, MSG_TILT_RIGHT)

    def test_right_eye_higher_tilts_left(self):
        det = centered(400, left_eye=Point(400, 320), right_eye=Point(600, 280))
        self.assertEqual(compute_guidance(W, H, det).message, MSG_TILT_LEFT)

    def test_slight_tilt_is_almost_there(self):
        det = centered(400, left_eye=Point(400, 293), right_eye=Point(600, 307))
        state = compute_guidance(W, H, det)
        self.assertEqual(state.message, MSG_ALMOST)
        self.assertEqual(state.severity, Severity.INFO)

    def test_vertically_stacked_eyes_count_as_tilted(self):
        det = centered(400, left_eye=Point(500, 280), right_eye=Point(500, 320))
        self.assertEqual(compute_guidance(W, H, det).message, MSG_TILT_RIGHT)


class TestGuidanceStates(unittest.TestCase):
    def test_zero_dimensions_are_initializing(self):
        self.assertEqual(compute_guidance(0, 0, None), INITIALIZING_GUIDANCE)
        self.assertEqual(compute_guidance(0, 720, centered(400)), INITIALIZING_GUIDANCE)

    def test_no_detection_uses_no_face_state(self):
        state = compute_guidance(W, H, None)
        self.assertEqual(state.message, MSG_NO_FACE)
        self.assertEqual(state.severity, Severity.INFO)
        self.assertFalse(state.is_optimal)

    def test_caller_supplied_no_face_state(self):
        custom = GuidanceState("Looking for you...", Severity.INFO)
        self.assertIs(compute_guidance(W, H, None, no_face=custom), custom)

    def test_same_inputs_same_output(self):
        det = centered(380)
        self.assertEqual(compute_guidance(W, H, det), compute_guidance(W, H, det))

    def test_custom_thresholds(self):
        thresholds = GuidanceThresholds(ideal_height_min=0.3, ideal_height_max=0.4)
        det = centered(250, left_eye=Point(400, 300), right_eye=Point(600, 300))
        self.assertEqual(compute_guidance(W, H, det, thresholds=thresholds).message, MSG_OPTIMAL)


if __name__ == "__main__":
    unittest.main()
