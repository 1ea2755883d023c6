"""
Unit tests for face detection and proximity gating
"""
import math
import unittest
from dataclasses import replace
from unittest import mock

import numpy as np

from face_timeclock.errors import DetectorUnavailableError
from face_timeclock.recognition.detector import (
    FaceDetector,
    estimate_distance_inches,
    is_face_close_enough,
    select_closest_face,
)
from tests.helpers import TempDirTestCase, make_config


class TestDistanceEstimate(unittest.TestCase):
    """Test cases for the pinhole distance estimate"""

    def test_known_width(self):
        """Test a 100 px face is 27.5 inches away"""
        self.assertAlmostEqual(estimate_distance_inches(100, 5.5, 500.0), 27.5)

    def test_inverse_relation(self):
        """Test distance halves when width doubles"""
        near = estimate_distance_inches(200, 5.5, 500.0)
        far = estimate_distance_inches(100, 5.5, 500.0)
        self.assertAlmostEqual(far, near * 2)

    def test_non_positive_width(self):
        """Test zero or negative width is infinitely far"""
        self.assertTrue(math.isinf(estimate_distance_inches(0, 5.5, 500.0)))
        self.assertTrue(math.isinf(estimate_distance_inches(-3, 5.5, 500.0)))


class TestClosestFace(unittest.TestCase):
    """Test cases for the closest-face gate"""

    def test_too_small(self):
        """Test faces under the minimum side are rejected"""
        self.assertFalse(is_face_close_enough((0, 0, 59, 80), 640, 480, 60, 0.008))

    def test_area_ratio(self):
        """Test faces under the area ratio are rejected"""
        # 60x60 / (1920x1080) is below 0.008
        self.assertFalse(is_face_close_enough((0, 0, 60, 60), 1920, 1080, 60, 0.008))
        self.assertTrue(is_face_close_enough((0, 0, 60, 60), 640, 480, 60, 0.008))

    def test_selects_largest_passing(self):
        """Test the largest face that passes is selected"""
        boxes = [(0, 0, 30, 30), (10, 10, 120, 120), (5, 5, 80, 80)]
        self.assertEqual(select_closest_face(boxes, 640, 480, 60, 0.008), (10, 10, 120, 120))

    def test_none_pass(self):
        """Test None when no face passes"""
        self.assertIsNone(select_closest_face([(0, 0, 20, 20)], 640, 480, 60, 0.008))


class TestFaceDetector(TempDirTestCase, unittest.TestCase):
    """Test cases for FaceDetector"""

    def setUp(self):
        super().setUp()
        self.config = make_config(self.tmpdir)

    def test_missing_cascade_raises(self):
        """Test a missing cascade file is a fatal error"""
        config = replace(self.config, cascade_path=f'{self.tmpdir}/missing.xml')
        with self.assertRaises(DetectorUnavailableError):
            FaceDetector(config)

    def test_degraded_mode(self):
        """Test degraded mode disables detection instead of raising"""
        config = replace(self.config, cascade_path=f'{self.tmpdir}/missing.xml')
        detector = FaceDetector(config, allow_degraded=True)
        self.assertFalse(detector.is_available)
        self.assertEqual(detector.detect(np.zeros((240, 320, 3), dtype=np.uint8)), [])

    def test_bundled_cascade(self):
        """Test the bundled cascade loads and finds nothing in a blank frame"""
        detector = FaceDetector(self.config)
        self.assertTrue(detector.is_available)
        self.assertEqual(detector.detect(np.zeros((240, 320, 3), dtype=np.uint8)), [])

    def test_invalid_frames(self):
        """Test None and empty frames yield no faces"""
        detector = FaceDetector(self.config)
        self.assertEqual(detector.detect(None), [])
        self.assertEqual(detector.detect(np.zeros((0, 0, 3), dtype=np.uint8)), [])

    def test_optimal_distance_filter(self):
        """Test only faces between 5 and 35 inches are kept, largest first"""
        detector = FaceDetector(self.config)
        boxes = [
            (0, 0, 50, 50),     # 55 in
            (0, 0, 100, 100),   # 27.5 in
            (0, 0, 300, 300),   # 9.2 in
            (0, 0, 600, 600),   # 4.6 in
        ]
        frame = np.zeros((720, 1280, 3), dtype=np.uint8)
        with mock.patch.object(detector, 'detect', return_value=boxes):
            result = detector.detect_at_optimal_distance(frame)

        self.assertEqual(result, [(0, 0, 300, 300), (0, 0, 100, 100)])

    def test_close_faces_sorted(self):
        """Test close faces are sorted by area"""
        detector = FaceDetector(self.config)
        boxes = [(0, 0, 70, 70), (0, 0, 40, 40), (0, 0, 150, 150)]
        frame = np.zeros((480, 640, 3), dtype=np.uint8)
        with mock.patch.object(detector, 'detect', return_value=boxes):
            self.assertEqual(
                detector.detect_close_faces(frame),
                [(0, 0, 150, 150), (0, 0, 70, 70)]
            )
            self.assertEqual(detector.detect_closest_face(frame), (0, 0, 150, 150))


if __name__ == '__main__':
    unittest.main()
