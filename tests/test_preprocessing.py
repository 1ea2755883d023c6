"""
Unit tests for face normalization and augmentation
"""
import tempfile
import unittest

import numpy as np

from face_timeclock.recognition.preprocessing import (
    adjust_gamma,
    augment_face,
    crop_face,
    flip_horizontal,
    normalize_face,
)
from tests.helpers import make_config, noise_image


class TestNormalizeFace(unittest.TestCase):
    """Test cases for normalize_face"""

    def setUp(self):
        self.config = make_config(tempfile.gettempdir())

    def test_bgr_input(self):
        """Test BGR input becomes a square grayscale image"""
        result = normalize_face(noise_image((80, 60, 3)), self.config)
        self.assertEqual(result.shape, (100, 100))
        self.assertEqual(result.dtype, np.uint8)

    def test_gray_input(self):
        """Test grayscale input is accepted"""
        result = normalize_face(noise_image((150, 150)), self.config)
        self.assertEqual(result.shape, (100, 100))

    def test_empty_input(self):
        """Test None and empty arrays are rejected"""
        self.assertIsNone(normalize_face(None, self.config))
        self.assertIsNone(normalize_face(np.zeros((0, 0), dtype=np.uint8), self.config))

    def test_deterministic(self):
        """Test the same input always normalizes the same way"""
        face = noise_image((90, 90), seed=3)
        np.testing.assert_array_equal(
            normalize_face(face, self.config),
            normalize_face(face.copy(), self.config)
        )


class TestCropFace(unittest.TestCase):
    """Test cases for crop_face"""

    def test_crop(self):
        """Test plain crop returns the box region"""
        frame = noise_image((200, 300, 3))
        face = crop_face(frame, (10, 20, 50, 40))
        self.assertEqual(face.shape, (40, 50, 3))
        np.testing.assert_array_equal(face, frame[20:60, 10:60])

    def test_padding_is_clipped(self):
        """Test padding never leaves the frame"""
        frame = noise_image((100, 100, 3))
        face = crop_face(frame, (0, 0, 50, 50), padding=0.2)
        self.assertEqual(face.shape, (60, 60, 3))

    def test_box_outside_frame(self):
        """Test a box outside the frame yields None"""
        frame = noise_image((100, 100, 3))
        self.assertIsNone(crop_face(frame, (150, 150, 20, 20)))


class TestAugmentation(unittest.TestCase):
    """Test cases for enrollment augmentations"""

    def setUp(self):
        self.config = make_config(tempfile.gettempdir())
        self.face = normalize_face(noise_image((100, 100)), self.config)

    def test_variants_order(self):
        """Test variant names and order"""
        variants = augment_face(self.face, self.config)
        self.assertEqual([name for name, _ in variants], ['orig', 'flip', 'bright', 'dark'])
        np.testing.assert_array_equal(variants[0][1], self.face)
        np.testing.assert_array_equal(variants[1][1], flip_horizontal(self.face))

    def test_gamma_direction(self):
        """Test bright gamma raises and dark gamma lowers mid-gray"""
        gray = np.full((10, 10), 128, dtype=np.uint8)
        self.assertGreater(int(adjust_gamma(gray, 1.3)[0, 0]), 128)
        self.assertLess(int(adjust_gamma(gray, 0.7)[0, 0]), 128)

    def test_flip_twice_is_identity(self):
        """Test horizontal flip is an involution"""
        np.testing.assert_array_equal(flip_horizontal(flip_horizontal(self.face)), self.face)


if __name__ == '__main__':
    unittest.main()
