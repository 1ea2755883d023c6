"""
Face detection module.

Locates faces with an OpenCV Haar cascade and classifies them by proximity:
- Closest face: size and frame-area ratio gate (used for enrollment capture)
- Optimal-distance faces: pinhole distance estimate (used for recognition)
"""

import math
import os
from typing import List, Optional, Sequence, Tuple

import cv2
import numpy as np

from ..config import Config
from ..errors import DetectorUnavailableError
from ..logging_config import get_logger

logger = get_logger(__name__)

# (x, y, w, h)
Box = Tuple[int, int, int, int]

DEFAULT_CASCADE = 'haarcascade_frontalface_default.xml'


def box_area(box: Box) -> int:
    return box[2] * box[3]


def estimate_distance_inches(
    box_width: float,
    average_face_width_inches: float,
    focal_length: float
) -> float:
    """
    Estimate camera-to-face distance with the pinhole relation.

    Args:
        box_width: Face box width in pixels
        average_face_width_inches: Assumed physical face width
        focal_length: Camera focal length constant (pixels)

    Returns:
        Distance in inches, or infinity for a non-positive width
    """
    if box_width <= 0:
        return math.inf
    return (average_face_width_inches * focal_length) / box_width


def is_face_close_enough(
    box: Box,
    frame_width: int,
    frame_height: int,
    min_face_size: int,
    min_area_ratio: float
) -> bool:
    """Size and area-ratio gate for a face box."""
    _, _, w, h = box
    if w < min_face_size or h < min_face_size:
        return False

    frame_area = frame_width * frame_height
    if frame_area <= 0:
        return False

    return (w * h) / frame_area >= min_area_ratio


def select_closest_face(
    boxes: Sequence[Box],
    frame_width: int,
    frame_height: int,
    min_face_size: int,
    min_area_ratio: float
) -> Optional[Box]:
    """
    Pick the largest face that passes the proximity gate.

    Returns:
        Box or None if no face is close enough
    """
    for box in sorted(boxes, key=box_area, reverse=True):
        if is_face_close_enough(box, frame_width, frame_height, min_face_size, min_area_ratio):
            return box
    return None


class FaceDetector:
    """
    Haar cascade face detector with proximity queries.

    Detection errors never propagate: a bad frame or a cascade failure
    yields an empty result so the frame loop keeps running.
    """

    def __init__(self, config: Config, allow_degraded: bool = False):
        """
        Load the cascade.

        Args:
            config: Time-clock configuration
            allow_degraded: Keep running with detection disabled when the
                cascade cannot be loaded instead of raising

        Raises:
            DetectorUnavailableError: If the cascade is missing or invalid
                and allow_degraded is False
        """
        self.config = config
        self._cascade: Optional[cv2.CascadeClassifier] = None

        cascade_path = config.cascade_path or os.path.join(cv2.data.haarcascades, DEFAULT_CASCADE)

        try:
            self._cascade = self._load_cascade(cascade_path)
            logger.info(f'Cascade classifier loaded from {cascade_path}')
        except DetectorUnavailableError as e:
            if not allow_degraded:
                raise
            logger.warning(f'Face detection DISABLED (degraded mode): {e}')

    @staticmethod
    def _load_cascade(path: str) -> cv2.CascadeClassifier:
        if not os.path.exists(path):
            raise DetectorUnavailableError(f'Haar cascade file not found at: {path}')

        cascade = cv2.CascadeClassifier(path)
        if cascade.empty():
            raise DetectorUnavailableError(f'Failed to load Haar cascade from: {path}')
        return cascade

    @property
    def is_available(self) -> bool:
        return self._cascade is not None

    def detect(self, frame: Optional[np.ndarray]) -> List[Box]:
        """
        Detect all faces in a BGR (or grayscale) frame.

        Args:
            frame: Input frame

        Returns:
            List of (x, y, w, h) boxes, empty on any failure
        """
        if self._cascade is None:
            return []

        if frame is None or frame.size == 0:
            logger.debug('Frame is empty, skipping detection')
            return []

        try:
            if frame.ndim == 3:
                gray = cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)
            else:
                gray = frame
            gray = cv2.equalizeHist(gray)

            frame_height, frame_width = gray.shape[:2]
            min_size = max(self.config.min_face_size_detection, 20)
            max_size = min(self.config.max_face_size, max(frame_width, frame_height))

            if min_size >= max_size:
                logger.debug(f'Invalid size bounds: min={min_size}, max={max_size}')
                return []

            faces = self._cascade.detectMultiScale(
                gray,
                scaleFactor=self.config.scale_factor,
                minNeighbors=self.config.min_neighbors,
                minSize=(min_size, min_size),
                maxSize=(max_size, max_size)
            )
        except Exception as e:
            logger.debug(f'Face detection failed: {e}')
            return []

        return [tuple(int(v) for v in face) for face in faces]

    def estimate_distance(self, box: Box) -> float:
        """Estimated distance to the face in inches."""
        return estimate_distance_inches(
            box[2],
            self.config.average_face_width_inches,
            self.config.focal_length
        )

    def is_at_optimal_distance(self, box: Box) -> bool:
        distance = self.estimate_distance(box)
        return self.config.min_distance_inches <= distance <= self.config.max_distance_inches

    def detect_closest_face(self, frame: np.ndarray) -> Optional[Box]:
        """Largest face that is big enough relative to the frame."""
        boxes = self.detect(frame)
        if not boxes:
            return None

        frame_height, frame_width = frame.shape[:2]
        return select_closest_face(
            boxes,
            frame_width,
            frame_height,
            self.config.min_face_size_recognition,
            self.config.min_face_area_ratio
        )

    def detect_close_faces(self, frame: np.ndarray) -> List[Box]:
        """All faces passing the proximity gate, largest first."""
        boxes = self.detect(frame)
        if not boxes:
            return []

        frame_height, frame_width = frame.shape[:2]
        close = [
            box for box in boxes
            if is_face_close_enough(
                box,
                frame_width,
                frame_height,
                self.config.min_face_size_recognition,
                self.config.min_face_area_ratio
            )
        ]
        return sorted(close, key=box_area, reverse=True)

    def detect_at_optimal_distance(self, frame: np.ndarray) -> List[Box]:
        """
        Faces inside the configured distance range, largest first.

        This is the gate used for recognition.
        """
        optimal = [box for box in self.detect(frame) if self.is_at_optimal_distance(box)]

        for box in optimal:
            logger.debug(f'Face {box} at {self.estimate_distance(box):.1f} inches')

        return sorted(optimal, key=box_area, reverse=True)
