"""
Face recognition module.

Classifies the best face at optimal distance against the current trained
model. LBPH reports a distance: lower is a better match. A distance at or
above unknown_threshold means the face is unknown; otherwise

    confidence = max(0, 100 - distance)
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Union

import numpy as np

from ..config import Config
from ..logging_config import get_logger
from .detector import Box
from .preprocessing import crop_face, normalize_face
from .trainer import ModelHolder

logger = get_logger(__name__)


class NoMatchReason(Enum):
    UNTRAINED = 'untrained'
    NO_FACE = 'no_face'
    INVALID_FACE = 'invalid_face'
    UNKNOWN_FACE = 'unknown_face'
    ERROR = 'error'


@dataclass(frozen=True)
class Recognition:
    employee_id: int
    confidence: float
    distance: float
    distance_inches: Optional[float] = None
    box: Optional[Box] = None


@dataclass(frozen=True)
class NoMatch:
    reason: NoMatchReason
    distance: Optional[float] = None
    box: Optional[Box] = None

    @property
    def face_present(self) -> bool:
        return self.reason not in (NoMatchReason.NO_FACE, NoMatchReason.UNTRAINED)


RecognitionResult = Union[Recognition, NoMatch]


def distance_to_confidence(distance: float) -> float:
    return max(0.0, 100.0 - distance)


class Recognizer:
    """
    Recognizes employees in frames.

    Safe to call from several sessions at once: each call reads one model
    snapshot from the holder and never mutates it.
    """

    def __init__(self, detector: Any, holder: ModelHolder, config: Config):
        """
        Args:
            detector: FaceDetector (or any object with the same queries)
            holder: Model holder with the current trained model
            config: Time-clock configuration
        """
        self.detector = detector
        self.holder = holder
        self.config = config

    def recognize(self, frame: np.ndarray) -> RecognitionResult:
        """
        Recognize the largest face at optimal distance.

        Args:
            frame: BGR frame

        Returns:
            Recognition or NoMatch, never raises for bad input
        """
        if not self.holder.is_trained:
            return NoMatch(NoMatchReason.UNTRAINED)

        faces = self.detector.detect_at_optimal_distance(frame)
        if not faces:
            return NoMatch(NoMatchReason.NO_FACE)

        box = faces[0]
        face = crop_face(frame, box)
        result = self.classify_face(face)

        if isinstance(result, Recognition):
            return Recognition(
                employee_id=result.employee_id,
                confidence=result.confidence,
                distance=result.distance,
                distance_inches=self.detector.estimate_distance(box),
                box=box,
            )
        return NoMatch(result.reason, result.distance, box)

    def classify_face(self, face: Optional[np.ndarray]) -> RecognitionResult:
        """
        Classify an already cropped face region.

        Args:
            face: Face image (grayscale or BGR)

        Returns:
            Recognition or NoMatch
        """
        model = self.holder.current
        if model is None:
            return NoMatch(NoMatchReason.UNTRAINED)

        normalized = normalize_face(face, self.config)
        if normalized is None:
            return NoMatch(NoMatchReason.INVALID_FACE)

        try:
            label, distance = model.classifier.predict(normalized)
        except Exception as e:
            logger.error(f'Recognition error: {e}')
            return NoMatch(NoMatchReason.ERROR)

        label = int(label)
        distance = float(distance)
        logger.debug(f'Recognition - label: {label}, distance: {distance:.2f}')

        employee_id = model.label_to_employee.get(label)
        if label < 0 or distance >= self.config.unknown_threshold or employee_id is None:
            logger.debug(
                f'Unknown face (distance {distance:.2f}, '
                f'threshold {self.config.unknown_threshold})'
            )
            return NoMatch(NoMatchReason.UNKNOWN_FACE, distance)

        return Recognition(
            employee_id=employee_id,
            confidence=distance_to_confidence(distance),
            distance=distance,
        )
