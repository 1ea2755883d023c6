"""
Employee enrollment module.

Handles capturing face samples for a new employee, the duplicate-face
guard, and retraining the model whenever the enrolled set changes.
"""

import os
from concurrent.futures import Future
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, List, Optional

import cv2
import numpy as np

from .config import Config
from .errors import DuplicateFaceError, EmployeeNotFoundError, EnrollmentError, FaceCaptureError
from .logging_config import get_logger
from .models import Employee
from .recognition.detector import box_area
from .recognition.preprocessing import augment_face, crop_face, normalize_face
from .recognition.recognizer import Recognition

logger = get_logger(__name__)

PROFILE_PADDING = 0.2


@dataclass(frozen=True)
class DuplicateMatch:
    """An enrolled employee the capture frame already matches."""
    employee: Employee
    confidence: float
    distance: float

    def to_dict(self) -> dict:
        return {
            'employee': self.employee.to_dict(),
            'confidence': round(self.confidence, 1),
            'distance': round(self.distance, 2),
        }


@dataclass
class EnrollmentResult:
    employee: Employee
    sample_paths: List[str]
    profile_photo: Optional[str] = None
    training: Optional[Future] = field(default=None, repr=False)

    def to_dict(self) -> dict:
        return {
            'employee': self.employee.to_dict(),
            'samples': len(self.sample_paths),
            'profilePhoto': self.profile_photo,
        }


class EnrollmentService:
    """Enrolls, renames and deletes employees, keeping the model in sync."""

    def __init__(
        self,
        store: Any,
        recognition: Any,
        config: Config,
        clock: Callable[[], datetime] = datetime.now
    ):
        """
        Args:
            store: Attendance store
            recognition: FaceRecognitionService
            config: Time-clock configuration
            clock: Source of the current time (file names)
        """
        self.store = store
        self.recognition = recognition
        self.config = config
        self.clock = clock
        os.makedirs(config.faces_dir, exist_ok=True)

    def check_duplicate(self, frame: np.ndarray) -> Optional[DuplicateMatch]:
        """
        Run recognition once on the capture frame.

        Returns:
            DuplicateMatch when an enrolled employee matches with confidence
            above duplicate_threshold, else None
        """
        result = self.recognition.recognize(frame)
        if not isinstance(result, Recognition):
            return None
        if result.confidence <= self.config.duplicate_threshold:
            return None

        employee = self.store.get_employee_by_id(result.employee_id)
        if employee is None:
            return None

        logger.warning(
            f'Duplicate face: matches {employee.name} ({employee.code}) '
            f'with {result.confidence:.1f}% confidence'
        )
        return DuplicateMatch(employee, result.confidence, result.distance)

    def enroll(
        self,
        name: str,
        frame: Optional[np.ndarray],
        confirm_duplicate: bool = False
    ) -> EnrollmentResult:
        """
        Enroll a new employee from a capture frame.

        Args:
            name: Display name
            frame: BGR capture frame
            confirm_duplicate: Operator confirmed enrolling despite a match

        Returns:
            EnrollmentResult with a Future for the background retraining

        Raises:
            EnrollmentError: Missing name or frame
            DuplicateFaceError: Frame matches an enrolled employee and the
                operator has not confirmed
            FaceCaptureError: No usable face in the frame
        """
        name = (name or '').strip()
        if not name:
            raise EnrollmentError('Employee name is required')
        if frame is None or frame.size == 0:
            raise EnrollmentError('No capture frame available')

        match = self.check_duplicate(frame)
        if match is not None and not confirm_duplicate:
            raise DuplicateFaceError(match)

        employee_id = self.store.add_employee(name)

        sample_paths = self.capture_samples(frame, employee_id)
        if not sample_paths:
            self.store.delete_employee(employee_id)
            raise FaceCaptureError(
                'Could not capture face. Make sure the face is clearly visible, '
                'close enough to the camera and well lit.'
            )

        for path in sample_paths:
            self.store.add_face_sample(employee_id, path)

        profile_photo = self.capture_profile_photo(frame, employee_id)
        if profile_photo:
            self.store.set_profile_photo(employee_id, profile_photo)

        training = self.recognition.train_in_background()
        employee = self.store.get_employee_by_id(employee_id)

        logger.info(
            f'✅ Employee {employee.code} enrolled: {employee.name} '
            f'({len(sample_paths)} training images)'
        )
        return EnrollmentResult(employee, sample_paths, profile_photo, training)

    def capture_samples(self, frame: np.ndarray, employee_id: int) -> List[str]:
        """
        Save the normalized closest face and its augmentations.

        Returns:
            Paths of the written samples (empty if no usable face)
        """
        box = self.recognition.detect_closest_face(frame)
        if box is None:
            logger.warning(f'No face close enough to capture for employee {employee_id}')
            return []

        normalized = normalize_face(crop_face(frame, box), self.config)
        if normalized is None:
            return []

        stamp = self.clock().strftime('%Y%m%d%H%M%S')
        paths: List[str] = []

        for variant, image in augment_face(normalized, self.config):
            path = os.path.join(self.config.faces_dir, f'emp_{employee_id}_{stamp}_{variant}.png')
            if cv2.imwrite(path, image):
                paths.append(path)
            else:
                logger.warning(f'Failed to write face sample {path}')

        logger.debug(f'Captured {len(paths)} face variations for employee {employee_id}')
        return paths

    def capture_profile_photo(self, frame: np.ndarray, employee_id: int) -> Optional[str]:
        """Save a padded color crop of the largest face for display."""
        boxes = self.recognition.detect_faces(frame)
        if not boxes:
            return None

        face = crop_face(frame, max(boxes, key=box_area), padding=PROFILE_PADDING)
        if face is None:
            return None

        stamp = self.clock().strftime('%Y%m%d%H%M%S')
        path = os.path.join(self.config.faces_dir, f'emp_{employee_id}_profile_{stamp}.jpg')
        if not cv2.imwrite(path, face):
            logger.warning(f'Failed to write profile photo {path}')
            return None
        return path

    def update_employee(self, employee_id: int, name: str) -> Employee:
        name = (name or '').strip()
        if not name:
            raise EnrollmentError('Employee name is required')

        self.store.update_employee(employee_id, name)
        return self.store.get_employee_by_id(employee_id)

    def delete_employee(self, employee_id: int) -> Future:
        """
        Delete an employee with all samples and history, then retrain.

        Raises:
            EmployeeNotFoundError: If the employee does not exist
        """
        if self.store.get_employee_by_id(employee_id) is None:
            raise EmployeeNotFoundError(employee_id)

        self.store.delete_employee(employee_id)
        return self.recognition.train_in_background()
