"""
Exception hierarchy for the face time-clock.

Only conditions the caller has to act on are exceptions. Normal outcomes
such as an unknown face, an untrained model or an attendance field that is
already recorded are returned as values.
"""

from typing import Any


class TimeClockError(Exception):
    """Base class for time-clock errors."""


class DetectorUnavailableError(TimeClockError):
    """The face detector resource could not be loaded."""


class CameraError(TimeClockError):
    """No camera could be opened."""


class EmployeeNotFoundError(TimeClockError):
    """The referenced employee does not exist."""

    def __init__(self, employee_id: int):
        super().__init__(f'Employee {employee_id} not found')
        self.employee_id = employee_id


class EnrollmentError(TimeClockError):
    """Enrollment could not be completed."""


class FaceCaptureError(EnrollmentError):
    """No usable face was found in the capture frame."""


class DuplicateFaceError(EnrollmentError):
    """
    The capture frame matches an already enrolled employee.

    The operator has to confirm before enrollment may proceed.
    """

    def __init__(self, match: Any):
        super().__init__(
            f'Face already registered to {match.employee.name} '
            f'({match.employee.code}), confidence {match.confidence:.1f}%'
        )
        self.match = match


class InvalidChoiceError(TimeClockError):
    """An operator action choice was submitted that is not pending."""
