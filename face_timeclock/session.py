"""
Kiosk session module.

Orchestrates one camera's recognition pipeline:
- Camera acquisition on a background thread
- Per-frame recognition and stability debouncing
- Attendance decision and logging
- Operator choices and display timeout
- Annotated frames for the video stream
"""

import threading
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, List, Optional, Tuple

import cv2
import numpy as np

from .attendance.policy import AttendancePeriod, AttendancePolicy
from .camera import CaptureFactory, open_camera
from .config import Config
from .errors import CameraError, InvalidChoiceError
from .events import send_attendance_event
from .logging_config import get_logger
from .models import AttendanceAction, Employee, employee_code
from .recognition.detector import Box
from .recognition.recognizer import NoMatch, NoMatchReason, Recognition, RecognitionResult
from .recognition.stability import StabilityTracker
from .streaming import FrameStream

logger = get_logger(__name__)

MAX_READ_FAILURES = 10
GREEN = (0, 255, 0)
RED = (0, 0, 255)
ORANGE = (0, 165, 255)
WHITE = (255, 255, 255)
BLACK = (0, 0, 0)


class SessionState(Enum):
    IDLE = 'idle'
    SCANNING = 'scanning'
    VERIFYING = 'verifying'
    RESOLVED = 'resolved'
    STANDBY = 'standby'


@dataclass(frozen=True)
class Resolution:
    """A stable identity and what was (or may be) recorded for it."""
    employee: Employee
    confidence: float
    period: AttendancePeriod
    resolved_at: datetime
    message: str = ''
    choices: Tuple[AttendanceAction, ...] = field(default_factory=tuple)
    recorded: Optional[AttendanceAction] = None
    success: bool = False
    box: Optional[Box] = None

    @property
    def pending_choice(self) -> bool:
        return bool(self.choices)

    def to_dict(self) -> dict:
        return {
            'employee': self.employee.to_dict(),
            'confidence': round(self.confidence, 1),
            'period': self.period.value,
            'resolvedAt': self.resolved_at.isoformat(timespec='seconds'),
            'message': self.message,
            'choices': [c.value for c in self.choices],
            'recorded': self.recorded.value if self.recorded else None,
            'success': self.success,
        }


class KioskSession:
    """
    Recognition session of one camera.

    Frames are processed one at a time under the session lock, whether they
    come from the camera thread or are fed directly through process_frame().
    """

    def __init__(
        self,
        config: Config,
        store: Any,
        recognition: Any,
        policy: Optional[AttendancePolicy] = None,
        stream: Optional[FrameStream] = None,
        clock: Callable[[], datetime] = datetime.now,
        capture_factory: CaptureFactory = cv2.VideoCapture
    ):
        """
        Args:
            config: Time-clock configuration
            store: Attendance store
            recognition: FaceRecognitionService shared with enrollment
            policy: Attendance policy
            stream: Frame buffer for the video feed
            clock: Source of the current local time
            capture_factory: VideoCapture constructor
        """
        self.config = config
        self.store = store
        self.recognition = recognition
        self.policy = policy or AttendancePolicy()
        self.stream = stream or FrameStream()
        self.clock = clock
        self.capture_factory = capture_factory

        self.tracker = StabilityTracker(config.stability_window)

        self._lock = threading.RLock()
        self._state = SessionState.IDLE
        self._resolution: Optional[Resolution] = None
        self._display_until: Optional[datetime] = None
        self._no_face_frames = 0
        self._last_result: Optional[RecognitionResult] = None
        self._visible_faces: List[Box] = []
        self._last_frame: Optional[np.ndarray] = None

        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._ready = threading.Event()
        self._start_error: Optional[CameraError] = None

        self.recognition.subscribe(self._on_model_retrained)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> bool:
        """
        Open the camera and start the frame loop.

        Returns:
            True if the session is running, False if no camera could be opened
        """
        if self.is_running:
            return True

        self._stop_event.clear()
        self._ready.clear()
        self._start_error = None

        self._thread = threading.Thread(
            target=self._run,
            name=f'session-{self.config.session_id}',
            daemon=True
        )
        self._thread.start()
        self._ready.wait()

        if self._start_error is not None:
            self._thread.join()
            self._thread = None
            return False

        logger.info('🎬 Session started')
        return True

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the frame loop and release the camera."""
        self._stop_event.set()

        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self._thread = None

        with self._lock:
            self._reset()
            self._state = SessionState.IDLE

    def close(self) -> None:
        """Stop and detach from the recognition service."""
        self.stop()
        self.recognition.unsubscribe(self._on_model_retrained)

    def _run(self) -> None:
        try:
            with open_camera(self.config, self.capture_factory) as capture:
                with self._lock:
                    self._state = SessionState.SCANNING
                self._ready.set()
                self._loop(capture)
        except Exception as e:
            if self._ready.is_set():
                logger.exception(f'❌ Session loop failed: {e}')
            else:
                logger.error(f'❌ Cannot start session: {e}')
                self._start_error = e if isinstance(e, CameraError) else CameraError(str(e))
        finally:
            with self._lock:
                self._reset()
                self._state = SessionState.IDLE
            self.stream.clear()
            self._ready.set()
            logger.info('Session stopped')

    def _loop(self, capture: Any) -> None:
        consecutive_failures = 0

        while not self._stop_event.is_set():
            try:
                ret, frame = capture.read()
            except Exception as e:
                logger.warning(f'Frame read error: {e}')
                ret, frame = False, None

            if not ret or frame is None:
                consecutive_failures += 1
                logger.warning(f'Failed to read frame ({consecutive_failures}/{MAX_READ_FAILURES})')

                if consecutive_failures >= MAX_READ_FAILURES:
                    logger.error('Camera stopped delivering frames')
                    return
                self._stop_event.wait(0.5)
                continue

            consecutive_failures = 0

            if self.config.mirror_frames:
                frame = cv2.flip(frame, 1)

            self.process_frame(frame)
            self._stop_event.wait(self.config.frame_delay_seconds)

    # ------------------------------------------------------------------
    # Frame processing
    # ------------------------------------------------------------------

    def process_frame(self, frame: np.ndarray, now: Optional[datetime] = None) -> np.ndarray:
        """
        Run one frame through the pipeline.

        Errors are logged and the raw frame is shown; they never end the
        session.

        Args:
            frame: BGR frame
            now: Frame time (default: clock())

        Returns:
            Annotated frame (also published to the stream)
        """
        now = now or self.clock()

        with self._lock:
            self._last_frame = frame.copy()
            display = frame

            try:
                if self._state is SessionState.RESOLVED:
                    self._expire_resolution(now)
                else:
                    result = self.recognition.recognize(frame)
                    self._last_result = result
                    self._visible_faces = []
                    if isinstance(result, NoMatch) and result.box is None:
                        # Faces outside the recognition range still count as present
                        self._visible_faces = self.recognition.detect_faces(frame)
                    self._handle_result(result, now)

                display = self._draw_visualization(frame.copy())
            except Exception as e:
                logger.exception(f'Frame processing error: {e}')

            self.stream.set_frame(display)
            return display

    def _handle_result(self, result: RecognitionResult, now: datetime) -> None:
        if isinstance(result, Recognition):
            self._no_face_frames = 0

            if self.tracker.push(result.employee_id):
                self._resolve(result, now)
            else:
                self._state = SessionState.VERIFYING
            return

        self.tracker.clear()

        if result.box is None and not self._visible_faces:
            self._no_face_frames += 1
            if self._no_face_frames >= self.config.standby_after_frames:
                if self._state is not SessionState.STANDBY:
                    logger.debug('No face for a while, entering standby')
                self._state = SessionState.STANDBY
            else:
                self._state = SessionState.SCANNING
        else:
            self._no_face_frames = 0
            self._state = SessionState.SCANNING

    def _expire_resolution(self, now: datetime) -> None:
        resolution = self._resolution
        if resolution is not None and resolution.pending_choice:
            return
        if self._display_until is not None and now < self._display_until:
            return

        self._reset()
        self._state = SessionState.SCANNING

    def _reset(self) -> None:
        self.tracker.clear()
        self._resolution = None
        self._display_until = None
        self._no_face_frames = 0
        self._last_result = None
        self._visible_faces = []

    # ------------------------------------------------------------------
    # Attendance
    # ------------------------------------------------------------------

    def _resolve(self, result: Recognition, now: datetime) -> None:
        employee = self.store.get_employee_by_id(result.employee_id)
        if employee is None:
            logger.warning(f'Recognized employee {result.employee_id} no longer exists')
            self.tracker.clear()
            self._state = SessionState.SCANNING
            return

        status = self.store.get_today_status(employee.id, now.date())
        decision = self.policy.decide(now, status)

        resolution = Resolution(
            employee=employee,
            confidence=result.confidence,
            period=decision.period,
            resolved_at=now,
            message=decision.message,
            choices=decision.choices,
            box=result.box,
        )

        logger.info(
            f'👤 {employee.name} ({employee.code}) identified '
            f'with {result.confidence:.1f}% confidence, period {decision.period.value}'
        )

        if decision.action is not None:
            resolution = self._record(resolution, decision.action, now)
        elif decision.requires_choice:
            logger.info(f'Waiting for operator choice: {[c.value for c in decision.choices]}')

        self._resolution = resolution
        self._display_until = now + timedelta(seconds=self.config.display_clear_seconds)
        self._state = SessionState.RESOLVED

    def _record(self, resolution: Resolution, action: AttendanceAction, now: datetime) -> Resolution:
        success, message = self.store.log_attendance(resolution.employee.id, action, now)

        if success:
            send_attendance_event(resolution.employee, action, now, self.config)

        return replace(
            resolution,
            choices=(),
            recorded=action if success else None,
            success=success,
            message=message,
        )

    def choose_action(self, action: AttendanceAction, now: Optional[datetime] = None) -> Resolution:
        """
        Record the action the operator picked for the pending choice.

        Raises:
            InvalidChoiceError: No choice is pending or action is not offered
        """
        now = now or self.clock()

        with self._lock:
            resolution = self._resolution
            if resolution is None or not resolution.pending_choice:
                raise InvalidChoiceError('No action choice is pending')
            if action not in resolution.choices:
                raise InvalidChoiceError(f'{action.label} is not one of the offered actions')

            self._resolution = self._record(resolution, action, now)
            self._display_until = now + timedelta(seconds=self.config.display_clear_seconds)
            return self._resolution

    def cancel_choice(self) -> None:
        """Dismiss the pending choice without recording anything."""
        with self._lock:
            resolution = self._resolution
            if resolution is None or not resolution.pending_choice:
                raise InvalidChoiceError('No action choice is pending')

            logger.info(f'Choice for {resolution.employee.code} cancelled')
            self._reset()
            self._state = SessionState.SCANNING

    def _on_model_retrained(self) -> None:
        with self._lock:
            self.tracker.clear()
            if self._state is SessionState.VERIFYING:
                self._state = SessionState.SCANNING
        logger.debug('Model retrained, stability window cleared')

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    @property
    def resolution(self) -> Optional[Resolution]:
        return self._resolution

    @property
    def pending_choice(self) -> Tuple[AttendanceAction, ...]:
        resolution = self._resolution
        return resolution.choices if resolution else ()

    @property
    def last_frame(self) -> Optional[np.ndarray]:
        """Copy of the most recent (mirrored) camera frame, for enrollment."""
        with self._lock:
            return self._last_frame.copy() if self._last_frame is not None else None

    def status(self) -> dict:
        with self._lock:
            return {
                'sessionId': self.config.session_id,
                'state': self._state.value,
                'running': self.is_running,
                'streaming': self.stream.is_streaming,
                'trained': self.recognition.is_trained,
                'candidate': self.tracker.candidate,
                'stability': {
                    'count': len(self.tracker),
                    'required': self.tracker.capacity,
                },
                'resolution': self._resolution.to_dict() if self._resolution else None,
            }

    def _draw_visualization(self, frame: np.ndarray) -> np.ndarray:
        """
        Draw the session state on a frame.

        Args:
            frame: Frame to draw on

        Returns:
            Frame with visualization
        """
        resolution = self._resolution
        result = self._last_result

        if resolution is not None:
            status_text = f'{resolution.employee.name} ({resolution.employee.code})'
            detail = resolution.message
            if resolution.pending_choice:
                detail = 'Select: ' + ' / '.join(c.label for c in resolution.choices)
            color = GREEN if resolution.success or resolution.pending_choice else ORANGE
            if resolution.box is not None:
                _draw_box(frame, resolution.box, f'{resolution.confidence:.0f}%', color)
            _draw_text(frame, detail, (10, 60), color)

        elif self._state is SessionState.STANDBY:
            status_text = 'Standby - step in front of the camera'

        elif isinstance(result, NoMatch) and result.reason is NoMatchReason.UNTRAINED:
            status_text = 'No employees enrolled'
            self._draw_visible_faces(frame)

        else:
            status_text = (
                f'Scanning | Stability: {len(self.tracker)}/{self.tracker.capacity}'
            )
            if isinstance(result, Recognition) and result.box is not None:
                label = f'ID: {employee_code(result.employee_id)} ({result.confidence:.0f}%)'
                _draw_box(frame, result.box, label, GREEN)
            elif isinstance(result, NoMatch) and result.box is not None:
                _draw_box(frame, result.box, 'Unknown', RED)
            else:
                self._draw_visible_faces(frame)

        _draw_text(frame, status_text, (10, 30), GREEN)
        return frame

    def _draw_visible_faces(self, frame: np.ndarray) -> None:
        for box in self._visible_faces:
            _draw_box(frame, box, self._distance_hint(box), RED)

    def _distance_hint(self, box: Box) -> str:
        distance = self.recognition.estimate_distance(box)
        if distance > self.config.max_distance_inches:
            return 'Move closer'
        if distance < self.config.min_distance_inches:
            return 'Move back'
        return 'Unknown'


def _draw_text(frame: np.ndarray, text: str, origin: Tuple[int, int], color: Tuple[int, int, int]) -> None:
    # Shadow, then text
    cv2.putText(frame, text, origin, cv2.FONT_HERSHEY_SIMPLEX, 0.6, BLACK, 3)
    cv2.putText(frame, text, origin, cv2.FONT_HERSHEY_SIMPLEX, 0.6, color, 2)


def _draw_box(frame: np.ndarray, box: Box, label: str, color: Tuple[int, int, int]) -> None:
    x, y, w, h = box
    x2, y2 = x + w, y + h

    cv2.rectangle(frame, (x, y), (x2, y2), color, 3)
    cv2.rectangle(frame, (x, y2 - 30), (x2, y2), color, cv2.FILLED)
    cv2.putText(frame, label, (x + 6, y2 - 8),
                cv2.FONT_HERSHEY_DUPLEX, 0.5, WHITE, 1)
