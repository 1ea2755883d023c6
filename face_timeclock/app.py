"""
Flask application for the operator HTTP API.

Provides:
- GET /video_feed: MJPEG video stream of the kiosk session
- GET /health: Service health check
- /api/session/*: Session control and operator action choice
- /api/employees/*: Enrollment and employee management
- /api/attendance/*: Today's attendance and statistics
- POST /api/model/train: Retrain the face model
"""

from datetime import date
from typing import Any

from flask import Flask, Response, jsonify, request
from flask_cors import CORS

from .errors import (
    CameraError,
    DuplicateFaceError,
    EmployeeNotFoundError,
    EnrollmentError,
    InvalidChoiceError,
    TimeClockError,
)
from .logging_config import get_logger
from .models import AttendanceAction

logger = get_logger(__name__)


def create_app(session: Any, enrollment: Any, store: Any, recognition: Any) -> Flask:
    """
    Create and configure Flask application.

    Args:
        session: KioskSession serving the video feed and operator choices
        enrollment: EnrollmentService
        store: Attendance store
        recognition: FaceRecognitionService

    Returns:
        Configured Flask app
    """
    app = Flask(__name__)
    CORS(app)

    @app.errorhandler(TimeClockError)
    def handle_timeclock_error(error: TimeClockError):
        if isinstance(error, DuplicateFaceError):
            return jsonify({'error': str(error), 'duplicate': error.match.to_dict()}), 409

        if isinstance(error, EmployeeNotFoundError):
            status = 404
        elif isinstance(error, InvalidChoiceError):
            status = 409
        elif isinstance(error, EnrollmentError):
            status = 422
        elif isinstance(error, CameraError):
            status = 503
        else:
            status = 400

        logger.warning(f'Request failed ({status}): {error}')
        return jsonify({'error': str(error)}), status

    @app.route('/video_feed')
    def video_feed():
        """Stream MJPEG video feed."""
        return Response(
            session.stream.generate_mjpeg(),
            mimetype='multipart/x-mixed-replace; boundary=frame'
        )

    @app.route('/health')
    def health():
        """Health check endpoint."""
        return jsonify({
            'status': 'ok',
            'streaming': session.stream.is_streaming,
            'sessionId': session.config.session_id,
            'trained': recognition.is_trained,
        })

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    @app.route('/api/session', methods=['GET'])
    def session_status():
        return jsonify(session.status())

    @app.route('/api/session/start', methods=['POST'])
    def session_start():
        if not session.start():
            raise CameraError('No camera could be opened. Please check that the camera is connected.')
        return jsonify(session.status())

    @app.route('/api/session/stop', methods=['POST'])
    def session_stop():
        session.stop()
        return jsonify(session.status())

    @app.route('/api/session/choice', methods=['POST'])
    def session_choice():
        """Submit {"action": "<action>"} or {"cancel": true} for a pending choice."""
        payload = request.get_json(silent=True) or {}

        if payload.get('cancel'):
            session.cancel_choice()
            return jsonify(session.status())

        try:
            action = AttendanceAction(payload.get('action'))
        except ValueError:
            return jsonify({'error': f"Unknown action: {payload.get('action')!r}"}), 400

        resolution = session.choose_action(action)
        return jsonify(resolution.to_dict())

    # ------------------------------------------------------------------
    # Employees
    # ------------------------------------------------------------------

    @app.route('/api/employees', methods=['GET'])
    def list_employees():
        return jsonify([employee.to_dict() for employee in store.list_employees()])

    @app.route('/api/employees', methods=['POST'])
    def enroll_employee():
        """Enroll from the session's latest frame."""
        payload = request.get_json(silent=True) or {}

        result = enrollment.enroll(
            payload.get('name', ''),
            session.last_frame,
            confirm_duplicate=bool(payload.get('confirm_duplicate', False))
        )
        return jsonify(result.to_dict()), 201

    @app.route('/api/employees/<int:employee_id>', methods=['PATCH'])
    def update_employee(employee_id: int):
        payload = request.get_json(silent=True) or {}
        employee = enrollment.update_employee(employee_id, payload.get('name', ''))
        return jsonify(employee.to_dict())

    @app.route('/api/employees/<int:employee_id>', methods=['DELETE'])
    def delete_employee(employee_id: int):
        enrollment.delete_employee(employee_id)
        return jsonify({'deleted': employee_id})

    @app.route('/api/employees/<int:employee_id>/attendance', methods=['GET'])
    def employee_attendance(employee_id: int):
        if store.get_employee_by_id(employee_id) is None:
            raise EmployeeNotFoundError(employee_id)

        days = request.args.get('days', 7, type=int)
        history = store.get_attendance_history(employee_id, days=max(days, 1))
        return jsonify([record.to_dict() for record in history])

    # ------------------------------------------------------------------
    # Attendance
    # ------------------------------------------------------------------

    @app.route('/api/attendance/today', methods=['GET'])
    def today_attendance():
        search = request.args.get('q') or None
        records = store.get_today_attendance(search=search)
        return jsonify([record.to_dict() for record in records])

    @app.route('/api/attendance/stats', methods=['GET'])
    def attendance_stats():
        stats = store.get_today_stats()
        stats['date'] = date.today().isoformat()
        return jsonify(stats)

    # ------------------------------------------------------------------
    # Model
    # ------------------------------------------------------------------

    @app.route('/api/model/train', methods=['POST'])
    def train_model():
        model = recognition.train()
        return jsonify({
            'trained': model is not None,
            'employees': model.employee_count if model else 0,
            'instances': model.instance_count if model else 0,
        })

    return app
