"""
Event forwarding module.

Forwards recorded attendance actions to an optional backend API. The local
store stays the source of truth; a failed forward is only logged.
"""

from datetime import datetime

import requests

from .config import Config
from .logging_config import get_logger
from .models import AttendanceAction, Employee

logger = get_logger(__name__)


def send_attendance_event(
    employee: Employee,
    action: AttendanceAction,
    timestamp: datetime,
    config: Config
) -> bool:
    """
    Send a recorded attendance action to the backend.

    Args:
        employee: Employee the action was recorded for
        action: Recorded action
        timestamp: When it was recorded
        config: Time-clock configuration

    Returns:
        True if the backend accepted the event; False if forwarding is
        disabled or failed
    """
    if not config.backend_url:
        return False

    url = f"{config.backend_url.rstrip('/')}/api/attendance-events"

    payload = {
        'employeeId': employee.id,
        'employeeCode': employee.code,
        'action': action.value,
        'timestamp': timestamp.isoformat(timespec='seconds'),
        'sessionId': config.session_id,
    }

    try:
        logger.info(f'📤 Sending {action.label} for {employee.code}')

        response = requests.post(url, json=payload, timeout=5)

        if response.ok:
            logger.info('✅ Event sent successfully')
            return True

        logger.error(f'❌ Failed to send event: {response.status_code} {response.text}')
        return False

    except requests.exceptions.Timeout:
        logger.error(f'❌ Timeout sending event to {url}')
        return False
    except requests.exceptions.ConnectionError:
        logger.error(f'❌ Connection error sending event to {url}')
        return False
    except requests.exceptions.RequestException as e:
        logger.error(f'❌ Error sending event: {e}')
        return False
