"""
Logging configuration for the face time-clock.

Provides console logging with kiosk session context.
"""

import logging
import sys


class SessionContextFilter(logging.Filter):
    """Add kiosk session context to log records."""

    def __init__(self, session_id: str):
        super().__init__()
        self.session_id = session_id

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, 'session_id'):
            record.session_id = self.session_id
        return True


def setup_logging(session_id: str, debug: bool = False) -> None:
    """
    Configure logging for the process.

    Args:
        session_id: Session identifier for log context
        debug: Enable debug level logging
    """
    level = logging.DEBUG if debug else logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(
        '%(asctime)s [%(levelname)s] [session=%(session_id)s] %(name)s: %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))
    console_handler.addFilter(SessionContextFilter(session_id))

    root_logger.addHandler(console_handler)

    # Werkzeug logs every MJPEG poll at INFO
    logging.getLogger('werkzeug').setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
