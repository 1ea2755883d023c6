"""
Face Time-Clock - Main Entry Point

Starts the kiosk session for one camera and the operator HTTP API.
"""

import argparse
import os
import sys
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

from .app import create_app
from .attendance import SQLiteAttendanceStore
from .config import Config, load_config
from .enrollment import EnrollmentService
from .errors import DetectorUnavailableError
from .logging_config import get_logger, setup_logging
from .recognition import FaceRecognitionService
from .session import KioskSession

logger = get_logger(__name__)


def _load_local_env() -> None:
    """Load environment variables from face_timeclock/.env if present."""
    env_path = Path(__file__).resolve().parent / '.env'
    if not env_path.exists():
        return

    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith('#') or '=' not in line:
            continue
        key, value = line.split('=', 1)
        os.environ.setdefault(key.strip(), value.strip())


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description='Face Time-Clock - Face Recognition Attendance Kiosk'
    )

    parser.add_argument(
        '--camera',
        type=str,
        help='Camera index or stream URL (or set CAMERA_SOURCE)'
    )

    parser.add_argument(
        '--database',
        type=str,
        help='SQLite database file (or set DATABASE_PATH)'
    )

    parser.add_argument(
        '--faces-dir',
        type=str,
        help='Directory for face samples (or set FACES_DIR)'
    )

    parser.add_argument(
        '--port',
        type=int,
        help='HTTP port (or set VIDEO_PORT)'
    )

    parser.add_argument(
        '--no-autostart',
        action='store_true',
        help='Do not open the camera on startup'
    )

    parser.add_argument(
        '--debug',
        action='store_true',
        help='Enable debug logging'
    )

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> Config:
    """Environment configuration with command line overrides applied."""
    config = load_config()

    overrides = {}
    if args.camera is not None:
        overrides['camera_source'] = args.camera
    if args.database is not None:
        overrides['database_path'] = args.database
    if args.faces_dir is not None:
        overrides['faces_dir'] = args.faces_dir
    if args.port is not None:
        overrides['video_port'] = args.port
    if args.debug:
        overrides['debug_mode'] = True

    return replace(config, **overrides)


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point."""
    _load_local_env()
    args = parse_args(argv)
    config = build_config(args)

    setup_logging(config.session_id, config.debug_mode)

    logger.info('=' * 60)
    logger.info('Face Time-Clock')
    logger.info('=' * 60)
    logger.info(f'Database: {config.database_path}')
    logger.info(f'Faces: {config.faces_dir}')
    logger.info(f'Camera: {config.camera_source}')
    logger.info(f'Backend: {config.backend_url or "disabled"}')
    logger.info('=' * 60)

    try:
        store = SQLiteAttendanceStore(config.database_path)
        recognition = FaceRecognitionService(store, config)
    except DetectorUnavailableError as e:
        logger.error(f'Fatal error: {e}')
        sys.exit(1)

    model = recognition.train()
    if model is None:
        logger.warning('No trained model yet. Enroll employees via POST /api/employees')

    session = KioskSession(config, store, recognition)
    enrollment = EnrollmentService(store, recognition, config)

    if not args.no_autostart and not session.start():
        logger.warning('Camera unavailable; start the session via POST /api/session/start')

    app = create_app(session, enrollment, store, recognition)
    logger.info(f'Video stream: http://localhost:{config.video_port}/video_feed')

    try:
        app.run(
            host='0.0.0.0',
            port=config.video_port,
            threaded=True,
            debug=False,
            use_reloader=False
        )
    except KeyboardInterrupt:
        logger.info('Received keyboard interrupt, shutting down...')
    except Exception as e:
        logger.error(f'Fatal error: {e}', exc_info=True)
        sys.exit(1)
    finally:
        session.close()
        recognition.shutdown()


if __name__ == '__main__':
    main()
