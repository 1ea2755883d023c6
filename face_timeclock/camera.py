"""
Camera connection module.

Opens the kiosk camera:
- Local webcams: probes a bounded range of device indices
- Stream URLs (RTSP/HTTP): retries with exponential backoff

The capture is an exclusively owned resource; open_camera() is a context
manager that releases it on every exit path.
"""

import time
from contextlib import contextmanager
from typing import Any, Callable, Iterator, List, Union
from urllib.parse import urlsplit, urlunsplit

import cv2

from .config import Config
from .errors import CameraError
from .logging_config import get_logger

logger = get_logger(__name__)

CaptureFactory = Callable[[Union[int, str]], Any]


def candidate_sources(config: Config) -> List[Union[int, str]]:
    """
    Sources to try, in order.

    A numeric camera_source starts the probe at that index and wraps
    around the first camera_max_index devices.
    """
    source = config.camera_source.strip()
    if not source.isdigit():
        return [source]

    first = int(source)
    count = max(config.camera_max_index, first + 1)
    return [first] + [i for i in range(count) if i != first]


def connect_camera(
    config: Config,
    capture_factory: CaptureFactory = cv2.VideoCapture,
    stream_retries: int = 3
) -> Any:
    """
    Open the first working camera.

    Args:
        config: Time-clock configuration
        capture_factory: VideoCapture constructor
        stream_retries: Attempts for a stream URL

    Returns:
        Opened capture object

    Raises:
        CameraError: If no source could be opened
    """
    sources = candidate_sources(config)

    if isinstance(sources[0], str):
        return _connect_stream(sources[0], capture_factory, stream_retries)

    for index in sources:
        logger.info(f'Trying camera index {index}...')
        capture = None
        try:
            capture = capture_factory(index)
            if capture is not None and capture.isOpened():
                logger.info(f'✅ Camera {index} opened')
                return capture
        except Exception as e:
            logger.debug(f'Camera {index} failed: {e}')

        if capture is not None:
            capture.release()

    raise CameraError(
        f'No camera could be opened (tried indices {sources}). '
        f'Please check that the camera is connected.'
    )


def _connect_stream(url: str, capture_factory: CaptureFactory, retries: int) -> Any:
    for attempt in range(retries):
        logger.info(f'Connecting to {sanitize_url(url)} (attempt {attempt + 1}/{retries})...')

        capture = None
        try:
            capture = capture_factory(url)
            if capture is not None and capture.isOpened():
                logger.info('✅ Stream connected')
                return capture
        except Exception as e:
            logger.warning(f'Stream open failed: {e}')

        if capture is not None:
            capture.release()

        if attempt < retries - 1:
            wait_time = 2 ** attempt
            logger.info(f'Retrying in {wait_time} seconds...')
            time.sleep(wait_time)

    raise CameraError(f'Cannot connect to {sanitize_url(url)} after {retries} attempts')


@contextmanager
def open_camera(
    config: Config,
    capture_factory: CaptureFactory = cv2.VideoCapture
) -> Iterator[Any]:
    """
    Scoped camera acquisition.

    Yields:
        Opened capture; released when the block exits, including on errors
    """
    capture = connect_camera(config, capture_factory)
    try:
        yield capture
    finally:
        try:
            capture.release()
            logger.info('Camera released')
        except Exception as e:
            logger.warning(f'Error releasing camera: {e}')


def sanitize_url(url: str) -> str:
    """Remove the password from a URL for logging."""
    parts = urlsplit(url)
    if not parts.password:
        return url

    netloc = parts.hostname or ''
    if parts.port:
        netloc = f'{netloc}:{parts.port}'
    if parts.username:
        netloc = f'{parts.username}@{netloc}'
    return urlunsplit(parts._replace(netloc=netloc))
