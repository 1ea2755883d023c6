"""
Video streaming module.

Holds the latest annotated frame of a kiosk session and turns it into an
MJPEG stream for Flask. Thread-safe frame access using a lock.
"""

import threading
import time
from typing import Generator, Optional

import cv2
import numpy as np

JPEG_QUALITY = 85


class FrameStream:
    """Latest-frame buffer of one session."""

    def __init__(self):
        self._frame: Optional[np.ndarray] = None
        self._lock = threading.Lock()

    def set_frame(self, frame: Optional[np.ndarray]) -> None:
        """Replace the current frame (a copy is stored)."""
        with self._lock:
            self._frame = frame.copy() if frame is not None else None

    def get_frame(self) -> Optional[np.ndarray]:
        with self._lock:
            return self._frame.copy() if self._frame is not None else None

    def clear(self) -> None:
        self.set_frame(None)

    @property
    def is_streaming(self) -> bool:
        with self._lock:
            return self._frame is not None

    def encode_jpeg(self) -> Optional[bytes]:
        """Current frame as JPEG bytes, or None."""
        frame = self.get_frame()
        if frame is None:
            return None

        ok, buffer = cv2.imencode('.jpg', frame, [cv2.IMWRITE_JPEG_QUALITY, JPEG_QUALITY])
        return buffer.tobytes() if ok else None

    def generate_mjpeg(self, fps: float = 30.0) -> Generator[bytes, None, None]:
        """
        Yield multipart JPEG parts forever.

        Yields:
            JPEG frame bytes with multipart headers
        """
        delay = 1.0 / fps
        while True:
            jpeg = self.encode_jpeg()
            if jpeg is None:
                time.sleep(0.1)
                continue

            yield (b'--frame\r\n'
                   b'Content-Type: image/jpeg\r\n\r\n' + jpeg + b'\r\n')
            time.sleep(delay)
