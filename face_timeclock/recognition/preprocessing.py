"""
Face normalization module.

Applies the canonical transform shared by enrollment, training and
recognition so all three compare like-for-like images:
1. Grayscale conversion
2. Bicubic resize to a fixed square
3. Histogram equalization (lighting invariance)
4. Light Gaussian blur (noise reduction)

Also provides the augmentations used only for enrollment and training.
"""

from typing import List, Optional, Tuple

import cv2
import numpy as np

from ..config import Config
from ..logging_config import get_logger
from .detector import Box

logger = get_logger(__name__)


def to_gray(image: np.ndarray) -> np.ndarray:
    if image.ndim == 3:
        if image.shape[2] == 4:
            return cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
        return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
    return image


def normalize_face(face: Optional[np.ndarray], config: Config) -> Optional[np.ndarray]:
    """
    Convert a face region into the canonical representation.

    Args:
        face: Face image (grayscale or BGR)
        config: Time-clock configuration

    Returns:
        face_size x face_size uint8 grayscale image, or None if the input
        is unusable
    """
    if face is None or face.size == 0:
        return None

    try:
        gray = to_gray(face)
        if gray.dtype != np.uint8:
            gray = cv2.normalize(gray, None, 0, 255, cv2.NORM_MINMAX).astype(np.uint8)

        resized = cv2.resize(
            gray,
            (config.face_size, config.face_size),
            interpolation=cv2.INTER_CUBIC
        )
        equalized = cv2.equalizeHist(resized)

        k = config.blur_kernel
        return cv2.GaussianBlur(equalized, (k, k), 0)

    except Exception as e:
        logger.debug(f'Face normalization failed: {e}')
        return None


def crop_face(frame: np.ndarray, box: Box, padding: float = 0.0) -> Optional[np.ndarray]:
    """
    Crop a face box from a frame, optionally padded, clipped to the frame.

    Args:
        frame: Source frame
        box: (x, y, w, h)
        padding: Extra margin as a fraction of the box width

    Returns:
        Copy of the region or None if it is empty
    """
    x, y, w, h = box
    pad = int(w * padding)
    frame_height, frame_width = frame.shape[:2]

    x1 = max(0, x - pad)
    y1 = max(0, y - pad)
    x2 = min(frame_width, x + w + pad)
    y2 = min(frame_height, y + h + pad)

    if x2 <= x1 or y2 <= y1:
        return None
    return frame[y1:y2, x1:x2].copy()


def flip_horizontal(face: np.ndarray) -> np.ndarray:
    return cv2.flip(face, 1)


def adjust_gamma(face: np.ndarray, gamma: float) -> np.ndarray:
    """
    Gamma-correct an 8-bit image through a lookup table.

    gamma > 1 brightens, gamma < 1 darkens.
    """
    inv_gamma = 1.0 / gamma
    table = np.array(
        [((i / 255.0) ** inv_gamma) * 255 for i in range(256)]
    ).clip(0, 255).astype(np.uint8)
    return cv2.LUT(face, table)


def augment_face(normalized: np.ndarray, config: Config) -> List[Tuple[str, np.ndarray]]:
    """
    Build the enrollment variants of a normalized face.

    Returns:
        Ordered list of (variant name, image): original, flip, bright, dark
    """
    return [
        ('orig', normalized),
        ('flip', flip_horizontal(normalized)),
        ('bright', adjust_gamma(normalized, config.bright_gamma)),
        ('dark', adjust_gamma(normalized, config.dark_gamma)),
    ]
