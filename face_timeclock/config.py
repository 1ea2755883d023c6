"""
Configuration module for the face time-clock.

Loads configuration from environment variables with sensible defaults.
All settings are immutable after initialization; use dataclasses.replace()
for per-run overrides.
"""

import os
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Config:
    """
    Immutable configuration for the time-clock.

    Storage:
        database_path: SQLite database file
        faces_dir: Directory where face samples and profile photos are written

    Camera Settings:
        camera_source: Camera index ('0') or stream URL
        camera_max_index: Number of device indices probed for a local camera
        mirror_frames: Flip frames horizontally before processing

    Service Identity:
        session_id: Logical identifier of the kiosk session (for logging)
        video_port: Port for the Flask HTTP server

    Detection:
        cascade_path: Haar cascade XML (None = OpenCV bundled frontal face)
        scale_factor / min_neighbors: detectMultiScale parameters
        min_face_size_detection / max_face_size: detection size bounds in pixels

    Proximity:
        min_face_size_recognition: Minimum face side for the closest-face gate
        min_face_area_ratio: Minimum face area / frame area
        average_face_width_inches / focal_length: Pinhole distance estimate
        min_distance_inches / max_distance_inches: Accepted recognition range

    Normalization & Training:
        face_size: Side of the canonical square face
        blur_kernel: Gaussian blur kernel size
        bright_gamma / dark_gamma: Enrollment lighting augmentations
        train_with_flip: Add a mirrored copy of every sample at training time
        lbph_*: LBPH classifier parameters

    Recognition:
        unknown_threshold: LBPH distance at or above which a face is unknown
        duplicate_threshold: Confidence above which enrollment warns
        stability_window: Identical consecutive matches required to log

    Session:
        standby_after_frames: Consecutive empty frames before standby
        display_clear_seconds: How long a resolved identity stays on screen
        frame_delay_seconds: Sleep between processed frames

    System:
        backend_url: Optional backend that receives recorded attendance
        debug_mode: Enable debug logging
    """

    # Storage
    database_path: str
    faces_dir: str

    # Camera
    camera_source: str
    camera_max_index: int
    mirror_frames: bool

    # Service
    session_id: str
    video_port: int

    # Detection
    cascade_path: Optional[str]
    scale_factor: float
    min_neighbors: int
    min_face_size_detection: int
    max_face_size: int

    # Proximity
    min_face_size_recognition: int
    min_face_area_ratio: float
    average_face_width_inches: float
    focal_length: float
    min_distance_inches: float
    max_distance_inches: float

    # Normalization & training
    face_size: int
    blur_kernel: int
    bright_gamma: float
    dark_gamma: float
    train_with_flip: bool
    lbph_radius: int
    lbph_neighbors: int
    lbph_grid: int

    # Recognition
    unknown_threshold: float
    duplicate_threshold: float
    stability_window: int

    # Session
    standby_after_frames: int
    display_clear_seconds: float
    frame_delay_seconds: float

    # System
    backend_url: str
    debug_mode: bool


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == 'true'


def load_config() -> Config:
    """
    Load configuration from environment variables.

    Returns:
        Config: Immutable configuration object
    """
    return Config(
        # Storage
        database_path=os.getenv('DATABASE_PATH', 'attendance.db'),
        faces_dir=os.getenv('FACES_DIR', 'faces'),

        # Camera
        camera_source=os.getenv('CAMERA_SOURCE', '0'),
        camera_max_index=int(os.getenv('CAMERA_MAX_INDEX', '5')),
        mirror_frames=_env_bool('MIRROR_FRAMES', 'true'),

        # Service
        session_id=os.getenv('SESSION_ID', 'kiosk'),
        video_port=int(os.getenv('VIDEO_PORT', '5001')),

        # Detection
        cascade_path=os.getenv('CASCADE_PATH') or None,
        scale_factor=float(os.getenv('SCALE_FACTOR', '1.1')),
        min_neighbors=int(os.getenv('MIN_NEIGHBORS', '3')),
        min_face_size_detection=int(os.getenv('MIN_FACE_SIZE_DETECTION', '40')),
        max_face_size=int(os.getenv('MAX_FACE_SIZE', '800')),

        # Proximity
        min_face_size_recognition=int(os.getenv('MIN_FACE_SIZE_RECOGNITION', '60')),
        min_face_area_ratio=float(os.getenv('MIN_FACE_AREA_RATIO', '0.008')),
        average_face_width_inches=float(os.getenv('AVERAGE_FACE_WIDTH_INCHES', '5.5')),
        focal_length=float(os.getenv('FOCAL_LENGTH', '500.0')),
        min_distance_inches=float(os.getenv('MIN_DISTANCE_INCHES', '5.0')),
        max_distance_inches=float(os.getenv('MAX_DISTANCE_INCHES', '35.0')),

        # Normalization & training
        face_size=int(os.getenv('FACE_SIZE', '100')),
        blur_kernel=3,
        bright_gamma=1.3,
        dark_gamma=0.7,
        train_with_flip=_env_bool('TRAIN_WITH_FLIP', 'true'),
        lbph_radius=1,
        lbph_neighbors=8,
        lbph_grid=8,

        # Recognition
        unknown_threshold=float(os.getenv('UNKNOWN_THRESHOLD', '100.0')),
        duplicate_threshold=float(os.getenv('DUPLICATE_THRESHOLD', '70.0')),
        stability_window=int(os.getenv('STABILITY_WINDOW', '3')),

        # Session
        standby_after_frames=int(os.getenv('STANDBY_AFTER_FRAMES', '30')),
        display_clear_seconds=float(os.getenv('DISPLAY_CLEAR_SECONDS', '5.0')),
        frame_delay_seconds=float(os.getenv('FRAME_DELAY', '0.03')),

        # System
        backend_url=os.getenv('BACKEND_URL', ''),
        debug_mode=_env_bool('DEBUG', 'false'),
    )
