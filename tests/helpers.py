"""
Shared test doubles and fixtures
"""
import shutil
import tempfile
from dataclasses import replace

import cv2
import numpy as np

from face_timeclock.config import load_config
from face_timeclock.recognition.detector import box_area, estimate_distance_inches
from face_timeclock.recognition.recognizer import NoMatch, NoMatchReason


def make_config(directory, **overrides):
    """Default configuration rooted in a temporary directory"""
    config = load_config()
    defaults = {
        'database_path': f'{directory}/attendance.db',
        'faces_dir': f'{directory}/faces',
        'mirror_frames': False,
        'backend_url': '',
        'debug_mode': False,
    }
    defaults.update(overrides)
    return replace(config, **defaults)


def noise_image(shape, seed=0):
    """Deterministic random uint8 image"""
    rng = np.random.RandomState(seed)
    return rng.randint(0, 256, size=shape, dtype=np.uint8)


class FakeDetector:
    """Detector returning fixed boxes for every frame"""

    def __init__(self, config, boxes=None):
        self.config = config
        self.boxes = list(boxes or [])
        self.is_available = True

    def detect(self, frame):
        return list(self.boxes)

    def estimate_distance(self, box):
        return estimate_distance_inches(
            box[2], self.config.average_face_width_inches, self.config.focal_length
        )

    def is_at_optimal_distance(self, box):
        distance = self.estimate_distance(box)
        return self.config.min_distance_inches <= distance <= self.config.max_distance_inches

    def detect_closest_face(self, frame):
        boxes = sorted(self.boxes, key=box_area, reverse=True)
        return boxes[0] if boxes else None

    def detect_close_faces(self, frame):
        return sorted(self.boxes, key=box_area, reverse=True)

    def detect_at_optimal_distance(self, frame):
        optimal = [box for box in self.boxes if self.is_at_optimal_distance(box)]
        return sorted(optimal, key=box_area, reverse=True)


class StubClassifier:
    """Classifier returning a preset prediction"""

    def __init__(self, label=0, distance=10.0, error=None):
        self.label = label
        self.distance = distance
        self.error = error
        self.trained_with = None

    def train(self, images, labels):
        if self.error is not None:
            raise self.error
        self.trained_with = (list(images), list(labels))

    def predict(self, image):
        if self.error is not None:
            raise self.error
        return self.label, self.distance


class TempDirTestCase:
    """Mixin creating a temporary directory per test"""

    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, self.tmpdir, ignore_errors=True)


def sample_frame(path):
    """BGR frame built from a stored (normalized) sample"""
    gray = cv2.imread(path, cv2.IMREAD_GRAYSCALE)
    return cv2.cvtColor(gray, cv2.COLOR_GRAY2BGR)


class StubRecognition:
    """Recognition service returning queued results"""

    def __init__(self):
        self.results = []
        self.default = NoMatch(NoMatchReason.NO_FACE)
        self.subscribers = []
        self.is_trained = True
        self.faces = []

    def subscribe(self, callback):
        self.subscribers.append(callback)

    def unsubscribe(self, callback):
        self.subscribers.remove(callback)

    def recognize(self, frame):
        result = self.results.pop(0) if self.results else self.default
        if isinstance(result, Exception):
            raise result
        return result

    def detect_faces(self, frame):
        return list(self.faces)

    def estimate_distance(self, box):
        return estimate_distance_inches(box[2], 5.5, 500.0)


class FakeCapture:
    """VideoCapture double delivering blank frames"""

    def __init__(self, opened=True, shape=(240, 320, 3)):
        self.opened = opened
        self.shape = shape
        self.released = False
        self.read_error = None

    def isOpened(self):
        return self.opened

    def read(self):
        if self.read_error is not None:
            error, self.read_error = self.read_error, None
            raise error
        return True, np.zeros(self.shape, dtype=np.uint8)

    def release(self):
        self.released = True
