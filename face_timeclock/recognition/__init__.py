"""
Recognition algorithms package.

Contains modules for:
- Face detection and proximity gating
- Face normalization and augmentation
- Model training
- Recognition
- Recognition stability
"""

from .detector import Box, FaceDetector, estimate_distance_inches, select_closest_face
from .preprocessing import augment_face, crop_face, normalize_face
from .trainer import ModelHolder, ModelTrainer, TrainedModel
from .recognizer import NoMatch, NoMatchReason, Recognition, Recognizer
from .stability import StabilityTracker
from .service import FaceRecognitionService

__all__ = [
    'Box',
    'FaceDetector',
    'estimate_distance_inches',
    'select_closest_face',
    'augment_face',
    'crop_face',
    'normalize_face',
    'ModelHolder',
    'ModelTrainer',
    'TrainedModel',
    'NoMatch',
    'NoMatchReason',
    'Recognition',
    'Recognizer',
    'StabilityTracker',
    'FaceRecognitionService',
]
