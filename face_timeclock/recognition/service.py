"""
Recognition service.

One explicitly constructed instance per process, shared by reference with
every kiosk session and the enrollment service. It owns the detector, the
model holder, the trainer, the recognizer and a single training worker
thread, and lives until shutdown() is called.
"""

from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, List, Optional

import numpy as np

from ..config import Config
from ..logging_config import get_logger
from .detector import Box, FaceDetector
from .recognizer import RecognitionResult, Recognizer
from .trainer import ModelHolder, ModelRetrainedCallback, ModelTrainer, TrainedModel

logger = get_logger(__name__)


class FaceRecognitionService:
    """Face detection, training and recognition behind one object."""

    def __init__(
        self,
        store: Any,
        config: Config,
        detector: Optional[Any] = None,
        classifier_factory: Optional[Callable[[Config], Any]] = None,
        allow_degraded: bool = False
    ):
        """
        Args:
            store: Attendance store (face samples source)
            config: Time-clock configuration
            detector: Face detector (default: Haar cascade FaceDetector)
            classifier_factory: Classifier builder for the trainer
            allow_degraded: Run with detection disabled if the cascade
                cannot be loaded
        """
        self.config = config
        self.detector = detector or FaceDetector(config, allow_degraded=allow_degraded)
        self.holder = ModelHolder()
        self.trainer = ModelTrainer(store, self.holder, config, classifier_factory)
        self.recognizer = Recognizer(self.detector, self.holder, config)
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix='trainer')

    @property
    def is_trained(self) -> bool:
        return self.holder.is_trained

    @property
    def model(self) -> Optional[TrainedModel]:
        return self.holder.current

    def subscribe(self, callback: ModelRetrainedCallback) -> None:
        """Register a ModelRetrained observer."""
        self.holder.subscribe(callback)

    def unsubscribe(self, callback: ModelRetrainedCallback) -> None:
        self.holder.unsubscribe(callback)

    def detect_faces(self, frame: np.ndarray) -> List[Box]:
        return self.detector.detect(frame)

    def detect_closest_face(self, frame: np.ndarray) -> Optional[Box]:
        return self.detector.detect_closest_face(frame)

    def estimate_distance(self, box: Box) -> float:
        return self.detector.estimate_distance(box)

    def recognize(self, frame: np.ndarray) -> RecognitionResult:
        return self.recognizer.recognize(frame)

    def train(self) -> Optional[TrainedModel]:
        """Train synchronously on the calling thread."""
        return self.trainer.train()

    def train_in_background(self) -> 'Future[Optional[TrainedModel]]':
        """
        Schedule training on the service's worker thread.

        Returns:
            Future resolving to the trained model (or None)
        """
        future = self._executor.submit(self.trainer.train)
        future.add_done_callback(_log_training_failure)
        return future

    def shutdown(self) -> None:
        """Wait for pending training and stop the worker."""
        self._executor.shutdown(wait=True)


def _log_training_failure(future: Future) -> None:
    error = future.exception()
    if error is not None:
        logger.error(f'Background training failed: {error}')
