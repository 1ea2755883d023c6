"""
Model training module.

Builds an LBPH classifier from every stored face sample. Each training run
produces a new immutable TrainedModel that replaces the previous one by
reference swap, so recognitions in flight keep using the snapshot they
started with.
"""

import threading
import time
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional

import cv2
import numpy as np

from ..config import Config
from ..logging_config import get_logger
from .preprocessing import flip_horizontal, normalize_face

logger = get_logger(__name__)

ModelRetrainedCallback = Callable[[], None]


def create_lbph_classifier(config: Config) -> Any:
    """Create an untrained LBPH face recognizer (requires opencv-contrib)."""
    return cv2.face.LBPHFaceRecognizer_create(
        radius=config.lbph_radius,
        neighbors=config.lbph_neighbors,
        grid_x=config.lbph_grid,
        grid_y=config.lbph_grid
    )


@dataclass(frozen=True)
class TrainedModel:
    """
    Immutable classifier snapshot.

    classifier: object with predict(image) -> (label, distance)
    label_to_employee: dense label -> employee ID
    """
    classifier: Any
    label_to_employee: Mapping[int, int]
    instance_count: int
    trained_at: float

    @property
    def employee_count(self) -> int:
        return len(self.label_to_employee)


class ModelHolder:
    """
    Owns the current TrainedModel and the "model retrained" observers.

    Readers take a single reference per call through `current`; writers
    replace it atomically under a lock.
    """

    def __init__(self):
        self._model: Optional[TrainedModel] = None
        self._lock = threading.Lock()
        self._subscribers: List[ModelRetrainedCallback] = []

    @property
    def current(self) -> Optional[TrainedModel]:
        return self._model

    @property
    def is_trained(self) -> bool:
        return self._model is not None

    def subscribe(self, callback: ModelRetrainedCallback) -> None:
        with self._lock:
            if callback not in self._subscribers:
                self._subscribers.append(callback)

    def unsubscribe(self, callback: ModelRetrainedCallback) -> None:
        with self._lock:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

    def install(self, model: TrainedModel) -> None:
        """Swap in a new model and notify subscribers."""
        with self._lock:
            self._model = model
            subscribers = list(self._subscribers)

        for callback in subscribers:
            try:
                callback()
            except Exception as e:
                logger.error(f'ModelRetrained subscriber failed: {e}')

    def clear(self) -> None:
        """Mark the model untrained."""
        with self._lock:
            self._model = None


class ModelTrainer:
    """
    Trains the face classifier from the attendance store.

    Training is synchronous; FaceRecognitionService runs it on its own
    worker thread.
    """

    def __init__(
        self,
        store: Any,
        holder: ModelHolder,
        config: Config,
        classifier_factory: Optional[Callable[[Config], Any]] = None
    ):
        """
        Args:
            store: Attendance store providing get_all_employees_with_samples()
            holder: Model holder receiving the trained snapshot
            config: Time-clock configuration
            classifier_factory: Builds an untrained classifier (default LBPH)
        """
        self.store = store
        self.holder = holder
        self.config = config
        self.classifier_factory = classifier_factory or create_lbph_classifier
        self._train_lock = threading.Lock()

    def train(self) -> Optional[TrainedModel]:
        """
        Rebuild the model from every stored face sample.

        Returns:
            The installed TrainedModel, or None if training was aborted
            (the holder is then left untrained)
        """
        with self._train_lock:
            return self._train()

    def _train(self) -> Optional[TrainedModel]:
        logger.info('Starting model training...')
        started = time.time()

        groups: Dict[int, List[str]] = {}
        for employee_id, path in self.store.get_all_employees_with_samples():
            groups.setdefault(employee_id, []).append(path)

        if not groups:
            logger.warning('No employee faces found in database, model untrained')
            self.holder.clear()
            return None

        images: List[np.ndarray] = []
        labels: List[int] = []
        label_to_employee: Dict[int, int] = {}

        for employee_id, paths in groups.items():
            label = len(label_to_employee)
            loaded = 0

            for path in paths:
                normalized = self._load_sample(path)
                if normalized is None:
                    continue

                images.append(normalized)
                labels.append(label)
                loaded += 1

                if self.config.train_with_flip:
                    images.append(flip_horizontal(normalized))
                    labels.append(label)
                    loaded += 1

            if loaded > 0:
                label_to_employee[label] = employee_id
                logger.debug(f'Loaded {loaded} images for employee {employee_id}')

        if len(images) < 2:
            logger.warning(
                f'Not enough face images to train ({len(images)}), need at least 2. '
                f'Model untrained'
            )
            self.holder.clear()
            return None

        try:
            classifier = self.classifier_factory(self.config)
            classifier.train(images, np.array(labels, dtype=np.int32))
        except Exception as e:
            logger.error(f'Training failed: {e}')
            self.holder.clear()
            return None

        model = TrainedModel(
            classifier=classifier,
            label_to_employee=MappingProxyType(label_to_employee),
            instance_count=len(images),
            trained_at=time.time(),
        )
        self.holder.install(model)

        logger.info(
            f'✅ Model trained: {model.instance_count} images, '
            f'{model.employee_count} employees ({time.time() - started:.2f}s)'
        )
        return model

    def _load_sample(self, path: str) -> Optional[np.ndarray]:
        try:
            image = cv2.imread(path, cv2.IMREAD_GRAYSCALE)
        except Exception as e:
            logger.warning(f'Error loading face {path}: {e}')
            return None

        if image is None or image.size == 0:
            logger.warning(f'Image file missing or unreadable: {path}')
            return None

        normalized = normalize_face(image, self.config)
        if normalized is None or normalized.shape != (self.config.face_size, self.config.face_size):
            return None
        return normalized
