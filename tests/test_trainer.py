"""
Unit tests for model training and the model holder
"""
import os
import unittest
from dataclasses import replace

import cv2

from face_timeclock.attendance.store import SQLiteAttendanceStore
from face_timeclock.recognition.preprocessing import augment_face, normalize_face
from face_timeclock.recognition.recognizer import NoMatch, NoMatchReason, Recognizer
from face_timeclock.recognition.trainer import ModelHolder, ModelTrainer
from tests.helpers import FakeDetector, StubClassifier, TempDirTestCase, make_config, noise_image


class TestModelTrainer(TempDirTestCase, unittest.TestCase):
    """Test cases for ModelTrainer"""

    def setUp(self):
        super().setUp()
        self.config = make_config(self.tmpdir)
        os.makedirs(self.config.faces_dir)
        self.store = SQLiteAttendanceStore(self.config.database_path)
        self.holder = ModelHolder()
        self.events = []
        self.holder.subscribe(lambda: self.events.append('retrained'))

    def enroll(self, name, seed, variants=4):
        employee_id = self.store.add_employee(name)
        face = normalize_face(noise_image((120, 120), seed=seed), self.config)
        for variant, image in augment_face(face, self.config)[:variants]:
            path = os.path.join(self.config.faces_dir, f'emp_{employee_id}_{variant}.png')
            cv2.imwrite(path, image)
            self.store.add_face_sample(employee_id, path)
        return employee_id

    def test_train_lbph(self):
        """Test training two employees with the LBPH classifier"""
        jane = self.enroll('Jane Doe', seed=1)
        john = self.enroll('John Roe', seed=2)

        model = ModelTrainer(self.store, self.holder, self.config).train()

        self.assertIsNotNone(model)
        self.assertIs(self.holder.current, model)
        self.assertEqual(model.employee_count, 2)
        # 4 samples each plus their mirrored copies
        self.assertEqual(model.instance_count, 16)
        self.assertEqual(dict(model.label_to_employee), {0: jane, 1: john})
        self.assertEqual(self.events, ['retrained'])

    def test_dense_labels_skip_unreadable_employee(self):
        """Test an employee with no loadable image gets no label"""
        jane = self.enroll('Amy', seed=1)
        ghost = self.store.add_employee('Bea')
        self.store.add_face_sample(ghost, os.path.join(self.tmpdir, 'missing.png'))
        john = self.enroll('Cid', seed=2)

        classifier = StubClassifier()
        trainer = ModelTrainer(self.store, self.holder, self.config, lambda config: classifier)
        model = trainer.train()

        self.assertEqual(dict(model.label_to_employee), {0: jane, 1: john})
        self.assertEqual(sorted(set(classifier.trained_with[1])), [0, 1])

    def test_training_floor(self):
        """Test fewer than two instances leaves the model untrained"""
        self.enroll('Jane', seed=1, variants=1)
        config = replace(self.config, train_with_flip=False)

        model = ModelTrainer(self.store, self.holder, config).train()

        self.assertIsNone(model)
        self.assertFalse(self.holder.is_trained)
        self.assertEqual(self.events, [])

        face = normalize_face(noise_image((120, 120), seed=1), config)
        result = Recognizer(FakeDetector(config), self.holder, config).classify_face(face)
        self.assertEqual(result, NoMatch(NoMatchReason.UNTRAINED))

    def test_floor_discards_previous_model(self):
        """Test deleting everyone clears an existing model"""
        jane = self.enroll('Jane', seed=1)
        trainer = ModelTrainer(self.store, self.holder, self.config)
        self.assertIsNotNone(trainer.train())

        self.store.delete_employee(jane)
        self.assertIsNone(trainer.train())
        self.assertFalse(self.holder.is_trained)

    def test_single_sample_with_flip_trains(self):
        """Test one sample plus its mirror reaches the floor"""
        self.enroll('Jane', seed=1, variants=1)
        model = ModelTrainer(self.store, self.holder, self.config).train()
        self.assertEqual(model.instance_count, 2)

    def test_classifier_error(self):
        """Test a classifier failure clears the model"""
        self.enroll('Jane', seed=1)
        failing = StubClassifier(error=RuntimeError('boom'))
        trainer = ModelTrainer(self.store, self.holder, self.config, lambda config: failing)

        self.assertIsNone(trainer.train())
        self.assertFalse(self.holder.is_trained)


class TestModelHolder(unittest.TestCase):
    """Test cases for ModelHolder observers"""

    def test_failing_subscriber_does_not_block_others(self):
        """Test every subscriber is notified even if one raises"""
        holder = ModelHolder()
        calls = []

        def failing():
            raise RuntimeError('subscriber error')

        holder.subscribe(failing)
        holder.subscribe(lambda: calls.append(1))
        holder.install(object())

        self.assertEqual(calls, [1])
        self.assertTrue(holder.is_trained)

    def test_unsubscribe(self):
        """Test unsubscribed callbacks are not called"""
        holder = ModelHolder()
        calls = []
        callback = lambda: calls.append(1)  # noqa: E731

        holder.subscribe(callback)
        holder.unsubscribe(callback)
        holder.install(object())

        self.assertEqual(calls, [])


if __name__ == '__main__':
    unittest.main()
