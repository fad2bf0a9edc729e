#!/usr/bin/env python3
"""
Unit tests for BeliefNet training collaborators.

Covers the fine-tuning trainers, the SVM adapter and the progress watchers.
"""

import io
import unittest
import torch
import numpy as np
from pathlib import Path
import sys

# Add project root to path
sys.path.append(str(Path(__file__).parent.parent))

from tests import TEST_CONFIG
from beliefnet.exceptions import MissingCollaboratorError, StructuralContractError
from beliefnet.models.dbn import DeepBeliefNetwork
from beliefnet.models.rbm import Hyperparameters, RBMLayer
from beliefnet.models.units import UnitType
from beliefnet.training.finetune import ConjugateGradientTrainer
from beliefnet.training.svm import RBFGrid, SVMAdapter
from beliefnet.training.watchers import HistoryWatcher, ProgressWatcher, Watcher


def make_separable(n_samples=TEST_CONFIG['medium_data_size']):
    """Two mirrored 8-bit prototypes, alternating labels."""
    labels = np.arange(n_samples) % 2
    prototypes = np.array([
        [1, 1, 1, 1, 0, 0, 0, 0],
        [0, 0, 0, 0, 1, 1, 1, 1],
    ], dtype=np.float32)
    return prototypes[labels], labels


class TestFineTuning(unittest.TestCase):
    """Test cases for gradient-descent and conjugate-gradient fine-tuning."""

    def setUp(self):
        """Set up test fixtures."""
        torch.manual_seed(TEST_CONFIG['random_seed'])
        self.watcher = HistoryWatcher()
        self.dbn = DeepBeliefNetwork(
            [RBMLayer(8, 6), RBMLayer(6, 2, hidden_unit=UnitType.SOFTMAX)],
            hyperparameters=Hyperparameters(learning_rate=0.5),
            watcher=self.watcher
        )
        self.samples, self.labels = make_separable()

    def test_fine_tune(self):
        """Fine-tuning learns a separable problem."""
        initial_W = self.dbn[0].W.detach().clone()

        error = self.dbn.fine_tune(self.samples, self.labels, max_epochs=50, batch_size=10)

        self.assertLessEqual(error, 0.25)
        self.assertFalse(torch.equal(initial_W, self.dbn[0].W))

        history = self.watcher.get_history()
        self.assertEqual(len(history['fine_tuning_errors']), 50)
        self.assertEqual(history['events'][0], ("fine_tuning_begin",))
        self.assertEqual(history['events'][-1], ("fine_tuning_end", error))

    def test_fine_tune_momentum_schedule(self):
        """Fine-tuning follows the shared momentum schedule."""
        hyper = self.dbn.hyperparameters

        self.dbn.fine_tune(self.samples, self.labels, max_epochs=hyper.momentum_switch_epoch + 2,
                           batch_size=10)

        self.assertEqual(hyper.momentum, hyper.final_momentum)

    def test_fine_tune_after_pretraining(self):
        """Pretraining followed by fine-tuning gives a valid error."""
        self.dbn.pretrain(self.samples, max_epochs=2)
        error = self.dbn.fine_tune(self.samples, self.labels, max_epochs=2, batch_size=10)

        self.assertGreaterEqual(error, 0.0)
        self.assertLessEqual(error, 1.0)

    def test_mse_output_layer(self):
        """Non-softmax output layers are fine-tuned as well."""
        dbn = DeepBeliefNetwork([RBMLayer(8, 6), RBMLayer(6, 2)], watcher=Watcher())

        error = dbn.fine_tune(self.samples, self.labels, max_epochs=3, batch_size=10)

        self.assertGreaterEqual(error, 0.0)
        self.assertLessEqual(error, 1.0)

    def test_invalid_arguments(self):
        """Invalid labels or sizes are rejected before any update."""
        initial_W = self.dbn[0].W.detach().clone()

        with self.assertRaises(StructuralContractError):
            self.dbn.fine_tune(self.samples, self.labels[:-1], max_epochs=1, batch_size=10)
        with self.assertRaises(StructuralContractError):
            self.dbn.fine_tune(self.samples, self.labels + 1, max_epochs=1, batch_size=10)
        with self.assertRaises(StructuralContractError):
            self.dbn.fine_tune(self.samples[:, :5], self.labels, max_epochs=1, batch_size=10)
        with self.assertRaises(ValueError):
            self.dbn.fine_tune(self.samples, self.labels, max_epochs=1, batch_size=0)

        self.assertTrue(torch.equal(initial_W, self.dbn[0].W))

    def test_fine_tune_cg(self):
        """Conjugate gradient fine-tuning updates the weights."""
        initial_W = self.dbn[0].W.detach().clone()

        error = self.dbn.fine_tune_cg(self.samples, self.labels, max_epochs=2, batch_size=20)

        self.assertGreaterEqual(error, 0.0)
        self.assertLessEqual(error, 1.0)
        self.assertFalse(torch.equal(initial_W, self.dbn[0].W))
        self.assertEqual(len(self.watcher.fine_tuning_errors), 2)

    def test_cg_iterations(self):
        """The CG trainer honours its iteration budget."""
        trainer = ConjugateGradientTrainer(self.dbn, max_iterations=1)
        error = trainer.train(self.samples, self.labels, max_epochs=1, batch_size=len(self.samples))

        self.assertEqual(trainer.max_iterations, 1)
        self.assertLessEqual(error, 1.0)


class TestSVMAdapter(unittest.TestCase):
    """Test cases for the SVM adapter."""

    def setUp(self):
        """Set up test fixtures."""
        torch.manual_seed(TEST_CONFIG['random_seed'])
        self.svm = SVMAdapter()
        self.dbn = DeepBeliefNetwork(
            [RBMLayer(8, 6), RBMLayer(6, 4)],
            watcher=Watcher(),
            svm=self.svm
        )
        self.samples, self.labels = make_separable()

    def test_train_predict(self):
        """The SVM separates the two prototypes."""
        self.assertTrue(self.dbn.svm_train(self.samples, self.labels))

        predictions = [self.dbn.svm_predict(s) for s in self.samples]

        self.assertTrue(all(isinstance(p, float) for p in predictions))
        self.assertEqual([int(p) for p in predictions], self.labels.tolist())

    def test_concatenated_features(self):
        """Concatenated features span every layer."""
        svm = SVMAdapter(concatenate=True)
        features = svm.features(self.dbn, self.samples)

        self.assertEqual(features.shape, (len(self.samples), self.dbn.full_output_size()))
        self.assertEqual(self.svm.features(self.dbn, self.samples).shape, (len(self.samples), 4))

    def test_grid_search(self):
        """Grid search keeps a fitted model."""
        grid = RBFGrid(c_steps=2, gamma_steps=2)

        self.assertTrue(self.dbn.svm_grid_search(self.samples, self.labels, n_folds=2, grid=grid))
        self.assertIsNotNone(self.svm.model)
        self.assertIn(self.svm.model.C, grid.param_grid()['C'])

    def test_label_count_mismatch(self):
        """Samples and labels must have the same length."""
        with self.assertRaises(StructuralContractError):
            self.dbn.svm_train(self.samples, self.labels[:-2])

    def test_predict_before_train(self):
        """Predicting with an untrained SVM fails."""
        with self.assertRaises(MissingCollaboratorError):
            self.dbn.svm_predict(self.samples[0])

    def test_missing_adapter(self):
        """Networks without an SVM adapter reject svm_* operations."""
        dbn = DeepBeliefNetwork([RBMLayer(8, 6)], watcher=Watcher())

        with self.assertRaises(MissingCollaboratorError):
            dbn.svm_train(self.samples, self.labels)
        with self.assertRaises(MissingCollaboratorError):
            dbn.svm_predict(self.samples[0])

    def test_store_load(self):
        """The SVM model is stored after the layers."""
        self.dbn.svm_train(self.samples, self.labels)

        stream = io.BytesIO()
        self.dbn.store(stream)
        stream.seek(0)

        restored_svm = SVMAdapter()
        restored = DeepBeliefNetwork(
            [RBMLayer(8, 6), RBMLayer(6, 4)],
            watcher=Watcher(),
            svm=restored_svm
        )
        restored.load(stream)

        self.assertIsNotNone(restored_svm.model)
        for sample in self.samples[:4]:
            self.assertEqual(restored.svm_predict(sample), self.dbn.svm_predict(sample))


class TestWatchers(unittest.TestCase):
    """Test cases for progress watchers."""

    def setUp(self):
        """Set up test fixtures."""
        torch.manual_seed(TEST_CONFIG['random_seed'])
        self.samples, self.labels = make_separable(20)

    def test_progress_watcher_logs(self):
        """ProgressWatcher reports pretraining through logging."""
        dbn = DeepBeliefNetwork([RBMLayer(8, 6), RBMLayer(6, 2)], watcher=ProgressWatcher())

        with self.assertLogs('beliefnet.training.watchers', level='INFO') as logs:
            dbn.pretrain(self.samples, max_epochs=2)

        output = "\n".join(logs.output)
        self.assertIn("Pretraining started", output)
        self.assertIn("Pretraining layer 1/2", output)
        self.assertIn("Pretraining completed", output)

    def test_progress_watcher_fine_tuning(self):
        """ProgressWatcher reports fine-tuning through logging."""
        dbn = DeepBeliefNetwork([RBMLayer(8, 2)], watcher=ProgressWatcher(log_freq=2))

        with self.assertLogs('beliefnet.training.watchers', level='INFO') as logs:
            dbn.fine_tune(self.samples, self.labels, max_epochs=2, batch_size=5)

        output = "\n".join(logs.output)
        self.assertIn("Fine-tuning started", output)
        self.assertIn("Fine-tuning epoch 2", output)
        self.assertIn("final error", output)

    def test_base_watcher_is_silent(self):
        """The base watcher accepts every hook without side effects."""
        dbn = DeepBeliefNetwork([RBMLayer(8, 2)], watcher=Watcher())
        dbn.pretrain(self.samples, max_epochs=1)
        dbn.fine_tune(self.samples, self.labels, max_epochs=1, batch_size=5)

    def test_history_layer_metrics(self):
        """HistoryWatcher records per-epoch layer metrics."""
        watcher = HistoryWatcher()
        dbn = DeepBeliefNetwork([RBMLayer(8, 6)], watcher=watcher)
        dbn.pretrain(self.samples, max_epochs=3)

        metrics = watcher.get_history()['layer_metrics']
        self.assertEqual([m['epoch'] for m in metrics], [0, 1, 2])
        for m in metrics:
            self.assertIn('reconstruction_error', m)
            self.assertIn('sparsity', m)
            self.assertIn('weight_norm', m)


if __name__ == '__main__':
    unittest.main()
