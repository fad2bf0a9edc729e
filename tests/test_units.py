#!/usr/bin/env python3
"""
Unit tests for BeliefNet unit types and activation rules.
"""

import unittest
import torch
from pathlib import Path
import sys

# Add project root to path
sys.path.append(str(Path(__file__).parent.parent))

from tests import TEST_CONFIG
from beliefnet.exceptions import InvalidUnitTypeError, NumericalDivergenceError
from beliefnet.models.units import UnitType, activate, activation, one_if_max
from beliefnet.models.rbm import RBMLayer


class TestUnitType(unittest.TestCase):
    """Test cases for UnitType parsing."""

    def test_parse_names(self):
        """Names are parsed case-insensitively."""
        self.assertIs(UnitType.parse('ReLU6'), UnitType.RELU6)
        self.assertIs(UnitType.parse('softmax'), UnitType.SOFTMAX)
        self.assertIs(UnitType.parse(UnitType.GAUSSIAN), UnitType.GAUSSIAN)

    def test_parse_unknown(self):
        """Unknown names are rejected."""
        with self.assertRaises(InvalidUnitTypeError):
            UnitType.parse('tanh')

    def test_layer_rejects_wrong_side(self):
        """Unit types are restricted per layer side."""
        with self.assertRaises(InvalidUnitTypeError):
            RBMLayer(4, 2, visible_unit=UnitType.SOFTMAX)
        with self.assertRaises(InvalidUnitTypeError):
            RBMLayer(4, 2, hidden_unit=UnitType.GAUSSIAN)
        with self.assertRaises(ValueError):
            RBMLayer(4, 2, visible_unit='relu6')


class TestActivationRules(unittest.TestCase):
    """Test cases for activate()."""

    def setUp(self):
        """Set up test fixtures."""
        torch.manual_seed(TEST_CONFIG['random_seed'])
        self.z = torch.randn(64, 10) * 20

    def test_binary(self):
        """Sigmoid activations and binary samples."""
        a, s = activate(self.z, UnitType.BINARY)

        self.assertTrue(torch.allclose(a, torch.sigmoid(self.z)))
        self.assertTrue(torch.all((s == 0) | (s == 1)))

    def test_relu(self):
        """Rectified activations."""
        a, s = activate(self.z, UnitType.RELU)

        self.assertTrue(torch.equal(a, torch.clamp(self.z, min=0.0)))
        self.assertEqual(s.shape, self.z.shape)

    def test_capped_relu_bounds(self):
        """RELU1/RELU6 activations and samples stay within their range."""
        for unit, cap in ((UnitType.RELU1, 1.0), (UnitType.RELU6, 6.0)):
            for _ in range(20):
                z = torch.randn(128) * 50
                a, s = activate(z, unit)

                self.assertTrue(torch.all(a >= 0.0) and torch.all(a <= cap))
                self.assertTrue(torch.all(s >= 0.0) and torch.all(s <= cap))

    def test_softmax(self):
        """Softmax activations sum to one; samples are one-hot at the arg-max."""
        a, s = activate(self.z, UnitType.SOFTMAX)

        self.assertTrue(torch.allclose(a.sum(dim=1), torch.ones(64), atol=1e-5))
        self.assertTrue(torch.equal(s.sum(dim=1), torch.ones(64)))
        self.assertTrue(torch.equal(s.argmax(dim=1), a.argmax(dim=1)))

    def test_softmax_single_vector(self):
        """One-hot encoding of a single vector."""
        s = one_if_max(torch.tensor([0.1, 0.7, 0.2]))
        self.assertEqual(s.tolist(), [0.0, 1.0, 0.0])

    def test_gaussian(self):
        """Identity activations with noisy samples."""
        a, s = activate(self.z, UnitType.GAUSSIAN)

        self.assertTrue(torch.equal(a, self.z))
        self.assertFalse(torch.equal(s, self.z))

    def test_activation_is_deterministic(self):
        """The activation path does not depend on the random state."""
        for unit in UnitType:
            torch.manual_seed(1)
            first = activation(self.z, unit)
            torch.manual_seed(2)
            second = activation(self.z, unit)
            self.assertTrue(torch.equal(first, second))

    def test_non_finite_values(self):
        """Non-finite activations signal divergence."""
        z = torch.tensor([0.0, float('nan'), 1.0])
        with self.assertRaises(NumericalDivergenceError):
            activate(z, UnitType.BINARY)

        z = torch.tensor([0.0, float('inf')])
        with self.assertRaises(NumericalDivergenceError):
            activate(z, UnitType.GAUSSIAN)


if __name__ == '__main__':
    unittest.main()
