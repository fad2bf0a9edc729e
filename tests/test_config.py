#!/usr/bin/env python3
"""
Unit tests for BeliefNet configuration handling.
"""

import os
import tempfile
import unittest
from pathlib import Path
import sys

from jsonschema import ValidationError

# Add project root to path
sys.path.append(str(Path(__file__).parent.parent))

from beliefnet.config import ConfigManager, build_network
from beliefnet.models.units import UnitType
from beliefnet.training.watchers import Watcher

CONFIG_DIR = Path(__file__).parent.parent / 'configs'


class TestConfigManager(unittest.TestCase):
    """Test cases for ConfigManager."""

    def setUp(self):
        """Set up test fixtures."""
        self.config_path = CONFIG_DIR / 'small_dbn.yaml'
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)

    def test_load(self):
        """Test loading a YAML configuration."""
        config = ConfigManager.load(self.config_path)

        self.assertEqual(config['name'], 'small-dbn')
        self.assertEqual(len(config['layers']), 3)
        self.assertEqual(config['training']['pretrain_epochs'], 20)

    def test_overrides(self):
        """Dotted overrides reach nested dictionaries and lists."""
        config = ConfigManager.load(
            self.config_path,
            overrides={'training.pretrain_epochs': 5, 'layers.2.n_hidden': 3}
        )

        self.assertEqual(config['training']['pretrain_epochs'], 5)
        self.assertEqual(config['layers'][2]['n_hidden'], 3)

    def test_invalid_unit(self):
        """Unknown unit types fail validation."""
        with self.assertRaises(ValidationError):
            ConfigManager.load(self.config_path, overrides={'layers.0.hidden_unit': 'tanh'})

    def test_gaussian_hidden_rejected(self):
        """Gaussian units are only valid on the visible side."""
        with self.assertRaises(ValidationError):
            ConfigManager.load(self.config_path, overrides={'layers.1.hidden_unit': 'gaussian'})

    def test_missing_file(self):
        """Test loading a missing file."""
        with self.assertRaises(FileNotFoundError):
            ConfigManager.load(CONFIG_DIR / 'does_not_exist.yaml')

    def test_unsupported_format(self):
        """Only YAML and JSON files are accepted."""
        path = Path(self.tmp.name) / 'config.txt'
        path.write_text('name: x')

        with self.assertRaises(ValueError):
            ConfigManager.load(path)

    def test_save_load_roundtrip(self):
        """Saved configurations load back unchanged."""
        config = ConfigManager.load(self.config_path)

        for name in ('config.yaml', 'config.json'):
            path = Path(self.tmp.name) / name
            ConfigManager.save(config, path)
            self.assertEqual(ConfigManager.load(path), config)

    def test_env_substitution(self):
        """${VAR:default} strings are replaced by environment values."""
        os.environ['BELIEFNET_TEST_NAME'] = 'from-env'
        self.addCleanup(os.environ.pop, 'BELIEFNET_TEST_NAME')

        config = ConfigManager.load(
            self.config_path,
            overrides={'name': '${BELIEFNET_TEST_NAME:unused}',
                       'description': '${BELIEFNET_UNSET_VAR:fallback}'}
        )

        self.assertEqual(config['name'], 'from-env')
        self.assertEqual(config['description'], 'fallback')


class TestBuildNetwork(unittest.TestCase):
    """Test cases for build_network."""

    def test_small_dbn(self):
        """The small configuration builds a three-layer network."""
        config = ConfigManager.load(CONFIG_DIR / 'small_dbn.yaml')
        dbn = build_network(config, watcher=Watcher())

        self.assertEqual(len(dbn), 3)
        self.assertEqual(dbn.input_size(), 16)
        self.assertEqual(dbn.output_size(), 4)
        self.assertIs(dbn[2].hidden_unit, UnitType.SOFTMAX)
        self.assertEqual(dbn.hyperparameters.learning_rate, 0.1)
        self.assertEqual(dbn.hyperparameters.momentum_switch_epoch, 6)

    def test_labelled_dbn(self):
        """The labelled configuration reserves room for its label units."""
        config = ConfigManager.load(CONFIG_DIR / 'labelled_dbn.yaml')
        dbn = build_network(config, watcher=Watcher())
        num_labels = config['training']['num_labels']

        self.assertEqual(dbn.num_visible(1), dbn.num_hidden(0) + num_labels)
        self.assertIn(dbn.predict_labels([0.0] * 16, num_labels), range(num_labels))


if __name__ == '__main__':
    unittest.main()
