# Copyright 2025 BeliefNet Contributors
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""
Configuration management for BeliefNet networks.

A configuration file describes the layer stack, the shared hyperparameters
and the training schedule of one network:

    name: small-dbn
    layers:
      - {n_visible: 6, n_hidden: 3}
      - {n_visible: 3, n_hidden: 2, hidden_unit: softmax}
    hyperparameters:
      learning_rate: 0.1
    training:
      pretrain_epochs: 10

Usage:
    from beliefnet.config import ConfigManager, build_network

    config = ConfigManager.load('configs/small_dbn.yaml',
                                overrides={'training.pretrain_epochs': 5})
    dbn = build_network(config)
"""

from typing import Any, Dict, Optional, Union
import copy
import json
import logging
import os
from pathlib import Path
import yaml
from jsonschema import validate, ValidationError

from .models.dbn import DeepBeliefNetwork
from .models.rbm import Hyperparameters, RBMLayer

logger = logging.getLogger(__name__)

_VISIBLE_UNITS = ["binary", "relu", "gaussian"]
_HIDDEN_UNITS = ["binary", "relu", "relu1", "relu6", "softmax"]


class ConfigManager:
    """Loading, validation and saving of network configurations."""

    CONFIG_SCHEMA = {
        "type": "object",
        "properties": {
            "name": {"type": "string"},
            "description": {"type": "string"},
            "layers": {
                "type": "array",
                "minItems": 1,
                "items": {
                    "type": "object",
                    "properties": {
                        "n_visible": {"type": "integer", "minimum": 1},
                        "n_hidden": {"type": "integer", "minimum": 1},
                        "visible_unit": {"type": "string", "enum": _VISIBLE_UNITS},
                        "hidden_unit": {"type": "string", "enum": _HIDDEN_UNITS},
                        "batch_size": {"type": "integer", "minimum": 1},
                        "init_std": {"type": "number", "exclusiveMinimum": 0},
                    },
                    "required": ["n_visible", "n_hidden"],
                    "additionalProperties": False,
                },
            },
            "hyperparameters": {
                "type": "object",
                "properties": {
                    "learning_rate": {"type": "number", "exclusiveMinimum": 0},
                    "initial_momentum": {"type": "number", "minimum": 0, "maximum": 1},
                    "final_momentum": {"type": "number", "minimum": 0, "maximum": 1},
                    "momentum_switch_epoch": {"type": "integer", "minimum": 0},
                    "weight_cost": {"type": "number", "minimum": 0},
                },
                "additionalProperties": False,
            },
            "training": {
                "type": "object",
                "properties": {
                    "pretrain_epochs": {"type": "integer", "minimum": 1},
                    "finetune_epochs": {"type": "integer", "minimum": 0},
                    "batch_size": {"type": "integer", "minimum": 1},
                    "num_labels": {"type": "integer", "minimum": 1},
                },
            },
        },
        "required": ["name", "layers"],
    }

    @classmethod
    def load(
        cls,
        config_path: Union[str, Path],
        overrides: Optional[Dict[str, Any]] = None,
        validate_config: bool = True
    ) -> Dict[str, Any]:
        """
        Load configuration with optional overrides.

        Args:
            config_path: Path to a YAML or JSON configuration file
            overrides: Parameter overrides in dot notation
                (``'layers.0.n_hidden'``, ``'training.pretrain_epochs'``)
            validate_config: Whether to validate the configuration

        Returns:
            Loaded configuration dictionary
        """
        config_path = Path(config_path)

        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, 'r') as f:
            if config_path.suffix.lower() in ['.yaml', '.yml']:
                config = yaml.safe_load(f)
            elif config_path.suffix.lower() == '.json':
                config = json.load(f)
            else:
                raise ValueError(f"Unsupported config format: {config_path.suffix}")

        logger.info(f"Loaded configuration from {config_path}")

        if overrides:
            config = cls._apply_overrides(config, overrides)
            logger.info(f"Applied {len(overrides)} parameter overrides")

        config = cls._substitute_env_vars(config)

        if validate_config:
            cls.validate(config)

        return config

    @classmethod
    def validate(cls, config: Dict[str, Any]) -> None:
        """
        Validate configuration against schema.

        Raises:
            ValidationError: If configuration is invalid
        """
        try:
            validate(instance=config, schema=cls.CONFIG_SCHEMA)
        except ValidationError as e:
            logger.error(f"Configuration validation failed: {e.message}")
            raise

    @classmethod
    def save(cls, config: Dict[str, Any], output_path: Union[str, Path]) -> None:
        """Save configuration as YAML (or JSON for a ``.json`` path)."""
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with open(output_path, 'w') as f:
            if output_path.suffix.lower() == '.json':
                json.dump(config, f, indent=2)
            else:
                yaml.dump(config, f, default_flow_style=False, indent=2, sort_keys=False)

        logger.info(f"Saved configuration to {output_path}")

    @staticmethod
    def _set_nested_value(config: Any, key: str, value: Any) -> None:
        """Set a value using dot notation; integer parts index lists."""
        parts = key.split('.')
        node = config
        for part in parts[:-1]:
            if isinstance(node, list):
                node = node[int(part)]
            else:
                node = node.setdefault(part, {})

        if isinstance(node, list):
            node[int(parts[-1])] = value
        else:
            node[parts[-1]] = value

    @staticmethod
    def _apply_overrides(config: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
        """Apply parameter overrides using dot notation."""
        result = copy.deepcopy(config)

        for key, value in overrides.items():
            ConfigManager._set_nested_value(result, key, value)

        return result

    @staticmethod
    def _substitute_env_vars(config: Dict[str, Any]) -> Dict[str, Any]:
        """Substitute ``${VAR:default}`` strings with environment variables."""
        def substitute_recursive(obj):
            if isinstance(obj, dict):
                return {k: substitute_recursive(v) for k, v in obj.items()}
            elif isinstance(obj, list):
                return [substitute_recursive(item) for item in obj]
            elif isinstance(obj, str) and obj.startswith('${') and obj.endswith('}'):
                env_var = obj[2:-1]
                default_value = None
                if ':' in env_var:
                    env_var, default_value = env_var.split(':', 1)
                return os.getenv(env_var, default_value)
            else:
                return obj

        return substitute_recursive(config)


def build_network(
    config: Dict[str, Any],
    watcher: Optional[Any] = None,
    svm: Optional[Any] = None
) -> DeepBeliefNetwork:
    """
    Build a DeepBeliefNetwork from a validated configuration.

    Args:
        config: Configuration dictionary (see ConfigManager)
        watcher: Optional progress watcher
        svm: Optional SVM adapter

    Returns:
        Freshly initialized network
    """
    layers = [RBMLayer(**spec) for spec in config['layers']]
    hyperparameters = Hyperparameters(**config.get('hyperparameters', {}))

    network = DeepBeliefNetwork(layers, hyperparameters=hyperparameters, watcher=watcher, svm=svm)
    logger.info(f"Built {network} from configuration '{config['name']}'")
    return network
