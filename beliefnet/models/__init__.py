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
Models module for BeliefNet.

This module provides the building blocks of deep belief networks:
- RBMLayer: RBM with binary, rectified linear, softmax and Gaussian units
- DeepBeliefNetwork: ordered stack of RBM layers with greedy pretraining
- UnitType and the activation rules of each unit type
- Utility functions for sample and label conversion
"""

from .units import UnitType, activate, activation, sample
from .rbm import RBMLayer, Hyperparameters
from .dbn import DeepBeliefNetwork
from .utils import as_batch, as_vector, one_hot_labels

__all__ = [
    # Core models
    "RBMLayer",
    "DeepBeliefNetwork",
    "Hyperparameters",

    # Unit rules
    "UnitType",
    "activate",
    "activation",
    "sample",

    # Utility functions
    "as_batch",
    "as_vector",
    "one_hot_labels"
]
