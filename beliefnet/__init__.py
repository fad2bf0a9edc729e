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
BeliefNet: Deep Belief Networks of heterogeneous RBM layers.

Greedy layer-wise pretraining, label-augmented training, feature extraction,
prediction and supervised fine-tuning on top of PyTorch.
"""

from .exceptions import (
    BeliefNetError,
    StructuralContractError,
    NumericalDivergenceError,
    InvalidUnitTypeError,
    MissingCollaboratorError
)
from .models import DeepBeliefNetwork, RBMLayer, Hyperparameters, UnitType

__version__ = "0.1.0"
__all__ = [
    "DeepBeliefNetwork",
    "RBMLayer",
    "Hyperparameters",
    "UnitType",

    # Errors
    "BeliefNetError",
    "StructuralContractError",
    "NumericalDivergenceError",
    "InvalidUnitTypeError",
    "MissingCollaboratorError"
]
