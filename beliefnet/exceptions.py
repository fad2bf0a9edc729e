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
"""Exception hierarchy shared by models and trainers."""


class BeliefNetError(Exception):
    """Base class for all BeliefNet errors."""


class StructuralContractError(BeliefNetError, ValueError):
    """Layer dimensions, label widths or sample counts do not line up."""


class NumericalDivergenceError(BeliefNetError, FloatingPointError):
    """Non-finite values appeared in activations, samples or weights."""


class InvalidUnitTypeError(BeliefNetError, ValueError):
    """A unit type is not supported on the requested side of a layer."""


class MissingCollaboratorError(BeliefNetError, RuntimeError):
    """An optional collaborator (e.g. the SVM adapter) is not available."""
