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
Unit types and their activation rules

Each unit type maps a pre-activation tensor to an activation (mean-field
value) and a stochastic sample:
- BINARY: sigmoid / Bernoulli
- RELU, RELU1, RELU6: (capped) rectified linear / noisy rectified linear
- SOFTMAX: softmax / one-hot at the arg-max
- GAUSSIAN: identity / unit-variance Gaussian noise
"""

from enum import Enum
from typing import Tuple, Union
import torch
import torch.nn.functional as F

from ..exceptions import InvalidUnitTypeError, NumericalDivergenceError


class UnitType(Enum):
    """Activation family of a layer side."""

    BINARY = "binary"
    RELU = "relu"
    RELU1 = "relu1"
    RELU6 = "relu6"
    SOFTMAX = "softmax"
    GAUSSIAN = "gaussian"

    @classmethod
    def parse(cls, value: Union["UnitType", str]) -> "UnitType":
        """Accept an enum member or a case-insensitive name."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise InvalidUnitTypeError(f"Unknown unit type: {value!r}") from None


HIDDEN_UNITS = frozenset({
    UnitType.BINARY, UnitType.RELU, UnitType.RELU1, UnitType.RELU6, UnitType.SOFTMAX
})
VISIBLE_UNITS = frozenset({UnitType.BINARY, UnitType.RELU, UnitType.GAUSSIAN})

# Upper bound of the capped rectified units
_RELU_CAPS = {UnitType.RELU1: 1.0, UnitType.RELU6: 6.0}


def logistic_noise(a: torch.Tensor) -> torch.Tensor:
    """Gaussian noise whose variance is sigmoid(a), as in noisy ReLUs."""
    return torch.randn_like(a) * torch.sigmoid(a).sqrt()


def one_if_max(a: torch.Tensor) -> torch.Tensor:
    """One-hot encoding of the arg-max along the last axis."""
    index = torch.argmax(a, dim=-1)
    return F.one_hot(index, num_classes=a.size(-1)).to(a.dtype)


def activation(z: torch.Tensor, unit: UnitType) -> torch.Tensor:
    """
    Deterministic activation of a pre-activation tensor.

    This path is differentiable and is the one used for feature extraction
    and fine-tuning.

    Args:
        z: Pre-activation values [..., n_units]
        unit: Unit type of the layer side

    Returns:
        Activation values with the same shape as ``z``
    """
    if unit is UnitType.BINARY:
        return torch.sigmoid(z)
    elif unit is UnitType.RELU:
        return torch.clamp(z, min=0.0)
    elif unit in _RELU_CAPS:
        return torch.clamp(z, min=0.0, max=_RELU_CAPS[unit])
    elif unit is UnitType.SOFTMAX:
        return torch.softmax(z, dim=-1)
    elif unit is UnitType.GAUSSIAN:
        return z
    raise InvalidUnitTypeError(f"Invalid unit type: {unit!r}")


def sample(a: torch.Tensor, unit: UnitType) -> torch.Tensor:
    """
    Stochastic draw given the activation of a layer side.

    Args:
        a: Activation values [..., n_units]
        unit: Unit type of the layer side

    Returns:
        Samples with the same shape as ``a``
    """
    if unit is UnitType.BINARY:
        return torch.bernoulli(a)
    elif unit is UnitType.RELU:
        return a + logistic_noise(a)
    elif unit in _RELU_CAPS:
        return torch.clamp(a + logistic_noise(a), min=0.0, max=_RELU_CAPS[unit])
    elif unit is UnitType.SOFTMAX:
        return one_if_max(a)
    elif unit is UnitType.GAUSSIAN:
        return a + torch.randn_like(a)
    raise InvalidUnitTypeError(f"Invalid unit type: {unit!r}")


def check_finite(t: torch.Tensor, what: str) -> None:
    """Raise NumericalDivergenceError if ``t`` holds a NaN or an infinity."""
    if not bool(torch.isfinite(t).all()):
        raise NumericalDivergenceError(
            f"Non-finite values in {what}; the learning rate or weight cost "
            f"is probably unstable for this data"
        )


def activate(z: torch.Tensor, unit: UnitType) -> Tuple[torch.Tensor, torch.Tensor]:
    """
    Apply the activation rule of ``unit``.

    Returns:
        a: Activation values
        s: Sampled values
    """
    a = activation(z, unit)
    check_finite(a, f"{unit.value} activations")

    s = sample(a, unit)
    check_finite(s, f"{unit.value} samples")

    return a, s
