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
Utility functions for converting samples and labels

Samples reach the models as Python sequences, numpy arrays or tensors;
these helpers turn them into float tensors of the expected rank once, at
the boundary of each public operation.
"""

from typing import Any, Optional, Sequence
import torch
import numpy as np

from ..exceptions import StructuralContractError


def as_vector(
    sample: Any,
    dtype: torch.dtype = torch.float32,
    device: Optional[torch.device] = None
) -> torch.Tensor:
    """
    Convert a single sample to a 1-D float tensor.

    Args:
        sample: List, numpy array or tensor holding one sample
        dtype: Target dtype
        device: Target device

    Returns:
        Tensor of shape [n_features]
    """
    if isinstance(sample, torch.Tensor):
        vector = sample.detach().to(device=device, dtype=dtype)
    else:
        vector = torch.as_tensor(np.asarray(sample), dtype=dtype, device=device)

    if vector.dim() != 1:
        raise StructuralContractError(
            f"Expected a single sample (1-D), got shape {tuple(vector.shape)}"
        )
    return vector


def as_batch(
    samples: Any,
    dtype: torch.dtype = torch.float32,
    device: Optional[torch.device] = None
) -> torch.Tensor:
    """
    Convert a collection of samples to a 2-D float tensor.

    Args:
        samples: Sequence of samples, 2-D numpy array or 2-D tensor
        dtype: Target dtype
        device: Target device

    Returns:
        Tensor of shape [n_samples, n_features]
    """
    if isinstance(samples, torch.Tensor):
        batch = samples.detach().to(device=device, dtype=dtype)
    elif isinstance(samples, np.ndarray):
        batch = torch.as_tensor(samples, dtype=dtype, device=device)
    else:
        rows = [np.asarray(s.detach().cpu() if isinstance(s, torch.Tensor) else s)
                for s in samples]
        if not rows:
            raise StructuralContractError("Cannot train on an empty sample collection")
        batch = torch.as_tensor(np.stack(rows), dtype=dtype, device=device)

    if batch.dim() != 2:
        raise StructuralContractError(
            f"Expected a collection of 1-D samples, got shape {tuple(batch.shape)}"
        )
    if batch.size(0) == 0:
        raise StructuralContractError("Cannot train on an empty sample collection")
    return batch


def as_labels(labels: Any, device: Optional[torch.device] = None) -> torch.Tensor:
    """Convert a collection of integer labels to a 1-D long tensor."""
    if isinstance(labels, torch.Tensor):
        out = labels.detach().to(device=device, dtype=torch.long)
    else:
        out = torch.as_tensor(np.asarray(labels, dtype=np.int64), device=device)
    return out.reshape(-1)


def check_labels(labels: torch.Tensor, n_samples: int, num_labels: int) -> None:
    """Check label count and range before any training work starts."""
    if labels.numel() != n_samples:
        raise StructuralContractError(
            f"There must be the same number of values than labels "
            f"({n_samples} samples, {labels.numel()} labels)"
        )
    if labels.numel() and (labels.min() < 0 or labels.max() >= num_labels):
        raise StructuralContractError(
            f"Labels must lie in [0, {num_labels}), got "
            f"[{int(labels.min())}, {int(labels.max())}]"
        )


def one_hot_labels(
    labels: Sequence[int],
    num_labels: int,
    dtype: torch.dtype = torch.float32
) -> torch.Tensor:
    """
    One-hot encode labels: 1.0 at the label index, 0.0 elsewhere.

    Returns:
        Tensor of shape [n_labels, num_labels]
    """
    labels = as_labels(labels)
    out = torch.zeros(labels.numel(), num_labels, dtype=dtype, device=labels.device)
    out[torch.arange(labels.numel(), device=labels.device), labels] = 1.0
    return out
