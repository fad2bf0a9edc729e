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
Restricted Boltzmann Machine layer with CD-1 training

This module implements the building block of deep belief networks:
- Binary, rectified linear, softmax and Gaussian unit types
- Contrastive Divergence (CD-1) with momentum and weight decay
- Shared hyperparameters with a momentum switch epoch
- Sequential binary store/load of weights and biases
"""

from dataclasses import dataclass
from typing import Any, BinaryIO, Dict, List, Optional, Tuple, Union
import torch
import torch.nn as nn
import numpy as np
import logging
from tqdm import tqdm

from ..exceptions import InvalidUnitTypeError, StructuralContractError
from .units import UnitType, HIDDEN_UNITS, VISIBLE_UNITS, activate, activation, check_finite
from .utils import as_batch

logger = logging.getLogger(__name__)


@dataclass
class Hyperparameters:
    """Training hyperparameters shared by every layer of a network."""

    learning_rate: float = 0.1
    initial_momentum: float = 0.5
    final_momentum: float = 0.9
    momentum_switch_epoch: int = 6
    weight_cost: float = 0.0002
    momentum: float = 0.0

    def momentum_for(self, epoch: int) -> float:
        """Momentum to apply during ``epoch`` (0-based)."""
        if epoch < self.momentum_switch_epoch:
            return self.initial_momentum
        return self.final_momentum


class RBMLayer(nn.Module):
    """
    Restricted Boltzmann Machine used as one layer of a deep belief network.

    The weights are initialized from a zero-mean normal distribution scaled
    by ``init_std``; both bias vectors start at zero.
    """

    def __init__(
        self,
        n_visible: int,
        n_hidden: int,
        visible_unit: Union[UnitType, str] = UnitType.BINARY,
        hidden_unit: Union[UnitType, str] = UnitType.BINARY,
        batch_size: int = 25,
        init_std: float = 0.1,
        device: Optional[torch.device] = None,
        dtype: torch.dtype = torch.float32,
    ):
        """
        Initialize RBM layer.

        Args:
            n_visible: Number of visible units
            n_hidden: Number of hidden units
            visible_unit: Visible unit type (binary, relu or gaussian)
            hidden_unit: Hidden unit type (binary, relu, relu1, relu6 or softmax)
            batch_size: Minibatch size for contrastive divergence
            init_std: Scale of the initial weights
            device: Device to place tensors on
            dtype: Data type for tensors
        """
        super().__init__()

        if n_visible < 1 or n_hidden < 1:
            raise StructuralContractError(
                f"An RBM needs at least one visible and one hidden unit, "
                f"got {n_visible} -> {n_hidden}"
            )
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")

        visible_unit = UnitType.parse(visible_unit)
        hidden_unit = UnitType.parse(hidden_unit)
        if visible_unit not in VISIBLE_UNITS:
            raise InvalidUnitTypeError(f"{visible_unit.value} is not a valid visible unit type")
        if hidden_unit not in HIDDEN_UNITS:
            raise InvalidUnitTypeError(f"{hidden_unit.value} is not a valid hidden unit type")

        self._n_visible = n_visible
        self._n_hidden = n_hidden
        self._visible_unit = visible_unit
        self._hidden_unit = hidden_unit
        self.batch_size = batch_size
        self.init_std = init_std
        self.device = device or torch.device('cpu')
        self.dtype = dtype

        self.W = nn.Parameter(
            torch.randn(n_visible, n_hidden, dtype=dtype) * init_std
        )
        self.v_bias = nn.Parameter(torch.zeros(n_visible, dtype=dtype))
        self.h_bias = nn.Parameter(torch.zeros(n_hidden, dtype=dtype))

        self.to(self.device)

    @property
    def n_visible(self) -> int:
        return self._n_visible

    @property
    def n_hidden(self) -> int:
        return self._n_hidden

    @property
    def visible_unit(self) -> UnitType:
        return self._visible_unit

    @property
    def hidden_unit(self) -> UnitType:
        return self._hidden_unit

    def input_size(self) -> int:
        return self._n_visible

    def output_size(self) -> int:
        return self._n_hidden

    def num_parameters(self) -> int:
        """Number of weights (biases excluded)."""
        return self._n_visible * self._n_hidden

    def activate_hidden(
        self,
        v_a: torch.Tensor,
        v_s: Optional[torch.Tensor] = None
    ) -> Tuple[torch.Tensor, torch.Tensor]:
        """
        Compute hidden activations and samples from the visible layer.

        The pre-activation is driven by ``v_a``; pass a sample as ``v_a`` to
        drive the layer from sampled states instead.

        Args:
            v_a: Visible activations [n_visible] or [batch_size, n_visible]
            v_s: Visible samples (accepted for symmetry, not used)

        Returns:
            h_a: Hidden activations
            h_s: Hidden samples
        """
        with torch.no_grad():
            z = self.h_bias + torch.matmul(v_a, self.W)
            return activate(z, self._hidden_unit)

    def activate_visible(
        self,
        h_a: torch.Tensor,
        h_s: Optional[torch.Tensor] = None
    ) -> Tuple[torch.Tensor, torch.Tensor]:
        """
        Compute visible activations and samples from the hidden layer.

        The pre-activation is driven by the hidden samples when they are
        given, by the hidden activations otherwise.

        Args:
            h_a: Hidden activations [n_hidden] or [batch_size, n_hidden]
            h_s: Hidden samples, same shape as ``h_a``

        Returns:
            v_a: Visible activations
            v_s: Visible samples
        """
        h = h_a if h_s is None else h_s
        with torch.no_grad():
            z = self.v_bias + torch.matmul(h, self.W.t())
            return activate(z, self._visible_unit)

    def forward(self, v: torch.Tensor) -> torch.Tensor:
        """Differentiable hidden activation, without sampling."""
        return activation(self.h_bias + torch.matmul(v, self.W), self._hidden_unit)

    def reconstruct(self, v: torch.Tensor) -> torch.Tensor:
        """Deterministic up-down pass returning the visible activations."""
        h_a, _ = self.activate_hidden(v)
        v_a, _ = self.activate_visible(h_a)
        return v_a

    def contrastive_divergence(self, v1: torch.Tensor) -> Tuple[Dict[str, torch.Tensor], Dict[str, float]]:
        """
        Compute CD-1 gradients on one minibatch.

        Args:
            v1: Minibatch [batch_size, n_visible]

        Returns:
            grads: Gradient of each parameter (ascent direction)
            stats: Reconstruction error and mean hidden activation
        """
        batch_size = v1.size(0)

        h1_a, h1_s = self.activate_hidden(v1)
        v2_a, v2_s = self.activate_visible(h1_a, h1_s)
        h2_a, _ = self.activate_hidden(v2_a)

        grads = {
            'W': (torch.matmul(v1.t(), h1_a) - torch.matmul(v2_a.t(), h2_a)) / batch_size,
            'v_bias': torch.mean(v1 - v2_a, dim=0),
            'h_bias': torch.mean(h1_a - h2_a, dim=0),
        }

        stats = {
            'reconstruction_error': torch.mean((v1 - v2_a) ** 2).item(),
            'sparsity': torch.mean(h1_a).item(),
        }
        return grads, stats

    def _apply_gradients(
        self,
        grads: Dict[str, torch.Tensor],
        buffers: Dict[str, torch.Tensor],
        hyper: Hyperparameters
    ) -> None:
        """Momentum update with weight decay on the weights only."""
        with torch.no_grad():
            for name, grad in grads.items():
                param = getattr(self, name)

                if name == 'W' and hyper.weight_cost > 0:
                    grad = grad - hyper.weight_cost * param

                buffers[name] = hyper.momentum * buffers[name] + hyper.learning_rate * grad
                param.add_(buffers[name])

    def train(
        self,
        data: Any = True,
        max_epochs: int = 1,
        hyperparameters: Optional[Hyperparameters] = None,
        watcher: Optional[Any] = None,
    ) -> Union["RBMLayer", List[float]]:
        """
        Train the layer with contrastive divergence.

        Called with a boolean (or no argument) this behaves like
        ``nn.Module.train`` and switches the training mode flag.

        Args:
            data: Training samples [n_samples, n_visible]
            max_epochs: Number of passes over ``data``
            hyperparameters: Shared hyperparameters (defaults if None); its
                ``momentum`` field is updated every epoch
            watcher: Optional progress watcher

        Returns:
            Reconstruction error of each epoch
        """
        if isinstance(data, bool):
            return super().train(data)

        hyper = hyperparameters if hyperparameters is not None else Hyperparameters()
        batch = as_batch(data, dtype=self.dtype, device=self.device)

        if batch.size(1) != self._n_visible:
            raise StructuralContractError(
                f"Training samples have {batch.size(1)} features, "
                f"the layer expects {self._n_visible}"
            )

        buffers = {name: torch.zeros_like(getattr(self, name)) for name in ('W', 'v_bias', 'h_bias')}
        n_samples = batch.size(0)
        errors = []

        if watcher is not None:
            watcher.training_begin(self)

        epochs = tqdm(
            range(max_epochs),
            desc=f"RBM {self._n_visible}->{self._n_hidden}",
            disable=not logger.isEnabledFor(logging.INFO)
        )

        for epoch in epochs:
            hyper.momentum = hyper.momentum_for(epoch)

            error_sum = 0.0
            sparsity_sum = 0.0
            n_batches = 0

            for start in range(0, n_samples, self.batch_size):
                grads, stats = self.contrastive_divergence(batch[start:start + self.batch_size])
                self._apply_gradients(grads, buffers, hyper)

                error_sum += stats['reconstruction_error']
                sparsity_sum += stats['sparsity']
                n_batches += 1

            check_finite(self.W, "RBM weights")
            check_finite(self.h_bias, "RBM hidden biases")
            check_finite(self.v_bias, "RBM visible biases")

            metrics = {
                'reconstruction_error': error_sum / n_batches,
                'sparsity': sparsity_sum / n_batches,
                'weight_norm': torch.norm(self.W).item(),
            }
            errors.append(metrics['reconstruction_error'])
            epochs.set_postfix({'error': f"{metrics['reconstruction_error']:.4f}"})

            if watcher is not None:
                watcher.epoch_end(self, epoch, metrics)

        if watcher is not None:
            watcher.training_end(self)

        return errors

    def store(self, stream: BinaryIO) -> None:
        """Write weights and biases to a binary stream."""
        for tensor in (self.W, self.v_bias, self.h_bias):
            np.save(stream, tensor.detach().cpu().numpy(), allow_pickle=False)

    def load(self, stream: BinaryIO) -> None:
        """Read weights and biases written by :meth:`store`."""
        with torch.no_grad():
            for name in ('W', 'v_bias', 'h_bias'):
                param = getattr(self, name)
                value = np.load(stream, allow_pickle=False)

                if tuple(value.shape) != tuple(param.shape):
                    raise StructuralContractError(
                        f"Stored {name} has shape {value.shape}, "
                        f"the layer expects {tuple(param.shape)}"
                    )
                param.copy_(torch.as_tensor(value, dtype=self.dtype))

    def config(self) -> Dict[str, Any]:
        """Constructor arguments, as saved in checkpoints."""
        return {
            'n_visible': self._n_visible,
            'n_hidden': self._n_hidden,
            'visible_unit': self._visible_unit.value,
            'hidden_unit': self._hidden_unit.value,
            'batch_size': self.batch_size,
            'init_std': self.init_std,
            'dtype': str(self.dtype).replace('torch.', ''),
        }

    def display(self) -> None:
        logger.info(f"RBM: {self._n_visible} -> {self._n_hidden}")

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"RBMLayer("
            f"n_visible={self._n_visible}, "
            f"n_hidden={self._n_hidden}, "
            f"visible_unit='{self._visible_unit.value}', "
            f"hidden_unit='{self._hidden_unit.value}')"
        )
