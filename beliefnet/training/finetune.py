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
Supervised fine-tuning of a pretrained Deep Belief Network

This module provides two trainers that adjust the weights and hidden biases
of every layer at once, treating the network as a feed-forward classifier:
- FineTuneTrainer: minibatch gradient descent with momentum and weight decay
- ConjugateGradientTrainer: a few nonlinear CG iterations per minibatch
"""

from typing import Any, List, Optional, Tuple
import torch
import torch.nn as nn
import torch.nn.functional as F
import numpy as np
import logging
import scipy.optimize
from tqdm import tqdm

from ..exceptions import StructuralContractError
from ..models.dbn import DeepBeliefNetwork
from ..models.units import UnitType, activation, check_finite
from ..models.utils import as_batch, as_labels, check_labels, one_hot_labels

logger = logging.getLogger(__name__)


class _BaseTrainer:
    """Shared input checks, loss and error computation."""

    def __init__(self, network: DeepBeliefNetwork, watcher: Optional[Any] = None):
        self.network = network
        self.watcher = watcher if watcher is not None else network.watcher

    def _prepare(
        self,
        samples: Any,
        labels: Any,
        max_epochs: int,
        batch_size: int
    ) -> Tuple[torch.Tensor, torch.Tensor]:
        """Validate everything before the first weight update."""
        if max_epochs < 1 or batch_size < 1:
            raise ValueError(
                f"max_epochs and batch_size must be positive, got {max_epochs} and {batch_size}"
            )

        network = self.network
        network.check_strict_chain()

        data = as_batch(samples, dtype=network.layer(0).dtype, device=network.layer(0).device)
        if data.size(1) != network.input_size():
            raise StructuralContractError(
                f"Samples have {data.size(1)} features, the network expects {network.input_size()}"
            )

        targets = as_labels(labels, device=data.device)
        check_labels(targets, data.size(0), network.output_size())

        return data, targets

    def _parameters(self) -> List[nn.Parameter]:
        """Weights and hidden biases of every layer (visible biases are unused)."""
        params = []
        for layer in self.network:
            params.extend([layer.W, layer.h_bias])
        return params

    def loss(self, data: torch.Tensor, targets: torch.Tensor) -> torch.Tensor:
        """
        Supervised loss of the network on a minibatch.

        Softmax output layers use the cross-entropy of their pre-activation,
        other output layers the squared error against one-hot targets.
        """
        layers = list(self.network)
        x = data
        for layer in layers[:-1]:
            x = layer(x)

        top = layers[-1]
        z = top.h_bias + torch.matmul(x, top.W)

        if top.hidden_unit is UnitType.SOFTMAX:
            return F.cross_entropy(z, targets)

        output = activation(z, top.hidden_unit)
        expected = one_hot_labels(targets, top.n_hidden, dtype=output.dtype)
        return F.mse_loss(output, expected)

    def error(self, data: torch.Tensor, targets: torch.Tensor) -> float:
        """Fraction of samples whose predicted label is wrong."""
        outputs = self.network.activation_probabilities(data)
        wrong = sum(
            1 for row, target in zip(outputs, targets.tolist())
            if self.network.predict_label(row) != target
        )
        return wrong / data.size(0)


class FineTuneTrainer(_BaseTrainer):
    """
    Minibatch gradient descent over every layer of a network.

    Uses the network's learning rate, weight cost and momentum schedule.
    """

    def train(self, samples: Any, labels: Any, max_epochs: int, batch_size: int) -> float:
        """
        Fine-tune the network.

        Args:
            samples: Training samples [n_samples, input_size]
            labels: Integer labels in [0, output_size)
            max_epochs: Number of passes over the data
            batch_size: Minibatch size

        Returns:
            Final training classification error
        """
        data, targets = self._prepare(samples, labels, max_epochs, batch_size)
        hyper = self.network.hyperparameters

        weights = [layer.W for layer in self.network]
        biases = [layer.h_bias for layer in self.network]
        optimizer = torch.optim.SGD(
            [
                {'params': weights, 'weight_decay': hyper.weight_cost},
                {'params': biases, 'weight_decay': 0.0},
            ],
            lr=hyper.learning_rate,
            momentum=hyper.momentum_for(0),
        )

        self.watcher.fine_tuning_begin(self.network)

        n_samples = data.size(0)
        error = 1.0

        for epoch in tqdm(range(max_epochs), desc="Fine-tuning",
                          disable=not logger.isEnabledFor(logging.INFO)):
            hyper.momentum = hyper.momentum_for(epoch)
            for group in optimizer.param_groups:
                group['momentum'] = hyper.momentum

            order = torch.randperm(n_samples, device=data.device)
            for start in range(0, n_samples, batch_size):
                index = order[start:start + batch_size]

                optimizer.zero_grad()
                loss = self.loss(data[index], targets[index])
                check_finite(loss.detach(), "fine-tuning loss")
                loss.backward()
                optimizer.step()

            for param in self._parameters():
                check_finite(param.detach(), "fine-tuned parameters")

            error = self.error(data, targets)
            self.watcher.fine_tuning_epoch_end(self.network, epoch, error)

        self.watcher.fine_tuning_end(self.network, error)
        return error


class ConjugateGradientTrainer(_BaseTrainer):
    """
    Nonlinear conjugate gradient over every layer of a network.

    Each minibatch gets ``max_iterations`` iterations of
    ``scipy.optimize.minimize(method="CG")``; gradients come from autograd.
    """

    def __init__(
        self,
        network: DeepBeliefNetwork,
        watcher: Optional[Any] = None,
        max_iterations: int = 3
    ):
        super().__init__(network, watcher)
        self.max_iterations = max_iterations

    def _set_flat(self, params: List[nn.Parameter], flat: np.ndarray) -> None:
        vector = torch.as_tensor(flat, dtype=params[0].dtype, device=params[0].device)
        with torch.no_grad():
            nn.utils.vector_to_parameters(vector, params)

    def _minimize_batch(self, data: torch.Tensor, targets: torch.Tensor) -> None:
        params = self._parameters()
        weight_cost = self.network.hyperparameters.weight_cost

        def objective(flat: np.ndarray) -> Tuple[float, np.ndarray]:
            self._set_flat(params, flat)
            loss = self.loss(data, targets)
            if weight_cost > 0:
                loss = loss + 0.5 * weight_cost * sum(torch.sum(layer.W ** 2) for layer in self.network)
            check_finite(loss.detach(), "conjugate gradient loss")

            grads = torch.autograd.grad(loss, params)
            flat_grad = torch.cat([g.reshape(-1) for g in grads])
            return loss.item(), flat_grad.detach().cpu().numpy().astype(np.float64)

        x0 = nn.utils.parameters_to_vector(params).detach().cpu().numpy().astype(np.float64)
        result = scipy.optimize.minimize(
            objective, x0, jac=True, method='CG',
            options={'maxiter': self.max_iterations}
        )
        self._set_flat(params, result.x)

    def train(self, samples: Any, labels: Any, max_epochs: int, batch_size: int) -> float:
        """
        Fine-tune the network.

        Args:
            samples: Training samples [n_samples, input_size]
            labels: Integer labels in [0, output_size)
            max_epochs: Number of passes over the data
            batch_size: Minibatch size

        Returns:
            Final training classification error
        """
        data, targets = self._prepare(samples, labels, max_epochs, batch_size)

        self.watcher.fine_tuning_begin(self.network)

        n_samples = data.size(0)
        error = 1.0

        for epoch in tqdm(range(max_epochs), desc="CG fine-tuning",
                          disable=not logger.isEnabledFor(logging.INFO)):
            for start in range(0, n_samples, batch_size):
                self._minimize_batch(data[start:start + batch_size], targets[start:start + batch_size])

            for param in self._parameters():
                check_finite(param.detach(), "fine-tuned parameters")

            error = self.error(data, targets)
            self.watcher.fine_tuning_epoch_end(self.network, epoch, error)

        self.watcher.fine_tuning_end(self.network, error)
        return error
