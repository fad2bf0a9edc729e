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
Deep Belief Network built from a stack of RBM layers

This module implements DBNs following Hinton, Osindero & Teh (2006) with:
- Greedy layer-wise pretraining of heterogeneous RBM layers
- Label-augmented training of the top (joint) layer
- Deterministic feature extraction and label prediction
- Dispatch to fine-tuning trainers and an optional SVM classifier
"""

from dataclasses import asdict
from typing import Any, BinaryIO, Dict, Iterator, Optional, Sequence
import pickle
import torch
import torch.nn as nn
import logging
from pathlib import Path

from ..exceptions import MissingCollaboratorError, StructuralContractError
from .rbm import Hyperparameters, RBMLayer
from .units import UnitType
from .utils import as_batch, as_labels, as_vector, check_labels, one_hot_labels

logger = logging.getLogger(__name__)

# Value fed to the label units when the label is unknown
NEUTRAL_LABEL_VALUE = 0.1


class DeepBeliefNetwork(nn.Module):
    """
    Deep Belief Network made of a fixed, ordered stack of RBM layers.

    Layer 0 is closest to the raw input. The number of layers, their sizes
    and their unit types are fixed at construction; only weights, biases
    and the current momentum change afterwards.
    """

    def __init__(
        self,
        layers: Sequence[RBMLayer],
        hyperparameters: Optional[Hyperparameters] = None,
        watcher: Optional[Any] = None,
        svm: Optional[Any] = None,
    ):
        """
        Initialize Deep Belief Network.

        Args:
            layers: RBM layers, from the input side to the output side
            hyperparameters: Shared training hyperparameters
            watcher: Progress watcher (a ProgressWatcher if None)
            svm: Optional SVM adapter enabling the svm_* operations
        """
        super().__init__()

        if len(layers) == 0:
            raise StructuralContractError("A DBN needs at least one layer")

        self._validate_chain(layers)

        self.layers = nn.ModuleList(layers)
        self.hyperparameters = hyperparameters or Hyperparameters()
        self.svm = svm

        if watcher is None:
            from ..training.watchers import ProgressWatcher
            watcher = ProgressWatcher()
        self.watcher = watcher

    @staticmethod
    def _validate_chain(layers: Sequence[RBMLayer]) -> None:
        """Adjacent layers must connect; the last one may reserve label units."""
        last = len(layers) - 1
        for i in range(last):
            lower, upper = layers[i], layers[i + 1]
            if upper.n_visible == lower.n_hidden:
                continue
            if i + 1 == last and upper.n_visible > lower.n_hidden:
                continue
            raise StructuralContractError(
                f"Layer {i} has {lower.n_hidden} hidden units but layer {i + 1} "
                f"has {upper.n_visible} visible units"
            )

    @classmethod
    def from_specs(
        cls,
        specs: Sequence[Dict[str, Any]],
        hyperparameters: Optional[Hyperparameters] = None,
        **kwargs
    ) -> "DeepBeliefNetwork":
        """Build a network from a list of RBMLayer keyword dictionaries."""
        return cls([RBMLayer(**spec) for spec in specs], hyperparameters=hyperparameters, **kwargs)

    def __copy__(self):
        raise TypeError("A DeepBeliefNetwork owns its weights and cannot be copied")

    def __deepcopy__(self, memo):
        raise TypeError("A DeepBeliefNetwork owns its weights and cannot be copied")

    # Structure

    def __len__(self) -> int:
        return len(self.layers)

    def __getitem__(self, index: int) -> RBMLayer:
        return self.layers[index]

    def __iter__(self) -> Iterator[RBMLayer]:
        return iter(self.layers)

    def layer(self, index: int) -> RBMLayer:
        return self.layers[index]

    def num_visible(self, index: int) -> int:
        return self.layers[index].n_visible

    def num_hidden(self, index: int) -> int:
        return self.layers[index].n_hidden

    def input_size(self) -> int:
        return self.layers[0].input_size()

    def output_size(self) -> int:
        return self.layers[-1].output_size()

    def full_output_size(self) -> int:
        """Sum of the hidden widths of every layer."""
        return sum(layer.output_size() for layer in self.layers)

    def num_parameters(self) -> int:
        return sum(layer.num_parameters() for layer in self.layers)

    @property
    def _dtype(self) -> torch.dtype:
        return self.layers[0].dtype

    @property
    def _device(self) -> torch.device:
        return self.layers[0].device

    def display(self) -> None:
        logger.info(f"DBN with {len(self)} layers")
        for layer in self.layers:
            logger.info(
                f"\tRBM: {layer.n_visible}->{layer.n_hidden} : "
                f"{layer.num_parameters()} parameters"
            )
        logger.info(f"Total parameters: {self.num_parameters()}")

    def check_strict_chain(self) -> None:
        """Raise unless every layer feeds the next one without label units."""
        for i in range(len(self) - 1):
            if self.num_hidden(i) != self.num_visible(i + 1):
                raise StructuralContractError(
                    f"Layer {i + 1} expects {self.num_visible(i + 1)} inputs but layer {i} "
                    f"produces {self.num_hidden(i)}; reserved label units require "
                    f"train_with_labels/predict_labels"
                )

    def _check_label_room(self, num_labels: int) -> None:
        if num_labels < 1:
            raise StructuralContractError(f"num_labels must be positive, got {num_labels}")
        if len(self) < 2:
            raise StructuralContractError("Label-augmented training needs at least two layers")
        if self.num_visible(len(self) - 1) != self.num_hidden(len(self) - 2) + num_labels:
            raise StructuralContractError(
                f"There is no room for the labels units: last layer has "
                f"{self.num_visible(len(self) - 1)} visible units, expected "
                f"{self.num_hidden(len(self) - 2)} + {num_labels}"
            )

    def _check_input_width(self, width: int) -> None:
        if width != self.input_size():
            raise StructuralContractError(
                f"Samples have {width} features, the network expects {self.input_size()}"
            )

    # Pretraining

    def _greedy_layerwise(
        self,
        data: torch.Tensor,
        max_epochs: int,
        label_slots: Optional[torch.Tensor] = None,
        skip_softmax: bool = False
    ) -> None:
        """
        Train every layer on the activations of the layer below.

        Args:
            data: Input batch [n_samples, input_size]
            max_epochs: Contrastive-divergence epochs per layer
            label_slots: Values appended to the activations feeding the last
                layer [n_samples, num_labels], or None
            skip_softmax: Leave SOFTMAX-hidden layers untrained (plain
                pretraining only)
        """
        last = len(self) - 1
        n_samples = data.size(0)
        current = data

        self.watcher.pretraining_begin(self)

        for index, layer in enumerate(self.layers):
            # Softmax hidden layers are output layers, not feature detectors
            if skip_softmax and layer.hidden_unit is UnitType.SOFTMAX:
                logger.debug(f"Skipping pretraining of softmax layer {index}")
            else:
                self.watcher.pretrain_layer(self, index, n_samples)
                layer.train(
                    current,
                    max_epochs,
                    hyperparameters=self.hyperparameters,
                    watcher=self.watcher
                )

            if index < last:
                next_a, _ = layer.activate_hidden(current)
                if label_slots is not None and index + 1 == last:
                    next_a = torch.cat([next_a, label_slots], dim=1)
                current = next_a

        self.watcher.pretraining_end(self)

    def pretrain(self, samples: Any, max_epochs: int) -> None:
        """
        Pretrain the network by training all layers in an unsupervised manner.

        Args:
            samples: Training samples [n_samples, input_size]
            max_epochs: Contrastive-divergence epochs per layer
        """
        self.check_strict_chain()
        data = as_batch(samples, dtype=self._dtype, device=self._device)
        self._check_input_width(data.size(1))

        self._greedy_layerwise(data, max_epochs, skip_softmax=True)

    def train_with_labels(
        self,
        samples: Any,
        labels: Any,
        num_labels: int,
        max_epochs: int
    ) -> None:
        """
        Greedy training with the true labels joined to the top layer's input.

        The activations feeding the last layer are widened by ``num_labels``
        units holding the one-hot encoding of each sample's label. Unlike
        :meth:`pretrain`, every layer is trained, softmax layers included.

        Args:
            samples: Training samples [n_samples, input_size]
            labels: Integer labels in [0, num_labels)
            num_labels: Number of label units of the last layer
            max_epochs: Contrastive-divergence epochs per layer
        """
        self._check_label_room(num_labels)
        data = as_batch(samples, dtype=self._dtype, device=self._device)
        self._check_input_width(data.size(1))
        label_tensor = as_labels(labels, device=self._device)
        check_labels(label_tensor, data.size(0), num_labels)

        slots = one_hot_labels(label_tensor, num_labels, dtype=self._dtype)
        self._greedy_layerwise(data, max_epochs, label_slots=slots)

    def predict_labels(self, sample: Any, num_labels: int) -> int:
        """
        Predict the label of a sample with the label units of the top layer.

        The label units are fed a neutral value, the top layer reconstructs
        its visible units and the most active label unit wins.

        Args:
            sample: One sample [input_size]
            num_labels: Number of label units of the last layer

        Returns:
            Predicted label index
        """
        self._check_label_room(num_labels)
        current = as_vector(sample, dtype=self._dtype, device=self._device)
        self._check_input_width(current.size(0))

        last = len(self) - 1
        for index, layer in enumerate(self.layers):
            if index == last:
                h_a, _ = layer.activate_hidden(current)
                output_a, _ = layer.activate_visible(h_a)
            else:
                current, _ = layer.activate_hidden(current)
                if index + 1 == last:
                    neutral = torch.full(
                        (num_labels,), NEUTRAL_LABEL_VALUE, dtype=current.dtype, device=current.device
                    )
                    current = torch.cat([current, neutral])

        return self.predict_label(output_a[-num_labels:])

    # Prediction

    def _as_input(self, sample: Any) -> torch.Tensor:
        if isinstance(sample, torch.Tensor):
            x = sample.detach().to(device=self._device, dtype=self._dtype)
        else:
            x = torch.as_tensor(sample, dtype=self._dtype, device=self._device)
        if x.dim() not in (1, 2):
            raise StructuralContractError(f"Expected a sample or a batch, got shape {tuple(x.shape)}")
        self._check_input_width(x.size(-1))
        return x

    def activation_probabilities(self, sample: Any) -> torch.Tensor:
        """
        Deterministic forward pass through every layer.

        Args:
            sample: One sample [input_size] or a batch [n_samples, input_size]

        Returns:
            Hidden activations of the last layer [output_size] (or batched)
        """
        self.check_strict_chain()
        current = self._as_input(sample)
        for layer in self.layers:
            current, _ = layer.activate_hidden(current)
        return current

    def full_activation_probabilities(self, sample: Any) -> torch.Tensor:
        """
        Hidden activations of every layer, concatenated.

        Returns:
            Tensor [full_output_size] (or batched)
        """
        self.check_strict_chain()
        current = self._as_input(sample)
        outputs = []
        for layer in self.layers:
            current, _ = layer.activate_hidden(current)
            outputs.append(current)
        return torch.cat(outputs, dim=-1)

    @staticmethod
    def predict_label(values: Any) -> int:
        """
        Index of the largest positive value, the earliest one on ties.

        The running maximum starts at 0, so a vector without any positive
        value decodes to label 0.
        """
        if isinstance(values, torch.Tensor):
            values = values.detach().reshape(-1).tolist()

        label = 0
        best = 0.0
        for index, value in enumerate(values):
            if value > best:
                best = value
                label = index
        return label

    def predict(self, sample: Any) -> int:
        """Predict the label of one sample from the last layer's activations."""
        return self.predict_label(self.activation_probabilities(sample))

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        """Differentiable forward pass (used by fine-tuning)."""
        for layer in self.layers:
            x = layer(x)
        return x

    # Fine-tuning

    def fine_tune(self, samples: Any, labels: Any, max_epochs: int, batch_size: int) -> float:
        """
        Fine-tune every layer with minibatch gradient descent.

        Returns:
            Final training classification error
        """
        from ..training.finetune import FineTuneTrainer

        trainer = FineTuneTrainer(self, watcher=self.watcher)
        return trainer.train(samples, labels, max_epochs, batch_size)

    def fine_tune_cg(self, samples: Any, labels: Any, max_epochs: int, batch_size: int) -> float:
        """
        Fine-tune every layer with nonlinear conjugate gradient.

        Returns:
            Final training classification error
        """
        from ..training.finetune import ConjugateGradientTrainer

        trainer = ConjugateGradientTrainer(self, watcher=self.watcher)
        return trainer.train(samples, labels, max_epochs, batch_size)

    # SVM

    def _require_svm(self) -> Any:
        if self.svm is None:
            raise MissingCollaboratorError("No SVM adapter is configured for this network")
        return self.svm

    def svm_train(self, samples: Any, labels: Any, **params) -> bool:
        return self._require_svm().train(self, samples, labels, **params)

    def svm_grid_search(
        self,
        samples: Any,
        labels: Any,
        n_folds: int = 5,
        grid: Optional[Any] = None
    ) -> bool:
        return self._require_svm().grid_search(self, samples, labels, n_folds=n_folds, grid=grid)

    def svm_predict(self, sample: Any) -> float:
        return self._require_svm().predict(self, sample)

    # Serialization

    def store(self, stream: BinaryIO) -> None:
        """Write every layer in order, then the SVM model if an adapter is set."""
        for layer in self.layers:
            layer.store(stream)

        if self.svm is not None:
            pickle.dump(self.svm.model, stream)

    def load(self, stream: BinaryIO) -> None:
        """Read what :meth:`store` wrote, in the same order."""
        for layer in self.layers:
            layer.load(stream)

        if self.svm is not None:
            self.svm.model = pickle.load(stream)

    def save_checkpoint(self, filepath: Path) -> None:
        """Save model checkpoint."""
        checkpoint = {
            'model_state_dict': self.state_dict(),
            'config': {
                'layers': [layer.config() for layer in self.layers],
                'hyperparameters': asdict(self.hyperparameters),
            },
        }
        torch.save(checkpoint, filepath)
        logger.info(f"DBN checkpoint saved to {filepath}")

    @classmethod
    def load_checkpoint(
        cls,
        filepath: Path,
        device: Optional[torch.device] = None,
        **kwargs
    ) -> "DeepBeliefNetwork":
        """Load model from checkpoint."""
        checkpoint = torch.load(filepath, map_location=device)

        config = checkpoint['config']
        layers = []
        for spec in config['layers']:
            spec = dict(spec)
            dtype = getattr(torch, spec.pop('dtype', 'float32'))
            layers.append(RBMLayer(device=device, dtype=dtype, **spec))
        model = cls(layers, hyperparameters=Hyperparameters(**config['hyperparameters']), **kwargs)
        model.load_state_dict(checkpoint['model_state_dict'])

        logger.info(f"DBN checkpoint loaded from {filepath}")
        return model

    def __repr__(self) -> str:
        """String representation."""
        sizes = [self.input_size()] + [layer.n_hidden for layer in self.layers]
        units = [layer.hidden_unit.value for layer in self.layers]
        return f"DeepBeliefNetwork(layer_sizes={sizes}, hidden_units={units})"
