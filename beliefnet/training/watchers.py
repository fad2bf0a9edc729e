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
Progress watchers for pretraining and fine-tuning

Watchers observe training without influencing it:
- Watcher: base class, every hook is a no-op
- ProgressWatcher: logs phase boundaries and per-epoch metrics with timings
- HistoryWatcher: records every event for later inspection
"""

from typing import Any, Dict, List, Tuple
import logging
import time

logger = logging.getLogger(__name__)


class Watcher:
    """Base class for training watchers."""

    def pretraining_begin(self, network: Any) -> None:
        """Called before the first layer is pretrained."""
        pass

    def pretrain_layer(self, network: Any, layer_index: int, batch_size: int) -> None:
        """Called before a layer is trained on ``batch_size`` samples."""
        pass

    def pretraining_end(self, network: Any) -> None:
        """Called after the last layer has been processed."""
        pass

    def training_begin(self, layer: Any) -> None:
        """Called when a single RBM layer starts contrastive divergence."""
        pass

    def epoch_end(self, layer: Any, epoch: int, metrics: Dict[str, float]) -> None:
        """Called after each contrastive-divergence epoch of a layer."""
        pass

    def training_end(self, layer: Any) -> None:
        """Called when a single RBM layer finished training."""
        pass

    def fine_tuning_begin(self, network: Any) -> None:
        """Called before the first fine-tuning epoch."""
        pass

    def fine_tuning_epoch_end(self, network: Any, epoch: int, error: float) -> None:
        """Called after each fine-tuning epoch."""
        pass

    def fine_tuning_end(self, network: Any, error: float) -> None:
        """Called after fine-tuning finished."""
        pass


class ProgressWatcher(Watcher):
    """Logs training progress through the standard logging module."""

    def __init__(self, log_freq: int = 1):
        """
        Initialize progress watcher.

        Args:
            log_freq: Frequency (epochs) for logging per-epoch metrics
        """
        self.log_freq = log_freq
        self.start_time = None
        self.layer_start_time = None

    def pretraining_begin(self, network: Any) -> None:
        self.start_time = time.time()
        logger.info(f"Pretraining started: {network}")

    def pretrain_layer(self, network: Any, layer_index: int, batch_size: int) -> None:
        layer = network.layer(layer_index)
        logger.info(
            f"Pretraining layer {layer_index + 1}/{len(network)} "
            f"({layer.n_visible} -> {layer.n_hidden}) on {batch_size} samples"
        )

    def pretraining_end(self, network: Any) -> None:
        if self.start_time:
            logger.info(f"Pretraining completed in {time.time() - self.start_time:.2f}s")

    def training_begin(self, layer: Any) -> None:
        self.layer_start_time = time.time()

    def epoch_end(self, layer: Any, epoch: int, metrics: Dict[str, float]) -> None:
        if (epoch + 1) % self.log_freq == 0:
            logger.info(
                f"Epoch {epoch + 1} - reconstruction error: "
                f"{metrics['reconstruction_error']:.5f} - "
                f"sparsity: {metrics['sparsity']:.5f}"
            )

    def training_end(self, layer: Any) -> None:
        if self.layer_start_time:
            logger.info(f"Layer trained in {time.time() - self.layer_start_time:.2f}s")

    def fine_tuning_begin(self, network: Any) -> None:
        self.start_time = time.time()
        logger.info("Fine-tuning started")

    def fine_tuning_epoch_end(self, network: Any, epoch: int, error: float) -> None:
        if (epoch + 1) % self.log_freq == 0:
            logger.info(f"Fine-tuning epoch {epoch + 1} - error: {error:.5f}")

    def fine_tuning_end(self, network: Any, error: float) -> None:
        elapsed = time.time() - self.start_time if self.start_time else 0.0
        logger.info(f"Fine-tuning completed in {elapsed:.2f}s - final error: {error:.5f}")


class HistoryWatcher(Watcher):
    """Records watcher events and metrics in memory."""

    def __init__(self):
        self.events: List[Tuple[Any, ...]] = []
        self.layer_metrics: List[Dict[str, float]] = []
        self.fine_tuning_errors: List[float] = []

    def pretraining_begin(self, network: Any) -> None:
        self.events.append(("pretraining_begin",))

    def pretrain_layer(self, network: Any, layer_index: int, batch_size: int) -> None:
        self.events.append(("pretrain_layer", layer_index, batch_size))

    def pretraining_end(self, network: Any) -> None:
        self.events.append(("pretraining_end",))

    def epoch_end(self, layer: Any, epoch: int, metrics: Dict[str, float]) -> None:
        self.layer_metrics.append(dict(metrics, epoch=epoch))

    def fine_tuning_begin(self, network: Any) -> None:
        self.events.append(("fine_tuning_begin",))

    def fine_tuning_epoch_end(self, network: Any, epoch: int, error: float) -> None:
        self.fine_tuning_errors.append(error)

    def fine_tuning_end(self, network: Any, error: float) -> None:
        self.events.append(("fine_tuning_end", error))

    def get_history(self) -> Dict[str, List[Any]]:
        """Get a copy of everything recorded so far."""
        return {
            'events': list(self.events),
            'layer_metrics': list(self.layer_metrics),
            'fine_tuning_errors': list(self.fine_tuning_errors),
        }
