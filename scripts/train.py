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
Training script for BeliefNet networks.

Builds a network from a configuration file, trains it on a labelled
synthetic data set (noisy binary prototypes) and reports the training
accuracy.

Usage:
    # Pretraining followed by fine-tuning
    python scripts/train.py --config=configs/small_dbn.yaml --epochs=20

    # Label-augmented training of a joint top layer
    python scripts/train.py --config=configs/labelled_dbn.yaml

    # Conjugate gradient fine-tuning, SVM on top, checkpoint saved
    python scripts/train.py --config=configs/small_dbn.yaml --cg --svm --save=runs/dbn.ckpt
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Tuple
import numpy as np
import torch

from beliefnet.config import ConfigManager, build_network
from beliefnet.training.svm import SVMAdapter

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler(sys.stdout)]
)
logger = logging.getLogger(__name__)


def parse_arguments() -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description='Train BeliefNet networks',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )

    parser.add_argument('--config', type=str, required=True,
                        help='Network configuration file (YAML or JSON)')

    # Training configuration overrides
    parser.add_argument('--epochs', type=int, help='Pretraining epochs per layer')
    parser.add_argument('--finetune_epochs', type=int, help='Fine-tuning epochs')
    parser.add_argument('--batch_size', type=int, help='Fine-tuning batch size')
    parser.add_argument('--lr', type=float, help='Learning rate')
    parser.add_argument('--cg', action='store_true', help='Fine-tune with conjugate gradient')
    parser.add_argument('--svm', action='store_true', help='Train an SVM on the network features')

    # Data
    parser.add_argument('--n_samples', type=int, default=500, help='Number of training samples')
    parser.add_argument('--noise_level', type=float, default=0.1,
                        help='Probability of flipping each prototype bit')
    parser.add_argument('--seed', type=int, default=42, help='Random seed')

    parser.add_argument('--save', type=str, help='Checkpoint path')
    parser.add_argument('--log_level', type=str, default='INFO',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Logging level')

    return parser.parse_args()


def config_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    """Command line overrides in dot notation."""
    overrides = {}
    if args.epochs:
        overrides['training.pretrain_epochs'] = args.epochs
    if args.finetune_epochs is not None:
        overrides['training.finetune_epochs'] = args.finetune_epochs
    if args.batch_size:
        overrides['training.batch_size'] = args.batch_size
    if args.lr:
        overrides['hyperparameters.learning_rate'] = args.lr
    return overrides


def make_dataset(
    n_samples: int,
    n_features: int,
    n_classes: int,
    noise_level: float,
    rng: np.random.Generator
) -> Tuple[np.ndarray, np.ndarray]:
    """Noisy copies of one random binary prototype per class."""
    prototypes = rng.integers(0, 2, size=(n_classes, n_features))
    labels = rng.integers(0, n_classes, size=n_samples)
    flips = rng.random((n_samples, n_features)) < noise_level
    samples = np.abs(prototypes[labels] - flips).astype(np.float32)
    return samples, labels


def accuracy(predictions, labels: np.ndarray) -> float:
    return float(np.mean(np.asarray(predictions) == labels))


def main():
    """Main training function."""
    args = parse_arguments()
    logging.getLogger().setLevel(getattr(logging, args.log_level.upper()))

    try:
        config = ConfigManager.load(args.config, overrides=config_overrides(args))
        training = config.get('training', {})

        torch.manual_seed(args.seed)
        rng = np.random.default_rng(args.seed)

        svm = SVMAdapter() if args.svm else None
        network = build_network(config, svm=svm)
        network.display()

        num_labels = training.get('num_labels')
        labelled = num_labels is not None and len(network) > 1 and \
            network.num_visible(len(network) - 1) != network.num_hidden(len(network) - 2)
        n_classes = num_labels if labelled else (num_labels or network.output_size())

        samples, labels = make_dataset(
            args.n_samples, network.input_size(), n_classes, args.noise_level, rng
        )
        epochs = training.get('pretrain_epochs', 10)

        if labelled:
            network.train_with_labels(samples, labels, num_labels, epochs)
            predictions = [network.predict_labels(s, num_labels) for s in samples]
        else:
            network.pretrain(samples, epochs)

            finetune_epochs = training.get('finetune_epochs', 0)
            if finetune_epochs:
                batch_size = training.get('batch_size', 25)
                if args.cg:
                    network.fine_tune_cg(samples, labels, finetune_epochs, batch_size)
                else:
                    network.fine_tune(samples, labels, finetune_epochs, batch_size)

            predictions = [network.predict(s) for s in samples]

        logger.info(f"Training accuracy: {accuracy(predictions, labels):.4f}")

        if svm is not None and not labelled:
            network.svm_train(samples, labels)
            svm_predictions = [int(network.svm_predict(s)) for s in samples]
            logger.info(f"SVM training accuracy: {accuracy(svm_predictions, labels):.4f}")

        if args.save:
            save_path = Path(args.save)
            save_path.parent.mkdir(parents=True, exist_ok=True)
            network.save_checkpoint(save_path)

    except Exception as e:
        logger.error(f"Training failed: {e}")
        raise


if __name__ == "__main__":
    main()
