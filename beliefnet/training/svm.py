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
Support vector machine trained on DBN features.

The adapter is plugged into a DeepBeliefNetwork and enables its svm_*
operations. Features are the last layer's activation probabilities, or the
activations of every layer concatenated.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional
import numpy as np
import logging
from sklearn.svm import SVC
from sklearn.model_selection import GridSearchCV, StratifiedKFold

from ..exceptions import MissingCollaboratorError, StructuralContractError
from ..models.utils import as_batch, as_labels

logger = logging.getLogger(__name__)


@dataclass
class RBFGrid:
    """Log-scale search grid for the C and gamma parameters of an RBF SVM."""

    c_first: float = 2.0 ** -5
    c_last: float = 2.0 ** 15
    c_steps: int = 6
    gamma_first: float = 2.0 ** -15
    gamma_last: float = 2.0 ** 3
    gamma_steps: int = 6

    def param_grid(self) -> Dict[str, List[float]]:
        return {
            'C': np.geomspace(self.c_first, self.c_last, self.c_steps).tolist(),
            'gamma': np.geomspace(self.gamma_first, self.gamma_last, self.gamma_steps).tolist(),
        }


class SVMAdapter:
    """Trains and queries an sklearn SVC on the features of a network."""

    def __init__(self, concatenate: bool = False):
        """
        Initialize SVM adapter.

        Args:
            concatenate: Use the activations of every layer instead of the
                last layer only
        """
        self.concatenate = concatenate
        self.model: Optional[SVC] = None

    def features(self, network: Any, samples: Any) -> np.ndarray:
        batch = as_batch(samples)
        if self.concatenate:
            out = network.full_activation_probabilities(batch)
        else:
            out = network.activation_probabilities(batch)
        return out.cpu().numpy().astype(np.float64)

    def _labels(self, labels: Any, n_samples: int) -> np.ndarray:
        y = as_labels(labels).cpu().numpy()
        if y.shape[0] != n_samples:
            raise StructuralContractError(
                f"There must be the same number of values than labels "
                f"({n_samples} samples, {y.shape[0]} labels)"
            )
        return y

    def train(self, network: Any, samples: Any, labels: Any, **params) -> bool:
        """
        Fit an SVC on the network features.

        Args:
            network: Trained DeepBeliefNetwork
            samples: Training samples
            labels: Integer labels
            **params: SVC keyword arguments (default RBF kernel, C=1.0)

        Returns:
            True when the model was fitted
        """
        x = self.features(network, samples)
        y = self._labels(labels, x.shape[0])

        options = {'kernel': 'rbf', 'C': 1.0, 'gamma': 'scale'}
        options.update(params)

        self.model = SVC(**options)
        self.model.fit(x, y)

        logger.info(
            f"SVM trained on {x.shape[0]} samples with {x.shape[1]} features "
            f"({len(self.model.support_)} support vectors)"
        )
        return True

    def grid_search(
        self,
        network: Any,
        samples: Any,
        labels: Any,
        n_folds: int = 5,
        grid: Optional[RBFGrid] = None
    ) -> bool:
        """
        Cross-validated search of C and gamma; keeps the best model.

        Returns:
            True when a model was selected
        """
        grid = grid or RBFGrid()
        x = self.features(network, samples)
        y = self._labels(labels, x.shape[0])

        search = GridSearchCV(
            SVC(kernel='rbf'),
            grid.param_grid(),
            cv=StratifiedKFold(n_splits=n_folds, shuffle=True, random_state=0),
        )
        search.fit(x, y)

        self.model = search.best_estimator_
        logger.info(
            f"SVM grid search: best {search.best_params_} "
            f"with cross-validation accuracy {search.best_score_:.4f}"
        )
        return True

    def predict(self, network: Any, sample: Any) -> float:
        """Predicted label of one sample, as a float."""
        if self.model is None:
            raise MissingCollaboratorError("The SVM has not been trained")
        x = self.features(network, [sample])
        return float(self.model.predict(x)[0])
