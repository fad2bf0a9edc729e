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
Training module for BeliefNet.

This module provides the collaborators of a DeepBeliefNetwork:
- Watchers: progress reporting for pretraining and fine-tuning
- FineTuneTrainer / ConjugateGradientTrainer: supervised fine-tuning
- SVMAdapter: support vector machine on network features
"""

from .watchers import Watcher, ProgressWatcher, HistoryWatcher
from .finetune import FineTuneTrainer, ConjugateGradientTrainer
from .svm import SVMAdapter, RBFGrid

__all__ = [
    # Watchers
    "Watcher",
    "ProgressWatcher",
    "HistoryWatcher",

    # Fine-tuning
    "FineTuneTrainer",
    "ConjugateGradientTrainer",

    # SVM
    "SVMAdapter",
    "RBFGrid"
]
