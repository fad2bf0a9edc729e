"""
BeliefNet test suite.

Usage:
    python tests/run_tests.py
    pytest tests
"""

import sys
from pathlib import Path

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Shared seeds and data sizes
TEST_CONFIG = {
    'random_seed': 42,
    'small_data_size': 10,
    'medium_data_size': 40,
}

__all__ = ['TEST_CONFIG']
