"""
Pytest configuration for the CardioGuard tests
"""

import os
import sys

import numpy as np
import pytest

# Set BEFORE importing any app modules: app_config reads them at import time
os.environ["CARDIOGUARD_LATENCY_SECONDS"] = "0"
os.environ["CARDIOGUARD_RANDOM_SEED"] = ""
os.environ["CARDIOGUARD_LOG_LEVEL"] = "WARNING"

# Add parent directory to path to import app modules
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))


@pytest.fixture
def rng():
    """Seeded generator so individual draws are reproducible"""
    return np.random.default_rng(42)
