"""
Shared fixtures for the test suite.
"""

import os

import numpy as np
import pytest

# Settings are read at import time and the Supabase connection is mandatory
os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_ANON_KEY", "test-anon-key")

from face_auth.matching import EMBEDDING_DIMENSION  # noqa: E402


@pytest.fixture
def rng():
    """Seeded generator so every test sees the same vectors."""
    return np.random.default_rng(1234)


@pytest.fixture
def make_embedding(rng):
    """Factory for random 128-dimension embeddings scaled to a given magnitude."""
    def _make(magnitude: float = 1.0) -> list:
        vector = rng.standard_normal(EMBEDDING_DIMENSION)
        return (vector / np.linalg.norm(vector) * magnitude).tolist()
    return _make
