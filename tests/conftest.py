"""
Shared pytest fixtures for DynamicFit tests.
"""

import io
from contextlib import redirect_stdout

import numpy as np
import pytest

from tests.config import THREE_FACTOR_MODEL, TWO_FACTOR_MODEL

# Set random seed for reproducible tests
np.random.seed(42)


@pytest.fixture
def suppress_output():
    """Silence print() status lines during a test."""
    with redirect_stdout(io.StringIO()):
        yield


@pytest.fixture
def three_factor_spec():
    """Parsed standardized 3-factor, 9-indicator model."""
    from dynamicfit.utils.parsers import _parse_model_syntax

    return _parse_model_syntax(THREE_FACTOR_MODEL, require_values=True)


@pytest.fixture
def two_factor_spec():
    """Parsed standardized 2-factor, 6-indicator model."""
    from dynamicfit.utils.parsers import _parse_model_syntax

    return _parse_model_syntax(TWO_FACTOR_MODEL, require_values=True)


def exact_data(sigma, n, seed=0):
    """Data whose divisor-N sample covariance equals *sigma* exactly."""
    rng = np.random.RandomState(seed)
    z = rng.standard_normal((n, sigma.shape[0]))
    z -= z.mean(axis=0)
    cov = z.T @ z / n
    z = z @ np.linalg.inv(np.linalg.cholesky(cov)).T
    return z @ np.linalg.cholesky(sigma).T


@pytest.fixture
def make_exact_data():
    return exact_data
