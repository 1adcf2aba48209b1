"""
Data generator for DynamicFit simulations.

Draws multivariate-normal samples from a population covariance matrix.
Every replication owns its ``RandomState``, seeded from the run seed and the
(level, replication) pair, so results do not depend on execution order.
"""

from typing import Optional

import numpy as np

SEED_MODULUS = 2**32


def replication_seed(seed: Optional[int], level: int, replication: int, reps: int) -> Optional[int]:
    """Derive the seed of one replication.

    Args:
        seed: Run seed (``None`` for fresh randomness).
        level: Misspecification level (0 = true model).
        replication: Replication index within the level.
        reps: Replications per level.

    Returns:
        A 32-bit seed, or ``None`` when *seed* is ``None``.
    """
    if seed is None:
        return None
    return (seed + 4 * (level * reps + replication)) % SEED_MODULUS


def cholesky_factor(sigma: np.ndarray) -> np.ndarray:
    """Lower Cholesky factor of a population covariance matrix."""
    return np.linalg.cholesky(np.asarray(sigma, dtype=float))


def generate_sample(
    chol: np.ndarray,
    sample_size: int,
    seed: Optional[int] = None,
    rng_state: Optional[np.random.RandomState] = None,
) -> np.ndarray:
    """Draw ``sample_size`` rows from ``N(0, chol @ chol.T)``.

    Args:
        chol: Lower Cholesky factor of the population covariance.
        sample_size: Number of rows.
        seed: Seed for a fresh ``RandomState`` (ignored if *rng_state* given).
        rng_state: Optional ``RandomState`` to draw from.

    Returns:
        Array of shape ``(sample_size, n_items)``.
    """
    rng = rng_state if rng_state is not None else np.random.RandomState(seed)
    z = rng.standard_normal((sample_size, chol.shape[0]))
    return z @ chol.T


def sample_covariance(data: np.ndarray) -> np.ndarray:
    """Covariance with divisor ``N`` (the normal-theory ML estimate)."""
    data = np.asarray(data, dtype=float)
    centered = data - data.mean(axis=0)
    return centered.T @ centered / data.shape[0]
