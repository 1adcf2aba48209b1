"""
Population covariance for standardized CFA models.

Maps a standardized ``ModelSpec`` to the covariance matrix it implies when
every factor and every observed item has unit variance:

    Sigma = Lambda Phi Lambda' + Theta

with residual variances ``Theta_ii = 1 - communality_i`` and residual
covariances ``Theta_ij = r_ij * sqrt(Theta_ii * Theta_jj)``.
"""

import numpy as np

from ..errors import PopulationModelError

FLOAT_NEAR_ZERO = 1e-10


def communalities(spec) -> np.ndarray:
    """Explained variance of every item, ``diag(Lambda Phi Lambda')``."""
    lam = spec.loading_matrix()
    phi = spec.factor_correlation_matrix()
    return np.einsum("ij,jk,ik->i", lam, phi, lam)


def residual_covariance(spec) -> np.ndarray:
    """Return the residual covariance matrix ``Theta`` of *spec*.

    Raises:
        PopulationModelError: If any item's communality reaches 1.
    """
    uniq = 1.0 - communalities(spec)
    bad = [item for item, u in zip(spec.items, uniq) if u <= FLOAT_NEAR_ZERO]
    if bad:
        raise PopulationModelError(
            f"Standardized loadings imply a residual variance of 0 or less for: {', '.join(bad)}. "
            "Check the loadings and factor correlations of these items."
        )
    sd = np.sqrt(uniq)
    return spec.residual_correlation_matrix() * np.outer(sd, sd)


def implied_covariance(spec) -> np.ndarray:
    """Population covariance implied by a standardized model.

    Args:
        spec: ``ModelSpec`` with a value on every parameter.

    Returns:
        Symmetric ``(n_items, n_items)`` matrix with unit diagonal, rows in
        ``spec.items`` order.

    Raises:
        PopulationModelError: If a residual variance is not positive, or the
            factor correlations / implied matrix are not positive definite.
    """
    phi = spec.factor_correlation_matrix()
    if np.linalg.eigvalsh(phi).min() <= FLOAT_NEAR_ZERO:
        raise PopulationModelError("The factor correlations do not form a positive definite matrix")

    lam = spec.loading_matrix()
    sigma = lam @ phi @ lam.T + residual_covariance(spec)
    sigma = (sigma + sigma.T) / 2.0

    if np.linalg.eigvalsh(sigma).min() <= FLOAT_NEAR_ZERO:
        raise PopulationModelError(
            "The model-implied covariance matrix is not positive definite. "
            "Check the residual correlations for impossible combinations."
        )
    return sigma
