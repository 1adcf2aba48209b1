"""
Error taxonomy for DynamicFit.

Validation problems subclass ``ValueError`` and simulation problems subclass
``RuntimeError`` so callers that already catch the builtin types keep working.
Every error carries a human-readable message naming the violated
precondition.
"""

__all__ = [
    "DynamicFitError",
    "InputMismatchError",
    "ModelSyntaxError",
    "InvalidParameterError",
    "InvalidSettingError",
    "UnsupportedModelError",
    "IdentificationError",
    "InsufficientCandidatesError",
    "UnsupportedEstimatorError",
    "PopulationModelError",
    "SimulationReliabilityError",
]


class DynamicFitError(Exception):
    """Base class for all DynamicFit errors."""

    pass


class InputMismatchError(DynamicFitError, ValueError):
    """The ``manual`` flag does not match the kind of model input supplied."""

    pass


class ModelSyntaxError(DynamicFitError, ValueError):
    """The model syntax could not be parsed."""

    pass


class InvalidParameterError(DynamicFitError, ValueError):
    """A loading or correlation has an absolute value of 1 or above."""

    pass


class InvalidSettingError(DynamicFitError, ValueError):
    """A run setting (replications, sample size, seed, parallel options) is out of range."""

    pass


class UnsupportedModelError(DynamicFitError, ValueError):
    """The model has fewer than two latent factors."""

    pass


class IdentificationError(DynamicFitError, ValueError):
    """The model has no residual degrees of freedom left."""

    pass


class InsufficientCandidatesError(DynamicFitError, ValueError):
    """Not enough free items to build every misspecification level."""

    pass


class UnsupportedEstimatorError(DynamicFitError, ValueError):
    """The requested estimator cannot be used for these cutoffs."""

    pass


class PopulationModelError(DynamicFitError, ValueError):
    """The standardized parameters do not imply a valid covariance matrix."""

    pass


class SimulationReliabilityError(DynamicFitError, RuntimeError):
    """Too many replications failed to produce usable fit statistics."""

    pass
