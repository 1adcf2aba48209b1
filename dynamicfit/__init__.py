"""DynamicFit - simulation-based fit index cutoffs for CFA models.

Generalizes the fixed Hu & Bentler (1999) cutoffs (SRMR .08, RMSEA .06,
CFI .95) to cutoffs derived for the multi-factor CFA model at hand.

Example:
    >>> from dynamicfit import cfa_hb
    >>>
    >>> model = '''
    ... F1 =~ .70*Y1 + .70*Y2 + .75*Y3
    ... F2 =~ .80*Y4 + .70*Y5 + .70*Y6
    ... F3 =~ .70*Y7 + .75*Y8 + .75*Y9
    ... F1 ~~ .30*F2
    ... F1 ~~ .40*F3
    ... F2 ~~ .50*F3
    ... '''
    >>> result = cfa_hb(model, n=500, manual=True)
    >>> print(result)
"""

from importlib.metadata import version as _get_version

from .core.model_spec import ModelSpec
from .errors import (
    DynamicFitError,
    IdentificationError,
    InputMismatchError,
    InsufficientCandidatesError,
    InvalidParameterError,
    InvalidSettingError,
    ModelSyntaxError,
    PopulationModelError,
    SimulationReliabilityError,
    UnsupportedEstimatorError,
    UnsupportedModelError,
)
from .hb import CfaHBResult, cfa_hb
from .progress import PrintReporter, ProgressReporter, SimulationCancelled, TqdmReporter
from .stats.cfa import CFAFit, fit_cfa
from .utils.parsers import parse_model

__version__ = _get_version("DynamicFit")

__all__ = [
    "cfa_hb",
    "CfaHBResult",
    "fit_cfa",
    "CFAFit",
    "parse_model",
    "ModelSpec",
    "SimulationCancelled",
    "ProgressReporter",
    "PrintReporter",
    "TqdmReporter",
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
