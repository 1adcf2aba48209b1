"""Core components for the DynamicFit framework.

Re-exports the foundational building blocks:

- ``ModelSpec``, ``Parameter``, ``resolve_model_input`` for the model
  representation and input handling.
- ``generate_levels``, ``enumerate_candidates`` for the misspecification
  sequence.
- ``SimulationRunner``, ``SimulationRun`` for Monte Carlo execution.
- ``derive_cutoffs``, ``build_cutoff_table`` for cutoffs and result tables.
"""

from .misspecification import (
    MisspecificationCandidate,
    MisspecificationLevel,
    enumerate_candidates,
    free_items,
    generate_levels,
)
from .model_spec import FittedModel, ManualSpec, ModelSpec, Parameter, resolve_model_input
from .results import (
    CutoffRow,
    IndexCutoff,
    build_cutoff_table,
    build_replication_data,
    derive_cutoffs,
    derive_index_cutoff,
    true_reference,
)
from .simulation import SimulationRun, SimulationRunner, effective_sample_size

__all__ = [
    # Model
    "ModelSpec",
    "Parameter",
    "FittedModel",
    "ManualSpec",
    "resolve_model_input",
    # Misspecification
    "MisspecificationCandidate",
    "MisspecificationLevel",
    "free_items",
    "enumerate_candidates",
    "generate_levels",
    # Simulation
    "SimulationRunner",
    "SimulationRun",
    "effective_sample_size",
    # Results
    "IndexCutoff",
    "CutoffRow",
    "true_reference",
    "derive_index_cutoff",
    "derive_cutoffs",
    "build_cutoff_table",
    "build_replication_data",
]
