"""
Misspecification generator for DynamicFit.

Builds the cumulative sequence of misspecified population models used to
calibrate the cutoffs. Level ``k`` is the true model plus the first ``k``
cross-loadings of a fixed, deterministic candidate list; the number of
levels is ``n_factors - 1``.

Candidates are free items (loading on exactly one factor, no residual
correlation), taken round-robin over factors in declaration order: the
first free item of each factor, then the second free item of each factor,
and so on. Each item cross-loads on the factor that follows its home factor
(the last factor wraps to the first).
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

import numpy as np

from ..errors import InsufficientCandidatesError
from ..tables import MAX_COMMUNALITY, cross_loading_magnitude
from .model_spec import ModelSpec

__all__ = [
    "MisspecificationCandidate",
    "MisspecificationLevel",
    "free_items",
    "enumerate_candidates",
    "generate_levels",
]


@dataclass(frozen=True)
class MisspecificationCandidate:
    """A cross-loading that can be added to the population model.

    Attributes:
        item: Item receiving the cross-loading.
        home_factor: Factor the item already loads on.
        target_factor: Factor the cross-loading points to.
        magnitude: Standardized cross-loading value.
    """

    item: str
    home_factor: str
    target_factor: str
    magnitude: float

    def __str__(self) -> str:
        return f"{self.target_factor} =~ {self.magnitude:.3f}*{self.item}"


@dataclass(frozen=True)
class MisspecificationLevel:
    """One population model of the calibration sequence.

    Attributes:
        level: 0 for the true model, ``k`` for ``k`` added cross-loadings.
        candidate: Cross-loading added at this level (``None`` at level 0).
        model: Population model of this level.
    """

    level: int
    candidate: Optional[MisspecificationCandidate]
    model: ModelSpec

    @property
    def magnitude(self) -> Optional[float]:
        return None if self.candidate is None else self.candidate.magnitude


def free_items(spec: ModelSpec) -> Dict[str, List[str]]:
    """Items per factor that load only on that factor and have no residual correlation."""
    correlated = set(spec.correlated_items())
    return {
        factor: [item for item in spec.items_of(factor) if item not in correlated and len(spec.factors_of(item)) == 1]
        for factor in spec.factors
    }


def _feasible_magnitude(spec: ModelSpec, item: str, target: str, tabled: float) -> Optional[float]:
    """Shrink *tabled* so the item's communality stays at or below the ceiling.

    Returns ``None`` when the item is already at the ceiling.
    """
    lam = spec.loading_matrix()
    phi = spec.factor_correlation_matrix()
    i, b = spec.items.index(item), spec.factors.index(target)

    row = lam[i]
    current = float(row @ phi @ row)
    if current >= MAX_COMMUNALITY:
        return None

    overlap = float(row @ phi[:, b])
    if current + 2.0 * tabled * overlap + tabled**2 <= MAX_COMMUNALITY:
        return tabled
    return float(np.floor((-overlap + np.sqrt(overlap**2 + MAX_COMMUNALITY - current)) * 1000) / 1000)


def enumerate_candidates(spec: ModelSpec) -> List[MisspecificationCandidate]:
    """List every cross-loading candidate in selection order.

    The order and magnitudes depend only on *spec*, so repeated calls give
    identical results.
    """
    per_factor = free_items(spec)
    factors = list(spec.factors)
    depth = max((len(items) for items in per_factor.values()), default=0)

    candidates = []
    for rank in range(depth):
        for pos, home in enumerate(factors):
            if rank >= len(per_factor[home]):
                continue
            item = per_factor[home][rank]
            target = factors[(pos + 1) % len(factors)]
            tabled = cross_loading_magnitude(len(spec.items_of(target)))
            magnitude = _feasible_magnitude(spec, item, target, tabled)
            if magnitude is None or magnitude <= 0:
                continue
            candidates.append(MisspecificationCandidate(item, home, target, magnitude))
    return candidates


def generate_levels(spec: ModelSpec) -> List[MisspecificationLevel]:
    """Build the population model of every level, level 0 first.

    Args:
        spec: Validated standardized true model.

    Returns:
        ``n_factors`` levels: the true model followed by ``n_factors - 1``
        cumulative misspecified models.

    Raises:
        InsufficientCandidatesError: If the candidates run out first.
    """
    n_levels = spec.n_factors - 1
    candidates = enumerate_candidates(spec)
    if len(candidates) < n_levels:
        raise InsufficientCandidatesError(
            f"There are not enough free items to produce all misspecification levels "
            f"(need {n_levels}, found {len(candidates)})."
        )

    levels = [MisspecificationLevel(0, None, spec)]
    model = spec
    for k, candidate in enumerate(candidates[:n_levels], start=1):
        model = model.with_cross_loading(candidate.item, candidate.target_factor, candidate.magnitude)
        levels.append(MisspecificationLevel(k, candidate, model))
    return levels
