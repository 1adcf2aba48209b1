"""
Results processing for DynamicFit.

Turns the simulated fit distributions into dynamic cutoffs: per level and
fit index, the threshold that separates true-model fit from misspecified-model
fit with the highest power, and the display tables built from them.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import numpy as np

from ..tables import FIT_INDEX_NAMES, LEVEL0_POWER, MIN_REPORTED_POWER, TRUE_REFERENCE_PROBS, grids

__all__ = [
    "IndexCutoff",
    "CutoffRow",
    "true_reference",
    "derive_index_cutoff",
    "derive_cutoffs",
    "build_cutoff_table",
    "build_replication_data",
]


@dataclass(frozen=True)
class IndexCutoff:
    """Cutoff of one fit index at one level.

    Attributes:
        value: Threshold, rounded to 3 decimals.
        power: Proportion of misspecified fits beyond the threshold (for
            level 0, the specificity .95).
    """

    value: float
    power: float

    @property
    def reported(self) -> Optional[float]:
        """The threshold, or ``None`` when its power is below .50."""
        return self.value if self.power >= MIN_REPORTED_POWER else None


@dataclass(frozen=True)
class CutoffRow:
    """Cutoffs of every fit index at one level.

    Attributes:
        level: Misspecification level (0 = true model).
        srmr, rmsea, cfi: Per-index cutoff and power.
        magnitude: Cross-loading added at this level (``None`` at level 0).
    """

    level: int
    srmr: IndexCutoff
    rmsea: IndexCutoff
    cfi: IndexCutoff
    magnitude: Optional[float] = None

    def cutoff(self, index: str) -> IndexCutoff:
        return getattr(self, index.lower())


def _round3(value: float) -> float:
    return float(np.round(value, 3))


def true_reference(true_values: np.ndarray, index: str) -> float:
    """Reference point of the true-model distribution.

    95th percentile for SRMR and RMSEA, 5th percentile for CFI.
    """
    return float(np.quantile(true_values, TRUE_REFERENCE_PROBS[index]))


def derive_index_cutoff(true_values: np.ndarray, mis_values: np.ndarray, index: str) -> IndexCutoff:
    """Highest-power threshold separating misspecified from true fits.

    The misspecified distribution is summarized on a quantile grid aligned
    with powers .95, .94, ..., .00. A grid point discriminates when it lies
    on the misfit side of the true reference (at or above for SRMR/RMSEA, at
    or below for CFI). The first discriminating point wins; if none does,
    the power = 0 boundary point is returned.

    Args:
        true_values: Usable values of *index* from true-model fits.
        mis_values: Usable values of *index* from misspecified fits.
        index: ``"SRMR"``, ``"RMSEA"`` or ``"CFI"``.

    Returns:
        ``IndexCutoff`` with value and power rounded to 3 decimals.
    """
    probs, powers = grids(index)
    mis_quantiles = np.quantile(mis_values, probs)
    reference = true_reference(true_values, index)

    if index == "CFI":
        flags = mis_quantiles <= reference
    else:
        flags = mis_quantiles >= reference

    hits = np.flatnonzero(flags)
    pos = int(hits[0]) if hits.size else len(powers) - 1
    return IndexCutoff(_round3(mis_quantiles[pos]), _round3(powers[pos]))


def _level0_row(true_run) -> CutoffRow:
    cutoffs = {name.lower(): IndexCutoff(_round3(true_reference(true_run.index(name), name)), LEVEL0_POWER) for name in FIT_INDEX_NAMES}
    return CutoffRow(level=0, magnitude=None, **cutoffs)


def derive_cutoffs(runs: Sequence, magnitudes: Sequence[Optional[float]]) -> List[CutoffRow]:
    """Derive the cutoff row of every level.

    Args:
        runs: ``SimulationRun`` per level; ``runs[0]`` is the true-model
            distribution shared by every level.
        magnitudes: Cross-loading added at each level (``None`` for level 0).

    Returns:
        Rows for levels ``0 .. len(runs) - 1``.
    """
    true_run = runs[0]
    rows = [_level0_row(true_run)]
    for run in runs[1:]:
        cutoffs = {name.lower(): derive_index_cutoff(true_run.index(name), run.index(name), name) for name in FIT_INDEX_NAMES}
        magnitude = magnitudes[run.level]
        rows.append(CutoffRow(level=run.level, magnitude=None if magnitude is None else _round3(magnitude), **cutoffs))
    return rows


# ----------------------------------------------------------------------
# Tables
# ----------------------------------------------------------------------


def _format_number(value: Optional[float]) -> str:
    return "NONE" if value is None else f"{value:g}"


def _format_power(power: float) -> str:
    return f"{round(100 * power, 2):g}%"


def build_cutoff_table(rows: Sequence[CutoffRow]):
    """Assemble the display table.

    Each level contributes a cutoff row ("Level-k"), a power row
    ("Specificity" at level 0, "Sensitivity" afterwards) and a blank
    spacer; the trailing spacer is dropped.

    Returns:
        ``pandas.DataFrame`` of strings with columns SRMR, RMSEA, CFI and
        Magnitude.
    """
    import pandas as pd

    labels: List[str] = []
    records: List[Dict[str, str]] = []
    blank = dict.fromkeys(FIT_INDEX_NAMES + ("Magnitude",), "")

    for row in rows:
        if row.level == 0:
            values = {name: _format_number(row.cutoff(name).value) for name in FIT_INDEX_NAMES}
            power_label = "Specificity"
        else:
            values = {name: _format_number(row.cutoff(name).reported) for name in FIT_INDEX_NAMES}
            power_label = "Sensitivity"
        values["Magnitude"] = _format_number(row.magnitude)

        powers = {name: _format_power(row.cutoff(name).power) for name in FIT_INDEX_NAMES}
        powers["Magnitude"] = ""

        labels += [f"Level-{row.level}", power_label, ""]
        records += [values, powers, dict(blank)]

    return pd.DataFrame(records[:-1], index=labels[:-1], columns=list(FIT_INDEX_NAMES) + ["Magnitude"])


def build_replication_data(runs: Sequence):
    """Long table of every simulated fit, one row per (level, replication).

    Levels 1 .. K-1 are included; each row pairs replication ``r`` of the
    true-model distribution with replication ``r`` of the level. Failed
    replications appear as ``NaN``.
    """
    import pandas as pd

    true_values = runs[0].values
    frames = []
    for run in runs[1:]:
        frame = pd.DataFrame(
            np.hstack([true_values, run.values]),
            columns=[f"{name}_T" for name in FIT_INDEX_NAMES] + [f"{name}_M" for name in FIT_INDEX_NAMES],
        )
        frame.insert(0, "replication", np.arange(run.reps))
        frame.insert(0, "level", run.level)
        frames.append(frame)
    return pd.concat(frames, ignore_index=True)
