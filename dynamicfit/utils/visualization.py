"""
Visualization utilities for DynamicFit.

Draws, for each misspecification level, the simulated true-model and
misspecified-model distributions of SRMR, RMSEA and CFI with the dynamic and
the Hu & Bentler cutoffs.
"""

from typing import List

import numpy as np

from ..tables import FIT_INDEX_NAMES, HU_BENTLER_CUTOFFS

__all__ = []

_TRUE_COLOR = "#66C2F5"
_MISSPECIFIED_COLOR = "#E9798C"


def _create_level_plot(true_run, mis_run, row):
    """Create one figure with an SRMR, RMSEA and CFI histogram panel.

    Args:
        true_run: ``SimulationRun`` of the true model.
        mis_run: ``SimulationRun`` of the level.
        row: ``CutoffRow`` of the level (dynamic cutoffs are drawn even
            when reported as NONE).

    Returns:
        The matplotlib ``Figure``.

    Raises:
        ImportError: If ``matplotlib`` is not installed.
    """
    try:
        import matplotlib.pyplot as plt
    except ImportError:
        raise ImportError("matplotlib required for plotting: pip install matplotlib") from None

    fig, axes = plt.subplots(1, len(FIT_INDEX_NAMES), figsize=(15, 4.5))

    for ax, name in zip(np.atleast_1d(axes), FIT_INDEX_NAMES):
        true_values = true_run.index(name)
        mis_values = mis_run.index(name)
        bins = np.histogram_bin_edges(np.concatenate([true_values, mis_values]), bins=30)

        ax.hist(mis_values, bins=bins, alpha=0.5, color=_MISSPECIFIED_COLOR, label="Misspecified")
        ax.hist(true_values, bins=bins, alpha=0.5, color=_TRUE_COLOR, label="True")
        ax.axvline(row.cutoff(name).value, color="black", linestyle="--", linewidth=1.2, label="Dynamic Cutoff")
        ax.axvline(HU_BENTLER_CUTOFFS[name], color="black", linestyle=":", linewidth=1.5, label="Hu & Bentler Cutoff")

        ax.set_xlabel(name, fontsize=12)
        ax.set_yticks([])
        for side in ("top", "right", "left"):
            ax.spines[side].set_visible(False)

    np.atleast_1d(axes)[-1].legend(bbox_to_anchor=(1.02, 1), loc="upper left", frameon=False)
    fig.suptitle(f"Level {row.level}", fontsize=14, fontweight="bold")
    fig.tight_layout()
    return fig


def _create_distribution_plots(runs, rows) -> List:
    """One figure per misspecification level (levels 1 .. K-1)."""
    return [_create_level_plot(runs[0], run, row) for run, row in zip(runs[1:], rows[1:])]
