"""
Progress reporting for DynamicFit simulations.

Provides a callback-based progress system that works from both Python scripts
and GUI applications. Progress is reported via a simple (current, total) callback.

Replications run level by level (level 0 first), so a position in the run
also tells which misspecification level is being simulated. Reporters that
expose an ``n_levels`` attribute are told the level count when the run starts
and show the current level.
"""

import sys
from typing import Callable, Optional


class SimulationCancelled(Exception):
    """Raised when a simulation is cancelled by the user."""

    pass


def level_at(current: int, total: int, n_levels: int) -> int:
    """Level being simulated after *current* of *total* replications.

    Every level contributes ``total / n_levels`` replications; a finished run
    reports the last level.
    """
    if total <= 0 or n_levels <= 1:
        return 0
    return min(current * n_levels // total, n_levels - 1)


class ProgressReporter:
    """Wraps a ``(current, total)`` callback with counting and throttling.

    Tracks the number of completed replications and fires the callback
    at most once every *update_every* advances.

    Args:
        total: Total number of replications over all levels.
        callback: Function called as ``callback(current, total)`` on each
            (throttled) update.
        update_every: Fire the callback at most once per this many advances.
            Defaults to ``max(1, total // 200)``.
        n_levels: Number of levels the replications are spread over.
    """

    def __init__(
        self,
        total: int,
        callback: Callable[[int, int], None],
        update_every: Optional[int] = None,
        n_levels: int = 1,
    ):
        self.total = total
        self.n_levels = n_levels
        self._callback = callback
        self._current = 0
        self.update_every = update_every if update_every is not None else max(1, total // 200)

    @property
    def current(self) -> int:
        return self._current

    @property
    def level(self) -> int:
        return level_at(self._current, self.total, self.n_levels)

    def start(self):
        """Signal the beginning of the run (fires an initial 0/total update).

        A callback with an unset ``n_levels`` attribute receives the level
        count first.
        """
        if getattr(self._callback, "n_levels", 0) is None:
            self._callback.n_levels = self.n_levels
        self._current = 0
        self._callback(0, self.total)

    def advance(self, n: int = 1):
        """Advance the counter by *n* steps, firing the callback when due."""
        self._current += n
        if self._current >= self.total or self._current % self.update_every == 0:
            self._callback(self._current, self.total)

    def finish(self):
        """Signal completion (fires a final total/total update if not already there)."""
        if self._current < self.total:
            self._current = self.total
            self._callback(self.total, self.total)


class PrintReporter:
    """Console progress reporter.

    Prints ``\\rProgress: 45.2% (723/1600 replications, level 1/3)``; the
    level part appears once the level count is known.
    """

    def __init__(self, n_levels: Optional[int] = None):
        self.n_levels = n_levels

    def __call__(self, current: int, total: int):
        if total <= 0:
            return
        pct = 100.0 * current / total
        where = ""
        if self.n_levels:
            where = f", level {level_at(current, total, self.n_levels)}/{self.n_levels - 1}"
        sys.stderr.write(f"\rProgress: {pct:5.1f}% ({current}/{total} replications{where})")
        sys.stderr.flush()
        if current >= total:
            sys.stderr.write("\n")
            sys.stderr.flush()


class TqdmReporter:
    """Optional tqdm-based progress reporter (lazy import).

    The bar description follows the level being simulated.

    Usage::

        from dynamicfit.progress import TqdmReporter
        cfa_hb(model, n=400, progress_callback=TqdmReporter())
    """

    def __init__(self, n_levels: Optional[int] = None, **tqdm_kwargs):
        self.n_levels = n_levels
        self._tqdm_kwargs = tqdm_kwargs
        self._bar = None
        self._level = None

    def __call__(self, current: int, total: int):
        from tqdm import tqdm

        if self._bar is None:
            self._bar = tqdm(total=total, unit="rep", **self._tqdm_kwargs)
            self._level = None

        if self.n_levels:
            level = level_at(current, total, self.n_levels)
            if level != self._level:
                self._bar.set_description(f"Level {level}")
                self._level = level

        delta = current - self._bar.n
        if delta > 0:
            self._bar.update(delta)

        if current >= total:
            self._bar.close()
            self._bar = None


def compute_total_replications(reps: int, n_factors: int) -> int:
    """Return the number of model fits a run performs.

    The true-model distribution (level 0) is simulated once and shared, and
    each of the ``n_factors - 1`` misspecified levels adds its own
    replications.

    Args:
        reps: Replications per level.
        n_factors: Number of factors of the model.

    Returns:
        ``reps * n_factors``.
    """
    return reps * n_factors
