"""
Signal helpers for length discovery.

Counter readings for probes of increasing length form a short 1-D
signal; these functions turn it into step changes and deviation scores.
"""

from typing import Sequence
import numpy as np
from scipy import stats


def step_changes(values: Sequence[float]) -> np.ndarray:
    """
    Difference between each reading and the one before it.

    Args:
        values: Readings ordered by probe length

    Returns:
        Array with len(values) - 1 entries (empty for fewer than 2 values)

    Example:
        >>> step_changes([100, 110, 120, 500]).tolist()
        [10, 10, 380]
    """
    if len(values) < 2:
        return np.array([], dtype=float)
    return np.diff(np.asarray(values, dtype=float))


def deviation(history: Sequence[float], value: float) -> float:
    """
    How many standard deviations `value` lies from the mean of `history`.

    A perfectly constant history has no spread, so any different value
    is infinitely far from it and an equal value scores 0.

    Args:
        history: Earlier observations
        value: New observation

    Returns:
        Absolute deviation in units of the history's standard deviation
    """
    if len(history) == 0:
        return 0.0

    data = np.asarray(history, dtype=float)
    mean = float(np.mean(data))
    std_dev = float(np.std(data))

    if std_dev == 0:
        return 0.0 if value == mean else float("inf")

    return abs(value - mean) / std_dev


def largest_step(values: Sequence[float]) -> int:
    """
    Index of the reading reached by the largest increase.

    Args:
        values: Readings ordered by probe length

    Returns:
        Index into `values` (0 when fewer than 2 values)
    """
    changes = step_changes(values)
    if changes.size == 0:
        return 0
    return int(np.argmax(changes)) + 1


def spike_scores(values: Sequence[float]) -> np.ndarray:
    """
    Z-score of every reading against the whole signal.

    Args:
        values: Readings ordered by probe length

    Returns:
        Array of z-scores; a constant signal scores 0 everywhere
    """
    if len(values) == 0:
        return np.array([], dtype=float)

    scores = stats.zscore(np.asarray(values, dtype=float))
    return np.nan_to_num(scores, nan=0.0)


def leads_signal(values: Sequence[float]) -> bool:
    """
    Whether the first reading stands strictly above every later one.

    largest_step only sees increases into a reading, so a signal that
    peaks at its very first value needs this separate check.

    Example:
        >>> leads_signal([4210, 220, 230])
        True
        >>> leads_signal([5, 5, 5])
        False
    """
    if len(values) < 2:
        return False
    return float(values[0]) > float(np.max(np.asarray(values[1:], dtype=float)))
