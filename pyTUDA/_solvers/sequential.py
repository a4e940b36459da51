"""Sequential segmentation of the trial timeline into ordered blocks.

A segmentation is described by ``n_states + 1`` breakpoints
``b[0] = 0 <= b[1] <= ... <= b[n_states] = n_timepoints - 1``. Block ``k``
covers the time points ``b[k]..b[k + 1]``. Scoring fits every block on that
whole span, while the returned labels let a later block take over the boundary
point it shares with the previous one, so blocks are contiguous and ordered in
time.
"""

import logging

import numpy as np
from dask import compute
from dask import delayed as delayed_dask

from pyTUDA._solvers.linear import ridge
from pyTUDA.base import SegmentationGenerationError
from pyTUDA.utils import get_dask_scheduler_name, get_num_workers

LGR = logging.getLogger("GENERAL")


def round_half_up(x):
    """Round non-negative values to the nearest integer, halves going up."""
    return np.floor(np.asarray(x, dtype=float) + 0.5).astype(int)


def contiguous_breakpoints(n_timepoints, n_states):
    """Breakpoints of roughly equal blocks, spaced ``round(n_timepoints / n_states)`` apart.

    Parameters
    ----------
    n_timepoints : int
        Number of time points within a trial.
    n_states : int
        Number of blocks.

    Returns
    -------
    breakpoints : (n_states + 1,) ndarray of int
    """
    step = round_half_up(n_timepoints / n_states)
    inner = np.arange(1, n_states) * step - 1
    breakpoints = np.concatenate(([0], inner, [n_timepoints - 1]))
    return np.clip(breakpoints, 0, n_timepoints - 1)


def random_breakpoints(n_timepoints, n_states, rng, max_tries=1000):
    """Draw the breakpoints of a random segmentation.

    The cumulative sum of ``n_states`` uniform draws is scaled to the trial
    length; draws that would produce an empty block are rejected.

    Parameters
    ----------
    n_timepoints : int
        Number of time points within a trial.
    n_states : int
        Number of blocks.
    rng : numpy.random.Generator
        Random number generator.
    max_tries : int, optional
        Number of draws before giving up, by default 1000

    Returns
    -------
    breakpoints : (n_states + 1,) ndarray of int

    Raises
    ------
    SegmentationGenerationError
        If no valid segmentation exists or none was drawn within ``max_tries``.
    """
    if n_states > n_timepoints - 1:
        raise SegmentationGenerationError(
            f"A random segmentation of {n_timepoints} time points into {n_states} blocks "
            "cannot be drawn; at least n_states + 1 time points are needed."
        )

    for _ in range(max_tries):
        changes = np.cumsum(rng.random(n_states))
        changes = round_half_up(n_timepoints * changes / changes[-1])
        changes = np.concatenate(([1], changes))
        if np.all(changes != 0) and np.unique(changes).size == changes.size:
            return np.concatenate(([0], changes[1:] - 1))

    raise SegmentationGenerationError(
        f"No valid segmentation of {n_timepoints} time points into {n_states} blocks "
        f"was drawn after {max_tries} tries."
    )


def assignment_from_breakpoints(breakpoints, n_timepoints):
    """State of every time point for the given breakpoints."""
    assignment = np.zeros(n_timepoints, dtype=int)
    for k in range(len(breakpoints) - 1):
        assignment[breakpoints[k] : breakpoints[k + 1] + 1] = k
    return assignment


def segmentation_score(X3, Y3, breakpoints, alpha=1e-4):
    """Total residual of a segmentation.

    Block ``k`` is fitted on the time points ``b[k]..b[k + 1]``, boundary
    point included, even though the next block takes that point over in the
    final assignment.

    Parameters
    ----------
    X3 : (n_timepoints, n_trials, p) ndarray
        Brain data.
    Y3 : (n_timepoints, n_trials, q) ndarray
        Stimulus data.
    breakpoints : (n_states + 1,) ndarray of int
        Breakpoints of the segmentation.
    alpha : float, optional
        Ridge regularization of the per-block fits, by default 1e-4

    Returns
    -------
    score : float
        Sum over blocks of the residual norm of a ridge fit on the block.
    """
    p = X3.shape[2]
    q = Y3.shape[2]
    score = 0.0
    for start, stop in zip(breakpoints[:-1], breakpoints[1:]):
        Xk = X3[start : stop + 1].reshape(-1, p)
        Yk = Y3[start : stop + 1].reshape(-1, q)
        beta = ridge(Xk, Yk, alpha=alpha)
        score += np.sqrt(np.sum((Yk - Xk @ beta) ** 2))
    return score


def sequential_search(
    X3, Y3, n_states, repetitions, rng, alpha=1e-4, max_tries=1000, n_jobs=1, client=None
):
    """Search for the best sequential segmentation among random restarts.

    The contiguous baseline is scored first and then ``repetitions`` random
    segmentations, drawn in order from ``rng``. A candidate only replaces the
    best one found so far if its score is strictly lower.

    Parameters
    ----------
    X3 : (n_timepoints, n_trials, p) ndarray
        Brain data.
    Y3 : (n_timepoints, n_trials, q) ndarray
        Stimulus data.
    n_states : int
        Number of states.
    repetitions : int
        Number of random segmentations.
    rng : numpy.random.Generator
        Random number generator.
    alpha : float, optional
        Ridge regularization of the per-block fits, by default 1e-4
    max_tries : int, optional
        Maximum draws per random segmentation, by default 1000
    n_jobs : int, optional
        Number of parallel jobs used to score the candidates, by default 1
    client : dask.distributed.Client, optional
        Client of a dask cluster. If given, the candidates are scored on the
        cluster and ``n_jobs`` is ignored.

    Returns
    -------
    assignment : (n_timepoints,) ndarray of int
        State of every time point in the best segmentation.
    breakpoints : (n_states + 1,) ndarray of int
        Breakpoints of the best segmentation.
    best_score : float
        Score of the best segmentation.
    baseline_score : float
        Score of the contiguous baseline.
    """
    n_timepoints = X3.shape[0]

    candidates = [contiguous_breakpoints(n_timepoints, n_states)]
    for _ in range(repetitions):
        candidates.append(random_breakpoints(n_timepoints, n_states, rng, max_tries=max_tries))

    LGR.debug(f"Scoring {len(candidates)} candidate segmentations")
    futures = [
        delayed_dask(segmentation_score, pure=False)(X3, Y3, breakpoints, alpha=alpha)
        for breakpoints in candidates
    ]
    if client is not None:
        scores = compute(futures)[0]
    else:
        scores = compute(
            futures,
            scheduler=get_dask_scheduler_name(n_jobs),
            num_workers=get_num_workers(n_jobs),
        )[0]

    best_idx = 0
    for idx in range(1, len(scores)):
        if scores[idx] < scores[best_idx]:
            best_idx = idx

    LGR.debug(f"Best segmentation found at candidate {best_idx} (score {scores[best_idx]:.6g})")
    best_breakpoints = candidates[best_idx]
    assignment = assignment_from_breakpoints(best_breakpoints, n_timepoints)
    return assignment, best_breakpoints, float(scores[best_idx]), float(scores[0])
