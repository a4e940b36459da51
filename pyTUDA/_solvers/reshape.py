"""Arrange stacked trials into (time x trial x feature) tensors and back."""

import numpy as np


def check_trial_lengths(T, n_samples):
    """Check the trial lengths and return the size of the trial tensor.

    Parameters
    ----------
    T : int, array-like of int or None
        Length of every trial, or the per-trial lengths. If None, all samples
        are taken as a single trial.
    n_samples : int
        Number of rows in the stacked data.

    Returns
    -------
    n_timepoints : int
        Number of time points within a trial.
    n_trials : int
        Number of trials.

    Raises
    ------
    ValueError
        If the trials do not all have the same length or do not add up to
        ``n_samples``.
    """
    if T is None:
        return n_samples, 1

    lengths = np.atleast_1d(np.asarray(T))
    if lengths.ndim != 1 or lengths.size == 0 or not np.issubdtype(lengths.dtype, np.number):
        raise ValueError(f"T must be an int or a 1D sequence of ints. Got {T!r}.")
    if np.any(lengths != np.round(lengths)) or np.any(lengths < 1):
        raise ValueError(f"Trial lengths must be positive integers. Got {T!r}.")
    lengths = lengths.astype(int)

    if lengths.size == 1:
        n_timepoints = int(lengths[0])
        if n_samples % n_timepoints != 0:
            raise ValueError(
                f"{n_samples} samples cannot be split into trials of {n_timepoints} time points."
            )
        return n_timepoints, n_samples // n_timepoints

    if np.any(lengths != lengths[0]):
        raise ValueError("All trials must have the same length.")
    if lengths.sum() != n_samples:
        raise ValueError(
            f"Trial lengths add up to {lengths.sum()} samples but the data has {n_samples}."
        )
    return int(lengths[0]), int(lengths.size)


def to_trial_tensor(X, n_timepoints):
    """Reshape stacked trials into a (time x trial x feature) tensor.

    Parameters
    ----------
    X : (n_timepoints * n_trials, n_features) ndarray
        Data with the trials stacked one after the other.
    n_timepoints : int
        Number of time points within a trial.

    Returns
    -------
    X3 : (n_timepoints, n_trials, n_features) ndarray
        ``X3[t, n]`` is time point ``t`` of trial ``n``.
    """
    n_samples, n_features = X.shape
    n_trials = n_samples // n_timepoints
    return X.reshape(n_trials, n_timepoints, n_features).transpose(1, 0, 2)


def flatten_trials(X3):
    """Stack the trials of a (time x trial x feature) tensor back into rows."""
    n_timepoints, n_trials, n_features = X3.shape
    return X3.transpose(1, 0, 2).reshape(n_timepoints * n_trials, n_features)


def pool_timepoints(X3, mask):
    """Pool the rows of all trials at the time points selected by ``mask``.

    Parameters
    ----------
    X3 : (n_timepoints, n_trials, n_features) ndarray
        Trial tensor.
    mask : (n_timepoints,) ndarray of bool
        Selected time points.

    Returns
    -------
    pooled : (n_selected * n_trials, n_features) ndarray
        Design rows of the selected time points.
    """
    return X3[mask].reshape(-1, X3.shape[2])


def gamma_from_assignment(assignment, n_states):
    """One-hot encode a state assignment.

    Parameters
    ----------
    assignment : (n_timepoints,) array-like of int
        0-based state label of every time point.
    n_states : int
        Number of states.

    Returns
    -------
    gamma : (n_timepoints, n_states) ndarray
        State time course with exactly one 1 per row.
    """
    assignment = np.asarray(assignment, dtype=int)
    if assignment.size and (assignment.min() < 0 or assignment.max() >= n_states):
        raise ValueError(f"State labels must lie in [0, {n_states}). Got {assignment!r}.")
    gamma = np.zeros((assignment.size, n_states))
    gamma[np.arange(assignment.size), assignment] = 1
    return gamma


def assignment_from_gamma(gamma):
    """Decode a one-hot state time course into state labels.

    Parameters
    ----------
    gamma : (n_timepoints, n_states) array-like
        One-hot state time course.

    Returns
    -------
    assignment : (n_timepoints,) ndarray of int
        0-based state label of every time point.

    Raises
    ------
    ValueError
        If ``gamma`` is not two-dimensional or any row is not one-hot.
    """
    gamma = np.asarray(gamma, dtype=float)
    if gamma.ndim != 2:
        raise ValueError(f"Gamma must be a 2D array. Got an array with dim {gamma.ndim}.")
    if not is_one_hot(gamma):
        raise ValueError("Gamma must hold exactly one 1 per row and zeros elsewhere.")
    return np.argmax(gamma, axis=1)


def is_one_hot(gamma):
    """Check that every row of ``gamma`` holds exactly one 1 and zeros elsewhere."""
    gamma = np.asarray(gamma)
    return gamma.ndim == 2 and np.all(np.isin(gamma, (0, 1))) and np.all(gamma.sum(axis=1) == 1)


def expand_gamma(gamma, n_trials):
    """Replicate a per-time-point state time course over all trials.

    Parameters
    ----------
    gamma : (n_timepoints, n_states) ndarray
        State time course shared by every trial.
    n_trials : int
        Number of trials.

    Returns
    -------
    gamma_trials : (n_timepoints * n_trials, n_states) ndarray
        State time course for the stacked data.
    """
    return np.tile(gamma, (n_trials, 1))


def is_classification(Y, max_num_classes=5):
    """Whether the stimulus looks categorical (fewer than ``max_num_classes`` values)."""
    return np.unique(np.asarray(Y)).size < max_num_classes
