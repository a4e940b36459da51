"""Iterative regression-based state assignment.

Alternates between fitting one linear decoding model per state on the time
points assigned to it (M-step) and reassigning every time point to the state
whose model reconstructs it best under the transition constraints (E-step),
until the assignment stops changing.
"""

import logging
from typing import NamedTuple

import numpy as np

from pyTUDA._solvers.constraints import constrained_argmin
from pyTUDA._solvers.linear import ols
from pyTUDA._solvers.reshape import flatten_trials, pool_timepoints

LGR = logging.getLogger("GENERAL")


class RegressionState(NamedTuple):
    """State of the regression clustering after one pass."""

    assignment: np.ndarray
    coef: np.ndarray
    active: np.ndarray
    errors: np.ndarray
    total_error: float
    n_iter: int
    converged: bool


def fit_state_models(X3, Y3, assignment, n_states):
    """Fit one least-squares model per state (M-step).

    Parameters
    ----------
    X3 : (n_timepoints, n_trials, p) ndarray
        Brain data.
    Y3 : (n_timepoints, n_trials, q) ndarray
        Stimulus data.
    assignment : (n_timepoints,) ndarray of int
        State of every time point.
    n_states : int
        Number of states.

    Returns
    -------
    coef : (p, q, n_states) ndarray
        Coefficients of every state; zeros for states without time points.
    active : (n_states,) ndarray of bool
        Whether the state has time points and therefore a model.
    """
    p = X3.shape[2]
    q = Y3.shape[2]
    coef = np.zeros((p, q, n_states))
    active = np.zeros(n_states, dtype=bool)
    for k in range(n_states):
        mask = assignment == k
        if not np.any(mask):
            continue
        coef[:, :, k] = ols(pool_timepoints(X3, mask), pool_timepoints(Y3, mask))
        active[k] = True
    return coef, active


def state_errors(X3, Y3, coef):
    """Squared reconstruction error of every state model at every time point.

    Parameters
    ----------
    X3 : (n_timepoints, n_trials, p) ndarray
        Brain data.
    Y3 : (n_timepoints, n_trials, q) ndarray
        Stimulus data.
    coef : (p, q, n_states) ndarray
        State models.

    Returns
    -------
    errors : (n_timepoints, n_states) ndarray
        Error summed over responses and trials.
    """
    # (t, n, p) x (p, q, k) -> (t, n, q, k)
    Y_hat = np.einsum("tnp,pqk->tnqk", X3, coef)
    return np.sum((Y3[..., np.newaxis] - Y_hat) ** 2, axis=(1, 2))


def regression_step(state, X3, Y3, transition_structure, initial_structure):
    """Run one M-step and one E-step and return the next state."""
    n_states = state.coef.shape[2]
    coef, active = fit_state_models(X3, Y3, state.assignment, n_states)
    errors = state_errors(X3, Y3, coef)
    assignment = constrained_argmin(errors, transition_structure, initial_structure, active)
    total_error = float(np.sum(errors[np.arange(errors.shape[0]), assignment]))
    return RegressionState(
        assignment=assignment,
        coef=coef,
        active=active,
        errors=errors,
        total_error=total_error,
        n_iter=state.n_iter + 1,
        converged=bool(np.array_equal(assignment, state.assignment)),
    )


def regression_clustering(
    X3, Y3, assignment, n_states, transition_structure, initial_structure, max_iter=100
):
    """Refine a state assignment with alternating regression fits.

    Parameters
    ----------
    X3 : (n_timepoints, n_trials, p) ndarray
        Brain data.
    Y3 : (n_timepoints, n_trials, q) ndarray
        Stimulus data.
    assignment : (n_timepoints,) ndarray of int
        Initial state of every time point.
    n_states : int
        Number of states.
    transition_structure : (n_states, n_states) ndarray of bool
        Allowed transitions.
    initial_structure : (n_states,) ndarray of bool
        Allowed initial states.
    max_iter : int, optional
        Maximum number of passes, by default 100

    Returns
    -------
    state : RegressionState
        Final state.
    error_history : list of float
        Total reconstruction error after every pass.
    """
    p = X3.shape[2]
    q = Y3.shape[2]
    state = RegressionState(
        assignment=np.asarray(assignment, dtype=int),
        coef=np.zeros((p, q, n_states)),
        active=np.zeros(n_states, dtype=bool),
        errors=np.zeros((X3.shape[0], n_states)),
        total_error=np.inf,
        n_iter=0,
        converged=False,
    )

    error_history = []
    while state.n_iter < max_iter:
        state = regression_step(state, X3, Y3, transition_structure, initial_structure)
        error_history.append(state.total_error)
        LGR.debug(
            f"Iteration: {state.n_iter} / {max_iter}, total error: {state.total_error:.6g}"
        )
        if state.converged:
            break

    if state.converged:
        LGR.info(f"Regression clustering converged after {state.n_iter} iterations")
    else:
        LGR.warning(f"Regression clustering did not converge after {max_iter} iterations")

    empty = np.flatnonzero(np.bincount(state.assignment, minlength=n_states) == 0)
    if empty.size:
        LGR.warning(f"States {empty.tolist()} have no time points assigned")

    return state, error_history


def predict_response(X3, assignment, coef):
    """Predict the stimulus of every sample with the model of its state.

    Parameters
    ----------
    X3 : (n_timepoints, n_trials, p) ndarray
        Brain data.
    assignment : (n_timepoints,) ndarray of int
        State of every time point.
    coef : (p, q, n_states) ndarray
        State models.

    Returns
    -------
    Y_hat : (n_timepoints * n_trials, q) ndarray
        Predictions, trials stacked like the input data.
    """
    Y_hat = np.einsum("tnp,pqt->tnq", X3, coef[:, :, assignment])
    return flatten_trials(Y_hat)
