"""Transition constraints on state assignments.

``transition_structure[j, k]`` is True when state ``k`` may directly follow
state ``j``; ``initial_structure[k]`` is True when state ``k`` may be
assigned to the first time point.
"""

import logging
import warnings

import numpy as np

from pyTUDA.base import ConstraintInfeasibleWarning

LGR = logging.getLogger("GENERAL")


def check_structures(transition_structure, initial_structure, n_states):
    """Validate the transition constraints and fill in the defaults.

    Parameters
    ----------
    transition_structure : (n_states, n_states) array-like of bool or None
        Allowed transitions. None allows every transition.
    initial_structure : (n_states,) array-like of bool or None
        Allowed initial states. None allows every state.
    n_states : int
        Number of states.

    Returns
    -------
    transition_structure : (n_states, n_states) ndarray of bool
    initial_structure : (n_states,) ndarray of bool
    """
    if transition_structure is None:
        transition_structure = np.ones((n_states, n_states), dtype=bool)
    else:
        transition_structure = np.array(transition_structure, dtype=bool)
        if transition_structure.shape != (n_states, n_states):
            raise ValueError(
                f"transition_structure must have shape ({n_states}, {n_states}). "
                f"Got {transition_structure.shape}."
            )

    if initial_structure is None:
        initial_structure = np.ones(n_states, dtype=bool)
    else:
        initial_structure = np.array(initial_structure, dtype=bool).ravel()
        if initial_structure.shape != (n_states,):
            raise ValueError(
                f"initial_structure must have {n_states} elements. "
                f"Got {initial_structure.size}."
            )

    transition_structure.flags.writeable = False
    initial_structure.flags.writeable = False
    return transition_structure, initial_structure


def feasible_states(previous, transition_structure, initial_structure):
    """Boolean mask of the states allowed after ``previous``.

    Parameters
    ----------
    previous : int or None
        State of the preceding time point, None for the first time point.
    transition_structure : (n_states, n_states) ndarray of bool
    initial_structure : (n_states,) ndarray of bool

    Returns
    -------
    mask : (n_states,) ndarray of bool
    """
    if previous is None:
        return initial_structure
    return transition_structure[previous]


def constrained_argmin(errors, transition_structure, initial_structure, active=None):
    """Assign every time point to its lowest-error feasible state, in time order.

    Each decision only considers the states allowed after the state chosen
    for the previous time point. Ties go to the lowest state index.

    Parameters
    ----------
    errors : (n_timepoints, n_states) ndarray
        Error of every state at every time point.
    transition_structure : (n_states, n_states) ndarray of bool
    initial_structure : (n_states,) ndarray of bool
    active : (n_states,) ndarray of bool, optional
        States eligible at all. By default every state is.

    Returns
    -------
    assignment : (n_timepoints,) ndarray of int
        0-based state of every time point.

    Warns
    -----
    ConstraintInfeasibleWarning
        If no state is feasible at some time point. That time point is
        assigned to state 0.
    """
    n_timepoints, n_states = errors.shape
    if active is None:
        active = np.ones(n_states, dtype=bool)

    assignment = np.zeros(n_timepoints, dtype=int)
    previous = None
    infeasible = []
    for t in range(n_timepoints):
        candidates = np.flatnonzero(
            feasible_states(previous, transition_structure, initial_structure) & active
        )
        if candidates.size == 0:
            infeasible.append(t)
            state = 0
        else:
            state = candidates[np.argmin(errors[t, candidates])]
        assignment[t] = state
        previous = state

    if infeasible:
        msg = (
            f"No feasible state at time point(s) {infeasible}; "
            "falling back to state 0 there."
        )
        LGR.warning(msg)
        warnings.warn(msg, ConstraintInfeasibleWarning, stacklevel=2)

    return assignment


def repair_initial_state(assignment, initial_structure):
    """Relabel an assignment so that its first state is an allowed initial state.

    If the state of the first time point is forbidden, its label is swapped
    with the first allowed state everywhere in the assignment; the partition
    of the time points is unchanged.

    Parameters
    ----------
    assignment : (n_timepoints,) ndarray of int
        0-based state of every time point.
    initial_structure : (n_states,) ndarray of bool

    Returns
    -------
    assignment : (n_timepoints,) ndarray of int
        Relabelled copy of the assignment.
    """
    assignment = np.array(assignment, dtype=int)
    first = assignment[0]
    if initial_structure[first]:
        return assignment

    allowed = np.flatnonzero(initial_structure)
    if allowed.size == 0:
        msg = "initial_structure forbids every state; the initial assignment is kept."
        LGR.warning(msg)
        warnings.warn(msg, ConstraintInfeasibleWarning, stacklevel=2)
        return assignment

    target = allowed[0]
    LGR.info(f"Swapping states {first} and {target} to satisfy the initial state constraint.")
    swapped = assignment.copy()
    swapped[assignment == first] = target
    swapped[assignment == target] = first
    return swapped
