"""Internal solvers for temporally constrained clustering.

This module contains low-level solver implementations. These are not part of the
public API and should not be imported directly by users. Instead, use the
estimator classes in `pyTUDA.clustering`.

Modules
-------
reshape : Trial tensor layout and one-hot state time courses
linear : Least-squares and ridge solves
constraints : Transition constraints on state assignments
regression : Iterative regression-based reassignment
hierarchical : Hierarchical clustering of time point models
sequential : Randomized sequential segmentation
"""

from pyTUDA._solvers.constraints import (
    check_structures,
    constrained_argmin,
    repair_initial_state,
)
from pyTUDA._solvers.hierarchical import hierarchical_clustering, pairwise_distances
from pyTUDA._solvers.linear import ols, ridge
from pyTUDA._solvers.regression import RegressionState, regression_clustering
from pyTUDA._solvers.reshape import (
    assignment_from_gamma,
    check_trial_lengths,
    expand_gamma,
    gamma_from_assignment,
    to_trial_tensor,
)
from pyTUDA._solvers.sequential import sequential_search

__all__ = [
    # Layout
    "check_trial_lengths",
    "to_trial_tensor",
    "gamma_from_assignment",
    "assignment_from_gamma",
    "expand_gamma",
    # Least squares
    "ols",
    "ridge",
    # Constraints
    "check_structures",
    "constrained_argmin",
    "repair_initial_state",
    # Strategies
    "RegressionState",
    "regression_clustering",
    "hierarchical_clustering",
    "pairwise_distances",
    "sequential_search",
]
