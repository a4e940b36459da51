"""Temporally constrained clustering of decoding models.

This module contains estimators that partition the time points of a trial
into states, each state holding one linear decoding model shared by all the
trials:

- `RegressionClustering`: Iterative regression-based reassignment.
- `HierarchicalClustering`: Agglomerative clustering of time point models.
- `SequentialClustering`: Best of randomized sequential segmentations.

`cluster_decoding` selects one of them and returns the state time course.
"""

import logging
from enum import Enum
from numbers import Integral, Real

import numpy as np

from pyTUDA._solvers.constraints import check_structures, repair_initial_state
from pyTUDA._solvers.hierarchical import hierarchical_clustering
from pyTUDA._solvers.regression import predict_response, regression_clustering
from pyTUDA._solvers.reshape import (
    assignment_from_gamma,
    check_trial_lengths,
    expand_gamma,
    flatten_trials,
    gamma_from_assignment,
    is_one_hot,
    to_trial_tensor,
)
from pyTUDA._solvers.sequential import sequential_search
from pyTUDA._utils import check_array
from pyTUDA.base import BaseEstimator, ClusterMixin, check_is_fitted
from pyTUDA.utils import dask_client, get_num_workers

LGR = logging.getLogger("GENERAL")
RefLGR = logging.getLogger("REFERENCES")

__all__ = [
    "ClusterMethod",
    "ClusterMeasure",
    "RegressionClustering",
    "HierarchicalClustering",
    "SequentialClustering",
    "cluster_decoding",
]


class ClusterMethod(str, Enum):
    """Strategy used to assign time points to states."""

    REGRESSION = "regression"
    HIERARCHICAL = "hierarchical"
    SEQUENTIAL = "sequential"


class ClusterMeasure(str, Enum):
    """Dissimilarity between time point models for hierarchical clustering."""

    ERROR = "error"
    RESPONSE = "response"
    BETA = "beta"


def _is_enum_value(enum_cls):
    def check(value):
        try:
            enum_cls(value)
        except ValueError:
            return False
        return True

    check.__name__ = f"one of {[member.value for member in enum_cls]}"
    return check


class _BaseTemporalClustering(ClusterMixin, BaseEstimator):
    """Base class for temporally constrained clustering estimators.

    Parameters
    ----------
    n_states : int
        Number of states (K).
    n_jobs : int, default=1
        Number of parallel jobs for the data-parallel loops.
    jobqueue : str, default=None
        Path to a dask jobqueue YAML file. If given, the data-parallel loops
        run on the SGE, PBS or SLURM cluster it describes.
    """

    _parameter_constraints = {
        "n_states": [("interval", Integral, 1, None, "left")],
        "n_jobs": [Integral, None],
        "jobqueue": [str, None],
    }

    def __init__(self, n_states, *, n_jobs=1, jobqueue=None):
        self.n_states = n_states
        self.n_jobs = n_jobs
        self.jobqueue = jobqueue

    def _check_data(self, X, y, T):
        """Validate the data and return the trial tensors."""
        self._validate_params()

        X = check_array(X)
        y = check_array(y)
        if X.shape[0] != y.shape[0]:
            raise ValueError(
                f"X and y must have the same number of samples. "
                f"Got {X.shape[0]} and {y.shape[0]}."
            )

        n_timepoints, n_trials = check_trial_lengths(T, X.shape[0])
        if self.n_states > n_timepoints:
            raise ValueError(
                f"n_states={self.n_states} is larger than the number of time points "
                f"per trial ({n_timepoints})."
            )

        self.n_timepoints_ = n_timepoints
        self.n_trials_ = n_trials
        self.n_features_in_ = X.shape[1]
        self.n_targets_ = y.shape[1]

        return to_trial_tensor(X, n_timepoints), to_trial_tensor(y, n_timepoints)

    def _dask_client(self):
        return dask_client(get_num_workers(self.n_jobs), self.jobqueue)

    def _set_assignment(self, assignment):
        self.labels_ = np.asarray(assignment, dtype=int)
        self.gamma_ = gamma_from_assignment(self.labels_, self.n_states)
        self.gamma_trials_ = expand_gamma(self.gamma_, self.n_trials_)
        if not is_one_hot(self.gamma_):
            raise RuntimeError("The state time course is not one-hot.")


class SequentialClustering(_BaseTemporalClustering):
    """Best of randomized sequential segmentations.

    The trial timeline is split into ``n_states`` contiguous blocks that are
    ordered in time. The evenly spaced segmentation and ``repetitions``
    random segmentations are scored by the residuals of a ridge regression
    fitted on each block, and the lowest-scoring one is kept.

    Parameters
    ----------
    n_states : int
        Number of states (blocks).
    repetitions : int, default=100
        Number of random segmentations tried on top of the evenly spaced one.
    alpha : float, default=1e-4
        Ridge regularization of the per-block regressions.
    max_tries : int, default=1000
        Maximum number of draws for each random segmentation.
    random_state : int, numpy.random.Generator or None, default=None
        Seed or generator for the random segmentations.
    n_jobs : int, default=1
        Number of parallel jobs used to score the segmentations.
    jobqueue : str, default=None
        Path to a dask jobqueue YAML file used to score the segmentations on
        a cluster.

    Attributes
    ----------
    labels_ : ndarray of shape (n_timepoints,)
        0-based state of every within-trial time point.
    gamma_ : ndarray of shape (n_timepoints, n_states)
        One-hot state time course.
    gamma_trials_ : ndarray of shape (n_timepoints * n_trials, n_states)
        State time course replicated over the trials.
    breakpoints_ : ndarray of shape (n_states + 1,)
        Breakpoints of the best segmentation.
    score_ : float
        Score of the best segmentation.
    baseline_score_ : float
        Score of the evenly spaced segmentation.

    Examples
    --------
    >>> import numpy as np
    >>> from pyTUDA import SequentialClustering
    >>> rng = np.random.default_rng(0)
    >>> X = rng.standard_normal((10 * 20, 3))  # 20 trials of 10 time points
    >>> y = rng.standard_normal((10 * 20, 1))
    >>> model = SequentialClustering(n_states=2, repetitions=10, random_state=0)
    >>> model.fit(X, y, T=10).gamma_.shape
    (10, 2)
    """

    _parameter_constraints = {
        **_BaseTemporalClustering._parameter_constraints,
        "repetitions": [("interval", Integral, 0, None, "left")],
        "alpha": [("interval", Real, 0, None, "left")],
        "max_tries": [("interval", Integral, 1, None, "left")],
    }

    def __init__(
        self,
        n_states,
        *,
        repetitions=100,
        alpha=1e-4,
        max_tries=1000,
        random_state=None,
        n_jobs=1,
        jobqueue=None,
    ):
        super().__init__(n_states, n_jobs=n_jobs, jobqueue=jobqueue)
        self.repetitions = repetitions
        self.alpha = alpha
        self.max_tries = max_tries
        self.random_state = random_state

    def fit(self, X, y, T=None):
        """Fit the sequential segmentation.

        Parameters
        ----------
        X : array-like of shape (n_timepoints * n_trials, n_features)
            Brain data, trials stacked along the first axis.
        y : array-like of shape (n_timepoints * n_trials, n_targets)
            Stimulus data, stacked like ``X``.
        T : int or array-like of int, default=None
            Length of the trials. If None, a single trial is assumed.

        Returns
        -------
        self : object
            Returns self.
        """
        X3, Y3 = self._check_data(X, y, T)
        rng = np.random.default_rng(self.random_state)

        LGR.info(
            f"Sequential clustering of {self.n_timepoints_} time points into "
            f"{self.n_states} states with {self.repetitions} repetitions"
        )
        with self._dask_client() as client:
            assignment, breakpoints, score, baseline = sequential_search(
                X3,
                Y3,
                self.n_states,
                self.repetitions,
                rng,
                alpha=self.alpha,
                max_tries=self.max_tries,
                n_jobs=self.n_jobs,
                client=client,
            )

        self.breakpoints_ = breakpoints
        self.score_ = score
        self.baseline_score_ = baseline
        self._set_assignment(assignment)
        LGR.info(f"Sequential clustering finished (score {score:.6g}, baseline {baseline:.6g})")
        return self


class HierarchicalClustering(_BaseTemporalClustering):
    """Agglomerative clustering of time-point-by-time-point decoding models.

    A least-squares decoding model is fitted at every time point, pooling the
    trials. The models are compared pairwise and clustered hierarchically:
    Ward's linkage is used when the dissimilarities are Euclidean and single
    linkage otherwise. The dendrogram is cut into at most ``n_states``
    clusters. Cluster labels carry no relation to time order.

    Parameters
    ----------
    n_states : int
        Maximum number of states.
    measure : {"error", "response", "beta"}, default="error"
        Dissimilarity between two time point models:

        - ``"error"``: residual of each model on the other time point's data,
          summed over both directions.
        - ``"response"``: distance between the predictions of both models on
          all the data.
        - ``"beta"``: Euclidean distance between the coefficients.

    n_jobs : int, default=1
        Number of parallel jobs used for the distance matrix.
    jobqueue : str, default=None
        Path to a dask jobqueue YAML file used to compute the distance matrix
        on a cluster.

    Attributes
    ----------
    labels_ : ndarray of shape (n_timepoints,)
        0-based cluster of every within-trial time point.
    gamma_ : ndarray of shape (n_timepoints, n_states)
        One-hot state time course.
    gamma_trials_ : ndarray of shape (n_timepoints * n_trials, n_states)
        State time course replicated over the trials.
    coef_ : ndarray of shape (n_features, n_targets, n_timepoints)
        Decoding model of every time point.
    distances_ : ndarray of shape (n_timepoints * (n_timepoints - 1) / 2,)
        Condensed distance matrix.
    linkage_ : ndarray of shape (n_timepoints - 1, 4) or None
        Linkage matrix of the dendrogram.
    ward_ : bool
        Whether Ward's linkage was used.
    """

    _parameter_constraints = {
        **_BaseTemporalClustering._parameter_constraints,
        "measure": [_is_enum_value(ClusterMeasure)],
    }

    def __init__(self, n_states, *, measure="error", n_jobs=1, jobqueue=None):
        super().__init__(n_states, n_jobs=n_jobs, jobqueue=jobqueue)
        self.measure = measure

    def fit(self, X, y, T=None):
        """Fit the hierarchical clustering.

        Parameters
        ----------
        X : array-like of shape (n_timepoints * n_trials, n_features)
            Brain data, trials stacked along the first axis.
        y : array-like of shape (n_timepoints * n_trials, n_targets)
            Stimulus data, stacked like ``X``.
        T : int or array-like of int, default=None
            Length of the trials. If None, a single trial is assumed.

        Returns
        -------
        self : object
            Returns self.
        """
        X3, Y3 = self._check_data(X, y, T)
        measure = ClusterMeasure(self.measure).value

        LGR.info(
            f"Hierarchical clustering of {self.n_timepoints_} time points into "
            f"{self.n_states} states using the '{measure}' measure"
        )
        with self._dask_client() as client:
            assignment, coef, distances, link, ward = hierarchical_clustering(
                X3, Y3, self.n_states, measure=measure, n_jobs=self.n_jobs, client=client
            )

        self.coef_ = coef
        self.distances_ = distances
        self.linkage_ = link
        self.ward_ = ward
        self._set_assignment(assignment)
        LGR.info("Hierarchical clustering finished")
        return self


class RegressionClustering(_BaseTemporalClustering):
    """Iterative regression-based clustering of time points into states.

    Starting from an initial assignment (by default the best of
    ``init_repetitions`` sequential segmentations), the estimator alternates
    between fitting one least-squares decoding model per state on the time
    points assigned to it, pooled over trials, and reassigning every time
    point to the state whose model reconstructs it with the lowest squared
    error. Reassignment proceeds in time order and only considers the states
    allowed by the transition constraints given the previous time point.
    Iterations stop when the assignment no longer changes.

    Parameters
    ----------
    n_states : int
        Number of states (K).
    transition_structure : array-like of shape (n_states, n_states), default=None
        ``transition_structure[j, k]`` is True when state ``k`` may follow
        state ``j``. None allows every transition.
    initial_structure : array-like of shape (n_states,), default=None
        States allowed at the first time point. None allows every state.
    max_iter : int, default=100
        Maximum number of iterations.
    init_repetitions : int, default=1000
        Number of random segmentations tried for the initial assignment.
    random_state : int, numpy.random.Generator or None, default=None
        Seed or generator for the initial segmentation.
    n_jobs : int, default=1
        Number of parallel jobs used for the initial segmentation.
    jobqueue : str, default=None
        Path to a dask jobqueue YAML file used to score the initial
        segmentations on a cluster.

    Attributes
    ----------
    labels_ : ndarray of shape (n_timepoints,)
        0-based state of every within-trial time point.
    gamma_ : ndarray of shape (n_timepoints, n_states)
        One-hot state time course.
    gamma_trials_ : ndarray of shape (n_timepoints * n_trials, n_states)
        State time course replicated over the trials.
    coef_ : ndarray of shape (n_features, n_targets, n_states)
        Decoding model of every state.
    init_labels_ : ndarray of shape (n_timepoints,)
        Initial assignment, after enforcing the initial state constraint.
    error_history_ : list of float
        Total squared reconstruction error after every iteration.
    n_iter_ : int
        Number of iterations run.
    converged_ : bool
        Whether the assignment stopped changing before ``max_iter``.

    Examples
    --------
    >>> import numpy as np
    >>> from pyTUDA import RegressionClustering
    >>> rng = np.random.default_rng(0)
    >>> X = rng.standard_normal((10 * 20, 3))  # 20 trials of 10 time points
    >>> y = rng.standard_normal((10 * 20, 1))
    >>> model = RegressionClustering(n_states=2, init_repetitions=10, random_state=0)
    >>> model.fit(X, y, T=10).labels_.shape
    (10,)

    References
    ----------
    .. [1] Vidaurre, D., et al. (2019). "Temporally unconstrained decoding
       reveals consistent but time-varying stages of stimulus processing."
       Cerebral Cortex.
    """

    _parameter_constraints = {
        **_BaseTemporalClustering._parameter_constraints,
        "max_iter": [("interval", Integral, 1, None, "left")],
        "init_repetitions": [("interval", Integral, 0, None, "left")],
    }

    def __init__(
        self,
        n_states,
        *,
        transition_structure=None,
        initial_structure=None,
        max_iter=100,
        init_repetitions=1000,
        random_state=None,
        n_jobs=1,
        jobqueue=None,
    ):
        super().__init__(n_states, n_jobs=n_jobs, jobqueue=jobqueue)
        self.transition_structure = transition_structure
        self.initial_structure = initial_structure
        self.max_iter = max_iter
        self.init_repetitions = init_repetitions
        self.random_state = random_state

    def fit(self, X, y, T=None, gamma_init=None):
        """Fit the regression clustering.

        Parameters
        ----------
        X : array-like of shape (n_timepoints * n_trials, n_features)
            Brain data, trials stacked along the first axis.
        y : array-like of shape (n_timepoints * n_trials, n_targets)
            Stimulus data, stacked like ``X``.
        T : int or array-like of int, default=None
            Length of the trials. If None, a single trial is assumed.
        gamma_init : array-like of shape (n_timepoints, n_states), default=None
            One-hot initial state time course. If None, the initial
            assignment comes from a sequential segmentation.

        Returns
        -------
        self : object
            Returns self.
        """
        X3, Y3 = self._check_data(X, y, T)
        transition_structure, initial_structure = check_structures(
            self.transition_structure, self.initial_structure, self.n_states
        )

        RefLGR.info(
            "Vidaurre, D., Myers, N. E., Stokes, M., Nobre, A. C., & Woolrich, M. W. (2019). "
            "Temporally unconstrained decoding reveals consistent but time-varying stages "
            "of stimulus processing. Cerebral Cortex, 29(2), 863-874."
        )

        if gamma_init is None:
            assignment = self._initial_assignment(X3, Y3)
        else:
            gamma_init = np.asarray(gamma_init)
            if gamma_init.shape != (self.n_timepoints_, self.n_states):
                raise ValueError(
                    f"gamma_init must have shape ({self.n_timepoints_}, {self.n_states}). "
                    f"Got {gamma_init.shape}."
                )
            assignment = assignment_from_gamma(gamma_init)

        assignment = repair_initial_state(assignment, initial_structure)
        self.init_labels_ = assignment

        LGR.info(
            f"Regression clustering of {self.n_timepoints_} time points into "
            f"{self.n_states} states"
        )
        state, error_history = regression_clustering(
            X3,
            Y3,
            assignment,
            self.n_states,
            transition_structure,
            initial_structure,
            max_iter=self.max_iter,
        )

        self.coef_ = state.coef
        self.error_history_ = error_history
        self.n_iter_ = state.n_iter
        self.converged_ = state.converged
        self._set_assignment(state.assignment)
        return self

    def _initial_assignment(self, X3, Y3):
        """Bootstrap the assignment from a sequential segmentation.

        The data are flattened over trials and handed to the sequential
        search together with the unchanged trial length, which lays them out
        again as the same trial tensor.
        """
        X_flat = flatten_trials(X3)
        Y_flat = flatten_trials(Y3)
        repetitions = self.init_repetitions
        if self.n_states > self.n_timepoints_ - 1 and repetitions > 0:
            LGR.warning(
                "Too few time points for random segmentations; "
                "using the evenly spaced segmentation as initialization"
            )
            repetitions = 0

        rng = np.random.default_rng(self.random_state)
        with self._dask_client() as client:
            assignment, _, score, _ = sequential_search(
                to_trial_tensor(X_flat, self.n_timepoints_),
                to_trial_tensor(Y_flat, self.n_timepoints_),
                self.n_states,
                repetitions,
                rng,
                n_jobs=self.n_jobs,
                client=client,
            )
        LGR.debug(f"Initial segmentation score: {score:.6g}")
        return assignment

    def predict(self, X, T=None):
        """Predict the stimulus with the decoding model of every time point's state.

        Parameters
        ----------
        X : array-like of shape (n_timepoints * n_trials, n_features)
            Brain data, trials stacked along the first axis.
        T : int or array-like of int, default=None
            Length of the trials. If None, a single trial is assumed.

        Returns
        -------
        y_pred : ndarray of shape (n_timepoints * n_trials, n_targets)
            Predicted stimulus.
        """
        check_is_fitted(self, ["coef_", "labels_"])
        X = check_array(X)
        if X.shape[1] != self.n_features_in_:
            raise ValueError(
                f"X has {X.shape[1]} features, but {self.__class__.__name__} "
                f"was fitted with {self.n_features_in_} features."
            )
        n_timepoints, _ = check_trial_lengths(T, X.shape[0])
        if n_timepoints != self.n_timepoints_:
            raise ValueError(
                f"Trials have {n_timepoints} time points, but {self.__class__.__name__} "
                f"was fitted on trials of {self.n_timepoints_} time points."
            )
        return predict_response(to_trial_tensor(X, n_timepoints), self.labels_, self.coef_)


def cluster_decoding(
    X,
    Y,
    T,
    K,
    classification=None,
    cluster_method="regression",
    cluster_measure=None,
    transition_structure=None,
    initial_structure=None,
    gamma_init=None,
    repetitions=100,
    random_state=None,
    n_jobs=1,
    jobqueue=None,
):
    """Cluster the time points of the trials into states of decoding models.

    Parameters
    ----------
    X : array-like of shape (n_timepoints * n_trials, n_features)
        Brain data, trials stacked along the first axis.
    Y : array-like of shape (n_timepoints * n_trials, n_targets)
        Stimulus data, stacked like ``X``.
    T : int or array-like of int
        Length of the trials; all trials must have the same length.
    K : int
        Number of states.
    classification : bool, optional
        Whether the stimulus is categorical. Accepted for compatibility and not
        used: every strategy fits its decoding models by least squares.
    cluster_method : {"regression", "hierarchical", "sequential"} or ClusterMethod
        Clustering strategy, by default "regression".
    cluster_measure : {"error", "response", "beta"} or ClusterMeasure, optional
        Dissimilarity for the hierarchical strategy, by default "error".
        Not used by the other strategies.
    transition_structure : (K, K) array-like of bool, optional
        Allowed transitions (regression strategy only).
    initial_structure : (K,) array-like of bool, optional
        Allowed initial states (regression strategy only).
    gamma_init : (n_timepoints, K) array-like, optional
        Initial state time course (regression strategy only).
    repetitions : int, optional
        Number of random segmentations for the sequential strategy,
        by default 100.
    random_state : int, numpy.random.Generator or None, optional
        Seed or generator for the random segmentations.
    n_jobs : int, optional
        Number of parallel jobs, by default 1.
    jobqueue : str, optional
        Path to a dask jobqueue YAML file. If given, the parallel loops run on
        the cluster it describes.

    Returns
    -------
    gamma : (n_timepoints, K) ndarray
        One-hot state time course shared by all the trials.
    """
    method = ClusterMethod(cluster_method)

    if method is ClusterMethod.REGRESSION:
        if cluster_measure is not None and cluster_measure != "":
            LGR.warning("cluster_measure is not used when cluster_method is regression")
        model = RegressionClustering(
            K,
            transition_structure=transition_structure,
            initial_structure=initial_structure,
            random_state=random_state,
            n_jobs=n_jobs,
            jobqueue=jobqueue,
        )
        gamma = model.fit(X, Y, T, gamma_init=gamma_init).gamma_
    elif method is ClusterMethod.HIERARCHICAL:
        measure = ClusterMeasure(cluster_measure or ClusterMeasure.ERROR)
        model = HierarchicalClustering(
            K, measure=measure.value, n_jobs=n_jobs, jobqueue=jobqueue
        )
        gamma = model.fit(X, Y, T).gamma_
    else:
        model = SequentialClustering(
            K,
            repetitions=repetitions,
            random_state=random_state,
            n_jobs=n_jobs,
            jobqueue=jobqueue,
        )
        gamma = model.fit(X, Y, T).gamma_

    return gamma
