"""Hierarchical clustering of time-point-by-time-point decoding models."""

import logging

import numpy as np
from dask import compute
from dask import delayed as delayed_dask
from scipy.cluster.hierarchy import fcluster, linkage
from scipy.spatial.distance import pdist, squareform

from pyTUDA._solvers.linear import ols, residual_norm
from pyTUDA._solvers.reshape import flatten_trials
from pyTUDA.utils import get_dask_scheduler_name, get_num_workers

LGR = logging.getLogger("GENERAL")

MEASURES = ("error", "response", "beta")


def timepoint_regressions(X3, Y3):
    """Fit one least-squares model per time point, pooling the trials.

    Parameters
    ----------
    X3 : (n_timepoints, n_trials, p) ndarray
        Brain data.
    Y3 : (n_timepoints, n_trials, q) ndarray
        Stimulus data.

    Returns
    -------
    coef : (p, q, n_timepoints) ndarray
        Coefficients of every time point.
    """
    n_timepoints = X3.shape[0]
    coef = np.zeros((X3.shape[2], Y3.shape[2], n_timepoints))
    for t in range(n_timepoints):
        coef[:, :, t] = ols(X3[t], Y3[t])
    return coef


def _response_row(X_all, coef, t1):
    """Distances between the predictions of model ``t1`` and every later model."""
    d1 = X_all @ coef[:, :, t1]
    return np.array(
        [
            np.sqrt(np.sum((X_all @ coef[:, :, t2] - d1) ** 2))
            for t2 in range(t1 + 1, coef.shape[2])
        ]
    )


def _error_row(X3, Y3, coef, t1):
    """Symmetrized cross-prediction errors between time point ``t1`` and every later one."""
    row = []
    for t2 in range(t1 + 1, coef.shape[2]):
        error1 = residual_norm(X3[t2], Y3[t2], coef[:, :, t1])
        error2 = residual_norm(X3[t1], Y3[t1], coef[:, :, t2])
        row.append(error1 + error2)
    return np.array(row)


def pairwise_distances(X3, Y3, coef, measure="error", n_jobs=1, client=None):
    """Dissimilarity between the decoding models of every pair of time points.

    Parameters
    ----------
    X3 : (n_timepoints, n_trials, p) ndarray
        Brain data.
    Y3 : (n_timepoints, n_trials, q) ndarray
        Stimulus data.
    coef : (p, q, n_timepoints) ndarray
        Time point models.
    measure : {"error", "response", "beta"}, optional
        ``"response"`` compares the predictions of both models on all the
        data, ``"error"`` adds the residuals of each model applied to the
        other time point's data and ``"beta"`` compares the coefficients
        directly. By default "error"
    n_jobs : int, optional
        Number of parallel jobs, by default 1
    client : dask.distributed.Client, optional
        Client of a dask cluster. If given, the rows are computed on the
        cluster and ``n_jobs`` is ignored.

    Returns
    -------
    distances : (n_timepoints * (n_timepoints - 1) / 2,) ndarray
        Condensed distance matrix, ordered as in ``scipy.spatial.distance``.
    """
    n_timepoints = coef.shape[2]

    if measure == "beta":
        return pdist(coef.transpose(2, 0, 1).reshape(n_timepoints, -1))

    if measure == "response":
        X_all = flatten_trials(X3)
        futures = [
            delayed_dask(_response_row, pure=False)(X_all, coef, t1)
            for t1 in range(n_timepoints - 1)
        ]
    elif measure == "error":
        futures = [
            delayed_dask(_error_row, pure=False)(X3, Y3, coef, t1)
            for t1 in range(n_timepoints - 1)
        ]
    else:
        raise ValueError(f"Invalid measure '{measure}'. Must be one of {MEASURES}.")

    if client is not None:
        rows = compute(futures)[0]
    else:
        rows = compute(
            futures,
            scheduler=get_dask_scheduler_name(n_jobs),
            num_workers=get_num_workers(n_jobs),
        )[0]

    if not rows:
        return np.zeros(0)
    return np.concatenate(rows)


def is_euclidean(distances, tol=None):
    """Whether a condensed distance matrix can be embedded in a Euclidean space.

    Classical scaling: the distances are Euclidean when the double-centred
    matrix of squared distances is positive semi-definite.

    Parameters
    ----------
    distances : (n_pairs,) ndarray
        Condensed distance matrix.
    tol : float, optional
        Relative tolerance on negative eigenvalues. By default the square
        root of the machine precision.

    Returns
    -------
    bool
    """
    if distances.size == 0:
        return True
    if np.any(distances < 0):
        return False
    if tol is None:
        tol = np.sqrt(np.finfo(float).eps)

    D2 = squareform(distances) ** 2
    n = D2.shape[0]
    centering = np.eye(n) - np.ones((n, n)) / n
    gram = -0.5 * centering @ D2 @ centering
    eigenvalues = np.linalg.eigvalsh((gram + gram.T) / 2)
    scale = np.max(np.abs(eigenvalues))
    if scale == 0:
        return True
    return bool(eigenvalues.min() >= -tol * scale)


def hierarchical_clustering(X3, Y3, n_states, measure="error", n_jobs=1, client=None):
    """Cluster time points by agglomerating their decoding models.

    Parameters
    ----------
    X3 : (n_timepoints, n_trials, p) ndarray
        Brain data.
    Y3 : (n_timepoints, n_trials, q) ndarray
        Stimulus data.
    n_states : int
        Maximum number of clusters.
    measure : {"error", "response", "beta"}, optional
        Dissimilarity between time point models, by default "error"
    n_jobs : int, optional
        Number of parallel jobs, by default 1
    client : dask.distributed.Client, optional
        Client of a dask cluster used for the distance matrix.

    Returns
    -------
    assignment : (n_timepoints,) ndarray of int
        0-based cluster of every time point, in the order returned by the
        dendrogram cut.
    coef : (p, q, n_timepoints) ndarray
        Time point models.
    distances : ndarray
        Condensed distance matrix.
    link : ndarray or None
        Linkage matrix, None for a single time point.
    ward : bool
        Whether Ward's linkage was used.
    """
    n_timepoints = X3.shape[0]
    coef = timepoint_regressions(X3, Y3)
    distances = pairwise_distances(
        X3, Y3, coef, measure=measure, n_jobs=n_jobs, client=client
    )

    if n_timepoints == 1:
        return np.zeros(1, dtype=int), coef, distances, None, False

    ward = is_euclidean(distances)
    if ward:
        link = linkage(distances, method="ward")
    else:
        LGR.info("Distances are not Euclidean, using single linkage instead of Ward's")
        link = linkage(distances, method="single")

    assignment = fcluster(link, t=n_states, criterion="maxclust") - 1
    n_found = np.unique(assignment).size
    if n_found < n_states:
        LGR.warning(f"The dendrogram cut produced {n_found} clusters instead of {n_states}")

    return assignment.astype(int), coef, distances, link, ward
