# emacs: -*- mode: python; py-indent-offset: 4; indent-tabs-mode: nil -*-
# vi: set ft=python sts=4 ts=4 sw=4 et:
"""pyTUDA: temporally constrained clustering of decoding models.

pyTUDA relates brain signals (X) to a stimulus or behavioural signal (Y)
across many trials by partitioning the time points of a trial into states,
each with its own linear decoding model shared by all the trials. The state
time courses it estimates serve as the initialization of time-varying
decoding models.

Main Estimators
---------------
RegressionClustering
    Iterative regression-based reassignment under transition constraints.
HierarchicalClustering
    Agglomerative clustering of time-point-by-time-point decoding models.
SequentialClustering
    Best of randomized sequential segmentations of the trial timeline.

Examples
--------
>>> import numpy as np
>>> from pyTUDA import cluster_decoding
>>> rng = np.random.default_rng(0)
>>> X = rng.standard_normal((10 * 20, 3))  # 20 trials of 10 time points
>>> Y = rng.standard_normal((10 * 20, 1))
>>> gamma = cluster_decoding(X, Y, T=10, K=2, cluster_method="sequential")
>>> gamma.shape
(10, 2)

See Also
--------
pyTUDA.base : Base classes and utilities.
pyTUDA.clustering : All clustering estimators.
"""

from pyTUDA.__about__ import __copyright__, __credits__, __packagename__, __version__

# Import base classes and utilities
from pyTUDA.base import (
    BaseEstimator,
    ClusterMixin,
    ConstraintInfeasibleWarning,
    NotFittedError,
    NumericalInstabilityError,
    SegmentationGenerationError,
    check_is_fitted,
    clone,
)

# Import main estimators for convenient access
from pyTUDA.clustering import (
    ClusterMeasure,
    ClusterMethod,
    HierarchicalClustering,
    RegressionClustering,
    SequentialClustering,
    cluster_decoding,
)

__all__ = [
    # Version info
    "__copyright__",
    "__credits__",
    "__packagename__",
    "__version__",
    # Main estimators
    "RegressionClustering",
    "HierarchicalClustering",
    "SequentialClustering",
    "cluster_decoding",
    "ClusterMethod",
    "ClusterMeasure",
    # Base classes
    "BaseEstimator",
    "ClusterMixin",
    # Utilities
    "clone",
    "check_is_fitted",
    # Exceptions and warnings
    "NotFittedError",
    "NumericalInstabilityError",
    "SegmentationGenerationError",
    "ConstraintInfeasibleWarning",
]
