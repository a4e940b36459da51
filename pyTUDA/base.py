"""Base classes for temporally constrained clustering estimators.

This module provides the base classes for all estimators in pyTUDA,
following the scikit-learn estimator API conventions.

Similar to scikit-learn's base module, this provides:

- `BaseEstimator`: Base class with get_params/set_params.
- `ClusterMixin`: Mixin class providing fit_predict and fit_transform.

It also holds the exceptions and warnings raised by the clustering solvers.

References
----------
.. [1] scikit-learn developers. "Developing scikit-learn estimators."
   https://scikit-learn.org/stable/developers/develop.html
"""

import logging
from inspect import signature

LGR = logging.getLogger("GENERAL")

__all__ = [
    "BaseEstimator",
    "ClusterMixin",
    "clone",
    "check_is_fitted",
    "NotFittedError",
    "NumericalInstabilityError",
    "SegmentationGenerationError",
    "ConstraintInfeasibleWarning",
]


class NotFittedError(ValueError, AttributeError):
    """Exception class to raise if estimator is used before fitting.

    This class inherits from both ValueError and AttributeError to help with
    exception handling and maintain compatibility with scikit-learn.

    Examples
    --------
    >>> from pyTUDA.base import NotFittedError
    >>> from pyTUDA import RegressionClustering
    >>> try:
    ...     RegressionClustering(n_states=2).predict([[1, 2], [3, 4]])
    ... except NotFittedError as e:
    ...     print(repr(e))
    NotFittedError("This RegressionClustering instance is not fitted yet...")
    """

    pass


class NumericalInstabilityError(ArithmeticError):
    """Raised when a least-squares design is singular or ill-conditioned.

    Ordinary least squares is solved through the normal equations, so a
    rank-deficient Gram matrix would otherwise propagate NaN or Inf
    coefficients into the clustering.
    """

    pass


class SegmentationGenerationError(RuntimeError):
    """Raised when no valid random segmentation could be drawn."""

    pass


class ConstraintInfeasibleWarning(UserWarning):
    """Warning emitted when the transition constraints leave no valid state.

    The affected time point is assigned to the lowest state index instead.
    """

    pass


def clone(estimator):
    """Construct a new unfitted estimator with the same parameters.

    Parameters
    ----------
    estimator : estimator object
        The estimator to be cloned.

    Returns
    -------
    estimator : estimator object
        A new estimator with the same parameters that has not been fitted.

    Examples
    --------
    >>> from pyTUDA import SequentialClustering
    >>> from pyTUDA.base import clone
    >>> estimator = SequentialClustering(n_states=3, repetitions=10)
    >>> cloned = clone(estimator)
    >>> estimator is cloned
    False
    >>> estimator.get_params() == cloned.get_params()
    True
    """
    klass = estimator.__class__
    params = estimator.get_params(deep=False)
    return klass(**params)


def check_is_fitted(estimator, attributes=None, *, msg=None, all_or_any=all):
    """Perform is_fitted validation for estimator.

    Checks if the estimator is fitted by verifying the presence of
    fitted attributes (ending with a trailing underscore) and otherwise
    raises a NotFittedError with the given message.

    Parameters
    ----------
    estimator : estimator instance
        Estimator instance for which the check is performed.
    attributes : str or list of str, default=None
        Attribute name(s) given as string or a list of strings.
        If None, any attribute ending with an underscore counts.
    msg : str, default=None
        The default error message is, "This %(name)s instance is not fitted
        yet. Call 'fit' with appropriate arguments before using this
        estimator."
    all_or_any : callable, default=all
        Specify whether all or any of the given attributes must exist.

    Raises
    ------
    TypeError
        If the estimator is not an estimator instance.
    NotFittedError
        If the attributes are not found.
    """
    if msg is None:
        msg = (
            "This %(name)s instance is not fitted yet. Call 'fit' with "
            "appropriate arguments before using this estimator."
        )

    if not hasattr(estimator, "fit"):
        raise TypeError(f"{estimator} is not an estimator instance.")

    if attributes is not None:
        if not isinstance(attributes, (list, tuple)):
            attributes = [attributes]
        fitted = all_or_any([hasattr(estimator, attr) for attr in attributes])
    else:
        attrs = [v for v in vars(estimator) if v.endswith("_") and not v.startswith("__")]
        fitted = len(attrs) > 0

    if not fitted:
        raise NotFittedError(msg % {"name": type(estimator).__name__})


class BaseEstimator:
    """Base class for all estimators in pyTUDA.

    All estimators should specify all the parameters that can be set at the
    class level in their ``__init__`` as explicit keyword arguments
    (no ``*args`` or ``**kwargs``).

    Notes
    -----
    Attributes set during fit end with an underscore (e.g., ``gamma_``).
    """

    @classmethod
    def _get_param_names(cls):
        """Get parameter names for the estimator."""
        init = cls.__init__
        if init is object.__init__:
            return []

        sig = signature(init)
        parameters = [
            p for p in sig.parameters.values() if p.name != "self" and p.kind != p.VAR_KEYWORD
        ]

        for p in parameters:
            if p.kind == p.VAR_POSITIONAL:
                raise RuntimeError(
                    f"pyTUDA estimators should always specify their parameters "
                    f"in the signature of their __init__ (no varargs). "
                    f"{cls} with constructor {sig} doesn't follow this convention."
                )
        return sorted([p.name for p in parameters])

    def get_params(self, deep=True):
        """Get parameters for this estimator.

        Parameters
        ----------
        deep : bool, default=True
            If True, will return the parameters for this estimator and
            contained subobjects that are estimators.

        Returns
        -------
        params : dict
            Parameter names mapped to their values.
        """
        out = {}
        for key in self._get_param_names():
            value = getattr(self, key)
            if deep and hasattr(value, "get_params") and not isinstance(value, type):
                deep_items = value.get_params().items()
                out.update((key + "__" + k, val) for k, val in deep_items)
            out[key] = value
        return out

    def set_params(self, **params):
        """Set the parameters of this estimator.

        Parameters
        ----------
        **params : dict
            Estimator parameters.

        Returns
        -------
        self : estimator instance
            Estimator instance.
        """
        if not params:
            return self

        valid_params = self.get_params(deep=True)
        nested_params = {}

        for key, value in params.items():
            key, delim, sub_key = key.partition("__")
            if key not in valid_params:
                raise ValueError(
                    f"Invalid parameter {key!r} for estimator {self.__class__.__name__}. "
                    f"Valid parameters are: {list(self._get_param_names())!r}."
                )

            if delim:
                nested_params.setdefault(key, {})[sub_key] = value
            else:
                setattr(self, key, value)
                valid_params[key] = value

        for key, sub_params in nested_params.items():
            getattr(self, key).set_params(**sub_params)

        return self

    def __repr__(self, N_CHAR_MAX=700):
        """Return a string representation of the estimator."""
        from pyTUDA._utils import _estimator_repr

        return _estimator_repr(self, N_CHAR_MAX=N_CHAR_MAX)

    def _validate_params(self):
        """Validate types and values of constructor parameters.

        The expected type and values must be defined in the
        ``_parameter_constraints`` class attribute, which is a dictionary
        mapping parameter names to constraints.
        """
        if not hasattr(self, "_parameter_constraints"):
            return

        from pyTUDA._utils import validate_parameter_constraints

        validate_parameter_constraints(
            self._parameter_constraints,
            self.get_params(deep=False),
            caller_name=self.__class__.__name__,
        )


class ClusterMixin:
    """Mixin class for all temporal clustering estimators in pyTUDA.

    Estimators fit on brain data ``X``, stimulus ``y`` and trial lengths
    ``T`` and store the state assignment of every within-trial time point
    in ``labels_`` and its one-hot encoding in ``gamma_``.
    """

    def fit_predict(self, X, y, T=None, **fit_params):
        """Fit the clustering and return the state label of every time point.

        Parameters
        ----------
        X : array-like of shape (n_timepoints * n_trials, n_features)
            Brain data, trials stacked along the first axis.
        y : array-like of shape (n_timepoints * n_trials, n_targets)
            Stimulus data, stacked like ``X``.
        T : int or array-like of int, default=None
            Length of the trials. If None, a single trial is assumed.
        **fit_params : dict
            Additional fit parameters.

        Returns
        -------
        labels : ndarray of shape (n_timepoints,)
            0-based state label of every within-trial time point.
        """
        return self.fit(X, y, T, **fit_params).labels_

    def fit_transform(self, X, y, T=None, **fit_params):
        """Fit the clustering and return the state time course (Gamma).

        Parameters
        ----------
        X : array-like of shape (n_timepoints * n_trials, n_features)
            Brain data, trials stacked along the first axis.
        y : array-like of shape (n_timepoints * n_trials, n_targets)
            Stimulus data, stacked like ``X``.
        T : int or array-like of int, default=None
            Length of the trials. If None, a single trial is assumed.
        **fit_params : dict
            Additional fit parameters.

        Returns
        -------
        gamma : ndarray of shape (n_timepoints, n_states)
            One-hot state time course.
        """
        return self.fit(X, y, T, **fit_params).gamma_
