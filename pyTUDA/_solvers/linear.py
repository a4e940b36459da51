"""Least-squares primitives shared by the clustering solvers."""

import numpy as np
from scipy import linalg
from sklearn.linear_model import Ridge

from pyTUDA.base import NumericalInstabilityError

# Gram matrices with a larger condition number are treated as singular
MAX_CONDITION = 1 / np.finfo(float).eps


def ols(X, Y):
    """Solve the ordinary least-squares problem with the normal equations.

    Parameters
    ----------
    X : (n_samples, p) ndarray
        Design matrix.
    Y : (n_samples, q) ndarray
        Targets.

    Returns
    -------
    beta : (p, q) ndarray
        Regression coefficients of ``Y = X beta``.

    Raises
    ------
    NumericalInstabilityError
        If the design is empty, its Gram matrix is singular or
        ill-conditioned, or the solution is not finite.
    """
    if X.shape[0] == 0:
        raise NumericalInstabilityError("Cannot fit a regression on an empty design.")

    gram = X.T @ X
    condition = np.linalg.cond(gram)
    if not np.isfinite(condition) or condition > MAX_CONDITION:
        raise NumericalInstabilityError(
            f"The Gram matrix of the design ({X.shape[0]} rows, {X.shape[1]} predictors) "
            f"is singular or ill-conditioned (condition number {condition:.3g})."
        )

    try:
        beta = linalg.solve(gram, X.T @ Y, assume_a="pos")
    except linalg.LinAlgError as exc:
        raise NumericalInstabilityError(f"Normal equations could not be solved: {exc}") from exc

    if not np.all(np.isfinite(beta)):
        raise NumericalInstabilityError("Least-squares solution is not finite.")

    return beta


def ridge(X, Y, alpha=1e-4):
    """Solve a ridge-regularized least-squares problem without intercept.

    Parameters
    ----------
    X : (n_samples, p) ndarray
        Design matrix.
    Y : (n_samples, q) ndarray
        Targets.
    alpha : float, optional
        Regularization strength added to the diagonal of the Gram matrix,
        by default 1e-4

    Returns
    -------
    beta : (p, q) ndarray
        Regression coefficients of ``(X'X + alpha I)^-1 X'Y``.
    """
    clf = Ridge(alpha=alpha, fit_intercept=False, solver="cholesky").fit(X, Y)
    return np.reshape(clf.coef_, (Y.shape[1], X.shape[1])).T


def residual_norm(X, Y, beta):
    """Frobenius norm of the residuals of ``Y = X beta``."""
    return np.sqrt(np.sum((Y - X @ beta) ** 2))
