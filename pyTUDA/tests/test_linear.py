import numpy as np
import pytest

from pyTUDA._solvers import linear
from pyTUDA.base import NumericalInstabilityError


def test_ols_recovers_coefficients():
    rng = np.random.default_rng(0)
    X = rng.standard_normal((50, 3))
    beta = rng.standard_normal((3, 2))
    np.testing.assert_allclose(linear.ols(X, X @ beta), beta, atol=1e-10)


def test_ols_singular_design():
    rng = np.random.default_rng(0)
    x = rng.standard_normal((20, 1))
    X = np.hstack((x, 2 * x))
    with pytest.raises(NumericalInstabilityError, match="ill-conditioned"):
        linear.ols(X, x)


def test_ols_underdetermined_design():
    rng = np.random.default_rng(0)
    X = rng.standard_normal((1, 2))
    with pytest.raises(NumericalInstabilityError):
        linear.ols(X, np.ones((1, 1)))


def test_ols_empty_design():
    with pytest.raises(NumericalInstabilityError, match="empty"):
        linear.ols(np.zeros((0, 2)), np.zeros((0, 1)))


def test_ridge_matches_closed_form():
    rng = np.random.default_rng(1)
    X = rng.standard_normal((30, 4))
    Y = rng.standard_normal((30, 2))
    alpha = 0.5
    expected = np.linalg.solve(X.T @ X + alpha * np.eye(4), X.T @ Y)
    np.testing.assert_allclose(linear.ridge(X, Y, alpha=alpha), expected, atol=1e-8)


def test_ridge_handles_singular_design():
    rng = np.random.default_rng(0)
    x = rng.standard_normal((20, 1))
    X = np.hstack((x, x))
    beta = linear.ridge(X, 3 * x)
    assert beta.shape == (2, 1)
    assert np.all(np.isfinite(beta))
    np.testing.assert_allclose(X @ beta, 3 * x, atol=1e-3)


def test_residual_norm():
    X = np.eye(2)
    Y = np.array([[3.0], [4.0]])
    assert linear.residual_norm(X, Y, np.zeros((2, 1))) == pytest.approx(5.0)
