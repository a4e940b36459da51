"""Tests for base classes and scikit-learn API compliance."""

from numbers import Integral

import numpy as np
import pytest

from pyTUDA._utils import check_array, validate_parameter_constraints
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


class SimpleEstimator(BaseEstimator):
    """Simple test estimator."""

    def __init__(self, *, param1=1, param2="default"):
        self.param1 = param1
        self.param2 = param2

    def fit(self, X, y=None):
        self.fitted_ = True
        self.coef_ = np.ones(X.shape[1])
        return self


class FirstHalfClustering(ClusterMixin, BaseEstimator):
    """Puts the first half of the time points in state 0 and the rest in state 1."""

    _parameter_constraints = {"n_states": [("interval", Integral, 2, 2, "both")]}

    def __init__(self, n_states=2):
        self.n_states = n_states

    def fit(self, X, y, T=None):
        self._validate_params()
        n_timepoints = X.shape[0] if T is None else T
        self.labels_ = (np.arange(n_timepoints) >= n_timepoints // 2).astype(int)
        self.gamma_ = np.eye(2)[self.labels_]
        return self


class TestBaseEstimator:
    """Tests for BaseEstimator class."""

    def test_get_params(self):
        """Test that get_params returns correct parameters."""
        est = SimpleEstimator(param1=5, param2="test")
        assert est.get_params() == {"param1": 5, "param2": "test"}

    def test_set_params(self):
        """Test that set_params sets parameters correctly."""
        est = SimpleEstimator()
        est.set_params(param1=10, param2="new")
        assert est.param1 == 10
        assert est.param2 == "new"

    def test_set_params_invalid(self):
        """Test that set_params raises error for invalid parameters."""
        est = SimpleEstimator()
        with pytest.raises(ValueError, match="Invalid parameter"):
            est.set_params(invalid_param=1)

    def test_repr(self):
        """Test string representation."""
        repr_str = repr(SimpleEstimator(param1=5))
        assert repr_str == "SimpleEstimator(param1=5)"

    def test_repr_truncated(self):
        est = SimpleEstimator(param2="x" * 1000)
        assert len(repr(est)) == 700
        assert repr(est).endswith("...")

    def test_varargs_rejected(self):
        class VarArgsEstimator(BaseEstimator):
            def __init__(self, *args):
                self.args = args

        with pytest.raises(RuntimeError, match="no varargs"):
            VarArgsEstimator().get_params()


class TestClone:
    """Tests for clone function."""

    def test_clone_unfitted(self):
        est = SimpleEstimator(param1=5)
        cloned = clone(est)
        assert cloned is not est
        assert cloned.get_params() == est.get_params()

    def test_clone_fitted(self):
        """Test that clone does not copy fitted attributes."""
        est = SimpleEstimator(param1=5).fit(np.ones((10, 5)))
        cloned = clone(est)
        assert not hasattr(cloned, "fitted_")
        assert cloned.get_params() == est.get_params()


class TestCheckIsFitted:
    """Tests for check_is_fitted function."""

    def test_unfitted_estimator(self):
        with pytest.raises(NotFittedError):
            check_is_fitted(SimpleEstimator())

    def test_specific_attributes(self):
        est = SimpleEstimator().fit(np.ones((10, 5)))
        check_is_fitted(est)
        check_is_fitted(est, "coef_")
        with pytest.raises(NotFittedError):
            check_is_fitted(est, ["wrong_attr_"])

    def test_all_or_any_parameter(self):
        est = SimpleEstimator().fit(np.ones((10, 5)))
        check_is_fitted(est, ["coef_", "nonexistent_"], all_or_any=any)
        with pytest.raises(NotFittedError):
            check_is_fitted(est, ["coef_", "nonexistent_"], all_or_any=all)

    def test_not_an_estimator(self):
        with pytest.raises(TypeError, match="is not an estimator"):
            check_is_fitted("just a string")

    def test_custom_message(self):
        custom_msg = "Custom message for %(name)s"
        with pytest.raises(NotFittedError, match="Custom message for SimpleEstimator"):
            check_is_fitted(SimpleEstimator(), msg=custom_msg)


class TestClusterMixin:
    """Tests for ClusterMixin class."""

    def test_fit_predict(self):
        labels = FirstHalfClustering().fit_predict(np.ones((6, 2)), np.ones((6, 1)))
        np.testing.assert_array_equal(labels, [0, 0, 0, 1, 1, 1])

    def test_fit_transform(self):
        gamma = FirstHalfClustering().fit_transform(np.ones((8, 2)), np.ones((8, 1)), T=4)
        np.testing.assert_array_equal(gamma, [[1, 0], [1, 0], [0, 1], [0, 1]])

    def test_validate_params(self):
        with pytest.raises(ValueError, match="'n_states' parameter of FirstHalfClustering"):
            FirstHalfClustering(n_states=3).fit(np.ones((4, 2)), np.ones((4, 1)))

    def test_validate_params_no_constraints(self):
        SimpleEstimator()._validate_params()


class TestExceptions:
    """Tests for the exceptions and warnings raised by the solvers."""

    def test_not_fitted_inheritance(self):
        assert issubclass(NotFittedError, ValueError)
        assert issubclass(NotFittedError, AttributeError)

    def test_solver_errors(self):
        assert issubclass(NumericalInstabilityError, ArithmeticError)
        assert issubclass(SegmentationGenerationError, RuntimeError)
        assert issubclass(ConstraintInfeasibleWarning, UserWarning)


class TestValidateParameterConstraints:
    """Tests for validate_parameter_constraints."""

    constraints = {
        "count": [("interval", Integral, 0, None, "left")],
        "flag": [bool],
        "name": [str, None],
        "choice": [lambda value: value in ("a", "b")],
    }

    def test_valid(self):
        validate_parameter_constraints(
            self.constraints, {"count": 0, "flag": True, "name": None, "choice": "a"}, "caller"
        )

    @pytest.mark.parametrize(
        "params",
        [{"count": -1}, {"count": 1.5}, {"count": True}, {"flag": 1}, {"name": 3}, {"choice": "c"}],
    )
    def test_invalid(self, params):
        with pytest.raises(ValueError, match="caller must satisfy"):
            validate_parameter_constraints(self.constraints, params, "caller")

    def test_unknown_params_are_ignored(self):
        validate_parameter_constraints(self.constraints, {"other": -1}, "caller")


class TestCheckArray:
    """Tests for check_array."""

    def test_1d_becomes_column(self):
        assert check_array([1, 2, 3]).shape == (3, 1)

    def test_rejects_3d(self):
        with pytest.raises(ValueError, match="Expected <= 2"):
            check_array(np.ones((2, 2, 2)))

    def test_rejects_empty(self):
        with pytest.raises(ValueError, match="0 samples"):
            check_array(np.ones((0, 2)))

    def test_rejects_inf(self):
        with pytest.raises(ValueError, match="NaN or infinity"):
            check_array([[1.0, np.inf]])
