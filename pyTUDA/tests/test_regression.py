"""Tests for the regression-based clustering."""

import numpy as np
import pytest

from pyTUDA import RegressionClustering
from pyTUDA._solvers import regression
from pyTUDA._solvers.constraints import check_structures
from pyTUDA._solvers.reshape import gamma_from_assignment, to_trial_tensor
from pyTUDA.base import NotFittedError


def _same_partition(labels, expected):
    """Whether two labelings define the same partition of the time points."""
    labels = np.asarray(labels)
    expected = np.asarray(expected)
    mapping = {}
    for a, b in zip(labels, expected):
        if mapping.setdefault(a, b) != b:
            return False
    return len(set(mapping.values())) == len(mapping)


def test_state_errors_and_fit(two_regime_data):
    X, Y = two_regime_data
    X3, Y3 = to_trial_tensor(X, 10), to_trial_tensor(Y, 10)
    assignment = np.repeat([0, 1], 5)

    coef, active = regression.fit_state_models(X3, Y3, assignment, 3)
    assert active.tolist() == [True, True, False]
    np.testing.assert_allclose(coef[:, 0, 0], [1.0, -1.0], atol=1e-10)
    np.testing.assert_allclose(coef[:, 0, 1], [-2.0, 0.5], atol=1e-10)
    np.testing.assert_array_equal(coef[:, :, 2], 0)

    errors = regression.state_errors(X3, Y3, coef)
    assert errors.shape == (10, 3)
    np.testing.assert_allclose(errors[:5, 0], 0, atol=1e-12)
    np.testing.assert_allclose(errors[5:, 1], 0, atol=1e-12)
    assert np.all(errors[:5, 1] > 0)
    # Errors are summed over trials
    manual = np.sum((Y3[7] - X3[7] @ coef[:, :, 0]) ** 2)
    assert errors[7, 0] == pytest.approx(manual)


def test_regression_step_is_pure(two_regime_data):
    X, Y = two_regime_data
    X3, Y3 = to_trial_tensor(X, 10), to_trial_tensor(Y, 10)
    P, Pi = check_structures(None, None, 2)
    initial = np.repeat([0, 1], [4, 6])
    state = regression.RegressionState(
        assignment=initial.copy(),
        coef=np.zeros((2, 1, 2)),
        active=np.zeros(2, dtype=bool),
        errors=np.zeros((10, 2)),
        total_error=np.inf,
        n_iter=0,
        converged=False,
    )
    next_state = regression.regression_step(state, X3, Y3, P, Pi)
    np.testing.assert_array_equal(state.assignment, initial)
    assert next_state.n_iter == 1
    # Time point 4 follows the first regime exactly and moves to state 0
    np.testing.assert_array_equal(next_state.assignment[:5], 0)
    assert not next_state.converged


def test_error_history_non_increasing(random_data):
    X, Y, n_timepoints = random_data
    model = RegressionClustering(n_states=3, init_repetitions=0, max_iter=100)
    model.fit(X, Y, T=n_timepoints)
    history = np.asarray(model.error_history_)
    assert len(history) == model.n_iter_
    assert np.all(np.diff(history) <= 1e-9 * history[0])


def test_respects_max_iter(random_data):
    X, Y, n_timepoints = random_data
    model = RegressionClustering(n_states=4, init_repetitions=0, max_iter=1).fit(
        X, Y, T=n_timepoints
    )
    assert model.n_iter_ == 1
    assert len(model.error_history_) == 1


def test_converges_to_regimes(two_regime_data):
    X, Y = two_regime_data
    model = RegressionClustering(n_states=2, random_state=0)
    gamma = model.fit_transform(X, Y, T=10)

    assert model.converged_
    assert _same_partition(model.labels_, np.repeat([0, 1], 5))
    assert model.error_history_[-1] == pytest.approx(0, abs=1e-10)
    assert gamma.shape == (10, 2)
    assert np.all(gamma.sum(axis=1) == 1)


def test_initial_state_constraint(two_regime_data):
    X, Y = two_regime_data
    model = RegressionClustering(n_states=2, initial_structure=[False, True], random_state=0)
    model.fit(X, Y, T=10)

    assert model.labels_[0] == 1
    assert model.init_labels_[0] == 1
    assert _same_partition(model.labels_, np.repeat([0, 1], 5))
    assert model.error_history_[-1] == pytest.approx(0, abs=1e-10)


def test_initial_state_constraint_repairs_gamma_init(two_regime_data):
    X, Y = two_regime_data
    gamma_init = gamma_from_assignment(np.repeat([0, 1], 5), 2)
    model = RegressionClustering(n_states=2, initial_structure=[False, True])
    model.fit(X, Y, T=10, gamma_init=gamma_init)
    np.testing.assert_array_equal(model.init_labels_, np.repeat([1, 0], 5))
    np.testing.assert_array_equal(model.labels_, np.repeat([1, 0], 5))


def test_left_to_right_transitions(make_regime_data):
    X, Y = make_regime_data(n_timepoints=12, n_trials=4, switch=6, seed=3)
    transitions = np.array([[True, True], [False, True]])
    model = RegressionClustering(
        n_states=2,
        transition_structure=transitions,
        initial_structure=[True, False],
        random_state=0,
    )
    model.fit(X, Y, T=12)
    np.testing.assert_array_equal(model.labels_, np.repeat([0, 1], 6))


def test_gamma_init_is_used(two_regime_data):
    X, Y = two_regime_data
    # Sequential initializations always put state 0 first
    gamma_init = gamma_from_assignment(np.repeat([1, 0], 5), 2)
    model = RegressionClustering(n_states=2).fit(X, Y, T=10, gamma_init=gamma_init)
    np.testing.assert_array_equal(model.init_labels_, np.repeat([1, 0], 5))
    np.testing.assert_array_equal(model.labels_, np.repeat([1, 0], 5))
    assert model.n_iter_ == 1


def test_gamma_init_validation(two_regime_data):
    X, Y = two_regime_data
    model = RegressionClustering(n_states=2)
    with pytest.raises(ValueError, match="shape"):
        model.fit(X, Y, T=10, gamma_init=np.ones((10, 3)))
    with pytest.raises(ValueError, match="exactly one 1"):
        model.fit(X, Y, T=10, gamma_init=np.full((10, 2), 0.5))


def test_predict(two_regime_data):
    X, Y = two_regime_data
    model = RegressionClustering(n_states=2, random_state=0).fit(X, Y, T=10)
    np.testing.assert_allclose(model.predict(X, T=10), Y, atol=1e-8)


def test_predict_validation(two_regime_data):
    X, Y = two_regime_data
    with pytest.raises(NotFittedError):
        RegressionClustering(n_states=2).predict(X, T=10)

    model = RegressionClustering(n_states=2, random_state=0).fit(X, Y, T=10)
    with pytest.raises(ValueError, match="features"):
        model.predict(np.ones((30, 3)), T=10)
    with pytest.raises(ValueError, match="time points"):
        model.predict(X, T=5)


def test_more_states_than_random_segmentations_allow(make_regime_data):
    X, Y = make_regime_data(n_timepoints=4, n_trials=5, switch=2, seed=1)
    model = RegressionClustering(n_states=4, random_state=0).fit(X, Y, T=4)
    assert model.gamma_.shape == (4, 4)
    assert np.all(model.gamma_.sum(axis=1) == 1)
