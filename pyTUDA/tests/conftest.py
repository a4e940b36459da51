import numpy as np
import pytest


def make_two_regime_data(n_timepoints=10, n_trials=3, switch=5, seed=0):
    """Simulate trials whose stimulus follows one linear map before ``switch`` and another after.

    Parameters
    ----------
    n_timepoints : int
        Number of time points per trial.
    n_trials : int
        Number of trials.
    switch : int
        First time point of the second regime.
    seed : int
        Seed of the random brain data.

    Returns
    -------
    X : (n_timepoints * n_trials, 2) ndarray
        Brain data, trials stacked.
    Y : (n_timepoints * n_trials, 1) ndarray
        Stimulus, trials stacked.
    """
    rng = np.random.default_rng(seed)
    X3 = rng.standard_normal((n_timepoints, n_trials, 2))
    beta_first = np.array([[1.0], [-1.0]])
    beta_second = np.array([[-2.0], [0.5]])
    Y3 = np.empty((n_timepoints, n_trials, 1))
    Y3[:switch] = X3[:switch] @ beta_first
    Y3[switch:] = X3[switch:] @ beta_second
    X = X3.transpose(1, 0, 2).reshape(-1, 2)
    Y = Y3.transpose(1, 0, 2).reshape(-1, 1)
    return X, Y


@pytest.fixture
def two_regime_data():
    """Ten time points, three trials, two predictors, one response, regimes switching at 5."""
    return make_two_regime_data()


@pytest.fixture
def make_regime_data():
    """Factory of two-regime datasets with custom sizes."""
    return make_two_regime_data


@pytest.fixture
def random_data():
    """Unstructured data: 20 time points, 10 trials, 3 predictors, 2 responses."""
    rng = np.random.default_rng(42)
    n_timepoints, n_trials = 20, 10
    X = rng.standard_normal((n_timepoints * n_trials, 3))
    Y = rng.standard_normal((n_timepoints * n_trials, 2))
    return X, Y, n_timepoints


@pytest.fixture(scope="session")
def testpath(tmp_path_factory):
    """Test path that will be used to write temporary files"""
    return tmp_path_factory.getbasetemp()
