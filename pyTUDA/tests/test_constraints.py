"""Tests for the transition constraints."""

import warnings

import numpy as np
import pytest

from pyTUDA._solvers import constraints
from pyTUDA.base import ConstraintInfeasibleWarning


class TestCheckStructures:
    """Tests for check_structures."""

    def test_defaults_allow_everything(self):
        P, Pi = constraints.check_structures(None, None, 3)
        assert P.shape == (3, 3) and P.all()
        assert Pi.shape == (3,) and Pi.all()

    def test_structures_are_read_only(self):
        P, Pi = constraints.check_structures(np.eye(2), [True, False], 2)
        with pytest.raises(ValueError):
            P[0, 1] = True
        with pytest.raises(ValueError):
            Pi[1] = True

    def test_input_is_not_modified(self):
        P_in = np.eye(2, dtype=bool)
        constraints.check_structures(P_in, None, 2)
        assert P_in.flags.writeable

    def test_wrong_shapes(self):
        with pytest.raises(ValueError, match="transition_structure"):
            constraints.check_structures(np.ones((2, 3)), None, 2)
        with pytest.raises(ValueError, match="initial_structure"):
            constraints.check_structures(None, [True], 2)


def test_feasible_states():
    P = np.array([[True, True], [False, True]])
    Pi = np.array([True, False])
    np.testing.assert_array_equal(constraints.feasible_states(None, P, Pi), Pi)
    np.testing.assert_array_equal(constraints.feasible_states(1, P, Pi), [False, True])


class TestConstrainedArgmin:
    """Tests for constrained_argmin."""

    def test_unconstrained_is_rowwise_argmin(self):
        rng = np.random.default_rng(0)
        errors = rng.random((15, 4))
        P, Pi = constraints.check_structures(None, None, 4)
        assignment = constraints.constrained_argmin(errors, P, Pi)
        np.testing.assert_array_equal(assignment, np.argmin(errors, axis=1))

    def test_initial_constraint(self):
        errors = np.array([[0.0, 1.0], [0.0, 1.0]])
        P, Pi = constraints.check_structures(None, [False, True], 2)
        assignment = constraints.constrained_argmin(errors, P, Pi)
        np.testing.assert_array_equal(assignment, [1, 0])

    def test_transition_constraint_depends_on_previous_decision(self):
        # Left-to-right structure: once in state 1 there is no way back
        P = np.array([[True, True], [False, True]])
        Pi = np.array([True, True])
        errors = np.array([[1.0, 0.0], [0.0, 1.0], [0.0, 1.0]])
        assignment = constraints.constrained_argmin(errors, P, Pi)
        np.testing.assert_array_equal(assignment, [1, 1, 1])

    def test_ties_go_to_lowest_state(self):
        errors = np.zeros((3, 3))
        P, Pi = constraints.check_structures(None, [False, True, True], 3)
        assignment = constraints.constrained_argmin(errors, P, Pi)
        np.testing.assert_array_equal(assignment, [1, 0, 0])

    def test_inactive_states_are_skipped(self):
        errors = np.array([[0.0, 1.0, 2.0]])
        P, Pi = constraints.check_structures(None, None, 3)
        active = np.array([False, True, True])
        assert constraints.constrained_argmin(errors, P, Pi, active)[0] == 1

    def test_infeasible_falls_back_to_state_zero(self):
        errors = np.array([[1.0, 0.0], [1.0, 0.0], [1.0, 0.0]])
        P = np.zeros((2, 2), dtype=bool)
        Pi = np.ones(2, dtype=bool)
        with pytest.warns(ConstraintInfeasibleWarning, match=r"\[1, 2\]"):
            assignment = constraints.constrained_argmin(errors, P, Pi)
        np.testing.assert_array_equal(assignment, [1, 0, 0])

    def test_no_warning_when_feasible(self):
        errors = np.ones((4, 2))
        P, Pi = constraints.check_structures(None, None, 2)
        with warnings.catch_warnings():
            warnings.simplefilter("error", ConstraintInfeasibleWarning)
            constraints.constrained_argmin(errors, P, Pi)


class TestRepairInitialState:
    """Tests for repair_initial_state."""

    def test_swap(self):
        assignment = np.array([0, 0, 1, 1, 2])
        repaired = constraints.repair_initial_state(assignment, np.array([False, True, True]))
        np.testing.assert_array_equal(repaired, [1, 1, 0, 0, 2])
        # The input is left untouched
        np.testing.assert_array_equal(assignment, [0, 0, 1, 1, 2])

    def test_already_valid(self):
        assignment = np.array([1, 0, 0])
        repaired = constraints.repair_initial_state(assignment, np.array([False, True]))
        np.testing.assert_array_equal(repaired, assignment)

    def test_nothing_allowed(self):
        assignment = np.array([0, 1])
        with pytest.warns(ConstraintInfeasibleWarning):
            repaired = constraints.repair_initial_state(assignment, np.array([False, False]))
        np.testing.assert_array_equal(repaired, assignment)
