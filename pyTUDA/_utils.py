"""Utility functions for pyTUDA estimators."""

import numpy as np


def _estimator_repr(estimator, N_CHAR_MAX=700):
    """Build a representation string for an estimator.

    Only parameters that differ from their default value are shown, so a
    freshly built estimator reads like the call that created it.

    Parameters
    ----------
    estimator : estimator instance
        The estimator to represent.
    N_CHAR_MAX : int, default=700
        Maximum number of characters to display.

    Returns
    -------
    repr_str : str
        The string representation.
    """
    from inspect import signature

    class_name = estimator.__class__.__name__
    params = estimator.get_params(deep=False)
    defaults = {
        name: p.default
        for name, p in signature(estimator.__class__.__init__).parameters.items()
        if p.default is not p.empty
    }

    param_strs = []
    for key, value in sorted(params.items()):
        if key in defaults and _is_default(value, defaults[key]):
            continue
        if isinstance(value, str):
            value_str = f"'{value}'"
        elif isinstance(value, float):
            value_str = f"{value:.4g}"
        elif isinstance(value, (list, tuple)):
            if len(value) > 3:
                value_str = f"[{value[0]}, {value[1]}, ..., {value[-1]}]"
            else:
                value_str = repr(value)
        elif isinstance(value, np.ndarray):
            value_str = f"array(shape={value.shape})"
        else:
            value_str = repr(value)
        param_strs.append(f"{key}={value_str}")

    params_str = ", ".join(param_strs)
    repr_str = f"{class_name}({params_str})"

    if len(repr_str) > N_CHAR_MAX:
        repr_str = repr_str[: N_CHAR_MAX - 3] + "..."

    return repr_str


def _is_default(value, default):
    if isinstance(value, np.ndarray) or isinstance(default, np.ndarray):
        return False
    try:
        return bool(value == default)
    except (TypeError, ValueError):
        return False


def check_array(array, *, ensure_2d=True, dtype=float, allow_nd=False, copy=False):
    """Input validation on an array.

    Parameters
    ----------
    array : array-like
        Input object to check / convert.
    ensure_2d : bool, default=True
        Whether to reshape a 1D array into a single column.
    dtype : dtype, default=float
        Data type of result. If None, the dtype of the input is preserved.
    allow_nd : bool, default=False
        Whether to allow array.ndim > 2.
    copy : bool, default=False
        Whether to force a copy.

    Returns
    -------
    array_converted : ndarray
        The converted and validated array.

    Raises
    ------
    ValueError
        If the array has too many dimensions, no samples, or non-finite values.
    """
    array = np.asarray(array, dtype=dtype)

    if copy:
        array = array.copy()

    if array.ndim == 1 and ensure_2d:
        array = array.reshape(-1, 1)

    if array.ndim > 2 and not allow_nd:
        raise ValueError(f"Found array with dim {array.ndim}. Expected <= 2.")

    if array.shape[0] == 0:
        raise ValueError("Found array with 0 samples. At least one sample is required.")

    if np.issubdtype(array.dtype, np.number) and not np.all(np.isfinite(array)):
        raise ValueError("Input contains NaN or infinity.")

    return array


def validate_parameter_constraints(parameter_constraints, params, caller_name):
    """Validate parameters against constraints.

    Parameters
    ----------
    parameter_constraints : dict
        Dictionary mapping parameter names to constraints. A constraint is a
        type, an ``("interval", dtype, left, right, closed)`` tuple, a
        callable returning True for valid values, or None (value may be None).
    params : dict
        Dictionary of parameter names and values.
    caller_name : str
        Name of the calling class or function.

    Raises
    ------
    ValueError
        If a parameter doesn't satisfy its constraints.
    """
    for param_name, constraints in parameter_constraints.items():
        if param_name not in params:
            continue

        param_value = params[param_name]

        for constraint in constraints:
            if constraint is None:
                if param_value is None:
                    break
            elif isinstance(constraint, type):
                if isinstance(param_value, constraint) and not (
                    isinstance(param_value, bool) and constraint is not bool
                ):
                    break
            elif isinstance(constraint, tuple):
                if constraint[0] == "interval":
                    _, dtype, left, right, closed = constraint
                    if not isinstance(param_value, dtype) or isinstance(param_value, bool):
                        continue
                    left_ok = left is None or (
                        left <= param_value if closed in ("left", "both") else left < param_value
                    )
                    right_ok = right is None or (
                        param_value <= right
                        if closed in ("right", "both")
                        else param_value < right
                    )
                    if left_ok and right_ok:
                        break
            elif callable(constraint):
                if constraint(param_value):
                    break
        else:
            raise ValueError(
                f"The {param_name!r} parameter of {caller_name} must satisfy "
                f"the constraints {constraints}. Got {param_value!r} instead."
            )
