from typing import Any

import numpy as np
import pytest

from optcore.exceptions import UnsupportedOperation
from optcore.functions import LinearFunction
from optcore.solver.utils import (
    NormalizedConstraints,
    constraint_bounds,
    validate_supported_constraints,
)


def test_normalized_constraints() -> None:
    normalized = NormalizedConstraints(
        np.array([0.0, 1.0, -np.inf]),
        np.array([1.0, 1.0, 2.0]),
        np.array([1.0, 2.0, -1.0]),
    )
    assert normalized.is_eq == [False, False, True, False]
    assert normalized.constraints is None
    normalized.set_constraints(np.array([0.5, 1.5, 1.0]))
    assert normalized.constraints is not None
    assert np.allclose(normalized.constraints, [0.5, 0.5, 1.0, 1.0])
    normalized.set_gradients(np.array([[1.0, 0.0], [0.0, 1.0], [1.0, 1.0]]))
    assert normalized.gradients is not None
    assert np.allclose(
        normalized.gradients, [[1.0, 0.0], [-1.0, 0.0], [0.0, 2.0], [-1.0, -1.0]]
    )
    normalized.reset()
    assert normalized.constraints is None
    assert normalized.gradients is None


def test_constraint_bounds(make_problem: Any) -> None:
    problem = make_problem()
    lower, upper = constraint_bounds(problem)
    assert lower.size == 0
    assert upper.size == 0
    problem.add_constraint(LinearFunction([[1.0, 1.0]]), 0.0, 1.0)
    problem.add_constraint(LinearFunction(np.eye(2)), [-1.0, 2.0], np.inf)
    lower, upper = constraint_bounds(problem)
    assert np.allclose(lower, [0.0, -1.0, 2.0])
    assert np.allclose(upper, [1.0, np.inf, np.inf])


def test_validate_supported_constraints(make_problem: Any) -> None:
    supported = {"bounds": {"A", "b"}, "eq": {"b"}, "ineq": {"b"}}
    required = {"ineq": {"c"}}
    problem = make_problem(argument_bounds=(0.0, np.inf))
    validate_supported_constraints(problem, "a", supported, required)
    with pytest.raises(UnsupportedOperation, match="method c does not support bound"):
        validate_supported_constraints(problem, "C", supported, required)

    problem = make_problem()
    problem.add_constraint(LinearFunction([[1.0, 1.0]]), 1.0, 1.0)
    with pytest.raises(UnsupportedOperation, match="does not support equality"):
        validate_supported_constraints(problem, "a", supported, required)
    validate_supported_constraints(problem, "B", supported, required)

    problem = make_problem()
    with pytest.raises(UnsupportedOperation, match="method c requires inequality"):
        validate_supported_constraints(problem, "c", supported, required)
