from typing import Any

import numpy as np
import pytest

from optcore.config import FiniteDifferenceConfig
from optcore.enums import DIFFERENTIABLE, FiniteDifferenceRule
from optcore.exceptions import BadGradient, DimensionMismatch
from optcore.functions import (
    CallableFunction,
    Chain,
    ConstantFunction,
    Cos,
    FiniteDifferenceGradient,
    Function,
    IdentityFunction,
    LinearFunction,
    Minus,
    Plus,
    Polynomial,
    QuadraticFunction,
    Scalar,
    Selection,
    SelectionById,
    Sin,
    Split,
    SumOfC1Squares,
    check_gradient,
    check_gradient_and_raise,
)


def _rosenbrock(x: Any) -> float:
    return float((1.0 - x[0]) ** 2 + 100.0 * (x[1] - x[0] ** 2) ** 2)


def _rosenbrock_gradient(x: Any) -> Any:
    return np.array(
        [
            -2.0 * (1.0 - x[0]) - 400.0 * x[0] * (x[1] - x[0] ** 2),
            200.0 * (x[1] - x[0] ** 2),
        ]
    )


@pytest.mark.parametrize(
    ("rule", "epsilon", "tolerance"),
    [
        (FiniteDifferenceRule.SIMPLE, 1e-8, 1e-4),
        (FiniteDifferenceRule.FIVE_POINTS, 1e-3, 1e-8),
    ],
)
def test_finite_difference_agrees_with_analytic_gradient(
    rule: FiniteDifferenceRule, epsilon: float, tolerance: float
) -> None:
    function = CallableFunction(2, _rosenbrock, gradient=_rosenbrock_gradient)
    estimate = FiniteDifferenceGradient(
        CallableFunction(2, _rosenbrock), epsilon=epsilon, rule=rule
    )
    for x in ([0.0, 0.0], [-1.2, 1.0], [0.5, 2.0]):
        assert np.allclose(
            estimate.gradient(x), function.gradient(x), rtol=0.0, atol=tolerance
        )


def test_finite_difference_jacobian() -> None:
    a = np.array([[1.0, 2.0, 3.0], [-1.0, 0.0, 1.0]])
    estimate = FiniteDifferenceGradient(
        CallableFunction(3, lambda x: a @ x, output_size=2),
        epsilon=1e-6,
        rule=FiniteDifferenceRule.FIVE_POINTS,
    )
    x = np.array([1.0, 2.0, 3.0])
    assert np.allclose(estimate.jacobian(x), a, atol=1e-7)
    assert np.allclose(estimate.gradient(x, 1), a[1], atol=1e-7)
    assert np.allclose(estimate.value(x), a @ x)


def test_finite_difference_cost() -> None:
    calls = []

    def _value(x: Any) -> float:
        calls.append(x.copy())
        return float(x @ x)

    function = CallableFunction(3, _value)
    FiniteDifferenceGradient(function).jacobian(np.ones(3))
    assert len(calls) == 4
    calls.clear()
    five_points = FiniteDifferenceGradient(
        function, rule=FiniteDifferenceRule.FIVE_POINTS
    )
    five_points.jacobian(np.ones(3))
    assert len(calls) == 12


def test_finite_difference_capabilities_and_checks() -> None:
    estimate = FiniteDifferenceGradient(CallableFunction(2, lambda x: x.sum()))
    assert estimate.capabilities == DIFFERENTIABLE
    assert estimate.input_size == 2
    with pytest.raises(DimensionMismatch):
        estimate.gradient(np.zeros(3))
    with pytest.raises(DimensionMismatch):
        estimate.gradient(np.zeros(2), 1)
    with pytest.raises(DimensionMismatch):
        estimate.jacobian(np.zeros(2), out=np.zeros((2, 2)))


def test_finite_difference_bad_epsilon() -> None:
    with pytest.raises(ValueError, match="must be positive"):
        FiniteDifferenceGradient(QuadraticFunction(np.eye(2)), epsilon=0.0)


def test_finite_difference_from_config() -> None:
    config = FiniteDifferenceConfig.model_validate(
        {"epsilon": 1e-4, "rule": "five-points"}
    )
    estimate = FiniteDifferenceGradient.from_config(
        QuadraticFunction(np.eye(2)), config
    )
    assert estimate.epsilon == 1e-4
    assert estimate.rule == FiniteDifferenceRule.FIVE_POINTS


def test_check_gradient() -> None:
    good = CallableFunction(2, _rosenbrock, gradient=_rosenbrock_gradient)
    bad = CallableFunction(
        2, _rosenbrock, gradient=lambda x: _rosenbrock_gradient(x) + 1.0
    )
    x = np.array([0.3, 0.4])
    assert check_gradient(good, x)
    assert not check_gradient(bad, x)
    check_gradient_and_raise(good, x)
    with pytest.raises(BadGradient, match="exceeds threshold") as exc_info:
        check_gradient_and_raise(bad, x)
    assert exc_info.value.max_delta == pytest.approx(1.0, abs=1e-4)
    assert np.allclose(exc_info.value.x, x)


def test_check_gradient_of_vector_function() -> None:
    function = LinearFunction([[1.0, 2.0], [3.0, 4.0]])
    assert check_gradient(function, [1.0, 1.0], function_index=1)


_A = np.array([[1.0, 2.0, -3.0], [-1.0, 0.5, 2.0], [0.0, 1.5, 1.0]])
_Q = np.array([[2.0, 1.0, 0.0], [1.0, 3.0, 0.5], [0.0, 0.5, 1.0]])


def _quadratic() -> QuadraticFunction:
    return QuadraticFunction(_Q, b=[1.0, -2.0, 0.5], c=1.0)


_FUNCTIONS: dict[str, Any] = {
    "constant": lambda: ConstantFunction(3, [1.0, 2.0]),
    "identity": lambda: IdentityFunction([1.0, -1.0, 0.5]),
    "linear": lambda: LinearFunction(_A, [1.0, -1.0, 0.0]),
    "quadratic": _quadratic,
    "polynomial": lambda: Polynomial([1.0, -2.0, 0.5, 0.25]),
    "sin": Sin,
    "cos": Cos,
    "scalar": lambda: Scalar(_quadratic(), 2.5, 1.0),
    "plus": lambda: Plus(LinearFunction(_A[:1]), _quadratic()),
    "minus": lambda: Minus(LinearFunction(_A[:1]), _quadratic()),
    "chain": lambda: Chain(Sin(), _quadratic()),
    "chain_vector": lambda: Chain(_quadratic(), LinearFunction(_A)),
    "selection": lambda: Selection(LinearFunction(_A), 1, 2),
    "selection_by_id": lambda: SelectionById(LinearFunction(_A), [2, 0]),
    "split": lambda: Split(LinearFunction(_A), 2),
    "sum_of_squares": lambda: SumOfC1Squares(
        LinearFunction(_A[:2], [1.0, -1.0])
    ),
    "sum_of_squares_chain": lambda: SumOfC1Squares(Chain(Cos(), _quadratic())),
}


@pytest.mark.parametrize("name", sorted(_FUNCTIONS))
def test_gradients_agree_with_finite_differences(name: str) -> None:
    function: Function = _FUNCTIONS[name]()
    rng = np.random.default_rng(seed=123)
    for _ in range(5):
        x = rng.uniform(-1.0, 1.0, size=function.input_size)
        for idx in range(function.output_size):
            assert check_gradient(function, x, idx)
            check_gradient_and_raise(function, x, idx)
