import numpy as np
import pytest

from optcore.enums import DIFFERENTIABLE, TWICE_DIFFERENTIABLE, Capability
from optcore.exceptions import DimensionMismatch, UnsupportedOperation
from optcore.functions import (
    CallableFunction,
    Chain,
    FiniteDifferenceGradient,
    LinearFunction,
    Minus,
    Plus,
    QuadraticFunction,
    Scalar,
    Selection,
    SelectionById,
    Sin,
    Split,
    SumOfC1Squares,
    check_gradient,
)

_A = np.array([[1.0, 2.0], [3.0, 4.0], [5.0, 6.0]])


def test_scalar() -> None:
    function = Scalar(QuadraticFunction(np.eye(2)), weight=2.0, offset=1.0)
    x = np.array([1.0, 2.0])
    assert function(x)[0] == pytest.approx(11.0)
    assert np.allclose(function.gradient(x), [4.0, 8.0])
    assert np.allclose(function.hessian(x), 4.0 * np.eye(2))
    assert function.capabilities == TWICE_DIFFERENTIABLE


def test_plus_and_minus() -> None:
    left = QuadraticFunction(np.eye(2))
    right = LinearFunction([[1.0, -1.0]])
    x = np.array([1.0, 3.0])
    plus = Plus(left, right)
    minus = Minus(left, right)
    assert plus(x)[0] == pytest.approx(10.0 - 2.0)
    assert minus(x)[0] == pytest.approx(10.0 + 2.0)
    assert np.allclose(plus.gradient(x), [3.0, 5.0])
    assert np.allclose(minus.jacobian(x), [[1.0, 7.0]])
    assert np.allclose(minus.hessian(x), 2.0 * np.eye(2))


def test_plus_capabilities_intersect() -> None:
    left = QuadraticFunction(np.eye(2))
    right = CallableFunction(2, lambda x: x.sum())
    function = Plus(left, right)
    assert function.capabilities == Capability.VALUE
    assert function([1.0, 2.0])[0] == pytest.approx(8.0)
    with pytest.raises(UnsupportedOperation):
        function.gradient([1.0, 2.0])


def test_plus_size_mismatch() -> None:
    with pytest.raises(DimensionMismatch, match="input sizes"):
        Plus(QuadraticFunction(np.eye(2)), QuadraticFunction(np.eye(3)))
    with pytest.raises(DimensionMismatch, match="output sizes"):
        Plus(LinearFunction(np.eye(2)), QuadraticFunction(np.eye(2)))


def test_chain() -> None:
    inner = LinearFunction(_A)
    outer = QuadraticFunction(np.eye(3))
    function = Chain(outer, inner)
    x = np.array([1.0, -1.0])
    # inner(x) = (-1, -1, -1)
    assert function(x)[0] == pytest.approx(3.0)
    assert np.allclose(function.gradient(x), 2.0 * _A.T @ (_A @ x))
    assert function.capabilities == DIFFERENTIABLE
    assert not function.supports(Capability.HESSIAN)
    assert check_gradient(function, x)


def test_chain_of_scalar_functions() -> None:
    function = Chain(Sin(), LinearFunction([[2.0]]))
    assert function.gradient(0.5)[0] == pytest.approx(2.0 * np.cos(1.0))


def test_chain_value_only() -> None:
    function = Chain(CallableFunction(1, lambda x: x[0] ** 2), LinearFunction(_A[:1]))
    assert function.capabilities == Capability.VALUE
    assert function([1.0, 1.0])[0] == pytest.approx(9.0)


def test_chain_size_mismatch() -> None:
    with pytest.raises(DimensionMismatch):
        Chain(QuadraticFunction(np.eye(2)), LinearFunction(_A))


def test_selection() -> None:
    function = LinearFunction(_A, b=[1.0, 2.0, 3.0])
    x = np.array([1.0, 1.0])

    selection = Selection(function, 1, 2)
    assert selection.output_size == 2
    assert np.allclose(selection(x), [9.0, 14.0])
    assert np.allclose(selection.jacobian(x), _A[1:])
    assert np.allclose(selection.gradient(x, 1), _A[2])

    by_id = SelectionById(function, [2, 0])
    assert np.allclose(by_id(x), [14.0, 4.0])
    assert np.allclose(by_id.jacobian(x), _A[[2, 0]])
    assert list(by_id.indices) == [2, 0]

    split = Split(function, 2)
    assert split.output_size == 1
    assert split(x)[0] == pytest.approx(14.0)
    assert np.allclose(split.hessian(x), np.zeros((2, 2)))


def test_selection_out_of_range() -> None:
    function = LinearFunction(_A)
    with pytest.raises(DimensionMismatch):
        SelectionById(function, [0, 3])
    with pytest.raises(DimensionMismatch):
        Selection(function, 2, 2)
    with pytest.raises(DimensionMismatch):
        Split(function, -1)


def test_sum_of_squares() -> None:
    function = SumOfC1Squares(LinearFunction(_A, b=[-1.0, 0.0, 1.0]))
    x = np.array([0.5, -0.25])
    residual = _A @ x + np.array([-1.0, 0.0, 1.0])
    assert function(x)[0] == pytest.approx(residual @ residual)
    assert np.allclose(function.gradient(x), 2.0 * _A.T @ residual)
    assert np.allclose(function.hessian(x), 2.0 * _A.T @ _A)
    assert check_gradient(function, x)


def test_sum_of_squares_with_curvature() -> None:
    inner = QuadraticFunction(np.eye(2), c=-1.0)
    function = SumOfC1Squares(inner)
    x = np.array([0.5, 1.5])
    value = x @ x - 1.0
    expected = 2.0 * (np.outer(2 * x, 2 * x) + value * 2.0 * np.eye(2))
    assert np.allclose(function.hessian(x), expected)


def test_sum_of_squares_requires_gradient() -> None:
    with pytest.raises(UnsupportedOperation, match="requires its gradients"):
        SumOfC1Squares(CallableFunction(2, lambda x: x.sum()))


def test_sum_of_squares_with_finite_differences() -> None:
    inner = FiniteDifferenceGradient(CallableFunction(2, lambda x: x[0] - x[1]))
    function = SumOfC1Squares(inner)
    assert function.capabilities == DIFFERENTIABLE
    assert np.allclose(function.gradient([2.0, 1.0]), [2.0, -2.0], atol=1e-5)
