import math
from typing import Any

import numpy as np
import pytest

from optcore.enums import DIFFERENTIABLE, TWICE_DIFFERENTIABLE, Capability
from optcore.exceptions import DimensionMismatch, UnsupportedOperation
from optcore.functions import (
    CallableFunction,
    ConstantFunction,
    Cos,
    IdentityFunction,
    LinearFunction,
    Polynomial,
    QuadraticFunction,
    Sin,
)


def test_quadratic_value_and_derivatives() -> None:
    function = QuadraticFunction([[1.0, 1.0], [0.0, 2.0]], b=[1.0, -1.0], c=3.0)
    x = np.array([1.0, 2.0])
    # x'Ax = 1 + 2 + 8, b'x = -1
    assert function.value(x)[0] == pytest.approx(13.0)
    assert np.allclose(function.gradient(x), [2.0 * 1 + 1 * 2 + 1, 1 + 8 - 1])
    assert np.allclose(function.jacobian(x), [[5.0, 8.0]])
    assert np.allclose(function.hessian(x), [[2.0, 1.0], [1.0, 4.0]])
    assert function.capabilities == TWICE_DIFFERENTIABLE


def test_linear_function() -> None:
    function = LinearFunction([[1.0, 2.0], [3.0, 4.0], [5.0, 6.0]], b=[1.0, 0.0, -1.0])
    x = np.array([1.0, -1.0])
    assert function.input_size == 2
    assert function.output_size == 3
    assert np.allclose(function(x), [0.0, -1.0, -2.0])
    assert np.allclose(function.gradient(x, 2), [5.0, 6.0])
    assert np.allclose(function.jacobian(x), function.a)
    assert np.allclose(function.hessian(x, 1), 0.0)


def test_linear_function_bad_offset() -> None:
    with pytest.raises(ValueError, match="offset must have size 2"):
        LinearFunction(np.eye(2), b=[1.0, 2.0, 3.0])


def test_constant_and_identity() -> None:
    constant = ConstantFunction(3, [1.0, 2.0])
    assert np.allclose(constant(np.zeros(3)), [1.0, 2.0])
    assert np.allclose(constant.jacobian(np.ones(3)), np.zeros((2, 3)))

    identity = IdentityFunction([1.0, 1.0])
    assert np.allclose(identity([2.0, 3.0]), [3.0, 4.0])
    assert np.allclose(identity.jacobian([2.0, 3.0]), np.eye(2))
    assert np.allclose(identity.gradient([2.0, 3.0], 1), [0.0, 1.0])


def test_input_dimension_mismatch() -> None:
    function = QuadraticFunction(np.eye(2))
    with pytest.raises(DimensionMismatch, match="expected"):
        function.value(np.zeros(3))
    with pytest.raises(DimensionMismatch):
        function.gradient(np.zeros(1))
    with pytest.raises(DimensionMismatch):
        function.hessian(np.zeros(4))


def test_function_index_out_of_range() -> None:
    function = LinearFunction(np.eye(2))
    with pytest.raises(DimensionMismatch, match="function index"):
        function.gradient(np.zeros(2), 2)
    with pytest.raises(DimensionMismatch, match="function index"):
        function.gradient(np.zeros(2), -1)


def test_out_argument() -> None:
    function = LinearFunction([[1.0, 2.0], [3.0, 4.0]])
    x = np.array([1.0, 1.0])
    out = np.full(2, np.nan)
    result = function.value(x, out=out)
    assert result is out
    assert np.allclose(out, [3.0, 7.0])
    jacobian = np.full((2, 2), np.nan)
    function.jacobian(x, out=jacobian)
    assert np.allclose(jacobian, function.a)


def test_out_argument_wrong_shape() -> None:
    function = LinearFunction([[1.0, 2.0], [3.0, 4.0]])
    with pytest.raises(DimensionMismatch, match="output buffer"):
        function.value(np.ones(2), out=np.zeros(3))
    with pytest.raises(DimensionMismatch, match="output buffer"):
        function.jacobian(np.ones(2), out=np.zeros((2, 3)))


def test_value_only_function() -> None:
    function = CallableFunction(2, lambda x: x[0] * x[1])
    assert function.capabilities == Capability.VALUE
    assert function.supports(Capability.VALUE)
    assert not function.supports(Capability.GRADIENT)
    assert function([2.0, 3.0])[0] == pytest.approx(6.0)
    with pytest.raises(UnsupportedOperation, match="does not support gradient"):
        function.gradient([2.0, 3.0])
    with pytest.raises(UnsupportedOperation, match="does not support jacobian"):
        function.jacobian([2.0, 3.0])
    with pytest.raises(UnsupportedOperation, match="does not support hessian"):
        function.hessian([2.0, 3.0])


def test_callable_function_capabilities() -> None:
    function = CallableFunction(
        2, lambda x: x @ x, gradient=lambda x: 2 * x, name="square"
    )
    assert function.capabilities == DIFFERENTIABLE
    assert np.allclose(function.jacobian([1.0, 2.0]), [[2.0, 4.0]])

    function = CallableFunction(
        2,
        lambda x: x @ x,
        gradient=lambda x: 2 * x,
        hessian=lambda _: 2 * np.eye(2),
    )
    assert function.capabilities == TWICE_DIFFERENTIABLE
    assert np.allclose(function.hessian([1.0, 2.0]), 2 * np.eye(2))


def test_callable_function_vector_output() -> None:
    function = CallableFunction(
        2,
        lambda x: [x[0] + x[1], x[0] * x[1]],
        output_size=2,
        jacobian=lambda x: [[1.0, 1.0], [x[1], x[0]]],
    )
    assert np.allclose(function([2.0, 3.0]), [5.0, 6.0])
    assert np.allclose(function.gradient([2.0, 3.0], 1), [3.0, 2.0])


def test_callable_function_errors() -> None:
    with pytest.raises(ValueError, match="requires a scalar function"):
        CallableFunction(2, lambda x: x, output_size=2, gradient=lambda x: x)
    with pytest.raises(ValueError, match="requires a gradient or a jacobian"):
        CallableFunction(2, lambda x: x @ x, hessian=lambda _: np.eye(2))
    function = CallableFunction(2, lambda _: [1.0, 2.0, 3.0])
    with pytest.raises(DimensionMismatch, match="function value"):
        function([1.0, 2.0])


@pytest.mark.parametrize("order", [1, 2, 3])
def test_polynomial_derivatives(order: int) -> None:
    # p(t) = 1 + 2t + 3t^2 + 4t^3
    polynomial = Polynomial([1.0, 2.0, 3.0, 4.0], order=order)
    expected = [1 + 2 * 2 + 3 * 4 + 4 * 8, 2 + 6 * 2 + 12 * 4, 6 + 24 * 2, 24]
    for k in range(order + 1):
        assert polynomial.derivative(2.0, k)[0] == pytest.approx(expected[k])
    with pytest.raises(UnsupportedOperation, match="supports derivatives up to"):
        polynomial.derivative(2.0, order + 1)


def test_polynomial_capabilities() -> None:
    assert not Polynomial([1.0, 1.0], order=1).supports(Capability.HESSIAN)
    polynomial = Polynomial([0.0, 0.0, 1.0], order=2)
    assert polynomial.supports(Capability.HESSIAN | Capability.DERIVATIVE)
    assert polynomial.gradient(3.0)[0] == pytest.approx(6.0)
    assert polynomial.hessian(3.0)[0, 0] == pytest.approx(2.0)
    with pytest.raises(ValueError, match="at least 1"):
        Polynomial([1.0], order=0)


def test_trigonometric_functions() -> None:
    t = 0.3
    sin = Sin()
    cos = Cos()
    assert sin(t)[0] == pytest.approx(math.sin(t))
    assert sin.derivative(t, 1)[0] == pytest.approx(math.cos(t))
    assert sin.derivative(t, 2)[0] == pytest.approx(-math.sin(t))
    assert sin.derivative(t, 3)[0] == pytest.approx(-math.cos(t))
    assert cos.gradient(t)[0] == pytest.approx(-math.sin(t))
    assert cos.hessian(t)[0, 0] == pytest.approx(-math.cos(t))
    with pytest.raises(ValueError, match="cannot be negative"):
        cos.derivative(t, -1)


def test_derivative_input_size() -> None:
    with pytest.raises(DimensionMismatch):
        Sin().derivative(np.array([1.0, 2.0]))


@pytest.mark.parametrize(
    ("function", "expected"),
    [
        (QuadraticFunction(np.eye(2), name="q"), "QuadraticFunction `q`"),
        (Sin(), "Sin"),
    ],
)
def test_function_error_messages_name_function(function: Any, expected: str) -> None:
    with pytest.raises(DimensionMismatch, match=expected):
        function.value(np.zeros(5))
