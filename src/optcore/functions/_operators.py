"""Functions built from other functions.

The capabilities of an operator are derived from the capabilities of its
operands: a derivative is only offered if every operand supports what is
needed to compute it. Operators preallocate the intermediate buffers they need,
so that evaluations with a preallocated `out` argument do not allocate.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from optcore.config.utils import immutable_array
from optcore.enums import DIFFERENTIABLE, TWICE_DIFFERENTIABLE, Capability
from optcore.exceptions import DimensionMismatch, UnsupportedOperation

from ._function import Function

if TYPE_CHECKING:
    from collections.abc import Sequence

    from numpy.typing import NDArray


class _Operator(Function):
    def __init__(
        self,
        input_size: int,
        output_size: int,
        name: str,
        capabilities: Capability,
    ) -> None:
        super().__init__(input_size, output_size, name)
        self._operator_capabilities = capabilities

    @property
    def capabilities(self) -> Capability:
        """The set of evaluations supported by this function."""
        return self._operator_capabilities


def _derivatives(function: Function) -> Capability:
    return function.capabilities & TWICE_DIFFERENTIABLE


class Scalar(_Operator):
    r"""Scale and shift a function: $g(x) = \alpha f(x) + \beta$."""

    def __init__(
        self,
        function: Function,
        weight: float = 1.0,
        offset: float = 0.0,
        name: str = "",
    ) -> None:
        """Initialize the operator.

        Args:
            function: The function $f$.
            weight:   The factor $\alpha$.
            offset:   The offset $\beta$.
            name:     A descriptive name of the function.
        """
        super().__init__(
            function.input_size,
            function.output_size,
            name or f"{weight} * ({function.name})",
            _derivatives(function),
        )
        self._function = function
        self._weight = float(weight)
        self._offset = float(offset)

    @property
    def function(self) -> Function:
        """The scaled function."""
        return self._function

    def _compute(self, result: NDArray[np.float64], x: NDArray[np.float64]) -> None:
        self._function.value(x, out=result)
        result *= self._weight
        result += self._offset

    def _gradient(
        self,
        gradient: NDArray[np.float64],
        x: NDArray[np.float64],
        function_index: int,
    ) -> None:
        self._function.gradient(x, function_index, out=gradient)
        gradient *= self._weight

    def _jacobian(self, jacobian: NDArray[np.float64], x: NDArray[np.float64]) -> None:
        self._function.jacobian(x, out=jacobian)
        jacobian *= self._weight

    def _hessian(
        self,
        hessian: NDArray[np.float64],
        x: NDArray[np.float64],
        function_index: int,
    ) -> None:
        self._function.hessian(x, function_index, out=hessian)
        hessian *= self._weight


class Plus(_Operator):
    r"""The sum of two functions: $h(x) = f(x) + g(x)$."""

    _sign = 1.0
    _symbol = "+"

    def __init__(self, left: Function, right: Function, name: str = "") -> None:
        """Initialize the operator.

        Args:
            left:  The function $f$.
            right: The function $g$.
            name:  A descriptive name of the function.

        Raises:
            DimensionMismatch: If the sizes of the functions differ.
        """
        if left.input_size != right.input_size:
            msg = "input sizes of operands"
            raise DimensionMismatch(msg, left.input_size, right.input_size)
        if left.output_size != right.output_size:
            msg = "output sizes of operands"
            raise DimensionMismatch(msg, left.output_size, right.output_size)
        super().__init__(
            left.input_size,
            left.output_size,
            name or f"({left.name}) {self._symbol} ({right.name})",
            _derivatives(left) & _derivatives(right),
        )
        self._left = left
        self._right = right
        size_in, size_out = left.input_size, left.output_size
        self._value_buffer = np.zeros(size_out, dtype=np.float64)
        self._gradient_buffer = np.zeros(size_in, dtype=np.float64)
        self._jacobian_buffer = np.zeros((size_out, size_in), dtype=np.float64)
        self._hessian_buffer = np.zeros((size_in, size_in), dtype=np.float64)

    def _compute(self, result: NDArray[np.float64], x: NDArray[np.float64]) -> None:
        self._left.value(x, out=result)
        self._right.value(x, out=self._value_buffer)
        result += self._sign * self._value_buffer

    def _gradient(
        self,
        gradient: NDArray[np.float64],
        x: NDArray[np.float64],
        function_index: int,
    ) -> None:
        self._left.gradient(x, function_index, out=gradient)
        self._right.gradient(x, function_index, out=self._gradient_buffer)
        gradient += self._sign * self._gradient_buffer

    def _jacobian(self, jacobian: NDArray[np.float64], x: NDArray[np.float64]) -> None:
        self._left.jacobian(x, out=jacobian)
        self._right.jacobian(x, out=self._jacobian_buffer)
        jacobian += self._sign * self._jacobian_buffer

    def _hessian(
        self,
        hessian: NDArray[np.float64],
        x: NDArray[np.float64],
        function_index: int,
    ) -> None:
        self._left.hessian(x, function_index, out=hessian)
        self._right.hessian(x, function_index, out=self._hessian_buffer)
        hessian += self._sign * self._hessian_buffer


class Minus(Plus):
    r"""The difference of two functions: $h(x) = f(x) - g(x)$."""

    _sign = -1.0
    _symbol = "-"


class Chain(_Operator):
    r"""The composition of two functions: $h(x) = f(g(x))$.

    The jacobian is computed by the chain rule, $J_h(x) = J_f(g(x)) J_g(x)$.
    Hessians of compositions are not offered.
    """

    def __init__(self, outer: Function, inner: Function, name: str = "") -> None:
        """Initialize the operator.

        Args:
            outer: The function $f$.
            inner: The function $g$.
            name:  A descriptive name of the function.

        Raises:
            DimensionMismatch: If the output size of `inner` differs from the
                input size of `outer`.
        """
        if outer.input_size != inner.output_size:
            msg = "input size of the outer function"
            raise DimensionMismatch(msg, inner.output_size, outer.input_size)
        capabilities = Capability.VALUE
        if outer.supports(Capability.JACOBIAN) and inner.supports(Capability.JACOBIAN):
            capabilities = DIFFERENTIABLE
        super().__init__(
            inner.input_size,
            outer.output_size,
            name or f"({outer.name}) o ({inner.name})",
            capabilities,
        )
        self._outer = outer
        self._inner = inner
        self._inner_value = np.zeros(inner.output_size, dtype=np.float64)
        self._outer_gradient = np.zeros(outer.input_size, dtype=np.float64)
        self._outer_jacobian = np.zeros(
            (outer.output_size, outer.input_size), dtype=np.float64
        )
        self._inner_jacobian = np.zeros(
            (inner.output_size, inner.input_size), dtype=np.float64
        )

    def _compute(self, result: NDArray[np.float64], x: NDArray[np.float64]) -> None:
        self._inner.value(x, out=self._inner_value)
        self._outer.value(self._inner_value, out=result)

    def _gradient(
        self,
        gradient: NDArray[np.float64],
        x: NDArray[np.float64],
        function_index: int,
    ) -> None:
        self._inner.value(x, out=self._inner_value)
        self._outer.gradient(
            self._inner_value, function_index, out=self._outer_gradient
        )
        self._inner.jacobian(x, out=self._inner_jacobian)
        np.matmul(self._outer_gradient, self._inner_jacobian, out=gradient)

    def _jacobian(self, jacobian: NDArray[np.float64], x: NDArray[np.float64]) -> None:
        self._inner.value(x, out=self._inner_value)
        self._outer.jacobian(self._inner_value, out=self._outer_jacobian)
        self._inner.jacobian(x, out=self._inner_jacobian)
        np.matmul(self._outer_jacobian, self._inner_jacobian, out=jacobian)


class SelectionById(_Operator):
    """Select a subset of the outputs of a function, given by their indices."""

    def __init__(
        self, function: Function, indices: Sequence[int], name: str = ""
    ) -> None:
        """Initialize the operator.

        Args:
            function: The function to select from.
            indices:  The indices of the selected outputs, in output order.
            name:     A descriptive name of the function.

        Raises:
            DimensionMismatch: If an index is out of range.
        """
        self._indices = immutable_array(indices, dtype=np.intp, ndmin=1).ravel()
        for index in self._indices:
            if not 0 <= index < function.output_size:
                msg = "selected output index"
                raise DimensionMismatch(msg, f"[0, {function.output_size})", index)
        super().__init__(
            function.input_size,
            self._indices.size,
            name or f"{function.name}[{', '.join(map(str, self._indices))}]",
            _derivatives(function),
        )
        self._function = function
        self._value_buffer = np.zeros(function.output_size, dtype=np.float64)
        self._jacobian_buffer = np.zeros(
            (function.output_size, function.input_size), dtype=np.float64
        )

    @property
    def indices(self) -> NDArray[np.intp]:
        """The indices of the selected outputs."""
        return self._indices

    def _compute(self, result: NDArray[np.float64], x: NDArray[np.float64]) -> None:
        self._function.value(x, out=self._value_buffer)
        result[:] = self._value_buffer[self._indices]

    def _gradient(
        self,
        gradient: NDArray[np.float64],
        x: NDArray[np.float64],
        function_index: int,
    ) -> None:
        self._function.gradient(x, int(self._indices[function_index]), out=gradient)

    def _jacobian(self, jacobian: NDArray[np.float64], x: NDArray[np.float64]) -> None:
        self._function.jacobian(x, out=self._jacobian_buffer)
        jacobian[:] = self._jacobian_buffer[self._indices]

    def _hessian(
        self,
        hessian: NDArray[np.float64],
        x: NDArray[np.float64],
        function_index: int,
    ) -> None:
        self._function.hessian(x, int(self._indices[function_index]), out=hessian)


class Selection(SelectionById):
    """Select a contiguous range of outputs of a function."""

    def __init__(
        self, function: Function, start: int, size: int, name: str = ""
    ) -> None:
        """Initialize the operator.

        Args:
            function: The function to select from.
            start:    The index of the first selected output.
            size:     The number of selected outputs.
            name:     A descriptive name of the function.

        Raises:
            DimensionMismatch: If the range exceeds the outputs of the function.
        """
        if start < 0 or size < 0 or start + size > function.output_size:
            msg = "selected output range"
            raise DimensionMismatch(
                msg, f"within [0, {function.output_size})", (start, start + size)
            )
        super().__init__(
            function,
            range(start, start + size),
            name or f"{function.name}[{start}:{start + size}]",
        )


class Split(Selection):
    """Select a single output of a vector function."""

    def __init__(self, function: Function, index: int, name: str = "") -> None:
        """Initialize the operator.

        Args:
            function: The function to select from.
            index:    The index of the selected output.
            name:     A descriptive name of the function.
        """
        super().__init__(function, index, 1, name or f"{function.name}[{index}]")


class SumOfC1Squares(_Operator):
    r"""The sum of the squared outputs of a differentiable function.

    The value is $g(x) = \sum_i f_i(x)^2$, with gradient
    $\nabla g(x) = \sum_i 2 f_i(x) \nabla f_i(x) = 2 J_f(x)^T f(x)$.

    If $f$ supports hessians, so does $g$:
    $\nabla^2 g(x) = 2 \left(J_f(x)^T J_f(x) + \sum_i f_i(x) \nabla^2 f_i(x)\right)$.
    """

    def __init__(self, function: Function, name: str = "") -> None:
        """Initialize the operator.

        Args:
            function: The function $f$.
            name:     A descriptive name of the function.

        Raises:
            UnsupportedOperation: If `function` does not support gradients.
        """
        if not function.supports(DIFFERENTIABLE):
            msg = f"the sum of squares of `{function.name}` requires its gradients"
            raise UnsupportedOperation(msg)
        super().__init__(
            function.input_size,
            1,
            name or f"sum of squares of ({function.name})",
            _derivatives(function),
        )
        self._function = function
        self._value_buffer = np.zeros(function.output_size, dtype=np.float64)
        self._jacobian_buffer = np.zeros(
            (function.output_size, function.input_size), dtype=np.float64
        )
        self._hessian_buffer = np.zeros(
            (function.input_size, function.input_size), dtype=np.float64
        )

    def _compute(self, result: NDArray[np.float64], x: NDArray[np.float64]) -> None:
        self._function.value(x, out=self._value_buffer)
        result[0] = self._value_buffer @ self._value_buffer

    def _gradient(
        self,
        gradient: NDArray[np.float64],
        x: NDArray[np.float64],
        function_index: int,
    ) -> None:
        self._function.value(x, out=self._value_buffer)
        self._function.jacobian(x, out=self._jacobian_buffer)
        np.matmul(self._value_buffer, self._jacobian_buffer, out=gradient)
        gradient *= 2.0

    def _hessian(
        self,
        hessian: NDArray[np.float64],
        x: NDArray[np.float64],
        function_index: int,
    ) -> None:
        self._function.value(x, out=self._value_buffer)
        self._function.jacobian(x, out=self._jacobian_buffer)
        np.matmul(self._jacobian_buffer.T, self._jacobian_buffer, out=hessian)
        for idx, value in enumerate(self._value_buffer):
            self._function.hessian(x, idx, out=self._hessian_buffer)
            hessian += value * self._hessian_buffer
        hessian *= 2.0
