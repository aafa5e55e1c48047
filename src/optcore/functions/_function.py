"""Base classes of the function hierarchy."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, ClassVar

import numpy as np

from optcore.allocation import check_allocation
from optcore.enums import DIFFERENTIABLE, TWICE_DIFFERENTIABLE, Capability
from optcore.exceptions import DimensionMismatch, UnsupportedOperation

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray


class Function(ABC):
    r"""Abstract base class for all functions.

    A function maps an input vector $x$ of fixed size $n$ to an output vector
    of fixed size $m$. The sizes are set at construction and never change.

    Each function carries a set of capabilities, given by the
    [`capabilities`][optcore.functions.Function.capabilities] property. The
    value of a function can always be evaluated; derivatives are only
    available if the corresponding [`Capability`][optcore.enums.Capability]
    flag is part of the set. Requesting a derivative that is not supported
    raises an [`UnsupportedOperation`][optcore.exceptions.UnsupportedOperation]
    error. All evaluation methods raise a
    [`DimensionMismatch`][optcore.exceptions.DimensionMismatch] error if the
    size of the input vector is not equal to $n$.

    The evaluation methods accept an optional `out` argument, a preallocated
    array that receives the result. If `out` is not given, a new array is
    allocated, which fails if allocation is forbidden (see
    [`optcore.allocation`][optcore.allocation]).

    Subclasses must implement the `_compute` method, which writes the value of
    the function into a preallocated array. Subclasses that support derivatives
    override the corresponding `_gradient`, `_jacobian`, and `_hessian` methods.
    These receive preallocated, zeroed arrays and validated inputs.
    """

    _capabilities: ClassVar[Capability] = Capability.VALUE

    def __init__(self, input_size: int, output_size: int = 1, name: str = "") -> None:
        """Initialize a function.

        Args:
            input_size:  The size $n$ of the input vector.
            output_size: The size $m$ of the output vector.
            name:        A descriptive name of the function.

        Raises:
            ValueError: If a size is negative.
        """
        if input_size < 0 or output_size < 0:
            msg = "function sizes must be non-negative"
            raise ValueError(msg)
        self._input_size = input_size
        self._output_size = output_size
        self._name = name

    @property
    def input_size(self) -> int:
        """The size of the input vector."""
        return self._input_size

    @property
    def output_size(self) -> int:
        """The size of the output vector."""
        return self._output_size

    @property
    def name(self) -> str:
        """The name of the function."""
        return self._name

    @property
    def capabilities(self) -> Capability:
        """The set of evaluations supported by this function."""
        return self._capabilities

    def supports(self, capability: Capability) -> bool:
        """Check if the function supports one or more capabilities.

        Args:
            capability: A capability, or a combination of capabilities.

        Returns:
            `True` if all given capabilities are supported.
        """
        return capability in self.capabilities

    def __call__(self, x: ArrayLike) -> NDArray[np.float64]:
        """Evaluate the function.

        Args:
            x: The input vector.

        Returns:
            A new array with the value of the function.
        """
        return self.value(x)

    def value(
        self, x: ArrayLike, out: NDArray[np.float64] | None = None
    ) -> NDArray[np.float64]:
        """Evaluate the function.

        Args:
            x:   The input vector.
            out: Optional array of shape $(m,)$ that receives the result.

        Returns:
            The value of the function, stored in `out` if given.
        """
        x = self._check_input(x)
        out = self._output_buffer(out, (self._output_size,), "value")
        self._compute(out, x)
        return out

    def gradient(
        self,
        x: ArrayLike,
        function_index: int = 0,
        out: NDArray[np.float64] | None = None,
    ) -> NDArray[np.float64]:
        """Evaluate the gradient of one output of the function.

        Args:
            x:              The input vector.
            function_index: The index of the output.
            out:            Optional array of shape $(n,)$ that receives the result.

        Returns:
            The gradient, stored in `out` if given.
        """
        self._require(Capability.GRADIENT, "gradient")
        x = self._check_input(x)
        self._check_function_index(function_index)
        out = self._output_buffer(out, (self._input_size,), "gradient")
        self._gradient(out, x, function_index)
        return out

    def jacobian(
        self, x: ArrayLike, out: NDArray[np.float64] | None = None
    ) -> NDArray[np.float64]:
        """Evaluate the jacobian matrix of the function.

        The rows of the jacobian matrix are the gradients of the outputs.

        Args:
            x:   The input vector.
            out: Optional array of shape $(m, n)$ that receives the result.

        Returns:
            The jacobian matrix, stored in `out` if given.
        """
        self._require(Capability.JACOBIAN, "jacobian")
        x = self._check_input(x)
        out = self._output_buffer(
            out, (self._output_size, self._input_size), "jacobian"
        )
        self._jacobian(out, x)
        return out

    def hessian(
        self,
        x: ArrayLike,
        function_index: int = 0,
        out: NDArray[np.float64] | None = None,
    ) -> NDArray[np.float64]:
        """Evaluate the hessian matrix of one output of the function.

        Args:
            x:              The input vector.
            function_index: The index of the output.
            out:            Optional array of shape $(n, n)$ that receives the result.

        Returns:
            The hessian matrix, stored in `out` if given.
        """
        self._require(Capability.HESSIAN, "hessian")
        x = self._check_input(x)
        self._check_function_index(function_index)
        out = self._output_buffer(
            out, (self._input_size, self._input_size), "hessian"
        )
        self._hessian(out, x, function_index)
        return out

    @abstractmethod
    def _compute(self, result: NDArray[np.float64], x: NDArray[np.float64]) -> None:
        """Write the value of the function into `result`."""

    def _gradient(
        self,
        gradient: NDArray[np.float64],
        x: NDArray[np.float64],
        function_index: int,
    ) -> None:
        msg = f"{self._describe()} does not implement a gradient"
        raise UnsupportedOperation(msg)

    def _jacobian(self, jacobian: NDArray[np.float64], x: NDArray[np.float64]) -> None:
        for idx in range(self._output_size):
            self._gradient(jacobian[idx], x, idx)

    def _hessian(
        self,
        hessian: NDArray[np.float64],
        x: NDArray[np.float64],
        function_index: int,
    ) -> None:
        msg = f"{self._describe()} does not implement a hessian"
        raise UnsupportedOperation(msg)

    def _require(self, capability: Capability, what: str) -> None:
        if capability not in self.capabilities:
            msg = f"{self._describe()} does not support {what} evaluation"
            raise UnsupportedOperation(msg)

    def _check_input(self, x: ArrayLike) -> NDArray[np.float64]:
        if not isinstance(x, np.ndarray) or x.dtype != np.float64:
            check_allocation(f"conversion of the input of {self._describe()}")
            x = np.asarray(x, dtype=np.float64)
        if x.ndim == 0:
            x = x.reshape(1)
        if x.shape != (self._input_size,):
            msg = f"input of {self._describe()}"
            raise DimensionMismatch(msg, (self._input_size,), x.shape)
        return x

    def _check_function_index(self, function_index: int) -> None:
        if not 0 <= function_index < self._output_size:
            msg = f"function index of {self._describe()}"
            raise DimensionMismatch(msg, f"[0, {self._output_size})", function_index)

    def _output_buffer(
        self,
        out: NDArray[np.float64] | None,
        shape: tuple[int, ...],
        what: str,
    ) -> NDArray[np.float64]:
        if out is None:
            check_allocation(f"{what} of {self._describe()}")
            return np.zeros(shape, dtype=np.float64)
        if out.shape != shape:
            msg = f"{what} output buffer of {self._describe()}"
            raise DimensionMismatch(msg, shape, out.shape)
        out.fill(0.0)
        return out

    def _describe(self) -> str:
        if self._name:
            return f"{type(self).__name__} `{self._name}`"
        return type(self).__name__

    def __repr__(self) -> str:  # noqa: D105
        return (
            f"{type(self).__name__}(name={self._name!r}, "
            f"input_size={self._input_size}, output_size={self._output_size})"
        )


class DifferentiableFunction(Function):
    """Abstract base class for once-differentiable functions.

    Differentiable functions support the evaluation of gradients and of the
    jacobian matrix. Subclasses must implement the `_gradient` method. The
    default implementation of `_jacobian` assembles the jacobian from the
    gradients of all outputs; subclasses may override it with a more efficient
    version.
    """

    _capabilities: ClassVar[Capability] = DIFFERENTIABLE

    @abstractmethod
    def _gradient(
        self,
        gradient: NDArray[np.float64],
        x: NDArray[np.float64],
        function_index: int,
    ) -> None:
        """Write the gradient of output `function_index` into `gradient`."""


class TwiceDifferentiableFunction(DifferentiableFunction):
    """Abstract base class for twice-differentiable functions.

    In addition to gradients, these functions support the evaluation of the
    hessian matrix of each output. Subclasses must implement the `_hessian`
    method.
    """

    _capabilities: ClassVar[Capability] = TWICE_DIFFERENTIABLE

    @abstractmethod
    def _hessian(
        self,
        hessian: NDArray[np.float64],
        x: NDArray[np.float64],
        function_index: int,
    ) -> None:
        """Write the hessian of output `function_index` into `hessian`."""


class NTimesDifferentiableFunction(DifferentiableFunction):
    r"""Abstract base class for functions of one variable with higher derivatives.

    These functions map a scalar $t$ to a vector of size $m$, and provide
    derivatives $\frac{d^k f}{dt^k}(t)$ for all orders $k$ up to the `order`
    passed at construction. Gradients are derived from the first derivative
    and, if the order is at least two, hessians from the second derivative.

    Subclasses must implement the `_derivative` method.
    """

    def __init__(self, order: int, output_size: int = 1, name: str = "") -> None:
        """Initialize the function.

        Args:
            order:       The highest order of derivative supported (at least 1).
            output_size: The size $m$ of the output vector.
            name:        A descriptive name of the function.

        Raises:
            ValueError: If the order is smaller than one.
        """
        if order < 1:
            msg = "the derivability order must be at least 1"
            raise ValueError(msg)
        super().__init__(1, output_size, name)
        self._order = order
        self._scratch = np.zeros(output_size, dtype=np.float64)

    @property
    def order(self) -> int:
        """The highest order of derivative supported by the function."""
        return self._order

    @property
    def capabilities(self) -> Capability:
        """The set of evaluations supported by this function."""
        if self._order >= 2:  # noqa: PLR2004
            return TWICE_DIFFERENTIABLE | Capability.DERIVATIVE
        return DIFFERENTIABLE | Capability.DERIVATIVE

    def derivative(
        self,
        t: ArrayLike,
        order: int = 1,
        out: NDArray[np.float64] | None = None,
    ) -> NDArray[np.float64]:
        """Evaluate a derivative of the function.

        Args:
            t:     The scalar input, or an input vector of size one.
            order: The order of the derivative; zero evaluates the function.
            out:   Optional array of shape $(m,)$ that receives the result.

        Returns:
            The derivative, stored in `out` if given.

        Raises:
            UnsupportedOperation: If `order` exceeds the order of the function.
            ValueError:           If `order` is negative.
        """
        self._require(Capability.DERIVATIVE, "derivative")
        if order < 0:
            msg = "the order of a derivative cannot be negative"
            raise ValueError(msg)
        if order > self._order:
            msg = (
                f"{self._describe()} supports derivatives up to order "
                f"{self._order}, not {order}"
            )
            raise UnsupportedOperation(msg)
        x = self._check_input(t)
        out = self._output_buffer(out, (self._output_size,), "derivative")
        self._derivative(out, float(x[0]), order)
        return out

    @abstractmethod
    def _derivative(self, result: NDArray[np.float64], t: float, order: int) -> None:
        """Write the derivative of the given order at `t` into `result`."""

    def _compute(self, result: NDArray[np.float64], x: NDArray[np.float64]) -> None:
        self._derivative(result, float(x[0]), 0)

    def _gradient(
        self,
        gradient: NDArray[np.float64],
        x: NDArray[np.float64],
        function_index: int,
    ) -> None:
        self._scratch.fill(0.0)
        self._derivative(self._scratch, float(x[0]), 1)
        gradient[0] = self._scratch[function_index]

    def _jacobian(self, jacobian: NDArray[np.float64], x: NDArray[np.float64]) -> None:
        self._derivative(jacobian[:, 0], float(x[0]), 1)

    def _hessian(
        self,
        hessian: NDArray[np.float64],
        x: NDArray[np.float64],
        function_index: int,
    ) -> None:
        self._scratch.fill(0.0)
        self._derivative(self._scratch, float(x[0]), 2)
        hessian[0, 0] = self._scratch[function_index]

    def __repr__(self) -> str:  # noqa: D105
        return (
            f"{type(self).__name__}(name={self._name!r}, order={self._order}, "
            f"output_size={self._output_size})"
        )


def as_vector(values: Any, size: int, what: str) -> NDArray[np.float64]:  # noqa: ANN401
    """Convert the result of a user callable to a vector of a given size.

    Args:
        values: The values to convert.
        size:   The required size.
        what:   Description of the values, used in error messages.

    Returns:
        A 1D array of the given size.

    Raises:
        DimensionMismatch: If the values do not have the required size.
    """
    array = np.asarray(values, dtype=np.float64)
    if array.size != size:
        raise DimensionMismatch(what, size, array.size)
    return array.reshape(size)
