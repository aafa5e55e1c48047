"""Concrete functions defined by numerical data or user callables."""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Callable

import numpy as np

from optcore.config.utils import immutable_array
from optcore.enums import Capability

from ._function import (
    Function,
    NTimesDifferentiableFunction,
    TwiceDifferentiableFunction,
    as_vector,
)

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray


class ConstantFunction(TwiceDifferentiableFunction):
    """A function returning a constant vector.

    All derivatives of a constant function are zero.
    """

    def __init__(self, input_size: int, offset: ArrayLike, name: str = "") -> None:
        """Initialize a constant function.

        Args:
            input_size: The size of the input vector.
            offset:     The constant output vector.
            name:       A descriptive name of the function.
        """
        self._offset = immutable_array(offset, dtype=np.float64, ndmin=1).ravel()
        super().__init__(input_size, self._offset.size, name)

    @property
    def offset(self) -> NDArray[np.float64]:
        """The constant output vector."""
        return self._offset

    def _compute(self, result: NDArray[np.float64], x: NDArray[np.float64]) -> None:
        result[:] = self._offset

    def _gradient(
        self,
        gradient: NDArray[np.float64],
        x: NDArray[np.float64],
        function_index: int,
    ) -> None:
        pass

    def _jacobian(self, jacobian: NDArray[np.float64], x: NDArray[np.float64]) -> None:
        pass

    def _hessian(
        self,
        hessian: NDArray[np.float64],
        x: NDArray[np.float64],
        function_index: int,
    ) -> None:
        pass


class IdentityFunction(TwiceDifferentiableFunction):
    r"""The identity function, shifted by an offset: $f(x) = x + b$."""

    def __init__(self, offset: ArrayLike, name: str = "") -> None:
        """Initialize an identity function.

        The input and output sizes are equal to the size of the offset.

        Args:
            offset: The offset vector $b$.
            name:   A descriptive name of the function.
        """
        self._offset = immutable_array(offset, dtype=np.float64, ndmin=1).ravel()
        super().__init__(self._offset.size, self._offset.size, name)

    def _compute(self, result: NDArray[np.float64], x: NDArray[np.float64]) -> None:
        np.add(x, self._offset, out=result)

    def _gradient(
        self,
        gradient: NDArray[np.float64],
        x: NDArray[np.float64],
        function_index: int,
    ) -> None:
        gradient[function_index] = 1.0

    def _jacobian(self, jacobian: NDArray[np.float64], x: NDArray[np.float64]) -> None:
        np.fill_diagonal(jacobian, 1.0)

    def _hessian(
        self,
        hessian: NDArray[np.float64],
        x: NDArray[np.float64],
        function_index: int,
    ) -> None:
        pass


class LinearFunction(TwiceDifferentiableFunction):
    r"""An affine function: $f(x) = A x + b$.

    The jacobian of the function is the matrix $A$, and its hessians are zero.
    """

    def __init__(
        self, a: ArrayLike, b: ArrayLike | None = None, name: str = ""
    ) -> None:
        """Initialize a linear function.

        Args:
            a:    The matrix $A$ of shape $(m, n)$.
            b:    The offset vector $b$ of size $m$ (default: zero).
            name: A descriptive name of the function.

        Raises:
            ValueError: If the shapes of `a` and `b` are not compatible.
        """
        self._a = immutable_array(a, dtype=np.float64, ndmin=2)
        if self._a.ndim != 2:  # noqa: PLR2004
            msg = "the matrix of a linear function must be two-dimensional"
            raise ValueError(msg)
        output_size, input_size = self._a.shape
        if b is None:
            self._b = immutable_array(np.zeros(output_size))
        else:
            self._b = immutable_array(b, dtype=np.float64, ndmin=1).ravel()
        if self._b.size != output_size:
            msg = f"the offset must have size {output_size}, got {self._b.size}"
            raise ValueError(msg)
        super().__init__(input_size, output_size, name)

    @property
    def a(self) -> NDArray[np.float64]:
        """The matrix $A$."""
        return self._a

    @property
    def b(self) -> NDArray[np.float64]:
        """The offset vector $b$."""
        return self._b

    def _compute(self, result: NDArray[np.float64], x: NDArray[np.float64]) -> None:
        np.matmul(self._a, x, out=result)
        result += self._b

    def _gradient(
        self,
        gradient: NDArray[np.float64],
        x: NDArray[np.float64],
        function_index: int,
    ) -> None:
        gradient[:] = self._a[function_index]

    def _jacobian(self, jacobian: NDArray[np.float64], x: NDArray[np.float64]) -> None:
        jacobian[:] = self._a

    def _hessian(
        self,
        hessian: NDArray[np.float64],
        x: NDArray[np.float64],
        function_index: int,
    ) -> None:
        pass


class QuadraticFunction(TwiceDifferentiableFunction):
    r"""A quadratic function: $f(x) = x^T A x + b^T x + c$.

    The gradient is $(A + A^T) x + b$, and the hessian is $A + A^T$.
    """

    def __init__(
        self,
        a: ArrayLike,
        b: ArrayLike | None = None,
        c: float = 0.0,
        name: str = "",
    ) -> None:
        """Initialize a quadratic function.

        Args:
            a:    The square matrix $A$.
            b:    The vector $b$ (default: zero).
            c:    The constant term $c$.
            name: A descriptive name of the function.

        Raises:
            ValueError: If the shapes of `a` and `b` are not compatible.
        """
        a = np.array(a, dtype=np.float64, ndmin=2)
        if a.ndim != 2 or a.shape[0] != a.shape[1]:  # noqa: PLR2004
            msg = "the matrix of a quadratic function must be square"
            raise ValueError(msg)
        size = a.shape[0]
        self._a = immutable_array(a)
        self._a_sym = immutable_array(a + a.T)
        if b is None:
            self._b = immutable_array(np.zeros(size))
        else:
            self._b = immutable_array(b, dtype=np.float64, ndmin=1).ravel()
        if self._b.size != size:
            msg = f"the linear term must have size {size}, got {self._b.size}"
            raise ValueError(msg)
        self._c = float(c)
        super().__init__(size, 1, name)

    def _compute(self, result: NDArray[np.float64], x: NDArray[np.float64]) -> None:
        result[0] = x @ self._a @ x + self._b @ x + self._c

    def _gradient(
        self,
        gradient: NDArray[np.float64],
        x: NDArray[np.float64],
        function_index: int,
    ) -> None:
        np.matmul(self._a_sym, x, out=gradient)
        gradient += self._b

    def _hessian(
        self,
        hessian: NDArray[np.float64],
        x: NDArray[np.float64],
        function_index: int,
    ) -> None:
        hessian[:] = self._a_sym


class Polynomial(NTimesDifferentiableFunction):
    r"""A polynomial of a single variable: $p(t) = \sum_k c_k t^k$.

    Polynomials can be differentiated up to any order; the order passed at
    construction only limits the derivatives that are offered.
    """

    def __init__(
        self, coefficients: ArrayLike, order: int = 2, name: str = ""
    ) -> None:
        """Initialize a polynomial.

        Args:
            coefficients: The coefficients $c_k$, in order of increasing degree.
            order:        The highest order of derivative offered.
            name:         A descriptive name of the function.
        """
        super().__init__(order, 1, name)
        coefficients = np.array(coefficients, dtype=np.float64, ndmin=1).ravel()
        self._coefficients = [immutable_array(coefficients)]
        for _ in range(order):
            coefficients = np.polynomial.polynomial.polyder(coefficients)
            self._coefficients.append(immutable_array(coefficients))

    def _derivative(self, result: NDArray[np.float64], t: float, order: int) -> None:
        value = 0.0
        for coefficient in self._coefficients[order][::-1]:
            value = value * t + coefficient
        result[0] = value


class Sin(NTimesDifferentiableFunction):
    r"""The sine function: $f(t) = \sin(t)$."""

    def __init__(self, order: int = 4, name: str = "") -> None:
        """Initialize the sine function.

        Args:
            order: The highest order of derivative offered.
            name:  A descriptive name of the function.
        """
        super().__init__(order, 1, name)

    def _derivative(self, result: NDArray[np.float64], t: float, order: int) -> None:
        result[0] = math.sin(t + order * math.pi / 2)


class Cos(NTimesDifferentiableFunction):
    r"""The cosine function: $f(t) = \cos(t)$."""

    def __init__(self, order: int = 4, name: str = "") -> None:
        """Initialize the cosine function.

        Args:
            order: The highest order of derivative offered.
            name:  A descriptive name of the function.
        """
        super().__init__(order, 1, name)

    def _derivative(self, result: NDArray[np.float64], t: float, order: int) -> None:
        result[0] = math.cos(t + order * math.pi / 2)


class CallableFunction(Function):
    """A function defined by user callables.

    The capabilities of the function follow the callables that are provided:

    - `value` is required, and is called with the input vector. It returns the
      output vector, or a scalar if the output size is one.
    - `gradient` is optional and only allowed for scalar functions. It returns
      the gradient vector.
    - `jacobian` is optional, and returns the jacobian matrix of shape
      $(m, n)$. If only a gradient is given, the jacobian is derived from it.
    - `hessian` is optional, and requires a gradient or jacobian. For scalar
      functions it returns a matrix of shape $(n, n)$, for vector functions an
      array of shape $(m, n, n)$.

    Example:
        ```py
        import numpy as np

        from optcore.functions import CallableFunction

        f = CallableFunction(
            2,
            value=lambda x: x[0] ** 2 + x[1] ** 2,
            gradient=lambda x: 2 * x,
        )
        print(f.gradient(np.array([1.0, 2.0])))  # [2. 4.]
        ```
    """

    def __init__(  # noqa: PLR0913
        self,
        input_size: int,
        value: Callable[[NDArray[np.float64]], ArrayLike],
        *,
        output_size: int = 1,
        gradient: Callable[[NDArray[np.float64]], ArrayLike] | None = None,
        jacobian: Callable[[NDArray[np.float64]], ArrayLike] | None = None,
        hessian: Callable[[NDArray[np.float64]], ArrayLike] | None = None,
        name: str = "",
    ) -> None:
        """Initialize a function from callables.

        Args:
            input_size:  The size of the input vector.
            value:       Callable returning the value.
            output_size: The size of the output vector.
            gradient:    Optional callable returning the gradient of a scalar function.
            jacobian:    Optional callable returning the jacobian matrix.
            hessian:     Optional callable returning the hessian matrices.
            name:        A descriptive name of the function.

        Raises:
            ValueError: If the combination of callables is invalid.
        """
        super().__init__(input_size, output_size, name)
        if gradient is not None and output_size != 1:
            msg = "a gradient callable requires a scalar function, use a jacobian"
            raise ValueError(msg)
        if hessian is not None and gradient is None and jacobian is None:
            msg = "a hessian callable requires a gradient or a jacobian"
            raise ValueError(msg)
        self._value_fn = value
        self._gradient_fn = gradient
        self._jacobian_fn = jacobian
        self._hessian_fn = hessian
        capabilities = Capability.VALUE
        if gradient is not None or jacobian is not None:
            capabilities |= Capability.GRADIENT | Capability.JACOBIAN
        if hessian is not None:
            capabilities |= Capability.HESSIAN
        self._instance_capabilities = capabilities

    @property
    def capabilities(self) -> Capability:
        """The set of evaluations supported by this function."""
        return self._instance_capabilities

    def _compute(self, result: NDArray[np.float64], x: NDArray[np.float64]) -> None:
        result[:] = as_vector(self._value_fn(x), self._output_size, "function value")

    def _gradient(
        self,
        gradient: NDArray[np.float64],
        x: NDArray[np.float64],
        function_index: int,
    ) -> None:
        if self._gradient_fn is not None:
            gradient[:] = as_vector(self._gradient_fn(x), self._input_size, "gradient")
            return
        assert self._jacobian_fn is not None
        values = as_vector(
            self._jacobian_fn(x), self._output_size * self._input_size, "jacobian"
        )
        jacobian = values.reshape(self._output_size, self._input_size)
        gradient[:] = jacobian[function_index]

    def _jacobian(self, jacobian: NDArray[np.float64], x: NDArray[np.float64]) -> None:
        if self._jacobian_fn is None:
            super()._jacobian(jacobian, x)
            return
        values = as_vector(
            self._jacobian_fn(x), self._output_size * self._input_size, "jacobian"
        )
        jacobian[:] = values.reshape(self._output_size, self._input_size)

    def _hessian(
        self,
        hessian: NDArray[np.float64],
        x: NDArray[np.float64],
        function_index: int,
    ) -> None:
        assert self._hessian_fn is not None
        size = self._input_size * self._input_size
        values = as_vector(self._hessian_fn(x), self._output_size * size, "hessian")
        values = values.reshape(self._output_size, self._input_size, self._input_size)
        hessian[:] = values[function_index]

