"""Finite difference approximation of gradients."""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from optcore.enums import DIFFERENTIABLE, Capability, FiniteDifferenceRule
from optcore.exceptions import BadGradient

from ._function import Function

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray

    from optcore.config import FiniteDifferenceConfig

DEFAULT_THRESHOLD = 1e-4

_FIVE_POINTS_STENCIL = ((2.0, -1.0), (1.0, 8.0), (-1.0, -8.0), (-2.0, 1.0))


class FiniteDifferenceGradient(Function):
    r"""Add gradients to a function by finite difference approximation.

    This wrapper evaluates the value of the wrapped function unchanged, and
    approximates its gradients and jacobian from values alone. It supports the
    same calls, with the same dimension checks, as a function that provides
    analytic derivatives. The only difference is the accuracy and the cost of
    the derivatives, which depend on the rule:

    `simple`
    : Forward differences, $\frac{f(x + \epsilon e_j) - f(x)}{\epsilon}$. The
      truncation error is $O(\epsilon)$, and a jacobian costs $n + 1$
      evaluations of the wrapped function.

    `five-points`
    : The five-point stencil,
      $\frac{-f(x + 2\epsilon e_j) + 8 f(x + \epsilon e_j)
      - 8 f(x - \epsilon e_j) + f(x - 2\epsilon e_j)}{12 \epsilon}$.
      The truncation error is $O(\epsilon^4)$, and a jacobian costs $4 n$
      evaluations of the wrapped function.

    A gradient of a single output costs as much as a full jacobian.
    """

    def __init__(
        self,
        function: Function,
        epsilon: float = 1e-8,
        rule: FiniteDifferenceRule = FiniteDifferenceRule.SIMPLE,
        name: str = "",
    ) -> None:
        """Initialize the wrapper.

        Args:
            function: The function to differentiate.
            epsilon:  The step size.
            rule:     The finite difference rule.
            name:     A descriptive name, defaults to the name of `function`.

        Raises:
            ValueError: If the step size is not positive.
        """
        if not epsilon > 0.0:
            msg = f"the finite difference step must be positive, got {epsilon}"
            raise ValueError(msg)
        super().__init__(
            function.input_size, function.output_size, name or function.name
        )
        self._function = function
        self._epsilon = float(epsilon)
        self._rule = FiniteDifferenceRule(rule)
        self._x = np.zeros(function.input_size, dtype=np.float64)
        self._base = np.zeros(function.output_size, dtype=np.float64)
        self._step = np.zeros(function.output_size, dtype=np.float64)
        self._jacobian_buffer = np.zeros(
            (function.output_size, function.input_size), dtype=np.float64
        )

    @classmethod
    def from_config(
        cls, function: Function, config: FiniteDifferenceConfig
    ) -> FiniteDifferenceGradient:
        """Create a wrapper from a configuration object.

        Args:
            function: The function to differentiate.
            config:   The finite difference configuration.

        Returns:
            The new wrapper.
        """
        return cls(function, epsilon=config.epsilon, rule=config.rule)

    @property
    def function(self) -> Function:
        """The wrapped function."""
        return self._function

    @property
    def epsilon(self) -> float:
        """The step size."""
        return self._epsilon

    @property
    def rule(self) -> FiniteDifferenceRule:
        """The finite difference rule."""
        return self._rule

    @property
    def capabilities(self) -> Capability:
        """The set of evaluations supported by this function."""
        return DIFFERENTIABLE

    def _compute(self, result: NDArray[np.float64], x: NDArray[np.float64]) -> None:
        self._function.value(x, out=result)

    def _gradient(
        self,
        gradient: NDArray[np.float64],
        x: NDArray[np.float64],
        function_index: int,
    ) -> None:
        self._jacobian(self._jacobian_buffer, x)
        gradient[:] = self._jacobian_buffer[function_index]

    def _jacobian(self, jacobian: NDArray[np.float64], x: NDArray[np.float64]) -> None:
        if self._rule == FiniteDifferenceRule.FIVE_POINTS:
            self._five_points(jacobian, x)
        else:
            self._simple(jacobian, x)

    def _evaluate(self, x: NDArray[np.float64], j: int, offset: float) -> None:
        self._x[:] = x
        self._x[j] += offset
        self._function.value(self._x, out=self._step)

    def _simple(self, jacobian: NDArray[np.float64], x: NDArray[np.float64]) -> None:
        self._function.value(x, out=self._base)
        for j in range(self._input_size):
            self._evaluate(x, j, self._epsilon)
            jacobian[:, j] = (self._step - self._base) / self._epsilon

    def _five_points(
        self, jacobian: NDArray[np.float64], x: NDArray[np.float64]
    ) -> None:
        eps = self._epsilon
        for j in range(self._input_size):
            column = jacobian[:, j]
            column.fill(0.0)
            for offset, weight in _FIVE_POINTS_STENCIL:
                self._evaluate(x, j, offset * eps)
                column += weight * self._step
            column /= 12.0 * eps

    def _describe(self) -> str:
        described = self._function._describe()  # noqa: SLF001
        return f"finite difference gradient of {described}"


def _compare(
    function: Function,
    x: ArrayLike,
    function_index: int,
    epsilon: float,
) -> tuple[NDArray[np.float64], NDArray[np.float64], NDArray[np.float64]]:
    x = np.asarray(x, dtype=np.float64)
    analytic = function.gradient(x, function_index)
    estimated = FiniteDifferenceGradient(function, epsilon).gradient(x, function_index)
    return x, analytic, estimated


def check_gradient(
    function: Function,
    x: ArrayLike,
    function_index: int = 0,
    epsilon: float = 1e-8,
    threshold: float = DEFAULT_THRESHOLD,
) -> bool:
    """Check an analytic gradient against a finite difference estimate.

    Args:
        function:       A function that supports gradients.
        x:              The point where the gradient is checked.
        function_index: The output whose gradient is checked.
        epsilon:        The step size of the forward differences.
        threshold:      The maximum absolute difference allowed per component.

    Returns:
        `True` if the gradients agree within the threshold.
    """
    _, analytic, estimated = _compare(function, x, function_index, epsilon)
    return bool(np.all(np.abs(analytic - estimated) <= threshold))


def check_gradient_and_raise(
    function: Function,
    x: ArrayLike,
    function_index: int = 0,
    epsilon: float = 1e-8,
    threshold: float = DEFAULT_THRESHOLD,
) -> None:
    """Check an analytic gradient, raising an error if it is wrong.

    Args:
        function:       A function that supports gradients.
        x:              The point where the gradient is checked.
        function_index: The output whose gradient is checked.
        epsilon:        The step size of the forward differences.
        threshold:      The maximum absolute difference allowed per component.

    Raises:
        BadGradient: If the gradients do not agree within the threshold.
    """
    x, analytic, estimated = _compare(function, x, function_index, epsilon)
    if np.any(np.abs(analytic - estimated) > threshold):
        raise BadGradient(x, analytic, estimated, threshold)
