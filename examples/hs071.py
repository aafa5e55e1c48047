r"""Example of a constrained optimization: problem 71 of Hock and Schittkowski.

The problem has four variables with bounds, a nonlinear inequality
constraint, and a nonlinear equality constraint:

$$
\begin{align}
\min_x \quad & x_0 x_3 (x_0 + x_1 + x_2) + x_2 \\
\textrm{s.t.} \quad & x_0 x_1 x_2 x_3 \geq 25 \\
& x_0^2 + x_1^2 + x_2^2 + x_3^2 = 40 \\
& 1 \leq x_i \leq 5
\end{align}
$$

The objective is defined by subclassing
[`DifferentiableFunction`][optcore.functions.DifferentiableFunction], the
constraints from plain callables. The problem is solved with the SLSQP method
of the SciPy backend.
"""

import numpy as np
from numpy.typing import NDArray

from optcore.functions import CallableFunction, DifferentiableFunction
from optcore.problem import Problem
from optcore.results import Result
from optcore.solver import SolverFactory

OPTIMUM = np.array([1.0, 4.74299964, 3.82114998, 1.37940829])


class Objective(DifferentiableFunction):
    """The objective of the problem."""

    def __init__(self) -> None:
        """Initialize the objective."""
        super().__init__(4, 1, "hs071")

    def _compute(self, result: NDArray[np.float64], x: NDArray[np.float64]) -> None:
        result[0] = x[0] * x[3] * (x[0] + x[1] + x[2]) + x[2]

    def _gradient(
        self,
        gradient: NDArray[np.float64],
        x: NDArray[np.float64],
        function_index: int,  # noqa: ARG002
    ) -> None:
        gradient[0] = x[3] * (2.0 * x[0] + x[1] + x[2])
        gradient[1] = x[0] * x[3]
        gradient[2] = x[0] * x[3] + 1.0
        gradient[3] = x[0] * (x[0] + x[1] + x[2])


def product(x: NDArray[np.float64]) -> float:
    """The product of the variables."""
    return float(np.prod(x))


def product_gradient(x: NDArray[np.float64]) -> NDArray[np.float64]:
    """The gradient of the product of the variables."""
    return np.array([np.prod(np.delete(x, idx)) for idx in range(x.size)])


def run_optimization() -> Result:
    """Run the optimization.

    Returns:
        The optimal result.
    """
    problem = Problem(
        Objective(),
        starting_point=[1.0, 5.0, 5.0, 1.0],
        argument_bounds=(1.0, 5.0),
        argument_names=["x0", "x1", "x2", "x3"],
    )
    problem.add_constraint(
        CallableFunction(4, product, gradient=product_gradient, name="product"),
        25.0,
        np.inf,
    )
    problem.add_constraint(
        CallableFunction(
            4, lambda x: float(x @ x), gradient=lambda x: 2.0 * x, name="norm"
        ),
        40.0,
        40.0,
    )
    print(problem)

    result = SolverFactory.create("scipy/slsqp", problem).solve()
    assert isinstance(result, Result)

    print(f"  variables:   {result.x}")
    print(f"  objective:   {result.value}")
    print(f"  constraints: {result.constraints}\n")

    return result


def main() -> None:
    """Run the example and check the result."""
    result = run_optimization()
    assert np.allclose(result.value, 17.0140173, atol=1e-4)
    assert np.allclose(result.x, OPTIMUM, atol=1e-3)


if __name__ == "__main__":
    main()
