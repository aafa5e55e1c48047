"""Example of optimization of a multi-dimensional Rosenbrock function.

The Rosenbrock function is written as a sum of squared residuals, using the
[`SumOfC1Squares`][optcore.functions.SumOfC1Squares] operator, and minimized
with the BFGS method of the SciPy backend. The progress is logged and recorded
by callbacks.
"""

import logging

import numpy as np
from numpy.typing import NDArray

from optcore.callbacks import OptimizationLogger, StateHistory
from optcore.config import SolverConfig
from optcore.functions import CallableFunction, SumOfC1Squares
from optcore.problem import Problem
from optcore.results import Result
from optcore.solver import SolverFactory

DIM = 5


def residuals(variables: NDArray[np.float64]) -> NDArray[np.float64]:
    """Compute the residuals of the Rosenbrock function.

    Args:
        variables: The variables to evaluate.

    Returns:
        The residuals `1 - x[i]` and `10 (x[i + 1] - x[i]^2)`.
    """
    x, y = variables[:-1], variables[1:]
    return np.concatenate([1.0 - x, 10.0 * (y - x * x)])


def jacobian(variables: NDArray[np.float64]) -> NDArray[np.float64]:
    """Compute the jacobian of the residuals.

    Args:
        variables: The variables to evaluate.

    Returns:
        The jacobian matrix, one row per residual.
    """
    result = np.zeros((2 * (DIM - 1), DIM))
    for idx in range(DIM - 1):
        result[idx, idx] = -1.0
        result[DIM - 1 + idx, idx] = -20.0 * variables[idx]
        result[DIM - 1 + idx, idx + 1] = 10.0
    return result


def run_optimization(method: str = "bfgs") -> Result:
    """Run the optimization.

    Args:
        method: The SciPy method to use.

    Returns:
        The optimal result.
    """
    function = CallableFunction(
        DIM,
        residuals,
        output_size=2 * (DIM - 1),
        jacobian=jacobian,
        name="rosenbrock residuals",
    )
    problem = Problem(
        SumOfC1Squares(function, name="rosenbrock"),
        starting_point=2 * np.arange(DIM) / DIM + 0.5,
    )
    solver = SolverFactory.create(
        f"scipy/{method}", problem, SolverConfig(tolerance=1e-10)
    )
    history = StateHistory()
    solver.add_callback(history)
    solver.add_callback(OptimizationLogger())
    solver.solve()
    result = solver.get_minimum(Result)

    print(f"  iterations: {len(history)}")
    print(f"  variables:  {result.x}")
    print(f"  objective:  {result.value}\n")

    return result


def main() -> None:
    """Run the example and check the result."""
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    result = run_optimization()
    assert np.allclose(result.value, 0, atol=1e-4)
    assert np.allclose(result.x, 1, atol=1e-2)


if __name__ == "__main__":
    main()
