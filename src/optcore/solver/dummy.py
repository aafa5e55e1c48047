"""Reference solver backends.

The `dummy` backend implements a simple gradient descent with a fixed step
size. It is useful for testing and demonstration, not for solving real
problems. The `null` backend never solves anything, and is used to exercise
error handling.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import numpy as np

from optcore.config.options import OptionsSchemaModel
from optcore.enums import Capability
from optcore.exceptions import SolverError, SolverWarning
from optcore.functions import FiniteDifferenceGradient
from optcore.results import Result, ResultWithWarnings
from optcore.state import Parameter

from .base import Solver

if TYPE_CHECKING:
    from optcore.config import SolverConfig
    from optcore.problem import Problem
    from optcore.results import SolverResult

logger = logging.getLogger(__name__)

_OPTIONS_SCHEMA: dict[str, Any] = {
    "methods": {
        "default": {
            "options": {
                "step_size": float,
            },
        },
    },
}

DEFAULT_STEP_SIZE = 0.1


class DummySolver(Solver):
    r"""A gradient descent solver with a fixed step size.

    Each iteration takes a step $x_{k+1} = x_k - \alpha \nabla f(x_k)$, and
    projects the result onto the bounds of the variables. The step size
    $\alpha$ is set by the `step_size` option, 0.1 by default. The solve stops
    when the norm of the projected gradient drops below the configured
    tolerance, or when the maximum number of iterations is reached; in the
    latter case the result carries a warning.

    Constraints are not supported: they are ignored, and a warning is
    attached to the result. Variable scaling is ignored as well. If the
    objective does not provide gradients, they are approximated by finite
    differences.
    """

    def __init__(self, problem: Problem, config: SolverConfig | None = None) -> None:
        """Initialize the solver.

        See the [`Solver`][optcore.solver.Solver] abstract base class.

        # noqa
        """
        super().__init__(problem, config)
        self.parameters["step_size"] = Parameter(
            self._step_size, "fixed step size of the gradient descent"
        )
        self._gradient_source = self.objective
        if not self.objective.supports(Capability.GRADIENT):
            logger.info("Objective has no gradient, using finite differences")
            self._gradient_source = FiniteDifferenceGradient(self.objective)
        if problem.constraints:
            logger.warning("The dummy solver ignores constraints")

    def _check(self, problem: Problem) -> None:  # noqa: ARG002
        options = OptionsSchemaModel.model_validate(_OPTIONS_SCHEMA).validate_options(
            "default", self.config.options
        )
        self._step_size = float(options.get("step_size", DEFAULT_STEP_SIZE))

    def _solve(self) -> SolverResult:
        step_size = self.parameters["step_size"].value
        lower, upper = self.problem.argument_bounds
        x = np.clip(self.problem.starting_point, lower, upper)
        gradient = np.zeros_like(x)
        value = np.zeros(1)
        converged = False
        for _ in range(self.config.max_iterations):
            self._gradient_source.gradient(x, out=gradient)
            # Components pushing against an active bound do not count.
            projected = x - np.clip(x - gradient, lower, upper)
            gradient_norm = np.linalg.norm(projected)
            if gradient_norm <= self.config.tolerance:
                converged = True
                break
            x = np.clip(x - step_size * gradient, lower, upper)
            self.objective.value(x, out=value)
            self._iterate(x, cost=value[0], gradient_norm=gradient_norm)

        result = self._make_result(x)
        warnings: list[SolverWarning] = []
        if not converged:
            msg = (
                "maximum number of iterations reached "
                f"({self.config.max_iterations})"
            )
            warnings.append(SolverWarning(msg))
        if self.problem.constraints:
            msg = "the dummy solver ignored the constraints of the problem"
            warnings.append(SolverWarning(msg))
        if warnings:
            return ResultWithWarnings.from_result(result, tuple(warnings))
        return result


class NullSolver(Solver):
    """A solver that always fails.

    Solving ends in the `ERROR` state, with a
    [`SolverError`][optcore.exceptions.SolverError] whose last state is the
    starting point of the problem.
    """

    def _solve(self) -> SolverResult:
        x = self.problem.starting_point
        last_state = Result(x=x, value=float(self.objective.value(x)[0]))
        msg = "the null solver does not solve problems"
        raise SolverError(msg, last_state)
