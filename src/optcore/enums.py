"""Enumerations used within the `optcore` library."""

from enum import Flag, IntEnum, StrEnum, auto


class Capability(Flag):
    """Enumerates the evaluations a function can perform.

    Every [`Function`][optcore.functions.Function] carries a set of
    capabilities, combined as flags. Requesting an evaluation that is not part
    of the set fails with an
    [`UnsupportedOperation`][optcore.exceptions.UnsupportedOperation] error.
    The set does not change during the lifetime of a function.
    """

    VALUE = auto()
    "The function can be evaluated."

    GRADIENT = auto()
    "The gradient of each output can be evaluated."

    JACOBIAN = auto()
    "The full jacobian matrix can be evaluated."

    HESSIAN = auto()
    "The hessian matrix of each output can be evaluated."

    DERIVATIVE = auto()
    "Derivatives of arbitrary order, up to a maximum, can be evaluated."


VALUE_ONLY = Capability.VALUE
"""Capabilities of a function that only supports evaluation."""

DIFFERENTIABLE = Capability.VALUE | Capability.GRADIENT | Capability.JACOBIAN
"""Capabilities of a once-differentiable function."""

TWICE_DIFFERENTIABLE = DIFFERENTIABLE | Capability.HESSIAN
"""Capabilities of a twice-differentiable function."""


class FiniteDifferenceRule(StrEnum):
    """Enumerates the rules for estimating gradients by finite differences."""

    SIMPLE = "simple"
    r"""Forward difference:

    $$
    \frac{\partial f}{\partial x_j} \approx \frac{f(x + \epsilon e_j) - f(x)}{\epsilon}
    $$

    Requires $n + 1$ evaluations, with a truncation error of order $\epsilon$.
    """

    FIVE_POINTS = "five-points"
    r"""Five-point stencil:

    $$
    \frac{\partial f}{\partial x_j} \approx
    \frac{-f(x + 2\epsilon e_j) + 8f(x + \epsilon e_j) - 8f(x - \epsilon e_j)
    + f(x - 2\epsilon e_j)}{12\epsilon}
    $$

    Requires $4n$ evaluations, with a truncation error of order $\epsilon^4$.
    """


class SolverStatus(IntEnum):
    """Enumerates the states of a solver.

    A solver starts in the `CREATED` state, moves to `RUNNING` when `solve` is
    called, and ends in one of the terminal states.
    """

    CREATED = 1
    "The solver was created, but has not been run."

    RUNNING = 2
    "The solver is running."

    SOLVED = 3
    "A solution was found."

    NO_SOLUTION = 4
    "The solver finished without finding a solution."

    ERROR = 5
    "The solver failed."

    SOLVED_WITH_WARNINGS = 6
    "A solution was found, but warnings were issued."

    @property
    def is_terminal(self) -> bool:
        """Whether the status is one of the terminal states."""
        return self not in {SolverStatus.CREATED, SolverStatus.RUNNING}


class ResultKind(IntEnum):
    """Enumerates the kinds of outcome produced by a solver."""

    NO_SOLUTION = 0
    "No solution was found."

    VALUE = 1
    "An optimum was found."

    VALUE_WARNINGS = 2
    "An optimum was found, but warnings were issued."

    ERROR = 3
    "The solver failed."
