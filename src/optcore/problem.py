"""Definition of optimization problems."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from optcore.config.utils import immutable_array, vector
from optcore.exceptions import InvalidProblem

if TYPE_CHECKING:
    from collections.abc import Sequence

    from numpy.typing import ArrayLike, NDArray

    from optcore.functions import Function


def _broadcast(values: ArrayLike, size: int) -> NDArray[np.float64]:
    # Scalars are broadcast, vectors are kept as given and checked on validation.
    array = np.asarray(values, dtype=np.float64)
    if array.ndim == 0:
        return immutable_array(np.full(size, array, dtype=np.float64))
    return vector(array)


@dataclass(frozen=True, slots=True)
class Constraint:
    r"""A constraint of an optimization problem.

    A constraint requires that each output $c_i$ of its function satisfies
    $l_i \le c_i(x) \le u_i$. Equality constraints have equal bounds, one-sided
    constraints have an infinite bound.

    Attributes:
        function: The constraint function.
        lower:    Lower bounds, one per output.
        upper:    Upper bounds, one per output.
        scaling:  Scaling factors, one per output.
    """

    function: Function
    lower: NDArray[np.float64]
    upper: NDArray[np.float64]
    scaling: NDArray[np.float64]

    @property
    def size(self) -> int:
        """The number of outputs of the constraint function."""
        return self.function.output_size

    def is_equality(self) -> NDArray[np.bool_]:
        """Return a mask indicating the outputs with equal bounds."""
        return self.lower == self.upper


class Problem:
    r"""An optimization problem.

    A problem minimizes an objective function $f(x)$, with $x$ a vector of
    size $n$ given by the input size of the objective, subject to bounds on
    the variables and to constraints:

    $$
    \begin{align}
        \textrm{minimize} \quad & f(x) \\
        \textrm{subject to} \quad & l_j \le x_j \le u_j \\
                                   & l^c_i \le c_i(x) \le u^c_i
    \end{align}
    $$

    Problems are plain data: they do not evaluate or solve anything. A problem
    can be modified until a solver is created for it. From then on the problem
    is locked, and all modifications raise an `AttributeError`.

    Sizes are not checked when the problem is modified. Instead, the
    [`validate`][optcore.problem.Problem.validate] method checks all sizes at
    once, and reports all inconsistencies it finds. Solvers validate the
    problem on construction.
    """

    def __init__(
        self,
        objective: Function,
        *,
        starting_point: ArrayLike | None = None,
        argument_bounds: tuple[ArrayLike, ArrayLike] | None = None,
        argument_scaling: ArrayLike | None = None,
        argument_names: Sequence[str] | None = None,
    ) -> None:
        """Initialize a problem.

        Args:
            objective:        The objective function.
            starting_point:   The starting point, zero by default.
            argument_bounds:  Lower and upper bounds on the variables, unbounded
                              by default.
            argument_scaling: Scaling factors of the variables, one by default.
            argument_names:   Optional names of the variables.
        """
        self._locked = False
        self._objective = objective
        self._constraints: list[Constraint] = []
        size = objective.input_size
        self.starting_point = (
            np.zeros(size) if starting_point is None else starting_point
        )
        self.argument_bounds = (
            (-np.inf, np.inf) if argument_bounds is None else argument_bounds
        )
        self.argument_scaling = 1.0 if argument_scaling is None else argument_scaling
        self.argument_names = argument_names

    @property
    def input_size(self) -> int:
        """The number of variables."""
        return self._objective.input_size

    @property
    def objective(self) -> Function:
        """The objective function."""
        return self._objective

    @property
    def constraints(self) -> tuple[Constraint, ...]:
        """The constraints, in the order they were added."""
        return tuple(self._constraints)

    @property
    def locked(self) -> bool:
        """Whether the problem is locked against modification."""
        return self._locked

    @property
    def starting_point(self) -> NDArray[np.float64]:
        """The starting point."""
        return self._starting_point

    @starting_point.setter
    def starting_point(self, value: ArrayLike) -> None:
        self._check_mutable()
        self._starting_point = vector(value)

    @property
    def argument_bounds(self) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
        """The lower and upper bounds of the variables."""
        return self._argument_bounds

    @argument_bounds.setter
    def argument_bounds(self, value: tuple[ArrayLike, ArrayLike]) -> None:
        self._check_mutable()
        lower, upper = value
        self._argument_bounds = (
            _broadcast(lower, self.input_size),
            _broadcast(upper, self.input_size),
        )

    @property
    def argument_scaling(self) -> NDArray[np.float64]:
        """The scaling factors of the variables."""
        return self._argument_scaling

    @argument_scaling.setter
    def argument_scaling(self, value: ArrayLike) -> None:
        self._check_mutable()
        self._argument_scaling = _broadcast(value, self.input_size)

    @property
    def argument_names(self) -> tuple[str, ...] | None:
        """The names of the variables, if set."""
        return self._argument_names

    @argument_names.setter
    def argument_names(self, value: Sequence[str] | None) -> None:
        self._check_mutable()
        self._argument_names = None if value is None else tuple(value)

    def add_constraint(
        self,
        function: Function,
        lower: ArrayLike,
        upper: ArrayLike,
        scaling: ArrayLike | None = None,
    ) -> int:
        """Add a constraint.

        Scalar bounds and scaling factors are broadcast to the output size of
        the constraint function.

        Args:
            function: The constraint function.
            lower:    The lower bounds.
            upper:    The upper bounds.
            scaling:  The scaling factors, one by default.

        Returns:
            The index of the new constraint.
        """
        self._check_mutable()
        constraint = self._make_constraint(function, lower, upper, scaling)
        self._constraints.append(constraint)
        return len(self._constraints) - 1

    def replace_constraint(
        self,
        index: int,
        function: Function,
        lower: ArrayLike,
        upper: ArrayLike,
        scaling: ArrayLike | None = None,
    ) -> None:
        """Replace an existing constraint.

        Args:
            index:    The index of the constraint to replace.
            function: The constraint function.
            lower:    The lower bounds.
            upper:    The upper bounds.
            scaling:  The scaling factors, one by default.

        Raises:
            IndexError: If there is no constraint with the given index.
        """
        self._check_mutable()
        if not 0 <= index < len(self._constraints):
            msg = f"constraint index out of range: {index}"
            raise IndexError(msg)
        constraint = self._make_constraint(function, lower, upper, scaling)
        self._constraints[index] = constraint

    def variable(self, index: int) -> tuple[float, tuple[float, float]]:
        """Return the scaling factor and the bounds of a variable.

        Args:
            index: The index of the variable.

        Returns:
            The scaling factor, and a tuple with the lower and upper bound.

        Raises:
            IndexError: If there is no variable with the given index.
        """
        if not 0 <= index < self.input_size:
            msg = f"variable index out of range: {index}"
            raise IndexError(msg)
        lower, upper = self._argument_bounds
        return (
            float(self._argument_scaling[index]),
            (float(lower[index]), float(upper[index])),
        )

    def constraint_violation(self, x: ArrayLike) -> NDArray[np.float64]:
        """Compute the violation of all constraints.

        For each output of each constraint, the violation is the distance of
        its value to the interval given by its bounds, which is zero if the
        constraint is satisfied.

        Args:
            x: The variables.

        Returns:
            The violations, concatenated over all constraints.
        """
        violations = [
            np.maximum(
                np.maximum(constraint.lower - values, 0.0),
                values - constraint.upper,
            )
            for constraint in self._constraints
            for values in (constraint.function.value(x),)
        ]
        return np.concatenate(violations) if violations else np.zeros(0)

    def validate(self) -> None:
        """Check that the sizes and bounds of the problem are consistent.

        Raises:
            InvalidProblem: If any inconsistency is found; lists all of them.
        """
        size = self.input_size
        violations: list[str] = []

        if self._objective.output_size != 1:
            violations.append(
                "the objective function must have a single output, "
                f"got {self._objective.output_size}"
            )
        if self._starting_point.size != size:
            violations.append(
                f"starting point size: expected {size}, "
                f"got {self._starting_point.size}"
            )
        elif not np.all(np.isfinite(self._starting_point)):
            violations.append("the starting point contains non-finite values")
        if self._argument_scaling.size != size:
            violations.append(
                f"argument scaling size: expected {size}, "
                f"got {self._argument_scaling.size}"
            )
        elif not np.all(np.isfinite(self._argument_scaling)) or np.any(
            self._argument_scaling == 0.0
        ):
            violations.append("argument scaling factors must be finite and non-zero")
        violations.extend(self._check_bounds("argument bounds", *self._argument_bounds))
        if self._argument_names is not None and len(self._argument_names) != size:
            violations.append(
                f"argument names size: expected {size}, "
                f"got {len(self._argument_names)}"
            )

        for idx, constraint in enumerate(self._constraints):
            what = f"constraint {idx}"
            if constraint.function.name:
                what += f" ({constraint.function.name})"
            if constraint.function.input_size != size:
                violations.append(
                    f"{what} input size: expected {size}, "
                    f"got {constraint.function.input_size}"
                )
            violations.extend(
                self._check_bounds(
                    f"{what} bounds",
                    constraint.lower,
                    constraint.upper,
                    constraint.size,
                )
            )
            if constraint.scaling.size != constraint.size:
                violations.append(
                    f"{what} scaling size: expected {constraint.size}, "
                    f"got {constraint.scaling.size}"
                )

        if violations:
            raise InvalidProblem(violations)

    def _lock(self) -> None:
        self._locked = True

    def _check_mutable(self) -> None:
        if self._locked:
            msg = "the problem is locked, it is in use by a solver"
            raise AttributeError(msg)

    def _make_constraint(
        self,
        function: Function,
        lower: ArrayLike,
        upper: ArrayLike,
        scaling: ArrayLike | None,
    ) -> Constraint:
        size = function.output_size
        return Constraint(
            function=function,
            lower=_broadcast(lower, size),
            upper=_broadcast(upper, size),
            scaling=_broadcast(1.0 if scaling is None else scaling, size),
        )

    def _check_bounds(
        self,
        what: str,
        lower: NDArray[np.float64],
        upper: NDArray[np.float64],
        size: int | None = None,
    ) -> list[str]:
        size = self.input_size if size is None else size
        violations = [
            f"{what}: {name} bound size: expected {size}, got {bound.size}"
            for name, bound in (("lower", lower), ("upper", upper))
            if bound.size != size
        ]
        if not violations and np.any(lower > upper):
            indices = ", ".join(str(idx) for idx in np.flatnonzero(lower > upper))
            violations.append(
                f"{what}: lower bound exceeds upper bound at index {indices}"
            )
        return violations

    def __str__(self) -> str:  # noqa: D105
        lines = [
            f"Problem with {self.input_size} variables",
            f"  objective: {self._objective.name or type(self._objective).__name__}",
            f"  starting point: {self._starting_point}",
        ]
        lower, upper = self._argument_bounds
        if np.any(np.isfinite(lower)) or np.any(np.isfinite(upper)):
            lines.append(f"  bounds: {lower} <= x <= {upper}")
        if np.any(self._argument_scaling != 1.0):
            lines.append(f"  scaling: {self._argument_scaling}")
        for idx, constraint in enumerate(self._constraints):
            name = constraint.function.name or type(constraint.function).__name__
            lines.append(
                f"  constraint {idx}: "
                f"{constraint.lower} <= {name} <= {constraint.upper}"
            )
        return "\n".join(lines)
