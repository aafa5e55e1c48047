"""Snapshots of the state of a solver."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

import numpy as np

from optcore.allocation import check_allocation

if TYPE_CHECKING:
    from collections.abc import Mapping

    from numpy.typing import ArrayLike, NDArray


@dataclass(frozen=True, slots=True)
class Parameter:
    """A named solver parameter, such as a step size or a tolerance.

    Attributes:
        value:       The value of the parameter.
        description: A short description of the parameter.
    """

    value: Any
    description: str = ""


@dataclass(frozen=True, slots=True)
class SolverState:
    """A snapshot of a solver at the end of an iteration.

    Solvers create a new snapshot for every iteration, and pass it to their
    callbacks. Snapshots are immutable: the variables are stored as a
    read-only copy, and the parameters as a read-only mapping.

    A solver that has not iterated yet holds an empty state, with iteration
    number zero and no variables.

    Attributes:
        iteration:            The iteration number, starting at one.
        x:                    The variables at the end of the iteration.
        cost:                 The objective value, if known.
        constraint_violation: The violation of each constraint output, if known.
        parameters:           Solver specific parameters.
    """

    iteration: int = 0
    x: NDArray[np.float64] | None = None
    cost: float | None = None
    constraint_violation: NDArray[np.float64] | None = None
    parameters: Mapping[str, Parameter] = field(
        default_factory=lambda: MappingProxyType({})
    )

    @classmethod
    def snapshot(  # noqa: PLR0913
        cls,
        iteration: int,
        x: ArrayLike,
        *,
        cost: float | None = None,
        constraint_violation: ArrayLike | None = None,
        parameters: Mapping[str, Parameter] | None = None,
    ) -> SolverState:
        """Create a snapshot, copying the variables and parameters.

        Args:
            iteration:            The iteration number.
            x:                    The variables.
            cost:                 The objective value.
            constraint_violation: The violation of each constraint output.
            parameters:           Solver specific parameters.

        Returns:
            The new snapshot.

        Raises:
            AllocationForbidden: If allocation is forbidden.
        """
        check_allocation("solver state snapshot")
        copy = np.array(x, dtype=np.float64)
        copy.setflags(write=False)
        violation = None
        if constraint_violation is not None:
            violation = np.array(constraint_violation, dtype=np.float64, ndmin=1)
            violation.setflags(write=False)
        return cls(
            iteration=iteration,
            x=copy,
            cost=None if cost is None else float(cost),
            constraint_violation=violation,
            parameters=MappingProxyType(dict(parameters or {})),
        )

    @property
    def is_empty(self) -> bool:
        """Whether this is the empty state of a solver that did not iterate."""
        return self.x is None

    @property
    def max_constraint_violation(self) -> float | None:
        """The largest constraint violation, zero if there are no constraints."""
        if self.constraint_violation is None:
            return None
        if self.constraint_violation.size == 0:
            return 0.0
        return float(self.constraint_violation.max())
