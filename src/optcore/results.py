"""Data classes for the outcome of a solve.

A solve ends in exactly one of four outcomes, together forming the
[`SolverResult`][optcore.results.SolverResult] type:

- [`Result`][optcore.results.Result]: an optimum was found.
- [`ResultWithWarnings`][optcore.results.ResultWithWarnings]: an optimum was
  found, but warnings were raised during the solve.
- [`NoSolution`][optcore.results.NoSolution]: no solve has been performed.
- [`SolverError`][optcore.exceptions.SolverError]: the solve failed.

Each outcome has a `kind` property that identifies it by a
[`ResultKind`][optcore.enums.ResultKind] value.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TypeAlias, overload

import numpy as np

from optcore.enums import ResultKind
from optcore.exceptions import SolverError

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray

    from optcore.exceptions import SolverWarning


@overload
def _immutable_copy(data: ArrayLike) -> NDArray[np.float64]: ...


@overload
def _immutable_copy(data: ArrayLike | None) -> NDArray[np.float64] | None: ...


def _immutable_copy(data: ArrayLike | None) -> NDArray[Any] | None:
    if data is None:
        return None
    array = np.array(data, dtype=np.float64)
    array.setflags(write=False)
    return array


@dataclass(slots=True)
class Result:
    """The optimum found by a solver.

    The array fields are stored as immutable copies.

    Attributes:
        x:           The variables at the optimum.
        value:       The objective value at the optimum.
        constraints: The values of all constraint outputs, concatenated.
        lagrange:    The Lagrange multipliers of the constraints, if available.
    """

    x: NDArray[np.float64]
    value: float
    constraints: NDArray[np.float64] | None = None
    lagrange: NDArray[np.float64] | None = None

    def __post_init__(self) -> None:
        """Make all array fields immutable copies.

        # noqa
        """
        self.x = _immutable_copy(self.x)
        self.value = float(self.value)
        self.constraints = _immutable_copy(self.constraints)
        self.lagrange = _immutable_copy(self.lagrange)

    @property
    def kind(self) -> ResultKind:
        """The kind of this outcome."""
        return ResultKind.VALUE


@dataclass(slots=True)
class ResultWithWarnings(Result):
    """An optimum found by a solver, with the warnings raised on the way.

    Attributes:
        warnings: The warnings raised during the solve.
    """

    warnings: tuple[SolverWarning, ...] = field(default_factory=tuple)

    @classmethod
    def from_result(
        cls, result: Result, warnings: tuple[SolverWarning, ...]
    ) -> ResultWithWarnings:
        """Attach warnings to a result.

        If `result` already carries warnings, the new warnings are appended.

        Args:
            result:   The result.
            warnings: The warnings to attach.

        Returns:
            A new result with warnings.
        """
        if isinstance(result, ResultWithWarnings):
            warnings = result.warnings + warnings
        return cls(
            x=result.x,
            value=result.value,
            constraints=result.constraints,
            lagrange=result.lagrange,
            warnings=warnings,
        )

    @property
    def kind(self) -> ResultKind:
        """The kind of this outcome."""
        return ResultKind.VALUE_WARNINGS


@dataclass(frozen=True, slots=True)
class NoSolution:
    """The outcome of a solver that has not solved its problem yet."""

    @property
    def kind(self) -> ResultKind:
        """The kind of this outcome."""
        return ResultKind.NO_SOLUTION


SolverResult: TypeAlias = Result | ResultWithWarnings | NoSolution | SolverError
"""The outcome of a solve."""
