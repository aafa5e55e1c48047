"""Exceptions raised within the `optcore` library."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .enums import ResultKind

if TYPE_CHECKING:
    import numpy as np
    from numpy.typing import NDArray

    from .results import Result


class DimensionMismatch(ValueError):  # noqa: N818
    """Raised when the size of an input or output does not match.

    Functions have a fixed input and output size. Passing a vector of the wrong
    size, requesting an output index that does not exist, or passing an output
    buffer of the wrong shape raises this exception immediately. Values are
    never truncated or padded.
    """

    def __init__(self, what: str, expected: object, actual: object) -> None:
        """Initialize the exception.

        Args:
            what:     Description of the mismatched quantity.
            expected: The expected size or shape.
            actual:   The size or shape that was received.
        """
        self.expected = expected
        self.actual = actual
        super().__init__(f"{what}: expected {expected}, got {actual}")


class UnsupportedOperation(NotImplementedError):  # noqa: N818
    """Raised when an evaluation exceeds the capabilities of a function.

    For instance, requesting the gradient of a function that only supports
    evaluation of its value raises this exception.
    """


class InvalidProblem(ValueError):  # noqa: N818
    """Raised when a problem definition is inconsistent.

    The exception collects all violated invariants, available in the
    `violations` attribute, so that a problem can be corrected in one pass.
    """

    def __init__(self, violations: list[str]) -> None:
        """Initialize the exception.

        Args:
            violations: Descriptions of all violations found.
        """
        self.violations = tuple(violations)
        lines = "\n".join(f"  - {violation}" for violation in self.violations)
        super().__init__(f"Invalid problem ({len(self.violations)} errors):\n{lines}")


class UnknownBackend(LookupError):  # noqa: N818
    """Raised when a solver backend name is not registered."""


class BackendAlreadyRegistered(ValueError):  # noqa: N818
    """Raised when a solver backend name is registered twice."""


class AllocationForbidden(RuntimeError):  # noqa: N818
    """Raised when memory would be allocated while allocation is forbidden.

    See [`forbid_allocation`][optcore.allocation.forbid_allocation].
    """


class AbortSolve(Exception):  # noqa: N818
    """Raised by a callback to request cancellation of a running solve.

    A solve that is aborted ends in the
    [`ERROR`][optcore.enums.SolverStatus.ERROR] state, with a
    [`SolverError`][optcore.exceptions.SolverError] result carrying the last
    state reached.
    """


class BadGradient(ValueError):  # noqa: N818
    """Raised when an analytic gradient does not match a finite difference estimate."""

    def __init__(
        self,
        x: NDArray[np.float64],
        analytic: NDArray[np.float64],
        estimated: NDArray[np.float64],
        threshold: float,
    ) -> None:
        """Initialize the exception.

        Args:
            x:         The point where the gradients were compared.
            analytic:  The gradient returned by the function.
            estimated: The finite difference estimate.
            threshold: The tolerance that was exceeded.
        """
        self.x = x
        self.analytic = analytic
        self.estimated = estimated
        self.threshold = threshold
        self.max_delta = float(abs(analytic - estimated).max(initial=0.0))
        super().__init__(
            f"bad gradient: maximum difference {self.max_delta:g} "
            f"exceeds threshold {threshold:g}"
        )


class SolverWarning(Exception):  # noqa: N818
    """Raised when a solver finishes with a result that may be unreliable.

    A solver backend may raise this exception to signal that it found a
    result, but that the result should be used with care. The result is
    attached in the `result` attribute. Warnings collected during a solve are
    also stored in
    [`ResultWithWarnings`][optcore.results.ResultWithWarnings] objects, in that
    case without an attached result.
    """

    def __init__(self, message: str, result: Result | None = None) -> None:
        """Initialize the warning.

        Args:
            message: The warning message.
            result:  The attached result.
        """
        self.message = message
        self.result = result
        super().__init__(message)


class SolverError(Exception):
    """Raised when a solver fails.

    Solver errors are also used as one of the possible outcomes of a solve,
    see [`SolverResult`][optcore.results.SolverResult]. The optional
    `last_state` attribute stores the last state that was reached before the
    failure, if any.
    """

    def __init__(self, message: str, last_state: Result | None = None) -> None:
        """Initialize the error.

        Args:
            message:    The error message.
            last_state: The last state reached by the solver.
        """
        self.message = message
        self.last_state = last_state
        super().__init__(message)

    @property
    def kind(self) -> ResultKind:
        """The kind of this outcome."""
        return ResultKind.ERROR
