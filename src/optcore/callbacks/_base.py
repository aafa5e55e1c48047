from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

    from optcore.results import SolverResult
    from optcore.state import SolverState


class SolverCallback(ABC):
    """Abstract base class for solver callbacks.

    Callbacks observe a running solve. The solver calls
    [`on_iteration_end`][optcore.callbacks.SolverCallback.on_iteration_end] with
    a new [`SolverState`][optcore.state.SolverState] snapshot after every
    iteration, and
    [`on_solve_end`][optcore.callbacks.SolverCallback.on_solve_end] with the
    outcome once the solve has finished.

    A callback may cancel the solve by raising an
    [`AbortSolve`][optcore.exceptions.AbortSolve] exception. Any other
    exception is recorded, and reported as a warning attached to the result,
    unless the `fatal` attribute of the callback is set, in which case the
    failure aborts the solve as well.
    """

    def __init__(self, *, fatal: bool = False) -> None:
        """Initialize the callback.

        Args:
            fatal: Whether a failure of the callback aborts the solve.
        """
        self.fatal = fatal

    @property
    def name(self) -> str:
        """A name identifying the callback in messages."""
        return type(self).__name__

    @abstractmethod
    def on_iteration_end(self, state: SolverState) -> None:
        """Observe the state at the end of an iteration.

        Args:
            state: The new state of the solver.
        """

    def on_solve_end(self, result: SolverResult) -> None:  # noqa: B027
        """Observe the outcome of the solve.

        The default implementation does nothing.

        Args:
            result: The outcome of the solve.
        """


class FunctionCallback(SolverCallback):
    """A callback that calls plain functions."""

    def __init__(
        self,
        on_iteration_end: Callable[[SolverState], object],
        on_solve_end: Callable[[SolverResult], object] | None = None,
        *,
        fatal: bool = False,
    ) -> None:
        """Initialize the callback.

        Args:
            on_iteration_end: Called with the state after each iteration.
            on_solve_end:     Called with the outcome of the solve.
            fatal:            Whether a failure of the callback aborts the solve.
        """
        super().__init__(fatal=fatal)
        self._on_iteration_end = on_iteration_end
        self._on_solve_end = on_solve_end

    @property
    def name(self) -> str:
        """The name of the wrapped function."""
        function = self._on_iteration_end
        return getattr(function, "__name__", repr(function))

    def on_iteration_end(self, state: SolverState) -> None:  # noqa: D102
        self._on_iteration_end(state)

    def on_solve_end(self, result: SolverResult) -> None:  # noqa: D102
        if self._on_solve_end is not None:
            self._on_solve_end(result)


def as_callback(
    callback: SolverCallback | Callable[[SolverState], object],
    *,
    fatal: bool | None = None,
) -> SolverCallback:
    """Convert a plain function to a callback object, if needed.

    Args:
        callback: A callback object, or a function accepting a solver state.
        fatal:    If given, overrides the `fatal` attribute of the callback.

    Returns:
        A callback object.
    """
    if not isinstance(callback, SolverCallback):
        callback = FunctionCallback(callback)
    if fatal is not None:
        callback.fatal = fatal
    return callback
