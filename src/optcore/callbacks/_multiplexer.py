from __future__ import annotations

import logging
from contextlib import nullcontext
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from optcore.allocation import forbid_allocation
from optcore.exceptions import AbortSolve

from ._base import SolverCallback, as_callback

if TYPE_CHECKING:
    from collections.abc import Callable

    from optcore.results import SolverResult
    from optcore.state import SolverState

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CallbackFailure:
    """The record of an exception raised by a callback.

    Attributes:
        callback:  The callback that failed.
        exception: The exception it raised.
        iteration: The iteration number, or `None` if it failed at solve end.
    """

    callback: SolverCallback
    exception: Exception
    iteration: int | None

    @property
    def aborts(self) -> bool:
        """Whether the failure aborts the solve."""
        return isinstance(self.exception, AbortSolve) or self.callback.fatal

    def __str__(self) -> str:  # noqa: D105
        where = (
            "at solve end"
            if self.iteration is None
            else f"at iteration {self.iteration}"
        )
        return (
            f"callback `{self.callback.name}` failed {where}: "
            f"{type(self.exception).__name__}: {self.exception}"
        )


class Multiplexer:
    """Broadcast solver events to an ordered sequence of callbacks.

    Every event is passed to every callback, in the order of registration. A
    callback that raises an exception does not prevent the callbacks after it
    from being called. Instead, the failure is recorded as a
    [`CallbackFailure`][optcore.callbacks.CallbackFailure], available from the
    [`failures`][optcore.callbacks.Multiplexer.failures] property.

    Registration is only possible until the multiplexer is closed, which the
    solver does when it starts solving.

    If `realtime` is set, callbacks are run with allocation forbidden, see
    [`forbid_allocation`][optcore.allocation.forbid_allocation].
    """

    def __init__(self, *, realtime: bool = False) -> None:
        """Initialize the multiplexer.

        Args:
            realtime: Run callbacks with allocation forbidden.
        """
        self._callbacks: list[SolverCallback] = []
        self._failures: list[CallbackFailure] = []
        self._closed = False
        self._realtime = realtime

    @property
    def callbacks(self) -> tuple[SolverCallback, ...]:
        """The registered callbacks, in order of registration."""
        return tuple(self._callbacks)

    @property
    def failures(self) -> tuple[CallbackFailure, ...]:
        """The failures recorded since the multiplexer was last opened."""
        return tuple(self._failures)

    @property
    def closed(self) -> bool:
        """Whether registration of callbacks is closed."""
        return self._closed

    def add(
        self,
        callback: SolverCallback | Callable[[SolverState], object],
        *,
        fatal: bool | None = None,
    ) -> SolverCallback:
        """Register a callback.

        Args:
            callback: A callback object, or a function accepting a solver state.
            fatal:    If given, overrides the `fatal` attribute of the callback.

        Returns:
            The registered callback object.

        Raises:
            RuntimeError: If registration is closed.
        """
        if self._closed:
            msg = "callbacks cannot be added once solving has started"
            raise RuntimeError(msg)
        callback = as_callback(callback, fatal=fatal)
        self._callbacks.append(callback)
        return callback

    def close(self) -> None:
        """Close registration of callbacks."""
        self._closed = True

    def open(self) -> None:
        """Reopen registration of callbacks, and forget all recorded failures."""
        self._closed = False
        self._failures.clear()

    def notify_iteration(self, state: SolverState) -> None:
        """Pass the state at the end of an iteration to all callbacks.

        Args:
            state: The new solver state.

        Raises:
            AbortSolve: If a callback requested an abort, or a fatal callback
                        failed. Raised after all callbacks were called.
        """
        aborts = []
        for callback in self._callbacks:
            failure = self._call(
                callback, state.iteration, callback.on_iteration_end, state
            )
            if failure is not None and failure.aborts:
                aborts.append(failure)
        if aborts:
            msg = "; ".join(str(failure) for failure in aborts)
            raise AbortSolve(msg) from aborts[0].exception

    def notify_solve_end(self, result: SolverResult) -> None:
        """Pass the outcome of the solve to all callbacks.

        Failures are recorded, but never abort.

        Args:
            result: The outcome of the solve.
        """
        for callback in self._callbacks:
            self._call(callback, None, callback.on_solve_end, result)

    def _call(
        self,
        callback: SolverCallback,
        iteration: int | None,
        notify: Callable[[Any], None],
        argument: SolverState | SolverResult,
    ) -> CallbackFailure | None:
        try:
            with forbid_allocation() if self._realtime else nullcontext():
                notify(argument)
        except Exception as exc:  # noqa: BLE001
            failure = CallbackFailure(callback, exc, iteration)
            self._failures.append(failure)
            if isinstance(exc, AbortSolve):
                logger.info("Abort requested by callback `%s`", callback.name)
            else:
                logger.warning("%s", failure)
            return failure
        return None
