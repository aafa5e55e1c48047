"""The abstract base class of all solvers."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, TypeVar

import numpy as np

from optcore.callbacks import Multiplexer
from optcore.config import SolverConfig
from optcore.enums import ResultKind, SolverStatus
from optcore.exceptions import AbortSolve, SolverError, SolverWarning
from optcore.functions import CachedFunction
from optcore.results import NoSolution, Result, ResultWithWarnings, SolverResult
from optcore.state import Parameter, SolverState

if TYPE_CHECKING:
    from collections.abc import Callable

    from numpy.typing import ArrayLike, NDArray

    from optcore.callbacks import CallbackFailure, SolverCallback
    from optcore.functions import Function
    from optcore.problem import Problem

logger = logging.getLogger(__name__)

T = TypeVar("T")

_STATUS: dict[ResultKind, SolverStatus] = {
    ResultKind.NO_SOLUTION: SolverStatus.NO_SOLUTION,
    ResultKind.VALUE: SolverStatus.SOLVED,
    ResultKind.VALUE_WARNINGS: SolverStatus.SOLVED_WITH_WARNINGS,
    ResultKind.ERROR: SolverStatus.ERROR,
}


class Solver(ABC):
    """Abstract base class for solver backends.

    A solver solves one [`Problem`][optcore.problem.Problem]. On construction
    it validates the problem and locks it against further modification.
    Solvers are normally not created directly, but by name through the
    [`SolverFactory`][optcore.solver.SolverFactory].

    A solver moves through the states given by
    [`SolverStatus`][optcore.enums.SolverStatus]. It starts in the `CREATED`
    state, in which callbacks can be added. The
    [`solve`][optcore.solver.Solver.solve] method moves it to `RUNNING`, and
    finally to one of the terminal states, depending on the outcome. The
    algorithm runs only once: calling `solve` again returns the stored outcome.
    The [`reset`][optcore.solver.Solver.reset] method returns the solver to the
    `CREATED` state.

    Backends derive from this class and implement the `_solve` method. They
    report progress by calling `_iterate` once per iteration, which passes a
    new [`SolverState`][optcore.state.SolverState] to all callbacks. The
    outcome is either returned from `_solve`, or signaled by raising a
    [`SolverError`][optcore.exceptions.SolverError], or a
    [`SolverWarning`][optcore.exceptions.SolverWarning] carrying a usable
    result.

    Backends should evaluate the functions of the problem through the
    [`objective`][optcore.solver.Solver.objective] and
    [`constraints`][optcore.solver.Solver.constraints] properties, which wrap
    them in evaluation caches if the configuration requests it.
    """

    def __init__(self, problem: Problem, config: SolverConfig | None = None) -> None:
        """Initialize the solver.

        Args:
            problem: The problem to solve.
            config:  The solver configuration.

        Raises:
            InvalidProblem:       If the problem is not consistent.
            UnsupportedOperation: If the backend cannot solve the problem.
        """
        self._config = SolverConfig() if config is None else config
        problem.validate()
        self._check(problem)
        problem._lock()  # noqa: SLF001
        self._problem = problem
        self._status = SolverStatus.CREATED
        self._state = SolverState()
        self._result: SolverResult = NoSolution()
        self._callbacks = Multiplexer(realtime=self._config.realtime_callbacks)
        self._objective = self._wrap(problem.objective)
        self._constraints = tuple(
            self._wrap(constraint.function) for constraint in problem.constraints
        )
        self.parameters: dict[str, Parameter] = {
            "max_iterations": Parameter(
                self._config.max_iterations, "maximum number of iterations"
            ),
            "tolerance": Parameter(self._config.tolerance, "convergence tolerance"),
        }

    @classmethod
    def is_supported(cls, method: str) -> bool:
        """Check if the backend supports a method.

        The default implementation only supports the `"default"` method.

        Args:
            method: The name of the method.

        Returns:
            `True` if the method is supported.
        """
        return method.lower() == "default"

    def _check(self, problem: Problem) -> None:  # noqa: ARG002, B027
        """Check that the backend can solve a problem with its configuration.

        This is called during initialization, before the problem is locked, so
        a problem or configuration rejected here can still be corrected. Only
        the [`config`][optcore.solver.Solver.config] property is available at
        this point. Backends override this to validate their options and the
        constraints of the problem, and may store the validated options. The
        default implementation accepts any problem.

        Args:
            problem: The problem to solve.
        """

    @property
    def problem(self) -> Problem:
        """The problem solved by this solver."""
        return self._problem

    @property
    def config(self) -> SolverConfig:
        """The solver configuration."""
        return self._config

    @property
    def status(self) -> SolverStatus:
        """The current status of the solver."""
        return self._status

    @property
    def state(self) -> SolverState:
        """The state at the end of the last iteration."""
        return self._state

    @property
    def objective(self) -> Function:
        """The objective function, possibly wrapped in an evaluation cache."""
        return self._objective

    @property
    def constraints(self) -> tuple[Function, ...]:
        """The constraint functions, possibly wrapped in evaluation caches."""
        return self._constraints

    @property
    def callbacks(self) -> Multiplexer:
        """The multiplexer that dispatches events to the callbacks."""
        return self._callbacks

    @property
    def callback_failures(self) -> tuple[CallbackFailure, ...]:
        """The failures of callbacks recorded during the last solve."""
        return self._callbacks.failures

    @property
    def minimum(self) -> SolverResult:
        """The outcome of the solve, `NoSolution` if not solved yet."""
        return self._result

    def get_minimum(self, kind: type[T]) -> T:
        """Return the outcome of the solve if it has the requested type.

        Since [`ResultWithWarnings`][optcore.results.ResultWithWarnings] derives
        from [`Result`][optcore.results.Result], requesting a `Result` also
        returns a result with warnings.

        Args:
            kind: The expected type of the outcome.

        Returns:
            The outcome.

        Raises:
            TypeError: If the outcome is of another type.
        """
        if not isinstance(self._result, kind):
            msg = (
                f"the solver outcome is a {type(self._result).__name__}, "
                f"not a {kind.__name__}"
            )
            raise TypeError(msg)
        return self._result

    def add_callback(
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
            RuntimeError: If the solver is not in the `CREATED` state.
        """
        return self._callbacks.add(callback, fatal=fatal)

    def solve(self) -> SolverResult:
        """Solve the problem.

        The backend algorithm runs only on the first call; later calls return
        the stored outcome.

        Returns:
            The outcome of the solve.
        """
        if self._status != SolverStatus.CREATED:
            return self._result
        self._status = SolverStatus.RUNNING
        self._callbacks.close()
        logger.info("Starting solve: %s", type(self).__name__)
        try:
            result = self._solve()
        except AbortSolve as exc:
            result = SolverError(f"solve aborted: {exc}", self._last_result())
        except SolverError as exc:
            if exc.last_state is None:
                exc.last_state = self._last_result()
            result = exc
        except SolverWarning as exc:
            attached = exc.result if exc.result is not None else self._last_result()
            if attached is None:
                result = SolverError(exc.message)
            else:
                result = ResultWithWarnings.from_result(attached, (exc,))
        except Exception:
            self._status = SolverStatus.ERROR
            self._result = SolverError("unexpected failure", self._last_result())
            raise
        self._finish(result)
        return self._result

    def reset(self) -> None:
        """Return the solver to the `CREATED` state.

        The outcome and the state are discarded, recorded callback failures are
        forgotten, and evaluation caches are cleared. Callbacks stay registered.
        """
        self._status = SolverStatus.CREATED
        self._state = SolverState()
        self._result = NoSolution()
        self._callbacks.open()
        for function in (self._objective, *self._constraints):
            if isinstance(function, CachedFunction):
                function.clear()

    def constraint_values(self, x: ArrayLike) -> NDArray[np.float64]:
        """Evaluate all constraints.

        Args:
            x: The variables.

        Returns:
            The values of all constraint outputs, concatenated.
        """
        if not self._constraints:
            return np.zeros(0, dtype=np.float64)
        return np.concatenate([function.value(x) for function in self._constraints])

    def constraint_violation(self, x: ArrayLike) -> NDArray[np.float64]:
        """Compute the violation of each constraint output.

        Args:
            x: The variables.

        Returns:
            The distance of each constraint value to its bounds, empty if the
            problem has no constraints.
        """
        if not self._constraints:
            return np.zeros(0, dtype=np.float64)
        values = self.constraint_values(x)
        lower = np.concatenate([item.lower for item in self._problem.constraints])
        upper = np.concatenate([item.upper for item in self._problem.constraints])
        return np.maximum(np.maximum(lower - values, values - upper), 0.0)

    @abstractmethod
    def _solve(self) -> SolverResult:
        """Run the backend algorithm.

        Returns:
            The outcome of the solve.

        Raises:
            SolverError:   If the solve failed.
            SolverWarning: If the result is usable, but may not be reliable.
        """

    def _iterate(
        self,
        x: ArrayLike,
        *,
        cost: float | None = None,
        constraint_violation: ArrayLike | None = None,
        **parameters: Any,  # noqa: ANN401
    ) -> None:
        """Report the end of an iteration.

        A new state snapshot is created and passed to all callbacks. Keyword
        arguments are added to the solver parameters of the snapshot, wrapped
        in a [`Parameter`][optcore.state.Parameter] object if needed.

        Args:
            x:                    The variables at the end of the iteration.
            cost:                 The objective value.
            constraint_violation: The violation of each constraint output,
                                  computed if not given.
            parameters:           Additional iteration parameters.

        Raises:
            AbortSolve: If a callback requests an abort, or a fatal callback
                        fails.
        """
        if constraint_violation is None:
            constraint_violation = self.constraint_violation(x)
        merged = dict(self.parameters)
        merged.update(
            {
                key: value if isinstance(value, Parameter) else Parameter(value)
                for key, value in parameters.items()
            }
        )
        self._state = SolverState.snapshot(
            self._state.iteration + 1,
            x,
            cost=cost,
            constraint_violation=constraint_violation,
            parameters=merged,
        )
        self._callbacks.notify_iteration(self._state)

    def _make_result(
        self, x: ArrayLike, lagrange: ArrayLike | None = None
    ) -> Result:
        """Create a result, evaluating the objective and constraints at `x`.

        Args:
            x:        The optimal variables.
            lagrange: The Lagrange multipliers, if known.

        Returns:
            The result.
        """
        return Result(
            x=np.asarray(x, dtype=np.float64),
            value=float(self._objective.value(x)[0]),
            constraints=self.constraint_values(x) if self._constraints else None,
            lagrange=None if lagrange is None else np.asarray(lagrange),
        )

    def _wrap(self, function: Function) -> Function:
        cache_config = self._config.cache
        if cache_config is None:
            return function
        return CachedFunction(
            function,
            capacity=cache_config.capacity,
            tolerance=cache_config.tolerance,
            thread_safe=cache_config.thread_safe,
        )

    def _last_result(self) -> Result | None:
        if self._state.x is None:
            return None
        cost = np.nan if self._state.cost is None else self._state.cost
        return Result(x=self._state.x, value=cost)

    def _finish(self, result: SolverResult) -> None:
        result = self._attach_warnings(result, 0)
        self._result = result
        self._status = _STATUS[result.kind]
        recorded = len(self._callbacks.failures)
        self._callbacks.notify_solve_end(result)
        self._result = self._attach_warnings(self._result, recorded)
        self._status = _STATUS[self._result.kind]
        if isinstance(self._result, SolverError):
            logger.info("Solve failed: %s", self._result.message)
        else:
            logger.info("Solve finished: %s", self._status.name)

    def _attach_warnings(self, result: SolverResult, start: int) -> SolverResult:
        failures = self._callbacks.failures[start:]
        warnings = tuple(
            SolverWarning(str(failure), None)
            for failure in failures
            if not failure.aborts
        )
        if not warnings:
            return result
        if isinstance(result, Result):
            return ResultWithWarnings.from_result(result, warnings)
        for warning in warnings:
            logger.warning("Not attached to the outcome: %s", warning)
        return result

    def __str__(self) -> str:  # noqa: D105
        return (
            f"{type(self).__name__} (method: {self._config.method}, "
            f"status: {self._status.name})\n{self._problem}"
        )
