from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np

from optcore.exceptions import SolverError

from ._base import SolverCallback

if TYPE_CHECKING:
    from collections.abc import Iterator

    from numpy.typing import NDArray

    from optcore.results import SolverResult
    from optcore.state import SolverState


class OptimizationLogger(SolverCallback):
    """A callback that logs the progress of a solve.

    Each iteration is logged with its cost, its constraint violation, and the
    variables. The outcome of the solve is logged at the end. Messages are
    emitted through the standard `logging` module; by default to the
    `optcore.callbacks` logger at `INFO` level.
    """

    def __init__(
        self,
        logger: logging.Logger | None = None,
        level: int = logging.INFO,
        *,
        fatal: bool = False,
    ) -> None:
        """Initialize the callback.

        Args:
            logger: The logger to use.
            level:  The logging level of the messages.
            fatal:  Whether a failure of the callback aborts the solve.
        """
        super().__init__(fatal=fatal)
        if logger is None:
            logger = logging.getLogger("optcore.callbacks")
        self._logger = logger
        self._level = level

    def on_iteration_end(self, state: SolverState) -> None:  # noqa: D102
        if not self._logger.isEnabledFor(self._level):
            return
        self._logger.log(
            self._level,
            "iteration %d: cost = %s, constraint violation = %s, x = %s",
            state.iteration,
            state.cost,
            state.max_constraint_violation,
            state.x,
        )

    def on_solve_end(self, result: SolverResult) -> None:  # noqa: D102
        if isinstance(result, SolverError):
            self._logger.log(self._level, "solve failed: %s", result.message)
        else:
            self._logger.log(
                self._level, "solve finished (%s): %s", result.kind.name, result
            )


class StateHistory(SolverCallback):
    """A callback that keeps all states of a solve.

    The states are available by iterating over the history or by indexing it.
    """

    def __init__(self, *, fatal: bool = False) -> None:
        """Initialize the callback.

        Args:
            fatal: Whether a failure of the callback aborts the solve.
        """
        super().__init__(fatal=fatal)
        self._states: list[SolverState] = []
        self.result: SolverResult | None = None

    def on_iteration_end(self, state: SolverState) -> None:  # noqa: D102
        self._states.append(state)

    def on_solve_end(self, result: SolverResult) -> None:  # noqa: D102
        self.result = result

    @property
    def states(self) -> tuple[SolverState, ...]:
        """The recorded states."""
        return tuple(self._states)

    def costs(self) -> NDArray[np.float64]:
        """Return the costs of all recorded states, NaN where unknown."""
        return np.array(
            [np.nan if state.cost is None else state.cost for state in self._states],
            dtype=np.float64,
        )

    def clear(self) -> None:
        """Forget all recorded states and the result."""
        self._states.clear()
        self.result = None

    def __len__(self) -> int:  # noqa: D105
        return len(self._states)

    def __iter__(self) -> Iterator[SolverState]:  # noqa: D105
        return iter(self._states)

    def __getitem__(self, index: int) -> SolverState:  # noqa: D105
        return self._states[index]
