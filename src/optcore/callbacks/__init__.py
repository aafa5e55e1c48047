"""The `optcore.callbacks` module provides solver callbacks.

Callbacks observe a solve: they receive a
[`SolverState`][optcore.state.SolverState] snapshot after every iteration,
and the outcome of the solve when it ends. They are registered with a solver
before it starts solving:

```py
from optcore.callbacks import OptimizationLogger, StateHistory

history = StateHistory()
solver.add_callback(history)
solver.add_callback(OptimizationLogger())
solver.add_callback(lambda state: print(state.iteration, state.cost))
solver.solve()
```

The solver passes events to its callbacks through a
[`Multiplexer`][optcore.callbacks.Multiplexer], which calls all callbacks in
order of registration, and records their failures.
"""

from ._base import FunctionCallback, SolverCallback, as_callback
from ._logger import OptimizationLogger, StateHistory
from ._multiplexer import CallbackFailure, Multiplexer

__all__ = [
    "CallbackFailure",
    "FunctionCallback",
    "Multiplexer",
    "OptimizationLogger",
    "SolverCallback",
    "StateHistory",
    "as_callback",
]
