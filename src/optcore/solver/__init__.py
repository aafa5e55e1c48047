"""The `optcore.solver` module provides solvers and the solver factory.

Solvers are created by name with the
[`SolverFactory`][optcore.solver.SolverFactory]. A name consists of the
backend name, optionally followed by a slash and a method supported by the
backend:

```py
from optcore.solver import SolverFactory

solver = SolverFactory.create("scipy/l-bfgs-b", problem)
result = solver.solve()
```

The following backends are built in:

- `dummy`: [`DummySolver`][optcore.solver.DummySolver], a fixed step size
  gradient descent.
- `null`: [`NullSolver`][optcore.solver.NullSolver], a solver that always
  fails.
- `scipy`: [`SciPySolver`][optcore.solver.SciPySolver], the algorithms of
  `scipy.optimize.minimize`.

New backends derive from [`Solver`][optcore.solver.Solver], and are made
available by registering them with the factory. The
[`optcore.solver.utils`][optcore.solver.utils] module contains utilities for
backend implementations.
"""

from ._factory import SolverConstructor, SolverFactory
from .base import Solver
from .dummy import DummySolver, NullSolver
from .scipy import SciPySolver

SolverFactory._add("dummy", DummySolver)  # noqa: SLF001
SolverFactory._add("null", NullSolver)  # noqa: SLF001
SolverFactory._add("scipy", SciPySolver)  # noqa: SLF001

__all__ = [
    "DummySolver",
    "NullSolver",
    "SciPySolver",
    "Solver",
    "SolverConstructor",
    "SolverFactory",
]
