"""The solver factory."""

from __future__ import annotations

import logging
from functools import cache
from importlib.metadata import entry_points
from typing import TYPE_CHECKING, ClassVar, Final, TypeAlias, overload

from optcore.config import SolverConfig
from optcore.exceptions import BackendAlreadyRegistered, UnknownBackend

from .base import Solver

if TYPE_CHECKING:
    from collections.abc import Callable

    from optcore.problem import Problem

logger = logging.getLogger(__name__)

SolverConstructor: TypeAlias = "Callable[[Problem, SolverConfig], Solver]"
"""A callable that creates a solver for a problem and a configuration."""

ENTRY_POINT_GROUP: Final = "optcore.solvers"


class SolverFactory:
    """Create solvers by backend name.

    The factory maintains a process-wide table that maps backend names to
    constructors. A constructor is any callable that accepts a
    [`Problem`][optcore.problem.Problem] and a
    [`SolverConfig`][optcore.config.SolverConfig] object and returns a
    [`Solver`][optcore.solver.Solver]; usually it is a `Solver` subclass.
    Backend names are case-insensitive.

    Solvers are requested by name, optionally followed by a slash and the
    name of a method supported by the backend, for instance `"scipy"` or
    `"scipy/cobyla"`. If a method is given, it overrides the `method` field of
    the configuration.

    The `dummy`, `null`, and `scipy` backends are built in. Other packages can
    provide backends by registering them with
    [`register`][optcore.solver.SolverFactory.register], or by declaring an
    entry point in the `optcore.solvers` group, which is loaded the first time
    the table is consulted:

    ```toml
    [project.entry-points."optcore.solvers"]
    my_solver = "my_package.my_module:MySolver"
    ```

    Example:
        ```py
        from optcore.solver import SolverFactory

        solver = SolverFactory.create("scipy/slsqp", problem)
        result = solver.solve()
        ```
    """

    _backends: ClassVar[dict[str, SolverConstructor]] = {}
    _entry_points_loaded: ClassVar[bool] = False

    @overload
    @classmethod
    def register(
        cls, name: str
    ) -> Callable[[SolverConstructor], SolverConstructor]: ...

    @overload
    @classmethod
    def register(
        cls, name: str, constructor: SolverConstructor
    ) -> SolverConstructor: ...

    @classmethod
    def register(
        cls, name: str, constructor: SolverConstructor | None = None
    ) -> SolverConstructor | Callable[[SolverConstructor], SolverConstructor]:
        """Register a backend.

        This method can also be used as a class decorator, by omitting the
        `constructor` argument:

        ```py
        @SolverFactory.register("my-solver")
        class MySolver(Solver):
            ...
        ```

        Args:
            name:        The name of the backend.
            constructor: The constructor of the backend.

        Returns:
            The constructor, or a decorator if no constructor is given.

        Raises:
            BackendAlreadyRegistered: If the name is already registered.
            ValueError:               If the name is malformed.
        """
        if constructor is None:

            def _decorator(constructor: SolverConstructor) -> SolverConstructor:
                cls.register(name, constructor)
                return constructor

            return _decorator

        cls._load_entry_points()
        cls._add(name, constructor)
        return constructor

    @classmethod
    def unregister(cls, name: str) -> None:
        """Remove a backend from the table.

        Args:
            name: The name of the backend.

        Raises:
            UnknownBackend: If the name is not registered.
        """
        cls._load_entry_points()
        if cls._backends.pop(name.lower(), None) is None:
            msg = f"Unknown solver backend: `{name}`"
            raise UnknownBackend(msg)
        logger.debug("Unregistered solver backend `%s`", name.lower())

    @classmethod
    def backends(cls) -> tuple[str, ...]:
        """Return the names of all registered backends, in sorted order."""
        cls._load_entry_points()
        return tuple(sorted(cls._backends))

    @classmethod
    def is_registered(cls, name: str) -> bool:
        """Check if a backend is registered.

        Args:
            name: The name of the backend, optionally followed by `/method`.

        Returns:
            `True` if the backend is registered, and supports the method if given.
        """
        cls._load_entry_points()
        backend, _, method = name.lower().partition("/")
        constructor = cls._backends.get(backend)
        if constructor is None:
            return False
        return not method or _supports(constructor, method)

    @classmethod
    def create(
        cls, name: str, problem: Problem, config: SolverConfig | None = None
    ) -> Solver:
        """Create a solver.

        The backend is looked up before anything else is done: if it is not
        registered, no solver is constructed and the problem is not locked.

        Args:
            name:    The name of the backend, optionally followed by `/method`.
            problem: The problem to solve.
            config:  The solver configuration.

        Returns:
            The new solver.

        Raises:
            UnknownBackend: If the backend is not registered, or does not
                            support the requested method.
        """
        cls._load_entry_points()
        backend, _, method = name.strip().lower().partition("/")
        constructor = cls._backends.get(backend)
        if constructor is None:
            msg = f"Unknown solver backend: `{backend}`"
            raise UnknownBackend(msg)
        if config is None:
            config = SolverConfig()
        if method and method != config.method:
            config = SolverConfig.model_validate(
                {**config.model_dump(), "method": method}
            )
        if not _supports(constructor, config.method):
            msg = (
                f"Solver backend `{backend}` does not support "
                f"method `{config.method}`"
            )
            raise UnknownBackend(msg)
        logger.debug("Creating solver `%s/%s`", backend, config.method)
        return constructor(problem, config)

    @classmethod
    def _add(cls, name: str, constructor: SolverConstructor) -> None:
        key = name.strip().lower()
        if not key or "/" in key:
            msg = f"Invalid solver backend name: `{name}`"
            raise ValueError(msg)
        if key in cls._backends:
            msg = f"Duplicate solver backend name: `{key}`"
            raise BackendAlreadyRegistered(msg)
        cls._backends[key] = constructor
        logger.debug("Registered solver backend `%s`", key)

    @classmethod
    def _load_entry_points(cls) -> None:
        if cls._entry_points_loaded:
            return
        cls._entry_points_loaded = True
        for name, constructor in _from_entry_points().items():
            cls._add(name, constructor)


def _supports(constructor: SolverConstructor, method: str) -> bool:
    if isinstance(constructor, type) and issubclass(constructor, Solver):
        return constructor.is_supported(method)
    return True


@cache  # Without the cache, repeated calls are very slow
def _from_entry_points() -> dict[str, SolverConstructor]:
    constructors: dict[str, SolverConstructor] = {}
    for entry_point in entry_points().select(group=ENTRY_POINT_GROUP):
        constructor = entry_point.load()
        if not callable(constructor):
            msg = (
                f"Incorrect type for solver backend `{entry_point.name}`"
                f": {type(constructor)}"
            )
            raise TypeError(msg)
        constructors[entry_point.name] = constructor
    return constructors
