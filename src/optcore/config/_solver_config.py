"""Configuration class for solvers."""

from __future__ import annotations

from typing import Any, Self

from pydantic import (
    ConfigDict,
    NonNegativeFloat,
    PositiveInt,
    model_validator,
)

from ._cache_config import CacheConfig  # noqa: TC001
from .utils import ImmutableBaseModel


class SolverConfig(ImmutableBaseModel):
    """Configuration class for solvers.

    This class, `SolverConfig`, defines the settings that are passed to a
    [`Solver`][optcore.solver.Solver] when it is created by the
    [`SolverFactory`][optcore.solver.SolverFactory].

    While solver backends can have diverse parameters, this class provides a
    standardized set of settings that are commonly used:

    - **`method`**: The method to use, if the backend supports several. The
      [`SolverFactory`][optcore.solver.SolverFactory] fills this field when
      the backend is requested in the `"backend/method"` format.
    - **`max_iterations`**: The maximum number of iterations allowed.
    - **`tolerance`**: The convergence tolerance used as a stopping criterion.
      The exact definition depends on the backend.
    - **`cache`**: If set, the objective and constraint functions are wrapped
      in evaluation caches configured by a
      [`CacheConfig`][optcore.config.CacheConfig] object.
    - **`realtime_callbacks`**: If `True`, callbacks are invoked while memory
      allocation is forbidden (see [`optcore.allocation`][optcore.allocation]).
    - **`options`**: A dictionary of backend-specific options. Backends may
      validate these options and store them as solver parameters.

    Attributes:
        method:             Name of the backend method (default: `"default"`).
        max_iterations:     Maximum number of iterations (default: 3000).
        tolerance:          Convergence tolerance (default: 1e-6).
        cache:              Optional evaluation cache configuration.
        realtime_callbacks: Forbid allocation in callbacks (default: `False`).
        options:            Backend-specific options (optional).
    """

    method: str = "default"
    max_iterations: PositiveInt = 3000
    tolerance: NonNegativeFloat = 1e-6
    cache: CacheConfig | None = None
    realtime_callbacks: bool = False
    options: dict[str, Any] | None = None

    model_config = ConfigDict(
        extra="forbid",
        str_min_length=1,
        str_strip_whitespace=True,
        validate_default=True,
    )

    @model_validator(mode="after")
    def _method(self) -> Self:
        self._mutable()
        if "/" in self.method:
            msg = f"malformed method name: `{self.method}`"
            raise ValueError(msg)
        self.method = self.method.lower()
        self._immutable()
        return self
