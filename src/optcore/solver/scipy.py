"""This module implements the SciPy solver backend."""

from __future__ import annotations

from collections.abc import Callable
from functools import partial
from typing import TYPE_CHECKING, Any, ClassVar, Final, TypeAlias

import numpy as np
from numpy.typing import NDArray
from scipy.optimize import Bounds, minimize

from optcore.config.options import OptionsSchemaModel
from optcore.enums import Capability
from optcore.exceptions import SolverWarning
from optcore.functions import FiniteDifferenceGradient
from optcore.state import Parameter

from .base import Solver
from .utils import (
    NormalizedConstraints,
    constraint_bounds,
    validate_supported_constraints,
)

if TYPE_CHECKING:
    from optcore.config import SolverConfig
    from optcore.functions import Function
    from optcore.problem import Problem
    from optcore.results import SolverResult

_SUPPORTED_METHODS: Final[set[str]] = {
    name.lower()
    for name in (
        "Nelder-Mead",
        "Powell",
        "CG",
        "BFGS",
        "L-BFGS-B",
        "TNC",
        "COBYLA",
        "SLSQP",
        "trust-constr",
    )
}

# Categorize the methods by the types of constraint they support.

_CONSTRAINT_SUPPORT_BOUNDS: Final = {
    name.lower()
    for name in [
        "Nelder-Mead",
        "Powell",
        "L-BFGS-B",
        "TNC",
        "SLSQP",
        "trust-constr",
    ]
}
_CONSTRAINT_SUPPORT_EQ: Final = {name.lower() for name in ["SLSQP", "trust-constr"]}
_CONSTRAINT_SUPPORT_INEQ: Final = {
    name.lower() for name in ["COBYLA", "SLSQP", "trust-constr"]
}

# These methods do not use a gradient:
_NO_GRADIENT: Final = {name.lower() for name in ["Nelder-Mead", "Powell", "COBYLA"]}


_ConstraintType: TypeAlias = (
    str | Callable[..., float] | Callable[..., NDArray[np.float64]]
)


class SciPySolver(Solver):
    """SciPy solver backend.

    This class provides an interface to several optimization algorithms from
    SciPy's
    [`scipy.optimize`](https://docs.scipy.org/doc/scipy/reference/optimize.html)
    module. Request it from the factory as `"scipy"` to use the default
    `SLSQP` method, or as `"scipy/<method>"` to select another method.

    The `max_iterations` and `tolerance` fields of the
    [`SolverConfig`][optcore.config.SolverConfig] object are passed to the
    algorithm. Method-specific options are passed via its `options` field,
    and are validated against the options supported by the method.

    Bounds and constraints are only accepted by methods that support them.
    Variables are scaled by the argument scaling factors of the problem before
    they are passed to the algorithm, and constraint values by the scaling
    factors of the constraints. Gradients that the problem functions do not
    provide are approximated by finite differences.

    Each iteration of the algorithm is reported to the callbacks of the
    solver. If the algorithm does not report success, the result carries a
    warning with the message of the algorithm.
    """

    _supported_constraints: ClassVar[dict[str, set[str]]] = {
        "bounds": _CONSTRAINT_SUPPORT_BOUNDS,
        "eq": _CONSTRAINT_SUPPORT_EQ,
        "ineq": _CONSTRAINT_SUPPORT_INEQ,
    }
    _required_constraints: ClassVar[dict[str, set[str]]] = {}

    def __init__(self, problem: Problem, config: SolverConfig | None = None) -> None:
        """Initialize the SciPy solver.

        See the [`Solver`][optcore.solver.Solver] abstract base class.

        # noqa
        """
        super().__init__(problem, config)
        self._scale = problem.argument_scaling
        for key, value in self._options.items():
            self.parameters[key] = Parameter(value, f"option of scipy/{self._method}")

        self._objective_gradient = _with_gradient(self.objective)
        self._constraint_jacobians = tuple(
            _with_gradient(function) for function in self.constraints
        )
        self._normalized_constraints: NormalizedConstraints | None = None
        if problem.constraints:
            lower, upper = constraint_bounds(problem)
            scaling = np.concatenate(
                [constraint.scaling for constraint in problem.constraints]
            )
            self._normalized_constraints = NormalizedConstraints(
                lower, upper, scaling
            )
        self._cached_variables: NDArray[np.float64] | None = None

    @classmethod
    def is_supported(cls, method: str) -> bool:
        """Check if a method is supported.

        See the [`Solver`][optcore.solver.Solver] abstract base class.

        # noqa
        """
        return method.lower() in (_SUPPORTED_METHODS | {"default"})

    def _check(self, problem: Problem) -> None:
        self._method = self.config.method
        if self._method == "default":
            self._method = "slsqp"
        if self._method not in _SUPPORTED_METHODS:
            msg = f"SciPy solver algorithm {self._method} is not supported"
            raise NotImplementedError(msg)
        validate_supported_constraints(
            problem,
            self._method,
            self._supported_constraints,
            self._required_constraints,
        )
        self._options = self._parse_options()

    def _solve(self) -> SolverResult:
        self._cached_variables = None
        result = minimize(
            fun=self._function,
            x0=self.problem.starting_point * self._scale,
            method=self._method,
            jac=(False if self._method in _NO_GRADIENT else self._gradient),
            bounds=self._initialize_bounds(),
            constraints=self._initialize_constraints(),
            tol=self.config.tolerance,
            callback=self._callback,
            options=self._options if self._options else None,
        )
        optimum = self._make_result(result.x / self._scale)
        if not result.success:
            raise SolverWarning(str(result.message), optimum)
        return optimum

    def _initialize_bounds(self) -> Bounds | None:
        lower, upper = self.problem.argument_bounds
        if np.isfinite(lower).any() or np.isfinite(upper).any():
            lower = lower * self._scale
            upper = upper * self._scale
            return Bounds(np.minimum(lower, upper), np.maximum(lower, upper))
        return None

    def _initialize_constraints(self) -> list[dict[str, _ConstraintType]]:
        if self._normalized_constraints is None:
            return []

        def _constraint_entry(type_: str, index: int) -> dict[str, _ConstraintType]:
            fun = partial(self._constraint_function, index=index)
            if self._method == "cobyla":
                return {"type": type_, "fun": fun}
            jac = partial(self._constraint_gradient, index=index)
            return {"type": type_, "fun": fun, "jac": jac}

        return [
            _constraint_entry("eq" if is_eq else "ineq", idx)
            for idx, is_eq in enumerate(self._normalized_constraints.is_eq)
        ]

    def _function(self, variables: NDArray[np.float64]) -> float:
        return float(self.objective.value(variables / self._scale)[0])

    def _gradient(self, variables: NDArray[np.float64]) -> NDArray[np.float64]:
        gradient = self._objective_gradient.gradient(variables / self._scale)
        return gradient / self._scale

    def _constraint_function(
        self, variables: NDArray[np.float64], index: int
    ) -> float:
        normalized = self._update_variables(variables)
        if normalized.constraints is None:
            normalized.set_constraints(self.constraint_values(variables / self._scale))
        assert normalized.constraints is not None
        return float(normalized.constraints[index])

    def _constraint_gradient(
        self, variables: NDArray[np.float64], index: int
    ) -> NDArray[np.float64]:
        normalized = self._update_variables(variables)
        if normalized.gradients is None:
            x = variables / self._scale
            jacobian = np.vstack(
                [function.jacobian(x) for function in self._constraint_jacobians]
            )
            normalized.set_gradients(jacobian / self._scale[np.newaxis, :])
        assert normalized.gradients is not None
        return normalized.gradients[index, :]

    def _update_variables(
        self, variables: NDArray[np.float64]
    ) -> NormalizedConstraints:
        assert self._normalized_constraints is not None
        if self._cached_variables is None or not np.array_equal(
            variables, self._cached_variables
        ):
            self._cached_variables = variables.copy()
            self._normalized_constraints.reset()
        return self._normalized_constraints

    def _callback(
        self, variables: NDArray[np.float64], *_: Any  # noqa: ANN401
    ) -> None:
        x = variables / self._scale
        self._iterate(x, cost=float(self.objective.value(x)[0]))

    def _parse_options(self) -> dict[str, Any]:
        options = OptionsSchemaModel.model_validate(_OPTIONS_SCHEMA).validate_options(
            self._method, self.config.options
        )
        # The configured maximum number of iterations takes precedence.
        if self._method == "tnc":
            options["maxfun"] = self.config.max_iterations
        else:
            options["maxiter"] = self.config.max_iterations
        return options


def _with_gradient(function: Function) -> Function:
    if function.supports(Capability.JACOBIAN):
        return function
    return FiniteDifferenceGradient(function)


_OPTIONS_SCHEMA: dict[str, Any] = {
    "methods": {
        "Nelder-Mead": {
            "options": {
                "disp": bool,
                "maxiter": int,
                "maxfev": int,
                "xatol": float,
                "fatol": float,
                "adaptive": bool,
            },
            "url": "https://docs.scipy.org/doc/scipy/reference/optimize.minimize-neldermead.html",
        },
        "Powell": {
            "options": {
                "disp": bool,
                "maxiter": int,
                "maxfev": int,
                "xtol": float,
                "ftol": float,
            },
            "url": "https://docs.scipy.org/doc/scipy/reference/optimize.minimize-powell.html",
        },
        "CG": {
            "options": {
                "disp": bool,
                "maxiter": int,
                "gtol": float,
                "norm": float,
                "c1": float,
                "c2": float,
            },
            "url": "https://docs.scipy.org/doc/scipy/reference/optimize.minimize-cg.html",
        },
        "BFGS": {
            "options": {
                "disp": bool,
                "maxiter": int,
                "gtol": float,
                "norm": float,
                "xrtol": float,
                "c1": float,
                "c2": float,
            },
            "url": "https://docs.scipy.org/doc/scipy/reference/optimize.minimize-bfgs.html",
        },
        "L-BFGS-B": {
            "options": {
                "maxiter": int,
                "maxcor": int,
                "ftol": float,
                "gtol": float,
                "maxfun": int,
                "maxls": int,
            },
            "url": "https://docs.scipy.org/doc/scipy/reference/optimize.minimize-lbfgsb.html",
        },
        "TNC": {
            "options": {
                "disp": bool,
                "maxfun": int,
                "offset": float,
                "maxCGit": int,
                "eta": float,
                "stepmx": float,
                "accuracy": float,
                "minfev": float,
                "ftol": float,
                "xtol": float,
                "gtol": float,
                "rescale": float,
            },
            "url": "https://docs.scipy.org/doc/scipy/reference/optimize.minimize-tnc.html",
        },
        "COBYLA": {
            "options": {
                "disp": bool,
                "maxiter": int,
                "rhobeg": float,
                "tol": float,
                "catol": float,
            },
            "url": "https://docs.scipy.org/doc/scipy/reference/optimize.minimize-cobyla.html",
        },
        "SLSQP": {
            "options": {
                "disp": bool,
                "maxiter": int,
                "ftol": float,
            },
            "url": "https://docs.scipy.org/doc/scipy/reference/optimize.minimize-slsqp.html",
        },
        "trust-constr": {
            "options": {
                "disp": bool,
                "maxiter": int,
                "gtol": float,
                "xtol": float,
                "barrier_tol": float,
                "initial_tr_radius": float,
                "initial_constr_penalty": float,
                "initial_barrier_parameter": float,
                "initial_barrier_tolerance": float,
                "verbose": int,
            },
            "url": "https://docs.scipy.org/doc/scipy/reference/optimize.minimize-trustconstr.html",
        },
    },
}
