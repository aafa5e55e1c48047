"""Helpers shared by solver backends."""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from optcore.exceptions import UnsupportedOperation

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from optcore.problem import Problem

_MESSAGES = {
    "bounds": "bound constraints",
    "eq": "equality constraints",
    "ineq": "inequality constraints",
}

_EQUALITY_TOLERANCE = 1e-15


def constraint_bounds(
    problem: Problem,
) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """Concatenate the bounds of all constraint outputs of a problem.

    Args:
        problem: The problem.

    Returns:
        The lower and upper bounds, empty if the problem has no constraints.
    """
    if not problem.constraints:
        return np.zeros(0), np.zeros(0)
    return (
        np.concatenate([constraint.lower for constraint in problem.constraints]),
        np.concatenate([constraint.upper for constraint in problem.constraints]),
    )


def validate_supported_constraints(
    problem: Problem,
    method: str,
    supported_constraints: dict[str, set[str]],
    required_constraints: dict[str, set[str]],
) -> None:
    """Check that a backend method can handle the constraints of a problem.

    Three kinds of constraint are distinguished, keyed by `"bounds"` (finite
    bounds on the variables), `"eq"` (constraint outputs with equal lower and
    upper bounds), and `"ineq"` (other constraint outputs with at least one
    finite bound). The two dictionaries map each kind to the methods that
    support it, and to the methods that cannot work without it:

    ```python
    supported = {"bounds": {"l-bfgs-b", "slsqp"}, "eq": {"slsqp"}}
    required = {}
    ```

    Method names are compared case-insensitively.

    Args:
        problem:               The problem.
        method:                The name of the method.
        supported_constraints: Methods supporting each kind of constraint.
        required_constraints:  Methods requiring each kind of constraint.

    Raises:
        UnsupportedOperation: If the problem has a kind of constraint the method
                              does not support, or lacks one it requires.
    """
    lower, upper = problem.argument_bounds
    present = {
        "bounds": bool(np.isfinite(lower).any() or np.isfinite(upper).any()),
    }
    lower, upper = constraint_bounds(problem)
    is_eq = np.abs(upper - lower) < _EQUALITY_TOLERANCE
    present["eq"] = bool(is_eq.any())
    present["ineq"] = bool(
        (~is_eq & (np.isfinite(lower) | np.isfinite(upper))).any()
    )
    method = method.lower()
    for kind, have_constraint in present.items():
        supported = {
            name.lower() for name in supported_constraints.get(kind, set())
        }
        required = {name.lower() for name in required_constraints.get(kind, set())}
        if have_constraint and method not in supported:
            msg = f"solver method {method} does not support {_MESSAGES[kind]}"
            raise UnsupportedOperation(msg)
        if not have_constraint and method in required:
            msg = f"solver method {method} requires {_MESSAGES[kind]}"
            raise UnsupportedOperation(msg)


class NormalizedConstraints:
    r"""Rewrite bounded constraint outputs as $g(x) = 0$ or $g(x) \geq 0$.

    Many backends only accept constraints in one of these two forms. Each
    constraint output $c_i$ with bounds $[l_i, u_i]$ and scaling factor $s_i$
    is first scaled, and then mapped to one or two normalized constraints:

    - if $l_i = u_i$, to the equality $s_i c_i - s_i l_i = 0$;
    - otherwise, for a finite lower bound to $s_i c_i - s_i l_i \geq 0$, and
      for a finite upper bound to $s_i u_i - s_i c_i \geq 0$.

    A negative scaling factor swaps the role of the bounds.

    A backend usually evaluates all constraints for a given variable vector
    at once, and then queries the normalized constraints one by one. Call
    [`reset`][optcore.solver.utils.NormalizedConstraints.reset] when the
    variables change, then pass the raw values to
    [`set_constraints`][optcore.solver.utils.NormalizedConstraints.set_constraints]
    or the raw jacobian to
    [`set_gradients`][optcore.solver.utils.NormalizedConstraints.set_gradients].
    """

    def __init__(
        self,
        lower_bounds: NDArray[np.float64],
        upper_bounds: NDArray[np.float64],
        scaling: NDArray[np.float64] | None = None,
    ) -> None:
        """Initialize the normalized constraints.

        Args:
            lower_bounds: The lower bounds of the constraint outputs.
            upper_bounds: The upper bounds of the constraint outputs.
            scaling:      Scaling factors of the constraint outputs.
        """
        if scaling is None:
            scaling = np.ones_like(lower_bounds)
        is_eq: list[bool] = []
        indices: list[int] = []
        rhs: list[float] = []
        factors: list[float] = []
        for idx, (lower, upper, scale) in enumerate(
            zip(lower_bounds, upper_bounds, scaling, strict=True)
        ):
            low, high = sorted((lower * scale, upper * scale))
            if abs(high - low) < _EQUALITY_TOLERANCE:
                entries = [(low, scale, True)]
            else:
                entries = []
                if np.isfinite(low):
                    entries.append((low, scale, False))
                if np.isfinite(high):
                    entries.append((-high, -scale, False))
            for value, factor, equality in entries:
                is_eq.append(equality)
                indices.append(idx)
                rhs.append(value)
                factors.append(factor)

        self._is_eq = is_eq
        self._indices = np.array(indices, dtype=np.intp)
        self._rhs = np.array(rhs, dtype=np.float64)
        self._factors = np.array(factors, dtype=np.float64)
        self._constraints: NDArray[np.float64] | None = None
        self._gradients: NDArray[np.float64] | None = None

    @property
    def is_eq(self) -> list[bool]:
        """For each normalized constraint, whether it is an equality."""
        return self._is_eq

    def reset(self) -> None:
        """Forget the stored values and gradients."""
        self._constraints = None
        self._gradients = None

    @property
    def constraints(self) -> NDArray[np.float64] | None:
        """The normalized values, `None` if not set since the last reset."""
        return self._constraints

    @property
    def gradients(self) -> NDArray[np.float64] | None:
        """The normalized gradients, `None` if not set since the last reset."""
        return self._gradients

    def set_constraints(self, values: NDArray[np.float64]) -> None:
        """Normalize and store raw constraint values.

        Args:
            values: The values of all constraint outputs.
        """
        self._constraints = values[self._indices] * self._factors - self._rhs

    def set_gradients(self, values: NDArray[np.float64]) -> None:
        """Normalize and store a raw constraint jacobian.

        Args:
            values: The jacobian, one row per constraint output.
        """
        self._gradients = values[self._indices, :] * self._factors[:, np.newaxis]
