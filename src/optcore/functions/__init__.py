"""The `optcore.functions` module provides the function hierarchy.

All objectives and constraints of an optimization problem are
[`Function`][optcore.functions.Function] objects. A function maps an input
vector of size $n$ to an output vector of size $m$, and supports a set of
evaluations, its [`capabilities`][optcore.enums.Capability]:

- [`Function`][optcore.functions.Function]: value only.
- [`DifferentiableFunction`][optcore.functions.DifferentiableFunction]:
  value, gradients and jacobian.
- [`TwiceDifferentiableFunction`][optcore.functions.TwiceDifferentiableFunction]:
  in addition, hessians.
- [`NTimesDifferentiableFunction`][optcore.functions.NTimesDifferentiableFunction]:
  functions of a single variable with derivatives up to a given order.

The module also provides concrete functions, operators that combine
functions, a finite difference wrapper that adds gradients to any function,
and a caching wrapper that memoizes evaluations.
"""

from ._cache import CachedFunction, EvaluationRecord, LRUCache
from ._finite_difference import (
    FiniteDifferenceGradient,
    check_gradient,
    check_gradient_and_raise,
)
from ._function import (
    DifferentiableFunction,
    Function,
    NTimesDifferentiableFunction,
    TwiceDifferentiableFunction,
)
from ._numeric import (
    CallableFunction,
    ConstantFunction,
    Cos,
    IdentityFunction,
    LinearFunction,
    Polynomial,
    QuadraticFunction,
    Sin,
)
from ._operators import (
    Chain,
    Minus,
    Plus,
    Scalar,
    Selection,
    SelectionById,
    Split,
    SumOfC1Squares,
)

__all__ = [
    "CachedFunction",
    "CallableFunction",
    "Chain",
    "ConstantFunction",
    "Cos",
    "DifferentiableFunction",
    "EvaluationRecord",
    "FiniteDifferenceGradient",
    "Function",
    "IdentityFunction",
    "LRUCache",
    "LinearFunction",
    "Minus",
    "NTimesDifferentiableFunction",
    "Plus",
    "Polynomial",
    "QuadraticFunction",
    "Scalar",
    "Selection",
    "SelectionById",
    "Sin",
    "Split",
    "SumOfC1Squares",
    "TwiceDifferentiableFunction",
    "check_gradient",
    "check_gradient_and_raise",
]
