from collections.abc import Iterator
from typing import Any

import numpy as np
import pytest
from numpy.typing import NDArray

from optcore.enums import TWICE_DIFFERENTIABLE, Capability
from optcore.functions import Function, QuadraticFunction
from optcore.problem import Problem
from optcore.solver import SolverFactory


def pytest_addoption(parser: Any) -> Any:
    parser.addoption(
        "--run-slow", action="store_true", default=False, help="run slow tests"
    )


def pytest_collection_modifyitems(config: Any, items: list[Any]) -> None:
    if not config.getoption("--run-slow"):
        skip_slow = pytest.mark.skip(reason="need --run-slow option to run")
        for item in items:
            if "slow" in item.keywords:
                item.add_marker(skip_slow)


class CountingFunction(Function):
    """Wrap a function, and count the calls to the wrapped function."""

    def __init__(self, function: Function) -> None:
        super().__init__(function.input_size, function.output_size, function.name)
        self.function = function
        self.value_calls = 0
        self.gradient_calls = 0
        self.jacobian_calls = 0
        self.hessian_calls = 0

    @property
    def capabilities(self) -> Capability:
        return self.function.capabilities & TWICE_DIFFERENTIABLE

    @property
    def calls(self) -> int:
        return (
            self.value_calls
            + self.gradient_calls
            + self.jacobian_calls
            + self.hessian_calls
        )

    def _compute(self, result: NDArray[np.float64], x: NDArray[np.float64]) -> None:
        self.value_calls += 1
        self.function.value(x, out=result)

    def _gradient(
        self,
        gradient: NDArray[np.float64],
        x: NDArray[np.float64],
        function_index: int,
    ) -> None:
        self.gradient_calls += 1
        self.function.gradient(x, function_index, out=gradient)

    def _jacobian(self, jacobian: NDArray[np.float64], x: NDArray[np.float64]) -> None:
        self.jacobian_calls += 1
        self.function.jacobian(x, out=jacobian)

    def _hessian(
        self,
        hessian: NDArray[np.float64],
        x: NDArray[np.float64],
        function_index: int,
    ) -> None:
        self.hessian_calls += 1
        self.function.hessian(x, function_index, out=hessian)


@pytest.fixture(name="sphere")
def sphere_fixture() -> QuadraticFunction:
    return QuadraticFunction(np.eye(2), name="sphere")


@pytest.fixture(name="shifted_sphere")
def shifted_sphere_fixture() -> QuadraticFunction:
    # (x0 - 0.5)^2 + (x1 - 0.5)^2 + (x2 - 0.5)^2, minimum at 0.5
    return QuadraticFunction(np.eye(3), b=-np.ones(3), c=0.75, name="shifted")


@pytest.fixture(name="counting")
def counting_fixture() -> Any:
    return CountingFunction


@pytest.fixture(name="make_problem")
def make_problem_fixture(sphere: QuadraticFunction) -> Any:
    def _make_problem(**kwargs: Any) -> Problem:
        kwargs.setdefault("starting_point", [3.0, 3.0])
        return Problem(sphere, **kwargs)

    return _make_problem


@pytest.fixture(autouse=True)
def restore_backends() -> Iterator[None]:
    SolverFactory.backends()
    backends = dict(SolverFactory._backends)  # noqa: SLF001
    yield
    SolverFactory._backends.clear()  # noqa: SLF001
    SolverFactory._backends.update(backends)  # noqa: SLF001
