"""Utilities for checking and converting configuration values.

These helper functions convert user input into standardized, immutable NumPy
arrays. They are used by the [`Problem`][optcore.problem.Problem] class and
by the concrete functions of [`optcore.functions`][optcore.functions].
"""

from typing import Any

import numpy as np
from numpy.typing import ArrayLike, NDArray
from pydantic import BaseModel


def immutable_array(
    array_like: ArrayLike,
    **kwargs: Any,  # noqa: ANN401
) -> NDArray[Any]:
    """Copy input into a read-only NumPy array.

    Args:
        array_like: The input data.
        kwargs:     Keyword arguments for `numpy.array`, such as `dtype`.

    Returns:
        A new array that cannot be written to.
    """
    array = np.array(array_like, **kwargs)
    array.setflags(write=False)
    return array


def vector(array_like: ArrayLike) -> NDArray[np.float64]:
    """Convert input to an immutable 1D array of floating point values.

    Scalars become arrays of length one, and higher dimensional input is
    flattened.

    Args:
        array_like: The input data to convert.

    Returns:
        A new immutable 1D NumPy array.
    """
    return immutable_array(array_like, dtype=np.float64, ndmin=1).ravel()


class ImmutableBaseModel(BaseModel):
    """Base class for configuration models that cannot be modified.

    Unlike a model configured with `frozen=True`, a subclass may still adjust
    its own fields inside an `after` model validator, by calling `_mutable()`
    before and `_immutable()` after the changes. Any other assignment to a
    field raises an `AttributeError`.
    """

    _is_immutable: bool = False

    def _immutable(self) -> None:
        self._is_immutable = True

    def _mutable(self) -> None:
        self._is_immutable = False

    def __setattr__(self, name: str, value: Any) -> None:  # noqa: ANN401
        if name != "_is_immutable" and self._is_immutable:
            msg = f"{self.__class__.__name__} is immutable"
            raise AttributeError(msg)
        super().__setattr__(name, value)
