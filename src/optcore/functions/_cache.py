"""Memoization of function evaluations."""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from contextlib import nullcontext
from dataclasses import dataclass
from typing import TYPE_CHECKING, Generic, TypeVar

import numpy as np

from optcore.allocation import check_allocation
from optcore.enums import TWICE_DIFFERENTIABLE, Capability

from ._function import Function

if TYPE_CHECKING:
    from contextlib import AbstractContextManager

    from numpy.typing import ArrayLike, NDArray

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _as_key(key: ArrayLike) -> NDArray[np.float64]:
    # Adding zero turns -0.0 into 0.0, equal vectors then have equal bytes.
    return np.asarray(key, dtype=np.float64).ravel() + 0.0


class LRUCache(Generic[T]):
    """A bounded cache keyed by vectors, with least-recently-used eviction.

    Keys are float vectors, keys of other shapes are flattened. By default,
    keys match only if they are exactly equal, element by element, so `0.0`
    and `-0.0` match. If a positive `tolerance` is given, a key matches a
    stored key if the maximum absolute difference of their elements does not
    exceed the tolerance. In that case the most recently used match
    is returned.

    Every successful [`get`][optcore.functions.LRUCache.get] counts as a hit
    and marks the entry as most recently used, every failed lookup counts as a
    miss. Inserting a new key when the cache is full evicts the least recently
    used entry.
    """

    def __init__(self, capacity: int, tolerance: float = 0.0) -> None:
        """Initialize the cache.

        Args:
            capacity:  The maximum number of entries.
            tolerance: The maximum distance between matching keys.

        Raises:
            ValueError: If the capacity is not positive or the tolerance negative.
        """
        if capacity < 1:
            msg = f"the cache capacity must be positive, got {capacity}"
            raise ValueError(msg)
        if tolerance < 0.0:
            msg = f"the cache tolerance cannot be negative, got {tolerance}"
            raise ValueError(msg)
        self._capacity = capacity
        self._tolerance = tolerance
        self._entries: OrderedDict[bytes, tuple[NDArray[np.float64], T]] = (
            OrderedDict()
        )
        self.hits = 0
        self.misses = 0

    @property
    def capacity(self) -> int:
        """The maximum number of entries."""
        return self._capacity

    @property
    def tolerance(self) -> float:
        """The maximum distance between matching keys."""
        return self._tolerance

    def get(self, key: ArrayLike, default: T | None = None) -> T | None:
        """Retrieve the value stored for a key.

        Args:
            key:     The key vector.
            default: The value returned if the key is not found.

        Returns:
            The stored value, or `default`.
        """
        found = self._find(_as_key(key))
        if found is None:
            self.misses += 1
            return default
        self.hits += 1
        self._entries.move_to_end(found)
        return self._entries[found][1]

    def put(self, key: ArrayLike, value: T) -> None:
        """Store a value, evicting the least recently used entry if needed.

        If a matching key is already stored, its value is replaced.

        Args:
            key:   The key vector.
            value: The value to store.
        """
        stored = _as_key(key)
        found = self._find(stored)
        if found is not None:
            self._entries[found] = (self._entries[found][0], value)
            self._entries.move_to_end(found)
            return
        check_allocation("insertion in an evaluation cache")
        stored.setflags(write=False)
        self._entries[stored.tobytes()] = (stored, value)
        if len(self._entries) > self._capacity:
            _, (evicted, _) = self._entries.popitem(last=False)
            logger.debug("Evicted cache entry at %s", evicted)

    def __contains__(self, key: object) -> bool:
        """Check if a key is stored, without affecting usage order or counts."""
        return self._find(_as_key(key)) is not None  # type: ignore[arg-type]

    def __len__(self) -> int:  # noqa: D105
        return len(self._entries)

    def size(self) -> int:
        """Return the number of stored entries."""
        return len(self._entries)

    def keys(self) -> list[NDArray[np.float64]]:
        """Return the stored keys, from least to most recently used."""
        return [key for key, _ in self._entries.values()]

    def clear(self) -> None:
        """Remove all entries and reset the hit and miss counts."""
        self._entries.clear()
        self.hits = 0
        self.misses = 0

    def _find(self, key: NDArray[np.float64]) -> bytes | None:
        if self._tolerance == 0.0:
            hashed = key.tobytes()
            return hashed if hashed in self._entries else None
        for hashed, (stored, _) in reversed(self._entries.items()):
            if stored.shape == key.shape and np.all(
                np.abs(stored - key) <= self._tolerance
            ):
                return hashed
        return None


@dataclass(frozen=True, slots=True)
class EvaluationRecord:
    """The evaluations of a function at one point.

    Attributes:
        value:    The value of the function, shape $(m,)$.
        jacobian: The jacobian matrix, shape $(m, n)$, if supported.
        hessians: The hessians of all outputs, shape $(m, n, n)$, if supported.
    """

    value: NDArray[np.float64]
    jacobian: NDArray[np.float64] | None = None
    hessians: NDArray[np.float64] | None = None


class _Entry:
    __slots__ = ("has_gradient", "has_hessian", "hessians", "jacobian", "value")

    def __init__(self) -> None:
        self.value: NDArray[np.float64] | None = None
        self.jacobian: NDArray[np.float64] | None = None
        self.has_gradient: NDArray[np.bool_] | None = None
        self.hessians: NDArray[np.float64] | None = None
        self.has_hessian: NDArray[np.bool_] | None = None


class CachedFunction(Function):
    """Wrap a function to memoize its evaluations.

    The wrapper supports the same evaluations as the wrapped function, so it
    can be used in its place: requesting a derivative that the wrapped
    function does not support still raises an
    [`UnsupportedOperation`][optcore.exceptions.UnsupportedOperation] error.

    Evaluations are stored per input vector in an
    [`LRUCache`][optcore.functions.LRUCache]. For each input vector the value,
    the gradients of individual outputs, the jacobian, and the hessians are
    stored as they are computed. A request for a quantity that is already
    stored counts as a hit and does not call the wrapped function; any other
    request counts as a miss.

    The wrapper is not thread-safe by default. If `thread_safe` is set, every
    access is protected by a single lock.
    """

    def __init__(
        self,
        function: Function,
        capacity: int = 10,
        tolerance: float = 0.0,
        *,
        thread_safe: bool = False,
        name: str = "",
    ) -> None:
        """Initialize the wrapper.

        Args:
            function:    The function to wrap.
            capacity:    The maximum number of cached input vectors.
            tolerance:   The maximum distance between matching input vectors.
            thread_safe: Protect all accesses with a lock.
            name:        A descriptive name, defaults to the name of `function`.
        """
        super().__init__(
            function.input_size, function.output_size, name or function.name
        )
        self._function = function
        self._cache: LRUCache[_Entry] = LRUCache(capacity, tolerance)
        self._lock: AbstractContextManager[object] = (
            threading.Lock() if thread_safe else nullcontext()
        )
        self.hits = 0
        self.misses = 0

    @property
    def function(self) -> Function:
        """The wrapped function."""
        return self._function

    @property
    def capabilities(self) -> Capability:
        """The set of evaluations supported by this function."""
        return self._function.capabilities & TWICE_DIFFERENTIABLE

    def size(self) -> int:
        """Return the number of cached input vectors."""
        with self._lock:
            return self._cache.size()

    def clear(self) -> None:
        """Remove all cached evaluations and reset the hit and miss counts."""
        with self._lock:
            self._cache.clear()
            self.hits = 0
            self.misses = 0

    def get_or_compute(self, x: ArrayLike) -> EvaluationRecord:
        """Retrieve all supported evaluations at a point.

        On a miss, the value and all derivatives that the wrapped function
        supports are computed and stored. The arrays in the returned record are
        the cached arrays, and must not be modified.

        Args:
            x: The input vector.

        Returns:
            The evaluations at `x`.
        """
        x = self._check_input(x)
        with self._lock:
            entry = self._entry(x)
            complete = self._has_value(entry)
            value = self._value(entry, x)
            jacobian = None
            if self.supports(Capability.JACOBIAN):
                complete = complete and self._has_jacobian(entry)
                jacobian = self._jacobian_of(entry, x)
            hessians = None
            if self.supports(Capability.HESSIAN):
                complete = complete and self._has_hessians(entry)
                for idx in range(self._output_size):
                    self._hessian_of(entry, x, idx)
                hessians = entry.hessians
            if complete:
                self.hits += 1
            else:
                self.misses += 1
            return EvaluationRecord(value, jacobian, hessians)

    def _compute(self, result: NDArray[np.float64], x: NDArray[np.float64]) -> None:
        with self._lock:
            entry = self._entry(x)
            self._count(self._has_value(entry))
            result[:] = self._value(entry, x)

    def _gradient(
        self,
        gradient: NDArray[np.float64],
        x: NDArray[np.float64],
        function_index: int,
    ) -> None:
        with self._lock:
            entry = self._entry(x)
            self._count(
                entry.has_gradient is not None
                and bool(entry.has_gradient[function_index])
            )
            gradient[:] = self._gradient_of(entry, x, function_index)

    def _jacobian(self, jacobian: NDArray[np.float64], x: NDArray[np.float64]) -> None:
        with self._lock:
            entry = self._entry(x)
            self._count(self._has_jacobian(entry))
            jacobian[:] = self._jacobian_of(entry, x)

    def _hessian(
        self,
        hessian: NDArray[np.float64],
        x: NDArray[np.float64],
        function_index: int,
    ) -> None:
        with self._lock:
            entry = self._entry(x)
            self._count(
                entry.has_hessian is not None
                and bool(entry.has_hessian[function_index])
            )
            hessian[:] = self._hessian_of(entry, x, function_index)

    def _count(self, hit: bool) -> None:  # noqa: FBT001
        if hit:
            self.hits += 1
        else:
            self.misses += 1

    def _entry(self, x: NDArray[np.float64]) -> _Entry:
        entry = self._cache.get(x)
        if entry is None:
            entry = _Entry()
            self._cache.put(x, entry)
        return entry

    @staticmethod
    def _has_value(entry: _Entry) -> bool:
        return entry.value is not None

    @staticmethod
    def _has_jacobian(entry: _Entry) -> bool:
        return entry.has_gradient is not None and bool(entry.has_gradient.all())

    @staticmethod
    def _has_hessians(entry: _Entry) -> bool:
        return entry.has_hessian is not None and bool(entry.has_hessian.all())

    def _value(self, entry: _Entry, x: NDArray[np.float64]) -> NDArray[np.float64]:
        if entry.value is None:
            check_allocation("insertion in an evaluation cache")
            entry.value = self._function.value(x)
            entry.value.setflags(write=False)
        return entry.value

    def _allocate_gradients(self, entry: _Entry) -> None:
        if entry.jacobian is None:
            check_allocation("insertion in an evaluation cache")
            entry.jacobian = np.zeros(
                (self._output_size, self._input_size), dtype=np.float64
            )
            entry.has_gradient = np.zeros(self._output_size, dtype=np.bool_)

    def _gradient_of(
        self, entry: _Entry, x: NDArray[np.float64], function_index: int
    ) -> NDArray[np.float64]:
        self._allocate_gradients(entry)
        assert entry.jacobian is not None
        assert entry.has_gradient is not None
        if not entry.has_gradient[function_index]:
            self._function.gradient(
                x, function_index, out=entry.jacobian[function_index]
            )
            entry.has_gradient[function_index] = True
        return entry.jacobian[function_index]

    def _jacobian_of(
        self, entry: _Entry, x: NDArray[np.float64]
    ) -> NDArray[np.float64]:
        self._allocate_gradients(entry)
        assert entry.jacobian is not None
        assert entry.has_gradient is not None
        if not entry.has_gradient.all():
            # The wrapped jacobian clears the buffer before filling it.
            entry.has_gradient.fill(False)  # noqa: FBT003
            self._function.jacobian(x, out=entry.jacobian)
            entry.has_gradient.fill(True)  # noqa: FBT003
        return entry.jacobian

    def _hessian_of(
        self, entry: _Entry, x: NDArray[np.float64], function_index: int
    ) -> NDArray[np.float64]:
        if entry.hessians is None:
            check_allocation("insertion in an evaluation cache")
            entry.hessians = np.zeros(
                (self._output_size, self._input_size, self._input_size),
                dtype=np.float64,
            )
            entry.has_hessian = np.zeros(self._output_size, dtype=np.bool_)
        assert entry.has_hessian is not None
        if not entry.has_hessian[function_index]:
            self._function.hessian(
                x, function_index, out=entry.hessians[function_index]
            )
            entry.has_hessian[function_index] = True
        return entry.hessians[function_index]

    def _describe(self) -> str:
        return f"cached {self._function._describe()}"  # noqa: SLF001
