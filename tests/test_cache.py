import threading
from typing import Any

import numpy as np
import pytest

from optcore.allocation import forbid_allocation
from optcore.enums import Capability
from optcore.exceptions import AllocationForbidden, UnsupportedOperation
from optcore.functions import (
    CachedFunction,
    CallableFunction,
    LinearFunction,
    LRUCache,
    QuadraticFunction,
)


def test_lru_cache_keeps_most_recent_keys() -> None:
    cache: LRUCache[int] = LRUCache(3)
    for idx in range(7):
        cache.put(np.array([float(idx), 0.0]), idx)
    assert cache.size() == 3
    assert len(cache) == 3
    assert [key[0] for key in cache.keys()] == [4.0, 5.0, 6.0]
    for idx in range(4):
        assert np.array([float(idx), 0.0]) not in cache
    for idx in range(4, 7):
        assert np.array([float(idx), 0.0]) in cache


def test_lru_cache_usage_order() -> None:
    cache: LRUCache[str] = LRUCache(2)
    cache.put([1.0], "a")
    cache.put([2.0], "b")
    assert cache.get([1.0]) == "a"
    cache.put([3.0], "c")
    assert [1.0] in cache
    assert [2.0] not in cache
    assert [key[0] for key in cache.keys()] == [1.0, 3.0]


def test_lru_cache_hits_and_misses() -> None:
    cache: LRUCache[int] = LRUCache(2)
    assert cache.get([1.0]) is None
    assert cache.get([1.0], -1) == -1
    cache.put([1.0], 1)
    assert cache.get([1.0]) == 1
    assert [1.0] in cache
    assert (cache.hits, cache.misses) == (1, 2)
    cache.clear()
    assert (cache.hits, cache.misses, cache.size()) == (0, 0, 0)


def test_lru_cache_replace() -> None:
    cache: LRUCache[int] = LRUCache(2)
    cache.put([1.0], 1)
    cache.put([1.0], 2)
    assert cache.size() == 1
    assert cache.get([1.0]) == 2


def test_lru_cache_stores_a_copy_of_the_key() -> None:
    cache: LRUCache[int] = LRUCache(2)
    key = np.array([1.0, 2.0])
    cache.put(key, 1)
    key[0] = 5.0
    assert np.array([1.0, 2.0]) in cache
    assert not cache.keys()[0].flags.writeable


def test_lru_cache_tolerance() -> None:
    cache: LRUCache[int] = LRUCache(2, tolerance=1e-6)
    cache.put([1.0, 2.0], 1)
    assert cache.get([1.0 + 1e-7, 2.0 - 1e-7]) == 1
    assert cache.get([1.0 + 1e-5, 2.0]) is None
    exact: LRUCache[int] = LRUCache(2)
    exact.put([1.0, 2.0], 1)
    assert exact.get([1.0 + 1e-12, 2.0]) is None


def test_lru_cache_signed_zero_keys() -> None:
    cache: LRUCache[int] = LRUCache(2)
    cache.put([0.0, 1.0], 1)
    cache.put([-0.0, 1.0], 2)
    assert cache.size() == 1
    assert cache.get([-0.0, 1.0]) == 2
    assert cache.get(np.array([0.0, 1.0])) == 2


def test_lru_cache_flattens_keys() -> None:
    exact: LRUCache[int] = LRUCache(2)
    exact.put([[1.0, 2.0]], 1)
    assert exact.get([1.0, 2.0]) == 1
    assert exact.get([[1.0], [2.0]]) == 1
    tolerant: LRUCache[int] = LRUCache(2, tolerance=1e-6)
    tolerant.put([1.0, 2.0], 1)
    assert tolerant.get([[1.0 + 1e-7, 2.0]]) == 1
    assert [[1.0], [2.0]] in tolerant
    tolerant.put([[1.0, 2.0]], 2)
    assert tolerant.size() == 1


def test_lru_cache_invalid_arguments() -> None:
    with pytest.raises(ValueError, match="capacity"):
        LRUCache(0)
    with pytest.raises(ValueError, match="tolerance"):
        LRUCache(1, tolerance=-1.0)


def test_cached_function_does_not_recompute(counting: Any) -> None:
    function = counting(QuadraticFunction(np.eye(2)))
    cached = CachedFunction(function, capacity=4)
    x = np.array([1.0, 2.0])
    record = cached.get_or_compute(x)
    calls = function.calls
    assert calls > 0
    assert record.value[0] == pytest.approx(5.0)
    assert record.jacobian is not None
    assert np.allclose(record.jacobian, [[2.0, 4.0]])
    assert record.hessians is not None
    assert np.allclose(record.hessians[0], 2.0 * np.eye(2))
    assert (cached.hits, cached.misses) == (0, 1)

    again = cached.get_or_compute(x.copy())
    assert function.calls == calls
    assert (cached.hits, cached.misses) == (1, 1)
    assert np.allclose(again.value, record.value)

    assert cached(x)[0] == pytest.approx(5.0)
    assert np.allclose(cached.gradient(x), [2.0, 4.0])
    assert np.allclose(cached.hessian(x), 2.0 * np.eye(2))
    assert function.calls == calls
    assert cached.hits == 4


def test_cached_function_computes_lazily(counting: Any) -> None:
    function = counting(LinearFunction([[1.0, 2.0], [3.0, 4.0]]))
    cached = CachedFunction(function)
    x = np.array([1.0, 1.0])
    assert np.allclose(cached.value(x), [3.0, 7.0])
    assert (function.value_calls, function.gradient_calls) == (1, 0)
    assert np.allclose(cached.gradient(x, 1), [3.0, 4.0])
    assert function.gradient_calls == 1
    assert np.allclose(cached.gradient(x, 1), [3.0, 4.0])
    assert function.gradient_calls == 1
    assert np.allclose(cached.jacobian(x), function.function.a)
    assert function.jacobian_calls == 1
    assert np.allclose(cached.gradient(x, 0), [1.0, 2.0])
    assert function.gradient_calls == 1
    assert cached.value(x)[0] == pytest.approx(3.0)
    assert function.value_calls == 1
    assert (cached.hits, cached.misses) == (3, 3)


def test_cached_function_signed_zero_inputs(counting: Any) -> None:
    function = counting(QuadraticFunction(np.eye(1)))
    cached = CachedFunction(function)
    cached.value([0.0])
    cached.value([-0.0])
    assert cached.size() == 1
    assert function.value_calls == 1
    assert (cached.hits, cached.misses) == (1, 1)


def test_cached_function_failed_jacobian_keeps_gradients() -> None:
    calls = []

    def jacobian(x: Any) -> Any:
        calls.append(x)
        if len(calls) == 2:
            msg = "jacobian failed"
            raise RuntimeError(msg)
        return np.array([[1.0, 2.0], [3.0, 4.0]])

    function = CallableFunction(2, lambda x: x, output_size=2, jacobian=jacobian)
    cached = CachedFunction(function)
    x = np.array([1.0, 1.0])
    assert np.allclose(cached.gradient(x, 0), [1.0, 2.0])
    with pytest.raises(RuntimeError, match="jacobian failed"):
        cached.jacobian(x)
    assert np.allclose(cached.gradient(x, 0), [1.0, 2.0])
    assert len(calls) == 3
    assert np.allclose(cached.jacobian(x), [[1.0, 2.0], [3.0, 4.0]])
    assert len(calls) == 4


def test_cached_function_evicts_least_recently_used(counting: Any) -> None:
    function = counting(QuadraticFunction(np.eye(1)))
    cached = CachedFunction(function, capacity=2)
    for value in (1.0, 2.0, 3.0):
        cached.value([value])
    assert cached.size() == 2
    assert function.value_calls == 3
    cached.value([2.0])
    cached.value([3.0])
    assert function.value_calls == 3
    cached.value([1.0])
    assert function.value_calls == 4


def test_cached_function_capabilities() -> None:
    cached = CachedFunction(CallableFunction(2, lambda x: x.sum()))
    assert cached.capabilities == Capability.VALUE
    assert cached.get_or_compute([1.0, 2.0]).jacobian is None
    with pytest.raises(UnsupportedOperation):
        cached.gradient([1.0, 2.0])


def test_cached_function_clear(counting: Any) -> None:
    function = counting(QuadraticFunction(np.eye(2)))
    cached = CachedFunction(function)
    cached.value([1.0, 1.0])
    cached.clear()
    assert cached.size() == 0
    assert (cached.hits, cached.misses) == (0, 0)
    cached.value([1.0, 1.0])
    assert function.value_calls == 2


def test_cached_function_allocation_guard() -> None:
    cached = CachedFunction(QuadraticFunction(np.eye(2)))
    x = np.array([1.0, 1.0])
    out = np.zeros(1)
    cached.value(x, out=out)
    with forbid_allocation():
        cached.value(x, out=out)
        with pytest.raises(AllocationForbidden):
            cached.value(np.array([2.0, 2.0]), out=np.zeros(1))
    assert out[0] == pytest.approx(2.0)


def test_cached_function_thread_safe(counting: Any) -> None:
    function = counting(QuadraticFunction(np.eye(2)))
    cached = CachedFunction(function, capacity=100, thread_safe=True)
    points = [np.array([float(idx), 1.0]) for idx in range(20)]

    def _evaluate() -> None:
        for x in points:
            cached.get_or_compute(x)

    threads = [threading.Thread(target=_evaluate) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert cached.size() == 20
    assert function.value_calls == 20
    assert cached.hits + cached.misses == 80
    assert cached.misses == 20
