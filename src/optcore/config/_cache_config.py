"""Configuration class for evaluation caches."""

from __future__ import annotations

from pydantic import ConfigDict, NonNegativeFloat, PositiveInt

from .utils import ImmutableBaseModel


class CacheConfig(ImmutableBaseModel):
    """Configuration class for evaluation caches.

    This class, `CacheConfig`, configures the
    [`CachedFunction`][optcore.functions.CachedFunction] wrappers that solvers
    place around the objective and constraint functions of a problem.

    The `capacity` field sets the maximum number of input vectors for which
    evaluations are stored. When the capacity is exceeded, the entry that was
    least recently used is evicted.

    By default, cached input vectors must match a queried vector exactly. The
    `tolerance` field allows to treat vectors as equal if the largest absolute
    difference between their elements does not exceed the given value.

    Caches are not thread-safe, unless the `thread_safe` flag is set. In that
    case, every access to the cache is protected by a lock.

    Attributes:
        capacity:    Maximum number of cached input vectors (default: 10).
        tolerance:   Key matching tolerance (default: 0.0, exact matching).
        thread_safe: Protect the cache with a lock (default: `False`).
    """

    capacity: PositiveInt = 10
    tolerance: NonNegativeFloat = 0.0
    thread_safe: bool = False

    model_config = ConfigDict(
        extra="forbid",
        validate_default=True,
    )

    def model_post_init(self, __context: object) -> None:  # noqa: D102, PYI063
        self._immutable()
