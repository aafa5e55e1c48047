"""Guard against memory allocation in allocation-sensitive contexts.

Some contexts, such as callbacks invoked from a real-time control loop, must
not allocate memory. The functions in this module maintain a process-wide flag
that is checked by every `optcore` code path that allocates new arrays:
evaluations of functions without a preallocated `out` argument, insertions in
evaluation caches, and solver state snapshots. While allocation is forbidden,
these code paths raise an
[`AllocationForbidden`][optcore.exceptions.AllocationForbidden] error instead
of allocating.

Example:
    ```py
    import numpy as np

    from optcore.allocation import forbid_allocation
    from optcore.functions import IdentityFunction

    f = IdentityFunction(np.zeros(2))
    out = np.empty(2)
    with forbid_allocation():
        f.value(np.ones(2), out=out)  # fine, writes into `out`
        f(np.ones(2))  # raises AllocationForbidden
    ```
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING

from .exceptions import AllocationForbidden

if TYPE_CHECKING:
    from collections.abc import Iterator

_malloc_allowed = True


def is_malloc_allowed() -> bool:
    """Return whether allocation is currently allowed.

    Returns:
        `True` unless allocation is forbidden.
    """
    return _malloc_allowed


def set_is_malloc_allowed(allow: bool) -> bool:  # noqa: FBT001
    """Allow or forbid allocation.

    Args:
        allow: Whether to allow allocation.

    Returns:
        The previous value of the flag.
    """
    global _malloc_allowed  # noqa: PLW0603
    previous = _malloc_allowed
    _malloc_allowed = allow
    return previous


@contextmanager
def forbid_allocation() -> Iterator[None]:
    """Context manager that forbids allocation within its scope.

    The previous state of the flag is restored on exit, so the context manager
    can be nested.
    """
    previous = set_is_malloc_allowed(False)
    try:
        yield
    finally:
        set_is_malloc_allowed(previous)


def check_allocation(what: str) -> None:
    """Fail if allocation is currently forbidden.

    Args:
        what: Description of the allocation, used in the error message.

    Raises:
        AllocationForbidden: If allocation is forbidden.
    """
    if not _malloc_allowed:
        msg = f"allocation forbidden: {what}"
        raise AllocationForbidden(msg)
