"""The `optcore.config` module provides configuration classes.

These configuration classes are built using
[`pydantic`](https://docs.pydantic.dev/), which provides robust data validation
and parsing capabilities. Configuration objects are typically created from
dictionaries of configuration values using the `model_validate` method
provided by `pydantic`:

```py
from optcore.config import SolverConfig

config = SolverConfig.model_validate(
    {"max_iterations": 50, "cache": {"capacity": 20}}
)
```

Configuration objects are immutable after creation.
"""

from ._cache_config import CacheConfig
from ._finite_difference_config import FiniteDifferenceConfig
from ._solver_config import SolverConfig

__all__ = [
    "CacheConfig",
    "FiniteDifferenceConfig",
    "SolverConfig",
]
