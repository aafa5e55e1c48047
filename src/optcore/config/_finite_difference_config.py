"""Configuration class for finite difference gradients."""

from __future__ import annotations

from pydantic import ConfigDict, PositiveFloat

from optcore.enums import FiniteDifferenceRule

from .utils import ImmutableBaseModel


class FiniteDifferenceConfig(ImmutableBaseModel):
    """Configuration class for finite difference gradients.

    This class, `FiniteDifferenceConfig`, configures the estimation of
    gradients from function values, as performed by
    [`FiniteDifferenceGradient`][optcore.functions.FiniteDifferenceGradient].

    The `epsilon` field sets the step size used to perturb the variables. The
    `rule` field selects the difference formula, see
    [`FiniteDifferenceRule`][optcore.enums.FiniteDifferenceRule]. The simple
    rule is cheaper, the five-point rule is more accurate.

    Attributes:
        epsilon: The perturbation step size (default: 1e-8).
        rule:    The difference rule (default: `simple`).
    """

    epsilon: PositiveFloat = 1e-8
    rule: FiniteDifferenceRule = FiniteDifferenceRule.SIMPLE

    model_config = ConfigDict(
        extra="forbid",
        validate_default=True,
    )

    def model_post_init(self, __context: object) -> None:  # noqa: D102, PYI063
        self._immutable()
