"""Utilities for validating solver backend options.

Solver backends accept a dictionary of backend-specific options via the
`options` field of [`SolverConfig`][optcore.config.SolverConfig]. Backends can
describe the options they accept for each of their methods using an
[`OptionsSchemaModel`][optcore.config.options.OptionsSchemaModel], and use it
to check the user input before solving starts.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any, Generic, TypeVar, Union

from pydantic import BaseModel, ConfigDict, HttpUrl, create_model, model_validator

T = TypeVar("T")


def _reject_unknown(model: Any) -> Any:  # noqa: ANN401
    if model.__pydantic_extra__:
        unknown = ", ".join(f"`{option}`" for option in model.__pydantic_extra__)
        msg = f"Unknown or unsupported option(s): {unknown}"
        raise ValueError(msg)
    return model


class MethodSchemaModel(BaseModel, Generic[T]):
    """The options accepted by one method of a backend.

    Attributes:
        options: A dictionary mapping option names to their types.
        url:     An optional URL documenting the method.
    """

    options: dict[str, T]
    url: HttpUrl | None = None

    model_config = ConfigDict(extra="forbid")


class OptionsSchemaModel(BaseModel):
    """The options accepted by the methods of a backend.

    Method names are matched case-insensitively. Every option is optional;
    when given, its value must match the declared type.

    Attributes:
        methods: A dictionary mapping method names to method schemas.

    **Example**:
    ```py
    from optcore.config.options import OptionsSchemaModel

    schema = OptionsSchemaModel.model_validate(
        {
            "methods": {
                "descent": {"options": {"step_size": float}},
            }
        }
    )
    print(schema.validate_options("descent", {"step_size": 0.1}))
    # {'step_size': 0.1}
    ```
    """

    methods: dict[str, MethodSchemaModel[Any]]

    model_config = ConfigDict(extra="forbid")

    def get_options_model(self, method: str) -> type[BaseModel]:
        """Create a Pydantic model that validates the options of a method.

        The model rejects unknown options, and checks the type of known ones.

        Args:
            method: The name of the method.

        Returns:
            The model class.

        Raises:
            ValueError: If the method is not described by the schema.
        """
        schema = self._find(method)
        fields: dict[str, Any] = {
            option: (Union[type_, None], None)  # noqa: UP007
            for option, type_ in schema.options.items()
        }
        validator: Callable[..., Any] = model_validator(mode="after")(
            _reject_unknown
        )  # type: ignore[assignment]
        return create_model(
            "OptionsModel",
            __config__=ConfigDict(extra="allow"),
            __validators__={"_reject_unknown": validator},
            **fields,
        )

    def validate_options(
        self, method: str, options: Mapping[str, Any] | None
    ) -> dict[str, Any]:
        """Validate the options of a method.

        Args:
            method:  The name of the method.
            options: The options to validate, may be `None`.

        Returns:
            The options that were given, as a new dictionary.

        Raises:
            ValueError:      If the method is not described by the schema.
            ValidationError: If an option is unknown or has the wrong type.
        """
        model = self.get_options_model(method)
        validated = model.model_validate(dict(options or {}))
        return validated.model_dump(exclude_unset=True)

    def _find(self, method: str) -> MethodSchemaModel[Any]:
        for name, schema in self.methods.items():
            if name.lower() == method.lower():
                return schema
        msg = f"Method `{method}` not found in schema."
        raise ValueError(msg)
