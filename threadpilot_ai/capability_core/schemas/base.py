"""Pydantic base schema utilities for capability core models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class BaseSchema(BaseModel):
    """
    Base Pydantic model for all capability schemas.

    Configures common Pydantic behaviors:
    - ``alias_generator=to_camel``: wire names are camelCase (``threadId``) while
      Python attributes stay snake_case (``thread_id``).
    - ``populate_by_name=True``: Allow initialization by alias or field name.
    - ``extra="forbid"``: Prevent unknown fields from slipping into the model, ensuring strict validation.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )

    def to_wire(self) -> dict:
        """Dump the model with wire (camelCase) names and JSON-compatible values."""
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)
