"""Shared model configuration for the storefront wire format"""

from decimal import Decimal
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer
from pydantic.alias_generators import to_camel


# Non-negative money amount. Full precision in memory, JSON number on the wire.
Money = Annotated[
    Decimal,
    Field(ge=0),
    PlainSerializer(lambda v: float(v), return_type=float, when_used="json"),
]


class WireModel(BaseModel):
    """Base model: snake_case in Python, camelCase on the wire"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_wire(self) -> dict:
        """Serialize for a request body"""
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)
