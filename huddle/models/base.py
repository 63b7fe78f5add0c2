"""Shared model configuration for payloads that travel over the wire."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """
    Snake_case in Python, camelCase on the wire.

    Accepts either spelling on input so stored documents and client frames
    validate the same way.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
    )

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
