import uuid
from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, field_serializer
from pydantic.alias_generators import to_camel


class CamelCaseBaseModel(BaseModel):
    """
    Base model with camelCase field aliases and JSON-ready serialization.

    - Input: camelCase keys from the admin client (``daysOfWeek``, ``recordId``)
      and snake_case keys are both accepted.
    - Output: ``model_dump(by_alias=True)`` emits camelCase keys with UUIDs,
      enums and datetimes already converted to strings, so the result can be
      handed straight to ``ResponseBuilder``.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    @field_serializer("*", mode="wrap")
    def serialize_any(self, value, handler):
        if isinstance(value, uuid.UUID):
            return str(value)

        if isinstance(value, Enum):
            return value.value

        # datetime is a subclass of date
        if isinstance(value, (datetime, date)):
            return value.isoformat()

        if isinstance(value, (set, frozenset)):
            return sorted(value)

        return handler(value)
