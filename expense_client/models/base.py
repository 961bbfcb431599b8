"""Base model for payloads exchanged with the expense REST API"""

from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """camelCase on the wire, snake_case in Python"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_payload(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def first_error(exc: PydanticValidationError) -> Tuple[str, Optional[str]]:
    """(message, field) for the first problem pydantic reported."""
    errors = exc.errors()
    if not errors:
        return str(exc), None
    first = errors[0]
    loc = first.get("loc") or ()
    field = str(loc[0]) if loc else None
    message = first.get("msg", "Invalid value")
    return (f"{field}: {message}" if field else message), field
