from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic_core import PydanticCustomError


class TodoUpdate(BaseModel):
    done: bool = Field(default=None, validate_default=True)

    @field_validator("done", mode="before")
    @classmethod
    def check_done(cls, value: Any) -> bool:
        # only real JSON booleans; "true" or 1 are rejected
        if not isinstance(value, bool):
            raise PydanticCustomError(
                "invalid_done", 'Invalid payload. "done" must be a boolean.'
            )
        return value
