from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic_core import PydanticCustomError

MAX_TASK_LENGTH = 140


class TodoCreate(BaseModel):
    todo: str = Field(default=None, validate_default=True)

    @field_validator("todo", mode="before")
    @classmethod
    def check_todo(cls, value: Any) -> str:
        if not isinstance(value, str) or not value.strip():
            raise PydanticCustomError(
                "invalid_todo", "Invalid todo. Must be a non-empty string."
            )
        task = value.strip()
        if len(task) > MAX_TASK_LENGTH:
            raise PydanticCustomError(
                "todo_too_long",
                "Invalid todo. Must be a string with less than 140 characters.",
            )
        return task
