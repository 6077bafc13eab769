from pydantic import BaseModel


class TodoResponse(BaseModel):
    id: int
    task: str
    done: bool
