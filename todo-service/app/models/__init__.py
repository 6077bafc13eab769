from app.models.TodoCreate import MAX_TASK_LENGTH, TodoCreate
from app.models.TodoResponse import TodoResponse
from app.models.TodoUpdate import TodoUpdate

__all__ = ["MAX_TASK_LENGTH", "TodoCreate", "TodoResponse", "TodoUpdate"]
