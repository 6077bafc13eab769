"""Error taxonomy for the todo service.

Handlers translate these into HTTP responses; the publisher swallows
NotificationError and startup code turns StartupFatalError into a
non-zero exit.
"""
from typing import Optional


class TodoServiceError(Exception):
    status_code = 500

    def __init__(self, message: str, original_error: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error

    def __str__(self):
        if self.original_error is not None:
            return f"{self.message}: {self.original_error}"
        return self.message


class TodoValidationError(TodoServiceError):
    status_code = 400


class TodoNotFoundError(TodoServiceError):
    status_code = 404

    def __init__(self, todo_id):
        super().__init__(f"Todo {todo_id} not found")
        self.todo_id = todo_id


class PersistenceError(TodoServiceError):
    status_code = 500


class StartupFatalError(TodoServiceError):
    pass


class NotificationError(TodoServiceError):
    pass
