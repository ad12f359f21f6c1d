"""
Errors raised while running a task.

Every error carries a stable ``kind`` and the HTTP status the API
answers with, so callers can tell failures apart without parsing
messages.
"""

from typing import Optional


class TaskExecutionError(Exception):
    """Base class for all task run failures."""

    kind = "task_execution"
    status_code = 500

    def __init__(self, message: str, task_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.task_id = task_id

    def to_dict(self) -> dict:
        return {"error": self.kind, "detail": self.message, "task_id": self.task_id}


class TaskNotFoundError(TaskExecutionError):
    """No task exists with the requested id."""

    kind = "task_not_found"
    status_code = 404


class UnsafeCommandError(TaskExecutionError):
    """The task's command was rejected by the command validator."""

    kind = "unsafe_command"
    status_code = 400


class EnvironmentCreateError(TaskExecutionError):
    """The Kubernetes API refused or failed to create the execution pod."""

    kind = "environment_create"
    status_code = 502


class EnvironmentTimeoutError(TaskExecutionError):
    """The execution pod did not finish within the wait bound."""

    kind = "environment_timeout"
    status_code = 504


class EnvironmentRuntimeError(TaskExecutionError):
    """Unexpected failure while waiting on or collecting from the pod."""

    kind = "environment_runtime"
    status_code = 500


class PersistenceError(TaskExecutionError):
    """The run finished but its execution record could not be stored."""

    kind = "persistence"
    status_code = 500


__all__ = [
    "TaskExecutionError",
    "TaskNotFoundError",
    "UnsafeCommandError",
    "EnvironmentCreateError",
    "EnvironmentTimeoutError",
    "EnvironmentRuntimeError",
    "PersistenceError",
]
