"""
Kubetask shared data models.

These models define the structure of all data passed between
components in the Kubetask system. Field aliases keep the JSON wire
format in camelCase (serverName, taskExecutions, startTime, ...).
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from kubetask.modules.executor.command_validator import ALLOWED_BASE_COMMANDS, is_safe


# Domain Models (stored and returned)


class TaskExecution(BaseModel):
    """One finished run of a task's command. Immutable once built."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    start_time: datetime = Field(..., alias="startTime", description="When the pod was requested")
    end_time: datetime = Field(..., alias="endTime", description="When output was collected")
    output: str = Field(default="", description="Captured pod log, possibly truncated")

    @model_validator(mode="after")
    def check_ordering(self):
        if self.end_time < self.start_time:
            raise ValueError("endTime must not be earlier than startTime")
        return self


class Task(BaseModel):
    """A named shell command and its execution history."""

    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = Field(None, description="Store-assigned identifier")
    name: str = Field(..., description="Display and search key")
    command: str = Field(..., description="Shell command run inside the execution pod")
    owner: Optional[str] = None
    server_name: Optional[str] = Field(None, alias="serverName")
    executions: List[TaskExecution] = Field(default_factory=list, alias="taskExecutions")


# Request Models (API Input)


class TaskRequest(BaseModel):
    """Body of task create and update requests."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1, max_length=200)
    command: str = Field(..., description="Shell command, must start with an allowed base command")
    owner: Optional[str] = Field(None, max_length=200)
    server_name: Optional[str] = Field(None, alias="serverName", max_length=253)

    @field_validator("command")
    @classmethod
    def validate_command(cls, v):
        """Reject commands the executor would refuse to run."""
        if not is_safe(v):
            allowed = ", ".join(sorted(ALLOWED_BASE_COMMANDS))
            raise ValueError(
                f"Unsafe command: {v!r}. Allowed base commands: {allowed}; "
                "shell operators are not permitted"
            )
        return v.strip()

    def to_task(self, task_id: Optional[str] = None) -> Task:
        """Build a task with an empty history from this request."""
        return Task(
            id=task_id,
            name=self.name,
            command=self.command,
            owner=self.owner,
            server_name=self.server_name,
        )


# Response Models (API Output)


class ErrorResponse(BaseModel):
    """Structured error returned for failed task operations."""

    error: str = Field(..., description="Stable error kind")
    detail: str
    task_id: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(..., description="Health status", pattern="^(healthy|unhealthy)$")
    redis: str = Field(..., description="Redis connection status")
    modules: str = Field(..., description="Module initialization status")
    version: str = Field(default="1.0.0", description="API version")
