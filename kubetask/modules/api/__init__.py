"""
API Module - Black Box Interface

Purpose: HTTP request/response contracts
Interface: pydantic models shared by the REST API and the other modules
Hidden: Field aliases, wire format details

The API module only describes data - it contains no business logic.
All logic is delegated to the storage and executor modules.
"""

from .models import (
    ErrorResponse,
    HealthResponse,
    Task,
    TaskExecution,
    TaskRequest,
)

__all__ = [
    "Task",
    "TaskExecution",
    "TaskRequest",
    "ErrorResponse",
    "HealthResponse",
]
