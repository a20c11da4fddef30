from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from .generation import PlanKind


class TaskState(str, Enum):
    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATES = frozenset({TaskState.COMPLETED, TaskState.FAILED})


class GenerationTask(BaseModel):
    """Stored record of a single generation attempt."""

    id: str
    owner_id: str
    kind: PlanKind
    status: TaskState = TaskState.GENERATING
    progress: int = Field(default=0, ge=0, le=100)
    result_ref: str | None = None
    error_message: str | None = None
    error_code: str | None = None
    created_at: datetime
    updated_at: datetime
    expires_at: datetime

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATES


class TaskSubmissionResponse(BaseModel):
    task_id: str
    status: TaskState = TaskState.GENERATING
    estimated_time_seconds: int


class TaskStatusResponse(BaseModel):
    task_id: str
    kind: PlanKind
    status: TaskState
    progress: int
    result_ref: str | None = None
    error_message: str | None = None
    error_code: str | None = None

    @classmethod
    def from_task(cls, task: GenerationTask) -> TaskStatusResponse:
        return cls(
            task_id=task.id,
            kind=task.kind,
            status=task.status,
            progress=task.progress,
            result_ref=task.result_ref,
            error_message=task.error_message,
            error_code=task.error_code,
        )


class GenerationJob(BaseModel):
    """Everything a worker needs to run one generation; JSON-serializable for Celery."""

    task_id: str
    owner_id: str
    kind: PlanKind
    request: dict[str, Any]
    provider_config_id: int
