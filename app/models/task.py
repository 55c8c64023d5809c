from sqlmodel import SQLModel, Field
from datetime import datetime
from typing import Optional
from uuid import uuid4
import enum

from ..utils import utc_now


class TaskStatus(str, enum.Enum):
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class TaskPriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# Sort rank for priority; string order would put "high" before "low".
PRIORITY_RANK = {TaskPriority.LOW: 0, TaskPriority.MEDIUM: 1, TaskPriority.HIGH: 2}


class Task(SQLModel, table=True):
    """Task model. A task always has a creator; the assignee defaults to it."""
    __tablename__ = "tasks"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    title: str = Field(max_length=100)
    description: Optional[str] = Field(default=None, max_length=1000)
    due_date: Optional[datetime] = Field(default=None, index=True)
    status: TaskStatus = Field(default=TaskStatus.TODO, index=True)
    # Status to restore when a completed task is reopened.
    reopen_status: Optional[TaskStatus] = Field(default=None)
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM, index=True)
    creator_id: str = Field(foreign_key="users.id", index=True)
    assigned_to: Optional[str] = Field(default=None, foreign_key="users.id", index=True)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def assignee_id(self) -> str:
        """Assignee, falling back to the creator when unset."""
        return self.assigned_to or self.creator_id

    def set_status(self, status: TaskStatus) -> None:
        if status == TaskStatus.COMPLETED and self.status != TaskStatus.COMPLETED:
            self.reopen_status = self.status
        elif status != TaskStatus.COMPLETED:
            self.reopen_status = None
        self.status = status

    def toggle_complete(self) -> None:
        """Complete the task, or reopen it with the status it had before."""
        if self.status == TaskStatus.COMPLETED:
            self.set_status(self.reopen_status or TaskStatus.TODO)
        else:
            self.set_status(TaskStatus.COMPLETED)
