from pydantic import BaseModel, Field, field_serializer, field_validator
from pydantic_core import PydanticCustomError
from datetime import datetime
from typing import List, Optional

from ..models import TaskPriority, TaskStatus
from ..utils import as_utc
from .user import normalize_email


def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


class TaskCreate(BaseModel):
    """Schema for creating new tasks. Wire names are camelCase."""
    title: str = Field(min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=1000)
    due_date: Optional[datetime] = Field(default=None, alias="dueDate")
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    assigned_to: Optional[str] = Field(default=None, alias="assignedTo")

    class Config:
        populate_by_name = True

    @field_validator("title", mode="before")
    @classmethod
    def _strip_title(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("due_date", "assigned_to", mode="before")
    @classmethod
    def _empty_is_unset(cls, value):
        return _blank_to_none(value)

    @field_validator("due_date")
    @classmethod
    def _due_date_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value)


class TaskUpdate(BaseModel):
    """Schema for partial updates. Only fields present in the body are applied."""
    title: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=1000)
    due_date: Optional[datetime] = Field(default=None, alias="dueDate")
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    assigned_to: Optional[str] = Field(default=None, alias="assignedTo")

    class Config:
        populate_by_name = True

    @field_validator("title", mode="before")
    @classmethod
    def _strip_title(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("due_date", "assigned_to", mode="before")
    @classmethod
    def _empty_is_unset(cls, value):
        return _blank_to_none(value)

    @field_validator("due_date")
    @classmethod
    def _due_date_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value)

    @field_validator("title", "status", "priority")
    @classmethod
    def _not_null(cls, value, info):
        if value is None:
            raise PydanticCustomError("not_null", "{field} cannot be null.", {"field": info.field_name})
        return value

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


class ReminderRequest(BaseModel):
    email: str

    @field_validator("email", mode="before")
    @classmethod
    def _check_email(cls, value) -> str:
        return normalize_email(value)


class Task(BaseModel):
    """Task as returned by the API."""
    id: str
    title: str
    description: Optional[str] = None
    due_date: Optional[datetime] = Field(default=None, serialization_alias="dueDate")
    status: TaskStatus
    priority: TaskPriority
    creator_id: str = Field(serialization_alias="creator")
    assigned_to: Optional[str] = Field(default=None, serialization_alias="assignedTo")
    created_at: datetime = Field(serialization_alias="createdAt")
    updated_at: datetime = Field(serialization_alias="updatedAt")

    class Config:
        from_attributes = True

    @field_serializer("due_date", "created_at", "updated_at")
    def _as_utc(self, value: Optional[datetime]) -> Optional[str]:
        if value is None:
            return None
        return as_utc(value).isoformat()


class TaskEnvelope(BaseModel):
    task: Task


class TaskList(BaseModel):
    tasks: List[Task]


class Message(BaseModel):
    message: str
