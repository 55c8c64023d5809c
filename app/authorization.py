"""Task authorization.

Permissions follow from the requester's relation to the task: the creator may
do everything, the assignee everything but delete, anybody else nothing.
"""

import enum

from sqlalchemy.orm import Session

from .errors import Forbidden, NotFound
from .models import Task
from .security import SessionClaim


class TaskAction(str, enum.Enum):
    READ = "read"
    UPDATE = "update"
    TOGGLE_COMPLETE = "toggle_complete"
    REMIND = "remind"
    DELETE = "delete"


_CREATOR_ONLY = {TaskAction.DELETE}

_DENIED_MESSAGES = {
    TaskAction.DELETE: "Only creator can delete.",
}


def is_creator(task: Task, claim: SessionClaim) -> bool:
    return task.creator_id == claim.user_id


def is_participant(task: Task, claim: SessionClaim) -> bool:
    """Creator or assignee. An unset assignee counts as the creator."""
    return claim.user_id in (task.creator_id, task.assignee_id)


def permitted_actions(task: Task, claim: SessionClaim) -> set:
    if is_creator(task, claim):
        return set(TaskAction)
    if is_participant(task, claim):
        return set(TaskAction) - _CREATOR_ONLY
    return set()


def authorize(task: Task, claim: SessionClaim, action: TaskAction) -> None:
    """Raise Forbidden unless the claim may perform action on task."""
    if action not in permitted_actions(task, claim):
        raise Forbidden(_DENIED_MESSAGES.get(action, "Unauthorized for this task."))


def get_authorized_task(db: Session, task_id: str, claim: SessionClaim, action: TaskAction) -> Task:
    """Load a task and check the claim against it. NotFound precedes Forbidden."""
    task = db.get(Task, task_id)
    if task is None:
        raise NotFound("Task not found.")
    authorize(task, claim, action)
    return task
