from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy import case, or_
from sqlalchemy.orm import Session

from ..authorization import TaskAction, get_authorized_task
from ..config import CANCEL_REMINDERS_ON_CLOSE
from ..database import get_db
from ..errors import MailDeliveryError, ValidationError
from ..logging_config import get_logger
from ..models import Task as TaskModel, TaskPriority, TaskStatus, User
from ..models.task import PRIORITY_RANK
from ..reminders import ReminderScheduler, TaskSnapshot, send_reminder
from ..schemas.task import (
    Message,
    ReminderRequest,
    Task as TaskSchema,
    TaskCreate,
    TaskEnvelope,
    TaskList,
    TaskUpdate,
)
from ..security import SessionClaim, get_current_claim
from ..utils import utc_now

router = APIRouter()
logger = get_logger(__name__)

_SORT_COLUMNS = {
    "dueDate": TaskModel.due_date,
    "createdAt": TaskModel.created_at,
    "priority": case(
        *[(TaskModel.priority == priority, rank) for priority, rank in PRIORITY_RANK.items()]
    ),
}


def get_scheduler(request: Request) -> ReminderScheduler:
    return request.app.state.reminder_scheduler


def get_mailer(request: Request):
    return request.app.state.mailer


def _envelope(task: TaskModel) -> TaskEnvelope:
    return TaskEnvelope(task=TaskSchema.model_validate(task))


def _ensure_user_exists(db: Session, user_id: str) -> None:
    if db.get(User, user_id) is None:
        raise ValidationError.for_field("assignedTo", "Assigned user does not exist.", code="unknown_user")


def _recipient_email(db: Session, task: TaskModel) -> Optional[str]:
    """Assignee's email, falling back to the creator's."""
    for user_id in (task.assignee_id, task.creator_id):
        user = db.get(User, user_id)
        if user is not None and user.email:
            return user.email
    return None


def _sync_reminder(db: Session, scheduler: ReminderScheduler, task: TaskModel) -> None:
    """Bring the task's pending reminder in line with its current state."""
    if task.status == TaskStatus.COMPLETED and CANCEL_REMINDERS_ON_CLOSE:
        scheduler.cancel(task.id)
        return
    if task.due_date is None:
        scheduler.cancel(task.id)
        return
    recipient = _recipient_email(db, task)
    if recipient:
        scheduler.schedule(task, recipient)


@router.get("/tasks", response_model=TaskList)
def get_tasks(
    status_filter: Optional[TaskStatus] = Query(None, alias="status"),
    priority: Optional[TaskPriority] = None,
    sort_by: Literal["dueDate", "priority", "createdAt"] = Query("dueDate", alias="sortBy"),
    order: Literal["asc", "desc"] = "asc",
    claim: SessionClaim = Depends(get_current_claim),
    db: Session = Depends(get_db),
):
    """Tasks the requester created or is assigned to, filtered and sorted."""
    query = db.query(TaskModel).filter(
        or_(TaskModel.creator_id == claim.user_id, TaskModel.assigned_to == claim.user_id)
    )

    if status_filter is not None:
        query = query.filter(TaskModel.status == status_filter)
    if priority is not None:
        query = query.filter(TaskModel.priority == priority)

    column = _SORT_COLUMNS[sort_by]
    query = query.order_by(
        column.asc() if order == "asc" else column.desc(),
        TaskModel.created_at.asc(),
    )

    tasks = query.all()
    return TaskList(tasks=[TaskSchema.model_validate(task) for task in tasks])


@router.post("/tasks", response_model=TaskEnvelope, status_code=status.HTTP_201_CREATED)
def create_task(
    payload: TaskCreate,
    claim: SessionClaim = Depends(get_current_claim),
    db: Session = Depends(get_db),
    scheduler: ReminderScheduler = Depends(get_scheduler),
):
    """Create a task with the requester as creator; arm its due-date reminder."""
    if payload.assigned_to:
        _ensure_user_exists(db, payload.assigned_to)

    db_task = TaskModel(
        title=payload.title,
        description=payload.description,
        due_date=payload.due_date,
        status=payload.status,
        priority=payload.priority,
        creator_id=claim.user_id,
        assigned_to=payload.assigned_to or claim.user_id,
    )
    db.add(db_task)
    db.commit()
    db.refresh(db_task)

    _sync_reminder(db, scheduler, db_task)
    return _envelope(db_task)


@router.get("/tasks/{task_id}", response_model=TaskEnvelope)
def get_task(
    task_id: str,
    claim: SessionClaim = Depends(get_current_claim),
    db: Session = Depends(get_db),
):
    """Get a task the requester created or is assigned to."""
    return _envelope(get_authorized_task(db, task_id, claim, TaskAction.READ))


@router.put("/tasks/{task_id}", response_model=TaskEnvelope)
def update_task(
    task_id: str,
    task_update: TaskUpdate,
    claim: SessionClaim = Depends(get_current_claim),
    db: Session = Depends(get_db),
    scheduler: ReminderScheduler = Depends(get_scheduler),
):
    """Apply a partial update. Creator or assignee only."""
    task = get_authorized_task(db, task_id, claim, TaskAction.UPDATE)

    changes = task_update.changes()
    if "assigned_to" in changes:
        if changes["assigned_to"] is None:
            changes["assigned_to"] = task.creator_id
        else:
            _ensure_user_exists(db, changes["assigned_to"])

    if "status" in changes:
        task.set_status(changes.pop("status"))
    for field, value in changes.items():
        setattr(task, field, value)

    task.updated_at = utc_now()

    db.commit()
    db.refresh(task)

    _sync_reminder(db, scheduler, task)
    return _envelope(task)


@router.delete("/tasks/{task_id}", response_model=Message)
def delete_task(
    task_id: str,
    claim: SessionClaim = Depends(get_current_claim),
    db: Session = Depends(get_db),
    scheduler: ReminderScheduler = Depends(get_scheduler),
):
    """Delete a task. Creator only."""
    task = get_authorized_task(db, task_id, claim, TaskAction.DELETE)

    db.delete(task)
    db.commit()

    if CANCEL_REMINDERS_ON_CLOSE:
        scheduler.cancel(task_id)
    return Message(message="Task deleted.")


@router.post("/tasks/{task_id}/complete", response_model=TaskEnvelope)
def toggle_task_complete(
    task_id: str,
    claim: SessionClaim = Depends(get_current_claim),
    db: Session = Depends(get_db),
    scheduler: ReminderScheduler = Depends(get_scheduler),
):
    """Toggle completion. Reopening restores the status the task had before."""
    task = get_authorized_task(db, task_id, claim, TaskAction.TOGGLE_COMPLETE)

    task.toggle_complete()
    task.updated_at = utc_now()

    db.commit()
    db.refresh(task)

    _sync_reminder(db, scheduler, task)
    return _envelope(task)


@router.post("/tasks/{task_id}/schedule-email", response_model=Message)
def schedule_email(
    task_id: str,
    payload: ReminderRequest,
    claim: SessionClaim = Depends(get_current_claim),
    db: Session = Depends(get_db),
    mailer=Depends(get_mailer),
):
    """Send a reminder for the task to the given address right away."""
    task = get_authorized_task(db, task_id, claim, TaskAction.REMIND)

    try:
        send_reminder(mailer, payload.email, TaskSnapshot.from_task(task))
    except MailDeliveryError as exc:
        logger.error("Manual reminder for task %s failed: %s", task_id, exc)
        raise MailDeliveryError("Failed to send email.") from exc

    logger.info("Manual reminder for task %s sent to %s", task_id, payload.email)
    return Message(message="Reminder email scheduled (sent to SMTP server).")
