"""Due-date reminders.

A reminder is armed when a task is created with a due date whose lead time
(due date minus REMINDER_LEAD_HOURS) is still in the future. Pending
reminders live in a ReminderScheduler owned by the application, one handle
per task id, so they can be cancelled or re-armed. Nothing is persisted: a
process restart abandons whatever is pending.
"""

import enum
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from .config import REMINDER_LEAD_HOURS
from .logging_config import get_logger
from .models import Task
from .utils import as_utc, utc_now

logger = get_logger(__name__)


class ReminderState(str, enum.Enum):
    PENDING = "pending"
    FIRED = "fired"
    CANCELLED = "cancelled"
    ABANDONED = "abandoned"


@dataclass(frozen=True)
class TaskSnapshot:
    """What a reminder says about its task, captured when it is armed."""
    task_id: str
    title: str
    description: Optional[str]
    due_date: Optional[datetime]

    @classmethod
    def from_task(cls, task: Task) -> "TaskSnapshot":
        return cls(
            task_id=task.id,
            title=task.title,
            description=task.description,
            due_date=as_utc(task.due_date),
        )


def format_due_date(due_date: Optional[datetime]) -> str:
    if due_date is None:
        return "no due date"
    return due_date.strftime("%Y-%m-%d %H:%M UTC")


def render_reminder(snapshot: TaskSnapshot):
    """Return (subject, body) for a reminder email."""
    subject = f"Task Due Soon: {snapshot.title}"
    body = (
        f'Your task "{snapshot.title}" is due on {format_due_date(snapshot.due_date)}.\n\n'
        f"Description: {snapshot.description or ''}\n\n"
        "Please complete it in Task Tracker."
    )
    return subject, body


def send_reminder(mailer, to_email: str, snapshot: TaskSnapshot) -> None:
    """Send a reminder now. Transport errors propagate to the caller."""
    subject, body = render_reminder(snapshot)
    mailer.send(to_email, subject, body)


class ReminderHandle:
    """A pending one-shot reminder for a task."""

    def __init__(self, snapshot: TaskSnapshot, recipient: str, send_at: datetime) -> None:
        self.snapshot = snapshot
        self.recipient = recipient
        self.send_at = send_at
        self.state = ReminderState.PENDING
        self.timer = None

    @property
    def task_id(self) -> str:
        return self.snapshot.task_id

    def __repr__(self) -> str:
        return f"<ReminderHandle task={self.task_id} send_at={self.send_at.isoformat()} state={self.state.value}>"


class ReminderScheduler:
    """Registry of pending reminders keyed by task id.

    `timer_factory` has the signature of threading.Timer and `clock` returns
    the current UTC time; both are injectable so tests can fire reminders by hand.
    """

    def __init__(
        self,
        mailer,
        lead_time: timedelta = timedelta(hours=REMINDER_LEAD_HOURS),
        clock: Callable[[], datetime] = utc_now,
        timer_factory=threading.Timer,
    ) -> None:
        self.mailer = mailer
        self.lead_time = lead_time
        self.clock = clock
        self.timer_factory = timer_factory
        self._pending: Dict[str, ReminderHandle] = {}
        self._lock = threading.Lock()

    def send_time(self, due_date: datetime) -> datetime:
        return due_date - self.lead_time

    def schedule(self, task: Task, recipient: str) -> Optional[ReminderHandle]:
        """Arm the reminder for task, replacing any pending one.

        Returns None when the task has no due date or the send time has
        already passed.
        """
        self.cancel(task.id)
        if task.due_date is None:
            return None

        send_at = self.send_time(as_utc(task.due_date))
        delay = (send_at - as_utc(self.clock())).total_seconds()
        if delay <= 0:
            logger.info("Reminder not scheduled for task %s: send time %s already passed", task.id, send_at)
            return None

        handle = ReminderHandle(TaskSnapshot.from_task(task), recipient, send_at)
        timer = self.timer_factory(delay, self._fire, args=(handle,))
        timer.daemon = True
        handle.timer = timer
        with self._lock:
            self._pending[task.id] = handle
        timer.start()
        logger.info("Reminder scheduled for task %s at %s (to %s)", task.id, send_at.isoformat(), recipient)
        return handle

    def cancel(self, task_id: str) -> bool:
        with self._lock:
            handle = self._pending.pop(task_id, None)
        if handle is None:
            return False
        handle.timer.cancel()
        handle.state = ReminderState.CANCELLED
        logger.info("Reminder cancelled for task %s", task_id)
        return True

    def get(self, task_id: str) -> Optional[ReminderHandle]:
        with self._lock:
            return self._pending.get(task_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)

    def shutdown(self) -> None:
        """Drop every pending reminder. They are not persisted."""
        with self._lock:
            handles = list(self._pending.values())
            self._pending.clear()
        for handle in handles:
            handle.timer.cancel()
            handle.state = ReminderState.ABANDONED
        if handles:
            logger.warning("Abandoned %d pending reminder(s) on shutdown", len(handles))

    def _fire(self, handle: ReminderHandle) -> None:
        with self._lock:
            if self._pending.get(handle.task_id) is not handle:
                return
            del self._pending[handle.task_id]
            handle.state = ReminderState.FIRED

        try:
            send_reminder(self.mailer, handle.recipient, handle.snapshot)
        except Exception:
            # Automatic reminders are best effort: log, never retry.
            logger.exception("Reminder for task %s to %s failed", handle.task_id, handle.recipient)
            return
        logger.info("Reminder sent for task %s to %s", handle.task_id, handle.recipient)
