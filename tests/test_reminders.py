"""Tests for due-date reminders: the scheduler registry and its API wiring."""

import logging
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from app.models import Task
from app.reminders import (
    ReminderScheduler,
    ReminderState,
    TaskSnapshot,
    render_reminder,
)
from app.utils import utc_now
from tests.conftest import auth

from .fakes import FakeMailer, TimerRecorder

NOW = datetime(2030, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


def _task(due_in=None, task_id="t-1", title="Quarterly report"):
    return Task(
        id=task_id,
        title=title,
        description="Numbers for Q2",
        due_date=NOW + due_in if due_in is not None else None,
        creator_id="creator",
        assigned_to="creator",
    )


@pytest.fixture
def fixed_scheduler(mailer, timers):
    return ReminderScheduler(mailer=mailer, clock=lambda: NOW, timer_factory=timers)


class TestRenderReminder:
    def test_subject_and_body(self):
        subject, body = render_reminder(TaskSnapshot.from_task(_task(timedelta(hours=48))))
        assert subject == "Task Due Soon: Quarterly report"
        assert "2030-05-03 12:00 UTC" in body
        assert "Numbers for Q2" in body


class TestScheduler:
    def test_arms_reminder_lead_time_before_due(self, fixed_scheduler, timers):
        handle = fixed_scheduler.schedule(_task(timedelta(hours=48)), "owner@tt.com")
        assert handle is not None
        assert handle.state is ReminderState.PENDING
        assert handle.send_at == NOW + timedelta(hours=24)
        assert len(timers.timers) == 1
        timer = timers.timers[0]
        assert timer.interval == pytest.approx(24 * 3600)
        assert timer.started and timer.daemon
        assert fixed_scheduler.get("t-1") is handle

    def test_fired_reminder_sends_mail(self, fixed_scheduler, timers, mailer):
        handle = fixed_scheduler.schedule(_task(timedelta(hours=48)), "owner@tt.com")
        timers.timers[0].fire()
        assert handle.state is ReminderState.FIRED
        assert len(fixed_scheduler) == 0
        assert len(mailer.sent) == 1
        assert mailer.sent[0].to == "owner@tt.com"
        assert "Quarterly report" in mailer.sent[0].subject

    @pytest.mark.parametrize("due_in", [timedelta(hours=1), timedelta(hours=24), timedelta(hours=-3)])
    def test_no_reminder_once_lead_time_has_passed(self, fixed_scheduler, timers, due_in):
        assert fixed_scheduler.schedule(_task(due_in), "owner@tt.com") is None
        assert timers.timers == []
        assert len(fixed_scheduler) == 0

    def test_naive_due_date_is_read_as_utc(self, fixed_scheduler, timers):
        task = _task(timedelta(hours=48))
        task.due_date = task.due_date.replace(tzinfo=None)
        handle = fixed_scheduler.schedule(task, "owner@tt.com")
        assert handle.send_at == NOW + timedelta(hours=24)
        assert handle.snapshot.due_date.tzinfo is not None

    def test_no_reminder_without_due_date(self, fixed_scheduler, timers):
        assert fixed_scheduler.schedule(_task(None), "owner@tt.com") is None
        assert timers.timers == []

    def test_rescheduling_replaces_pending_reminder(self, fixed_scheduler, timers, mailer):
        first = fixed_scheduler.schedule(_task(timedelta(hours=48)), "owner@tt.com")
        second = fixed_scheduler.schedule(_task(timedelta(hours=72)), "owner@tt.com")
        assert first.state is ReminderState.CANCELLED
        assert timers.timers[0].cancelled
        assert fixed_scheduler.get("t-1") is second
        assert len(fixed_scheduler) == 1

        # A stale timer that fires anyway must not send.
        timers.timers[0].function(*timers.timers[0].args)
        assert mailer.sent == []

    def test_cancel(self, fixed_scheduler, timers, mailer):
        handle = fixed_scheduler.schedule(_task(timedelta(hours=48)), "owner@tt.com")
        assert fixed_scheduler.cancel("t-1") is True
        assert fixed_scheduler.cancel("t-1") is False
        assert handle.state is ReminderState.CANCELLED
        timers.timers[0].fire()
        assert mailer.sent == []

    def test_reminders_are_independent_per_task(self, fixed_scheduler, timers, mailer):
        fixed_scheduler.schedule(_task(timedelta(hours=48), task_id="a", title="A"), "a@tt.com")
        fixed_scheduler.schedule(_task(timedelta(hours=30), task_id="b", title="B"), "b@tt.com")
        assert len(fixed_scheduler) == 2
        timers.timers[1].fire()
        assert [m.to for m in mailer.sent] == ["b@tt.com"]
        assert fixed_scheduler.get("a") is not None

    def test_send_failure_is_logged_not_raised(self, fixed_scheduler, timers, mailer, caplog):
        mailer.fail = True
        handle = fixed_scheduler.schedule(_task(timedelta(hours=48)), "owner@tt.com")
        with caplog.at_level(logging.ERROR, logger="app.reminders"):
            timers.timers[0].fire()
        assert handle.state is ReminderState.FIRED
        assert "Reminder for task t-1" in caplog.text

    def test_shutdown_abandons_pending(self, fixed_scheduler, timers):
        handle = fixed_scheduler.schedule(_task(timedelta(hours=48)), "owner@tt.com")
        fixed_scheduler.shutdown()
        assert handle.state is ReminderState.ABANDONED
        assert timers.timers[0].cancelled
        assert len(fixed_scheduler) == 0

    def test_reminder_uses_snapshot_taken_when_armed(self, fixed_scheduler, timers, mailer):
        task = _task(timedelta(hours=48))
        fixed_scheduler.schedule(task, "owner@tt.com")
        task.title = "Renamed later"
        timers.timers[0].fire()
        assert mailer.sent[0].subject == "Task Due Soon: Quarterly report"

    def test_real_timer_fires(self):
        mailer = FakeMailer()
        scheduler = ReminderScheduler(mailer=mailer, lead_time=timedelta(hours=24), clock=lambda: NOW)
        handle = scheduler.schedule(_task(timedelta(hours=24, seconds=0.05)), "owner@tt.com")
        handle.timer.join(timeout=5)
        assert handle.state is ReminderState.FIRED
        assert len(mailer.sent) == 1


def _create(client, token, **fields):
    body = {"title": "Notif Task", "description": "Should email"}
    body.update(fields)
    response = client.post("/api/tasks", json=body, headers=auth(token))
    assert response.status_code == 201, response.text
    return response.json()["task"]


def _due_in(hours):
    return (utc_now() + timedelta(hours=hours)).isoformat()


class TestAutomaticReminders:
    def test_due_in_48h_fires_24h_before(self, client, owner, scheduler, timers, mailer):
        token, _ = owner
        task = _create(client, token, dueDate=_due_in(48))

        handle = scheduler.get(task["id"])
        assert handle is not None
        due = datetime.fromisoformat(task["dueDate"])
        assert handle.send_at == due - timedelta(hours=24)
        assert handle.send_at.tzinfo is not None
        assert timers.timers[0].interval == pytest.approx(24 * 3600, abs=60)

        timers.timers[0].fire()
        assert len(mailer.sent) == 1
        assert mailer.sent[0].to == "owner@tt.com"
        assert "Notif Task" in mailer.sent[0].subject

    def test_due_in_1h_schedules_nothing(self, client, owner, scheduler, timers):
        token, _ = owner
        task = _create(client, token, dueDate=_due_in(1))
        assert scheduler.get(task["id"]) is None
        assert timers.timers == []

    def test_reminder_goes_to_assignee(self, client, owner, other, scheduler, timers, mailer):
        token, _ = owner
        _, other_user = other
        task = _create(client, token, dueDate=_due_in(48), assignedTo=other_user["id"])
        assert scheduler.get(task["id"]).recipient == "other@tt.com"

    def test_delete_cancels_pending_reminder(self, client, owner, scheduler, timers, mailer):
        token, _ = owner
        task = _create(client, token, dueDate=_due_in(48))
        client.delete(f"/api/tasks/{task['id']}", headers=auth(token))
        assert scheduler.get(task["id"]) is None
        timers.timers[0].fire()
        assert mailer.sent == []

    def test_delete_keeps_reminder_when_cancellation_disabled(self, client, owner, scheduler, timers, mailer):
        token, _ = owner
        task = _create(client, token, dueDate=_due_in(48))
        with patch("app.routers.tasks.CANCEL_REMINDERS_ON_CLOSE", False):
            client.delete(f"/api/tasks/{task['id']}", headers=auth(token))
        timers.timers[0].fire()
        assert len(mailer.sent) == 1

    def test_completing_cancels_and_reopening_rearms(self, client, owner, scheduler):
        token, _ = owner
        task = _create(client, token, dueDate=_due_in(48))
        client.post(f"/api/tasks/{task['id']}/complete", headers=auth(token))
        assert scheduler.get(task["id"]) is None
        client.post(f"/api/tasks/{task['id']}/complete", headers=auth(token))
        assert scheduler.get(task["id"]) is not None

    def test_moving_due_date_rearms(self, client, owner, scheduler):
        token, _ = owner
        task = _create(client, token, dueDate=_due_in(48))
        first = scheduler.get(task["id"])

        client.put(f"/api/tasks/{task['id']}", json={"dueDate": _due_in(96)}, headers=auth(token))
        second = scheduler.get(task["id"])
        assert second is not first
        assert first.state is ReminderState.CANCELLED
        shift = (second.send_at - first.send_at).total_seconds()
        assert abs(shift - 48 * 3600) < 60

        client.put(f"/api/tasks/{task['id']}", json={"dueDate": None}, headers=auth(token))
        assert scheduler.get(task["id"]) is None


class TestManualReminder:
    def test_sends_immediately(self, client, owner, mailer):
        token, _ = owner
        task = _create(client, token, dueDate="2099-12-31")
        response = client.post(
            f"/api/tasks/{task['id']}/schedule-email",
            json={"email": "Reminder@TT.com"},
            headers=auth(token),
        )
        assert response.status_code == 200
        assert len(mailer.sent) == 1
        assert mailer.sent[0].to == "reminder@tt.com"
        assert mailer.sent[0].subject == "Task Due Soon: Notif Task"
        assert "2099-12-31 00:00 UTC" in mailer.sent[0].body

    def test_assignee_may_send(self, client, owner, other, mailer):
        token, _ = owner
        other_token, other_user = other
        task = _create(client, token, assignedTo=other_user["id"])
        response = client.post(
            f"/api/tasks/{task['id']}/schedule-email", json={"email": "x@tt.com"}, headers=auth(other_token)
        )
        assert response.status_code == 200

    def test_stranger_forbidden(self, client, owner, other, mailer):
        token, _ = owner
        other_token, _ = other
        task = _create(client, token)
        response = client.post(
            f"/api/tasks/{task['id']}/schedule-email", json={"email": "x@tt.com"}, headers=auth(other_token)
        )
        assert response.status_code == 403
        assert mailer.sent == []

    def test_missing_task_returns_404(self, client, owner):
        token, _ = owner
        response = client.post(
            "/api/tasks/does-not-exist/schedule-email", json={"email": "x@tt.com"}, headers=auth(token)
        )
        assert response.status_code == 404

    def test_invalid_email_returns_400(self, client, owner):
        token, _ = owner
        task = _create(client, token)
        response = client.post(
            f"/api/tasks/{task['id']}/schedule-email", json={"email": "nope"}, headers=auth(token)
        )
        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "email"

    def test_mail_failure_surfaces_as_500(self, client, owner, mailer):
        token, _ = owner
        task = _create(client, token)
        mailer.fail = True
        response = client.post(
            f"/api/tasks/{task['id']}/schedule-email", json={"email": "x@tt.com"}, headers=auth(token)
        )
        assert response.status_code == 500
        assert response.json() == {"message": "Failed to send email.", "code": "mail_delivery_failed"}
