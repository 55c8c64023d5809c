"""Tests for the Python API client, driven against the app through TestClient."""

import pytest

from app.client import ApiError, TaskTrackerClient


@pytest.fixture
def api(client):
    return TaskTrackerClient(http=client)


def test_view_follows_session(api):
    assert api.view == "auth"
    api.register("shell@tt.com", "pass1234", name="Shell")
    assert api.view == "dashboard"
    assert api.user["email"] == "shell@tt.com"
    api.logout()
    assert api.view == "auth"
    assert api.user is None


def test_login_after_register(api):
    api.register("again@tt.com", "pass1234")
    api.logout()
    api.login("again@tt.com", "pass1234")
    assert api.is_authenticated


def test_failed_login_raises_with_server_message(api):
    with pytest.raises(ApiError) as exc_info:
        api.login("ghost@tt.com", "pass1234")
    assert exc_info.value.status_code == 401
    assert exc_info.value.message == "Invalid email or password."
    assert api.view == "auth"


def test_task_round_trip(api):
    api.register("crud@tt.com", "pass1234")
    task = api.create_task(title="Write docs", priority="high")
    assert api.get_task(task["id"])["title"] == "Write docs"

    api.update_task(task["id"], description="All of them")
    completed = api.complete_task(task["id"])
    assert completed["status"] == "completed"

    assert [t["id"] for t in api.list_tasks(status="completed")] == [task["id"]]
    assert api.list_tasks(status="todo") == []

    api.delete_task(task["id"])
    with pytest.raises(ApiError) as exc_info:
        api.get_task(task["id"])
    assert exc_info.value.status_code == 404


def test_create_task_from_email(api):
    api.register("drag@tt.com", "pass1234")
    task = api.create_task_from_email("Invoice overdue", "Please pay by Friday")
    assert task["title"] == "Invoice overdue"
    assert task["description"] == "Please pay by Friday"
    assert task["dueDate"] is None


def test_schedule_email_reminder(api, mailer):
    api.register("remind@tt.com", "pass1234")
    task = api.create_task(title="Call back")
    api.schedule_email_reminder(task["id"], "boss@tt.com")
    assert mailer.sent[0].to == "boss@tt.com"


def test_requests_without_session_are_rejected(api):
    with pytest.raises(ApiError) as exc_info:
        api.list_tasks()
    assert exc_info.value.status_code == 401
