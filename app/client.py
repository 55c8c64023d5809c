"""Python client for the Task Tracker API.

Mirrors what the web frontend does: keep the session token, pick the auth or
dashboard view from its presence, and drive task CRUD over HTTP.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx

API_PREFIX = "/api"


class ApiError(Exception):
    """Non-2xx response from the API."""

    def __init__(self, status_code: int, message: str, payload: Optional[dict] = None):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.payload = payload or {}


class TokenStore:
    """Holds the session token for the lifetime of the client."""

    def __init__(self, token: Optional[str] = None):
        self._token = token

    def get(self) -> Optional[str]:
        return self._token

    def set(self, token: str) -> None:
        self._token = token

    def clear(self) -> None:
        self._token = None


class TaskTrackerClient:
    """HTTP client for the Task Tracker API."""

    def __init__(
        self,
        http: Optional[httpx.Client] = None,
        base_url: str = "http://localhost:5000",
        prefix: str = API_PREFIX,
        token_store: Optional[TokenStore] = None,
        timeout: float = 10.0,
    ):
        self.http = http or httpx.Client(base_url=base_url, timeout=timeout)
        self.prefix = prefix.rstrip("/")
        self.tokens = token_store or TokenStore()
        self.user: Optional[Dict[str, Any]] = None

    @property
    def is_authenticated(self) -> bool:
        return self.tokens.get() is not None

    @property
    def view(self) -> str:
        """'dashboard' with a session token, 'auth' without one."""
        return "dashboard" if self.is_authenticated else "auth"

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        token = self.tokens.get()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def _request(self, method: str, path: str, fallback: str, **kwargs) -> Dict[str, Any]:
        response = self.http.request(method, f"{self.prefix}{path}", headers=self._headers(), **kwargs)
        try:
            data = response.json()
        except ValueError:
            data = {}
        if response.status_code >= 400:
            message = data.get("message") if isinstance(data, dict) else None
            raise ApiError(response.status_code, message or fallback, data if isinstance(data, dict) else None)
        return data

    def _start_session(self, data: Dict[str, Any]) -> Dict[str, Any]:
        self.tokens.set(data["token"])
        self.user = data.get("user")
        return data

    # Auth

    def register(self, email: str, password: str, name: Optional[str] = None) -> Dict[str, Any]:
        body = {"email": email, "password": password}
        if name is not None:
            body["name"] = name
        data = self._request("POST", "/auth/register", "Registration failed", json=body)
        return self._start_session(data)

    def login(self, email: str, password: str) -> Dict[str, Any]:
        data = self._request("POST", "/auth/login", "Login failed", json={"email": email, "password": password})
        return self._start_session(data)

    def logout(self) -> None:
        """Tell the server, then always drop the token."""
        try:
            self._request("POST", "/auth/logout", "Logout failed")
        finally:
            self.tokens.clear()
            self.user = None

    # Tasks

    def list_tasks(
        self,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        sort_by: Optional[str] = None,
        order: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        params = {
            key: value
            for key, value in (("status", status), ("priority", priority), ("sortBy", sort_by), ("order", order))
            if value is not None
        }
        data = self._request("GET", "/tasks", "Failed to fetch tasks", params=params)
        return data.get("tasks", [])

    def get_task(self, task_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/tasks/{task_id}", "Task not found")["task"]

    def create_task(self, **fields: Any) -> Dict[str, Any]:
        """Create a task; fields use the wire names (title, dueDate, assignedTo, ...)."""
        return self._request("POST", "/tasks", "Failed to create task", json=_jsonable(fields))["task"]

    def update_task(self, task_id: str, **updates: Any) -> Dict[str, Any]:
        return self._request("PUT", f"/tasks/{task_id}", "Failed to update task", json=_jsonable(updates))["task"]

    def delete_task(self, task_id: str) -> None:
        self._request("DELETE", f"/tasks/{task_id}", "Failed to delete task")

    def complete_task(self, task_id: str) -> Dict[str, Any]:
        """Toggle completion status."""
        return self._request("POST", f"/tasks/{task_id}/complete", "Failed to mark task as completed")["task"]

    def schedule_email_reminder(self, task_id: str, email: str) -> Dict[str, Any]:
        return self._request(
            "POST", f"/tasks/{task_id}/schedule-email", "Could not schedule email.", json={"email": email}
        )

    def create_task_from_email(self, subject: str, body: str, due_date: Optional[datetime] = None) -> Dict[str, Any]:
        """Turn an email into a task: subject becomes the title, body the description."""
        return self.create_task(title=subject, description=body, dueDate=due_date)

    def close(self) -> None:
        self.http.close()

    def __enter__(self) -> "TaskTrackerClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def _jsonable(fields: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value.isoformat() if isinstance(value, datetime) else value for key, value in fields.items()}
