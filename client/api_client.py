"""
Async client for the TaskFlow API.

Token state lives in an AuthSession object handed to the client, never in
module globals, so several signed-in users can share one process:

    async with httpx.AsyncClient(base_url="http://localhost:8000") as http:
        client = TaskFlowClient(http, AuthSession())
        await client.login("a@example.com", "password123")
        await client.create_task("Buy milk")

The refresh token is an httpOnly cookie; it lives in the httpx cookie jar
and is never read by this module. Only the access token is held in the
session.
"""

import asyncio
from typing import Any, Dict, List, Optional
import httpx
from utils.logger import get_logger

logger = get_logger(__name__)

SESSION_EXPIRED = "Session expired. Please log in again."


class ApiClientError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None, code: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.details = details


class SessionExpiredError(ApiClientError):
    def __init__(self, message: str = SESSION_EXPIRED):
        super().__init__(message, status_code=401, code="UNAUTHORIZED")


class AuthSession:
    """
    Access token of one signed-in client.

    The lock makes refreshes single-flight: concurrent requests that all
    hit a 401 trigger one refresh call, the rest reuse its result.
    """

    def __init__(self, access_token: Optional[str] = None):
        self.access_token = access_token
        self.refresh_lock = asyncio.Lock()

    @property
    def is_authenticated(self) -> bool:
        return bool(self.access_token)

    def clear(self):
        self.access_token = None


def _error_from_response(response: httpx.Response) -> ApiClientError:
    try:
        body = response.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}
    return ApiClientError(
        body.get("error") or "An error occurred",
        status_code=response.status_code,
        code=body.get("code"),
        details=body.get("details")
    )


class TaskFlowClient:

    def __init__(self, http: httpx.AsyncClient, session: Optional[AuthSession] = None):
        self.http = http
        self.session = session or AuthSession()

    def _headers(self) -> Dict[str, str]:
        if self.session.is_authenticated:
            return {"Authorization": f"Bearer {self.session.access_token}"}
        return {}

    async def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        return await self.http.request(method, path, headers=self._headers(), **kwargs)

    async def request(self, method: str, path: str, retry: bool = True, **kwargs) -> Any:
        """
        Sends an API request with the session's access token.

        On a 401 while holding a token, refreshes once and retries once. If
        the refresh fails the session is cleared and SessionExpiredError is
        raised. Other failures raise ApiClientError. Auth endpoints pass
        retry=False so that a wrong password is not answered with a refresh.
        """
        sent_with = self.session.access_token
        response = await self._send(method, path, **kwargs)

        if response.status_code == 401 and sent_with and retry:
            try:
                await self.refresh_access_token(stale_token=sent_with)
            except ApiClientError:
                self.session.clear()
                raise SessionExpiredError()
            response = await self._send(method, path, **kwargs)

        if response.is_error:
            raise _error_from_response(response)

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    async def refresh_access_token(self, stale_token: Optional[str] = None) -> str:
        """
        Exchanges the refresh cookie for a new access token.

        When stale_token is given and another caller already replaced it
        while we waited for the lock, that newer token is returned without a
        second refresh call.
        """
        async with self.session.refresh_lock:
            current = self.session.access_token
            if stale_token is not None and current is not None and current != stale_token:
                return current

            response = await self.http.post("/api/auth/refresh")
            if response.is_error:
                self.session.clear()
                logger.info("Token refresh failed", extra={"status_code": response.status_code})
                raise _error_from_response(response)

            self.session.access_token = response.json()["accessToken"]
            return self.session.access_token

    async def register(self, email: str, password: str) -> Dict[str, Any]:
        data = await self.request("POST", "/api/auth/register", retry=False, json={"email": email, "password": password})
        self.session.access_token = data.get("accessToken")
        return data

    async def login(self, email: str, password: str) -> Dict[str, Any]:
        data = await self.request("POST", "/api/auth/login", retry=False, json={"email": email, "password": password})
        self.session.access_token = data.get("accessToken")
        return data

    async def logout(self) -> Dict[str, Any]:
        """Logs out; the local session is cleared even if the call fails."""
        try:
            return await self.request("POST", "/api/auth/logout", retry=False)
        finally:
            self.session.clear()

    async def create_task(self, title: str, due_date: Optional[str] = None,
                          category: Optional[str] = None) -> Dict[str, Any]:
        body: Dict[str, Any] = {"title": title}
        if due_date is not None:
            body["dueDate"] = due_date
        if category is not None:
            body["category"] = category
        return await self.request("POST", "/api/tasks", json=body)

    async def get_tasks(self, completed: Optional[bool] = None) -> List[Dict[str, Any]]:
        params = {}
        if completed is not None:
            params["completed"] = "true" if completed else "false"
        return await self.request("GET", "/api/tasks", params=params)

    async def update_task(self, task_id: str, **fields) -> Dict[str, Any]:
        """
        fields use the wire names (title, completed, dueDate, category);
        pass dueDate=None or category=None to clear them.
        """
        return await self.request("PATCH", f"/api/tasks/{task_id}", json=fields)

    async def delete_task(self, task_id: str) -> None:
        await self.request("DELETE", f"/api/tasks/{task_id}")

    async def toggle_task(self, task_id: str) -> Dict[str, Any]:
        return await self.request("PATCH", f"/api/tasks/{task_id}/toggle")
