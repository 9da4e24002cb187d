"""
Client for the school backend REST API.

Only the calls this gateway forwards are wrapped here: staff login and
the monthly attendance tally that feeds the recap export.
"""

from __future__ import annotations

import logging

import httpx

log = logging.getLogger("discipline-dashboard.upstream")

DEFAULT_TIMEOUT = 15.0


class UpstreamError(Exception):
    """The backend answered with an error, or could not be reached."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def unwrap_data(payload):
    """Return ``payload["data"]`` when the backend wraps its answer, else the payload."""
    if isinstance(payload, dict) and "data" in payload:
        return payload["data"]
    return payload


def _error_message(response: httpx.Response, fallback: str) -> str:
    try:
        body = response.json()
    except ValueError:
        return fallback
    if isinstance(body, dict):
        data = body.get("data")
        nested = data.get("message") if isinstance(data, dict) else None
        return body.get("message") or body.get("msg") or nested or fallback
    return fallback


def _json_body(response: httpx.Response):
    try:
        return response.json()
    except ValueError as e:
        log.error(f"[UPSTREAM] {response.request.method} {response.request.url.path} returned a non-JSON body")
        raise UpstreamError(502, "Invalid response from server") from e


class UpstreamClient:
    """Thin async wrapper around ``httpx.AsyncClient`` bound to the API base URL."""

    def __init__(self, base_url: str, transport: httpx.AsyncBaseTransport | None = None,
                 timeout: float = DEFAULT_TIMEOUT):
        self.base_url = base_url.rstrip("/")
        self.transport = transport
        self.timeout = timeout

    def _client(self, token: str | None = None) -> httpx.AsyncClient:
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=self.timeout,
            transport=self.transport,
        )

    async def _request(self, method: str, path: str, token: str | None = None, **kwargs) -> httpx.Response:
        try:
            async with self._client(token) as client:
                return await client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            log.error(f"[UPSTREAM] {method} {path} failed: {e!r}")
            raise UpstreamError(502, "Backend API tidak dapat dihubungi") from e

    async def login(self, email: str, password: str) -> dict:
        """
        Authenticate a staff member.

        Returns:
            ``{"access_token": ..., "teacher": {...}}`` as sent by the backend.

        Raises:
            UpstreamError: On a rejected login or a malformed answer.
        """
        response = await self._request("POST", "/api/auth/login", json={"email": email, "password": password})
        if not response.is_success:
            raise UpstreamError(
                response.status_code,
                _error_message(response, "Authentication failed. Please check your email or password."),
            )

        data = unwrap_data(_json_body(response))
        if not isinstance(data, dict) or not data.get("access_token"):
            raise UpstreamError(502, "Invalid response from server: missing access token")
        teacher = data.get("teacher")
        if not isinstance(teacher, dict) or not teacher.get("id") or not teacher.get("name") or not teacher.get("email"):
            raise UpstreamError(502, "Invalid teacher data received from server")
        return data

    async def get_monthly_attendance(self, token: str, month: str) -> list:
        """Fetch the per-student tally for ``month`` (``YYYY-MM``)."""
        response = await self._request("GET", f"/api/attendance/month/{month}", token=token)
        if not response.is_success:
            raise UpstreamError(response.status_code, _error_message(response, "Failed to fetch attendance data"))
        rows = unwrap_data(_json_body(response)) or []
        if not isinstance(rows, list):
            raise UpstreamError(502, "Invalid attendance data received from server")
        return rows
