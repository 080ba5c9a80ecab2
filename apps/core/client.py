"""
HTTP client for the scheduling backend REST API.

Requests carry the bearer token issued by ``/auth/login``:
    Authorization: Bearer <token>
"""

from __future__ import annotations

import json
import logging

import httpx
from django.conf import settings

logger = logging.getLogger(__name__)

SESSION_TOKEN_KEY = "rota.token"
SESSION_EMPLOYEE_KEY = "rota.employee_id"


class BackendError(Exception):
    """A non-2xx answer (or no answer) from the scheduling backend."""

    def __init__(self, status_code: int | None, reason: str = "", detail: str = ""):
        self.status_code = status_code
        self.reason = reason
        self.detail = detail
        super().__init__(self.message)

    @property
    def message(self) -> str:
        head = f"{self.status_code} {self.reason}".strip() if self.status_code else self.reason
        return f"{head} - {self.detail}" if self.detail else head

    @property
    def is_conflict(self) -> bool:
        return self.status_code == 409 or "conflict" in self.message.lower()


class BackendAuthError(Exception):
    """
    The backend rejected the bearer token (401).

    Kept outside the BackendError family: pages render BackendError messages,
    while this one ends the session.
    """

    def __init__(self, detail: str = ""):
        self.status_code = 401
        self.detail = detail
        super().__init__(f"401 Unauthorized - {detail}" if detail else "401 Unauthorized")


class BackendUnavailable(BackendError):
    """The backend could not be reached."""

    def __init__(self, detail: str):
        super().__init__(None, "Backend unavailable", detail)


class MalformedPayload(BackendError):
    """The backend answered 2xx with something we cannot decode."""

    def __init__(self, what: str, errors):
        super().__init__(None, "Malformed payload", f"{what}: {errors}")


def _error_detail(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text
    if isinstance(data, dict) and (data.get("error") or data.get("message")):
        return str(data.get("error") or data.get("message"))
    return json.dumps(data)


class BackendClient:
    """Thin JSON client. Every call opens a short-lived ``httpx.Client``."""

    # Swapped for an ``httpx.MockTransport`` in tests
    transport: httpx.BaseTransport | None = None

    def __init__(self, base_url: str | None = None, token: str | None = None, timeout: float | None = None):
        self.base_url = base_url or settings.ROTA_API_BASE
        self.token = token
        self.timeout = timeout if timeout is not None else settings.ROTA_API_TIMEOUT

    @classmethod
    def for_request(cls, request) -> "BackendClient":
        return cls(token=request.session.get(SESSION_TOKEN_KEY))

    def _headers(self, with_body: bool) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if with_body:
            headers["Content-Type"] = "application/json"
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def request(self, method: str, path: str, *, params: dict | None = None, body=None):
        params = {k: v for k, v in (params or {}).items() if v not in (None, "")}
        logger.debug("%s %s %s", method, path, params or "")
        try:
            with httpx.Client(base_url=self.base_url, timeout=self.timeout, transport=self.transport) as http:
                response = http.request(
                    method,
                    path,
                    params=params or None,
                    content=json.dumps(body) if body is not None else None,
                    headers=self._headers(body is not None),
                )
        except httpx.HTTPError as exc:
            logger.warning("Backend unreachable on %s %s: %s", method, path, exc)
            raise BackendUnavailable(str(exc)) from exc

        if response.is_success:
            if response.status_code == 204 or not response.content:
                return None
            try:
                return response.json()
            except ValueError as exc:
                logger.warning("Backend %s %s answered non-JSON: %.80s", method, path, response.text)
                raise MalformedPayload(f"{method} {path}", response.text[:200]) from exc

        detail = _error_detail(response)
        if response.status_code == 401:
            logger.info("Backend %s %s: token rejected", method, path)
            raise BackendAuthError(detail)

        error = BackendError(response.status_code, response.reason_phrase, detail)
        logger.warning("Backend %s %s failed: %s", method, path, error.message)
        raise error

    def get(self, path: str, params: dict | None = None):
        return self.request("GET", path, params=params)

    def post(self, path: str, body=None):
        return self.request("POST", path, body=body if body is not None else {})

    def put(self, path: str, body):
        return self.request("PUT", path, body=body)

    def patch(self, path: str, body):
        return self.request("PATCH", path, body=body)

    def delete(self, path: str) -> None:
        self.request("DELETE", path)

    def login(self, email: str, password: str) -> dict:
        """POST /auth/login - returns ``{"token": ..., "user": {...}}``."""
        return self.post("/auth/login", {"email": email, "password": password})
