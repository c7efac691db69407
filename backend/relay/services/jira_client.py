"""Jira Cloud REST client used for comment mirroring."""

from __future__ import annotations

import base64
import http.client
import json
from dataclasses import dataclass
from typing import Any, Protocol
from urllib import error as urllib_error
from urllib import parse as urllib_parse
from urllib import request as urllib_request

from relay.config import get_settings


class JiraApiError(RuntimeError):
    """Raised for a failed Jira call; carries the HTTP status and response body."""

    def __init__(self, message: str, *, status: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status = status
        self.body = body


class JiraClient(Protocol):
    """Comment operations the relay needs from Jira."""

    def add_comment(self, issue_key: str, body: dict[str, Any]) -> str:
        """Create a comment and return its id."""

    def update_comment(self, issue_key: str, comment_id: str, body: dict[str, Any]) -> None:
        """Replace a comment body."""

    def delete_comment(self, issue_key: str, comment_id: str) -> None:
        """Delete a comment."""


@dataclass(slots=True)
class JiraRestClient:
    """Basic-auth Jira REST v3 client."""

    host: str
    email: str
    api_token: str
    timeout_seconds: int = 30

    def add_comment(self, issue_key: str, body: dict[str, Any]) -> str:
        decoded = self._request("POST", f"/issue/{_quote(issue_key)}/comment", {"body": body})
        comment_id = decoded.get("id") if isinstance(decoded, dict) else None
        if comment_id is None:
            raise JiraApiError("Jira returned a comment without an id")
        return str(comment_id)

    def update_comment(self, issue_key: str, comment_id: str, body: dict[str, Any]) -> None:
        self._request("PUT", f"/issue/{_quote(issue_key)}/comment/{_quote(comment_id)}", {"body": body})

    def delete_comment(self, issue_key: str, comment_id: str) -> None:
        self._request("DELETE", f"/issue/{_quote(issue_key)}/comment/{_quote(comment_id)}")

    def _request(self, method: str, endpoint: str, payload: dict[str, Any] | None = None) -> Any:
        url = f"{self.host.rstrip('/')}/rest/api/3{endpoint}"
        credentials = base64.b64encode(f"{self.email}:{self.api_token}".encode("utf-8")).decode("ascii")
        req = urllib_request.Request(
            url=url,
            data=json.dumps(payload).encode("utf-8") if payload is not None else None,
            method=method,
            headers={
                "Authorization": f"Basic {credentials}",
                "Accept": "application/json",
                "Content-Type": "application/json",
            },
        )
        try:
            with urllib_request.urlopen(req, timeout=self.timeout_seconds) as resp:
                raw = resp.read().decode("utf-8")
        except urllib_error.HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="replace")
            raise JiraApiError(f"Jira API Error ({exc.code}): {detail[:500]}", status=exc.code, body=detail) from exc
        except urllib_error.URLError as exc:
            raise JiraApiError(f"Jira request failed: {exc.reason}") from exc
        except (OSError, http.client.HTTPException) as exc:
            raise JiraApiError(f"Jira request failed: {exc!r}") from exc

        if not raw.strip():
            return {}
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            raise JiraApiError("Jira returned a non-JSON response", body=raw[:500]) from exc


def _quote(value: str) -> str:
    return urllib_parse.quote(value, safe="")


def get_default_jira_client() -> JiraRestClient:
    """Return a client configured from settings."""

    settings = get_settings()
    settings.require("jira_host", "jira_email", "jira_api_token")
    return JiraRestClient(
        host=settings.jira_host or "",
        email=settings.jira_email or "",
        api_token=settings.jira_api_token or "",
        timeout_seconds=settings.jira_timeout_seconds,
    )
