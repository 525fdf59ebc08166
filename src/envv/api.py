"""
envv service client -- JSON over HTTPS with bearer-token auth.

One attempt per call with a fixed deadline. Error envelopes
(``{error, code, details}``) are mapped onto the envv error taxonomy:

    401 -> AuthError      403 -> AuthzError
    404 -> NotFoundError  other -> ServiceError(code, message)
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator, Optional

import requests
from pydantic import ValidationError

from .errors import AuthError, AuthzError, NotFoundError, ServiceError
from .models import ClientSettings, Organization, Project, Session, User

logger = logging.getLogger("envv.api")

API_PREFIX = "/api/v1"


@contextmanager
def invalid_response(what: str) -> Iterator[None]:
    """Turn a malformed 2xx body into ``ServiceError(code="invalid_response")``.

    Args:
        what: Short description of the payload, used in the message.
    """
    try:
        yield
    except (KeyError, TypeError, AttributeError, ValidationError) as exc:
        logger.debug("Malformed %s payload", what, exc_info=True)
        raise ServiceError(
            f"Unexpected {what} response from the envv service: {exc}",
            code="invalid_response",
        ) from exc


class ApiClient:
    """Thin authenticated wrapper around the envv REST API.

    Args:
        base_url: Service root, e.g. ``https://api.envv.sh``.
        token: Bearer token; omitted for login/register.
        timeout: Per-call deadline in seconds.
        session: Optional ``requests.Session`` (injected in tests).
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._http = session or requests.Session()

    @classmethod
    def from_settings(
        cls, settings: ClientSettings, session: Optional[Session] = None
    ) -> "ApiClient":
        return cls(
            settings.api_url,
            token=session.access_token if session else None,
            timeout=settings.timeout_seconds,
        )

    def request(
        self,
        method: str,
        path: str,
        body: Optional[dict[str, Any]] = None,
        params: Optional[dict[str, Any]] = None,
    ) -> Any:
        """Perform one API call and return the decoded JSON body.

        Raises:
            AuthError, AuthzError, NotFoundError, ServiceError
        """
        url = f"{self.base_url}{API_PREFIX}{path}"
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        logger.debug("%s %s", method, path)
        try:
            resp = self._http.request(
                method, url, headers=headers, json=body,
                params=params, timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise ServiceError(
                f"Request to {url} failed: {exc}", code="network_error"
            ) from exc

        if resp.status_code >= 400:
            raise self._error_for(resp)

        if resp.status_code == 204 or not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as exc:
            raise ServiceError(
                f"Invalid JSON in response to {method} {path}",
                status_code=resp.status_code,
                code="invalid_response",
            ) from exc

    def _error_for(self, resp: requests.Response) -> Exception:
        try:
            envelope = resp.json()
        except ValueError:
            envelope = {}
        if not isinstance(envelope, dict):
            envelope = {}

        message = envelope.get("error") or resp.reason or f"HTTP {resp.status_code}"
        code = envelope.get("code") or ""
        details = envelope.get("details") or {}

        logger.debug("API error %d (%s): %s", resp.status_code, code, message)
        if resp.status_code == 401:
            return AuthError(message)
        if resp.status_code == 403:
            return AuthzError(message)
        if resp.status_code == 404:
            return NotFoundError(message)
        return ServiceError(
            message, status_code=resp.status_code, code=code, details=details
        )

    # -------------------------------------------------------------------
    # Auth
    # -------------------------------------------------------------------

    def register(
        self, email: str, password: str, name: str, age_public_key: str
    ) -> tuple[Session, User]:
        data = self.request("POST", "/auth/register-enhanced", {
            "email": email,
            "password": password,
            "name": name,
            "age_public_key": age_public_key,
        })
        return _auth_result(data)

    def login(self, email: str, password: str) -> tuple[Session, User]:
        data = self.request("POST", "/auth/login", {
            "email": email, "password": password,
        })
        return _auth_result(data)

    def current_user(self) -> User:
        data = self.request("GET", "/auth/me")
        with invalid_response("user"):
            return User(**(data.get("user") or data))

    # -------------------------------------------------------------------
    # Organizations
    # -------------------------------------------------------------------

    def create_organization(
        self, name: str, description: str = ""
    ) -> Organization:
        body = {"name": name}
        if description:
            body["description"] = description
        data = self.request("POST", "/organizations", body)
        with invalid_response("organization"):
            return Organization(**data)

    def list_organizations(self) -> list[Organization]:
        data = self.request("GET", "/organizations")
        with invalid_response("organization list"):
            return [Organization(**o) for o in data or []]

    def get_organization(self, org_id: str) -> Organization:
        data = self.request("GET", f"/organizations/{org_id}")
        with invalid_response("organization"):
            return Organization(**data)

    def invite_member(self, org_id: str, email: str, role: str = "member") -> None:
        self.request("POST", f"/organizations/{org_id}/invites", {
            "email": email, "role": role,
        })

    # -------------------------------------------------------------------
    # Projects
    # -------------------------------------------------------------------

    def create_project(
        self, org_id: str, name: str, slug: str = "", description: str = ""
    ) -> Project:
        body = {"name": name}
        if slug:
            body["slug"] = slug
        if description:
            body["description"] = description
        data = self.request("POST", f"/organizations/{org_id}/projects", body)
        with invalid_response("project"):
            return Project(**data)

    def list_projects(self, org_id: str) -> list[Project]:
        data = self.request("GET", "/projects", params={"organization_id": org_id})
        with invalid_response("project list"):
            return [Project(**p) for p in data or []]

    def get_project(self, project_id: str) -> Project:
        data = self.request("GET", f"/projects/{project_id}")
        with invalid_response("project"):
            return Project(**data)

    def grant_access(self, project_id: str, email: str, permission: str) -> None:
        self.request("POST", f"/projects/{project_id}/access", {
            "email": email, "permission": permission,
        })

    def revoke_access(self, project_id: str, user_id: str) -> None:
        self.request("DELETE", f"/projects/{project_id}/access/{user_id}")


def _auth_result(data: dict[str, Any]) -> tuple[Session, User]:
    with invalid_response("authentication"):
        user = User(**data["user"])
        session = Session(
            access_token=data["access_token"],
            user_id=user.id,
            email=user.email,
            expires_at=data.get("expires_at") or None,
        )
    return session, user
