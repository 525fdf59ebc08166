"""
Recipient directory -- who may currently receive a project's secrets.

Recipients are derived from the team roster. Members without a
registered age public key are returned too; dropping them is the
policy builder's job.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from .api import ApiClient, invalid_response
from .models import Recipient

logger = logging.getLogger("envv.directory")


class RecipientDirectory(ABC):
    """Source of the authorized recipient set for a project."""

    @abstractmethod
    def list_recipients(self, project_id: str) -> list[Recipient]:
        """Return project recipients in roster order.

        Raises:
            NotFoundError: The project does not exist.
            AuthError: The session is invalid.
            AuthzError: The caller cannot read the roster.
        """


class RemoteRecipientDirectory(RecipientDirectory):
    """Recipient directory backed by the envv service."""

    def __init__(self, client: ApiClient):
        self.client = client

    def list_recipients(self, project_id: str) -> list[Recipient]:
        data = self.client.request("GET", f"/projects/{project_id}/members") or {}
        with invalid_response("member list"):
            members = data.get("members") or []
            recipients = _unique([Recipient(**m) for m in members])
        keyless = sum(1 for r in recipients if not r.has_key)
        logger.info(
            "Project %s has %d member(s), %d without a public key",
            project_id, len(recipients), keyless,
        )
        return recipients

    def list_organization_recipients(self, org_id: str) -> list[Recipient]:
        """Org-wide key listing, used for org-level encryption."""
        data = self.client.request("GET", f"/organizations/{org_id}/members/keys")
        with invalid_response("member key list"):
            return _unique([Recipient(**m) for m in data or []])


def _unique(recipients: list[Recipient]) -> list[Recipient]:
    """Keep the first entry per identity."""
    seen: set[str] = set()
    result = []
    for r in recipients:
        key = r.identity.lower()
        if key in seen:
            logger.debug("Duplicate roster entry for %s ignored", r.identity)
            continue
        seen.add(key)
        result.append(r)
    return result
