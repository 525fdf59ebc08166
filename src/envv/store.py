"""
Secret version store -- immutable, versioned ciphertext per environment.

Every push creates version ``max + 1`` for its (project, environment)
pair; the store assigns numbers atomically and the number it returns
is authoritative. Rollback is a push of older content, never a rewrite.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

from .api import ApiClient, invalid_response
from .errors import NotFoundError
from .models import Environment, SecretFormat, SecretVersion, VersionInfo

logger = logging.getLogger("envv.store")


class SecretStore(ABC):
    """Remote ciphertext storage capability."""

    @abstractmethod
    def push(
        self,
        project_id: str,
        environment: Environment,
        ciphertext: bytes,
        fmt: SecretFormat,
        metadata: dict[str, Any],
    ) -> SecretVersion:
        """Store ciphertext as a new version."""

    @abstractmethod
    def pull(self, project_id: str, environment: Environment) -> SecretVersion:
        """Return the latest version.

        Raises:
            NotFoundError: Nothing has been pushed for this environment yet.
        """

    @abstractmethod
    def list_versions(
        self, project_id: str, environment: Environment
    ) -> list[VersionInfo]:
        """Version history, newest first."""

    @abstractmethod
    def rollback(self, project_id: str, version_id: str) -> SecretVersion:
        """Create a new version with the content of ``version_id``."""


class RemoteSecretStore(SecretStore):
    """Secret store backed by the envv service."""

    def __init__(self, client: ApiClient):
        self.client = client

    def push(
        self,
        project_id: str,
        environment: Environment,
        ciphertext: bytes,
        fmt: SecretFormat,
        metadata: dict[str, Any],
    ) -> SecretVersion:
        data = self.client.request("POST", f"/projects/{project_id}/secrets", {
            "encrypted_data": ciphertext.decode("utf-8"),
            "format": fmt.value,
            "environment": environment.value,
            "metadata": metadata,
        }) or {}

        with invalid_response("push"):
            version = SecretVersion(
                version_id=data["version_id"],
                project_id=project_id,
                environment=data.get("environment") or environment,
                version=data["version"],
                format=fmt,
                ciphertext=ciphertext,
                metadata=metadata,
                size_bytes=data.get("size_bytes") or len(ciphertext),
                created_by=data.get("created_by"),
                created_at=data.get("created_at") or None,
            )
        logger.info(
            "Pushed %s v%d (%d bytes)",
            version.environment.value, version.version, version.size_bytes,
        )
        return version

    def pull(self, project_id: str, environment: Environment) -> SecretVersion:
        data = self.client.request(
            "GET", f"/projects/{project_id}/secrets",
            params={"environment": environment.value},
        )
        if not data or (isinstance(data, dict) and not data.get("encrypted_data")):
            raise NotFoundError(
                f"No secrets found for {environment.value} in project {project_id}"
            )
        with invalid_response("secret version"):
            return _version_from_payload(project_id, environment, data)

    def list_versions(
        self, project_id: str, environment: Environment
    ) -> list[VersionInfo]:
        data = self.client.request(
            "GET", f"/projects/{project_id}/secrets/versions",
            params={"environment": environment.value},
        )
        if isinstance(data, dict):
            data = data.get("versions") or []
        with invalid_response("version list"):
            versions = [VersionInfo(**v) for v in data or []]
        return sorted(versions, key=lambda v: v.version, reverse=True)

    def rollback(self, project_id: str, version_id: str) -> SecretVersion:
        data = self.client.request(
            "POST", f"/projects/{project_id}/secrets/rollback",
            {"version_id": version_id},
        ) or {}
        # The rollback response does not echo the format; it stays None
        # unless the service reports it.
        with invalid_response("rollback"):
            version = SecretVersion(
                version_id=data["version_id"],
                project_id=project_id,
                environment=data["environment"],
                version=data["version"],
                format=data.get("format") or None,
                size_bytes=data.get("size_bytes") or 0,
                created_by=data.get("created_by"),
                created_at=data.get("created_at") or None,
            )
        logger.info(
            "Rolled back %s to %s as v%d",
            version.environment.value, version_id, version.version,
        )
        return version


def _version_from_payload(
    project_id: str, environment: Environment, data: dict[str, Any]
) -> SecretVersion:
    ciphertext = data["encrypted_data"].encode("utf-8")
    return SecretVersion(
        version_id=data["version_id"],
        project_id=project_id,
        environment=data.get("environment") or environment,
        version=data["version"],
        format=data.get("format") or SecretFormat.DOTENV,
        ciphertext=ciphertext,
        metadata=data.get("metadata") or data.get("sops_metadata") or {},
        size_bytes=data.get("size_bytes") or len(ciphertext),
        created_by=data.get("created_by"),
        created_at=data.get("created_at") or None,
    )
