"""
envv data models -- recipients, policies, secret versions, local state.

Everything that crosses the wire or lands on disk is a pydantic model,
so parsing and validation live in one place.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from . import DEFAULT_API_URL


class Environment(str, Enum):
    """Deployment environments a secret blob can belong to."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class SecretFormat(str, Enum):
    """Plaintext formats understood by the encryption engine."""

    DOTENV = "dotenv"
    JSON = "json"
    YAML = "yaml"


class MemberRole(str, Enum):
    """Organization-level role."""

    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"


class Permission(str, Enum):
    """Project-level permission."""

    READ = "read"
    WRITE = "write"
    ADMIN = "admin"


# ---------------------------------------------------------------------------
# Recipients and policies
# ---------------------------------------------------------------------------


class Recipient(BaseModel):
    """A team member who may receive ciphertext.

    Members without a registered public key are still listed so callers
    can tell "nobody has a key yet" apart from "nobody is on the team".
    """

    model_config = ConfigDict(populate_by_name=True)

    identity: str = Field(validation_alias=AliasChoices("identity", "email"))
    public_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("public_key", "age_public_key"),
    )
    user_id: Optional[str] = None
    name: Optional[str] = None
    role: Optional[MemberRole] = None
    permission: Optional[Permission] = None

    @property
    def has_key(self) -> bool:
        return bool(self.public_key and self.public_key.strip())


class PolicyRule(BaseModel):
    """One creation rule: files matching ``path_regex`` go to ``recipients``."""

    path_regex: str
    recipients: list[str] = Field(min_length=1)


class EncryptionPolicy(BaseModel):
    """Ordered creation rules consumed by the encryption engine."""

    rules: list[PolicyRule] = Field(min_length=1)

    @property
    def recipient_keys(self) -> set[str]:
        keys: set[str] = set()
        for rule in self.rules:
            keys.update(rule.recipients)
        return keys

    def to_sops_config(self) -> dict[str, Any]:
        """Shape the policy as a ``.sops.yaml`` document."""
        return {
            "creation_rules": [
                {"path_regex": rule.path_regex, "age": ",".join(rule.recipients)}
                for rule in self.rules
            ]
        }

    def render(self) -> str:
        """Serialize the policy as ``.sops.yaml`` text for the engine."""
        return yaml.safe_dump(
            self.to_sops_config(), default_flow_style=False, sort_keys=False
        )


# ---------------------------------------------------------------------------
# Secret versions
# ---------------------------------------------------------------------------


class SecretVersion(BaseModel):
    """An immutable ciphertext version owned by the remote store.

    ``format`` is None when the service did not report it (rollback).
    """

    model_config = ConfigDict(frozen=True)

    version_id: str
    project_id: str
    environment: Environment
    version: int = Field(ge=1)
    format: Optional[SecretFormat] = SecretFormat.DOTENV
    ciphertext: bytes = b""
    metadata: dict[str, Any] = Field(default_factory=dict)
    size_bytes: int = 0
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None


class VersionInfo(BaseModel):
    """Version history entry (no ciphertext)."""

    version_id: str
    version: int = Field(ge=1)
    environment: Environment
    size_bytes: int = Field(
        default=0, validation_alias=AliasChoices("size_bytes", "size")
    )
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None


# ---------------------------------------------------------------------------
# Organizations, projects, users
# ---------------------------------------------------------------------------


class Organization(BaseModel):
    id: str
    name: str
    slug: str = ""
    role: Optional[MemberRole] = None
    member_count: int = 0
    created_at: Optional[datetime] = None


class Project(BaseModel):
    id: str
    name: str
    slug: str = ""
    organization_id: str = ""
    needs_reencryption: bool = False
    created_at: Optional[datetime] = None


class User(BaseModel):
    id: str
    email: str
    name: str = ""
    age_public_key: Optional[str] = None
    created_at: Optional[datetime] = None


# ---------------------------------------------------------------------------
# Local state
# ---------------------------------------------------------------------------


class Session(BaseModel):
    """Credentials persisted once per machine/user."""

    access_token: str
    user_id: str
    email: Optional[str] = None
    expires_at: Optional[datetime] = None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Whether the session has passed ``expires_at``.

        Args:
            now: Reference time; defaults to the current UTC time. Naive
                expiry timestamps are read as UTC.
        """
        if self.expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        expires = self.expires_at
        if expires.tzinfo is None:
            expires = expires.replace(tzinfo=timezone.utc)
        return expires <= now


class ProjectBinding(BaseModel):
    """Which project the current working directory belongs to."""

    organization_id: str
    organization_name: str = ""
    project_id: str
    project_name: str = ""
    default_environment: Environment = Environment.DEVELOPMENT


class ClientSettings(BaseModel):
    """Client-wide settings from ``$ENVV_HOME/config.yaml``."""

    api_url: str = DEFAULT_API_URL
    timeout_seconds: float = Field(default=30.0, gt=0)
    sops_binary: str = "sops"
    age_key_file: Path = Path("~/.config/sops/age/keys.txt")
