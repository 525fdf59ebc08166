"""
Secrets service -- push, pull, sync, list, rollback, rotate.

Thin orchestration over the directory, policy builder, engine, and
store. ``SecretsService.from_context`` wires the concrete remote
implementations from a resolved ``CommandContext``.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from .api import ApiClient
from .config import CommandContext
from .directory import RecipientDirectory, RemoteRecipientDirectory
from .engine import EncryptionEngine, SopsEngine
from .errors import NotFoundError, UsageError
from .models import (
    Environment,
    ProjectBinding,
    SecretFormat,
    SecretVersion,
    VersionInfo,
)
from .policy import build_policy
from .rotation import RotationOrchestrator, RotationResult
from .store import RemoteSecretStore, SecretStore

logger = logging.getLogger("envv.service")


def parse_environment(
    value: Union[str, Environment, None], default: Optional[Environment] = None
) -> Environment:
    """Validate an environment name, falling back to ``default``."""
    if value is None or value == "":
        if default is None:
            raise UsageError("An environment is required.")
        return default
    try:
        return Environment(value)
    except ValueError:
        allowed = ", ".join(e.value for e in Environment)
        raise UsageError(f"env must be one of: {allowed}") from None


def parse_format(value: Union[str, SecretFormat, None]) -> SecretFormat:
    """Validate a plaintext format name.

    Args:
        value: Format name; empty means dotenv.

    Raises:
        UsageError: If the name is not a known format.
    """
    if value is None or value == "":
        return SecretFormat.DOTENV
    try:
        return SecretFormat(value)
    except ValueError:
        allowed = ", ".join(f.value for f in SecretFormat)
        raise UsageError(f"format must be one of: {allowed}") from None


def default_secrets_path(environment: Environment) -> Path:
    """Local plaintext file for an environment, e.g. ``.env.staging``."""
    return Path(f".env.{environment.value}")


@dataclass
class PullResult:
    version: SecretVersion
    output_path: Path


@dataclass
class SyncResult:
    pulled: Optional[PullResult]
    pushed: SecretVersion

    @property
    def first_sync(self) -> bool:
        return self.pulled is None


class SecretsService:
    """Secrets operations for one bound project."""

    def __init__(
        self,
        binding: ProjectBinding,
        directory: RecipientDirectory,
        engine: EncryptionEngine,
        store: SecretStore,
    ):
        self.binding = binding
        self.directory = directory
        self.engine = engine
        self.store = store

    @classmethod
    def from_context(cls, ctx: CommandContext) -> "SecretsService":
        client = ApiClient.from_settings(ctx.settings, ctx.session)
        engine = SopsEngine(
            binary=ctx.settings.sops_binary,
            age_key_file=ctx.settings.age_key_file,
        )
        return cls(
            ctx.binding,
            RemoteRecipientDirectory(client),
            engine,
            RemoteSecretStore(client),
        )

    @property
    def project_id(self) -> str:
        return self.binding.project_id

    def _environment(self, environment) -> Environment:
        return parse_environment(environment, self.binding.default_environment)

    def push(
        self,
        file_path: Path,
        environment: Union[str, Environment, None] = None,
        fmt: Union[str, SecretFormat, None] = None,
    ) -> SecretVersion:
        """Encrypt ``file_path`` for the current roster and store it."""
        env = self._environment(environment)
        secret_format = parse_format(fmt)
        file_path = Path(file_path)
        if not file_path.is_file():
            raise UsageError(f"file not found: {file_path}")
        self.engine.check_available()

        recipients = self.directory.list_recipients(self.project_id)
        policy = build_policy(recipients)
        logger.info(
            "Encrypting %s for %d recipient(s)",
            file_path.name, len(policy.recipient_keys),
        )
        ciphertext, metadata = self.engine.encrypt(file_path, policy, secret_format)
        return self.store.push(self.project_id, env, ciphertext, secret_format, metadata)

    def pull(
        self,
        environment: Union[str, Environment, None] = None,
        output_path: Optional[Path] = None,
    ) -> PullResult:
        """Fetch the latest version and decrypt it to ``output_path``."""
        env = self._environment(environment)
        output_path = Path(output_path) if output_path else default_secrets_path(env)
        self.engine.check_available()

        version = self.store.pull(self.project_id, env)
        plaintext = self.engine.decrypt(version.ciphertext, version.format)
        _write_private(output_path, plaintext)
        logger.info("Decrypted %s v%d to %s", env.value, version.version, output_path)
        return PullResult(version=version, output_path=output_path)

    def sync(
        self,
        environment: Union[str, Environment, None] = None,
        file_path: Optional[Path] = None,
    ) -> SyncResult:
        """Pull the latest version if one exists, then push the local file.

        Only ``NotFoundError`` on the pull leg counts as a first sync;
        any other failure propagates.
        """
        env = self._environment(environment)
        file_path = Path(file_path) if file_path else default_secrets_path(env)

        pulled: Optional[PullResult] = None
        try:
            pulled = self.pull(env, file_path)
        except NotFoundError:
            logger.info("No remote %s secrets found, creating first version", env.value)

        if not file_path.is_file():
            raise UsageError(f"file not found: {file_path}. Create it first.")

        fmt = pulled.version.format if pulled else SecretFormat.DOTENV
        pushed = self.push(file_path, env, fmt)
        return SyncResult(pulled=pulled, pushed=pushed)

    def list_versions(
        self, environment: Union[str, Environment, None] = None
    ) -> list[VersionInfo]:
        return self.store.list_versions(self.project_id, self._environment(environment))

    def rollback(self, version_id: str) -> SecretVersion:
        if not version_id:
            raise UsageError("A version id is required.")
        return self.store.rollback(self.project_id, version_id)

    def rotate(
        self, environment: Union[str, Environment, None] = None
    ) -> RotationResult:
        orchestrator = RotationOrchestrator(self.directory, self.engine, self.store)
        return orchestrator.rotate(self.project_id, self._environment(environment))


def _write_private(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "wb") as f:
        os.fchmod(f.fileno(), 0o600)
        f.write(data)
