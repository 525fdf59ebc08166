"""
Rotation -- re-encrypt the latest secrets for the current roster.

    FetchCurrent -> Decrypt -> RefreshRecipients -> BuildPolicy
                 -> Encrypt -> Push -> Done
    (any step)   -> Aborted

The recipient list is fetched only after decryption has finished, so
membership changes made since the last push are always picked up.
Push is the single commit point: on any earlier failure the remote
store is untouched. Recovered plaintext lives in a ScratchSpace that
is gone before Push starts and on every error path.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

from .directory import RecipientDirectory
from .engine import EncryptionEngine
from .errors import NotFoundError, PermissionDeniedError
from .models import Environment, SecretVersion
from .policy import build_policy
from .scratch import ScratchSpace
from .store import SecretStore

logger = logging.getLogger("envv.rotation")

PLAINTEXT_NAME = ".env.rotate"


class RotationState(str, Enum):
    FETCH_CURRENT = "fetch_current"
    DECRYPT = "decrypt"
    REFRESH_RECIPIENTS = "refresh_recipients"
    BUILD_POLICY = "build_policy"
    ENCRYPT = "encrypt"
    PUSH = "push"
    DONE = "done"
    ABORTED = "aborted"


@dataclass
class RotationResult:
    """Outcome of a rotation run."""

    previous: Optional[SecretVersion] = None
    current: Optional[SecretVersion] = None
    recipient_keys: list[str] = field(default_factory=list)
    states: list[RotationState] = field(default_factory=list)

    @property
    def rotated(self) -> bool:
        return self.current is not None


class RotationOrchestrator:
    """Drives one rotation of a (project, environment) pair.

    Args:
        directory: Recipient directory queried for the fresh roster.
        engine: Encryption engine used to decrypt and re-encrypt.
        store: Secret store read from and committed to.
        scratch_parent: Where scratch directories are created
            (system temp dir by default).
    """

    def __init__(
        self,
        directory: RecipientDirectory,
        engine: EncryptionEngine,
        store: SecretStore,
        scratch_parent: Optional[Path] = None,
    ):
        self.directory = directory
        self.engine = engine
        self.store = store
        self.scratch_parent = scratch_parent
        self.state: Optional[RotationState] = None
        self.failed_step: Optional[RotationState] = None
        self._result = RotationResult()

    def _enter(self, state: RotationState) -> None:
        self.state = state
        self._result.states.append(state)
        logger.debug("Rotation -> %s", state.value)

    def rotate(self, project_id: str, environment: Environment) -> RotationResult:
        """Run the rotation state machine.

        Returns:
            RotationResult; ``rotated`` is False when nothing was stored yet.

        Raises:
            PermissionDeniedError: The caller cannot read the current secrets.
            NoRecipientsError: The refreshed roster has no keyed member.
            EnvvError: Any directory, engine, or store failure.
        """
        self.state = None
        self.failed_step = None
        self._result = result = RotationResult()

        try:
            self._enter(RotationState.FETCH_CURRENT)
            try:
                current = self.store.pull(project_id, environment)
            except NotFoundError:
                logger.info(
                    "No %s secrets stored for %s, nothing to rotate",
                    environment.value, project_id,
                )
                self._enter(RotationState.DONE)
                return result
            result.previous = current

            with ScratchSpace("envv-rotate-", self.scratch_parent) as scratch:
                self._enter(RotationState.DECRYPT)
                try:
                    plaintext = self.engine.decrypt(current.ciphertext, current.format)
                except PermissionDeniedError as exc:
                    raise PermissionDeniedError(
                        "You cannot rotate secrets you cannot decrypt yourself."
                    ) from exc
                plaintext_path = scratch.write(PLAINTEXT_NAME, plaintext)
                del plaintext

                self._enter(RotationState.REFRESH_RECIPIENTS)
                recipients = self.directory.list_recipients(project_id)

                self._enter(RotationState.BUILD_POLICY)
                policy = build_policy(recipients)
                result.recipient_keys = sorted(policy.recipient_keys)

                self._enter(RotationState.ENCRYPT)
                ciphertext, metadata = self.engine.encrypt(
                    plaintext_path, policy, current.format
                )

            self._enter(RotationState.PUSH)
            result.current = self.store.push(
                project_id, environment, ciphertext, current.format, metadata
            )
            self._enter(RotationState.DONE)
        except Exception:
            self.failed_step = self.state
            self._enter(RotationState.ABORTED)
            logger.warning(
                "Rotation of %s/%s aborted at %s",
                project_id, environment.value,
                self.failed_step.value if self.failed_step else "start",
            )
            raise

        logger.info(
            "Rotated %s: v%d -> v%d for %d recipient(s)",
            environment.value, current.version, result.current.version,
            len(result.recipient_keys),
        )
        return result
