"""
Encryption engine adapter -- SOPS + age behind a small capability.

The orchestrators only see ``EncryptionEngine``: encrypt a plaintext
file against a policy, decrypt ciphertext, extract the ciphertext's
embedded recipient metadata. ``SopsEngine`` implements it by shelling
out to the ``sops`` binary.

Ciphertext is always emitted as SOPS JSON so the ``sops`` metadata
block can be read without decrypting, whatever the plaintext format.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional

from .errors import (
    CorruptCiphertextError,
    EngineError,
    EngineUnavailableError,
    MetadataMissingError,
    PermissionDeniedError,
)
from .models import EncryptionPolicy, SecretFormat
from .scratch import ScratchSpace

logger = logging.getLogger("envv.engine")

SOPS_INSTALL_URL = "https://github.com/getsops/sops"
METADATA_KEY = "sops"

# Substrings in sops diagnostics meaning "none of your keys is a recipient".
PERMISSION_MARKERS = (
    "no valid decryption key",
    "failed to get the data key",
    "no identity matched any of the recipients",
    "no age identity found",
)


class EncryptionEngine(ABC):
    """External envelope-encryption capability."""

    @abstractmethod
    def check_available(self) -> None:
        """Raise ``EngineUnavailableError`` if the engine cannot run."""

    @abstractmethod
    def encrypt(
        self,
        plaintext_path: Path,
        policy: EncryptionPolicy,
        fmt: SecretFormat = SecretFormat.DOTENV,
    ) -> tuple[bytes, dict[str, Any]]:
        """Encrypt a plaintext file for the policy's recipients.

        Returns:
            Ciphertext bytes and the engine metadata embedded in them.
        """

    @abstractmethod
    def decrypt(
        self, ciphertext: bytes, fmt: SecretFormat = SecretFormat.DOTENV
    ) -> bytes:
        """Recover plaintext bytes.

        Raises:
            PermissionDeniedError: Caller's key is not a recipient.
            CorruptCiphertextError: Ciphertext is malformed.
        """

    def extract_metadata(self, ciphertext: bytes) -> dict[str, Any]:
        """Recipient metadata embedded in ``ciphertext``, without decrypting.

        Raises:
            MetadataMissingError: No metadata block is present.
        """
        return extract_metadata(ciphertext)


def extract_metadata(ciphertext: bytes) -> dict[str, Any]:
    """Return the ``sops`` metadata block embedded in JSON ciphertext.

    Raises:
        MetadataMissingError: If the ciphertext is not SOPS JSON or has
            no metadata block.
    """
    try:
        document = json.loads(ciphertext)
    except (ValueError, UnicodeDecodeError) as exc:
        raise MetadataMissingError(
            f"Ciphertext is not SOPS JSON: {exc}"
        ) from exc

    if not isinstance(document, dict) or METADATA_KEY not in document:
        raise MetadataMissingError("No sops metadata found in encrypted data.")

    metadata = document[METADATA_KEY]
    if not isinstance(metadata, dict):
        raise MetadataMissingError("Invalid sops metadata format.")
    return metadata


def metadata_recipients(metadata: dict[str, Any]) -> list[str]:
    """List the age recipients named in SOPS metadata."""
    entries = metadata.get("age") or []
    return sorted(
        e["recipient"] for e in entries
        if isinstance(e, dict) and e.get("recipient")
    )


def classify_decrypt_failure(output: str) -> EngineError:
    """Map sops diagnostic output to a permission or corruption error."""
    lowered = output.lower()
    if any(marker in lowered for marker in PERMISSION_MARKERS):
        return PermissionDeniedError(
            "You don't have permission to decrypt these secrets."
        )
    return CorruptCiphertextError(f"sops decryption failed: {output.strip()}")


class SopsEngine(EncryptionEngine):
    """Encryption engine backed by the ``sops`` CLI with age keys.

    Args:
        binary: sops executable name or path.
        age_key_file: Private key file exported as ``SOPS_AGE_KEY_FILE``.
        timeout: Per-invocation deadline in seconds.
    """

    def __init__(
        self,
        binary: str = "sops",
        age_key_file: Optional[Path] = None,
        timeout: float = 60.0,
    ):
        self.binary = binary
        self.age_key_file = age_key_file.expanduser() if age_key_file else None
        self.timeout = timeout

    def check_available(self) -> None:
        if shutil.which(self.binary) is None:
            raise EngineUnavailableError(self.binary, SOPS_INSTALL_URL)

    def encrypt(
        self,
        plaintext_path: Path,
        policy: EncryptionPolicy,
        fmt: SecretFormat = SecretFormat.DOTENV,
    ) -> tuple[bytes, dict[str, Any]]:
        self.check_available()

        with ScratchSpace("envv-policy-") as scratch:
            config_path = scratch.write(".sops.yaml", policy.render().encode())
            result = self._run([
                "--config", str(config_path),
                "--encrypt",
                "--input-type", fmt.value,
                "--output-type", "json",
                str(plaintext_path),
            ])

        if result.returncode != 0:
            raise EngineError(
                f"sops encryption failed: {result.stderr.decode(errors='replace').strip()}"
            )

        ciphertext = result.stdout
        metadata = self.extract_metadata(ciphertext)
        logger.info(
            "Encrypted %s for %d recipient(s)",
            plaintext_path.name, len(policy.recipient_keys),
        )
        return ciphertext, metadata

    def decrypt(
        self, ciphertext: bytes, fmt: SecretFormat = SecretFormat.DOTENV
    ) -> bytes:
        self.check_available()

        try:
            json.loads(ciphertext)
        except (ValueError, UnicodeDecodeError) as exc:
            raise CorruptCiphertextError(f"Ciphertext is not valid JSON: {exc}") from exc
        self.extract_metadata(ciphertext)

        with ScratchSpace("envv-decrypt-") as scratch:
            encrypted_path = scratch.write("secrets.enc.json", ciphertext)
            result = self._run([
                "--decrypt",
                "--input-type", "json",
                "--output-type", fmt.value,
                str(encrypted_path),
            ])

        if result.returncode != 0:
            raise classify_decrypt_failure(
                result.stderr.decode(errors="replace")
            )
        return result.stdout

    def _run(self, args: list[str]) -> subprocess.CompletedProcess:
        env = os.environ.copy()
        if self.age_key_file:
            env["SOPS_AGE_KEY_FILE"] = str(self.age_key_file)

        cmd = [self.binary, *args]
        logger.debug("Running %s", " ".join(cmd[:2]))
        try:
            return subprocess.run(
                cmd, capture_output=True, check=False,
                env=env, timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as exc:
            raise EngineError(
                f"sops did not finish within {self.timeout:.0f}s"
            ) from exc
        except FileNotFoundError as exc:
            raise EngineUnavailableError(self.binary, SOPS_INSTALL_URL) from exc
