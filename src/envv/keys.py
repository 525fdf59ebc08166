"""
age keypairs -- generation via ``age-keygen`` and the local key file.

The key file is the one sops reads (``SOPS_AGE_KEY_FILE``). New keys
are appended, never overwrite an existing identity.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from .errors import ConfigError, EngineError, EngineUnavailableError

logger = logging.getLogger("envv.keys")

AGE_INSTALL_URL = "https://github.com/FiloSottile/age"
PUBLIC_KEY_PREFIX = "# public key: "
SECRET_KEY_PREFIX = "AGE-SECRET-KEY-"


@dataclass(frozen=True)
class AgeKeypair:
    public_key: str
    private_key: str

    def __repr__(self) -> str:
        return f"AgeKeypair(public_key={self.public_key!r}, private_key=<redacted>)"


def parse_keygen_output(output: str) -> AgeKeypair:
    """Parse ``age-keygen`` output into a keypair.

    Raises:
        EngineError: If either key is missing from the output.
    """
    public_key = private_key = ""
    for line in output.splitlines():
        line = line.strip()
        if line.lower().lstrip("# ").startswith("public key:"):
            public_key = line.split(":", 1)[1].strip()
        elif line.startswith(SECRET_KEY_PREFIX):
            private_key = line
    if not public_key or not private_key:
        raise EngineError("Failed to parse age-keygen output")
    return AgeKeypair(public_key=public_key, private_key=private_key)


def generate_keypair(binary: str = "age-keygen") -> AgeKeypair:
    """Generate a new age keypair with ``age-keygen``."""
    if shutil.which(binary) is None:
        raise EngineUnavailableError(binary, AGE_INSTALL_URL)

    result = subprocess.run(
        [binary], capture_output=True, text=True, check=False, timeout=30,
    )
    if result.returncode != 0:
        raise EngineError(f"age-keygen failed: {result.stderr.strip()}")
    # age-keygen prints the public key comment on stderr when stdout is a pipe.
    return parse_keygen_output(result.stdout + "\n" + result.stderr)


def save_private_key(keypair: AgeKeypair, path: Path) -> Path:
    """Append a keypair to the age key file (0600)."""
    path = path.expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    os.chmod(path.parent, 0o700)

    entry = (
        f"# created: {datetime.now(timezone.utc).isoformat()}\n"
        f"{PUBLIC_KEY_PREFIX}{keypair.public_key}\n"
        f"{keypair.private_key}\n"
    )
    existing = path.read_text(encoding="utf-8") if path.exists() else ""
    content = f"{existing}\n{entry}" if existing else entry

    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        os.fchmod(f.fileno(), 0o600)
        f.write(content)
    logger.info("age private key saved to %s", path)
    return path


def public_key_from_file(path: Path) -> str:
    """Return the first public key recorded in the age key file."""
    path = path.expanduser()
    if not path.exists():
        raise ConfigError(
            f"age key file not found at {path}",
            hint="Run 'envv auth register' to generate a key.",
        )
    for line in path.read_text(encoding="utf-8").splitlines():
        if line.lower().startswith(PUBLIC_KEY_PREFIX):
            return line[len(PUBLIC_KEY_PREFIX):].strip()
    raise ConfigError(f"No public key found in {path}")
