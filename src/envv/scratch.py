"""
Scoped scratch storage for plaintext and intermediate ciphertext.

Use only as a context manager: the directory and everything in it is
removed when the block exits, whichever way it exits.

    with ScratchSpace("envv-rotate-") as scratch:
        path = scratch.write(".env.plain", plaintext)
        ...
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Optional

logger = logging.getLogger("envv.scratch")


class ScratchSpace:
    """A private (0700) temp directory holding 0600 files."""

    def __init__(self, prefix: str = "envv-", parent: Optional[Path] = None):
        self.prefix = prefix
        self.parent = parent
        self.path: Optional[Path] = None

    def __enter__(self) -> "ScratchSpace":
        self.path = Path(tempfile.mkdtemp(
            prefix=self.prefix, dir=str(self.parent) if self.parent else None,
        ))
        os.chmod(self.path, 0o700)
        logger.debug("Scratch space created: %s", self.path)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cleanup()

    def write(self, name: str, data: bytes) -> Path:
        """Write ``data`` to a new owner-only file inside the scratch dir."""
        if self.path is None:
            raise RuntimeError("ScratchSpace used outside its 'with' block")
        target = self.path / name
        fd = os.open(target, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "wb") as f:
            os.fchmod(f.fileno(), 0o600)
            f.write(data)
        return target

    def cleanup(self) -> None:
        if self.path is None:
            return
        shutil.rmtree(self.path, ignore_errors=True)
        if self.path.exists():
            logger.error("Scratch space %s could not be fully removed", self.path)
        else:
            logger.debug("Scratch space removed: %s", self.path)
        self.path = None
