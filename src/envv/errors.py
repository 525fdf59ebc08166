"""
Error taxonomy for envv.

Each error carries a ``hint`` with the remediation a user should try.
Nothing is retried automatically: every error aborts the current command.
"""

from __future__ import annotations

from typing import Any, Optional


class EnvvError(Exception):
    """Base class for all envv errors."""

    hint: str = ""

    def __init__(self, message: str, hint: Optional[str] = None):
        super().__init__(message)
        if hint is not None:
            self.hint = hint


class ConfigError(EnvvError):
    """Local configuration is missing or unreadable."""


class AuthError(EnvvError):
    """Session is missing, expired, or rejected by the service."""

    hint = "Run 'envv auth login' to start a new session."


class AuthzError(EnvvError):
    """Caller is authenticated but lacks permission."""

    hint = "Ask a project admin to grant you access."


class NotFoundError(EnvvError):
    """A project, organization, or secret version does not exist."""


class ServiceError(EnvvError):
    """Opaque failure reported by the remote service."""

    def __init__(
        self,
        message: str,
        status_code: int = 0,
        code: str = "",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.details = details or {}

    def __str__(self) -> str:
        base = super().__str__()
        if self.status_code:
            return f"API error {self.status_code} ({self.code or 'unknown'}): {base}"
        return base


class NoRecipientsError(EnvvError):
    """No recipient holds a public key, so nobody could decrypt."""

    hint = (
        "At least one project member must register an age public key "
        "('envv auth register') before secrets can be encrypted."
    )


class EngineError(EnvvError):
    """The encryption engine failed."""


class EngineUnavailableError(EngineError):
    """A required engine binary is not installed."""

    def __init__(self, dependency: str, install_url: str = ""):
        message = f"{dependency} not found"
        hint = f"Install it from {install_url}" if install_url else f"Install {dependency}"
        super().__init__(message, hint=hint)
        self.dependency = dependency


class MetadataMissingError(EngineError):
    """Ciphertext lacks the engine's embedded recipient metadata."""

    hint = "The stored blob was not produced by sops; re-push the secrets."


class PermissionDeniedError(EngineError):
    """Caller's key is not among the ciphertext's recipients."""

    hint = "Ask a project admin to run 'envv secrets rotate' after adding your key."


class CorruptCiphertextError(EngineError):
    """Ciphertext is malformed or failed integrity checks."""

    hint = "The stored version looks corrupted; consider 'envv secrets rollback'."


class UsageError(EnvvError):
    """A command argument is outside its allowed values."""
