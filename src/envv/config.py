"""
Local state -- session credentials, project binding, client settings.

Read once at command start and handed to the orchestrators as a
``CommandContext`` so nothing deeper in the flow touches the disk
for configuration.

    ~/.envv/
    ├── credentials.json   # Session (0600)
    └── config.yaml        # ClientSettings (optional)

    <project>/.envv/
    └── config.yaml        # ProjectBinding
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError

from . import ENVV_HOME
from .errors import AuthError, ConfigError
from .models import ClientSettings, ProjectBinding, Session

logger = logging.getLogger("envv.config")

CREDENTIALS_FILE = "credentials.json"
SETTINGS_FILE = "config.yaml"
PROJECT_DIR = ".envv"
PROJECT_CONFIG_FILE = "config.yaml"


def envv_home(home: Optional[Path] = None) -> Path:
    return (home or Path(ENVV_HOME)).expanduser()


# ---------------------------------------------------------------------------
# Client settings
# ---------------------------------------------------------------------------


def load_settings(home: Optional[Path] = None) -> ClientSettings:
    """Load client settings, applying the ``ENVV_API_URL`` override.

    A malformed settings file is logged and ignored.
    """
    settings_file = envv_home(home) / SETTINGS_FILE
    settings = ClientSettings()
    if settings_file.exists():
        try:
            data = yaml.safe_load(settings_file.read_text(encoding="utf-8")) or {}
            settings = ClientSettings(**data)
        except (yaml.YAMLError, ValidationError, TypeError) as exc:
            logger.warning("Failed to load client settings: %s", exc)

    api_url = os.environ.get("ENVV_API_URL")
    if api_url:
        settings = settings.model_copy(update={"api_url": api_url})
    return settings


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


def load_session(home: Optional[Path] = None) -> Session:
    """Read the session credentials.

    Raises:
        AuthError: If not logged in, the file is unreadable, or the
            session has expired.
    """
    path = envv_home(home) / CREDENTIALS_FILE
    if not path.exists():
        raise AuthError("Not logged in.")

    try:
        session = Session(**json.loads(path.read_text(encoding="utf-8")))
    except (json.JSONDecodeError, ValidationError, TypeError) as exc:
        raise AuthError(f"Corrupted credentials file: {exc}") from exc

    if session.is_expired():
        raise AuthError("Session expired.")
    return session


def save_session(session: Session, home: Optional[Path] = None) -> Path:
    """Write session credentials with owner-only permissions."""
    directory = envv_home(home)
    directory.mkdir(parents=True, exist_ok=True)
    os.chmod(directory, 0o700)

    path = directory / CREDENTIALS_FILE
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        os.fchmod(f.fileno(), 0o600)
        f.write(session.model_dump_json(indent=2))
    logger.debug("Session saved for user %s", session.user_id)
    return path


def clear_session(home: Optional[Path] = None) -> bool:
    """Remove stored credentials. Returns False if none were stored."""
    path = envv_home(home) / CREDENTIALS_FILE
    if not path.exists():
        return False
    path.unlink()
    return True


# ---------------------------------------------------------------------------
# Project binding
# ---------------------------------------------------------------------------


def project_config_path(workdir: Optional[Path] = None) -> Path:
    return (workdir or Path.cwd()) / PROJECT_DIR / PROJECT_CONFIG_FILE


def project_binding_exists(workdir: Optional[Path] = None) -> bool:
    return project_config_path(workdir).exists()


def load_project_binding(workdir: Optional[Path] = None) -> ProjectBinding:
    """Read the project binding for a working directory.

    Raises:
        ConfigError: If the directory is not bound or the file is invalid.
    """
    path = project_config_path(workdir)
    if not path.exists():
        raise ConfigError(
            "Not in an envv project.",
            hint="Run 'envv project init' in this directory.",
        )
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        return ProjectBinding(**data)
    except (yaml.YAMLError, ValidationError, TypeError) as exc:
        raise ConfigError(f"Invalid project config {path}: {exc}") from exc


def save_project_binding(
    binding: ProjectBinding, workdir: Optional[Path] = None
) -> Path:
    """Write the project binding. Refuses to overwrite an existing one."""
    path = project_config_path(workdir)
    if path.exists():
        raise ConfigError(
            f"Project already initialized in this directory ({path} exists)."
        )
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        yaml.safe_dump(binding.model_dump(mode="json"), default_flow_style=False),
        encoding="utf-8",
    )
    logger.info("Bound %s to project %s", path.parent.parent, binding.project_id)
    return path


# ---------------------------------------------------------------------------
# Command context
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CommandContext:
    """Everything a command needs from local state, resolved up front."""

    settings: ClientSettings
    session: Session
    binding: ProjectBinding


def load_context(
    home: Optional[Path] = None, workdir: Optional[Path] = None
) -> CommandContext:
    """Resolve settings, session, and binding for one command."""
    binding = load_project_binding(workdir)
    return CommandContext(
        settings=load_settings(home),
        session=load_session(home),
        binding=binding,
    )
