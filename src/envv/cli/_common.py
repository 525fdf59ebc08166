"""Shared utilities for all CLI command modules.

Provides the Rich console instance, the ``--home`` option, error
reporting, and helpers that resolve local state into clients.
"""

from __future__ import annotations

import functools
import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape

from .. import ENVV_HOME
from ..api import ApiClient
from ..config import load_context, load_session, load_settings
from ..errors import EnvvError
from ..service import SecretsService

console = Console()
logger = logging.getLogger("envv.cli")

home_option = click.option(
    "--home", default=ENVV_HOME, type=click.Path(), help="envv config directory."
)


def report_errors(func):
    """Print envv errors with their remediation hint and exit 1."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except EnvvError as exc:
            logger.debug("%s failed", func.__name__, exc_info=True)
            console.print(f"\n[bold red]Error:[/] {escape(str(exc))}")
            if exc.hint:
                console.print(f"  [dim]{escape(exc.hint)}[/]")
            console.print()
            sys.exit(1)

    return wrapper


def home_path(home: str) -> Path:
    """Expand the ``--home`` option into a path."""
    return Path(home).expanduser()


def authenticated_client(home: str) -> ApiClient:
    """Client carrying the stored session; raises AuthError when logged out."""
    path = home_path(home)
    return ApiClient.from_settings(load_settings(path), load_session(path))


def secrets_service(home: str) -> SecretsService:
    """Secrets service for the project bound to the working directory."""
    return SecretsService.from_context(load_context(home_path(home)))


def short_key(key: str, width: int = 20) -> str:
    """Abbreviate a public key for table display.

    Args:
        key: age public key, possibly empty.
        width: Characters to keep before the ellipsis.

    Returns:
        Rich markup; a highlighted "none" when there is no key.
    """
    if not key:
        return "[yellow]none[/]"
    return key if len(key) <= width else key[:width] + "..."
