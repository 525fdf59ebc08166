"""
envv CLI -- share encrypted environment secrets with your team.

Each command group lives in its own module and is attached to the
main Click group through a register function.

Entry point: envv.cli:main
"""

from __future__ import annotations

import logging

import click

from .. import __version__


@click.group()
@click.version_option(version=__version__, prog_name="envv")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def main(verbose):
    """envv -- team secrets, encrypted client-side.

    Secrets are encrypted with SOPS + age for every project member
    holding a key, and stored as versioned ciphertext.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


# ---------------------------------------------------------------------------
# Register all command groups from modular files
# ---------------------------------------------------------------------------

from .auth import register_auth_commands
from .org import register_org_commands
from .project import register_project_commands
from .secrets_cmd import register_secrets_commands

register_auth_commands(main)
register_org_commands(main)
register_project_commands(main)
register_secrets_commands(main)
