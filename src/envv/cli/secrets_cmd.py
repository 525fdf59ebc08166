"""Secrets commands: push, pull, sync, list, rollback, rotate."""

from __future__ import annotations

from pathlib import Path

import click
from rich.table import Table

from ._common import console, home_option, report_errors, secrets_service
from ..models import Environment, SecretFormat

ENV_CHOICES = click.Choice([e.value for e in Environment])
FORMAT_CHOICES = click.Choice([f.value for f in SecretFormat])


def register_secrets_commands(main: click.Group) -> None:
    """Register the secrets command group."""

    @main.group(name="secrets")
    def secrets_group():
        """Push, pull, and rotate encrypted secrets.

        Every push encrypts for the project members holding an age key
        and creates a new immutable version.
        """

    @secrets_group.command("push")
    @home_option
    @click.argument("file", type=click.Path())
    @click.option("--env", "env", type=ENV_CHOICES, default=None, help="Defaults to the project's.")
    @click.option("--format", "fmt", type=FORMAT_CHOICES, default="dotenv", show_default=True)
    @report_errors
    def secrets_push(home, file, env, fmt):
        """Encrypt FILE for the team and push it as a new version."""
        service = secrets_service(home)
        console.print(f"\n  Pushing secrets from [cyan]{file}[/]...", end=" ")
        version = service.push(Path(file), env, fmt)
        console.print("[green]done[/]")
        console.print(f"  Environment: {version.environment.value}")
        console.print(f"  Version:     [bold]{version.version}[/]")
        console.print(f"  Size:        {version.size_bytes} bytes\n")

    @secrets_group.command("pull")
    @home_option
    @click.option("--env", "env", type=ENV_CHOICES, default=None, help="Defaults to the project's.")
    @click.option("--output", "-o", default=None, help="Output file (default: .env.<env>).")
    @report_errors
    def secrets_pull(home, env, output):
        """Pull and decrypt the latest version."""
        service = secrets_service(home)
        console.print("\n  Pulling secrets...", end=" ")
        result = service.pull(env, Path(output) if output else None)
        console.print("[green]done[/]")
        console.print(f"  Output:  [cyan]{result.output_path}[/]")
        console.print(f"  Version: [bold]{result.version.version}[/]")
        if result.version.created_at:
            console.print(f"  Created: {result.version.created_at.isoformat()}")
        console.print()

    @secrets_group.command("sync")
    @home_option
    @click.option("--env", "env", type=ENV_CHOICES, default=None, help="Defaults to the project's.")
    @click.option("--file", "file", default=None, help="Local file (default: .env.<env>).")
    @report_errors
    def secrets_sync(home, env, file):
        """Pull the latest version if any, then push the local file."""
        service = secrets_service(home)
        result = service.sync(env, Path(file) if file else None)
        if result.first_sync:
            console.print("\n  [dim]No remote secrets found, created first version.[/]")
        else:
            console.print(f"\n  Pulled version {result.pulled.version.version}")
        console.print(f"  [green]Sync complete:[/] version [bold]{result.pushed.version}[/]\n")

    @secrets_group.command("list")
    @home_option
    @click.option("--env", "env", type=ENV_CHOICES, default=None, help="Defaults to the project's.")
    @report_errors
    def secrets_list(home, env):
        """List stored versions, newest first."""
        service = secrets_service(home)
        versions = service.list_versions(env)
        if not versions:
            console.print("\n  [dim]No versions found.[/]\n")
            return

        table = Table(title=f"Secret Versions ({len(versions)})")
        table.add_column("Version", style="bold", justify="right")
        table.add_column("ID", style="cyan")
        table.add_column("Size", justify="right")
        table.add_column("Created")
        table.add_column("Created By")
        for v in versions:
            table.add_row(
                str(v.version), v.version_id, f"{v.size_bytes} bytes",
                v.created_at.isoformat() if v.created_at else "-",
                v.created_by or "-",
            )
        console.print(table)

    @secrets_group.command("rollback")
    @home_option
    @click.argument("version_id")
    @report_errors
    def secrets_rollback(home, version_id):
        """Create a new version with the content of VERSION_ID."""
        version = secrets_service(home).rollback(version_id)
        console.print(
            f"\n  [green]Rolled back[/] {version.environment.value} "
            f"to {version_id} as version [bold]{version.version}[/]\n"
        )

    @secrets_group.command("rotate")
    @home_option
    @click.option("--env", "env", type=ENV_CHOICES, default=None, help="Defaults to the project's.")
    @report_errors
    def secrets_rotate(home, env):
        """Re-encrypt the latest version for the current team."""
        service = secrets_service(home)
        console.print("\n  Rotating encryption keys...", end=" ")
        result = service.rotate(env)
        if not result.rotated:
            console.print("[yellow]nothing to rotate[/]\n")
            return
        console.print("[green]done[/]")
        console.print(f"  Previous Version: {result.previous.version}")
        console.print(f"  New Version:      [bold]{result.current.version}[/]")
        console.print(f"  Encrypted for:    {len(result.recipient_keys)} key(s)\n")
