"""Project commands: create, list, init, status, members, grant, revoke."""

from __future__ import annotations

import click
from rich.panel import Panel
from rich.table import Table

from ._common import (
    authenticated_client,
    console,
    home_option,
    report_errors,
    short_key,
)
from ..config import (
    load_project_binding,
    project_binding_exists,
    project_config_path,
    save_project_binding,
)
from ..errors import ConfigError
from ..directory import RemoteRecipientDirectory
from ..models import Environment, Permission, ProjectBinding

ENV_CHOICES = click.Choice([e.value for e in Environment])


def register_project_commands(main: click.Group) -> None:
    """Register the project command group."""

    @main.group()
    def project():
        """Manage projects and bind a directory to one."""

    @project.command("create")
    @home_option
    @click.option("--org-id", required=True, help="Owning organization.")
    @click.option("--name", prompt=True, help="Project name.")
    @click.option("--slug", default="", help="URL slug.")
    @click.option("--description", default="")
    @report_errors
    def project_create(home, org_id, name, slug, description):
        """Create a project in an organization."""
        created = authenticated_client(home).create_project(org_id, name, slug, description)
        console.print(f"\n  [green]Project created:[/] [bold]{created.name}[/]")
        console.print(f"  ID: [cyan]{created.id}[/]\n")

    @project.command("list")
    @home_option
    @click.option("--org-id", required=True, help="Organization to list.")
    @report_errors
    def project_list(home, org_id):
        """List projects in an organization."""
        projects = authenticated_client(home).list_projects(org_id)
        if not projects:
            console.print("\n  [dim]No projects yet.[/]\n")
            return

        table = Table(title="Projects")
        table.add_column("ID", style="cyan")
        table.add_column("Name", style="bold")
        table.add_column("Slug")
        table.add_column("Re-encrypt")
        for p in projects:
            flag = "[yellow]needed[/]" if p.needs_reencryption else "[dim]-[/]"
            table.add_row(p.id, p.name, p.slug, flag)
        console.print(table)

    @project.command("init")
    @home_option
    @click.option("--org-id", prompt="Organization ID")
    @click.option("--project-id", prompt="Project ID")
    @click.option("--default-env", type=ENV_CHOICES, default="development", show_default=True)
    @report_errors
    def project_init(home, org_id, project_id, default_env):
        """Bind the current directory to a project."""
        if project_binding_exists():
            raise ConfigError(
                f"Project already initialized in this directory ({project_config_path()} exists)."
            )
        client = authenticated_client(home)
        remote_project = client.get_project(project_id)
        organization = client.get_organization(org_id)

        binding = ProjectBinding(
            organization_id=org_id,
            organization_name=organization.name,
            project_id=project_id,
            project_name=remote_project.name,
            default_environment=Environment(default_env),
        )
        path = save_project_binding(binding)

        console.print("\n  [green]Project initialized.[/]\n")
        console.print(f"  Organization: {organization.name} ({org_id})")
        console.print(f"  Project:      {remote_project.name} ({project_id})")
        console.print(f"  Default Env:  {default_env}")
        console.print(f"  Config:       [dim]{path}[/]")
        console.print(f"\n  Next: [cyan]envv secrets push .env.{default_env}[/]\n")

    @project.command("status")
    @report_errors
    def project_status():
        """Show the project bound to this directory."""
        binding = load_project_binding()
        console.print()
        console.print(
            Panel(
                f"Organization: [bold]{binding.organization_name}[/] ({binding.organization_id})\n"
                f"Project: [bold]{binding.project_name}[/] ({binding.project_id})\n"
                f"Default Env: [cyan]{binding.default_environment.value}[/]\n"
                f"Config: [dim]{project_config_path()}[/]",
                title="envv project",
                border_style="cyan",
            )
        )
        console.print()

    @project.command("members")
    @home_option
    @click.option("--project-id", default=None, help="Defaults to the bound project.")
    @report_errors
    def project_members(home, project_id):
        """List project members and their public keys."""
        project_id = project_id or load_project_binding().project_id
        directory = RemoteRecipientDirectory(authenticated_client(home))
        members = directory.list_recipients(project_id)
        if not members:
            console.print("\n  [dim]No members found.[/]\n")
            return

        table = Table(title=f"Project Members ({len(members)})")
        table.add_column("Email", style="bold")
        table.add_column("Name")
        table.add_column("Permission")
        table.add_column("Age Public Key")
        for m in members:
            table.add_row(
                m.identity, m.name or "",
                m.permission.value if m.permission else "-",
                short_key(m.public_key or ""),
            )
        console.print(table)

        keyless = [m for m in members if not m.has_key]
        if keyless:
            console.print(
                f"  [yellow]{len(keyless)} member(s) have no public key yet "
                f"and cannot decrypt.[/]\n"
            )

    @project.command("grant")
    @home_option
    @click.option("--email", required=True, help="Member email.")
    @click.option(
        "--permission",
        type=click.Choice([p.value for p in Permission]),
        default=Permission.READ.value,
        show_default=True,
    )
    @report_errors
    def project_grant(home, email, permission):
        """Grant a user access to the bound project."""
        binding = load_project_binding()
        authenticated_client(home).grant_access(binding.project_id, email, permission)
        console.print(f"\n  [green]Granted[/] {permission} to {email}")
        console.print("  Run [cyan]envv secrets rotate[/] so they can decrypt.\n")

    @project.command("revoke")
    @home_option
    @click.argument("user_id")
    @report_errors
    def project_revoke(home, user_id):
        """Revoke a user's access to the bound project."""
        binding = load_project_binding()
        authenticated_client(home).revoke_access(binding.project_id, user_id)
        console.print(f"\n  [green]Revoked[/] access for {user_id}")
        console.print("  Run [cyan]envv secrets rotate[/] to re-encrypt without them.\n")
