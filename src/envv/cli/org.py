"""Organization commands: create, list, members, invite."""

from __future__ import annotations

import click
from rich.table import Table

from ._common import authenticated_client, console, home_option, report_errors, short_key
from ..directory import RemoteRecipientDirectory
from ..models import MemberRole


def register_org_commands(main: click.Group) -> None:
    """Register the org command group."""

    @main.group()
    def org():
        """Manage organizations."""

    @org.command("create")
    @home_option
    @click.option("--name", prompt=True, help="Organization name.")
    @click.option("--description", default="", help="Optional description.")
    @report_errors
    def org_create(home, name, description):
        """Create an organization."""
        created = authenticated_client(home).create_organization(name, description)
        console.print(f"\n  [green]Organization created:[/] [bold]{created.name}[/]")
        console.print(f"  ID: [cyan]{created.id}[/]\n")

    @org.command("list")
    @home_option
    @report_errors
    def org_list(home):
        """List organizations you belong to."""
        orgs = authenticated_client(home).list_organizations()
        if not orgs:
            console.print("\n  [dim]No organizations yet.[/]\n")
            return

        table = Table(title="Organizations")
        table.add_column("ID", style="cyan")
        table.add_column("Name", style="bold")
        table.add_column("Role")
        table.add_column("Members", justify="right")
        for o in orgs:
            table.add_row(o.id, o.name, o.role.value if o.role else "-", str(o.member_count))
        console.print(table)

    @org.command("members")
    @home_option
    @click.argument("org_id")
    @report_errors
    def org_members(home, org_id):
        """List organization members and their public keys."""
        directory = RemoteRecipientDirectory(authenticated_client(home))
        members = directory.list_organization_recipients(org_id)
        if not members:
            console.print("\n  [dim]No members found.[/]\n")
            return

        table = Table(title=f"Members ({len(members)})")
        table.add_column("Email", style="bold")
        table.add_column("Name")
        table.add_column("Role")
        table.add_column("Age Public Key")
        for m in members:
            table.add_row(
                m.identity, m.name or "", m.role.value if m.role else "-",
                short_key(m.public_key or ""),
            )
        console.print(table)

    @org.command("invite")
    @home_option
    @click.argument("org_id")
    @click.option("--email", prompt=True, help="Invitee email.")
    @click.option(
        "--role",
        type=click.Choice([MemberRole.ADMIN.value, MemberRole.MEMBER.value]),
        default=MemberRole.MEMBER.value,
        show_default=True,
    )
    @report_errors
    def org_invite(home, org_id, email, role):
        """Invite someone to an organization."""
        authenticated_client(home).invite_member(org_id, email, role)
        console.print(f"\n  [green]Invited[/] {email} as {role}\n")
