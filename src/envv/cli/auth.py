"""Auth commands: register, login, logout, whoami."""

from __future__ import annotations

import click

from ._common import (
    authenticated_client,
    console,
    home_option,
    home_path,
    report_errors,
    short_key,
)
from ..api import ApiClient
from ..config import clear_session, load_settings, save_session
from ..errors import ConfigError
from ..keys import generate_keypair, public_key_from_file, save_private_key


def _client(home: str, api_url) -> ApiClient:
    settings = load_settings(home_path(home))
    if api_url:
        settings = settings.model_copy(update={"api_url": api_url})
    return ApiClient.from_settings(settings)


def register_auth_commands(main: click.Group) -> None:
    """Register the auth command group."""

    @main.group()
    def auth():
        """Register, log in, and manage your session."""

    @auth.command("register")
    @home_option
    @click.option("--email", prompt=True, help="Email address.")
    @click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
    @click.option("--name", prompt="Full name", help="Display name.")
    @click.option("--api-url", default=None, help="API base URL.")
    @report_errors
    def auth_register(home, email, password, name, api_url):
        """Create an account and an age keypair for decryption."""
        settings = load_settings(home_path(home))

        console.print("\n  Generating age encryption keypair...", end=" ")
        keypair = generate_keypair()
        console.print("[green]done[/]")
        console.print(f"  Public key: [cyan]{keypair.public_key}[/]")

        key_file = save_private_key(keypair, settings.age_key_file)
        console.print(f"  [dim]Private key saved to {key_file}[/]")

        console.print("  Registering account...", end=" ")
        session, user = _client(home, api_url).register(
            email, password, name, keypair.public_key
        )
        save_session(session, home_path(home))
        console.print("[green]done[/]")

        console.print(f"\n  [green]Registered and logged in as[/] [bold]{user.email}[/]")
        console.print(f"  User ID: {user.id}\n")

    @auth.command("login")
    @home_option
    @click.option("--email", prompt=True, help="Email address.")
    @click.option("--password", prompt=True, hide_input=True)
    @click.option("--api-url", default=None, help="API base URL.")
    @report_errors
    def auth_login(home, email, password, api_url):
        """Log in to an existing account."""
        session, user = _client(home, api_url).login(email, password)
        save_session(session, home_path(home))
        console.print(f"\n  [green]Logged in as[/] [bold]{user.email}[/]")
        console.print(f"  User ID: {user.id}\n")

    @auth.command("logout")
    @home_option
    @report_errors
    def auth_logout(home):
        """Clear stored credentials."""
        if clear_session(home_path(home)):
            console.print("\n  [green]Logged out.[/]\n")
        else:
            console.print("\n  [dim]No active session.[/]\n")

    @auth.command("whoami")
    @home_option
    @report_errors
    def auth_whoami(home):
        """Show the current user."""
        user = authenticated_client(home).current_user()
        console.print()
        console.print(f"  Email:          [bold]{user.email}[/]")
        console.print(f"  Name:           {user.name}")
        console.print(f"  User ID:        {user.id}")
        console.print(f"  Age Public Key: {short_key(user.age_public_key or '', 64)}")

        key_file = load_settings(home_path(home)).age_key_file
        try:
            local_key = public_key_from_file(key_file)
        except ConfigError:
            console.print(f"  [yellow]No local age key at {key_file.expanduser()}[/]")
        else:
            if user.age_public_key and local_key != user.age_public_key:
                console.print(
                    "  [yellow]Local age key does not match the registered key; "
                    "you will not be able to decrypt.[/]"
                )
        console.print()
