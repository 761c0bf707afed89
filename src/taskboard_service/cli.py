"""CLI entry point for taskboard.

Usage:
    taskboard serve                    # Start the HTTP and WebSocket server
    taskboard init-config              # Create config file
    taskboard check-db                 # Verify the document store
    taskboard create-admin             # Bootstrap an admin account
    taskboard --version                # Show version
"""

import asyncio
import contextlib
import sys
from pathlib import Path
from typing import Any

import click
import tomli_w

from taskboard_service import __version__
from taskboard_service.config import Settings, get_config_path, load_settings_with_toml


def get_default_config() -> dict[str, Any]:
    """Get default configuration for init-config.

    Returns:
        Default configuration dictionary
    """
    return {
        "server": {
            "host": "127.0.0.1",
            "port": 8000,
            "cors_origins": ["*"],
        },
        "database": {
            "path": "~/.local/share/taskboard/taskboard.db",
        },
        "auth": {
            "token_secret": "change-me",
            "token_ttl_minutes": 7 * 24 * 60,
            "bcrypt_rounds": 12,
            "admin_invite_token": "",
        },
        "notifications": {
            "enforce_reader_identity": False,
        },
        "logging": {
            "level": "INFO",
            "format": "json",
        },
        "metrics": {
            "enabled": True,
        },
    }


class ErrorCategory:
    """Error categories for clear error messages."""

    CONFIGURATION = "configuration"
    DATABASE = "database"
    VALIDATION = "validation"


def format_error(category: str, message: str, remediation: str) -> str:
    """Format error with category and remediation.

    Args:
        category: Error category
        message: Error message
        remediation: Suggested fix

    Returns:
        Formatted error string
    """
    return f"""
Error [{category.upper()}]: {message}

Remediation: {remediation}
"""


def _load_settings(options: dict[str, Any]) -> Settings:
    """Settings from the config file and environment, with CLI overrides applied."""
    config_path = options.get("config_path")
    settings = load_settings_with_toml(Path(config_path) if config_path else None)
    if options.get("log_level"):
        settings.log_level = options["log_level"]
    return settings


@click.group()
@click.option(
    "--config",
    type=click.Path(exists=False),
    help="Override global config file path",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    help="Override log level",
)
@click.version_option(version=__version__, prog_name="taskboard")
@click.pass_context
def main(ctx: click.Context, config: str | None, log_level: str | None) -> None:
    """Taskboard task management service.

    Configuration is loaded from (in priority order):
    1. CLI arguments
    2. Environment variables (TASKBOARD_*)
    3. Global config file (~/.config/taskboard/config.toml)
    4. Built-in defaults
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config
    ctx.obj["log_level"] = log_level


@main.command()
@click.option("--host", type=str, help="Override bind address")
@click.option("--port", type=int, help="Override port")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None) -> None:
    """Start the HTTP and WebSocket server."""
    from taskboard_service.__main__ import run_services
    from taskboard_service.utils.logging import setup_logging

    settings = _load_settings(ctx.obj)
    if host:
        settings.host = host
    if port:
        settings.port = port

    if settings.token_secret.get_secret_value() == "change-me":
        click.echo("Warning: auth.token_secret is the default value; set it before exposing the server.", err=True)

    setup_logging(settings)
    try:
        asyncio.run(run_services(settings))
    except KeyboardInterrupt:
        pass


@main.command()
@click.pass_context
def init_config(ctx: click.Context) -> None:
    """Create global configuration file with defaults.

    The file is created with restrictive permissions (600) since it holds the
    token secret.
    """
    config_path = Path(ctx.obj.get("config_path") or get_config_path())

    if config_path.exists():
        click.echo(f"Config file already exists: {config_path}")
        if not click.confirm("Overwrite?"):
            sys.exit(0)

    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, "wb") as f:
        tomli_w.dump(get_default_config(), f)

    # chmod may not be supported on Windows
    with contextlib.suppress(OSError):
        config_path.chmod(0o600)

    click.echo(f"Created config file: {config_path}")
    click.echo()
    click.echo("Next steps:")
    click.echo("  1. Set auth.token_secret to a long random value")
    click.echo("  2. Set auth.admin_invite_token to allow admin registration")
    click.echo("  3. Verify the database: taskboard check-db")


@main.command()
@click.pass_context
def check_db(ctx: click.Context) -> None:
    """Verify the document store opens and report collection sizes.

    Returns exit code 0 if the check passes, 1 otherwise.
    """
    settings = _load_settings(ctx.obj)
    ok = asyncio.run(check_document_store(settings))
    sys.exit(0 if ok else 1)


async def check_document_store(settings: Settings) -> bool:
    """Open the document store and print per-collection document counts.

    Returns:
        True if the store is reachable
    """
    from taskboard_service.errors import PersistenceError
    from taskboard_service.storage.document_store import DocumentStore

    path = settings.resolved_database_path
    click.echo(f"Document store ({path})... ", nl=False)

    store = DocumentStore(str(path))
    try:
        await store.initialize()
        counts = await store.collection_counts()
    except PersistenceError as e:
        click.echo(click.style("FAILED", fg="red"))
        click.echo(f"  Error: {e}")
        return False
    finally:
        await store.close()

    click.echo(click.style("OK", fg="green"))
    for collection, count in counts.items():
        click.echo(f"  {collection}: {count}")
    return True


@main.command()
@click.option("--name", prompt=True, help="Display name")
@click.option("--email", prompt=True, help="Login email")
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True, help="Password")
@click.pass_context
def create_admin(ctx: click.Context, name: str, email: str, password: str) -> None:
    """Create an admin account."""
    from taskboard_service.errors import TaskboardError

    settings = _load_settings(ctx.obj)
    try:
        user_id = asyncio.run(bootstrap_admin(settings, name, email, password))
    except TaskboardError as e:
        click.echo(
            format_error(
                ErrorCategory.VALIDATION if e.status_code < 500 else ErrorCategory.DATABASE,
                e.message,
                "Check the details and that the database path is writable",
            ),
            err=True,
        )
        sys.exit(1)

    click.echo(f"Created admin {email} ({user_id})")


async def bootstrap_admin(settings: Settings, name: str, email: str, password: str) -> str:
    """Create an admin user directly in the store.

    Returns:
        The new user's ID
    """
    from taskboard_service.auth.tokens import TokenService
    from taskboard_service.core.user_manager import UserManager
    from taskboard_service.models import UserRole
    from taskboard_service.storage.document_store import DocumentStore

    store = DocumentStore(str(settings.resolved_database_path))
    try:
        await store.initialize()
        users = UserManager(
            store,
            TokenService(settings.token_secret, ttl_minutes=settings.token_ttl_minutes),
            bcrypt_rounds=settings.bcrypt_rounds,
        )
        user = await users.create_user(name=name, email=email, password=password, role=UserRole.ADMIN)
    finally:
        await store.close()
    return user.id


if __name__ == "__main__":
    main()
