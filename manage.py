import click


@click.group()
def cli():
    """Management command interface for the application.

    Provides subcommands for server control, a terminal notification
    listener, and project maintenance utilities.
    """
    pass


@cli.command()
def runserver():
    """Start a FastAPI development server instance.

    Launches the application using the main module's entry point
    with development-optimized settings including auto-reload
    and debug logging when configured.
    Uses `runpy` to execute the `main.py` module as a script.
    """
    import runpy

    runpy.run_module("main", run_name="__main__")


async def _listen(access_token, user_id):
    """Run one notification session until cancelled."""
    import asyncio

    from loguru import logger

    from authentication.application.rules import CloseSessionRule, OpenSessionRule
    from authentication.infrastructure.factory import (
        build_auth_service,
        build_http_client,
    )
    from config.base import get_settings
    from notifications.infrastructure.factory import build_notification_provider

    settings = get_settings()
    http_client = build_http_client(settings)
    auth_service = build_auth_service(settings, http_client)
    provider = build_notification_provider(settings, http_client, auth_service)

    provider.on_status_change(lambda status: logger.info(f"📡 Stream status: {status}"))
    provider.on_notification(
        lambda n: logger.info(f"🔔 [{n.type}] {n.title}: {n.message}")
    )
    provider.subscribe(
        lambda snapshot: click.echo(
            f"{len(snapshot.notifications)} notifications, {snapshot.unread_count} unread"
        )
    )

    try:
        await OpenSessionRule(
            access_token=access_token,
            user_id=user_id,
            auth_service=auth_service,
            notification_provider=provider,
        ).execute()
        await asyncio.Event().wait()
    finally:
        await CloseSessionRule(
            auth_service=auth_service, notification_provider=provider
        ).execute()
        await http_client.aclose()


@cli.command()
@click.option("--token", "-t", required=True, help="Backend access token")
@click.option("--user-id", "-u", default=None, help="User ID, when the token has none")
def listen(token, user_id):
    """Print live notifications for a user until interrupted.

    Opens the same session the gateway would, connects the notification
    stream, loads the current notifications and logs everything that
    arrives afterwards. Stop with Ctrl+C.

    Parameters
    ----------
    token: str
        Access token issued by the portal backend.
    user_id: str | None
        User ID, required when the token carries no user claim.

    Examples
    --------
    Listen with a JWT that carries a `userId` claim:
        $ python manage.py listen -t "$ACCESS_TOKEN"
    """
    import asyncio

    from core.infrastructure.logging import setup_logging

    setup_logging()

    try:
        asyncio.run(_listen(token, user_id))
    except KeyboardInterrupt:
        click.echo("Stopped listening.")


@cli.command()
def clean():
    """Remove Python cache and build artifacts.

    Recursively removes __pycache__ directories, .pyc files,
    and Ruff and pytest cache directories to resolve import issues and
    remove clutter from development environment.
    """
    import os
    import shutil

    for root, dirs, files in os.walk("."):
        for dir_name in dirs:
            if dir_name in ("__pycache__", ".ruff_cache", ".pytest_cache"):
                shutil.rmtree(os.path.join(root, dir_name))
        for file_name in files:
            if file_name.endswith(".pyc"):
                os.remove(os.path.join(root, file_name))

    click.echo("Cleaned Python, Ruff and pytest cache directories.")


if __name__ == "__main__":
    """CLI entry point for direct script execution.

    Initializes Click command group and processes command-line arguments
    for development task execution.
    """
    cli()
