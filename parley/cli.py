"""CLI commands for Parley."""

import asyncio
import re
import secrets
import sys
from datetime import UTC, datetime, timedelta
from pathlib import Path

import click


@click.group()
@click.version_option(package_name="parley")
def cli():
    """Parley - direct messaging and social graph service."""
    pass


@cli.command()
@click.option("--host", default="127.0.0.1", help="Host to bind to")
@click.option("--port", default=8080, type=int, help="Port to bind to")
@click.option("--reload", is_flag=True, help="Enable auto-reload for development")
@click.option("--workers", default=1, type=int, help="Number of worker processes")
@click.option(
    "--log-level",
    default="info",
    type=click.Choice(["debug", "info", "warning", "error"]),
    help="Logging level",
)
def serve(host, port, reload, workers, log_level):
    """Run the Parley server."""
    import signal

    from hypercorn.asyncio import serve as hypercorn_serve
    from hypercorn.config import Config

    config = Config()
    config.application_path = "parley.asgi:create_app()"
    config.bind = [f"{host}:{port}"]
    config.workers = 1 if reload else workers
    config.loglevel = log_level.upper()
    config.include_server_header = False

    if reload or workers > 1:
        config.use_reloader = reload
        from hypercorn.run import run
        run(config)
        return

    from parley.asgi import create_app

    app = create_app()
    shutdown_event = asyncio.Event()

    loop = asyncio.new_event_loop()
    loop.add_signal_handler(signal.SIGINT, shutdown_event.set)
    loop.add_signal_handler(signal.SIGTERM, shutdown_event.set)
    try:
        loop.run_until_complete(
            hypercorn_serve(app, config, shutdown_trigger=shutdown_event.wait)
        )
    finally:
        loop.close()


@cli.command()
@click.option(
    "--write",
    type=click.Path(dir_okay=False),
    default=None,
    help="Write SECRET_KEY to a .env file",
)
@click.option(
    "--format",
    "fmt",
    default="urlsafe",
    type=click.Choice(["urlsafe", "hex"]),
    help="Output format for the secret key",
)
@click.option("--length", default=32, type=click.IntRange(min=16), help="Number of random bytes")
def secret(write, fmt, length):
    """Generate a key for signing session cookies."""
    key = secrets.token_urlsafe(length) if fmt == "urlsafe" else secrets.token_hex(length)

    if not write:
        click.echo(key)
        return

    env_path = Path(write)
    env_content = env_path.read_text() if env_path.exists() else ""
    new_line = f"SECRET_KEY={key}"

    pattern = re.compile(r"^SECRET_KEY=.*$", re.MULTILINE)
    if pattern.search(env_content):
        env_content = pattern.sub(new_line, env_content)
    else:
        if env_content and not env_content.endswith("\n"):
            env_content += "\n"
        env_content += new_line + "\n"

    env_path.write_text(env_content)
    click.echo(f"SECRET_KEY written to {env_path}")


def _run_alembic(args: list[str]) -> None:
    """Build an Alembic Config programmatically and run the given command."""
    from alembic.config import CommandLine, Config

    alembic_ini = Path(__file__).parent / "alembic.ini"
    if not alembic_ini.exists():
        click.echo("Error: Could not find alembic.ini", err=True)
        sys.exit(1)

    cfg = Config(str(alembic_ini))

    cmd = CommandLine()
    options = cmd.parser.parse_args(args)
    if not hasattr(options, "cmd"):
        cmd.parser.error("too few arguments")
    else:
        cfg.cmd_opts = options
        fn, positional, kwarg = options.cmd
        fn(
            cfg,
            *[getattr(options, k, None) for k in positional],
            **{k: getattr(options, k, None) for k in kwarg},
        )


@cli.command(
    context_settings=dict(
        ignore_unknown_options=True,
        allow_extra_args=True,
    )
)
@click.pass_context
def db(ctx):
    """Run database migrations via Alembic.

    \b
    Examples:
        parley db upgrade head     # Apply all migrations
        parley db downgrade -1     # Rollback one migration
        parley db current          # Show current revision
        parley db history          # Show migration history
    """
    if not ctx.args:
        click.echo(ctx.get_help())
        return

    _run_alembic(ctx.args)


@cli.group()
def messages():
    """Maintenance commands for stored messages."""
    pass


async def _in_session(operation):
    """Run ``operation(db_session)`` against the configured database."""
    from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

    from parley.config import get_settings

    engine = create_async_engine(get_settings().db.url)
    try:
        session_maker = async_sessionmaker(engine, expire_on_commit=False)
        async with session_maker() as session:
            return await operation(session)
    finally:
        await engine.dispose()


async def _purge(older_than: datetime | None) -> int:
    from parley.db.stores import SqlMessageLog

    return await _in_session(lambda session: SqlMessageLog(session).purge_fully_deleted(older_than))


@messages.command()
@click.option(
    "--older-than-days",
    default=None,
    type=click.IntRange(min=0),
    help="Only purge messages whose last deletion is at least this many days old",
)
def purge(older_than_days):
    """Permanently remove messages both participants have deleted."""
    older_than = None
    if older_than_days is not None:
        older_than = datetime.now(UTC) - timedelta(days=older_than_days)

    purged = asyncio.run(_purge(older_than))
    click.echo(f"Purged {purged} message(s).")


@cli.group("settings")
def settings_group():
    """Admin-controlled messaging settings stored in the database.

    \b
    Examples:
        parley settings show
        parley settings set messaging-enabled false
        parley settings set max-message-length 800
    """
    pass


async def _show_settings() -> list[tuple[str, str | None, str]]:
    from parley.config import get_settings
    from parley.db.services import setting_service

    async def operation(session):
        effective = await setting_service.load_messaging_settings(session, get_settings().messaging)
        return [
            (
                setting_service.MESSAGING_ENABLED_KEY,
                await setting_service.get_setting(session, setting_service.MESSAGING_ENABLED_KEY),
                "true" if effective.is_messaging_enabled() else "false",
            ),
            (
                setting_service.MAX_MESSAGE_LENGTH_KEY,
                await setting_service.get_setting(session, setting_service.MAX_MESSAGE_LENGTH_KEY),
                str(effective.get_max_message_length()),
            ),
        ]

    return await _in_session(operation)


@settings_group.command("show")
def show_settings():
    """Show the effective messaging settings and where they come from."""
    for key, stored, effective in asyncio.run(_show_settings()):
        source = "stored" if stored is not None else "default"
        click.echo(f"{key} = {effective} ({source})")


@settings_group.command("set")
@click.argument("name", type=click.Choice(["messaging-enabled", "max-message-length"]))
@click.argument("value")
def set_setting(name, value):
    """Change a messaging setting for every running instance."""
    from parley.db.services import setting_service

    if name == "messaging-enabled":
        enabled = click.BOOL.convert(value, None, None)
        asyncio.run(_in_session(lambda session: setting_service.set_messaging_enabled(session, enabled)))
        click.echo(f"Messaging {'enabled' if enabled else 'disabled'}.")
        return

    length = click.IntRange(min=1).convert(value, None, None)
    asyncio.run(_in_session(lambda session: setting_service.set_max_message_length(session, length)))
    click.echo(f"Maximum message length set to {length}.")


if __name__ == "__main__":
    cli()
