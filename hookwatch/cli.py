"""CLI commands for hookwatch."""

import logging
import os
import re
import secrets
import sys
from pathlib import Path

import click


@click.group()
@click.version_option(package_name="hookwatch")
@click.option(
    "--log-level",
    default="info",
    type=click.Choice(["debug", "info", "warning", "error"]),
    help="Logging level",
)
def cli(log_level):
    """hookwatch - relay coding-session events to your devices."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


@cli.command()
@click.option("--host", default="127.0.0.1", help="Host to bind to")
@click.option("--port", default=3000, type=int, help="Port to bind to")
@click.option("--reload", is_flag=True, help="Enable auto-reload for development")
def serve(host, port, reload):
    """Run the relay server."""
    import asyncio
    import signal

    from hypercorn.asyncio import serve as hypercorn_serve
    from hypercorn.config import Config

    config = Config()
    config.application_path = "hookwatch.asgi:create_app()"
    config.bind = [f"{host}:{port}"]
    config.loglevel = logging.getLevelName(logging.getLogger().level)
    config.include_server_header = False

    if reload:
        config.use_reloader = True
        from hypercorn.run import run
        run(config)
        return

    from hookwatch.asgi import create_app
    from hookwatch.lib import observability

    app = observability.instrument_app(create_app())

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
@click.option("--url", envvar="HOOKWATCH_URL", required=True, help="Relay base URL")
@click.option("--api-key", envvar="HOOKWATCH_API_KEY", required=True, help="Relay API key")
@click.option("--interval", default=10.0, type=float, help="Seconds between version checks")
@click.option(
    "--state",
    "state_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="JSON file to persist the cursor and read state",
)
@click.option("--ack/--no-ack", default=False, help="Acknowledge notifications as they are shown")
def watch(url, api_key, interval, state_path, ack):
    """Poll the relay and print new notifications as they arrive."""
    import asyncio

    from hookwatch.client.alerts import LocalAlertCenter, format_alert
    from hookwatch.client.api import APIClient
    from hookwatch.client.state import StateFile
    from hookwatch.client.sync import SyncEngine
    from hookwatch.client.tracker import DedupTracker

    async def run() -> None:
        async with APIClient(url, api_key) as api:
            center = LocalAlertCenter(sink=lambda n: click.echo(format_alert(n)))
            tracker = DedupTracker(presenter=center, acknowledger=api.acknowledge)
            engine = SyncEngine(
                api,
                tracker,
                interval=interval,
                state_file=StateFile(state_path) if state_path else None,
            )
            engine.start()
            click.echo(f"Watching {url} (every {interval:g}s, Ctrl+C to stop)")
            try:
                while True:
                    await asyncio.sleep(interval)
                    if ack and tracker.unread:
                        await tracker.mark_all_read()
            finally:
                await engine.stop()

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        pass


@cli.command()
@click.option(
    "--write",
    type=click.Path(),
    default=None,
    help="Write HOOKWATCH_API_KEY to a .env file",
)
@click.option("--length", default=32, type=int, help="Number of random bytes")
def apikey(write, length):
    """Generate a random API key."""
    key = secrets.token_urlsafe(length)

    if write:
        env_path = Path(write)
        env_content = ""

        if env_path.exists():
            env_content = env_path.read_text()

        key_pattern = re.compile(r"^HOOKWATCH_API_KEY=.*$", re.MULTILINE)
        new_line = f"HOOKWATCH_API_KEY={key}"

        if key_pattern.search(env_content):
            env_content = key_pattern.sub(new_line, env_content)
        else:
            if env_content and not env_content.endswith("\n"):
                env_content += "\n"
            env_content += new_line + "\n"

        env_path.write_text(env_content)
        click.echo(f"HOOKWATCH_API_KEY written to {env_path}")
    else:
        click.echo(key)


def _run_alembic(project_root: Path, args: list[str]) -> None:
    """Build an Alembic Config programmatically and run the given command."""
    from alembic.config import CommandLine, Config

    package_dir = Path(__file__).parent

    alembic_ini = project_root / "alembic.ini"
    if not alembic_ini.exists():
        alembic_ini = package_dir / "alembic.ini"
        if not alembic_ini.exists():
            click.echo("Error: Could not find alembic.ini", err=True)
            sys.exit(1)

    cfg = Config(str(alembic_ini))
    cfg.set_main_option("script_location", str(package_dir / "alembic"))
    cfg.set_main_option("version_locations", str(package_dir / "alembic" / "versions"))

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
        hookwatch db upgrade head    # Apply all migrations
        hookwatch db downgrade -1    # Rollback one migration
        hookwatch db current         # Show current revision
        hookwatch db history         # Show migration history
    """
    args = ctx.args
    if not args:
        click.echo(ctx.get_help())
        return

    _run_alembic(Path(os.getcwd()), args)


if __name__ == "__main__":
    cli()
