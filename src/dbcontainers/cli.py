"""
Command-line interface for dbcontainers

Start, stop and inspect database test containers configured through
properties files and DBCONTAINERS_* environment variables.
"""

import sys
from pathlib import Path
from typing import Optional

import click

from .config import ContainerSettings, load_config, load_properties
from .container import DbContainer
from .factory import create_container
from .logging_config import setup_logging
from .models import StartMode, StopMode
from .platforms import PLATFORMS

PLATFORM_CHOICE = click.Choice(list(PLATFORMS), case_sensitive=False)


def _container(ctx: click.Context, platform: str) -> DbContainer:
    settings = ContainerSettings.from_properties(platform.lower(), ctx.obj["properties"])
    return create_container(settings, ctx.obj["config"])


@click.group()
@click.option(
    "--properties",
    "properties_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Properties or YAML file with <platform>.<key> settings",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Set logging level",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose output",
)
@click.option(
    "--runtime",
    type=click.Choice(["docker", "podman"], case_sensitive=False),
    default=None,
    help="Container runtime to use",
)
@click.version_option(package_name="dbcontainers")
@click.pass_context
def cli(
    ctx: click.Context,
    properties_file: Optional[Path],
    log_level: Optional[str],
    verbose: bool,
    runtime: Optional[str],
) -> None:
    """
    dbcontainers: disposable database containers for tests

    Run, provision and tear down PostgreSQL and MySQL containers.
    """
    config = load_config(
        cli_overrides={
            "log_level": log_level.upper() if log_level else None,
            "verbose": verbose or None,
            "container_runtime": runtime.lower() if runtime else None,
        }
    )

    setup_logging(
        log_dir=config.log_dir,
        verbose=config.verbose,
        log_level=config.log_level,
        enable_file_logging=False,
    )

    try:
        properties = load_properties(str(properties_file)) if properties_file else {}
    except ValueError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)

    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["properties"] = properties


@cli.command()
@click.argument("platform", type=PLATFORM_CHOICE)
@click.option(
    "--mode",
    type=click.Choice([mode.value for mode in StartMode], case_sensitive=False),
    default=None,
    help="Start mode (defaults to <platform>.startMode or create)",
)
@click.pass_context
def start(ctx: click.Context, platform: str, mode: Optional[str]) -> None:
    """Start a database container and provision it."""
    container = _container(ctx, platform)
    click.echo(f"🚀 Starting {platform} container {container.name}...")

    if not container.start(mode):
        click.echo(f"❌ Container {container.name} failed to start", err=True)
        sys.exit(1)

    click.echo(f"✅ Container {container.name} ready")
    click.echo(f"   URL: {container.connection_url()}")


@cli.command()
@click.argument("platform", type=PLATFORM_CHOICE)
@click.option(
    "--mode",
    type=click.Choice([mode.value for mode in StopMode], case_sensitive=False),
    default=None,
    help="Stop mode (defaults to <platform>.stopMode or stop)",
)
@click.pass_context
def stop(ctx: click.Context, platform: str, mode: Optional[str]) -> None:
    """Stop (and optionally remove) a database container."""
    container = _container(ctx, platform)
    click.echo(f"🛑 Stopping {platform} container {container.name}...")
    container.stop(mode)
    click.echo(f"✅ Container {container.name} stopped")


@cli.command()
@click.argument("platform", type=PLATFORM_CHOICE)
@click.pass_context
def status(ctx: click.Context, platform: str) -> None:
    """Show whether a database container is registered and running."""
    container = _container(ctx, platform)
    if container.is_running():
        state = "running"
    elif container.is_registered():
        state = "stopped"
    else:
        state = "not registered"

    click.echo(f"📋 {container.name} ({container.descriptor.image}): {state}")


@cli.command()
@click.argument("platform", type=PLATFORM_CHOICE)
@click.option("--admin", is_flag=True, help="Use the administrative credentials")
@click.pass_context
def url(ctx: click.Context, platform: str, admin: bool) -> None:
    """Print the client connection URL for a database container."""
    click.echo(_container(ctx, platform).connection_url(admin=admin))


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
