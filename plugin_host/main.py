"""
Main entry point for the plugin host.

This module provides the command-line interface and application startup logic.
"""

import asyncio
import logging
import signal
import sys
from typing import Any, Dict, List, Optional

import aiohttp
import typer
import uvicorn

from .application.startup import ApplicationStartup
from .core.domain.plugin import Plugin, ResourceOverrides
from .core.exceptions import PluginError
from .infrastructure.config.loader import ConfigLoader
from .infrastructure.config.models import ApplicationConfig
from .infrastructure.logging.setup import setup_logging
from .plugins.access import ResourceAccessController
from .plugins.loader import FileModuleLoader
from .presentation.api.app import create_app

cli = typer.Typer(
    name="plugin-host",
    help="Plugin host with capability gated database, messaging and object store access"
)

logger = logging.getLogger(__name__)


@cli.command()
def start(
    config_file: Optional[str] = typer.Option(
        None, "--config", "-c", help="Configuration file path"
    ),
    host: Optional[str] = typer.Option(
        None, "--host", help="Server host address"
    ),
    port: Optional[int] = typer.Option(
        None, "--port", "-p", help="Server port"
    ),
    plugin_directory: Optional[str] = typer.Option(
        None, "--plugins", help="Plugin directory"
    ),
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="Logging level"
    ),
    debug: bool = typer.Option(
        False, "--debug", help="Enable debug mode"
    )
) -> None:
    """Start the plugin host server."""
    config_loader = ConfigLoader()
    config = config_loader.load_config(config_file)

    if host:
        config.api.host = host
    if port:
        config.api.port = port
    if plugin_directory:
        config.plugins.plugin_directory = plugin_directory
    if log_level:
        config.logging.level = log_level.upper()
    if debug:
        config.debug = True
        config.logging.level = "DEBUG"

    setup_logging(config.logging)

    logger.info(f"Starting {config.name} v{config.version}")
    logger.info(f"Environment: {config.environment}")
    logger.info(f"Plugin directory: {config.plugins.plugin_directory}")

    try:
        asyncio.run(run_application(config))
    except KeyboardInterrupt:
        logger.info("Application interrupted by user")
    except Exception as e:
        logger.error(f"Application failed to start: {e}")
        sys.exit(1)


@cli.command()
def init_config(
    output: str = typer.Option(
        "config.yaml", "--output", "-o", help="Output configuration file"
    ),
    format: str = typer.Option(
        "yaml", "--format", "-f", help="Configuration format (yaml/json)"
    )
) -> None:
    """Generate a default configuration file."""
    config = ApplicationConfig()
    config_loader = ConfigLoader()

    try:
        config_loader.save_config(config, output, format)
        typer.echo(f"Default configuration saved to {output}")
    except (OSError, ValueError) as e:
        typer.echo(f"Error saving configuration: {e}", err=True)
        sys.exit(1)


@cli.command()
def validate_config(
    config_file: str = typer.Argument(..., help="Configuration file to validate")
) -> None:
    """Validate a configuration file."""
    config_loader = ConfigLoader()

    try:
        config = config_loader.load_config(config_file)
    except Exception as e:
        typer.echo(f"Configuration validation failed: {e}", err=True)
        sys.exit(1)

    typer.echo(f"Configuration file {config_file} is valid")
    typer.echo(f"Application: {config.name} v{config.version}")
    typer.echo(f"Environment: {config.environment}")
    typer.echo(f"Plugin directory: {config.plugins.plugin_directory}")


@cli.command()
def check_plugins(
    directory: str = typer.Argument("plugins", help="Plugin directory to check"),
    config_file: Optional[str] = typer.Option(
        None, "--config", "-c", help="Configuration file with resource overrides"
    )
) -> None:
    """
    Statically check every plugin in a directory.

    Plugins are imported but never initialized. Naming rules are checked
    against configured overrides and dependencies against the other plugins
    found in the directory.
    """
    overrides: Dict[str, ResourceOverrides] = {}
    if config_file:
        config = ConfigLoader().load_config(config_file)
        overrides = {
            name: ResourceOverrides.from_dict(raw)
            for name, raw in config.plugins.resource_overrides.items()
        }

    problems = asyncio.run(_check_plugin_directory(directory, overrides))
    if problems:
        for problem in problems:
            typer.echo(f"  ERROR {problem}", err=True)
        sys.exit(1)

    typer.echo("All plugins passed validation")


async def _check_plugin_directory(directory: str,
                                  overrides: Dict[str, ResourceOverrides]) -> List[str]:
    loader = FileModuleLoader()
    access = ResourceAccessController()
    problems: List[str] = []
    plugins: Dict[str, Plugin] = {}

    for plugin_path in await loader.discover(directory):
        try:
            plugin = await loader.load(plugin_path)
        except Exception as e:
            problems.append(f"{plugin_path}: {e}")
            continue

        try:
            access.validate_names(plugin.metadata, overrides.get(plugin.name))
        except PluginError as e:
            problems.append(f"{plugin_path}: {e}")
            continue

        plugins[plugin.name] = plugin
        typer.echo(f"{plugin.name} v{plugin.version} ({plugin_path})")

    for plugin in plugins.values():
        for dependency in plugin.metadata.dependencies:
            if dependency == plugin.name:
                problems.append(f"{plugin.name}: depends on itself")
            elif dependency not in plugins:
                problems.append(f"{plugin.name}: dependency '{dependency}' not found")

    return problems


@cli.command()
def health_check(
    host: str = typer.Option("localhost", "--host", help="Server host"),
    port: int = typer.Option(8000, "--port", help="Server port"),
    timeout: float = typer.Option(10.0, "--timeout", help="Request timeout")
) -> None:
    """Check the health of a running server."""

    async def check_health() -> bool:
        url = f"http://{host}:{port}/health/"
        timeout_config = aiohttp.ClientTimeout(total=timeout)

        try:
            async with aiohttp.ClientSession(timeout=timeout_config) as session:
                async with session.get(url) as response:
                    if response.status == 200:
                        data = await response.json()
                        typer.echo(f"Server is healthy: {data.get('status', 'unknown')}")
                        return True
                    typer.echo(f"Server returned status {response.status}")
                    return False
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            typer.echo(f"Health check failed: {e}")
            return False

    if not asyncio.run(check_health()):
        sys.exit(1)


async def run_application(config: ApplicationConfig) -> None:
    """Start every component, serve the API, and stop everything on exit."""
    startup = ApplicationStartup(config)

    try:
        await startup.start_application()

        app = create_app(startup, config)
        server_config = uvicorn.Config(
            app=app,
            host=config.api.host,
            port=config.api.port,
            log_level=config.logging.level.lower(),
            access_log=config.debug
        )
        server = uvicorn.Server(server_config)

        def signal_handler(signum: int, frame: Any) -> None:
            logger.info(f"Received signal {signum}, initiating shutdown...")
            server.should_exit = True

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

        await server.serve()

    except Exception as e:
        logger.error(f"Application error: {e}")
        raise
    finally:
        await startup.stop_application()


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
