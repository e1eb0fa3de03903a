"""
Main entry point for the Portswitch application.

This module provides the command-line interface: running the forwarding
service, editing the persisted desired state and managing configuration files.
"""

import asyncio
import logging
import signal
import sys
import threading
from typing import Optional

import typer

from .application.startup import ApplicationStartup, seed_desired_state
from .core.domain.errors import ConfigInvalid
from .core.domain.events import Event
from .core.domain.state import PORT_KEY, PersistedConfig
from .infrastructure.config.loader import ConfigLoader
from .infrastructure.config.models import ApplicationConfig
from .infrastructure.logging.setup import setup_logging
from .infrastructure.storage.store import JsonFileStore

# Create CLI application
cli = typer.Typer(
    name="portswitch",
    help="Control plane for a single TCP port-forwarding endpoint"
)

logger = logging.getLogger(__name__)

INTERACTIVE_HELP = "commands: t = toggle, p <port> = set port, s = status, q = quit"


def load_application_config(config_file: Optional[str],
                            state_file: Optional[str] = None,
                            log_level: Optional[str] = None,
                            debug: bool = False) -> ApplicationConfig:
    """Load configuration and apply command line overrides."""
    config = ConfigLoader().load_config(config_file)

    if state_file:
        config.storage.state_file = state_file
    if log_level:
        config.logging.level = log_level.upper()
    if debug:
        config.debug = True
        config.logging.level = "DEBUG"

    return config


def _load_or_exit(config_file: Optional[str], state_file: Optional[str] = None,
                  log_level: Optional[str] = None, debug: bool = False) -> ApplicationConfig:
    try:
        return load_application_config(config_file, state_file, log_level, debug)
    except (ValueError, FileNotFoundError) as e:
        typer.echo(f"Error loading configuration: {e}", err=True)
        sys.exit(1)


def echo_event(event: Event) -> None:
    """Print a controller event as a one-line notice."""
    typer.echo(f"[{event.kind.value}] {event.message}", err=event.is_error)


@cli.command()
def run(
    config_file: Optional[str] = typer.Option(
        None, "--config", "-c", help="Configuration file path"
    ),
    state_file: Optional[str] = typer.Option(
        None, "--state-file", help="Desired-state file path"
    ),
    port: Optional[int] = typer.Option(
        None, "--port", "-p", help="Port to listen on (persisted)"
    ),
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="Logging level"
    ),
    debug: bool = typer.Option(
        False, "--debug", help="Enable debug mode"
    ),
    interactive: bool = typer.Option(
        False, "--interactive", "-i", help="Read toggle commands from stdin"
    )
) -> None:
    """Run the forwarding service, resuming the persisted state."""

    config = _load_or_exit(config_file, state_file, log_level, debug)
    setup_logging(config.logging)

    logger.info(f"Starting {config.name} v{config.version}")

    store = JsonFileStore(config.storage.state_file)
    if port is not None:
        _set_stored_port(store, port)

    try:
        asyncio.run(run_application(config, store, interactive))
    except KeyboardInterrupt:
        logger.info("Application interrupted by user")


@cli.command()
def toggle(
    config_file: Optional[str] = typer.Option(
        None, "--config", "-c", help="Configuration file path"
    ),
    state_file: Optional[str] = typer.Option(
        None, "--state-file", help="Desired-state file path"
    )
) -> None:
    """Flip the persisted listening flag for the next run."""

    config = _load_or_exit(config_file, state_file)
    store = JsonFileStore(config.storage.state_file)

    desired = seed_desired_state(store, config.forwarder.default_port).toggled()
    desired.save(store)
    typer.echo(_describe(desired))


@cli.command()
def set_port(
    port: int = typer.Argument(..., help="Port to listen on"),
    config_file: Optional[str] = typer.Option(
        None, "--config", "-c", help="Configuration file path"
    ),
    state_file: Optional[str] = typer.Option(
        None, "--state-file", help="Desired-state file path"
    )
) -> None:
    """Change the persisted port."""

    config = _load_or_exit(config_file, state_file)
    store = JsonFileStore(config.storage.state_file)

    seed_desired_state(store, config.forwarder.default_port)
    desired = _set_stored_port(store, port)
    typer.echo(_describe(desired))


@cli.command()
def status(
    config_file: Optional[str] = typer.Option(
        None, "--config", "-c", help="Configuration file path"
    ),
    state_file: Optional[str] = typer.Option(
        None, "--state-file", help="Desired-state file path"
    )
) -> None:
    """Show the persisted desired state."""

    config = _load_or_exit(config_file, state_file)
    store = JsonFileStore(config.storage.state_file)

    desired = PersistedConfig.load(store)
    if PORT_KEY not in store:
        desired = desired.edit().port(config.forwarder.default_port).build()
    typer.echo(_describe(desired))


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
    except ValueError as e:
        typer.echo(f"Error saving configuration: {e}", err=True)
        sys.exit(1)


@cli.command()
def validate_config(
    config_file: str = typer.Argument(...,
                                      help="Configuration file to validate")
) -> None:
    """Validate a configuration file."""

    config_loader = ConfigLoader()

    try:
        config = config_loader.load_config(config_file)
        typer.echo(f"Configuration file {config_file} is valid")
        typer.echo(f"Application: {config.name} v{config.version}")
        typer.echo(f"Listener: {config.forwarder.bind_host}:{config.forwarder.default_port}")
    except (ValueError, FileNotFoundError) as e:
        typer.echo(f"Configuration validation failed: {e}", err=True)
        sys.exit(1)


def _set_stored_port(store: JsonFileStore, port: int) -> PersistedConfig:
    try:
        desired = PersistedConfig.load(store).edit().port(port).build()
    except ConfigInvalid as e:
        typer.echo(f"Error: {e}", err=True)
        sys.exit(1)
    desired.save(store)
    return desired


def _describe(config: PersistedConfig) -> str:
    state = "on" if config.listening else "off"
    return f"port={config.port} listening={state}"


async def run_application(config: ApplicationConfig, store: JsonFileStore,
                          interactive: bool = False) -> None:
    """
    Run the service until interrupted or, in interactive mode, until quit.

    Args:
        config: Application configuration
        store: Persistent desired-state store
        interactive: Read toggle commands from stdin
    """
    startup = ApplicationStartup(config, store=store, notify=echo_event)
    shutdown = asyncio.Event()

    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, shutdown.set)
        except (NotImplementedError, RuntimeError):
            # Not supported on this platform; KeyboardInterrupt still applies
            pass

    try:
        await startup.start_application()

        if interactive:
            await _interactive_loop(startup, shutdown)
        else:
            await shutdown.wait()
            logger.info("Received shutdown signal")
    finally:
        await startup.stop_application()


async def _interactive_loop(startup: ApplicationStartup, shutdown: asyncio.Event) -> None:
    """Apply commands read from stdin until quit, EOF or a signal."""
    loop = asyncio.get_running_loop()
    lines: asyncio.Queue[Optional[str]] = asyncio.Queue()

    def read_stdin() -> None:
        for line in sys.stdin:
            loop.call_soon_threadsafe(lines.put_nowait, line)
        loop.call_soon_threadsafe(lines.put_nowait, None)

    # Daemon thread so a pending readline never blocks shutdown
    threading.Thread(target=read_stdin, name="stdin-reader", daemon=True).start()
    typer.echo(INTERACTIVE_HELP)

    presenter = startup.presenter
    while not shutdown.is_set():
        get_line = asyncio.ensure_future(lines.get())
        wait_shutdown = asyncio.ensure_future(shutdown.wait())
        done, pending = await asyncio.wait(
            {get_line, wait_shutdown}, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()

        if get_line not in done:
            break
        line = get_line.result()
        if line is None:
            break

        command, _, argument = line.strip().partition(' ')
        if command in ("", "t", "toggle"):
            presenter.toggle()
        elif command in ("p", "port"):
            try:
                desired = presenter.set_port(int(argument))
                typer.echo(f"{_describe(desired)} (applies on next toggle)")
            except (ValueError, ConfigInvalid) as e:
                typer.echo(f"invalid port: {e}", err=True)
        elif command in ("s", "status"):
            typer.echo(f"desired: {_describe(presenter.config)}; actual: {startup.controller.state}")
        elif command in ("q", "quit", "exit"):
            break
        else:
            typer.echo(INTERACTIVE_HELP)


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
