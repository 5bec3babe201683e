import signal
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any

import click
from loguru import logger

from sanding_history_web_app.component import COMPONENT_MODEL
from sanding_history_web_app.data_types import Component
from sanding_history_web_app.data_types import DEFAULT_DRAIN_DEADLINE_SECONDS
from sanding_history_web_app.data_types import DEFAULT_HOST
from sanding_history_web_app.data_types import DEFAULT_PORT
from sanding_history_web_app.data_types import WebAppConfig
from sanding_history_web_app.errors import AssetBundleLoadError
from sanding_history_web_app.errors import WebServerError
from sanding_history_web_app.log_utils import setup_logging
from sanding_history_web_app.primitives import ComponentName
from sanding_history_web_app.primitives import ListenPort
from sanding_history_web_app.registry import create_component_registry
from sanding_history_web_app.registry import create_plugin_manager

_SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def _server_options(command: Callable[..., Any]) -> Callable[..., Any]:
    """Options shared by every command that serves the web app."""
    options = [
        click.option("--name", default="sanding-history-web-app", show_default=True, help="Component name"),
        click.option(
            "--host",
            default=DEFAULT_HOST,
            show_default=True,
            help="Address to bind the web server to",
        ),
        click.option(
            "--dist-dir",
            type=click.Path(file_okay=False, path_type=Path),
            default=None,
            envvar="SANDING_HISTORY_WEB_APP_DIST_DIR",
            help="Built frontend directory (default: the packaged frontend-dist)",
        ),
        click.option(
            "--drain-timeout",
            type=click.FloatRange(min=0),
            default=DEFAULT_DRAIN_DEADLINE_SECONDS,
            show_default=True,
            help="Seconds to let in-flight requests finish on shutdown",
        ),
    ]
    for option in reversed(options):
        command = option(command)
    return command


def _start_component(name: str, port: int, host: str, dist_dir: Path | None) -> Component:
    pm = create_plugin_manager()
    registry = create_component_registry(pm)
    config = WebAppConfig(port=ListenPort(port), host=host, dist_dir=dist_dir)
    component = registry.build(COMPONENT_MODEL, ComponentName(name), config)
    try:
        component.start()
    except (AssetBundleLoadError, WebServerError) as e:
        raise click.ClickException(str(e)) from e
    return component


def _wait_for_shutdown_signal(timeout: float | None = None) -> bool:
    """Block until SIGINT/SIGTERM arrives or the timeout passes. Returns True if a signal arrived."""
    stop_requested = threading.Event()

    def _request_stop(signum: int, frame: Any) -> None:
        logger.info("Received {}, shutting down", signal.Signals(signum).name)
        stop_requested.set()

    previous_handlers = {sig: signal.signal(sig, _request_stop) for sig in _SHUTDOWN_SIGNALS}
    try:
        return stop_requested.wait(timeout=timeout)
    finally:
        for sig, handler in previous_handlers.items():
            signal.signal(sig, handler)


@click.group()
@click.option(
    "--log-level",
    type=click.Choice(["TRACE", "DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="INFO",
    show_default=True,
    help="Logging verbosity",
)
def main(log_level: str) -> None:
    """Serve the sanding history web app."""
    setup_logging(log_level)


@main.command()
@click.option(
    "--port",
    type=click.IntRange(0, 65535),
    default=DEFAULT_PORT,
    show_default=True,
    help="Port to listen on (0 picks a free port)",
)
@_server_options
def module(port: int, name: str, host: str, dist_dir: Path | None, drain_timeout: float) -> None:
    """Run as a host-managed module: serve until SIGINT/SIGTERM, then drain and exit."""
    component = _start_component(name, port, host, dist_dir)
    try:
        _wait_for_shutdown_signal()
    finally:
        component.close(drain_timeout)


@main.command()
@click.option(
    "--port",
    type=click.IntRange(0, 65535),
    default=DEFAULT_PORT,
    show_default=True,
    help="Port to listen on (0 picks a free port)",
)
@click.option(
    "--duration",
    type=click.FloatRange(min=0),
    default=60.0,
    show_default=True,
    help="Seconds to serve before shutting down",
)
@_server_options
def run(port: int, duration: float, name: str, host: str, dist_dir: Path | None, drain_timeout: float) -> None:
    """Serve standalone for a fixed duration (or until interrupted), then drain and exit."""
    component = _start_component(name, port, host, dist_dir)
    try:
        if not _wait_for_shutdown_signal(timeout=duration):
            logger.info("Served for {:.0f}s, shutting down", duration)
    finally:
        component.close(drain_timeout)


if __name__ == "__main__":
    main()
