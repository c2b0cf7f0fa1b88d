# ABOUTME: The `bibgate serve` command that runs the HTTP gateway under uvicorn.
# ABOUTME: Builds the config from the environment plus command-line overrides.

import logging
from pathlib import Path

import click
import uvicorn
from rich.console import Console
from rich.logging import RichHandler

from bibgate.cli.options import translators_dir_option
from bibgate.config import GatewayConfig
from bibgate.server import create_app

console = Console()


@click.command("serve")
@click.option("--host", default=None, help="Interface to bind (default: 127.0.0.1).")
@click.option("--port", type=int, default=None, help="Port to listen on (default: 1969).")
@translators_dir_option
@click.option("--repository-url", default=None, help="Remote translator feed to refresh from.")
@click.option("-v", "--verbose", is_flag=True, help="Log debug output.")
def serve(
    host: str | None,
    port: int | None,
    translators_dir: Path | None,
    repository_url: str | None,
    verbose: bool,
) -> None:
    """Run the translation gateway."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=console, rich_tracebacks=True)],
        )
    else:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    config = GatewayConfig.from_env().with_overrides(
        host=host,
        port=port,
        translators_dir=translators_dir,
        repository_url=repository_url,
    )
    try:
        app = create_app(config)
    except (FileNotFoundError, ValueError) as exc:
        console.print(f"[red]{exc}[/red]")
        raise SystemExit(1) from exc

    console.print(f"[bold]bibgate[/bold] listening on http://{config.host}:{config.port}")
    uvicorn.run(app, host=config.host, port=config.port, log_level="debug" if verbose else "info")
