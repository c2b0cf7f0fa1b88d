# ABOUTME: The `bibgate deproxify` command showing the URLs a proxied URL would be tried as.
# ABOUTME: Prints candidates in order with the proxy rewrite each one implies.

import click
from rich.console import Console
from rich.table import Table

from bibgate.proxies import DeproxifyResolver

console = Console()


@click.command("deproxify")
@click.argument("url")
def deproxify(url: str) -> None:
    """Show the candidate original URLs for URL, in the order they are tried."""
    candidates = DeproxifyResolver().candidates(url)

    table = Table()
    table.add_column("#", style="dim", width=3)
    table.add_column("URL", style="bold")
    table.add_column("Proxy scheme")

    for index, candidate in enumerate(candidates, start=1):
        scheme = "[dim]original[/dim]"
        if candidate.proxy is not None:
            scheme = candidate.proxy.scheme
            if candidate.proxy.dots_to_hyphens:
                scheme += " (hyphens)"
        table.add_row(str(index), candidate.url, scheme)

    console.print(table)
