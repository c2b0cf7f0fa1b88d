# ABOUTME: The `bibgate translators` command for inspecting the translator catalog.
# ABOUTME: Lists all translators of a type, or the ones matching a URL with their proxy.

import asyncio
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from bibgate.cli.options import translators_dir_option
from bibgate.config import GatewayConfig
from bibgate.proxies import ProxyRewrite
from bibgate.translators import Translator, TranslatorRegistry, TranslatorType, load_catalog

console = Console()


@click.command("translators")
@click.argument("url", required=False)
@translators_dir_option
@click.option(
    "--type",
    "type_name",
    type=click.Choice([t.name.lower() for t in TranslatorType]),
    default=None,
    help="Only list translators of this type.",
)
def translators(url: str | None, translators_dir: Path | None, type_name: str | None) -> None:
    """List translators, or those that match URL."""
    config = GatewayConfig.from_env().with_overrides(translators_dir=translators_dir)
    if config.translators_dir is None:
        console.print("[red]No translators directory given.[/red]")
        raise SystemExit(1)
    try:
        catalog = load_catalog(config.translators_dir, lazy=True)
    except FileNotFoundError as exc:
        console.print(f"[red]{exc}[/red]")
        raise SystemExit(1) from exc

    registry = TranslatorRegistry(browser=config.browser)
    registry.init(catalog)

    proxies: list[ProxyRewrite | None] | None = None
    if url:
        found, proxies = asyncio.run(registry.candidates_for_url(url))
    else:
        found = registry.all()

    if type_name:
        wanted = TranslatorType.from_name(type_name)
        keep = [i for i, t in enumerate(found) if t.has_type(wanted)]
        found = [found[i] for i in keep]
        if proxies is not None:
            proxies = [proxies[i] for i in keep]

    if not found:
        console.print("[yellow]No matching translators.[/yellow]")
        return

    console.print(_table(found, proxies))
    console.print(f"\n[dim]{len(found)} translator(s)[/dim]")


def _table(found: list[Translator], proxies: list[ProxyRewrite | None] | None) -> Table:
    table = Table()
    table.add_column("ID", style="dim")
    table.add_column("Label", style="bold")
    table.add_column("Types")
    table.add_column("Priority", justify="right")
    if proxies is not None:
        table.add_column("Proxy")

    for index, translator in enumerate(found):
        row = [
            translator.translator_id,
            translator.label,
            ", ".join(translator.translator_type.names()),
            str(translator.priority),
        ]
        if proxies is not None:
            proxy = proxies[index]
            row.append(proxy.scheme if proxy else "[dim]-[/dim]")
        table.add_row(*row)
    return table
