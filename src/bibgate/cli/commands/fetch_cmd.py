# ABOUTME: The `bibgate fetch` command for checking how the gateway sees a remote URL.
# ABOUTME: Applies the web endpoint's content negotiation and size cap, then summarizes.

import asyncio

import click
from rich.console import Console

from bibgate.config import GatewayConfig
from bibgate.http import FetchError, FetchOptions, FetchResult, HttpFetcher, ResponseType
from bibgate.sessions.web import RESPONSE_TYPE_MAP

console = Console()


@click.command("fetch")
@click.argument("url")
@click.option("--max-size", type=int, default=None, help="Maximum response size in bytes.")
@click.option("--timeout", type=float, default=None, help="Request timeout in seconds.")
def fetch(url: str, max_size: int | None, timeout: float | None) -> None:
    """Fetch URL the way the gateway would and describe the response."""
    config = GatewayConfig.from_env().with_overrides(
        max_response_size=max_size, http_timeout=timeout
    )
    try:
        result = asyncio.run(_fetch(config, url))
    except FetchError as exc:
        console.print(f"[red]{exc}[/red]")
        raise SystemExit(1) from exc

    console.print(f"[bold]URL:[/bold]     {result.url}")
    console.print(f"[bold]Status:[/bold]  {result.status}")
    console.print(f"[bold]Type:[/bold]    {result.content_type.essence} ({result.response_type.value})")
    if result.response_type is ResponseType.DOCUMENT:
        console.print(f"[bold]Title:[/bold]   {result.document.title or '[dim]none[/dim]'}")
    elif result.text is not None:
        console.print(f"[bold]Size:[/bold]    {len(result.text)} characters")


async def _fetch(config: GatewayConfig, url: str) -> FetchResult:
    async with HttpFetcher(
        user_agent=config.user_agent,
        timeout=config.http_timeout,
        max_response_size=config.max_response_size,
    ) as fetcher:
        return await fetcher.fetch(
            "GET", url, FetchOptions(response_type_map=RESPONSE_TYPE_MAP)
        )
