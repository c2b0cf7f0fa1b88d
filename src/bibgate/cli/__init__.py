# ABOUTME: CLI package for bibgate, built on Click.
# ABOUTME: Defines the root command group and registers subcommands.

import click

from bibgate.cli.commands import deproxify_cmd, fetch_cmd, serve_cmd, translators_cmd


@click.group()
@click.version_option(package_name="bibgate")
def cli() -> None:
    """bibgate - a bibliographic metadata translation gateway."""


cli.add_command(serve_cmd.serve)
cli.add_command(translators_cmd.translators)
cli.add_command(deproxify_cmd.deproxify)
cli.add_command(fetch_cmd.fetch)
