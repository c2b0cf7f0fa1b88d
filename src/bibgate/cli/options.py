# ABOUTME: Shared Click options for bibgate CLI commands.
# ABOUTME: Provides reusable decorators for common flags like --translators-dir.

from pathlib import Path

import click

translators_dir_option = click.option(
    "--translators-dir",
    "translators_dir",
    type=click.Path(path_type=Path),
    default=None,
    help="Directory of translator sources (default: $BIBGATE_TRANSLATORS_DIR)",
)
