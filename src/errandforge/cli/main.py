"""Main CLI entry point for ErrandForge.

Provides the command-line interface for running scans and errands.
"""

from typing import Optional

import click

from errandforge import __version__
from errandforge.cli import errands
from errandforge.config import ErrandConfig, load_config_from_env
from errandforge.observability.logging import setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="errandforge")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Logging level (defaults to ERRANDFORGE_LOG_LEVEL or INFO)",
)
@click.option("--json-logs/--console-logs", default=None, help="Log format")
@click.pass_context
def cli(ctx: click.Context, log_level: Optional[str], json_logs: Optional[bool]) -> None:
    """ErrandForge - agents for bills, documents, subscriptions and appointments."""
    config = load_config_from_env()
    overrides: dict[str, object] = {}
    if log_level is not None:
        overrides["log_level"] = log_level
    if json_logs is not None:
        overrides["json_logs"] = json_logs
    if overrides:
        config = ErrandConfig(**{**config.model_dump(), **overrides})

    setup_logging(log_level=config.log_level, json_logs=config.json_logs)
    ctx.ensure_object(dict)
    ctx.obj["config"] = config


# Register commands
cli.add_command(errands.daily_scan)
cli.add_command(errands.weekly)
cli.add_command(errands.status)
cli.add_command(errands.pay)
cli.add_command(errands.renew)
cli.add_command(errands.query)


def main() -> None:
    """CLI entry point."""
    cli()


if __name__ == "__main__":
    main()
