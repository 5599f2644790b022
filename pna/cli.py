"""CLI entry point for the pna tool."""

import logging
import sys

import click

from pna.aggregator import build_report
from pna.client import PrpcClient
from pna.config import ConfigError, load_config
from pna.errors import AllEndpointsUnreachable
from pna.output import VIEWS, render

logger = logging.getLogger(__name__)

FORMATS = ("table", "json")


@click.command()
@click.option(
    "--view",
    "-v",
    default="summary",
    type=click.Choice(VIEWS, case_sensitive=False),
    show_default=True,
    help="Which report to show.",
)
@click.option(
    "--format",
    "-f",
    "output_format",
    default="table",
    type=click.Choice(FORMATS, case_sensitive=False),
    show_default=True,
    help="Output format.",
)
@click.option(
    "--config",
    "-c",
    "config_path",
    default=None,
    envvar="PNA_CONFIG",
    type=click.Path(exists=False),
    help="Path to YAML config file (default: ~/.pna/config.yaml).",
)
@click.option(
    "--endpoint",
    "-e",
    default=None,
    help="Query only this pRPC endpoint instead of the configured list.",
)
@click.option(
    "--top",
    "-t",
    default=10,
    show_default=True,
    type=click.IntRange(min=0),
    help="Number of nodes in the top-nodes ranking.",
)
@click.option("--verbose", is_flag=True, help="Enable debug logging.")
def main(
    view: str,
    output_format: str,
    config_path: str | None,
    endpoint: str | None,
    top: int,
    verbose: bool,
) -> None:
    """Report on the health of the pNode storage fleet."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )

    try:
        cfg = load_config(config_path)
    except (ConfigError, FileNotFoundError) as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    logger.debug("Config loaded: %s", cfg)

    with PrpcClient(cfg) as client:
        try:
            nodes = client.fetch_pods(endpoint)
        except AllEndpointsUnreachable as exc:
            click.echo(f"Error: {exc}", err=True)
            sys.exit(1)
        invalid = client.last_invalid_count

    report = build_report(nodes, cfg, top=top, invalid_records=invalid)
    render(report, output_format.lower(), view.lower())
