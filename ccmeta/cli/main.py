"""Main CLI entry point for ccmeta."""

from __future__ import annotations

import logging

import click

from ccmeta import __version__
from ccmeta.cli.create_torrent import create_torrent
from ccmeta.cli.verbosity import VerbosityManager
from ccmeta.config.config import init_config
from ccmeta.models import LogLevel
from ccmeta.utils.exceptions import ConfigurationError
from ccmeta.utils.logging_config import setup_logging

logger = logging.getLogger(__name__)


@click.group()
@click.version_option(__version__, "--version", "-V", prog_name="ccmeta")
@click.option(
    "--config",
    type=click.Path(exists=True, dir_okay=False),
    help="Configuration file path",
)
@click.option(
    "--verbose",
    "-v",
    count=True,
    help="Increase verbosity (-v: verbose, -vv: debug)",
)
def cli(config: str | None, verbose: int) -> None:
    """ccmeta - create BitTorrent metainfo (.torrent) files."""
    verbosity_manager = VerbosityManager.from_count(verbose)

    try:
        config_manager = init_config(config, setup_logs=False)
    except ConfigurationError as e:
        raise click.ClickException(e.message) from e
    cfg = config_manager.config

    # Verbosity only affects this run's handlers
    observability = cfg.observability
    level = verbosity_manager.get_logging_level()
    if level is not None:
        observability = observability.model_copy(
            update={"log_level": LogLevel(logging.getLevelName(level))}
        )
    setup_logging(observability)
    logger.debug("Using configuration file %s", config_manager.config_file)


cli.add_command(create_torrent)


def main():
    """Main CLI entry point."""
    cli()


if __name__ == "__main__":
    main()
