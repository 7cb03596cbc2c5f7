"""CLI entry point for the archetype manager."""

import sys
from pathlib import Path

import click

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from cli.commands import apply_cmd, classify_cmd, db, diff_cmd, remove_cmd, restore_cmd, status_cmd
from cli.config import load_config_model
from cli.logging_config import setup_logging


@click.group()
@click.version_option(version="0.1.0")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.option("--json-logs", is_flag=True, help="Emit logs as JSON lines")
def cli(verbose: bool, json_logs: bool):
    """PF1e Archetype Manager - apply archetypes to class features."""
    try:
        config = load_config_model()
    except ValueError:
        config = None
    level = "DEBUG" if verbose else (config.logging.level if config else "WARNING")
    json_mode = json_logs or (config.logging.json_mode if config else False)
    log_file = config.paths.log_file if config else None
    setup_logging(json_mode=json_mode, level=level, log_file=log_file)


cli.add_command(classify_cmd)
cli.add_command(diff_cmd)
cli.add_command(apply_cmd)
cli.add_command(remove_cmd)
cli.add_command(restore_cmd)
cli.add_command(status_cmd)
cli.add_command(db)


if __name__ == "__main__":
    cli()
