"""
he-logreg CLI - Main entry point.
"""

import logging
from typing import Optional

import click

from . import __version__
from .config import ConfigError, build_settings, load_config
from .output import print_error
from .commands import plan, sigmoid, train


def configure_logging(level: str, fmt: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format=fmt,
    )


@click.group()
@click.version_option(version=__version__, prog_name="he-logreg")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    help="Path to a YAML config file",
)
@click.option(
    "--output",
    "-o",
    type=click.Choice(["table", "json"]),
    default=None,
    help="Output format",
)
@click.option(
    "--verbose",
    "-v",
    count=True,
    help="Enable library logging (-v INFO, -vv DEBUG)",
)
@click.option(
    "--quiet",
    "-q",
    is_flag=True,
    help="Suppress non-essential output",
)
@click.pass_context
def cli(
    ctx: click.Context,
    config_path: Optional[str],
    output: Optional[str],
    verbose: int,
    quiet: bool,
):
    """
    he-logreg - Logistic regression trained on CKKS-encrypted data.

    \b
    Quick Start:
      1. Plan depth:  he-logreg plan --degree 3
      2. Train:       he-logreg train data.csv --iterations 10
      3. Sigmoid:     he-logreg sigmoid 0.8 --degree 5

    For more help on a command: he-logreg <command> --help
    """
    ctx.ensure_object(dict)

    try:
        config = load_config(config_path)
        observability = build_settings(config).observability
    except ConfigError as e:
        print_error(f"Configuration error: {e}")
        ctx.exit(1)
    except ValueError as e:
        print_error(f"Invalid HE_LOGREG_* environment value: {e}")
        ctx.exit(1)

    if verbose >= 2:
        log_level = "DEBUG"
    elif verbose == 1:
        log_level = "INFO"
    else:
        log_level = observability.log_level
    configure_logging(log_level, observability.log_format)

    ctx.obj["config"] = config
    ctx.obj["output_format"] = output or config.output_format
    ctx.obj["quiet"] = quiet


cli.add_command(train.train)
cli.add_command(plan.plan)
cli.add_command(sigmoid.sigmoid)


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
