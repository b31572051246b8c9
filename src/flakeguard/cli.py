"""CLI interface for flakeguard"""

import asyncio
import logging
from pathlib import Path
from typing import Optional, Tuple

import click
import yaml

from flakeguard.application.command_runner import MODES, CommandRunner
from flakeguard.domain.conditions import CONDITIONS
from flakeguard.domain.models.strategy import get_retry_strategy
from flakeguard.infrastructure.command import CommandError
from flakeguard.infrastructure.config.config_manager import ConfigManager, ConfigurationError

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Setup logging configuration"""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )
    logging.getLogger().setLevel(level)


def _die(message: str, verbose: bool = False, exc: Optional[Exception] = None) -> None:
    """Exit with a user-friendly error message"""
    if exc is not None:
        logger.error(message, exc_info=verbose)
    else:
        logger.error(message)
    raise click.ClickException(message)


def _load_config(ctx: click.Context) -> ConfigManager:
    verbose = ctx.obj.get("verbose", False)
    try:
        return ConfigManager(config_path=ctx.obj.get("config_path"))
    except ConfigurationError as e:
        _die(str(e), verbose=verbose, exc=e)


class _ErrorMessage(Exception):
    """Carrier for a free-text message passed to classify"""


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.option(
    "--config",
    type=click.Path(exists=True, path_type=Path),
    help="Path to .flakeguard.yml config file",
)
@click.pass_context
def cli(ctx, verbose: bool, config: Path):
    """flakeguard - retry orchestration for flaky end-to-end tests"""
    ctx.ensure_object(dict)
    setup_logging(verbose)
    ctx.obj["config_path"] = config
    ctx.obj["verbose"] = verbose


@cli.command(context_settings={"ignore_unknown_options": True})
@click.argument("command", nargs=-1, required=True, type=click.UNPROCESSED)
@click.option(
    "--mode",
    type=click.Choice(MODES, case_sensitive=False),
    default="smart",
    show_default=True,
    help="smart: strategy delays and growing timeout; backoff: exponential delays",
)
@click.option("--max-retries", type=click.IntRange(min=0), help="Retry budget. Overrides config.")
@click.pass_context
def run(ctx, command: Tuple[str, ...], mode: str, max_retries: Optional[int]):
    """Run a command, retrying it while it fails.

    COMMAND: Program and arguments (use -- before options of the command)
    """
    verbose = ctx.obj.get("verbose", False)
    config_manager = _load_config(ctx)
    config_manager.log_config()
    runner = CommandRunner(config_manager)

    try:
        result = asyncio.run(runner.run(list(command), mode=mode, max_retries=max_retries))
    except CommandError as e:
        click.echo(e.stderr, err=True, nl=False)
        _die(
            f"Command failed after {runner.stats['attempts']} attempt(s): {e.message}",
            verbose=verbose,
            exc=e,
        )
    except FileNotFoundError as e:
        _die(f"Command not found: {command[0]}", verbose=verbose, exc=e)

    click.echo(result.stdout, nl=False)
    if result.stderr:
        click.echo(result.stderr, err=True, nl=False)
    click.echo(
        f"Command succeeded after {runner.stats['attempts']} attempt(s) "
        f"({runner.stats['retries']} retries)",
        err=True,
    )


@cli.command()
@click.argument("message")
@click.option("--attempt", type=click.IntRange(min=0), default=0, show_default=True, help="0-based attempt index")
def classify(message: str, attempt: int):
    """Show how an error message would be retried.

    MESSAGE: Error message to classify
    """
    error = _ErrorMessage(message)
    strategy = get_retry_strategy(error)
    click.echo(f"Strategy: {strategy.type.value} ({strategy.delay:g}s) - {strategy.reason}")
    click.echo(f"Conditions at attempt {attempt}:")
    for name, condition in CONDITIONS.items():
        verdict = "retry" if condition(error, attempt) else "stop"
        click.echo(f"  {name}: {verdict}")


@cli.command("config")
@click.pass_context
def show_config(ctx):
    """Print the resolved configuration as YAML"""
    config_manager = _load_config(ctx)
    click.echo(yaml.safe_dump(config_manager.config.model_dump(), sort_keys=False), nl=False)


def main():
    """Main entry point"""
    cli(obj={})


if __name__ == "__main__":
    main()
