"""Offload Command Line Interface.

Entry point for the offload CLI tool:

    offload run mypkg.jobs:encode_video --arg clip.mp4 --timeout 30 --retries 3
"""

from __future__ import annotations

import asyncio
import functools
import importlib
import json
import os
import sys
from pathlib import Path
from typing import Any

import typer
from dynaconf.vendor.ruamel.yaml.parser import ParserError as YamlParserError
from dynaconf.vendor.ruamel.yaml.scanner import ScannerError as YamlScannerError
from pydantic import ValidationError

from offload import __version__
from offload.contracts import RunConfig, TaskFailure, TimeoutFailure
from offload.core.config import OffloadSettings, load_settings

__all__ = [
    "app",
    "load_settings",  # Re-exported from config for convenience
]

# Same convention as coreutils timeout(1)
EXIT_TIMEOUT = 124
EXIT_TASK_FAILED = 1
EXIT_USAGE = 2

app = typer.Typer(
    name="offload",
    help="Offload: run expensive work in an isolated process.",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"offload version {__version__}")
        raise typer.Exit()


def _load_dotenv(env_file: Path | None = None) -> bool:
    """Load OFFLOAD_* (and other) environment variables from a .env file.

    Args:
        env_file: Explicit path to .env file. If None, searches for .env
                 in current directory and parent directories.

    Returns:
        True if .env was found and loaded, False otherwise.

    Raises:
        typer.Exit: If explicit env_file path doesn't exist.
    """
    from dotenv import load_dotenv

    if env_file is not None:
        if not env_file.exists():
            typer.secho(
                f"Error: .env file not found: {env_file}",
                fg=typer.colors.RED,
                err=True,
            )
            raise typer.Exit(EXIT_USAGE)
        return load_dotenv(env_file, override=False)

    return load_dotenv(override=False)


@app.callback()
def main(
    ctx: typer.Context,
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    no_dotenv: bool = typer.Option(
        False,
        "--no-dotenv",
        help="Skip loading .env file.",
    ),
    env_file: Path | None = typer.Option(
        None,
        "--env-file",
        help="Path to .env file (skips automatic search).",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable debug logging.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Output structured JSON logs (for machine processing).",
    ),
) -> None:
    """Offload: run expensive work in an isolated process."""
    from offload.core.logging import configure_logging

    configure_logging(json_output=json_logs, level="DEBUG" if verbose else "INFO")
    ctx.obj = {"verbose": verbose, "json_logs": json_logs}

    if not no_dotenv:
        _load_dotenv(env_file=env_file)
    elif env_file is not None:
        typer.secho(
            "Warning: --env-file ignored because --no-dotenv is set.",
            fg=typer.colors.YELLOW,
            err=True,
        )


def resolve_target(target: str) -> Any:
    """Import the callable named by a "package.module:attribute" string.

    The current directory is importable, as with python -m, so local
    modules can be offloaded without installing them.

    Raises:
        ValueError: If target is malformed, missing or not callable.
    """
    module_name, sep, attr_path = target.partition(":")
    if not sep or not module_name or not attr_path:
        raise ValueError(f"Target must look like 'package.module:function', got {target!r}")

    cwd = os.getcwd()
    if cwd not in sys.path:
        sys.path.insert(0, cwd)

    try:
        obj: Any = importlib.import_module(module_name)
    except ImportError as e:
        raise ValueError(f"Cannot import module {module_name!r}: {e}") from e
    for part in attr_path.split("."):
        try:
            obj = getattr(obj, part)
        except AttributeError as e:
            raise ValueError(f"{module_name!r} has no attribute {attr_path!r}") from e
    if not callable(obj):
        raise ValueError(f"Target {target!r} is not callable")
    return obj


def _render_result(result: Any) -> str:
    if isinstance(result, str):
        return result
    try:
        return json.dumps(result)
    except (TypeError, ValueError):
        return repr(result)


def _build_settings(
    settings_path: Path | None,
    overrides: dict[str, Any],
) -> OffloadSettings:
    base = load_settings(settings_path)
    updates = {key: value for key, value in overrides.items() if value is not None}
    if not updates:
        return base
    # Re-validate so CLI overrides get the same checks as the settings file
    return OffloadSettings(**{**base.model_dump(), **updates})


@app.command()
def run(
    ctx: typer.Context,
    target: str = typer.Argument(..., help="Callable to run, as 'package.module:function'."),
    args: list[str] | None = typer.Option(
        None,
        "--arg",
        "-a",
        help="Positional string argument for the callable (repeatable).",
    ),
    settings: Path | None = typer.Option(
        None,
        "--settings",
        "-s",
        help="Path to settings YAML file.",
    ),
    timeout: float | None = typer.Option(
        None,
        "--timeout",
        "-t",
        help="Deadline per attempt in seconds.",
    ),
    retries: int | None = typer.Option(
        None,
        "--retries",
        "-r",
        help="Total attempts; enables retry with exponential backoff.",
    ),
    retry_delay: float | None = typer.Option(
        None,
        "--retry-delay",
        help="Seconds before the second attempt (doubles each retry).",
    ),
    profile: bool | None = typer.Option(
        None,
        "--profile/--no-profile",
        help="Emit profiling events (start time, elapsed).",
    ),
    start_method: str | None = typer.Option(
        None,
        "--start-method",
        help="multiprocessing start method: spawn, fork or forkserver.",
    ),
) -> None:
    """Run a callable in an isolated worker process and print its result."""
    from offload.core.logging import configure_logging
    from offload.engine.runner import execute

    settings_path = Path(settings).expanduser() if settings is not None else None

    try:
        config = _build_settings(
            settings_path,
            {
                "timeout_seconds": timeout,
                "retries": retries,
                "retry_delay_seconds": retry_delay,
                "enable_profiling": profile,
                "start_method": start_method,
            },
        )
    except (YamlParserError, YamlScannerError) as e:
        typer.echo(f"YAML syntax error in {settings}: {e.problem}", err=True)
        raise typer.Exit(EXIT_USAGE) from None
    except FileNotFoundError:
        typer.echo(f"Error: Settings file not found: {settings}", err=True)
        raise typer.Exit(EXIT_USAGE) from None
    except ValidationError as e:
        typer.echo("Configuration errors:", err=True)
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            typer.echo(f"  - {loc}: {error['msg']}", err=True)
        raise typer.Exit(EXIT_USAGE) from None

    cli_flags = ctx.obj or {}
    configure_logging(
        json_output=cli_flags.get("json_logs", False) or config.logging.json_output,
        level="DEBUG" if cli_flags.get("verbose", False) else config.logging.level,
    )

    try:
        func = resolve_target(target)
    except ValueError as e:
        typer.secho(f"Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(EXIT_USAGE) from None

    operation = functools.partial(func, *(args or []))
    run_config = RunConfig.from_settings(config)

    try:
        result = asyncio.run(execute(operation, run_config, retry=config.retries is not None))
    except TimeoutFailure as e:
        typer.secho(f"Timed out: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(EXIT_TIMEOUT) from None
    except TaskFailure as e:
        typer.secho(f"Task failed: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(EXIT_TASK_FAILED) from None

    typer.echo(_render_result(result))


if __name__ == "__main__":
    app()
