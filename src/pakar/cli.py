"""CLI commands for running generation operations and wizard steps."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any

import typer

from .config import (
    DEFAULT_CONFIG_NAME,
    ConfigError,
    Settings,
    build_client,
    copy_config_template,
    load_config,
    write_config,
)
from .errors import LLMClientError, LLMRetryError, describe_error
from .models.credentials import mask_key
from .models.gemini import validate_api_key
from .operations import OPERATION_SEQUENCE, OperationName
from .operations.base import json_safe
from .project import PrerequisiteError, load_project, save_project
from .router import OperationRouter
from .tools.operation_logs import load_operation_log
from .workflow import run_step

APP_HELP = "Co-curricular project document generator CLI."

app = typer.Typer(help=APP_HELP)

_OPERATION_NAMES = ", ".join(name.value for name in OPERATION_SEQUENCE)


def _load_settings(config: str) -> Settings:
    """Load configuration from ``config`` and return typed settings."""
    config_path = Path(config)
    try:
        data = load_config(config_path)
    except ConfigError as error:
        typer.echo(str(error))
        raise typer.Exit(code=1) from error
    try:
        return Settings.from_config(data, root=config_path.resolve().parent)
    except ConfigError as error:
        typer.echo(str(error))
        raise typer.Exit(code=1) from error


def _report_failure(error: Exception) -> None:
    """Print the user-facing message for a terminal generation error."""
    title, message = describe_error(error)
    typer.echo(f"{title}: {message}")
    if isinstance(error, LLMRetryError):
        typer.echo(f"Details [{error.kind.value}]: {error}")
    else:
        typer.echo(f"Details: {error}")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable INFO-level logging."),
) -> None:
    """Configure logging for all commands."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command()
def init(
    config: str = typer.Option(DEFAULT_CONFIG_NAME, "--config", "-c", help="Configuration file to create."),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing configuration file."),
) -> None:
    """Write the default configuration file."""
    config_path = Path(config)
    if config_path.exists() and not force:
        typer.echo(f"Config already exists at {config_path}; use --force to overwrite.")
        raise typer.Exit(code=1)
    write_config(config_path, copy_config_template())
    typer.echo(f"Wrote default configuration to {config_path}.")


@app.command("set-key")
def set_key(
    api_key: str = typer.Argument(..., help="Personal Gemini API key."),
    config: str = typer.Option(DEFAULT_CONFIG_NAME, "--config", "-c", help="Configuration file."),
    skip_validation: bool = typer.Option(
        False,
        "--skip-validation",
        help="Store the key without a test call to the endpoint.",
    ),
) -> None:
    """Validate and store a personal API key; it takes priority over the shared key."""
    settings = _load_settings(config)
    value = api_key.strip()
    if not value:
        typer.echo("API key must not be empty.")
        raise typer.Exit(code=1)
    if not skip_validation:
        valid = asyncio.run(
            validate_api_key(value, model=settings.model, base_url=settings.base_url, timeout=settings.timeout)
        )
        if not valid:
            typer.echo("API key is invalid or its quota is exhausted.")
            raise typer.Exit(code=1)
    settings.key_store().set(value)
    typer.echo(f"Stored personal API key {mask_key(value)}.")


@app.command("clear-key")
def clear_key(
    config: str = typer.Option(DEFAULT_CONFIG_NAME, "--config", "-c", help="Configuration file."),
) -> None:
    """Remove the stored personal API key; the shared key is used again."""
    settings = _load_settings(config)
    store = settings.key_store()
    if not store.has_custom_key():
        typer.echo("No personal API key stored.")
        return
    store.clear()
    typer.echo("Removed personal API key.")


@app.command("validate-key")
def validate_key(
    api_key: str = typer.Argument(..., help="API key to test."),
    config: str = typer.Option(DEFAULT_CONFIG_NAME, "--config", "-c", help="Configuration file."),
) -> None:
    """Check whether an API key can complete a minimal generation call."""
    settings = _load_settings(config)
    valid = asyncio.run(
        validate_api_key(api_key, model=settings.model, base_url=settings.base_url, timeout=settings.timeout)
    )
    if not valid:
        typer.echo(f"Invalid: {mask_key(api_key.strip())}")
        raise typer.Exit(code=1)
    typer.echo(f"Valid: {mask_key(api_key.strip())}")


@app.command()
def run(
    operation: str = typer.Argument(..., help=f"Operation to run ({_OPERATION_NAMES})."),
    payload: Path = typer.Option(..., "--payload", "-p", help="JSON file holding the request payload."),
    config: str = typer.Option(DEFAULT_CONFIG_NAME, "--config", "-c", help="Configuration file."),
) -> None:
    """Run a single operation on a JSON request payload and print the JSON result."""
    settings = _load_settings(config)
    try:
        request_data = json.loads(payload.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as error:
        typer.echo(f"Failed to read payload: {error}")
        raise typer.Exit(code=1) from error

    router = OperationRouter(
        client=build_client(settings),
        logs_root=settings.logs_root,
        finalize_model=settings.finalize_model,
    )
    try:
        result: Any = asyncio.run(router.dispatch(operation, request_data))
    except (KeyError, ValueError) as error:
        typer.echo(str(error).strip("'\""))
        raise typer.Exit(code=1) from error
    except LLMClientError as error:
        _report_failure(error)
        raise typer.Exit(code=1) from error
    typer.echo(json.dumps(json_safe(result), indent=2, ensure_ascii=False))


@app.command()
def step(
    action: str = typer.Argument(..., help=f"Wizard step to run ({_OPERATION_NAMES})."),
    project: Path = typer.Option(..., "--project", "-P", help="Project JSON file to update in place."),
    config: str = typer.Option(DEFAULT_CONFIG_NAME, "--config", "-c", help="Configuration file."),
) -> None:
    """Run a wizard step against a project file and save the result atomically."""
    try:
        name = OperationName(action)
    except ValueError as error:
        typer.echo(f"Unknown step '{action}'. Expected one of: {_OPERATION_NAMES}")
        raise typer.Exit(code=1) from error

    settings = _load_settings(config)
    try:
        state = load_project(project)
    except (OSError, ValueError) as error:
        typer.echo(str(error))
        raise typer.Exit(code=1) from error

    try:
        updated = asyncio.run(
            run_step(
                state,
                name,
                client=build_client(settings),
                logs_root=settings.logs_root,
                finalize_model=settings.finalize_model,
            )
        )
    except PrerequisiteError as error:
        typer.echo(f"Perhatian: {error}")
        raise typer.Exit(code=1) from error
    except LLMClientError as error:
        _report_failure(error)
        raise typer.Exit(code=1) from error

    save_project(updated, project)
    typer.echo(f"Step '{name.value}' completed; saved {project}.")


@app.command()
def logs(
    path: Path = typer.Argument(..., help="Operation log file to summarise."),
) -> None:
    """Summarise a stored operation log, including correction notes."""
    try:
        entry = load_operation_log(path)
    except (OSError, json.JSONDecodeError) as error:
        typer.echo(f"Failed to read log: {error}")
        raise typer.Exit(code=1) from error
    for line in entry.summary_lines():
        typer.echo(line)
    notes = entry.correction_notes
    if notes:
        typer.echo("Correction notes:")
        for note in notes:
            typer.echo(f"  {note}")


if __name__ == "__main__":
    app()
