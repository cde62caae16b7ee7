"""envgate command-line interface.

What:
  Provide a Typer-based entry point exposing the ``check`` and ``report``
  commands that operators run before starting a service or in CI.

Why:
  Deploy scripts need a shell-friendly way to answer two questions: does the
  environment satisfy the schema, and does the selected subset respect the
  partition policy. Exit codes carry the answer; stdout carries the details.

How:
  Merge command-line flags over the ``envgate.yaml`` settings, build the
  pipeline through :mod:`envgate.settings`, run it once, and translate every
  tagged error into a message and exit code ``1``.

Interfaces:
  ``app`` (Typer application), ``check``, ``report``, ``main``.

Invariants & Safety:
  - Printed environments always pass through :func:`envgate.utils.redact.redact`.
  - Exit codes follow shell expectations (``0`` success, ``1`` failure).
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import typer

from .errors import EnvgateError, EnvironmentDefect, ValidationError
from .settings import (
    ServiceSettings,
    SourceSettings,
    build_service,
    build_source,
    compile_settings,
    load_service_settings,
)
from .types import MODES
from .utils.redact import compile_matchers, redact
from .validation import validate

app = typer.Typer(help="envgate environment validation entry point")

LOGGER = logging.getLogger("envgate.cli")


def _resolve_settings(
    config: Optional[str],
    schema: Optional[str],
    env_file: Optional[str],
    yaml_file: Optional[str],
    mode: Optional[str],
    client_prefix: Optional[str],
    fail_in_production: bool,
) -> ServiceSettings:
    """Overlay command-line flags on top of the settings file."""

    if env_file and yaml_file:
        raise typer.BadParameter("--env-file and --yaml-file are mutually exclusive")
    if mode is not None and mode not in MODES:
        raise typer.BadParameter(f"--mode must be one of: {', '.join(MODES)}")
    settings = load_service_settings(config)
    update: Dict[str, Any] = {}
    if schema:
        update["schema_ref"] = schema
    if env_file:
        update["source"] = SourceSettings(kind="dotenv", path=env_file)
    elif yaml_file:
        update["source"] = SourceSettings(kind="yaml", path=yaml_file)
    if mode is not None:
        update["mode"] = mode
    if client_prefix is not None:
        update["client_prefix"] = client_prefix
    if fail_in_production:
        update["fail_in_production"] = True
    return settings.model_copy(update=update)


@app.command("check")
def check(
    config: Optional[str] = typer.Option(None, "--config", help="Path to envgate.yaml"),
    schema: Optional[str] = typer.Option(None, "--schema", help="Schema reference as module:Model"),
    env_file: Optional[str] = typer.Option(None, "--env-file", help="Read a .env file instead of the process"),
    yaml_file: Optional[str] = typer.Option(None, "--yaml-file", help="Read a YAML document instead of the process"),
    mode: Optional[str] = typer.Option(None, "--mode", help="server or client"),
    client_prefix: Optional[str] = typer.Option(None, "--client-prefix", help="Prefix marking client-safe keys"),
    fail_in_production: bool = typer.Option(False, "--fail-in-production", help="Treat validation failures as fatal"),
) -> None:
    """Run one full pipeline pass and print the redacted environment."""

    try:
        settings = _resolve_settings(config, schema, env_file, yaml_file, mode, client_prefix, fail_in_production)
        result = build_service(settings).load()
    except EnvironmentDefect as exc:
        LOGGER.error("environment_defect")
        typer.echo(str(exc))
        raise typer.Exit(code=1) from exc
    except EnvgateError as exc:
        LOGGER.warning("check_failed kind=%s", exc.kind)
        typer.echo(str(exc))
        raise typer.Exit(code=1) from exc

    typer.echo(f"OK {result.mode}: {len(result.env)} keys")
    visible = redact(result.env, compile_matchers(settings.redact_extra))
    for key in sorted(visible):
        typer.echo(f"{key}={visible[key]}")


@app.command("report")
def report(
    config: Optional[str] = typer.Option(None, "--config", help="Path to envgate.yaml"),
    schema: Optional[str] = typer.Option(None, "--schema", help="Schema reference as module:Model"),
    env_file: Optional[str] = typer.Option(None, "--env-file", help="Read a .env file instead of the process"),
    yaml_file: Optional[str] = typer.Option(None, "--yaml-file", help="Read a YAML document instead of the process"),
) -> None:
    """Print only the validation table, skipping partition enforcement."""

    try:
        settings = _resolve_settings(config, schema, env_file, yaml_file, None, None, False)
        raw = build_source(settings.source).load()
        validate(raw, compile_settings(settings))
    except EnvgateError as exc:
        typer.echo(exc.report if isinstance(exc, ValidationError) else str(exc))
        raise typer.Exit(code=1) from exc
    typer.echo("No validation issues")


def main() -> None:
    """Execute the Typer application entry point."""

    app()


if __name__ == "__main__":  # pragma: no cover
    main()
