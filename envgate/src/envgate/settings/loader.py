"""Loaders turning ``envgate.yaml`` into a ready-to-use service.

What:
  Locate, parse, and validate the settings file, resolve the schema import
  path it names, and build the matching :class:`~envgate.service.EnvService`.

Why:
  The command-line entry point and deployment scripts describe the pipeline
  declaratively. Centralising parsing keeps error messages consistent and
  prevents callers from bypassing the settings schema.

How:
  Resolve candidate paths from an explicit argument, the
  ``ENVGATE_CONFIG_PATH`` environment variable, and ``./envgate.yaml``. Parse
  the first existing file with PyYAML and validate it with
  :class:`~envgate.settings.schema.ServiceSettings`. The file is read on every
  call; nothing is cached.

Interfaces:
  :func:`load_service_settings`, :func:`import_schema`,
  :func:`build_source`, :func:`build_service`.

Invariants & Safety:
  - Every failure surfaces as :class:`~envgate.errors.ServiceConfigError` with
    the offending path in the message.
  - Only ``BaseModel`` subclasses are accepted as schemas.
"""
from __future__ import annotations

import importlib
import inspect
import os
from pathlib import Path
from typing import Any, Iterable, Optional, Type

import yaml
from pydantic import BaseModel, ValidationError as _PydanticValidationError

from ..errors import ServiceConfigError
from ..schema import CompiledEnv, compile_env
from ..service import EnvService, EnvServiceConfig
from ..sources import DotenvSource, EnvSource, ProcessEnvSource, YamlSource
from .schema import ServiceSettings, SourceSettings

CONFIG_ENV = "ENVGATE_CONFIG_PATH"
DEFAULT_LOCATIONS = (Path("envgate.yaml"),)


def _candidate_paths(path: Optional[Path]) -> Iterable[Path]:
    """Yield settings file locations in priority order, without duplicates."""

    seen: set[Path] = set()
    env_path = os.environ.get(CONFIG_ENV)
    ordered = [path, Path(env_path) if env_path else None, *DEFAULT_LOCATIONS]
    for candidate in ordered:
        if candidate is None:
            continue
        candidate = candidate.expanduser()
        if candidate not in seen:
            seen.add(candidate)
            yield candidate


def _parse_settings(text: str, source: Path) -> dict[str, Any]:
    try:
        payload = yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:
        raise ServiceConfigError(f"Invalid YAML in {source}: {exc}") from exc
    if not isinstance(payload, dict):
        raise ServiceConfigError(f"{source} must contain a mapping at the top-level")
    return payload


def load_service_settings(path: Optional[Path | str] = None) -> ServiceSettings:
    """Locate and validate the settings file.

    An explicit ``path`` that does not exist is an error; when no candidate
    exists at all the built-in defaults are returned.

    Raises:
      ServiceConfigError: If the file cannot be read, parsed, or validated.
    """

    requested = Path(path).expanduser() if path is not None else None
    if requested is not None and not requested.exists():
        raise ServiceConfigError(f"Settings file missing: {requested}")
    for candidate in _candidate_paths(requested):
        if not candidate.exists():
            continue
        try:
            text = candidate.read_text(encoding="utf-8")
        except OSError as exc:  # pragma: no cover - filesystem surface
            raise ServiceConfigError(f"Unable to read settings file {candidate}: {exc}") from exc
        payload = _parse_settings(text, candidate)
        try:
            return ServiceSettings.model_validate(payload)
        except _PydanticValidationError as exc:
            raise ServiceConfigError(f"Invalid settings in {candidate}: {exc}") from exc
    return ServiceSettings()


def import_schema(reference: str) -> Type[BaseModel]:
    """Resolve ``"package.module:Model"`` into a pydantic model class."""

    module_name, sep, attribute = reference.partition(":")
    if not sep or not module_name or not attribute:
        raise ServiceConfigError(f"Schema reference must look like 'module:Model', got '{reference}'")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ServiceConfigError(f"Cannot import schema module '{module_name}': {exc}") from exc
    target: Any = module
    for part in attribute.split("."):
        try:
            target = getattr(target, part)
        except AttributeError as exc:
            raise ServiceConfigError(f"Schema '{reference}' not found") from exc
    if not (inspect.isclass(target) and issubclass(target, BaseModel)):
        raise ServiceConfigError(f"Schema '{reference}' is not a pydantic BaseModel subclass")
    return target


def build_source(settings: SourceSettings) -> EnvSource:
    if settings.kind == "dotenv":
        return DotenvSource(settings.path, include_process_env=settings.include_process_env)
    if settings.kind == "yaml":
        return YamlSource(settings.path)
    return ProcessEnvSource()


def compile_settings(settings: ServiceSettings) -> CompiledEnv:
    """Import and compile the schema named by ``settings``."""

    if not settings.schema_ref:
        raise ServiceConfigError("No schema configured; pass --schema or set 'schema' in envgate.yaml")
    return compile_env(
        import_schema(settings.schema_ref),
        client_prefix=settings.client_prefix,
        server_keys=settings.server_keys,
        client_keys=settings.client_keys,
    )


def build_service(settings: ServiceSettings, **kwargs: Any) -> EnvService:
    """Compile the referenced schema and wire an :class:`EnvService`.

    Extra keyword arguments are forwarded to the :class:`EnvService`
    constructor (for example a custom ``logger``).
    """

    config = EnvServiceConfig(
        compiled=compile_settings(settings),
        source=build_source(settings.source),
        mode=settings.mode,
        fail_in_production=settings.fail_in_production,
    )
    return EnvService(config, **kwargs)
