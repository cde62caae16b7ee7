"""
Module: envgate.__init__

What:
  Aggregate the public surface of envgate: validate raw environment data
  against a pydantic schema, report every failure in one table, and split the
  validated configuration into server-only and client-safe subsets.

Why:
  Centralising the exports keeps downstream entry points stable while the
  internal layout evolves. Services import ``EnvService`` and the error types;
  tests and tooling reach for ``validate`` and ``enforce`` directly.

How:
  Re-export the orchestrator, the stage entry points, the value objects, the
  error taxonomy, and the bundled source adapters through an explicit
  ``__all__``.

Interfaces:
  - EnvService / EnvServiceConfig / LoadOptions: The orchestrated pipeline.
  - validate / enforce / compile_env / decode: Individual stages.
  - SourceError / ValidationError / PrefixViolation / EnvironmentDefect:
    Tagged failures.

Invariants:
  - Every value returned through this surface is immutable.
"""

from .accessors import Env
from .errors import (
    AccessorError,
    EnvgateError,
    EnvironmentDefect,
    MissingVarError,
    PrefixViolation,
    ServiceConfigError,
    SourceError,
    ValidationError,
    ValidationIssue,
)
from .prefix import PrefixEnforcer, enforce, merge_meta
from .schema import CompiledEnv, compile_env, decode
from .service import EnvService, EnvServiceConfig, LoadOptions
from .sources import DotenvSource, EnvSource, MappingSource, ProcessEnvSource, YamlSource, freeze_env
from .types import EnvMeta, MetaOverride, PipelineResult, ValidationResult
from .validation import Validator, format_validation_report, validate

__all__ = [
    "AccessorError",
    "CompiledEnv",
    "DotenvSource",
    "Env",
    "EnvMeta",
    "EnvService",
    "EnvServiceConfig",
    "EnvSource",
    "EnvgateError",
    "EnvironmentDefect",
    "LoadOptions",
    "MappingSource",
    "MetaOverride",
    "MissingVarError",
    "PipelineResult",
    "PrefixEnforcer",
    "PrefixViolation",
    "ProcessEnvSource",
    "ServiceConfigError",
    "SourceError",
    "ValidationError",
    "ValidationIssue",
    "ValidationResult",
    "Validator",
    "YamlSource",
    "compile_env",
    "decode",
    "enforce",
    "format_validation_report",
    "freeze_env",
    "merge_meta",
    "validate",
]
