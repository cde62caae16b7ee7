"""Pipeline orchestration: load, validate, partition, enforce.

What:
  Sequence the raw source adapter, the schema decoder and validation
  reporter, and the partition policy into a single ``load`` call that returns
  a mode-tagged :class:`~envgate.types.PipelineResult`.

Why:
  Applications want one call that either hands back a trustworthy, partitioned
  configuration or fails with exactly one tagged error. Tests want to override
  a single piece (the source, the prefix) per call without rebuilding the
  whole service.

How:
  :class:`EnvService` receives its collaborators through the constructor and
  resolves settings per subsystem with the precedence call options > service
  configuration > built-in defaults. Every call re-runs the whole pipeline;
  nothing is cached between calls. :meth:`EnvService.aload` only suspends while
  the source loads, then finishes synchronously.

Interfaces:
  :class:`EnvServiceConfig`, :class:`LoadOptions`, :class:`EnvService`.

Invariants & Safety:
  - Adapter exceptions always surface as :class:`~envgate.errors.SourceError`.
  - The result is built only after every stage succeeded, so a cancelled or
    failed call never exposes partial state.
  - Log events carry key names and counts, never values.
"""
from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass
from typing import Callable, Optional

from .errors import EnvironmentDefect, PrefixViolation, SourceError, ValidationError
from .prefix import PrefixEnforcer, merge_meta
from .schema import CompiledEnv
from .sources import EnvSource, ProcessEnvSource, freeze_env
from .types import MODES, EnvMeta, MetaOverride, Mode, PipelineResult, RawEnvironment
from .utils.logging import JsonLogger, get_logger
from .validation import Validator

DEFAULT_MODE: Mode = "server"


@dataclass(frozen=True)
class EnvServiceConfig:
    """Service-level configuration supplied at construction."""

    compiled: CompiledEnv
    source: Optional[EnvSource] = None
    meta_override: Optional[MetaOverride] = None
    mode: Optional[Mode] = None
    fail_in_production: bool = False


@dataclass(frozen=True)
class LoadOptions:
    """Per-call overrides; ``None`` means "use the service setting"."""

    source: Optional[EnvSource] = None
    compiled: Optional[CompiledEnv] = None
    meta_override: Optional[MetaOverride] = None
    mode: Optional[Mode] = None
    fail_in_production: Optional[bool] = None


@dataclass(frozen=True)
class _Plan:
    source: EnvSource
    compiled: CompiledEnv
    meta: EnvMeta
    mode: Mode
    fail_in_production: bool


class EnvService:
    """Validate-then-partition pipeline with constructor-injected stages.

    What:
      Own the service configuration and build a fresh plan for every call.

    Why:
      Plain constructor injection keeps the collaborators visible and
      swappable in tests: ``validator_factory`` builds the decode/report stage
      and ``enforcer_factory`` builds the partition stage from the resolved
      policy.

    How:
      :meth:`_plan` merges the call options over the service configuration,
      :meth:`_read` pulls the raw environment, and :meth:`_finish` validates,
      enforces, and assembles the result.

    Args:
      config: Service-level configuration.
      validator_factory: Builds the validation stage from a compiled schema.
      enforcer_factory: Builds the partition stage from a resolved policy.
      logger: Structured logger; defaults to ``envgate.service`` on stderr.
    """

    def __init__(
        self,
        config: EnvServiceConfig,
        *,
        validator_factory: Callable[[CompiledEnv], Validator] = Validator,
        enforcer_factory: Callable[[EnvMeta], PrefixEnforcer] = PrefixEnforcer,
        logger: Optional[JsonLogger] = None,
    ) -> None:
        self.config = config
        self._validator_factory = validator_factory
        self._enforcer_factory = enforcer_factory
        self._logger = logger if logger is not None else get_logger("envgate.service")

    def _plan(self, options: Optional[LoadOptions]) -> _Plan:
        options = options or LoadOptions()
        config = self.config
        compiled = options.compiled or config.compiled
        base_meta = merge_meta(compiled.meta, config.meta_override)
        mode = options.mode or config.mode or DEFAULT_MODE
        if mode not in MODES:
            raise ValueError(f"unknown mode {mode!r}; expected one of {', '.join(MODES)}")
        fail_in_production = (
            options.fail_in_production if options.fail_in_production is not None else config.fail_in_production
        )
        return _Plan(
            source=options.source or config.source or ProcessEnvSource(),
            compiled=compiled,
            meta=merge_meta(base_meta, options.meta_override),
            mode=mode,
            fail_in_production=fail_in_production,
        )

    def _read(self, source: EnvSource) -> RawEnvironment:
        try:
            raw = freeze_env(source.load())
        except SourceError:
            self._logger.error("source_failed", source=source.name)
            raise
        except Exception as exc:
            self._logger.error("source_failed", source=source.name, cause=type(exc).__name__)
            raise SourceError(source.name, exc) from exc
        return raw

    def _finish(self, plan: _Plan, raw: RawEnvironment) -> PipelineResult:
        validator = self._validator_factory(plan.compiled)
        try:
            validation = validator.validate(
                raw,
                meta=plan.meta,
                fail_in_production=plan.fail_in_production,
            )
        except ValidationError as exc:
            self._logger.warning(
                "validation_failed",
                source=plan.source.name,
                missing=list(exc.missing),
                invalid=[issue.key for issue in exc.invalid],
            )
            raise
        except EnvironmentDefect as exc:
            self._logger.error(
                "validation_fatal",
                source=plan.source.name,
                missing=list(exc.error.missing),
                invalid=[issue.key for issue in exc.error.invalid],
            )
            raise
        enforcer = self._enforcer_factory(plan.meta)
        try:
            enforced = enforcer.enforce(validation, mode=plan.mode)
        except PrefixViolation as exc:
            self._logger.warning("prefix_violation", mode=exc.mode, offending=list(exc.keys))
            raise
        result = PipelineResult(mode=plan.mode, raw=raw, validation=enforced, meta=plan.meta)
        self._logger.info(
            "environment_loaded",
            mode=plan.mode,
            source=plan.source.name,
            server_fields=len(enforced.server),
            client_fields=len(enforced.client),
        )
        return result

    def load(self, options: Optional[LoadOptions] = None) -> PipelineResult:
        """Run the pipeline once.

        Raises:
          SourceError: The adapter failed.
          ValidationError: The schema rejected the raw environment.
          EnvironmentDefect: As above, under the fail-in-production policy.
          PrefixViolation: The selected subset breaks the partition policy.
        """

        plan = self._plan(options)
        return self._finish(plan, self._read(plan.source))

    async def aload(self, options: Optional[LoadOptions] = None) -> PipelineResult:
        """Async variant of :meth:`load`.

        Adapters with an ``aload`` coroutine are awaited directly; others run in
        a worker thread so a slow file or network read does not block the loop.
        """

        plan = self._plan(options)
        source = plan.source
        loader = getattr(source, "aload", None)
        try:
            if loader is not None and inspect.iscoroutinefunction(loader):
                raw = freeze_env(await loader())
            else:
                raw = freeze_env(await asyncio.to_thread(source.load))
        except SourceError:
            self._logger.error("source_failed", source=source.name)
            raise
        except Exception as exc:
            self._logger.error("source_failed", source=source.name, cause=type(exc).__name__)
            raise SourceError(source.name, exc) from exc
        return self._finish(plan, raw)
