"""
Module: tests/unit/test_service.py

What:
    Drive :class:`envgate.service.EnvService` end to end with in-memory
    sources: mode selection, override precedence, error mapping, async
    loading, idempotence, and structured logging.

Why:
    The orchestrator is the only entry point most applications use. It must
    merge settings per subsystem, wrap adapter failures, keep results frozen,
    and never log configuration values.

How:
    Build services over :class:`MappingSource` records and sample schemas,
    then assert on the returned :class:`PipelineResult` or the raised error.
"""

import asyncio
import json

import pytest

from envgate.errors import EnvironmentDefect, PrefixViolation, SourceError, ValidationError
from envgate.schema import compile_env
from envgate.service import EnvService, EnvServiceConfig, LoadOptions
from envgate.sources import MappingSource, freeze_env
from envgate.types import EnvMeta, MetaOverride, PipelineResult
from sample_schemas import AppSettings, RangeSchema, ServiceSchema

RECORD = {"SERVER": "secret", "PUBLIC": "value"}


def _service(logger, **config):
    compiled = compile_env(AppSettings, client_prefix="PUBLIC", server_keys=["SERVER"], client_keys=["PUBLIC"])
    config.setdefault("source", MappingSource(RECORD))
    return EnvService(EnvServiceConfig(compiled=compiled, **config), logger=logger)


class _ExplodingSource:
    name = "exploding"

    def load(self):
        raise RuntimeError("disk on fire")


class _FailingSource:
    name = "failing"

    def load(self):
        raise SourceError(self.name, message="vault sealed")


class _NothingSource:
    name = "nothing"

    def load(self):
        return None


class _AsyncSource:
    name = "async-record"

    def __init__(self, record):
        self.record = record
        self.calls = 0

    def load(self):
        raise AssertionError("sync path must not be used when aload exists")

    async def aload(self):
        self.calls += 1
        await asyncio.sleep(0)
        return freeze_env(self.record)


def test_server_mode_returns_server_subset(logger):
    result = _service(logger).load()
    assert result.mode == "server"
    assert dict(result.env) == {"SERVER": "secret"}
    assert result.env is result.validation.server
    assert result.meta == EnvMeta(server_keys=("SERVER",), client_keys=("PUBLIC",), client_prefix="PUBLIC")


def test_client_mode_returns_client_subset(logger):
    result = _service(logger).load(LoadOptions(mode="client"))
    assert result.mode == "client"
    assert dict(result.env) == {"PUBLIC": "value"}
    assert dict(result.raw) == RECORD


def test_service_mode_is_used_when_call_does_not_override(logger):
    service = _service(logger, mode="client")
    assert service.load().mode == "client"
    assert service.load(LoadOptions(mode="server")).mode == "server"


def test_default_source_is_process_environment(logger, monkeypatch):
    monkeypatch.setenv("SERVER", "from-process")
    monkeypatch.setenv("PUBLIC", "shown")
    compiled = compile_env(AppSettings, client_prefix="PUBLIC", server_keys=["SERVER"], client_keys=["PUBLIC"])
    result = EnvService(EnvServiceConfig(compiled=compiled), logger=logger).load()
    assert result.env["SERVER"] == "from-process"


def test_call_source_overrides_service_source(logger):
    service = _service(logger)
    result = service.load(LoadOptions(source=MappingSource({"SERVER": "other", "PUBLIC": "p"})))
    assert result.env["SERVER"] == "other"


def test_call_compiled_overrides_service_schema(logger):
    service = _service(logger)
    options = LoadOptions(compiled=compile_env(RangeSchema), source=MappingSource({"LOW": "1", "HIGH": "3"}))
    result = service.load(options)
    assert dict(result.env) == {"LOW": 1, "HIGH": 3}


def test_meta_override_with_only_prefix_keeps_key_lists(logger):
    result = _service(logger).load(LoadOptions(meta_override=MetaOverride(client_prefix="PUB")))
    assert result.meta.server_keys == ("SERVER",)
    assert result.meta.client_keys == ("PUBLIC",)
    assert result.meta.client_prefix == "PUB"


def test_empty_prefix_override_moves_every_field_server_side(logger):
    with pytest.raises(PrefixViolation) as excinfo:
        _service(logger).load(LoadOptions(meta_override=MetaOverride(client_prefix="")))
    assert excinfo.value.keys == ("PUBLIC",)


def test_service_and_call_overrides_are_layered(logger):
    service = _service(logger, meta_override=MetaOverride(server_keys=("SERVER", "EXTRA")))
    result = service.load(LoadOptions(meta_override=MetaOverride(client_keys=("PUBLIC", "MORE"))))
    assert result.meta.server_keys == ("SERVER", "EXTRA")
    assert result.meta.client_keys == ("PUBLIC", "MORE")
    assert result.meta.client_prefix == "PUBLIC"


def test_prefix_violation_from_policy_override(logger):
    compiled = compile_env(ServiceSchema, client_prefix="PUBLIC_")
    source = MappingSource({"DATABASE_URL": "db", "PUBLIC_SITE_URL": "https://x"})
    service = EnvService(EnvServiceConfig(compiled=compiled, source=source, mode="client"), logger=logger)
    with pytest.raises(PrefixViolation) as excinfo:
        service.load(LoadOptions(meta_override=MetaOverride(client_keys=("PUBLIC_SITE_URL",))))
    assert excinfo.value.keys == ("PUBLIC_FEATURE_FLAG",)
    assert excinfo.value.mode == "client"


def test_validation_errors_are_recoverable_by_default(logger):
    service = _service(logger, source=MappingSource({"PUBLIC": "value"}))
    with pytest.raises(ValidationError) as excinfo:
        service.load()
    assert excinfo.value.missing == ("SERVER",)


def test_fail_in_production_escalates(logger):
    service = _service(logger, source=MappingSource({}))
    with pytest.raises(EnvironmentDefect) as excinfo:
        service.load(LoadOptions(fail_in_production=True))
    assert "SERVER" in excinfo.value.report
    service = _service(logger, source=MappingSource({}), fail_in_production=True)
    with pytest.raises(ValidationError):
        service.load(LoadOptions(fail_in_production=False))


def test_adapter_exceptions_become_source_errors(logger):
    with pytest.raises(SourceError) as excinfo:
        _service(logger, source=_ExplodingSource()).load()
    assert excinfo.value.source == "exploding"
    assert isinstance(excinfo.value.cause, RuntimeError)
    assert excinfo.value.__cause__ is excinfo.value.cause
    assert excinfo.value.kind == "source"


def test_non_mapping_adapter_results_become_source_errors(logger):
    with pytest.raises(SourceError) as excinfo:
        _service(logger, source=_NothingSource()).load()
    assert excinfo.value.source == "nothing"
    assert isinstance(excinfo.value.cause, TypeError)
    with pytest.raises(SourceError):
        asyncio.run(_service(logger, source=_NothingSource()).aload())


def test_adapter_source_errors_pass_through(logger):
    with pytest.raises(SourceError) as excinfo:
        _service(logger, source=_FailingSource()).load()
    assert str(excinfo.value) == "vault sealed"


def test_load_is_idempotent(logger):
    service = _service(logger)
    first = service.load()
    second = service.load()
    assert first == second
    assert first is not second


def test_result_is_frozen(logger):
    result = _service(logger).load()
    assert isinstance(result, PipelineResult)
    with pytest.raises(TypeError):
        result.raw["SERVER"] = "x"
    with pytest.raises(AttributeError):
        result.mode = "client"


def test_aload_runs_sync_sources_in_a_thread(logger):
    result = asyncio.run(_service(logger).aload(LoadOptions(mode="client")))
    assert dict(result.env) == {"PUBLIC": "value"}


def test_aload_awaits_async_sources(logger):
    source = _AsyncSource(RECORD)
    result = asyncio.run(_service(logger, source=source).aload())
    assert source.calls == 1
    assert dict(result.env) == {"SERVER": "secret"}


def test_aload_wraps_adapter_failures(logger):
    with pytest.raises(SourceError):
        asyncio.run(_service(logger, source=_ExplodingSource()).aload())


def test_concurrent_aloads_are_independent(logger):
    service = _service(logger)

    async def main():
        return await asyncio.gather(
            service.aload(LoadOptions(mode="server")),
            service.aload(LoadOptions(mode="client", source=MappingSource({"SERVER": "s2", "PUBLIC": "p2"}))),
        )

    server, client = asyncio.run(main())
    assert dict(server.env) == {"SERVER": "secret"}
    assert dict(client.env) == {"PUBLIC": "p2"}


def test_logs_never_contain_values(logger, log_stream):
    service = _service(logger)
    service.load()
    with pytest.raises(ValidationError):
        service.load(LoadOptions(source=MappingSource({"PUBLIC": "value"})))
    lines = [json.loads(line) for line in log_stream.getvalue().splitlines()]
    assert [line["msg"] for line in lines] == ["environment_loaded", "validation_failed"]
    assert lines[0]["server_fields"] == 1
    assert lines[1]["missing"] == ["SERVER"]
    assert "secret" not in log_stream.getvalue()
    assert '"value"' not in log_stream.getvalue()


def test_unknown_mode_is_rejected(logger):
    with pytest.raises(ValueError):
        _service(logger).load(LoadOptions(mode="browser"))
