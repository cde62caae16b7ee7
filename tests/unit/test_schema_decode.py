"""
Module: tests/unit/test_schema_decode.py

What:
    Exercise :func:`envgate.schema.decode` and :func:`envgate.schema.compile_env`
    against flat, nested, union, and validator-backed schemas.

Why:
    The reporter depends on the decoder producing a faithful failure tree:
    missing versus invalid leaves, union alternatives grouped under OR nodes,
    and paths that name the flat configuration keys.

How:
    Feed small raw mappings through the decoder and assert on the returned
    model or on the failure node types and paths.
"""

import pytest

from envgate.schema import (
    AndFailure,
    InvalidData,
    MissingData,
    OrFailure,
    SourceUnavailable,
    Unsupported,
    compile_env,
    decode,
    is_failure,
)
from sample_schemas import (
    AliasSchema,
    AppSettings,
    ContainerSchema,
    NestedSchema,
    NotASchema,
    RangeSchema,
    RequiredReplicasSchema,
    ServiceSchema,
    TargetSchema,
    UnionSchema,
)


def test_decode_returns_model_for_valid_input():
    model = decode(ServiceSchema, {"DATABASE_URL": "postgres://db", "PUBLIC_SITE_URL": "https://x", "PORT": "9000"})
    assert not is_failure(model)
    assert model.PORT == 9000
    assert model.DEBUG is False


def test_decode_ignores_unrelated_keys():
    model = decode(AppSettings, {"SERVER": "s", "PUBLIC": "p", "HOME": "/root"})
    assert model.model_dump() == {"SERVER": "s", "PUBLIC": "p"}


def test_absent_values_are_not_coerced_to_empty_strings():
    failure = decode(AppSettings, {"SERVER": None, "PUBLIC": "p"})
    assert isinstance(failure, MissingData)
    assert failure.path == ("SERVER",)


def test_empty_string_is_a_present_value():
    model = decode(AppSettings, {"SERVER": "", "PUBLIC": "p"})
    assert model.SERVER == ""


def test_missing_fields_are_combined_under_and():
    failure = decode(AppSettings, {})
    assert isinstance(failure, AndFailure)
    assert [type(child) for child in failure.children] == [MissingData, MissingData]
    assert [child.path for child in failure.children] == [("SERVER",), ("PUBLIC",)]


def test_type_mismatch_is_invalid_data():
    failure = decode(ServiceSchema, {"DATABASE_URL": "db", "PUBLIC_SITE_URL": "u", "PORT": "eighty"})
    assert isinstance(failure, InvalidData)
    assert failure.path == ("PORT",)
    assert "integer" in failure.message


def test_nested_models_use_underscore_delimited_keys():
    model = decode(NestedSchema, {"DATABASE_HOST": "db.local", "DATABASE_PORT": "6543"})
    assert model.DATABASE.HOST == "db.local"
    assert model.DATABASE.PORT == 6543
    assert model.CACHE is None


def test_nested_failures_carry_dotted_paths():
    failure = decode(NestedSchema, {"DATABASE_PORT": "x", "CACHE_TTL": "5"})
    assert isinstance(failure, AndFailure)
    paths = {(type(child), child.path) for child in failure.children}
    assert (MissingData, ("DATABASE", "HOST")) in paths
    assert (InvalidData, ("DATABASE", "PORT")) in paths
    assert (MissingData, ("CACHE", "URL")) in paths


def test_union_alternatives_are_grouped_under_or():
    failure = decode(UnionSchema, {"TIMEOUT": "soon"})
    assert isinstance(failure, OrFailure)
    assert len(failure.children) == 2
    assert all(isinstance(child, InvalidData) for child in failure.children)
    assert {child.path for child in failure.children} == {("TIMEOUT",)}


def test_model_level_errors_have_empty_path():
    failure = decode(RangeSchema, {"LOW": "5", "HIGH": "1"})
    assert isinstance(failure, InvalidData)
    assert failure.path == ()
    assert "HIGH must be >= LOW" in failure.message


def test_non_text_values_are_source_unavailable():
    failure = decode(AppSettings, {"SERVER": 42, "PUBLIC": "p"})
    assert isinstance(failure, SourceUnavailable)
    assert failure.path == ("SERVER",)
    assert "42" not in failure.message


def test_defaulted_containers_of_models_keep_their_default():
    model = decode(ContainerSchema, {"NAME": "x"})
    assert not is_failure(model)
    assert model.REPLICAS == []


def test_supplied_containers_of_models_are_unsupported():
    failure = decode(ContainerSchema, {"NAME": "x", "REPLICAS": "[]"})
    assert isinstance(failure, Unsupported)
    assert failure.path == ("REPLICAS",)


def test_required_containers_of_models_are_unsupported():
    failure = decode(RequiredReplicasSchema, {})
    assert isinstance(failure, Unsupported)
    assert failure.path == ("REPLICAS",)


def test_unions_with_a_text_member_accept_strings_and_defaults():
    assert decode(TargetSchema, {}).TARGET == "local"
    assert decode(TargetSchema, {"TARGET": "remote"}).TARGET == "remote"


def test_aliases_name_the_flat_keys():
    model = decode(AliasSchema, {"PUBLIC_SITE_URL": "https://x", "API_TOKEN": "t"})
    assert model.site_url == "https://x"
    failure = decode(AliasSchema, {"PUBLIC_SITE_URL": "https://x"})
    assert isinstance(failure, MissingData)
    assert failure.path == ("API_TOKEN",)


def test_compile_env_derives_meta_from_prefix():
    compiled = compile_env(ServiceSchema, client_prefix="PUBLIC_")
    assert compiled.meta.client_keys == ("PUBLIC_SITE_URL", "PUBLIC_FEATURE_FLAG")
    assert compiled.meta.server_keys == ("DATABASE_URL", "PORT", "DEBUG")
    assert compiled.meta.client_prefix == "PUBLIC_"


def test_compile_env_without_prefix_declares_everything_server_side():
    compiled = compile_env(AppSettings)
    assert compiled.meta.server_keys == ("SERVER", "PUBLIC")
    assert compiled.meta.client_keys == ()


def test_compile_env_accepts_explicit_key_lists():
    compiled = compile_env(AppSettings, client_prefix="PUBLIC", server_keys=["SERVER"], client_keys=["PUBLIC"])
    assert compiled.meta.server_keys == ("SERVER",)
    assert compiled.meta.client_keys == ("PUBLIC",)


def test_compile_env_rejects_non_models():
    with pytest.raises(TypeError):
        compile_env(NotASchema)
