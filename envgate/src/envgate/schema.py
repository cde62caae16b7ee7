"""Schema decoding of flat environment maps into pydantic models.

What:
  Decode a :data:`~envgate.types.RawEnvironment` against a pydantic
  ``BaseModel`` subclass and describe every failure as a
  :class:`DecodeFailure` tree. Also compile a schema into the
  :class:`CompiledEnv` bundle (schema plus derived :class:`EnvMeta`) that the
  rest of the pipeline consumes.

Why:
  Environment variables are a flat namespace of strings while schemas are
  nested and typed. Pydantic reports failures as a flat list whose locations
  include union member tags; the reporter needs a library-independent tree of
  AND/OR combinators and categorised leaves instead.

How:
  Walk the model fields, addressing nested models by joining their path with
  :data:`ENV_PATH_DELIMITER` (``DATABASE`` + ``HOST`` -> ``DATABASE_HOST``).
  Absent entries are dropped before lookup. The gathered payload is handed to
  ``model_validate``; pydantic errors are translated into leaves, alternative
  union members on the same field are grouped under :class:`OrFailure`, and
  everything is combined under :class:`AndFailure`.

Interfaces:
  :func:`decode`, :func:`compile_env`, :class:`CompiledEnv`, and the failure
  node classes.

Invariants & Safety:
  - :func:`decode` never raises for data problems; it returns a failure tree.
  - Every leaf carries a path tuple and a non-empty message.
  - Raw values are never copied into failure messages.
"""
from __future__ import annotations

import inspect
import types
from dataclasses import dataclass
from typing import Any, ClassVar, Dict, List, Mapping, Optional, Sequence, Tuple, Type, Union, get_args, get_origin

from pydantic import BaseModel, ValidationError as _PydanticValidationError
from pydantic.fields import FieldInfo

from .types import EnvMeta, RawEnvironment

ENV_PATH_DELIMITER = "_"

Path = Tuple[str, ...]


@dataclass(frozen=True)
class MissingData:
    """A required key was not provided."""

    tag: ClassVar[str] = "missing-data"

    path: Path
    message: str


@dataclass(frozen=True)
class InvalidData:
    """A provided value was rejected by the schema."""

    tag: ClassVar[str] = "invalid-data"

    path: Path
    message: str


@dataclass(frozen=True)
class SourceUnavailable:
    """The source produced something other than text for a key."""

    tag: ClassVar[str] = "source-unavailable"

    path: Path
    message: str


@dataclass(frozen=True)
class Unsupported:
    """The schema declares a field that flat keys cannot address."""

    tag: ClassVar[str] = "unsupported"

    path: Path
    message: str


@dataclass(frozen=True)
class AndFailure:
    """Every child failed independently."""

    tag: ClassVar[str] = "and"

    children: Tuple["DecodeFailure", ...]


@dataclass(frozen=True)
class OrFailure:
    """Alternative branches (union members) that all failed."""

    tag: ClassVar[str] = "or"

    children: Tuple["DecodeFailure", ...]


FailureLeaf = Union[MissingData, InvalidData, SourceUnavailable, Unsupported]
DecodeFailure = Union[AndFailure, OrFailure, FailureLeaf]
FAILURE_TYPES: Tuple[type, ...] = (AndFailure, OrFailure, MissingData, InvalidData, SourceUnavailable, Unsupported)


def is_failure(value: Any) -> bool:
    """Return ``True`` when ``value`` is a :data:`DecodeFailure` node."""

    return isinstance(value, FAILURE_TYPES)


@dataclass(frozen=True)
class CompiledEnv:
    """A schema paired with the partition policy derived from it."""

    schema: Type[BaseModel]
    meta: EnvMeta

    @property
    def fields(self) -> Tuple[str, ...]:
        return field_keys(self.schema)


def _is_model(annotation: Any) -> bool:
    return inspect.isclass(annotation) and get_origin(annotation) is None and issubclass(annotation, BaseModel)


def _is_union(annotation: Any) -> bool:
    origin = get_origin(annotation)
    return origin is Union or origin is types.UnionType


def _non_null_args(annotation: Any) -> List[Any]:
    return [arg for arg in get_args(annotation) if arg is not type(None)]


def _nested_model(annotation: Any) -> Optional[Type[BaseModel]]:
    if _is_model(annotation):
        return annotation
    if _is_union(annotation):
        members = _non_null_args(annotation)
        if len(members) == 1 and _is_model(members[0]):
            return members[0]
    return None


def _contains_model(annotation: Any) -> bool:
    if _is_model(annotation):
        return True
    return any(_contains_model(arg) for arg in get_args(annotation))


def _accepts_text(annotation: Any) -> bool:
    """``True`` for unions with at least one member free of nested models."""

    return _is_union(annotation) and any(not _contains_model(arg) for arg in _non_null_args(annotation))


def _branches(annotation: Any) -> bool:
    return _is_union(annotation) and len(_non_null_args(annotation)) > 1


def _field_key(name: str, info: FieldInfo) -> str:
    return info.alias or name


def field_keys(schema: Type[BaseModel]) -> Tuple[str, ...]:
    """Return the top-level flat keys declared by ``schema`` in order."""

    return tuple(_field_key(name, info) for name, info in schema.model_fields.items())


def _field_for(schema: Type[BaseModel], key: Any) -> Optional[FieldInfo]:
    if not isinstance(key, str):
        return None
    for name, info in schema.model_fields.items():
        if _field_key(name, info) == key:
            return info
    return None


def _gather(
    schema: Type[BaseModel],
    present: Mapping[str, Any],
    prefix: Path,
    failures: List[DecodeFailure],
) -> Dict[str, Any]:
    payload: Dict[str, Any] = {}
    for name, info in schema.model_fields.items():
        key = _field_key(name, info)
        path = prefix + (key,)
        nested = _nested_model(info.annotation)
        if nested is not None:
            section = _gather(nested, present, path, failures)
            # NOTE: an optional section with no keys at all falls back to its default.
            if section or info.is_required():
                payload[key] = section
            continue
        env_key = ENV_PATH_DELIMITER.join(path)
        if _contains_model(info.annotation) and not _accepts_text(info.annotation):
            # Absent optional fields keep their default; anything else has no flat spelling.
            if env_key in present or info.is_required():
                failures.append(
                    Unsupported(path, "nested models inside containers or unions cannot be read from flat keys")
                )
            continue
        if env_key not in present:
            continue
        value = present[env_key]
        if not isinstance(value, str):
            failures.append(SourceUnavailable(path, f"source returned {type(value).__name__} instead of text"))
            continue
        payload[key] = value
    return payload


def _resolve_location(schema: Type[BaseModel], loc: Sequence[Any]) -> Tuple[Path, bool]:
    """Map a pydantic error location onto a field path.

    Returns the path and whether a union member tag was stripped from it.
    """

    path: List[str] = []
    branched = False
    model: Optional[Type[BaseModel]] = schema
    expect_tag = False
    for segment in loc:
        if model is not None:
            info = _field_for(model, segment)
            if info is None:
                branched = True
                continue
            path.append(segment)
            model = _nested_model(info.annotation)
            expect_tag = model is None and _branches(info.annotation)
            continue
        if expect_tag and isinstance(segment, str):
            branched = True
            expect_tag = False
            continue
        path.append(str(segment))
    return tuple(path), branched


def _covered(path: Path, blocked: Sequence[Path]) -> bool:
    return any(path[: len(prefix)] == prefix for prefix in blocked)


def _translate(
    schema: Type[BaseModel],
    exc: _PydanticValidationError,
    blocked: Sequence[Path],
) -> List[DecodeFailure]:
    nodes: List[Any] = []
    branch_groups: Dict[Path, List[FailureLeaf]] = {}
    for error in exc.errors(include_url=False):
        path, branched = _resolve_location(schema, error.get("loc", ()))
        if _covered(path, blocked):
            continue
        message = str(error.get("msg") or error.get("type") or "invalid value")
        leaf: FailureLeaf
        if error.get("type") == "missing":
            leaf = MissingData(path, message)
        else:
            leaf = InvalidData(path, message)
        if not branched:
            nodes.append(leaf)
            continue
        group = branch_groups.get(path)
        if group is None:
            group = branch_groups[path] = []
            nodes.append(group)
        group.append(leaf)
    result: List[DecodeFailure] = []
    for node in nodes:
        if isinstance(node, list):
            result.append(node[0] if len(node) == 1 else OrFailure(tuple(node)))
        else:
            result.append(node)
    return result


def decode(schema: Type[BaseModel], raw: RawEnvironment) -> Union[BaseModel, DecodeFailure]:
    """Decode ``raw`` against ``schema``.

    What:
      Produce either a validated ``schema`` instance or a failure tree.

    Why:
      Callers must see every problem at once, and the reporter needs the
      failures categorised rather than a pydantic error string.

    How:
      Drop absent entries, gather the flat keys each field addresses, run
      ``model_validate``, and translate pydantic errors with
      :func:`_translate`. Gathering problems (non-text values, unaddressable
      fields) come first and suppress the duplicate pydantic reports for the
      same paths.

    Args:
      schema: Pydantic model describing the expected configuration.
      raw: Flat key/value map; ``None`` values are absent.

    Returns:
      The model instance, or a :data:`DecodeFailure` node.
    """

    present = {key: value for key, value in raw.items() if value is not None}
    failures: List[DecodeFailure] = []
    payload = _gather(schema, present, (), failures)
    blocked = [node.path for node in failures if not isinstance(node, (AndFailure, OrFailure))]
    try:
        model = schema.model_validate(payload)
    except _PydanticValidationError as exc:
        failures.extend(_translate(schema, exc, blocked))
    else:
        if not failures:
            return model
    if len(failures) == 1:
        return failures[0]
    return AndFailure(tuple(failures))


def compile_env(
    schema: Type[BaseModel],
    *,
    client_prefix: str = "",
    server_keys: Optional[Sequence[str]] = None,
    client_keys: Optional[Sequence[str]] = None,
) -> CompiledEnv:
    """Derive the partition policy for ``schema``.

    Fields whose key starts with a non-empty ``client_prefix`` are client keys,
    every other field is a server key. Explicit ``server_keys``/``client_keys``
    replace the derived lists.
    """

    if not _is_model(schema):
        raise TypeError(f"schema must be a pydantic BaseModel subclass, got {schema!r}")
    keys = field_keys(schema)
    if client_prefix:
        derived_client = tuple(key for key in keys if key.startswith(client_prefix))
    else:
        derived_client = ()
    derived_server = tuple(key for key in keys if key not in derived_client)
    meta = EnvMeta(
        server_keys=tuple(server_keys) if server_keys is not None else derived_server,
        client_keys=tuple(client_keys) if client_keys is not None else derived_client,
        client_prefix=client_prefix,
    )
    return CompiledEnv(schema=schema, meta=meta)
