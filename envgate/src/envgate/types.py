"""Immutable value objects shared by every stage of the envgate pipeline.

What:
  Define the raw environment alias, the partition policy descriptor
  (:class:`EnvMeta`) and its per-call patch (:class:`MetaOverride`), the
  partitioned validation output (:class:`ValidationResult`), and the final
  mode-tagged :class:`PipelineResult` handed back to callers.

Why:
  The loader, decoder, reporter, partition policy, and orchestrator exchange
  these values without sharing mutable state. Keeping them in one module makes
  the data flow auditable and lets concurrent ``load`` calls run without
  coordination.

How:
  Frozen dataclasses normalise sequences into tuples and wrap mappings in
  :class:`types.MappingProxyType` views over private copies, so nothing returned
  by the pipeline can be mutated by the caller.

Interfaces:
  ``Mode``, ``RawEnvironment``, ``EnvRecord``, :class:`EnvMeta`,
  :class:`MetaOverride`, :class:`ValidationResult`, :class:`PipelineResult`.

Invariants & Safety:
  - ``RawEnvironment`` values are ``str`` or ``None``; ``None`` means absent and
    is never coerced into an empty string.
  - ``PipelineResult.env`` is the very same view object as the matching subset
    of ``PipelineResult.validation``.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterable, Literal, Mapping, Optional, Tuple

Mode = Literal["server", "client"]
MODES: Tuple[str, ...] = ("server", "client")

RawEnvironment = Mapping[str, Optional[str]]
EnvRecord = Mapping[str, Any]


def _freeze_mapping(values: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    if isinstance(values, MappingProxyType):
        return values
    return MappingProxyType(dict(values or {}))


def _as_key_tuple(keys: Iterable[str]) -> Tuple[str, ...]:
    if isinstance(keys, str):
        raise TypeError("key lists must be sequences of names, not a single string")
    return tuple(keys)


@dataclass(frozen=True)
class EnvMeta:
    """Partition policy derived from the schema at compile time.

    Attributes:
      server_keys: Field names allowed in the server subset.
      client_keys: Field names allowed in the client subset.
      client_prefix: Naming prefix reserved for client-safe keys; an empty
        string disables every prefix rule.
    """

    server_keys: Tuple[str, ...] = ()
    client_keys: Tuple[str, ...] = ()
    client_prefix: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "server_keys", _as_key_tuple(self.server_keys))
        object.__setattr__(self, "client_keys", _as_key_tuple(self.client_keys))


@dataclass(frozen=True)
class MetaOverride:
    """Partial patch applied onto an :class:`EnvMeta`.

    ``None`` marks a field as not supplied, so it falls through to the base
    value. An empty tuple or empty prefix is a real value and wins.
    """

    server_keys: Optional[Tuple[str, ...]] = None
    client_keys: Optional[Tuple[str, ...]] = None
    client_prefix: Optional[str] = None

    def __post_init__(self) -> None:
        if self.server_keys is not None:
            object.__setattr__(self, "server_keys", _as_key_tuple(self.server_keys))
        if self.client_keys is not None:
            object.__setattr__(self, "client_keys", _as_key_tuple(self.client_keys))


@dataclass(frozen=True)
class ValidationResult:
    """Validated configuration split into server and client views."""

    server: EnvRecord = field(default_factory=dict)
    client: EnvRecord = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "server", _freeze_mapping(self.server))
        object.__setattr__(self, "client", _freeze_mapping(self.client))

    def subset(self, mode: Mode) -> EnvRecord:
        """Return the view matching ``mode``."""

        if mode == "server":
            return self.server
        if mode == "client":
            return self.client
        raise ValueError(f"unknown mode {mode!r}; expected one of {', '.join(MODES)}")


@dataclass(frozen=True)
class PipelineResult:
    """Outcome of one orchestrated ``load`` call.

    ``env`` is derived from ``validation`` and ``mode``; it is not accepted by
    the constructor so the two can never disagree.
    """

    mode: Mode
    raw: RawEnvironment
    validation: ValidationResult
    meta: EnvMeta
    env: EnvRecord = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "raw", _freeze_mapping(self.raw))
        object.__setattr__(self, "env", self.validation.subset(self.mode))
