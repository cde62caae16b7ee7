"""Typed accessors over a loaded environment.

What:
  Wrap a :class:`~envgate.types.PipelineResult` (or a parsed mapping plus the
  raw environment) with small helpers that read parsed values or convert raw
  strings into numbers, booleans, and JSON documents.

Why:
  Most call sites need one value at a time. Going back to the raw strings for
  numeric, boolean, and JSON conversions lets applications read keys that the
  schema keeps as plain text without declaring a dedicated type for each.

How:
  :class:`Env` keeps two read-only views: ``parsed`` (the mode-selected subset)
  and ``raw``. Conversions raise :class:`~envgate.errors.AccessorError` with a
  snippet capped at :data:`SNIPPET_LIMIT` characters.

Interfaces:
  :class:`Env`, :data:`TRUE_WORDS`, :data:`FALSE_WORDS`.
"""
from __future__ import annotations

import json
import math
import re
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Union

from .errors import AccessorError, MissingVarError
from .types import EnvRecord, PipelineResult, RawEnvironment

TRUE_WORDS = frozenset({"true", "1", "yes", "on"})
FALSE_WORDS = frozenset({"false", "0", "no", "off"})
SNIPPET_LIMIT = 60
PRODUCTION_MARKERS = ("NODE_ENV", "APP_ENV")
NUMBER_PATTERN = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?", re.ASCII)


def _snippet(value: str) -> str:
    if len(value) > SNIPPET_LIMIT:
        return value[:SNIPPET_LIMIT] + "..."
    return value


class Env:
    """Read-only accessor facade."""

    def __init__(self, parsed: EnvRecord, raw: RawEnvironment) -> None:
        self.parsed: EnvRecord = MappingProxyType(dict(parsed))
        self.raw: RawEnvironment = MappingProxyType(dict(raw))

    @classmethod
    def from_result(cls, result: PipelineResult) -> "Env":
        return cls(result.env, result.raw)

    @property
    def is_production(self) -> bool:
        return any((self.raw.get(marker) or "").strip().lower() == "production" for marker in PRODUCTION_MARKERS)

    def get(self, key: str, default: Any = None) -> Any:
        return self.parsed.get(key, default)

    def require(self, key: str) -> Any:
        value = self.parsed.get(key)
        if value is None:
            raise MissingVarError(key)
        return value

    def _raw_value(self, key: str) -> str:
        value = self.raw.get(key)
        if value is None:
            raise AccessorError(f"Environment variable {key} not found")
        return value

    def get_number(self, key: str) -> Union[int, float]:
        """Parse the raw value as an ``int`` when integral, else a ``float``.

        Only plain decimal notation is accepted: Python extras such as
        ``1_000`` or ``0x10`` are rejected, and so are ``nan`` and ``inf``.
        """

        trimmed = self._raw_value(key).strip()
        if not NUMBER_PATTERN.fullmatch(trimmed):
            raise AccessorError(f"Invalid number for {key}: {_snippet(trimmed)}")
        if trimmed.lstrip("+-").isdigit():
            return int(trimmed)
        number = float(trimmed)
        if not math.isfinite(number):
            raise AccessorError(f"Invalid number for {key}: {_snippet(trimmed)}")
        return number

    def get_boolean(self, key: str) -> bool:
        normalized = self._raw_value(key).strip().lower()
        if normalized in TRUE_WORDS:
            return True
        if normalized in FALSE_WORDS:
            return False
        raise AccessorError(f"Expected boolean (true|false|1|0|yes|no|on|off), got '{normalized}' for {key}")

    def get_json(self, key: str) -> Any:
        value = self._raw_value(key)
        try:
            return json.loads(value)
        except json.JSONDecodeError as exc:
            raise AccessorError(f"Invalid JSON for {key}: {_snippet(value)}") from exc

    def all(self) -> Dict[str, str]:
        """Return every present raw value."""

        return {key: value for key, value in self.raw.items() if value is not None}

    def with_override(self, key: str, value: str) -> "Env":
        """Return a copy whose raw view has ``key`` set to ``value``.

        The parsed view is left untouched. Refused in production.
        """

        if self.is_production:
            raise AccessorError("with_override is not allowed in production")
        raw: Dict[str, Optional[str]] = dict(self.raw)
        raw[key] = value
        return Env(self.parsed, raw)


def env_from(result: Union[PipelineResult, Mapping[str, Any]], raw: Optional[RawEnvironment] = None) -> Env:
    """Build an :class:`Env` from a pipeline result or a parsed mapping."""

    if isinstance(result, PipelineResult):
        return Env.from_result(result)
    return Env(result, raw or {})
