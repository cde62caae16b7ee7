"""Error taxonomy raised by the envgate pipeline.

What:
  Declare the tagged exception hierarchy returned to callers: source failures,
  schema validation failures, partition violations, accessor errors, and the
  unrecoverable defect used by the fail-in-production policy.

Why:
  Every pipeline stage maps its internal failure into exactly one of these
  kinds before it reaches a caller. Callers can then discriminate with
  ``except`` clauses or the ``kind`` attribute instead of parsing messages, and
  no pydantic or filesystem exception leaks through a higher contract.

How:
  :class:`EnvgateError` is the recoverable base class and carries a ``kind``
  class attribute. :class:`EnvironmentDefect` derives from
  :class:`RuntimeError` instead, so generic ``except EnvgateError`` handlers do
  not swallow a failure that policy declared fatal.

Interfaces:
  :class:`EnvgateError`, :class:`SourceError`, :class:`ValidationIssue`,
  :class:`ValidationError`, :class:`PrefixViolation`, :class:`AccessorError`,
  :class:`MissingVarError`, :class:`ServiceConfigError`,
  :class:`EnvironmentDefect`.

Invariants & Safety:
  - ``str(ValidationError)`` always starts with :data:`VALIDATION_BANNER`.
  - Errors carry key names only; raw values never appear in messages.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Iterable, Optional, Sequence, Tuple

VALIDATION_BANNER = "Environment validation failed:"


class EnvgateError(Exception):
    """Base class for recoverable envgate failures."""

    kind: ClassVar[str] = "envgate"


class SourceError(EnvgateError):
    """Raised when a raw source adapter fails or throws.

    What:
      Wrap any failure raised while reading the raw environment.

    Why:
      Adapters talk to the process, the filesystem, or remote stores; callers
      only need the adapter name and the underlying cause to react.

    How:
      Store ``source`` and ``cause`` as attributes and chain ``cause`` through
      ``raise ... from`` at the call site.
    """

    kind: ClassVar[str] = "source"

    def __init__(self, source: str, cause: Optional[BaseException] = None, message: Optional[str] = None) -> None:
        if message is None:
            message = f"Failed to load environment from {source}"
            if cause is not None:
                message = f"{message}: {cause}"
        super().__init__(message)
        self.source = source
        self.cause = cause
        self.message = message


@dataclass(frozen=True)
class ValidationIssue:
    """A present key whose value failed type or shape validation."""

    key: str
    message: str


class ValidationError(EnvgateError):
    """Raised when the raw environment does not satisfy the schema.

    Attributes:
      missing: Dotted paths of required keys that were absent.
      invalid: Issues for present keys whose values were rejected, with the
        full untruncated message.
      report: The formatted table rendered from ``missing`` and ``invalid``.
    """

    kind: ClassVar[str] = "validation"

    def __init__(self, missing: Iterable[str], invalid: Iterable[ValidationIssue], report: str) -> None:
        self.missing: Tuple[str, ...] = tuple(missing)
        self.invalid: Tuple[ValidationIssue, ...] = tuple(invalid)
        self.report = report
        super().__init__(self.__str__())

    def __str__(self) -> str:
        return f"{VALIDATION_BANNER}\n{self.report}"


class PrefixViolation(EnvgateError):
    """Raised when a partition contains keys its mode forbids."""

    kind: ClassVar[str] = "prefix"

    def __init__(self, mode: str, keys: Sequence[str], message: str) -> None:
        super().__init__(message)
        self.mode = mode
        self.keys: Tuple[str, ...] = tuple(keys)
        self.message = message


class AccessorError(EnvgateError):
    """Raised by the typed accessors when a raw value cannot be converted."""

    kind: ClassVar[str] = "accessor"


class MissingVarError(AccessorError):
    """Raised by :meth:`envgate.accessors.Env.require` for absent values."""

    kind: ClassVar[str] = "missing"

    def __init__(self, key: str) -> None:
        super().__init__(f"Missing required environment variable: {key}")
        self.key = key


class ServiceConfigError(EnvgateError):
    """Raised when an ``envgate.yaml`` settings file is unusable."""

    kind: ClassVar[str] = "settings"


class EnvironmentDefect(RuntimeError):
    """Unrecoverable validation failure escalated by the fail-in-production policy.

    The wrapped :class:`ValidationError` stays reachable through ``error`` so
    operators see the same table whether the failure was fatal or not.
    """

    def __init__(self, error: ValidationError) -> None:
        super().__init__(str(error))
        self.error = error

    @property
    def report(self) -> str:
        return self.error.report
