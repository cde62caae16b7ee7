"""Validation reporting and the ``validate`` entry point.

What:
  Flatten a :data:`~envgate.schema.DecodeFailure` tree into ``missing`` keys
  and :class:`~envgate.errors.ValidationIssue` entries, render them as a fixed
  width table, and expose :func:`validate`, which decodes a raw environment and
  splits the decoded fields into frozen server and client candidate subsets.

Why:
  Operators need a single report listing every configuration problem, not the
  first one. The same table must be attached whether the failure is returned
  to the caller or escalated as a fatal defect.

How:
  A stack-based depth-first traversal expands AND/OR combinators and classifies
  leaves. The first classification recorded for a key wins, so a key appears
  once, in exactly one of ``missing`` or ``invalid``. The table lists all
  missing rows first, then all invalid rows, in encounter order.

Interfaces:
  :func:`format_path`, :func:`collect_issues`, :func:`format_validation_report`,
  :func:`build_validation_error`, :func:`partition_candidates`,
  :func:`validate`, :class:`Validator`.

Invariants & Safety:
  - Truncation only affects the rendered table; ``ValidationIssue.message``
    keeps the full text.
  - :func:`format_validation_report` is pure and deterministic.
"""
from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .errors import EnvironmentDefect, ValidationError, ValidationIssue
from .schema import AndFailure, CompiledEnv, DecodeFailure, InvalidData, OrFailure, decode, is_failure
from .types import EnvMeta, RawEnvironment, ValidationResult

ROOT_PATH = "<root>"
MISSING_DETAILS = "required but not provided"
MAX_DETAILS_LENGTH = 30
KEY_COLUMN_WIDTH = 10
STATUS_COLUMN_WIDTH = 9
REPORT_HEADER = "Key       | Status    | Details"
REPORT_SEPARATOR = "-----------|-----------|--------"


def format_path(path: Sequence[str]) -> str:
    """Render a failure path as a dotted key, or ``<root>`` when empty."""

    if not path:
        return ROOT_PATH
    return ".".join(path)


def collect_issues(failure: DecodeFailure) -> Tuple[Tuple[str, ...], Tuple[ValidationIssue, ...]]:
    """Classify every leaf of ``failure``.

    What:
      Return ``(missing, invalid)`` for the failure tree.

    Why:
      The decoder's tree mixes combinators and leaves; callers only care about
      which keys are absent and which are malformed.

    How:
      Depth-first traversal with an explicit stack, children pushed in reverse
      so the left-most branch is visited first. Missing, source-unavailable,
      and unsupported leaves count as missing; invalid-data leaves become
      issues. A key already classified by an earlier leaf is skipped, so for
      OR branches reporting the same key only the first branch's message is
      kept and ties are never merged.

    Args:
      failure: Root of the decode failure tree.

    Returns:
      Tuple of deduplicated missing keys and invalid issues, in encounter order.
    """

    missing: List[str] = []
    invalid: List[ValidationIssue] = []
    seen: Dict[str, str] = {}
    stack: List[DecodeFailure] = [failure]
    while stack:
        node = stack.pop()
        if isinstance(node, (AndFailure, OrFailure)):
            stack.extend(reversed(node.children))
            continue
        key = format_path(node.path)
        if key in seen:
            continue
        if isinstance(node, InvalidData):
            seen[key] = "invalid"
            invalid.append(ValidationIssue(key=key, message=node.message))
        else:
            seen[key] = "missing"
            missing.append(key)
    return tuple(missing), tuple(invalid)


def _shorten(message: str) -> str:
    if len(message) > MAX_DETAILS_LENGTH:
        return message[:MAX_DETAILS_LENGTH] + "..."
    return message


def _row(key: str, status: str, details: str) -> str:
    return f"{key.ljust(KEY_COLUMN_WIDTH)} | {status.ljust(STATUS_COLUMN_WIDTH)} | {details}"


def format_validation_report(missing: Sequence[str], invalid: Sequence[ValidationIssue]) -> str:
    """Render ``missing`` and ``invalid`` as the aligned report table."""

    lines = [REPORT_HEADER, REPORT_SEPARATOR]
    for key in missing:
        lines.append(_row(key, "missing", MISSING_DETAILS))
    for issue in invalid:
        lines.append(_row(issue.key, "invalid", _shorten(issue.message)))
    return "\n".join(lines)


def build_validation_error(failure: DecodeFailure) -> ValidationError:
    """Convert a decode failure tree into a :class:`ValidationError`."""

    missing, invalid = collect_issues(failure)
    return ValidationError(missing, invalid, format_validation_report(missing, invalid))


def partition_candidates(values: Mapping[str, Any], client_prefix: str) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """Split decoded fields by name: prefixed keys are client candidates."""

    server: Dict[str, Any] = {}
    client: Dict[str, Any] = {}
    for key, value in values.items():
        if client_prefix and key.startswith(client_prefix):
            client[key] = value
        else:
            server[key] = value
    return server, client


def validate(
    raw: RawEnvironment,
    compiled: CompiledEnv,
    *,
    meta: Optional[EnvMeta] = None,
    fail_in_production: bool = False,
) -> ValidationResult:
    """Decode ``raw`` and return frozen server/client candidate subsets.

    Args:
      raw: Raw environment to decode.
      compiled: Schema and its derived partition policy.
      meta: Effective policy when it differs from ``compiled.meta``; only its
        ``client_prefix`` drives the split here.
      fail_in_production: Escalate failures to :class:`EnvironmentDefect`.

    Raises:
      ValidationError: When decoding fails and the failure is recoverable.
      EnvironmentDefect: When decoding fails under the fatal policy.
    """

    decoded = decode(compiled.schema, raw)
    if is_failure(decoded):
        error = build_validation_error(decoded)
        if fail_in_production:
            raise EnvironmentDefect(error) from error
        raise error
    policy = meta if meta is not None else compiled.meta
    server, client = partition_candidates(decoded.model_dump(by_alias=True), policy.client_prefix)
    return ValidationResult(server=server, client=client)


class Validator:
    """Validation stage bound to a service-level compiled schema.

    Per-call arguments win over the bound defaults, so a caller can swap the
    compiled schema for a single call without rebuilding the service.
    """

    def __init__(self, compiled: CompiledEnv, *, fail_in_production: bool = False) -> None:
        self.compiled = compiled
        self.fail_in_production = fail_in_production

    def validate(
        self,
        raw: RawEnvironment,
        *,
        compiled: Optional[CompiledEnv] = None,
        meta: Optional[EnvMeta] = None,
        fail_in_production: Optional[bool] = None,
    ) -> ValidationResult:
        return validate(
            raw,
            compiled if compiled is not None else self.compiled,
            meta=meta,
            fail_in_production=self.fail_in_production if fail_in_production is None else fail_in_production,
        )
