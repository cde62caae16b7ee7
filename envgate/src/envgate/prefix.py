"""Partition policy enforcement for server and client subsets.

What:
  Check that the server subset holds only declared server keys and that the
  client subset holds only declared, correctly prefixed client keys.

Why:
  Shipping a server secret to a browser bundle, or trusting a client-facing
  key on the server, are configuration-authoring bugs that must fail loudly and
  deterministically before the configuration is used.

How:
  Resolve the effective :class:`~envgate.types.EnvMeta` with a field-by-field
  merge of the override onto the base policy, collect violating keys into a
  set, sort them, and raise :class:`~envgate.errors.PrefixViolation` when the
  set is not empty. Otherwise the input result is returned unchanged.

Interfaces:
  :func:`merge_meta`, :func:`server_violations`, :func:`client_violations`,
  :func:`build_message`, :func:`enforce`, :class:`PrefixEnforcer`.

Invariants & Safety:
  - Undeclared keys are rejected in both modes (default deny).
  - An empty ``client_prefix`` disables every prefix rule.
  - Violation lists are sorted and deduplicated.
"""
from __future__ import annotations

from typing import Iterable, Optional, Tuple

from .errors import PrefixViolation
from .types import MODES, EnvMeta, EnvRecord, MetaOverride, Mode, ValidationResult


def merge_meta(base: EnvMeta, override: Optional[MetaOverride] = None) -> EnvMeta:
    """Apply ``override`` onto ``base`` field by field."""

    if override is None:
        return base
    return EnvMeta(
        server_keys=override.server_keys if override.server_keys is not None else base.server_keys,
        client_keys=override.client_keys if override.client_keys is not None else base.client_keys,
        client_prefix=override.client_prefix if override.client_prefix is not None else base.client_prefix,
    )


def _unique_sorted(keys: Iterable[str]) -> Tuple[str, ...]:
    return tuple(sorted(set(keys)))


def server_violations(env: EnvRecord, meta: EnvMeta) -> Tuple[str, ...]:
    """Keys in a server subset that are client keys, undeclared, or client-prefixed."""

    violations = set()
    for key in env:
        if key in meta.client_keys:
            violations.add(key)
        if key not in meta.server_keys:
            violations.add(key)
        if meta.client_prefix and key.startswith(meta.client_prefix):
            violations.add(key)
    return _unique_sorted(violations)


def client_violations(env: EnvRecord, meta: EnvMeta) -> Tuple[str, ...]:
    """Keys in a client subset that are undeclared or lack the client prefix."""

    violations = set()
    for key in env:
        if key not in meta.client_keys:
            violations.add(key)
        if meta.client_prefix and not key.startswith(meta.client_prefix):
            violations.add(key)
    return _unique_sorted(violations)


def build_message(mode: Mode, keys: Iterable[str]) -> str:
    return f"{mode.capitalize()} mode forbids these keys: {', '.join(keys)}"


def enforce(
    result: ValidationResult,
    *,
    meta: EnvMeta,
    mode: Mode = "server",
    meta_override: Optional[MetaOverride] = None,
) -> ValidationResult:
    """Check the subset selected by ``mode`` against the effective policy.

    Args:
      result: Partitioned validation output.
      meta: Base partition policy.
      mode: ``"server"`` or ``"client"``.
      meta_override: Optional partial patch merged onto ``meta``.

    Returns:
      ``result`` itself when no key violates the policy.

    Raises:
      PrefixViolation: With the sorted offending keys.
      ValueError: If ``mode`` is not a known mode.
    """

    if mode not in MODES:
        raise ValueError(f"unknown mode {mode!r}; expected one of {', '.join(MODES)}")
    effective = merge_meta(meta, meta_override)
    if mode == "server":
        violations = server_violations(result.server, effective)
    else:
        violations = client_violations(result.client, effective)
    if violations:
        raise PrefixViolation(mode, violations, build_message(mode, violations))
    return result


class PrefixEnforcer:
    """Partition policy stage bound to a base :class:`EnvMeta`."""

    def __init__(self, meta: EnvMeta) -> None:
        self.meta = meta

    def enforce(
        self,
        result: ValidationResult,
        *,
        mode: Mode = "server",
        meta_override: Optional[MetaOverride] = None,
    ) -> ValidationResult:
        return enforce(result, meta=self.meta, mode=mode, meta_override=meta_override)
