"""Secret redaction for environment records.

What:
  Replace values whose key looks like a secret with a fixed mask.

Why:
  Configuration dumps end up in logs and CLI output. Masking by key name keeps
  tokens and passwords out of shared observability infrastructure even when a
  caller prints the whole environment.

How:
  Compare each key against case-insensitive substring matchers plus any extra
  substrings or compiled regular expressions supplied by the caller, and build
  a new dictionary with masked values.

Interfaces:
  :data:`MASK`, :data:`DEFAULT_MATCHERS`, :func:`is_secret_key`, :func:`redact`,
  :func:`redact_tree`, :func:`compile_matchers`.

Invariants & Safety:
  - The input mapping is never mutated.
  - Regular expressions are matched with ``search`` against the raw key.
"""
from __future__ import annotations

import re
from typing import Any, Dict, Iterable, Mapping, Pattern, Sequence, Union

MASK = "***"
DEFAULT_MATCHERS: tuple[str, ...] = (
    "key",
    "token",
    "secret",
    "password",
    "pwd",
    "private",
    "bearer",
    "api",
    "auth",
)

Matcher = Union[str, Pattern[str]]


def is_secret_key(key: str, extra: Iterable[Matcher] = ()) -> bool:
    """Return ``True`` when ``key`` matches a default or extra matcher."""

    lowered = key.lower()
    for matcher in (*DEFAULT_MATCHERS, *extra):
        if isinstance(matcher, str):
            if matcher.lower() in lowered:
                return True
        elif matcher.search(key):
            return True
    return False


def redact(record: Mapping[str, Any], extra: Sequence[Matcher] = ()) -> Dict[str, Any]:
    """Return a copy of ``record`` with secret-looking values masked."""

    return {key: MASK if is_secret_key(key, extra) else value for key, value in record.items()}


def redact_tree(record: Mapping[str, Any], extra: Sequence[Matcher] = ()) -> Dict[str, Any]:
    """Like :func:`redact`, but also masks inside nested mappings."""

    masked: Dict[str, Any] = {}
    for key, value in record.items():
        if is_secret_key(str(key), extra):
            masked[key] = MASK
        elif isinstance(value, Mapping):
            masked[key] = redact_tree(value, extra)
        else:
            masked[key] = value
    return masked


def compile_matchers(patterns: Iterable[str]) -> list[Matcher]:
    """Turn ``re:``-prefixed strings into regexes, keep the rest as substrings."""

    matchers: list[Matcher] = []
    for pattern in patterns:
        if pattern.startswith("re:"):
            matchers.append(re.compile(pattern[3:]))
        else:
            matchers.append(pattern)
    return matchers
