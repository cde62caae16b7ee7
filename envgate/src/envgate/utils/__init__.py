"""Shared helpers for redaction and structured logging."""

from .logging import JsonLogger, get_logger
from .redact import MASK, compile_matchers, is_secret_key, redact, redact_tree

__all__ = [
    "JsonLogger",
    "get_logger",
    "MASK",
    "compile_matchers",
    "is_secret_key",
    "redact",
    "redact_tree",
]
