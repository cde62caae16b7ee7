"""Structured event logging for envgate pipeline runs.

What:
  Emit one JSON object per pipeline event (``environment_loaded``,
  ``validation_failed``, ``prefix_violation``, ``source_failed``) carrying the
  event name, severity, emitting component, and the key names or counts that
  describe the outcome.

Why:
  envgate usually runs at process start, before the host application has
  configured any logging, and every event it reports is about configuration,
  which is where secrets live. Events must be machine readable and must never
  carry a value whose key looks like a credential.

How:
  :class:`JsonLogger` builds the event record, passes the caller's fields
  through :func:`envgate.utils.redact.redact_tree`, and writes a compact JSON
  line to its stream. The stream defaults to ``stderr`` so the command-line
  entry point keeps ``stdout`` for its own output.

Interfaces:
  :class:`JsonLogger`, :func:`get_logger`, :data:`LEVELS`.
"""
from __future__ import annotations

import json
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, TextIO

from .redact import redact_tree

LEVELS = ("DEBUG", "INFO", "WARN", "ERROR")


@dataclass
class JsonLogger:
    """Write envgate events as single-line JSON records.

    Attributes:
      stream: Text stream receiving the records; ``stderr`` when omitted.
      component: Dotted envgate component name stamped on every record.
    """

    stream: TextIO = field(default_factory=lambda: sys.stderr)
    component: str = "envgate"

    def _record(self, level: str, event: str, fields: Mapping[str, Any]) -> Dict[str, Any]:
        severity = level.upper()
        if severity not in LEVELS:
            raise ValueError(f"unknown log level {level!r}; expected one of {', '.join(LEVELS)}")
        record: Dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "lvl": severity,
            "msg": event,
            "component": self.component,
        }
        # Fields never overwrite the envelope.
        for name, value in redact_tree(fields).items():
            record.setdefault(name, value)
        return record

    def log(self, level: str, event: str, *, extra: Optional[Mapping[str, Any]] = None) -> None:
        """Write one event at ``level`` with the optional ``extra`` fields."""

        line = json.dumps(self._record(level, event, extra or {}), separators=(",", ":"), default=str)
        self.stream.write(line + "\n")
        self.stream.flush()

    def info(self, event: str, **fields: Any) -> None:
        self.log("INFO", event, extra=fields)

    def warning(self, event: str, **fields: Any) -> None:
        self.log("WARN", event, extra=fields)

    def error(self, event: str, **fields: Any) -> None:
        self.log("ERROR", event, extra=fields)


def get_logger(component: str, stream: Optional[TextIO] = None) -> JsonLogger:
    """Return a :class:`JsonLogger` for ``component``, on ``stderr`` by default."""

    if stream is None:
        return JsonLogger(component=component)
    return JsonLogger(stream=stream, component=component)
