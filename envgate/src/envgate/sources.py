"""Raw source adapters producing immutable raw environments.

What:
  Provide the adapters that read flat key/value data for the pipeline: the
  process environment, an in-memory record, a ``.env`` file, and a YAML
  document flattened into environment-style keys.

Why:
  The pipeline only depends on the small :class:`EnvSource` contract (a
  ``name`` and a ``load`` method), so tests can feed records while deployments
  read the process or files, without the decoder knowing the difference.

How:
  Each adapter snapshots its input into a :class:`types.MappingProxyType` via
  :func:`freeze_env`. ``.env`` files are parsed with ``python-dotenv`` and YAML
  with PyYAML's ``safe_load``. File adapters raise
  :class:`~envgate.errors.SourceError` with path context; the orchestrator
  wraps anything else an adapter throws.

Interfaces:
  :class:`EnvSource`, :func:`freeze_env`, :class:`ProcessEnvSource`,
  :class:`MappingSource`, :class:`DotenvSource`, :class:`YamlSource`.

Invariants & Safety:
  - ``load`` never mutates global state; :class:`DotenvSource` does not export
    the file into ``os.environ``.
  - Absent values stay ``None`` and are never turned into empty strings.
"""
from __future__ import annotations

import os
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterable, Mapping, Optional, Protocol, Tuple, runtime_checkable

import yaml
from dotenv import dotenv_values

from .errors import SourceError
from .schema import ENV_PATH_DELIMITER
from .types import RawEnvironment


@runtime_checkable
class EnvSource(Protocol):
    """Contract implemented by every raw source adapter."""

    name: str

    def load(self) -> RawEnvironment:
        ...


def freeze_env(entries: Iterable[Tuple[str, Optional[str]]] | Mapping[str, Optional[str]]) -> RawEnvironment:
    """Snapshot ``entries`` into a read-only mapping."""

    if isinstance(entries, Mapping):
        entries = entries.items()
    return MappingProxyType({str(key): value for key, value in entries})


class ProcessEnvSource:
    """Snapshot of ``os.environ`` taken at load time."""

    name = "process.env"

    def load(self) -> RawEnvironment:
        return freeze_env(os.environ.items())


class MappingSource:
    """In-memory record, mostly used by tests and embedding applications."""

    def __init__(self, record: Mapping[str, Optional[str]], name: str = "record") -> None:
        self.name = name
        self._record = dict(record)

    def load(self) -> RawEnvironment:
        return freeze_env(self._record)


class DotenvSource:
    """Read a ``.env`` file without exporting it into the process.

    What:
      Parse ``KEY=value`` lines with :func:`dotenv.dotenv_values`.

    Why:
      Local development keeps configuration in ``.env`` files; exporting them
      into ``os.environ`` would leak state between pipeline runs and tests.

    How:
      Check the file exists, parse it, and optionally overlay the result onto a
      snapshot of the process environment (file values win). Keys declared
      without a value (``KEY`` alone) stay absent.

    Args:
      path: Location of the ``.env`` file.
      include_process_env: Merge the process environment underneath the file.
    """

    def __init__(self, path: Path | str, *, include_process_env: bool = False) -> None:
        self.path = Path(path).expanduser()
        self.include_process_env = include_process_env
        self.name = f"dotenv:{self.path}"

    def load(self) -> RawEnvironment:
        if not self.path.is_file():
            raise SourceError(self.name, FileNotFoundError(f"dotenv file missing: {self.path}"))
        try:
            values = dotenv_values(self.path, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise SourceError(self.name, exc) from exc
        merged: Dict[str, Optional[str]] = {}
        if self.include_process_env:
            merged.update(os.environ)
        merged.update(values)
        return freeze_env(merged)


def _scalar_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, dict)):
        return yaml.safe_dump(value, default_flow_style=True).strip()
    return str(value)


def flatten_mapping(data: Mapping[Any, Any], *, uppercase: bool = True, prefix: str = "") -> Dict[str, Optional[str]]:
    """Flatten nested mappings into ``_``-joined keys with text values."""

    flat: Dict[str, Optional[str]] = {}
    for key, value in data.items():
        name = str(key).upper() if uppercase else str(key)
        full = f"{prefix}{ENV_PATH_DELIMITER}{name}" if prefix else name
        if isinstance(value, Mapping):
            flat.update(flatten_mapping(value, uppercase=uppercase, prefix=full))
        else:
            flat[full] = _scalar_text(value)
    return flat


class YamlSource:
    """Read a YAML mapping and expose it as environment-style keys.

    ``database: {host: db}`` becomes ``DATABASE_HOST=db``. Booleans render as
    ``true``/``false``, lists as flow-style YAML, and ``null`` as absent.
    """

    def __init__(self, path: Path | str, *, uppercase: bool = True) -> None:
        self.path = Path(path).expanduser()
        self.uppercase = uppercase
        self.name = f"yaml:{self.path}"

    def load(self) -> RawEnvironment:
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise SourceError(self.name, exc, f"Failed to load environment from {self.name}: file missing") from exc
        except OSError as exc:  # pragma: no cover - filesystem surface
            raise SourceError(self.name, exc) from exc
        try:
            payload = yaml.safe_load(text) or {}
        except yaml.YAMLError as exc:
            raise SourceError(self.name, exc, f"Failed to load environment from {self.name}: invalid YAML") from exc
        if not isinstance(payload, Mapping):
            raise SourceError(self.name, message=f"Failed to load environment from {self.name}: top-level value must be a mapping")
        return freeze_env(flatten_mapping(payload, uppercase=self.uppercase))
