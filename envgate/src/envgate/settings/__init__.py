"""envgate service settings package.

What:
  Provide the import surface for the ``envgate.yaml`` settings schema and the
  helpers that turn it into a configured pipeline.

Interfaces:
  - load_service_settings: Locate and validate the settings file.
  - import_schema: Resolve a ``module:Model`` reference.
  - build_source / build_service: Wire adapters and the orchestrator.
  - ServiceSettings / SourceSettings: Pydantic models for the file.
"""

from .loader import build_service, build_source, compile_settings, import_schema, load_service_settings
from .schema import ServiceSettings, SourceSettings

__all__ = [
    "build_service",
    "build_source",
    "compile_settings",
    "import_schema",
    "load_service_settings",
    "ServiceSettings",
    "SourceSettings",
]
