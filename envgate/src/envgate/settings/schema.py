"""Pydantic models describing ``envgate.yaml`` service settings."""
from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class SourceSettings(BaseModel):
    """Where the raw environment comes from."""

    model_config = ConfigDict(extra="forbid")

    kind: Literal["process", "dotenv", "yaml"] = "process"
    path: Optional[str] = None
    include_process_env: bool = False

    @model_validator(mode="after")
    def _require_path(self) -> "SourceSettings":
        if self.kind != "process" and not self.path:
            raise ValueError(f"source.path is required for kind '{self.kind}'")
        return self


class ServiceSettings(BaseModel):
    """Root settings consumed by the command-line entry point."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    schema_ref: Optional[str] = Field(default=None, alias="schema")
    client_prefix: str = ""
    server_keys: Optional[List[str]] = None
    client_keys: Optional[List[str]] = None
    mode: Literal["server", "client"] = "server"
    fail_in_production: bool = False
    source: SourceSettings = Field(default_factory=SourceSettings)
    redact_extra: List[str] = Field(default_factory=list)
