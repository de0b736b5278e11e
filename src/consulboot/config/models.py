# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/consulboot/config/models.py

from __future__ import annotations

from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field, model_validator

DEFAULT_CONSUL_ROOT = Path("/opt/consul")


class AzureCredentials(BaseModel):
    """Service principal used for control-plane listings."""

    tenant_id: str
    client_id: str
    secret: str
    subscription_id: Optional[str] = None     # falls back to instance metadata

    model_config = {
        "extra": "forbid",
    }


class MetadataSettings(BaseModel):
    endpoint: str = "http://169.254.169.254/metadata/instance"
    api_version: str = "2021-02-01"
    timeout_seconds: float = 5.0

    model_config = {
        "extra": "forbid",
    }


class AgentDirs(BaseModel):
    """
    Consul install layout. Unset directories default to <root>/<name>.
    """

    root: Path = DEFAULT_CONSUL_ROOT
    bin: Optional[Path] = None
    config: Optional[Path] = None
    data: Optional[Path] = None
    log: Optional[Path] = None

    model_config = {
        "extra": "forbid",
    }

    @model_validator(mode="after")
    def _fill_defaults(self) -> "AgentDirs":
        for name in ("bin", "config", "data", "log"):
            if getattr(self, name) is None:
                setattr(self, name, self.root / name)
        return self


class BootstrapSettings(BaseModel):
    """
    Everything one configuration pass needs, resolved once at the CLI
    boundary and passed inward.
    """

    role: Literal["server", "client"]
    raft_protocol: int = Field(default=3, ge=1)
    scale_set_name: Optional[str] = None
    skip_consul_config: bool = False

    user: Optional[str] = None                # defaults to the owner of dirs.root
    dirs: AgentDirs = Field(default_factory=AgentDirs)
    config_file_name: str = "default.json"
    supervisor_config_path: Path = Path("/etc/supervisor/conf.d/run-consul.conf")
    reload_supervisor: bool = True

    credentials: Optional[AzureCredentials] = None
    metadata: MetadataSettings = Field(default_factory=MetadataSettings)

    model_config = {
        "extra": "forbid",
    }

    @model_validator(mode="after")
    def _check_role_requirements(self) -> "BootstrapSettings":
        if self.role == "client" and not self.scale_set_name:
            raise ValueError("scale_set_name is required for client agents")
        if not self.skip_consul_config and self.credentials is None:
            raise ValueError("Azure credentials are required unless skip_consul_config is set")
        return self

    @property
    def agent_config_path(self) -> Path:
        return self.dirs.config / self.config_file_name
