# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/consulboot/render/composer.py

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from consulboot.cluster.quorum import BootstrapPlan
from consulboot.config.models import AgentDirs
from consulboot.metadata.client import InstanceIdentity

log = logging.getLogger("consulboot")

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"
SUPERVISOR_TEMPLATE = "supervisor.conf.j2"


@dataclass(frozen=True)
class RenderedConfig:
    agent_config: Optional[str]      # None when agent config generation is skipped
    supervisor_config: str


def agent_config_document(identity: InstanceIdentity, plan: BootstrapPlan) -> Dict[str, Any]:
    """Agent config as an ordered dict; key order is part of the output format."""
    doc: Dict[str, Any] = {
        "advertise_addr": identity.private_ip,
        "bind_addr": identity.private_ip,
    }
    if plan.bootstrap_expect is not None:
        doc["bootstrap_expect"] = plan.bootstrap_expect
    doc["client_addr"] = "0.0.0.0"
    doc["datacenter"] = identity.location
    doc["node_name"] = identity.id
    if plan.retry_join_ip is not None:
        doc["retry_join"] = [plan.retry_join_ip]
    doc["server"] = plan.is_server
    doc["ui"] = True
    doc["raft_protocol"] = plan.raft_protocol
    return doc


class ConfigComposer:
    """
    Renders the Consul agent config and the supervisord program descriptor.
    Returns text only; writing is ArtifactWriter's job.
    """

    def __init__(self, *, dirs: AgentDirs, user: str, templates_dir: Path = TEMPLATES_DIR):
        self.dirs = dirs
        self.user = user
        self.env = Environment(
            loader=FileSystemLoader(str(templates_dir)),
            undefined=StrictUndefined,
            autoescape=False,
            keep_trailing_newline=True,
        )

    def render_agent_config(self, identity: InstanceIdentity, plan: BootstrapPlan) -> str:
        return json.dumps(agent_config_document(identity, plan), indent=2) + "\n"

    def render_supervisor_config(self) -> str:
        tmpl = self.env.get_template(SUPERVISOR_TEMPLATE)
        return tmpl.render(
            bin_dir=self.dirs.bin,
            config_dir=self.dirs.config,
            data_dir=self.dirs.data,
            log_dir=self.dirs.log,
            user=self.user,
        )

    def render(self, identity: InstanceIdentity, plan: BootstrapPlan) -> RenderedConfig:
        rendered = RenderedConfig(
            agent_config=self.render_agent_config(identity, plan),
            supervisor_config=self.render_supervisor_config(),
        )
        log.debug(f"rendered agent config:\n{rendered.agent_config}")
        return rendered
