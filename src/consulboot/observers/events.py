# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/consulboot/observers/events.py

from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import List, Dict, Any, Optional
from datetime import datetime, timezone
import uuid


# ---------------------------------------------------------------------
# Base context and helper
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class BaseEvent:
    ts: str           # ISO timestamp
    run_id: str       # correlates all events in a single configuration pass
    role: str         # server/client

    def dict(self) -> Dict[str, Any]:
        return asdict(self)


def new_ctx(role: str, run_id: Optional[str] = None) -> Dict[str, Any]:
    return {
        "ts": datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z"),
        "run_id": run_id or str(uuid.uuid4()),
        "role": role,
    }


# ---------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class IdentityResolved(BaseEvent):
    instance_id: str
    private_ip: str
    location: str
    resource_group: str

@dataclass(frozen=True)
class ScaleSetResolved(BaseEvent):
    resource_group: str
    scale_set: str
    source: str       # "override" | "scan"

@dataclass(frozen=True)
class MembershipObserved(BaseEvent):
    scale_set: str
    members: List[str]
    count: int


# ---------------------------------------------------------------------
# Planning
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class PeerSelected(BaseEvent):
    peer: Optional[str]

@dataclass(frozen=True)
class QuorumPlanned(BaseEvent):
    bootstrap_expect: Optional[int]
    raft_protocol: int


# ---------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class ConfigRendered(BaseEvent):
    agent_config: bool
    supervisor_config: bool

@dataclass(frozen=True)
class ArtifactsWritten(BaseEvent):
    paths: List[str]

@dataclass(frozen=True)
class SupervisorReloaded(BaseEvent):
    output: str

@dataclass(frozen=True)
class RunFailed(BaseEvent):
    stage: str
    error: str

@dataclass(frozen=True)
class RunSummary(BaseEvent):
    status: str       # "OK" | "FAILED" | "DRY_RUN"
    error: Optional[str] = None
