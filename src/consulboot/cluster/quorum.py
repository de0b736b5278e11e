# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/consulboot/cluster/quorum.py

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from consulboot.fleet.inventory import FleetInventory
from consulboot.fleet.models import MembershipSnapshot, ScaleSetRef

log = logging.getLogger("consulboot")


class Role(str, Enum):
    SERVER = "server"
    CLIENT = "client"


@dataclass(frozen=True)
class BootstrapPlan:
    """
    Join and quorum parameters derived for this node.

    bootstrap_expect is set iff role is SERVER; retry_join_ip is set iff a
    distinct peer was found.
    """
    role: Role
    retry_join_ip: Optional[str] = None
    bootstrap_expect: Optional[int] = None
    raft_protocol: int = 3

    def __post_init__(self):
        if (self.bootstrap_expect is not None) != (self.role is Role.SERVER):
            raise ValueError(f"bootstrap_expect must be set only for servers (role={self.role.value})")
        if self.raft_protocol < 1:
            raise ValueError("raft_protocol must be a positive integer")

    @property
    def is_server(self) -> bool:
        return self.role is Role.SERVER


def plan_quorum(
    role: Role,
    inventory: FleetInventory,
    ref: ScaleSetRef,
    snapshot: Optional[MembershipSnapshot] = None,
) -> Optional[int]:
    """
    bootstrap_expect for this node, read from membership at this instant.

    Nodes starting concurrently during a scale-out may each see a different
    count; nothing here reconciles them.
    """
    if role is Role.CLIENT:
        return None

    if snapshot is not None and not ref.is_unknown:
        expect = snapshot.count
    else:
        expect = inventory.size(ref.resource_group, ref)

    if expect == 0:
        log.warning(f"Scale set {ref.name} reported no members; bootstrap_expect=0")
    else:
        log.info(f"bootstrap_expect={expect} (scale set {ref.name})")
    return expect
