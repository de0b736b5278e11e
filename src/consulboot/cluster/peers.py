# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/consulboot/cluster/peers.py

from __future__ import annotations

import logging
from typing import Optional

from consulboot.fleet.models import MembershipSnapshot

log = logging.getLogger("consulboot")


def select_peer(self_ip: str, members: MembershipSnapshot) -> Optional[str]:
    """
    Pick one member other than ourselves to seed retry_join.

    Any non-self member will do; Consul de-duplicates joins. Returns None for
    the first node of a new set (empty or self-only membership).
    """
    peer: Optional[str] = None
    for ip in members.ips:
        if ip != self_ip:
            peer = ip

    if peer is None:
        log.info(f"No peer other than {self_ip} found; starting without retry_join")
    else:
        log.info(f"Selected {peer} as retry_join seed")
    return peer
