# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/consulboot/fleet/models.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Tuple

UNKNOWN_SCALE_SET = "unknown"


@dataclass(frozen=True)
class ScaleSetRef:
    """
    Scale set an instance belongs to. name == "unknown" means the instance is
    standalone and plans as a single node.
    """
    resource_group: str
    name: str

    @classmethod
    def unknown(cls, resource_group: str) -> "ScaleSetRef":
        return cls(resource_group=resource_group, name=UNKNOWN_SCALE_SET)

    @property
    def is_unknown(self) -> bool:
        return self.name == UNKNOWN_SCALE_SET


@dataclass(frozen=True)
class MembershipSnapshot:
    """
    Private IPs of a scale set, captured from a single listing call.
    Ordered and duplicate-free.
    """
    ips: Tuple[str, ...] = ()

    @classmethod
    def of(cls, ips: Iterable[str]) -> "MembershipSnapshot":
        return cls(ips=tuple(dict.fromkeys(ips)))

    @property
    def count(self) -> int:
        return len(self.ips)
