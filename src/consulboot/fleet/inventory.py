# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/consulboot/fleet/inventory.py

from __future__ import annotations

import logging
from typing import Callable, Iterable, List, Protocol

from consulboot.errors import ScaleSetNotFound
from consulboot.fleet.models import MembershipSnapshot, ScaleSetRef

log = logging.getLogger("consulboot")


class ComputeApi(Protocol):
    def list_scale_sets(self, resource_group: str) -> List[str]: ...
    def list_instance_ids(self, resource_group: str, scale_set: str) -> List[str]: ...
    def list_private_ips(self, resource_group: str, scale_set: str) -> List[str]: ...


def find_owning_set(
    resource_group: str,
    instance_id: str,
    *,
    list_sets: Callable[[], Iterable[str]],
    list_instance_ids: Callable[[str], Iterable[str]],
) -> ScaleSetRef:
    """
    Linear scan over every scale set in the group for instance_id.

    The two listings are not atomic: a set that disappears between the outer
    and inner call is treated as "no match in this set".
    """
    for name in list_sets():
        try:
            ids = list(list_instance_ids(name))
        except ScaleSetNotFound:
            log.debug(f"scale set {name} vanished during scan; skipping")
            continue
        if instance_id in ids:
            return ScaleSetRef(resource_group=resource_group, name=name)

    return ScaleSetRef.unknown(resource_group)


class FleetInventory:
    def __init__(self, compute: ComputeApi):
        self.compute = compute

    def resolve_owning_set(self, resource_group: str, instance_id: str) -> ScaleSetRef:
        ref = find_owning_set(
            resource_group,
            instance_id,
            list_sets=lambda: self.compute.list_scale_sets(resource_group),
            list_instance_ids=lambda name: self.compute.list_instance_ids(resource_group, name),
        )
        if ref.is_unknown:
            log.info(f"Instance {instance_id} is not part of any scale set in {resource_group}")
        else:
            log.info(f"Instance {instance_id} belongs to scale set {ref.name}")
        return ref

    def membership(self, resource_group: str, scale_set: str) -> MembershipSnapshot:
        """
        One listing of the set's private IPs. An empty set is a valid
        snapshot with count 0; failures raise InventoryUnavailable.
        """
        snapshot = MembershipSnapshot.of(self.compute.list_private_ips(resource_group, scale_set))
        log.info(f"Scale set {resource_group}/{scale_set} has {snapshot.count} member(s)")
        return snapshot

    def size(self, resource_group: str, ref: ScaleSetRef) -> int:
        if ref.is_unknown:
            return 1
        return self.membership(resource_group, ref.name).count
