# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/consulboot/bootstrap/runner.py

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from consulboot.cluster.peers import select_peer
from consulboot.cluster.quorum import BootstrapPlan, Role, plan_quorum
from consulboot.config.models import BootstrapSettings
from consulboot.deploy.writer import ArtifactWriter, owner_of
from consulboot.errors import ConsulBootError, MissingRequiredArgument
from consulboot.fleet.arm import AzureSession, ComputeClient
from consulboot.fleet.inventory import FleetInventory
from consulboot.fleet.models import MembershipSnapshot, ScaleSetRef
from consulboot.metadata.client import InstanceIdentity, MetadataClient
from consulboot.observers.dispatcher import EventBus
from consulboot.observers.events import (
    ArtifactsWritten,
    ConfigRendered,
    IdentityResolved,
    MembershipObserved,
    PeerSelected,
    QuorumPlanned,
    RunFailed,
    RunSummary,
    ScaleSetResolved,
    SupervisorReloaded,
    new_ctx,
)
from consulboot.render.composer import ConfigComposer, RenderedConfig

log = logging.getLogger("consulboot")


@dataclass
class RunResult:
    rendered: RenderedConfig
    identity: Optional[InstanceIdentity] = None
    scale_set: Optional[ScaleSetRef] = None
    plan: Optional[BootstrapPlan] = None
    written: List[Path] = field(default_factory=list)


class BootstrapRunner:
    """
    One configuration pass:

      identity -> owning scale set -> membership -> peer + quorum
      -> render -> write -> reload supervisor

    Every discovery step finishes before anything is written, so a failure
    leaves no artifact behind.
    """

    def __init__(
        self,
        settings: BootstrapSettings,
        *,
        metadata: Optional[MetadataClient] = None,
        session: Optional[AzureSession] = None,
        inventory: Optional[FleetInventory] = None,
        writer: Optional[ArtifactWriter] = None,
        bus: Optional[EventBus] = None,
        run_id: Optional[str] = None,
        dry_run: bool = False,
    ):
        self.settings = settings
        self.role = Role(settings.role)
        self.metadata = metadata or MetadataClient(
            endpoint=settings.metadata.endpoint,
            api_version=settings.metadata.api_version,
            timeout=settings.metadata.timeout_seconds,
        )
        self.session = session
        self.inventory = inventory
        self.writer = writer
        self.bus = bus or EventBus()
        self.run_id = run_id or str(uuid.uuid4())
        self.dry_run = dry_run
        self._stage = "init"

    # -----------------------
    # Helpers
    # -----------------------
    def _ctx(self) -> dict:
        return new_ctx(role=self.role.value, run_id=self.run_id)

    def _resolve_user(self) -> str:
        if self.settings.user:
            return self.settings.user
        user = owner_of(self.settings.dirs.root)
        log.info(f"No user given; running consul as {user} (owner of {self.settings.dirs.root})")
        return user

    def _fleet(self, identity: InstanceIdentity) -> FleetInventory:
        if self.inventory is not None:
            return self.inventory
        if self.session is None:
            raise MissingRequiredArgument("An authenticated Azure session is required for discovery")

        creds = self.settings.credentials
        subscription_id = (creds.subscription_id if creds else None) or identity.subscription_id
        if not subscription_id:
            raise MissingRequiredArgument("No subscription id given and none in instance metadata")

        if not self.session.logged_in:
            self.session.login()

        self.inventory = FleetInventory(ComputeClient(session=self.session, subscription_id=subscription_id))
        return self.inventory

    def _resolve_scale_set(self, identity: InstanceIdentity, inventory: FleetInventory) -> ScaleSetRef:
        override = self.settings.scale_set_name
        if override:
            ref = ScaleSetRef(resource_group=identity.resource_group, name=override)
            source = "override"
        else:
            ref = inventory.resolve_owning_set(identity.resource_group, identity.id)
            source = "scan"

        self.bus.emit(ScaleSetResolved(
            **self._ctx(), resource_group=ref.resource_group, scale_set=ref.name, source=source,
        ))
        return ref

    def _plan(self, identity: InstanceIdentity) -> tuple[ScaleSetRef, BootstrapPlan]:
        self._stage = "inventory"
        inventory = self._fleet(identity)
        ref = self._resolve_scale_set(identity, inventory)

        snapshot: Optional[MembershipSnapshot] = None
        peer: Optional[str] = None
        if ref.is_unknown:
            log.info("Standalone instance; skipping membership lookup")
        else:
            snapshot = inventory.membership(ref.resource_group, ref.name)
            self.bus.emit(MembershipObserved(
                **self._ctx(), scale_set=ref.name, members=list(snapshot.ips), count=snapshot.count,
            ))
            self._stage = "peer"
            peer = select_peer(identity.private_ip, snapshot)
        self.bus.emit(PeerSelected(**self._ctx(), peer=peer))

        self._stage = "quorum"
        expect = plan_quorum(self.role, inventory, ref, snapshot)
        plan = BootstrapPlan(
            role=self.role,
            retry_join_ip=peer,
            bootstrap_expect=expect,
            raft_protocol=self.settings.raft_protocol,
        )
        self.bus.emit(QuorumPlanned(
            **self._ctx(), bootstrap_expect=plan.bootstrap_expect, raft_protocol=plan.raft_protocol,
        ))
        return ref, plan

    # -----------------------
    # Entry point
    # -----------------------
    def run(self) -> RunResult:
        try:
            result = self._run()
        except ConsulBootError as exc:
            log.error(f"Configuration pass failed during {self._stage}: {exc}")
            self.bus.emit(RunFailed(**self._ctx(), stage=self._stage, error=str(exc)))
            self.bus.emit(RunSummary(**self._ctx(), status="FAILED", error=str(exc)))
            raise

        self.bus.emit(RunSummary(**self._ctx(), status="DRY_RUN" if self.dry_run else "OK"))
        return result

    def _run(self) -> RunResult:
        self._stage = "settings"
        user = self._resolve_user()
        composer = ConfigComposer(dirs=self.settings.dirs, user=user)

        if self.settings.skip_consul_config:
            log.info("Skipping Consul agent config generation")
            result = RunResult(rendered=RenderedConfig(
                agent_config=None,
                supervisor_config=composer.render_supervisor_config(),
            ))
        else:
            self._stage = "metadata"
            identity = self.metadata.identity()
            self.bus.emit(IdentityResolved(
                **self._ctx(),
                instance_id=identity.id,
                private_ip=identity.private_ip,
                location=identity.location,
                resource_group=identity.resource_group,
            ))

            ref, plan = self._plan(identity)

            self._stage = "render"
            result = RunResult(
                rendered=composer.render(identity, plan),
                identity=identity,
                scale_set=ref,
                plan=plan,
            )

        self.bus.emit(ConfigRendered(
            **self._ctx(),
            agent_config=result.rendered.agent_config is not None,
            supervisor_config=True,
        ))

        if self.dry_run:
            log.info("Dry run; nothing written")
            return result

        self._stage = "write"
        writer = self.writer or ArtifactWriter(
            agent_config_path=self.settings.agent_config_path,
            supervisor_config_path=self.settings.supervisor_config_path,
            user=user,
        )
        result.written = writer.write(result.rendered)
        self.bus.emit(ArtifactsWritten(**self._ctx(), paths=[str(p) for p in result.written]))

        if self.settings.reload_supervisor:
            self._stage = "supervisor"
            output = writer.reload_supervisor()
            self.bus.emit(SupervisorReloaded(**self._ctx(), output=output))

        return result
