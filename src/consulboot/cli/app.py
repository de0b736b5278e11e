# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/consulboot/cli/app.py
from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from consulboot.bootstrap.runner import BootstrapRunner
from consulboot.config.loader import load_settings
from consulboot.errors import ConsulBootError, MissingRequiredArgument
from consulboot.fleet.arm import AzureSession
from consulboot.logging.log import init_logging
from consulboot.observers.dispatcher import EventBus
from consulboot.observers.jsonfile import JsonFileObserver
from consulboot.observers.logger import LoggerObserver


# ------------------------------------------------------------------------------
# CLI setup
# ------------------------------------------------------------------------------

app = typer.Typer(help="Configure and start a Consul agent on an Azure scale set instance")


@app.callback()
def main() -> None:
    """consulboot: Consul agent bootstrap for Azure VM scale sets."""


def resolve_role(server: bool, client: bool) -> str:
    """Exactly one of --server / --client must be given."""
    if server == client:
        raise typer.BadParameter("Exactly one of --server or --client must be specified")
    return "server" if server else "client"


def build_overrides(
    *,
    role: str,
    raft_protocol: Optional[int],
    scale_set_name: Optional[str],
    skip_consul_config: bool,
    user: Optional[str],
    config_dir: Optional[Path],
    data_dir: Optional[Path],
    log_dir: Optional[Path],
    bin_dir: Optional[Path],
    tenant_id: Optional[str],
    client_id: Optional[str],
    secret_access_key: Optional[str],
    subscription_id: Optional[str],
) -> dict:
    overrides = {
        "role": role,
        "raft_protocol": raft_protocol,
        "scale_set_name": scale_set_name,
        "user": user,
        "dirs": {
            "bin": bin_dir,
            "config": config_dir,
            "data": data_dir,
            "log": log_dir,
        },
        "credentials": {
            "tenant_id": tenant_id,
            "client_id": client_id,
            "secret": secret_access_key,
            "subscription_id": subscription_id,
        },
    }
    # Only an explicit flag overrides the settings file
    if skip_consul_config:
        overrides["skip_consul_config"] = True
    return overrides


@app.command("run")
def run(
    server: bool = typer.Option(False, "--server", help="Run the agent in server mode"),
    client: bool = typer.Option(False, "--client", help="Run the agent in client mode"),
    tenant_id: Optional[str] = typer.Option(None, "--tenant-id", envvar="ARM_TENANT_ID"),
    client_id: Optional[str] = typer.Option(None, "--client-id", envvar="ARM_CLIENT_ID"),
    secret_access_key: Optional[str] = typer.Option(None, "--secret-access-key", envvar="ARM_CLIENT_SECRET"),
    subscription_id: Optional[str] = typer.Option(None, "--subscription-id", envvar="ARM_SUBSCRIPTION_ID"),
    scale_set_name: Optional[str] = typer.Option(
        None, "--scale-set-name", help="Scale set to join; required with --client"
    ),
    config_dir: Optional[Path] = typer.Option(None, "--config-dir"),
    data_dir: Optional[Path] = typer.Option(None, "--data-dir"),
    log_dir: Optional[Path] = typer.Option(None, "--log-dir"),
    bin_dir: Optional[Path] = typer.Option(None, "--bin-dir"),
    user: Optional[str] = typer.Option(None, "--user", help="Run consul as this user"),
    raft_protocol: Optional[int] = typer.Option(None, "--raft-protocol", help="Raft protocol version (default 3)"),
    skip_consul_config: bool = typer.Option(False, "--skip-consul-config", help="Do not generate the agent config"),
    settings_file: Optional[Path] = typer.Option(None, "--settings", help="YAML settings file"),
    run_log_dir: Optional[Path] = typer.Option(None, "--run-log-dir", envvar="CONSULBOOT_LOG_DIR"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Render and print; write nothing"),
    debug: bool = typer.Option(False, "--debug"),
):
    """
    Discover this instance's scale set, render the Consul agent config and
    supervisor descriptor, write them and reload supervisor.
    """
    role = resolve_role(server, client)

    run_logs = init_logging(base_dir=run_log_dir, role=role, verbose=debug)
    logger = run_logs.logger

    try:
        settings = load_settings(
            settings_file,
            build_overrides(
                role=role,
                raft_protocol=raft_protocol,
                scale_set_name=scale_set_name,
                skip_consul_config=skip_consul_config,
                user=user,
                config_dir=config_dir,
                data_dir=data_dir,
                log_dir=log_dir,
                bin_dir=bin_dir,
                tenant_id=tenant_id,
                client_id=client_id,
                secret_access_key=secret_access_key,
                subscription_id=subscription_id,
            ),
        )
    except MissingRequiredArgument as exc:
        logger.error(f"Invalid arguments: {exc}")
        raise typer.Exit(code=2)

    bus = EventBus(observers=[
        LoggerObserver(logger),
        JsonFileObserver(run_logs.events_path),
    ])

    try:
        # login happens inside the run so auth failures reach the event log
        session = None
        if not settings.skip_consul_config:
            session = AzureSession(credentials=settings.credentials)

        runner = BootstrapRunner(settings, session=session, bus=bus, run_id=run_logs.run_id, dry_run=dry_run)
        result = runner.run()
    except ConsulBootError as exc:
        logger.error(f"consulboot failed: {exc}")
        raise typer.Exit(code=1)

    if dry_run:
        if result.rendered.agent_config is not None:
            typer.echo(f"# {settings.agent_config_path}")
            typer.echo(result.rendered.agent_config, nl=False)
        typer.echo(f"# {settings.supervisor_config_path}")
        typer.echo(result.rendered.supervisor_config, nl=False)
        return

    logger.info("=== consulboot run finished ===")


cli = app


if __name__ == "__main__":
    app()
