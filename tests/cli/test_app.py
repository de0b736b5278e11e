import json
import textwrap
from pathlib import Path

import pytest
from typer.testing import CliRunner

import consulboot.deploy.writer as writer_mod
from consulboot.cli.app import app
from consulboot.errors import AzureAuthError, MetadataUnavailable
from consulboot.fleet.arm import AzureSession, ComputeClient
from consulboot.metadata.client import InstanceIdentity, MetadataClient

IDENTITY = InstanceIdentity(
    id="vm-1", private_ip="10.0.0.4", location="eastus", resource_group="rg1", subscription_id="sub-1",
)
CRED_ARGS = ["--tenant-id", "t", "--client-id", "c", "--secret-access-key", "s"]

runner = CliRunner()


@pytest.fixture
def cloud(monkeypatch):
    """Stub IMDS, Azure login and the ARM listings; records what was touched."""
    seen = {"login": 0, "subscription": None, "ips": []}

    def fake_login(self):
        seen["login"] += 1

    def fake_ips(self, resource_group, scale_set):
        seen["subscription"] = self.subscription_id
        seen["ips"].append((resource_group, scale_set))
        return ["10.0.0.4", "10.0.0.5"]

    monkeypatch.setattr(AzureSession, "login", fake_login)
    monkeypatch.setattr(MetadataClient, "identity", lambda self: IDENTITY)
    monkeypatch.setattr(ComputeClient, "list_private_ips", fake_ips)
    return seen


def _invoke(tmp_path: Path, *args):
    return runner.invoke(app, ["run", *args, "--run-log-dir", str(tmp_path / "logs")])


def test_server_and_client_are_mutually_exclusive(tmp_path, cloud):
    result = _invoke(tmp_path, "--server", "--client", *CRED_ARGS)
    assert result.exit_code == 2
    assert cloud["login"] == 0


def test_role_is_required(tmp_path, cloud):
    result = _invoke(tmp_path, *CRED_ARGS)
    assert result.exit_code == 2


def test_client_requires_scale_set_name(tmp_path, cloud):
    result = _invoke(tmp_path, "--client", "--user", "consul", *CRED_ARGS)
    assert result.exit_code == 2
    assert cloud["login"] == 0


def test_missing_credentials_is_usage_error(tmp_path, cloud, monkeypatch):
    for var in ("ARM_TENANT_ID", "ARM_CLIENT_ID", "ARM_CLIENT_SECRET"):
        monkeypatch.delenv(var, raising=False)
    result = _invoke(tmp_path, "--server", "--user", "consul")
    assert result.exit_code == 2


def test_dry_run_prints_rendered_artifacts(tmp_path, cloud):
    result = _invoke(
        tmp_path, "--server", "--scale-set-name", "vmss1", "--user", "consul",
        "--config-dir", str(tmp_path / "cfg"), "--dry-run", *CRED_ARGS,
    )

    assert result.exit_code == 0, result.output
    assert cloud["login"] == 1
    assert cloud["subscription"] == "sub-1"
    assert cloud["ips"] == [("rg1", "vmss1")]
    assert '"bootstrap_expect": 2' in result.output
    assert '"10.0.0.5"' in result.output
    assert "[program:consul]" in result.output
    assert not (tmp_path / "cfg" / "default.json").exists()


def test_subscription_flag_wins_over_metadata(tmp_path, cloud):
    result = _invoke(
        tmp_path, "--client", "--scale-set-name", "consul-servers", "--user", "consul",
        "--subscription-id", "sub-override", "--dry-run", *CRED_ARGS,
    )
    assert result.exit_code == 0, result.output
    assert cloud["subscription"] == "sub-override"
    assert '"server": false' in result.output


def test_full_run_writes_artifacts(tmp_path, cloud, monkeypatch):
    chowned = []
    monkeypatch.setattr(writer_mod.shutil, "chown", lambda path, user=None, group=None: chowned.append((Path(path).parent, user)))
    settings = tmp_path / "consulboot.yaml"
    settings.write_text(textwrap.dedent(f"""
        supervisor_config_path: {tmp_path / "supervisor" / "run-consul.conf"}
        reload_supervisor: false
    """))

    result = _invoke(
        tmp_path, "--server", "--scale-set-name", "vmss1", "--user", "consul",
        "--config-dir", str(tmp_path / "cfg"), "--raft-protocol", "2",
        "--settings", str(settings), *CRED_ARGS,
    )

    assert result.exit_code == 0, result.output
    doc = json.loads((tmp_path / "cfg" / "default.json").read_text())
    assert doc["raft_protocol"] == 2
    assert doc["retry_join"] == ["10.0.0.5"]
    assert (tmp_path / "supervisor" / "run-consul.conf").exists()
    assert chowned == [(tmp_path / "cfg", "consul")]


def test_metadata_failure_exits_nonzero_without_artifacts(tmp_path, cloud, monkeypatch):
    def broken(self):
        raise MetadataUnavailable("Instance metadata returned a non-JSON body")

    monkeypatch.setattr(MetadataClient, "identity", broken)

    result = _invoke(
        tmp_path, "--server", "--user", "consul", "--config-dir", str(tmp_path / "cfg"), *CRED_ARGS,
    )

    assert result.exit_code == 1
    assert not (tmp_path / "cfg").exists()


def test_skip_consul_config_does_not_log_in(tmp_path, cloud):
    result = _invoke(tmp_path, "--server", "--skip-consul-config", "--user", "consul", "--dry-run")
    assert result.exit_code == 0, result.output
    assert cloud["login"] == 0
    assert "default.json" not in result.output
    assert "user=consul" in result.output


def test_login_failure_lands_in_event_log(tmp_path, cloud, monkeypatch):
    def rejected(self):
        raise AzureAuthError("Azure login failed: 401 invalid_client")

    monkeypatch.setattr(AzureSession, "login", rejected)

    result = _invoke(
        tmp_path, "--server", "--scale-set-name", "vmss1", "--user", "consul",
        "--config-dir", str(tmp_path / "cfg"), *CRED_ARGS,
    )

    assert result.exit_code == 1
    assert not (tmp_path / "cfg").exists()
    (events_file,) = (tmp_path / "logs").glob("*.jsonl")
    events = [json.loads(line) for line in events_file.read_text().splitlines()]
    failed = next(e for e in events if e["type"] == "RunFailed")
    assert failed["stage"] == "inventory"
    assert events[-1]["type"] == "RunSummary"
    assert events[-1]["status"] == "FAILED"
