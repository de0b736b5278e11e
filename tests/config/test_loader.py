from pathlib import Path
import textwrap

import pytest

from consulboot.config.loader import load_settings
from consulboot.errors import MissingRequiredArgument

CREDS = {"tenant_id": "t", "client_id": "c", "secret": "s"}


def test_load_settings_minimal_ok():
    cfg = load_settings(overrides={"role": "server", "credentials": CREDS})
    assert cfg.role == "server"
    assert cfg.raft_protocol == 3
    assert cfg.dirs.bin == Path("/opt/consul/bin")
    assert cfg.agent_config_path == Path("/opt/consul/config/default.json")
    assert cfg.supervisor_config_path == Path("/etc/supervisor/conf.d/run-consul.conf")


def test_load_settings_yaml_with_env_expansion(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("TEST_ARM_SECRET", "from-env")
    f = tmp_path / "consulboot.yaml"
    f.write_text(textwrap.dedent("""
        role: client
        scale_set_name: consul-servers
        raft_protocol: 2
        dirs:
          root: /srv/consul
          log: /var/log/consul
        credentials:
          tenant_id: tenant
          client_id: app
          secret: ${TEST_ARM_SECRET}
    """))

    cfg = load_settings(f)

    assert cfg.role == "client"
    assert cfg.raft_protocol == 2
    assert cfg.credentials.secret == "from-env"
    assert cfg.dirs.data == Path("/srv/consul/data")
    assert cfg.dirs.log == Path("/var/log/consul")


def test_overrides_win_but_empty_values_do_not_clobber(tmp_path: Path):
    f = tmp_path / "consulboot.yaml"
    f.write_text(textwrap.dedent("""
        role: server
        raft_protocol: 2
        user: consul
        credentials: {tenant_id: t, client_id: c, secret: s}
    """))

    cfg = load_settings(f, {
        "role": "server",
        "raft_protocol": None,
        "user": "",
        "dirs": {"config": Path("/etc/consul.d"), "data": None},
        "credentials": {"tenant_id": None, "client_id": None, "secret": "override"},
    })

    assert cfg.raft_protocol == 2
    assert cfg.user == "consul"
    assert cfg.dirs.config == Path("/etc/consul.d")
    assert cfg.credentials.tenant_id == "t"
    assert cfg.credentials.secret == "override"


def test_client_requires_scale_set_name():
    with pytest.raises(MissingRequiredArgument, match="scale_set_name"):
        load_settings(overrides={"role": "client", "credentials": CREDS})


def test_credentials_required_unless_skipping_config():
    with pytest.raises(MissingRequiredArgument, match="credentials"):
        load_settings(overrides={"role": "server"})

    cfg = load_settings(overrides={"role": "server", "skip_consul_config": True})
    assert cfg.credentials is None


def test_raft_protocol_must_be_positive():
    with pytest.raises(MissingRequiredArgument, match="raft_protocol"):
        load_settings(overrides={"role": "server", "credentials": CREDS, "raft_protocol": 0})


def test_unknown_keys_rejected():
    with pytest.raises(MissingRequiredArgument):
        load_settings(overrides={"role": "server", "credentials": CREDS, "bogus": 1})


def test_missing_settings_file(tmp_path: Path):
    with pytest.raises(MissingRequiredArgument, match="does not exist"):
        load_settings(tmp_path / "nope.yaml")
