import logging

import pytest

from consulboot.cluster.peers import select_peer
from consulboot.fleet.models import MembershipSnapshot


@pytest.mark.parametrize("ips, self_ip", [
    (["10.0.0.4", "10.0.0.5"], "10.0.0.4"),
    (["10.0.0.5", "10.0.0.4"], "10.0.0.4"),
    (["10.0.0.4", "10.0.0.5", "10.0.0.6", "10.0.0.7"], "10.0.0.6"),
    (["10.0.0.4", "10.0.0.4", "10.0.0.9"], "10.0.0.4"),
])
def test_select_peer_returns_a_non_self_member(ips, self_ip):
    peer = select_peer(self_ip, MembershipSnapshot.of(ips))
    assert peer in ips
    assert peer != self_ip


@pytest.mark.parametrize("ips", [[], ["10.0.0.4"], ["10.0.0.4", "10.0.0.4"]])
def test_select_peer_absent_for_self_only_or_empty(ips):
    assert select_peer("10.0.0.4", MembershipSnapshot.of(ips)) is None


def test_select_peer_absent_is_logged_as_info(caplog, monkeypatch):
    monkeypatch.setattr(logging.getLogger("consulboot"), "propagate", True)
    with caplog.at_level(logging.INFO, logger="consulboot"):
        select_peer("10.0.0.4", MembershipSnapshot.of(["10.0.0.4"]))
    records = [r for r in caplog.records if "No peer" in r.getMessage()]
    assert records and records[0].levelno == logging.INFO


def test_self_not_in_membership_still_picks_a_peer():
    assert select_peer("10.0.0.9", MembershipSnapshot.of(["10.0.0.4"])) == "10.0.0.4"
