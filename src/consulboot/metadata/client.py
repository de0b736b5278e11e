# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/consulboot/metadata/client.py

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict

import requests

from consulboot.errors import MetadataUnavailable

log = logging.getLogger("consulboot")

DEFAULT_METADATA_ENDPOINT = "http://169.254.169.254/metadata/instance"
DEFAULT_METADATA_API_VERSION = "2021-02-01"


@dataclass(frozen=True)
class InstanceIdentity:
    """
    Snapshot of who this instance is, as reported by the Azure instance
    metadata service. Rebuilt on every run.
    """
    id: str                  # compute.vmId
    private_ip: str
    location: str
    resource_group: str
    subscription_id: str = ""
    name: str = ""           # compute.name, e.g. "consul-servers_0"


def _require(data: Dict[str, Any], *path: Any) -> str:
    cur: Any = data
    for key in path:
        try:
            cur = cur[key]
        except (KeyError, IndexError, TypeError) as exc:
            dotted = ".".join(str(p) for p in path)
            raise MetadataUnavailable(f"Instance metadata is missing '{dotted}'") from exc
    if not isinstance(cur, str) or not cur:
        dotted = ".".join(str(p) for p in path)
        raise MetadataUnavailable(f"Instance metadata field '{dotted}' is empty or not a string")
    return cur


def parse_identity(payload: Dict[str, Any]) -> InstanceIdentity:
    """Build an InstanceIdentity from a full IMDS /metadata/instance document."""
    if not isinstance(payload, dict):
        raise MetadataUnavailable("Instance metadata payload is not a JSON object")

    return InstanceIdentity(
        id=_require(payload, "compute", "vmId"),
        private_ip=_require(payload, "network", "interface", 0, "ipv4", "ipAddress", 0, "privateIpAddress"),
        location=_require(payload, "compute", "location"),
        resource_group=_require(payload, "compute", "resourceGroupName"),
        subscription_id=payload.get("compute", {}).get("subscriptionId") or "",
        name=payload.get("compute", {}).get("name") or "",
    )


class MetadataClient:
    """
    Read-only client for the local, unauthenticated metadata endpoint.
    No retries: a failure here aborts the run.
    """

    def __init__(
        self,
        *,
        endpoint: str = DEFAULT_METADATA_ENDPOINT,
        api_version: str = DEFAULT_METADATA_API_VERSION,
        timeout: float = 5.0,
    ):
        self.endpoint = endpoint
        self.api_version = api_version
        self.timeout = timeout

    def identity(self) -> InstanceIdentity:
        log.debug(f"Querying instance metadata at {self.endpoint}")
        try:
            r = requests.get(
                self.endpoint,
                params={"api-version": self.api_version},
                headers={"Metadata": "true"},
                # IMDS must never be reached through a proxy
                proxies={"http": None, "https": None},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise MetadataUnavailable(f"Instance metadata endpoint unreachable: {exc}") from exc

        if r.status_code != 200:
            raise MetadataUnavailable(f"Instance metadata query failed: {r.status_code} {r.text}")

        try:
            payload = r.json()
        except ValueError as exc:
            raise MetadataUnavailable("Instance metadata returned a non-JSON body") from exc

        identity = parse_identity(payload)
        log.info(
            f"Instance identity: id={identity.id} ip={identity.private_ip} "
            f"location={identity.location} resource_group={identity.resource_group}"
        )
        return identity
