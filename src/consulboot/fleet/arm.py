# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/consulboot/fleet/arm.py

from __future__ import annotations

import logging
from typing import Any, Dict, Iterator, List, Optional

import requests

from consulboot.config.models import AzureCredentials
from consulboot.errors import AzureAuthError, InventoryUnavailable, ScaleSetNotFound

log = logging.getLogger("consulboot")

LOGIN_BASE_URL = "https://login.microsoftonline.com"
ARM_BASE_URL = "https://management.azure.com"
ARM_SCOPE = "https://management.azure.com/.default"

COMPUTE_API_VERSION = "2023-09-01"
# VMSS network interfaces live under the Compute provider but are served by
# the Network resource provider, which only accepts this version.
VMSS_NIC_API_VERSION = "2018-10-01"


class AzureSession:
    """
    Service principal session against Azure Resource Manager:
      - login (client-credentials token)
      - authenticated GET with nextLink paging
    """

    def __init__(
        self,
        *,
        credentials: AzureCredentials,
        login_base_url: str = LOGIN_BASE_URL,
        arm_base_url: str = ARM_BASE_URL,
        timeout: float = 30.0,
    ):
        self.credentials = credentials
        self.login_base_url = login_base_url.rstrip("/")
        self.arm_base_url = arm_base_url.rstrip("/")
        self.timeout = timeout
        self._token: Optional[str] = None

    # -----------------------
    # Auth
    # -----------------------
    def login(self) -> None:
        token_url = f"{self.login_base_url}/{self.credentials.tenant_id}/oauth2/v2.0/token"
        data = {
            "grant_type": "client_credentials",
            "client_id": self.credentials.client_id,
            "client_secret": self.credentials.secret,
            "scope": ARM_SCOPE,
        }

        try:
            r = requests.post(token_url, data=data, timeout=self.timeout)
        except requests.RequestException as exc:
            raise AzureAuthError(f"Azure login failed: {exc}") from exc

        if r.status_code != 200:
            raise AzureAuthError(f"Azure login failed: {r.status_code} {r.text}")

        try:
            self._token = r.json()["access_token"]
        except (ValueError, KeyError) as exc:
            raise AzureAuthError("Azure login response did not contain an access token") from exc

        log.info(f"Logged in to Azure as service principal {self.credentials.client_id}")

    @property
    def logged_in(self) -> bool:
        return self._token is not None

    def _headers(self) -> Dict[str, str]:
        if not self._token:
            raise AzureAuthError("Not authenticated")
        return {"Authorization": f"Bearer {self._token}"}

    # -----------------------
    # HTTP helpers
    # -----------------------
    def iter_list(self, path: str, *, api_version: str, not_found: str) -> Iterator[Dict[str, Any]]:
        """
        Yield every item of an ARM list operation, following nextLink.
        A 404 raises ScaleSetNotFound(not_found); any other failure raises
        InventoryUnavailable.
        """
        url: Optional[str] = f"{self.arm_base_url}{path}"
        params: Optional[Dict[str, str]] = {"api-version": api_version}

        while url:
            try:
                r = requests.get(url, params=params, headers=self._headers(), timeout=self.timeout)
            except requests.RequestException as exc:
                raise InventoryUnavailable(f"ARM request failed for {path}: {exc}") from exc

            if r.status_code == 404:
                raise ScaleSetNotFound(f"Not found: {not_found}")
            if r.status_code != 200:
                raise InventoryUnavailable(f"ARM request failed for {path}: {r.status_code} {r.text}")

            try:
                body = r.json()
            except ValueError as exc:
                raise InventoryUnavailable(f"ARM returned a non-JSON body for {path}") from exc

            for item in body.get("value", []):
                yield item

            # nextLink already carries api-version and skip token
            url = body.get("nextLink")
            params = None


class ComputeClient:
    """
    The three control-plane listings the fleet inventory needs.
    """

    def __init__(self, *, session: AzureSession, subscription_id: str):
        self.session = session
        self.subscription_id = subscription_id

    def _scale_sets_path(self, resource_group: str) -> str:
        return (
            f"/subscriptions/{self.subscription_id}/resourceGroups/{resource_group}"
            f"/providers/Microsoft.Compute/virtualMachineScaleSets"
        )

    def list_scale_sets(self, resource_group: str) -> List[str]:
        items = self.session.iter_list(
            self._scale_sets_path(resource_group),
            api_version=COMPUTE_API_VERSION,
            not_found=f"resource group {resource_group}",
        )
        names = [item["name"] for item in items if item.get("name")]
        log.debug(f"scale sets in {resource_group}: {names}")
        return names

    def list_instance_ids(self, resource_group: str, scale_set: str) -> List[str]:
        items = self.session.iter_list(
            f"{self._scale_sets_path(resource_group)}/{scale_set}/virtualMachines",
            api_version=COMPUTE_API_VERSION,
            not_found=f"scale set {resource_group}/{scale_set}",
        )
        ids = [
            item.get("properties", {}).get("vmId")
            for item in items
        ]
        return [i for i in ids if i]

    def list_private_ips(self, resource_group: str, scale_set: str) -> List[str]:
        items = self.session.iter_list(
            f"{self._scale_sets_path(resource_group)}/{scale_set}/networkInterfaces",
            api_version=VMSS_NIC_API_VERSION,
            not_found=f"scale set {resource_group}/{scale_set}",
        )

        # one address per VM: primary NIC, primary ip configuration
        ips: List[str] = []
        seen_vms = set()
        for nic in items:
            nic_props = nic.get("properties", {})
            if not nic_props.get("primary", True):
                continue
            vm_id = (nic_props.get("virtualMachine") or {}).get("id")
            if vm_id and vm_id.lower() in seen_vms:
                continue
            for ipc in nic_props.get("ipConfigurations", []):
                props = ipc.get("properties", {})
                ip = props.get("privateIPAddress")
                if ip and props.get("primary", True):
                    ips.append(ip)
                    if vm_id:
                        seen_vms.add(vm_id.lower())
                    break
        log.debug(f"private IPs in {resource_group}/{scale_set}: {ips}")
        return ips
