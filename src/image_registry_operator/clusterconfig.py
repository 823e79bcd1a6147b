"""Cluster install metadata used to infer a storage backend."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import yaml
from kubernetes import client

from .constants import INSTALL_CONFIG_CONFIGMAP, INSTALL_CONFIG_KEY, INSTALL_CONFIG_NAMESPACE
from .utils.rate_limit import rate_limit_k8s

logger = logging.getLogger(__name__)

KNOWN_PLATFORMS = ("aws", "azure", "gcp", "openstack", "libvirt", "baremetal", "none", "vsphere")


@dataclass
class InstallConfig:
    """The parts of the installer configuration the operator cares about."""

    cluster_name: str
    platform: str
    region: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "InstallConfig":
        """Parse a decoded install-config document.

        Raises:
            ValueError: If the document names no platform
        """
        platforms = data.get("platform") or {}
        for name in KNOWN_PLATFORMS:
            if name in platforms:
                platform_data = platforms.get(name) or {}
                return cls(
                    cluster_name=(data.get("metadata") or {}).get("name", ""),
                    platform=name,
                    region=platform_data.get("region", "") or "",
                )
        if platforms:
            # Unknown platform: keep its name so the caller can report it.
            name = next(iter(platforms))
            return cls(cluster_name=(data.get("metadata") or {}).get("name", ""), platform=name)
        raise ValueError("install config does not declare a platform")


class ClusterConfig:
    """Reads install metadata from the cluster."""

    def __init__(self, core_api: client.CoreV1Api) -> None:
        self.core_api = core_api

    def get_install_config(self) -> InstallConfig:
        """Return the parsed install config.

        Raises:
            client.exceptions.ApiException: If the ConfigMap cannot be read
            ValueError: If the ConfigMap content is missing or malformed
        """
        cm = rate_limit_k8s(self.core_api.read_namespaced_config_map)(
            name=INSTALL_CONFIG_CONFIGMAP,
            namespace=INSTALL_CONFIG_NAMESPACE,
        )
        raw = (cm.data or {}).get(INSTALL_CONFIG_KEY)
        if not raw:
            raise ValueError(
                f"{INSTALL_CONFIG_NAMESPACE}/{INSTALL_CONFIG_CONFIGMAP} has no {INSTALL_CONFIG_KEY} key"
            )
        try:
            data = yaml.safe_load(raw)
        except yaml.YAMLError as e:
            raise ValueError(f"unable to parse install config: {e}") from e
        if not isinstance(data, dict):
            raise ValueError("install config is not a mapping")
        install_config = InstallConfig.from_dict(data)
        logger.debug(f"detected platform {install_config.platform}")
        return install_config
