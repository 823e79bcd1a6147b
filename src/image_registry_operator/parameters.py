"""Deployment parameters shared by the controller and the manifest generator."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from .constants import (
    ANNOTATION_CHECKSUM,
    DEFAULT_RESOURCE_NAME,
    SECRET_PRIVATE_CONFIGURATION,
    SECRET_PRIVATE_CONFIGURATION_USER,
)


def get_watch_namespace() -> str:
    """Return the namespace the operator manages.

    Raises:
        RuntimeError: If WATCH_NAMESPACE is not set
    """
    namespace = os.getenv("WATCH_NAMESPACE", "")
    if not namespace:
        raise RuntimeError("WATCH_NAMESPACE must be set")
    return namespace


def get_operator_name() -> str:
    """Return the name used for the cluster operator status object.

    Raises:
        RuntimeError: If OPERATOR_NAME is not set
    """
    name = os.getenv("OPERATOR_NAME", "")
    if not name:
        raise RuntimeError("OPERATOR_NAME must be set")
    return name


@dataclass
class Parameters:
    """Static settings of the registry deployment."""

    namespace: str
    resource_name: str = DEFAULT_RESOURCE_NAME
    image: str = "quay.io/openshift/origin-docker-registry:latest"
    labels: dict[str, str] = field(default_factory=lambda: {"docker-registry": "default"})
    service_account: str = "registry"
    container_port: int = 5000
    healthz_route: str = "/healthz"
    healthz_timeout_seconds: int = 5
    service_name: str = "image-registry"
    cluster_role_name: str = "system:registry"
    cluster_role_binding_name: str = "registry-registry-role"
    private_configuration_secret: str = SECRET_PRIVATE_CONFIGURATION
    user_configuration_secret: str = SECRET_PRIVATE_CONFIGURATION_USER
    checksum_annotation: str = ANNOTATION_CHECKSUM

    @classmethod
    def from_env(cls) -> "Parameters":
        """Build parameters from the operator environment."""
        return cls(
            namespace=get_watch_namespace(),
            resource_name=os.getenv("IMAGE_REGISTRY_NAME", DEFAULT_RESOURCE_NAME),
            image=os.getenv("IMAGE", "quay.io/openshift/origin-docker-registry:latest"),
        )
