"""Builders for the registry's child resources.

Each builder returns a plain manifest dict; the generator adds owner
references and the checksum annotation before writing it.
"""

from __future__ import annotations

import secrets as _secrets
from typing import Any

from ..parameters import Parameters

ROUTE_DEFAULT_NAME = "default-route"


def _metadata(name: str, params: Parameters, namespaced: bool = True) -> dict[str, Any]:
    meta: dict[str, Any] = {"name": name, "labels": dict(params.labels)}
    if namespaced:
        meta["namespace"] = params.namespace
    return meta


def build_service_account(params: Parameters) -> dict[str, Any]:
    return {
        "apiVersion": "v1",
        "kind": "ServiceAccount",
        "metadata": _metadata(params.service_account, params),
    }


def build_cluster_role(params: Parameters) -> dict[str, Any]:
    """Create the cluster role the registry runs with."""
    return {
        "apiVersion": "rbac.authorization.k8s.io/v1",
        "kind": "ClusterRole",
        "metadata": _metadata(params.cluster_role_name, params, namespaced=False),
        "rules": [
            {"apiGroups": [""], "resources": ["limitranges", "resourcequotas"], "verbs": ["list"]},
            {
                "apiGroups": ["", "image.openshift.io"],
                "resources": ["imagestreamimages", "imagestreams/secrets", "imagestreamtags"],
                "verbs": ["get"],
            },
            {
                "apiGroups": ["", "image.openshift.io"],
                "resources": ["imagestreams"],
                "verbs": ["get", "list", "watch"],
            },
            {
                "apiGroups": ["", "image.openshift.io"],
                "resources": ["imagestreams/layers"],
                "verbs": ["get"],
            },
            {
                "apiGroups": ["", "image.openshift.io"],
                "resources": ["images", "imagestreammappings"],
                "verbs": ["create", "delete", "get", "list", "update", "watch"],
            },
        ],
    }


def build_cluster_role_binding(params: Parameters) -> dict[str, Any]:
    return {
        "apiVersion": "rbac.authorization.k8s.io/v1",
        "kind": "ClusterRoleBinding",
        "metadata": _metadata(params.cluster_role_binding_name, params, namespaced=False),
        "roleRef": {
            "apiGroup": "rbac.authorization.k8s.io",
            "kind": "ClusterRole",
            "name": params.cluster_role_name,
        },
        "subjects": [
            {
                "kind": "ServiceAccount",
                "name": params.service_account,
                "namespace": params.namespace,
            }
        ],
    }


def build_secret(params: Parameters, data: dict[str, str]) -> dict[str, Any]:
    """Create the private configuration secret from driver credentials."""
    return {
        "apiVersion": "v1",
        "kind": "Secret",
        "type": "Opaque",
        "metadata": _metadata(params.private_configuration_secret, params),
        "stringData": dict(data),
    }


def build_service(params: Parameters) -> dict[str, Any]:
    return {
        "apiVersion": "v1",
        "kind": "Service",
        "metadata": _metadata(params.service_name, params),
        "spec": {
            "type": "ClusterIP",
            "selector": dict(params.labels),
            "ports": [
                {
                    "name": f"{params.container_port}-tcp",
                    "port": params.container_port,
                    "protocol": "TCP",
                    "targetPort": params.container_port,
                }
            ],
        },
    }


def _probe(params: Parameters, initial_delay: int = 0) -> dict[str, Any]:
    probe: dict[str, Any] = {
        "httpGet": {"path": params.healthz_route, "port": params.container_port, "scheme": "HTTP"},
        "timeoutSeconds": params.healthz_timeout_seconds,
    }
    if initial_delay:
        probe["initialDelaySeconds"] = initial_delay
    return probe


def build_deployment(
    params: Parameters,
    spec: dict[str, Any],
    storage_env: list[dict[str, Any]],
    volumes: list[dict[str, Any]],
    mounts: list[dict[str, Any]],
) -> dict[str, Any]:
    """Create the registry deployment.

    Args:
        params: Deployment parameters
        spec: Spec of the managed object
        storage_env: Environment variables from the storage driver
        volumes: Pod volumes from the storage driver
        mounts: Container volume mounts from the storage driver

    Returns:
        Deployment manifest
    """
    env: list[dict[str, Any]] = [
        {"name": "REGISTRY_HTTP_ADDR", "value": f":{params.container_port}"},
        {"name": "REGISTRY_HTTP_NET", "value": "tcp"},
        {"name": "REGISTRY_HTTP_SECRET", "value": spec.get("httpSecret", "")},
        {"name": "REGISTRY_LOG_LEVEL", "value": spec.get("logging", {}).get("level", "info")},
    ]
    env.extend(storage_env)

    container: dict[str, Any] = {
        "name": "registry",
        "image": params.image,
        "ports": [{"containerPort": params.container_port, "protocol": "TCP"}],
        "env": env,
        "volumeMounts": list(mounts),
        "livenessProbe": _probe(params, initial_delay=10),
        "readinessProbe": _probe(params),
    }
    if spec.get("resources"):
        container["resources"] = spec["resources"]

    pod_spec: dict[str, Any] = {
        "serviceAccountName": params.service_account,
        "containers": [container],
        "volumes": list(volumes),
    }
    if spec.get("nodeSelector"):
        pod_spec["nodeSelector"] = spec["nodeSelector"]
    if spec.get("tolerations"):
        pod_spec["tolerations"] = spec["tolerations"]

    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": _metadata(params.resource_name, params),
        "spec": {
            "replicas": spec.get("replicas", 1),
            "selector": {"matchLabels": dict(params.labels)},
            "template": {
                "metadata": {"labels": dict(params.labels)},
                "spec": pod_spec,
            },
        },
    }


def build_routes(params: Parameters, spec: dict[str, Any]) -> list[dict[str, Any]]:
    """Create the routes requested by spec.defaultRoute and spec.routes."""
    wanted: list[dict[str, Any]] = []
    if spec.get("defaultRoute"):
        wanted.append({"name": ROUTE_DEFAULT_NAME})
    wanted.extend(r for r in spec.get("routes") or [] if r.get("name"))

    routes = []
    for route in wanted:
        route_spec: dict[str, Any] = {
            "to": {"kind": "Service", "name": params.service_name},
            "port": {"targetPort": f"{params.container_port}-tcp"},
            "tls": {"termination": "reencrypt"},
        }
        if route.get("hostname"):
            route_spec["host"] = route["hostname"]
        routes.append({
            "apiVersion": "route.openshift.io/v1",
            "kind": "Route",
            "metadata": _metadata(route["name"], params),
            "spec": route_spec,
        })
    return routes


def generate_http_secret() -> str:
    """Return a random secret for REGISTRY_HTTP_SECRET."""
    return _secrets.token_hex(64)
