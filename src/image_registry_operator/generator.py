"""Creates, updates and removes the registry's child resources."""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from typing import Any, Callable

from kubernetes import client

from . import metrics
from .builders import (
    build_cluster_role,
    build_cluster_role_binding,
    build_deployment,
    build_routes,
    build_secret,
    build_service,
    build_service_account,
)
from .builders.registry import ROUTE_DEFAULT_NAME
from .constants import API_GROUP_VERSION, KIND_IMAGE_REGISTRY
from .parameters import Parameters
from .storage import Driver
from .utils.checksum import checksum
from .utils.rate_limit import rate_limit_k8s

logger = logging.getLogger(__name__)

ROUTE_GROUP = "route.openshift.io"
ROUTE_VERSION = "v1"
ROUTE_PLURAL = "routes"


@dataclass
class _ChildKind:
    """API calls for one child kind, bound to the operator namespace."""

    kind: str
    namespaced: bool
    read: Callable[[str], Any]
    create: Callable[[dict[str, Any]], Any]
    replace: Callable[[str, dict[str, Any]], Any]
    delete: Callable[[str], Any]


def _metadata_of(obj: Any) -> dict[str, Any]:
    """Return metadata of a dict object or a kubernetes client model."""
    if isinstance(obj, dict):
        return obj.get("metadata") or {}
    meta = obj.metadata
    return {
        "annotations": meta.annotations or {},
        "resourceVersion": meta.resource_version,
    }


def owner_reference(cr: dict[str, Any]) -> dict[str, Any]:
    meta = cr.get("metadata", {})
    return {
        "apiVersion": API_GROUP_VERSION,
        "kind": KIND_IMAGE_REGISTRY,
        "name": meta.get("name"),
        "uid": meta.get("uid"),
        "controller": True,
        "blockOwnerDeletion": True,
    }


class Generator:
    """Turns the managed object and its storage driver into child resources."""

    def __init__(
        self,
        core_api: Any,
        apps_api: Any,
        rbac_api: Any,
        custom_api: Any,
        params: Parameters,
    ) -> None:
        self.core_api = core_api
        self.apps_api = apps_api
        self.rbac_api = rbac_api
        self.custom_api = custom_api
        self.params = params
        ns = params.namespace

        self.kinds: dict[str, _ChildKind] = {
            "ServiceAccount": _ChildKind(
                "ServiceAccount",
                True,
                lambda name: core_api.read_namespaced_service_account(name=name, namespace=ns),
                lambda body: core_api.create_namespaced_service_account(namespace=ns, body=body),
                lambda name, body: core_api.replace_namespaced_service_account(name=name, namespace=ns, body=body),
                lambda name: core_api.delete_namespaced_service_account(name=name, namespace=ns),
            ),
            "ClusterRole": _ChildKind(
                "ClusterRole",
                False,
                lambda name: rbac_api.read_cluster_role(name=name),
                lambda body: rbac_api.create_cluster_role(body=body),
                lambda name, body: rbac_api.replace_cluster_role(name=name, body=body),
                lambda name: rbac_api.delete_cluster_role(name=name),
            ),
            "ClusterRoleBinding": _ChildKind(
                "ClusterRoleBinding",
                False,
                lambda name: rbac_api.read_cluster_role_binding(name=name),
                lambda body: rbac_api.create_cluster_role_binding(body=body),
                lambda name, body: rbac_api.replace_cluster_role_binding(name=name, body=body),
                lambda name: rbac_api.delete_cluster_role_binding(name=name),
            ),
            "Secret": _ChildKind(
                "Secret",
                True,
                lambda name: core_api.read_namespaced_secret(name=name, namespace=ns),
                lambda body: core_api.create_namespaced_secret(namespace=ns, body=body),
                lambda name, body: core_api.replace_namespaced_secret(name=name, namespace=ns, body=body),
                lambda name: core_api.delete_namespaced_secret(name=name, namespace=ns),
            ),
            "Service": _ChildKind(
                "Service",
                True,
                lambda name: core_api.read_namespaced_service(name=name, namespace=ns),
                lambda body: core_api.create_namespaced_service(namespace=ns, body=body),
                lambda name, body: core_api.replace_namespaced_service(name=name, namespace=ns, body=body),
                lambda name: core_api.delete_namespaced_service(name=name, namespace=ns),
            ),
            "Deployment": _ChildKind(
                "Deployment",
                True,
                lambda name: apps_api.read_namespaced_deployment(name=name, namespace=ns),
                lambda body: apps_api.create_namespaced_deployment(namespace=ns, body=body),
                lambda name, body: apps_api.replace_namespaced_deployment(name=name, namespace=ns, body=body),
                lambda name: apps_api.delete_namespaced_deployment(name=name, namespace=ns),
            ),
            "Route": _ChildKind(
                "Route",
                True,
                lambda name: custom_api.get_namespaced_custom_object(
                    ROUTE_GROUP, ROUTE_VERSION, ns, ROUTE_PLURAL, name
                ),
                lambda body: custom_api.create_namespaced_custom_object(
                    ROUTE_GROUP, ROUTE_VERSION, ns, ROUTE_PLURAL, body
                ),
                lambda name, body: custom_api.replace_namespaced_custom_object(
                    ROUTE_GROUP, ROUTE_VERSION, ns, ROUTE_PLURAL, name, body
                ),
                lambda name: custom_api.delete_namespaced_custom_object(
                    ROUTE_GROUP, ROUTE_VERSION, ns, ROUTE_PLURAL, name
                ),
            ),
        }

    def manifests(self, cr: dict[str, Any], driver: Driver) -> list[dict[str, Any]]:
        """Build every child manifest, in creation order."""
        spec = cr.get("spec", {})
        secret_data = driver.secrets()
        volumes, mounts = driver.volumes()

        deployment = build_deployment(self.params, spec, driver.config_env(), volumes, mounts)
        # Roll the pods when credentials change.
        deployment["spec"]["template"]["metadata"]["annotations"] = {
            self.params.checksum_annotation: checksum(secret_data),
        }

        return [
            build_service_account(self.params),
            build_cluster_role(self.params),
            build_cluster_role_binding(self.params),
            build_secret(self.params, secret_data),
            build_service(self.params),
            deployment,
            *build_routes(self.params, spec),
        ]

    def apply(self, cr: dict[str, Any], driver: Driver) -> bool:
        """Create or update every child resource.

        Args:
            cr: The managed object
            driver: Resolved storage driver

        Returns:
            True if any child resource was created, updated or deleted

        Raises:
            client.exceptions.ApiException: If a write fails
        """
        changed = False
        wanted_routes = set()
        for manifest in self.manifests(cr, driver):
            if manifest["kind"] == "Route":
                wanted_routes.add(manifest["metadata"]["name"])
            if self._apply_one(cr, manifest):
                changed = True

        if self._remove_stale_routes(cr, wanted_routes):
            changed = True
        return changed

    def _apply_one(self, cr: dict[str, Any], manifest: dict[str, Any]) -> bool:
        child = self.kinds[manifest["kind"]]
        name = manifest["metadata"]["name"]

        body = copy.deepcopy(manifest)
        digest = checksum(manifest)
        body["metadata"].setdefault("annotations", {})[self.params.checksum_annotation] = digest
        if child.namespaced:
            body["metadata"]["ownerReferences"] = [owner_reference(cr)]

        existing = self._read(child, name)
        if existing is None:
            rate_limit_k8s(child.create)(body)
            metrics.resource_apply_total.labels(kind=child.kind, result="created").inc()
            logger.info(f"created {child.kind} {name}")
            return True

        current = _metadata_of(existing)
        if current.get("annotations", {}).get(self.params.checksum_annotation) == digest:
            metrics.resource_apply_total.labels(kind=child.kind, result="unchanged").inc()
            return False

        body["metadata"]["resourceVersion"] = current.get("resourceVersion")
        if child.kind == "Service":
            if isinstance(existing, dict):
                cluster_ip = existing.get("spec", {}).get("clusterIP")
            else:
                cluster_ip = existing.spec.cluster_ip
            if cluster_ip:
                body["spec"]["clusterIP"] = cluster_ip
        rate_limit_k8s(child.replace)(name, body)
        metrics.resource_apply_total.labels(kind=child.kind, result="updated").inc()
        logger.info(f"updated {child.kind} {name}")
        return True

    def _read(self, child: _ChildKind, name: str) -> Any | None:
        try:
            return rate_limit_k8s(child.read)(name)
        except client.exceptions.ApiException as e:
            if e.status == 404:
                return None
            raise

    def _delete(self, child: _ChildKind, name: str) -> bool:
        """Delete a child; absence counts as success. Returns True if deleted."""
        try:
            rate_limit_k8s(child.delete)(name)
        except client.exceptions.ApiException as e:
            if e.status == 404:
                return False
            raise
        metrics.resource_apply_total.labels(kind=child.kind, result="deleted").inc()
        logger.info(f"deleted {child.kind} {name}")
        return True

    def _owned_routes(self, cr: dict[str, Any]) -> list[str]:
        selector = ",".join(f"{k}={v}" for k, v in sorted(self.params.labels.items()))
        try:
            routes = rate_limit_k8s(self.custom_api.list_namespaced_custom_object)(
                ROUTE_GROUP,
                ROUTE_VERSION,
                self.params.namespace,
                ROUTE_PLURAL,
                label_selector=selector,
            )
        except client.exceptions.ApiException as e:
            if e.status == 404:
                return []
            raise

        uid = cr.get("metadata", {}).get("uid")
        names = []
        for route in routes.get("items", []):
            refs = route.get("metadata", {}).get("ownerReferences") or []
            if any(ref.get("uid") == uid for ref in refs):
                names.append(route["metadata"]["name"])
        return names

    def _remove_stale_routes(self, cr: dict[str, Any], wanted: set[str]) -> bool:
        removed = False
        for name in self._owned_routes(cr):
            if name not in wanted and self._delete(self.kinds["Route"], name):
                removed = True
        return removed

    def remove(self, cr: dict[str, Any]) -> None:
        """Delete every child resource, in reverse creation order.

        Raises:
            client.exceptions.ApiException: If a delete fails for a reason
                other than the object being absent
        """
        spec = cr.get("spec", {})
        route_names = {ROUTE_DEFAULT_NAME}
        route_names.update(r["name"] for r in spec.get("routes") or [] if r.get("name"))
        route_names.update(self._owned_routes(cr))

        for name in sorted(route_names):
            self._delete(self.kinds["Route"], name)

        targets = [
            ("Deployment", self.params.resource_name),
            ("Service", self.params.service_name),
            ("Secret", self.params.private_configuration_secret),
            ("ClusterRoleBinding", self.params.cluster_role_binding_name),
            ("ClusterRole", self.params.cluster_role_name),
            ("ServiceAccount", self.params.service_account),
        ]
        for kind, name in targets:
            self._delete(self.kinds[kind], name)
