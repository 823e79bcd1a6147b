"""Watchers for the managed object and its child resources.

Each watcher registers a ``kopf.on.event`` handler on the operator's
registry, keeps the latest copy of every object it sees, and forwards a
typed ``ResourceEvent`` to the controller callback.
"""

from __future__ import annotations

import copy
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator

import kopf

from . import metrics
from .constants import API_GROUP, API_VERSION, KIND_IMAGE_REGISTRY, PLURAL_IMAGE_REGISTRY
from .utils.errors import NotFoundError

logger = logging.getLogger(__name__)

ACTION_ADD = "add"
ACTION_UPDATE = "update"
ACTION_DELETE = "delete"

_ACTIONS = {
    None: ACTION_ADD,  # initial listing
    "ADDED": ACTION_ADD,
    "MODIFIED": ACTION_UPDATE,
    "DELETED": ACTION_DELETE,
}


@dataclass(frozen=True)
class OwnerReference:
    api_version: str
    kind: str
    name: str
    uid: str

    @classmethod
    def controller_of(cls, obj: dict[str, Any]) -> "OwnerReference | None":
        """Return the controlling owner reference of ``obj``, if any."""
        for ref in obj.get("metadata", {}).get("ownerReferences") or []:
            if ref.get("controller"):
                return cls(
                    api_version=ref.get("apiVersion", ""),
                    kind=ref.get("kind", ""),
                    name=ref.get("name", ""),
                    uid=ref.get("uid", ""),
                )
        return None


@dataclass(frozen=True)
class ResourceEvent:
    """A watch notification, decoded once at the watcher boundary."""

    kind: str
    name: str
    namespace: str | None
    action: str
    owner: OwnerReference | None = None
    body: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def annotations(self) -> dict[str, str]:
        return self.body.get("metadata", {}).get("annotations") or {}


Callback = Callable[[ResourceEvent], None]


class Watcher:
    """Watches one kind and caches what it has seen."""

    def __init__(self, group: str, version: str, plural: str, kind: str) -> None:
        self.group = group
        self.version = version
        self.plural = plural
        self.kind = kind
        self._cache: dict[tuple[str | None, str], dict[str, Any]] = {}
        self._lock = threading.Lock()
        self._callback: Callback | None = None
        self._namespace: str | None = None

    def start(self, callback: Callback, namespace: str, registry: kopf.OperatorRegistry) -> None:
        """Register the event handler; events flow once the operator runs."""
        self._callback = callback
        self._namespace = namespace

        def on_event(event: dict[str, Any], **_: Any) -> None:
            self.observe(event.get("type"), event.get("object") or {})

        kopf.on.event(
            self.group,
            self.version,
            self.plural,
            id=f"watch-{self.plural}",
            registry=registry,
        )(on_event)
        logger.debug(f"registered watcher for {self.plural}")

    def observe(self, event_type: str | None, obj: dict[str, Any]) -> ResourceEvent | None:
        """Update the cache from a raw watch event and notify the callback."""
        obj = copy.deepcopy(dict(obj))
        meta = obj.get("metadata", {})
        name = meta.get("name")
        if not name:
            logger.error(f"dropping {self.kind} event without a name")
            return None

        namespace = meta.get("namespace")
        if self._namespace and namespace and namespace != self._namespace:
            return None

        action = _ACTIONS.get(event_type, ACTION_UPDATE)
        with self._lock:
            if action == ACTION_DELETE:
                self._cache.pop((namespace, name), None)
            else:
                self._cache[(namespace, name)] = obj

        event = ResourceEvent(
            kind=self.kind,
            name=name,
            namespace=namespace,
            action=action,
            owner=OwnerReference.controller_of(obj),
            body=obj,
        )
        if self._callback is not None:
            self._callback(event)
        return event

    def get(self, name: str, namespace: str | None = None) -> dict[str, Any]:
        """Return a copy of the cached object.

        Raises:
            NotFoundError: If the object has not been seen or was deleted
        """
        with self._lock:
            obj = self._cache.get((namespace, name))
        if obj is None:
            raise NotFoundError(self.kind, name, namespace)
        return copy.deepcopy(obj)


@dataclass
class Watchers:
    """The fixed set of watched kinds."""

    deployments: Watcher = field(default_factory=lambda: Watcher("apps", "v1", "deployments", "Deployment"))
    services: Watcher = field(default_factory=lambda: Watcher("", "v1", "services", "Service"))
    secrets: Watcher = field(default_factory=lambda: Watcher("", "v1", "secrets", "Secret"))
    config_maps: Watcher = field(default_factory=lambda: Watcher("", "v1", "configmaps", "ConfigMap"))
    service_accounts: Watcher = field(
        default_factory=lambda: Watcher("", "v1", "serviceaccounts", "ServiceAccount")
    )
    routes: Watcher = field(default_factory=lambda: Watcher("route.openshift.io", "v1", "routes", "Route"))
    cluster_roles: Watcher = field(
        default_factory=lambda: Watcher("rbac.authorization.k8s.io", "v1", "clusterroles", "ClusterRole")
    )
    cluster_role_bindings: Watcher = field(
        default_factory=lambda: Watcher(
            "rbac.authorization.k8s.io", "v1", "clusterrolebindings", "ClusterRoleBinding"
        )
    )
    image_registry: Watcher = field(
        default_factory=lambda: Watcher(API_GROUP, API_VERSION, PLURAL_IMAGE_REGISTRY, KIND_IMAGE_REGISTRY)
    )

    def __iter__(self) -> Iterator[Watcher]:
        return iter([
            self.deployments,
            self.services,
            self.secrets,
            self.config_maps,
            self.service_accounts,
            self.routes,
            self.cluster_roles,
            self.cluster_role_bindings,
            self.image_registry,
        ])

    def start(self, callback: Callback, namespace: str, registry: kopf.OperatorRegistry) -> None:
        for watcher in self:
            watcher.start(callback, namespace, registry)


def count_event(event: ResourceEvent, result: str) -> None:
    metrics.watch_events_total.labels(kind=event.kind, action=event.action, result=result).inc()
