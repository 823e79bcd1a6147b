"""Kubernetes API access for the managed object."""

from __future__ import annotations

import time
from typing import Any

from kubernetes import client, config

from . import metrics
from .constants import API_GROUP, API_VERSION, PLURAL_IMAGE_REGISTRY
from .utils.rate_limit import rate_limit_k8s


def load_kube_config() -> None:
    """Load in-cluster configuration, falling back to the local kubeconfig."""
    try:
        config.load_incluster_config()
    except config.ConfigException:
        config.load_kube_config()


class ImageRegistryClient:
    """Reads and writes the managed object through CustomObjectsApi."""

    def __init__(self, api: Any, namespace: str, name: str) -> None:
        self.api = api
        self.namespace = namespace
        self.name = name

    def _call(self, operation: str, fn: Any, **kwargs: Any) -> Any:
        start_time = time.time()
        try:
            result = rate_limit_k8s(fn)(
                group=API_GROUP,
                version=API_VERSION,
                namespace=self.namespace,
                plural=PLURAL_IMAGE_REGISTRY,
                **kwargs,
            )
            metrics.api_call_total.labels(api_type="k8s", operation=operation, result="success").inc()
            return result
        except Exception:
            metrics.api_call_total.labels(api_type="k8s", operation=operation, result="error").inc()
            raise
        finally:
            duration = time.time() - start_time
            metrics.api_call_duration_seconds.labels(api_type="k8s", operation=operation).observe(duration)

    def get(self) -> dict[str, Any] | None:
        """Return the managed object, or None when it does not exist.

        Raises:
            client.exceptions.ApiException: On any error other than 404
        """
        try:
            return self._call("get_image_registry", self.api.get_namespaced_custom_object, name=self.name)
        except client.exceptions.ApiException as e:
            if e.status == 404:
                return None
            raise

    def create(self, body: dict[str, Any]) -> dict[str, Any]:
        return self._call("create_image_registry", self.api.create_namespaced_custom_object, body=body)

    def update(self, body: dict[str, Any]) -> dict[str, Any]:
        """Replace metadata and spec; status is ignored by the API server."""
        return self._call(
            "update_image_registry",
            self.api.replace_namespaced_custom_object,
            name=self.name,
            body=body,
        )

    def update_status(self, body: dict[str, Any]) -> dict[str, Any]:
        return self._call(
            "update_image_registry_status",
            self.api.replace_namespaced_custom_object_status,
            name=self.name,
            body=body,
        )
