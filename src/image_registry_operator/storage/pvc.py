"""PersistentVolumeClaim storage driver."""

from __future__ import annotations

import logging
from typing import Any

from kubernetes import client

from ..constants import DEFAULT_PVC_NAME, DEFAULT_PVC_SIZE, REGISTRY_ROOT_DIRECTORY, STORAGE_PVC
from ..utils.rate_limit import rate_limit_k8s
from .base import BaseDriver, env

logger = logging.getLogger(__name__)

VOLUME_NAME = "registry-storage"


class PVCDriver(BaseDriver):
    """Keeps images on a persistent volume claim.

    An empty claim name selects a claim the operator creates, owns and
    deletes on teardown. A named claim must already exist.
    """

    name = STORAGE_PVC
    identity_key = "claim"

    def config_env(self) -> list[dict[str, Any]]:
        return [
            env("REGISTRY_STORAGE", "filesystem"),
            env("REGISTRY_STORAGE_FILESYSTEM_ROOTDIRECTORY", REGISTRY_ROOT_DIRECTORY),
        ]

    def volumes(self) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
        volume = {
            "name": VOLUME_NAME,
            "persistentVolumeClaim": {"claimName": self.config.claim},
        }
        mount = {"name": VOLUME_NAME, "mountPath": REGISTRY_ROOT_DIRECTORY}
        return [volume], [mount]

    def validate_configuration(self, cr: dict[str, Any]) -> bool:
        if not self.config.claim:
            self.config.claim = DEFAULT_PVC_NAME
            return self._write_spec(cr)
        return False

    def _get_claim(self) -> Any | None:
        try:
            return rate_limit_k8s(self.ctx.core_api.read_namespaced_persistent_volume_claim)(
                name=self.config.claim,
                namespace=self.ctx.namespace,
            )
        except client.exceptions.ApiException as e:
            if e.status == 404:
                return None
            raise

    def storage_exists(self, cr: dict[str, Any]) -> bool:
        if not self.config.claim:
            return False
        return self._get_claim() is not None

    def create_storage(self, cr: dict[str, Any]) -> bool:
        if self._get_claim() is not None:
            # Keep ownership of a claim we created on an earlier pass.
            return self._record_storage(cr, managed=self.storage_managed(cr))

        if self.config.claim != DEFAULT_PVC_NAME:
            raise RuntimeError(
                f"persistent volume claim {self.ctx.namespace}/{self.config.claim} does not exist"
            )

        body = {
            "apiVersion": "v1",
            "kind": "PersistentVolumeClaim",
            "metadata": {
                "name": self.config.claim,
                "namespace": self.ctx.namespace,
                "labels": dict(self.ctx.params.labels),
            },
            "spec": {
                "accessModes": ["ReadWriteMany"],
                "resources": {"requests": {"storage": DEFAULT_PVC_SIZE}},
            },
        }
        rate_limit_k8s(self.ctx.core_api.create_namespaced_persistent_volume_claim)(
            namespace=self.ctx.namespace,
            body=body,
        )
        logger.info(f"created persistent volume claim {self.ctx.namespace}/{self.config.claim}")
        return self._record_storage(cr, managed=True)

    def remove_storage(self, cr: dict[str, Any]) -> bool:
        if not self.storage_managed(cr):
            return super().remove_storage(cr)

        try:
            rate_limit_k8s(self.ctx.core_api.delete_namespaced_persistent_volume_claim)(
                name=self.config.claim,
                namespace=self.ctx.namespace,
            )
            logger.info(f"deleted persistent volume claim {self.ctx.namespace}/{self.config.claim}")
        except client.exceptions.ApiException as e:
            if e.status != 404:
                raise
        return self._clear_storage(cr)
