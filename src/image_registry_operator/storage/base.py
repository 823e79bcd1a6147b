"""Storage driver contract."""

from __future__ import annotations

import copy
import re
import uuid
import logging
from dataclasses import dataclass
from typing import Any, Protocol

from ..clusterconfig import ClusterConfig, InstallConfig
from ..models import STORAGE_KEYS
from ..parameters import Parameters

logger = logging.getLogger(__name__)


@dataclass
class ClusterContext:
    """Cluster handles a driver may use while it is alive."""

    params: Parameters
    core_api: Any
    cluster_config: ClusterConfig

    @property
    def namespace(self) -> str:
        return self.params.namespace

    def install_config(self) -> InstallConfig:
        return self.cluster_config.get_install_config()


class Driver(Protocol):
    """Protocol every storage backend implements.

    Methods taking ``cr`` may mutate the managed object in place and return
    True when they did, so the caller knows the object must be written back.
    """

    name: str

    def config_env(self) -> list[dict[str, Any]]:
        """Environment variables for the registry container."""
        ...

    def volumes(self) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
        """Pod volumes and container volume mounts."""
        ...

    def secrets(self) -> dict[str, str]:
        """Content of the private configuration secret."""
        ...

    def validate_configuration(self, cr: dict[str, Any]) -> bool:
        """Fill defaults into spec.storage and reject impossible configurations."""
        ...

    def create_storage(self, cr: dict[str, Any]) -> bool:
        """Provision the backing storage if it is absent."""
        ...

    def storage_exists(self, cr: dict[str, Any]) -> bool:
        """Report whether the backing storage exists."""
        ...

    def remove_storage(self, cr: dict[str, Any]) -> bool:
        """Tear down storage this operator created."""
        ...

    def storage_changed(self, cr: dict[str, Any]) -> bool:
        """Report whether spec.storage drifted from the last applied one."""
        ...


class BaseDriver:
    """Shared bookkeeping of the applied storage configuration in status.

    ``status.storage`` holds the configuration last applied and
    ``status.storageManaged`` whether the operator created it. When a new
    configuration replaces storage the operator created, the old record is
    moved to ``status.retiredStorage`` so teardown can still reach it.
    """

    name = ""
    # Config field naming the bucket, container or claim; None when the
    # backend has a single possible location.
    identity_key: str | None = None

    def __init__(self, config: Any, ctx: ClusterContext) -> None:
        self.config = config
        self.ctx = ctx

    @property
    def key(self) -> str:
        return STORAGE_KEYS[self.name]

    def config_env(self) -> list[dict[str, Any]]:
        return []

    def volumes(self) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
        return [], []

    def secrets(self) -> dict[str, str]:
        return {}

    def validate_configuration(self, cr: dict[str, Any]) -> bool:
        return False

    def _write_spec(self, cr: dict[str, Any]) -> bool:
        """Store self.config back into spec.storage; return True on change."""
        storage = cr.setdefault("spec", {}).setdefault("storage", {})
        desired = self.config.to_dict()
        if storage.get(self.key) == desired:
            return False
        storage[self.key] = desired
        return True

    def _applied(self, cr: dict[str, Any]) -> dict[str, Any] | None:
        return (cr.get("status", {}).get("storage") or {}).get(self.key)

    def _retired(self, cr: dict[str, Any]) -> list[dict[str, Any]]:
        return cr.get("status", {}).get("retiredStorage") or []

    def same_storage(self, record: dict[str, Any] | None) -> bool:
        """Return True when a status storage record names the storage in self.config."""
        if not record or self.key not in record:
            return False
        if self.identity_key is None:
            return True
        applied = record[self.key] or {}
        return applied.get(self.identity_key) == self.config.to_dict().get(self.identity_key)

    def _record_storage(self, cr: dict[str, Any], managed: bool) -> bool:
        """Persist the applied configuration in status; return True on change.

        Storage the operator created under a previous configuration is
        retired rather than forgotten.
        """
        status = cr.setdefault("status", {})
        previous = status.get("storage")
        old_retired = self._retired(cr)
        retired = [r for r in old_retired if not self.same_storage(r)]
        if previous and status.get("storageManaged") and not self.same_storage(previous):
            if previous not in retired:
                retired.append(copy.deepcopy(previous))
            logger.info(f"retiring operator created storage {previous}, it is kept until removal")

        desired = {self.key: copy.deepcopy(self.config.to_dict())}
        changed = (
            previous != desired
            or bool(status.get("storageManaged")) != managed
            or retired != old_retired
        )
        status["storage"] = desired
        status["storageManaged"] = managed
        if retired:
            status["retiredStorage"] = retired
        else:
            status.pop("retiredStorage", None)
        return changed

    def _clear_storage(self, cr: dict[str, Any]) -> bool:
        """Drop every status record of the storage in self.config."""
        status = cr.setdefault("status", {})
        changed = False

        old_retired = self._retired(cr)
        retired = [r for r in old_retired if not self.same_storage(r)]
        if retired != old_retired:
            changed = True
            if retired:
                status["retiredStorage"] = retired
            else:
                status.pop("retiredStorage", None)

        if self.same_storage(status.get("storage")):
            status.pop("storage", None)
            status["storageManaged"] = False
            changed = True
        return changed

    def storage_managed(self, cr: dict[str, Any]) -> bool:
        """Return True when the storage in self.config was created by this operator.

        Ownership belongs to a specific bucket or claim: a record of another
        one under the same backend does not count.
        """
        status = cr.get("status", {})
        if status.get("storageManaged") and self.same_storage(status.get("storage")):
            return True
        return any(self.same_storage(record) for record in self._retired(cr))

    def storage_changed(self, cr: dict[str, Any]) -> bool:
        return self._applied(cr) != self.config.to_dict()

    # Drivers without a provider SDK track recorded configuration only.
    def create_storage(self, cr: dict[str, Any]) -> bool:
        return self._record_storage(cr, managed=False)

    def storage_exists(self, cr: dict[str, Any]) -> bool:
        return self._applied(cr) is not None

    def remove_storage(self, cr: dict[str, Any]) -> bool:
        logger.info(f"{self.name} storage is not owned by the operator, forgetting it")
        return self._clear_storage(cr)


def env(name: str, value: Any) -> dict[str, Any]:
    """Build a container environment variable."""
    return {"name": name, "value": str(value)}


def secret_env(name: str, secret_name: str, key: str | None = None) -> dict[str, Any]:
    """Build an environment variable sourced from a secret key."""
    return {
        "name": name,
        "valueFrom": {"secretKeyRef": {"name": secret_name, "key": key or name}},
    }


def generate_name(*parts: str, max_length: int = 63) -> str:
    """Build a DNS-compatible bucket/container name with a random suffix."""
    suffix = uuid.uuid4().hex[:12]
    prefix = "-".join(p for p in parts if p).lower()
    prefix = re.sub(r"[^a-z0-9-]+", "-", prefix).strip("-")
    prefix = prefix[: max_length - len(suffix) - 1].rstrip("-")
    return f"{prefix}-{suffix}" if prefix else suffix
