"""Storage backend resolution."""

from __future__ import annotations

import logging
from typing import Any

from ..clusterconfig import InstallConfig
from ..constants import (
    STORAGE_AZURE,
    STORAGE_EMPTYDIR,
    STORAGE_GCS,
    STORAGE_PVC,
    STORAGE_S3,
    STORAGE_SWIFT,
)
from ..models import (
    AzureStorage,
    EmptyDirStorage,
    GCSStorage,
    S3Storage,
    StorageConfig,
    SwiftStorage,
)
from ..utils.errors import AmbiguousStorageError, StorageNotConfiguredError
from .azure import AzureDriver
from .base import BaseDriver, ClusterContext, Driver
from .emptydir import EmptyDirDriver
from .gcs import GCSDriver
from .pvc import PVCDriver
from .s3 import S3Driver
from .swift import SwiftDriver

logger = logging.getLogger(__name__)

DRIVERS: dict[str, type[BaseDriver]] = {
    STORAGE_EMPTYDIR: EmptyDirDriver,
    STORAGE_S3: S3Driver,
    STORAGE_SWIFT: SwiftDriver,
    STORAGE_GCS: GCSDriver,
    STORAGE_PVC: PVCDriver,
    STORAGE_AZURE: AzureDriver,
}

PLATFORM_STORAGE: dict[str, tuple[str, type]] = {
    "libvirt": ("empty_dir", EmptyDirStorage),
    "none": ("empty_dir", EmptyDirStorage),
    "baremetal": ("empty_dir", EmptyDirStorage),
    "aws": ("s3", S3Storage),
    "azure": ("azure", AzureStorage),
    "gcp": ("gcs", GCSStorage),
    "openstack": ("swift", SwiftStorage),
}


def new_driver(config: StorageConfig, ctx: ClusterContext) -> Driver:
    """Return the driver for the single configured backend.

    Raises:
        StorageNotConfiguredError: If no backend is configured
        AmbiguousStorageError: If more than one backend is configured
    """
    names = []
    drivers = []
    for name, _, variant in config.configured():
        names.append(name)
        drivers.append(DRIVERS[name](variant, ctx))

    if not drivers:
        raise StorageNotConfiguredError()
    if len(drivers) > 1:
        raise AmbiguousStorageError(names)
    return drivers[0]


def platform_storage(install_config: InstallConfig) -> StorageConfig:
    """Return the storage configuration matching the cluster platform.

    Raises:
        StorageNotConfiguredError: If the platform has no default backend
    """
    entry = PLATFORM_STORAGE.get(install_config.platform)
    if entry is None:
        raise StorageNotConfiguredError(
            f"storage backend not configured and platform {install_config.platform!r} has no default"
        )
    attr, variant_cls = entry
    config = StorageConfig()
    setattr(config, attr, variant_cls())
    return config


def resolve_driver(cr: dict[str, Any], ctx: ClusterContext) -> tuple[Driver, bool]:
    """Return the driver for spec.storage, inferring the backend when unset.

    An inferred configuration is written into spec.storage; the boolean
    reports whether that happened.
    """
    spec = cr.setdefault("spec", {})
    config = StorageConfig.from_dict(spec.get("storage"))
    try:
        return new_driver(config, ctx), False
    except StorageNotConfiguredError:
        pass

    install_config = ctx.install_config()
    config = platform_storage(install_config)
    driver = new_driver(config, ctx)
    spec["storage"] = config.to_dict()
    logger.info(f"storage not configured, using {driver.name} for platform {install_config.platform}")
    return driver, True


def registered_drivers(cr: dict[str, Any], ctx: ClusterContext) -> list[Driver]:
    """Return a driver for every storage the managed object may still hold.

    That is the applied configuration in status.storage, every record in
    status.retiredStorage, and spec.storage for backends with no applied
    record. The applied configuration wins over spec for the same backend,
    since that is what the storage was created from.
    """
    status = cr.get("status", {})
    recorded = [StorageConfig.from_dict(status.get("storage"))]
    recorded += [StorageConfig.from_dict(record) for record in status.get("retiredStorage") or []]
    desired = StorageConfig.from_dict(cr.get("spec", {}).get("storage"))

    drivers: list[Driver] = []
    seen: list[tuple[str, dict[str, Any]]] = []
    for config in recorded:
        for name, _, variant in config.configured():
            if (name, variant.to_dict()) not in seen:
                seen.append((name, variant.to_dict()))
                drivers.append(DRIVERS[name](variant, ctx))

    recorded_names = {name for name, _ in seen}
    for name, _, variant in desired.configured():
        if name not in recorded_names:
            drivers.append(DRIVERS[name](variant, ctx))
    return drivers


__all__ = [
    "ClusterContext",
    "Driver",
    "DRIVERS",
    "new_driver",
    "platform_storage",
    "registered_drivers",
    "resolve_driver",
]
