"""EmptyDir storage driver."""

from __future__ import annotations

from typing import Any

from ..constants import REGISTRY_ROOT_DIRECTORY, STORAGE_EMPTYDIR
from .base import BaseDriver, env

VOLUME_NAME = "registry-storage"


class EmptyDirDriver(BaseDriver):
    """Keeps images on an emptyDir volume; they vanish with the pod."""

    name = STORAGE_EMPTYDIR

    def config_env(self) -> list[dict[str, Any]]:
        return [
            env("REGISTRY_STORAGE", "filesystem"),
            env("REGISTRY_STORAGE_FILESYSTEM_ROOTDIRECTORY", REGISTRY_ROOT_DIRECTORY),
        ]

    def volumes(self) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
        volume = {"name": VOLUME_NAME, "emptyDir": {}}
        mount = {"name": VOLUME_NAME, "mountPath": REGISTRY_ROOT_DIRECTORY}
        return [volume], [mount]
