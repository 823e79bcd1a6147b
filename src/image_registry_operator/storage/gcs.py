"""Google Cloud Storage driver."""

from __future__ import annotations

from typing import Any

from ..constants import STORAGE_GCS
from ..utils.errors import InvalidConfigurationError
from ..utils.secrets import read_optional_secret_data
from .base import BaseDriver, env, generate_name

KEYFILE_KEY = "REGISTRY_STORAGE_GCS_KEYFILE"
KEYFILE_DIR = "/gcs"
VOLUME_NAME = "registry-gcs-keyfile"


class GCSDriver(BaseDriver):
    """Points the registry at a pre-existing GCS bucket."""

    name = STORAGE_GCS
    identity_key = "bucket"

    def config_env(self) -> list[dict[str, Any]]:
        return [
            env("REGISTRY_STORAGE", "gcs"),
            env("REGISTRY_STORAGE_GCS_BUCKET", self.config.bucket),
            env(KEYFILE_KEY, f"{KEYFILE_DIR}/keyfile"),
        ]

    def volumes(self) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
        volume = {
            "name": VOLUME_NAME,
            "secret": {
                "secretName": self.ctx.params.private_configuration_secret,
                "items": [{"key": KEYFILE_KEY, "path": "keyfile"}],
            },
        }
        mount = {"name": VOLUME_NAME, "mountPath": KEYFILE_DIR, "readOnly": True}
        return [volume], [mount]

    def secrets(self) -> dict[str, str]:
        user = read_optional_secret_data(
            self.ctx.core_api, self.ctx.namespace, self.ctx.params.user_configuration_secret
        )
        if not user.get(KEYFILE_KEY):
            raise RuntimeError(
                f"secret {self.ctx.namespace}/{self.ctx.params.user_configuration_secret} has no {KEYFILE_KEY}"
            )
        return {KEYFILE_KEY: user[KEYFILE_KEY]}

    def validate_configuration(self, cr: dict[str, Any]) -> bool:
        if not self.config.bucket:
            install_config = self.ctx.install_config()
            self.config.bucket = generate_name(install_config.cluster_name, "image-registry")
        if len(self.config.bucket) > 222 or self.config.bucket.startswith("goog"):
            raise InvalidConfigurationError(f"{self.config.bucket!r} is not a valid GCS bucket name")
        return self._write_spec(cr)
