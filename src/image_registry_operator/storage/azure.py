"""Azure Blob Storage driver."""

from __future__ import annotations

import re
from typing import Any

from ..constants import STORAGE_AZURE
from ..utils.errors import InvalidConfigurationError
from ..utils.secrets import read_optional_secret_data
from .base import BaseDriver, env, generate_name, secret_env

ENV_ACCOUNT_KEY = "REGISTRY_STORAGE_AZURE_ACCOUNTKEY"

_ACCOUNT_NAME_RE = re.compile(r"^[a-z0-9]{3,24}$")
_CONTAINER_RE = re.compile(r"^[a-z0-9](?!.*--)[a-z0-9-]{1,61}[a-z0-9]$")


class AzureDriver(BaseDriver):
    """Points the registry at an Azure storage account container."""

    name = STORAGE_AZURE
    identity_key = "container"

    def config_env(self) -> list[dict[str, Any]]:
        return [
            env("REGISTRY_STORAGE", "azure"),
            env("REGISTRY_STORAGE_AZURE_ACCOUNTNAME", self.config.account_name),
            env("REGISTRY_STORAGE_AZURE_CONTAINER", self.config.container),
            secret_env(ENV_ACCOUNT_KEY, self.ctx.params.private_configuration_secret),
        ]

    def secrets(self) -> dict[str, str]:
        user = read_optional_secret_data(
            self.ctx.core_api, self.ctx.namespace, self.ctx.params.user_configuration_secret
        )
        if not user.get(ENV_ACCOUNT_KEY):
            raise RuntimeError(
                f"secret {self.ctx.namespace}/{self.ctx.params.user_configuration_secret} has no {ENV_ACCOUNT_KEY}"
            )
        return {ENV_ACCOUNT_KEY: user[ENV_ACCOUNT_KEY]}

    def validate_configuration(self, cr: dict[str, Any]) -> bool:
        if not self.config.account_name:
            raise InvalidConfigurationError("Azure storage requires accountName")
        if not _ACCOUNT_NAME_RE.match(self.config.account_name):
            raise InvalidConfigurationError(
                f"Azure accountName {self.config.account_name!r} must be 3-24 lowercase letters or digits"
            )
        if not self.config.container:
            install_config = self.ctx.install_config()
            self.config.container = generate_name(install_config.cluster_name, "image-registry")
        if not _CONTAINER_RE.match(self.config.container):
            raise InvalidConfigurationError(f"{self.config.container!r} is not a valid Azure container name")
        return self._write_spec(cr)
