"""OpenStack Swift storage driver."""

from __future__ import annotations

from typing import Any

from ..constants import STORAGE_SWIFT
from ..utils.errors import InvalidConfigurationError
from ..utils.secrets import read_optional_secret_data
from .base import BaseDriver, env, generate_name, secret_env

ENV_USERNAME = "REGISTRY_STORAGE_SWIFT_USERNAME"
ENV_PASSWORD = "REGISTRY_STORAGE_SWIFT_PASSWORD"


class SwiftDriver(BaseDriver):
    """Points the registry at a Swift container."""

    name = STORAGE_SWIFT
    identity_key = "container"

    def config_env(self) -> list[dict[str, Any]]:
        secret = self.ctx.params.private_configuration_secret
        variables = [
            env("REGISTRY_STORAGE", "swift"),
            env("REGISTRY_STORAGE_SWIFT_AUTHURL", self.config.auth_url),
            env("REGISTRY_STORAGE_SWIFT_CONTAINER", self.config.container),
            secret_env(ENV_USERNAME, secret),
            secret_env(ENV_PASSWORD, secret),
        ]
        optional = [
            ("REGISTRY_STORAGE_SWIFT_AUTHVERSION", self.config.auth_version),
            ("REGISTRY_STORAGE_SWIFT_DOMAIN", self.config.domain),
            ("REGISTRY_STORAGE_SWIFT_DOMAINID", self.config.domain_id),
            ("REGISTRY_STORAGE_SWIFT_TENANT", self.config.tenant),
            ("REGISTRY_STORAGE_SWIFT_TENANTID", self.config.tenant_id),
            ("REGISTRY_STORAGE_SWIFT_REGION", self.config.region_name),
        ]
        variables.extend(env(name, value) for name, value in optional if value)
        return variables

    def secrets(self) -> dict[str, str]:
        user = read_optional_secret_data(
            self.ctx.core_api, self.ctx.namespace, self.ctx.params.user_configuration_secret
        )
        if not user.get(ENV_USERNAME) or not user.get(ENV_PASSWORD):
            raise RuntimeError(
                f"secret {self.ctx.namespace}/{self.ctx.params.user_configuration_secret} "
                f"must contain {ENV_USERNAME} and {ENV_PASSWORD}"
            )
        return {ENV_USERNAME: user[ENV_USERNAME], ENV_PASSWORD: user[ENV_PASSWORD]}

    def validate_configuration(self, cr: dict[str, Any]) -> bool:
        if not self.config.auth_url:
            raise InvalidConfigurationError("Swift storage requires authURL")
        if not self.config.auth_url.startswith(("http://", "https://")):
            raise InvalidConfigurationError(f"Swift authURL {self.config.auth_url!r} is not an http(s) URL")
        if self.config.auth_version not in ("", "1", "2", "3"):
            raise InvalidConfigurationError(f"unsupported Swift authVersion {self.config.auth_version!r}")
        if self.config.domain and self.config.domain_id:
            raise InvalidConfigurationError("Swift domain and domainID are mutually exclusive")
        if not self.config.container:
            install_config = self.ctx.install_config()
            self.config.container = generate_name(install_config.cluster_name, "image-registry")
        return self._write_spec(cr)
