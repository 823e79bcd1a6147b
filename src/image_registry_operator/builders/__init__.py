"""Builders for Kubernetes resources."""

from .registry import (
    build_cluster_role,
    build_cluster_role_binding,
    build_deployment,
    build_routes,
    build_secret,
    build_service,
    build_service_account,
    generate_http_secret,
)

__all__ = [
    "build_cluster_role",
    "build_cluster_role_binding",
    "build_deployment",
    "build_routes",
    "build_secret",
    "build_service",
    "build_service_account",
    "generate_http_secret",
]
