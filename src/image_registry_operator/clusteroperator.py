"""Cluster-wide operator status reporting."""

from __future__ import annotations

import logging
from typing import Any

from kubernetes import client

from .constants import (
    CLUSTER_OPERATOR_GROUP,
    CLUSTER_OPERATOR_PLURAL,
    CLUSTER_OPERATOR_VERSION,
    CONDITION_FALSE,
    CONDITION_TRUE,
    CONDITION_UNKNOWN,
    COND_AVAILABLE,
    COND_FAILING,
    COND_PROGRESSING,
)
from .utils.conditions import update_condition
from .utils.rate_limit import rate_limit_k8s

logger = logging.getLogger(__name__)


def _condition_status(value: bool | None) -> str:
    if value is None:
        return CONDITION_UNKNOWN
    return CONDITION_TRUE if value else CONDITION_FALSE


class StatusHandler:
    """Maintains the ClusterOperator object named after the operator."""

    def __init__(self, api: Any, name: str) -> None:
        self.api = api
        self.name = name

    def _get(self) -> dict[str, Any] | None:
        try:
            return rate_limit_k8s(self.api.get_cluster_custom_object)(
                group=CLUSTER_OPERATOR_GROUP,
                version=CLUSTER_OPERATOR_VERSION,
                plural=CLUSTER_OPERATOR_PLURAL,
                name=self.name,
            )
        except client.exceptions.ApiException as e:
            if e.status == 404:
                return None
            raise

    def create(self) -> None:
        """Create the ClusterOperator object with all conditions Unknown."""
        if self._get() is not None:
            return

        conditions: list[dict[str, Any]] = []
        for kind in (COND_AVAILABLE, COND_PROGRESSING, COND_FAILING):
            conditions = update_condition(conditions, kind, CONDITION_UNKNOWN, "", "")

        body = {
            "apiVersion": f"{CLUSTER_OPERATOR_GROUP}/{CLUSTER_OPERATOR_VERSION}",
            "kind": "ClusterOperator",
            "metadata": {"name": self.name},
        }
        try:
            rate_limit_k8s(self.api.create_cluster_custom_object)(
                group=CLUSTER_OPERATOR_GROUP,
                version=CLUSTER_OPERATOR_VERSION,
                plural=CLUSTER_OPERATOR_PLURAL,
                body=body,
            )
        except client.exceptions.ApiException as e:
            if e.status != 409:
                raise
            return

        created = self._get()
        if created is None:
            return
        created["status"] = {"conditions": conditions}
        self._replace_status(created)
        logger.info(f"created cluster operator {self.name}")

    def update(self, kind: str, value: bool | None, message: str) -> None:
        """Set one condition; the object is written only when it changes.

        Args:
            kind: Condition type (Available, Progressing or Failing)
            value: Condition value, None for Unknown
            message: Human readable message
        """
        obj = self._get()
        if obj is None:
            self.create()
            obj = self._get()
            if obj is None:
                return

        status = obj.setdefault("status", {})
        conditions = status.get("conditions") or []
        new_status = _condition_status(value)
        for cond in conditions:
            if cond.get("type") == kind and cond.get("status") == new_status and cond.get("message", "") == message:
                return

        status["conditions"] = update_condition(conditions, kind, new_status, "", message)
        self._replace_status(obj)

    def _replace_status(self, obj: dict[str, Any]) -> None:
        rate_limit_k8s(self.api.replace_cluster_custom_object_status)(
            group=CLUSTER_OPERATOR_GROUP,
            version=CLUSTER_OPERATOR_VERSION,
            plural=CLUSTER_OPERATOR_PLURAL,
            name=self.name,
            body=obj,
        )
