"""Reconciliation controller for the image registry."""

from __future__ import annotations

import copy
import threading
import uuid
from typing import Any

import kopf

from .. import metrics
from ..builders import generate_http_secret
from ..client import ImageRegistryClient
from ..clusteroperator import StatusHandler
from ..constants import (
    API_GROUP_VERSION,
    COND_AVAILABLE,
    COND_FAILING,
    COND_PROGRESSING,
    CONDITION_TRUE,
    FINALIZER,
    KIND_IMAGE_REGISTRY,
    MANAGEMENT_STATE_MANAGED,
)
from ..generator import Generator
from ..models import ManagementState
from ..parameters import Parameters
from ..storage import ClusterContext, registered_drivers, resolve_driver
from ..tracing import add_span_attribute, trace_span
from ..utils.checksum import image_registry_checksum
from ..utils.conditions import (
    get_condition,
    set_available_condition,
    set_failing_condition,
    set_progressing_condition,
    set_removed_condition,
)
from ..utils.context import with_correlation_id
from ..utils.errors import is_conflict, is_not_found, is_permanent, sanitize_exception
from ..watchers import ResourceEvent, Watcher, Watchers, count_event
from ..workqueue import CoalescingQueue
from .base import BaseController


def _resource_version(obj: dict[str, Any] | None) -> str | None:
    return ((obj or {}).get("metadata") or {}).get("resourceVersion")


class Controller(BaseController):
    """Drives the registry deployment toward the managed object's spec.

    Watch events from any thread go through ``handle`` into a single-slot
    work queue. One worker thread drains it and runs ``sync``, so reconcile
    passes never overlap.
    """

    def __init__(
        self,
        params: Parameters,
        client: ImageRegistryClient,
        generator: Generator,
        cluster_status: StatusHandler,
        ctx: ClusterContext,
        watchers: Watchers | None = None,
        queue: CoalescingQueue | None = None,
    ) -> None:
        super().__init__(KIND_IMAGE_REGISTRY)
        self.params = params
        self.client = client
        self.generator = generator
        self.cluster_status = cluster_status
        self.ctx = ctx
        self.watchers = watchers or Watchers()
        self.queue = queue or CoalescingQueue()
        self._worker: threading.Thread | None = None
        # resourceVersions produced by the last write-back
        self._written_versions: frozenset[str] = frozenset()

    def _meta(self, cr: dict[str, Any] | None = None) -> dict[str, Any]:
        if cr is not None:
            return cr.get("metadata", {})
        return {"name": self.params.resource_name, "namespace": self.params.namespace}

    def handle(self, event: ResourceEvent) -> None:
        """Decide whether a watch event warrants a reconcile pass.

        Safe to call from any thread; never talks to the API server.
        """
        if event.kind == KIND_IMAGE_REGISTRY:
            if event.name != self.params.resource_name:
                count_event(event, "ignored")
                return
            version = event.body.get("metadata", {}).get("resourceVersion")
            if event.action != "delete" and version and version in self._written_versions:
                self.logger.debug(f"{event.kind} {event.name} is our own write at version {version}")
                count_event(event, "unchanged")
                return
            stored = event.annotations.get(self.params.checksum_annotation)
            if event.action != "delete" and stored is not None:
                try:
                    current = image_registry_checksum(event.body)
                except TypeError as e:
                    self.logger.error(f"unable to compute checksum for {event.name}: {e}")
                    current = ""
                if current == stored:
                    self.logger.debug(f"{event.kind} {event.name} has not changed")
                    count_event(event, "unchanged")
                    return
        else:
            owner = event.owner
            if owner is None or owner.kind != KIND_IMAGE_REGISTRY or owner.api_version != API_GROUP_VERSION:
                count_event(event, "ignored")
                return

        self.logger.debug(f"queueing reconcile due to {event.kind} {event.namespace}/{event.name} ({event.action})")
        count_event(event, "enqueued")
        self.queue.add_rate_limited()

    def bootstrap(self) -> None:
        """Create the managed object if it does not exist yet.

        Raises:
            kubernetes.client.exceptions.ApiException: If the object cannot be
                read or created
        """
        if self.client.get() is not None:
            return

        body = {
            "apiVersion": API_GROUP_VERSION,
            "kind": KIND_IMAGE_REGISTRY,
            "metadata": {
                "name": self.params.resource_name,
                "namespace": self.params.namespace,
                "finalizers": [FINALIZER],
            },
            "spec": {
                "managementState": MANAGEMENT_STATE_MANAGED,
                "storage": {},
                "replicas": 1,
                "httpSecret": generate_http_secret(),
            },
        }
        try:
            self.client.create(body)
        except Exception as e:
            if is_conflict(e):
                return
            raise
        self.log_info(self._meta(body), "created managed object", event="bootstrap", reason="Created")

    def create_or_update_resources(self, cr: dict[str, Any]) -> bool:
        """Resolve storage and apply every child resource.

        Returns:
            True if the managed object or any child resource was modified

        Raises:
            kopf.PermanentError: If the storage configuration cannot be used
            Exception: Any other failure, expected to clear on retry
        """
        modified = self.ensure_finalizer(cr)

        spec = cr.setdefault("spec", {})
        if not spec.get("httpSecret"):
            spec["httpSecret"] = generate_http_secret()
            modified = True

        driver, inferred = resolve_driver(cr, self.ctx)
        modified = inferred or modified

        if driver.validate_configuration(cr):
            modified = True

        if driver.storage_changed(cr):
            self.log_info(self._meta(cr), f"{driver.name} storage configuration changed", reason="StorageChanged")
            if driver.create_storage(cr):
                modified = True

        if self.generator.apply(cr, driver):
            modified = True
        return modified

    def remove_resources(self, cr: dict[str, Any]) -> None:
        """Tear down storage the operator created, then every child resource.

        Raises:
            Exception: If any storage or child removal fails
        """
        for driver in registered_drivers(cr, self.ctx):
            if driver.storage_exists(cr):
                driver.remove_storage(cr)
        self.generator.remove(cr)

    def finalize_resources(self, cr: dict[str, Any]) -> None:
        """Run teardown for an object being deleted and release its finalizer.

        The finalizer stays in place when teardown fails.
        """
        if FINALIZER not in (cr.get("metadata", {}).get("finalizers") or []):
            return

        self.log_info(self._meta(cr), "finalizing managed object", event="finalize", reason="Deleting")
        self.remove_resources(cr)

        self.remove_finalizer(cr)
        try:
            self.client.update(cr)
        except Exception as e:
            if is_conflict(e):
                self.log_warning(self._meta(cr), "conflict while removing finalizer", reason="Conflict")
                return
            raise
        self.log_info(self._meta(cr), "finalizer removed", event="finalize", reason="Finalized")

    def _cached(self, watcher: Watcher, name: str) -> dict[str, Any] | None:
        try:
            return watcher.get(name, self.params.namespace)
        except Exception as e:
            if is_not_found(e):
                return None
            raise

    def _report_cluster_status(self, kind: str, value: bool, message: str) -> None:
        try:
            self.cluster_status.update(kind, value, message)
        except Exception as e:
            self.logger.error(f"unable to update cluster status to {kind}={value}: {sanitize_exception(e)}")

    def sync_status(
        self,
        cr: dict[str, Any],
        state: ManagementState,
        deployment: dict[str, Any] | None,
        apply_error: BaseException | None,
    ) -> None:
        """Derive Available, Progressing and Failing from the deployment."""
        conditions = cr.setdefault("status", {}).setdefault("conditions", [])
        deleting = bool(cr.get("metadata", {}).get("deletionTimestamp"))

        dep_status = (deployment or {}).get("status") or {}
        dep_spec = (deployment or {}).get("spec") or {}
        dep_meta = (deployment or {}).get("metadata") or {}

        if deployment is None:
            set_available_condition(conditions, False, "DeploymentNotFound", "deployment does not exist")
        elif deleting:
            set_available_condition(conditions, False, "Terminating", "the registry is being deleted")
        elif dep_status.get("availableReplicas", 0) > 0:
            set_available_condition(conditions, True, "MinimumAvailability", "the registry has minimum availability")
        else:
            set_available_condition(conditions, False, "NoReplicasAvailable", "the deployment does not have available replicas")

        if state is ManagementState.UNMANAGED:
            set_progressing_condition(conditions, False, "Unmanaged", "the registry configuration is not managed")
        elif apply_error is not None:
            set_progressing_condition(conditions, True, "Error", f"Unable to apply resources: {apply_error}")
        elif deployment is None:
            set_progressing_condition(conditions, True, "DeploymentNotFound", "the deployment is being created")
        else:
            replicas = dep_spec.get("replicas", 1)
            complete = (
                dep_status.get("updatedReplicas", 0) == replicas
                and dep_status.get("replicas", 0) == replicas
                and dep_status.get("availableReplicas", 0) == replicas
                and dep_status.get("observedGeneration", 0) >= dep_meta.get("generation", 0)
            )
            if complete:
                set_progressing_condition(conditions, False, "Ready", "the registry is ready")
            else:
                set_progressing_condition(conditions, True, "DeploymentNotCompleted", "the deployment has not completed")

        if apply_error is None:
            set_failing_condition(conditions, False, "AsExpected", "")
        elif is_permanent(apply_error):
            set_failing_condition(conditions, True, "PermanentError", str(apply_error))
        else:
            set_failing_condition(conditions, True, "Error", str(apply_error))

        for kind in (COND_AVAILABLE, COND_PROGRESSING, COND_FAILING):
            cond = get_condition(conditions, kind) or {}
            self._report_cluster_status(kind, cond.get("status") == CONDITION_TRUE, cond.get("message", ""))

    def _write_back(self, original: dict[str, Any], cr: dict[str, Any]) -> bool:
        """Persist cr when its fingerprint or metadata changed.

        Returns:
            True if the object was written

        Raises:
            kubernetes.client.exceptions.ApiException: On non-conflict errors
        """
        status = cr.setdefault("status", {})
        status["observedGeneration"] = cr.get("metadata", {}).get("generation", 0)

        digest = image_registry_checksum(cr)
        annotations = cr["metadata"].get("annotations") or {}
        meta_changed = (cr.get("metadata", {}).get("finalizers") or []) != (
            original.get("metadata", {}).get("finalizers") or []
        )
        if annotations.get(self.params.checksum_annotation) == digest and not meta_changed:
            metrics.status_writes_total.labels(result="skipped").inc()
            return False

        cr["metadata"].setdefault("annotations", {})[self.params.checksum_annotation] = digest
        self.log_info(self._meta(cr), "managed object changed, writing it back", event="update", reason="Changed")
        # The spec write echoes back with the old status, so its fingerprint
        # never matches; handle drops it by resourceVersion instead.
        try:
            updated = self.client.update(cr)
            self._written_versions = frozenset(filter(None, [_resource_version(updated)]))
            updated["status"] = copy.deepcopy(status)
            stored = self.client.update_status(updated)
            self._written_versions = self._written_versions | frozenset(filter(None, [_resource_version(stored)]))
        except Exception as e:
            if is_conflict(e):
                metrics.status_writes_total.labels(result="conflict").inc()
                self.log_warning(self._meta(cr), f"conflict writing managed object: {e}", reason="Conflict")
                return False
            metrics.status_writes_total.labels(result="failed").inc()
            raise

        metrics.status_writes_total.labels(result="written").inc()
        return True

    def sync(self) -> None:
        """Run one reconcile pass.

        Raises:
            kopf.PermanentError: If the storage configuration is unusable
            Exception: Any transient failure; the caller re-queues
        """
        cr = self.client.get()
        if cr is None:
            self.bootstrap()
            return

        if cr.get("metadata", {}).get("deletionTimestamp"):
            self.finalize_resources(cr)
            return

        original = copy.deepcopy(cr)
        conditions = cr.setdefault("status", {}).setdefault("conditions", [])
        state = ManagementState.from_spec(cr.get("spec", {}))
        add_span_attribute("management.state", cr.get("spec", {}).get("managementState", ""))

        apply_error: BaseException | None = None
        remove_error: BaseException | None = None

        if state is ManagementState.REMOVED:
            try:
                self.remove_resources(cr)
            except Exception as e:
                remove_error = e
                self._report_cluster_status(COND_FAILING, True, "unable to remove registry")
                set_progressing_condition(conditions, True, "Error", f"unable to remove objects: {e}")
                set_failing_condition(conditions, True, "Error", str(e))
            else:
                set_removed_condition(conditions, True)
                set_available_condition(conditions, False, "Removed", "")
                set_progressing_condition(conditions, False, "Removed", "")
                set_failing_condition(conditions, False, "Removed", "")
        elif state in (ManagementState.MANAGED, ManagementState.FORCE):
            set_removed_condition(conditions, False)
            try:
                if self.create_or_update_resources(cr):
                    self.log_info(self._meta(cr), "resources applied", event="apply", reason="Applied")
            except Exception as e:
                apply_error = e
                self.log_error(self._meta(cr), "unable to apply resources", error=e, reason="ApplyFailed")
        elif state is ManagementState.UNMANAGED:
            pass
        else:
            self.log_warning(
                self._meta(cr),
                f"unknown management state: {cr.get('spec', {}).get('managementState')}",
                reason="UnknownState",
            )

        deployment = self._cached(self.watchers.deployments, self.params.resource_name)

        if apply_error is None:
            service = self._cached(self.watchers.services, self.params.service_name)
            if service is not None:
                port = ((service.get("spec") or {}).get("ports") or [{}])[0].get("port")
                svc_meta = service.get("metadata", {})
                if port:
                    cr["status"]["internalRegistryHostname"] = (
                        f"{svc_meta.get('name')}.{svc_meta.get('namespace')}.svc.cluster.local:{port}"
                    )
                else:
                    self.logger.warning(f"service {svc_meta.get('name')} has no ports yet")

        if state is not None and state is not ManagementState.REMOVED:
            self.sync_status(cr, state, deployment, apply_error)

        self._write_back(original, cr)

        if remove_error is not None:
            raise remove_error
        if apply_error is not None:
            raise apply_error

    def process_next(self, timeout: float | None = None) -> bool:
        """Take the key from the queue and run one pass.

        Returns:
            False once the queue is shut down
        """
        key = self.queue.get(timeout=timeout)
        if key is None:
            return not self.queue.shutting_down

        with with_correlation_id(str(uuid.uuid4())), trace_span("sync", kind=self.kind):
            try:
                self.reconcile_with_metrics(self._meta(), self.sync)
            except Exception:
                # Permanent errors are retried too: the object may be fixed.
                self.queue.add_rate_limited()
            else:
                self.queue.forget()
                self.logger.info("event from workqueue successfully processed")
            finally:
                self.queue.done()
        return True

    def _event_processor(self) -> None:
        while self.process_next():
            pass
        self.logger.info("events processor stopped")

    def start(self, registry: kopf.OperatorRegistry) -> None:
        """Register watchers and start the worker thread.

        Raises:
            Exception: If the watchers cannot be registered
        """
        try:
            self.cluster_status.create()
        except Exception as e:
            self.logger.error(f"unable to create cluster operator resource: {sanitize_exception(e)}")

        self.watchers.start(self.handle, self.params.namespace, registry)
        self.logger.info("all watchers are registered")

        self._worker = threading.Thread(target=self._event_processor, name="events-processor", daemon=True)
        self._worker.start()
        self.queue.add()
        self.logger.info("started events processor")

    def ready(self) -> bool:
        return self._worker is not None and self._worker.is_alive()

    def shut_down(self, timeout: float | None = None) -> None:
        """Stop accepting work and wait for the running pass to finish."""
        self.logger.info("shutting down events processor")
        self.queue.shut_down()
        if self._worker is not None:
            self._worker.join(timeout)
