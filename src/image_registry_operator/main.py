"""Main entry point for the Image Registry Operator."""

from __future__ import annotations

import logging
import os
import sys
import threading
from typing import Any

import kopf
from kubernetes import client

from . import health
from . import logging as structured_logging
from .client import ImageRegistryClient, load_kube_config
from .clusterconfig import ClusterConfig
from .clusteroperator import StatusHandler
from .controller import Controller
from .generator import Generator
from .parameters import Parameters, get_operator_name
from .storage import ClusterContext
from .tracing import initialize_tracing
from .utils.errors import sanitize_exception

logger = logging.getLogger(__name__)


def configure(settings: kopf.OperatorSettings, **_: Any) -> None:
    """Configure operator settings.

    Watch events only feed the local caches; no handler state is persisted
    on the watched objects.
    """
    settings.persistence.progress_storage = kopf.AnnotationsProgressStorage()
    settings.persistence.diffbase_storage = kopf.AnnotationsDiffBaseStorage()
    settings.posting.enabled = False
    settings.networking.request_timeout = 30.0
    settings.watching.server_timeout = 600
    settings.execution.max_workers = 4


def build_controller() -> Controller:
    """Wire the controller from the environment.

    Raises:
        RuntimeError: If WATCH_NAMESPACE or OPERATOR_NAME is missing
    """
    params = Parameters.from_env()
    operator_name = get_operator_name()

    load_kube_config()
    core_api = client.CoreV1Api()
    custom_api = client.CustomObjectsApi()

    ctx = ClusterContext(params=params, core_api=core_api, cluster_config=ClusterConfig(core_api))
    generator = Generator(core_api, client.AppsV1Api(), client.RbacAuthorizationV1Api(), custom_api, params)

    return Controller(
        params=params,
        client=ImageRegistryClient(custom_api, params.namespace, params.resource_name),
        generator=generator,
        cluster_status=StatusHandler(custom_api, operator_name),
        ctx=ctx,
    )


def run() -> None:
    """Start the controller and block until a termination signal arrives."""
    structured_logging.setup_structured_logging()
    initialize_tracing()

    try:
        controller = build_controller()
        controller.bootstrap()
    except Exception as e:
        logger.critical(f"unable to start operator: {sanitize_exception(e)}")
        sys.exit(1)

    registry = kopf.OperatorRegistry()
    kopf.on.startup(registry=registry)(configure)
    controller.start(registry)

    metrics_port = int(os.getenv("METRICS_PORT", "8080"))
    server = health.start_server(metrics_port, ready=controller.ready)

    stop_flag = threading.Event()
    try:
        kopf.run(
            registry=registry,
            namespaces=[controller.params.namespace],
            standalone=True,
            stop_flag=stop_flag,
        )
    finally:
        controller.shut_down()
        server.shutdown()


def main() -> None:
    run()


if __name__ == "__main__":
    main()
