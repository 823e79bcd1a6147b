"""Structured logging configuration for the Image Registry Operator."""

import json
import logging
import os
import sys
from typing import Any

from .utils.context import get_context_dict


# Libraries whose per-request chatter drowns the reconcile records.
NOISY_LOGGERS = ("kopf.objects", "kopf.activities", "urllib3", "botocore")


def setup_structured_logging() -> None:
    """Configure structured JSON logging on stdout.

    LOG_LEVEL sets the operator's level; the libraries in NOISY_LOGGERS
    never log below WARNING.
    """
    level = getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def log_resource_event(
    logger: logging.Logger,
    controller: str,
    resource_kind: str,
    resource_name: str,
    namespace: str,
    uid: str,
    event: str,
    reason: str,
    message: str,
    level: int = logging.INFO,
    **kwargs: Any,
) -> None:
    """Log a structured resource event."""
    log_data = {
        "controller": controller,
        "resource": resource_kind,
        "name": resource_name,
        "namespace": namespace,
        "uid": uid,
        "event": event,
        "reason": reason,
        "message": message,
    }
    log_data.update(get_context_dict())
    log_data.update(kwargs)
    logger.log(level, json.dumps(log_data, default=str))