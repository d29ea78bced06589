"""Submission-time helpers: application ids, namespaces and Spark conf."""

import logging
import re
import time
from typing import Any, Dict, Optional
import uuid

from sparkops.k8s.backends.base import ClusterBackend

logger = logging.getLogger(__name__)

MAX_APP_ID_PREFIX_LENGTH = 32


def format_app_id(name: str, now_ms: Optional[int] = None) -> str:
    """Turn an application or class name into a Kubernetes-friendly id.

    Keeps the last dot-separated segment, lower-cases it, drops anything
    that is not ``[0-9a-z]``, truncates to 32 characters and appends the
    current time in milliseconds.

    Args:
        name: Application name or main class
        now_ms: Timestamp suffix, defaults to the current time

    Returns:
        Formatted application id

    Example:
        >>> format_app_id("org.apache.spark.examples.SparkPi", now_ms=1700000000000)
        'sparkpi-1700000000000'
    """
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    formatted = re.sub(r"[^0-9a-z]", "", name.split(".")[-1].lower())
    return f"{formatted[:MAX_APP_ID_PREFIX_LENGTH]}-{now_ms}"


def get_app_id(
    app_id: Optional[str] = None,
    app_name: Optional[str] = None,
    class_name: Optional[str] = None,
) -> str:
    """Pick the application id: explicit id, else name, else main class, else random."""
    if app_id:
        return app_id
    if app_name:
        return format_app_id(app_name)
    if class_name:
        return format_app_id(class_name)
    return f"spark-{uuid.uuid4().hex}"


def prepare_kubernetes_specific_conf(
    namespace: str,
    conf: Optional[Dict[str, str]] = None,
    app_name: Optional[str] = None,
    class_name: Optional[str] = None,
) -> Dict[str, str]:
    """Build the Spark conf entries required to run in ``namespace``.

    Args:
        namespace: Namespace created for the application
        conf: Spark conf of the request, may already carry ``spark.app.id``
        app_name: Application name of the request
        class_name: Main class of the request

    Returns:
        ``spark.app.id`` and ``spark.kubernetes.namespace`` entries
    """
    return {
        "spark.app.id": get_app_id((conf or {}).get("spark.app.id"), app_name, class_name),
        "spark.kubernetes.namespace": namespace,
    }


def prepare_kubernetes_namespace(
    backend: ClusterBackend,
    namespace: str,
    image_pull_secret_name: Optional[str] = None,
    image_pull_secret_content: Optional[str] = None,
) -> Any:
    """Create the application namespace and, if configured, its image pull secret.

    Args:
        backend: Cluster backend
        namespace: Namespace to create
        image_pull_secret_name: Name of the secret to create
        image_pull_secret_content: Base64 encoded docker config JSON

    Returns:
        Created namespace
    """
    created = backend.create_namespace(namespace)
    if image_pull_secret_name and image_pull_secret_content:
        backend.create_image_pull_secret(
            namespace, image_pull_secret_name, image_pull_secret_content
        )
    else:
        logger.debug(f"No image pull secret configured for namespace {namespace}")
    return created
