"""Utility functions for Spark pods and namespaces."""

from datetime import datetime, timedelta, timezone
import logging
from typing import Any, Optional, Union

from sparkops.k8s.models import SPARK_ROLE_DRIVER, SPARK_ROLE_LABEL, ApplicationState

logger = logging.getLogger(__name__)

# Pod phases, plus the kubectl status words spark drivers are often reported with
_PHASE_TO_STATE = {
    "pending": ApplicationState.STARTING,
    "containercreating": ApplicationState.STARTING,
    "running": ApplicationState.RUNNING,
    "completed": ApplicationState.FINISHED,
    "succeeded": ApplicationState.FINISHED,
    "failed": ApplicationState.FAILED,
    "error": ApplicationState.FAILED,
}

_FINISHED_DRIVER_PHASES = ("error", "completed", "failed", "succeeded")

# Stands in for a phase that could not be read
UNREADABLE_PHASE = "unreadable"


def map_kubernetes_state(phase: Optional[Any]) -> ApplicationState:
    """Map a pod phase to an ApplicationState.

    Never raises: a missing or malformed phase maps to KILLED.

    Args:
        phase: Phase reported for the driver pod, or None if it was not readable

    Returns:
        ApplicationState

    Example:
        >>> map_kubernetes_state("Running")
        <ApplicationState.RUNNING: 'RUNNING'>
        >>> map_kubernetes_state(None)
        <ApplicationState.KILLED: 'KILLED'>
    """
    try:
        return _PHASE_TO_STATE.get(phase.strip().lower(), ApplicationState.KILLED)
    except (AttributeError, TypeError):
        logger.debug(f"Unreadable pod phase: {phase!r}")
        return _PHASE_TO_STATE.get(UNREADABLE_PHASE, ApplicationState.KILLED)


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_creation_time(resource: Any) -> datetime:
    """Read a resource's creation timestamp as an aware UTC datetime.

    Args:
        resource: Kubernetes object with ``metadata.creation_timestamp``

    Returns:
        Creation time in UTC

    Raises:
        ValueError: If the resource has no creation timestamp
    """
    metadata = getattr(resource, "metadata", None)
    created = getattr(metadata, "creation_timestamp", None)
    if created is None:
        raise ValueError(f"Resource {getattr(metadata, 'name', None)} has no creation timestamp")

    if isinstance(created, str):
        created = datetime.fromisoformat(created.replace("Z", "+00:00"))
    if created.tzinfo is None:
        return created.replace(tzinfo=timezone.utc)
    return created.astimezone(timezone.utc)


def is_expired(
    created: datetime,
    ttl: Union[timedelta, float],
    now: Optional[datetime] = None,
) -> bool:
    """Check whether ``now >= created + ttl``.

    Args:
        created: Creation time (naive values are taken as UTC)
        ttl: Time-to-live as a timedelta or in seconds
        now: Reference time, defaults to the current UTC time

    Returns:
        True if the time-to-live has elapsed
    """
    if not isinstance(ttl, timedelta):
        ttl = timedelta(seconds=ttl)
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    if now is None:
        now = utc_now()
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now >= created + ttl


def is_resource_expired(
    resource: Any, ttl: Union[timedelta, float], now: Optional[datetime] = None
) -> bool:
    """Check whether a Kubernetes object is older than ``ttl``."""
    return is_expired(parse_creation_time(resource), ttl, now)


def is_spark_driver(pod: Any) -> bool:
    """Check whether a pod carries the Spark driver role label."""
    labels = getattr(pod.metadata, "labels", None) or {}
    return labels.get(SPARK_ROLE_LABEL) == SPARK_ROLE_DRIVER


def is_spark_driver_finished(pod: Any) -> bool:
    """Check whether a driver pod has completed, failed or is backing off.

    Args:
        pod: Kubernetes V1Pod

    Returns:
        True if the driver will not make further progress on its own
    """
    status = pod.status
    if status is None:
        return False

    phase = (status.phase or "").lower()
    if phase in _FINISHED_DRIVER_PHASES or "backoff" in phase:
        return True

    # CrashLoopBackOff / ImagePullBackOff only show up on container statuses
    for container_status in status.container_statuses or []:
        waiting = container_status.state.waiting if container_status.state else None
        if waiting is not None and "backoff" in (waiting.reason or "").lower():
            return True
    return False


def is_spark_driver_expired(
    pod: Any, ttl: Union[timedelta, float], now: Optional[datetime] = None
) -> bool:
    """Check whether a driver pod is both older than ``ttl`` and finished."""
    return is_resource_expired(pod, ttl, now) and is_spark_driver_finished(pod)
