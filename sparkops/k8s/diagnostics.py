"""Human-readable diagnostics for the pods of a Spark application."""

from typing import Any, Iterable, List, Optional


def _format_map(values: Optional[dict]) -> str:
    return ", ".join(f"{key}={value}" for key, value in (values or {}).items())


def _format_condition(condition: Any) -> str:
    parts = [f"type={condition.type}", f"status={condition.status}"]
    if condition.reason:
        parts.append(f"reason={condition.reason}")
    if condition.message:
        parts.append(f"message={condition.message}")
    if condition.last_transition_time:
        parts.append(f"lastTransitionTime={condition.last_transition_time}")
    return ", ".join(parts)


def _format_container(container: Any) -> str:
    resources = container.resources
    requests = resources.requests if resources else None
    limits = resources.limits if resources else None
    return (
        f"{container.name}:"
        f"\n\t\t\timage: {container.image}"
        f"\n\t\t\trequests: {_format_map(requests)}"
        f"\n\t\t\tlimits: {_format_map(limits)}"
        f"\n\t\t\tcommand: {container.command} {container.args}"
    )


def build_pod_diagnostics(pod: Any) -> str:
    """Describe a pod: placement, phase, labels, container resources, conditions.

    Args:
        pod: Kubernetes V1Pod

    Returns:
        Multi-line description, one attribute per line
    """
    metadata = pod.metadata
    spec = pod.spec
    status = pod.status

    containers = spec.containers if spec and spec.containers else []
    conditions = status.conditions if status and status.conditions else []

    return (
        f"{metadata.name}.{metadata.namespace}:"
        f"\n\tnode: {spec.node_name if spec else None}"
        f"\n\thostname: {spec.hostname if spec else None}"
        f"\n\tpodIp: {status.pod_ip if status else None}"
        f"\n\tstartTime: {status.start_time if status else None}"
        f"\n\tphase: {status.phase if status else None}"
        f"\n\treason: {status.reason if status else None}"
        f"\n\tmessage: {status.message if status else None}"
        f"\n\tlabels: {_format_map(metadata.labels)}"
        f"\n\tcontainers:"
        f"\n\t\t" + "\n\t\t".join(_format_container(c) for c in containers) +
        f"\n\tconditions:"
        f"\n\t\t" + "\n\t\t".join(_format_condition(c) for c in conditions)
    )


def build_diagnostics(pods: Iterable[Any]) -> List[str]:
    """Describe every pod, ordered by pod name, split into single lines."""
    lines: List[str] = []
    for pod in sorted(pods, key=lambda p: p.metadata.name or ""):
        lines.extend(build_pod_diagnostics(pod).split("\n"))
    return lines
