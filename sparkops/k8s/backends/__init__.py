"""Cluster backends used by Spark application monitors."""

from sparkops.k8s.backends.base import ClusterBackend
from sparkops.k8s.backends.cluster import KubernetesBackend, KubernetesBackendConfig

__all__ = [
    "ClusterBackend",
    "KubernetesBackend",
    "KubernetesBackendConfig",
]
