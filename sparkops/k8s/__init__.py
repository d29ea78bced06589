"""Lifecycle monitoring and namespace cleanup for Spark applications on Kubernetes.

A Spark application submitted to Kubernetes is known only by the tag it was
given at submission time until its driver pod shows up. This package:

- **SparkKubernetesApp**: resolves the application id from the tag, follows the
  driver pod phase, and exposes diagnostics, the driver log and kill()
- **NamespaceGarbageCollector**: deletes namespaces whose drivers have finished
  or never appeared once they outlive a time-to-live

Quick Start:
    ```python
    from sparkops.k8s import MonitorConfig, SparkAppListener, SparkKubernetesClient

    class PrintingListener(SparkAppListener):
        def state_changed(self, old_state, new_state):
            print(f"{old_state.value} -> {new_state.value}")

    client = SparkKubernetesClient(MonitorConfig(poll_interval=5, gc_ttl=3600))
    client.start_gc()

    app = client.create_app("spark-1a2b", listener=PrintingListener())
    print(f"Application id: {app.get_app_id(timeout=600)}")
    ```
"""

from sparkops.k8s.app import (
    SparkAppKilledError,
    SparkAppListener,
    SparkAppLookupError,
    SparkKubernetesApp,
)
from sparkops.k8s.backends import ClusterBackend, KubernetesBackend, KubernetesBackendConfig
from sparkops.k8s.client import SparkKubernetesClient, create_kubernetes_client
from sparkops.k8s.config import MonitorConfig, parse_duration
from sparkops.k8s.models import LIVE_STATES, TERMINAL_STATES, AppInfo, ApplicationState
from sparkops.k8s.namespace_gc import NamespaceGarbageCollector
from sparkops.k8s.process import LineBufferedProcess
from sparkops.k8s.utils import is_expired, map_kubernetes_state

__all__ = [
    # Main client
    "SparkKubernetesClient",
    "create_kubernetes_client",
    # Monitoring
    "SparkKubernetesApp",
    "SparkAppListener",
    "SparkAppLookupError",
    "SparkAppKilledError",
    "NamespaceGarbageCollector",
    "LineBufferedProcess",
    # Backends
    "ClusterBackend",
    "KubernetesBackend",
    "KubernetesBackendConfig",
    # Configuration
    "MonitorConfig",
    "parse_duration",
    # States & models
    "ApplicationState",
    "AppInfo",
    "LIVE_STATES",
    "TERMINAL_STATES",
    "map_kubernetes_state",
    "is_expired",
]

__version__ = "0.1.0"
