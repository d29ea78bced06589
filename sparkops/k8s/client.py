# Copyright 2025 The SparkOps Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Main client tying together the cluster backend, monitors and namespace GC."""

import logging
import threading
from typing import Any, Dict, Optional

from sparkops.k8s.app import SparkAppListener, SparkKubernetesApp
from sparkops.k8s.backends.base import ClusterBackend
from sparkops.k8s.backends.cluster import KubernetesBackend, KubernetesBackendConfig
from sparkops.k8s.config import MonitorConfig
from sparkops.k8s.namespace_gc import NamespaceGarbageCollector
from sparkops.k8s.process import LineBufferedProcess
from sparkops.k8s.submission import prepare_kubernetes_namespace, prepare_kubernetes_specific_conf

logger = logging.getLogger(__name__)


class SparkKubernetesClient:
    """Entry point for monitoring Spark applications on Kubernetes.

    The client owns the process-wide pieces: the monitor configuration, a
    single cluster backend created on first use and shared by every
    monitor, and the namespace garbage collector.

    Example:
        ```python
        from sparkops.k8s import MonitorConfig, SparkKubernetesClient

        client = SparkKubernetesClient(MonitorConfig(namespace_prefix="spark-"))
        client.start_gc()

        app = client.create_app("spark-1a2b", listener=my_listener)
        print(app.get_app_id(timeout=600))
        print("\\n".join(app.log()))
        app.kill()
        ```
    """

    def __init__(
        self,
        config: Optional[MonitorConfig] = None,
        backend_config: Optional[KubernetesBackendConfig] = None,
        backend: Optional[ClusterBackend] = None,
    ):
        """Initialize the client.

        Args:
            config: Monitor configuration. Defaults to MonitorConfig()
            backend_config: Configuration of the Kubernetes backend created on first use
            backend: Backend to use instead of creating a KubernetesBackend
        """
        self.config = config or MonitorConfig()
        self.backend_config = backend_config
        self._backend = backend
        self._backend_lock = threading.Lock()
        self._gc: Optional[NamespaceGarbageCollector] = None
        self._gc_lock = threading.Lock()

        logger.info(
            f"Initialized SparkKubernetesClient: "
            f"namespacePrefix=[{self.config.namespace_prefix}] "
            f"| pollInterval=[{self.config.poll_interval}s] "
            f"| appLookupTimeout=[{self.config.app_lookup_timeout}s]"
        )

    @property
    def backend(self) -> ClusterBackend:
        """Shared cluster backend, created on first access."""
        if self._backend is None:
            with self._backend_lock:
                if self._backend is None:
                    self._backend = KubernetesBackend(self.backend_config)
        return self._backend

    def start_gc(self) -> NamespaceGarbageCollector:
        """Start the namespace garbage collector once for this client."""
        with self._gc_lock:
            if self._gc is None:
                self._gc = NamespaceGarbageCollector(self.backend, self.config)
            return self._gc.start()

    def create_app(
        self,
        app_tag: str,
        app_id: Optional[str] = None,
        process: Optional[LineBufferedProcess] = None,
        listener: Optional[SparkAppListener] = None,
    ) -> SparkKubernetesApp:
        """Start monitoring an application.

        Args:
            app_tag: Tag given to the application at submission time
            app_id: Application id, if already known
            process: Local spark-submit process, if any
            listener: Listener notified of id, state and info changes

        Returns:
            Started SparkKubernetesApp
        """
        app = SparkKubernetesApp(
            app_tag,
            self.backend,
            self.config,
            app_id=app_id,
            process=process,
            listener=listener,
        )
        return app.start()

    def prepare_namespace(
        self,
        namespace: str,
        image_pull_secret_name: Optional[str] = None,
        image_pull_secret_content: Optional[str] = None,
    ) -> Any:
        """Create a namespace for a new application, see prepare_kubernetes_namespace."""
        return prepare_kubernetes_namespace(
            self.backend, namespace, image_pull_secret_name, image_pull_secret_content
        )

    def prepare_spark_conf(
        self,
        namespace: str,
        conf: Optional[Dict[str, str]] = None,
        app_name: Optional[str] = None,
        class_name: Optional[str] = None,
    ) -> Dict[str, str]:
        """Spark conf entries for an application running in ``namespace``."""
        return prepare_kubernetes_specific_conf(namespace, conf, app_name, class_name)

    def close(self):
        """Stop the namespace GC and close the backend."""
        if self._gc is not None:
            self._gc.stop()
        if self._backend is not None:
            self._backend.close()


def create_kubernetes_client(
    config: Optional[MonitorConfig] = None,
    context: Optional[str] = None,
    **kwargs,
) -> SparkKubernetesClient:
    """Create a SparkKubernetesClient backed by the Kubernetes API.

    Args:
        config: Monitor configuration, read from the environment when None
        context: Kubernetes context name
        **kwargs: Additional KubernetesBackendConfig parameters

    Returns:
        SparkKubernetesClient instance

    Example:
        ```python
        client = create_kubernetes_client(context="spark-cluster")
        ```
    """
    backend_config = KubernetesBackendConfig(context=context, **kwargs)
    return SparkKubernetesClient(
        config=config or MonitorConfig.from_env(), backend_config=backend_config
    )
