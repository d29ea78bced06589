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

"""Background deletion of namespaces left behind by Spark applications."""

from datetime import datetime
import logging
import threading
from typing import Any, Callable, List, Optional

from sparkops.k8s.backends.base import ClusterBackend
from sparkops.k8s.config import MonitorConfig
from sparkops.k8s.utils import (
    is_resource_expired,
    is_spark_driver,
    is_spark_driver_expired,
    utc_now,
)

logger = logging.getLogger(__name__)


class NamespaceGarbageCollector:
    """Periodically deletes Spark namespaces that are no longer needed.

    A namespace under ``namespace_prefix`` is deleted when either:

    - it holds no driver pod and was created more than ``gc_ttl`` ago, or
    - every driver pod in it is finished and was created more than ``gc_ttl`` ago.

    Namespaces whose driver has not been scheduled yet are kept until their
    own TTL runs out. Scans are stateless; a failed scan is logged and the
    next one runs after ``gc_check_interval`` seconds.

    Example:
        gc = NamespaceGarbageCollector(backend, MonitorConfig(gc_ttl=3600))
        gc.start()
    """

    def __init__(
        self,
        backend: ClusterBackend,
        config: MonitorConfig,
        clock: Callable[[], datetime] = utc_now,
    ):
        """Initialize the collector without starting it.

        Args:
            backend: Shared cluster backend
            config: Shared monitor configuration
            clock: Returns the current time as an aware UTC datetime
        """
        self.backend = backend
        self.config = config
        self.clock = clock
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _should_delete(self, namespace: Any, now: datetime) -> bool:
        drivers = [
            pod
            for pod in self.backend.list_namespace_pods(namespace.metadata.name)
            if is_spark_driver(pod)
        ]
        if not drivers:
            return is_resource_expired(namespace, self.config.gc_ttl, now)
        return all(is_spark_driver_expired(driver, self.config.gc_ttl, now) for driver in drivers)

    def find_expired_namespaces(self) -> List[str]:
        """Return the names of the namespaces the next collection would delete.

        A namespace that cannot be evaluated is logged and left alone.
        """
        now = self.clock()
        names = []
        for namespace in self.backend.list_namespaces(self.config.namespace_prefix):
            try:
                if self._should_delete(namespace, now):
                    names.append(namespace.metadata.name)
            except Exception as e:
                logger.warning(f"Skipping namespace {namespace.metadata.name}: {e}")
        return names

    def collect(self) -> List[str]:
        """Run one scan and delete the expired namespaces.

        Returns:
            Names of the namespaces selected for deletion
        """
        names = self.find_expired_namespaces()
        if names:
            logger.info(f"GC outdated apps: {', '.join(names)}")
            deleted = self.backend.delete_namespaces(names)
            logger.debug(f"Deleted namespaces: {', '.join(deleted)}")
        return names

    def start(self) -> "NamespaceGarbageCollector":
        """Start the collection loop on a daemon thread."""
        if self.is_alive():
            return self

        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="kubernetesGcThread", daemon=True)
        self._thread.start()
        logger.info(
            f"Started namespace GC: prefix=[{self.config.namespace_prefix}] "
            f"| gcTtl=[{self.config.gc_ttl}s] "
            f"| gcCheckInterval=[{self.config.gc_check_interval}s]"
        )
        return self

    def stop(self, timeout: Optional[float] = None):
        """Stop the collection loop and wait for the thread to exit."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)

    def _run(self):
        while not self._stop_event.is_set():
            try:
                self.collect()
            except Exception:
                logger.exception(
                    f"Namespace GC scan failed, retrying in {self.config.gc_check_interval}s"
                )
            self._stop_event.wait(self.config.gc_check_interval)
