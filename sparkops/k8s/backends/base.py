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

"""Base backend interface for the cluster hosting Spark applications."""

import abc
import logging
from typing import Any, Dict, Iterable, List, Optional

from sparkops.k8s.models import (
    NO_LOG,
    SPARK_APP_ID_LABEL,
    SPARK_APP_TAG_LABEL,
    SPARK_ROLE_DRIVER,
    SPARK_ROLE_LABEL,
)

logger = logging.getLogger(__name__)


class ClusterBackend(abc.ABC):
    """Base class for cluster backends.

    A backend is the only shared dependency of application monitors and the
    namespace GC, so implementations must be safe to call from many threads.
    Pods and namespaces are returned as ``kubernetes.client`` model objects
    (``V1Pod``, ``V1Namespace``).
    """

    @abc.abstractmethod
    def list_pods(
        self,
        labels: Optional[Dict[str, str]] = None,
        namespace: Optional[str] = None,
    ) -> List[Any]:
        """List pods matching all given labels.

        Args:
            labels: Label equality filters
            namespace: Namespace to search, or None for all namespaces

        Returns:
            List of V1Pod objects
        """
        pass

    @abc.abstractmethod
    def list_namespaces(self, prefix: Optional[str] = None) -> List[Any]:
        """List namespaces whose name starts with ``prefix``.

        Args:
            prefix: Name prefix filter, or None for all namespaces

        Returns:
            List of V1Namespace objects
        """
        pass

    @abc.abstractmethod
    def create_namespace(self, name: str) -> Any:
        """Create a namespace and return it."""
        pass

    @abc.abstractmethod
    def delete_namespace(self, name: str) -> bool:
        """Delete a namespace.

        Args:
            name: Namespace name

        Returns:
            True if a namespace was deleted, False if it did not exist

        Raises:
            TimeoutError: If the request times out
            RuntimeError: If the request fails
        """
        pass

    @abc.abstractmethod
    def read_pod_log(self, name: str, namespace: str, tail_lines: int) -> str:
        """Read the last ``tail_lines`` lines of a pod's primary container log."""
        pass

    @abc.abstractmethod
    def create_image_pull_secret(self, namespace: str, name: str, content: str) -> Any:
        """Create a docker config secret used to pull Spark images."""
        pass

    def close(self):
        """Release connections held by the backend."""
        pass

    def delete_namespaces(self, names: Iterable[str]) -> List[str]:
        """Delete several namespaces.

        A namespace that fails to delete is logged and skipped so it cannot
        hold back the others.

        Args:
            names: Namespace names

        Returns:
            Names of the namespaces that existed and were deleted
        """
        deleted = []
        for name in names:
            try:
                if self.delete_namespace(name):
                    deleted.append(name)
            except Exception as e:
                logger.warning(f"Failed to delete namespace {name}: {e}")
        return deleted

    def list_namespace_pods(self, namespace: str) -> List[Any]:
        """List every pod in a namespace."""
        return self.list_pods(namespace=namespace)

    def select_spark_drivers(self, labels: Optional[Dict[str, str]] = None) -> List[Any]:
        """List Spark driver pods in all namespaces, narrowed by extra labels."""
        return self.list_pods({SPARK_ROLE_LABEL: SPARK_ROLE_DRIVER, **(labels or {})})

    def get_spark_driver_by_app_tag(self, app_tag: str) -> Optional[Any]:
        """Return the first driver pod labeled with ``app_tag``, if any."""
        drivers = self.select_spark_drivers({SPARK_APP_TAG_LABEL: app_tag})
        return drivers[0] if drivers else None

    def get_spark_driver_by_app_id(self, app_id: str) -> Optional[Any]:
        """Return the first driver pod labeled with ``app_id``, if any."""
        drivers = self.select_spark_drivers({SPARK_APP_ID_LABEL: app_id})
        return drivers[0] if drivers else None

    def get_spark_pods_by_app_tag(self, app_tag: str) -> List[Any]:
        """List driver and executor pods labeled with ``app_tag``."""
        return self.list_pods({SPARK_APP_TAG_LABEL: app_tag})

    def get_spark_pods_by_app_id(self, app_id: str) -> List[Any]:
        """List driver and executor pods labeled with ``app_id``."""
        return self.list_pods({SPARK_APP_ID_LABEL: app_id})

    def get_pod_log(self, pod: Any, tail_lines: int) -> List[str]:
        """Tail a pod's log as a list of lines.

        Never raises: when the log cannot be read (the pod is gone, or its
        container has not started yet) a single placeholder line is returned.

        Args:
            pod: V1Pod to read
            tail_lines: Maximum number of lines to return

        Returns:
            Log lines, oldest first
        """
        try:
            log = self.read_pod_log(pod.metadata.name, pod.metadata.namespace, tail_lines)
            return log.split("\n")
        except Exception as e:
            logger.warning(f"Cannot read log of pod {pod.metadata.namespace}/{pod.metadata.name}: {e}")
            return [NO_LOG]
