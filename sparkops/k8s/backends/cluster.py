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

"""Kubernetes API backend implementation."""

from dataclasses import dataclass
import logging
import multiprocessing
import os
from typing import Any, Callable, Dict, List, Optional

from kubernetes import client, config as k8s_config

from sparkops.k8s.backends.base import ClusterBackend
from sparkops.k8s.models import IMAGE_PULL_SECRET_DATA_KEY, IMAGE_PULL_SECRET_TYPE

logger = logging.getLogger(__name__)


DEFAULT_TIMEOUT = 60  # seconds
SERVICE_ACCOUNT_TOKEN_PATH = "/var/run/secrets/kubernetes.io/serviceaccount/token"


@dataclass
class KubernetesBackendConfig:
    """Configuration for the Kubernetes backend.

    Attributes:
        context: Kubernetes context name
        config_file: Path to kubeconfig file
        client_configuration: Custom Kubernetes client configuration
        timeout: Timeout for a single API call in seconds
    """

    context: Optional[str] = None
    config_file: Optional[str] = None
    client_configuration: Optional[client.Configuration] = None
    timeout: int = DEFAULT_TIMEOUT


class KubernetesBackend(ClusterBackend):
    """Backend talking to the Kubernetes API server through the core/v1 API.

    The underlying ``ApiClient`` is thread safe; one instance is meant to be
    created per process and shared by every monitor and the namespace GC.

    Example:
        config = KubernetesBackendConfig(context="spark-cluster")
        backend = KubernetesBackend(config)
        drivers = backend.select_spark_drivers()
    """

    def __init__(self, config: Optional[KubernetesBackendConfig] = None):
        """Initialize the Kubernetes backend.

        Args:
            config: KubernetesBackendConfig instance
        """
        self.config = config or KubernetesBackendConfig()

        # Load Kubernetes configuration
        if self.config.client_configuration is None:
            if self.config.config_file or not self._is_running_in_k8s():
                k8s_config.load_kube_config(
                    config_file=self.config.config_file, context=self.config.context
                )
            else:
                k8s_config.load_incluster_config()

        k8s_client = client.ApiClient(self.config.client_configuration)
        self.core_api = client.CoreV1Api(k8s_client)

        logger.info("Initialized KubernetesBackend")

    def _call(self, method: Callable[..., Any], description: str, **kwargs: Any) -> Any:
        """Issue an asynchronous API request and wait for it at most ``timeout`` seconds."""
        try:
            thread = method(async_req=True, **kwargs)
            return thread.get(self.config.timeout)
        except multiprocessing.TimeoutError as e:
            raise TimeoutError(f"Timeout {description}") from e

    def list_pods(
        self,
        labels: Optional[Dict[str, str]] = None,
        namespace: Optional[str] = None,
    ) -> List[Any]:
        label_selector = None
        if labels:
            label_selector = ",".join([f"{k}={v}" for k, v in labels.items()])

        where = f"namespace {namespace}" if namespace else "all namespaces"
        try:
            if namespace:
                result = self._call(
                    self.core_api.list_namespaced_pod,
                    f"listing pods in {where}",
                    namespace=namespace,
                    label_selector=label_selector,
                )
            else:
                result = self._call(
                    self.core_api.list_pod_for_all_namespaces,
                    f"listing pods in {where}",
                    label_selector=label_selector,
                )
            return list(result.items)

        except TimeoutError:
            raise
        except Exception as e:
            raise RuntimeError(f"Failed to list pods in {where}: {e}") from e

    def list_namespaces(self, prefix: Optional[str] = None) -> List[Any]:
        try:
            result = self._call(self.core_api.list_namespace, "listing namespaces")
        except TimeoutError:
            raise
        except Exception as e:
            raise RuntimeError(f"Failed to list namespaces: {e}") from e

        return [
            ns
            for ns in result.items
            if prefix is None or (ns.metadata.name or "").startswith(prefix)
        ]

    def create_namespace(self, name: str) -> Any:
        body = client.V1Namespace(metadata=client.V1ObjectMeta(name=name))
        try:
            namespace = self._call(
                self.core_api.create_namespace, f"creating namespace {name}", body=body
            )
            logger.info(f"Namespace {name} created")
            return namespace

        except TimeoutError:
            raise
        except Exception as e:
            raise RuntimeError(f"Failed to create namespace {name}: {e}") from e

    def delete_namespace(self, name: str) -> bool:
        try:
            self._call(self.core_api.delete_namespace, f"deleting namespace {name}", name=name)
            logger.info(f"Namespace {name} deleted")
            return True

        except client.exceptions.ApiException as e:
            if e.status == 404:
                logger.debug(f"Namespace {name} already deleted")
                return False
            raise RuntimeError(f"Failed to delete namespace {name}: {e}") from e
        except TimeoutError:
            raise
        except Exception as e:
            raise RuntimeError(f"Failed to delete namespace {name}: {e}") from e

    def read_pod_log(self, name: str, namespace: str, tail_lines: int) -> str:
        try:
            return self._call(
                self.core_api.read_namespaced_pod_log,
                f"reading log of pod {namespace}/{name}",
                name=name,
                namespace=namespace,
                tail_lines=tail_lines,
            )

        except TimeoutError:
            raise
        except client.exceptions.ApiException as e:
            if e.status == 404:
                raise RuntimeError(f"Pod {namespace}/{name} not found") from e
            if e.status == 400:
                # Pod exists but its container is still waiting to start
                raise RuntimeError(f"Pod {namespace}/{name} is not ready yet: {e.reason}") from e
            raise RuntimeError(f"Failed to read logs for pod {namespace}/{name}: {e}") from e
        except Exception as e:
            raise RuntimeError(f"Failed to read logs for pod {namespace}/{name}: {e}") from e

    def create_image_pull_secret(self, namespace: str, name: str, content: str) -> Any:
        """Create an image pull secret.

        Args:
            namespace: Namespace of the secret
            name: Secret name
            content: Base64 encoded docker config JSON

        Returns:
            Created V1Secret
        """
        body = client.V1Secret(
            metadata=client.V1ObjectMeta(name=name, namespace=namespace),
            type=IMAGE_PULL_SECRET_TYPE,
            data={IMAGE_PULL_SECRET_DATA_KEY: content},
        )
        try:
            secret = self._call(
                self.core_api.create_namespaced_secret,
                f"creating secret {namespace}/{name}",
                namespace=namespace,
                body=body,
            )
            logger.info(f"Image pull secret {namespace}/{name} created")
            return secret

        except TimeoutError:
            raise
        except Exception as e:
            raise RuntimeError(f"Failed to create secret {namespace}/{name}: {e}") from e

    def _is_running_in_k8s(self) -> bool:
        """Check if running inside a Kubernetes cluster.

        Returns:
            True if running in cluster, False otherwise
        """
        return os.path.exists(SERVICE_ACCOUNT_TOKEN_PATH)

    def close(self):
        """Close Kubernetes API client connections."""
        if hasattr(self, "core_api") and self.core_api.api_client:
            self.core_api.api_client.close()
