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

"""Shared fixtures: an in-memory cluster backend and pod/namespace builders."""

from datetime import datetime, timedelta, timezone
import threading
from typing import Any, Dict, List, Optional

from kubernetes import client
import pytest

from sparkops.k8s.backends.base import ClusterBackend
from sparkops.k8s.models import (
    SPARK_APP_ID_LABEL,
    SPARK_APP_TAG_LABEL,
    SPARK_ROLE_DRIVER,
    SPARK_ROLE_LABEL,
)

NOW = datetime(2025, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_pod(
    name: str,
    namespace: str = "spark-ns",
    phase: Optional[str] = "Running",
    role: Optional[str] = SPARK_ROLE_DRIVER,
    app_tag: Optional[str] = None,
    app_id: Optional[str] = None,
    age: timedelta = timedelta(0),
    waiting_reason: Optional[str] = None,
) -> client.V1Pod:
    labels: Dict[str, str] = {}
    if role:
        labels[SPARK_ROLE_LABEL] = role
    if app_tag:
        labels[SPARK_APP_TAG_LABEL] = app_tag
    if app_id:
        labels[SPARK_APP_ID_LABEL] = app_id

    container_statuses = None
    if waiting_reason:
        container_statuses = [
            client.V1ContainerStatus(
                name="spark-kubernetes-driver",
                image="apache/spark:3.5.0",
                image_id="",
                ready=False,
                restart_count=3,
                state=client.V1ContainerState(
                    waiting=client.V1ContainerStateWaiting(reason=waiting_reason)
                ),
            )
        ]

    return client.V1Pod(
        metadata=client.V1ObjectMeta(
            name=name,
            namespace=namespace,
            labels=labels,
            creation_timestamp=NOW - age,
        ),
        spec=client.V1PodSpec(
            node_name="node-1",
            containers=[
                client.V1Container(
                    name="spark-kubernetes-driver",
                    image="apache/spark:3.5.0",
                    args=["driver"],
                    resources=client.V1ResourceRequirements(
                        requests={"cpu": "1", "memory": "1Gi"},
                        limits={"memory": "2Gi"},
                    ),
                )
            ],
        ),
        status=client.V1PodStatus(
            phase=phase,
            pod_ip="10.0.0.7",
            container_statuses=container_statuses,
            conditions=[client.V1PodCondition(type="Ready", status="True")],
        ),
    )


def make_namespace(name: str, age: timedelta = timedelta(0)) -> client.V1Namespace:
    return client.V1Namespace(
        metadata=client.V1ObjectMeta(name=name, creation_timestamp=NOW - age)
    )


class FakeClusterBackend(ClusterBackend):
    """In-memory cluster: namespaces plus the pods placed in them."""

    def __init__(self):
        self.namespaces: Dict[str, client.V1Namespace] = {}
        self.pods: List[client.V1Pod] = []
        self.logs: Dict[str, str] = {}
        self.secrets: List[tuple] = []
        self.deleted: List[str] = []
        self.delete_error: Optional[Exception] = None
        self.delete_errors: Dict[str, Exception] = {}
        self.list_error: Optional[Exception] = None
        self.closed = False
        self._lock = threading.Lock()

    def add_namespace(self, name: str, age: timedelta = timedelta(0)) -> client.V1Namespace:
        namespace = make_namespace(name, age)
        self.namespaces[name] = namespace
        return namespace

    def add_pod(self, pod: client.V1Pod) -> client.V1Pod:
        self.pods.append(pod)
        return pod

    def set_phase(self, name: str, phase: str):
        for pod in self.pods:
            if pod.metadata.name == name:
                pod.status.phase = phase

    def list_pods(
        self,
        labels: Optional[Dict[str, str]] = None,
        namespace: Optional[str] = None,
    ) -> List[Any]:
        if self.list_error is not None:
            raise self.list_error
        with self._lock:
            return [
                pod
                for pod in self.pods
                if (namespace is None or pod.metadata.namespace == namespace)
                and all((pod.metadata.labels or {}).get(k) == v for k, v in (labels or {}).items())
            ]

    def list_namespaces(self, prefix: Optional[str] = None) -> List[Any]:
        if self.list_error is not None:
            raise self.list_error
        return [
            ns for name, ns in self.namespaces.items() if prefix is None or name.startswith(prefix)
        ]

    def create_namespace(self, name: str) -> Any:
        return self.add_namespace(name)

    def delete_namespace(self, name: str) -> bool:
        with self._lock:
            self.deleted.append(name)
            if self.delete_error is not None:
                raise self.delete_error
            if name in self.delete_errors:
                raise self.delete_errors[name]
            existed = self.namespaces.pop(name, None) is not None
            self.pods = [pod for pod in self.pods if pod.metadata.namespace != name]
            return existed

    def read_pod_log(self, name: str, namespace: str, tail_lines: int) -> str:
        if name not in self.logs:
            raise RuntimeError(f"Pod {namespace}/{name} is not ready yet")
        return "\n".join(self.logs[name].split("\n")[-tail_lines:])

    def create_image_pull_secret(self, namespace: str, name: str, content: str) -> Any:
        self.secrets.append((namespace, name, content))
        return name

    def close(self):
        self.closed = True


@pytest.fixture
def backend() -> FakeClusterBackend:
    return FakeClusterBackend()


@pytest.fixture
def pod_factory():
    return make_pod


@pytest.fixture
def now() -> datetime:
    return NOW
