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

"""Unit tests for state mapping and expiry helpers."""

from datetime import datetime, timedelta, timezone

import pytest

from sparkops.k8s.models import ApplicationState
from sparkops.k8s.utils import (
    is_expired,
    is_resource_expired,
    is_spark_driver,
    is_spark_driver_expired,
    is_spark_driver_finished,
    map_kubernetes_state,
    parse_creation_time,
)


class TestMapKubernetesState:
    """Tests for the pod phase to ApplicationState mapping."""

    @pytest.mark.parametrize(
        "phase,expected",
        [
            ("Pending", ApplicationState.STARTING),
            ("ContainerCreating", ApplicationState.STARTING),
            ("Running", ApplicationState.RUNNING),
            ("Completed", ApplicationState.FINISHED),
            ("Succeeded", ApplicationState.FINISHED),
            ("Failed", ApplicationState.FAILED),
            ("Error", ApplicationState.FAILED),
            ("RUNNING", ApplicationState.RUNNING),
            ("pending", ApplicationState.STARTING),
        ],
    )
    def test_known_phases(self, phase, expected):
        """Test that known phases map case-insensitively."""
        assert map_kubernetes_state(phase) == expected

    @pytest.mark.parametrize("phase", [None, "", "Unknown", "Terminating", "%$#garbled", 42, ["Running"]])
    def test_unreadable_or_unknown_phase_is_killed(self, phase):
        """Test that anything unrecognized degrades to KILLED without raising."""
        assert map_kubernetes_state(phase) == ApplicationState.KILLED

    def test_live_and_terminal_states(self):
        """Test that only STARTING and RUNNING are live."""
        assert ApplicationState.STARTING.is_live
        assert ApplicationState.RUNNING.is_live
        for state in (ApplicationState.FINISHED, ApplicationState.FAILED, ApplicationState.KILLED):
            assert state.is_terminal
            assert not state.is_live


class TestIsExpired:
    """Tests for the time-to-live check."""

    created = datetime(2025, 1, 1, 0, 0, 0, tzinfo=timezone.utc)

    def test_boundary_is_inclusive(self):
        """Test that a resource expires exactly at creation + ttl."""
        now = self.created + timedelta(minutes=5)
        assert is_expired(self.created, timedelta(minutes=5), now)

    def test_just_before_boundary(self):
        """Test that a resource is not expired one microsecond before the TTL."""
        now = self.created + timedelta(minutes=5) - timedelta(microseconds=1)
        assert not is_expired(self.created, timedelta(minutes=5), now)

    def test_ttl_in_seconds(self):
        """Test that a numeric TTL is read as seconds."""
        assert is_expired(self.created, 300, self.created + timedelta(seconds=300))
        assert not is_expired(self.created, 301, self.created + timedelta(seconds=300))

    def test_zero_ttl(self):
        """Test that a zero TTL expires immediately."""
        assert is_expired(self.created, 0, self.created)

    def test_naive_datetimes_are_utc(self):
        """Test that naive datetimes are compared as UTC."""
        naive_created = datetime(2025, 1, 1, 0, 0, 0)
        now = datetime(2025, 1, 1, 0, 10, 0, tzinfo=timezone.utc)
        assert is_expired(naive_created, timedelta(minutes=10), now)

    def test_other_timezones_are_normalized(self):
        """Test that aware datetimes in other zones compare on the same clock."""
        plus_two = timezone(timedelta(hours=2))
        created = datetime(2025, 1, 1, 2, 0, 0, tzinfo=plus_two)  # 00:00 UTC
        now = datetime(2025, 1, 1, 0, 5, 0, tzinfo=timezone.utc)
        assert is_expired(created, timedelta(minutes=5), now)


class TestResourceHelpers:
    """Tests for helpers reading Kubernetes objects."""

    def test_parse_creation_time(self, pod_factory, now):
        """Test that the creation timestamp is returned in UTC."""
        pod = pod_factory("driver", age=timedelta(minutes=3))
        assert parse_creation_time(pod) == now - timedelta(minutes=3)

    def test_parse_creation_time_from_string(self, pod_factory):
        """Test that RFC 3339 strings are parsed."""
        pod = pod_factory("driver")
        pod.metadata.creation_timestamp = "2025-06-01T10:00:00Z"
        assert parse_creation_time(pod) == datetime(2025, 6, 1, 10, 0, 0, tzinfo=timezone.utc)

    def test_parse_creation_time_missing(self, pod_factory):
        """Test that a missing timestamp is rejected."""
        pod = pod_factory("driver")
        pod.metadata.creation_timestamp = None
        with pytest.raises(ValueError, match="no creation timestamp"):
            parse_creation_time(pod)

    def test_is_resource_expired(self, pod_factory, now):
        """Test expiry of a Kubernetes object."""
        pod = pod_factory("driver", age=timedelta(minutes=10))
        assert is_resource_expired(pod, timedelta(minutes=5), now)
        assert not is_resource_expired(pod, timedelta(minutes=15), now)

    def test_is_spark_driver(self, pod_factory):
        """Test detection of driver pods through the role label."""
        assert is_spark_driver(pod_factory("driver"))
        assert not is_spark_driver(pod_factory("exec-1", role="executor"))
        assert not is_spark_driver(pod_factory("other", role=None))


class TestDriverFinished:
    """Tests for detecting finished driver pods."""

    @pytest.mark.parametrize("phase", ["Completed", "Error", "Failed", "Succeeded", "CrashLoopBackOff"])
    def test_finished_phases(self, pod_factory, phase):
        """Test that terminal and back-off phases count as finished."""
        assert is_spark_driver_finished(pod_factory("driver", phase=phase))

    @pytest.mark.parametrize("phase", ["Pending", "Running", "Unknown", None])
    def test_unfinished_phases(self, pod_factory, phase):
        """Test that live or unknown phases do not count as finished."""
        assert not is_spark_driver_finished(pod_factory("driver", phase=phase))

    def test_crash_loop_back_off_container(self, pod_factory):
        """Test that a container waiting in CrashLoopBackOff counts as finished."""
        pod = pod_factory("driver", phase="Running", waiting_reason="CrashLoopBackOff")
        assert is_spark_driver_finished(pod)

    def test_container_creating_is_not_finished(self, pod_factory):
        """Test that a container waiting for creation is not finished."""
        pod = pod_factory("driver", phase="Pending", waiting_reason="ContainerCreating")
        assert not is_spark_driver_finished(pod)

    def test_driver_expired_needs_age_and_completion(self, pod_factory, now):
        """Test that an expired driver is both old and finished."""
        ttl = timedelta(minutes=5)
        assert is_spark_driver_expired(pod_factory("d", phase="Completed", age=ttl), ttl, now)
        assert not is_spark_driver_expired(
            pod_factory("d", phase="Completed", age=timedelta(minutes=1)), ttl, now
        )
        assert not is_spark_driver_expired(
            pod_factory("d", phase="Running", age=timedelta(days=1)), ttl, now
        )
