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

"""Lifecycle monitor for a Spark application running on Kubernetes."""

from concurrent.futures import Future
import logging
import threading
import time
import traceback
from typing import Any, List, Optional

from sparkops.k8s.backends.base import ClusterBackend
from sparkops.k8s.config import MonitorConfig
from sparkops.k8s.diagnostics import build_diagnostics
from sparkops.k8s.models import NO_LOG, SPARK_APP_ID_LABEL, AppInfo, ApplicationState
from sparkops.k8s.process import LineBufferedProcess
from sparkops.k8s.utils import is_spark_driver, map_kubernetes_state

logger = logging.getLogger(__name__)

STOPPED_BY_USER = "Session stopped by user."


class SparkAppLookupError(TimeoutError):
    """No driver pod appeared for an application tag before the lookup deadline."""


class SparkAppKilledError(RuntimeError):
    """The application was killed before its id could be resolved."""


class _MonitorStopped(Exception):
    """Raised inside the monitor thread once kill() has been requested."""


class SparkAppListener:
    """Receives notifications from a SparkKubernetesApp.

    Hooks are called from the monitor thread, one at a time and in order.
    Override the ones you need.
    """

    def app_id_known(self, app_id: str):
        pass

    def state_changed(self, old_state: ApplicationState, new_state: ApplicationState):
        pass

    def info_changed(self, app_info: AppInfo):
        pass


class SparkKubernetesApp:
    """Tracks one Spark application through the pods labeled with its tag.

    A daemon thread resolves the application id from the driver pod, then
    polls the application's pods every ``poll_interval`` seconds, mapping the
    driver phase to an ApplicationState and refreshing diagnostics, the
    driver log cache and AppInfo. The thread exits once a terminal state is
    reached.

    Example:
        app = SparkKubernetesApp("spark-1a2b", backend, MonitorConfig(), listener=listener)
        app.start()
        app_id = app.get_app_id(timeout=600)
        ...
        app.kill()
    """

    def __init__(
        self,
        app_tag: str,
        backend: ClusterBackend,
        config: MonitorConfig,
        app_id: Optional[str] = None,
        process: Optional[LineBufferedProcess] = None,
        listener: Optional[SparkAppListener] = None,
    ):
        """Initialize the monitor without starting it.

        Args:
            app_tag: Tag given to the application at submission time
            backend: Shared cluster backend
            config: Shared monitor configuration
            app_id: Application id, if already known
            process: Local spark-submit process, if any
            listener: Listener notified of id, state and info changes
        """
        self.app_tag = app_tag
        self.backend = backend
        self.config = config
        self.process = process
        self.listener = listener

        self.app_id: Optional[str] = app_id
        self.state = ApplicationState.STARTING
        self.diagnostics: List[str] = []
        self.log_cache: List[str] = []
        self.app_info = AppInfo()

        self._app_id_future: Future = Future()
        self._stop_event = threading.Event()
        self._kill_lock = threading.RLock()
        self._kill_requested = False
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self.state.is_live

    def start(self) -> "SparkKubernetesApp":
        """Launch the monitor thread and return immediately."""
        if self._thread is not None:
            raise RuntimeError(f"Monitor for {self.app_tag} already started")

        self._thread = threading.Thread(
            target=self._run, name=f"kubernetesAppMonitorThread-{self.app_tag}", daemon=True
        )
        self._thread.start()
        return self

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the monitor thread to exit.

        Returns:
            True if the thread has exited
        """
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def get_app_id(self, timeout: Optional[float] = None) -> str:
        """Block until the application id is resolved.

        Args:
            timeout: Seconds to wait, or None to wait for the lookup to finish

        Returns:
            Application id

        Raises:
            SparkAppLookupError: If no driver pod appeared before the lookup deadline
            SparkAppKilledError: If the application was killed before its id was known
            concurrent.futures.TimeoutError: If ``timeout`` elapsed first
        """
        return self._app_id_future.result(timeout)

    def log(self) -> List[str]:
        """Return the cached driver log, local process output and diagnostics."""
        lines = ["stdout: "]
        lines.extend(self.log_cache)
        lines.append("\nstderr: ")
        if self.process is not None:
            lines.extend(self.process.input_lines)
            lines.extend(self.process.error_lines)
        lines.append("\nKubernetes Diagnostics: ")
        lines.extend(self.diagnostics)
        return lines

    def kill(self):
        """Delete the application's namespace and stop monitoring.

        No-op unless the application is live. A second call, concurrent or
        not, does nothing. The local process is destroyed and the monitor
        thread stopped even if the delete fails. A monitor that was never
        started moves to KILLED immediately.
        """
        with self._kill_lock:
            if not self.is_running or self._kill_requested:
                return
            self._kill_requested = True
            # Set before deleting so a poll cannot observe the emptied namespace
            self._stop_event.set()

            try:
                self.backend.delete_namespace(self.app_tag)
            except TimeoutError:
                logger.warning(
                    f"Deleting a session while its Kubernetes application {self.app_tag} is not found."
                )
            finally:
                if self.process is not None:
                    self.process.destroy()
                if self._thread is None:
                    self._stopped_by_user()

    def poll(self):
        """Refresh state, diagnostics, log cache and AppInfo once.

        Raises:
            Exception: Any backend failure, left to the caller
        """
        pods = self.backend.get_spark_pods_by_app_tag(self.app_tag)
        if self._stop_event.is_set():
            raise _MonitorStopped()

        driver = next((pod for pod in pods if is_spark_driver(pod)), None)
        self.diagnostics = build_diagnostics(pods)

        phase = driver.status.phase if driver is not None and driver.status else None
        self._change_state(map_kubernetes_state(phase))

        if driver is not None:
            self.log_cache = self.backend.get_pod_log(driver, self.config.log_cache_size)
        else:
            self.log_cache = [NO_LOG]

        latest_app_info = self._build_app_info(driver)
        if latest_app_info != self.app_info:
            self._notify("info_changed", latest_app_info)
            self.app_info = latest_app_info

    def _build_app_info(self, driver: Optional[Any]) -> AppInfo:
        history_server_url = None
        if self.config.history_server_url:
            history_server_url = f"{self.config.history_server_url}/history/{self.app_id}/jobs/"

        spark_ui_url = None
        if driver is not None:
            proxy_url = self.config.proxy_url or ""
            spark_ui_url = (
                f"{proxy_url}/{driver.metadata.namespace}/{driver.metadata.name}-svc/jobs/"
            )

        return AppInfo(spark_ui_url=spark_ui_url, history_server_url=history_server_url)

    def _change_state(self, new_state: ApplicationState, after_kill: bool = False):
        # Listeners see the transition before the state field moves
        with self._kill_lock:
            if self.state == new_state or self.state.is_terminal:
                return
            # Once killed, only KILLED may be published unless the caller says otherwise
            if self._kill_requested and new_state != ApplicationState.KILLED and not after_kill:
                return
            self._notify("state_changed", self.state, new_state)
            self.state = new_state

    def _notify(self, hook: str, *args: Any):
        if self.listener is None:
            return
        try:
            getattr(self.listener, hook)(*args)
        except Exception:
            logger.exception(f"Listener {hook} failed for application {self.app_tag}")

    def _sleep(self, seconds: float):
        if self._stop_event.wait(seconds):
            raise _MonitorStopped()

    def _resolve_app_id(self) -> str:
        timeout = self.config.app_lookup_timeout
        deadline = time.monotonic() + timeout

        while True:
            if self._stop_event.is_set():
                raise _MonitorStopped()

            try:
                driver = self.backend.get_spark_driver_by_app_tag(self.app_tag)
            except Exception as e:
                logger.warning(f"Looking up driver of {self.app_tag} failed, retrying: {e}")
                driver = None

            if driver is not None:
                app_id = (driver.metadata.labels or {}).get(SPARK_APP_ID_LABEL)
                if not app_id:
                    raise RuntimeError(
                        f"Driver pod {driver.metadata.namespace}/{driver.metadata.name} "
                        f"has no {SPARK_APP_ID_LABEL} label"
                    )
                return app_id

            if time.monotonic() >= deadline:
                error = SparkAppLookupError(
                    f"No Kubernetes application is found with tag {self.app_tag} in "
                    f"{timeout:g} seconds. Please check your cluster status, it may be very busy."
                )
                try:
                    self.kill()
                except Exception as e:
                    logger.warning(f"Failed to delete namespace of {self.app_tag}: {e}")
                    raise error from e
                raise error
            self._sleep(self.config.poll_interval)

    def _run(self):
        try:
            try:
                app_id = self.app_id or self._resolve_app_id()
            except _MonitorStopped:
                self._app_id_future.set_exception(
                    SparkAppKilledError(f"Application {self.app_tag} was killed before it started")
                )
                raise
            except Exception as e:
                self._app_id_future.set_exception(e)
                raise

            self.app_id = app_id
            self._app_id_future.set_result(app_id)
            threading.current_thread().name = f"kubernetesAppMonitorThread-{app_id}"
            self._notify("app_id_known", app_id)

            failures = 0
            while self.is_running:
                self._sleep(self.config.poll_interval)
                try:
                    self.poll()
                    failures = 0
                except _MonitorStopped:
                    raise
                except Exception as e:
                    failures += 1
                    if failures > self.config.max_poll_failures:
                        raise
                    logger.warning(
                        f"Polling application {self.app_tag} failed "
                        f"({failures}/{self.config.max_poll_failures}), retrying: {e}"
                    )

        except _MonitorStopped:
            self._stopped_by_user()
        except Exception as e:
            # A lookup timeout kills the application itself but still ends FAILED
            lookup_failed = isinstance(e, SparkAppLookupError)
            if self._kill_requested and not lookup_failed:
                self._stopped_by_user()
                return
            logger.error(f"Error while refreshing Kubernetes state of {self.app_tag}: {e}")
            self.diagnostics = [str(e)] + "".join(
                traceback.format_exception(type(e), e, e.__traceback__)
            ).splitlines()
            self._change_state(ApplicationState.FAILED, after_kill=lookup_failed)

    def _stopped_by_user(self):
        self.diagnostics = [STOPPED_BY_USER]
        self._change_state(ApplicationState.KILLED)
