"""Data models for Spark applications monitored on Kubernetes."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

# Labels set by spark-submit on every pod it creates
SPARK_APP_ID_LABEL = "spark-app-selector"
SPARK_APP_TAG_LABEL = "spark-app-tag"
SPARK_ROLE_LABEL = "spark-role"
SPARK_ROLE_DRIVER = "driver"

IMAGE_PULL_SECRET_TYPE = "kubernetes.io/dockerconfigjson"
IMAGE_PULL_SECRET_DATA_KEY = ".dockerconfigjson"

NO_LOG = "No log..."


class ApplicationState(Enum):
    """Application-level states derived from the driver pod phase."""

    STARTING = "STARTING"
    RUNNING = "RUNNING"
    FINISHED = "FINISHED"
    FAILED = "FAILED"
    KILLED = "KILLED"

    @property
    def is_live(self) -> bool:
        return self in LIVE_STATES

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


LIVE_STATES = frozenset({ApplicationState.STARTING, ApplicationState.RUNNING})
TERMINAL_STATES = frozenset(
    {ApplicationState.FINISHED, ApplicationState.FAILED, ApplicationState.KILLED}
)


@dataclass(frozen=True)
class AppInfo:
    """Links derived from the driver pod and the configured UI endpoints.

    Attributes:
        spark_ui_url: Spark UI of the running driver, served through the proxy
        history_server_url: Spark History Server page for the application
    """

    spark_ui_url: Optional[str] = None
    history_server_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using the field names REST clients expect."""
        return {
            "sparkUiUrl": self.spark_ui_url,
            "historyServerUrl": self.history_server_url,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppInfo":
        """Create AppInfo from a dictionary in either naming style.

        Args:
            data: Dictionary with ``sparkUiUrl``/``historyServerUrl`` keys

        Returns:
            AppInfo instance
        """
        return cls(
            spark_ui_url=data.get("sparkUiUrl", data.get("spark_ui_url")),
            history_server_url=data.get("historyServerUrl", data.get("history_server_url")),
        )
