"""Process-wide configuration for application monitors and namespace GC."""

from dataclasses import dataclass
import os
import re
from typing import Mapping, Optional, Union

ENV_PREFIX = "SPARK_K8S_"

_DURATION_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h|d)?\s*$", re.IGNORECASE)
_DURATION_UNITS = {
    "ms": 0.001,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
    "d": 86400.0,
}


def parse_duration(value: Union[str, int, float]) -> float:
    """Parse a duration into seconds.

    Args:
        value: Number of seconds, or a string with an optional unit suffix

    Returns:
        Duration in seconds

    Raises:
        ValueError: If the value cannot be parsed

    Example:
        >>> parse_duration("15s")
        15.0
        >>> parse_duration("500ms")
        0.5
        >>> parse_duration("2h")
        7200.0
    """
    if isinstance(value, (int, float)):
        return float(value)

    match = _DURATION_PATTERN.match(value)
    if not match:
        raise ValueError(f"Invalid duration: '{value}'")

    amount, unit = match.groups()
    return float(amount) * _DURATION_UNITS[(unit or "s").lower()]


@dataclass(frozen=True)
class MonitorConfig:
    """Settings shared by every SparkKubernetesApp and the namespace GC.

    Built once at start-up and passed to each component; never mutated
    afterwards.

    Attributes:
        log_cache_size: Number of driver log lines kept per application
        namespace_prefix: Prefix of namespaces created for Spark applications
        gc_ttl: Seconds after creation before an idle namespace may be deleted
        gc_check_interval: Seconds between two namespace GC scans
        poll_interval: Seconds between two polls of an application's pods
        app_lookup_timeout: Seconds to wait for the driver pod to appear
        history_server_url: Base URL of the Spark History Server
        proxy_url: Base URL of the proxy exposing driver UI services
        max_poll_failures: Consecutive failed polls tolerated before FAILED
    """

    log_cache_size: int = 200
    namespace_prefix: str = "spark-"
    gc_ttl: float = 3600.0
    gc_check_interval: float = 60.0
    poll_interval: float = 5.0
    app_lookup_timeout: float = 600.0
    history_server_url: Optional[str] = None
    proxy_url: Optional[str] = None
    max_poll_failures: int = 0

    def __post_init__(self):
        if self.log_cache_size <= 0:
            raise ValueError(f"log_cache_size must be positive, got {self.log_cache_size}")
        if self.gc_ttl < 0:
            raise ValueError(f"gc_ttl must not be negative, got {self.gc_ttl}")
        if self.gc_check_interval <= 0:
            raise ValueError(
                f"gc_check_interval must be positive, got {self.gc_check_interval}"
            )
        if self.poll_interval <= 0:
            raise ValueError(f"poll_interval must be positive, got {self.poll_interval}")
        if self.app_lookup_timeout < 0:
            raise ValueError(
                f"app_lookup_timeout must not be negative, got {self.app_lookup_timeout}"
            )
        if self.max_poll_failures < 0:
            raise ValueError(
                f"max_poll_failures must not be negative, got {self.max_poll_failures}"
            )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "MonitorConfig":
        """Build a config from ``SPARK_K8S_*`` environment variables.

        Unset variables keep their defaults. Durations accept the suffixes
        understood by :func:`parse_duration`.

        Args:
            environ: Mapping to read instead of ``os.environ``

        Returns:
            MonitorConfig instance

        Raises:
            ValueError: If a variable holds an invalid value
        """
        env = os.environ if environ is None else environ
        kwargs = {}

        def get(name: str) -> Optional[str]:
            value = env.get(f"{ENV_PREFIX}{name}")
            return value if value else None

        if get("LOGS_SIZE") is not None:
            kwargs["log_cache_size"] = int(get("LOGS_SIZE"))
        if get("NAMESPACE_PREFIX") is not None:
            kwargs["namespace_prefix"] = get("NAMESPACE_PREFIX")
        if get("GC_TTL") is not None:
            kwargs["gc_ttl"] = parse_duration(get("GC_TTL"))
        if get("GC_CHECK_INTERVAL") is not None:
            kwargs["gc_check_interval"] = parse_duration(get("GC_CHECK_INTERVAL"))
        if get("POLL_INTERVAL") is not None:
            kwargs["poll_interval"] = parse_duration(get("POLL_INTERVAL"))
        if get("APP_LOOKUP_TIMEOUT") is not None:
            kwargs["app_lookup_timeout"] = parse_duration(get("APP_LOOKUP_TIMEOUT"))
        if get("HISTORY_SERVER_URL") is not None:
            kwargs["history_server_url"] = get("HISTORY_SERVER_URL")
        if get("PROXY_URL") is not None:
            kwargs["proxy_url"] = get("PROXY_URL")
        if get("MAX_POLL_FAILURES") is not None:
            kwargs["max_poll_failures"] = int(get("MAX_POLL_FAILURES"))

        return cls(**kwargs)
