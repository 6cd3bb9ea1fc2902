"""Environment based configuration for push-mtr.

Environment Variables:
    PUSHMTR_HOST: Target host (required)
    PUSHMTR_COUNT: Report cycles passed to mtr -c (default: 10)
    PUSHMTR_REPEAT: Send a report every N seconds, 0 sends one and exits (default: 0)
    PUSHMTR_TOPIC: MQTT topic (default: /metrics/mtr)
    MQTT_URLS / PUSHMTR_BROKER_URLS: Comma separated broker URLs
    PUSHMTR_CAFILE: CA certificate used for ssl:// brokers
    PUSHMTR_INSECURE: Don't verify the broker certificate chain and host name
    PUSHMTR_CLIENT_ID: MQTT client id (default: host name)
    PUSHMTR_LOCATION: Place name to geocode as the probe location
    PUSHMTR_STDOUT: Print reports instead of publishing them
    PUSHMTR_MTR_ARGS: Extra mtr arguments, shell quoted
    PUSHMTR_MAX_CONCURRENT: Overlapping repeat cycles allowed (default: 2)
"""

import os
import shlex
from dataclasses import dataclass, field
from typing import Mapping

from pushmtr.errors import ConfigurationError
from pushmtr.transport import parse_broker_urls

DEFAULT_TOPIC = "/metrics/mtr"
DEFAULT_COUNT = 10


def _to_bool(val: str | None, default: bool = False) -> bool:
    if val is None or not val.strip():
        return default
    return val.strip().lower() in {"1", "true", "yes", "on"}


def _to_int(environ: Mapping[str, str], key: str, default: int) -> int:
    raw = environ.get(key, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{key} must be an integer, got {raw!r}") from None


@dataclass
class ProbeConfig:
    """Validated settings for a push-mtr process."""

    host: str
    count: int = DEFAULT_COUNT
    repeat: int = 0
    topic: str = DEFAULT_TOPIC
    broker_urls: list[str] = field(default_factory=list)
    cafile: str | None = None
    insecure: bool = False
    client_id: str | None = None
    location_query: str | None = None
    stdout: bool = False
    extra_args: list[str] = field(default_factory=list)
    max_concurrent: int = 2

    def __post_init__(self):
        """Validate settings, raising ConfigurationError on the first problem."""
        if not self.host or not self.host.strip():
            raise ConfigurationError("Target host is required (PUSHMTR_HOST)")
        if self.count <= 0:
            raise ConfigurationError("Report count must be positive")
        if self.repeat < 0:
            raise ConfigurationError("Repeat interval must not be negative")
        if self.max_concurrent <= 0:
            raise ConfigurationError("max_concurrent must be positive")
        if self.cafile and not os.path.isfile(self.cafile):
            raise ConfigurationError(f"Error reading CA certificate {self.cafile}")
        if not self.stdout and not self.broker_urls:
            raise ConfigurationError("No broker URLs configured (MQTT_URLS)")

    @property
    def single_shot(self) -> bool:
        return self.repeat == 0

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "ProbeConfig":
        """Build configuration from environment variables.

        Raises:
            ConfigurationError: If a value is missing or invalid
        """
        if environ is None:
            environ = os.environ

        broker_urls = environ.get("MQTT_URLS") or environ.get("PUSHMTR_BROKER_URLS")

        return cls(
            host=environ.get("PUSHMTR_HOST", "").strip(),
            count=_to_int(environ, "PUSHMTR_COUNT", DEFAULT_COUNT),
            repeat=_to_int(environ, "PUSHMTR_REPEAT", 0),
            topic=environ.get("PUSHMTR_TOPIC") or DEFAULT_TOPIC,
            broker_urls=parse_broker_urls(broker_urls),
            cafile=environ.get("PUSHMTR_CAFILE") or None,
            insecure=_to_bool(environ.get("PUSHMTR_INSECURE")),
            client_id=environ.get("PUSHMTR_CLIENT_ID") or None,
            location_query=environ.get("PUSHMTR_LOCATION") or None,
            stdout=_to_bool(environ.get("PUSHMTR_STDOUT")),
            extra_args=shlex.split(environ.get("PUSHMTR_MTR_ARGS", "")),
            max_concurrent=_to_int(environ, "PUSHMTR_MAX_CONCURRENT", 2),
        )
