"""Data models for push-mtr reports."""

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
import json
from urllib.parse import unquote, urlsplit

from pushmtr.errors import ConfigurationError

DEFAULT_PORTS = {"tcp": 1883, "ssl": 8883}


@dataclass(frozen=True)
class HopRecord:
    """A single hop of an mtr report."""

    hop: int
    ip: str
    sent: int
    loss_percent: float
    last: float
    avg: float
    best: float
    worst: float
    stddev: float
    hostname: str = ""  # Always empty: mtr runs with -n


@dataclass(frozen=True)
class Location:
    """Approximate location of the probing host.

    ``Location()`` with no arguments is the unknown sentinel.
    """

    ip: str = ""
    country_code: str = ""
    country_name: str = ""
    city: str = ""
    latitude: float = 0.0
    longitude: float = 0.0

    def __post_init__(self):
        """Normalize the country code to lower case."""
        object.__setattr__(self, "country_code", (self.country_code or "").lower())

    @property
    def is_unknown(self) -> bool:
        return not (
            self.country_code
            or self.country_name
            or self.city
            or self.latitude
            or self.longitude
        )

    def with_ip(self, ip: str) -> "Location":
        return replace(self, ip=ip or "")


@dataclass(frozen=True)
class Report:
    """One complete measurement: hops, timing and probe location."""

    time: datetime
    hosts: tuple[HopRecord, ...] = ()
    elapsed: timedelta = field(default_factory=timedelta)
    location: Location | None = None

    def __post_init__(self):
        object.__setattr__(self, "hosts", tuple(self.hosts))
        if self.elapsed < timedelta(0):
            raise ValueError("elapsed must not be negative")

    @property
    def hops(self) -> int:
        """Number of hops, always equal to len(hosts)."""
        return len(self.hosts)

    def with_location(self, location: Location | None) -> "Report":
        return replace(self, location=location)


@dataclass(frozen=True)
class BrokerCandidate:
    """A configured MQTT broker endpoint.

    URL format: ``tcp://[user[:password]@]host[:port]`` or ``ssl://host[:port]``.
    """

    url: str
    scheme: str
    host: str
    port: int
    username: str | None = None
    password: str | None = None

    @property
    def is_tls(self) -> bool:
        return self.scheme == "ssl"

    @classmethod
    def from_url(cls, url: str) -> "BrokerCandidate":
        """Parse a broker URL.

        Raises:
            ConfigurationError: If the URL has no host, an unsupported
                scheme, or an invalid port.
        """
        try:
            parts = urlsplit(url.strip())
            port = parts.port
        except ValueError as e:
            raise ConfigurationError(f"Malformed broker URL {url!r}: {e}") from e

        scheme = parts.scheme.lower()
        if scheme not in DEFAULT_PORTS:
            raise ConfigurationError(f"Unsupported broker URL scheme {url!r}")
        if not parts.hostname:
            raise ConfigurationError(f"Broker URL has no host: {url!r}")

        return cls(
            url=url.strip(),
            scheme=scheme,
            host=parts.hostname,
            port=port if port is not None else DEFAULT_PORTS[scheme],
            username=unquote(parts.username) if parts.username is not None else None,
            password=unquote(parts.password) if parts.password is not None else None,
        )


# Wire schema: field names below are a published contract, keep them stable.


def hop_to_dict(hop: HopRecord) -> dict:
    return {
        "ip": hop.ip,
        "hostname": hop.hostname,
        "hop-number": hop.hop,
        "sent": hop.sent,
        "lost-percent": hop.loss_percent,
        "last": hop.last,
        "avg": hop.avg,
        "best": hop.best,
        "worst": hop.worst,
        "standard-dev": hop.stddev,
    }


def location_to_dict(location: Location) -> dict:
    return {
        "ip": location.ip,
        "country_code": location.country_code,
        "country_name": location.country_name,
        "city": location.city,
        "latitude": location.latitude,
        "longitude": location.longitude,
    }


def report_to_dict(report: Report) -> dict:
    """Convert a report to the JSON-ready wire payload.

    ``elapsed_time`` is encoded as integer nanoseconds.
    """
    elapsed_ns = (
        report.elapsed.days * 86_400_000_000_000
        + report.elapsed.seconds * 1_000_000_000
        + report.elapsed.microseconds * 1_000
    )
    return {
        "time": report.time.isoformat(),
        "hosts": [hop_to_dict(h) for h in report.hosts],
        "hops": report.hops,
        "elapsed_time": elapsed_ns,
        "location": location_to_dict(report.location) if report.location else None,
    }


def report_from_dict(data: dict) -> Report:
    """Rebuild a report from its wire payload."""
    hosts = [
        HopRecord(
            hop=int(h["hop-number"]),
            ip=h["ip"],
            hostname=h.get("hostname", ""),
            sent=int(h["sent"]),
            loss_percent=float(h["lost-percent"]),
            last=float(h["last"]),
            avg=float(h["avg"]),
            best=float(h["best"]),
            worst=float(h["worst"]),
            stddev=float(h["standard-dev"]),
        )
        for h in data.get("hosts") or []
    ]
    loc = data.get("location")
    location = None
    if loc is not None:
        location = Location(
            ip=loc.get("ip", ""),
            country_code=loc.get("country_code", ""),
            country_name=loc.get("country_name", ""),
            city=loc.get("city", ""),
            latitude=float(loc.get("latitude", 0.0)),
            longitude=float(loc.get("longitude", 0.0)),
        )
    return Report(
        time=datetime.fromisoformat(data["time"]),
        hosts=tuple(hosts),
        elapsed=timedelta(microseconds=int(data["elapsed_time"]) // 1_000),
        location=location,
    )


def report_to_json(report: Report, indent: int | None = None) -> str:
    """Serialize a report; compact unless ``indent`` is given."""
    if indent is None:
        return json.dumps(report_to_dict(report), separators=(",", ":"))
    return json.dumps(report_to_dict(report), indent=indent)
