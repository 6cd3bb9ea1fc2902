"""Geolocation of the probing host via GeoIP and Nominatim lookups."""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Protocol

import httpx

from pushmtr.errors import LocationResolutionError
from pushmtr.models import Location

logger = logging.getLogger(__name__)

DEFAULT_GEOIP_URL = "https://ipapi.co/json/"
DEFAULT_NOMINATIM_SERVER = "https://nominatim.openstreetmap.org/"
DEFAULT_LANGUAGE = "en-US"
USER_AGENT = "push-mtr/0.3 (network path probe)"

RETRY_ATTEMPTS = 2
RETRY_PAUSE_SECONDS = 2.0


class IPLocationSource(Protocol):
    def lookup(self) -> Location:
        ...


class NameLocationSource(Protocol):
    def search(self, query: str) -> Location | None:
        ...


class GeoIPSource:
    """Looks up the public address of this host with a freegeoip-style API."""

    def __init__(
        self,
        url: str = DEFAULT_GEOIP_URL,
        client: httpx.Client | None = None,
        timeout: float = 10.0,
    ):
        self.url = url
        self._client = client or httpx.Client(
            timeout=httpx.Timeout(timeout), headers={"User-Agent": USER_AGENT}
        )

    def lookup(self) -> Location:
        resp = self._client.get(self.url)
        resp.raise_for_status()
        data = resp.json()
        # ipapi.co reports quota and lookup failures with HTTP 200
        if data.get("error"):
            raise ValueError(f"GeoIP lookup failed: {data.get('reason') or 'unknown error'}")
        return Location(
            ip=data.get("ip") or "",
            country_code=data.get("country_code") or "",
            country_name=data.get("country_name") or "",
            city=data.get("city") or "",
            latitude=float(data.get("latitude") or 0.0),
            longitude=float(data.get("longitude") or 0.0),
        )


class NominatimSource:
    """Geocodes a free-text place name with OpenStreetMap Nominatim.

    Only the best match is used. Nominatim never reports an IP address.
    """

    def __init__(
        self,
        server: str = DEFAULT_NOMINATIM_SERVER,
        client: httpx.Client | None = None,
        timeout: float = 10.0,
        language: str = DEFAULT_LANGUAGE,
    ):
        self.server = server.rstrip("/")
        self.language = language
        self._client = client or httpx.Client(
            timeout=httpx.Timeout(timeout), headers={"User-Agent": USER_AGENT}
        )

    def search(self, query: str) -> Location | None:
        resp = self._client.get(
            f"{self.server}/search",
            params={
                "q": query,
                "format": "json",
                "addressdetails": 1,
                "limit": 1,
                "accept-language": self.language,
            },
        )
        resp.raise_for_status()
        results = resp.json()
        if not results:
            return None

        best = results[0]
        address = best.get("address") or {}
        city = address.get("city") or address.get("town") or address.get("village") or ""
        return Location(
            country_code=address.get("country_code") or "",
            country_name=address.get("country") or "",
            city=city,
            latitude=float(best.get("lat") or 0.0),
            longitude=float(best.get("lon") or 0.0),
        )


def fetch_with_retry(
    fetch: Callable[[], Location | None],
    attempts: int = RETRY_ATTEMPTS,
    pause: float = RETRY_PAUSE_SECONDS,
    name: str = "location source",
) -> Location | None:
    """Call ``fetch`` until it returns a location or attempts run out.

    Failures, including an empty result, are retried after ``pause`` seconds.

    Returns:
        The first successful Location, or None once all attempts failed
    """
    for attempt in range(1, attempts + 1):
        try:
            result = fetch()
            if result is not None:
                return result
            logger.debug("%s returned no result (attempt %d/%d)", name, attempt, attempts)
        except (httpx.HTTPError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.debug("%s failed (attempt %d/%d): %s", name, attempt, attempts, e)

        if attempt < attempts:
            time.sleep(pause)

    logger.warning("%s gave up after %d attempts", name, attempts)
    return None


class LocationResolver:
    """Resolves the probe location from the GeoIP and Nominatim sources.

    Both lookups run concurrently and are joined: the resolver waits for
    both to finish (or exhaust their retries) before merging.
    """

    def __init__(
        self,
        ip_source: IPLocationSource | None = None,
        name_source: NameLocationSource | None = None,
        attempts: int = RETRY_ATTEMPTS,
        pause: float = RETRY_PAUSE_SECONDS,
    ):
        self.ip_source = ip_source if ip_source is not None else GeoIPSource()
        self.name_source = name_source if name_source is not None else NominatimSource()
        self.attempts = attempts
        self.pause = pause

    def _lookup_ip(self) -> Location | None:
        return fetch_with_retry(self.ip_source.lookup, self.attempts, self.pause, "GeoIP lookup")

    def _search_name(self, query: str) -> Location | None:
        return fetch_with_retry(
            lambda: self.name_source.search(query), self.attempts, self.pause, "Nominatim search"
        )

    def resolve(self, query: str | None = None) -> Location:
        """Resolve the probe location.

        Args:
            query: Optional place name; when given its geocoded location is
                used, with the IP taken from the GeoIP lookup

        Returns:
            Merged Location; ``Location()`` when GeoIP failed and no query was given

        Raises:
            LocationResolutionError: If a query was given and geocoding found nothing
        """
        query = (query or "").strip()

        if not query:
            iploc = self._lookup_ip()
            return iploc if iploc is not None else Location()

        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="geoip") as pool:
            ip_future = pool.submit(self._lookup_ip)
            name_future = pool.submit(self._search_name, query)
            iploc = ip_future.result()
            named = name_future.result()

        if named is None:
            raise LocationResolutionError(f"Geocoding of location {query!r} failed")

        return named.with_ip(iploc.ip if iploc is not None else "")
