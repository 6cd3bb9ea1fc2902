"""Broker URL handling and TLS pre-flight checks."""

import logging
import socket
import ssl
from typing import Callable

from pushmtr.errors import ConfigurationError
from pushmtr.models import BrokerCandidate

logger = logging.getLogger(__name__)

PROBE_TIMEOUT_SECONDS = 10.0


def parse_broker_urls(value: str | None) -> list[str]:
    """Split a comma separated broker URL list, dropping empty entries."""
    if not value:
        return []
    return [url.strip() for url in value.split(",") if url.strip()]


def new_tls_context(cafile: str | None = None, insecure: bool = False) -> ssl.SSLContext:
    """Build the client TLS context used for ``ssl://`` brokers.

    Args:
        cafile: Optional PEM bundle of trusted CA certificates
        insecure: Skip certificate chain and host name verification

    Raises:
        ConfigurationError: If the CA file cannot be read
    """
    try:
        context = ssl.create_default_context(cafile=cafile or None)
    except (OSError, ssl.SSLError) as e:
        raise ConfigurationError(f"Error reading CA certificate {cafile}: {e}") from e

    if insecure:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return context


def probe_tls(
    candidate: BrokerCandidate,
    context: ssl.SSLContext,
    timeout: float = PROBE_TIMEOUT_SECONDS,
) -> bool:
    """Connect to a broker, complete the TLS handshake and disconnect.

    MQTT clients tend to report TLS problems as a generic connection error,
    so this gives a per-broker reason before the real connection is made.
    """
    try:
        with socket.create_connection((candidate.host, candidate.port), timeout=timeout) as sock:
            with context.wrap_socket(sock, server_hostname=candidate.host) as tls_sock:
                logger.debug(
                    "TLS handshake ok: broker=%s, version=%s", candidate.url, tls_sock.version()
                )
    except (OSError, ssl.SSLError) as e:
        logger.warning("Ignoring broker %s: %s", candidate.url, e)
        return False
    return True


def select_candidates(
    urls: list[str],
    context: ssl.SSLContext | None = None,
    probe: Callable[[BrokerCandidate, ssl.SSLContext], bool] = probe_tls,
) -> list[BrokerCandidate]:
    """Turn broker URLs into usable candidates, preserving order.

    Malformed URLs are skipped with a warning. ``tcp`` brokers pass through
    unchecked; ``ssl`` brokers are kept only if the TLS probe succeeds.
    """
    if context is None:
        context = new_tls_context()

    candidates = []
    for url in urls:
        try:
            candidate = BrokerCandidate.from_url(url)
        except ConfigurationError as e:
            logger.warning("Error parsing broker url (ignored): %s", e)
            continue

        if candidate.is_tls and not probe(candidate, context):
            continue

        candidates.append(candidate)

    logger.debug("Broker candidates: %d of %d usable", len(candidates), len(urls))
    return candidates
