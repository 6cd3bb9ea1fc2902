"""Report publishers: MQTT broker delivery and local stdout output."""

import logging
import socket
import ssl
import sys
import threading
from typing import Callable, Protocol, TextIO

import paho.mqtt.client as mqtt

from pushmtr.errors import DeliveryError
from pushmtr.models import BrokerCandidate, Report, report_to_json

logger = logging.getLogger(__name__)

QOS_AT_LEAST_ONCE = 1
WRITE_TIMEOUT_SECONDS = 10.0
KEEPALIVE_SECONDS = 60


class Publisher(Protocol):
    """Protocol defining the interface for report publishers."""

    def publish(self, report: Report) -> None:
        """Deliver one report, raising DeliveryError on failure."""
        ...

    def close(self) -> None:
        ...


class StdoutPublisher:
    """Prints reports as indented JSON instead of sending them."""

    def __init__(self, stream: TextIO | None = None):
        self.stream = stream if stream is not None else sys.stdout

    def publish(self, report: Report) -> None:
        self.stream.write(report_to_json(report, indent=2) + "\n")
        self.stream.flush()

    def close(self) -> None:
        pass


def default_client_factory(client_id: str) -> mqtt.Client:
    return mqtt.Client(
        mqtt.CallbackAPIVersion.VERSION2,
        client_id=client_id,
        clean_session=True,
    )


class MqttPublisher:
    """Publishes compact JSON reports to an MQTT topic with QoS 1.

    The first candidate that accepts a connection is used. The connected
    client is reused by later publishes until a publish fails, after which
    the next publish reconnects starting again from the first candidate.
    When every candidate was rejected by the TLS pre-flight, ``reselect``
    is called on the next publish to run the pre-flight again.
    """

    def __init__(
        self,
        candidates: list[BrokerCandidate],
        topic: str,
        client_id: str | None = None,
        tls_context: ssl.SSLContext | None = None,
        insecure: bool = False,
        write_timeout: float = WRITE_TIMEOUT_SECONDS,
        client_factory: Callable[[str], mqtt.Client] = default_client_factory,
        reselect: Callable[[], list[BrokerCandidate]] | None = None,
    ):
        """Initialize MQTT publisher.

        Args:
            candidates: Brokers to try, in order
            topic: Topic the reports are published to
            client_id: MQTT client id; defaults to the host name
            tls_context: TLS context used for ``ssl://`` brokers
            insecure: Disable TLS host name checks on the client
            write_timeout: Seconds to wait for CONNACK and for PUBACK
            client_factory: Builds a paho client for a client id
            reselect: Re-runs broker selection when no candidate is usable
        """
        self.candidates = list(candidates)
        self.topic = topic
        self.client_id = client_id or socket.gethostname()
        self.tls_context = tls_context
        self.insecure = insecure
        self.write_timeout = write_timeout
        self._client_factory = client_factory
        self._reselect = reselect

        self._client = None
        self._broker = None
        self._lock = threading.Lock()

        logger.debug("MqttPublisher initialized: client_id=%s, topic=%s", self.client_id, topic)

    @property
    def broker(self) -> BrokerCandidate | None:
        """Broker of the current connection, if any."""
        return self._broker

    def _connect_to(self, candidate: BrokerCandidate) -> mqtt.Client:
        client = self._client_factory(self.client_id)
        if candidate.username:
            client.username_pw_set(candidate.username, candidate.password)
        if candidate.is_tls:
            if self.tls_context is not None:
                client.tls_set_context(self.tls_context)
            else:
                client.tls_set_context(ssl.create_default_context())
            if self.insecure:
                client.tls_insecure_set(True)

        connected = threading.Event()
        outcome = {}

        def on_connect(client, userdata, flags, reason_code, properties):
            outcome["reason_code"] = reason_code
            connected.set()

        client.on_connect = on_connect
        client.connect(candidate.host, candidate.port, keepalive=KEEPALIVE_SECONDS)
        client.loop_start()

        if not connected.wait(self.write_timeout):
            self._shutdown(client)
            raise TimeoutError(f"no CONNACK within {self.write_timeout:.0f}s")

        reason_code = outcome["reason_code"]
        if reason_code.is_failure:
            self._shutdown(client)
            raise ConnectionRefusedError(f"broker refused connection: {reason_code}")

        return client

    def _connect(self) -> mqtt.Client:
        if not self.candidates and self._reselect is not None:
            logger.info("No usable broker left, repeating broker pre-flight")
            self.candidates = list(self._reselect())

        if not self.candidates:
            raise DeliveryError("Connection to the broker(s) failed: no usable broker URL")

        errors = []
        for candidate in self.candidates:
            try:
                client = self._connect_to(candidate)
            except (OSError, ValueError) as e:
                logger.warning("Broker %s unavailable: %s", candidate.url, e)
                errors.append(f"{candidate.url}: {e}")
                continue

            logger.info("Connected to broker %s", candidate.url)
            self._broker = candidate
            return client

        raise DeliveryError("Connection to the broker(s) failed: " + "; ".join(errors))

    @staticmethod
    def _shutdown(client: mqtt.Client) -> None:
        try:
            client.disconnect()
        finally:
            client.loop_stop()

    def publish(self, report: Report) -> None:
        """Publish a report with QoS 1.

        Raises:
            DeliveryError: If no broker accepts the connection or the broker
                does not acknowledge the message within the write timeout
        """
        payload = report_to_json(report)

        with self._lock:
            if self._client is None:
                self._client = self._connect()

            try:
                info = self._client.publish(self.topic, payload, qos=QOS_AT_LEAST_ONCE)
                info.wait_for_publish(timeout=self.write_timeout)
                if not info.is_published():
                    raise DeliveryError(
                        f"Publish to {self.topic} timed out after {self.write_timeout:.0f}s"
                    )
            except (RuntimeError, ValueError) as e:
                self._drop_client()
                raise DeliveryError(f"Publish to {self.topic} failed: {e}") from e
            except DeliveryError:
                self._drop_client()
                raise

        logger.debug("Report published: topic=%s, bytes=%d", self.topic, len(payload))

    def _drop_client(self) -> None:
        client, self._client, self._broker = self._client, None, None
        if client is not None:
            self._shutdown(client)

    def close(self) -> None:
        """Disconnect from the broker, if connected."""
        with self._lock:
            self._drop_client()
