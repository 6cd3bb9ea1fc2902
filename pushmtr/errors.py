"""Exceptions raised by push-mtr components."""


class PushMtrError(Exception):
    """Base class for all push-mtr failures."""


class ConfigurationError(PushMtrError):
    """Invalid or missing configuration detected at startup."""


class MtrNotFoundError(ConfigurationError):
    """The mtr binary could not be found on PATH."""


class MeasurementError(PushMtrError):
    """The mtr subprocess failed for the current cycle."""

    def __init__(self, message: str, returncode: int | None = None, stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class ReportParseError(MeasurementError):
    """mtr produced output that does not match the report column layout."""


class LocationResolutionError(PushMtrError):
    """A requested place-name geocoding returned no result."""


class DeliveryError(PushMtrError):
    """The report could not be delivered to any broker."""
