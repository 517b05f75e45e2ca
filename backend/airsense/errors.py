"""Domain exceptions raised by the service layer.

Routes never build HTTP responses from these directly; `airsense.main`
registers one exception handler per class.
"""


class AirSenseError(Exception):
    """Base class for all AirSense domain errors."""


class MalformedPayloadError(AirSenseError):
    """Inbound message body could not be parsed as a JSON object."""


class ValidationError(AirSenseError):
    """Command or update parameters are out of range."""


class NotFoundError(AirSenseError):
    """Referenced device or notification does not exist."""


class TransportUnavailableError(AirSenseError):
    """MQTT connection is down; the caller may retry later."""


class PartialDispatchError(TransportUnavailableError):
    """State was persisted but the matching command could not be published."""

    def __init__(self, message: str, device=None):
        super().__init__(message)
        self.device = device


class PersistenceError(AirSenseError):
    """A storage operation failed."""
