"""
Custom exceptions for the endpoint monitor.

Configuration and registration failures are raised as exceptions so the HTTP
layer can map them to explicit error responses. Probe failures are not part
of this hierarchy: they are returned as values by the probe runner and end up
in the cached result.
"""


class MonitorError(Exception):
    """Base exception for all endpoint monitor errors."""

    def __init__(self, message: str = "Endpoint monitor error") -> None:
        self.message = message
        super().__init__(self.message)


class ConfigLoadError(MonitorError):
    """Raised when the endpoint document cannot be read, parsed or validated."""

    def __init__(self, message: str = "Failed to load configuration") -> None:
        super().__init__(message)


class ConfigPersistError(MonitorError):
    """Raised when the endpoint document cannot be written back to disk."""

    def __init__(self, message: str = "Failed to save configuration") -> None:
        super().__init__(message)


class EndpointRegistrationError(MonitorError):
    """Base exception for rejected endpoint registrations."""

    def __init__(self, message: str = "Endpoint registration rejected") -> None:
        super().__init__(message)


class MissingFieldsError(EndpointRegistrationError):
    """Raised when a registration omits one of the required fields."""

    def __init__(
        self, message: str = "Missing required fields", fields: list[str] | None = None
    ) -> None:
        self.fields = fields or []
        super().__init__(message)


class DuplicateEndpointError(EndpointRegistrationError):
    """Raised when the endpoint name is already present in the configuration."""

    def __init__(self, name: str, message: str = "Endpoint name already exists") -> None:
        self.name = name
        super().__init__(message)


class InvalidEndpointError(EndpointRegistrationError):
    """Raised when a registration field has an unusable value."""

    def __init__(self, message: str = "Invalid endpoint definition") -> None:
        super().__init__(message)
