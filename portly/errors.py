"""Exceptions raised across the port lifecycle"""


class PortlyError(Exception):
    """Base class for all Portly failures"""

    stage = "startup"


class ConfigurationError(PortlyError):
    """Raised when required configuration is missing or invalid"""

    stage = "configuration"


class NoPortAvailableError(PortlyError):
    """Raised when every port in the allowed range is taken"""

    stage = "allocation"


class BindError(PortlyError):
    """Raised when a port cannot be reserved"""

    stage = "reservation"

    def __init__(self, port: int, reason: str = ""):
        self.port = port
        message = f"Cannot bind port {port}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class PersistenceError(PortlyError):
    """Raised when the assignment, config or readiness file cannot be written"""

    stage = "persistence"


class LookupFailure(PortlyError):
    """Raised when a pid lookup fails. Never escapes the owner check."""

    stage = "lookup"
