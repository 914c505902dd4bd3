"""
Error taxonomy shared by the geometry, index and remote-sensing layers.
"""
from typing import Optional


class InvalidGeometryError(ValueError):
    """Boundary input is missing points or structurally malformed."""
    pass


class ConfigurationError(Exception):
    """A credential or base URL needed for a remote call is not configured."""
    pass


class RemoteServiceError(Exception):
    """
    An external API answered with a non-2xx status or an unusable body.

    Attributes:
        status: HTTP status code returned by the remote service, or None
            when the request never produced a response
        message: Human-readable description of the failure
    """

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status
        self.message = message

    def __str__(self) -> str:
        if self.status is None:
            return self.message
        return f"{self.status}: {self.message}"
