from typing import Any, Dict, Optional


class RegistryError(Exception):
    """Base class for every error the block registry surfaces."""

    status_code = 500

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}


class ValidationError(RegistryError):
    """Bad slug format, reserved slug, malformed renderer payload."""

    status_code = 400


class ConflictError(RegistryError):
    """Slug taken, block already parented, cycles, landing conflicts."""

    status_code = 409


class NotFoundError(RegistryError):
    status_code = 404


class TransientError(RegistryError):
    """Geolocation timeouts and analytics write failures. Never leaves the recorder."""

    status_code = 503
