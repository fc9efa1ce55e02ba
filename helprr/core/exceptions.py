from typing import Any


class AppError(Exception):
    """Base application error."""

    def __init__(self, message: str, status_code: int = 500, details: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "details": self.details,
        }


class NotFoundError(AppError):
    """Resource not found."""

    def __init__(self, resource: str, identifier: Any):
        super().__init__(
            message=f"{resource} not found: {identifier}",
            status_code=404,
        )


class ValidationError(AppError):
    """Invalid input data."""

    def __init__(self, message: str, details: Any = None):
        super().__init__(message=message, status_code=400, details=details)


class FetchError(AppError):
    """An upstream service could not be queried (network, auth or 5xx)."""

    def __init__(self, service: str, message: str, status_code: int = 502):
        super().__init__(
            message=f"{service}: {message}",
            status_code=status_code,
            details={"service": service},
        )
        self.service = service


class DetectionError(AppError):
    """A single upstream record could not be interpreted."""

    def __init__(self, message: str, record: Any = None):
        super().__init__(message=message, status_code=422, details=record)


class DeliveryError(AppError):
    """Base for push delivery failures."""

    def __init__(self, endpoint: str, message: str, status_code: int = 502):
        super().__init__(message=message, status_code=status_code)
        self.endpoint = endpoint


class EndpointGoneError(DeliveryError):
    """The push service reports the endpoint no longer exists (404/410)."""

    def __init__(self, endpoint: str, status_code: int = 410):
        super().__init__(
            endpoint,
            f"Push endpoint gone (HTTP {status_code})",
            status_code=status_code,
        )


class TransientDeliveryError(DeliveryError):
    """Rate limit, timeout or push service failure. Not retried."""
