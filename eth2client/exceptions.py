"""Exceptions raised by eth2client."""

from typing import Optional


class Eth2ClientError(Exception):
    """Base class for all client errors."""


class ConfigError(Eth2ClientError):
    """Invalid client configuration."""


class TransportError(Eth2ClientError):
    """The request never produced a response (connection refused, reset, TLS failure)."""

    def __init__(self, operation: str, message: str):
        self.operation = operation
        self.message = message
        super().__init__(f"{operation}: {message}")


class RequestTimeout(TransportError):
    """The request deadline expired before a response arrived."""

    def __init__(self, operation: str, timeout: Optional[float] = None):
        self.timeout = timeout
        message = "request timed out" if timeout is None else f"request timed out after {timeout}s"
        super().__init__(operation, message)


class DecodingError(Eth2ClientError):
    """Malformed wire payload.

    The path is the dotted location of the offending field inside the payload,
    for example ``data.validators[3].balance``.
    """

    def __init__(self, message: str, path: str = ""):
        self.path = path
        self.message = message
        if path:
            super().__init__(f"{path}: {message}")
        else:
            super().__init__(message)


class InvalidIdentifier(Eth2ClientError):
    """A state identifier could not be interpreted."""


class InvalidDomain(Eth2ClientError):
    """A domain type was not exactly 4 bytes."""


class ForkVersionInvalid(Eth2ClientError):
    """A fork version selected from the schedule was not exactly 4 bytes."""


class NoForkSchedule(Eth2ClientError):
    """The backend returned an empty fork schedule."""


class BackendRejected(Eth2ClientError):
    """The backend answered with a non-success status."""

    def __init__(self, status: int, message: str, operation: str = ""):
        self.status = status
        self.message = message
        self.operation = operation
        if operation:
            super().__init__(f"{operation} failed with status {status}: {message}")
        else:
            super().__init__(f"Backend error {status}: {message}")


class NotFound(BackendRejected):
    """The requested object does not exist on the backend."""

    def __init__(self, message: str, operation: str = ""):
        super().__init__(404, message, operation)


class SubmissionFailed(BackendRejected):
    """A submission was refused and cannot be retried.

    Some backends refuse with a success status and an error body, so the
    status is whatever the final response carried.
    """

    def __init__(self, message: str, status: int = 200, operation: str = "submit attestation"):
        super().__init__(status, message, operation)


class NotSupported(Eth2ClientError):
    """The backend has no way to provide the requested capability."""


class NoBackendDetected(Eth2ClientError):
    """No candidate backend answered during auto-detection."""

    def __init__(self, address: str, failures: dict[str, Exception]):
        self.address = address
        self.failures = failures
        details = "; ".join(f"{name}: {err}" for name, err in failures.items())
        super().__init__(f"No supported beacon node found at {address} ({details})")
