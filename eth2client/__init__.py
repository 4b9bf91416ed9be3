"""Normalized async client for Ethereum beacon nodes.

One canonical API over the standard beacon node REST API and the legacy
Lighthouse, Teku and Prysm interfaces.
"""

from .auto import BACKEND_CLASSES, connect, connect_address
from .config import ClientConfig
from .exceptions import (
    BackendRejected,
    ConfigError,
    DecodingError,
    Eth2ClientError,
    NoBackendDetected,
    NotFound,
    NotSupported,
    RequestTimeout,
    SubmissionFailed,
    TransportError,
)
from .lighthouse import LighthouseClient
from .mock import MockClient
from .multi import MultiClient
from .prysm import PrysmClient
from .service import Backend
from .standard import StandardClient
from .stateid import StateIdentifier
from .teku import TekuClient
from .version import get_version

__version__ = get_version()

__all__ = [
    "BACKEND_CLASSES",
    "connect",
    "connect_address",
    "ClientConfig",
    "Backend",
    "StandardClient",
    "LighthouseClient",
    "TekuClient",
    "PrysmClient",
    "MultiClient",
    "MockClient",
    "StateIdentifier",
    "Eth2ClientError",
    "ConfigError",
    "TransportError",
    "RequestTimeout",
    "DecodingError",
    "BackendRejected",
    "NotFound",
    "SubmissionFailed",
    "NotSupported",
    "NoBackendDetected",
]
