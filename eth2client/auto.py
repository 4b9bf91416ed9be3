"""Adapter selection and backend auto-detection."""

import logging
from typing import Optional

from .base import BaseClient
from .config import ClientConfig
from .exceptions import Eth2ClientError, NoBackendDetected
from .lighthouse import LighthouseClient
from .prysm import PrysmClient
from .service import Backend
from .standard import StandardClient
from .teku import TekuClient

logger = logging.getLogger(__name__)

BACKEND_CLASSES: dict[Backend, type[BaseClient]] = {
    Backend.STANDARD: StandardClient,
    Backend.LIGHTHOUSE: LighthouseClient,
    Backend.TEKU: TekuClient,
    Backend.PRYSM: PrysmClient,
}

# Legacy dialects first; most of those nodes also answer some standard routes.
DETECTION_ORDER = (Backend.PRYSM, Backend.LIGHTHOUSE, Backend.TEKU, Backend.STANDARD)


def client_for(config: ClientConfig, backend: Backend, transport=None) -> BaseClient:
    return BACKEND_CLASSES[backend](config, transport)


async def connect(config: ClientConfig, transport=None) -> BaseClient:
    """Open a client for ``config``.

    A named backend is built directly. With ``auto`` each candidate is asked
    for its node version in turn and the first that answers is returned.

    Args:
        config: connection configuration
        transport: optional transport shared by every candidate (tests)

    Raises:
        NoBackendDetected: no candidate answered
    """
    if config.backend != "auto":
        return client_for(config, Backend(config.backend), transport)

    failures: dict[str, Exception] = {}
    for backend in DETECTION_ORDER:
        client = client_for(config, backend, transport)
        try:
            version = await client.node_version()
        except Eth2ClientError as e:
            logger.debug(f"{config.address} is not a {backend.value} node: {e}")
            failures[backend.value] = e
            if transport is None:
                await client.close()
            continue
        logger.info(f"Detected {backend.value} node at {config.address}: {version}")
        return client

    raise NoBackendDetected(config.address, failures)


async def connect_address(address: str, backend: Optional[str] = None, **options) -> BaseClient:
    """Shorthand for ``connect(ClientConfig(address=..., ...))``."""
    return await connect(ClientConfig(address=address, backend=backend or "auto", **options))
