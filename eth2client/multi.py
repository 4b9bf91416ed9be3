"""Failover across several beacon node connections."""

import logging
from typing import Sequence

from .base import BaseClient
from .events import HeadHandler
from .exceptions import ConfigError, NotSupported, TransportError

logger = logging.getLogger(__name__)

# Calls that are forwarded to the first active client.
FAILOVER_METHODS = (
    "node_version",
    "genesis",
    "genesis_time",
    "genesis_validators_root",
    "spec",
    "slots_per_epoch",
    "far_future_epoch",
    "slot_duration",
    "target_aggregators_per_committee",
    "fork",
    "fork_schedule",
    "domain",
    "genesis_domain",
    "chain_head",
    "finality",
    "slot_from_state_id",
    "epoch_from_state_id",
    "beacon_state_root",
    "signed_beacon_block",
    "beacon_committees",
    "validators",
    "validators_by_pubkey",
    "validator_balances",
    "attester_duties",
    "proposer_duties",
    "submit_attestation",
    "submit_aggregate_attestations",
    "submit_beacon_block",
    "submit_voluntary_exit",
    "submit_beacon_committee_subscriptions",
)


class MultiClient:
    """Routes every call to the first active client.

    A client that fails with a ``TransportError`` is marked inactive and the
    call moves on to the next one. A backend that answers with a rejection
    is still reachable, so ``BackendRejected`` is raised to the caller as is.

    Args:
        clients: adapters in order of preference
    """

    def __init__(self, clients: Sequence[BaseClient]):
        if not clients:
            raise ConfigError("at least one client is required")
        self._clients = list(clients)
        self._inactive: set[int] = set()

    @property
    def name(self) -> str:
        return "multi"

    @property
    def address(self) -> str:
        return ",".join(client.address for client in self._clients)

    @property
    def clients(self) -> tuple:
        return tuple(self._clients)

    @property
    def active_clients(self) -> tuple:
        return tuple(client for client in self._clients if id(client) not in self._inactive)

    def __repr__(self) -> str:
        return f"<MultiClient {self.address}>"

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def close(self) -> None:
        for client in self._clients:
            await client.close()

    async def _call(self, method: str, *args, **kwargs):
        active = self.active_clients
        if not active:
            raise TransportError(method, "no active clients")
        last_error = None
        for client in active:
            fn = getattr(client, method, None)
            if fn is None:
                continue
            try:
                return await fn(*args, **kwargs)
            except TransportError as e:
                logger.warning(f"{client.name} at {client.address} failed {method}, marking inactive: {e}")
                self._inactive.add(id(client))
                last_error = e
        if last_error is not None:
            raise TransportError(method, f"no active client could handle the call: {last_error.message}") from last_error
        raise NotSupported(f"no client supports {method}")

    async def reactivate(self) -> int:
        """Probe inactive clients and restore those that answer.

        Returns:
            Number of clients restored
        """
        restored = 0
        for client in self._clients:
            if id(client) not in self._inactive:
                continue
            try:
                await client.node_version()
            except TransportError as e:
                logger.debug(f"{client.name} at {client.address} still unreachable: {e}")
                continue
            self._inactive.discard(id(client))
            logger.info(f"{client.name} at {client.address} is active again")
            restored += 1
        return restored

    async def on_beacon_chain_head_updated(self, handler: HeadHandler) -> None:
        """Register ``handler`` with the primary client only."""
        for client in self.active_clients:
            register = getattr(client, "on_beacon_chain_head_updated", None)
            if register is not None:
                await register(handler)
                return
        raise NotSupported("no active client provides head updates")


def _failover(method: str):
    async def call(self, *args, **kwargs):
        return await self._call(method, *args, **kwargs)

    call.__name__ = method
    call.__qualname__ = f"MultiClient.{method}"
    return call


for _method in FAILOVER_METHODS:
    setattr(MultiClient, _method, _failover(_method))
