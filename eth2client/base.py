"""Plumbing shared by the backend adapters.

Holds the per-connection pieces every adapter needs: transport, logger,
write-once caches, state resolver, domain calculator and head-update
distributor. Adapters implement the backend-specific fetches on top.
"""

import logging
from datetime import datetime, timedelta
from typing import Any

from .api.types import ChainHead, Fork, Genesis
from .cache import OnceCache
from .chainspec import slot_duration, spec_uint
from .config import ClientConfig
from .domain import DomainCalculator
from .events import HeadHandler, HeadUpdateDistributor
from .exceptions import NotSupported
from .http import HTTPTransport, decode_json
from .service import Backend
from .spec.constants import FAR_FUTURE_EPOCH
from .stateid import StateIdLike, StateResolver


class BaseClient:
    """Connection-scoped state for one backend adapter.

    Args:
        config: connection configuration
        transport: transport to use instead of a fresh ``HTTPTransport``
    """

    backend: Backend

    def __init__(self, config: ClientConfig, transport=None):
        self.config = config
        self._log = config.adapter_logger(logging.getLogger(type(self).__module__), self.backend.value)
        if transport is None:
            transport = HTTPTransport(
                config.address,
                self.backend.value,
                timeout=config.timeout,
                ssl_context=config.ssl_context(),
                headers=config.extra_headers,
                log=self._log,
            )
        self._http = transport
        self._cache = OnceCache()
        self._resolver = StateResolver(
            self.chain_head,
            self._root_to_slot,
            self.slots_per_epoch,
            slot_to_root=self._slot_to_root,
        )
        self._domains = DomainCalculator(self._fetch_fork_schedule, self.genesis_validators_root)
        self._head_updates = HeadUpdateDistributor(self._head_source, self.backend.value, self._log)

    @property
    def name(self) -> str:
        return self.backend.value

    @property
    def address(self) -> str:
        return self.config.address

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.address}>"

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def close(self) -> None:
        """Stop the head update stream and release the connection."""
        await self._head_updates.close()
        await self._http.close()

    async def _get_json(self, path: str, operation: str, params=None) -> Any:
        return decode_json(await self._http.get(path, operation, params=params), operation)

    async def _post_json(self, path: str, body, operation: str, params=None) -> Any:
        return decode_json(await self._http.post(path, body, operation, params=params), operation)

    # Backend hooks

    async def _fetch_spec(self) -> dict:
        raise NotSupported(f"{self.name} cannot provide the chain spec")

    async def _fetch_genesis(self) -> Genesis:
        raise NotSupported(f"{self.name} cannot provide genesis information")

    async def _fetch_fork_schedule(self) -> list[Fork]:
        raise NotSupported(f"{self.name} cannot provide a fork schedule")

    async def _root_to_slot(self, root: bytes) -> int:
        raise NotSupported(f"{self.name} cannot look up states by root")

    async def _slot_to_root(self, slot: int) -> bytes:
        raise NotSupported(f"{self.name} cannot look up state roots by slot")

    async def _head_source(self, emit) -> None:
        raise NotSupported(f"{self.name} cannot stream head updates")

    async def chain_head(self) -> ChainHead:
        raise NotSupported(f"{self.name} cannot provide the chain head")

    # Connection-scoped constants

    async def spec(self) -> dict:
        return await self._cache.get("spec", self._fetch_spec)

    async def genesis(self) -> Genesis:
        return await self._cache.get("genesis", self._fetch_genesis)

    async def genesis_time(self) -> datetime:
        return (await self.genesis()).genesis_time

    async def genesis_validators_root(self) -> bytes:
        return (await self.genesis()).genesis_validators_root

    async def slots_per_epoch(self) -> int:
        return await self._cache.get("slots_per_epoch", self._load_slots_per_epoch)

    async def _load_slots_per_epoch(self) -> int:
        value = spec_uint(await self.spec(), "SLOTS_PER_EPOCH")
        if value == 0:
            raise NotSupported("SLOTS_PER_EPOCH is zero")
        return value

    async def far_future_epoch(self) -> int:
        spec = await self.spec()
        value = spec.get("FAR_FUTURE_EPOCH")
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        return FAR_FUTURE_EPOCH

    async def slot_duration(self) -> timedelta:
        return slot_duration(await self.spec())

    async def target_aggregators_per_committee(self) -> int:
        return spec_uint(await self.spec(), "TARGET_AGGREGATORS_PER_COMMITTEE")

    # Forks and domains

    async def fork_schedule(self) -> list[Fork]:
        return list(await self._domains.schedule())

    async def domain(self, domain_type: bytes, epoch: int) -> bytes:
        return await self._domains.domain(domain_type, epoch)

    async def genesis_domain(self, domain_type: bytes) -> bytes:
        return await self._domains.genesis_domain(domain_type)

    # State identifiers

    async def slot_from_state_id(self, state_id: StateIdLike) -> int:
        return await self._resolver.slot(state_id)

    async def epoch_from_state_id(self, state_id: StateIdLike) -> int:
        return await self._resolver.epoch(state_id)

    async def beacon_state_root(self, state_id: StateIdLike) -> bytes:
        return await self._resolver.state_root(state_id)

    # Head updates

    async def on_beacon_chain_head_updated(self, handler: HeadHandler) -> None:
        """Register ``handler`` for head updates, starting the stream on first use."""
        await self._head_updates.register(handler)

