"""Signature domain computation from a fork schedule."""

import logging
from typing import Awaitable, Callable, Sequence

from .api.types import Fork
from .cache import OnceCache
from .exceptions import ForkVersionInvalid, InvalidDomain, NoForkSchedule
from .spec.constants import DOMAIN_APPLICATION_MASK, GENESIS_EPOCH
from .spec.types import ForkData, Root, Version
from .ssz import hash_tree_root

logger = logging.getLogger(__name__)

ZERO_ROOT = b"\x00" * 32


def fork_at_epoch(schedule: Sequence[Fork], epoch: int) -> Fork:
    """Return the schedule entry in force at ``epoch``.

    The schedule must be sorted ascending by epoch. The first entry is always
    a candidate, so an epoch earlier than every entry selects ``schedule[0]``.

    Raises:
        NoForkSchedule: the schedule is empty
    """
    if not schedule:
        raise NoForkSchedule("fork schedule is empty")
    selected = schedule[0]
    for fork in schedule[1:]:
        if fork.epoch > epoch:
            break
        selected = fork
    return selected


def compute_domain(
    domain_type: bytes,
    epoch: int,
    fork: Fork,
    genesis_validators_root: bytes,
) -> bytes:
    """Return the 32-byte signing domain for ``domain_type`` at ``epoch``.

    Args:
        domain_type: 4-byte domain type
        epoch: Target epoch
        fork: Fork in force at the epoch
        genesis_validators_root: 32-byte genesis validators root

    Returns:
        32-byte domain

    Raises:
        InvalidDomain: domain_type is not 4 bytes
        ForkVersionInvalid: the selected fork version is not 4 bytes
    """
    if len(domain_type) != 4:
        raise InvalidDomain(f"domain type must be 4 bytes, got {len(domain_type)}")

    if epoch < fork.epoch:
        fork_version = fork.previous_version
    else:
        fork_version = fork.current_version
    if len(fork_version) != 4:
        raise ForkVersionInvalid(f"fork version must be 4 bytes, got {len(fork_version)}")

    # Application domains are valid on every chain.
    if bytes(domain_type) == DOMAIN_APPLICATION_MASK:
        genesis_validators_root = ZERO_ROOT
    if len(genesis_validators_root) != 32:
        raise ValueError(
            f"genesis validators root must be 32 bytes, got {len(genesis_validators_root)}"
        )

    fork_data = ForkData(
        current_version=Version(bytes(fork_version)),
        genesis_validators_root=Root(bytes(genesis_validators_root)),
    )
    return bytes(domain_type) + hash_tree_root(fork_data)[:28]


class DomainCalculator:
    """Computes signing domains for one connection.

    The fork schedule and genesis validators root are fetched once and held
    for the lifetime of the calculator.
    """

    def __init__(
        self,
        fork_schedule: Callable[[], Awaitable[list[Fork]]],
        genesis_validators_root: Callable[[], Awaitable[bytes]],
    ):
        self._fetch_schedule = fork_schedule
        self._fetch_genesis_validators_root = genesis_validators_root
        self._cache = OnceCache()

    async def schedule(self) -> list[Fork]:
        return await self._cache.get("schedule", self._load_schedule)

    async def _load_schedule(self) -> list[Fork]:
        schedule = list(await self._fetch_schedule())
        if not schedule:
            raise NoForkSchedule("backend returned an empty fork schedule")
        return sorted(schedule, key=lambda fork: fork.epoch)

    async def genesis_validators_root(self) -> bytes:
        return await self._cache.get("genesis_validators_root", self._fetch_genesis_validators_root)

    async def fork(self, epoch: int) -> Fork:
        return fork_at_epoch(await self.schedule(), epoch)

    async def domain(self, domain_type: bytes, epoch: int) -> bytes:
        if len(domain_type) != 4:
            raise InvalidDomain(f"domain type must be 4 bytes, got {len(domain_type)}")
        fork = await self.fork(epoch)
        return compute_domain(domain_type, epoch, fork, await self.genesis_validators_root())

    async def genesis_domain(self, domain_type: bytes) -> bytes:
        """Domain under the first schedule entry at the genesis epoch."""
        if len(domain_type) != 4:
            raise InvalidDomain(f"domain type must be 4 bytes, got {len(domain_type)}")
        schedule = await self.schedule()
        return compute_domain(
            domain_type, GENESIS_EPOCH, schedule[0], await self.genesis_validators_root()
        )
