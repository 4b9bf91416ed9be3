"""The canonical client contract.

Each capability is a runtime-checkable protocol, so calling code can ask an
adapter what it supports with ``isinstance`` and program against just that.
"""

import logging
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional, Protocol, Sequence, runtime_checkable

from .api.types import (
    AttesterDuty,
    BeaconCommittee,
    BeaconCommitteeSubscription,
    ChainHead,
    Finality,
    Fork,
    Genesis,
    ProposerDuty,
    Validator,
)
from .events import HeadHandler
from .spec.types import (
    AnySignedBeaconBlock,
    Attestation,
    SignedAggregateAndProof,
    SignedBeaconBlock,
    SignedVoluntaryExit,
)
from .stateid import StateIdLike

logger = logging.getLogger(__name__)


class Backend(str, Enum):
    STANDARD = "standard"
    LIGHTHOUSE = "lighthouse"
    TEKU = "teku"
    PRYSM = "prysm"
    MOCK = "mock"

    def __str__(self) -> str:
        return self.value


@runtime_checkable
class Service(Protocol):
    @property
    def name(self) -> str: ...

    @property
    def address(self) -> str: ...

    async def close(self) -> None: ...


# Node and chain constants


@runtime_checkable
class NodeVersionProvider(Protocol):
    async def node_version(self) -> str: ...


@runtime_checkable
class GenesisProvider(Protocol):
    async def genesis(self) -> Genesis: ...


@runtime_checkable
class GenesisTimeProvider(Protocol):
    async def genesis_time(self) -> datetime: ...


@runtime_checkable
class GenesisValidatorsRootProvider(Protocol):
    async def genesis_validators_root(self) -> bytes: ...


@runtime_checkable
class SpecProvider(Protocol):
    async def spec(self) -> dict: ...


@runtime_checkable
class SlotsPerEpochProvider(Protocol):
    async def slots_per_epoch(self) -> int: ...


@runtime_checkable
class FarFutureEpochProvider(Protocol):
    async def far_future_epoch(self) -> int: ...


@runtime_checkable
class SlotDurationProvider(Protocol):
    async def slot_duration(self) -> timedelta: ...


@runtime_checkable
class TargetAggregatorsPerCommitteeProvider(Protocol):
    async def target_aggregators_per_committee(self) -> int: ...


# Forks and domains


@runtime_checkable
class ForkProvider(Protocol):
    async def fork(self, state_id: StateIdLike) -> Fork: ...


@runtime_checkable
class ForkScheduleProvider(Protocol):
    async def fork_schedule(self) -> list[Fork]: ...


@runtime_checkable
class DomainProvider(Protocol):
    async def domain(self, domain_type: bytes, epoch: int) -> bytes: ...

    async def genesis_domain(self, domain_type: bytes) -> bytes: ...


# State


@runtime_checkable
class ChainHeadProvider(Protocol):
    async def chain_head(self) -> ChainHead: ...


@runtime_checkable
class FinalityProvider(Protocol):
    async def finality(self, state_id: StateIdLike) -> Finality: ...


@runtime_checkable
class StateIdentifierResolver(Protocol):
    async def slot_from_state_id(self, state_id: StateIdLike) -> int: ...

    async def epoch_from_state_id(self, state_id: StateIdLike) -> int: ...


@runtime_checkable
class BeaconStateRootProvider(Protocol):
    async def beacon_state_root(self, state_id: StateIdLike) -> bytes: ...


@runtime_checkable
class SignedBeaconBlockProvider(Protocol):
    async def signed_beacon_block(self, slot: int) -> Optional[AnySignedBeaconBlock]: ...


@runtime_checkable
class BeaconCommitteesProvider(Protocol):
    async def beacon_committees(self, state_id: StateIdLike) -> list[BeaconCommittee]: ...


@runtime_checkable
class ValidatorsProvider(Protocol):
    async def validators(
        self, state_id: StateIdLike, indices: Optional[Sequence[int]] = None
    ) -> dict[int, Validator]: ...

    async def validators_by_pubkey(
        self, state_id: StateIdLike, pubkeys: Sequence[bytes]
    ) -> dict[int, Validator]: ...


@runtime_checkable
class ValidatorBalancesProvider(Protocol):
    async def validator_balances(
        self, state_id: StateIdLike, indices: Optional[Sequence[int]] = None
    ) -> dict[int, int]: ...


# Duties


@runtime_checkable
class AttesterDutiesProvider(Protocol):
    async def attester_duties(
        self, epoch: int, indices: Optional[Sequence[int]] = None
    ) -> list[AttesterDuty]: ...


@runtime_checkable
class ProposerDutiesProvider(Protocol):
    async def proposer_duties(
        self, epoch: int, indices: Optional[Sequence[int]] = None
    ) -> list[ProposerDuty]: ...


# Submitters


@runtime_checkable
class AttestationSubmitter(Protocol):
    async def submit_attestation(self, attestation: Attestation) -> None: ...


@runtime_checkable
class AggregateAttestationsSubmitter(Protocol):
    async def submit_aggregate_attestations(
        self, aggregates: Sequence[SignedAggregateAndProof]
    ) -> None: ...


@runtime_checkable
class BeaconBlockSubmitter(Protocol):
    async def submit_beacon_block(self, block: SignedBeaconBlock) -> None: ...


@runtime_checkable
class VoluntaryExitSubmitter(Protocol):
    async def submit_voluntary_exit(self, exit: SignedVoluntaryExit) -> None: ...


@runtime_checkable
class BeaconCommitteeSubscriptionsSubmitter(Protocol):
    async def submit_beacon_committee_subscriptions(
        self, subscriptions: Sequence[BeaconCommitteeSubscription]
    ) -> None: ...


# Events


@runtime_checkable
class BeaconChainHeadUpdatedSource(Protocol):
    async def on_beacon_chain_head_updated(self, handler: HeadHandler) -> None: ...


@runtime_checkable
class EventsProvider(Protocol):
    async def events(self, topics: Sequence[str], handler) -> None: ...
