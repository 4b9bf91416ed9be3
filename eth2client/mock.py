"""In-memory client for tests and offline tooling.

Answers every capability from local state. Roots are derived from the slot,
committees and proposers are assigned round-robin, and submitted objects are
kept for inspection.
"""

import asyncio
import hashlib
from datetime import datetime, timezone
from typing import Optional, Sequence

from .api.types import (
    AttesterDuty,
    BeaconCommittee,
    BeaconCommitteeSubscription,
    ChainHead,
    Checkpoint,
    Finality,
    Fork,
    Genesis,
    HeadEvent,
    ProposerDuty,
    Validator,
)
from .api.validatorstate import validator_to_state
from .base import BaseClient
from .chainspec import parse_spec
from .codec import encode_hex
from .config import ClientConfig
from .events import DistributorState, Emit
from .exceptions import NotFound
from .service import Backend
from .spec.constants import FAR_FUTURE_EPOCH
from .spec.types import (
    Attestation,
    SignedAggregateAndProof,
    SignedBeaconBlock,
    SignedVoluntaryExit,
)
from .spec.types import Validator as ValidatorRecord
from .stateid import StateIdLike, epoch_at_slot, start_slot_of_epoch

MOCK_ADDRESS = "http://mock"
MOCK_VERSION = "mock/v0.1.0"
GENESIS_FORK_VERSION = b"\x00\x00\x00\x00"


def _root(kind: str, slot: int) -> bytes:
    return hashlib.sha256(f"{kind}:{slot}".encode()).digest()


class MockClient(BaseClient):
    """A client whose chain lives in memory.

    Args:
        config: optional configuration; only logging settings matter
        genesis_time: chain start time
        genesis_validators_root: 32-byte root
        fork_schedule: forks in force; a single genesis fork by default
        slots_per_epoch: epoch length
        head_slot: initial head slot
        spec: extra chain configuration entries, as a node would report them
    """

    backend = Backend.MOCK

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        genesis_time: Optional[datetime] = None,
        genesis_validators_root: bytes = b"\x00" * 32,
        fork_schedule: Optional[Sequence[Fork]] = None,
        slots_per_epoch: int = 32,
        head_slot: int = 0,
        spec: Optional[dict] = None,
    ):
        super().__init__(config or ClientConfig(address=MOCK_ADDRESS, backend="standard"))
        self._genesis_time = genesis_time or datetime(2020, 12, 1, 12, 0, 23, tzinfo=timezone.utc)
        self._genesis_validators_root = bytes(genesis_validators_root)
        if fork_schedule is None:
            fork_schedule = [Fork(GENESIS_FORK_VERSION, GENESIS_FORK_VERSION, 0)]
        self._fork_schedule = list(fork_schedule)
        self._slots_per_epoch = slots_per_epoch
        self._spec_entries = dict(spec or {})
        self.head_slot = head_slot
        self._records: dict[int, ValidatorRecord] = {}
        self._balances: dict[int, int] = {}
        self._blocks: dict[int, SignedBeaconBlock] = {}
        self._head_queue: asyncio.Queue = asyncio.Queue()

        self.attestations: list[Attestation] = []
        self.aggregates: list[SignedAggregateAndProof] = []
        self.blocks: list[SignedBeaconBlock] = []
        self.exits: list[SignedVoluntaryExit] = []
        self.subscriptions: list[BeaconCommitteeSubscription] = []

    # Chain setup

    def add_validator(
        self,
        pubkey: bytes,
        balance: int = 32_000_000_000,
        activation_epoch: int = 0,
        exit_epoch: int = FAR_FUTURE_EPOCH,
        slashed: bool = False,
    ) -> int:
        """Add a validator and return its index."""
        index = len(self._records)
        self._records[index] = ValidatorRecord(
            pubkey=pubkey,
            effective_balance=min(balance, 32_000_000_000),
            slashed=slashed,
            activation_eligibility_epoch=0,
            activation_epoch=activation_epoch,
            exit_epoch=exit_epoch,
            withdrawable_epoch=FAR_FUTURE_EPOCH if exit_epoch == FAR_FUTURE_EPOCH else exit_epoch + 256,
        )
        self._balances[index] = balance
        return index

    def add_block(self, block: SignedBeaconBlock) -> None:
        self._blocks[int(block.message.slot)] = block

    async def advance_head(self, slot: Optional[int] = None) -> HeadEvent:
        """Move the head forward and notify head handlers."""
        previous = self.head_slot
        self.head_slot = previous + 1 if slot is None else slot
        event = HeadEvent(
            slot=self.head_slot,
            block=_root("block", self.head_slot),
            state=_root("state", self.head_slot),
            epoch_transition=epoch_at_slot(previous, self._slots_per_epoch)
            != epoch_at_slot(self.head_slot, self._slots_per_epoch),
        )
        if self._head_updates.state is DistributorState.STREAMING:
            self._head_queue.put_nowait(event)
        return event

    # Node and chain constants

    async def node_version(self) -> str:
        return MOCK_VERSION

    async def _fetch_spec(self) -> dict:
        entries = {
            "SLOTS_PER_EPOCH": str(self._slots_per_epoch),
            "SECONDS_PER_SLOT": "12",
            "TARGET_AGGREGATORS_PER_COMMITTEE": "16",
            "FAR_FUTURE_EPOCH": str(FAR_FUTURE_EPOCH),
            "GENESIS_FORK_VERSION": encode_hex(self._fork_schedule[0].previous_version),
        }
        entries.update(self._spec_entries)
        return parse_spec(entries)

    async def _fetch_genesis(self) -> Genesis:
        return Genesis(
            genesis_time=self._genesis_time,
            genesis_validators_root=self._genesis_validators_root,
            genesis_fork_version=self._fork_schedule[0].previous_version,
        )

    async def _fetch_fork_schedule(self) -> list[Fork]:
        return list(self._fork_schedule)

    # State

    async def fork(self, state_id: StateIdLike) -> Fork:
        return await self._domains.fork(await self.epoch_from_state_id(state_id))

    def _head(self) -> ChainHead:
        epoch = epoch_at_slot(self.head_slot, self._slots_per_epoch)
        finalized_slot = start_slot_of_epoch(max(epoch - 2, 0), self._slots_per_epoch)
        justified_slot = start_slot_of_epoch(max(epoch - 1, 0), self._slots_per_epoch)
        return ChainHead(
            slot=self.head_slot,
            block_root=_root("block", self.head_slot),
            state_root=_root("state", self.head_slot),
            finalized_slot=finalized_slot,
            finalized_block_root=_root("block", finalized_slot),
            justified_slot=justified_slot,
            justified_block_root=_root("block", justified_slot),
        )

    async def chain_head(self) -> ChainHead:
        return self._head()

    async def finality(self, state_id: StateIdLike) -> Finality:
        slot = await self.slot_from_state_id(state_id)
        epoch = epoch_at_slot(slot, self._slots_per_epoch)

        def checkpoint(checkpoint_epoch: int) -> Checkpoint:
            checkpoint_epoch = max(checkpoint_epoch, 0)
            return Checkpoint(
                epoch=checkpoint_epoch,
                root=_root("block", start_slot_of_epoch(checkpoint_epoch, self._slots_per_epoch)),
            )

        return Finality(
            finalized=checkpoint(epoch - 2),
            current_justified=checkpoint(epoch - 1),
            previous_justified=checkpoint(epoch - 2),
        )

    async def _root_to_slot(self, root: bytes) -> int:
        for slot in range(self.head_slot + 1):
            if _root("state", slot) == root:
                return slot
        raise NotFound(f"unknown state root {encode_hex(root)}", "beacon state")

    async def _slot_to_root(self, slot: int) -> bytes:
        if slot > self.head_slot:
            raise NotFound(f"no state at slot {slot}", "beacon state root")
        return _root("state", slot)

    async def signed_beacon_block(self, slot: int) -> Optional[SignedBeaconBlock]:
        return self._blocks.get(slot)

    def _active_indices(self, epoch: int) -> list[int]:
        return sorted(
            index
            for index, record in self._records.items()
            if record.activation_epoch <= epoch < record.exit_epoch
        )

    def _committees(self, epoch: int) -> list[BeaconCommittee]:
        """One committee per slot; validators spread round-robin."""
        start = start_slot_of_epoch(epoch, self._slots_per_epoch)
        members: dict[int, list[int]] = {start + i: [] for i in range(self._slots_per_epoch)}
        for position, index in enumerate(self._active_indices(epoch)):
            members[start + position % self._slots_per_epoch].append(index)
        return [
            BeaconCommittee(slot=slot, index=0, validators=tuple(validators))
            for slot, validators in members.items()
        ]

    async def beacon_committees(self, state_id: StateIdLike) -> list[BeaconCommittee]:
        return self._committees(await self.epoch_from_state_id(state_id))

    def _validator(self, index: int, epoch: int) -> Validator:
        record = self._records[index]
        balance = self._balances[index]
        return Validator(
            index=index,
            balance=balance,
            status=validator_to_state(record, balance, epoch, FAR_FUTURE_EPOCH),
            validator=record,
        )

    async def validators(
        self, state_id: StateIdLike, indices: Optional[Sequence[int]] = None
    ) -> dict[int, Validator]:
        epoch = await self.epoch_from_state_id(state_id)
        wanted = self._records.keys() if not indices else [i for i in indices if i in self._records]
        return {index: self._validator(index, epoch) for index in wanted}

    async def validators_by_pubkey(
        self, state_id: StateIdLike, pubkeys: Sequence[bytes]
    ) -> dict[int, Validator]:
        epoch = await self.epoch_from_state_id(state_id)
        wanted = {bytes(pubkey) for pubkey in pubkeys}
        return {
            index: self._validator(index, epoch)
            for index, record in self._records.items()
            if bytes(record.pubkey) in wanted
        }

    async def validator_balances(
        self, state_id: StateIdLike, indices: Optional[Sequence[int]] = None
    ) -> dict[int, int]:
        validators = await self.validators(state_id, indices)
        return {index: validator.balance for index, validator in validators.items()}

    # Duties

    async def attester_duties(
        self, epoch: int, indices: Optional[Sequence[int]] = None
    ) -> list[AttesterDuty]:
        wanted = None if indices is None else set(indices)
        duties = []
        for committee in self._committees(epoch):
            for position, index in enumerate(committee.validators):
                if wanted is not None and index not in wanted:
                    continue
                duties.append(
                    AttesterDuty(
                        pubkey=bytes(self._records[index].pubkey),
                        slot=committee.slot,
                        validator_index=index,
                        committee_index=committee.index,
                        committee_length=len(committee.validators),
                        committees_at_slot=1,
                        validator_committee_index=position,
                    )
                )
        return duties

    async def proposer_duties(
        self, epoch: int, indices: Optional[Sequence[int]] = None
    ) -> list[ProposerDuty]:
        active = self._active_indices(epoch)
        if not active:
            return []
        start = start_slot_of_epoch(epoch, self._slots_per_epoch)
        duties = []
        for offset in range(self._slots_per_epoch):
            index = active[offset % len(active)]
            if indices and index not in indices:
                continue
            duties.append(
                ProposerDuty(
                    pubkey=bytes(self._records[index].pubkey),
                    slot=start + offset,
                    validator_index=index,
                )
            )
        return duties

    # Submitters

    async def submit_attestation(self, attestation: Attestation) -> None:
        self.attestations.append(attestation)

    async def submit_aggregate_attestations(
        self, aggregates: Sequence[SignedAggregateAndProof]
    ) -> None:
        self.aggregates.extend(aggregates)

    async def submit_beacon_block(self, block: SignedBeaconBlock) -> None:
        self.blocks.append(block)
        self.add_block(block)

    async def submit_voluntary_exit(self, exit: SignedVoluntaryExit) -> None:
        self.exits.append(exit)

    async def submit_beacon_committee_subscriptions(
        self, subscriptions: Sequence[BeaconCommitteeSubscription]
    ) -> None:
        self.subscriptions.extend(subscriptions)

    # Events

    async def _head_source(self, emit: Emit) -> None:
        while True:
            event = await self._head_queue.get()
            await emit(event)
