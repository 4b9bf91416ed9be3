"""Canonical API data types returned by every backend adapter."""

from dataclasses import dataclass
from datetime import datetime, timezone

from ..codec import decode_hex, decode_uint64, encode_hex, encode_uint64, from_obj, to_obj
from ..exceptions import DecodingError
from ..spec.types import Validator as ValidatorRecord
from .validatorstate import ValidatorState


def _field(data: dict, name: str, path: str):
    if not isinstance(data, dict):
        raise DecodingError(f"expected object, got {type(data).__name__}", path)
    if name not in data:
        raise DecodingError("missing field", f"{path}.{name}" if path else name)
    return data[name]


def _sub(path: str, name: str) -> str:
    return f"{path}.{name}" if path else name


@dataclass(frozen=True)
class ChainHead:
    """Point-in-time snapshot of the node's view of the chain."""

    slot: int
    block_root: bytes
    state_root: bytes
    finalized_slot: int
    finalized_block_root: bytes
    justified_slot: int
    justified_block_root: bytes

    def to_dict(self) -> dict:
        return {
            "slot": encode_uint64(self.slot),
            "block_root": encode_hex(self.block_root),
            "state_root": encode_hex(self.state_root),
            "finalized_slot": encode_uint64(self.finalized_slot),
            "finalized_block_root": encode_hex(self.finalized_block_root),
            "justified_slot": encode_uint64(self.justified_slot),
            "justified_block_root": encode_hex(self.justified_block_root),
        }


@dataclass(frozen=True)
class Checkpoint:
    epoch: int
    root: bytes

    @classmethod
    def from_dict(cls, data: dict, path: str = "") -> "Checkpoint":
        return cls(
            epoch=decode_uint64(_field(data, "epoch", path), _sub(path, "epoch")),
            root=decode_hex(_field(data, "root", path), 32, _sub(path, "root")),
        )

    def to_dict(self) -> dict:
        return {"epoch": encode_uint64(self.epoch), "root": encode_hex(self.root)}


@dataclass(frozen=True)
class Finality:
    finalized: Checkpoint
    current_justified: Checkpoint
    previous_justified: Checkpoint

    @classmethod
    def from_dict(cls, data: dict, path: str = "") -> "Finality":
        return cls(
            finalized=Checkpoint.from_dict(_field(data, "finalized", path), _sub(path, "finalized")),
            current_justified=Checkpoint.from_dict(
                _field(data, "current_justified", path), _sub(path, "current_justified")
            ),
            previous_justified=Checkpoint.from_dict(
                _field(data, "previous_justified", path), _sub(path, "previous_justified")
            ),
        )

    def to_dict(self) -> dict:
        return {
            "finalized": self.finalized.to_dict(),
            "current_justified": self.current_justified.to_dict(),
            "previous_justified": self.previous_justified.to_dict(),
        }


@dataclass(frozen=True)
class Fork:
    previous_version: bytes
    current_version: bytes
    epoch: int

    @classmethod
    def from_dict(cls, data: dict, path: str = "") -> "Fork":
        return cls(
            previous_version=decode_hex(
                _field(data, "previous_version", path), 4, _sub(path, "previous_version")
            ),
            current_version=decode_hex(
                _field(data, "current_version", path), 4, _sub(path, "current_version")
            ),
            epoch=decode_uint64(_field(data, "epoch", path), _sub(path, "epoch")),
        )

    def to_dict(self) -> dict:
        return {
            "previous_version": encode_hex(self.previous_version),
            "current_version": encode_hex(self.current_version),
            "epoch": encode_uint64(self.epoch),
        }


@dataclass(frozen=True)
class Genesis:
    genesis_time: datetime
    genesis_validators_root: bytes
    genesis_fork_version: bytes

    @classmethod
    def from_dict(cls, data: dict, path: str = "") -> "Genesis":
        timestamp = decode_uint64(_field(data, "genesis_time", path), _sub(path, "genesis_time"))
        return cls(
            genesis_time=datetime.fromtimestamp(timestamp, tz=timezone.utc),
            genesis_validators_root=decode_hex(
                _field(data, "genesis_validators_root", path), 32, _sub(path, "genesis_validators_root")
            ),
            genesis_fork_version=decode_hex(
                _field(data, "genesis_fork_version", path), 4, _sub(path, "genesis_fork_version")
            ),
        )

    def to_dict(self) -> dict:
        return {
            "genesis_time": encode_uint64(int(self.genesis_time.timestamp())),
            "genesis_validators_root": encode_hex(self.genesis_validators_root),
            "genesis_fork_version": encode_hex(self.genesis_fork_version),
        }


@dataclass(frozen=True)
class AttesterDuty:
    pubkey: bytes
    slot: int
    validator_index: int
    committee_index: int
    committee_length: int
    committees_at_slot: int
    validator_committee_index: int

    @classmethod
    def from_dict(cls, data: dict, path: str = "") -> "AttesterDuty":
        return cls(
            pubkey=decode_hex(_field(data, "pubkey", path), 48, _sub(path, "pubkey")),
            slot=decode_uint64(_field(data, "slot", path), _sub(path, "slot")),
            validator_index=decode_uint64(
                _field(data, "validator_index", path), _sub(path, "validator_index")
            ),
            committee_index=decode_uint64(
                _field(data, "committee_index", path), _sub(path, "committee_index")
            ),
            committee_length=decode_uint64(
                _field(data, "committee_length", path), _sub(path, "committee_length")
            ),
            committees_at_slot=decode_uint64(
                _field(data, "committees_at_slot", path), _sub(path, "committees_at_slot")
            ),
            validator_committee_index=decode_uint64(
                _field(data, "validator_committee_index", path), _sub(path, "validator_committee_index")
            ),
        )

    def to_dict(self) -> dict:
        return {
            "pubkey": encode_hex(self.pubkey),
            "slot": encode_uint64(self.slot),
            "validator_index": encode_uint64(self.validator_index),
            "committee_index": encode_uint64(self.committee_index),
            "committee_length": encode_uint64(self.committee_length),
            "committees_at_slot": encode_uint64(self.committees_at_slot),
            "validator_committee_index": encode_uint64(self.validator_committee_index),
        }


@dataclass(frozen=True)
class ProposerDuty:
    pubkey: bytes
    slot: int
    validator_index: int

    @classmethod
    def from_dict(cls, data: dict, path: str = "") -> "ProposerDuty":
        return cls(
            pubkey=decode_hex(_field(data, "pubkey", path), 48, _sub(path, "pubkey")),
            slot=decode_uint64(_field(data, "slot", path), _sub(path, "slot")),
            validator_index=decode_uint64(
                _field(data, "validator_index", path), _sub(path, "validator_index")
            ),
        )

    def to_dict(self) -> dict:
        return {
            "pubkey": encode_hex(self.pubkey),
            "slot": encode_uint64(self.slot),
            "validator_index": encode_uint64(self.validator_index),
        }


@dataclass(frozen=True)
class BeaconCommittee:
    slot: int
    index: int
    validators: tuple[int, ...]

    @classmethod
    def from_dict(cls, data: dict, path: str = "") -> "BeaconCommittee":
        members = _field(data, "validators", path)
        if not isinstance(members, list):
            raise DecodingError("expected array", _sub(path, "validators"))
        return cls(
            slot=decode_uint64(_field(data, "slot", path), _sub(path, "slot")),
            index=decode_uint64(_field(data, "index", path), _sub(path, "index")),
            validators=tuple(
                decode_uint64(member, f"{_sub(path, 'validators')}[{i}]")
                for i, member in enumerate(members)
            ),
        )

    def to_dict(self) -> dict:
        return {
            "slot": encode_uint64(self.slot),
            "index": encode_uint64(self.index),
            "validators": [encode_uint64(v) for v in self.validators],
        }


@dataclass(frozen=True)
class Validator:
    """A validator record together with its balance and lifecycle state."""

    index: int
    balance: int
    status: ValidatorState
    validator: ValidatorRecord

    @classmethod
    def from_dict(cls, data: dict, path: str = "") -> "Validator":
        status_text = _field(data, "status", path)
        try:
            status = ValidatorState.parse(status_text)
        except ValueError as e:
            raise DecodingError(str(e), _sub(path, "status")) from e
        return cls(
            index=decode_uint64(_field(data, "index", path), _sub(path, "index")),
            balance=decode_uint64(_field(data, "balance", path), _sub(path, "balance")),
            status=status,
            validator=from_obj(ValidatorRecord, _field(data, "validator", path), _sub(path, "validator")),
        )

    @property
    def pubkey(self) -> bytes:
        return bytes(self.validator.pubkey)

    def to_dict(self) -> dict:
        return {
            "index": encode_uint64(self.index),
            "balance": encode_uint64(self.balance),
            "status": str(self.status),
            "validator": to_obj(self.validator),
        }


@dataclass(frozen=True)
class BeaconCommitteeSubscription:
    """Request to subscribe the node to an attestation subnet."""

    slot: int
    committee_index: int
    committee_size: int
    validator_index: int
    aggregate: bool
    committees_at_slot: int = 0

    def to_dict(self) -> dict:
        return {
            "validator_index": encode_uint64(self.validator_index),
            "committee_index": encode_uint64(self.committee_index),
            "committees_at_slot": encode_uint64(self.committees_at_slot or self.committee_size),
            "slot": encode_uint64(self.slot),
            "is_aggregator": self.aggregate,
        }


# Events


@dataclass(frozen=True)
class HeadEvent:
    slot: int
    block: bytes
    state: bytes
    epoch_transition: bool
    execution_optimistic: bool = False

    @classmethod
    def from_dict(cls, data: dict, path: str = "") -> "HeadEvent":
        return cls(
            slot=decode_uint64(_field(data, "slot", path), _sub(path, "slot")),
            block=decode_hex(_field(data, "block", path), 32, _sub(path, "block")),
            state=decode_hex(_field(data, "state", path), 32, _sub(path, "state")),
            epoch_transition=bool(data.get("epoch_transition", False)),
            execution_optimistic=bool(data.get("execution_optimistic", False)),
        )


@dataclass(frozen=True)
class BlockEvent:
    slot: int
    block: bytes
    execution_optimistic: bool = False

    @classmethod
    def from_dict(cls, data: dict, path: str = "") -> "BlockEvent":
        return cls(
            slot=decode_uint64(_field(data, "slot", path), _sub(path, "slot")),
            block=decode_hex(_field(data, "block", path), 32, _sub(path, "block")),
            execution_optimistic=bool(data.get("execution_optimistic", False)),
        )


@dataclass(frozen=True)
class FinalizedCheckpointEvent:
    block: bytes
    state: bytes
    epoch: int

    @classmethod
    def from_dict(cls, data: dict, path: str = "") -> "FinalizedCheckpointEvent":
        return cls(
            block=decode_hex(_field(data, "block", path), 32, _sub(path, "block")),
            state=decode_hex(_field(data, "state", path), 32, _sub(path, "state")),
            epoch=decode_uint64(_field(data, "epoch", path), _sub(path, "epoch")),
        )


@dataclass(frozen=True)
class ChainReorgEvent:
    slot: int
    depth: int
    old_head_block: bytes
    new_head_block: bytes
    old_head_state: bytes
    new_head_state: bytes
    epoch: int

    @classmethod
    def from_dict(cls, data: dict, path: str = "") -> "ChainReorgEvent":
        return cls(
            slot=decode_uint64(_field(data, "slot", path), _sub(path, "slot")),
            depth=decode_uint64(_field(data, "depth", path), _sub(path, "depth")),
            old_head_block=decode_hex(_field(data, "old_head_block", path), 32, _sub(path, "old_head_block")),
            new_head_block=decode_hex(_field(data, "new_head_block", path), 32, _sub(path, "new_head_block")),
            old_head_state=decode_hex(_field(data, "old_head_state", path), 32, _sub(path, "old_head_state")),
            new_head_state=decode_hex(_field(data, "new_head_state", path), 32, _sub(path, "new_head_state")),
            epoch=decode_uint64(_field(data, "epoch", path), _sub(path, "epoch")),
        )


@dataclass(frozen=True)
class Event:
    topic: str
    data: object = None


EVENT_TYPES = {
    "head": HeadEvent,
    "block": BlockEvent,
    "finalized_checkpoint": FinalizedCheckpointEvent,
    "chain_reorg": ChainReorgEvent,
}


__all__ = [
    "ChainHead",
    "Checkpoint",
    "Finality",
    "Fork",
    "Genesis",
    "AttesterDuty",
    "ProposerDuty",
    "BeaconCommittee",
    "Validator",
    "BeaconCommitteeSubscription",
    "HeadEvent",
    "BlockEvent",
    "FinalizedCheckpointEvent",
    "ChainReorgEvent",
    "Event",
    "EVENT_TYPES",
]
