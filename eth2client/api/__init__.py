"""Canonical API types."""

from .validatorstate import ValidatorState, validator_to_state
from .types import (
    ChainHead,
    Checkpoint,
    Finality,
    Fork,
    Genesis,
    AttesterDuty,
    ProposerDuty,
    BeaconCommittee,
    Validator,
    BeaconCommitteeSubscription,
    HeadEvent,
    BlockEvent,
    FinalizedCheckpointEvent,
    ChainReorgEvent,
    Event,
    EVENT_TYPES,
)

__all__ = [
    "ValidatorState",
    "validator_to_state",
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
