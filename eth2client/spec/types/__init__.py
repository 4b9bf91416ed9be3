"""Wire types for beacon node APIs.

- base.py: primitives and the fork/signing containers
- phase0.py: containers submitted to and fetched from nodes
- altair.py .. electra.py: the block containers of later forks
"""

from typing import Union

from .base import (
    uint8, uint64, uint256, boolean,
    ByteList, ByteVector,
    Bytes4, Bytes20, Bytes32, Bytes48, Bytes96,
    Container, Vector, List, Bitlist, Bitvector,
    Slot, Epoch, CommitteeIndex, ValidatorIndex, Gwei,
    Root, Hash32, Version, DomainType, Domain,
    BLSPubkey, BLSSignature, ExecutionAddress, WithdrawalIndex,
    KZGCommitment, Transaction,
    Fork, ForkData, Checkpoint,
)
from .phase0 import (
    Validator,
    AttestationData,
    Attestation,
    IndexedAttestation,
    AttesterSlashing,
    AggregateAndProof,
    SignedAggregateAndProof,
    Eth1Data,
    BeaconBlockHeader,
    SignedBeaconBlockHeader,
    ProposerSlashing,
    DepositData,
    Deposit,
    VoluntaryExit,
    SignedVoluntaryExit,
    BeaconBlockBody,
    BeaconBlock,
    SignedBeaconBlock,
)
from .altair import SyncAggregate, SignedAltairBeaconBlock
from .bellatrix import SignedBellatrixBeaconBlock
from .capella import Withdrawal, SignedBLSToExecutionChange, SignedCapellaBeaconBlock
from .deneb import SignedDenebBeaconBlock
from .electra import ElectraAttestation, ExecutionRequests, SignedElectraBeaconBlock

# Block container per consensus version, keyed as nodes report it.
SIGNED_BEACON_BLOCK_TYPES = {
    "phase0": SignedBeaconBlock,
    "altair": SignedAltairBeaconBlock,
    "bellatrix": SignedBellatrixBeaconBlock,
    "capella": SignedCapellaBeaconBlock,
    "deneb": SignedDenebBeaconBlock,
    "electra": SignedElectraBeaconBlock,
    "fulu": SignedElectraBeaconBlock,
}

AnySignedBeaconBlock = Union[
    SignedBeaconBlock,
    SignedAltairBeaconBlock,
    SignedBellatrixBeaconBlock,
    SignedCapellaBeaconBlock,
    SignedDenebBeaconBlock,
    SignedElectraBeaconBlock,
]

__all__ = [
    "uint8", "uint64", "uint256", "boolean",
    "ByteList", "ByteVector",
    "Bytes4", "Bytes20", "Bytes32", "Bytes48", "Bytes96",
    "Container", "Vector", "List", "Bitlist", "Bitvector",
    "Slot", "Epoch", "CommitteeIndex", "ValidatorIndex", "Gwei",
    "Root", "Hash32", "Version", "DomainType", "Domain",
    "BLSPubkey", "BLSSignature", "ExecutionAddress", "WithdrawalIndex",
    "KZGCommitment", "Transaction",
    "Fork", "ForkData", "Checkpoint",
    "Validator", "AttestationData", "Attestation", "IndexedAttestation",
    "AttesterSlashing", "AggregateAndProof", "SignedAggregateAndProof",
    "Eth1Data", "BeaconBlockHeader", "SignedBeaconBlockHeader",
    "ProposerSlashing", "DepositData", "Deposit",
    "VoluntaryExit", "SignedVoluntaryExit",
    "BeaconBlockBody", "BeaconBlock", "SignedBeaconBlock",
    "SyncAggregate", "SignedAltairBeaconBlock",
    "SignedBellatrixBeaconBlock",
    "Withdrawal", "SignedBLSToExecutionChange", "SignedCapellaBeaconBlock",
    "SignedDenebBeaconBlock",
    "ElectraAttestation", "ExecutionRequests", "SignedElectraBeaconBlock",
    "SIGNED_BEACON_BLOCK_TYPES", "AnySignedBeaconBlock",
]
