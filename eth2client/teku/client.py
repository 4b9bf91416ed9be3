"""Adapter for Teku's legacy REST API.

Teku quotes its counters like the canonical dialect, but it names a few
fields differently and has no push stream for head updates, so the head is
polled.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, NamedTuple, Optional, Sequence

from ..api.types import (
    BeaconCommittee,
    BeaconCommitteeSubscription,
    ChainHead,
    Checkpoint,
    Finality,
    Fork,
    Genesis,
    Validator,
)
from ..api.validatorstate import validator_to_state
from ..base import BaseClient
from ..chainspec import parse_spec
from ..codec import decode_hex, decode_uint64, encode_hex, from_obj, to_obj
from ..events import Emit, poll_head_source
from ..exceptions import DecodingError, Eth2ClientError, SubmissionFailed
from ..http import decode_json
from ..quirks import canonical_aggregate_to_teku, teku_block_to_canonical
from ..service import Backend
from ..spec.types import SignedAggregateAndProof, SignedBeaconBlock
from ..spec.types import Validator as ValidatorRecord
from ..stateid import StateIdentifier, StateIdLike, epoch_at_slot

logger = logging.getLogger(__name__)

# Teku caps the page at its own maximum; this asks for everything.
ALL_VALIDATORS_PAGE_SIZE = 9999999


class BeaconHead(NamedTuple):
    slot: int
    block_root: bytes
    state_root: bytes


def _uint(data: Any, name: str, path: str = "") -> int:
    field_path = f"{path}.{name}" if path else name
    if not isinstance(data, dict) or name not in data:
        raise DecodingError("missing field", field_path)
    return decode_uint64(data[name], field_path, allow_number=True)


def _root(data: Any, name: str, path: str = "") -> bytes:
    field_path = f"{path}.{name}" if path else name
    if not isinstance(data, dict) or name not in data:
        raise DecodingError("missing field", field_path)
    return decode_hex(data[name], 32, field_path)


class TekuClient(BaseClient):
    """Client for Teku nodes exposing the pre-standard REST API."""

    backend = Backend.TEKU

    # Node and chain constants

    async def node_version(self) -> str:
        version = await self._get_json("/node/version", "node version")
        if not isinstance(version, str):
            raise DecodingError(f"expected string, got {type(version).__name__}", "version")
        return version

    async def _fetch_spec(self) -> dict:
        data = await self._get_json("/spec", "spec")
        if not isinstance(data, dict):
            raise DecodingError(f"expected object, got {type(data).__name__}")
        return parse_spec({key.upper(): value for key, value in data.items()})

    async def _fetch_genesis(self) -> Genesis:
        genesis_time = await self._get_json("/node/genesis_time", "genesis time")
        state = await self._get_json("/beacon/state", "genesis state", params={"slot": "0"})
        spec = await self.spec()
        fork_version = spec.get("GENESIS_FORK_VERSION")
        if not isinstance(fork_version, bytes):
            raise DecodingError("missing or non-hex value", "GENESIS_FORK_VERSION")
        return Genesis(
            genesis_time=datetime.fromtimestamp(
                decode_uint64(genesis_time, "genesis_time", allow_number=True), tz=timezone.utc
            ),
            genesis_validators_root=_root(state, "genesis_validators_root"),
            genesis_fork_version=fork_version,
        )

    async def _fetch_fork_schedule(self) -> list[Fork]:
        return [await self._node_fork()]

    async def _node_fork(self) -> Fork:
        return Fork.from_dict(await self._get_json("/node/fork", "fork"))

    # State

    async def fork(self, state_id: StateIdLike) -> Fork:
        """The fork in force at the head; Teku reports no other."""
        StateIdentifier.parse(state_id)
        return await self._node_fork()

    async def _beacon_head(self) -> BeaconHead:
        data = await self._get_json("/beacon/head", "beacon head")
        return BeaconHead(
            slot=_uint(data, "slot"),
            block_root=_root(data, "block_root"),
            state_root=_root(data, "state_root"),
        )

    async def _chainhead(self) -> dict:
        data = await self._get_json("/beacon/chainhead", "chain head")
        if not isinstance(data, dict):
            raise DecodingError(f"expected object, got {type(data).__name__}")
        return data

    async def chain_head(self) -> ChainHead:
        head = await self._beacon_head()
        data = await self._chainhead()
        return ChainHead(
            slot=head.slot,
            block_root=head.block_root,
            state_root=head.state_root,
            finalized_slot=_uint(data, "finalized_slot"),
            finalized_block_root=_root(data, "finalized_block"),
            justified_slot=_uint(data, "justified_slot"),
            justified_block_root=_root(data, "justified_block"),
        )

    async def finality(self, state_id: StateIdLike) -> Finality:
        StateIdentifier.parse(state_id)
        data = await self._chainhead()
        slots_per_epoch = await self.slots_per_epoch()

        def checkpoint(prefix: str) -> Checkpoint:
            return Checkpoint(
                epoch=epoch_at_slot(_uint(data, f"{prefix}_slot"), slots_per_epoch),
                root=_root(data, f"{prefix}_block"),
            )

        return Finality(
            finalized=checkpoint("finalized"),
            current_justified=checkpoint("justified"),
            previous_justified=checkpoint("previous_justified"),
        )

    async def _root_to_slot(self, root: bytes) -> int:
        state = await self._get_json("/beacon/state", "beacon state", params={"stateRoot": encode_hex(root)})
        return _uint(state, "slot")

    async def _slot_to_root(self, slot: int) -> bytes:
        root = await self._get_json("/beacon/state_root", "beacon state root", params={"slot": str(slot)})
        return decode_hex(root, 32, "state_root")

    async def signed_beacon_block(self, slot: int) -> Optional[SignedBeaconBlock]:
        raw = await self._http.get("/beacon/block", "signed beacon block", params={"slot": str(slot)})
        data = decode_json(teku_block_to_canonical(raw), "signed beacon block")
        if not isinstance(data, dict) or data.get("beacon_block") is None:
            return None
        block = from_obj(SignedBeaconBlock, data["beacon_block"], "beacon_block")
        returned = int(block.message.slot)
        if returned != slot:
            if returned < slot:
                # An empty slot is answered with the last block before it.
                self._log.debug(f"Block returned for earlier slot {returned} than requested {slot}; ignoring")
                return None
            raise DecodingError(f"failed to obtain correct block (requested {slot}, returned {returned})")
        return block

    async def beacon_committees(self, state_id: StateIdLike) -> list[BeaconCommittee]:
        epoch = await self.epoch_from_state_id(state_id)
        data = await self._get_json("/beacon/committees", "beacon committees", params={"epoch": str(epoch)})
        if not isinstance(data, list):
            raise DecodingError(f"expected array, got {type(data).__name__}")
        committees = []
        for i, entry in enumerate(data):
            path = f"[{i}]"
            members = entry.get("committee") if isinstance(entry, dict) else None
            if not isinstance(members, list):
                raise DecodingError("missing field", f"{path}.committee")
            committees.append(
                BeaconCommittee(
                    slot=_uint(entry, "slot", path),
                    index=_uint(entry, "index", path),
                    validators=tuple(
                        decode_uint64(member, f"{path}.committee[{j}]", allow_number=True)
                        for j, member in enumerate(members)
                    ),
                )
            )
        return committees

    async def _all_validators(self, state_id: StateIdLike) -> dict[int, Validator]:
        epoch = await self.epoch_from_state_id(state_id)
        far_future_epoch = await self.far_future_epoch()
        data = await self._get_json(
            "/beacon/validators",
            "validators",
            params={"pageSize": str(ALL_VALIDATORS_PAGE_SIZE), "epoch": str(epoch)},
        )
        entries = data.get("validators") if isinstance(data, dict) else None
        if not isinstance(entries, list):
            raise DecodingError("missing field", "validators")

        validators = {}
        for i, entry in enumerate(entries):
            path = f"validators[{i}]"
            index = _uint(entry, "validator_index", path)
            balance = 0
            if entry.get("balance") not in (None, ""):
                balance = decode_uint64(entry["balance"], f"{path}.balance", allow_number=True)
            record = from_obj(ValidatorRecord, entry.get("validator"), f"{path}.validator")
            validators[index] = Validator(
                index=index,
                balance=balance,
                status=validator_to_state(record, balance, epoch, far_future_epoch),
                validator=record,
            )
        return validators

    async def validators(
        self, state_id: StateIdLike, indices: Optional[Sequence[int]] = None
    ) -> dict[int, Validator]:
        validators = await self._all_validators(state_id)
        if not indices:
            return validators
        return {index: validators[index] for index in indices if index in validators}

    async def validators_by_pubkey(
        self, state_id: StateIdLike, pubkeys: Sequence[bytes]
    ) -> dict[int, Validator]:
        wanted = {bytes(pubkey) for pubkey in pubkeys}
        if not wanted:
            return {}
        validators = await self._all_validators(state_id)
        return {index: validator for index, validator in validators.items() if validator.pubkey in wanted}

    async def validator_balances(
        self, state_id: StateIdLike, indices: Optional[Sequence[int]] = None
    ) -> dict[int, int]:
        validators = await self.validators(state_id, indices)
        return {index: validator.balance for index, validator in validators.items()}

    # Submitters

    async def submit_aggregate_attestations(
        self, aggregates: Sequence[SignedAggregateAndProof]
    ) -> None:
        for aggregate in aggregates:
            body = canonical_aggregate_to_teku(json.dumps(to_obj(aggregate), separators=(",", ":")))
            response = await self._http.post(
                "/validator/aggregate_and_proofs", body, "submit aggregate attestations"
            )
            if response:
                raise SubmissionFailed(
                    f"failed to submit aggregate attestation: {response.decode('utf-8', errors='replace')}",
                    operation="submit aggregate attestations",
                )

    async def _submit_subscription(self, subscription: BeaconCommitteeSubscription) -> None:
        body = {
            "aggregation_slot": str(subscription.slot),
            "committee_index": str(subscription.committee_index),
        }
        response = await self._http.post(
            "/validator/beacon_committee_subscription", body, "submit beacon committee subscription"
        )
        if response:
            raise SubmissionFailed(
                f"failed to submit beacon committee subscription: {response.decode('utf-8', errors='replace')}",
                operation="submit beacon committee subscription",
            )

    async def submit_beacon_committee_subscriptions(
        self, subscriptions: Sequence[BeaconCommitteeSubscription]
    ) -> None:
        """Subscribe to each committee in turn, carrying on past failures."""
        has_errors = False
        for subscription in subscriptions:
            try:
                await self._submit_subscription(subscription)
            except Eth2ClientError as e:
                self._log.error(
                    f"Failed to subscribe to beacon committee {subscription.committee_index} "
                    f"at slot {subscription.slot}: {e}"
                )
                has_errors = True
        if has_errors:
            raise SubmissionFailed("submitted with errors", operation="submit beacon committee subscriptions")

    # Events

    async def _head_source(self, emit: Emit) -> None:
        source = poll_head_source(
            self._beacon_head, self.slots_per_epoch, self.config.head_poll_interval, self._log
        )
        await source(emit)
