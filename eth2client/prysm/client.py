"""Adapter for Prysm's JSON gateway over its v1alpha1 API."""

import logging
import re
from typing import Any, Optional, Sequence

from ..api.types import (
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
from ..api.validatorstate import validator_to_state
from ..base import BaseClient
from ..chainspec import parse_spec
from ..codec import decode_uint64
from ..domain import fork_at_epoch
from ..events import Emit
from ..exceptions import BackendRejected, DecodingError, Eth2ClientError, NotFound
from ..http import decode_json
from ..service import Backend
from ..spec.types import (
    Attestation,
    SignedAggregateAndProof,
    SignedBeaconBlock,
    SignedVoluntaryExit,
)
from ..spec.types import Validator as ValidatorRecord
from ..stateid import StateIdLike
from .convert import (
    config_to_spec,
    decode_fixed,
    encode_base64,
    from_gateway,
    parse_timestamp,
    to_gateway,
)

logger = logging.getLogger(__name__)

API_PREFIX = "/eth/v1alpha1"

# Asked for first; Prysm reports its own cap when this is too large.
REQUESTED_PAGE_SIZE = 9999999
DEFAULT_PAGE_SIZE = 250

_PAGE_SIZE_LIMIT = re.compile(r"^.*Requested page size \d+ can not be greater than max size ([0-9]+)")


def _uint(data: Any, name: str, path: str = "") -> int:
    """Read a counter, treating an omitted field as its proto zero value."""
    field_path = f"{path}.{name}" if path else name
    if not isinstance(data, dict):
        raise DecodingError("expected object", path)
    value = data.get(name)
    if value is None:
        return 0
    return decode_uint64(value, field_path, allow_number=True)


def _bytes(data: Any, name: str, length: int, path: str = "") -> bytes:
    field_path = f"{path}.{name}" if path else name
    if not isinstance(data, dict) or data.get(name) is None:
        raise DecodingError("missing field", field_path)
    return decode_fixed(data[name], length, field_path)


def _list(data: Any, name: str, path: str = "") -> list:
    field_path = f"{path}.{name}" if path else name
    if not isinstance(data, dict):
        raise DecodingError("expected object", path)
    value = data.get(name)
    if value is None:
        return []
    if not isinstance(value, list):
        raise DecodingError(f"expected array, got {type(value).__name__}", field_path)
    return value


def _epoch_params(epoch: int) -> list:
    # Epoch zero is only reachable through the genesis flag.
    if epoch == 0:
        return [("genesis", "true")]
    return [("epoch", str(epoch))]


class PrysmClient(BaseClient):
    """Client for Prysm nodes through the gRPC JSON gateway."""

    backend = Backend.PRYSM

    def __init__(self, config, transport=None):
        super().__init__(config, transport)
        self._index_pubkeys: dict[int, bytes] = {}

    async def _get(self, path: str, operation: str, params=None) -> Any:
        return await self._get_json(f"{API_PREFIX}{path}", operation, params=params)

    async def _post(self, path: str, body, operation: str) -> Any:
        return await self._post_json(f"{API_PREFIX}{path}", body, operation)

    # Node and chain constants

    async def node_version(self) -> str:
        data = await self._get("/node/version", "node version")
        version = data.get("version") if isinstance(data, dict) else None
        if not isinstance(version, str):
            raise DecodingError("missing field", "version")
        return version

    async def _fetch_spec(self) -> dict:
        data = await self._get("/beacon/config", "spec")
        config = data.get("config") if isinstance(data, dict) else None
        if not isinstance(config, dict):
            raise DecodingError("missing field", "config")
        return parse_spec(config_to_spec(config))

    async def _fetch_genesis(self) -> Genesis:
        data = await self._get("/node/genesis", "genesis")
        if not isinstance(data, dict):
            raise DecodingError(f"expected object, got {type(data).__name__}")
        spec = await self.spec()
        fork_version = spec.get("GENESIS_FORK_VERSION")
        if not isinstance(fork_version, bytes):
            raise DecodingError("missing or non-hex value", "GENESIS_FORK_VERSION")
        return Genesis(
            genesis_time=parse_timestamp(data.get("genesisTime"), "genesisTime"),
            genesis_validators_root=_bytes(data, "genesisValidatorsRoot", 32),
            genesis_fork_version=fork_version,
        )

    async def _fetch_fork_schedule(self) -> list[Fork]:
        """Prysm publishes no schedule; the chain has only its genesis fork."""
        version = (await self.genesis()).genesis_fork_version
        return [Fork(previous_version=version, current_version=version, epoch=0)]

    async def _max_page_size(self) -> int:
        return await self._cache.get("max_page_size", self._discover_page_size)

    async def _discover_page_size(self) -> int:
        try:
            await self._get("/validators", "max page size", params=[("pageSize", str(REQUESTED_PAGE_SIZE))])
        except BackendRejected as e:
            match = _PAGE_SIZE_LIMIT.match(e.message)
            if match:
                return int(match.group(1))
            self._log.warning(f"Failed to obtain maximum page size, using default: {e}")
            return DEFAULT_PAGE_SIZE
        return REQUESTED_PAGE_SIZE

    # State

    async def fork(self, state_id: StateIdLike) -> Fork:
        epoch = await self.epoch_from_state_id(state_id)
        return fork_at_epoch(await self._domains.schedule(), epoch)

    async def _chainhead(self) -> dict:
        data = await self._get("/beacon/chainhead", "chain head")
        if not isinstance(data, dict):
            raise DecodingError(f"expected object, got {type(data).__name__}")
        return data

    async def chain_head(self) -> ChainHead:
        data = await self._chainhead()
        slot = _uint(data, "headSlot")
        block = await self.signed_beacon_block(slot)
        if block is None:
            raise NotFound(f"no block at head slot {slot}", "chain head")
        return ChainHead(
            slot=slot,
            block_root=_bytes(data, "headBlockRoot", 32),
            state_root=bytes(block.message.state_root),
            finalized_slot=_uint(data, "finalizedSlot"),
            finalized_block_root=_bytes(data, "finalizedBlockRoot", 32),
            justified_slot=_uint(data, "justifiedSlot"),
            justified_block_root=_bytes(data, "justifiedBlockRoot", 32),
        )

    async def finality(self, state_id: StateIdLike) -> Finality:
        """Checkpoints as of the head; Prysm does not serve them per state."""
        data = await self._chainhead()
        return Finality(
            finalized=Checkpoint(
                epoch=_uint(data, "finalizedEpoch"), root=_bytes(data, "finalizedBlockRoot", 32)
            ),
            current_justified=Checkpoint(
                epoch=_uint(data, "justifiedEpoch"), root=_bytes(data, "justifiedBlockRoot", 32)
            ),
            previous_justified=Checkpoint(
                epoch=_uint(data, "previousJustifiedEpoch"),
                root=_bytes(data, "previousJustifiedBlockRoot", 32),
            ),
        )

    async def _slot_to_root(self, slot: int) -> bytes:
        block = await self.signed_beacon_block(slot)
        if block is None:
            raise NotFound(f"no block at slot {slot}", "beacon state root")
        return bytes(block.message.state_root)

    async def signed_beacon_block(self, slot: int) -> Optional[SignedBeaconBlock]:
        params = [("genesis", "true")] if slot == 0 else [("slot", str(slot))]
        data = await self._get("/beacon/blocks", "signed beacon block", params=params)
        containers = _list(data, "blockContainers")
        if not containers:
            return None
        block = from_gateway(SignedBeaconBlock, containers[0].get("block"), "blockContainers[0].block")
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
        data = await self._get("/beacon/committees", "beacon committees", params=_epoch_params(epoch))
        by_slot = data.get("committees") if isinstance(data, dict) else None
        if not isinstance(by_slot, dict):
            raise DecodingError("missing field", "committees")

        committees = []
        for slot_key, entry in by_slot.items():
            slot = decode_uint64(slot_key, f"committees.{slot_key}")
            for index, committee in enumerate(_list(entry, "committees", f"committees.{slot_key}")):
                path = f"committees.{slot_key}.committees[{index}]"
                committees.append(
                    BeaconCommittee(
                        slot=slot,
                        index=index,
                        validators=tuple(
                            decode_uint64(member, f"{path}.validatorIndices[{j}]", allow_number=True)
                            for j, member in enumerate(_list(committee, "validatorIndices", path))
                        ),
                    )
                )
        committees.sort(key=lambda committee: (committee.slot, committee.index))
        return committees

    # Validators

    async def _paged(self, path: str, operation: str, params: list, key: str) -> list:
        page_size = await self._max_page_size()
        items = []
        token = ""
        while True:
            page_params = params + [("pageSize", str(page_size))]
            if token:
                page_params.append(("pageToken", token))
            data = await self._get(path, operation, params=page_params)
            items.extend(_list(data, key))
            token = data.get("nextPageToken") or ""
            if not token:
                return items

    @staticmethod
    def _filter_params(indices: Optional[Sequence[int]], pubkeys: Optional[Sequence[bytes]]) -> list:
        params = [("indices", str(index)) for index in indices or ()]
        params.extend(("publicKeys", encode_base64(pubkey)) for pubkey in pubkeys or ())
        return params

    async def _list_validators(
        self,
        epoch: int,
        indices: Optional[Sequence[int]] = None,
        pubkeys: Optional[Sequence[bytes]] = None,
    ) -> dict[int, ValidatorRecord]:
        params = _epoch_params(epoch) + self._filter_params(indices, pubkeys)
        entries = await self._paged("/validators", "validators", params, "validatorList")
        records = {}
        for i, entry in enumerate(entries):
            path = f"validatorList[{i}]"
            index = _uint(entry, "index", path)
            record = from_gateway(ValidatorRecord, entry.get("validator"), f"{path}.validator")
            records[index] = record
            self._index_pubkeys[index] = bytes(record.pubkey)
        return records

    async def _list_balances(
        self,
        epoch: int,
        indices: Optional[Sequence[int]] = None,
        pubkeys: Optional[Sequence[bytes]] = None,
    ) -> dict[int, int]:
        params = _epoch_params(epoch) + self._filter_params(indices, pubkeys)
        entries = await self._paged("/validators/balances", "validator balances", params, "balances")
        return {
            _uint(entry, "index", f"balances[{i}]"): _uint(entry, "balance", f"balances[{i}]")
            for i, entry in enumerate(entries)
        }

    async def _validators(
        self,
        state_id: StateIdLike,
        indices: Optional[Sequence[int]] = None,
        pubkeys: Optional[Sequence[bytes]] = None,
    ) -> dict[int, Validator]:
        epoch = await self.epoch_from_state_id(state_id)
        far_future_epoch = await self.far_future_epoch()
        records = await self._list_validators(epoch, indices, pubkeys)
        balances = await self._list_balances(epoch, indices, pubkeys)
        validators = {}
        for index, record in records.items():
            balance = balances.get(index, 0)
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
        return await self._validators(state_id, indices=indices)

    async def validators_by_pubkey(
        self, state_id: StateIdLike, pubkeys: Sequence[bytes]
    ) -> dict[int, Validator]:
        if not pubkeys:
            return {}
        return await self._validators(state_id, pubkeys=[bytes(pubkey) for pubkey in pubkeys])

    async def validator_balances(
        self, state_id: StateIdLike, indices: Optional[Sequence[int]] = None
    ) -> dict[int, int]:
        epoch = await self.epoch_from_state_id(state_id)
        return await self._list_balances(epoch, indices)

    # Duties

    async def _pubkeys_for(self, epoch: int, indices: Optional[Sequence[int]]) -> list[bytes]:
        """Public keys for ``indices``; all validators when none are given.

        Duties are requested by public key, so unknown indices are looked up
        first.
        """
        if not indices:
            records = await self._list_validators(epoch)
            return [bytes(record.pubkey) for record in records.values()]
        missing = [index for index in indices if index not in self._index_pubkeys]
        if missing:
            await self._list_validators(epoch, indices=missing)
        pubkeys = []
        for index in indices:
            pubkey = self._index_pubkeys.get(index)
            if pubkey is None:
                self._log.warning(f"Failed to obtain public key for validator {index}")
                continue
            pubkeys.append(pubkey)
        return pubkeys

    async def _duties(self, epoch: int, pubkeys: Sequence[bytes], operation: str) -> list:
        params = [("epoch", str(epoch))] + [("publicKeys", encode_base64(pubkey)) for pubkey in pubkeys]
        data = await self._get("/validator/duties", operation, params=params)
        return _list(data, "currentEpochDuties")

    async def attester_duties(
        self, epoch: int, indices: Optional[Sequence[int]] = None
    ) -> list[AttesterDuty]:
        if indices is not None and len(indices) == 0:
            return []
        pubkeys = await self._pubkeys_for(epoch, indices)
        if not pubkeys:
            return []
        duties = []
        for i, entry in enumerate(await self._duties(epoch, pubkeys, "attester duties")):
            path = f"currentEpochDuties[{i}]"
            committee = [
                decode_uint64(member, f"{path}.committee[{j}]", allow_number=True)
                for j, member in enumerate(_list(entry, "committee", path))
            ]
            validator_index = _uint(entry, "validatorIndex", path)
            if validator_index not in committee:
                # Validators without a committee this epoch have nothing to attest to.
                continue
            duties.append(
                AttesterDuty(
                    pubkey=_bytes(entry, "publicKey", 48, path),
                    slot=_uint(entry, "attesterSlot", path),
                    validator_index=validator_index,
                    committee_index=_uint(entry, "committeeIndex", path),
                    committee_length=len(committee),
                    # Not reported by the gateway.
                    committees_at_slot=0,
                    validator_committee_index=committee.index(validator_index),
                )
            )
        return duties

    async def proposer_duties(
        self, epoch: int, indices: Optional[Sequence[int]] = None
    ) -> list[ProposerDuty]:
        pubkeys = await self._pubkeys_for(epoch, indices)
        if not pubkeys:
            return []
        duties = []
        for i, entry in enumerate(await self._duties(epoch, pubkeys, "proposer duties")):
            path = f"currentEpochDuties[{i}]"
            for j, slot in enumerate(_list(entry, "proposerSlots", path)):
                duties.append(
                    ProposerDuty(
                        pubkey=_bytes(entry, "publicKey", 48, path),
                        slot=decode_uint64(slot, f"{path}.proposerSlots[{j}]", allow_number=True),
                        validator_index=_uint(entry, "validatorIndex", path),
                    )
                )
        duties.sort(key=lambda duty: duty.slot)
        return duties

    # Submitters

    async def submit_attestation(self, attestation: Attestation) -> None:
        await self._post("/validator/attestation", to_gateway(attestation), "submit attestation")

    async def submit_aggregate_attestations(
        self, aggregates: Sequence[SignedAggregateAndProof]
    ) -> None:
        for aggregate in aggregates:
            await self._post(
                "/validator/aggregate",
                {"signedAggregateAndProof": to_gateway(aggregate)},
                "submit aggregate attestations",
            )

    async def submit_beacon_block(self, block: SignedBeaconBlock) -> None:
        await self._post("/validator/block", to_gateway(block), "submit beacon block")

    async def submit_voluntary_exit(self, exit: SignedVoluntaryExit) -> None:
        await self._post("/validator/exit", to_gateway(exit), "submit voluntary exit")

    async def submit_beacon_committee_subscriptions(
        self, subscriptions: Sequence[BeaconCommitteeSubscription]
    ) -> None:
        body = {
            "slots": [str(subscription.slot) for subscription in subscriptions],
            "committeeIds": [str(subscription.committee_index) for subscription in subscriptions],
            "isAggregator": [subscription.aggregate for subscription in subscriptions],
        }
        await self._post("/validator/subnet/subscribe", body, "submit beacon committee subscriptions")

    # Events

    async def _head_source(self, emit: Emit) -> None:
        """Follow the chain head stream.

        Each stream message carries the head block root but not its state
        root, so the block is fetched for every update.
        """
        last_epoch = 0
        async for line in self._http.stream_lines(f"{API_PREFIX}/beacon/chainhead/stream", "chain head stream"):
            line = line.strip()
            if not line:
                continue
            message = decode_json(line, "chain head stream")
            if not isinstance(message, dict):
                continue
            if message.get("error"):
                self._log.warning(f"Chain head stream reported an error: {message['error']}")
                return
            head = message.get("result")
            if not isinstance(head, dict):
                continue

            slot = _uint(head, "headSlot", "result")
            epoch = _uint(head, "headEpoch", "result")
            try:
                block = await self.signed_beacon_block(slot)
            except Eth2ClientError as e:
                self._log.warning(f"Failed to obtain head block at slot {slot}: {e}")
                return
            if block is None:
                self._log.warning(f"Obtained no head block at slot {slot}")
                return

            await emit(
                HeadEvent(
                    slot=slot,
                    block=_bytes(head, "headBlockRoot", 32, "result"),
                    state=bytes(block.message.state_root),
                    epoch_transition=epoch != last_epoch,
                )
            )
            last_epoch = epoch
