"""Adapter for Lighthouse's legacy REST API.

Lighthouse writes counters as bare JSON numbers. Every response is passed
through the quirk translator before decoding and every request body on the
way out, so the rest of the adapter only ever sees canonical JSON.
"""

import json
import logging
from datetime import datetime, timezone
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
    ProposerDuty,
    Validator,
)
from ..api.validatorstate import validator_to_state
from ..base import BaseClient
from ..chainspec import parse_spec
from ..codec import decode_hex, decode_uint64, encode_hex, from_obj, to_obj
from ..domain import compute_domain
from ..events import Emit, poll_head_source
from ..exceptions import DecodingError, InvalidDomain, NotFound, SubmissionFailed
from ..http import decode_json
from ..quirks import canonical_to_lighthouse, lighthouse_to_canonical
from ..service import Backend
from ..spec.types import Attestation, SignedAggregateAndProof, SignedBeaconBlock, SignedVoluntaryExit
from ..spec.types import Validator as ValidatorRecord
from ..stateid import StateIdentifier, StateIdLike, epoch_at_slot, start_slot_of_epoch
from ..submission import submit_with_subnet_retry

logger = logging.getLogger(__name__)


def _uint(data: dict, name: str, path: str = "") -> int:
    field_path = f"{path}.{name}" if path else name
    if not isinstance(data, dict) or name not in data:
        raise DecodingError("missing field", field_path)
    return decode_uint64(data[name], field_path, allow_number=True)


def _root(data: dict, name: str, path: str = "") -> bytes:
    field_path = f"{path}.{name}" if path else name
    if not isinstance(data, dict) or name not in data:
        raise DecodingError("missing field", field_path)
    return decode_hex(data[name], 32, field_path)


class LighthouseClient(BaseClient):
    """Client for Lighthouse nodes exposing the pre-standard REST API."""

    backend = Backend.LIGHTHOUSE

    async def _get_lh(self, path: str, operation: str, params: Optional[dict] = None) -> Any:
        raw = await self._http.get(path, operation, params=params)
        return decode_json(lighthouse_to_canonical(raw), operation)

    async def _post_lh(self, path: str, body: Any, operation: str, params: Optional[dict] = None) -> bytes:
        text = body if isinstance(body, str) else json.dumps(body, separators=(",", ":"))
        return await self._http.post(path, canonical_to_lighthouse(text), operation, params=params)

    # Node and chain constants

    async def node_version(self) -> str:
        version = decode_json(await self._http.get("/node/version", "node version"), "node version")
        if not isinstance(version, str):
            raise DecodingError(f"expected string, got {type(version).__name__}", "version")
        return version

    async def _fetch_spec(self) -> dict:
        data = await self._get_lh("/spec", "spec")
        if not isinstance(data, dict):
            raise DecodingError(f"expected object, got {type(data).__name__}")
        values = {key.upper(): value for key, value in data.items()}
        if "SLOTS_PER_EPOCH" not in values:
            values["SLOTS_PER_EPOCH"] = await self._get_lh("/spec/slots_per_epoch", "slots per epoch")
        return parse_spec(values)

    async def _fetch_genesis(self) -> Genesis:
        genesis_time = decode_json(await self._http.get("/beacon/genesis_time", "genesis time"))
        root = decode_json(
            await self._http.get("/beacon/genesis_validators_root", "genesis validators root")
        )
        spec = await self.spec()
        fork_version = spec.get("GENESIS_FORK_VERSION")
        if not isinstance(fork_version, bytes):
            raise DecodingError("missing or non-hex value", "GENESIS_FORK_VERSION")
        return Genesis(
            genesis_time=datetime.fromtimestamp(
                decode_uint64(genesis_time, "genesis_time", allow_number=True), tz=timezone.utc
            ),
            genesis_validators_root=decode_hex(root, 32, "genesis_validators_root"),
            genesis_fork_version=fork_version,
        )

    async def _fetch_fork_schedule(self) -> list[Fork]:
        # Only the fork in force at the head is available.
        return [await self.fork("head")]

    # State

    async def _beacon_state(self, params: dict, operation: str) -> dict:
        data = await self._get_lh("/beacon/state", operation, params=params)
        if not isinstance(data, dict) or not isinstance(data.get("beacon_state"), dict):
            raise DecodingError("missing field", "beacon_state")
        return data["beacon_state"]

    async def fork(self, state_id: StateIdLike) -> Fork:
        ident = StateIdentifier.parse(state_id)
        if ident.root is not None:
            state = await self._beacon_state({"root": encode_hex(ident.root)}, "fork")
        else:
            state = await self._beacon_state({"slot": str(await self.slot_from_state_id(ident))}, "fork")
        if "fork" not in state:
            raise DecodingError("missing field", "beacon_state.fork")
        return Fork.from_dict(state["fork"], "beacon_state.fork")

    async def domain(self, domain_type: bytes, epoch: int) -> bytes:
        """Domain from the fork of the state at the start of ``epoch``."""
        if len(domain_type) != 4:
            raise InvalidDomain(f"domain type must be 4 bytes, got {len(domain_type)}")
        slots_per_epoch = await self.slots_per_epoch()
        fork = await self.fork(start_slot_of_epoch(epoch, slots_per_epoch))
        return compute_domain(domain_type, epoch, fork, await self.genesis_validators_root())

    async def _head(self) -> dict:
        data = await self._get_lh("/beacon/head", "beacon head")
        if not isinstance(data, dict):
            raise DecodingError(f"expected object, got {type(data).__name__}")
        return data

    async def chain_head(self) -> ChainHead:
        data = await self._head()
        return ChainHead(
            slot=_uint(data, "slot"),
            block_root=_root(data, "block_root"),
            state_root=_root(data, "state_root"),
            finalized_slot=_uint(data, "finalized_slot"),
            finalized_block_root=_root(data, "finalized_block_root"),
            justified_slot=_uint(data, "justified_slot"),
            justified_block_root=_root(data, "justified_block_root"),
        )

    async def finality(self, state_id: StateIdLike) -> Finality:
        """Checkpoints as seen from the head; other states are answered the same way."""
        data = await self._head()
        slots_per_epoch = await self.slots_per_epoch()

        def checkpoint(prefix: str) -> Checkpoint:
            return Checkpoint(
                epoch=epoch_at_slot(_uint(data, f"{prefix}_slot"), slots_per_epoch),
                root=_root(data, f"{prefix}_block_root"),
            )

        return Finality(
            finalized=checkpoint("finalized"),
            current_justified=checkpoint("justified"),
            previous_justified=checkpoint("previous_justified"),
        )

    async def _root_to_slot(self, root: bytes) -> int:
        state = await self._beacon_state({"root": encode_hex(root)}, "beacon state")
        return _uint(state, "slot", "beacon_state")

    async def _slot_to_root(self, slot: int) -> bytes:
        block = await self.signed_beacon_block(slot)
        if block is None:
            raise NotFound(f"no block at slot {slot}", "beacon state root")
        return bytes(block.message.state_root)

    async def signed_beacon_block(self, slot: int) -> Optional[SignedBeaconBlock]:
        data = await self._get_lh("/beacon/block", "signed beacon block", params={"slot": str(slot)})
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
        return await self._committees(epoch)

    async def _committees(self, epoch: int) -> list[BeaconCommittee]:
        data = await self._get_lh("/beacon/committees", "beacon committees", params={"epoch": str(epoch)})
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

    async def _fetch_validators(self, state_id: StateIdLike, pubkeys: Optional[Sequence[bytes]]) -> dict[int, Validator]:
        state_root = await self.beacon_state_root(state_id)
        params = {"state_root": encode_hex(state_root)}
        if pubkeys:
            raw = await self._post_lh(
                "/beacon/validators",
                {"pubkeys": [encode_hex(pubkey) for pubkey in pubkeys]},
                "validators",
                params=params,
            )
            data = decode_json(lighthouse_to_canonical(raw), "validators")
        else:
            data = await self._get_lh("/beacon/validators/all", "validators", params=params)
        if not isinstance(data, list):
            raise DecodingError(f"expected array, got {type(data).__name__}")

        epoch = await self.epoch_from_state_id(state_id)
        far_future_epoch = await self.far_future_epoch()
        validators = {}
        for i, entry in enumerate(data):
            path = f"[{i}]"
            if not isinstance(entry, dict) or entry.get("validator_index") in (None, ""):
                # No index assigned yet.
                continue
            index = decode_uint64(entry["validator_index"], f"{path}.validator_index", allow_number=True)
            balance = None
            if entry.get("balance") not in (None, ""):
                balance = decode_uint64(entry["balance"], f"{path}.balance", allow_number=True)
            record = from_obj(ValidatorRecord, entry.get("validator"), f"{path}.validator")
            validators[index] = Validator(
                index=index,
                balance=balance or 0,
                status=validator_to_state(record, balance, epoch, far_future_epoch),
                validator=record,
            )
        return validators

    async def validators(
        self, state_id: StateIdLike, indices: Optional[Sequence[int]] = None
    ) -> dict[int, Validator]:
        validators = await self._fetch_validators(state_id, None)
        if not indices:
            return validators
        return {index: validators[index] for index in indices if index in validators}

    async def validators_by_pubkey(
        self, state_id: StateIdLike, pubkeys: Sequence[bytes]
    ) -> dict[int, Validator]:
        if not pubkeys:
            return {}
        return await self._fetch_validators(state_id, pubkeys)

    async def validator_balances(
        self, state_id: StateIdLike, indices: Optional[Sequence[int]] = None
    ) -> dict[int, int]:
        validators = await self.validators(state_id, indices)
        return {index: validator.balance for index, validator in validators.items()}

    # Duties

    async def _pubkeys(self, indices: Sequence[int]) -> dict[int, bytes]:
        validators = await self.validators("head", indices)
        missing = [index for index in indices if index not in validators]
        if missing:
            self._log.warning(f"Failed to obtain public keys for validators {missing}; skipping")
        return {index: validator.pubkey for index, validator in validators.items()}

    async def _duties(self, epoch: int, pubkeys: Sequence[bytes], operation: str) -> list:
        raw = await self._post_lh(
            "/validator/duties",
            {"epoch": str(epoch), "pubkeys": [encode_hex(pubkey) for pubkey in pubkeys]},
            operation,
        )
        data = decode_json(lighthouse_to_canonical(raw), operation)
        if not isinstance(data, list):
            raise DecodingError(f"expected array, got {type(data).__name__}")
        return data

    async def attester_duties(
        self, epoch: int, indices: Optional[Sequence[int]] = None
    ) -> list[AttesterDuty]:
        committees = await self._committees(epoch)
        committees_at_slot: dict[int, int] = {}
        sizes: dict[tuple[int, int], int] = {}
        for committee in committees:
            committees_at_slot[committee.slot] = committees_at_slot.get(committee.slot, 0) + 1
            sizes[(committee.slot, committee.index)] = len(committee.validators)

        if indices is None:
            pubkeys = {index: validator.pubkey for index, validator in (await self.validators("head")).items()}
            duties = []
            for committee in committees:
                for position, validator_index in enumerate(committee.validators):
                    if validator_index not in pubkeys:
                        continue
                    duties.append(
                        AttesterDuty(
                            pubkey=pubkeys[validator_index],
                            slot=committee.slot,
                            validator_index=validator_index,
                            committee_index=committee.index,
                            committee_length=len(committee.validators),
                            committees_at_slot=committees_at_slot[committee.slot],
                            validator_committee_index=position,
                        )
                    )
            return duties

        pubkeys = await self._pubkeys(indices)
        if not pubkeys:
            return []
        duties = []
        for i, entry in enumerate(await self._duties(epoch, list(pubkeys.values()), "attester duties")):
            path = f"[{i}]"
            if not isinstance(entry, dict) or entry.get("attestation_slot") is None:
                continue
            slot = _uint(entry, "attestation_slot", path)
            committee_index = _uint(entry, "attestation_committee_index", path)
            duties.append(
                AttesterDuty(
                    pubkey=decode_hex(entry.get("validator_pubkey"), 48, f"{path}.validator_pubkey"),
                    slot=slot,
                    validator_index=_uint(entry, "validator_index", path),
                    committee_index=committee_index,
                    committee_length=sizes.get((slot, committee_index), 0),
                    committees_at_slot=committees_at_slot.get(slot, 0),
                    validator_committee_index=_uint(entry, "attestation_committee_position", path),
                )
            )
        return duties

    async def proposer_duties(
        self, epoch: int, indices: Optional[Sequence[int]] = None
    ) -> list[ProposerDuty]:
        if not indices:
            data = await self._get_lh("/validator/duties/all", "proposer duties", params={"epoch": str(epoch)})
            if not isinstance(data, list):
                raise DecodingError(f"expected array, got {type(data).__name__}")
        else:
            pubkeys = await self._pubkeys(indices)
            if not pubkeys:
                return []
            data = await self._duties(epoch, list(pubkeys.values()), "proposer duties")

        duties = []
        for i, entry in enumerate(data):
            path = f"[{i}]"
            if not isinstance(entry, dict) or entry.get("validator_index") is None:
                continue
            slots = entry.get("block_proposal_slots") or []
            pubkey = decode_hex(entry.get("validator_pubkey"), 48, f"{path}.validator_pubkey")
            validator_index = _uint(entry, "validator_index", path)
            for j, slot in enumerate(slots):
                duties.append(
                    ProposerDuty(
                        pubkey=pubkey,
                        slot=decode_uint64(slot, f"{path}.block_proposal_slots[{j}]", allow_number=True),
                        validator_index=validator_index,
                    )
                )
        return duties

    # Submitters

    async def submit_attestation(self, attestation: Attestation) -> None:
        """Submit through the subnet-retry protocol; Lighthouse wants a subnet ID."""
        body = canonical_to_lighthouse(json.dumps(to_obj(attestation), separators=(",", ":")))

        async def send(subnet: int) -> bytes:
            return await self._http.post(
                "/validator/attestations", f"[[{body},{subnet}]]", "submit attestation"
            )

        await submit_with_subnet_retry(send, self._log)

    async def submit_aggregate_attestations(
        self, aggregates: Sequence[SignedAggregateAndProof]
    ) -> None:
        await self._post_lh(
            "/validator/aggregate_and_proofs",
            [to_obj(aggregate) for aggregate in aggregates],
            "submit aggregate attestations",
        )

    async def submit_beacon_block(self, block: SignedBeaconBlock) -> None:
        await self._post_lh("/validator/block", to_obj(block), "submit beacon block")

    async def submit_voluntary_exit(self, exit: SignedVoluntaryExit) -> None:
        await self._post_lh("/beacon/voluntary_exit", to_obj(exit), "submit voluntary exit")

    async def submit_beacon_committee_subscriptions(
        self, subscriptions: Sequence[BeaconCommitteeSubscription]
    ) -> None:
        body = [
            {
                "slot": subscription.slot,
                "attestation_committee_index": subscription.committee_index,
                "committee_count_at_slot": subscription.committee_size,
                "validator_index": subscription.validator_index,
                "is_aggregator": subscription.aggregate,
            }
            for subscription in subscriptions
        ]
        response = await self._http.post(
            "/validator/subscribe",
            json.dumps(body, separators=(",", ":")),
            "submit beacon committee subscriptions",
        )
        if response.strip() != b"null":
            self._log.warning(f"Bad response from server on beacon committee subscription request: {response!r}")
            raise SubmissionFailed(
                "server rejected beacon committee subscriptions request",
                operation="submit beacon committee subscriptions",
            )

    # Events

    async def _head_source(self, emit: Emit) -> None:
        source = poll_head_source(
            self.chain_head, self.slots_per_epoch, self.config.head_poll_interval, self._log
        )
        await source(emit)
