"""Adapter for nodes that speak the standard beacon node API."""

import asyncio
import inspect
import logging
from typing import Any, Callable, Optional, Sequence

from ..api.types import (
    EVENT_TYPES,
    AttesterDuty,
    BeaconCommittee,
    BeaconCommitteeSubscription,
    ChainHead,
    Event,
    Finality,
    Fork,
    Genesis,
    HeadEvent,
    ProposerDuty,
    Validator,
)
from ..base import BaseClient
from ..chainspec import parse_spec
from ..codec import decode_hex, decode_uint64, encode_hex, from_obj, to_obj
from ..events import Emit, iter_sse
from ..exceptions import DecodingError, Eth2ClientError, NotFound, NotSupported
from ..http import decode_json
from ..service import Backend
from ..spec.types import (
    SIGNED_BEACON_BLOCK_TYPES,
    AnySignedBeaconBlock,
    Attestation,
    SignedAggregateAndProof,
    SignedBeaconBlock,
    SignedVoluntaryExit,
)
from ..stateid import StateIdentifier, StateIdLike, start_slot_of_epoch

logger = logging.getLogger(__name__)

EventHandler = Callable[[Event], Any]


def unwrap(response: Any, path: str = "data") -> Any:
    """Return the payload of a ``{"data": ...}`` envelope."""
    if not isinstance(response, dict) or path not in response:
        raise DecodingError("missing field", path)
    return response[path]


def _decode_list(cls, items: Any, path: str = "data") -> list:
    if not isinstance(items, list):
        raise DecodingError(f"expected array, got {type(items).__name__}", path)
    return [cls.from_dict(item, f"{path}[{i}]") for i, item in enumerate(items)]


class StandardClient(BaseClient):
    """Client for the ``/eth/v1`` beacon node API.

    Example:
        async with StandardClient(ClientConfig(address="http://localhost:5052")) as client:
            head = await client.chain_head()
    """

    backend = Backend.STANDARD

    def __init__(self, config, transport=None):
        super().__init__(config, transport)
        self._event_tasks: set[asyncio.Task] = set()

    async def close(self) -> None:
        tasks = list(self._event_tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        await super().close()

    async def _data(self, path: str, operation: str, params: Optional[dict] = None) -> Any:
        return unwrap(await self._get_json(path, operation, params=params))

    # Node and chain constants

    async def node_version(self) -> str:
        data = await self._data("/eth/v1/node/version", "node version")
        if not isinstance(data, dict) or not isinstance(data.get("version"), str):
            raise DecodingError("missing field", "data.version")
        return data["version"]

    async def _fetch_genesis(self) -> Genesis:
        data = await self._data("/eth/v1/beacon/genesis", "genesis")
        return Genesis.from_dict(data, "data")

    async def _fetch_spec(self) -> dict:
        data = await self._data("/eth/v1/config/spec", "spec")
        if not isinstance(data, dict):
            raise DecodingError(f"expected object, got {type(data).__name__}", "data")
        return parse_spec(data)

    async def _fetch_fork_schedule(self) -> list[Fork]:
        data = await self._data("/eth/v1/config/fork_schedule", "fork schedule")
        return _decode_list(Fork, data)

    # State

    async def fork(self, state_id: StateIdLike) -> Fork:
        ident = StateIdentifier.parse(state_id)
        data = await self._data(f"/eth/v1/beacon/states/{ident}/fork", "fork")
        return Fork.from_dict(data, "data")

    async def finality(self, state_id: StateIdLike) -> Finality:
        ident = StateIdentifier.parse(state_id)
        data = await self._data(
            f"/eth/v1/beacon/states/{ident}/finality_checkpoints", "finality checkpoints"
        )
        return Finality.from_dict(data, "data")

    async def chain_head(self) -> ChainHead:
        data = await self._data("/eth/v1/beacon/headers/head", "beacon block header")
        try:
            message = data["header"]["message"]
            block_root = decode_hex(data["root"], 32, "data.root")
            slot = decode_uint64(message["slot"], "data.header.message.slot")
            state_root = decode_hex(message["state_root"], 32, "data.header.message.state_root")
        except (KeyError, TypeError) as e:
            raise DecodingError(f"missing field {e}", "data.header") from e

        finality = await self.finality("head")
        slots_per_epoch = await self.slots_per_epoch()
        return ChainHead(
            slot=slot,
            block_root=block_root,
            state_root=state_root,
            finalized_slot=start_slot_of_epoch(finality.finalized.epoch, slots_per_epoch),
            finalized_block_root=finality.finalized.root,
            justified_slot=start_slot_of_epoch(finality.current_justified.epoch, slots_per_epoch),
            justified_block_root=finality.current_justified.root,
        )

    async def _root_to_slot(self, root: bytes) -> int:
        data = await self._data(f"/eth/v2/debug/beacon/states/{encode_hex(root)}", "beacon state")
        if not isinstance(data, dict) or "slot" not in data:
            raise DecodingError("missing field", "data.slot")
        return decode_uint64(data["slot"], "data.slot")

    async def _slot_to_root(self, slot: int) -> bytes:
        return await self.beacon_state_root(slot)

    async def beacon_state_root(self, state_id: StateIdLike) -> bytes:
        ident = StateIdentifier.parse(state_id)
        if ident.root is not None:
            return ident.root
        data = await self._data(f"/eth/v1/beacon/states/{ident}/root", "beacon state root")
        if not isinstance(data, dict) or "root" not in data:
            raise DecodingError("missing field", "data.root")
        return decode_hex(data["root"], 32, "data.root")

    async def signed_beacon_block(self, slot: int) -> Optional[AnySignedBeaconBlock]:
        """Fetch the block at ``slot``, or None when the slot is empty.

        The container matches the consensus version the node reports.
        """
        try:
            response = await self._get_json(f"/eth/v2/beacon/blocks/{slot}", "signed beacon block")
        except NotFound:
            return None
        version = response.get("version", "phase0") if isinstance(response, dict) else None
        block_cls = SIGNED_BEACON_BLOCK_TYPES.get(version) if isinstance(version, str) else None
        if block_cls is None:
            raise NotSupported(f"unsupported block version {version}")
        block = from_obj(block_cls, unwrap(response), "data")
        if int(block.message.slot) < slot:
            # Some nodes answer an empty slot with the last block before it.
            self._log.debug(f"Block for slot {slot} not found (node returned slot {int(block.message.slot)})")
            return None
        if int(block.message.slot) > slot:
            raise DecodingError(
                f"requested block for slot {slot}, received slot {int(block.message.slot)}",
                "data.message.slot",
            )
        return block

    async def beacon_committees(self, state_id: StateIdLike) -> list[BeaconCommittee]:
        ident = StateIdentifier.parse(state_id)
        data = await self._data(f"/eth/v1/beacon/states/{ident}/committees", "beacon committees")
        return _decode_list(BeaconCommittee, data)

    async def _validators(self, state_id: StateIdLike, ids: Optional[list[str]]) -> dict[int, Validator]:
        ident = StateIdentifier.parse(state_id)
        params = {"id": ",".join(ids)} if ids else None
        data = await self._data(f"/eth/v1/beacon/states/{ident}/validators", "validators", params=params)
        return {validator.index: validator for validator in _decode_list(Validator, data)}

    async def validators(
        self, state_id: StateIdLike, indices: Optional[Sequence[int]] = None
    ) -> dict[int, Validator]:
        ids = [str(index) for index in indices] if indices else None
        return await self._validators(state_id, ids)

    async def validators_by_pubkey(
        self, state_id: StateIdLike, pubkeys: Sequence[bytes]
    ) -> dict[int, Validator]:
        if not pubkeys:
            return {}
        return await self._validators(state_id, [encode_hex(pubkey) for pubkey in pubkeys])

    async def validator_balances(
        self, state_id: StateIdLike, indices: Optional[Sequence[int]] = None
    ) -> dict[int, int]:
        ident = StateIdentifier.parse(state_id)
        params = {"id": ",".join(str(index) for index in indices)} if indices else None
        data = await self._data(
            f"/eth/v1/beacon/states/{ident}/validator_balances", "validator balances", params=params
        )
        if not isinstance(data, list):
            raise DecodingError(f"expected array, got {type(data).__name__}", "data")
        balances = {}
        for i, entry in enumerate(data):
            path = f"data[{i}]"
            if not isinstance(entry, dict) or "index" not in entry or "balance" not in entry:
                raise DecodingError("missing field", path)
            balances[decode_uint64(entry["index"], f"{path}.index")] = decode_uint64(
                entry["balance"], f"{path}.balance"
            )
        return balances

    # Duties

    async def attester_duties(
        self, epoch: int, indices: Optional[Sequence[int]] = None
    ) -> list[AttesterDuty]:
        if indices is None:
            indices = sorted((await self.validators("head")).keys())
        if not indices:
            return []
        response = await self._post_json(
            f"/eth/v1/validator/duties/attester/{epoch}",
            [str(index) for index in indices],
            "attester duties",
        )
        return _decode_list(AttesterDuty, unwrap(response))

    async def proposer_duties(
        self, epoch: int, indices: Optional[Sequence[int]] = None
    ) -> list[ProposerDuty]:
        data = await self._data(f"/eth/v1/validator/duties/proposer/{epoch}", "proposer duties")
        duties = _decode_list(ProposerDuty, data)

        slots_per_epoch = await self.slots_per_epoch()
        start = start_slot_of_epoch(epoch, slots_per_epoch)
        end = start + slots_per_epoch - 1
        for duty in duties:
            if duty.slot < start or duty.slot > end:
                raise DecodingError(
                    f"received proposer duty for slot {duty.slot} outside of range {start}-{end}"
                )

        if not indices:
            return duties
        wanted = set(indices)
        return [duty for duty in duties if duty.validator_index in wanted]

    # Submitters

    async def submit_attestation(self, attestation: Attestation) -> None:
        await self._http.post("/eth/v1/beacon/pool/attestations", [to_obj(attestation)], "submit attestation")

    async def submit_aggregate_attestations(
        self, aggregates: Sequence[SignedAggregateAndProof]
    ) -> None:
        await self._http.post(
            "/eth/v1/validator/aggregate_and_proofs",
            [to_obj(aggregate) for aggregate in aggregates],
            "submit aggregate attestations",
        )

    async def submit_beacon_block(self, block: SignedBeaconBlock) -> None:
        await self._http.post("/eth/v1/beacon/blocks", to_obj(block), "submit beacon block")

    async def submit_voluntary_exit(self, exit: SignedVoluntaryExit) -> None:
        await self._http.post("/eth/v1/beacon/pool/voluntary_exits", to_obj(exit), "submit voluntary exit")

    async def submit_beacon_committee_subscriptions(
        self, subscriptions: Sequence[BeaconCommitteeSubscription]
    ) -> None:
        await self._http.post(
            "/eth/v1/validator/beacon_committee_subscriptions",
            [subscription.to_dict() for subscription in subscriptions],
            "submit beacon committee subscriptions",
        )

    # Events

    def _event_lines(self, topics: Sequence[str]):
        return self._http.stream_lines(
            "/eth/v1/events",
            "events",
            params={"topics": ",".join(topics)},
            headers={"Accept": "text/event-stream"},
        )

    async def _head_source(self, emit: Emit) -> None:
        async for event_type, data in iter_sse(self._event_lines(["head"])):
            if event_type != "head":
                continue
            try:
                event = HeadEvent.from_dict(decode_json(data, "head event"))
            except DecodingError as e:
                self._log.warning(f"Failed to parse head event: {e}")
                continue
            await emit(event)

    async def events(self, topics: Sequence[str], handler: EventHandler) -> None:
        """Subscribe ``handler`` to the given event topics.

        The subscription runs in the background until the client is closed.

        Args:
            topics: any of ``head``, ``block``, ``finalized_checkpoint`` and
                ``chain_reorg``
            handler: called with an ``Event`` per notification; may be async

        Raises:
            ValueError: no topics, or an unsupported topic
        """
        if not topics:
            raise ValueError("no topics supplied")
        for topic in topics:
            if topic not in EVENT_TYPES:
                raise ValueError(f"unsupported event topic {topic}")
        task = asyncio.create_task(self._event_loop(list(topics), handler))
        self._event_tasks.add(task)
        task.add_done_callback(self._event_tasks.discard)

    async def _event_loop(self, topics: list[str], handler: EventHandler) -> None:
        try:
            async for event_type, data in iter_sse(self._event_lines(topics)):
                event_cls = EVENT_TYPES.get(event_type)
                if event_cls is None or event_type not in topics:
                    self._log.warning(f"Received unhandled event topic {event_type}")
                    continue
                try:
                    payload = event_cls.from_dict(decode_json(data, f"{event_type} event"))
                except DecodingError as e:
                    self._log.warning(f"Failed to parse {event_type} event: {e}")
                    continue
                await self._dispatch(handler, Event(topic=event_type, data=payload))
        except Eth2ClientError as e:
            self._log.error(f"Event stream failed: {e}")

    async def _dispatch(self, handler: EventHandler, event: Event) -> None:
        try:
            result = handler(event)
            if inspect.isawaitable(result):
                await result
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._log.error(f"Event handler failed for {event.topic}: {e}")
